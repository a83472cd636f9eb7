"""LivePerson messaging WebSocket transport.

Implements ``PushTransportProtocol`` on top of aiohttp:

1. Resolve service domains through the CSDS discovery API.
2. Log the agent in over REST (password or app key credentials).
3. Open the messaging WebSocket and exchange JSON frames.

Outgoing requests are ``{"kind": "req", "id", "type", "body"}`` frames,
answered by ``{"kind": "resp", "reqId", "code", "body"}``. Everything
with ``"kind": "notification"`` is mapped to a ``PushNotification`` and
handed out through ``notifications()``.

Usage::

    transport = LivePersonTransport(config.push)
    await transport.connect()
    async for notification in transport.notifications():
        ...
    await transport.close()
"""

from __future__ import annotations

import asyncio
import itertools
import json
from collections.abc import AsyncIterator
from typing import Any

import aiohttp
import structlog

from convobridge.core.domain.config_schema import PushConfig
from convobridge.core.domain.enums import NotificationKind
from convobridge.core.domain.errors import ConfigError, LookupFailedError, TransportError
from convobridge.core.domain.push_events import PushNotification

logger = structlog.get_logger(__name__)

AGENT_VEP_SERVICE = "agentVep"
MESSAGING_SERVICE = "asyncMessagingEnt"

NOTIFICATION_KINDS: dict[str, NotificationKind] = {
    ".ams.aam.ExConversationChangeNotification": NotificationKind.CONVERSATION,
    ".ams.routing.RoutingTaskNotification": NotificationKind.ROUTING,
    ".ams.ms.MessagingEventNotification": NotificationKind.MESSAGING,
}

# Request types
GET_CLOCK = ".GetClock"
PUBLISH_EVENT = ".ams.ms.PublishEvent"
SUBSCRIBE_MESSAGING_EVENTS = ".ams.ms.SubscribeMessagingEvents"
SET_AGENT_STATE = ".ams.routing.SetAgentState"
SUBSCRIBE_ROUTING_TASKS = ".ams.routing.SubscribeRoutingTasks"
UPDATE_RING_STATE = ".ams.routing.UpdateRingState"
SUBSCRIBE_EX_CONVERSATIONS = ".ams.aam.SubscribeExConversations"
UPDATE_CONVERSATION_FIELD = ".ams.cm.UpdateConversationField"
GET_USER_PROFILE = ".ams.userprofile.GetUserProfile"


class LivePersonTransport:
    """One agent's WebSocket connection to the LivePerson messaging service.

    Args:
        config: Account, credentials and timeouts.
        session: Optional shared HTTP session; one is created (and closed
            with the transport) when omitted.
    """

    def __init__(
        self,
        config: PushConfig,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        if not config.has_credentials:
            raise ConfigError(
                "Push transport requires account_id, username and a password or app key",
                details={"account_id": config.account_id},
            )
        self._config = config
        self._account_id = str(config.account_id)
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._request_ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._queue: asyncio.Queue[PushNotification | None] = asyncio.Queue()
        self._agent_id = ""
        self._closing = False

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Discover domains, log in and open the WebSocket.

        Raises:
            TransportError: If any step fails.
        """
        session = self._get_session()
        try:
            domains = await self._lookup_domains(session)
            token, user_id = await self._login(session, domains[AGENT_VEP_SERVICE])
            url = (
                f"wss://{domains[MESSAGING_SERVICE]}/ws_api/account/{self._account_id}"
                f"/messaging/brand/{token}?v=2"
            )
            self._ws = await session.ws_connect(url)
        except Exception as exc:
            # Releases the session created above; connect may be retried later.
            await self.close()
            if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError, KeyError)):
                raise TransportError(f"Failed to connect push transport: {exc}") from exc
            raise

        self._agent_id = f"{self._account_id}.{user_id}"
        self._closing = False
        self._reader = asyncio.create_task(self._read_loop(), name="push-transport-reader")
        logger.info("transport.connected", agent_id=self._agent_id)
        self._queue.put_nowait(
            PushNotification(NotificationKind.CONNECTED, {"agent_id": self._agent_id})
        )

    async def close(self) -> None:
        """Close the WebSocket and the owned HTTP session. Idempotent."""
        self._closing = True
        ws, self._ws = self._ws, None
        if ws is not None and not ws.closed:
            await ws.close()
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            try:
                await asyncio.wait_for(reader, timeout=self._config.request_timeout_seconds)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                reader.cancel()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    async def notifications(self) -> AsyncIterator[PushNotification]:
        """Yield notifications until the connection has closed."""
        while True:
            notification = await self._queue.get()
            if notification is None:
                return
            yield notification

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def publish_event(self, dialog_id: str, event: dict[str, Any]) -> dict[str, Any]:
        return await self.request(PUBLISH_EVENT, {"dialogId": dialog_id, "event": event})

    async def set_agent_state(self, availability: str) -> dict[str, Any]:
        return await self.request(SET_AGENT_STATE, {"availability": availability})

    async def subscribe_ex_conversations(
        self,
        *,
        agent_ids: list[str],
        conversation_states: list[str],
    ) -> dict[str, Any]:
        return await self.request(
            SUBSCRIBE_EX_CONVERSATIONS,
            {"agentIds": agent_ids, "convState": conversation_states},
        )

    async def subscribe_routing_tasks(self) -> dict[str, Any]:
        return await self.request(SUBSCRIBE_ROUTING_TASKS, {})

    async def update_ring_state(self, ring_id: str, ring_state: str) -> dict[str, Any]:
        return await self.request(UPDATE_RING_STATE, {"ringId": ring_id, "ringState": ring_state})

    async def subscribe_messaging_events(self, dialog_id: str) -> dict[str, Any]:
        return await self.request(SUBSCRIBE_MESSAGING_EVENTS, {"dialogId": dialog_id, "fromSeq": 0})

    async def get_user_profile(self, user_id: str) -> list[dict[str, Any]]:
        """Fetch the profile records of a consumer.

        Raises:
            LookupFailedError: If the request fails or the answer is not a list.
        """
        try:
            body = await self.request(GET_USER_PROFILE, {"_userId": user_id})
        except TransportError as exc:
            raise LookupFailedError(
                f"Profile lookup failed for {user_id}: {exc.message}",
                details={"user_id": user_id},
            ) from exc
        if not isinstance(body, list):
            raise LookupFailedError(
                f"Unexpected profile payload for {user_id}",
                details={"user_id": user_id, "type": type(body).__name__},
            )
        return body

    async def get_clock(self) -> dict[str, Any]:
        return await self.request(GET_CLOCK, {})

    async def update_conversation_field(
        self,
        conversation_id: str,
        fields: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return await self.request(
            UPDATE_CONVERSATION_FIELD,
            {"conversationId": conversation_id, "conversationField": fields},
        )

    async def request(self, request_type: str, body: dict[str, Any]) -> Any:
        """Send one request frame and wait for its response body.

        Raises:
            TransportError: If the socket is closed, the request times out or
                the service answers with an error code.
        """
        ws = self._ws
        if ws is None or ws.closed:
            raise TransportError("Push connection is not open", request_type=request_type)

        request_id = next(self._request_ids)
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await ws.send_json({"kind": "req", "id": request_id, "type": request_type, "body": body})
            response = await asyncio.wait_for(future, timeout=self._config.request_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"Request {request_type} timed out",
                request_type=request_type,
                details={"request_id": request_id},
            ) from exc
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise TransportError(
                f"Request {request_type} failed: {exc}",
                request_type=request_type,
            ) from exc
        finally:
            self._pending.pop(request_id, None)

        code = int(response.get("code") or 200)
        if code >= 400:
            raise TransportError(
                f"Request {request_type} rejected with code {code}",
                request_type=request_type,
                details={"code": code, "body": response.get("body")},
            )
        return response.get("body")

    # ------------------------------------------------------------------
    # Incoming frames
    # ------------------------------------------------------------------

    async def _read_loop(self) -> None:
        ws = self._ws
        reason = "closed"
        try:
            if ws is not None:
                async for message in ws:
                    if message.type == aiohttp.WSMsgType.TEXT:
                        self._handle_text(message.data)
                    elif message.type == aiohttp.WSMsgType.ERROR:
                        reason = str(ws.exception())
                        self._queue.put_nowait(
                            PushNotification(NotificationKind.ERROR, {"error": reason})
                        )
        finally:
            self._on_socket_closed(reason)

    def _handle_text(self, data: str) -> None:
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("transport.invalid_frame", data=data[:200])
            return
        if isinstance(frame, dict):
            self._handle_frame(frame)

    def _handle_frame(self, frame: dict[str, Any]) -> None:
        kind = frame.get("kind")
        if kind == "resp":
            try:
                request_id = int(frame.get("reqId"))
            except (TypeError, ValueError):
                logger.debug("transport.response_without_request_id")
                return
            future = self._pending.get(request_id)
            if future is not None and not future.done():
                future.set_result(frame)
            return

        if kind != "notification":
            logger.debug("transport.unhandled_frame", kind=kind)
            return

        notification_type = frame.get("type", "")
        notification_kind = NOTIFICATION_KINDS.get(notification_type)
        if notification_kind is None:
            logger.debug("transport.unmapped_notification", type=notification_type)
            return
        body = frame.get("body")
        self._queue.put_nowait(
            PushNotification(notification_kind, body if isinstance(body, dict) else {})
        )

    def _on_socket_closed(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(
                    TransportError("Push connection closed before a response arrived")
                )
        self._pending.clear()
        logger.info("transport.closed", reason=reason, requested=self._closing)
        self._queue.put_nowait(
            PushNotification(NotificationKind.CLOSED, {"reason": reason})
        )
        self._queue.put_nowait(None)

    # ------------------------------------------------------------------
    # REST helpers
    # ------------------------------------------------------------------

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
            )
            self._owns_session = True
        return self._session

    async def _lookup_domains(self, session: aiohttp.ClientSession) -> dict[str, str]:
        url = (
            f"https://{self._config.csds_domain}/api/account/{self._account_id}"
            "/service/baseURI.json?version=1.0"
        )
        async with session.get(url) as resp:
            if resp.status >= 400:
                body = await resp.text()
                raise TransportError(
                    f"Domain lookup failed with status {resp.status}",
                    details={"status": resp.status, "body": body[:200]},
                )
            data = await resp.json()

        domains = {
            entry["service"]: entry["baseURI"]
            for entry in data.get("baseURIs", [])
            if isinstance(entry, dict) and "service" in entry and "baseURI" in entry
        }
        missing = [s for s in (AGENT_VEP_SERVICE, MESSAGING_SERVICE) if s not in domains]
        if missing:
            raise TransportError(
                "Domain lookup did not return all required services",
                details={"missing": missing},
            )
        logger.debug("transport.domains_resolved", services=sorted(domains))
        return domains

    async def _login(self, session: aiohttp.ClientSession, domain: str) -> tuple[str, str]:
        url = f"https://{domain}/api/account/{self._account_id}/login?v=1.3"
        async with session.post(url, json=self._login_body()) as resp:
            if resp.status >= 400:
                body = await resp.text()
                raise TransportError(
                    f"Agent login failed with status {resp.status}",
                    details={"status": resp.status, "body": body[:200]},
                )
            data = await resp.json()

        token = data.get("bearer")
        user_id = (data.get("config") or {}).get("userId")
        if not token or not user_id:
            raise TransportError("Agent login response is missing bearer or userId")
        logger.info("transport.logged_in", account_id=self._account_id, user_id=user_id)
        return str(token), str(user_id)

    def _login_body(self) -> dict[str, Any]:
        config = self._config
        if config.password:
            return {"username": config.username, "password": config.password}
        body = {
            "username": config.username,
            "appKey": config.app_key,
            "secret": config.secret,
            "accessToken": config.access_token,
            "accessTokenSecret": config.access_token_secret,
        }
        return {key: value for key, value in body.items() if value}
