"""Agent connection state machine for the push messaging protocol.

Owns the single persistent connection of an agent process::

    DISCONNECTED --connect()--> CONNECTING --connected--> CONNECTED --closed--> CLOSED

Notifications from the transport are routed into one queue per
category (connection lifecycle, routing, conversation, messaging), each
drained by its own consumer task, so processing is ordered within a
category and independent across categories.

Reconnecting after ``CLOSED`` is left to an external retry policy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from convobridge.application.conversation_registry import ConversationRegistry
from convobridge.core.domain.enums import ConnectionState, NotificationKind, RingState
from convobridge.core.domain.errors import ConnectionStateError, TransportError
from convobridge.core.domain.push_events import PushNotification, parse_ring_changes
from convobridge.core.interfaces.push_transport import PushTransportProtocol

logger = structlog.get_logger(__name__)

AGENT_AVAILABILITY_ONLINE = "ONLINE"
OPEN_CONVERSATION_STATE = "OPEN"

_CATEGORY_BY_KIND = {
    NotificationKind.CONNECTED: "connection",
    NotificationKind.CLOSED: "connection",
    NotificationKind.ERROR: "connection",
    NotificationKind.ROUTING: "routing",
    NotificationKind.CONVERSATION: "conversation",
    NotificationKind.MESSAGING: "messaging",
}


class Heartbeat:
    """Fixed-interval background ping of the push backend.

    ``start`` while running and ``stop`` while stopped are no-ops.
    """

    def __init__(
        self,
        ping: Callable[[], Awaitable[Any]],
        interval_seconds: float = 30.0,
    ) -> None:
        self._ping = ping
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self.start_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        self.start_count += 1
        self._task = asyncio.create_task(self._loop(), name="push-heartbeat")
        logger.info("heartbeat.started", interval_s=self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("heartbeat.stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._ping()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("heartbeat.ping_failed", error=str(exc))


class AgentConnection:
    """Drives subscription, heartbeat and ring acceptance for one agent.

    Args:
        transport: The push connection.
        registry: Receives conversation and messaging notifications.
        heartbeat_interval: Seconds between clock pings.
        accept_routing_offers: Accept every ring in ``WAITING`` state.
    """

    def __init__(
        self,
        *,
        transport: PushTransportProtocol,
        registry: ConversationRegistry,
        heartbeat_interval: float = 30.0,
        accept_routing_offers: bool = True,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._accept_routing_offers = accept_routing_offers
        self._state = ConnectionState.DISCONNECTED
        self._heartbeat = Heartbeat(transport.get_clock, heartbeat_interval)
        self._queues: dict[str, asyncio.Queue[PushNotification]] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._closed_event = asyncio.Event()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def heartbeat(self) -> Heartbeat:
        return self._heartbeat

    @property
    def registry(self) -> ConversationRegistry:
        return self._registry

    @property
    def transport(self) -> PushTransportProtocol:
        return self._transport

    @property
    def agent_id(self) -> str:
        return self._transport.agent_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the transport and start routing its notifications.

        Raises:
            ConnectionStateError: If the connection is not ``DISCONNECTED``.
            TransportError: If the transport cannot be opened.
        """
        if self._state is not ConnectionState.DISCONNECTED:
            raise ConnectionStateError(
                f"Cannot connect from state {self._state.value}",
                details={"state": self._state.value},
            )

        self._state = ConnectionState.CONNECTING
        logger.info("agent_connection.connecting")
        self._start_consumers()
        try:
            await self._transport.connect()
        except Exception as exc:
            logger.error("agent_connection.connect_failed", error=str(exc))
            await self._stop_tasks()
            self._state = ConnectionState.DISCONNECTED
            if isinstance(exc, TransportError):
                raise
            raise TransportError(f"Failed to open push connection: {exc}") from exc

        self._tasks.append(asyncio.create_task(self._pump(), name="push-pump"))

    async def close(self) -> None:
        """Close the connection. Safe to call any number of times."""
        if self._state is ConnectionState.CLOSED and not self._tasks:
            return
        previous = self._state
        self._state = ConnectionState.CLOSED
        await self._heartbeat.stop()
        try:
            await self._transport.close()
        except Exception as exc:
            logger.warning("agent_connection.transport_close_failed", error=str(exc))
        await self._stop_tasks()
        self._closed_event.set()
        logger.info("agent_connection.closed", previous_state=previous.value)

    async def wait_closed(self) -> None:
        await self._closed_event.wait()

    # ------------------------------------------------------------------
    # Notification handling
    # ------------------------------------------------------------------

    def dispatch(self, notification: PushNotification) -> None:
        """Queue a notification for its category's consumer."""
        category = _CATEGORY_BY_KIND[notification.kind]
        queue = self._queues.get(category)
        if queue is None:
            logger.warning("agent_connection.dispatch_without_consumers", kind=notification.kind.value)
            return
        queue.put_nowait(notification)

    async def handle(self, notification: PushNotification) -> None:
        """Process one notification inline."""
        kind = notification.kind
        if kind is NotificationKind.CONNECTED:
            await self._on_connected(notification.body)
        elif kind is NotificationKind.CLOSED:
            await self._on_closed(notification.body)
        elif kind is NotificationKind.ERROR:
            logger.error("agent_connection.transport_error", error=notification.body.get("error"))
        elif kind is NotificationKind.ROUTING:
            await self._on_routing(notification.body)
        elif kind is NotificationKind.CONVERSATION:
            if self._accepts_notifications():
                await self._registry.on_conversation_change(notification.body)
        elif kind is NotificationKind.MESSAGING:
            if self._accepts_notifications():
                await self._registry.on_messaging_notification(notification.body)

    def _accepts_notifications(self) -> bool:
        return self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED)

    async def _on_connected(self, body: dict[str, Any]) -> None:
        if self._state is ConnectionState.CLOSED:
            logger.warning("agent_connection.connected_after_close")
            return
        if self._state is ConnectionState.CONNECTED:
            return

        self._state = ConnectionState.CONNECTED
        agent_id = self._transport.agent_id
        logger.info("agent_connection.connected", agent_id=agent_id)

        await self._best_effort(
            "set_agent_state", self._transport.set_agent_state(AGENT_AVAILABILITY_ONLINE)
        )
        await self._best_effort(
            "subscribe_ex_conversations",
            self._transport.subscribe_ex_conversations(
                agent_ids=[agent_id],
                conversation_states=[OPEN_CONVERSATION_STATE],
            ),
        )
        await self._best_effort("subscribe_routing_tasks", self._transport.subscribe_routing_tasks())
        self._heartbeat.start()

    async def _on_closed(self, body: dict[str, Any]) -> None:
        logger.info("agent_connection.socket_closed", reason=body.get("reason"))
        self._state = ConnectionState.CLOSED
        await self._heartbeat.stop()
        self._closed_event.set()

    async def _on_routing(self, body: dict[str, Any]) -> None:
        if not self._accept_routing_offers:
            return
        for ring in parse_ring_changes(body):
            if not ring.is_waiting:
                continue
            try:
                await self._transport.update_ring_state(ring.ring_id, RingState.ACCEPTED.value)
                logger.info("agent_connection.ring_accepted", ring_id=ring.ring_id)
            except Exception as exc:
                logger.warning(
                    "agent_connection.ring_accept_failed",
                    ring_id=ring.ring_id,
                    error=str(exc),
                )

    async def _best_effort(self, operation: str, call: Awaitable[Any]) -> None:
        try:
            await call
        except Exception as exc:
            logger.warning(
                "agent_connection.setup_call_failed",
                operation=operation,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _start_consumers(self) -> None:
        for category in sorted(set(_CATEGORY_BY_KIND.values())):
            queue: asyncio.Queue[PushNotification] = asyncio.Queue()
            self._queues[category] = queue
            self._tasks.append(
                asyncio.create_task(self._consume(category, queue), name=f"push-{category}")
            )

    async def _pump(self) -> None:
        try:
            async for notification in self._transport.notifications():
                self.dispatch(notification)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("agent_connection.pump_failed", error=str(exc))

    async def _consume(self, category: str, queue: asyncio.Queue[PushNotification]) -> None:
        while True:
            notification = await queue.get()
            try:
                await self.handle(notification)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(
                    "agent_connection.handler_failed",
                    category=category,
                    kind=notification.kind.value,
                    error=str(exc),
                    exc_info=True,
                )
            finally:
                queue.task_done()

    async def _stop_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        self._tasks = []
        self._queues = {}
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
