"""Bridge service.

Single entry point for conversational traffic regardless of protocol.
Inbound activities from either adapter run through the same middleware
pipeline and turn handler; replies go back through the adapter the
activity arrived on.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from convobridge.application.agent_connection import AgentConnection
from convobridge.application.middleware import MiddlewarePipeline
from convobridge.application.protocol_adapter import (
    DeliveryResult,
    ProtocolAdapter,
    PushAdapter,
)
from convobridge.application.turn_context import TurnContext
from convobridge.core.domain.activity import Activity
from convobridge.core.domain.enums import Capability, ChannelProtocol, ConnectionState
from convobridge.core.domain.errors import BridgeError
from convobridge.core.interfaces.turn import TurnHandler

DEFAULT_ERROR_REPLY = "Oops. Something went wrong!"

TurnErrorHook = Callable[[TurnContext, Exception], Awaitable[None]]


class BridgeService:
    """Routes activities between protocol adapters and the turn handler.

    Usage::

        bridge = BridgeService(
            adapters={ChannelProtocol.TURN: TurnAdapter()},
            turn_handler=EchoBot(),
        )
        replies = await bridge.handle_turn_request(activity_json)
    """

    def __init__(
        self,
        *,
        adapters: dict[ChannelProtocol, ProtocolAdapter],
        turn_handler: TurnHandler,
        pipeline: MiddlewarePipeline | None = None,
        error_reply: str = DEFAULT_ERROR_REPLY,
        on_turn_error: TurnErrorHook | None = None,
    ) -> None:
        self._adapters = dict(adapters)
        self._turn_handler = turn_handler
        self._pipeline = pipeline or MiddlewarePipeline()
        self._error_reply = error_reply
        self._on_turn_error = on_turn_error
        self._logger = structlog.get_logger(__name__).bind(component="bridge")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pipeline(self) -> MiddlewarePipeline:
        return self._pipeline

    @property
    def protocols(self) -> list[ChannelProtocol]:
        return list(self._adapters)

    def adapter(self, protocol: ChannelProtocol) -> ProtocolAdapter:
        """Return the adapter for ``protocol``.

        Raises:
            BridgeError: If the protocol is not served by this bridge.
        """
        adapter = self._adapters.get(protocol)
        if adapter is None:
            raise BridgeError(
                message=f"Protocol '{protocol.value}' is not enabled",
                code="protocol_disabled",
                details={"protocol": protocol.value},
            )
        return adapter

    @property
    def push_connection(self) -> AgentConnection | None:
        adapter = self._adapters.get(ChannelProtocol.PUSH)
        if isinstance(adapter, PushAdapter):
            return adapter.connection
        return None

    @property
    def push_state(self) -> ConnectionState | None:
        connection = self.push_connection
        return connection.state if connection is not None else None

    # ------------------------------------------------------------------
    # Generic receive / send
    # ------------------------------------------------------------------

    def receive(self, raw_event: Any, source: ChannelProtocol) -> Activity:
        """Translate a raw inbound event of ``source`` into an Activity."""
        adapter = self.adapter(source)
        adapter.require(Capability.RECEIVE)
        return adapter.receive(raw_event)

    async def send(self, activity: Activity, destination: ChannelProtocol) -> DeliveryResult:
        """Send an activity through the adapter of ``destination``."""
        adapter = self.adapter(destination)
        adapter.require(Capability.SEND)
        return await adapter.send(activity)

    # ------------------------------------------------------------------
    # Turn entry points
    # ------------------------------------------------------------------

    async def handle_turn_request(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        """Process one request/response turn and return its reply payloads.

        Raises:
            ValueError: If the payload is not a valid Activity.
        """
        adapter = self.adapter(ChannelProtocol.TURN)
        adapter.require(Capability.PROCESS_REQUEST)
        return await adapter.process_request(payload, self._run_turn)

    async def handle_push_activity(self, activity: Activity) -> list[DeliveryResult]:
        """Process an inbound Activity reconciled by the conversation registry."""
        context = TurnContext(self.adapter(ChannelProtocol.PUSH), activity)
        await self._run_turn(context)
        return context.deliveries

    async def _run_turn(self, context: TurnContext) -> None:
        try:
            await self._pipeline.run(context, self._turn_handler.on_turn)
        except Exception as exc:
            self._logger.error(
                "bridge.turn_failed",
                protocol=context.protocol.value,
                conversation_id=context.activity.conversation_id,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            await self._recover(context, exc)

    async def _recover(self, context: TurnContext, exc: Exception) -> None:
        if self._on_turn_error is not None:
            try:
                await self._on_turn_error(context, exc)
            except Exception as hook_exc:
                self._logger.warning("bridge.error_hook_failed", error=str(hook_exc))
        try:
            await context.send_activity(self._error_reply)
        except Exception as send_exc:
            self._logger.warning(
                "bridge.error_reply_failed",
                conversation_id=context.activity.conversation_id,
                error=str(send_exc),
            )

    # ------------------------------------------------------------------
    # Push connection lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the push connection, if this bridge serves the push protocol."""
        connection = self.push_connection
        if connection is None:
            return
        connection.registry.set_listener(self._on_push_activity)
        await connection.connect()
        self._logger.info("bridge.push_started", agent_id=connection.agent_id)

    async def stop(self) -> None:
        connection = self.push_connection
        if connection is None:
            return
        await connection.close()
        await connection.registry.drain()
        self._logger.info("bridge.push_stopped")

    async def _on_push_activity(self, activity: Activity) -> None:
        await self.handle_push_activity(activity)
