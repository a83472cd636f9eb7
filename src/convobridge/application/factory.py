"""Application Layer - Bridge Factory.

Wires adapters, the agent connection, the conversation registry and the
middleware pipeline from a ``BridgeConfig``.
"""

from __future__ import annotations

import structlog

from convobridge.application.agent_connection import AgentConnection
from convobridge.application.bridge_service import BridgeService, TurnErrorHook
from convobridge.application.conversation_registry import ConversationRegistry
from convobridge.application.echo_bot import EchoBot
from convobridge.application.middleware import MiddlewarePipeline, TurnLoggingMiddleware
from convobridge.application.protocol_adapter import ProtocolAdapter, PushAdapter, TurnAdapter
from convobridge.core.domain.config_schema import BridgeConfig, PushConfig
from convobridge.core.domain.enums import BridgeMode, ChannelProtocol
from convobridge.core.domain.errors import ConfigError
from convobridge.core.interfaces.push_transport import PushTransportProtocol
from convobridge.core.interfaces.turn import MiddlewareProtocol, TurnHandler

logger = structlog.get_logger(__name__)


def create_push_transport(config: PushConfig) -> PushTransportProtocol:
    """Create the production WebSocket transport."""
    # Imported lazily so turn-only deployments never load the transport.
    from convobridge.infrastructure.liveperson.websocket_transport import LivePersonTransport

    return LivePersonTransport(config)


def create_agent_connection(
    config: PushConfig,
    transport: PushTransportProtocol,
) -> AgentConnection:
    """Create a connection with a fresh registry bound to ``transport``."""
    registry = ConversationRegistry(
        transport=transport,
        greeting=config.greeting,
        ordering=config.ordering,
    )
    return AgentConnection(
        transport=transport,
        registry=registry,
        heartbeat_interval=config.heartbeat_interval_seconds,
        accept_routing_offers=config.accept_routing_offers,
    )


def build_bridge_service(
    config: BridgeConfig,
    *,
    turn_handler: TurnHandler | None = None,
    transport: PushTransportProtocol | None = None,
    middleware: list[MiddlewareProtocol] | None = None,
    on_turn_error: TurnErrorHook | None = None,
) -> BridgeService:
    """Build a ``BridgeService`` for the protocols ``config.mode`` enables.

    Args:
        config: Validated bridge configuration.
        turn_handler: Conversational logic; defaults to ``EchoBot``.
        transport: Push transport to use instead of the WebSocket one.
        middleware: Pipeline steps; defaults to ``TurnLoggingMiddleware``.
        on_turn_error: Called before the error reply when a turn fails.

    Raises:
        ConfigError: If push-only mode has neither credentials nor a transport.
    """
    if turn_handler is None:
        bot = EchoBot()
        turn_handler = bot
        on_turn_error = on_turn_error or bot.reset

    adapters: dict[ChannelProtocol, ProtocolAdapter] = {}
    if config.serves_turn:
        adapters[ChannelProtocol.TURN] = TurnAdapter()

    if config.serves_push:
        if transport is None and config.push.has_credentials:
            transport = create_push_transport(config.push)
        if transport is not None:
            connection = create_agent_connection(config.push, transport)
            adapters[ChannelProtocol.PUSH] = PushAdapter(connection)
        elif config.mode is BridgeMode.PUSH_ONLY:
            raise ConfigError("push_only mode requires push credentials")
        else:
            logger.warning("factory.push_disabled", reason="no push credentials configured")

    pipeline = MiddlewarePipeline(
        middleware if middleware is not None else [TurnLoggingMiddleware()]
    )
    logger.info(
        "factory.bridge_built",
        mode=config.mode.value,
        protocols=[protocol.value for protocol in adapters],
        middleware=len(pipeline),
    )
    return BridgeService(
        adapters=adapters,
        turn_handler=turn_handler,
        pipeline=pipeline,
        error_reply=config.error_reply,
        on_turn_error=on_turn_error,
    )
