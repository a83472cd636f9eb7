"""Unit tests for BridgeService, the middleware pipeline and EchoBot."""

from __future__ import annotations

import pytest

from convobridge.application.agent_connection import AgentConnection
from convobridge.application.bridge_service import BridgeService
from convobridge.application.conversation_registry import ConversationRegistry
from convobridge.application.echo_bot import EchoBot
from convobridge.application.middleware import MiddlewarePipeline, TurnLoggingMiddleware
from convobridge.application.protocol_adapter import PushAdapter, TurnAdapter
from convobridge.application.turn_context import TurnContext
from convobridge.core.domain.activity import Activity
from convobridge.core.domain.enums import ChannelProtocol, ConnectionState, NotificationKind
from convobridge.core.domain.errors import BridgeError, UnsupportedOperationError
from convobridge.core.domain.push_events import PushNotification


def _turn_payload(text: str, conversation_id: str = "c1", activity_type: str = "message") -> dict:
    return {"type": activity_type, "text": text, "conversation": {"id": conversation_id}}


class ExplodingHandler:
    async def on_turn(self, context: TurnContext) -> None:
        raise RuntimeError("logic failed")


class RecordingMiddleware:
    def __init__(self, name: str, calls: list[str], short_circuit: bool = False) -> None:
        self.name = name
        self.calls = calls
        self.short_circuit = short_circuit

    async def on_turn(self, context: TurnContext, next_handler) -> None:
        self.calls.append(f"{self.name}:before")
        if not self.short_circuit:
            await next_handler()
        self.calls.append(f"{self.name}:after")


@pytest.fixture
def turn_bridge() -> BridgeService:
    return BridgeService(
        adapters={ChannelProtocol.TURN: TurnAdapter()},
        turn_handler=EchoBot(),
        pipeline=MiddlewarePipeline([TurnLoggingMiddleware()]),
    )


# ---------------------------------------------------------------------------
# Turn path
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_echo_counts_turns_per_conversation(turn_bridge: BridgeService) -> None:
    first = await turn_bridge.handle_turn_request(_turn_payload("hi"))
    second = await turn_bridge.handle_turn_request(_turn_payload("again"))
    other = await turn_bridge.handle_turn_request(_turn_payload("hey", conversation_id="c2"))

    assert first[0]["text"] == '1: You said via Bot Framework connector: "hi"'
    assert second[0]["text"] == '2: You said via Bot Framework connector: "again"'
    assert other[0]["text"] == '1: You said via Bot Framework connector: "hey"'


@pytest.mark.asyncio
async def test_card_keyword_returns_hero_card(turn_bridge: BridgeService) -> None:
    replies = await turn_bridge.handle_turn_request(_turn_payload("card"))

    attachment = replies[0]["attachments"][0]
    assert attachment["contentType"] == "application/vnd.microsoft.card.hero"
    assert [b["value"] for b in attachment["content"]["buttons"]] == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_non_message_activity_gets_generic_reply(turn_bridge: BridgeService) -> None:
    replies = await turn_bridge.handle_turn_request(
        _turn_payload("", activity_type="conversationUpdate")
    )

    assert replies[0]["text"] == "[conversationUpdate event detected via Bot Framework connector]"


@pytest.mark.asyncio
async def test_handler_error_is_answered_with_error_reply() -> None:
    reset_calls: list[str] = []

    async def on_error(context: TurnContext, error: Exception) -> None:
        reset_calls.append(context.activity.conversation_id)

    bridge = BridgeService(
        adapters={ChannelProtocol.TURN: TurnAdapter()},
        turn_handler=ExplodingHandler(),
        error_reply="Sorry!",
        on_turn_error=on_error,
    )

    replies = await bridge.handle_turn_request(_turn_payload("hi"))

    assert [r["text"] for r in replies] == ["Sorry!"]
    assert reset_calls == ["c1"]


@pytest.mark.asyncio
async def test_disabled_protocol_raises() -> None:
    bridge = BridgeService(adapters={}, turn_handler=EchoBot())

    with pytest.raises(BridgeError) as excinfo:
        await bridge.handle_turn_request(_turn_payload("hi"))

    assert excinfo.value.code == "protocol_disabled"
    assert bridge.push_state is None


@pytest.mark.asyncio
async def test_receive_and_send_route_by_protocol(turn_bridge: BridgeService) -> None:
    activity = turn_bridge.receive(_turn_payload("hi"), ChannelProtocol.TURN)
    result = await turn_bridge.send(Activity(text="yo", conversation_id="c1"), ChannelProtocol.TURN)

    assert activity.text == "hi"
    assert result.success
    assert result.payload["text"] == "yo"


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_middleware_runs_in_registration_order() -> None:
    calls: list[str] = []
    pipeline = MiddlewarePipeline().use(
        RecordingMiddleware("outer", calls),
        RecordingMiddleware("inner", calls),
    )

    async def logic(context: TurnContext) -> None:
        calls.append("logic")

    await pipeline.run(TurnContext(TurnAdapter(), Activity(conversation_id="c1")), logic)

    assert calls == ["outer:before", "inner:before", "logic", "inner:after", "outer:after"]


@pytest.mark.asyncio
async def test_middleware_can_short_circuit() -> None:
    calls: list[str] = []
    pipeline = MiddlewarePipeline(
        [RecordingMiddleware("gate", calls, short_circuit=True), RecordingMiddleware("never", calls)]
    )

    async def logic(context: TurnContext) -> None:
        calls.append("logic")

    await pipeline.run(TurnContext(TurnAdapter(), Activity(conversation_id="c1")), logic)

    assert calls == ["gate:before", "gate:after"]
    assert len(pipeline) == 2


# ---------------------------------------------------------------------------
# Push path
# ---------------------------------------------------------------------------


@pytest.fixture
def push_bridge(transport) -> BridgeService:
    registry = ConversationRegistry(transport=transport)
    connection = AgentConnection(transport=transport, registry=registry, heartbeat_interval=60)
    return BridgeService(
        adapters={
            ChannelProtocol.TURN: TurnAdapter(),
            ChannelProtocol.PUSH: PushAdapter(connection),
        },
        turn_handler=EchoBot(),
    )


@pytest.mark.asyncio
async def test_push_message_is_echoed_over_push(
    push_bridge: BridgeService,
    transport,
    payloads,
) -> None:
    await push_bridge.start()
    connection = push_bridge.push_connection
    await connection.handle(PushNotification(NotificationKind.CONNECTED, {}))
    await connection.handle(PushNotification(NotificationKind.CONVERSATION, payloads.conversation_upsert("c1")))
    await connection.handle(
        PushNotification(NotificationKind.MESSAGING, payloads.consumer_message("c1", 4, "hello"))
    )
    await connection.registry.drain()

    replies = [event for dialog, event in transport.published if event.get("type") == "ContentEvent"]
    assert replies == [
        {
            "type": "ContentEvent",
            "contentType": "text/plain",
            "message": '1: You said via LivePerson: "hello"',
        }
    ]
    assert push_bridge.push_state is ConnectionState.CONNECTED

    await push_bridge.stop()
    assert push_bridge.push_state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_push_adapter_is_rejected_for_turn_requests(push_bridge: BridgeService) -> None:
    adapter = push_bridge.adapter(ChannelProtocol.PUSH)

    async def logic(context: TurnContext) -> None:
        return None

    with pytest.raises(UnsupportedOperationError):
        await adapter.process_request(_turn_payload("hi"), logic)


@pytest.mark.asyncio
async def test_push_activity_reply_goes_through_push_adapter(
    push_bridge: BridgeService,
    transport,
) -> None:
    await push_bridge.push_connection.handle(PushNotification(NotificationKind.CONNECTED, {}))

    deliveries = await push_bridge.handle_push_activity(
        Activity(text="card", conversation_id="c9", channel_id="liveperson")
    )

    assert [d.protocol for d in deliveries] == [ChannelProtocol.PUSH]
    dialog_id, event = transport.published[-1]
    assert dialog_id == "c9"
    assert event["type"] == "RichContentEvent"
    assert event["content"]["elements"][0] == {"type": "text", "text": "Text", "tooltip": "Text"}
    await push_bridge.stop()
