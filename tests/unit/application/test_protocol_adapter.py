"""Unit tests for TurnAdapter and PushAdapter."""

from __future__ import annotations

import pytest

from convobridge.application.agent_connection import AgentConnection
from convobridge.application.conversation_registry import ConversationRegistry
from convobridge.application.protocol_adapter import PushAdapter, TurnAdapter
from convobridge.application.turn_context import TurnContext
from convobridge.core.domain.activity import Activity
from convobridge.core.domain.enums import Capability, ChannelProtocol, NotificationKind
from convobridge.core.domain.errors import TranslationError, UnsupportedOperationError
from convobridge.core.domain.push_events import InboundContentEvent, PushNotification


@pytest.fixture
def connection(transport, registry: ConversationRegistry) -> AgentConnection:
    return AgentConnection(transport=transport, registry=registry, heartbeat_interval=60)


@pytest.fixture
def push_adapter(connection: AgentConnection) -> PushAdapter:
    return PushAdapter(connection)


async def _go_live(connection: AgentConnection) -> None:
    await connection.handle(PushNotification(NotificationKind.CONNECTED, {}))


# ---------------------------------------------------------------------------
# TurnAdapter
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_turn_adapter_returns_replies_of_the_turn() -> None:
    adapter = TurnAdapter()

    async def logic(context: TurnContext) -> None:
        await context.send_activity(f"got {context.activity.text}")

    replies = await adapter.process_request(
        {"type": "message", "text": "hi", "conversation": {"id": "c1"}, "id": "a1"},
        logic,
    )

    assert replies == [
        {
            "type": "message",
            "conversation": {"id": "c1"},
            "channelData": {"id": ""},
            "channelId": "",
            "text": "got hi",
            "replyToId": "a1",
        }
    ]


@pytest.mark.asyncio
async def test_turn_adapter_rejects_payload_without_conversation() -> None:
    async def logic(context: TurnContext) -> None:
        raise AssertionError("logic must not run")

    with pytest.raises(ValueError):
        await TurnAdapter().process_request({"type": "message", "text": "hi"}, logic)


@pytest.mark.asyncio
async def test_turn_adapter_does_not_offer_updates() -> None:
    adapter = TurnAdapter()
    context = TurnContext(adapter, Activity(conversation_id="c1"))

    assert not adapter.supports(Capability.UPDATE_ACTIVITY)
    with pytest.raises(UnsupportedOperationError):
        await adapter.update_activity(context, Activity(text="x"))
    with pytest.raises(UnsupportedOperationError):
        await adapter.continue_conversation("c1", lambda context: None)


# ---------------------------------------------------------------------------
# PushAdapter
# ---------------------------------------------------------------------------


def test_push_adapter_receives_only_reconciled_events(push_adapter: PushAdapter) -> None:
    event = InboundContentEvent(dialog_id="c1", sequence=2, message="hi", originator_id="u")

    assert push_adapter.receive(event).text == "hi"
    with pytest.raises(TranslationError):
        push_adapter.receive({"dialogId": "c1", "message": "raw"})


@pytest.mark.asyncio
async def test_push_adapter_process_request_is_unsupported(push_adapter: PushAdapter) -> None:
    async def logic(context: TurnContext) -> None:
        return None

    with pytest.raises(UnsupportedOperationError) as excinfo:
        await push_adapter.process_request({}, logic)

    assert excinfo.value.code == "unsupported_operation"
    with pytest.raises(UnsupportedOperationError):
        push_adapter.require(Capability.PROCESS_REQUEST)


@pytest.mark.asyncio
async def test_push_send_fails_fast_when_disconnected(
    push_adapter: PushAdapter,
    transport,
) -> None:
    result = await push_adapter.send(Activity(text="hello", conversation_id="c1"))

    assert not result.success
    assert result.protocol is ChannelProtocol.PUSH
    assert transport.published == []


@pytest.mark.asyncio
async def test_push_send_publishes_translated_event(
    push_adapter: PushAdapter,
    connection: AgentConnection,
    transport,
) -> None:
    await _go_live(connection)

    result = await push_adapter.send(Activity(text="hello", conversation_id="c1"))

    assert result.success
    assert transport.published == [
        ("c1", {"type": "ContentEvent", "contentType": "text/plain", "message": "hello"})
    ]
    await connection.close()


@pytest.mark.asyncio
async def test_push_send_reports_publish_failure(
    push_adapter: PushAdapter,
    connection: AgentConnection,
    transport,
) -> None:
    await _go_live(connection)
    transport.failures["publish_event"] = RuntimeError("socket closed")

    result = await push_adapter.send(Activity(text="hello", conversation_id="c1"))

    assert not result.success
    assert result.error == "socket closed"
    await connection.close()


@pytest.mark.asyncio
async def test_push_send_reports_untranslatable_activity(
    push_adapter: PushAdapter,
    connection: AgentConnection,
) -> None:
    await _go_live(connection)

    result = await push_adapter.send(Activity(type="typing", conversation_id="c1"))

    assert not result.success
    await connection.close()


@pytest.mark.asyncio
async def test_transfer_conversation_updates_skill(
    push_adapter: PushAdapter,
    transport,
) -> None:
    assert await push_adapter.transfer_conversation("c1", "skill-9")

    ((conversation_id, fields), _), = transport.calls_to("update_conversation_field")
    assert conversation_id == "c1"
    assert {"field": "Skill", "type": "UPDATE", "skill": "skill-9"} in fields


@pytest.mark.asyncio
async def test_transfer_conversation_reports_failure(
    push_adapter: PushAdapter,
    transport,
) -> None:
    transport.failures["update_conversation_field"] = RuntimeError("denied")

    assert not await push_adapter.transfer_conversation("c1", "skill-9")
