"""Unit tests for ConversationRegistry reconciliation."""

from __future__ import annotations

import pytest

from convobridge.application.conversation_registry import ConversationRegistry
from convobridge.core.domain.enums import OrderingPolicy
from convobridge.core.domain.errors import LookupFailedError


async def _open(registry: ConversationRegistry, payloads, conversation_id: str = "c1") -> None:
    await registry.on_conversation_change(payloads.conversation_upsert(conversation_id))
    await registry.drain()


@pytest.mark.asyncio
async def test_upsert_opens_and_subscribes(
    registry: ConversationRegistry,
    transport,
    payloads,
) -> None:
    await _open(registry, payloads)

    assert registry.is_open("c1")
    assert transport.calls_to("subscribe_messaging_events") == [(("c1",), {})]


@pytest.mark.asyncio
async def test_repeated_upsert_does_not_resubscribe(
    registry: ConversationRegistry,
    transport,
    payloads,
) -> None:
    await _open(registry, payloads)
    await _open(registry, payloads)

    assert len(transport.calls_to("subscribe_messaging_events")) == 1


@pytest.mark.asyncio
async def test_greeting_uses_customer_id(transport, payloads) -> None:
    transport.profiles["consumer-1"] = [{"type": "ctmrinfo", "info": {"customerId": "cust-7"}}]
    registry = ConversationRegistry(transport=transport, greeting="Hi {customer_id}!")

    await _open(registry, payloads)

    assert ("c1", {"type": "ContentEvent", "contentType": "text/plain", "message": "Hi cust-7!"}) in transport.published


@pytest.mark.asyncio
async def test_message_is_acknowledged_and_delivered(
    registry: ConversationRegistry,
    transport,
    listener,
    payloads,
) -> None:
    transport.profiles["consumer-1"] = [{"type": "ctmrinfo", "info": {"customerId": "cust-7"}}]
    await _open(registry, payloads)

    await registry.on_messaging_notification(payloads.consumer_message("c1", 5, "hello"))
    await registry.drain()

    assert [a.text for a in listener.activities] == ["hello"]
    activity = listener.activities[0]
    assert activity.conversation_id == "c1"
    assert activity.sender_id == "cust-7"
    assert ("c1", {"type": "AcceptStatusEvent", "status": "READ", "sequenceList": [5]}) in transport.published
    assert registry.pending_keys() == []


@pytest.mark.asyncio
async def test_file_upload_is_acknowledged_and_delivered_as_text(
    registry: ConversationRegistry,
    transport,
    listener,
    payloads,
) -> None:
    await _open(registry, payloads)
    batch = payloads.consumer_message("c1", 6, "")
    batch["changes"][0]["event"] = {
        "type": "ContentEvent",
        "contentType": "hosted/file",
        "message": {"caption": "invoice.pdf", "relativePath": "/files/1", "fileType": "PDF"},
    }

    await registry.on_messaging_notification(batch)
    await registry.drain()

    assert [a.text for a in listener.activities] == ["invoice.pdf"]
    assert ("c1", {"type": "AcceptStatusEvent", "status": "READ", "sequenceList": [6]}) in transport.published
    assert registry.pending_keys() == []


@pytest.mark.asyncio
async def test_messages_for_unknown_conversations_are_ignored(
    registry: ConversationRegistry,
    transport,
    listener,
    payloads,
) -> None:
    await registry.on_messaging_notification(payloads.consumer_message("stranger", 1, "hello"))
    await registry.drain()

    assert listener.activities == []
    assert transport.published == []
    assert registry.pending_keys() == []


@pytest.mark.asyncio
async def test_agent_own_messages_are_not_delivered(
    registry: ConversationRegistry,
    listener,
    payloads,
) -> None:
    await _open(registry, payloads)

    await registry.on_messaging_notification(
        payloads.consumer_message("c1", 2, "echo", consumer_id=payloads.agent_id)
    )
    await registry.drain()

    assert listener.activities == []


@pytest.mark.asyncio
async def test_accept_status_from_agent_drops_pending_entry(
    registry: ConversationRegistry,
    transport,
    listener,
    payloads,
) -> None:
    await _open(registry, payloads)
    batch = payloads.consumer_message("c1", 5, "already read")
    batch["changes"].extend(payloads.accept_status("c1", [5])["changes"])

    await registry.on_messaging_notification(batch)
    await registry.drain()

    assert listener.activities == []
    assert registry.pending_keys() == []
    assert transport.published == []


@pytest.mark.asyncio
async def test_accept_status_from_consumer_is_not_a_dedup_signal(
    registry: ConversationRegistry,
    listener,
    payloads,
) -> None:
    await _open(registry, payloads)
    batch = payloads.consumer_message("c1", 5, "hello")
    batch["changes"].extend(payloads.accept_status("c1", [5], originator="consumer-1")["changes"])

    await registry.on_messaging_notification(batch)
    await registry.drain()

    assert [a.text for a in listener.activities] == ["hello"]


@pytest.mark.asyncio
async def test_redelivered_message_is_emitted_once(
    registry: ConversationRegistry,
    listener,
    payloads,
) -> None:
    await _open(registry, payloads)

    await registry.on_messaging_notification(payloads.consumer_message("c1", 5, "hello"))
    await registry.on_messaging_notification(payloads.consumer_message("c1", 5, "hello"))
    await registry.drain()

    assert [a.text for a in listener.activities] == ["hello"]


@pytest.mark.asyncio
async def test_upsert_then_delete_discards_pending_message(
    registry: ConversationRegistry,
    listener,
    payloads,
) -> None:
    await registry.on_conversation_change(payloads.conversation_upsert("c1"))
    await registry.on_messaging_notification(payloads.consumer_message("c1", 1, "too late"))
    await registry.on_conversation_change(payloads.conversation_delete("c1"))
    await registry.drain()

    assert not registry.is_open("c1")
    assert registry.pending_keys() == []
    assert listener.activities == []


@pytest.mark.asyncio
async def test_profile_failure_still_delivers_with_empty_customer_id(
    registry: ConversationRegistry,
    transport,
    listener,
    payloads,
) -> None:
    transport.failures["get_user_profile"] = LookupFailedError("profile service down")
    await _open(registry, payloads)

    await registry.on_messaging_notification(payloads.consumer_message("c1", 3, "hello"))
    await registry.drain()

    assert [a.sender_id for a in listener.activities] == [""]


@pytest.mark.asyncio
async def test_read_receipt_failure_still_delivers(
    registry: ConversationRegistry,
    transport,
    listener,
    payloads,
) -> None:
    await _open(registry, payloads)
    transport.failures["publish_event"] = RuntimeError("socket closed")

    await registry.on_messaging_notification(payloads.consumer_message("c1", 3, "hello"))
    await registry.drain()

    assert [a.text for a in listener.activities] == ["hello"]


@pytest.mark.asyncio
async def test_listener_failure_does_not_stop_later_messages(transport, payloads) -> None:
    delivered: list[str] = []

    async def flaky(activity) -> None:
        if activity.text == "boom":
            raise RuntimeError("handler failed")
        delivered.append(activity.text)

    registry = ConversationRegistry(transport=transport, listener=flaky)
    await _open(registry, payloads)
    batch = payloads.consumer_message("c1", 1, "boom")
    batch["changes"].extend(payloads.consumer_message("c1", 2, "fine")["changes"])

    await registry.on_messaging_notification(batch)
    await registry.drain()

    assert delivered == ["fine"]


@pytest.mark.asyncio
async def test_sequence_ordering_sorts_within_a_batch(transport, listener, payloads) -> None:
    registry = ConversationRegistry(
        transport=transport, listener=listener, ordering=OrderingPolicy.SEQUENCE
    )
    await _open(registry, payloads)
    batch = payloads.consumer_message("c1", 9, "third")
    batch["changes"].extend(payloads.consumer_message("c1", 2, "first")["changes"])
    batch["changes"].extend(payloads.consumer_message("c1", 4, "second")["changes"])

    await registry.on_messaging_notification(batch)
    await registry.drain()

    assert [a.text for a in listener.activities] == ["first", "second", "third"]


@pytest.mark.asyncio
async def test_insertion_ordering_keeps_arrival_order(
    registry: ConversationRegistry,
    listener,
    payloads,
) -> None:
    await _open(registry, payloads)
    batch = payloads.consumer_message("c1", 9, "a")
    batch["changes"].extend(payloads.consumer_message("c1", 2, "b")["changes"])

    await registry.on_messaging_notification(batch)
    await registry.drain()

    assert [a.text for a in listener.activities] == ["a", "b"]


@pytest.mark.asyncio
async def test_clear_forgets_everything(registry: ConversationRegistry, payloads) -> None:
    await _open(registry, payloads)

    await registry.clear()

    assert registry.open_conversations == []
