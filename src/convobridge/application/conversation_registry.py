"""Conversation registry: open conversations and unacknowledged inbound messages.

The push backend delivers messaging notifications at least once, may
deliver them for conversations this agent never subscribed to, and
reports reads by other processes as accept-status events. The registry
turns that stream into a clean sequence of inbound Activities:

1. Notifications for conversations that are not open are ignored.
2. Content events from consumers are buffered by ``(dialog_id, sequence)``.
3. Accept-status events from this agent drop the sequences they list.
4. After each batch, a background flush claims every remaining entry,
   publishes a read receipt, resolves the customer id and hands the
   translated Activity to the listener.

All mutations of the maps go through one ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any

import structlog

from convobridge.application.content_translator import content_event_to_activity
from convobridge.core.domain.activity import Activity
from convobridge.core.domain.enums import OrderingPolicy
from convobridge.core.domain.push_events import (
    TEXT_CONTENT_TYPE,
    ConversationChange,
    InboundContentEvent,
    MessagingChange,
    Participant,
    content_event,
    customer_id_from_profile,
    is_delete,
    is_upsert,
    parse_conversation_changes,
    parse_messaging_changes,
    read_receipt,
)
from convobridge.core.interfaces.push_transport import PushTransportProtocol

logger = structlog.get_logger(__name__)

ActivityListener = Callable[[Activity], Awaitable[None]]
PendingKey = tuple[str, int]


@dataclass
class OpenConversation:
    conversation_id: str
    participants: tuple[Participant, ...] = ()
    consumer_id: str | None = None


@dataclass
class PendingInbound:
    message: str
    sender_id: str


class ConversationRegistry:
    """Tracks open conversations and reconciles their inbound messages.

    Args:
        transport: Push connection used for receipts, lookups and greetings.
        listener: Receives every reconciled inbound Activity.
        greeting: Text sent when a conversation opens; ``{customer_id}`` is
            replaced with the consumer's customer id. ``None`` disables it.
        ordering: Delivery order of the entries claimed by one flush.
    """

    def __init__(
        self,
        *,
        transport: PushTransportProtocol,
        listener: ActivityListener | None = None,
        greeting: str | None = None,
        ordering: OrderingPolicy = OrderingPolicy.INSERTION,
    ) -> None:
        self._transport = transport
        self._listener = listener
        self._greeting = greeting
        self._ordering = ordering
        self._open: dict[str, OpenConversation] = {}
        self._pending: dict[PendingKey, PendingInbound] = {}
        self._lock = asyncio.Lock()
        self._background: set[asyncio.Task[Any]] = set()
        self._logger = logger.bind(component="conversation_registry")

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def is_open(self, conversation_id: str) -> bool:
        return conversation_id in self._open

    @property
    def open_conversations(self) -> list[str]:
        return list(self._open)

    def pending_keys(self) -> list[PendingKey]:
        return list(self._pending)

    def set_listener(self, listener: ActivityListener) -> None:
        self._listener = listener

    # ------------------------------------------------------------------
    # Notification handlers
    # ------------------------------------------------------------------

    async def on_conversation_change(self, body: dict[str, Any]) -> None:
        """Apply a conversation-change notification batch."""
        changes = parse_conversation_changes(body)
        async with self._lock:
            for change in changes:
                if is_upsert(change.change_type):
                    self._open_conversation(change)
                elif is_delete(change.change_type):
                    self._close_conversation(change.conversation_id)

    async def on_messaging_notification(self, body: dict[str, Any]) -> None:
        """Apply a messaging-event batch and schedule delivery of what remains."""
        changes = parse_messaging_changes(body)
        agent_id = self._transport.agent_id
        async with self._lock:
            for change in changes:
                if change.dialog_id not in self._open:
                    continue
                self._apply_messaging_change(change, agent_id)
            remaining = list(self._pending)

        if remaining:
            self._spawn(self._flush(remaining), name="registry-flush")

    async def drain(self) -> None:
        """Wait until all background work (including work it spawns) is done."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def clear(self) -> None:
        """Forget every conversation and pending message."""
        async with self._lock:
            self._open.clear()
            self._pending.clear()

    # ------------------------------------------------------------------
    # Mutations (lock held)
    # ------------------------------------------------------------------

    def _open_conversation(self, change: ConversationChange) -> None:
        conversation_id = change.conversation_id
        if conversation_id in self._open:
            return

        self._open[conversation_id] = OpenConversation(
            conversation_id=conversation_id,
            participants=change.participants,
            consumer_id=change.consumer_id,
        )
        self._logger.info(
            "registry.conversation_opened",
            conversation_id=conversation_id,
            consumer_id=change.consumer_id,
        )
        if self._greeting is not None:
            self._spawn(
                self._greet(conversation_id, change.consumer_id),
                name=f"registry-greet-{conversation_id}",
            )
        self._spawn(
            self._subscribe(conversation_id),
            name=f"registry-subscribe-{conversation_id}",
        )

    def _close_conversation(self, conversation_id: str) -> None:
        if self._open.pop(conversation_id, None) is None:
            return
        dropped = [key for key in self._pending if key[0] == conversation_id]
        for key in dropped:
            del self._pending[key]
        self._logger.info(
            "registry.conversation_closed",
            conversation_id=conversation_id,
            discarded_pending=len(dropped),
        )

    def _apply_messaging_change(self, change: MessagingChange, agent_id: str) -> None:
        if change.is_content and change.originator_id != agent_id:
            if change.content_type != TEXT_CONTENT_TYPE:
                self._logger.info(
                    "registry.non_text_content",
                    conversation_id=change.dialog_id,
                    sequence=change.sequence,
                    content_type=change.content_type,
                )
            self._pending[(change.dialog_id, change.sequence)] = PendingInbound(
                message=change.message or "",
                sender_id=change.originator_id,
            )
        elif change.is_accept_status and change.originator_id == agent_id:
            for sequence in change.sequence_list:
                self._pending.pop((change.dialog_id, sequence), None)

    async def _claim(self, key: PendingKey) -> PendingInbound | None:
        async with self._lock:
            if key[0] not in self._open:
                return None
            return self._pending.pop(key, None)

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    async def _flush(self, keys: list[PendingKey]) -> None:
        if self._ordering is OrderingPolicy.SEQUENCE:
            keys = sorted(keys, key=lambda key: key[1])

        for key in keys:
            entry = await self._claim(key)
            if entry is None:
                continue
            dialog_id, sequence = key
            await self._acknowledge(dialog_id, sequence)
            customer_id = await self._lookup_customer_id(entry.sender_id)
            event = InboundContentEvent(
                dialog_id=dialog_id,
                sequence=sequence,
                message=entry.message,
                originator_id=entry.sender_id,
                customer_id=customer_id,
            )
            await self._emit(event)

    async def _acknowledge(self, dialog_id: str, sequence: int) -> None:
        try:
            await self._transport.publish_event(dialog_id, read_receipt(sequence))
        except Exception as exc:
            self._logger.warning(
                "registry.read_receipt_failed",
                conversation_id=dialog_id,
                sequence=sequence,
                error=str(exc),
            )

    async def _lookup_customer_id(self, consumer_id: str) -> str:
        if not consumer_id:
            return ""
        try:
            profile = await self._transport.get_user_profile(consumer_id)
        except Exception as exc:
            self._logger.warning(
                "registry.profile_lookup_failed",
                consumer_id=consumer_id,
                error=str(exc),
            )
            return ""
        return customer_id_from_profile(profile)

    async def _emit(self, event: InboundContentEvent) -> None:
        if self._listener is None:
            self._logger.warning(
                "registry.no_listener",
                conversation_id=event.dialog_id,
                sequence=event.sequence,
            )
            return
        try:
            await self._listener(content_event_to_activity(event))
        except Exception as exc:
            self._logger.error(
                "registry.listener_failed",
                conversation_id=event.dialog_id,
                sequence=event.sequence,
                error=str(exc),
                exc_info=True,
            )

    async def _greet(self, conversation_id: str, consumer_id: str | None) -> None:
        customer_id = await self._lookup_customer_id(consumer_id or "")
        message = (self._greeting or "").replace("{customer_id}", customer_id)
        try:
            await self._transport.publish_event(conversation_id, content_event(message))
        except Exception as exc:
            self._logger.warning(
                "registry.greeting_failed",
                conversation_id=conversation_id,
                error=str(exc),
            )

    async def _subscribe(self, conversation_id: str) -> None:
        try:
            await self._transport.subscribe_messaging_events(conversation_id)
        except Exception as exc:
            self._logger.warning(
                "registry.subscribe_failed",
                conversation_id=conversation_id,
                error=str(exc),
            )

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
