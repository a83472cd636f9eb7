"""Domain models for notifications and events of the push messaging protocol.

Parsers accept both the nested wire form (``{"type", "result": {...}}``)
and the flat form (``{"type", "convId", ...}``) of change entries.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from convobridge.core.domain.enums import (
    ChangeType,
    MessagingEventType,
    NotificationKind,
    RingState,
)

CONSUMER_ROLE = "CONSUMER"
TEXT_CONTENT_TYPE = "text/plain"
CUSTOMER_INFO_TYPE = "ctmrinfo"


@dataclass(frozen=True)
class PushNotification:
    """One notification delivered over the push connection."""

    kind: NotificationKind
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Participant:
    id: str
    role: str


@dataclass(frozen=True)
class ConversationChange:
    """An open-conversation list change for this agent."""

    change_type: str
    conversation_id: str
    participants: tuple[Participant, ...] = ()

    @property
    def consumer_id(self) -> str | None:
        for participant in self.participants:
            if participant.role == CONSUMER_ROLE:
                return participant.id
        return None


@dataclass(frozen=True)
class RingChange:
    """A routing offer (ring) and its current state."""

    change_type: str
    ring_id: str
    ring_state: str

    @property
    def is_waiting(self) -> bool:
        return self.ring_state == RingState.WAITING.value


@dataclass(frozen=True)
class MessagingChange:
    """One entry of a messaging-event batch."""

    dialog_id: str
    sequence: int
    originator_id: str
    event_type: str
    message: str | None = None
    content_type: str = TEXT_CONTENT_TYPE
    sequence_list: tuple[int, ...] = ()

    @property
    def is_content(self) -> bool:
        return self.event_type == MessagingEventType.CONTENT.value

    @property
    def is_accept_status(self) -> bool:
        return self.event_type == MessagingEventType.ACCEPT_STATUS.value


@dataclass(frozen=True)
class InboundContentEvent:
    """A reconciled inbound message, ready for translation into an Activity.

    Only the conversation registry produces these.
    """

    dialog_id: str
    sequence: int
    message: str
    originator_id: str
    customer_id: str = ""


def _result(change: dict[str, Any]) -> dict[str, Any]:
    result = change.get("result")
    return result if isinstance(result, dict) else change


def _participants(result: dict[str, Any]) -> tuple[Participant, ...]:
    details = result.get("conversationDetails")
    raw = details.get("participants") if isinstance(details, dict) else result.get("participants")
    participants = []
    for entry in raw or []:
        if isinstance(entry, dict) and entry.get("id") is not None:
            participants.append(Participant(id=str(entry["id"]), role=str(entry.get("role", ""))))
    return tuple(participants)


def parse_conversation_changes(body: dict[str, Any]) -> list[ConversationChange]:
    """Extract conversation changes from a conversation-change notification body."""
    changes = []
    for change in body.get("changes") or []:
        result = _result(change)
        conversation_id = result.get("convId")
        if not conversation_id:
            continue
        changes.append(
            ConversationChange(
                change_type=str(change.get("type", "")),
                conversation_id=str(conversation_id),
                participants=_participants(result),
            )
        )
    return changes


def parse_ring_changes(body: dict[str, Any]) -> list[RingChange]:
    """Extract ring offers from a routing-task notification body."""
    rings = []
    for change in body.get("changes") or []:
        change_type = str(change.get("type", ""))
        result = _result(change)
        details = result.get("ringsDetails")
        entries = details if isinstance(details, list) else [result]
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("ringId"):
                continue
            rings.append(
                RingChange(
                    change_type=change_type,
                    ring_id=str(entry["ringId"]),
                    ring_state=str(entry.get("ringState", "")),
                )
            )
    return rings


def parse_messaging_changes(body: dict[str, Any]) -> list[MessagingChange]:
    """Extract messaging changes from a messaging-event notification body.

    A change without its own ``dialogId`` belongs to the batch's dialog.
    Entries with a missing or non-numeric sequence are dropped.
    """
    batch_dialog_id = body.get("dialogId")
    changes = []
    for change in body.get("changes") or []:
        event = change.get("event") or {}
        dialog_id = change.get("dialogId") or batch_dialog_id
        try:
            sequence = int(change.get("sequence"))
        except (TypeError, ValueError):
            if event.get("type") != MessagingEventType.ACCEPT_STATUS.value:
                continue
            sequence = -1
        if not dialog_id:
            continue
        is_content = event.get("type") == MessagingEventType.CONTENT.value
        changes.append(
            MessagingChange(
                dialog_id=str(dialog_id),
                sequence=sequence,
                originator_id=str(change.get("originatorId", "")),
                event_type=str(event.get("type", "")),
                message=_content_text(event) if is_content else None,
                content_type=str(event.get("contentType") or TEXT_CONTENT_TYPE),
                sequence_list=tuple(
                    int(seq) for seq in event.get("sequenceList") or [] if _is_int(seq)
                ),
            )
        )
    return changes


def _content_text(event: dict[str, Any]) -> str:
    """Render the body of a content event as text.

    Non-text bodies (file uploads and other structured content) use their
    caption when they carry one, otherwise their JSON form.
    """
    message = event.get("message")
    if message is None:
        return ""
    if isinstance(message, str):
        return message
    if isinstance(message, dict) and isinstance(message.get("caption"), str) and message["caption"]:
        return message["caption"]
    return json.dumps(message, sort_keys=True)


def _is_int(value: Any) -> bool:
    try:
        int(value)
    except (TypeError, ValueError):
        return False
    return True


def customer_id_from_profile(profile: Any) -> str:
    """Return the customer identifier from a user profile, or ``""``."""
    if not isinstance(profile, list):
        return ""
    for record in profile:
        if isinstance(record, dict) and record.get("type") == CUSTOMER_INFO_TYPE:
            info = record.get("info") or {}
            customer_id = info.get("customerId") if isinstance(info, dict) else None
            return str(customer_id) if customer_id else ""
    return ""


def content_event(message: str) -> dict[str, Any]:
    """Build a plain-text content event."""
    return {
        "type": MessagingEventType.CONTENT.value,
        "contentType": TEXT_CONTENT_TYPE,
        "message": message,
    }


def read_receipt(sequence: int) -> dict[str, Any]:
    """Build a read receipt for one message sequence."""
    return {
        "type": MessagingEventType.ACCEPT_STATUS.value,
        "status": "READ",
        "sequenceList": [sequence],
    }


def is_upsert(change_type: str) -> bool:
    return change_type == ChangeType.UPSERT.value


def is_delete(change_type: str) -> bool:
    return change_type == ChangeType.DELETE.value
