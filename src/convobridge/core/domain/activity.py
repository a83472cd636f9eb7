"""Generic Activity model exchanged with the conversational logic.

The JSON shape follows the Bot Framework Activity schema, so the
request/response protocol needs no translation at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from convobridge.core.domain.enums import AttachmentLayout

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
HERO_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.hero"
THUMBNAIL_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.thumbnail"

MESSAGE_ACTIVITY = "message"


@dataclass(frozen=True)
class CardAction:
    """A clickable action (suggested action, hero card button).

    Attributes:
        type: Action type (``imBack``, ``postBack``, ``openUrl``, ...).
        title: Caption shown to the user.
        value: Value sent back (or URL opened) when clicked.
        extras: Every other property of the wire object.
    """

    type: str
    title: str = ""
    value: Any = None
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extras)
        data["type"] = self.type
        data["title"] = self.title
        if self.value is not None:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CardAction":
        extras = {k: v for k, v in data.items() if k not in ("type", "title", "value")}
        return cls(
            type=str(data.get("type", "imBack")),
            title=str(data.get("title", "")),
            value=data.get("value"),
            extras=extras,
        )


@dataclass(frozen=True)
class Attachment:
    """An attachment of an Activity, usually a card."""

    content_type: str
    content: dict[str, Any] = field(default_factory=dict)
    content_url: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"contentType": self.content_type}
        if self.content:
            data["content"] = self.content
        if self.content_url:
            data["contentUrl"] = self.content_url
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attachment":
        content = data.get("content")
        return cls(
            content_type=str(data.get("contentType", "")),
            content=dict(content) if isinstance(content, dict) else {},
            content_url=data.get("contentUrl"),
            name=data.get("name"),
        )


@dataclass(frozen=True)
class Activity:
    """Generic inbound/outbound conversational message.

    Attributes:
        type: Activity type, ``message`` for user-visible messages.
        text: Plain text body.
        attachments: Cards or media attached to the message.
        attachment_layout: ``list`` or ``carousel``.
        suggested_actions: Quick replies offered to the user.
        conversation_id: Conversation the activity belongs to.
        sender_id: Customer identifier (``channelData.id``).
        channel_id: Identifier of the channel the activity travels on.
        id: Optional activity identifier.
        from_id: Optional raw sender account identifier.
        reply_to_id: Optional identifier of the activity this one answers.
    """

    type: str = MESSAGE_ACTIVITY
    text: str | None = None
    attachments: tuple[Attachment, ...] = ()
    attachment_layout: AttachmentLayout = AttachmentLayout.LIST
    suggested_actions: tuple[CardAction, ...] = ()
    conversation_id: str = ""
    sender_id: str = ""
    channel_id: str = ""
    id: str | None = None
    from_id: str | None = None
    reply_to_id: str | None = None

    @property
    def is_message(self) -> bool:
        return self.type == MESSAGE_ACTIVITY

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the Bot Framework Activity JSON shape."""
        data: dict[str, Any] = {
            "type": self.type,
            "conversation": {"id": self.conversation_id},
            "channelData": {"id": self.sender_id},
            "channelId": self.channel_id,
        }
        if self.text is not None:
            data["text"] = self.text
        if self.attachments:
            data["attachments"] = [a.to_dict() for a in self.attachments]
            data["attachmentLayout"] = self.attachment_layout.value
        if self.suggested_actions:
            data["suggestedActions"] = {
                "actions": [a.to_dict() for a in self.suggested_actions]
            }
        if self.id:
            data["id"] = self.id
        if self.from_id:
            data["from"] = {"id": self.from_id}
        if self.reply_to_id:
            data["replyToId"] = self.reply_to_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Activity":
        """Parse a Bot Framework Activity JSON payload.

        Raises:
            ValueError: If the payload is not an object or its fields have the
                wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError("Activity payload must be a JSON object")

        conversation = data.get("conversation") or {}
        channel_data = data.get("channelData") or {}
        sender = data.get("from") or {}
        if not all(isinstance(part, dict) for part in (conversation, channel_data, sender)):
            raise ValueError("Activity 'conversation', 'channelData' and 'from' must be objects")

        raw_attachments = data.get("attachments") or []
        if not isinstance(raw_attachments, list):
            raise ValueError("Activity 'attachments' must be a list")

        suggested = data.get("suggestedActions") or {}
        if not isinstance(suggested, dict):
            raise ValueError("Activity 'suggestedActions' must be an object")
        raw_actions = suggested.get("actions", [])
        if not isinstance(raw_actions, list):
            raise ValueError("Activity 'suggestedActions.actions' must be a list")

        layout_raw = data.get("attachmentLayout") or AttachmentLayout.LIST.value
        try:
            layout = AttachmentLayout(layout_raw)
        except ValueError as exc:
            raise ValueError(f"Unknown attachmentLayout '{layout_raw}'") from exc

        text = data.get("text")
        return cls(
            type=str(data.get("type") or MESSAGE_ACTIVITY),
            text=str(text) if text is not None else None,
            attachments=tuple(
                Attachment.from_dict(a) for a in raw_attachments if isinstance(a, dict)
            ),
            attachment_layout=layout,
            suggested_actions=tuple(
                CardAction.from_dict(a) for a in raw_actions if isinstance(a, dict)
            ),
            conversation_id=_identifier(conversation.get("id"), "conversation.id"),
            sender_id=(
                _identifier(channel_data.get("id"), "channelData.id")
                or _identifier(sender.get("id"), "from.id")
            ),
            channel_id=_identifier(data.get("channelId"), "channelId"),
            id=data.get("id"),
            from_id=sender.get("id"),
            reply_to_id=data.get("replyToId"),
        )


def _identifier(value: Any, name: str) -> str:
    """Return an identifier field as text; null and absent become ``""``."""
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError(f"Activity '{name}' must be a string")
    return str(value)
