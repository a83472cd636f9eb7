"""Translates content between generic Activities and push-protocol events.

Translation map

| Push protocol  | Activity                   |
|----------------|----------------------------|
| customerId     | Activity.channelData.id    |
| dialogId       | Activity.conversation.id   |
| message        | Activity.text              |

Outbound, text becomes a plain-text content event and attachments become
a structured rich content tree (a card, or a carousel of cards). Every
function here is pure: no I/O, no shared state.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any

from convobridge.application.text_templates import substitute_tokens
from convobridge.core.domain.activity import (
    ADAPTIVE_CARD_CONTENT_TYPE,
    HERO_CARD_CONTENT_TYPE,
    MESSAGE_ACTIVITY,
    THUMBNAIL_CARD_CONTENT_TYPE,
    Activity,
    Attachment,
    CardAction,
)
from convobridge.core.domain.enums import AttachmentLayout, MessagingEventType, Orientation
from convobridge.core.domain.errors import TranslationError
from convobridge.core.domain.push_events import InboundContentEvent, content_event
from convobridge.core.domain.rich_content import (
    ButtonElement,
    ContainerElement,
    ImageElement,
    LinkAction,
    PostBackAction,
    QuickReplies,
    QuickReply,
    RichContent,
    RichElement,
    TextElement,
    TextStyle,
)

PUSH_CHANNEL_ID = "liveperson"

_FACT_LINK = re.compile(r"^\[(?P<title>[^\]]+)\]\((?P<url>[^)\s]+)\)$")
_OPEN_URL_TYPES = ("Action.OpenUrl", "openUrl")
_BUTTON_CORE_PROPERTIES = ("type", "title", "url")


# ------------------------------------------------------------------
# Push protocol -> Activity
# ------------------------------------------------------------------


def content_event_to_activity(event: InboundContentEvent) -> Activity:
    """Translate a reconciled content event into an Activity."""
    return Activity(
        type=MESSAGE_ACTIVITY,
        text=event.message,
        conversation_id=event.dialog_id,
        sender_id=event.customer_id,
        channel_id=PUSH_CHANNEL_ID,
        id=f"{event.dialog_id}:{event.sequence}",
        from_id=event.originator_id,
    )


# ------------------------------------------------------------------
# Activity -> push protocol
# ------------------------------------------------------------------


def activity_to_push_event(activity: Activity) -> dict[str, Any]:
    """Translate an outbound Activity into a push-protocol event.

    Only the first attachment is rendered unless the layout is ``carousel``.

    Raises:
        TranslationError: If the activity has neither text nor attachments.
    """
    if activity.text is not None:
        event = content_event(activity.text)
        if activity.suggested_actions:
            event["quickReplies"] = suggested_actions_to_quick_replies(
                activity.suggested_actions
            ).to_dict()
        return event

    if activity.attachments:
        if activity.attachment_layout is AttachmentLayout.CAROUSEL:
            content = RichContent.carousel(
                [attachment_to_card(attachment) for attachment in activity.attachments]
            )
        else:
            content = attachment_to_card(activity.attachments[0])

        if activity.suggested_actions:
            content = RichContent(
                kind=content.kind,
                elements=content.elements,
                quick_replies=suggested_actions_to_quick_replies(activity.suggested_actions),
                padding=content.padding,
            )
        return {"type": MessagingEventType.RICH_CONTENT.value, "content": content.to_dict()}

    raise TranslationError(
        "Activity has neither text nor attachments",
        details={"activity_type": activity.type, "conversation_id": activity.conversation_id},
    )


def suggested_actions_to_quick_replies(actions: tuple[CardAction, ...] | list[CardAction]) -> QuickReplies:
    replies = []
    for action in actions:
        raw = action.to_dict()
        replies.append(
            QuickReply(
                title=action.title,
                tooltip=action.title,
                post_back_value=_post_back_text(action.value),
                metadata=_button_metadata(raw),
            )
        )
    return QuickReplies(replies=tuple(replies))


def attachment_to_card(attachment: Attachment) -> RichContent:
    """Build one card from an attachment, rendering whatever fields exist."""
    content = attachment.content
    if attachment.content_type == ADAPTIVE_CARD_CONTENT_TYPE:
        return adaptive_card_to_card(content)
    if attachment.content_type in (HERO_CARD_CONTENT_TYPE, THUMBNAIL_CARD_CONTENT_TYPE):
        return hero_card_to_card(content)
    if attachment.content_type.startswith("image/") and attachment.content_url:
        return RichContent.card([ImageElement(attachment.content_url, attachment.name or "")])
    return hero_card_to_card(content)


def hero_card_to_card(content: dict[str, Any]) -> RichContent:
    """Translate a hero or thumbnail card. Absent fields are simply omitted."""
    elements: list[RichElement] = []
    for key in ("title", "subtitle", "text"):
        value = content.get(key)
        if value:
            text = substitute_tokens(str(value))
            elements.append(TextElement(text, text))

    for image in content.get("images") or []:
        if isinstance(image, dict) and image.get("url"):
            elements.append(ImageElement(str(image["url"]), str(image.get("alt", ""))))

    for button in content.get("buttons") or []:
        if isinstance(button, dict):
            elements.append(action_to_button(button))

    return RichContent.card(elements)


def adaptive_card_to_card(card: dict[str, Any]) -> RichContent:
    """Translate an adaptive card tree, preserving nesting and reading order.

    Card-level actions are gathered into one trailing horizontal container.
    """
    elements = _convert_items(card.get("body") or [])
    actions = [a for a in card.get("actions") or [] if isinstance(a, dict)]
    if actions:
        elements.append(
            ContainerElement(
                Orientation.HORIZONTAL,
                tuple(action_to_button(action) for action in actions),
            )
        )
    return RichContent.card(elements)


def action_to_button(action: dict[str, Any]) -> ButtonElement:
    """Translate a card action (adaptive or hero) into a button."""
    title = str(action.get("title", ""))
    if action.get("type") in _OPEN_URL_TYPES:
        uri = action.get("url") or action.get("value") or ""
        button_action: LinkAction | PostBackAction = LinkAction(name=title, uri=str(uri))
    else:
        button_action = PostBackAction(text=_post_back_text(action.get("value")))
    return ButtonElement(
        tooltip=title,
        title=title,
        actions=(button_action,),
        metadata=_button_metadata(action),
    )


# ------------------------------------------------------------------
# Adaptive card element conversion
# ------------------------------------------------------------------


def _convert_items(items: list[Any]) -> list[RichElement]:
    elements: list[RichElement] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        converter = _CONVERTERS.get(str(item.get("type", "")))
        if converter is not None:
            elements.extend(converter(item))
    return elements


def _container(item: dict[str, Any]) -> list[RichElement]:
    return _convert_items(item.get("items") or [])


def _column(item: dict[str, Any]) -> list[RichElement]:
    return [ContainerElement(Orientation.VERTICAL, tuple(_convert_items(item.get("items") or [])))]


def _column_set(item: dict[str, Any]) -> list[RichElement]:
    columns = []
    for column in item.get("columns") or []:
        if isinstance(column, dict):
            columns.extend(_column(column))
    return [ContainerElement(Orientation.HORIZONTAL, tuple(columns))]


def _fact_set(item: dict[str, Any]) -> list[RichElement]:
    rows = []
    for fact in item.get("facts") or []:
        if not isinstance(fact, dict):
            continue
        label = substitute_tokens(str(fact.get("title", "")))
        value = substitute_tokens(str(fact.get("value", "")))
        rows.append(
            ContainerElement(
                Orientation.HORIZONTAL,
                (TextElement(label, label, TextStyle(bold=True)), _fact_value(value)),
            )
        )
    return [ContainerElement(Orientation.VERTICAL, tuple(rows))]


def _fact_value(value: str) -> RichElement:
    link = _FACT_LINK.match(value)
    if link is None:
        return TextElement(value, value)
    title = link.group("title")
    return ButtonElement(
        tooltip=title,
        title=title,
        actions=(LinkAction(name=title, uri=link.group("url")),),
    )


def _image_set(item: dict[str, Any]) -> list[RichElement]:
    images = []
    for image in item.get("images") or []:
        if isinstance(image, dict):
            images.extend(_image(image))
    return [ContainerElement(Orientation.HORIZONTAL, tuple(images))]


def _text_block(item: dict[str, Any]) -> list[RichElement]:
    text = substitute_tokens(str(item.get("text", "")))
    weight = item.get("weight")
    size = item.get("size")
    color = item.get("color")
    style = TextStyle(
        bold=True if isinstance(weight, str) and weight.lower() == "bolder" else None,
        size=size.lower() if isinstance(size, str) else None,
        color=color if isinstance(color, str) else None,
    )
    return [TextElement(text, text, style)]


def _image(item: dict[str, Any]) -> list[RichElement]:
    url = item.get("url")
    if not url:
        return []
    return [ImageElement(str(url), str(item.get("altText", "")))]


def _media(item: dict[str, Any]) -> list[RichElement]:
    poster = item.get("poster")
    if not poster:
        return []
    return [ImageElement(str(poster), str(item.get("altText", "")))]


def _action_set(item: dict[str, Any]) -> list[RichElement]:
    buttons = tuple(
        action_to_button(action) for action in item.get("actions") or [] if isinstance(action, dict)
    )
    return [ContainerElement(Orientation.HORIZONTAL, buttons)]


_CONVERTERS: dict[str, Callable[[dict[str, Any]], list[RichElement]]] = {
    "Container": _container,
    "ColumnSet": _column_set,
    "Column": _column,
    "FactSet": _fact_set,
    "ImageSet": _image_set,
    "TextBlock": _text_block,
    "Image": _image,
    "Media": _media,
    "ActionSet": _action_set,
}


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _button_metadata(action: dict[str, Any]) -> dict[str, Any] | None:
    metadata = {k: v for k, v in action.items() if k not in _BUTTON_CORE_PROPERTIES}
    return metadata or None


def _post_back_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)
