"""Rich content element tree understood by the push protocol's rendering client.

Each element kind is a frozen dataclass; ``to_dict`` produces the exact
structured-content JSON the client expects. Field names and the fixed
constants (``itemsPerRow`` and the carousel ``padding``) must not change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from convobridge.core.domain.enums import Orientation, RichContentKind

QUICK_REPLIES_PER_ROW = 4
CAROUSEL_PADDING = 10


@dataclass(frozen=True)
class TextStyle:
    """Optional styling of a text element."""

    bold: bool | None = None
    size: str | None = None
    color: str | None = None

    def is_empty(self) -> bool:
        return self.bold is None and self.size is None and self.color is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.bold is not None:
            data["bold"] = self.bold
        if self.size is not None:
            data["size"] = self.size
        if self.color is not None:
            data["color"] = self.color
        return data


@dataclass(frozen=True)
class TextElement:
    text: str
    tooltip: str = ""
    style: TextStyle | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "text", "text": self.text, "tooltip": self.tooltip}
        if self.style is not None and not self.style.is_empty():
            data["style"] = self.style.to_dict()
        return data


@dataclass(frozen=True)
class ImageElement:
    """Image element. The URL must be whitelisted on the messaging account."""

    url: str
    tooltip: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"type": "image", "url": self.url, "tooltip": self.tooltip}


@dataclass(frozen=True)
class LinkAction:
    """Button action that opens a URL."""

    name: str
    uri: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "link", "name": self.name, "uri": self.uri}


@dataclass(frozen=True)
class PostBackAction:
    """Button action that sends text back into the conversation."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "publishText", "text": self.text}


ButtonAction = Union[LinkAction, PostBackAction]


def _click(actions: tuple[ButtonAction, ...], metadata: dict[str, Any] | None) -> dict[str, Any]:
    click: dict[str, Any] = {"actions": [action.to_dict() for action in actions]}
    if metadata:
        click["metadata"] = [dict(metadata)]
    return click


@dataclass(frozen=True)
class ButtonElement:
    """Clickable button.

    ``metadata`` carries every free-form property of the source action.
    It is left out of the wire payload when empty.
    """

    tooltip: str
    title: str
    actions: tuple[ButtonAction, ...] = ()
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "button",
            "tooltip": self.tooltip,
            "title": self.title,
            "click": _click(self.actions, self.metadata),
        }


@dataclass(frozen=True)
class ContainerElement:
    orientation: Orientation
    elements: tuple["RichElement", ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.orientation.value,
            "elements": [element.to_dict() for element in self.elements],
        }


RichElement = Union[TextElement, ImageElement, ButtonElement, ContainerElement]


@dataclass(frozen=True)
class QuickReply:
    """A suggested reply rendered below the message."""

    title: str
    tooltip: str
    post_back_value: str
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "button",
            "tooltip": self.tooltip,
            "title": self.title,
            "click": _click((PostBackAction(self.post_back_value),), self.metadata),
        }


@dataclass(frozen=True)
class QuickReplies:
    replies: tuple[QuickReply, ...] = ()
    items_per_row: int = QUICK_REPLIES_PER_ROW

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "quickReplies",
            "itemsPerRow": self.items_per_row,
            "replies": [reply.to_dict() for reply in self.replies],
        }


@dataclass(frozen=True)
class RichContent:
    """Root of a rich content tree: a single card or a carousel of cards.

    Attributes:
        kind: ``card`` or ``carousel``.
        elements: Card body elements, or the cards of a carousel.
        quick_replies: Suggested replies attached to the root.
        padding: Spacing between carousel cards; ``None`` for cards.
    """

    kind: RichContentKind
    elements: tuple[Any, ...] = ()
    quick_replies: QuickReplies | None = None
    padding: int | None = None

    @classmethod
    def card(cls, elements: list[RichElement] | tuple[RichElement, ...]) -> "RichContent":
        return cls(kind=RichContentKind.CARD, elements=tuple(elements))

    @classmethod
    def carousel(cls, cards: list["RichContent"] | tuple["RichContent", ...]) -> "RichContent":
        return cls(
            kind=RichContentKind.CAROUSEL,
            elements=tuple(cards),
            padding=CAROUSEL_PADDING,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any]
        if self.kind is RichContentKind.CAROUSEL:
            data = {"type": "carousel", "padding": self.padding}
        else:
            data = {"type": Orientation.VERTICAL.value}
        data["elements"] = [element.to_dict() for element in self.elements]
        if self.quick_replies is not None:
            data["quickReplies"] = self.quick_replies.to_dict()
        return data

