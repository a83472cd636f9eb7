"""Demo conversational logic served over both protocols."""

from __future__ import annotations

import structlog

from convobridge.application.turn_context import TurnContext
from convobridge.core.domain.activity import (
    HERO_CARD_CONTENT_TYPE,
    Activity,
    Attachment,
)
from convobridge.core.domain.enums import ChannelProtocol

logger = structlog.get_logger(__name__)

CARD_KEYWORD = "card"

_VIA = {
    ChannelProtocol.TURN: "via Bot Framework connector",
    ChannelProtocol.PUSH: "via LivePerson",
}


def demo_hero_card() -> Attachment:
    """Hero card with three quick choices."""
    buttons = [
        {"type": "imBack", "title": f"{n}. {label}", "value": str(n), "id": f"button_id_{n}"}
        for n, label in enumerate(
            ("Inline Attachment", "Internet Attachment", "Uploaded Attachment"), start=1
        )
    ]
    return Attachment(
        content_type=HERO_CARD_CONTENT_TYPE,
        content={
            "title": "Text",
            "text": "You can upload an image or select one of the following choices.",
            "buttons": buttons,
        },
    )


class EchoBot:
    """Echoes messages with a per-conversation turn counter.

    Typing ``card`` returns a hero card instead. Counters live in memory
    and are dropped by ``reset`` after a failed turn.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def count(self, conversation_id: str) -> int:
        return self._counts.get(conversation_id, 0)

    async def on_turn(self, context: TurnContext) -> None:
        activity = context.activity
        via = _VIA[context.protocol]

        if not activity.is_message:
            await context.send_activity(f"[{activity.type} event detected {via}]")
            return

        count = self._counts.get(activity.conversation_id, 0) + 1
        self._counts[activity.conversation_id] = count

        if (activity.text or "").strip() == CARD_KEYWORD:
            await context.send_activity(Activity(attachments=(demo_hero_card(),)))
            return

        await context.send_activity(f'{count}: You said {via}: "{activity.text or ""}"')

    async def reset(self, context: TurnContext, error: Exception) -> None:
        """Forget the counter of the conversation whose turn failed."""
        self._counts.pop(context.activity.conversation_id, None)
        logger.info(
            "echo_bot.state_cleared",
            conversation_id=context.activity.conversation_id,
            error_type=type(error).__name__,
        )
