"""Protocols for conversational logic and the middleware around it."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from convobridge.application.turn_context import TurnContext

NextHandler = Callable[[], Awaitable[None]]


class TurnHandler(Protocol):
    """Conversational logic invoked once per inbound activity."""

    async def on_turn(self, context: "TurnContext") -> None:
        """Handle one turn, replying through ``context.send_activity``."""
        ...


class MiddlewareProtocol(Protocol):
    """A processing step run around every turn.

    Implementations call ``next_handler()`` to continue the pipeline, may
    run code before and after it, or skip it to short-circuit the turn.
    """

    async def on_turn(self, context: "TurnContext", next_handler: NextHandler) -> None:
        ...
