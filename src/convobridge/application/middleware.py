"""Ordered processing steps run around every turn."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog

from convobridge.application.turn_context import TurnContext
from convobridge.core.interfaces.turn import MiddlewareProtocol

logger = structlog.get_logger(__name__)

TurnLogic = Callable[[TurnContext], Awaitable[None]]


class MiddlewarePipeline:
    """Runs middleware in registration order, then the turn logic.

    Each middleware receives a ``next_handler`` continuation; not calling
    it short-circuits everything after it, including the logic.
    """

    def __init__(self, middleware: list[MiddlewareProtocol] | None = None) -> None:
        self._middleware: list[MiddlewareProtocol] = list(middleware or [])

    def use(self, *middleware: MiddlewareProtocol) -> "MiddlewarePipeline":
        self._middleware.extend(middleware)
        return self

    def __len__(self) -> int:
        return len(self._middleware)

    async def run(self, context: TurnContext, logic: TurnLogic) -> None:
        await self._run_from(0, context, logic)

    async def _run_from(self, index: int, context: TurnContext, logic: TurnLogic) -> None:
        if index >= len(self._middleware):
            await logic(context)
            return

        async def next_handler() -> None:
            await self._run_from(index + 1, context, logic)

        await self._middleware[index].on_turn(context, next_handler)


class TurnLoggingMiddleware:
    """Logs which protocol each turn arrived through."""

    async def on_turn(self, context: TurnContext, next_handler: Callable[[], Awaitable[None]]) -> None:
        logger.info(
            "middleware.turn_received",
            protocol=context.protocol.value,
            adapter=type(context.adapter).__name__,
            conversation_id=context.activity.conversation_id,
            activity_type=context.activity.type,
        )
        await next_handler()
        logger.debug(
            "middleware.turn_completed",
            protocol=context.protocol.value,
            replies=len(context.deliveries),
        )
