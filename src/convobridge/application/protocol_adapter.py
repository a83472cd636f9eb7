"""Protocol adapters: one per protocol, each with an explicit capability set.

``TurnAdapter`` serves the request/response protocol, where an inbound
HTTP request carries one Activity and replies travel back in the HTTP
response. ``PushAdapter`` serves the push protocol, where replies are
translated into push events and published over the agent connection.

Operations an adapter does not declare raise ``UnsupportedOperationError``
immediately instead of silently doing nothing.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from convobridge.application.agent_connection import AgentConnection
from convobridge.application.content_translator import (
    activity_to_push_event,
    content_event_to_activity,
)
from convobridge.application.turn_context import TurnContext
from convobridge.core.domain.activity import Activity
from convobridge.core.domain.enums import Capability, ChannelProtocol
from convobridge.core.domain.errors import TranslationError, UnsupportedOperationError
from convobridge.core.domain.push_events import InboundContentEvent

logger = structlog.get_logger(__name__)

TurnLogic = Callable[[TurnContext], Awaitable[None]]


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of sending one activity.

    Attributes:
        success: Whether the activity was delivered (or queued as HTTP reply).
        protocol: Protocol the activity was sent over.
        conversation_id: Target conversation.
        payload: What was produced: the push event or the reply Activity JSON.
        error: Error message if delivery failed.
    """

    success: bool
    protocol: ChannelProtocol
    conversation_id: str
    payload: dict[str, Any] | None = None
    error: str | None = None


class ProtocolAdapter:
    """Base adapter. Subclasses declare ``capabilities`` and implement them."""

    protocol: ChannelProtocol
    capabilities: frozenset[Capability] = frozenset()

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        """Raise ``UnsupportedOperationError`` unless ``capability`` is offered."""
        if capability not in self.capabilities:
            raise UnsupportedOperationError(capability.value, adapter=type(self).__name__)

    def receive(self, raw_event: Any) -> Activity:
        raise UnsupportedOperationError(Capability.RECEIVE.value, adapter=type(self).__name__)

    async def send(self, activity: Activity) -> DeliveryResult:
        raise UnsupportedOperationError(Capability.SEND.value, adapter=type(self).__name__)

    async def process_request(self, payload: dict[str, Any], logic: TurnLogic) -> list[dict[str, Any]]:
        raise UnsupportedOperationError(
            Capability.PROCESS_REQUEST.value, adapter=type(self).__name__
        )

    async def update_activity(self, context: TurnContext, activity: Activity) -> None:
        raise UnsupportedOperationError(
            Capability.UPDATE_ACTIVITY.value, adapter=type(self).__name__
        )

    async def delete_activity(self, context: TurnContext, activity_id: str) -> None:
        raise UnsupportedOperationError(
            Capability.DELETE_ACTIVITY.value, adapter=type(self).__name__
        )

    async def continue_conversation(self, conversation_id: str, logic: TurnLogic) -> None:
        raise UnsupportedOperationError(
            Capability.CONTINUE_CONVERSATION.value, adapter=type(self).__name__
        )


class TurnAdapter(ProtocolAdapter):
    """Adapter for the synchronous request/response protocol.

    Activities already have the generic shape, so no translation happens.
    """

    protocol = ChannelProtocol.TURN
    capabilities = frozenset({Capability.RECEIVE, Capability.SEND, Capability.PROCESS_REQUEST})

    def receive(self, raw_event: Any) -> Activity:
        """Parse an inbound Activity JSON payload.

        Raises:
            ValueError: If the payload is malformed.
        """
        activity = Activity.from_dict(raw_event)
        if not activity.conversation_id:
            raise ValueError("Activity payload missing 'conversation.id'")
        return activity

    async def send(self, activity: Activity) -> DeliveryResult:
        return DeliveryResult(
            success=True,
            protocol=self.protocol,
            conversation_id=activity.conversation_id,
            payload=activity.to_dict(),
        )

    async def process_request(self, payload: dict[str, Any], logic: TurnLogic) -> list[dict[str, Any]]:
        """Run one turn for an HTTP request and return the reply payloads."""
        context = TurnContext(self, self.receive(payload))
        await logic(context)
        return [d.payload for d in context.deliveries if d.success and d.payload is not None]


class PushAdapter(ProtocolAdapter):
    """Adapter for the asynchronous push protocol.

    Inbound events must come out of the conversation registry; outbound
    activities are translated and published, failing fast when the
    connection is not live.
    """

    protocol = ChannelProtocol.PUSH
    capabilities = frozenset({Capability.RECEIVE, Capability.SEND, Capability.TRANSFER})

    def __init__(self, connection: AgentConnection) -> None:
        self._connection = connection
        self._transport = connection.transport
        self._logger = logger.bind(component="push_adapter")

    @property
    def connection(self) -> AgentConnection:
        return self._connection

    def receive(self, raw_event: Any) -> Activity:
        """Translate a reconciled inbound content event.

        Raises:
            TranslationError: If the event did not pass through the registry.
        """
        if not isinstance(raw_event, InboundContentEvent):
            raise TranslationError(
                "Push events must be reconciled by the conversation registry first",
                details={"event_type": type(raw_event).__name__},
            )
        return content_event_to_activity(raw_event)

    async def send(self, activity: Activity) -> DeliveryResult:
        conversation_id = activity.conversation_id
        if not self._connection.is_connected:
            self._logger.warning(
                "push_adapter.send_while_disconnected",
                conversation_id=conversation_id,
                state=self._connection.state.value,
            )
            return self._failure(conversation_id, "No live push connection")

        try:
            event = activity_to_push_event(activity)
        except TranslationError as exc:
            self._logger.warning(
                "push_adapter.translation_failed",
                conversation_id=conversation_id,
                error=exc.message,
            )
            return self._failure(conversation_id, exc.message)

        try:
            await self._transport.publish_event(conversation_id, event)
        except Exception as exc:
            self._logger.error(
                "push_adapter.publish_failed",
                conversation_id=conversation_id,
                event_type=event.get("type"),
                error=str(exc),
            )
            return self._failure(conversation_id, str(exc), payload=event)

        return DeliveryResult(
            success=True,
            protocol=self.protocol,
            conversation_id=conversation_id,
            payload=event,
        )

    async def transfer_conversation(self, conversation_id: str, skill_id: str) -> bool:
        """Hand a conversation over to another skill.

        Removes this agent as assigned agent and sets the target skill.
        Returns False (after logging) when the backend rejects the change.
        """
        fields = [
            {"field": "ParticipantsChange", "type": "REMOVE", "role": "ASSIGNED_AGENT"},
            {"field": "Skill", "type": "UPDATE", "skill": skill_id},
        ]
        try:
            await self._transport.update_conversation_field(conversation_id, fields)
        except Exception as exc:
            self._logger.error(
                "push_adapter.transfer_failed",
                conversation_id=conversation_id,
                skill_id=skill_id,
                error=str(exc),
            )
            return False
        self._logger.info(
            "push_adapter.transferred",
            conversation_id=conversation_id,
            skill_id=skill_id,
        )
        return True

    def _failure(
        self,
        conversation_id: str,
        error: str,
        *,
        payload: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        return DeliveryResult(
            success=False,
            protocol=self.protocol,
            conversation_id=conversation_id,
            payload=payload,
            error=error,
        )
