"""Protocol definition for the persistent push messaging connection.

The agent connection state machine and the conversation registry only
talk to the messaging backend through this interface, so the WebSocket
implementation can be swapped for a fake in tests.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol

from convobridge.core.domain.push_events import PushNotification


class PushTransportProtocol(Protocol):
    """One agent's connection to the messaging backend.

    Every request method raises ``TransportError`` when the backend
    rejects the request or the connection is gone.
    """

    @property
    def agent_id(self) -> str:
        """Identifier of the logged-in agent (``""`` before login)."""
        ...

    async def connect(self) -> None:
        """Log in and open the connection.

        A ``CONNECTED`` notification is delivered once the socket is open.
        """
        ...

    async def close(self) -> None:
        """Close the connection. Closing twice is a no-op."""
        ...

    def notifications(self) -> AsyncIterator[PushNotification]:
        """Yield notifications in arrival order until the connection closes."""
        ...

    async def publish_event(self, dialog_id: str, event: dict[str, Any]) -> dict[str, Any]:
        """Publish a content, rich-content or accept-status event into a dialog."""
        ...

    async def set_agent_state(self, availability: str) -> None:
        """Set the agent's availability (e.g. ``ONLINE``)."""
        ...

    async def subscribe_ex_conversations(
        self, *, agent_ids: list[str], conversation_states: list[str]
    ) -> None:
        """Subscribe to conversation-change notifications."""
        ...

    async def subscribe_routing_tasks(self) -> None:
        """Subscribe to routing offers (rings)."""
        ...

    async def update_ring_state(self, ring_id: str, ring_state: str) -> None:
        """Accept or reject a routing offer."""
        ...

    async def subscribe_messaging_events(self, dialog_id: str) -> None:
        """Subscribe to message deliveries of one dialog."""
        ...

    async def get_user_profile(self, user_id: str) -> list[dict[str, Any]]:
        """Fetch the profile records of a consumer."""
        ...

    async def get_clock(self) -> dict[str, Any]:
        """Ping the backend; used as the connection heartbeat."""
        ...

    async def update_conversation_field(
        self, conversation_id: str, fields: list[dict[str, Any]]
    ) -> None:
        """Change conversation fields (participants, skill, ...)."""
        ...
