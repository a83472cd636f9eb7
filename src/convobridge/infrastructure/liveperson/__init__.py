"""LivePerson messaging transport."""

from convobridge.infrastructure.liveperson.websocket_transport import LivePersonTransport

__all__ = ["LivePersonTransport"]
