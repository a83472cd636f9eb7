"""Protocol definitions for external collaborators."""

from convobridge.core.interfaces.push_transport import PushTransportProtocol
from convobridge.core.interfaces.turn import MiddlewareProtocol, TurnHandler

__all__ = ["MiddlewareProtocol", "PushTransportProtocol", "TurnHandler"]
