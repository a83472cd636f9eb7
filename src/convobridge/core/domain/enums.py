"""
Core Domain Enums

Status values, wire type names and protocol identifiers used across
the bridge, to eliminate magic strings throughout the codebase.
"""

from enum import Enum


class ChannelProtocol(str, Enum):
    """The two protocols an end user can arrive through."""

    TURN = "turn"
    PUSH = "push"


class ConnectionState(str, Enum):
    """Lifecycle of the single push connection of an agent process."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class NotificationKind(str, Enum):
    """Categories of notifications delivered over the push connection."""

    CONNECTED = "connected"
    CLOSED = "closed"
    ERROR = "error"
    ROUTING = "routing"
    CONVERSATION = "conversation"
    MESSAGING = "messaging"


class ChangeType(str, Enum):
    """Change types carried by conversation and routing notifications."""

    UPSERT = "UPSERT"
    DELETE = "DELETE"


class MessagingEventType(str, Enum):
    """Event types exchanged inside a conversation."""

    CONTENT = "ContentEvent"
    RICH_CONTENT = "RichContentEvent"
    ACCEPT_STATUS = "AcceptStatusEvent"


class RingState(str, Enum):
    """States of a routing offer (ring)."""

    WAITING = "WAITING"
    ACCEPTED = "ACCEPTED"


class AttachmentLayout(str, Enum):
    """How multiple attachments of an Activity are laid out."""

    LIST = "list"
    CAROUSEL = "carousel"


class Orientation(str, Enum):
    """Orientation of a rich content container."""

    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


class RichContentKind(str, Enum):
    """Root kinds of a rich content tree."""

    CARD = "card"
    CAROUSEL = "carousel"


class OrderingPolicy(str, Enum):
    """Order in which buffered inbound messages are handed to the listener."""

    INSERTION = "insertion"
    SEQUENCE = "sequence"


class BridgeMode(str, Enum):
    """Which protocols a bridge process serves."""

    BOTH = "both"
    TURN_ONLY = "turn_only"
    PUSH_ONLY = "push_only"


class Capability(str, Enum):
    """Operations a protocol adapter may support."""

    RECEIVE = "receive"
    SEND = "send"
    PROCESS_REQUEST = "process_request"
    UPDATE_ACTIVITY = "update_activity"
    DELETE_ACTIVITY = "delete_activity"
    CONTINUE_CONVERSATION = "continue_conversation"
    TRANSFER = "transfer"
