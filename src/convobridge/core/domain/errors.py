"""Domain-specific exception types for the bridge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class BridgeError(Exception):
    """Base exception for bridge domain errors."""

    message: str
    code: str = "bridge_error"
    details: Dict[str, Any] | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.details is None:
            self.details = {}


class TransportError(BridgeError):
    """Error raised when the push connection cannot carry a request."""

    def __init__(
        self,
        message: str,
        *,
        request_type: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if request_type:
            details.setdefault("request_type", request_type)
        self.request_type = request_type
        super().__init__(message=message, code="transport_error", details=details)


class TranslationError(BridgeError):
    """Error raised when an activity or event cannot be translated."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="translation_error", details=details)


class LookupFailedError(BridgeError):
    """Error raised when a profile lookup cannot be answered."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="lookup_failed", details=details)


class ConnectionStateError(BridgeError):
    """Error raised for a lifecycle call the connection state does not allow."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="connection_state", details=details)


class UnsupportedOperationError(BridgeError):
    """Error raised when an adapter is asked for an operation it does not offer."""

    def __init__(
        self,
        operation: str,
        *,
        adapter: str,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        details.setdefault("operation", operation)
        details.setdefault("adapter", adapter)
        self.operation = operation
        self.adapter = adapter
        super().__init__(
            message=f"{operation} is not implemented for {adapter}",
            code="unsupported_operation",
            details=details,
        )


class ConfigError(BridgeError):
    """Error raised for configuration failures."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="config_error", details=details)
