"""Bridge between a request/response turn protocol and a push-based agent messaging protocol."""

__version__ = "0.1.0"
