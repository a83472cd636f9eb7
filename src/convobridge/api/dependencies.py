"""FastAPI dependency providers.

The bridge is built once per application and kept on ``app.state``.
"""

from __future__ import annotations

from fastapi import Request

from convobridge.api.errors import http_exception
from convobridge.application.bridge_service import BridgeService


def get_bridge(request: Request) -> BridgeService:
    """Provide the application's ``BridgeService``."""
    bridge = getattr(request.app.state, "bridge", None)
    if bridge is None:
        raise http_exception(
            status_code=503,
            code="bridge_unavailable",
            message="Bridge service is not initialized",
        )
    return bridge
