"""Body returned by the bridge API for rejected requests."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body; ``detail`` mirrors ``message`` for clients expecting FastAPI's default shape."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    detail: str | None = None
