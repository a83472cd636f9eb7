"""Response schemas of the messaging and health endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ActivitiesResponse(BaseModel):
    """Replies produced by one request/response turn."""

    activities: list[dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    protocols: list[str] = Field(default_factory=list)
    push_state: str | None = None
