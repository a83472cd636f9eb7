"""Request/response turn endpoint."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, status

from convobridge.api.dependencies import get_bridge
from convobridge.api.errors import http_exception
from convobridge.api.schemas.messages import ActivitiesResponse
from convobridge.application.bridge_service import BridgeService
from convobridge.core.domain.errors import BridgeError, UnsupportedOperationError

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/api/messages", response_model=ActivitiesResponse)
async def post_activity(
    payload: Any = Body(...),
    bridge: BridgeService = Depends(get_bridge),
) -> ActivitiesResponse:
    """Run one turn for an inbound Activity and return the replies."""
    try:
        replies = await bridge.handle_turn_request(payload)
    except ValueError as exc:
        logger.warning("api.invalid_activity", error=str(exc))
        raise http_exception(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="invalid_activity",
            message=str(exc),
        ) from exc
    except UnsupportedOperationError as exc:
        raise http_exception(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        ) from exc
    except BridgeError as exc:
        raise http_exception(
            status_code=status.HTTP_404_NOT_FOUND,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        ) from exc
    return ActivitiesResponse(activities=replies)
