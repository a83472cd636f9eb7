"""Mapping of bridge failures onto HTTP errors.

Rejected activities and disabled protocols are answered with an
``ErrorResponse`` body; the ``X-Bridge-Error`` header tells the exception
handler in ``api.server`` to return that body unchanged.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException

from convobridge.api.schemas.errors import ErrorResponse

ERROR_HEADER = "X-Bridge-Error"


def http_exception(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> HTTPException:
    """Build an HTTPException carrying an ErrorResponse body.

    Args:
        status_code: HTTP status code.
        code: Machine-readable error code (e.g. ``"invalid_activity"``).
        message: Human-readable error description.
        details: Optional structured error details.
    """
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(
            code=code, message=message, details=details, detail=message
        ).model_dump(exclude_none=True),
        headers={ERROR_HEADER: "1"},
    )
