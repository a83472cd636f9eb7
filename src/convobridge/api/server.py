import logging
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse

from convobridge import __version__
from convobridge.api.errors import ERROR_HEADER
from convobridge.api.routes import health, messages
from convobridge.application.bridge_service import BridgeService
from convobridge.application.config_loader import load_config
from convobridge.application.factory import build_bridge_service
from convobridge.core.domain.config_schema import BridgeConfig

logger = structlog.get_logger()

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(level: str = "INFO") -> int:
    """Configure stdlib logging and structlog with the same level."""
    log_level = _LOG_LEVELS.get(level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(message)s")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )
    return log_level


async def bridge_http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Return standardized error responses for bridge exceptions."""
    if exc.headers and exc.headers.get(ERROR_HEADER) == "1" and isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return await http_exception_handler(request, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the push connection with the app and close it on shutdown."""
    bridge: BridgeService = app.state.bridge
    await logger.ainfo(
        "fastapi.startup",
        message="Bridge API starting...",
        protocols=[protocol.value for protocol in bridge.protocols],
    )
    try:
        await bridge.start()
    except Exception as exc:
        # The turn endpoint keeps serving without the push side.
        await logger.aerror("fastapi.push_start_failed", error=str(exc))
    yield
    await bridge.stop()
    await logger.ainfo("fastapi.shutdown", message="Bridge API shutting down...")


def create_app(
    bridge: Optional[BridgeService] = None,
    config: Optional[BridgeConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        bridge: Prebuilt bridge (tests inject one with fake adapters).
        config: Configuration used to build the bridge when none is given;
            loaded from the default file and environment when omitted.
    """
    if bridge is None:
        config = config or load_config()
        bridge = build_bridge_service(config)

    app = FastAPI(
        title="Conversation Bridge API",
        description="Bridges request/response bot turns and push agent messaging",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.bridge = bridge
    app.add_exception_handler(HTTPException, bridge_http_exception_handler)

    app.include_router(messages.router, tags=["messages"])
    app.include_router(health.router, tags=["health"])
    return app
