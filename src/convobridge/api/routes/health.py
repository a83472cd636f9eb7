"""Health endpoint reporting enabled protocols and the push connection state."""

from fastapi import APIRouter, Depends

from convobridge import __version__
from convobridge.api.dependencies import get_bridge
from convobridge.api.schemas.messages import HealthResponse
from convobridge.application.bridge_service import BridgeService

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(bridge: BridgeService = Depends(get_bridge)) -> HealthResponse:
    """Liveness probe with the push connection state."""
    push_state = bridge.push_state
    return HealthResponse(
        status="healthy",
        version=__version__,
        protocols=[protocol.value for protocol in bridge.protocols],
        push_state=push_state.value if push_state is not None else None,
    )
