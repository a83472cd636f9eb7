"""Request and response models of the bridge HTTP API."""

from convobridge.api.schemas.errors import ErrorResponse
from convobridge.api.schemas.messages import ActivitiesResponse, HealthResponse

__all__ = ["ActivitiesResponse", "ErrorResponse", "HealthResponse"]
