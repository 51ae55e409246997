"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from helium_server.models.health import HealthResponse
from helium_server.models.inference import (
    CancelResponse,
    InferenceRequestBody,
    InferenceResponseBody,
    MessageSchema,
    ModelConfigSchema,
)
from helium_server.models.providers import (
    ModelListResponse,
    ModelSummary,
    ProviderListResponse,
)
from helium_server.models.tools import ToolInfo, ToolListResponse

__all__ = [
    "CancelResponse",
    "HealthResponse",
    "InferenceRequestBody",
    "InferenceResponseBody",
    "MessageSchema",
    "ModelConfigSchema",
    "ModelListResponse",
    "ModelSummary",
    "ProviderListResponse",
    "ToolInfo",
    "ToolListResponse",
]
