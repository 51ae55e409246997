"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of helium-server.
        ollama_connected: Whether the Ollama daemon answered.
        ollama_host: The Ollama host URL.
        active_runs: Number of inference runs currently in flight.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of helium-server")
    ollama_connected: bool | None = Field(
        default=None,
        description="Whether Ollama is connected",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Ollama host URL",
    )
    active_runs: int = Field(default=0, description="Inference runs in flight")
