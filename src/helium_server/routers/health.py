"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from helium_server.models.health import HealthResponse
from helium_server.ollama import OllamaClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns the current health status and version of helium-server, the
    number of in-flight inference runs and, once the lifespan has started,
    connectivity to the Ollama server.
    """
    ollama_connected = None
    ollama_host = None
    active_runs = 0

    if hasattr(request.app.state, "ollama_client"):
        ollama_client: OllamaClient = request.app.state.ollama_client
        ollama_host = ollama_client.host

        try:
            ollama_connected = await ollama_client.check_connection()
            logger.debug(f"Ollama connectivity check: {ollama_connected}")
        except Exception as e:
            logger.warning(f"Ollama connectivity check failed: {e}")
            ollama_connected = False

    if hasattr(request.app.state, "active_runs"):
        active_runs = len(request.app.state.active_runs.active_sessions())

    return HealthResponse(
        status="ok",
        version="0.1.0",
        ollama_connected=ollama_connected,
        ollama_host=ollama_host,
        active_runs=active_runs,
    )
