"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that hand the objects
created in the application lifespan (and stored on app.state) to routers.
"""

from functools import lru_cache
from typing import Any

from fastapi import HTTPException, Request

from helium_server.config import HeliumServerSettings
from helium_server.errors import HeliumError
from helium_server.providers import ModelCache, ProviderRegistry
from helium_server.services.orchestrator import ToolCallingOrchestrator
from helium_server.services.runs import ActiveRunRegistry
from helium_server.tools import ToolExecutionService


@lru_cache
def get_settings() -> HeliumServerSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the HELIUM_ prefix.

    Returns:
        HeliumServerSettings: The application configuration settings.
    """
    return HeliumServerSettings()


def _from_state(request: Request, attribute: str, label: str) -> Any:
    if not hasattr(request.app.state, attribute):
        raise HTTPException(
            status_code=503,
            detail={
                "error": {
                    "code": "service_unavailable",
                    "message": f"{label} not initialized",
                    "details": {},
                }
            },
        )
    return getattr(request.app.state, attribute)


def get_app_settings(request: Request) -> HeliumServerSettings:
    """Get the settings the running app was created with.

    Routers use these rather than get_settings() so tests can inject their
    own isolated settings.
    """
    return request.app.state.settings


def get_provider_registry(request: Request) -> ProviderRegistry:
    return _from_state(request, "providers", "Provider registry")


def get_model_cache(request: Request) -> ModelCache:
    return _from_state(request, "model_cache", "Model cache")


def get_tool_service(request: Request) -> ToolExecutionService:
    return _from_state(request, "tool_service", "Tool service")


def get_orchestrator(request: Request) -> ToolCallingOrchestrator:
    return _from_state(request, "orchestrator", "Orchestrator")


def get_active_runs(request: Request) -> ActiveRunRegistry:
    return _from_state(request, "active_runs", "Run registry")


def http_error(error: HeliumError) -> HTTPException:
    """Convert a taxonomy error into the HTTPException routers raise."""
    return HTTPException(status_code=error.status_code, detail=error.to_detail())
