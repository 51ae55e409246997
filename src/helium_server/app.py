"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from helium_server.config import HeliumServerSettings
from helium_server.ollama import OllamaClient
from helium_server.providers import (
    ModelCache,
    OllamaProvider,
    OpenAICompatibleProvider,
    ProviderRegistry,
    TransformersProvider,
    load_transformers_pipeline,
)
from helium_server.routers import health, inference, providers, tools
from helium_server.services.orchestrator import ToolCallingOrchestrator
from helium_server.services.runs import ActiveRunRegistry
from helium_server.tools import FileSystemToolService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    Expensive objects (backend clients, the in-process model cache, the tool
    service and the orchestrator) are created once at startup and stored in
    app.state for reuse across all requests.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: HeliumServerSettings = app.state.settings
    parameters = settings.default_parameters

    app.state.ollama_client = OllamaClient(host=settings.ollama_host)
    logger.info(f"Initialized Ollama client with host: {settings.ollama_host}")

    ollama_provider = OllamaProvider(app.state.ollama_client, parameters)
    openai_provider = OpenAICompatibleProvider(
        endpoint=settings.openai_compatible_endpoint,
        api_key=settings.openai_api_key,
        default_parameters=parameters,
    )
    app.state.model_cache = ModelCache(load_transformers_pipeline)
    app.state.providers = ProviderRegistry(
        ollama=ollama_provider,
        openai_compatible=openai_provider,
        transformers=TransformersProvider(app.state.model_cache, parameters),
    )

    app.state.tool_service = FileSystemToolService(
        allowed_directories=settings.allowed_directories,
        max_file_size=settings.max_file_size,
    )
    app.state.orchestrator = ToolCallingOrchestrator(
        providers=app.state.providers,
        tool_service=app.state.tool_service,
        max_iterations=settings.max_tool_iterations,
        tool_timeout=settings.tool_timeout_seconds,
        context_max_chars=settings.context_max_chars,
    )
    app.state.active_runs = ActiveRunRegistry()

    # Check initial connectivity
    connected = await app.state.ollama_client.check_connection()
    if connected:
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    yield

    # Shutdown: cancel in-flight runs and close backend clients
    for session_id in app.state.active_runs.active_sessions():
        app.state.active_runs.cancel(session_id)
    await ollama_provider.close()
    await openai_provider.close()
    app.state.model_cache.clear()
    logger.info("Backend clients closed")


def create_app(settings: HeliumServerSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a FastAPI instance with all routers,
    middleware, and configuration applied. It can accept an optional
    settings object for testing or explicit configuration.

    Args:
        settings: Optional HeliumServerSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from helium_server.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="helium-server",
        description="Headless FastAPI server for tool-calling LLM inference",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(inference.router)
    app.include_router(providers.router)
    app.include_router(tools.router)

    return app
