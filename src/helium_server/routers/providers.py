"""Provider and model discovery endpoints.

This module reports backend availability, lists the models each backend can
serve (with the recommended default for a mode) and manages the in-process
model cache.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from helium_server.config import HeliumServerSettings
from helium_server.dependencies import (
    get_app_settings,
    get_model_cache,
    get_provider_registry,
    http_error,
)
from helium_server.errors import HeliumError
from helium_server.inference.types import AIMode, ModelProvider
from helium_server.models.providers import (
    ModelCacheResponse,
    ModelEvictedResponse,
    ModelListResponse,
    ModelSummary,
    ProviderListResponse,
    ProviderStatusResponse,
)
from helium_server.providers import ModelCache, ProviderRegistry, select_model_for_mode

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/providers", tags=["providers"])


@router.get("", response_model=ProviderListResponse)
async def list_providers(
    settings: HeliumServerSettings = Depends(get_app_settings),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> ProviderListResponse:
    """Report whether each backend is configured and currently available."""
    statuses = await registry.statuses()
    return ProviderListResponse(
        default_provider=settings.default_provider,
        providers=[ProviderStatusResponse.model_validate(s) for s in statuses],
    )


@router.get("/transformers/cache", response_model=ModelCacheResponse)
async def get_model_cache_state(
    cache: ModelCache = Depends(get_model_cache),
) -> ModelCacheResponse:
    """List the in-process models that are loaded and ready."""
    return ModelCacheResponse(loaded_models=cache.loaded_models())


@router.delete("/transformers/cache", response_model=ModelCacheResponse)
async def clear_model_cache(
    cache: ModelCache = Depends(get_model_cache),
) -> ModelCacheResponse:
    """Drop every cached in-process model."""
    cache.clear()
    return ModelCacheResponse(loaded_models=cache.loaded_models())


@router.delete("/transformers/cache/{model_id:path}", response_model=ModelEvictedResponse)
async def evict_cached_model(
    model_id: str,
    cache: ModelCache = Depends(get_model_cache),
) -> ModelEvictedResponse:
    """Evict one in-process model from the cache.

    Runs already holding the model keep using it until they finish.

    Raises:
        HTTPException: 404 if the model is not cached
    """
    if not cache.evict(model_id):
        raise HTTPException(
            status_code=404,
            detail={
                "error": {
                    "code": "model_not_cached",
                    "message": f"Model {model_id} is not in the cache",
                    "details": {"model_id": model_id},
                }
            },
        )
    return ModelEvictedResponse(model_id=model_id, evicted=True)


@router.get("/{provider}/models", response_model=ModelListResponse)
async def list_provider_models(
    provider: ModelProvider,
    mode: AIMode | None = Query(
        default=None, description="Mode to pick a recommended model for"
    ),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> ModelListResponse:
    """List the models a backend can serve.

    Raises:
        HTTPException: 400 if the provider is not configured, 502 if the
            backend cannot be queried
    """
    try:
        models = await registry.get(provider).list_models()
    except HeliumError as e:
        logger.error(f"Failed to list models for {provider.value}: {e.message}")
        raise http_error(e)

    recommended = select_model_for_mode(mode, models) if mode is not None else None

    return ModelListResponse(
        provider=provider,
        models=[ModelSummary.from_domain(m) for m in models],
        recommended=ModelSummary.from_domain(recommended) if recommended else None,
    )
