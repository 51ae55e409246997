"""Pydantic models for the providers API."""

from pydantic import BaseModel, ConfigDict, Field

from helium_server.inference.types import AIMode, ModelConfig, ModelProvider


class ProviderStatusResponse(BaseModel):
    provider: ModelProvider
    configured: bool
    available: bool

    model_config = ConfigDict(from_attributes=True)


class ProviderListResponse(BaseModel):
    """Response body for GET /api/v1/providers."""

    default_provider: ModelProvider
    providers: list[ProviderStatusResponse]


class ModelSummary(BaseModel):
    """A model a provider can serve."""

    provider: ModelProvider
    model_id: str
    name: str | None = None
    endpoint: str | None = None
    size_bytes: int | None = None
    recommended_for: list[AIMode] = Field(default_factory=list)

    model_config = ConfigDict(protected_namespaces=())

    @classmethod
    def from_domain(cls, config: ModelConfig) -> "ModelSummary":
        return cls(
            provider=config.provider,
            model_id=config.model_id,
            name=config.name,
            endpoint=config.endpoint,
            size_bytes=config.size_bytes,
            recommended_for=list(config.recommended_for),
        )


class ModelListResponse(BaseModel):
    """Response body for GET /api/v1/providers/{provider}/models."""

    provider: ModelProvider
    models: list[ModelSummary]
    recommended: ModelSummary | None = Field(
        default=None, description="Default model for the requested mode"
    )


class ModelCacheResponse(BaseModel):
    loaded_models: list[str]


class ModelEvictedResponse(BaseModel):
    model_id: str
    evicted: bool

    model_config = ConfigDict(protected_namespaces=())
