"""Inference backends.

Each backend implements InferenceProvider. The registry maps a ModelProvider
to the configured instance.
"""

from helium_server.providers.base import InferenceProvider
from helium_server.providers.cache import ModelCache
from helium_server.providers.local import TransformersProvider, load_transformers_pipeline
from helium_server.providers.ollama import OllamaProvider
from helium_server.providers.openai_compatible import OpenAICompatibleProvider
from helium_server.providers.registry import (
    ProviderRegistry,
    ProviderStatus,
    select_model_for_mode,
)

__all__ = [
    "InferenceProvider",
    "ModelCache",
    "OllamaProvider",
    "OpenAICompatibleProvider",
    "ProviderRegistry",
    "ProviderStatus",
    "TransformersProvider",
    "load_transformers_pipeline",
    "select_model_for_mode",
]
