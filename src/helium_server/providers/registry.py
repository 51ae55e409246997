"""Lookup of inference providers by backend kind."""

import logging
from dataclasses import dataclass

from helium_server.errors import InvalidConfigurationError
from helium_server.inference.types import AIMode, ModelConfig, ModelProvider
from helium_server.providers.base import InferenceProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderStatus:
    provider: ModelProvider
    configured: bool
    available: bool


class ProviderRegistry:
    """Holds at most one provider per ModelProvider.

    A slot left as None is unconfigured; asking for it is a configuration
    error rather than a lookup failure.
    """

    def __init__(
        self,
        ollama: InferenceProvider | None = None,
        openai_compatible: InferenceProvider | None = None,
        transformers: InferenceProvider | None = None,
    ) -> None:
        self.ollama = ollama
        self.openai_compatible = openai_compatible
        self.transformers = transformers

    def _slot(self, provider: ModelProvider) -> InferenceProvider | None:
        if provider == ModelProvider.OLLAMA:
            return self.ollama
        elif provider == ModelProvider.OPENAI_COMPATIBLE:
            return self.openai_compatible
        elif provider == ModelProvider.TRANSFORMERS:
            return self.transformers
        raise ValueError(f"Unknown provider: {provider}")

    def get(self, provider: ModelProvider) -> InferenceProvider:
        """Return the provider for a backend kind.

        Raises:
            InvalidConfigurationError: If no provider is configured for it
        """
        instance = self._slot(provider)
        if instance is None:
            raise InvalidConfigurationError(
                f"Provider '{provider.value}' is not configured",
                details={"provider": provider.value},
            )
        return instance

    async def statuses(self) -> list[ProviderStatus]:
        """Report configuration and availability of every backend kind."""
        result = []
        for provider in ModelProvider:
            instance = self._slot(provider)
            available = False
            if instance is not None:
                available = await instance.check_availability()
            logger.debug(f"Provider {provider.value}: available={available}")
            result.append(
                ProviderStatus(
                    provider=provider,
                    configured=instance is not None,
                    available=available,
                )
            )
        return result


def select_model_for_mode(
    mode: AIMode, models: list[ModelConfig]
) -> ModelConfig | None:
    """Pick the default model for a mode.

    Only models recommended for the mode are considered: the smallest for
    summarize, the largest for agent, the first for QA. Without any
    recommended model the first model is returned, or None if there is none.
    """
    recommended = [m for m in models if mode in m.recommended_for]
    if not recommended:
        return models[0] if models else None

    if mode == AIMode.SUMMARIZE:
        return sorted(
            recommended,
            key=lambda m: m.size_bytes if m.size_bytes else float("inf"),
        )[0]
    elif mode == AIMode.AGENT:
        return sorted(recommended, key=lambda m: -(m.size_bytes or 0))[0]
    elif mode == AIMode.QA:
        return recommended[0]
    raise ValueError(f"Unknown mode: {mode}")
