"""Type definitions for Ollama integration.

This module contains the ModelInfo dataclass used to represent installed
Ollama models and convert them to ModelConfig values.
"""

from dataclasses import dataclass
from typing import Any

from helium_server.inference.types import (
    AIMode,
    ModelConfig,
    ModelParameters,
    ModelProvider,
)


def _get_value(obj: Any, key: str, default: Any = None) -> Any:
    # Ollama responses are pydantic objects in recent versions, dicts in older ones
    if hasattr(obj, key):
        return getattr(obj, key, default)
    if isinstance(obj, dict):
        return obj.get(key, default)
    return default


@dataclass
class ModelInfo:
    """Information about an installed Ollama model.

    Attributes:
        name: Full model name (e.g., "qwen2.5-coder:0.5b")
        size_bytes: Model size on disk in bytes
        family: Model family (e.g., "qwen2")
        parameter_size: Human-readable parameter count (e.g., "494M")
        capabilities: Model capabilities (e.g., ["completion", "tools"])
    """

    name: str
    size_bytes: int
    family: str
    parameter_size: str
    capabilities: list[str]

    @staticmethod
    def from_ollama_model(show_data: Any, list_model: Any) -> "ModelInfo":
        """Create a ModelInfo from an Ollama list entry and its show response.

        Args:
            show_data: Response of ``show`` for the model (details, capabilities)
            list_model: Entry of the ``list`` response (name, size)

        Returns:
            ModelInfo: Parsed model information
        """
        name = _get_value(list_model, "model") or _get_value(
            list_model, "name", "unknown"
        )

        size_obj = _get_value(list_model, "size", 0)
        # ByteSize objects from the ollama library support int()
        size_bytes = int(size_obj) if hasattr(size_obj, "__int__") else 0

        details = _get_value(show_data, "details", {})
        capabilities = _get_value(show_data, "capabilities", None) or ["completion"]

        return ModelInfo(
            name=name,
            size_bytes=size_bytes,
            family=_get_value(details, "family", "unknown") or "unknown",
            parameter_size=_get_value(details, "parameter_size", "unknown")
            or "unknown",
            capabilities=list(capabilities),
        )

    def recommended_modes(self) -> tuple[AIMode, ...]:
        """Guess the modes this model suits from its name."""
        lowered = self.name.lower()
        if "3b" in lowered or "small" in lowered:
            return (AIMode.QA,)
        if "7b" in lowered:
            return (AIMode.QA, AIMode.AGENT)
        return (AIMode.AGENT, AIMode.QA)

    def to_model_config(
        self, endpoint: str, parameters: ModelParameters
    ) -> ModelConfig:
        return ModelConfig(
            provider=ModelProvider.OLLAMA,
            model_id=self.name,
            parameters=parameters,
            name=self.name,
            endpoint=endpoint,
            size_bytes=self.size_bytes or None,
            recommended_for=self.recommended_modes(),
        )
