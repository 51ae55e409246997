"""In-process inference with Hugging Face transformers pipelines.

The transformers package is an optional extra. It is imported only when the
first model is loaded, so the server starts without it.
"""

import asyncio
import importlib.util
import logging
import time
from typing import Any

from helium_server.errors import (
    HeliumError,
    InferenceFailedError,
    InvalidConfigurationError,
    ModelNotFoundError,
)
from helium_server.inference.types import (
    AIMode,
    InferenceRequest,
    InferenceResponse,
    Message,
    MessageRole,
    ModelConfig,
    ModelParameters,
    ModelProvider,
)
from helium_server.providers.base import InferenceProvider
from helium_server.providers.cache import ModelCache, ProgressSink
from helium_server.services.events import ProgressEvent, RunCallbacks

logger = logging.getLogger(__name__)

KNOWN_MODELS: tuple[tuple[str, str, int], ...] = (
    ("HuggingFaceTB/SmolLM2-360M-Instruct", "SmolLM2 360M Instruct", 724_000_000),
    ("Qwen/Qwen2.5-0.5B-Instruct", "Qwen2.5 0.5B Instruct", 988_000_000),
)


async def load_transformers_pipeline(
    model_id: str, on_progress: ProgressSink | None = None
) -> Any:
    """Load a text-generation pipeline for a model.

    Raises:
        ModelNotFoundError: If transformers is missing or the model cannot be loaded
    """

    def report(status: str, progress: float, message: str) -> None:
        if on_progress is not None:
            on_progress(
                ProgressEvent(
                    model_id=model_id, status=status, progress=progress, message=message
                )
            )

    report("loading", 0.0, f"Loading {model_id}")
    try:
        from transformers import pipeline
    except ImportError as e:
        raise ModelNotFoundError(
            "The transformers package is not installed",
            details={"model_id": model_id},
            suggested_actions=["Install helium-server[transformers]"],
        ) from e

    try:
        generator = await asyncio.to_thread(pipeline, "text-generation", model=model_id)
    except Exception as e:
        logger.error(f"Failed to load transformers model {model_id}: {e}")
        raise ModelNotFoundError(
            f"Failed to load model: {model_id}",
            details={"error": str(e)},
            suggested_actions=[
                "Check your internet connection",
                "Try a different model",
            ],
        ) from e

    report("ready", 1.0, f"Loaded {model_id}")
    return generator


def _generated_text(output: Any) -> str:
    # Chat input yields either the new text or the whole message list
    generated = output[0]["generated_text"]
    if isinstance(generated, list):
        return generated[-1]["content"]
    return str(generated)


class TransformersProvider(InferenceProvider):
    """Inference with models loaded into this process.

    Attributes:
        cache: Shared cache of loaded pipelines
        word_delay: Pause between emulated stream chunks, in seconds
    """

    provider = ModelProvider.TRANSFORMERS

    def __init__(
        self,
        cache: ModelCache,
        default_parameters: ModelParameters | None = None,
        word_delay: float = 0.0,
    ) -> None:
        self.cache = cache
        self.default_parameters = default_parameters or ModelParameters()
        self.word_delay = word_delay

    async def generate(
        self, request: InferenceRequest, callbacks: RunCallbacks
    ) -> InferenceResponse:
        if request.last_user_message() is None:
            raise InvalidConfigurationError("No user message found in request")

        config = request.model_config
        started = time.perf_counter()

        try:
            generator = await self.cache.get(
                config.model_id, on_progress=callbacks.emit_progress
            )
        except HeliumError:
            raise
        except Exception as e:
            raise ModelNotFoundError(
                f"Failed to load model: {config.model_id}",
                details={"error": str(e)},
            ) from e

        chat = [{"role": m.role.value, "content": m.content} for m in request.messages]
        params = config.parameters
        generate_kwargs: dict[str, Any] = {
            "max_new_tokens": params.max_tokens,
            "do_sample": params.temperature > 0,
            "return_full_text": False,
        }
        if params.temperature > 0:
            generate_kwargs["temperature"] = params.temperature
            generate_kwargs["top_p"] = params.top_p

        try:
            output = await asyncio.to_thread(generator, chat, **generate_kwargs)
            text = _generated_text(output)
        except Exception as e:
            logger.error(f"Transformers inference failed: {e}")
            raise InferenceFailedError(
                f"Inference failed: {e}",
                details={"model_id": config.model_id},
                suggested_actions=["Try a shorter input"],
            ) from e

        if params.stream:
            await self._emit_words(text, callbacks)

        return InferenceResponse(
            message=Message.create(MessageRole.ASSISTANT, text),
            is_complete=True,
            inference_time_ms=(time.perf_counter() - started) * 1000,
        )

    async def _emit_words(self, text: str, callbacks: RunCallbacks) -> None:
        words = text.split(" ")
        for i, word in enumerate(words):
            callbacks.emit_chunk(word + (" " if i < len(words) - 1 else ""))
            await asyncio.sleep(self.word_delay)

    async def check_availability(self) -> bool:
        return importlib.util.find_spec("transformers") is not None

    async def list_models(self) -> list[ModelConfig]:
        return [
            ModelConfig(
                provider=self.provider,
                model_id=model_id,
                parameters=self.default_parameters,
                name=name,
                size_bytes=size_bytes,
                recommended_for=(AIMode.QA, AIMode.SUMMARIZE),
            )
            for model_id, name, size_bytes in KNOWN_MODELS
        ]
