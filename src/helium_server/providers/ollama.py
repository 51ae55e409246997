"""Ollama-backed inference provider.

Delegates generation to an Ollama daemon through OllamaClient. Chunks are
forwarded as they arrive; Ollama reports no progress finer than that.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import ollama

from helium_server.errors import InferenceFailedError, ModelNotFoundError
from helium_server.inference.types import (
    InferenceRequest,
    InferenceResponse,
    Message,
    MessageRole,
    ModelConfig,
    ModelParameters,
    ModelProvider,
    TokenUsage,
)
from helium_server.ollama import OllamaClient
from helium_server.providers.base import InferenceProvider
from helium_server.services.events import RunCallbacks

logger = logging.getLogger(__name__)


def convert_messages_to_ollama_format(messages: tuple[Message, ...]) -> list[dict]:
    """Convert conversation messages to Ollama chat format.

    Folded tool results are sent as user turns; their formatted body already
    marks them as tool output.
    """
    return [{"role": msg.role.value, "content": msg.content} for msg in messages]


def build_ollama_options(parameters: ModelParameters) -> dict[str, Any]:
    """Map generation parameters to Ollama options."""
    options: dict[str, Any] = {
        "temperature": parameters.temperature,
        "top_p": parameters.top_p,
        "num_predict": parameters.max_tokens,
    }
    if parameters.stop_sequences:
        options["stop"] = list(parameters.stop_sequences)
    if parameters.context_window:
        options["num_ctx"] = parameters.context_window
    return options


class OllamaProvider(InferenceProvider):
    """Inference through an Ollama daemon.

    Attributes:
        client: Client for the configured default host
        default_parameters: Parameters given to listed models
    """

    provider = ModelProvider.OLLAMA

    def __init__(
        self,
        client: OllamaClient,
        default_parameters: ModelParameters | None = None,
    ) -> None:
        self.client = client
        self.default_parameters = default_parameters or ModelParameters()

    @asynccontextmanager
    async def _client_for(self, endpoint: str | None) -> AsyncIterator[OllamaClient]:
        """Yield the default client, or a short-lived one for another host."""
        if not endpoint or endpoint.rstrip("/") == self.client.host.rstrip("/"):
            yield self.client
            return

        client = OllamaClient(host=endpoint)
        try:
            yield client
        finally:
            await client.close()

    async def generate(
        self, request: InferenceRequest, callbacks: RunCallbacks
    ) -> InferenceResponse:
        config = request.model_config
        endpoint = config.endpoint or self.client.host
        messages = convert_messages_to_ollama_format(request.messages)
        started = time.perf_counter()

        logger.info(
            f"Sending {len(messages)} messages to Ollama ({endpoint}) "
            f"with model {config.model_id}"
        )

        content_parts: list[str] = []
        final_chunk: dict[str, Any] | None = None

        try:
            async with self._client_for(config.endpoint) as client:
                async for chunk in client.chat_stream(
                    model=config.model_id,
                    messages=messages,
                    options=build_ollama_options(config.parameters),
                ):
                    content = (chunk.get("message") or {}).get("content") or ""
                    if content:
                        content_parts.append(content)
                        if config.parameters.stream:
                            callbacks.emit_chunk(content)

                    if chunk.get("done"):
                        final_chunk = chunk
                        break
        except ollama.ResponseError as e:
            if e.status_code == 404:
                raise ModelNotFoundError(
                    f"Model '{config.model_id}' not found on Ollama",
                    details={"model_id": config.model_id, "endpoint": endpoint},
                    suggested_actions=[f"Run 'ollama pull {config.model_id}'"],
                ) from e
            raise InferenceFailedError(
                f"Ollama returned error: {e.error}",
                details={"status_code": e.status_code},
            ) from e
        except Exception as e:
            logger.error(f"Ollama streaming error: {e}")
            raise InferenceFailedError(
                f"Failed to get response from Ollama: {e}",
                details={"endpoint": endpoint},
                suggested_actions=["Check that Ollama is running"],
            ) from e

        if final_chunk is None:
            raise InferenceFailedError("Stream ended without completion marker")

        usage = None
        prompt_tokens = final_chunk.get("prompt_eval_count")
        completion_tokens = final_chunk.get("eval_count")
        if prompt_tokens is not None and completion_tokens is not None:
            usage = TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        complete_content = "".join(content_parts)
        logger.info(f"Received complete response: {len(complete_content)} characters")

        return InferenceResponse(
            message=Message.create(MessageRole.ASSISTANT, complete_content),
            is_complete=True,
            inference_time_ms=(time.perf_counter() - started) * 1000,
            usage=usage,
        )

    async def check_availability(self) -> bool:
        return await self.client.check_connection()

    async def list_models(self) -> list[ModelConfig]:
        try:
            model_infos = await self.client.list_models()
        except Exception as e:
            raise InferenceFailedError(
                f"Failed to list Ollama models: {e}",
                details={"endpoint": self.client.host},
            ) from e
        return [
            info.to_model_config(self.client.host, self.default_parameters)
            for info in model_infos
        ]

    async def close(self) -> None:
        await self.client.close()
