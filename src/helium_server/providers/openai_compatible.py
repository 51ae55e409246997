"""Provider for OpenAI-compatible chat completion servers.

Works with llama.cpp server, vLLM, LM Studio, LocalAI and similar backends.
Requests are non-streaming, so no chunks are emitted.
"""

import logging
import time
from typing import Any

import httpx

from helium_server.errors import (
    InferenceFailedError,
    InvalidConfigurationError,
    ModelNotFoundError,
)
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
from helium_server.providers.base import InferenceProvider
from helium_server.services.events import RunCallbacks

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0


def build_api_url(endpoint: str, path: str) -> str:
    """Join an endpoint and an API path without doubling the /v1 prefix."""
    base = endpoint.rstrip("/")
    if base.endswith("/v1") or "/v1/" in base:
        return f"{base}/{path}"
    return f"{base}/v1/{path}"


def convert_messages_to_openai_format(
    messages: tuple[Message, ...],
) -> list[dict[str, str]]:
    """Convert messages to OpenAI chat format.

    System turns are merged into the first user turn because many local
    servers require strictly alternating user/assistant roles.
    """
    converted: list[dict[str, str]] = []
    pending_system: list[str] = []

    for msg in messages:
        if msg.role == MessageRole.SYSTEM:
            pending_system.append(msg.content)
        elif msg.role == MessageRole.USER:
            content = msg.content
            if pending_system and not converted:
                content = "\n\n".join(pending_system) + "\n\n---\n\n" + content
                pending_system = []
            converted.append({"role": "user", "content": content})
        else:
            converted.append({"role": "assistant", "content": msg.content})

    return converted


class OpenAICompatibleProvider(InferenceProvider):
    """Inference through an OpenAI-compatible HTTP API.

    Attributes:
        endpoint: Default server URL, used when a model config names none
        api_key: Default bearer token, if any
    """

    provider = ModelProvider.OPENAI_COMPATIBLE

    def __init__(
        self,
        endpoint: str | None,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        default_parameters: ModelParameters | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.default_parameters = default_parameters or ModelParameters()
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)

    def _headers(self, api_key: str | None) -> dict[str, str]:
        key = api_key or self.api_key
        return {"Authorization": f"Bearer {key}"} if key else {}

    async def generate(
        self, request: InferenceRequest, callbacks: RunCallbacks
    ) -> InferenceResponse:
        config = request.model_config
        endpoint = config.endpoint or self.endpoint
        if not endpoint:
            raise InvalidConfigurationError(
                "No endpoint configured for OpenAI-compatible provider",
                suggested_actions=["Set HELIUM_OPENAI_COMPATIBLE_ENDPOINT"],
            )

        url = build_api_url(endpoint, "chat/completions")
        payload: dict[str, Any] = {
            "model": config.model_id,
            "messages": convert_messages_to_openai_format(request.messages),
            "temperature": config.parameters.temperature,
            "top_p": config.parameters.top_p,
            "max_tokens": config.parameters.max_tokens,
            "stream": False,
        }
        if config.parameters.stop_sequences:
            payload["stop"] = list(config.parameters.stop_sequences)

        logger.info(f"Sending {len(payload['messages'])} messages to {url}")
        started = time.perf_counter()

        try:
            response = await self._http.post(
                url, json=payload, headers=self._headers(config.api_key)
            )
        except httpx.HTTPError as e:
            raise InferenceFailedError(
                f"Failed to send request: {e}",
                details={"endpoint": endpoint},
                suggested_actions=[
                    "Check the endpoint URL",
                    "Verify the server is running",
                ],
            ) from e

        if response.status_code == 404:
            raise ModelNotFoundError(
                f"Model '{config.model_id}' not found at {endpoint}",
                details={"model_id": config.model_id, "body": response.text},
            )
        if response.is_error:
            raise InferenceFailedError(
                f"API returned error: {response.status_code} - {response.text}",
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
            choice = data["choices"][0]
            content = choice["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InferenceFailedError(f"Failed to parse response: {e}") from e

        usage = None
        raw_usage = data.get("usage")
        if isinstance(raw_usage, dict):
            usage = TokenUsage(
                prompt_tokens=raw_usage.get("prompt_tokens", 0),
                completion_tokens=raw_usage.get("completion_tokens", 0),
                total_tokens=raw_usage.get("total_tokens", 0),
            )

        return InferenceResponse(
            message=Message.create(MessageRole.ASSISTANT, content),
            is_complete=True,
            inference_time_ms=(time.perf_counter() - started) * 1000,
            usage=usage,
        )

    async def check_availability(self) -> bool:
        if not self.endpoint:
            return False
        try:
            response = await self._http.get(
                build_api_url(self.endpoint, "models"), headers=self._headers(None)
            )
        except httpx.HTTPError as e:
            logger.warning(f"OpenAI-compatible availability check failed: {e}")
            return False
        return response.is_success

    async def list_models(self) -> list[ModelConfig]:
        if not self.endpoint:
            return []
        try:
            response = await self._http.get(
                build_api_url(self.endpoint, "models"), headers=self._headers(None)
            )
            response.raise_for_status()
            entries = response.json().get("data", [])
        except (httpx.HTTPError, ValueError) as e:
            raise InferenceFailedError(
                f"Failed to list models: {e}", details={"endpoint": self.endpoint}
            ) from e

        return [
            ModelConfig(
                provider=self.provider,
                model_id=entry["id"],
                parameters=self.default_parameters,
                name=entry["id"],
                endpoint=self.endpoint,
            )
            for entry in entries
            if isinstance(entry, dict) and entry.get("id")
        ]

    async def close(self) -> None:
        await self._http.aclose()
