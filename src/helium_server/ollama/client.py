"""Async Ollama client wrapper.

This module provides an async wrapper around the ollama.AsyncClient for
communicating with an Ollama daemon. The client is created once at startup
(or once per extra endpoint) and reused.
"""

import logging
from typing import Any, AsyncIterator

import ollama

from helium_server.ollama.types import ModelInfo

logger = logging.getLogger(__name__)


class OllamaClient:
    """Async client for interacting with the Ollama API.

    Attributes:
        host: The Ollama server URL (e.g., "http://127.0.0.1:11434")
        _client: The underlying ollama.AsyncClient instance
    """

    def __init__(self, host: str) -> None:
        self.host = host
        self._client = ollama.AsyncClient(host=host)
        logger.info(f"OllamaClient initialized with host: {host}")

    async def check_connection(self) -> bool:
        """Check if the Ollama server is reachable.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            await self._client.list()
            logger.debug("Ollama connection check: successful")
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    async def list_models(self) -> list[ModelInfo]:
        """List installed models that support completion.

        Embedding-only models are excluded. A model whose details cannot be
        fetched is skipped.

        Returns:
            list[ModelInfo]: Completion-capable models

        Raises:
            Exception: If the Ollama list request fails
        """
        response = await self._client.list()
        models_list = (
            response.models
            if hasattr(response, "models")
            else response.get("models", [])
        )
        logger.debug(f"Retrieved {len(models_list)} models from Ollama")

        model_infos: list[ModelInfo] = []
        for model_obj in models_list:
            model_name = getattr(model_obj, "model", None) or (
                model_obj.get("name") if isinstance(model_obj, dict) else None
            )
            if not model_name:
                continue

            try:
                show_response = await self._client.show(model_name)
            except Exception as e:
                logger.warning(f"Failed to get details for model {model_name}: {e}")
                continue

            model_info = ModelInfo.from_ollama_model(show_response, list_model=model_obj)
            if "completion" in model_info.capabilities:
                model_infos.append(model_info)
            else:
                logger.debug(f"Skipped non-completion model: {model_name}")

        logger.info(f"Listed {len(model_infos)} completion-capable models")
        return model_infos

    async def chat_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream chat responses from Ollama.

        Args:
            model: The model name to use for the chat
            messages: Messages in Ollama format:
                      [{"role": "user", "content": "..."}, ...]
            options: Optional model options (temperature, num_predict, ...)

        Yields:
            dict: Response chunks. Each chunk contains ``message`` with the
                  content delta and ``done``; the final chunk also carries
                  ``eval_count`` and ``prompt_eval_count``.

        Raises:
            ollama.ResponseError: If Ollama rejects the request
            Exception: If the connection fails
        """
        logger.debug(f"Starting chat stream with model {model}, {len(messages)} messages")

        async for chunk in await self._client.chat(
            model=model,
            messages=messages,
            stream=True,
            options=options,
        ):
            if hasattr(chunk, "model_dump"):
                chunk_dict = chunk.model_dump()
            elif isinstance(chunk, dict):
                chunk_dict = chunk
            else:
                chunk_dict = vars(chunk)

            yield chunk_dict

        logger.debug("Chat stream completed")

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.close()
        logger.debug(f"OllamaClient for {self.host} closed")
