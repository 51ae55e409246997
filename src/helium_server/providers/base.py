"""Inference provider interface."""

from abc import ABC, abstractmethod

from helium_server.inference.types import (
    InferenceRequest,
    InferenceResponse,
    ModelConfig,
    ModelProvider,
)
from helium_server.services.events import RunCallbacks


class InferenceProvider(ABC):
    """A backend that produces a complete reply for a conversation.

    Implementations either return a complete InferenceResponse or raise a
    HeliumError. Chunks and progress sent through the callbacks are a
    best-effort side channel; the returned message content is authoritative.
    """

    provider: ModelProvider

    @abstractmethod
    async def generate(
        self, request: InferenceRequest, callbacks: RunCallbacks
    ) -> InferenceResponse:
        """Generate the assistant reply for a prepared request."""

    @abstractmethod
    async def check_availability(self) -> bool:
        """Return True if the backend can currently serve requests."""

    @abstractmethod
    async def list_models(self) -> list[ModelConfig]:
        """List the models this backend can serve."""
