"""Scripted fakes shared by unit and integration tests."""

from collections.abc import Callable

from helium_server.inference.types import (
    InferenceRequest,
    InferenceResponse,
    Message,
    MessageRole,
    ModelConfig,
    ModelProvider,
    ToolCall,
)
from helium_server.providers.base import InferenceProvider
from helium_server.services.events import RunCallbacks
from helium_server.tools.execution import ToolDefinition, ToolExecutionService, ToolResult
from helium_server.tools.filesystem import NoInput


class ScriptedProvider(InferenceProvider):
    """Provider that replies from a fixed script and records every request.

    Each script entry is either reply text or an exception to raise.
    """

    provider = ModelProvider.OLLAMA

    def __init__(self, replies: list, chunk_replies: bool = False) -> None:
        self.replies = list(replies)
        self.chunk_replies = chunk_replies
        self.requests: list[InferenceRequest] = []

    async def generate(
        self, request: InferenceRequest, callbacks: RunCallbacks
    ) -> InferenceResponse:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError("ScriptedProvider ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if self.chunk_replies:
            callbacks.emit_chunk(reply)
        return InferenceResponse(
            message=Message.create(MessageRole.ASSISTANT, reply),
            inference_time_ms=1.0,
        )

    async def check_availability(self) -> bool:
        return True

    async def list_models(self) -> list[ModelConfig]:
        return []


class FakeToolService(ToolExecutionService):
    """Tool service whose behaviour per tool name is a plain callable."""

    def __init__(self, behaviours: dict[str, Callable[[dict], ToolResult]]) -> None:
        self.behaviours = behaviours
        self.calls: list[ToolCall] = []

    def list_tools(self) -> list[ToolDefinition]:
        async def unused(params):
            return ""

        return [
            ToolDefinition(
                name=name,
                description=f"Fake tool {name}",
                input_model=NoInput,
                handler=unused,
            )
            for name in self.behaviours
        ]

    async def execute(self, call: ToolCall) -> ToolResult:
        self.calls.append(call)
        behaviour = self.behaviours.get(call.name)
        if behaviour is None:
            return ToolResult(content=f"Unknown tool: {call.name}", is_error=True)
        return behaviour(call.arguments)


def user_request(
    text: str = "What is in my home folder?",
    provider: ModelProvider = ModelProvider.OLLAMA,
    **kwargs,
) -> InferenceRequest:
    """Build a single-turn request."""
    return InferenceRequest(
        session_id="test-session",
        model_config=ModelConfig(provider=provider, model_id="llama3.2:3b"),
        messages=(Message.create(MessageRole.USER, text),),
        **kwargs,
    )


def ollama_replies(*replies: str):
    """Build an OllamaClient.chat_stream replacement answering each dispatch in turn.

    Every reply is streamed as one content chunk followed by the done marker.
    The messages of each dispatch are recorded on the returned function.
    """
    remaining = list(replies)
    sent: list[list[dict]] = []

    async def chat_stream(model, messages, options=None):
        sent.append(messages)
        content = remaining.pop(0)
        yield {"message": {"role": "assistant", "content": content}, "done": False}
        yield {
            "message": {"role": "assistant", "content": ""},
            "done": True,
            "eval_count": 3,
            "prompt_eval_count": 10,
        }

    chat_stream.sent = sent
    return chat_stream
