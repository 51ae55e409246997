"""Core data types for inference and tool-calling.

This module defines the value objects that flow through the orchestration
loop: conversations, model configuration, inference requests/responses,
tool calls and the tool execution audit trail.

All dataclasses are frozen. A "modified" value is a new instance built with
dataclasses.replace().
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO 8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_message_id() -> str:
    """Return a new 10-character hex message identifier."""
    return uuid.uuid4().hex[:10]


class ModelProvider(str, Enum):
    """Supported inference backends."""

    OLLAMA = "ollama"
    OPENAI_COMPATIBLE = "openai-compatible"
    TRANSFORMERS = "transformers"


class AIMode(str, Enum):
    """Conversation modes, each with its own system prompt template."""

    QA = "qa"
    SUMMARIZE = "summarize"
    AGENT = "agent"


class MessageRole(str, Enum):
    """Role of a message in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ToolStatus(str, Enum):
    """Lifecycle status of a single tool execution."""

    EXECUTING = "executing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ModelParameters:
    """Generation parameters sent to the backend."""

    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 2048
    stream: bool = True
    stop_sequences: tuple[str, ...] | None = None
    context_window: int | None = None


@dataclass(frozen=True)
class ModelConfig:
    """Configuration of the model used for a request.

    Attributes:
        provider: Backend that serves the model
        model_id: Backend-specific model identifier (e.g., "llama3.2:3b")
        parameters: Generation parameters
        name: Optional display name
        endpoint: Optional backend URL overriding the configured default
        api_key: Optional API key (OpenAI-compatible backends)
        size_bytes: Declared model size, if known
        recommended_for: Modes this model is a good fit for
    """

    provider: ModelProvider
    model_id: str
    parameters: ModelParameters = field(default_factory=ModelParameters)
    name: str | None = None
    endpoint: str | None = None
    api_key: str | None = None
    size_bytes: int | None = None
    recommended_for: tuple[AIMode, ...] = ()


@dataclass(frozen=True)
class ToolExecutionRecord:
    """Audit record of one tool execution."""

    tool_name: str
    arguments: dict[str, Any]
    status: ToolStatus
    result: str | None = None
    error: str | None = None
    execution_time_ms: float | None = None


@dataclass(frozen=True)
class Message:
    """A single conversation turn.

    Folded tool results carry the name of the tool in ``tool_name`` so that
    providers can tell them apart from turns typed by the user.
    """

    message_id: str
    role: MessageRole
    content: str
    timestamp: str
    context_paths: tuple[str, ...] | None = None
    tool_executions: tuple[ToolExecutionRecord, ...] | None = None
    tool_name: str | None = None

    @classmethod
    def create(
        cls,
        role: MessageRole,
        content: str,
        context_paths: tuple[str, ...] | None = None,
        tool_name: str | None = None,
    ) -> "Message":
        """Create a message with a fresh identifier and timestamp."""
        return cls(
            message_id=new_message_id(),
            role=role,
            content=content,
            timestamp=utc_timestamp(),
            context_paths=context_paths,
            tool_name=tool_name,
        )

    @property
    def is_tool_result(self) -> bool:
        return self.tool_name is not None


@dataclass(frozen=True)
class FileMetadata:
    """Metadata of a file or folder visible in the current view."""

    name: str
    is_dir: bool
    size: int
    file_count: int | None = None
    last_modified: int | None = None


@dataclass(frozen=True)
class LargestFile:
    path: str
    size: int


@dataclass(frozen=True)
class ScanSummary:
    """Summary of a deep file-system scan."""

    total_files: int
    total_size: int
    largest_files: tuple[LargestFile, ...] = ()
    file_types: dict[str, int] = field(default_factory=dict)
    scanned_at: int | None = None


@dataclass(frozen=True)
class FileSystemContext:
    """Snapshot of the file-system state the user is looking at."""

    current_path: str
    selected_paths: tuple[str, ...] = ()
    visible_files: tuple[FileMetadata, ...] | None = None
    scan_data: ScanSummary | None = None


@dataclass(frozen=True)
class InferenceRequest:
    """One request to an inference provider."""

    session_id: str
    model_config: ModelConfig
    messages: tuple[Message, ...]
    mode: AIMode = AIMode.QA
    fs_context: FileSystemContext | None = None

    def has_system_message(self) -> bool:
        return any(m.role == MessageRole.SYSTEM for m in self.messages)

    def last_user_message(self) -> Message | None:
        for message in reversed(self.messages):
            if message.role == MessageRole.USER:
                return message
        return None


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class InferenceResponse:
    """A complete reply from a provider.

    ``message.content`` is always the full, authoritative text regardless of
    how many chunks were streamed while it was generated.
    """

    message: Message
    is_complete: bool = True
    inference_time_ms: float | None = None
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation parsed from a model reply."""

    call_id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
