"""Pydantic models for inference API requests, responses and SSE events.

Request models convert to the frozen domain types in
helium_server.inference.types; response models are built from them.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from helium_server.config import HeliumServerSettings
from helium_server.inference.types import (
    AIMode,
    FileMetadata,
    FileSystemContext,
    InferenceRequest,
    InferenceResponse,
    LargestFile,
    Message,
    MessageRole,
    ModelConfig,
    ModelParameters,
    ModelProvider,
    ScanSummary,
    ToolExecutionRecord,
    ToolStatus,
    new_message_id,
    utc_timestamp,
)


class ModelParametersSchema(BaseModel):
    """Generation parameters. Omitted values fall back to server defaults."""

    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    max_tokens: int | None = Field(default=None, ge=1)
    stream: bool = True
    stop_sequences: list[str] | None = None
    context_window: int | None = Field(default=None, ge=1)


class ModelConfigSchema(BaseModel):
    """Model selection for a request."""

    provider: ModelProvider | None = Field(
        default=None, description="Backend to use (defaults to the server default)"
    )
    model_id: str | None = Field(
        default=None, description="Model identifier (defaults per provider)"
    )
    parameters: ModelParametersSchema = Field(default_factory=ModelParametersSchema)
    endpoint: str | None = Field(default=None, description="Backend URL override")
    api_key: str | None = Field(default=None, description="API key override")

    model_config = ConfigDict(protected_namespaces=())

    def to_domain(self, settings: HeliumServerSettings) -> ModelConfig:
        provider = self.provider or settings.default_provider
        params = self.parameters
        return ModelConfig(
            provider=provider,
            model_id=self.model_id or settings.default_model_for(provider),
            parameters=ModelParameters(
                temperature=params.temperature
                if params.temperature is not None
                else settings.temperature,
                top_p=params.top_p if params.top_p is not None else settings.top_p,
                max_tokens=params.max_tokens or settings.max_tokens,
                stream=params.stream,
                stop_sequences=tuple(params.stop_sequences)
                if params.stop_sequences
                else None,
                context_window=params.context_window,
            ),
            endpoint=self.endpoint,
            api_key=self.api_key,
        )


class MessageSchema(BaseModel):
    """A conversation turn sent by the caller."""

    role: MessageRole
    content: str
    message_id: str | None = None
    timestamp: str | None = None
    context_paths: list[str] | None = None
    tool_name: str | None = Field(
        default=None, description="Set on turns that carry a tool result"
    )

    def to_domain(self) -> Message:
        return Message(
            message_id=self.message_id or new_message_id(),
            role=self.role,
            content=self.content,
            timestamp=self.timestamp or utc_timestamp(),
            context_paths=tuple(self.context_paths) if self.context_paths else None,
            tool_name=self.tool_name,
        )


class FileMetadataSchema(BaseModel):
    name: str
    is_dir: bool = False
    size: int = 0
    file_count: int | None = None
    last_modified: int | None = None


class LargestFileSchema(BaseModel):
    path: str
    size: int


class ScanSummarySchema(BaseModel):
    total_files: int
    total_size: int
    largest_files: list[LargestFileSchema] = Field(default_factory=list)
    file_types: dict[str, int] = Field(default_factory=dict)
    scanned_at: int | None = None


class FileSystemContextSchema(BaseModel):
    """File-system state the user is looking at."""

    current_path: str
    selected_paths: list[str] = Field(default_factory=list)
    visible_files: list[FileMetadataSchema] | None = None
    scan_data: ScanSummarySchema | None = None

    def to_domain(self) -> FileSystemContext:
        scan = None
        if self.scan_data is not None:
            scan = ScanSummary(
                total_files=self.scan_data.total_files,
                total_size=self.scan_data.total_size,
                largest_files=tuple(
                    LargestFile(path=f.path, size=f.size)
                    for f in self.scan_data.largest_files
                ),
                file_types=dict(self.scan_data.file_types),
                scanned_at=self.scan_data.scanned_at,
            )
        visible = None
        if self.visible_files is not None:
            visible = tuple(FileMetadata(**f.model_dump()) for f in self.visible_files)
        return FileSystemContext(
            current_path=self.current_path,
            selected_paths=tuple(self.selected_paths),
            visible_files=visible,
            scan_data=scan,
        )


class InferenceRequestBody(BaseModel):
    """Request body for POST /api/v1/inference and /api/v1/inference/stream."""

    session_id: str = Field(
        default_factory=new_message_id,
        description="Identifier used to cancel the run; generated when omitted",
    )
    messages: list[MessageSchema] = Field(description="Conversation so far")
    model: ModelConfigSchema = Field(default_factory=ModelConfigSchema)
    mode: AIMode = AIMode.QA
    fs_context: FileSystemContextSchema | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "session_id": "a1b2c3d4e5",
                    "messages": [
                        {"role": "user", "content": "What is in my Downloads folder?"}
                    ],
                    "model": {"provider": "ollama", "model_id": "llama3.2:3b"},
                    "mode": "agent",
                    "fs_context": {"current_path": "/home/user/Downloads"},
                }
            ]
        }
    )

    def to_domain(self, settings: HeliumServerSettings) -> InferenceRequest:
        return InferenceRequest(
            session_id=self.session_id,
            model_config=self.model.to_domain(settings),
            messages=tuple(m.to_domain() for m in self.messages),
            mode=self.mode,
            fs_context=self.fs_context.to_domain() if self.fs_context else None,
        )


class ToolExecutionRecordResponse(BaseModel):
    tool_name: str
    arguments: dict[str, Any]
    status: ToolStatus
    result: str | None = None
    error: str | None = None
    execution_time_ms: float | None = None

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    """The final assistant message."""

    message_id: str
    role: MessageRole
    content: str
    timestamp: str
    context_paths: list[str] | None = None
    tool_executions: list[ToolExecutionRecordResponse] | None = None

    model_config = ConfigDict(from_attributes=True)


class TokenUsageResponse(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int

    model_config = ConfigDict(from_attributes=True)


class InferenceResponseBody(BaseModel):
    """Response body of a completed inference run."""

    session_id: str
    provider: ModelProvider
    model_id: str
    message: MessageResponse
    is_complete: bool = True
    inference_time_ms: float | None = None
    usage: TokenUsageResponse | None = None

    model_config = ConfigDict(protected_namespaces=())

    @classmethod
    def from_domain(
        cls, request: InferenceRequest, response: InferenceResponse
    ) -> "InferenceResponseBody":
        message = response.message
        return cls(
            session_id=request.session_id,
            provider=request.model_config.provider,
            model_id=request.model_config.model_id,
            message=MessageResponse(
                message_id=message.message_id,
                role=message.role,
                content=message.content,
                timestamp=message.timestamp,
                context_paths=list(message.context_paths)
                if message.context_paths
                else None,
                tool_executions=[
                    ToolExecutionRecordResponse.model_validate(record)
                    for record in message.tool_executions
                ]
                if message.tool_executions
                else None,
            ),
            is_complete=response.is_complete,
            inference_time_ms=response.inference_time_ms,
            usage=TokenUsageResponse.model_validate(response.usage)
            if response.usage
            else None,
        )


class CancelResponse(BaseModel):
    session_id: str
    cancelled: bool = Field(description="False when no run was active")


# SSE event payloads


class ContentDeltaEvent(BaseModel):
    content: str


class ToolExecutionSSEEvent(BaseModel):
    tool_name: str
    arguments: dict[str, Any]
    status: ToolStatus
    result: str | None = None
    error: str | None = None
    execution_time_ms: float | None = None

    model_config = ConfigDict(from_attributes=True)


class ProgressSSEEvent(BaseModel):
    model_id: str
    status: str
    progress: float | None = None
    message: str | None = None

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())


class MessageCompleteEvent(BaseModel):
    response: InferenceResponseBody


class DoneEvent(BaseModel):
    session_id: str


class ErrorEvent(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
