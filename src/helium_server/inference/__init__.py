"""Inference data model shared by providers, tools and the orchestrator."""

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
    TokenUsage,
    ToolCall,
    ToolExecutionRecord,
    ToolStatus,
)

__all__ = [
    "AIMode",
    "FileMetadata",
    "FileSystemContext",
    "InferenceRequest",
    "InferenceResponse",
    "LargestFile",
    "Message",
    "MessageRole",
    "ModelConfig",
    "ModelParameters",
    "ModelProvider",
    "ScanSummary",
    "TokenUsage",
    "ToolCall",
    "ToolExecutionRecord",
    "ToolStatus",
]
