"""Tool-call parsing and tool execution layer.

This package provides the text-markup tool-call detector/extractor, the
ToolExecutionService interface and the built-in file-system tools.
"""

from helium_server.tools.calling import (
    TOOL_USE_PLACEHOLDER,
    detect_tool_call,
    extract_tool_calls,
    format_tool_instructions,
    format_tool_result,
    strip_markup,
)
from helium_server.tools.execution import (
    ToolDefinition,
    ToolExecutionService,
    ToolResult,
)
from helium_server.tools.filesystem import FileSystemToolService

__all__ = [
    "TOOL_USE_PLACEHOLDER",
    "detect_tool_call",
    "extract_tool_calls",
    "format_tool_instructions",
    "format_tool_result",
    "strip_markup",
    "ToolDefinition",
    "ToolExecutionService",
    "ToolResult",
    "FileSystemToolService",
]
