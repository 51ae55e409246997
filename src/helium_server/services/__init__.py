"""Business logic services for helium-server.

Prompt and context assembly, run event delivery, cancellation bookkeeping
and the tool-calling orchestrator (helium_server.services.orchestrator).
"""

from helium_server.services.context_builder import (
    build_file_system_context,
    format_file_size,
    truncate_context,
)
from helium_server.services.events import (
    ChunkEvent,
    EventChannel,
    ProgressEvent,
    RunCallbacks,
    ToolExecutionEvent,
)
from helium_server.services.prompts import (
    build_prompt,
    build_system_prompt,
    get_template_for_mode,
    prepare_request,
)
from helium_server.services.runs import ActiveRunRegistry

__all__ = [
    "ActiveRunRegistry",
    "ChunkEvent",
    "EventChannel",
    "ProgressEvent",
    "RunCallbacks",
    "ToolExecutionEvent",
    "build_file_system_context",
    "build_prompt",
    "build_system_prompt",
    "format_file_size",
    "get_template_for_mode",
    "prepare_request",
    "truncate_context",
]
