"""Tool execution service interface.

The orchestrator talks to tools only through ToolExecutionService. Ordinary
tool failures are reported through ToolResult.is_error; implementations
raise only for unrecoverable transport problems.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from helium_server.inference.types import ToolCall


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a tool execution."""

    content: str
    is_error: bool = False


ToolHandler = Callable[[BaseModel], Awaitable[str]]


@dataclass
class ToolDefinition:
    """Definition of a tool the model may call."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler
    read_only: bool = True

    def input_schema(self) -> dict[str, Any]:
        """Get the JSON schema of this tool's arguments."""
        return self.input_model.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Validate raw arguments against the input model."""
        return self.input_model.model_validate(raw_input)


class ToolExecutionService(ABC):
    """Executes tool calls on behalf of the orchestrator."""

    @abstractmethod
    def list_tools(self) -> list[ToolDefinition]:
        """Return the tools this service can execute."""

    @abstractmethod
    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute a tool call and return its result."""
