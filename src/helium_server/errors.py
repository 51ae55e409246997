"""Error taxonomy for inference and tool-calling.

Every error the server reports to a caller is one of these kinds. Each
class carries a stable machine-readable ``code`` and the HTTP status the
routers respond with.
"""

from typing import Any


class HeliumError(Exception):
    """Base class for all helium-server errors."""

    code = "helium_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        suggested_actions: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.suggested_actions = suggested_actions or []

    def to_detail(self) -> dict[str, Any]:
        """Render the error envelope used in HTTP and SSE error payloads."""
        details = dict(self.details)
        if self.suggested_actions:
            details["suggested_actions"] = self.suggested_actions
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": details,
            }
        }


class InvalidConfigurationError(HeliumError):
    """The request is missing required data (e.g., no user turn)."""

    code = "invalid_configuration"
    status_code = 400


class ModelNotFoundError(HeliumError):
    """The requested model cannot be loaded."""

    code = "model_not_found"
    status_code = 404


class InferenceFailedError(HeliumError):
    """The backend call failed for transport or runtime reasons."""

    code = "inference_failed"
    status_code = 502


class ToolExecutionFailedError(HeliumError):
    """A single tool call failed.

    Always recovered inside the orchestration loop; never surfaces to callers.
    """

    code = "tool_execution_failed"
    status_code = 500

    def __init__(
        self,
        message: str,
        tool_name: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.tool_name = tool_name


class IterationsExhaustedError(HeliumError):
    """The tool-calling loop hit its iteration cap without a final answer."""

    code = "iterations_exhausted"
    status_code = 500


class InferenceCancelledError(HeliumError):
    """The in-flight inference was cancelled by the caller."""

    code = "inference_cancelled"
    status_code = 499
