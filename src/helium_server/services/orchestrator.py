"""Tool-calling orchestration loop.

ToolCallingOrchestrator drives a conversation through repeated
dispatch -> detect -> execute -> fold rounds until the model answers without
requesting a tool, or the iteration cap is reached.

Each round:
1. The request (with the mode's system prompt prepended when the
   conversation has none) is sent to the provider for its ModelProvider.
2. The reply is checked for tool-call markup. No markup, or markup without a
   single well-formed call, ends the run with the reply as-is.
3. Each call is executed in textual order. Failures become error records and
   error-result turns; they never stop the loop.
4. The cleaned assistant turn and one result turn per call are appended to
   the conversation for the next round.

All state lives inside one run() call, so one orchestrator serves any number
of concurrent runs.
"""

import asyncio
import logging
import time
from dataclasses import replace

from helium_server.errors import (
    HeliumError,
    InferenceFailedError,
    InvalidConfigurationError,
    IterationsExhaustedError,
    ToolExecutionFailedError,
)
from helium_server.inference.types import (
    InferenceRequest,
    InferenceResponse,
    Message,
    MessageRole,
    ToolCall,
    ToolExecutionRecord,
    ToolStatus,
)
from helium_server.providers.base import InferenceProvider
from helium_server.providers.registry import ProviderRegistry
from helium_server.services.context_builder import DEFAULT_MAX_CONTEXT_CHARS
from helium_server.services.events import RunCallbacks, ToolExecutionEvent
from helium_server.services.prompts import prepare_request
from helium_server.tools.calling import (
    detect_tool_call,
    extract_tool_calls,
    format_tool_instructions,
    format_tool_result,
    strip_markup,
)
from helium_server.tools.execution import ToolExecutionService, ToolResult

logger = logging.getLogger(__name__)

MAX_TOOL_ITERATIONS = 5
RESULT_PREVIEW_CHARS = 200


class ToolCallingOrchestrator:
    """Runs inference with tool calling.

    Attributes:
        providers: Registry used to pick the provider for each request
        tool_service: Service that executes the tools the model asks for
        max_iterations: Maximum number of provider calls per run
        tool_timeout: Optional per-call timeout for tool execution, in seconds
        context_max_chars: Character budget of the file-system context block
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        tool_service: ToolExecutionService,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        tool_timeout: float | None = None,
        context_max_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.providers = providers
        self.tool_service = tool_service
        self.max_iterations = max_iterations
        self.tool_timeout = tool_timeout
        self.context_max_chars = context_max_chars

    async def run(
        self, request: InferenceRequest, callbacks: RunCallbacks | None = None
    ) -> InferenceResponse:
        """Run the tool-calling loop for a request.

        Args:
            request: Conversation, model config, mode and optional fs context
            callbacks: Optional sinks for chunks, tool events and progress

        Returns:
            InferenceResponse: The final reply. When tools ran, its message
                carries the execution records and its time covers the whole run.

        Raises:
            InvalidConfigurationError: No user turn, or provider not configured
            IterationsExhaustedError: The model kept requesting tools
            HeliumError: Any other provider failure
            asyncio.CancelledError: The run was cancelled
        """
        callbacks = callbacks or RunCallbacks()

        if request.last_user_message() is None:
            raise InvalidConfigurationError(
                "Conversation has no user message",
                details={"session_id": request.session_id},
            )

        provider = self.providers.get(request.model_config.provider)
        tools_description = format_tool_instructions(self.tool_service.list_tools())

        started = time.perf_counter()
        conversation = request.messages
        records: list[ToolExecutionRecord] = []

        try:
            for iteration in range(1, self.max_iterations + 1):
                logger.info(
                    f"Session {request.session_id}: iteration {iteration}/"
                    f"{self.max_iterations} with {request.model_config.model_id}"
                )

                prepared = prepare_request(
                    replace(request, messages=conversation),
                    tools_description,
                    self.context_max_chars,
                )
                response = await self._dispatch(provider, prepared, callbacks)
                reply_text = response.message.content

                if not detect_tool_call(reply_text):
                    return self._finish(response, records, started)

                calls = extract_tool_calls(reply_text)
                if not calls:
                    logger.warning(
                        "Reply contains tool-call markup but no well-formed call; "
                        "returning it as the final answer"
                    )
                    return self._finish(response, records, started)

                logger.info(f"Executing {len(calls)} tool call(s)")
                folded = [Message.create(MessageRole.ASSISTANT, strip_markup(reply_text))]
                for call in calls:
                    record = await self._execute(call, callbacks)
                    records.append(record)
                    folded.append(self._result_turn(record))

                conversation = (*conversation, *folded)
        except asyncio.CancelledError:
            logger.info(f"Session {request.session_id}: run cancelled")
            raise

        logger.warning(
            f"Session {request.session_id}: tool loop exhausted after "
            f"{self.max_iterations} iterations"
        )
        raise IterationsExhaustedError(
            f"Tool calling did not finish within {self.max_iterations} iterations",
            details={
                "max_iterations": self.max_iterations,
                "tool_executions": len(records),
            },
            suggested_actions=["Rephrase the request or narrow its scope"],
        )

    async def _dispatch(
        self,
        provider: InferenceProvider,
        request: InferenceRequest,
        callbacks: RunCallbacks,
    ) -> InferenceResponse:
        try:
            return await provider.generate(request, callbacks)
        except HeliumError:
            raise
        except Exception as e:
            logger.error(f"Provider {provider.provider.value} failed: {e}")
            raise InferenceFailedError(
                f"Inference failed: {e}",
                details={"provider": provider.provider.value},
            ) from e

    async def _call_tool(self, call: ToolCall) -> ToolResult:
        if self.tool_timeout is None:
            return await self.tool_service.execute(call)
        return await asyncio.wait_for(
            self.tool_service.execute(call), timeout=self.tool_timeout
        )

    async def _execute(
        self, call: ToolCall, callbacks: RunCallbacks
    ) -> ToolExecutionRecord:
        callbacks.emit_tool_execution(
            ToolExecutionEvent(
                tool_name=call.name,
                arguments=call.arguments,
                status=ToolStatus.EXECUTING,
            )
        )

        started = time.perf_counter()
        result: ToolResult | None = None
        failure: ToolExecutionFailedError | None = None
        try:
            result = await self._call_tool(call)
        except asyncio.TimeoutError:
            failure = ToolExecutionFailedError(
                f"Tool '{call.name}' timed out after {self.tool_timeout}s",
                tool_name=call.name,
                details={"timeout_seconds": self.tool_timeout},
            )
        except Exception as e:
            logger.error(f"Tool {call.name} raised: {e}")
            failure = ToolExecutionFailedError(
                str(e) or type(e).__name__,
                tool_name=call.name,
                details={"exception": type(e).__name__},
            )
        else:
            if result.is_error:
                failure = ToolExecutionFailedError(result.content, tool_name=call.name)
        elapsed_ms = (time.perf_counter() - started) * 1000

        if failure is None:
            record = ToolExecutionRecord(
                tool_name=call.name,
                arguments=call.arguments,
                status=ToolStatus.SUCCESS,
                result=result.content,
                execution_time_ms=elapsed_ms,
            )
            logger.info(
                f"Tool {call.name} succeeded in {elapsed_ms:.1f}ms: "
                f"{record.result[:RESULT_PREVIEW_CHARS]}"
            )
        else:
            record = ToolExecutionRecord(
                tool_name=call.name,
                arguments=call.arguments,
                status=ToolStatus.ERROR,
                error=failure.message,
                execution_time_ms=elapsed_ms,
            )
            logger.warning(f"Tool {call.name} failed: {failure.message}")

        callbacks.emit_tool_execution(
            ToolExecutionEvent(
                tool_name=record.tool_name,
                arguments=record.arguments,
                status=record.status,
                result=record.result,
                error=record.error,
                execution_time_ms=record.execution_time_ms,
            )
        )
        return record

    @staticmethod
    def _result_turn(record: ToolExecutionRecord) -> Message:
        is_error = record.status == ToolStatus.ERROR
        body = record.error if is_error else record.result
        return Message.create(
            MessageRole.USER,
            format_tool_result(record.tool_name, body or "", is_error),
            tool_name=record.tool_name,
        )

    @staticmethod
    def _finish(
        response: InferenceResponse,
        records: list[ToolExecutionRecord],
        started: float,
    ) -> InferenceResponse:
        if not records:
            return response
        message = replace(response.message, tool_executions=tuple(records))
        return replace(
            response,
            message=message,
            inference_time_ms=(time.perf_counter() - started) * 1000,
        )
