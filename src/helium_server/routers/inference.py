"""Inference API endpoints.

This module runs the tool-calling orchestrator for a caller-supplied
conversation, either returning the final reply in one response or streaming
chunks, tool executions and progress via SSE. Every run is registered by
session id so it can be cancelled from another request.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from helium_server.config import HeliumServerSettings
from helium_server.dependencies import (
    get_active_runs,
    get_app_settings,
    get_orchestrator,
    http_error,
)
from helium_server.errors import HeliumError, InferenceCancelledError
from helium_server.inference.types import InferenceRequest
from helium_server.models.inference import (
    CancelResponse,
    ContentDeltaEvent,
    DoneEvent,
    ErrorEvent,
    InferenceRequestBody,
    InferenceResponseBody,
    MessageCompleteEvent,
    ProgressSSEEvent,
    ToolExecutionSSEEvent,
)
from helium_server.services.events import (
    ChunkEvent,
    EventChannel,
    ProgressEvent,
    RunEvent,
    ToolExecutionEvent,
)
from helium_server.services.orchestrator import ToolCallingOrchestrator
from helium_server.services.runs import ActiveRunRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/inference", tags=["inference"])


def _prepare(
    body: InferenceRequestBody,
    settings: HeliumServerSettings,
    orchestrator: ToolCallingOrchestrator,
) -> InferenceRequest:
    inference_request = body.to_domain(settings)
    # Fail before starting a run if the provider is not configured
    try:
        orchestrator.providers.get(inference_request.model_config.provider)
    except HeliumError as e:
        raise http_error(e)
    return inference_request


def _cancelled_error(session_id: str) -> InferenceCancelledError:
    return InferenceCancelledError(
        f"Inference for session {session_id} was cancelled",
        details={"session_id": session_id},
    )


def _to_sse(event: RunEvent) -> dict[str, str]:
    if isinstance(event, ChunkEvent):
        return {
            "event": "content_delta",
            "data": ContentDeltaEvent(content=event.content).model_dump_json(),
        }
    elif isinstance(event, ToolExecutionEvent):
        return {
            "event": "tool_execution",
            "data": ToolExecutionSSEEvent.model_validate(event).model_dump_json(),
        }
    elif isinstance(event, ProgressEvent):
        return {
            "event": "progress",
            "data": ProgressSSEEvent.model_validate(event).model_dump_json(),
        }
    raise TypeError(f"Unknown run event: {type(event).__name__}")


def _error_sse(error: HeliumError) -> dict[str, str]:
    detail = error.to_detail()["error"]
    return {
        "event": "error",
        "data": ErrorEvent(
            code=detail["code"],
            message=detail["message"],
            details=detail["details"],
        ).model_dump_json(),
    }


@router.post("", response_model=InferenceResponseBody)
async def run_inference(
    body: InferenceRequestBody,
    settings: HeliumServerSettings = Depends(get_app_settings),
    orchestrator: ToolCallingOrchestrator = Depends(get_orchestrator),
    active_runs: ActiveRunRegistry = Depends(get_active_runs),
) -> InferenceResponseBody:
    """Run inference with tool calling and return the final reply.

    Raises:
        HTTPException: With the error envelope and the status code of the
            error kind (400 invalid configuration, 404 model not found,
            499 cancelled, 500 iterations exhausted, 502 inference failed)
    """
    inference_request = _prepare(body, settings, orchestrator)
    session_id = inference_request.session_id

    task = asyncio.ensure_future(orchestrator.run(inference_request))
    active_runs.register(session_id, task)
    try:
        response = await task
    except asyncio.CancelledError:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            # The HTTP request itself is going away
            raise
        raise http_error(_cancelled_error(session_id))
    except HeliumError as e:
        logger.warning(f"Inference for session {session_id} failed: {e.message}")
        raise http_error(e)
    finally:
        active_runs.unregister(session_id, task)

    return InferenceResponseBody.from_domain(inference_request, response)


@router.post("/stream")
async def stream_inference(
    body: InferenceRequestBody,
    settings: HeliumServerSettings = Depends(get_app_settings),
    orchestrator: ToolCallingOrchestrator = Depends(get_orchestrator),
    active_runs: ActiveRunRegistry = Depends(get_active_runs),
) -> EventSourceResponse:
    """Run inference with tool calling, streaming events via SSE.

    SSE Events:
        - content_delta: Each text chunk from the model
        - tool_execution: A tool started (executing) or finished (success/error)
        - progress: Model load or generation progress
        - message_complete: The final response, including tool executions
        - error: The run failed or was cancelled
        - done: Stream is complete

    Chunks already sent are never retracted, so a failed run can end with
    partial content followed by an error event.
    """
    inference_request = _prepare(body, settings, orchestrator)
    session_id = inference_request.session_id

    channel = EventChannel()
    subscription = channel.subscribe()
    task = asyncio.ensure_future(
        orchestrator.run(inference_request, channel.callbacks())
    )
    task.add_done_callback(lambda _: channel.close())
    active_runs.register(session_id, task)

    logger.info(f"Starting streaming inference for session {session_id}")

    async def event_generator():
        """Relay run events, then the outcome of the run."""
        try:
            async for event in subscription:
                yield _to_sse(event)

            try:
                response = task.result()
            except asyncio.CancelledError:
                yield _error_sse(_cancelled_error(session_id))
                return
            except HeliumError as e:
                logger.warning(
                    f"Streaming inference for session {session_id} failed: {e.message}"
                )
                yield _error_sse(e)
                return
            except Exception as e:
                logger.error(f"Error during streaming for session {session_id}: {e}")
                yield {
                    "event": "error",
                    "data": ErrorEvent(
                        code="internal_error",
                        message=f"Failed to generate response: {e}",
                        details={"session_id": session_id},
                    ).model_dump_json(),
                }
                return

            complete_event = MessageCompleteEvent(
                response=InferenceResponseBody.from_domain(inference_request, response)
            )
            yield {
                "event": "message_complete",
                "data": complete_event.model_dump_json(),
            }
            yield {
                "event": "done",
                "data": DoneEvent(session_id=session_id).model_dump_json(),
            }
        finally:
            if not task.done():
                logger.warning(
                    f"Client disconnected during streaming for session {session_id}"
                )
                task.cancel()
            active_runs.unregister(session_id, task)

    return EventSourceResponse(event_generator())


@router.post("/{session_id}/cancel", response_model=CancelResponse)
async def cancel_inference(
    session_id: str,
    active_runs: ActiveRunRegistry = Depends(get_active_runs),
) -> CancelResponse:
    """Cancel the in-flight run of a session.

    Cancelling a session with no active run is not an error; the response
    reports cancelled=false.
    """
    cancelled = active_runs.cancel(session_id)
    return CancelResponse(session_id=session_id, cancelled=cancelled)
