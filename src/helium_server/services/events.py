"""Event delivery for inference runs.

An inference run reports three kinds of side-channel events: streamed text
chunks, tool execution updates and model load/generation progress. They are
best-effort: a failing sink is logged and ignored, and the value returned by
the run stays the authoritative result.

RunCallbacks is the plain-callable form. EventChannel fans events out to any
number of asyncio subscribers, which is what the SSE endpoint consumes.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, AsyncIterator

from helium_server.inference.types import ToolStatus

logger = logging.getLogger(__name__)

# Async sinks still running
_sink_tasks: set[asyncio.Task] = set()


@dataclass(frozen=True)
class ChunkEvent:
    content: str


@dataclass(frozen=True)
class ToolExecutionEvent:
    """A tool execution update (executing, then success or error)."""

    tool_name: str
    arguments: dict[str, Any]
    status: ToolStatus
    result: str | None = None
    error: str | None = None
    execution_time_ms: float | None = None


@dataclass(frozen=True)
class ProgressEvent:
    """Model load or generation progress."""

    model_id: str
    status: str
    progress: float | None = None
    message: str | None = None


RunEvent = ChunkEvent | ToolExecutionEvent | ProgressEvent


@dataclass
class RunCallbacks:
    """Optional fire-and-forget sinks for run events.

    A sink may be a plain callable or a coroutine function. Coroutines are
    scheduled on the running loop and not awaited by the run.
    """

    on_chunk: Callable[[str], Any] | None = None
    on_tool_execution: Callable[[ToolExecutionEvent], Any] | None = None
    on_progress: Callable[[ProgressEvent], Any] | None = None

    def emit_chunk(self, content: str) -> None:
        self._invoke("on_chunk", self.on_chunk, content)

    def emit_tool_execution(self, event: ToolExecutionEvent) -> None:
        self._invoke("on_tool_execution", self.on_tool_execution, event)

    def emit_progress(self, event: ProgressEvent) -> None:
        self._invoke("on_progress", self.on_progress, event)

    @staticmethod
    def _invoke(name: str, sink: Callable[[Any], Any] | None, payload: Any) -> None:
        if sink is None:
            return
        try:
            result = sink(payload)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                _sink_tasks.add(task)
                task.add_done_callback(lambda t: _sink_finished(name, t))
        except Exception as e:
            logger.warning(f"Callback {name} failed, ignoring: {e}")


def _sink_finished(name: str, task: asyncio.Task) -> None:
    _sink_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(f"Callback {name} failed, ignoring: {error}")


_CLOSED = object()


class EventSubscription:
    """Async iterator over the events published to a channel."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()

    def __aiter__(self) -> AsyncIterator[RunEvent]:
        return self

    async def __anext__(self) -> RunEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class EventChannel:
    """One-to-many delivery of run events.

    Subscriptions are registered synchronously, so subscribing before the run
    starts guarantees no event is missed. Publishing never blocks.
    """

    def __init__(self) -> None:
        self._subscriptions: list[EventSubscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> EventSubscription:
        subscription = EventSubscription()
        if self._closed:
            subscription._queue.put_nowait(_CLOSED)
        else:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: RunEvent) -> None:
        if self._closed:
            logger.debug(f"Dropping {type(event).__name__} on closed channel")
            return
        for subscription in self._subscriptions:
            subscription._queue.put_nowait(event)

    def close(self) -> None:
        """End every subscription once its pending events are consumed."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription._queue.put_nowait(_CLOSED)

    def callbacks(self) -> RunCallbacks:
        """Return callbacks that publish into this channel."""
        return RunCallbacks(
            on_chunk=lambda content: self.publish(ChunkEvent(content=content)),
            on_tool_execution=self.publish,
            on_progress=self.publish,
        )
