"""Registry of in-flight inference runs, used for cancellation."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class ActiveRunRegistry:
    """Tracks the running task of each session so callers can cancel it.

    The registry only holds task references; all loop state stays inside the
    task that owns it.
    """

    def __init__(self) -> None:
        self._runs: dict[str, asyncio.Task] = {}

    def register(self, session_id: str, task: asyncio.Task) -> None:
        previous = self._runs.get(session_id)
        if previous is not None and not previous.done():
            logger.warning(f"Session {session_id} already has an active run")
        self._runs[session_id] = task

    def unregister(self, session_id: str, task: asyncio.Task | None = None) -> None:
        """Forget a session's run.

        When task is given, the entry is only removed if it still refers to
        that task, so a finished run cannot drop a newer one.
        """
        current = self._runs.get(session_id)
        if current is None:
            return
        if task is None or current is task:
            del self._runs[session_id]

    def cancel(self, session_id: str) -> bool:
        """Cancel the active run of a session.

        Returns:
            bool: True if a running task was cancelled. An unknown or already
            finished session is not an error; it simply returns False.
        """
        task = self._runs.pop(session_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info(f"Cancelled inference for session {session_id}")
        return True

    def active_sessions(self) -> list[str]:
        return [sid for sid, task in self._runs.items() if not task.done()]
