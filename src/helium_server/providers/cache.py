"""Shared cache of in-process models.

Loading a local model is slow and memory hungry, so loaded handles are kept
per model id and shared by all concurrent runs. The cache is an explicit
object created by the application and injected into the provider that uses
it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from helium_server.services.events import ProgressEvent

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], Any]
ModelLoader = Callable[[str, ProgressSink | None], Awaitable[Any]]


class ModelCache:
    """Single-flight cache of loaded model handles.

    Concurrent lookups for the same key share one load. A failed load is
    forgotten so the next lookup retries. Evicting a key only drops the
    cache's reference; handles already returned to in-flight calls stay
    valid.
    """

    def __init__(self, loader: ModelLoader) -> None:
        self._loader = loader
        self._entries: dict[str, asyncio.Task] = {}

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._entries

    async def get(self, model_id: str, on_progress: ProgressSink | None = None) -> Any:
        """Return the handle for a model, loading it on first use.

        Args:
            model_id: Model identifier
            on_progress: Progress sink, used only by the call that starts the load

        Returns:
            The loaded model handle

        Raises:
            Exception: Whatever the loader raised
        """
        task = self._entries.get(model_id)
        if task is None:
            logger.info(f"Loading model {model_id}")
            task = asyncio.ensure_future(self._loader(model_id, on_progress))
            self._entries[model_id] = task
            task.add_done_callback(lambda t: self._forget_failed(model_id, t))
        else:
            logger.debug(f"Model cache hit: {model_id}")

        # Shielded so a cancelled waiter does not abort the load for others
        return await asyncio.shield(task)

    def _forget_failed(self, model_id: str, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            if self._entries.get(model_id) is task:
                del self._entries[model_id]
                logger.warning(f"Model {model_id} failed to load; removed from cache")

    def evict(self, model_id: str) -> bool:
        """Drop a model from the cache. Returns False if it was not cached."""
        task = self._entries.pop(model_id, None)
        if task is None:
            return False
        logger.info(f"Evicted model {model_id} from cache")
        return True

    def clear(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared model cache ({count} entries)")

    def loaded_models(self) -> list[str]:
        """Ids of models whose load has completed successfully."""
        return [
            model_id
            for model_id, task in self._entries.items()
            if task.done() and not task.cancelled() and task.exception() is None
        ]
