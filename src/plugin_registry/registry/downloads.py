"""Detached download counting.

Downloads are served before their counter is bumped: the increment runs as a
background task so the response never waits on the index lock. Failures are
never dropped silently; each one is logged and counted.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from plugin_registry.logging_config import get_logger
from plugin_registry.registry.models import EntityKind

if TYPE_CHECKING:
    from plugin_registry.registry.index_store import IndexStore
    from plugin_registry.registry.metrics import RegistryMetrics

logger = get_logger(__name__)


class DownloadRecorder:
    """Schedules download-counter increments off the request path."""

    def __init__(self, index: IndexStore, metrics: RegistryMetrics | None = None) -> None:
        self._index = index
        self._metrics = metrics
        self._background_tasks: set[asyncio.Task[bool]] = set()

    @property
    def pending(self) -> int:
        """Number of increments not yet finished."""
        return len(self._background_tasks)

    def record(self, kind: EntityKind | str, entity_id: str) -> bool:
        """Increment synchronously.

        Returns:
            True if a counter was incremented (False for an unknown id).
        """
        kind = EntityKind.parse(kind)
        counted = self._index.increment_downloads(kind, entity_id)
        if counted and self._metrics is not None:
            self._metrics.record_download(kind)
        return counted

    def schedule(self, kind: EntityKind | str, entity_id: str) -> asyncio.Task[bool]:
        """Run record() on a worker thread as a detached task.

        Must be called from within a running event loop.
        """
        kind = EntityKind.parse(kind)
        task = asyncio.create_task(asyncio.to_thread(self.record, kind, entity_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        task.add_done_callback(lambda t: self._report(t, kind, entity_id))
        return task

    def _report(self, task: asyncio.Task[bool], kind: EntityKind, entity_id: str) -> None:
        if task.cancelled():
            logger.warning(
                "Download count update cancelled",
                extra={"kind": kind.value, "id": entity_id},
            )
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error(
            "Download count update failed",
            extra={"kind": kind.value, "id": entity_id, "error": str(exc)},
            exc_info=exc,
        )
        if self._metrics is not None:
            self._metrics.record_download_failure(kind)

    async def drain(self) -> None:
        """Wait for every scheduled increment to finish (errors already reported)."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
