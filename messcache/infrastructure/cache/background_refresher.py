"""
Background Refresher

Stale-while-revalidate worker.

Refresh tasks are drained FIFO by a single worker task, started lazily on the
first schedule and exiting once the queue is empty. Tasks are spaced by a
fixed delay so a burst of stale hits does not become a burst of fetches.

A failed refresh is logged, reported to the error sink and dropped; the stale
entry keeps being served until it expires or is overwritten.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from messcache.core.config.constants import Stage
from messcache.core.config.settings import get_settings
from messcache.core.logging import get_logger, log_stage
from messcache.core.utils.clock import Sleep
from messcache.infrastructure.cache.memory_cache import MemoryCache
from messcache.infrastructure.cache.persistent_cache import ErrorSink, PersistentCache

logger = get_logger(__name__)

COMPONENT = "background_refresher"


@dataclass
class RefreshTask:
    key: str
    fetch_fn: Callable[[], Awaitable[Any]]
    ttl: float


class BackgroundRefresher:
    """
    Serialized refresh queue writing through to both cache tiers.

    Usage:
        refresher = BackgroundRefresher(memory, persistent)
        refresher.schedule_refresh("profile:42", fetch_profile, ttl=300_000)
        await refresher.join()
    """

    def __init__(
        self,
        memory: MemoryCache,
        persistent: PersistentCache,
        sleep: Sleep | None = None,
        delay_ms: float | None = None,
        error_sink: ErrorSink | None = None,
    ):
        self._memory = memory
        self._persistent = persistent
        self._sleep = sleep or asyncio.sleep
        self._delay_ms = (
            delay_ms if delay_ms is not None else get_settings().cache.CACHE_BACKGROUND_DELAY_MS
        )
        self._error_sink = error_sink
        self._queue: deque[RefreshTask] = deque()
        self._worker: asyncio.Task | None = None

    @property
    def is_processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def queue_size(self) -> int:
        """Tasks waiting to run (excludes the one in progress)."""
        return len(self._queue)

    def schedule_refresh(
        self, key: str, fetch_fn: Callable[[], Awaitable[Any]], ttl: float
    ) -> None:
        """Queue a refresh of key and make sure the worker is running."""
        self._queue.append(RefreshTask(key=key, fetch_fn=fetch_fn, ttl=ttl))
        log_stage(
            logger,
            Stage.BACKGROUND_REFRESH,
            "Background refresh scheduled",
            cache_key=key,
            queue_size=len(self._queue),
        )
        if not self.is_processing:
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            task = self._queue.popleft()
            await self._refresh(task)
            await self._sleep(self._delay_ms / 1000)

    async def _refresh(self, task: RefreshTask) -> None:
        try:
            data = await task.fetch_fn()
        except Exception as e:
            log_stage(
                logger,
                Stage.BACKGROUND_REFRESH,
                "Background refresh failed",
                level="warning",
                cache_key=task.key,
                error=str(e),
                error_type=type(e).__name__,
            )
            if self._error_sink is not None:
                self._error_sink(COMPONENT, e)
            return

        self._memory.set(task.key, data, task.ttl)
        await self._persistent.set(task.key, data, task.ttl)
        log_stage(logger, Stage.BACKGROUND_REFRESH, "Background refresh complete", cache_key=task.key)

    async def join(self) -> None:
        """Wait until the queue is drained and the worker has exited."""
        while self.is_processing:
            await asyncio.shield(self._worker)

    def clear(self) -> None:
        """Drop queued tasks. A refresh already running completes normally."""
        self._queue.clear()

    async def shutdown(self) -> None:
        self.clear()
        if self.is_processing:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
