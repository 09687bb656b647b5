"""
Cache Orchestrator

Single entry point for cached, de-duplicated, rate-limited, retried fetches.

Architecture:
    CacheOrchestrator (Public API: get_or_fetch)
        ├── in-flight map (one asyncio.Task per key)
        ├── RateLimiter (fail-fast gate)
        ├── MemoryCache (tier 1)
        ├── PersistentCache (tier 2, over a DurableStore)
        ├── RetryExecutor (exponential backoff)
        ├── BackgroundRefresher (stale-while-revalidate)
        └── PerformanceMonitor (samples + absorbed-error sink)

Lookup order (get_or_fetch):
    1. In-flight fetch for the key   -> join it
    2. Rate gate                     -> RateLimitExceededError when exhausted
    3. Memory tier                   -> hit (maybe schedule background refresh)
    4. Persistent tier               -> hit, promoted into memory
    5. Fetch through RetryExecutor   -> both tiers populated

The gate runs before the cache lookups, so cache hits are metered too.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any, TypeVar

from messcache.core.config.constants import ResourceClass, Stage
from messcache.core.config.settings import Settings, get_settings
from messcache.core.exceptions import RateLimitExceededError
from messcache.core.interfaces import DurableStore
from messcache.core.logging import get_logger, log_stage
from messcache.core.observability import PerformanceMonitor, TraceHandle, get_performance_monitor
from messcache.core.resilience import RateLimiter, RequestKey, RetryExecutor, resolve_key
from messcache.core.utils.clock import Clock, Sleep, now_ms
from messcache.infrastructure.cache.background_refresher import BackgroundRefresher
from messcache.infrastructure.cache.durable_store import InMemoryDurableStore, RedisDurableStore
from messcache.infrastructure.cache.entry import CacheEntry
from messcache.infrastructure.cache.memory_cache import MemoryCache
from messcache.infrastructure.cache.persistent_cache import PersistentCache

logger = get_logger(__name__)

T = TypeVar("T")


def _cache_default(name: str) -> Callable[[], Any]:
    return lambda: getattr(get_settings().cache, name)


@dataclass
class RequestOptions:
    """
    Per-call options for get_or_fetch.

    Attributes:
        ttl: Entry lifetime (ms)
        force_refresh: Skip both cache tiers and fetch
        background: Serve stale-but-live hits and refresh them in the background
        retry_count: Retries after the first failed attempt
        retry_delay: Base backoff delay (ms)
        resource_class: Explicit rate policy class (otherwise derived from the key)
    """

    ttl: float = field(default_factory=_cache_default("CACHE_DEFAULT_TTL_MS"))
    force_refresh: bool = False
    background: bool = False
    retry_count: int = field(default_factory=_cache_default("CACHE_RETRY_COUNT"))
    retry_delay: float = field(default_factory=_cache_default("CACHE_RETRY_DELAY_MS"))
    resource_class: ResourceClass | None = None


def build_durable_store(settings: Settings | None = None) -> DurableStore:
    """Durable store selected by CACHE_PERSISTENT_BACKEND."""
    settings = settings or get_settings()
    if settings.cache.CACHE_PERSISTENT_BACKEND == "redis":
        return RedisDurableStore(settings)
    return InMemoryDurableStore()


class CacheOrchestrator:
    """
    Two-tier cache with request coalescing.

    Every collaborator is injectable so tests can build isolated instances;
    get_cache_service() returns the process-wide one.

    Usage:
        cache = get_cache_service()
        profile = await cache.get_or_fetch("profile:42", fetch_profile, ttl=1000)
    """

    def __init__(
        self,
        store: DurableStore | None = None,
        rate_limiter: RateLimiter | None = None,
        monitor: PerformanceMonitor | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
        background_delay_ms: float | None = None,
        settings: Settings | None = None,
    ):
        cache_settings = (settings or get_settings()).cache
        self._default_options = RequestOptions(
            ttl=cache_settings.CACHE_DEFAULT_TTL_MS,
            retry_count=cache_settings.CACHE_RETRY_COUNT,
            retry_delay=cache_settings.CACHE_RETRY_DELAY_MS,
        )
        self._clock = clock or now_ms
        self._monitor = monitor or get_performance_monitor()

        self._memory = MemoryCache(self._clock)
        self._persistent = PersistentCache(
            store, clock=self._clock, error_sink=self._monitor.record_internal_error
        )
        self._limiter = rate_limiter or RateLimiter(clock=self._clock)
        self._retry = RetryExecutor(sleep=sleep)
        self._refresher = BackgroundRefresher(
            self._memory,
            self._persistent,
            sleep=sleep,
            delay_ms=(
                background_delay_ms
                if background_delay_ms is not None
                else cache_settings.CACHE_BACKGROUND_DELAY_MS
            ),
            error_sink=self._monitor.record_internal_error,
        )
        self._in_flight: dict[str, asyncio.Task] = {}

    @property
    def default_options(self) -> RequestOptions:
        """Options used when get_or_fetch is called without an options object."""
        return self._default_options

    @property
    def memory(self) -> MemoryCache:
        return self._memory

    @property
    def persistent(self) -> PersistentCache:
        return self._persistent

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def refresher(self) -> BackgroundRefresher:
        return self._refresher

    @property
    def monitor(self) -> PerformanceMonitor:
        return self._monitor

    # =========================================================================
    # Public API
    # =========================================================================

    async def get_or_fetch(
        self,
        key: RequestKey,
        fetch_fn: Callable[[], Awaitable[T]],
        options: RequestOptions | None = None,
        **overrides: Any,
    ) -> T:
        """
        Return the value for key from cache, or fetch it.

        Args:
            key: Cache key (string or ResourceKey)
            fetch_fn: Zero-argument async callable producing the value
            options: RequestOptions; keyword overrides are applied on top
                (ttl, force_refresh, background, retry_count, retry_delay,
                resource_class)

        Returns:
            Cached or freshly fetched value. Concurrent callers of the same
            key share one fetch and receive the same result.

        Raises:
            RateLimitExceededError: The key's rate window is exhausted
            Exception: fetch_fn's last error after retries are exhausted
        """
        opts = replace(options or self._default_options, **overrides)
        literal, resource_class = resolve_key(key, opts.resource_class)

        with self._monitor.track(literal) as trace:
            return await self._resolve(literal, resource_class, fetch_fn, opts, trace)

    async def _resolve(
        self,
        key: str,
        resource_class: ResourceClass,
        fetch_fn: Callable[[], Awaitable[T]],
        opts: RequestOptions,
        trace: TraceHandle,
    ) -> T:
        pending = self._in_flight.get(key)
        if pending is not None:
            log_stage(logger, Stage.DEDUPLICATION, "Joining in-flight request", cache_key=key)
            return await asyncio.shield(pending)

        if not self._limiter.try_acquire(key, resource_class):
            retry_after = self._limiter.get_retry_after(key, resource_class)
            log_stage(
                logger,
                Stage.RATE_LIMITING,
                "Request rejected by rate limiter",
                level="warning",
                cache_key=key,
                retry_after_ms=retry_after,
            )
            raise RateLimitExceededError.for_key(key, retry_after).with_context(
                resource_class=resource_class.value
            )

        if not opts.force_refresh:
            entry = self._memory.get(key)
            if entry is not None:
                log_stage(logger, Stage.MEMORY_LOOKUP, "Memory cache hit", cache_key=key)
                self._maybe_refresh(key, entry, fetch_fn, opts)
                trace.cache_hit = True
                return entry.data

            entry = await self._persistent.get(key)
            if entry is not None:
                log_stage(logger, Stage.PERSISTENT_LOOKUP, "Persistent cache hit", cache_key=key)
                self._memory.set(key, entry.data, opts.ttl, entry.etag)
                self._maybe_refresh(key, entry, fetch_fn, opts)
                trace.cache_hit = True
                return entry.data

            # The persistent lookup suspended; another caller may have started the fetch
            pending = self._in_flight.get(key)
            if pending is not None:
                log_stage(logger, Stage.DEDUPLICATION, "Joining in-flight request", cache_key=key)
                return await asyncio.shield(pending)

        log_stage(logger, Stage.FETCH, "Fetching fresh data", cache_key=key)
        task = asyncio.get_running_loop().create_task(
            self._fetch(key, resource_class, fetch_fn, opts)
        )
        self._in_flight[key] = task
        # A caller that gives up must not cancel the fetch other callers share
        return await asyncio.shield(task)

    async def _fetch(
        self,
        key: str,
        resource_class: ResourceClass,
        fetch_fn: Callable[[], Awaitable[T]],
        opts: RequestOptions,
    ) -> T:
        try:
            data = await self._retry.run(key, fetch_fn, opts.retry_count, opts.retry_delay)
            self._limiter.record(key, resource_class)

            self._memory.set(key, data, opts.ttl)
            await self._persistent.set(key, data, opts.ttl)
            log_stage(logger, Stage.CACHE_POPULATION, "Cached fresh data", cache_key=key, ttl=opts.ttl)
            return data
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    def _maybe_refresh(
        self,
        key: str,
        entry: CacheEntry,
        fetch_fn: Callable[[], Awaitable[Any]],
        opts: RequestOptions,
    ) -> None:
        if opts.background and entry.should_refresh(self._clock()):
            self._refresher.schedule_refresh(key, fetch_fn, opts.ttl)

    async def clear_cache(self, key: RequestKey) -> None:
        """Remove key from both tiers."""
        literal, _ = resolve_key(key)
        self._memory.delete(literal)
        await self._persistent.delete(literal)
        log_stage(logger, Stage.CACHE_INVALIDATION, "Cache entry cleared", cache_key=literal)

    async def clear_all_caches(self) -> None:
        """
        Reset the whole layer: both tiers, in-flight map, rate counters and
        the background queue.

        Fetches already running are not cancelled; a fetch that completes
        after the clear still populates the cache.
        """
        self._memory.clear()
        await self._persistent.clear()
        self._in_flight.clear()
        self._limiter.reset()
        self._refresher.clear()
        log_stage(logger, Stage.CACHE_INVALIDATION, "All caches cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        return {
            "memory_cache_size": self._memory.size(),
            "pending_requests": len(self._in_flight),
            "background_queue_size": self._refresher.queue_size(),
            "rate_limit_info": self._limiter.snapshot(),
        }

    async def shutdown(self) -> None:
        """Stop background work and wait for in-flight fetches to settle."""
        await self._refresher.shutdown()
        if self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)
        logger.info("Cache orchestrator shut down")


# Global orchestrator instance (singleton)
_cache_service: CacheOrchestrator | None = None


def get_cache_service() -> CacheOrchestrator:
    """
    Get the global cache orchestrator (singleton).

    The durable store is chosen from settings. A Redis store must be connected
    before use; the API lifespan does this.
    """
    global _cache_service

    if _cache_service is None:
        _cache_service = CacheOrchestrator(store=build_durable_store())

    return _cache_service


def reset_cache_service() -> None:
    """Drop the global instance (tests)."""
    global _cache_service
    _cache_service = None
