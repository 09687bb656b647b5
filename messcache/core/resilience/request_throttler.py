"""
Request Throttler

Queue-instead-of-fail request throttling.

When a key's window has capacity the request runs immediately; otherwise it
waits in a priority queue until capacity frees up.

Queue semantics:
- Ordered by priority (high → low), then enqueue time, then arrival sequence
  (a stable priority queue: FIFO within equal priority)
- A single drain worker inspects the head; if the head's key is throttled it
  sleeps for the head's retry_after_ms and re-checks the SAME head.
  Later requests wait behind it even when they target other keys
  (head-of-line blocking, not per-key fairness)
- Counters are independent from the orchestrator's RateLimiter
"""

import asyncio
import heapq
import itertools
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any, TypeVar

from messcache.core.config.constants import RequestPriority, ResourceClass, Stage
from messcache.core.exceptions import ConfigurationError, QueueClearedError
from messcache.core.logging import get_logger, log_stage
from messcache.core.resilience.rate_limiter import (
    RatePolicy,
    RequestKey,
    SlidingWindowCounter,
    default_policies,
    resolve_key,
)
from messcache.core.utils.clock import Clock, Sleep, now_ms

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_PRIORITIES: dict[ResourceClass, RequestPriority] = {
    ResourceClass.PHOTO: RequestPriority.HIGH,
    ResourceClass.PROFILE: RequestPriority.NORMAL,
    ResourceClass.USER: RequestPriority.NORMAL,
    ResourceClass.GENERAL: RequestPriority.LOW,
}


@dataclass(frozen=True)
class ThrottleConfig:
    """Rate policy plus queue priority for one request."""

    max_requests: int
    time_window_ms: int
    retry_after_ms: int
    priority: RequestPriority = RequestPriority.NORMAL

    @property
    def policy(self) -> RatePolicy:
        return RatePolicy(self.max_requests, self.time_window_ms, self.retry_after_ms)

    def merged(self, overrides: "ThrottleConfig | Mapping[str, Any] | None") -> "ThrottleConfig":
        """Apply partial overrides (unknown keys are ignored)."""
        if overrides is None:
            return self
        if isinstance(overrides, ThrottleConfig):
            return overrides

        known = {f.name for f in fields(self)}
        values = {k: v for k, v in overrides.items() if k in known and v is not None}
        if "priority" in values:
            try:
                values["priority"] = RequestPriority.parse(values["priority"])
            except (KeyError, ValueError) as e:
                raise ConfigurationError(
                    f"Unknown request priority: {values['priority']!r}",
                    details={"allowed": [p.name.lower() for p in RequestPriority]},
                ) from e
        return replace(self, **values)


@dataclass
class QueuedRequest:
    """A request waiting for capacity. `future` is its result channel."""

    id: str
    execute: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    priority: RequestPriority
    timestamp: float
    sequence: int
    config: ThrottleConfig

    @property
    def sort_key(self) -> tuple[int, float, int]:
        return (-int(self.priority), self.timestamp, self.sequence)


class RequestThrottler:
    """
    Throttles request execution per key, queueing what cannot run yet.

    Usage:
        throttler = RequestThrottler()
        photo = await throttler.execute_request("photo:9", upload, {"priority": "high"})
    """

    def __init__(
        self,
        policies: dict[ResourceClass, RatePolicy] | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ):
        self._policies = policies or default_policies()
        self._clock = clock or now_ms
        self._sleep = sleep or asyncio.sleep
        self._counter = SlidingWindowCounter(self._clock)
        self._queue: list[tuple[int, float, int, QueuedRequest]] = []
        self._sequence = itertools.count()
        self._worker: asyncio.Task | None = None

    @property
    def processing(self) -> bool:
        """True while the drain worker is running."""
        return self._worker is not None and not self._worker.done()

    def get_throttle_config(
        self,
        key: RequestKey,
        config: ThrottleConfig | Mapping[str, Any] | None = None,
        resource_class: ResourceClass | None = None,
    ) -> ThrottleConfig:
        """Class defaults for the key, with caller overrides applied."""
        _, cls = resolve_key(key, resource_class)
        policy = self._policies.get(cls, self._policies[ResourceClass.GENERAL])
        base = ThrottleConfig(
            max_requests=policy.max_requests,
            time_window_ms=policy.time_window_ms,
            retry_after_ms=policy.retry_after_ms,
            priority=DEFAULT_PRIORITIES[cls],
        )
        return base.merged(config)

    async def execute_request(
        self,
        key: RequestKey,
        fn: Callable[[], Awaitable[T]],
        config: ThrottleConfig | Mapping[str, Any] | None = None,
        resource_class: ResourceClass | None = None,
    ) -> T:
        """
        Run fn now if the key has capacity, otherwise queue it.

        Args:
            key: Request key (string or ResourceKey)
            fn: Zero-argument async callable performing the request
            config: Full ThrottleConfig or partial overrides
                (max_requests, time_window_ms, retry_after_ms, priority)
            resource_class: Explicit class, overrides key classification

        Returns:
            fn's result, whenever it eventually runs

        Raises:
            QueueClearedError: if the queue is cleared while the request waits
            ConfigurationError: if config names an unknown priority
            Exception: whatever fn raises
        """
        literal, _ = resolve_key(key, resource_class)
        throttle_config = self.get_throttle_config(key, config, resource_class)

        if self._counter.try_acquire(literal, throttle_config.policy):
            return await self._run(literal, fn)

        return await self._enqueue(literal, fn, throttle_config)

    async def _run(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await fn()
        except Exception as e:
            logger.error("Throttled request failed", cache_key=key, error=str(e))
            raise
        logger.debug("Throttled request executed", cache_key=key)
        return result

    async def _enqueue(
        self, key: str, fn: Callable[[], Awaitable[T]], config: ThrottleConfig
    ) -> T:
        future = asyncio.get_running_loop().create_future()
        request = QueuedRequest(
            id=key,
            execute=fn,
            future=future,
            priority=config.priority,
            timestamp=self._clock(),
            sequence=next(self._sequence),
            config=config,
        )
        heapq.heappush(self._queue, (*request.sort_key, request))

        log_stage(
            logger,
            Stage.THROTTLE_QUEUE,
            "Request queued",
            cache_key=key,
            priority=request.priority.name.lower(),
            queue_length=len(self._queue),
        )

        self._ensure_worker()
        return await future

    def _ensure_worker(self) -> None:
        if not self.processing:
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            request = self._queue[0][-1]

            if request.future.done():
                # Caller gave up while waiting
                heapq.heappop(self._queue)
                continue

            if not self._counter.try_acquire(request.id, request.config.policy):
                await self._sleep(request.config.retry_after_ms / 1000)
                continue

            heapq.heappop(self._queue)
            try:
                result = await self._run(request.id, request.execute)
            except asyncio.CancelledError:
                # Worker stopped mid-request; the request is no longer in the heap
                self._reject(
                    request,
                    QueueClearedError(
                        "Request cancelled by throttler shutdown", request_id=request.id
                    ),
                )
                raise
            except Exception as e:
                self._reject(request, e)
            except BaseException as e:
                self._reject(request, e)
                raise
            else:
                if not request.future.done():
                    request.future.set_result(result)

    @staticmethod
    def _reject(request: QueuedRequest, error: BaseException) -> None:
        if not request.future.done():
            request.future.set_exception(error)

    def get_request_stats(self) -> dict[str, Any]:
        """Queue length, per-key windows and worker state."""
        return {
            "queue_length": len(self._queue),
            "request_counts": self._counter.snapshot(),
            "processing": self.processing,
        }

    def clear_queue(self) -> None:
        """Reject every waiting request."""
        queued, self._queue = self._queue, []
        for *_, request in queued:
            if not request.future.done():
                request.future.set_exception(
                    QueueClearedError("Request queue cleared", request_id=request.id)
                )
        logger.info("Request queue cleared", rejected=len(queued))

    def reset_request_counts(self) -> None:
        """Forget every per-key window."""
        self._counter.reset()
        logger.info("Request counts reset")

    async def shutdown(self) -> None:
        """Stop the drain worker and reject whatever is still queued."""
        self.clear_queue()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
