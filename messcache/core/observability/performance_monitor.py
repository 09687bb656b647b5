"""
Request Performance Monitoring Module

Records per-request timing and outcome samples and derives cache-effectiveness
and throughput reports for the diagnostics dashboard.

Architectural Decision: passive observer
- Callers bracket their own calls with start_request()/end_request()
  (or the track() context manager); nothing here influences control flow
- Start times live in a volatile side-channel keyed by a unique trace ID, so
  overlapping calls for the same request ID never clobber each other
- Samples go into a capacity-bounded ring buffer (oldest evicted first)
- Per-request-ID running aggregates are updated on every sample
- Reports are pure views computed on demand; reading never mutates state

Components that swallow their own failures (persistent cache, background
refresher) report them through record_internal_error() so silent degradation
stays visible in the error report.

Usage:
    monitor = get_performance_monitor()

    with monitor.track("profile:42") as trace:
        profile = await cache.get_or_fetch("profile:42", fetch_profile)
        trace.size = len(profile)

    summary = monitor.get_real_time_summary()
"""

import uuid
from collections import deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

import orjson

from messcache.core.config.constants import (
    REAL_TIME_WINDOW_MS,
    RECENT_METRICS_COUNT,
    SLOW_REQUEST_THRESHOLD_MS,
    SLOW_REQUESTS_REPORT_SIZE,
    Stage,
)
from messcache.core.config.settings import get_settings
from messcache.core.logging import get_logger, log_stage
from messcache.core.utils.clock import Clock, now_ms

logger = get_logger(__name__)


@dataclass
class PerformanceMetric:
    """
    A single completed request.

    Attributes:
        request_id: Caller-defined request key
        start_time: Start timestamp (epoch ms)
        end_time: End timestamp (epoch ms)
        duration: end_time - start_time (ms)
        success: Whether the request succeeded
        cache_hit: Whether the result came from cache
        error: Error message if failed ("" otherwise)
        size: Response size in bytes (0 if unknown)
    """

    request_id: str
    start_time: float
    end_time: float
    duration: float
    success: bool
    cache_hit: bool
    error: str = ""
    size: int = 0


@dataclass
class CacheMetrics:
    """Running cache aggregates for one request ID."""

    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    average_load_time: float = 0.0
    total_requests: int = 0


@dataclass
class RequestMetrics:
    """Running request aggregates for one request ID."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0
    min_duration: float | None = None
    max_duration: float | None = None
    slowest_request: PerformanceMetric | None = None
    fastest_request: PerformanceMetric | None = None


@dataclass
class TraceHandle:
    """Mutable handle yielded by PerformanceMonitor.track()."""

    trace_id: str
    request_id: str
    cache_hit: bool = False
    size: int = 0


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class PerformanceMonitor:
    """
    Records request samples and builds performance reports.

    The metric buffer, aggregates and trace table are owned by this object;
    construct one per test for isolation, or use get_performance_monitor()
    for the process-wide instance.
    """

    def __init__(
        self,
        capacity: int | None = None,
        enabled: bool | None = None,
        clock: Clock | None = None,
    ):
        settings = get_settings()
        self._capacity = capacity or settings.monitoring.MONITORING_BUFFER_CAPACITY
        self._enabled = settings.monitoring.MONITORING_ENABLED if enabled is None else enabled
        self._clock = clock or now_ms

        self._metrics: deque[PerformanceMetric] = deque(maxlen=self._capacity)
        self._cache_metrics: dict[str, CacheMetrics] = {}
        self._request_metrics: dict[str, RequestMetrics] = {}
        self._traces: dict[str, float] = {}
        self._internal_errors: dict[str, dict[str, Any]] = {}

        logger.info(
            "Performance monitor initialized",
            stage=Stage.MONITORING.value,
            capacity=self._capacity,
            monitoring_enabled=self._enabled,
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def enabled(self) -> bool:
        return self._enabled

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def start_request(self, request_id: str) -> str:
        """
        Start timing a request.

        Returns:
            A trace ID unique to this call ("" when monitoring is disabled)
        """
        if not self._enabled:
            return ""

        start_time = self._clock()
        trace_id = f"{request_id}_{int(start_time)}_{uuid.uuid4().hex[:9]}"
        self._traces[trace_id] = start_time
        return trace_id

    def end_request(
        self,
        trace_id: str,
        request_id: str,
        success: bool,
        cache_hit: bool = False,
        error: str | None = None,
        size: int | None = None,
    ) -> None:
        """
        Finish timing a request and record the sample.

        Unknown or empty trace IDs are ignored.
        """
        if not self._enabled or not trace_id:
            return

        start_time = self._traces.pop(trace_id, None)
        if start_time is None:
            return

        end_time = self._clock()
        metric = PerformanceMetric(
            request_id=request_id,
            start_time=start_time,
            end_time=end_time,
            duration=end_time - start_time,
            success=success,
            cache_hit=cache_hit,
            error=error or "",
            size=size or 0,
        )

        self._metrics.append(metric)
        self._update_cache_metrics(request_id, cache_hit, metric.duration)
        self._update_request_metrics(request_id, metric)

    @contextmanager
    def track(self, request_id: str):
        """
        Context manager bracketing one request.

        The yielded handle lets the caller flag a cache hit or record the
        response size before the block exits. Exceptions are recorded as
        failures and re-raised.
        """
        handle = TraceHandle(trace_id=self.start_request(request_id), request_id=request_id)
        try:
            yield handle
        except BaseException as e:
            # Cancellation is recorded too, then propagated
            self.end_request(
                handle.trace_id,
                request_id,
                success=False,
                cache_hit=handle.cache_hit,
                error=str(e) or type(e).__name__,
                size=handle.size,
            )
            raise
        else:
            self.end_request(
                handle.trace_id,
                request_id,
                success=True,
                cache_hit=handle.cache_hit,
                size=handle.size,
            )

    def record_internal_error(self, component: str, error: BaseException | str) -> None:
        """
        Count a failure that a component absorbed instead of raising.

        Keeps the count, last error and last occurrence per component.
        """
        entry = self._internal_errors.setdefault(
            component, {"count": 0, "last_error": "", "last_occurrence": 0.0}
        )
        entry["count"] += 1
        entry["last_error"] = str(error)
        entry["last_occurrence"] = self._clock()

        log_stage(
            logger,
            Stage.MONITORING,
            "Internal error recorded",
            level="debug",
            component=component,
            count=entry["count"],
        )

    def _update_cache_metrics(self, request_id: str, cache_hit: bool, duration: float) -> None:
        current = self._cache_metrics.setdefault(request_id, CacheMetrics())
        current.total_requests += 1

        if cache_hit:
            current.hits += 1
        else:
            current.misses += 1

        current.hit_rate = current.hits / current.total_requests
        current.average_load_time = (
            current.average_load_time * (current.total_requests - 1) + duration
        ) / current.total_requests

    def _update_request_metrics(self, request_id: str, metric: PerformanceMetric) -> None:
        current = self._request_metrics.setdefault(request_id, RequestMetrics())
        current.total_requests += 1

        if metric.success:
            current.successful_requests += 1
        else:
            current.failed_requests += 1

        current.average_response_time = (
            current.average_response_time * (current.total_requests - 1) + metric.duration
        ) / current.total_requests

        if current.slowest_request is None or metric.duration > current.slowest_request.duration:
            current.slowest_request = metric
            current.max_duration = metric.duration

        if current.fastest_request is None or metric.duration < current.fastest_request.duration:
            current.fastest_request = metric
            current.min_duration = metric.duration

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def get_metrics(self) -> list[PerformanceMetric]:
        """Buffered samples, oldest first."""
        return list(self._metrics)

    def get_performance_report(self) -> dict[str, Any]:
        """Overall figures, per-ID aggregates and the most recent samples."""
        metrics = list(self._metrics)
        total = len(metrics)

        return {
            "overall": {
                "total_requests": total,
                "average_response_time": _mean([m.duration for m in metrics]),
                "success_rate": sum(1 for m in metrics if m.success) / total if total else 0.0,
                "cache_hit_rate": sum(1 for m in metrics if m.cache_hit) / total if total else 0.0,
            },
            "by_request": {k: asdict(v) for k, v in self._request_metrics.items()},
            "by_cache": {k: asdict(v) for k, v in self._cache_metrics.items()},
            "recent_metrics": [asdict(m) for m in metrics[-RECENT_METRICS_COUNT:]],
        }

    def get_cache_effectiveness_report(self) -> dict[str, Any]:
        """Hit/miss counts and the latency saved by cache hits."""
        hits = [m.duration for m in self._metrics if m.cache_hit]
        misses = [m.duration for m in self._metrics if not m.cache_hit]
        total = len(hits) + len(misses)

        with_cache = _mean(hits)
        without_cache = _mean(misses)

        return {
            "total_cache_hits": len(hits),
            "total_cache_misses": len(misses),
            "overall_hit_rate": len(hits) / total if total else 0.0,
            "average_load_time_with_cache": with_cache,
            "average_load_time_without_cache": without_cache,
            "time_saved": len(hits) * (without_cache - with_cache),
        }

    def get_slow_requests_report(
        self, threshold_ms: float = SLOW_REQUEST_THRESHOLD_MS
    ) -> list[dict[str, Any]]:
        """Slowest samples above the threshold, slowest first."""
        slow = sorted(
            (m for m in self._metrics if m.duration > threshold_ms),
            key=lambda m: m.duration,
            reverse=True,
        )
        return [asdict(m) for m in slow[:SLOW_REQUESTS_REPORT_SIZE]]

    def get_error_report(self) -> dict[str, Any]:
        """
        Failed requests grouped by error message, plus absorbed internal errors.

        Returns:
            Dict containing:
            - request_errors: [{error, count, last_occurrence}] sorted by count desc
            - internal_errors: {component: {count, last_error, last_occurrence}}
        """
        grouped: dict[str, dict[str, Any]] = {}
        for m in self._metrics:
            if m.success or not m.error:
                continue
            entry = grouped.setdefault(m.error, {"count": 0, "last_occurrence": 0.0})
            entry["count"] += 1
            entry["last_occurrence"] = max(entry["last_occurrence"], m.end_time)

        request_errors = sorted(
            ({"error": error, **data} for error, data in grouped.items()),
            key=lambda e: e["count"],
            reverse=True,
        )

        return {
            "request_errors": request_errors,
            "internal_errors": {k: dict(v) for k, v in self._internal_errors.items()},
        }

    def get_real_time_summary(self) -> dict[str, float]:
        """Throughput and rates over the last minute."""
        cutoff = self._clock() - REAL_TIME_WINDOW_MS
        recent = [m for m in self._metrics if m.end_time > cutoff]
        total = len(recent)
        successful = sum(1 for m in recent if m.success)

        return {
            "requests_per_minute": total,
            "average_response_time": _mean([m.duration for m in recent]),
            "cache_hit_rate": sum(1 for m in recent if m.cache_hit) / total if total else 0.0,
            "error_rate": (total - successful) / total if total else 0.0,
        }

    def export_metrics(self) -> str:
        """Indented JSON snapshot of samples and aggregates."""
        snapshot = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "metrics": list(self._metrics),
            "cache_metrics": self._cache_metrics,
            "request_metrics": self._request_metrics,
            "internal_errors": self._internal_errors,
        }
        return orjson.dumps(snapshot, option=orjson.OPT_INDENT_2).decode("utf-8")

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def clear_metrics(self) -> None:
        """Drop samples, aggregates and internal error counts."""
        self._metrics.clear()
        self._cache_metrics.clear()
        self._request_metrics.clear()
        self._internal_errors.clear()
        logger.info("All performance metrics cleared")

    def set_monitoring_enabled(self, enabled: bool) -> None:
        """Turn sample recording on or off."""
        self._enabled = enabled
        logger.info("Performance monitoring toggled", monitoring_enabled=enabled)


# Global monitor instance (singleton)
_monitor: PerformanceMonitor | None = None


def get_performance_monitor() -> PerformanceMonitor:
    """
    Get the global performance monitor instance (singleton).

    Returns:
        PerformanceMonitor: Global monitor instance
    """
    global _monitor

    if _monitor is None:
        _monitor = PerformanceMonitor()

    return _monitor
