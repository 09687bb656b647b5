"""
Diagnostics Routes
==================

Read-only views and reset commands for the developer performance dashboard.

WHAT THE DASHBOARD SEES:
------------------------
- Cache orchestrator state: memory tier size, in-flight fetches,
  background queue, rate windows
- Throttler state: queue length, per-key windows, worker status
- Performance reports: overall/per-key aggregates, cache effectiveness,
  last-minute summary, slow requests, grouped errors
- Raw export of every buffered sample

Every GET here is a pure view: reading a report never mutates the monitor,
the caches or the counters. The POST endpoints are the only commands.

SECURITY NOTE:
--------------
These endpoints expose cache keys, which may embed user identifiers. Serve the
diagnostics app on an internal interface only.
"""

from fastapi import APIRouter, Query, Response, status

from messcache.application.api.dependencies import CacheServiceDep, MonitorDep, ThrottlerDep
from messcache.application.api.models import (
    CacheEffectivenessResponse,
    CacheStatsResponse,
    ClearResponse,
    ErrorReportResponse,
    PerformanceReportResponse,
    RealTimeSummaryResponse,
    SlowRequestsResponse,
    ThrottlerStatsResponse,
)
from messcache.core.config.constants import SLOW_REQUEST_THRESHOLD_MS
from messcache.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/diagnostics", tags=["Diagnostics"])


# ============================================================================
# STATE ENDPOINTS
# ============================================================================


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats(cache: CacheServiceDep):
    """Memory tier size, pending fetches, background queue and rate windows."""
    return cache.get_cache_stats()


@router.get("/throttler", response_model=ThrottlerStatsResponse)
async def throttler_stats(throttler: ThrottlerDep):
    """Queue length, per-key windows and drain worker status."""
    return throttler.get_request_stats()


# ============================================================================
# PERFORMANCE REPORTS
# ============================================================================


@router.get("/performance", response_model=PerformanceReportResponse)
async def performance_report(monitor: MonitorDep):
    return monitor.get_performance_report()


@router.get("/cache-effectiveness", response_model=CacheEffectivenessResponse)
async def cache_effectiveness(monitor: MonitorDep):
    return monitor.get_cache_effectiveness_report()


@router.get("/realtime", response_model=RealTimeSummaryResponse)
async def real_time_summary(monitor: MonitorDep):
    return monitor.get_real_time_summary()


@router.get("/errors", response_model=ErrorReportResponse)
async def error_report(monitor: MonitorDep):
    """Failed requests grouped by message, plus failures absorbed by the cache layer."""
    return monitor.get_error_report()


@router.get("/slow-requests", response_model=SlowRequestsResponse)
async def slow_requests(
    monitor: MonitorDep,
    threshold_ms: float = Query(default=SLOW_REQUEST_THRESHOLD_MS, ge=0),
):
    """Slowest requests above threshold_ms, slowest first."""
    return SlowRequestsResponse(
        threshold_ms=threshold_ms,
        requests=monitor.get_slow_requests_report(threshold_ms),
    )


@router.get("/export")
async def export_metrics(monitor: MonitorDep):
    """Every buffered sample and aggregate as indented JSON."""
    return Response(content=monitor.export_metrics(), media_type="application/json")


# ============================================================================
# COMMANDS
# ============================================================================


@router.post("/cache/clear", response_model=ClearResponse, status_code=status.HTTP_200_OK)
async def clear_caches(cache: CacheServiceDep):
    """Clear both tiers, in-flight map, rate counters and background queue."""
    await cache.clear_all_caches()
    logger.info("Caches cleared via diagnostics API")
    return ClearResponse(target="cache")


@router.post("/throttler/clear", response_model=ClearResponse, status_code=status.HTTP_200_OK)
async def clear_throttler_queue(throttler: ThrottlerDep):
    """Reject every queued request."""
    throttler.clear_queue()
    logger.info("Throttle queue cleared via diagnostics API")
    return ClearResponse(target="throttler")


@router.post("/performance/clear", response_model=ClearResponse, status_code=status.HTTP_200_OK)
async def clear_performance_metrics(monitor: MonitorDep):
    monitor.clear_metrics()
    logger.info("Performance metrics cleared via diagnostics API")
    return ClearResponse(target="performance")
