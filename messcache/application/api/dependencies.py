"""
FastAPI Dependency Injection
============================

Route handlers receive the cache-layer services through `Depends()` instead
of importing singletons directly, so tests can hand the app isolated
instances via `app.state`.

Services are created once in the lifespan manager (see app.py) and stored on
`app.state`. When the lifespan has not run (e.g. a TestClient used without a
context manager) the process-wide singletons are used instead.

Example:
    @router.get("/cache")
    async def cache_stats(cache: CacheServiceDep):
        return cache.get_cache_stats()
"""

from typing import Annotated

from fastapi import Depends, Request

from messcache.core.config.settings import Settings, get_settings
from messcache.core.observability import PerformanceMonitor
from messcache.core.resilience import RequestThrottler
from messcache.infrastructure.cache import CacheOrchestrator, get_cache_service

# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_cache_orchestrator(request: Request) -> CacheOrchestrator:
    """Cache orchestrator stored on app.state, or the global one."""
    if not hasattr(request.app.state, "cache_service"):
        request.app.state.cache_service = get_cache_service()
    return request.app.state.cache_service


def get_request_throttler(request: Request) -> RequestThrottler:
    """Request throttler stored on app.state (created on first use)."""
    if not hasattr(request.app.state, "throttler"):
        request.app.state.throttler = RequestThrottler()
    return request.app.state.throttler


def get_monitor(cache: Annotated[CacheOrchestrator, Depends(get_cache_orchestrator)]) -> PerformanceMonitor:
    """
    Performance monitor the orchestrator reports into.

    Going through the orchestrator keeps the dashboard and the cache layer
    looking at the same buffer even when tests inject a private monitor.
    """
    return cache.monitor


# ============================================================================
# TYPE ALIASES FOR CLEANER ROUTE SIGNATURES
# ============================================================================

CacheServiceDep = Annotated[CacheOrchestrator, Depends(get_cache_orchestrator)]
ThrottlerDep = Annotated[RequestThrottler, Depends(get_request_throttler)]
MonitorDep = Annotated[PerformanceMonitor, Depends(get_monitor)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
