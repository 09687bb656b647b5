"""
Health Check Routes
===================

Liveness endpoint for load balancers and the diagnostics dashboard.

The check is intentionally shallow: it reports the cache layer's in-process
state and never touches the durable store, so a Redis outage degrades the
persistent tier (cache misses) without marking the process dead.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from messcache.application.api.dependencies import CacheServiceDep, SettingsDep, ThrottlerDep
from messcache.application.api.models import HealthResponse

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthResponse)
async def health_check(cache: CacheServiceDep, throttler: ThrottlerDep, settings: SettingsDep):
    """
    Liveness probe.

    Returns:
        HealthResponse: "healthy" plus a small summary of each component
    """
    stats = cache.get_cache_stats()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        components={
            "cache": {
                "memory_cache_size": stats["memory_cache_size"],
                "pending_requests": stats["pending_requests"],
                "persistent_backend": settings.cache.CACHE_PERSISTENT_BACKEND,
            },
            "throttler": {"queue_length": throttler.get_request_stats()["queue_length"]},
            "monitoring": {"enabled": cache.monitor.enabled},
        },
    )
