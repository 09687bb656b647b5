"""
Diagnostics API Response Models
===============================

Pydantic models describing what the diagnostics endpoints return.

Declaring response models gives the dashboard a stable contract:
- Outgoing data is validated against the model
- OpenAPI docs (/docs) show the exact structure
- Renaming a field in the cache layer breaks a test instead of the dashboard

Per-key maps (rate windows, per-request aggregates) stay as plain dicts:
their keys are caller-defined cache keys, not a fixed schema.
"""

from typing import Any

from pydantic import BaseModel, Field

# ============================================================================
# CACHE / THROTTLER STATE
# ============================================================================


class RateWindowModel(BaseModel):
    """One key's rate window."""

    count: int = Field(..., ge=0, description="Requests counted in the current window")
    reset_time: float = Field(..., description="Window reset time (epoch ms)")


class CacheStatsResponse(BaseModel):
    """State of the cache orchestrator."""

    memory_cache_size: int = Field(..., ge=0, description="Entries held in the memory tier")
    pending_requests: int = Field(..., ge=0, description="Fetches currently in flight")
    background_queue_size: int = Field(..., ge=0, description="Queued background refreshes")
    rate_limit_info: dict[str, RateWindowModel] = Field(
        default_factory=dict, description="Rate window per cache key"
    )


class ThrottlerStatsResponse(BaseModel):
    """State of the request throttler."""

    queue_length: int = Field(..., ge=0, description="Requests waiting for capacity")
    request_counts: dict[str, RateWindowModel] = Field(
        default_factory=dict, description="Throttler window per request key"
    )
    processing: bool = Field(..., description="Whether the drain worker is running")


# ============================================================================
# PERFORMANCE REPORTS
# ============================================================================


class OverallPerformance(BaseModel):
    total_requests: int = Field(..., ge=0)
    average_response_time: float = Field(..., ge=0, description="Milliseconds")
    success_rate: float = Field(..., ge=0, le=1)
    cache_hit_rate: float = Field(..., ge=0, le=1)


class PerformanceReportResponse(BaseModel):
    """Full performance report."""

    overall: OverallPerformance
    by_request: dict[str, dict[str, Any]] = Field(default_factory=dict)
    by_cache: dict[str, dict[str, Any]] = Field(default_factory=dict)
    recent_metrics: list[dict[str, Any]] = Field(default_factory=list)


class CacheEffectivenessResponse(BaseModel):
    """Hit/miss totals and the latency cache hits saved."""

    total_cache_hits: int = Field(..., ge=0)
    total_cache_misses: int = Field(..., ge=0)
    overall_hit_rate: float = Field(..., ge=0, le=1)
    average_load_time_with_cache: float = Field(..., description="Milliseconds")
    average_load_time_without_cache: float = Field(..., description="Milliseconds")
    time_saved: float = Field(..., description="Estimated milliseconds saved by hits")


class RealTimeSummaryResponse(BaseModel):
    """Figures for the last minute."""

    requests_per_minute: int = Field(..., ge=0)
    average_response_time: float = Field(..., ge=0)
    cache_hit_rate: float = Field(..., ge=0, le=1)
    error_rate: float = Field(..., ge=0, le=1)


class RequestErrorGroup(BaseModel):
    error: str
    count: int = Field(..., ge=1)
    last_occurrence: float


class InternalErrorSummary(BaseModel):
    count: int = Field(..., ge=1)
    last_error: str
    last_occurrence: float


class ErrorReportResponse(BaseModel):
    """
    Error report.

    request_errors are failed requests grouped by message; internal_errors are
    failures the persistent cache and background refresher absorbed.
    """

    request_errors: list[RequestErrorGroup] = Field(default_factory=list)
    internal_errors: dict[str, InternalErrorSummary] = Field(default_factory=dict)


class PerformanceMetricModel(BaseModel):
    request_id: str
    start_time: float
    end_time: float
    duration: float
    success: bool
    cache_hit: bool
    error: str = ""
    size: int = 0


class SlowRequestsResponse(BaseModel):
    threshold_ms: float
    requests: list[PerformanceMetricModel] = Field(default_factory=list)


# ============================================================================
# COMMANDS / HEALTH
# ============================================================================


class ClearResponse(BaseModel):
    """Acknowledgement of a clear operation."""

    status: str = Field(default="cleared")
    target: str = Field(..., description="What was cleared")


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    components: dict[str, Any] | None = None
