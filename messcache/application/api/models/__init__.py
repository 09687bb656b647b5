from .diagnostics import (
    CacheEffectivenessResponse,
    CacheStatsResponse,
    ClearResponse,
    ErrorReportResponse,
    HealthResponse,
    PerformanceReportResponse,
    RealTimeSummaryResponse,
    SlowRequestsResponse,
    ThrottlerStatsResponse,
)

__all__ = [
    "CacheEffectivenessResponse",
    "CacheStatsResponse",
    "ClearResponse",
    "ErrorReportResponse",
    "HealthResponse",
    "PerformanceReportResponse",
    "RealTimeSummaryResponse",
    "SlowRequestsResponse",
    "ThrottlerStatsResponse",
]
