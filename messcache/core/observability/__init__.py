from .performance_monitor import (
    CacheMetrics,
    PerformanceMetric,
    PerformanceMonitor,
    RequestMetrics,
    TraceHandle,
    get_performance_monitor,
)

__all__ = [
    "CacheMetrics",
    "PerformanceMetric",
    "PerformanceMonitor",
    "RequestMetrics",
    "TraceHandle",
    "get_performance_monitor",
]
