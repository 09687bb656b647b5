"""
Core Module

Foundational components: configuration, logging, exceptions, resilience
(rate limiting, retry, throttling) and performance monitoring.
"""

from .exceptions import (
    CacheError,
    ConfigurationError,
    MessCacheError,
    QueueClearedError,
    QueueError,
    RateLimitError,
    RateLimitExceededError,
    StorageError,
)
from .logging import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)
from .observability import PerformanceMonitor, get_performance_monitor

__all__ = [
    "setup_logging",
    "get_logger",
    "set_request_id",
    "get_request_id",
    "clear_request_id",
    "log_stage",
    "MessCacheError",
    "ConfigurationError",
    "CacheError",
    "StorageError",
    "QueueError",
    "QueueClearedError",
    "RateLimitError",
    "RateLimitExceededError",
    "PerformanceMonitor",
    "get_performance_monitor",
]
