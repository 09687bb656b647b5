"""
Resilience Module

Rate limiting, retry with backoff, and queue-based request throttling.
"""

from messcache.core.resilience.rate_limiter import (
    RateLimiter,
    RatePolicy,
    RateWindow,
    RequestKey,
    ResourceKey,
    SlidingWindowCounter,
    classify_key,
    default_policies,
    resolve_key,
)
from messcache.core.resilience.request_throttler import (
    QueuedRequest,
    RequestThrottler,
    ThrottleConfig,
)
from messcache.core.resilience.retry import RetryExecutor, is_rate_limit_error

__all__ = [
    "QueuedRequest",
    "RateLimiter",
    "RatePolicy",
    "RateWindow",
    "RequestKey",
    "RequestThrottler",
    "ResourceKey",
    "RetryExecutor",
    "SlidingWindowCounter",
    "ThrottleConfig",
    "classify_key",
    "default_policies",
    "is_rate_limit_error",
    "resolve_key",
]
