"""
Exception Module

Structured exception hierarchy for the request/cache orchestration layer.

Module Structure:
-----------------
- **base.py**: MessCacheError base class + ConfigurationError
- **cache.py**: Cache tier exceptions
- **rate_limit.py**: Rate limiting exceptions
- **queue.py**: Throttle queue exceptions

Errors raised by caller-supplied fetch functions are never wrapped; they
reach the caller unchanged once retries are exhausted.
"""

from messcache.core.exceptions.base import ConfigurationError, MessCacheError
from messcache.core.exceptions.cache import CacheConnectionError, CacheError, StorageError
from messcache.core.exceptions.queue import QueueClearedError, QueueError
from messcache.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError

__all__ = [
    # Base
    "MessCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "StorageError",
    "CacheConnectionError",
    # Queue
    "QueueError",
    "QueueClearedError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
]
