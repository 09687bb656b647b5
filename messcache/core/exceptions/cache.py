"""
Cache-Related Exceptions

All exceptions related to the memory and persistent cache tiers.

Author: Mess Platform Team
Date: 2025-12-08
"""

from messcache.core.exceptions.base import MessCacheError


class CacheError(MessCacheError):
    """Base exception for cache-related errors."""
    pass


class StorageError(CacheError):
    """
    Raised inside the persistent tier when a record cannot be written or read.

    Common causes:
    - Value is not JSON-serializable
    - Corrupt or truncated record
    - Durable backend unavailable (Redis down, quota exceeded)

    Never escapes PersistentCache: it is logged and treated as a cache miss.
    """
    pass


class CacheConnectionError(CacheError):
    """
    Raised when the durable backend (Redis) cannot be reached at startup.

    Common causes:
    - Redis server is down
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass
