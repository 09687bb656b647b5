"""
Throttle Queue Exceptions

Author: Mess Platform Team
Date: 2025-12-08
"""

from messcache.core.exceptions.base import MessCacheError


class QueueError(MessCacheError):
    """Base exception for throttle queue errors."""
    pass


class QueueClearedError(QueueError):
    """Raised for every queued request still waiting when the queue is cleared."""
    pass
