"""
Rate Limiting Exceptions

All exceptions related to rate limiting operations

Author: Mess Platform Team
Date: 2025-12-08
"""

from typing import Any

from messcache.core.exceptions.base import MessCacheError


class RateLimitError(MessCacheError):
    """Base exception for rate limiting errors."""
    pass


class RateLimitExceededError(RateLimitError):
    """
    Raised when a key's rate window is exhausted.

    Carries the policy's retry-after hint. Never retried automatically:
    the caller should back off, not resubmit.
    """

    def __init__(
        self,
        message: str,
        retry_after_ms: int,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, request_id=request_id, details=details)
        self.retry_after_ms = retry_after_ms
        self.details.setdefault("retry_after_ms", retry_after_ms)

    @classmethod
    def for_key(cls, key: str, retry_after_ms: int) -> "RateLimitExceededError":
        """Build the standard error for a throttled key."""
        return cls(
            f"Rate limit exceeded. Retry after {retry_after_ms}ms",
            retry_after_ms=retry_after_ms,
            request_id=key,
        )
