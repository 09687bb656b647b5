"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.

Author: Mess Platform Team
Date: 2025-12-08
"""

from typing import Any


class MessCacheError(Exception):
    """
    Base exception for all request/cache orchestration errors.

    Attributes:
        message: Error message
        request_id: Request key or trace ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise RateLimitExceededError(
            "Rate limit exceeded. Retry after 5000ms",
            request_id="photo:9",
            retry_after_ms=5000,
        )
    """

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()  # Create a copy to prevent external modification
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, request_id, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_context(self, **context) -> "MessCacheError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        request_id: str | None = None,
        **details
    ) -> "MessCacheError":
        """
        Create an error from another exception.

        Useful for wrapping third-party exceptions (redis, orjson) with context.

        Example:
            >>> try:
            ...     orjson.loads(raw)
            ... except orjson.JSONDecodeError as e:
            ...     raise StorageError.from_exception(e, request_id="profile:42")
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, request_id=request_id, details=error_details)


class ConfigurationError(MessCacheError):
    """Raised when configuration is invalid or missing."""
    pass
