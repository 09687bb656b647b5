"""
Retry Executor

Bounded retries with exponential backoff around an arbitrary async operation.

Policy:
- Total attempts: retry_count + 1
- Wait before attempt n+1 (n = failed attempts so far): retry_delay_ms * 2**(n-1),
  i.e. d, 2d, 4d, ...
- Rate-limit errors are re-raised immediately and never retried
- Cancellation (and any other BaseException) propagates at once
- After exhaustion the last error is raised unchanged (not wrapped)

The executor does not consult the rate limiter; the orchestrator gates the
call before handing it over.

Retry mechanics are delegated to tenacity (AsyncRetrying).
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from messcache.core.config.constants import RATE_LIMIT_ERROR_MARKER, Stage
from messcache.core.exceptions import RateLimitExceededError
from messcache.core.logging import get_logger, log_stage
from messcache.core.utils.clock import Sleep

logger = get_logger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Ordinary failures are retried; cancellation and rate limits are not."""
    return isinstance(exc, Exception) and not is_rate_limit_error(exc)


def is_rate_limit_error(exc: BaseException) -> bool:
    """True if the error tells the caller to back off rather than resubmit."""
    if isinstance(exc, RateLimitExceededError):
        return True
    return RATE_LIMIT_ERROR_MARKER in str(exc).lower()


class RetryExecutor:
    """
    Runs a fetch function with exponential backoff.

    Usage:
        executor = RetryExecutor()
        profile = await executor.run("profile:42", fetch_profile, retry_count=3, retry_delay_ms=1000)
    """

    def __init__(self, sleep: Sleep | None = None):
        self._sleep = sleep or asyncio.sleep

    def _before_sleep(self, key: str, retry_count: int) -> Callable[[RetryCallState], None]:
        def log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            wait_s = retry_state.next_action.sleep if retry_state.next_action else 0
            log_stage(
                logger,
                Stage.RETRY,
                "Request failed, retrying",
                level="warning",
                cache_key=key,
                attempt=retry_state.attempt_number,
                max_attempts=retry_count + 1,
                backoff_ms=round(wait_s * 1000, 2),
                error=str(exc),
                error_type=type(exc).__name__ if exc else None,
            )

        return log_retry

    async def run(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        retry_count: int,
        retry_delay_ms: float,
    ) -> T:
        """
        Execute fn, retrying on failure.

        Args:
            key: Request key (for logging)
            fn: Zero-argument async callable
            retry_count: Retries after the first attempt
            retry_delay_ms: Base backoff delay in milliseconds

        Returns:
            The first successful result

        Raises:
            RateLimitExceededError (or any rate-limit signalling error): immediately
            asyncio.CancelledError: immediately, without another attempt
            Exception: the last error raised by fn once attempts are exhausted
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(retry_count, 0) + 1),
            wait=wait_exponential(multiplier=retry_delay_ms / 1000, exp_base=2, min=0),
            retry=retry_if_exception(is_retryable),
            before_sleep=self._before_sleep(key, retry_count),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(fn)
