"""
Rate Limiter

Per-key fixed-window request counters with resource-class policies.

Features:
- One RateWindow per literal request key
- Policy (max_requests, time_window_ms, retry_after_ms) selected by resource class
- Lazy window reset on the next check after the window expires
- Counter store shared by the fail-fast RateLimiter and the queueing RequestThrottler
  (each owns its own independent instance)

Algorithm (try_acquire):
1. Resolve the key to (literal key, resource class) and pick the class policy
2. Create the window on first sight: count=0, reset_time=now+time_window_ms
3. If now > reset_time: count=0, reset_time=now+time_window_ms
4. If count < max_requests: count += 1, allow
5. Otherwise deny without touching the window
"""

import threading
from dataclasses import asdict, dataclass
from typing import Any, NamedTuple

from messcache.core.config.constants import ResourceClass
from messcache.core.config.settings import Settings, get_settings
from messcache.core.logging import get_logger
from messcache.core.utils.clock import Clock, now_ms

logger = get_logger(__name__)


class ResourceKey(NamedTuple):
    """
    Structured request key.

    Carries its resource class explicitly so policy selection never depends on
    how the identifier happens to be spelled.

    Example:
        >>> str(ResourceKey(ResourceClass.PROFILE, "42"))
        'profile:42'
    """

    resource_class: ResourceClass
    identifier: str

    def __str__(self) -> str:
        return f"{self.resource_class.value}:{self.identifier}"


RequestKey = str | ResourceKey


@dataclass
class RateWindow:
    """Requests observed in the current window and when the window resets (epoch ms)."""

    count: int
    reset_time: float


@dataclass(frozen=True)
class RatePolicy:
    """Rate policy of one resource class."""

    max_requests: int
    time_window_ms: int
    retry_after_ms: int


def classify_key(key: str) -> ResourceClass:
    """
    Derive the resource class of a free-form string key.

    Legacy path for plain string keys; callers that know the class should pass
    a ResourceKey or an explicit resource_class instead.
    """
    if "photo" in key:
        return ResourceClass.PHOTO
    if "profile" in key:
        return ResourceClass.PROFILE
    if "user" in key:
        return ResourceClass.USER
    return ResourceClass.GENERAL


def resolve_key(
    key: RequestKey, resource_class: ResourceClass | None = None
) -> tuple[str, ResourceClass]:
    """
    Resolve a request key to its literal string form and resource class.

    Precedence: explicit resource_class > ResourceKey.resource_class > substring match.
    """
    if isinstance(key, ResourceKey):
        return str(key), resource_class or key.resource_class
    return key, resource_class or classify_key(key)


def default_policies(settings: Settings | None = None) -> dict[ResourceClass, RatePolicy]:
    """Build the per-class policies from settings."""
    rl = (settings or get_settings()).rate_limit
    window = rl.RATE_LIMIT_WINDOW_MS
    return {
        ResourceClass.PHOTO: RatePolicy(
            rl.RATE_LIMIT_PHOTO_MAX, window, rl.RATE_LIMIT_PHOTO_RETRY_AFTER_MS
        ),
        ResourceClass.PROFILE: RatePolicy(
            rl.RATE_LIMIT_PROFILE_MAX, window, rl.RATE_LIMIT_PROFILE_RETRY_AFTER_MS
        ),
        ResourceClass.USER: RatePolicy(
            rl.RATE_LIMIT_USER_MAX, window, rl.RATE_LIMIT_USER_RETRY_AFTER_MS
        ),
        ResourceClass.GENERAL: RatePolicy(
            rl.RATE_LIMIT_GENERAL_MAX, window, rl.RATE_LIMIT_GENERAL_RETRY_AFTER_MS
        ),
    }


class SlidingWindowCounter:
    """
    Per-key request windows.

    Each read-modify-write runs under a lock so the store stays consistent if
    it is ever driven from more than one thread. On a single event loop the
    methods contain no suspension point and are atomic anyway.
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or now_ms
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def _current_window(self, key: str, policy: RatePolicy) -> RateWindow:
        # Caller holds the lock
        now = self._clock()
        window = self._windows.get(key)

        if window is None:
            window = RateWindow(count=0, reset_time=now + policy.time_window_ms)
            self._windows[key] = window
        elif now > window.reset_time:
            window.count = 0
            window.reset_time = now + policy.time_window_ms

        return window

    def try_acquire(self, key: str, policy: RatePolicy) -> bool:
        """Consume one slot if available."""
        with self._lock:
            window = self._current_window(key, policy)
            if window.count >= policy.max_requests:
                return False
            window.count += 1
            return True

    def increment(self, key: str, policy: RatePolicy) -> None:
        """Consume one slot unconditionally."""
        with self._lock:
            self._current_window(key, policy).count += 1

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Copy of every window, keyed by request key."""
        with self._lock:
            return {key: asdict(window) for key, window in self._windows.items()}

    def reset(self) -> None:
        """Forget every window."""
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)


class RateLimiter:
    """
    Fail-fast rate gate used by the cache orchestrator.

    Usage:
        limiter = RateLimiter()
        if not limiter.try_acquire("photo:9"):
            raise RateLimitExceededError.for_key("photo:9", limiter.get_retry_after("photo:9"))
    """

    def __init__(
        self,
        policies: dict[ResourceClass, RatePolicy] | None = None,
        clock: Clock | None = None,
    ):
        self._policies = policies or default_policies()
        self._counter = SlidingWindowCounter(clock)

    def select_policy(self, resource_class: ResourceClass) -> RatePolicy:
        """Policy for an explicit resource class."""
        return self._policies.get(resource_class, self._policies[ResourceClass.GENERAL])

    def policy_for(self, key: RequestKey, resource_class: ResourceClass | None = None) -> RatePolicy:
        """Policy that governs a key."""
        _, cls = resolve_key(key, resource_class)
        return self.select_policy(cls)

    def try_acquire(self, key: RequestKey, resource_class: ResourceClass | None = None) -> bool:
        """
        Admit one request for the key if its window has capacity.

        Returns:
            True (and counts the request) if allowed, False otherwise
        """
        literal, cls = resolve_key(key, resource_class)
        allowed = self._counter.try_acquire(literal, self.select_policy(cls))
        if not allowed:
            logger.warning("Rate limit exceeded", cache_key=literal, resource_class=cls.value)
        return allowed

    def record(self, key: RequestKey, resource_class: ResourceClass | None = None) -> None:
        """Count a completed request against the key's window."""
        literal, cls = resolve_key(key, resource_class)
        self._counter.increment(literal, self.select_policy(cls))

    def get_retry_after(self, key: RequestKey, resource_class: ResourceClass | None = None) -> int:
        """Backoff hint (ms) configured for the key's class."""
        return self.policy_for(key, resource_class).retry_after_ms

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Current window of every key seen."""
        return self._counter.snapshot()

    def reset(self) -> None:
        """Drop all windows."""
        self._counter.reset()
        logger.info("Rate limit counters reset")
