"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the request/cache orchestration layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for resource classes and priorities
- Easy to update and track changes

Units: every duration below is in MILLISECONDS unless the name says otherwise.

Author: Mess Platform Team
Date: 2025-12-05
"""

from enum import Enum, IntEnum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Request orchestration stages used as the `stage` field of log events.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}

    Examples:
        log_stage(logger, Stage.MEMORY_LOOKUP, "Memory cache hit", cache_key=key)
    """

    DEDUPLICATION = "1.0_INFLIGHT_DEDUPLICATION"
    RATE_LIMITING = "2.0_RATE_LIMITING"
    MEMORY_LOOKUP = "3.1_MEMORY_CACHE_LOOKUP"
    PERSISTENT_LOOKUP = "3.2_PERSISTENT_CACHE_LOOKUP"
    CACHE_POPULATION = "3.3_CACHE_POPULATION"
    CACHE_INVALIDATION = "3.4_CACHE_INVALIDATION"
    FETCH = "4.0_FETCH"

    # Cross-Cutting Concerns (Alphabetic Prefixes)
    RETRY = "R_RETRY_LOGIC"
    BACKGROUND_REFRESH = "BG_BACKGROUND_REFRESH"
    THROTTLE_QUEUE = "Q_THROTTLE_QUEUE"
    MONITORING = "M_PERFORMANCE_MONITORING"


# ============================================================================
# Resource Classes
# ============================================================================


class ResourceClass(str, Enum):
    """
    Resource classes that select a rate-limit / throttle policy.

    PHOTO: mess photo uploads and galleries (most expensive)
    PROFILE: mess profile reads and writes
    USER: user data
    GENERAL: everything else
    """

    PHOTO = "photo"
    PROFILE = "profile"
    USER = "user"
    GENERAL = "general"


class RequestPriority(IntEnum):
    """
    Throttle queue priority. Higher values drain first.
    """

    LOW = 1
    NORMAL = 2
    HIGH = 3

    @classmethod
    def parse(cls, value: "RequestPriority | str | int") -> "RequestPriority":
        """Accept an enum member, its lowercase name, or its integer value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls[value.upper()]
        return cls(value)


# ============================================================================
# Cache Defaults
# ============================================================================

DEFAULT_TTL_MS = 5 * 60 * 1000  # 5 minutes
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY_MS = 1000
BACKGROUND_QUEUE_DELAY_MS = 100  # spacing between background refreshes

# Entry qualifies for stale-while-revalidate once its age exceeds this share of its TTL
REFRESH_THRESHOLD_RATIO = 0.8

# Every persistent cache record is namespaced with this prefix
PERSISTENT_CACHE_PREFIX = "cache_"

# ============================================================================
# Rate Limit Defaults (max_requests, time_window_ms, retry_after_ms)
# ============================================================================

RATE_LIMIT_WINDOW_MS = 60_000

PHOTO_MAX_REQUESTS = 10
PHOTO_RETRY_AFTER_MS = 5000

PROFILE_MAX_REQUESTS = 20
PROFILE_RETRY_AFTER_MS = 2000

USER_MAX_REQUESTS = 30
USER_RETRY_AFTER_MS = 1000

GENERAL_MAX_REQUESTS = 50
GENERAL_RETRY_AFTER_MS = 1000

# Substring that marks an arbitrary exception as a rate-limit signal
RATE_LIMIT_ERROR_MARKER = "rate limit exceeded"

# ============================================================================
# Performance Monitoring
# ============================================================================

METRICS_BUFFER_CAPACITY = 1000
RECENT_METRICS_COUNT = 50
SLOW_REQUEST_THRESHOLD_MS = 1000
SLOW_REQUESTS_REPORT_SIZE = 10
REAL_TIME_WINDOW_MS = 60_000

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_RETRY_AFTER = "Retry-After"
