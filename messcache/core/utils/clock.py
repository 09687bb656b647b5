"""
Clock helpers.

Every timestamp in the cache layer is epoch milliseconds so that entries
written by one process compare correctly when read back by another.
Components accept a `clock` callable so tests can drive time explicitly.
"""

import time
from collections.abc import Awaitable, Callable

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000
