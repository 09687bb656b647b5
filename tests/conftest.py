"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.

Time is always driven explicitly: components receive a FakeClock (epoch ms)
and a FakeSleep that advances that clock instead of waiting.
"""

import asyncio

import pytest

from messcache.core.observability import PerformanceMonitor
from messcache.core.resilience import RateLimiter, RequestThrottler
from messcache.infrastructure.cache import CacheOrchestrator, InMemoryDurableStore

# ============================================================================
# Pytest Configuration
# ============================================================================

# pytest-asyncio runs in auto mode (see pyproject.toml)

START_TIME_MS = 1_700_000_000_000.0


# ============================================================================
# Time Fixtures
# ============================================================================


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: float = START_TIME_MS):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeSleep:
    """
    Sleep replacement recording requested delays (seconds).

    Advances the paired clock by the requested delay and yields to the event
    loop once, so other tasks still interleave.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds * 1000)
        await asyncio.sleep(0)

    @property
    def total_ms(self) -> float:
        return sum(self.calls) * 1000


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(fake_clock):
    return FakeSleep(fake_clock)


# ============================================================================
# Service Fixtures (isolated instances, never the process-wide singletons)
# ============================================================================


@pytest.fixture
def monitor(fake_clock):
    return PerformanceMonitor(capacity=1000, enabled=True, clock=fake_clock)


@pytest.fixture
def durable_store():
    return InMemoryDurableStore()


@pytest.fixture
def rate_limiter(fake_clock):
    return RateLimiter(clock=fake_clock)


@pytest.fixture
def cache_service(durable_store, rate_limiter, monitor, fake_clock, fake_sleep):
    """CacheOrchestrator wired to fake time and an in-memory durable store."""
    return CacheOrchestrator(
        store=durable_store,
        rate_limiter=rate_limiter,
        monitor=monitor,
        clock=fake_clock,
        sleep=fake_sleep,
    )


@pytest.fixture
async def throttler(fake_clock, fake_sleep):
    throttler = RequestThrottler(clock=fake_clock, sleep=fake_sleep)
    yield throttler
    await throttler.shutdown()


@pytest.fixture
def counting_fetch():
    """
    Factory for async fetch functions that count their invocations.

    Usage:
        fetch = counting_fetch(result={"id": 42}, delay=0.01)
        await fetch()
        assert fetch.calls == 1
    """

    def factory(result=None, delay: float = 0, errors: list[Exception] | None = None):
        pending_errors = list(errors or [])

        async def fetch():
            fetch.calls += 1
            if delay:
                await asyncio.sleep(delay)
            if pending_errors:
                raise pending_errors.pop(0)
            return result

        fetch.calls = 0
        return fetch

    return factory
