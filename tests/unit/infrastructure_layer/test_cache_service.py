"""
Unit Tests for CacheOrchestrator

Tests request coalescing, the gate-then-tiers lookup order, cache
population, stale-while-revalidate scheduling and clearing.
"""

import asyncio

import pytest

from messcache.core.config.constants import ResourceClass
from messcache.core.exceptions import RateLimitExceededError
from messcache.core.resilience import RateLimiter, RatePolicy, ResourceKey
from messcache.infrastructure.cache import CacheOrchestrator, RequestOptions


@pytest.mark.unit
class TestRequestCoalescing:
    """Test at-most-one-in-flight per key."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self, cache_service, counting_fetch):
        """Test that N concurrent callers trigger exactly one fetch."""
        fetch = counting_fetch(result={"id": 42}, delay=0.01)

        results = await asyncio.gather(
            *(cache_service.get_or_fetch("profile:42", fetch) for _ in range(5))
        )

        assert fetch.calls == 1
        assert all(r == {"id": 42} for r in results)
        assert cache_service.get_cache_stats()["pending_requests"] == 0

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_error(self, cache_service, counting_fetch):
        """Test that joined callers all see the same rejection."""
        failure = ConnectionError("backend down")
        fetch = counting_fetch(delay=0.01, errors=[failure])

        results = await asyncio.gather(
            *(cache_service.get_or_fetch("profile:42", fetch, retry_count=0) for _ in range(3)),
            return_exceptions=True,
        )

        assert fetch.calls == 1
        assert all(r is failure for r in results)
        assert cache_service.get_cache_stats()["pending_requests"] == 0

    @pytest.mark.asyncio
    async def test_profile_scenario(self, cache_service, fake_clock, counting_fetch):
        """Test two parallel reads then a cached read within the ttl."""
        fetch_user = counting_fetch(result={"id": 42, "name": "Asha"}, delay=0.05)

        first, second = await asyncio.gather(
            cache_service.get_or_fetch("profile:42", fetch_user, ttl=1000),
            cache_service.get_or_fetch("profile:42", fetch_user, ttl=1000),
        )
        assert fetch_user.calls == 1
        assert first == second

        fake_clock.advance(999)
        third = await cache_service.get_or_fetch("profile:42", fetch_user, ttl=1000)

        assert third == first
        assert fetch_user.calls == 1

    @pytest.mark.asyncio
    async def test_abandoning_caller_does_not_cancel_fetch(self, cache_service, counting_fetch):
        """Test that cancelling one waiter leaves the shared fetch running."""
        fetch = counting_fetch(result="done", delay=0.02)

        leaver = asyncio.create_task(cache_service.get_or_fetch("menu", fetch))
        await asyncio.sleep(0)
        stayer = asyncio.create_task(cache_service.get_or_fetch("menu", fetch))
        await asyncio.sleep(0)

        leaver.cancel()

        assert await stayer == "done"
        assert fetch.calls == 1
        assert cache_service.memory.get("menu").data == "done"


@pytest.mark.unit
class TestRateGate:
    """Test the rate gate in front of the cache tiers."""

    @pytest.fixture
    def strict_service(self, durable_store, monitor, fake_clock, fake_sleep):
        policies = {cls: RatePolicy(2, 60_000, 750) for cls in ResourceClass}
        return CacheOrchestrator(
            store=durable_store,
            rate_limiter=RateLimiter(policies=policies, clock=fake_clock),
            monitor=monitor,
            clock=fake_clock,
            sleep=fake_sleep,
        )

    @pytest.mark.asyncio
    async def test_gate_runs_before_cache_lookup(self, strict_service, counting_fetch):
        """Test that an exhausted window rejects even a cacheable read."""
        fetch = counting_fetch(result="v")
        await strict_service.get_or_fetch("menu", fetch)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await strict_service.get_or_fetch("menu", fetch)

        assert exc_info.value.retry_after_ms == 750
        assert str(exc_info.value) == "Rate limit exceeded. Retry after 750ms"
        assert exc_info.value.details["resource_class"] == "general"
        assert strict_service.memory.get("menu").data == "v"

    @pytest.mark.asyncio
    async def test_successful_fetch_metered_twice(self, cache_service, counting_fetch):
        """Test that a completed fetch is counted on top of the gate."""
        await cache_service.get_or_fetch("photo:9", counting_fetch(result=b"jpeg"))

        assert cache_service.get_cache_stats()["rate_limit_info"]["photo:9"]["count"] == 2

    @pytest.mark.asyncio
    async def test_cache_hit_metered_once(self, cache_service, counting_fetch):
        fetch = counting_fetch(result="v")
        await cache_service.get_or_fetch("menu", fetch)
        await cache_service.get_or_fetch("menu", fetch)

        assert cache_service.get_cache_stats()["rate_limit_info"]["menu"]["count"] == 3

    @pytest.mark.asyncio
    async def test_window_reset_readmits(self, strict_service, fake_clock, counting_fetch):
        """Test that a call after reset_time succeeds with a fresh counter."""
        fetch = counting_fetch(result="v")
        await strict_service.get_or_fetch("menu", fetch)
        with pytest.raises(RateLimitExceededError):
            await strict_service.get_or_fetch("menu", fetch)

        fake_clock.advance(60_001)

        assert await strict_service.get_or_fetch("menu", fetch, force_refresh=True) == "v"

    @pytest.mark.asyncio
    async def test_explicit_resource_class_selects_policy(self, cache_service, counting_fetch):
        """Test that a ResourceKey picks its policy regardless of the identifier."""
        key = ResourceKey(ResourceClass.PHOTO, "menu-banner")
        fetch = counting_fetch(result="img")

        for _ in range(5):
            await cache_service.get_or_fetch(key, fetch, force_refresh=True)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await cache_service.get_or_fetch(key, fetch)

        assert exc_info.value.retry_after_ms == 5000
        assert exc_info.value.request_id == "photo:menu-banner"


@pytest.mark.unit
class TestFetchPath:
    """Test fetch, retry and population."""

    @pytest.mark.asyncio
    async def test_fetch_populates_both_tiers(self, cache_service, durable_store, counting_fetch):
        await cache_service.get_or_fetch("profile:42", counting_fetch(result={"id": 42}), ttl=5000)

        assert cache_service.memory.get("profile:42").ttl == 5000
        assert "cache_profile:42" in durable_store.data

    @pytest.mark.asyncio
    async def test_retry_backoff_through_orchestrator(self, cache_service, fake_sleep, counting_fetch):
        """Test D + 2D + 4D before the fourth, successful attempt."""
        fetch = counting_fetch(result="ok", errors=[TimeoutError("slow")] * 3)

        result = await cache_service.get_or_fetch("menu", fetch, retry_delay=200)

        assert result == "ok"
        assert fetch.calls == 4
        assert fake_sleep.total_ms == pytest.approx(200 + 400 + 800)

    @pytest.mark.asyncio
    async def test_fetch_rate_limit_error_not_retried(self, cache_service, counting_fetch):
        fetch = counting_fetch(errors=[RuntimeError("Rate limit exceeded upstream")])

        with pytest.raises(RuntimeError):
            await cache_service.get_or_fetch("menu", fetch, retry_count=5)

        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_cancelled_fetch_not_retried(self, cache_service, fake_sleep, counting_fetch):
        """Test that a fetch cancelled mid-flight ends without backoff or caching."""
        fetch = counting_fetch(result="v", errors=[asyncio.CancelledError()])

        with pytest.raises(asyncio.CancelledError):
            await cache_service.get_or_fetch("menu", fetch, retry_count=3)

        assert fetch.calls == 1
        assert fake_sleep.calls == []
        assert cache_service.get_cache_stats()["pending_requests"] == 0
        assert cache_service.memory.get("menu") is None

    @pytest.mark.asyncio
    async def test_failed_fetch_clears_in_flight_and_caches_nothing(self, cache_service, counting_fetch):
        fetch = counting_fetch(errors=[ValueError("bad payload")])

        with pytest.raises(ValueError):
            await cache_service.get_or_fetch("menu", fetch, retry_count=0)

        assert cache_service.get_cache_stats()["pending_requests"] == 0
        assert cache_service.memory.get("menu") is None

    @pytest.mark.asyncio
    async def test_persistent_hit_promoted_to_memory(self, cache_service, counting_fetch):
        """Test that a persistent-tier hit is served and copied into memory."""
        await cache_service.persistent.set("profile:42", {"id": 42}, ttl=60_000, etag="e7")
        fetch = counting_fetch(result="should not be used")

        result = await cache_service.get_or_fetch("profile:42", fetch)

        assert result == {"id": 42}
        assert fetch.calls == 0
        promoted = cache_service.memory.get("profile:42")
        assert promoted.data == {"id": 42}
        assert promoted.etag == "e7"

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_tiers(self, cache_service, counting_fetch):
        stale = counting_fetch(result="old")
        fresh = counting_fetch(result="new")
        await cache_service.get_or_fetch("menu", stale)

        assert await cache_service.get_or_fetch("menu", fresh, force_refresh=True) == "new"
        assert fresh.calls == 1
        assert cache_service.memory.get("menu").data == "new"

    @pytest.mark.asyncio
    async def test_persistent_failure_degrades_to_fetch(self, cache_service, durable_store, monitor, counting_fetch):
        """Test that a broken durable store never reaches the caller."""
        durable_store.fail_with = OSError("disk full")
        fetch = counting_fetch(result="v")

        assert await cache_service.get_or_fetch("menu", fetch) == "v"

        internal = monitor.get_error_report()["internal_errors"]["persistent_cache"]
        assert internal["count"] == 2  # failed read, then failed write
        assert cache_service.memory.get("menu").data == "v"

    @pytest.mark.asyncio
    async def test_default_options_read_once(self, cache_service, counting_fetch, monkeypatch):
        """Test that calls without options reuse the defaults built at construction."""

        def settings_unavailable():
            raise AssertionError("settings read on the request path")

        monkeypatch.setattr(
            "messcache.infrastructure.cache.cache_service.get_settings", settings_unavailable
        )

        await cache_service.get_or_fetch("menu", counting_fetch(result=1))

        assert cache_service.memory.get("menu").ttl == cache_service.default_options.ttl

    @pytest.mark.asyncio
    async def test_options_object_with_overrides(self, cache_service, counting_fetch):
        options = RequestOptions(ttl=10, retry_count=0)

        await cache_service.get_or_fetch("menu", counting_fetch(result=1), options, ttl=20)

        assert cache_service.memory.get("menu").ttl == 20


@pytest.mark.unit
class TestStaleWhileRevalidate:
    """Test background refresh scheduling."""

    @pytest.mark.asyncio
    async def test_refresh_scheduled_past_threshold(self, cache_service, fake_clock, counting_fetch):
        await cache_service.get_or_fetch("menu", counting_fetch(result="v1"), ttl=1000)
        fake_clock.advance(801)
        refresh = counting_fetch(result="v2")

        served = await cache_service.get_or_fetch("menu", refresh, ttl=1000, background=True)
        await cache_service.refresher.join()

        assert served == "v1"
        assert refresh.calls == 1
        assert cache_service.memory.get("menu").data == "v2"

    @pytest.mark.asyncio
    async def test_no_refresh_below_threshold(self, cache_service, fake_clock, counting_fetch):
        await cache_service.get_or_fetch("menu", counting_fetch(result="v1"), ttl=1000)
        fake_clock.advance(799)
        refresh = counting_fetch(result="v2")

        await cache_service.get_or_fetch("menu", refresh, ttl=1000, background=True)

        assert cache_service.refresher.queue_size() == 0
        assert cache_service.refresher.is_processing is False
        assert refresh.calls == 0

    @pytest.mark.asyncio
    async def test_no_refresh_without_background_flag(self, cache_service, fake_clock, counting_fetch):
        await cache_service.get_or_fetch("menu", counting_fetch(result="v1"), ttl=1000)
        fake_clock.advance(900)

        await cache_service.get_or_fetch("menu", counting_fetch(result="v2"), ttl=1000)

        assert cache_service.refresher.is_processing is False


@pytest.mark.unit
class TestClearingAndStats:
    """Test invalidation and stats."""

    @pytest.mark.asyncio
    async def test_clear_cache_removes_both_tiers(self, cache_service, durable_store, counting_fetch):
        await cache_service.get_or_fetch("menu", counting_fetch(result=1))

        await cache_service.clear_cache("menu")

        assert cache_service.memory.get("menu") is None
        assert "cache_menu" not in durable_store.data

    @pytest.mark.asyncio
    async def test_clear_all_caches(self, cache_service, durable_store, counting_fetch):
        durable_store.data["unrelated"] = "keep"
        await cache_service.get_or_fetch("a", counting_fetch(result=1))
        await cache_service.get_or_fetch("b", counting_fetch(result=2))

        await cache_service.clear_all_caches()

        assert cache_service.get_cache_stats() == {
            "memory_cache_size": 0,
            "pending_requests": 0,
            "background_queue_size": 0,
            "rate_limit_info": {},
        }
        assert durable_store.data == {"unrelated": "keep"}

    @pytest.mark.asyncio
    async def test_monitor_records_hits_and_misses(self, cache_service, monitor, counting_fetch):
        fetch = counting_fetch(result="v")
        await cache_service.get_or_fetch("menu", fetch)
        await cache_service.get_or_fetch("menu", fetch)

        report = monitor.get_cache_effectiveness_report()

        assert report["total_cache_hits"] == 1
        assert report["total_cache_misses"] == 1

    @pytest.mark.asyncio
    async def test_rate_limit_rejection_recorded_as_error(self, cache_service, monitor, counting_fetch):
        key = ResourceKey(ResourceClass.PHOTO, "9")
        # fetch counts twice, each hit once: 2 + 8 = 10 = photo limit
        for _ in range(9):
            await cache_service.get_or_fetch(key, counting_fetch(result=1))

        with pytest.raises(RateLimitExceededError):
            await cache_service.get_or_fetch(key, counting_fetch(result=1))

        errors = monitor.get_error_report()["request_errors"]
        assert errors[0]["error"] == "Rate limit exceeded. Retry after 5000ms"

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_in_flight(self, cache_service, counting_fetch):
        fetch = counting_fetch(result="v", delay=0.01)
        task = asyncio.create_task(cache_service.get_or_fetch("menu", fetch))
        await asyncio.sleep(0)

        await cache_service.shutdown()

        assert await task == "v"
        assert cache_service.get_cache_stats()["pending_requests"] == 0
