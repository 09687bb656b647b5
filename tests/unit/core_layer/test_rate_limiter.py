"""
Unit Tests for RateLimiter

Tests per-key fixed windows, resource-class policy selection and lazy
window reset.
"""

import pytest

from messcache.core.config.constants import ResourceClass
from messcache.core.resilience import (
    RateLimiter,
    RatePolicy,
    ResourceKey,
    SlidingWindowCounter,
    classify_key,
    resolve_key,
)


@pytest.mark.unit
class TestKeyClassification:
    """Test resource class selection."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            ("photo:9", ResourceClass.PHOTO),
            ("profile:42", ResourceClass.PROFILE),
            ("user:7:meals", ResourceClass.USER),
            ("menu:today", ResourceClass.GENERAL),
            # First match wins, in photo > profile > user order
            ("user_profile_photo:1", ResourceClass.PHOTO),
        ],
    )
    def test_classify_key_substring_match(self, key, expected):
        """Test that plain string keys are classified by substring."""
        assert classify_key(key) == expected

    def test_resource_key_carries_class(self):
        """Test that a ResourceKey is never re-derived from its spelling."""
        key = ResourceKey(ResourceClass.PHOTO, "avatar-of-user-7")

        literal, cls = resolve_key(key)

        assert literal == "photo:avatar-of-user-7"
        assert cls == ResourceClass.PHOTO

    def test_explicit_class_overrides_key(self):
        """Test that an explicit resource_class wins over substring matching."""
        literal, cls = resolve_key("user-photo-album", ResourceClass.GENERAL)

        assert literal == "user-photo-album"
        assert cls == ResourceClass.GENERAL

    def test_default_policies(self, rate_limiter):
        """Test that default policies match the documented limits."""
        assert rate_limiter.select_policy(ResourceClass.PHOTO) == RatePolicy(10, 60_000, 5000)
        assert rate_limiter.select_policy(ResourceClass.PROFILE) == RatePolicy(20, 60_000, 2000)
        assert rate_limiter.select_policy(ResourceClass.USER) == RatePolicy(30, 60_000, 1000)
        assert rate_limiter.select_policy(ResourceClass.GENERAL) == RatePolicy(50, 60_000, 1000)


@pytest.mark.unit
class TestRateWindow:
    """Test window accounting."""

    @pytest.fixture
    def limiter(self, fake_clock):
        policies = {
            cls: RatePolicy(max_requests=3, time_window_ms=1000, retry_after_ms=250)
            for cls in ResourceClass
        }
        return RateLimiter(policies=policies, clock=fake_clock)

    def test_exactly_max_requests_admitted(self, limiter):
        """Test that N calls pass and the (N+1)th is denied."""
        results = [limiter.try_acquire("menu") for _ in range(4)]

        assert results == [True, True, True, False]

    def test_denied_call_does_not_mutate_window(self, limiter):
        """Test that a denial leaves the count at the maximum."""
        for _ in range(5):
            limiter.try_acquire("menu")

        assert limiter.snapshot()["menu"]["count"] == 3

    def test_window_resets_after_reset_time(self, limiter, fake_clock):
        """Test that a call at reset_time + 1 starts a fresh window."""
        for _ in range(3):
            limiter.try_acquire("menu")
        reset_time = limiter.snapshot()["menu"]["reset_time"]

        fake_clock.now = reset_time
        assert limiter.try_acquire("menu") is False

        fake_clock.now = reset_time + 1
        assert limiter.try_acquire("menu") is True
        window = limiter.snapshot()["menu"]
        assert window["count"] == 1
        assert window["reset_time"] == reset_time + 1 + 1000

    def test_windows_are_per_literal_key(self, limiter):
        """Test that keys of the same class do not share a window."""
        for _ in range(3):
            limiter.try_acquire("menu:a")

        assert limiter.try_acquire("menu:a") is False
        assert limiter.try_acquire("menu:b") is True

    def test_record_increments_unconditionally(self, limiter):
        """Test that record counts even past the maximum."""
        for _ in range(3):
            limiter.try_acquire("menu")
        limiter.record("menu")

        assert limiter.snapshot()["menu"]["count"] == 4

    def test_get_retry_after_uses_class_policy(self, rate_limiter):
        """Test that the retry-after hint comes from the class policy."""
        assert rate_limiter.get_retry_after("photo:9") == 5000
        assert rate_limiter.get_retry_after(ResourceKey(ResourceClass.PROFILE, "42")) == 2000
        assert rate_limiter.get_retry_after("menu") == 1000

    def test_reset_forgets_windows(self, limiter):
        """Test that reset drops every window."""
        limiter.try_acquire("menu")
        limiter.reset()

        assert limiter.snapshot() == {}


@pytest.mark.unit
class TestSlidingWindowCounter:
    """Test the shared counter store."""

    def test_increment_ignores_capacity(self, fake_clock):
        """Test that increment counts past the limit while try_acquire refuses."""
        counter = SlidingWindowCounter(fake_clock)
        policy = RatePolicy(1, 1000, 100)

        assert counter.try_acquire("k", policy) is True
        counter.increment("k", policy)

        assert counter.try_acquire("k", policy) is False
        assert counter.snapshot()["k"]["count"] == 2
        assert len(counter) == 1
