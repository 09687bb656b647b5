"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import pytest
from pydantic import ValidationError

from messcache.core.config.settings import Settings, get_settings, reload_settings


@pytest.mark.unit
class TestSettingsInitialization:
    """Test Settings class initialization and validation."""

    def test_settings_has_required_sections(self):
        """Test that Settings exposes every nested section."""
        settings = Settings()

        for section in ("redis", "cache", "rate_limit", "monitoring", "logging", "app"):
            assert hasattr(settings, section)

    def test_cache_defaults(self):
        """Test cache defaults (milliseconds)."""
        cache = Settings().cache

        assert cache.CACHE_DEFAULT_TTL_MS == 300_000
        assert cache.CACHE_RETRY_COUNT == 3
        assert cache.CACHE_RETRY_DELAY_MS == 1000
        assert cache.CACHE_BACKGROUND_DELAY_MS == 100
        assert cache.CACHE_PERSISTENT_BACKEND == "memory"

    def test_rate_limit_defaults(self):
        """Test per-class policy defaults."""
        rl = Settings().rate_limit

        assert rl.RATE_LIMIT_WINDOW_MS == 60_000
        assert (rl.RATE_LIMIT_PHOTO_MAX, rl.RATE_LIMIT_PHOTO_RETRY_AFTER_MS) == (10, 5000)
        assert (rl.RATE_LIMIT_PROFILE_MAX, rl.RATE_LIMIT_PROFILE_RETRY_AFTER_MS) == (20, 2000)
        assert (rl.RATE_LIMIT_USER_MAX, rl.RATE_LIMIT_USER_RETRY_AFTER_MS) == (30, 1000)
        assert (rl.RATE_LIMIT_GENERAL_MAX, rl.RATE_LIMIT_GENERAL_RETRY_AFTER_MS) == (50, 1000)

    def test_monitoring_defaults(self):
        monitoring = Settings().monitoring

        assert monitoring.MONITORING_ENABLED is True
        assert monitoring.MONITORING_BUFFER_CAPACITY == 1000


@pytest.mark.unit
class TestSettingsEnvironment:
    """Test environment variable overrides."""

    def test_env_overrides_rate_limit(self, monkeypatch):
        """Test that env vars reach the nested section."""
        monkeypatch.setenv("RATE_LIMIT_PHOTO_MAX", "3")

        assert Settings().rate_limit.RATE_LIMIT_PHOTO_MAX == 3

    def test_log_level_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert Settings().logging.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("CACHE_PERSISTENT_BACKEND", "sqlite")

        with pytest.raises(ValidationError):
            Settings()


@pytest.mark.unit
class TestSettingsSingleton:
    """Test get_settings()/reload_settings()."""

    def test_get_settings_is_singleton(self):
        assert get_settings() is get_settings()

    def test_reload_settings_replaces_instance(self):
        before = get_settings()

        after = reload_settings()

        assert after is not before
        assert get_settings() is after
