#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
request/cache orchestration layer. All configuration is centralized here to
ensure consistency across modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- IDE autocomplete for all settings
- Easy testing with override mechanisms

Author: Mess Platform Team
Date: 2025-12-05
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from messcache.core.config import constants as c


class RedisSettings(BaseSettings):
    """
    Redis configuration for the persistent cache tier.

    Only used when CACHE_PERSISTENT_BACKEND is "redis".
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Two-tier cache configuration.

    STAGE-3: Cache TTL and retry defaults (milliseconds)
    """

    CACHE_DEFAULT_TTL_MS: int = Field(default=c.DEFAULT_TTL_MS, description="Default entry TTL")
    CACHE_RETRY_COUNT: int = Field(default=c.DEFAULT_RETRY_COUNT, description="Retries per fetch")
    CACHE_RETRY_DELAY_MS: int = Field(
        default=c.DEFAULT_RETRY_DELAY_MS, description="Base delay for exponential backoff"
    )
    CACHE_BACKGROUND_DELAY_MS: int = Field(
        default=c.BACKGROUND_QUEUE_DELAY_MS, description="Spacing between background refreshes"
    )
    CACHE_PERSISTENT_BACKEND: Literal["memory", "redis"] = Field(
        default="memory", description="Durable store used by the persistent tier"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Per-resource-class rate limit policies.

    STAGE-2: Rate limiting thresholds

    The same defaults seed both the fail-fast RateLimiter and the queueing
    RequestThrottler; the two keep independent counters.
    """

    RATE_LIMIT_WINDOW_MS: int = Field(default=c.RATE_LIMIT_WINDOW_MS, description="Window length")

    RATE_LIMIT_PHOTO_MAX: int = Field(default=c.PHOTO_MAX_REQUESTS)
    RATE_LIMIT_PHOTO_RETRY_AFTER_MS: int = Field(default=c.PHOTO_RETRY_AFTER_MS)
    RATE_LIMIT_PROFILE_MAX: int = Field(default=c.PROFILE_MAX_REQUESTS)
    RATE_LIMIT_PROFILE_RETRY_AFTER_MS: int = Field(default=c.PROFILE_RETRY_AFTER_MS)
    RATE_LIMIT_USER_MAX: int = Field(default=c.USER_MAX_REQUESTS)
    RATE_LIMIT_USER_RETRY_AFTER_MS: int = Field(default=c.USER_RETRY_AFTER_MS)
    RATE_LIMIT_GENERAL_MAX: int = Field(default=c.GENERAL_MAX_REQUESTS)
    RATE_LIMIT_GENERAL_RETRY_AFTER_MS: int = Field(default=c.GENERAL_RETRY_AFTER_MS)

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class MonitoringSettings(BaseSettings):
    """
    Performance monitor configuration.

    STAGE-M: Metric buffer sizing
    """

    MONITORING_ENABLED: bool = Field(default=True, description="Record request metrics")
    MONITORING_BUFFER_CAPACITY: int = Field(
        default=c.METRICS_BUFFER_CAPACITY, description="Metrics kept in the ring buffer"
    )

    @field_validator("MONITORING_BUFFER_CAPACITY")
    @classmethod
    def validate_capacity(cls, v):
        """Buffer must hold at least one metric."""
        if v < 1:
            raise ValueError("MONITORING_BUFFER_CAPACITY must be >= 1")
        return v

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings for the diagnostics API.
    """

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )
    APP_NAME: str = Field(default="Mess Request Cache Diagnostics", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from messcache.core.config.settings import get_settings

        settings = get_settings()
        ttl = settings.cache.CACHE_DEFAULT_TTL_MS
        photo_max = settings.rate_limit.RATE_LIMIT_PHOTO_MAX
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")

    # Cache settings
    CACHE_DEFAULT_TTL_MS: int = Field(default=c.DEFAULT_TTL_MS, description="Default entry TTL")
    CACHE_RETRY_COUNT: int = Field(default=c.DEFAULT_RETRY_COUNT, description="Retries per fetch")
    CACHE_RETRY_DELAY_MS: int = Field(
        default=c.DEFAULT_RETRY_DELAY_MS, description="Base delay for exponential backoff"
    )
    CACHE_BACKGROUND_DELAY_MS: int = Field(
        default=c.BACKGROUND_QUEUE_DELAY_MS, description="Spacing between background refreshes"
    )
    CACHE_PERSISTENT_BACKEND: Literal["memory", "redis"] = Field(
        default="memory", description="Durable store used by the persistent tier"
    )

    # Rate limit settings
    RATE_LIMIT_WINDOW_MS: int = Field(default=c.RATE_LIMIT_WINDOW_MS, description="Window length")
    RATE_LIMIT_PHOTO_MAX: int = Field(default=c.PHOTO_MAX_REQUESTS)
    RATE_LIMIT_PHOTO_RETRY_AFTER_MS: int = Field(default=c.PHOTO_RETRY_AFTER_MS)
    RATE_LIMIT_PROFILE_MAX: int = Field(default=c.PROFILE_MAX_REQUESTS)
    RATE_LIMIT_PROFILE_RETRY_AFTER_MS: int = Field(default=c.PROFILE_RETRY_AFTER_MS)
    RATE_LIMIT_USER_MAX: int = Field(default=c.USER_MAX_REQUESTS)
    RATE_LIMIT_USER_RETRY_AFTER_MS: int = Field(default=c.USER_RETRY_AFTER_MS)
    RATE_LIMIT_GENERAL_MAX: int = Field(default=c.GENERAL_MAX_REQUESTS)
    RATE_LIMIT_GENERAL_RETRY_AFTER_MS: int = Field(default=c.GENERAL_RETRY_AFTER_MS)

    # Monitoring settings
    MONITORING_ENABLED: bool = Field(default=True, description="Record request metrics")
    MONITORING_BUFFER_CAPACITY: int = Field(
        default=c.METRICS_BUFFER_CAPACITY, description="Metrics kept in the ring buffer"
    )

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )
    APP_NAME: str = Field(default="Mess Request Cache Diagnostics", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=8000, description="API port")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration objects
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_DEFAULT_TTL_MS=self.CACHE_DEFAULT_TTL_MS,
            CACHE_RETRY_COUNT=self.CACHE_RETRY_COUNT,
            CACHE_RETRY_DELAY_MS=self.CACHE_RETRY_DELAY_MS,
            CACHE_BACKGROUND_DELAY_MS=self.CACHE_BACKGROUND_DELAY_MS,
            CACHE_PERSISTENT_BACKEND=self.CACHE_PERSISTENT_BACKEND,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_WINDOW_MS=self.RATE_LIMIT_WINDOW_MS,
            RATE_LIMIT_PHOTO_MAX=self.RATE_LIMIT_PHOTO_MAX,
            RATE_LIMIT_PHOTO_RETRY_AFTER_MS=self.RATE_LIMIT_PHOTO_RETRY_AFTER_MS,
            RATE_LIMIT_PROFILE_MAX=self.RATE_LIMIT_PROFILE_MAX,
            RATE_LIMIT_PROFILE_RETRY_AFTER_MS=self.RATE_LIMIT_PROFILE_RETRY_AFTER_MS,
            RATE_LIMIT_USER_MAX=self.RATE_LIMIT_USER_MAX,
            RATE_LIMIT_USER_RETRY_AFTER_MS=self.RATE_LIMIT_USER_RETRY_AFTER_MS,
            RATE_LIMIT_GENERAL_MAX=self.RATE_LIMIT_GENERAL_MAX,
            RATE_LIMIT_GENERAL_RETRY_AFTER_MS=self.RATE_LIMIT_GENERAL_RETRY_AFTER_MS,
        )

    @property
    def monitoring(self) -> MonitoringSettings:
        """Get performance monitoring settings."""
        return MonitoringSettings(
            MONITORING_ENABLED=self.MONITORING_ENABLED,
            MONITORING_BUFFER_CAPACITY=self.MONITORING_BUFFER_CAPACITY,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    STAGE-0.1: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
