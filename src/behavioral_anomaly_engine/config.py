"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
behavioral anomaly engine, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging.config
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL or SQLite (aiosqlite) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string"
            )
        return v


class RedisSettings(BaseSettings):
    """Redis settings for per-player locking."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; enables per-player locks when set",
    )
    lock_timeout_seconds: float = Field(
        default=10.0,
        alias="REDIS_LOCK_TIMEOUT_SECONDS",
        description="Auto-release time for a held player lock",
        gt=0,
    )
    lock_blocking_timeout_seconds: float = Field(
        default=5.0,
        alias="REDIS_LOCK_BLOCKING_TIMEOUT_SECONDS",
        description="How long to wait for a busy player lock",
        gt=0,
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v

    @property
    def enabled(self) -> bool:
        """Check if Redis-backed locking is enabled."""
        return self.url is not None


class DetectionSettings(BaseSettings):
    """Tunable limits for session scoring and profile bookkeeping."""

    model_config = SettingsConfigDict(env_prefix="DETECTION_")

    session_window: int = Field(default=50, alias="DETECTION_SESSION_WINDOW", ge=1)
    anomaly_window: int = Field(default=100, alias="DETECTION_ANOMALY_WINDOW", ge=1)
    baseline_min_sessions: int = Field(
        default=10,
        alias="DETECTION_BASELINE_MIN_SESSIONS",
        description="Stored sessions required before a baseline is attempted",
        ge=1,
    )
    baseline_min_clean_sessions: int = Field(
        default=5,
        alias="DETECTION_BASELINE_MIN_CLEAN_SESSIONS",
        description="Clean sessions required to establish a baseline",
        ge=1,
    )
    clean_score_ceiling: float = Field(
        default=30.0,
        alias="DETECTION_CLEAN_SCORE_CEILING",
        description="Composite anomaly score below which a session counts as clean",
        ge=0,
        le=100,
    )
    clean_min_samples: int = Field(
        default=100,
        alias="DETECTION_CLEAN_MIN_SAMPLES",
        description="Minimum sample count for a session to count as clean",
        ge=0,
    )
    trust_initial: int = Field(default=50, alias="DETECTION_TRUST_INITIAL", ge=0, le=100)
    trust_reward: int = Field(default=1, alias="DETECTION_TRUST_REWARD", ge=0)
    trust_penalty: int = Field(default=5, alias="DETECTION_TRUST_PENALTY", ge=0)

    @model_validator(mode="after")
    def validate_baseline_fits_window(self) -> DetectionSettings:
        """Validate that the session window can hold enough sessions for a baseline."""
        if self.session_window < self.baseline_min_sessions:
            raise ValueError(
                "DETECTION_SESSION_WINDOW must be at least DETECTION_BASELINE_MIN_SESSIONS"
            )
        if self.session_window < self.baseline_min_clean_sessions:
            raise ValueError(
                "DETECTION_SESSION_WINDOW must be at least DETECTION_BASELINE_MIN_CLEAN_SESSIONS"
            )
        return self


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from behavioral_anomaly_engine.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.detection.session_window)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "detection": {
                "session_window": str(self.detection.session_window),
                "anomaly_window": str(self.detection.anomaly_window),
                "baseline_min_sessions": str(self.detection.baseline_min_sessions),
                "baseline_min_clean_sessions": str(self.detection.baseline_min_clean_sessions),
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


def configure_logging(level: str) -> None:
    """Configure console logging for the engine.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING"},
            "redis": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
