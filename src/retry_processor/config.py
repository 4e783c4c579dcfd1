"""
Configuration settings for the Retry Processor.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development. RETRY_DURATION has no default: a
missing retry window is a startup failure.
"""

import re
from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from retry_processor.exceptions import ConfigurationError

_SHORTHAND_DURATION = re.compile(r"^\s*(\d+)\s*([smhd])\s*$", re.IGNORECASE)
_SHORTHAND_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Retry Processor"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Retry ===
    RETRY_DURATION: timedelta  # Retry window, integers are seconds (e.g. 86400, "24H", "PT24H")

    # === Transport & Scheduling ===
    TRANSPORT_BACKEND: Literal["redis", "memory"] = "redis"
    SCHEDULER_BACKEND: Literal["memory", "redis", "celery"] = "memory"
    CHANNEL_PREFIX: str = "retry"  # Redis keys: {prefix}:input, {prefix}:retry, ...
    DELAY_GROUP: str = "RetryProcessor.delay"
    RECEIVE_TIMEOUT_SECONDS: int = 1
    CONSUMER_CONCURRENCY: int = 64
    SCHEDULER_POLL_INTERVAL_SECONDS: float = 0.5
    SCHEDULER_BATCH_SIZE: int = 100
    REDELIVERY_DELAY_MS: int = 1000  # Back-off after a failed release

    # === Redis & Celery ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"
    CELERY_RELEASE_QUEUE: str = "retry-release"
    CELERY_WORKER_CONCURRENCY: int = 4

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True

    @field_validator("RETRY_DURATION", mode="before")
    @classmethod
    def parse_shorthand_duration(cls, value):
        """Accept "30s", "15m", "24H", "7d" on top of seconds and ISO-8601."""
        if isinstance(value, str):
            if value.strip().isdigit():
                return timedelta(seconds=int(value))
            match = _SHORTHAND_DURATION.match(value)
            if match:
                amount, unit = match.groups()
                return timedelta(**{_SHORTHAND_UNITS[unit.lower()]: int(amount)})
        return value

    @field_validator("RETRY_DURATION")
    @classmethod
    def check_positive_duration(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("RETRY_DURATION must be positive")
        return value

    @field_validator("CONSUMER_CONCURRENCY", "SCHEDULER_BATCH_SIZE")
    @classmethod
    def check_positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @property
    def retry_window_ms(self) -> int:
        """Retry window in milliseconds."""
        return int(self.RETRY_DURATION.total_seconds() * 1000)


def load_settings(**overrides) -> Settings:
    """
    Build settings from the environment, translating validation failures.

    Raises:
        ConfigurationError: If a setting is missing or invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ConfigurationError(
            f"Invalid retry processor configuration: {fields}",
            errors=exc.errors(),
        ) from exc


@lru_cache()
def get_settings() -> Settings:
    """
    Get settings singleton (read once at startup).

    Returns:
        Settings instance
    """
    return load_settings()
