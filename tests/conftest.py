"""Shared test fixtures and configuration for all tests.

RETRY_DURATION has no default and the Celery app reads settings at import,
so the test environment is set before any retry_processor import.
"""

import os

os.environ.setdefault("RETRY_DURATION", "86400")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")
os.environ.setdefault("TRANSPORT_BACKEND", "memory")
os.environ.setdefault("SCHEDULER_BACKEND", "memory")

import json
from datetime import timedelta
from typing import Any, Dict

import pytest

from retry_processor.config import Settings
from retry_processor.models.envelope import Envelope

# 2026-01-01T00:00:00Z
NOW_MS = 1_767_225_600_000


class FixedClock:
    """Settable epoch-millis clock."""

    def __init__(self, now_ms: int = NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing."""
    return Settings(
        # === Application ===
        APP_NAME="Retry Processor (Test)",
        APP_VERSION="0.1.0",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Retry ===
        RETRY_DURATION=timedelta(hours=24),

        # === Transport & Scheduling ===
        TRANSPORT_BACKEND="memory",
        SCHEDULER_BACKEND="memory",
        RECEIVE_TIMEOUT_SECONDS=1,
        REDELIVERY_DELAY_MS=10,

        # === Redis ===
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,

        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def first_failure() -> Envelope:
    """Envelope for a request that just failed for the first time."""
    return Envelope(
        payload=b"",
        metadata={"request_method": "GET", "request_url": "http://x/y"},
    )


@pytest.fixture
def make_envelope():
    """Factory for envelopes with arbitrary payload and metadata."""

    def _make(payload: Any = b"", **metadata) -> Envelope:
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload)
        return Envelope(payload=payload, metadata=metadata)

    return _make


@pytest.fixture
def sample_post_body() -> Dict[str, Any]:
    return {"orderId": 42, "items": [{"sku": "A-1", "qty": 2}]}
