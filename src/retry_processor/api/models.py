"""
Response models for the operational API.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(
        description="Overall health status",
        examples=["healthy", "unhealthy"],
    )
    version: str = Field(
        description="Retry processor version",
        examples=["0.1.0"],
    )
    consumer_running: bool = Field(
        description="Whether the input consumer loop is running",
    )
    scheduler_backend: str = Field(
        description="Delay scheduler backend",
        examples=["memory", "redis", "celery"],
    )
    pending_delayed: Optional[int] = Field(
        default=None,
        description="Envelopes waiting for their backoff (None when the backend cannot tell)",
    )
    services: dict[str, str] = Field(
        default_factory=dict,
        description="Dependency health status",
        examples=[{"redis": "ok"}],
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Health check timestamp (UTC)",
    )


class ServiceInfoResponse(BaseModel):
    """Response for the root endpoint."""

    service: str
    version: str
    health: str = "/health"
    metrics: Optional[str] = None
