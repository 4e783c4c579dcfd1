"""
Transport protocol: the boundary with the message binder.

The processor consumes envelopes from the input channel, publishes to the
retry and output channels, and rejects envelopes it cannot handle.
"""

from datetime import datetime, timezone
from typing import Any, Protocol

from retry_processor.exceptions import MalformedEnvelopeError
from retry_processor.models.envelope import Envelope


class Transport(Protocol):
    """Protocol for envelope transports."""

    async def receive(self, timeout: float = 1.0) -> Envelope | None:
        """Next envelope from the input channel, or None after timeout."""
        ...

    async def publish(self, channel: str, envelope: Envelope) -> None:
        ...

    async def reject(
        self,
        envelope: Envelope | None,
        error: Exception,
        raw: str | bytes | None = None,
    ) -> None:
        """Signal that a single message could not be processed."""
        ...

    async def close(self) -> None:
        ...


def rejection_record(
    envelope: Envelope | None,
    error: Exception,
    raw: str | bytes | None = None,
) -> dict[str, Any]:
    """Build the JSON-serializable record describing a rejected message."""
    record: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error": str(error),
        "rejected_at": datetime.now(timezone.utc).isoformat(),
    }
    if isinstance(error, MalformedEnvelopeError):
        record["details"] = error.details
    if envelope is not None:
        record["envelope"] = envelope.to_wire()
    elif raw is not None:
        record["raw"] = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    return record
