"""
Retry processor exceptions.

Error taxonomy:
- ConfigurationError: missing/invalid settings, fatal at startup
- MalformedEnvelopeError: an envelope breaks the metadata contract; the single
  envelope is rejected to the transport, the process keeps running

Payload decoding problems are not errors: the exhaustion reporter degrades
to embedding the payload text verbatim.
"""

from typing import Any


class RetryProcessorError(Exception):
    """Base exception for all retry processor errors."""


class ConfigurationError(RetryProcessorError):
    """
    Raised when the service configuration is missing or invalid.

    Only ever raised while loading settings at startup.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class MalformedEnvelopeError(RetryProcessorError):
    """
    Raised when an envelope violates the metadata contract.

    Attributes:
        key: Metadata key that caused the failure (None for wire-level errors)
        value: Offending value, if any
    """

    def __init__(self, message: str, key: str | None = None, value: Any = None) -> None:
        self.key = key
        self.value = value
        super().__init__(message)

    @property
    def details(self) -> dict[str, Any]:
        """Structured details for logs and rejection records."""
        return {"key": self.key, "value": repr(self.value) if self.value is not None else None}
