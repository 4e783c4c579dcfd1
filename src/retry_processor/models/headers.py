"""
Envelope metadata keys and typed readers.

Transports may hand over header values as strings, so the readers accept
decimal strings for integer keys and ISO-8601 strings for the deadline.
Anything else is a contract violation by the upstream stage.
"""

import re
from datetime import datetime, timezone
from typing import Any, Mapping

from retry_processor.exceptions import MalformedEnvelopeError

TRACE_ID = "trace_id"
RETRY_UNTIL = "retry_until"
RETRY_COUNT = "retry_count"
REQUEST_URL = "request_url"
REQUEST_METHOD = "request_method"
STATUS_CODE = "status_code"
CONTENT_TYPE = "content_type"

_MISSING = object()
_INTEGER = re.compile(r"^\s*-?\d+\s*$")


def to_epoch_millis(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedEnvelopeError(f"Metadata '{key}' must be an integer", key=key, value=value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.match(value):
        return int(value.strip())
    raise MalformedEnvelopeError(f"Metadata '{key}' must be an integer", key=key, value=value)


def read_int(metadata: Mapping[str, Any], key: str, required: bool = True) -> int | None:
    """
    Read an integer metadata value.

    Args:
        metadata: Envelope metadata
        key: Metadata key
        required: Raise when the key is absent (otherwise return None)

    Raises:
        MalformedEnvelopeError: If the value is missing (and required) or not an integer
    """
    value = metadata.get(key, _MISSING)
    if value is _MISSING or value is None:
        if required:
            raise MalformedEnvelopeError(f"Metadata '{key}' is required", key=key)
        return None
    return _coerce_int(key, value)


def _normalize_utc_suffix(value: str) -> str:
    # fromisoformat only accepts a "Z" designator from Python 3.11 on
    if value[-1:] in ("Z", "z"):
        return value[:-1] + "+00:00"
    return value


def read_epoch_millis(metadata: Mapping[str, Any], key: str) -> int:
    """
    Read a timestamp metadata value as epoch milliseconds.

    Accepts integers (epoch millis), datetimes and ISO-8601 strings.

    Raises:
        MalformedEnvelopeError: If the value is missing or unparsable
    """
    value = metadata.get(key, _MISSING)
    if value is _MISSING or value is None:
        raise MalformedEnvelopeError(f"Metadata '{key}' is required", key=key)
    if isinstance(value, datetime):
        return to_epoch_millis(value)
    if isinstance(value, str) and not _INTEGER.match(value):
        try:
            return to_epoch_millis(datetime.fromisoformat(_normalize_utc_suffix(value.strip())))
        except ValueError as exc:
            raise MalformedEnvelopeError(
                f"Metadata '{key}' is not a valid timestamp", key=key, value=value
            ) from exc
    return _coerce_int(key, value)


def read_str(metadata: Mapping[str, Any], key: str, required: bool = True) -> str | None:
    """
    Read a string metadata value (non-string scalars are stringified).

    Raises:
        MalformedEnvelopeError: If the value is missing or blank (and required)
    """
    value = metadata.get(key, _MISSING)
    if value is _MISSING or value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise MalformedEnvelopeError(f"Metadata '{key}' is required", key=key)
        return None
    return value if isinstance(value, str) else str(value)
