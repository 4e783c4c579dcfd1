"""
Envelope model: the unit of work exchanged with the transport.

An envelope is an opaque byte payload plus a flat metadata mapping. It is
immutable: every transition produces a new envelope, so a copy held by the
delay scheduler can never be changed by the version still in flight.

Wire format (used by the Redis transport and Celery tasks):
    {"payload": "<base64>", "metadata": {"retry_count": 1, ...}}
"""

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from retry_processor.exceptions import MalformedEnvelopeError

MetadataValue = Union[str, int, datetime]


class EnvelopeMessage(BaseModel):
    """JSON wire representation of an Envelope."""

    model_config = ConfigDict(frozen=True)

    payload: str = Field(default="", description="Base64-encoded payload bytes")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Envelope metadata")


@dataclass(frozen=True)
class Envelope:
    """
    Immutable message: payload bytes plus metadata.

    Attributes:
        payload: Opaque payload (text is stored UTF-8 encoded)
        metadata: Read-only view of the metadata (str -> str | int | datetime)
    """

    payload: bytes = b""
    metadata: Mapping[str, MetadataValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize payload and freeze metadata."""
        payload = self.payload
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        elif isinstance(payload, (bytearray, memoryview)):
            payload = bytes(payload)
        elif not isinstance(payload, bytes):
            raise TypeError(f"payload must be bytes or str, got {type(payload).__name__}")

        frozen: dict[str, MetadataValue] = {}
        for key, value in dict(self.metadata).items():
            if not isinstance(key, str):
                raise TypeError(f"metadata keys must be strings, got {key!r}")
            if isinstance(value, bool) or not isinstance(value, (str, int, datetime)):
                raise TypeError(
                    f"metadata '{key}' must be str, int or datetime, got {type(value).__name__}"
                )
            frozen[key] = value

        object.__setattr__(self, "payload", payload)
        object.__setattr__(self, "metadata", MappingProxyType(frozen))

    def get(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.metadata

    def with_metadata(self, **updates: MetadataValue) -> "Envelope":
        """Return a copy with the given metadata keys set (payload unchanged)."""
        return Envelope(payload=self.payload, metadata={**self.metadata, **updates})

    def with_payload(self, payload: bytes | str, **updates: MetadataValue) -> "Envelope":
        """Return a copy with a new payload and, optionally, metadata updates."""
        return Envelope(payload=payload, metadata={**self.metadata, **updates})

    def to_message(self) -> EnvelopeMessage:
        return EnvelopeMessage(
            payload=base64.b64encode(self.payload).decode("ascii"),
            metadata=dict(self.metadata),
        )

    def to_wire(self) -> str:
        """Serialize to the JSON wire format."""
        return self.to_message().model_dump_json()

    @classmethod
    def from_wire(cls, data: str | bytes) -> "Envelope":
        """
        Deserialize from the JSON wire format.

        Raises:
            MalformedEnvelopeError: If the data is not a valid wire envelope
        """
        try:
            message = EnvelopeMessage.model_validate_json(data)
            payload = base64.b64decode(message.payload, validate=True)
            return cls(payload=payload, metadata=message.metadata)
        except PydanticValidationError as exc:
            raise MalformedEnvelopeError(f"Invalid envelope wire format: {exc.error_count()} error(s)") from exc
        except (binascii.Error, ValueError) as exc:
            raise MalformedEnvelopeError(f"Invalid envelope payload encoding: {exc}") from exc
        except TypeError as exc:
            raise MalformedEnvelopeError(f"Invalid envelope metadata: {exc}") from exc
