"""
Diagnostic report emitted when retries are exhausted.

The report is the payload of the envelope published on the output channel.
`body` is only present when the original POST payload could be embedded.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

EXHAUSTED_MESSAGE = "Retry exhausted for request received."


class DiagnosticReport(BaseModel):
    """Structured description of a request that could not be retried further."""

    url: Optional[str] = Field(default=None, description="Original request URL")
    method: str = Field(..., description="Original request method (upper-case)")
    remote_status_code: Optional[int] = Field(
        default=None,
        description="Last status code observed from the remote service",
    )
    message: str = Field(default=EXHAUSTED_MESSAGE, description="Fixed exhaustion message")
    body: Any = Field(
        default=None,
        description="Original request body: parsed JSON, or the raw text on parse failure",
    )

    @property
    def has_body(self) -> bool:
        return "body" in self.model_fields_set

    def to_json_bytes(self) -> bytes:
        """Serialize the report, leaving `body` out unless it was set."""
        exclude = None if self.has_body else {"body"}
        return self.model_dump_json(exclude=exclude).encode("utf-8")
