"""
Exhaustion reporter.

Builds the diagnostic envelope published on the output channel once the
retry window has elapsed. The original request body is embedded only for
POST requests whose content type is JSON, plain text or XML compatible:
parsed as JSON when possible, otherwise as the raw text.
"""

import codecs
import json
from http import HTTPStatus
from typing import Any

import structlog

from retry_processor.models.diagnostic import DiagnosticReport
from retry_processor.models.envelope import Envelope
from retry_processor.models.headers import (
    CONTENT_TYPE,
    REQUEST_METHOD,
    REQUEST_URL,
    STATUS_CODE,
    TRACE_ID,
    read_int,
    read_str,
)
from retry_processor.retry.media_types import (
    APPLICATION_JSON,
    TEXT_PLAIN,
    TEXT_XML,
    MediaType,
)

logger = structlog.get_logger(__name__)

BODY_MEDIA_TYPES = (APPLICATION_JSON, TEXT_PLAIN, TEXT_XML)
REPORT_CONTENT_TYPE = "application/json"


class ExhaustionReporter:
    """
    Turns an exhausted envelope into a Bad Gateway diagnostic envelope.

    Attributes:
        status_code: Status recorded on the outgoing envelope (502)
    """

    def __init__(self, status_code: int = HTTPStatus.BAD_GATEWAY.value):
        self.status_code = status_code

    def report(self, envelope: Envelope) -> Envelope:
        """
        Build the diagnostic envelope for an exhausted request.

        Incoming metadata is carried over; status_code and content_type are
        replaced.

        Raises:
            MalformedEnvelopeError: If request_method is missing or status_code
                is not an integer
        """
        diagnostic = self.build_report(envelope)
        return envelope.with_payload(
            diagnostic.to_json_bytes(),
            **{STATUS_CODE: self.status_code, CONTENT_TYPE: REPORT_CONTENT_TYPE},
        )

    def build_report(self, envelope: Envelope) -> DiagnosticReport:
        method = read_str(envelope.metadata, REQUEST_METHOD).strip().upper()
        fields: dict[str, Any] = {
            "url": read_str(envelope.metadata, REQUEST_URL, required=False),
            "method": method,
            "remote_status_code": read_int(envelope.metadata, STATUS_CODE, required=False),
        }

        media_type = self._body_media_type(envelope, method)
        if media_type is not None:
            fields["body"] = decode_body(envelope.payload, media_type)

        return DiagnosticReport(**fields)

    def _body_media_type(self, envelope: Envelope, method: str) -> MediaType | None:
        """Content type of an embeddable body, or None when no body is reported."""
        if method != "POST":
            return None
        raw = read_str(envelope.metadata, CONTENT_TYPE, required=False)
        if raw is None:
            return None
        try:
            media_type = MediaType.parse(raw)
        except ValueError:
            logger.warning(
                "Unparsable content type on exhausted request, body omitted",
                content_type=raw,
                trace_id=envelope.get(TRACE_ID),
            )
            return None
        if any(media_type.is_compatible_with(candidate) for candidate in BODY_MEDIA_TYPES):
            return media_type
        return None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def decode_body(payload: bytes, media_type: MediaType) -> Any:
    """
    Interpret a request payload for the diagnostic report.

    Returns the parsed JSON value, or the payload text when it is not strict
    JSON (NaN and Infinity included, as are documents nested too deeply to
    parse). Never raises.
    """
    try:
        return json.loads(payload, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return payload_text(payload, media_type.charset)


def payload_text(payload: bytes, charset: str | None = None) -> str:
    """Decode payload bytes using the declared charset, falling back to UTF-8."""
    encoding = "utf-8"
    if charset:
        try:
            encoding = codecs.lookup(charset).name
        except LookupError:
            logger.debug("Unknown charset, decoding as utf-8", charset=charset)
    return payload.decode(encoding, errors="replace")
