"""
Data models for the retry processor.

- envelope.py: Envelope (immutable payload + metadata) and its wire format
- headers.py: Metadata key names and typed readers
- enums.py: RetryState, Channel
- diagnostic.py: DiagnosticReport emitted on exhaustion
"""

from retry_processor.models.diagnostic import EXHAUSTED_MESSAGE, DiagnosticReport
from retry_processor.models.enums import Channel, RetryState
from retry_processor.models.envelope import Envelope, EnvelopeMessage, MetadataValue

__all__ = [
    "Channel",
    "DiagnosticReport",
    "EXHAUSTED_MESSAGE",
    "Envelope",
    "EnvelopeMessage",
    "MetadataValue",
    "RetryState",
]
