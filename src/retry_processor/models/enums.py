"""
Enumerations for the retry processor.

All enums are closed sets - no values outside these sets are permitted.
"""

from enum import Enum


class RetryState(str, Enum):
    """
    Retry lifecycle state of an incoming envelope.

    NEW and RETRYING both move forward; EXHAUSTED is terminal. There is no
    path back to NEW once an envelope carries a deadline.
    """

    NEW = "new"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


class Channel(str, Enum):
    """Logical channels exchanged with the transport."""

    INPUT = "input"
    RETRY = "retry"
    OUTPUT = "output"
    ERRORS = "errors"


def channel_name(channel: "Channel | str") -> str:
    """Plain channel name for a Channel member or a raw string."""
    return channel.value if isinstance(channel, Channel) else channel
