"""
Retry classifier: the NEW / RETRYING / EXHAUSTED state machine.

All retry state travels with the envelope (trace_id, retry_until,
retry_count), so the classifier holds nothing between envelopes and any
number of workers can share the load.

Transitions (now = injected clock, epoch millis):
    NEW        no retry_until        -> retry_until = now + window, retry_count = 1
    RETRYING   now <  retry_until    -> retry_count += 1
    EXHAUSTED  now >= retry_until    -> hand over to the exhaustion reporter

Every envelope gets a trace_id if it has none; an existing one is kept.
"""

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from retry_processor.clock import Clock, system_clock
from retry_processor.exceptions import MalformedEnvelopeError
from retry_processor.models.enums import Channel, RetryState
from retry_processor.models.envelope import Envelope
from retry_processor.models.headers import (
    RETRY_COUNT,
    RETRY_UNTIL,
    TRACE_ID,
    read_epoch_millis,
    read_int,
)
from retry_processor.retry.backoff import delay_for


def new_trace_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class RoutingDecision:
    """
    Outcome of classifying one envelope.

    Attributes:
        state: Classified retry state
        envelope: Envelope with updated retry metadata
        channel: Destination channel (retry or output)
        delay_ms: Backoff before re-emission (None when exhausted)
    """

    state: RetryState
    envelope: Envelope
    channel: Channel
    delay_ms: int | None = None

    @property
    def retry_count(self) -> int | None:
        return read_int(self.envelope.metadata, RETRY_COUNT, required=False)


def classify(envelope: Envelope, now_ms: int) -> RetryState:
    """
    Classify an envelope against the current time.

    The deadline check is strict: an envelope whose deadline equals now is
    exhausted, not retried.

    Raises:
        MalformedEnvelopeError: If retry_count is present without retry_until,
            or retry_until is unparsable
    """
    if not envelope.has(RETRY_UNTIL):
        if envelope.has(RETRY_COUNT):
            raise MalformedEnvelopeError(
                f"Metadata '{RETRY_COUNT}' present without '{RETRY_UNTIL}'",
                key=RETRY_UNTIL,
            )
        return RetryState.NEW
    if now_ms < read_epoch_millis(envelope.metadata, RETRY_UNTIL):
        return RetryState.RETRYING
    return RetryState.EXHAUSTED


class RetryClassifier:
    """
    Applies the retry state machine to incoming envelopes.

    Attributes:
        retry_window_ms: Retry window in milliseconds (constant for the lifetime)
        clock: Callable returning epoch milliseconds
    """

    def __init__(
        self,
        retry_window: timedelta,
        clock: Clock = system_clock,
        trace_id_factory: Callable[[], str] = new_trace_id,
    ):
        if retry_window <= timedelta(0):
            raise ValueError("retry_window must be positive")
        self.retry_window_ms = int(retry_window.total_seconds() * 1000)
        self.clock = clock
        self.trace_id_factory = trace_id_factory
        self._transitions: dict[RetryState, Callable[[Envelope, int], RoutingDecision]] = {
            RetryState.NEW: self._start_retry,
            RetryState.RETRYING: self._continue_retry,
            RetryState.EXHAUSTED: self._exhaust,
        }

    def route(self, envelope: Envelope) -> RoutingDecision:
        """
        Classify an envelope and compute its next metadata and destination.

        Raises:
            MalformedEnvelopeError: If the envelope breaks the metadata contract
        """
        now_ms = self.clock()
        state = classify(envelope, now_ms)
        return self._transitions[state](self.stamp_trace_id(envelope), now_ms)

    def stamp_trace_id(self, envelope: Envelope) -> Envelope:
        """Add a trace_id unless the envelope already has one."""
        if envelope.has(TRACE_ID):
            return envelope
        return envelope.with_metadata(**{TRACE_ID: self.trace_id_factory()})

    def _start_retry(self, envelope: Envelope, now_ms: int) -> RoutingDecision:
        updated = envelope.with_metadata(
            **{RETRY_UNTIL: now_ms + self.retry_window_ms, RETRY_COUNT: 1}
        )
        return RoutingDecision(RetryState.NEW, updated, Channel.RETRY, delay_for(1))

    def _continue_retry(self, envelope: Envelope, now_ms: int) -> RoutingDecision:
        retry_count = read_int(envelope.metadata, RETRY_COUNT)
        if retry_count < 1:
            raise MalformedEnvelopeError(
                f"Metadata '{RETRY_COUNT}' must be >= 1", key=RETRY_COUNT, value=retry_count
            )
        next_count = retry_count + 1
        updated = envelope.with_metadata(**{RETRY_COUNT: next_count})
        return RoutingDecision(RetryState.RETRYING, updated, Channel.RETRY, delay_for(next_count))

    def _exhaust(self, envelope: Envelope, now_ms: int) -> RoutingDecision:
        return RoutingDecision(RetryState.EXHAUSTED, envelope, Channel.OUTPUT)
