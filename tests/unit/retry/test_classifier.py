"""
Unit tests for the retry classifier state machine.

The clock is injected, so deadline boundaries are tested exactly.
"""

from datetime import datetime, timedelta, timezone

import pytest

from retry_processor.exceptions import MalformedEnvelopeError
from retry_processor.models.enums import Channel, RetryState
from retry_processor.models.envelope import Envelope
from retry_processor.retry.classifier import RetryClassifier, RoutingDecision, classify

WINDOW = timedelta(hours=24)
WINDOW_MS = 24 * 60 * 60 * 1000


@pytest.fixture
def classifier(clock) -> RetryClassifier:
    return RetryClassifier(WINDOW, clock=clock, trace_id_factory=lambda: "trace-fixed")


class TestClassify:
    """Pure classification against a given now."""

    def test_no_deadline_is_new(self, first_failure, clock):
        assert classify(first_failure, clock.now_ms) is RetryState.NEW

    def test_future_deadline_is_retrying(self, make_envelope, clock):
        envelope = make_envelope(retry_until=clock.now_ms + 1, retry_count=1)
        assert classify(envelope, clock.now_ms) is RetryState.RETRYING

    def test_deadline_equal_to_now_is_exhausted(self, make_envelope, clock):
        envelope = make_envelope(retry_until=clock.now_ms, retry_count=3)
        assert classify(envelope, clock.now_ms) is RetryState.EXHAUSTED

    def test_past_deadline_is_exhausted(self, make_envelope, clock):
        envelope = make_envelope(retry_until=clock.now_ms - 1, retry_count=3)
        assert classify(envelope, clock.now_ms) is RetryState.EXHAUSTED

    def test_count_without_deadline_is_malformed(self, make_envelope, clock):
        envelope = make_envelope(retry_count=2)
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            classify(envelope, clock.now_ms)
        assert exc_info.value.key == "retry_until"

    def test_unparsable_deadline_is_malformed(self, make_envelope, clock):
        envelope = make_envelope(retry_until="next tuesday", retry_count=1)
        with pytest.raises(MalformedEnvelopeError):
            classify(envelope, clock.now_ms)

    def test_deadline_as_iso_string(self, make_envelope, clock):
        deadline = datetime.fromtimestamp((clock.now_ms + 60_000) / 1000, tz=timezone.utc)
        envelope = make_envelope(retry_until=deadline.isoformat(), retry_count=1)
        assert classify(envelope, clock.now_ms) is RetryState.RETRYING

    def test_deadline_as_datetime(self, make_envelope, clock):
        deadline = datetime.fromtimestamp((clock.now_ms - 60_000) / 1000, tz=timezone.utc)
        envelope = make_envelope(retry_until=deadline, retry_count=1)
        assert classify(envelope, clock.now_ms) is RetryState.EXHAUSTED


class TestFirstFailure:
    """NEW envelopes start a lineage."""

    def test_first_failure_is_scheduled_for_retry(self, classifier, first_failure, clock):
        decision = classifier.route(first_failure)

        assert decision.state is RetryState.NEW
        assert decision.channel is Channel.RETRY
        assert decision.envelope.get("retry_count") == 1
        assert decision.envelope.get("trace_id") == "trace-fixed"
        assert decision.envelope.get("retry_until") == clock.now_ms + WINDOW_MS
        assert decision.delay_ms == 2000

    def test_request_metadata_is_preserved(self, classifier, first_failure):
        decision = classifier.route(first_failure)

        assert decision.envelope.get("request_method") == "GET"
        assert decision.envelope.get("request_url") == "http://x/y"
        assert decision.envelope.payload == first_failure.payload

    def test_input_envelope_is_not_modified(self, classifier, first_failure):
        classifier.route(first_failure)

        assert not first_failure.has("retry_count")
        assert not first_failure.has("trace_id")

    def test_existing_trace_id_is_kept(self, classifier, make_envelope):
        envelope = make_envelope(request_method="GET", trace_id="upstream-trace")
        decision = classifier.route(envelope)
        assert decision.envelope.get("trace_id") == "upstream-trace"

    def test_default_trace_ids_are_unique(self, clock, first_failure):
        classifier = RetryClassifier(WINDOW, clock=clock)

        first = classifier.route(first_failure).envelope.get("trace_id")
        second = classifier.route(first_failure).envelope.get("trace_id")

        assert first and second and first != second


class TestRetrying:
    """RETRYING envelopes advance the count and keep the deadline."""

    def test_mid_retry_increments_count(self, classifier, make_envelope, clock):
        deadline = clock.now_ms + 5000
        envelope = make_envelope(
            retry_count=1, retry_until=deadline, status_code=429, trace_id="lineage-1"
        )

        decision = classifier.route(envelope)

        assert decision.state is RetryState.RETRYING
        assert decision.channel is Channel.RETRY
        assert decision.envelope.get("retry_count") == 2
        assert decision.envelope.get("retry_until") == deadline
        assert decision.envelope.get("trace_id") == "lineage-1"
        assert decision.envelope.get("status_code") == 429
        assert decision.delay_ms == 4000

    def test_count_is_monotonic_across_a_lineage(self, classifier, first_failure, clock):
        envelope = first_failure
        counts = []
        for _ in range(5):
            decision = classifier.route(envelope)
            counts.append(decision.retry_count)
            envelope = decision.envelope
            clock.advance(decision.delay_ms)

        assert counts == [1, 2, 3, 4, 5]

    def test_trace_id_stamped_when_missing_mid_lineage(self, classifier, make_envelope, clock):
        envelope = make_envelope(retry_count=1, retry_until=clock.now_ms + 5000)
        decision = classifier.route(envelope)
        assert decision.envelope.get("trace_id") == "trace-fixed"

    def test_count_as_string_header(self, classifier, make_envelope, clock):
        envelope = make_envelope(retry_count="3", retry_until=str(clock.now_ms + 5000))
        decision = classifier.route(envelope)
        assert decision.envelope.get("retry_count") == 4

    @pytest.mark.parametrize("bad_count", [0, -2, "three"])
    def test_invalid_count_is_malformed(self, classifier, make_envelope, clock, bad_count):
        envelope = make_envelope(retry_count=bad_count, retry_until=clock.now_ms + 5000)
        with pytest.raises(MalformedEnvelopeError) as exc_info:
            classifier.route(envelope)
        assert exc_info.value.key == "retry_count"

    def test_missing_count_with_deadline_is_malformed(self, classifier, make_envelope, clock):
        envelope = make_envelope(retry_until=clock.now_ms + 5000)
        with pytest.raises(MalformedEnvelopeError):
            classifier.route(envelope)


class TestExhausted:
    """EXHAUSTED envelopes go to the output channel unchanged apart from trace_id."""

    def test_exhausted_routes_to_output(self, classifier, make_envelope, clock):
        envelope = make_envelope(retry_count=7, retry_until=clock.now_ms, trace_id="t-1")

        decision = classifier.route(envelope)

        assert decision.state is RetryState.EXHAUSTED
        assert decision.channel is Channel.OUTPUT
        assert decision.delay_ms is None
        assert decision.envelope == envelope

    def test_boundary_one_millisecond_before_deadline(self, classifier, make_envelope, clock):
        envelope = make_envelope(retry_count=1, retry_until=clock.now_ms + 1)

        assert classifier.route(envelope).state is RetryState.RETRYING
        clock.advance(1)
        assert classifier.route(envelope).state is RetryState.EXHAUSTED

    def test_exhausted_without_trace_id_gets_one(self, classifier, make_envelope, clock):
        envelope = make_envelope(retry_count=1, retry_until=clock.now_ms - 10)
        decision = classifier.route(envelope)
        assert decision.envelope.get("trace_id") == "trace-fixed"


def test_stamp_trace_id_is_idempotent(classifier, first_failure):
    once = classifier.stamp_trace_id(first_failure)
    twice = classifier.stamp_trace_id(once)
    assert twice is once


def test_routing_decision_retry_count(make_envelope):
    decision = RoutingDecision(RetryState.NEW, make_envelope(retry_count=1), Channel.RETRY, 2000)
    assert decision.retry_count == 1


def test_non_positive_window_rejected(clock):
    with pytest.raises(ValueError):
        RetryClassifier(timedelta(0), clock=clock)


def test_classifier_reads_clock_per_envelope(clock):
    classifier = RetryClassifier(timedelta(seconds=10), clock=clock)
    envelope = classifier.route(Envelope(metadata={"request_method": "GET"})).envelope

    clock.advance(9_999)
    assert classifier.route(envelope).state is RetryState.RETRYING
    clock.advance(1)
    assert classifier.route(envelope).state is RetryState.EXHAUSTED
