"""
Retry processor: routes one envelope through the retry flow.

    input -> RetryClassifier
               NEW / RETRYING -> DelayScheduler --(after backoff)--> retry
               EXHAUSTED      -> ExhaustionReporter -------------> output

Envelopes that break the metadata contract are rejected to the transport;
they never affect other envelopes.

Usage:
    processor = RetryProcessor(classifier, scheduler, reporter, transport)
    ok = await processor.handle(envelope)
"""

import structlog

from retry_processor.exceptions import MalformedEnvelopeError
from retry_processor.models.enums import Channel, RetryState
from retry_processor.models.envelope import Envelope
from retry_processor.models.headers import REQUEST_METHOD, REQUEST_URL, RETRY_COUNT, TRACE_ID
from retry_processor.monitoring.metrics import (
    backoff_delay_seconds,
    envelopes_processed_total,
    envelopes_rejected_total,
    retries_exhausted_total,
    retries_scheduled_total,
)
from retry_processor.retry.classifier import RetryClassifier, RoutingDecision
from retry_processor.retry.reporter import ExhaustionReporter
from retry_processor.scheduling.base import DEFAULT_DELAY_GROUP, DelayScheduler
from retry_processor.transport.base import Transport

logger = structlog.get_logger(__name__)

_RETRY_EVENTS = {
    RetryState.NEW: "Started retry for message",
    RetryState.RETRYING: "Retrying message",
}


class RetryProcessor:
    """
    Routing stage between the classifier and its two outlets.

    Attributes:
        classifier: Retry state machine
        scheduler: Delay scheduler for retry re-emission
        reporter: Diagnostic builder for exhausted envelopes
        transport: Destination of reports and rejections
        group_key: Delay group used for every scheduled retry
    """

    def __init__(
        self,
        classifier: RetryClassifier,
        scheduler: DelayScheduler,
        reporter: ExhaustionReporter,
        transport: Transport,
        group_key: str = DEFAULT_DELAY_GROUP,
    ):
        self.classifier = classifier
        self.scheduler = scheduler
        self.reporter = reporter
        self.transport = transport
        self.group_key = group_key

    async def process(self, envelope: Envelope) -> RoutingDecision:
        """
        Classify an envelope and dispatch it.

        Returns:
            The routing decision that was applied

        Raises:
            MalformedEnvelopeError: If the envelope breaks the metadata contract
        """
        decision = self.classifier.route(envelope)
        routed = decision.envelope

        with structlog.contextvars.bound_contextvars(
            trace_id=routed.get(TRACE_ID),
            retry_count=routed.get(RETRY_COUNT),
        ):
            envelopes_processed_total.labels(state=decision.state.value).inc()

            if decision.state is RetryState.EXHAUSTED:
                await self._report(routed)
            else:
                await self._schedule(decision)

        return decision

    async def handle(self, envelope: Envelope) -> bool:
        """
        Process an envelope, rejecting it to the transport on failure.

        Returns:
            True if the envelope was routed, False if it was rejected
        """
        try:
            await self.process(envelope)
            return True
        except MalformedEnvelopeError as exc:
            envelopes_rejected_total.labels(reason="malformed_envelope").inc()
            logger.warning(
                "Malformed envelope rejected",
                error=str(exc),
                details=exc.details,
                trace_id=envelope.get(TRACE_ID),
            )
            await self._reject(envelope, exc)
            return False
        except Exception as exc:
            envelopes_rejected_total.labels(reason="internal_error").inc()
            logger.exception(
                "Envelope processing failed",
                error_type=type(exc).__name__,
                trace_id=envelope.get(TRACE_ID),
            )
            await self._reject(envelope, exc)
            return False

    async def _reject(self, envelope: Envelope, error: Exception) -> None:
        try:
            await self.transport.reject(envelope, error)
        except Exception:
            logger.exception(
                "Envelope rejection failed",
                error_type=type(error).__name__,
                trace_id=envelope.get(TRACE_ID),
            )

    async def _schedule(self, decision: RoutingDecision) -> None:
        # delay_ms is computed once by the classifier and reused for logs and scheduling
        delay_ms = decision.delay_ms
        logger.info(
            _RETRY_EVENTS[decision.state],
            delay_ms=delay_ms,
            request_method=decision.envelope.get(REQUEST_METHOD),
            request_url=decision.envelope.get(REQUEST_URL),
        )
        await self.scheduler.schedule(
            decision.envelope,
            delay_ms,
            group_key=self.group_key,
            destination=Channel.RETRY.value,
        )
        retries_scheduled_total.labels(state=decision.state.value).inc()
        backoff_delay_seconds.observe(delay_ms / 1000)

    async def _report(self, envelope: Envelope) -> None:
        logger.info(
            "Retries exhausted for message",
            request_method=envelope.get(REQUEST_METHOD),
            request_url=envelope.get(REQUEST_URL),
        )
        report = self.reporter.report(envelope)
        await self.transport.publish(Channel.OUTPUT.value, report)
        retries_exhausted_total.inc()
