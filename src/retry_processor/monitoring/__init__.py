"""Monitoring and metrics instrumentation for the Retry Processor.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from retry_processor.monitoring.metrics import (
    backoff_delay_seconds,
    delayed_envelopes_released_total,
    delayed_release_failures_total,
    envelopes_processed_total,
    envelopes_rejected_total,
    retries_exhausted_total,
    retries_scheduled_total,
)

__all__ = [
    "envelopes_processed_total",
    "retries_scheduled_total",
    "retries_exhausted_total",
    "envelopes_rejected_total",
    "backoff_delay_seconds",
    "delayed_envelopes_released_total",
    "delayed_release_failures_total",
]
