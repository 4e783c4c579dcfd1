"""Custom Prometheus metrics for the Retry Processor.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- retries_exhausted_total (requests given up on, reported as Bad Gateway)
- envelopes_rejected_total (upstream contract violations)
- delayed_release_failures_total (transport unavailable for re-emission)
"""

from prometheus_client import Counter, Histogram

# === Routing Metrics ===

envelopes_processed_total = Counter(
    "envelopes_processed_total",
    "Total envelopes routed by retry state",
    ["state"],
)
"""
Envelopes routed by the classifier.

Labels:
- state: new (entered retry flow), retrying (retry cycle > 1), exhausted (deadline passed)
"""

retries_scheduled_total = Counter(
    "retries_scheduled_total",
    "Total retries handed to the delay scheduler",
    ["state"],
)

retries_exhausted_total = Counter(
    "retries_exhausted_total",
    "Total diagnostic reports emitted after the retry window elapsed",
)
"""
Exhausted lineages.

Alert thresholds:
- WARN: sustained increase (remote service degraded for longer than the window)
"""

envelopes_rejected_total = Counter(
    "envelopes_rejected_total",
    "Total envelopes rejected to the transport by reason",
    ["reason"],
)
"""
Rejected envelopes.

Labels:
- reason: malformed_envelope, internal_error

Alert thresholds:
- WARN: any rejection (upstream stage breaks the metadata contract)
"""

backoff_delay_seconds = Histogram(
    "backoff_delay_seconds",
    "Backoff delay applied to scheduled retries",
    buckets=[2.0, 4.0, 8.0, 16.0, 32.0, 64.0, 128.0, 256.0, 512.0, 1024.0],
)

# === Scheduler Metrics ===

delayed_envelopes_released_total = Counter(
    "delayed_envelopes_released_total",
    "Total delayed envelopes released to their destination",
    ["group"],
)

delayed_release_failures_total = Counter(
    "delayed_release_failures_total",
    "Total failed releases (re-queued for redelivery)",
    ["group"],
)
