"""
Retry decision and backoff engine.

Each incoming envelope is classified as NEW, RETRYING or EXHAUSTED:

1. **NEW**: stamp trace id and deadline, retry_count = 1, delay 2s
2. **RETRYING**: retry_count += 1, delay 2^retry_count seconds
3. **EXHAUSTED**: emit a Bad Gateway diagnostic report on the output channel

Main Components:
    - delay_for: Exponential backoff calculator
    - RetryClassifier: State machine producing RoutingDecisions
    - ExhaustionReporter: Diagnostic envelope builder
    - RetryProcessor: Routes envelopes to the scheduler or the output channel

Usage:
    >>> from retry_processor.retry import RetryClassifier
    >>> classifier = RetryClassifier(timedelta(hours=24))
    >>> decision = classifier.route(envelope)
"""

from retry_processor.retry.backoff import delay_for
from retry_processor.retry.classifier import RetryClassifier, RoutingDecision, classify
from retry_processor.retry.processor import RetryProcessor
from retry_processor.retry.reporter import ExhaustionReporter

__all__ = [
    "delay_for",
    "classify",
    "RetryClassifier",
    "RoutingDecision",
    "ExhaustionReporter",
    "RetryProcessor",
]
