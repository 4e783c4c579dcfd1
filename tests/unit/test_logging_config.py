"""
Unit tests for logging configuration.
"""

import logging

import structlog

from retry_processor.logging_config import (
    MAX_VALUE_LENGTH,
    add_app_context,
    configure_logging,
    shorten_values,
)


def test_shorten_values_truncates_long_strings():
    event = {"event": "x" * 2000, "payload": "y" * 2000}

    result = shorten_values(None, "info", event)

    assert result["event"] == "x" * 2000
    assert result["payload"].startswith("y" * MAX_VALUE_LENGTH + "...")
    assert result["payload"].endswith("(2000 chars)")


def test_shorten_values_decodes_bytes():
    result = shorten_values(None, "info", {"event": "e", "payload": b"caf\xc3\xa9"})

    assert result["payload"] == "café"


def test_shorten_values_leaves_other_values():
    event = {"event": "e", "retry_count": 3, "member": "short"}

    assert shorten_values(None, "info", dict(event)) == event


def test_add_app_context_keeps_existing_app():
    processor = add_app_context("retry-processor-worker")

    assert processor(None, "info", {"event": "e"})["app"] == "retry-processor-worker"
    assert processor(None, "info", {"event": "e", "app": "other"})["app"] == "other"


def test_configure_logging_renders_extra_fields_as_json(capsys):
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    configure_logging("INFO", "production", app_name="retry-processor-worker")
    try:
        logging.getLogger("retry_processor.tasks").info(
            "Released envelope", extra={"group": "RetryProcessor.delay"}
        )
        out = capsys.readouterr().out
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
        structlog.reset_defaults()

    assert '"event": "Released envelope"' in out
    assert '"group": "RetryProcessor.delay"' in out
    assert '"app": "retry-processor-worker"' in out
