"""Structured logging for the retry processor.

Events emitted while an envelope is processed carry its trace_id and
retry_count (bound as contextvars by RetryProcessor), so a lineage can be
followed across retry cycles. Celery workers log through the standard
library with ``extra={...}``; those fields are lifted into the event as well.

JSON output in production, console output elsewhere.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Envelope wire strings and payloads can be arbitrarily large
MAX_VALUE_LENGTH = 512

NOISY_LOGGERS = {
    "asyncio": logging.WARNING,
    "redis": logging.WARNING,
    "celery": logging.INFO,
    "kombu": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def add_app_context(app_name: str) -> Processor:
    """Processor stamping every event with the emitting component."""

    def _add(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", app_name)
        return event_dict

    return _add


def shorten_values(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Decode bytes and truncate long strings (payloads, wire envelopes)."""
    for key, value in list(event_dict.items()):
        if key == "event":
            continue
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
            event_dict[key] = value
        if isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
            event_dict[key] = f"{value[:MAX_VALUE_LENGTH]}... ({len(value)} chars)"
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    environment: str = "development",
    app_name: str = "retry-processor",
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment name; "production" selects the JSON renderer
        app_name: Value of the ``app`` field (service or Celery worker)
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)
    is_production = environment.lower() == "production"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context(app_name),
        shorten_values,
    ]

    if is_production:
        renderer: Processor = structlog.processors.JSONRenderer()
        final_processors: list[Processor] = [
            structlog.processors.format_exc_info,
            renderer,
        ]
    else:
        final_processors = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta]
        + final_processors,
        # Celery tasks log with extra={...}
        foreign_pre_chain=shared_processors + [structlog.stdlib.ExtraAdder()],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level_int)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, log_level_int))

    structlog.get_logger(__name__).debug(
        "Logging configured",
        log_level=log_level,
        environment=environment,
        renderer="json" if is_production else "console",
    )
