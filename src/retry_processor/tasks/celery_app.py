"""
Celery application configuration for the Celery delay scheduler backend.

The broker holds delayed envelopes (countdown) until they are due; workers
then run release_envelope, which publishes onto the destination channel.

Start a worker with:
    celery -A retry_processor.tasks.celery_app worker -Q retry-release
"""

from celery import Celery
from celery.signals import setup_logging

from retry_processor.config import get_settings
from retry_processor.logging_config import configure_logging

settings = get_settings()


@setup_logging.connect
def setup_worker_logging(**kwargs) -> None:
    """Route worker logs through structlog instead of Celery's own handlers."""
    configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT, app_name="retry-processor-worker")


celery_app = Celery(
    "retry_processor",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    # Worker settings
    worker_concurrency=settings.CELERY_WORKER_CONCURRENCY,
    worker_prefetch_multiplier=1,

    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Results are not consumed; the release is the side effect
    task_ignore_result=True,

    # Task tracking
    task_acks_late=True,  # Acknowledge after the envelope is published
    task_reject_on_worker_lost=True,

    # Routing
    task_routes={"release_envelope": {"queue": settings.CELERY_RELEASE_QUEUE}},
)

celery_app.autodiscover_tasks(["retry_processor.tasks"], related_name="release_tasks")
