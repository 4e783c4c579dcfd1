"""
Celery task releasing delayed envelopes.

Tasks accept JSON-serializable arguments (wire-format envelopes) for
compatibility with Celery's JSON serialization.
"""

import logging

from celery import Task
from celery.signals import worker_process_shutdown
from redis.exceptions import RedisError

from retry_processor.config import get_settings
from retry_processor.exceptions import MalformedEnvelopeError
from retry_processor.models.envelope import Envelope
from retry_processor.models.headers import TRACE_ID
from retry_processor.monitoring.metrics import delayed_envelopes_released_total
from retry_processor.persistence.redis_client import RedisClient
from retry_processor.tasks.celery_app import celery_app
from retry_processor.transport.redis_transport import SyncRedisPublisher

logger = logging.getLogger(__name__)


class ReleaseTask(Task):
    """
    Base task class with publisher initialization.

    The Redis publisher is created once per worker process and reused.
    """

    _publisher = None

    @property
    def publisher(self) -> SyncRedisPublisher:
        """Get or initialize the channel publisher (singleton per worker)."""
        if self._publisher is None:
            settings = get_settings()
            self._publisher = SyncRedisPublisher(
                RedisClient.get_sync_client(settings),
                prefix=settings.CHANNEL_PREFIX,
            )
        return self._publisher


@worker_process_shutdown.connect
def close_redis_pool(**kwargs) -> None:
    """Release the worker's Redis connections on shutdown."""
    RedisClient.close_sync_pool()


@celery_app.task(
    bind=True,
    base=ReleaseTask,
    name="release_envelope",
    autoretry_for=(RedisError,),  # Transport hiccups: retry the publish
    retry_backoff=True,
    retry_backoff_max=60,
    max_retries=10,
)
def release_envelope_task(self: ReleaseTask, envelope: str, destination: str, group_key: str) -> dict:
    """
    Publish a delayed envelope onto its destination channel.

    Args:
        envelope: Wire-format envelope
        destination: Channel name (normally "retry")
        group_key: Delay group the envelope was scheduled in

    Returns:
        Release summary

    Raises:
        MalformedEnvelopeError: Envelope cannot be decoded (not retried)
    """
    try:
        decoded = Envelope.from_wire(envelope)
    except MalformedEnvelopeError:
        logger.error(
            "Dropping undecodable delayed envelope",
            extra={"task_id": self.request.id, "group": group_key},
        )
        raise

    self.publisher.publish(destination, decoded)
    delayed_envelopes_released_total.labels(group=group_key).inc()

    logger.info(
        "Delayed envelope released",
        extra={
            "task_id": self.request.id,
            "group": group_key,
            "destination": destination,
            "trace_id": decoded.get(TRACE_ID),
        },
    )

    return {
        "destination": destination,
        "group": group_key,
        "trace_id": decoded.get(TRACE_ID),
    }
