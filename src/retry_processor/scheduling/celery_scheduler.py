"""
Celery-backed delay scheduler.

Each scheduled envelope becomes a release_envelope task with a countdown;
the broker keeps it until it is due and a worker publishes it. Pending
items live in the broker, so they are not counted locally.
"""

import asyncio

import structlog

from retry_processor.models.enums import Channel, channel_name
from retry_processor.models.envelope import Envelope
from retry_processor.models.headers import TRACE_ID
from retry_processor.scheduling.base import DEFAULT_DELAY_GROUP, check_delay

logger = structlog.get_logger(__name__)


class CeleryDelayScheduler:
    """
    Delay scheduler delegating the wait to Celery countdowns.

    Attributes:
        release_task: Celery task called with (envelope, destination, group_key)
        queue: Queue the release tasks are routed to (None = task routes)
    """

    def __init__(self, release_task=None, queue: str | None = None):
        if release_task is None:
            from retry_processor.tasks.release_tasks import release_envelope_task

            release_task = release_envelope_task
        self.release_task = release_task
        self.queue = queue

    async def start(self) -> None:
        logger.info("Celery delay scheduler ready", queue=self.queue)

    async def stop(self) -> None:
        return None

    async def schedule(
        self,
        envelope: Envelope,
        delay_ms: int,
        group_key: str = DEFAULT_DELAY_GROUP,
        destination: str = Channel.RETRY.value,
    ) -> None:
        check_delay(delay_ms)
        options = {"queue": self.queue} if self.queue else {}
        # apply_async talks to the broker synchronously
        result = await asyncio.to_thread(
            self.release_task.apply_async,
            kwargs={
                "envelope": envelope.to_wire(),
                "destination": channel_name(destination),
                "group_key": group_key,
            },
            countdown=delay_ms / 1000,
            **options,
        )
        logger.debug(
            "Delayed release submitted",
            task_id=result.id,
            delay_ms=delay_ms,
            trace_id=envelope.get(TRACE_ID),
        )

    async def pending_count(self, group_key: str | None = None) -> int | None:
        return None
