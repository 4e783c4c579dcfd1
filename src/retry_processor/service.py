"""
Retry service: consumer loop and component wiring.

RetryService pulls envelopes from the transport's input channel and hands
each one to the RetryProcessor in its own task, with at most
CONSUMER_CONCURRENCY envelopes in flight. build_service() assembles the
transport and scheduler backends selected in Settings.
"""

import asyncio

import structlog

from retry_processor.clock import Clock, system_clock
from retry_processor.config import Settings
from retry_processor.persistence.redis_client import RedisClient
from retry_processor.retry.classifier import RetryClassifier
from retry_processor.retry.processor import RetryProcessor
from retry_processor.retry.reporter import ExhaustionReporter
from retry_processor.scheduling.base import DelayScheduler
from retry_processor.scheduling.memory import InMemoryDelayScheduler
from retry_processor.scheduling.redis_store import RedisDelayScheduler
from retry_processor.transport.base import Transport
from retry_processor.transport.memory import InMemoryTransport
from retry_processor.transport.redis_transport import RedisListTransport

logger = structlog.get_logger(__name__)


class RetryService:
    """
    Long-running consumer around a RetryProcessor.

    Attributes:
        processor: Routing stage
        transport: Input/output transport
        scheduler: Delay scheduler (started/stopped with the service)
        scheduler_backend: Backend name for health reporting
    """

    def __init__(
        self,
        processor: RetryProcessor,
        transport: Transport,
        scheduler: DelayScheduler,
        concurrency: int = 64,
        receive_timeout: float = 1.0,
        scheduler_backend: str = "memory",
    ):
        self.processor = processor
        self.transport = transport
        self.scheduler = scheduler
        self.receive_timeout = receive_timeout
        self.scheduler_backend = scheduler_backend
        self._semaphore = asyncio.Semaphore(concurrency)
        self._consumer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    async def start(self) -> None:
        if self.running:
            return
        self._stopping = False
        await self.scheduler.start()
        self._consumer = asyncio.create_task(self._consume(), name="retry-consumer")
        logger.info("Retry service started", scheduler_backend=self.scheduler_backend)

    async def stop(self) -> None:
        self._stopping = True
        if self._consumer is not None:
            await self._consumer
            self._consumer = None
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        await self.scheduler.stop()
        await self.transport.close()
        logger.info("Retry service stopped")

    async def pending_delayed(self) -> int | None:
        return await self.scheduler.pending_count()

    async def _consume(self) -> None:
        while not self._stopping:
            try:
                envelope = await self.transport.receive(self.receive_timeout)
            except Exception:
                logger.exception("Receive from transport failed")
                await asyncio.sleep(self.receive_timeout)
                continue
            if envelope is None:
                continue

            await self._semaphore.acquire()
            task = asyncio.create_task(self._handle(envelope))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _handle(self, envelope) -> None:
        try:
            await self.processor.handle(envelope)
        finally:
            self._semaphore.release()


def build_scheduler(settings: Settings, transport: Transport, clock: Clock = system_clock) -> DelayScheduler:
    """
    Create the delay scheduler selected by SCHEDULER_BACKEND.

    Released envelopes are published through the given transport.
    """
    backend = settings.SCHEDULER_BACKEND
    if backend == "memory":
        return InMemoryDelayScheduler(
            release=transport.publish,
            redelivery_delay_ms=settings.REDELIVERY_DELAY_MS,
        )
    if backend == "redis":
        return RedisDelayScheduler(
            RedisClient.get_async_client(settings),
            release=transport.publish,
            prefix=settings.CHANNEL_PREFIX,
            poll_interval=settings.SCHEDULER_POLL_INTERVAL_SECONDS,
            batch_size=settings.SCHEDULER_BATCH_SIZE,
            redelivery_delay_ms=settings.REDELIVERY_DELAY_MS,
            clock=clock,
        )
    if backend == "celery":
        from retry_processor.scheduling.celery_scheduler import CeleryDelayScheduler

        return CeleryDelayScheduler(queue=settings.CELERY_RELEASE_QUEUE)
    raise ValueError(f"Unknown scheduler backend: {backend}")


def build_transport(settings: Settings) -> Transport:
    """Create the transport selected by TRANSPORT_BACKEND."""
    if settings.TRANSPORT_BACKEND == "memory":
        return InMemoryTransport()
    return RedisListTransport(RedisClient.get_async_client(settings), prefix=settings.CHANNEL_PREFIX)


def build_service(
    settings: Settings,
    transport: Transport | None = None,
    scheduler: DelayScheduler | None = None,
    clock: Clock = system_clock,
) -> RetryService:
    """
    Assemble a RetryService from settings.

    Args:
        settings: Application settings
        transport: Override the configured transport
        scheduler: Override the configured scheduler
        clock: Wall clock (epoch millis) for deadlines

    Returns:
        RetryService (not started)
    """
    transport = transport or build_transport(settings)
    scheduler = scheduler or build_scheduler(settings, transport, clock)
    processor = RetryProcessor(
        classifier=RetryClassifier(settings.RETRY_DURATION, clock=clock),
        scheduler=scheduler,
        reporter=ExhaustionReporter(),
        transport=transport,
        group_key=settings.DELAY_GROUP,
    )

    logger.info(
        "Retry service assembled",
        retry_window_ms=settings.retry_window_ms,
        transport_backend=settings.TRANSPORT_BACKEND,
        scheduler_backend=settings.SCHEDULER_BACKEND,
        delay_group=settings.DELAY_GROUP,
    )

    return RetryService(
        processor=processor,
        transport=transport,
        scheduler=scheduler,
        concurrency=settings.CONSUMER_CONCURRENCY,
        receive_timeout=settings.RECEIVE_TIMEOUT_SECONDS,
        scheduler_backend=settings.SCHEDULER_BACKEND,
    )
