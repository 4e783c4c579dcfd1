"""
In-memory delay scheduler.

Pending items live in a min-heap ordered by eligibility time. A single
asyncio worker sleeps until the earliest item is due (or a new item wakes
it), so thousands of pending envelopes cost one heap entry each rather than
one sleeping task each.

schedule_nowait() only takes a short lock and signals the worker, which
makes it safe to call from other threads. Pending items are lost on
shutdown; retry state itself travels with the envelopes.
"""

import asyncio
import heapq
import itertools
import threading
import time
from typing import Callable

import structlog

from retry_processor.models.enums import Channel, channel_name
from retry_processor.models.envelope import Envelope
from retry_processor.models.headers import TRACE_ID
from retry_processor.monitoring.metrics import (
    delayed_envelopes_released_total,
    delayed_release_failures_total,
)
from retry_processor.scheduling.base import (
    DEFAULT_DELAY_GROUP,
    ReleaseCallback,
    ScheduledItem,
    check_delay,
)

logger = structlog.get_logger(__name__)


class InMemoryDelayScheduler:
    """
    Heap-backed delay scheduler driven by one asyncio worker task.

    Attributes:
        release: Callback receiving (destination, envelope) when an item is due
        redelivery_delay_ms: Delay before retrying a failed release
    """

    def __init__(
        self,
        release: ReleaseCallback,
        redelivery_delay_ms: int = 1000,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.release = release
        self.redelivery_delay_ms = redelivery_delay_ms
        self._monotonic = monotonic
        self._heap: list[tuple[float, int, ScheduledItem]] = []
        self._lock = threading.Lock()
        self._sequence = itertools.count()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wakeup: asyncio.Event | None = None
        self._worker: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        self._stopping = False
        self._worker = asyncio.create_task(self._run(), name="delay-scheduler")
        logger.info("In-memory delay scheduler started", pending=len(self._heap))

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._stopping = True
        self._notify()
        await self._worker
        self._worker = None
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

        with self._lock:
            dropped = len(self._heap)
        if dropped:
            logger.warning("Delay scheduler stopped with pending envelopes", dropped=dropped)
        else:
            logger.info("In-memory delay scheduler stopped")

    async def schedule(
        self,
        envelope: Envelope,
        delay_ms: int,
        group_key: str = DEFAULT_DELAY_GROUP,
        destination: str = Channel.RETRY.value,
    ) -> None:
        self.schedule_nowait(envelope, delay_ms, group_key, destination)

    def schedule_nowait(
        self,
        envelope: Envelope,
        delay_ms: int,
        group_key: str = DEFAULT_DELAY_GROUP,
        destination: str = Channel.RETRY.value,
    ) -> None:
        """Thread-safe, non-blocking variant of schedule()."""
        item = ScheduledItem(envelope, channel_name(destination), group_key, check_delay(delay_ms))
        self._push(item, delay_ms)

    async def pending_count(self, group_key: str | None = None) -> int:
        with self._lock:
            return sum(1 for _, _, item in self._heap if group_key is None or item.group_key == group_key)

    def _push(self, item: ScheduledItem, delay_ms: int) -> None:
        eligible_at = self._monotonic() + delay_ms / 1000
        with self._lock:
            heapq.heappush(self._heap, (eligible_at, next(self._sequence), item))
        self._notify()

    def _notify(self) -> None:
        if self._loop is None or self._wakeup is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._wakeup.set)

    def _pop_due(self) -> tuple[list[ScheduledItem], float | None]:
        """Pop every eligible item; also return seconds until the next one."""
        now = self._monotonic()
        due: list[ScheduledItem] = []
        with self._lock:
            while self._heap and self._heap[0][0] <= now:
                due.append(heapq.heappop(self._heap)[2])
            timeout = self._heap[0][0] - now if self._heap else None
        return due, timeout

    async def _run(self) -> None:
        assert self._wakeup is not None
        while not self._stopping:
            # Cleared before inspecting the heap so a concurrent push is never missed
            self._wakeup.clear()
            due, timeout = self._pop_due()
            for item in due:
                task = asyncio.create_task(self._deliver(item))
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout)
            except asyncio.TimeoutError:
                pass

    async def _deliver(self, item: ScheduledItem) -> None:
        try:
            await self.release(item.destination, item.envelope)
        except Exception:
            delayed_release_failures_total.labels(group=item.group_key).inc()
            logger.exception(
                "Delayed release failed, re-queueing",
                group=item.group_key,
                destination=item.destination,
                trace_id=item.envelope.get(TRACE_ID),
                redelivery_delay_ms=self.redelivery_delay_ms,
            )
            self._push(item, self.redelivery_delay_ms)
            return

        delayed_envelopes_released_total.labels(group=item.group_key).inc()
        logger.debug(
            "Delayed envelope released",
            group=item.group_key,
            destination=item.destination,
            trace_id=item.envelope.get(TRACE_ID),
            delay_ms=item.delay_ms,
        )
