"""
Redis-backed delay scheduler.

Storage Strategy:
- Pending items: Sorted set per group, key = "{prefix}:delay:{group}",
  member = JSON item, score = eligibility time (epoch millis)
- Group registry: Set "{prefix}:delay:groups" so every worker polls every group

A poll loop claims due items with ZRANGEBYSCORE + ZREM. Only the worker whose
ZREM removes the member releases it, so several processes can share the
same store without double delivery.
"""

import asyncio
import json
import uuid

import structlog
from redis.asyncio import Redis as AsyncRedis

from retry_processor.clock import Clock, system_clock
from retry_processor.exceptions import MalformedEnvelopeError
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
    check_delay,
)

logger = structlog.get_logger(__name__)


class RedisDelayScheduler:
    """
    Delay scheduler storing pending envelopes in Redis sorted sets.

    Attributes:
        redis: Async Redis client (decode_responses=True)
        release: Callback receiving (destination, envelope) when an item is due
        prefix: Key prefix
        poll_interval: Seconds between polls
        batch_size: Maximum items claimed per group per poll
    """

    def __init__(
        self,
        redis_client: AsyncRedis,
        release: ReleaseCallback,
        prefix: str = "retry",
        poll_interval: float = 0.5,
        batch_size: int = 100,
        redelivery_delay_ms: int = 1000,
        clock: Clock = system_clock,
    ):
        self.redis = redis_client
        self.release = release
        self.prefix = prefix
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.redelivery_delay_ms = redelivery_delay_ms
        self.clock = clock
        self._poller: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def groups_key(self) -> str:
        return f"{self.prefix}:delay:groups"

    def group_key(self, group: str) -> str:
        return f"{self.prefix}:delay:{group}"

    async def start(self) -> None:
        if self._poller is not None and not self._poller.done():
            return
        self._stopping = asyncio.Event()
        self._poller = asyncio.create_task(self._poll_loop(), name="redis-delay-poller")
        logger.info("Redis delay scheduler started", prefix=self.prefix, poll_interval=self.poll_interval)

    async def stop(self) -> None:
        if self._poller is None:
            return
        self._stopping.set()
        await self._poller
        self._poller = None
        logger.info("Redis delay scheduler stopped")

    async def schedule(
        self,
        envelope: Envelope,
        delay_ms: int,
        group_key: str = DEFAULT_DELAY_GROUP,
        destination: str = Channel.RETRY.value,
    ) -> None:
        check_delay(delay_ms)
        member = json.dumps(
            {
                "id": str(uuid.uuid4()),
                "destination": channel_name(destination),
                "delay_ms": delay_ms,
                "envelope": envelope.to_wire(),
            }
        )
        await self._add(group_key, member, self.clock() + delay_ms)

    async def pending_count(self, group_key: str | None = None) -> int:
        if group_key is not None:
            return int(await self.redis.zcard(self.group_key(group_key)))
        total = 0
        for group in await self.redis.smembers(self.groups_key):
            total += int(await self.redis.zcard(self.group_key(group)))
        return total

    async def poll_once(self) -> int:
        """
        Claim and release every due item across all groups.

        Returns:
            Number of items released
        """
        released = 0
        now_ms = self.clock()
        for group in await self.redis.smembers(self.groups_key):
            key = self.group_key(group)
            members = await self.redis.zrangebyscore(key, "-inf", now_ms, start=0, num=self.batch_size)
            for member in members:
                # Another worker may have claimed it between ZRANGEBYSCORE and ZREM
                if not await self.redis.zrem(key, member):
                    continue
                if await self._release_member(group, member):
                    released += 1
        return released

    async def _add(self, group: str, member: str, eligible_at_ms: int) -> None:
        await self.redis.sadd(self.groups_key, group)
        await self.redis.zadd(self.group_key(group), {member: eligible_at_ms})

    async def _release_member(self, group: str, member: str) -> bool:
        try:
            item = json.loads(member)
            envelope = Envelope.from_wire(item["envelope"])
            destination = item["destination"]
        except (ValueError, KeyError, TypeError, MalformedEnvelopeError):
            logger.error("Dropping undecodable delayed item", group=group, member=member[:200])
            return False

        try:
            await self.release(destination, envelope)
        except Exception:
            delayed_release_failures_total.labels(group=group).inc()
            logger.exception(
                "Delayed release failed, re-queueing",
                group=group,
                destination=destination,
                trace_id=envelope.get(TRACE_ID),
            )
            await self._add(group, member, self.clock() + self.redelivery_delay_ms)
            return False

        delayed_envelopes_released_total.labels(group=group).inc()
        logger.debug(
            "Delayed envelope released",
            group=group,
            destination=destination,
            trace_id=envelope.get(TRACE_ID),
        )
        return True

    async def _poll_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Redis delay poll failed")
            try:
                await asyncio.wait_for(self._stopping.wait(), self.poll_interval)
            except asyncio.TimeoutError:
                pass
