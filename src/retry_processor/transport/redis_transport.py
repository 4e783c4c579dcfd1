"""
Redis list transport.

Storage Strategy:
- Channel c: List "{prefix}:{c}" holding wire-format envelopes
- Producers LPUSH, the processor BRPOPs the input list (FIFO)
- Rejections: List "{prefix}:errors" with JSON rejection records

SyncRedisPublisher offers the publish half for synchronous contexts
(Celery release tasks).
"""

import json

import structlog
from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from retry_processor.exceptions import MalformedEnvelopeError
from retry_processor.models.enums import Channel, channel_name
from retry_processor.models.envelope import Envelope
from retry_processor.transport.base import rejection_record

logger = structlog.get_logger(__name__)


def channel_key(prefix: str, channel: Channel | str) -> str:
    return f"{prefix}:{channel_name(channel)}"


class RedisListTransport:
    """
    Async transport over Redis lists.

    Attributes:
        redis: Async Redis client (decode_responses=True)
        prefix: Key prefix shared with the producing/consuming stages
    """

    def __init__(self, redis_client: AsyncRedis, prefix: str = "retry"):
        self.redis = redis_client
        self.prefix = prefix
        self.input_key = channel_key(prefix, Channel.INPUT)
        self.errors_key = channel_key(prefix, Channel.ERRORS)

    async def receive(self, timeout: float = 1.0) -> Envelope | None:
        """
        Pop the next envelope from the input list.

        Undecodable wire data is rejected here and None is returned.
        """
        result = await self.redis.brpop([self.input_key], timeout=timeout)
        if result is None:
            return None

        _, raw = result
        try:
            return Envelope.from_wire(raw)
        except MalformedEnvelopeError as exc:
            await self.reject(None, exc, raw=raw)
            return None

    async def publish(self, channel: Channel | str, envelope: Envelope) -> None:
        await self.redis.lpush(channel_key(self.prefix, channel), envelope.to_wire())

    async def reject(
        self,
        envelope: Envelope | None,
        error: Exception,
        raw: str | bytes | None = None,
    ) -> None:
        record = rejection_record(envelope, error, raw)
        await self.redis.lpush(self.errors_key, json.dumps(record))
        logger.warning(
            "Envelope rejected",
            error_type=record["error_type"],
            error=record["error"],
            errors_key=self.errors_key,
        )

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def close(self) -> None:
        await self.redis.aclose()


class SyncRedisPublisher:
    """Blocking publisher for the same channel layout."""

    def __init__(self, redis_client: Redis, prefix: str = "retry"):
        self.redis = redis_client
        self.prefix = prefix

    def publish(self, channel: Channel | str, envelope: Envelope) -> None:
        self.redis.lpush(channel_key(self.prefix, channel), envelope.to_wire())
