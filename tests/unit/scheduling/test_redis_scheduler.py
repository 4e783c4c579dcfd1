"""
Unit tests for the Redis delay scheduler (mocked Redis).
"""

import json
from unittest.mock import AsyncMock

import pytest

from retry_processor.models.envelope import Envelope
from retry_processor.scheduling.redis_store import RedisDelayScheduler


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.sadd = AsyncMock(return_value=1)
    mock.zadd = AsyncMock(return_value=1)
    mock.zrem = AsyncMock(return_value=1)
    mock.zcard = AsyncMock(return_value=0)
    mock.smembers = AsyncMock(return_value=set())
    mock.zrangebyscore = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def release():
    return AsyncMock(return_value=None)


@pytest.fixture
def scheduler(mock_async_redis, release, clock) -> RedisDelayScheduler:
    return RedisDelayScheduler(
        mock_async_redis, release, prefix="test", batch_size=10, redelivery_delay_ms=500, clock=clock
    )


def stored_member(envelope: Envelope, destination: str = "retry") -> str:
    return json.dumps(
        {"id": "m-1", "destination": destination, "delay_ms": 2000, "envelope": envelope.to_wire()}
    )


@pytest.mark.asyncio
async def test_schedule_adds_member_scored_by_eligibility(scheduler, mock_async_redis, clock):
    envelope = Envelope(payload=b"x", metadata={"trace_id": "t-1"})

    await scheduler.schedule(envelope, 2000, group_key="RetryProcessor.delay")

    mock_async_redis.sadd.assert_awaited_once_with("test:delay:groups", "RetryProcessor.delay")
    key, mapping = mock_async_redis.zadd.call_args.args
    assert key == "test:delay:RetryProcessor.delay"
    (member, score), = mapping.items()
    assert score == clock.now_ms + 2000
    item = json.loads(member)
    assert item["destination"] == "retry"
    assert Envelope.from_wire(item["envelope"]) == envelope


@pytest.mark.asyncio
async def test_identical_envelopes_are_distinct_members(scheduler, mock_async_redis):
    envelope = Envelope(metadata={"trace_id": "t-1"})

    await scheduler.schedule(envelope, 1000)
    await scheduler.schedule(envelope, 1000)

    first = next(iter(mock_async_redis.zadd.call_args_list[0].args[1]))
    second = next(iter(mock_async_redis.zadd.call_args_list[1].args[1]))
    assert first != second


@pytest.mark.asyncio
async def test_negative_delay_rejected(scheduler, mock_async_redis):
    with pytest.raises(ValueError):
        await scheduler.schedule(Envelope(), -5)
    mock_async_redis.zadd.assert_not_awaited()


@pytest.mark.asyncio
async def test_poll_releases_due_members(scheduler, mock_async_redis, release, clock):
    envelope = Envelope(metadata={"trace_id": "t-2", "retry_count": 2})
    mock_async_redis.smembers.return_value = {"RetryProcessor.delay"}
    mock_async_redis.zrangebyscore.return_value = [stored_member(envelope)]

    released = await scheduler.poll_once()

    assert released == 1
    mock_async_redis.zrangebyscore.assert_awaited_once_with(
        "test:delay:RetryProcessor.delay", "-inf", clock.now_ms, start=0, num=10
    )
    release.assert_awaited_once_with("retry", envelope)


@pytest.mark.asyncio
async def test_poll_skips_members_claimed_elsewhere(scheduler, mock_async_redis, release):
    mock_async_redis.smembers.return_value = {"g"}
    mock_async_redis.zrangebyscore.return_value = [stored_member(Envelope())]
    mock_async_redis.zrem.return_value = 0

    assert await scheduler.poll_once() == 0
    release.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_release_is_requeued(scheduler, mock_async_redis, release, clock):
    member = stored_member(Envelope())
    mock_async_redis.smembers.return_value = {"g"}
    mock_async_redis.zrangebyscore.return_value = [member]
    release.side_effect = ConnectionError("down")

    assert await scheduler.poll_once() == 0
    mock_async_redis.zadd.assert_awaited_once_with("test:delay:g", {member: clock.now_ms + 500})


@pytest.mark.asyncio
async def test_undecodable_member_is_dropped(scheduler, mock_async_redis, release):
    mock_async_redis.smembers.return_value = {"g"}
    mock_async_redis.zrangebyscore.return_value = ["{not json"]

    assert await scheduler.poll_once() == 0
    release.assert_not_awaited()
    mock_async_redis.zadd.assert_not_awaited()


@pytest.mark.asyncio
async def test_pending_count(scheduler, mock_async_redis):
    mock_async_redis.smembers.return_value = {"a", "b"}
    mock_async_redis.zcard.side_effect = lambda key: {"test:delay:a": 2, "test:delay:b": 3}[key]

    assert await scheduler.pending_count() == 5
    assert await scheduler.pending_count("a") == 2
