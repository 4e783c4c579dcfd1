"""
Integration tests against a real Redis: transport and delay scheduler.
"""

import asyncio
import json
from datetime import timedelta

import pytest

from retry_processor.models.envelope import Envelope
from retry_processor.retry.classifier import RetryClassifier
from retry_processor.retry.processor import RetryProcessor
from retry_processor.retry.reporter import ExhaustionReporter
from retry_processor.scheduling.redis_store import RedisDelayScheduler
from retry_processor.transport.redis_transport import RedisListTransport

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


@pytest.fixture
def transport(async_redis, key_prefix) -> RedisListTransport:
    return RedisListTransport(async_redis, prefix=key_prefix)


async def test_transport_roundtrip(transport, async_redis, key_prefix):
    envelope = Envelope(payload=b'{"a": 1}', metadata={"request_method": "POST", "retry_count": 1})
    await async_redis.lpush(f"{key_prefix}:input", envelope.to_wire())

    assert await transport.receive(timeout=1) == envelope
    assert await transport.receive(timeout=1) is None


async def test_undecodable_input_lands_on_errors(transport, async_redis, key_prefix):
    await async_redis.lpush(f"{key_prefix}:input", "not an envelope")

    assert await transport.receive(timeout=1) is None

    record = json.loads(await async_redis.rpop(f"{key_prefix}:errors"))
    assert record["raw"] == "not an envelope"


async def test_scheduler_releases_only_due_items(transport, async_redis, key_prefix):
    now = [1_000_000]
    scheduler = RedisDelayScheduler(async_redis, transport.publish, prefix=key_prefix, clock=lambda: now[0])
    envelope = Envelope(metadata={"trace_id": "t-1", "retry_count": 1})

    await scheduler.schedule(envelope, 2000)
    assert await scheduler.poll_once() == 0
    assert await scheduler.pending_count() == 1

    now[0] += 2000
    assert await scheduler.poll_once() == 1

    released = Envelope.from_wire(await async_redis.rpop(f"{key_prefix}:retry"))
    assert released == envelope
    assert await scheduler.pending_count() == 0


async def test_full_retry_flow_through_redis(transport, async_redis, key_prefix):
    now = [1_000_000]

    def clock():
        return now[0]

    scheduler = RedisDelayScheduler(async_redis, transport.publish, prefix=key_prefix, clock=clock)
    processor = RetryProcessor(
        RetryClassifier(timedelta(seconds=5), clock=clock),
        scheduler,
        ExhaustionReporter(),
        transport,
    )

    # First failure: held for 2s, then released onto the retry channel
    await processor.process(Envelope(metadata={"request_method": "GET", "request_url": "http://x/y"}))
    now[0] += 2000
    await scheduler.poll_once()
    retried = Envelope.from_wire(await async_redis.rpop(f"{key_prefix}:retry"))
    assert retried.get("retry_count") == 1

    # Deadline passed: diagnostic report on the output channel
    now[0] += 3000
    await processor.process(retried)
    report = Envelope.from_wire(await async_redis.rpop(f"{key_prefix}:output"))
    assert report.get("status_code") == 502
    assert report.get("trace_id") == retried.get("trace_id")
    assert json.loads(report.payload)["method"] == "GET"


async def test_poll_loop_runs_until_stopped(transport, async_redis, key_prefix):
    scheduler = RedisDelayScheduler(async_redis, transport.publish, prefix=key_prefix, poll_interval=0.05)
    await scheduler.start()
    try:
        await scheduler.schedule(Envelope(metadata={"trace_id": "t-2"}), 0)
        raw = await async_redis.brpop([f"{key_prefix}:retry"], timeout=2)
    finally:
        await scheduler.stop()

    assert raw is not None
    assert Envelope.from_wire(raw[1]).get("trace_id") == "t-2"
