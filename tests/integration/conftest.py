"""Integration test fixtures (service checks and prerequisites).

Integration tests are skipped if Redis is not running on localhost:6379.
Each test gets its own key prefix so runs never collide.
"""

import uuid

import pytest
from redis import Redis
from redis.asyncio import Redis as AsyncRedis

REDIS_URL = "redis://localhost:6379/15"


@pytest.fixture(scope="session")
def check_redis():
    """Check if Redis is available at localhost:6379.

    Skips tests if Redis is not reachable.
    """
    try:
        client = Redis.from_url(REDIS_URL)
        client.ping()
        client.close()
    except Exception as e:
        pytest.skip(f"Redis not available: {e}")


@pytest.fixture
def key_prefix() -> str:
    return f"it-{uuid.uuid4().hex[:8]}"


@pytest.fixture
async def async_redis(check_redis, key_prefix):
    """Async Redis client; keys under the test prefix are removed afterwards."""
    client = AsyncRedis.from_url(REDIS_URL, decode_responses=True)
    yield client
    keys = [key async for key in client.scan_iter(match=f"{key_prefix}:*")]
    if keys:
        await client.delete(*keys)
    await client.aclose()
