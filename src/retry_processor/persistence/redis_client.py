"""
Redis connections for the retry processor.

One pool per process and flavour:
- async: list transport (BRPOP on the input channel), Redis delay
  scheduler, health check
- sync: Celery workers publishing released envelopes

BRPOP keeps a connection busy for up to RECEIVE_TIMEOUT_SECONDS, so the
async read timeout is derived from it. Up to CONSUMER_CONCURRENCY envelopes
publish at once; the async pool blocks for a free connection instead of
failing when REDIS_MAX_CONNECTIONS is reached.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from redis import ConnectionPool, Redis
from redis.asyncio import BlockingConnectionPool as AsyncBlockingConnectionPool
from redis.asyncio import Redis as AsyncRedis

from retry_processor.config import Settings

logger = logging.getLogger(__name__)

CLIENT_NAME = "retry-processor"
CONNECT_TIMEOUT_SECONDS = 5
READ_TIMEOUT_MARGIN_SECONDS = 5
HEALTH_CHECK_INTERVAL_SECONDS = 30


def redact_url(url: str) -> str:
    """Redis URL with the password masked, for logs."""
    parts = urlsplit(url)
    if not parts.password:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def async_read_timeout(settings: Settings) -> float:
    """Socket read timeout that outlasts a blocking BRPOP."""
    return settings.RECEIVE_TIMEOUT_SECONDS + READ_TIMEOUT_MARGIN_SECONDS


class RedisClient:
    """
    Process-wide Redis pools; clients are cheap views over them.
    """

    _sync_pool: Optional[ConnectionPool] = None
    _async_pool: Optional[AsyncBlockingConnectionPool] = None

    @classmethod
    def get_sync_client(cls, settings: Settings) -> Redis:
        """
        Get the blocking client used by Celery release workers.

        Args:
            settings: Application settings

        Returns:
            Redis client instance
        """
        if cls._sync_pool is None:
            cls._sync_pool = ConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                socket_timeout=CONNECT_TIMEOUT_SECONDS,
                socket_connect_timeout=CONNECT_TIMEOUT_SECONDS,
                retry_on_timeout=True,
                client_name=f"{CLIENT_NAME}-worker",
            )
            logger.info(
                "Initialized Redis sync connection pool",
                extra={"url": redact_url(settings.REDIS_URL)},
            )

        return Redis(connection_pool=cls._sync_pool)

    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get the client shared by the transport and the Redis scheduler.

        Args:
            settings: Application settings

        Returns:
            AsyncRedis client instance
        """
        if cls._async_pool is None:
            if settings.REDIS_MAX_CONNECTIONS <= settings.CONSUMER_CONCURRENCY:
                logger.warning(
                    "REDIS_MAX_CONNECTIONS below consumer concurrency, publishes will queue",
                    extra={
                        "max_connections": settings.REDIS_MAX_CONNECTIONS,
                        "consumer_concurrency": settings.CONSUMER_CONCURRENCY,
                    },
                )
            cls._async_pool = AsyncBlockingConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                timeout=async_read_timeout(settings),
                decode_responses=True,
                socket_timeout=async_read_timeout(settings),
                socket_connect_timeout=CONNECT_TIMEOUT_SECONDS,
                health_check_interval=HEALTH_CHECK_INTERVAL_SECONDS,
                client_name=CLIENT_NAME,
            )
            logger.info(
                "Initialized Redis async connection pool",
                extra={"url": redact_url(settings.REDIS_URL)},
            )

        return AsyncRedis(connection_pool=cls._async_pool)

    @classmethod
    async def close_async_pool(cls) -> None:
        """Close the async pool (application shutdown)."""
        if cls._async_pool is not None:
            await cls._async_pool.disconnect()
            cls._async_pool = None
            logger.info("Closed Redis async connection pool")

    @classmethod
    def close_sync_pool(cls) -> None:
        """Close the sync pool (Celery worker process shutdown)."""
        if cls._sync_pool is not None:
            cls._sync_pool.disconnect()
            cls._sync_pool = None
            logger.info("Closed Redis sync connection pool")
