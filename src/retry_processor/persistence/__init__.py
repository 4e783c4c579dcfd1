"""Redis connection management shared by transport, scheduler and Celery tasks."""

from retry_processor.persistence.redis_client import RedisClient

__all__ = ["RedisClient"]
