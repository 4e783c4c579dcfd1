"""
Delay schedulers holding envelopes until their backoff has elapsed.

- base.py: DelayScheduler protocol, ScheduledItem, DEFAULT_DELAY_GROUP
- memory.py: heap + asyncio worker (single process)
- redis_store.py: Redis sorted sets (shared between processes)
- celery_scheduler.py: Celery countdown tasks (imported on demand, it
  needs the Celery app)
"""

from retry_processor.scheduling.base import (
    DEFAULT_DELAY_GROUP,
    DelayScheduler,
    ReleaseCallback,
    ScheduledItem,
)
from retry_processor.scheduling.memory import InMemoryDelayScheduler
from retry_processor.scheduling.redis_store import RedisDelayScheduler

__all__ = [
    "DEFAULT_DELAY_GROUP",
    "DelayScheduler",
    "InMemoryDelayScheduler",
    "RedisDelayScheduler",
    "ReleaseCallback",
    "ScheduledItem",
]
