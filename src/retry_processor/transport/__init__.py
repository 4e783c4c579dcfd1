"""
Transports connecting the processor to the message pipeline.

- base.py: Transport protocol and rejection records
- memory.py: asyncio queue transport (embedded runs, tests)
- redis_transport.py: Redis list transport and sync publisher
"""

from retry_processor.transport.base import Transport, rejection_record
from retry_processor.transport.memory import InMemoryTransport
from retry_processor.transport.redis_transport import (
    RedisListTransport,
    SyncRedisPublisher,
    channel_key,
)

__all__ = [
    "Transport",
    "InMemoryTransport",
    "RedisListTransport",
    "SyncRedisPublisher",
    "channel_key",
    "rejection_record",
]
