"""
In-memory transport.

One asyncio queue per channel, plus the list of rejected messages. Used for
embedded runs and as the test binder: send() feeds the input channel and
get() collects what the processor emitted on any other channel.
"""

import asyncio
from collections import defaultdict
from typing import Any

import structlog

from retry_processor.models.enums import Channel, channel_name
from retry_processor.models.envelope import Envelope
from retry_processor.transport.base import rejection_record

logger = structlog.get_logger(__name__)


class InMemoryTransport:
    """Queue-per-channel transport living in the current event loop."""

    def __init__(self, input_channel: str = Channel.INPUT.value):
        self.input_channel = input_channel
        self.queues: defaultdict[str, asyncio.Queue] = defaultdict(asyncio.Queue)
        self.rejected: list[dict[str, Any]] = []

    async def send(self, envelope: Envelope) -> None:
        """Deliver an envelope on the input channel."""
        await self.queues[self.input_channel].put(envelope)

    async def receive(self, timeout: float = 1.0) -> Envelope | None:
        try:
            return await asyncio.wait_for(self.queues[self.input_channel].get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def publish(self, channel: str, envelope: Envelope) -> None:
        await self.queues[channel_name(channel)].put(envelope)

    async def get(self, channel: str, timeout: float = 1.0) -> Envelope:
        """
        Wait for the next envelope published on a channel.

        Raises:
            asyncio.TimeoutError: If nothing arrives within timeout
        """
        return await asyncio.wait_for(self.queues[channel_name(channel)].get(), timeout)

    def pending(self, channel: str) -> int:
        return self.queues[channel_name(channel)].qsize()

    async def reject(
        self,
        envelope: Envelope | None,
        error: Exception,
        raw: str | bytes | None = None,
    ) -> None:
        self.rejected.append(rejection_record(envelope, error, raw))
        logger.warning("Envelope rejected", error_type=type(error).__name__, error=str(error))

    async def close(self) -> None:
        return None
