"""
Delay scheduler protocol.

A scheduler holds an envelope for a delay and then hands it, unchanged, to
a release callback (normally Transport.publish) for its destination channel.
Items are never released before their eligibility time; among eligible items
any order is acceptable. Scheduled items cannot be cancelled.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from retry_processor.models.enums import Channel
from retry_processor.models.envelope import Envelope

DEFAULT_DELAY_GROUP = "RetryProcessor.delay"

ReleaseCallback = Callable[[str, Envelope], Awaitable[None]]


@dataclass(frozen=True)
class ScheduledItem:
    """
    A pending delayed envelope.

    Attributes:
        envelope: Envelope to release (never modified)
        destination: Channel the envelope is released to
        group_key: Logical delay stream the item belongs to
        delay_ms: Requested delay
    """

    envelope: Envelope
    destination: str
    group_key: str
    delay_ms: int


class DelayScheduler(Protocol):
    """
    Protocol for delay schedulers.

    Implementations: InMemoryDelayScheduler (asyncio timers), RedisDelayScheduler
    (sorted sets shared between processes), CeleryDelayScheduler (broker countdown).
    """

    async def schedule(
        self,
        envelope: Envelope,
        delay_ms: int,
        group_key: str = DEFAULT_DELAY_GROUP,
        destination: str = Channel.RETRY.value,
    ) -> None:
        """
        Hold an envelope for delay_ms, then release it to destination.

        Must not block on the delay itself.
        """
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def pending_count(self, group_key: str | None = None) -> int | None:
        """Number of pending items (None when the backend cannot tell)."""
        ...


def check_delay(delay_ms: int) -> int:
    if delay_ms < 0:
        raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
    return delay_ms
