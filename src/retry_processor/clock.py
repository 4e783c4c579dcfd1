"""
Clock capability.

Components that compare against wall-clock time take a Clock instead of
reading time directly, so tests can pin "now" to an exact deadline.
"""

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
