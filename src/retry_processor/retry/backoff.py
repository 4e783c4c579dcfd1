"""
Exponential backoff calculator.

delay(n) = 2^n * 1000 milliseconds, so the first retry waits 2s, the second
4s, and so on. Integer arithmetic keeps the result exact; the retry window
bounds n long before the delays become unreasonable.
"""

BASE_DELAY_MS = 1000


def delay_for(retry_count: int) -> int:
    """
    Backoff delay for a retry attempt.

    Args:
        retry_count: Attempt number (>= 0)

    Returns:
        Delay in milliseconds

    Raises:
        ValueError: If retry_count is negative
    """
    if retry_count < 0:
        raise ValueError(f"retry_count must be >= 0, got {retry_count}")
    return (2**retry_count) * BASE_DELAY_MS
