"""
Time utilities.

Funding accrual and scheduling work on millisecond wall-clock timestamps;
latency measurement keeps microsecond precision.
"""

import time
from typing import Final


MS_PER_HOUR: Final[int] = 3_600_000


def get_timestamp_us() -> int:
    """
    Get current timestamp in microseconds.

    Returns:
        Current Unix timestamp in microseconds.
    """
    return time.time_ns() // 1000


def get_timestamp_ms() -> int:
    """
    Get current timestamp in milliseconds.

    Used for position timestamps and exchange payloads, which are all
    expressed in milliseconds.

    Returns:
        Current Unix timestamp in milliseconds.
    """
    return time.time_ns() // 1_000_000


def hours_between(start_ms: int, end_ms: int) -> float:
    """
    Elapsed hours between two millisecond timestamps.

    Args:
        start_ms: Start timestamp in milliseconds.
        end_ms: End timestamp in milliseconds.

    Returns:
        Elapsed hours, never negative.
    """
    return max(0, end_ms - start_ms) / MS_PER_HOUR


class LatencyTimer:
    """
    Context manager for measuring operation latency.

    Example:
        >>> with LatencyTimer() as timer:
        ...     do_something()
        >>> print(f"Latency: {timer.latency_us}μs")
    """

    __slots__ = ("start_us", "end_us", "latency_us")

    def __init__(self) -> None:
        self.start_us: int = 0
        self.end_us: int = 0
        self.latency_us: int = 0

    def __enter__(self) -> "LatencyTimer":
        self.start_us = get_timestamp_us()
        return self

    def __exit__(self, *args: object) -> None:
        self.end_us = get_timestamp_us()
        self.latency_us = self.end_us - self.start_us


def format_duration_s(duration_s: float) -> str:
    """
    Format a duration in seconds for human-readable display.

    Examples:
        >>> format_duration_s(42)
        '42s'
        >>> format_duration_s(5400)
        '1h 30m'
    """
    total = int(max(0.0, duration_s))
    if total < 60:
        return f"{total}s"
    minutes, _ = divmod(total, 60)
    if minutes < 60:
        return f"{minutes}m {total % 60}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"
