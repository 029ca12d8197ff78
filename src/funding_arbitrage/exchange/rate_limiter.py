"""
Token bucket rate limiter for public API requests.

Async-compatible limiter that keeps feed polling inside each venue's
published request and weight budgets.
"""

import asyncio
from dataclasses import dataclass, field

from funding_arbitrage.utils.time import get_timestamp_ms


@dataclass
class TokenBucket:
    """
    Token bucket implementation for rate limiting.

    Tokens are added at a constant rate up to a maximum capacity.
    Each request consumes one or more tokens.
    """

    capacity: int
    refill_rate: float  # tokens per second
    tokens: float = field(init=False)
    last_refill: int = field(init=False)  # milliseconds
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize with full bucket."""
        self.tokens = float(self.capacity)
        self.last_refill = get_timestamp_ms()

    def _refill(self) -> None:
        """Add tokens based on elapsed time."""
        now = get_timestamp_ms()
        elapsed_seconds = (now - self.last_refill) / 1000.0
        self.tokens = min(self.capacity, self.tokens + elapsed_seconds * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: int = 1) -> None:
        """
        Acquire tokens, waiting if necessary.

        Args:
            tokens: Number of tokens to acquire.
        """
        async with self._lock:
            self._refill()

            if self.tokens < tokens:
                wait_seconds = (tokens - self.tokens) / self.refill_rate
                await asyncio.sleep(wait_seconds)
                self._refill()

            self.tokens -= tokens

    async def try_acquire(self, tokens: int = 1) -> bool:
        """
        Try to acquire tokens without waiting.

        Args:
            tokens: Number of tokens to acquire.

        Returns:
            True if tokens were acquired, False if not enough available.
        """
        async with self._lock:
            self._refill()

            if self.tokens >= tokens:
                self.tokens -= tokens
                return True
            return False


class RateLimiter:
    """
    Two-bucket rate limiter for one exchange.

    Every request consumes one request token and its endpoint weight.
    """

    def __init__(self, requests_per_second: int, weight_per_minute: int) -> None:
        """
        Initialize rate limiter with specified limits.

        Args:
            requests_per_second: Maximum requests per second.
            weight_per_minute: Maximum request weight per minute.
        """
        # Burst capacity = 2x rate
        self._request_bucket = TokenBucket(
            capacity=requests_per_second * 2,
            refill_rate=float(requests_per_second),
        )
        self._weight_bucket = TokenBucket(
            capacity=weight_per_minute,
            refill_rate=weight_per_minute / 60.0,
        )

    async def acquire(self, weight: int = 1) -> None:
        """
        Acquire permission for a request.

        Args:
            weight: Request weight (varies by endpoint).
        """
        await asyncio.gather(
            self._request_bucket.acquire(1),
            self._weight_bucket.acquire(weight),
        )

    async def try_acquire(self, weight: int = 1) -> bool:
        """
        Try to acquire request permission without waiting.

        Args:
            weight: Request weight.

        Returns:
            True if permission granted.
        """
        if not await self._request_bucket.try_acquire(1):
            return False

        if not await self._weight_bucket.try_acquire(weight):
            # Refund the request token
            self._request_bucket.tokens += 1
            return False

        return True

    @property
    def available(self) -> float:
        """Approximate number of available request tokens."""
        return min(self._request_bucket.tokens, self._weight_bucket.tokens)
