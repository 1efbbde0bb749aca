import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .config import Throttle
from .errors import ConfigurationError
from .logging import get_logger

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]

# Absorbs float drift between a computed sleep and the refill it pays for.
_EPSILON = 1e-6


class TokenBucket:
    """
    Asyncio token bucket.

    The bucket starts full and refills continuously at ``rate`` tokens per second
    up to ``capacity``. ``acquire(n)`` suspends the calling task until ``n``
    tokens are available, then takes them. A request larger than the capacity
    lets the bucket fill up to the requested amount for that one wait.
    """

    def __init__(
        self,
        capacity: float,
        rate: float,
        *,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if capacity < 0:
            raise ConfigurationError("Bucket capacity must be non-negative")
        if rate < 0:
            raise ConfigurationError("Refill rate must be non-negative")
        self.capacity = capacity
        self.rate = rate
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or get_logger("throttle")
        self._tokens = float(capacity)
        self._updated = self._clock()

    @classmethod
    def from_throttle(cls, throttle: Throttle, **kwargs) -> "TokenBucket":
        return cls(throttle.burst_capacity, throttle.sustained_rate, **kwargs)

    @property
    def tokens(self) -> float:
        self._refill(self.capacity)
        return self._tokens

    def _refill(self, limit: float) -> None:
        now = self._clock()
        elapsed = now - self._updated
        self._updated = now
        if elapsed > 0 and self.rate > 0:
            self._tokens = min(limit, self._tokens + elapsed * self.rate)

    async def acquire(self, amount: int) -> None:
        if amount <= 0:
            return
        limit = max(self.capacity, amount)
        while True:
            self._refill(limit)
            if self._tokens >= amount - _EPSILON:
                self._tokens -= amount
                return
            if self.rate <= 0:
                self.logger.warning(
                    "Throttle has no sustained rate; waiting for %d tokens will never finish", amount
                )
                await asyncio.get_running_loop().create_future()
            delay = (amount - self._tokens) / self.rate
            self.logger.debug("Throttling for %.3fs to acquire %d tokens", delay, amount)
            await self._sleep(delay)
