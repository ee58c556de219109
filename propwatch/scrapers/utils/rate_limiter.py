"""Process-wide minimum-interval rate limiter shared by every source."""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import structlog

from propwatch.config import settings

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Single-permit limiter enforcing a minimum gap between fetches.

    Only one caller at a time is inside the timing check, so every
    outbound fetch in the process is serialized regardless of source.
    Callers queue on the lock in FIFO order.
    """

    def __init__(
        self,
        requests_per_minute: int = 10,
        cooldown_ms: int = 6000,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the limiter.

        Args:
            requests_per_minute: Allowed fetches per minute (min interval = 60s / rpm)
            cooldown_ms: Extra pause applied by acquire_with_cooldown()
            clock: Monotonic clock in seconds, injectable for tests
            sleep: Async sleep function, injectable for tests
        """
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")

        self.requests_per_minute = requests_per_minute
        self.min_interval = 60.0 / requests_per_minute
        self.cooldown = cooldown_ms / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last_request_time: Optional[float] = None
        self._lock = asyncio.Lock()

    async def _wait_for_slot(self) -> None:
        # Caller holds self._lock
        if self._last_request_time is not None:
            elapsed = self._clock() - self._last_request_time
            if elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                logger.debug("rate_limit_wait", wait_seconds=round(wait_time, 3))
                await self._sleep(wait_time)
        self._last_request_time = self._clock()

    async def acquire(self) -> None:
        """Wait until at least min_interval has passed since the last grant."""
        async with self._lock:
            await self._wait_for_slot()

    async def acquire_with_cooldown(self) -> None:
        """acquire(), then pause for the configured cooldown."""
        await self.acquire()
        if self.cooldown > 0:
            await self._sleep(self.cooldown)

    async def try_acquire(self, timeout: float) -> bool:
        """Like acquire(), but give up if the permit isn't free within timeout.

        Returns:
            True if a slot was granted, False on timeout
        """
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        try:
            await self._wait_for_slot()
        finally:
            self._lock.release()
        return True


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the global RateLimiter singleton."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(
            requests_per_minute=settings.RATE_LIMIT_REQUESTS_PER_MINUTE,
            cooldown_ms=settings.RATE_LIMIT_COOLDOWN_MS,
        )
    return _rate_limiter
