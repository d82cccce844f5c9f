"""Rate limiter for Seller API requests."""

import asyncio
import time
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Caps concurrent requests and spaces out request starts."""

    def __init__(
        self,
        max_concurrent: int = 3,
        min_interval: float = 0.2,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            max_concurrent: Maximum concurrent requests allowed.
            min_interval: Minimum seconds between two request starts.
        """
        self._max_concurrent = max_concurrent
        self._min_interval = min_interval
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._lock = asyncio.Lock()
        self._last_start: float | None = None
        self._requests_made = 0

    async def acquire(self) -> None:
        """Wait for a free slot and for the minimum interval to pass."""
        await self._semaphore.acquire()
        try:
            async with self._lock:
                if self._last_start is not None and self._min_interval > 0:
                    wait = self._min_interval - (time.monotonic() - self._last_start)
                    if wait > 0:
                        logger.debug("Throttling API request", wait_seconds=round(wait, 3))
                        await asyncio.sleep(wait)
                self._last_start = time.monotonic()
                self._requests_made += 1
        except BaseException:
            self._semaphore.release()
            raise

    def release(self) -> None:
        """Release the slot after a request completes."""
        self._semaphore.release()

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.release()

    @property
    def requests_made(self) -> int:
        """Number of requests started through this limiter."""
        return self._requests_made

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent
