"""
Per-host politeness tracking for crawl requests.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional


class PolitenessTracker:
    """Per-hostname rate limiter scoped to one crawl cycle."""

    def __init__(self, default_delay_seconds: float = 1.0,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """Initialize politeness tracker.

        Args:
            default_delay_seconds: Minimum gap between requests to one host
            clock: Monotonic time source
            sleep: Coroutine used to wait
        """
        self.default_delay_seconds = default_delay_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_request: Dict[str, float] = {}

    def required_gap(self, crawl_delay_seconds: Optional[float] = None) -> float:
        if crawl_delay_seconds is None:
            return self.default_delay_seconds
        return max(self.default_delay_seconds, crawl_delay_seconds)

    async def wait(self, hostname: str, crawl_delay_seconds: Optional[float] = None) -> float:
        """Wait until the host may be requested again, then record the request.

        Returns:
            Seconds actually slept
        """
        gap = self.required_gap(crawl_delay_seconds)
        slept = 0.0

        last = self._last_request.get(hostname)
        if last is not None:
            elapsed = self._clock() - last
            if elapsed < gap:
                slept = gap - elapsed
                await self._sleep(slept)

        self._last_request[hostname] = self._clock()
        return slept

    def last_request_time(self, hostname: str) -> Optional[float]:
        return self._last_request.get(hostname)

    def record(self, hostname: str) -> None:
        """Mark a request to the host made outside ``wait``."""
        self._last_request[hostname] = self._clock()
