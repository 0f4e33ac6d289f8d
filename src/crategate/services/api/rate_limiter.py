"""Rolling window rate limiter for upstream Discogs calls.

One limiter instance is shared by every handler in the process, so the
quota bounds all outbound calls together rather than per endpoint.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any


class DiscogsRateLimiter:
    """Moving window rate limiter.

    Tracks the timestamps of permitted calls within a sliding window. When
    the window is full, the caller sleeps until the oldest timestamp leaves
    the window (plus a small safety margin) and checks again. Acquisitions
    are serialized through an ``asyncio.Lock`` so the check-and-record step
    is atomic and waiters are served in arrival order.

    Attributes:
        requests_per_window: Maximum number of calls allowed in the window
        window_seconds: Window length in seconds
        safety_margin: Extra seconds added to each computed wait
        request_timestamps: Timestamps of calls still inside the window

    """

    def __init__(
        self,
        requests_per_window: int,
        window_seconds: float,
        *,
        safety_margin: float = 0.025,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            requests_per_window: Maximum requests allowed in the time window
            window_seconds: Duration of the time window in seconds
            safety_margin: Seconds added to every computed wait
            logger: Logger for wait diagnostics
            clock: Monotonic time source
            sleep: Coroutine function used to suspend waiters

        Raises:
            ValueError: If parameters are not positive numbers

        """
        if requests_per_window <= 0:
            msg = "requests_per_window must be a positive integer"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be a positive number"
            raise ValueError(msg)

        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.safety_margin = max(0.0, safety_margin)
        self.logger = logger or logging.getLogger(__name__)
        self.request_timestamps: deque[float] = deque()
        self.total_requests = 0
        self.total_wait_time = 0.0
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Wait for a free slot in the window and claim it.

        Never raises and never gives up; excess callers are delayed, not dropped.

        Returns:
            float: Seconds spent waiting

        """
        async with self._lock:
            waited = 0.0
            while True:
                now = self._clock()
                self._prune(now)
                if len(self.request_timestamps) < self.requests_per_window:
                    self.request_timestamps.append(now)
                    break

                wait_time = max(self.request_timestamps[0] + self.window_seconds - now, 0.0) + self.safety_margin
                self.logger.debug("Rate limit reached (%d/%.0fs). Waiting %.3fs", self.requests_per_window, self.window_seconds, wait_time)
                waited += wait_time
                await self._sleep(wait_time)

            self.total_requests += 1
            self.total_wait_time += waited
            return waited

    def _prune(self, now: float) -> None:
        """Drop timestamps that have left the window."""
        while self.request_timestamps and now - self.request_timestamps[0] >= self.window_seconds:
            self.request_timestamps.popleft()

    def get_stats(self) -> dict[str, Any]:
        """Get current rate limiter statistics."""
        self._prune(self._clock())
        in_window = len(self.request_timestamps)
        return {
            "requests_per_window": self.requests_per_window,
            "window_seconds": self.window_seconds,
            "current_calls_in_window": in_window,
            "available_capacity": max(0, self.requests_per_window - in_window),
            "total_requests": self.total_requests,
            "avg_wait_time": self.total_wait_time / max(1, self.total_requests),
        }
