"""In-memory TTL cache with request coalescing.

At most one fetch per key is in flight at any time: concurrent callers
for the same key await the single pending fetch instead of issuing their
own, and the settled value is stored with its fetch timestamp.

The check-then-register steps in ``get_or_fetch`` contain no ``await``,
so on the single-threaded event loop they cannot interleave with another
caller. Do not share an instance across threads or event loops.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """Cached value with the monotonic time it was fetched."""

    value: T
    fetched_at: float


class CoalescingCache(Generic[T]):
    """TTL cache that merges concurrent identical fetches into one."""

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        logger: logging.Logger | None = None,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            name: Label used in log messages and statistics
            ttl_seconds: Entry lifetime in seconds
            logger: Logger for hit/miss diagnostics
            max_entries: Oldest entries are evicted beyond this size (None for unbounded)
            clock: Monotonic time source

        Raises:
            ValueError: If ttl_seconds is not positive

        """
        if ttl_seconds <= 0:
            msg = "ttl_seconds must be a positive number"
            raise ValueError(msg)

        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._in_flight: dict[str, asyncio.Task[T]] = {}
        self.hits = 0
        self.misses = 0
        self.coalesced = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def in_flight_count(self) -> int:
        """Number of fetches currently pending."""
        return len(self._in_flight)

    def _is_fresh(self, entry: CacheEntry[T], now: float) -> bool:
        return now - entry.fetched_at < self.ttl_seconds

    def peek(self, key: str) -> T | None:
        """Return the fresh cached value for ``key`` without fetching."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry, self._clock()):
            return None
        return entry.value

    async def get_or_fetch(self, key: str, fetch_func: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value for ``key``, joining or starting a fetch on a miss.

        Args:
            key: Cache key
            fetch_func: Coroutine function producing the value on a miss

        Returns:
            The cached or freshly fetched value

        Raises:
            Exception: Whatever ``fetch_func`` raised; nothing is cached then.

        """
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry, self._clock()):
            self.hits += 1
            self.logger.debug("[%s] cache hit: %s", self.name, key)
            return entry.value

        task = self._in_flight.get(key)
        if task is not None:
            self.coalesced += 1
            self.logger.debug("[%s] joining in-flight fetch: %s", self.name, key)
        else:
            self.misses += 1
            self.logger.debug("[%s] cache miss: %s", self.name, key)
            task = asyncio.ensure_future(self._run_fetch(key, fetch_func))
            self._in_flight[key] = task

        # A cancelled caller must not cancel the fetch other callers await
        return await asyncio.shield(task)

    async def _run_fetch(self, key: str, fetch_func: Callable[[], Awaitable[T]]) -> T:
        try:
            value = await fetch_func()
        finally:
            self._in_flight.pop(key, None)
        self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())
        self.enforce_size_limits()
        return value

    def invalidate(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all cached entries (pending fetches are left to finish)."""
        count = len(self._entries)
        self._entries.clear()
        self.logger.info("[%s] cleared %d cache entries", self.name, count)

    def cleanup_expired(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed

        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self.logger.debug("[%s] cleaned up %d expired entries", self.name, len(expired))
        return len(expired)

    def enforce_size_limits(self) -> int:
        """Evict the oldest entries beyond ``max_entries``.

        Returns:
            Number of entries removed

        """
        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return 0

        excess = len(self._entries) - self.max_entries
        oldest = sorted(self._entries.items(), key=lambda item: item[1].fetched_at)[:excess]
        for key, _ in oldest:
            del self._entries[key]
        self.logger.debug("[%s] size limit: evicted %d oldest entries", self.name, excess)
        return excess

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        fresh = sum(1 for entry in self._entries.values() if self._is_fresh(entry, now))
        return {
            "name": self.name,
            "ttl_seconds": self.ttl_seconds,
            "total_entries": len(self._entries),
            "valid_entries": fresh,
            "expired_entries": len(self._entries) - fresh,
            "in_flight": len(self._in_flight),
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
            "max_entries": self.max_entries,
        }
