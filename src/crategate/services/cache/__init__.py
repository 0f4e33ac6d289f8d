"""In-memory response caching with request coalescing."""

from .coalescing_cache import CacheEntry, CoalescingCache

__all__ = ["CacheEntry", "CoalescingCache"]
