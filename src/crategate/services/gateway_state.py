"""Process-wide mutable gateway state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from crategate.core.models.gateway_models import AppConfig
from crategate.core.models.release_models import ReleaseDetails
from crategate.services.api.rate_limiter import DiscogsRateLimiter
from crategate.services.cache.coalescing_cache import CoalescingCache


@dataclass
class GatewayState:
    """Rate limiter and lookup caches shared by every handler.

    Built once at startup and injected; tests build fresh instances.
    """

    rate_limiter: DiscogsRateLimiter
    release_cache: CoalescingCache[ReleaseDetails]
    artists_cache: CoalescingCache[list[str]]
    barcode_cache: CoalescingCache[list[dict[str, Any]]]
    search_cache: CoalescingCache[list[dict[str, Any]]]

    @classmethod
    def from_config(cls, config: AppConfig, console_logger: logging.Logger) -> GatewayState:
        """Build the state from the rate limit and cache sections."""
        cache_cfg = config.cache
        return cls(
            rate_limiter=DiscogsRateLimiter(
                config.rate_limit.requests_per_window,
                config.rate_limit.window_seconds,
                safety_margin=config.rate_limit.safety_margin_seconds,
                logger=console_logger,
            ),
            release_cache=CoalescingCache("release", cache_cfg.release_ttl_seconds, console_logger, max_entries=cache_cfg.max_entries),
            artists_cache=CoalescingCache("artists", cache_cfg.artists_ttl_seconds, console_logger, max_entries=cache_cfg.max_entries),
            barcode_cache=CoalescingCache("barcode", cache_cfg.barcode_ttl_seconds, console_logger, max_entries=cache_cfg.max_entries),
            search_cache=CoalescingCache("search", cache_cfg.search_ttl_seconds, console_logger, max_entries=cache_cfg.max_entries),
        )

    @property
    def caches(self) -> tuple[CoalescingCache[Any], ...]:
        """All lookup caches."""
        return (self.release_cache, self.artists_cache, self.barcode_cache, self.search_cache)

    def cleanup_expired(self) -> int:
        """Drop expired entries from every cache."""
        return sum(cache.cleanup_expired() for cache in self.caches)

    def get_stats(self) -> dict[str, Any]:
        """Limiter and per-cache statistics."""
        return {
            "rate_limiter": self.rate_limiter.get_stats(),
            "caches": {cache.name: cache.get_stats() for cache in self.caches},
        }
