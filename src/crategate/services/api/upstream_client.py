"""Discogs upstream client.

Performs the HTTP calls to the Discogs REST API. Every attempt first
claims a slot from the shared rate limiter; a 429 answer is retried
exactly once after the advertised ``Retry-After`` delay. Failures never
propagate: they are logged and turned into ``None`` so the caller can
fall through to its next candidate source.
"""

from __future__ import annotations

import asyncio
import math
import time
import urllib.parse
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import aiohttp

from crategate.core.exceptions import UpstreamError

if TYPE_CHECKING:
    import logging

    from crategate.services.api.rate_limiter import DiscogsRateLimiter


# Constants
WAIT_TIME_LOG_THRESHOLD = 0.1
HTTP_TOO_MANY_REQUESTS = 429
API_RESPONSE_LOG_LIMIT = 500
DEFAULT_RETRY_AFTER_SECONDS = 60.0
SEARCH_PATH = "database/search"


def release_path(release_id: int) -> str:
    """API path of a release resource."""
    return f"releases/{release_id}"


def master_path(master_id: int) -> str:
    """API path of a master resource."""
    return f"masters/{master_id}"


def parse_retry_after(value: str | None, default: float = DEFAULT_RETRY_AFTER_SECONDS) -> float:
    """Convert a ``Retry-After`` header into seconds.

    Only the delta-seconds form is understood; absent, non-numeric or
    negative values fall back to ``default``.
    """
    if value is None:
        return default
    try:
        seconds = float(value.strip())
    except ValueError:
        return default
    if not math.isfinite(seconds) or seconds < 0:
        return default
    return seconds


class DiscogsUpstreamClient:
    """Rate limited Discogs HTTP client with a single throttle retry."""

    def __init__(
        self,
        *,
        rate_limiter: DiscogsRateLimiter,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        token: str,
        base_url: str = "https://api.discogs.com",
        user_agent: str = "Crategate/1.0",
        default_retry_after: float = DEFAULT_RETRY_AFTER_SECONDS,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the upstream client.

        Args:
            rate_limiter: Limiter shared by every upstream call in the process
            console_logger: Logger for info/debug messages
            error_logger: Logger for errors/warnings
            token: Discogs personal access token (empty disables lookups)
            base_url: API root without trailing slash
            user_agent: User-Agent header for requests
            default_retry_after: Backoff used when a 429 carries no usable Retry-After
            timeout: Total request timeout in seconds
            sleep: Coroutine function used for the throttle backoff

        """
        self.rate_limiter = rate_limiter
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.token = token.strip()
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.default_retry_after = default_retry_after
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._sleep = sleep

        # Session is either injected via set_session() or owned after initialize()
        self.session: aiohttp.ClientSession | None = None
        self._owns_session = False

        # Metrics
        self.request_count = 0
        self.throttled_count = 0
        self.failed_count = 0
        self.total_call_seconds = 0.0
        self.timed_call_count = 0

    @property
    def has_credentials(self) -> bool:
        """Whether an API token is configured."""
        return bool(self.token)

    def set_session(self, session: aiohttp.ClientSession | None) -> None:
        """Use an externally managed aiohttp session."""
        self.session = session
        self._owns_session = False

    async def initialize(self) -> None:
        """Create an owned session if none is usable."""
        if self.session is not None and not self.session.closed:
            return
        self.session = aiohttp.ClientSession(timeout=self.timeout, headers={"User-Agent": self.user_agent})
        self._owns_session = True
        self.console_logger.debug("Discogs HTTP session created")

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()
            self.console_logger.debug("Discogs HTTP session closed")
        self.session = None
        self._owns_session = False

    def build_url(self, path_or_url: str) -> str:
        """Resolve a relative API path against the base URL."""
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    @staticmethod
    def _build_log_url(url: str, params: dict[str, str] | None) -> str:
        return url + (f"?{urllib.parse.urlencode(params, safe=':/')}" if params else "")

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Discogs token={self.token}",
            "User-Agent": self.user_agent,
        }

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            msg = "HTTP session not initialized or closed"
            raise RuntimeError(msg)
        return self.session

    async def fetch_resource(self, path_or_url: str, params: dict[str, str] | None = None) -> dict[str, Any] | None:
        """Fetch one upstream resource.

        Args:
            path_or_url: Absolute URL or path relative to the API root
            params: Query parameters

        Returns:
            Parsed JSON object, or None on any failure

        """
        if not self.has_credentials:
            self.console_logger.debug("Discogs token not configured; skipping request to %s", path_or_url)
            return None

        url = self.build_url(path_or_url)
        log_url = self._build_log_url(url, params)
        try:
            return await self._fetch_with_throttle_retry(url, params, log_url)
        except UpstreamError as e:
            self.failed_count += 1
            self.error_logger.warning("[discogs] Request failed with status %d: %s", e.status, log_url)
            return None
        except (TimeoutError, aiohttp.ClientError):
            self.failed_count += 1
            self.error_logger.exception("[discogs] Network error requesting %s", log_url)
            return None
        except (OSError, ValueError, KeyError, TypeError, RuntimeError):
            self.failed_count += 1
            self.error_logger.exception("[discogs] Unexpected error requesting %s", log_url)
            return None

    async def _fetch_with_throttle_retry(self, url: str, params: dict[str, str] | None, log_url: str) -> dict[str, Any] | None:
        """Run one attempt and, after a 429, exactly one more."""
        try:
            return await self._execute_single_request(url, params, log_url, attempt=1)
        except UpstreamError as e:
            if e.status != HTTP_TOO_MANY_REQUESTS:
                raise
            delay = parse_retry_after(e.retry_after, self.default_retry_after)

        self.throttled_count += 1
        self.console_logger.info("[discogs] Throttled (429) on %s; retrying once in %.1fs", log_url, delay)
        await self._sleep(delay)
        return await self._execute_single_request(url, params, log_url, attempt=2)

    async def _execute_single_request(
        self,
        url: str,
        params: dict[str, str] | None,
        log_url: str,
        *,
        attempt: int,
    ) -> dict[str, Any] | None:
        """Claim a rate limiter slot and perform one GET.

        Raises:
            UpstreamError: On a non-success status
            RuntimeError: If no session is available

        """
        session = self._ensure_session()
        wait_time = await self.rate_limiter.acquire()
        if wait_time > WAIT_TIME_LOG_THRESHOLD:
            self.console_logger.debug("[discogs] Waited %.3fs for rate limiting", wait_time)

        self.request_count += 1
        start_time = time.monotonic()
        async with session.get(url, params=params, headers=self._build_headers(), timeout=self.timeout) as response:
            elapsed = time.monotonic() - start_time
            self.total_call_seconds += elapsed
            self.timed_call_count += 1
            self.console_logger.debug("[discogs] Request (Attempt %d): %s - Status: %d (%.3fs)", attempt, log_url, response.status, elapsed)
            return await self._process_response(response, url)

    async def _process_response(self, response: aiohttp.ClientResponse, url: str) -> dict[str, Any] | None:
        status = response.status
        if status == HTTP_TOO_MANY_REQUESTS:
            raise UpstreamError("Rate limited by Discogs", status, url, retry_after=response.headers.get("Retry-After"))
        if not 200 <= status < 300:
            raise UpstreamError(f"Discogs answered HTTP {status}", status, url)

        data = await response.json(content_type=None)
        if isinstance(data, dict):
            return data
        self.error_logger.warning(
            "[discogs] JSON response is not a dict (type: %s) from %s. Snippet: %s",
            type(data).__name__,
            url,
            str(data)[:API_RESPONSE_LOG_LIMIT],
        )
        return None

    def get_stats(self) -> dict[str, Any]:
        """Get request statistics."""
        return {
            "request_count": self.request_count,
            "throttled_count": self.throttled_count,
            "failed_count": self.failed_count,
            "avg_duration": self.total_call_seconds / max(1, self.timed_call_count),
            "has_credentials": self.has_credentials,
        }
