"""Discogs gateway lookups.

Each lookup follows the same flow: return the empty value when the token
or the identifying parameter is missing, otherwise go through the
coalescing cache, which on a miss runs the upstream fetch sequence
(rate limited, with candidate-source fallback) and stores its outcome.
No lookup raises: every failure is logged and degraded to the empty
value of its result type.
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING, Any

import aiohttp

from crategate.core.models.gateway_models import ResultType
from crategate.core.models.release_models import ReleaseDetails, SearchPage
from crategate.services.api.normalizer import (
    empty_release_details,
    extract_artist_names,
    merge_release_details,
    normalize_release_details,
)
from crategate.services.api.search_ranker import SearchQuery, dedupe_results, parse_search_query, rank_results
from crategate.services.api.upstream_client import SEARCH_PATH, master_path, release_path

if TYPE_CHECKING:
    import logging

    from crategate.core.models.gateway_models import AppConfig
    from crategate.core.models.protocols import SharedDetailsStoreProtocol, UpstreamClientProtocol
    from crategate.services.gateway_state import GatewayState

CACHE_VERSION = "v2"
SEARCH_TYPES = (ResultType.MASTER, ResultType.RELEASE)
BARCODE_REF_PREFIX = "b_"

# Failures converted to empty results at the gateway boundary
LOOKUP_ERRORS = (aiohttp.ClientError, TimeoutError, OSError, ValueError, KeyError, TypeError, RuntimeError)

_NON_DIGIT_RE = re.compile(r"\D")


def coerce_result_type(value: str | None) -> str:
    """Return ``"master"``, ``"release"`` or ``""`` for anything else."""
    try:
        return ResultType((value or "").strip().lower()).value
    except ValueError:
        return ""


def _positive_id(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def candidate_sources(release_id: int | None, master_id: int | None, result_type: str) -> list[tuple[ResultType, int]]:
    """Ordered, de-duplicated ``(kind, id)`` pairs to try for a details lookup."""
    candidates: list[tuple[ResultType, int | None]]
    if result_type == ResultType.MASTER:
        candidates = [(ResultType.MASTER, release_id), (ResultType.MASTER, master_id), (ResultType.RELEASE, release_id)]
    elif result_type == ResultType.RELEASE:
        candidates = [(ResultType.RELEASE, release_id), (ResultType.MASTER, master_id)]
    else:
        same_id = master_id if release_id is not None and release_id == master_id else None
        candidates = [(ResultType.MASTER, same_id), (ResultType.RELEASE, release_id), (ResultType.MASTER, master_id)]

    return list(dict.fromkeys((kind, resource_id) for kind, resource_id in candidates if resource_id))


def build_search_page(ranked: list[dict[str, Any]], page: int, per_page: int) -> SearchPage:
    """Slice one page out of the ranked list."""
    total = len(ranked)
    start = (page - 1) * per_page
    return SearchPage(
        results=ranked[start : start + per_page],
        total=total,
        page=page,
        per_page=per_page,
        pages=math.ceil(total / per_page) if total else 0,
    )


class DiscogsGateway:
    """Release details, artist names, barcode and free-text search lookups."""

    def __init__(
        self,
        state: GatewayState,
        client: UpstreamClientProtocol,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        config: AppConfig,
        shared_store: SharedDetailsStoreProtocol | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            state: Shared rate limiter and caches
            client: Upstream client used for every Discogs call
            console_logger: Logger for info/debug messages
            error_logger: Logger for errors/warnings
            config: Application configuration
            shared_store: Durable store optionally consulted by barcode lookups

        """
        self.state = state
        self.client = client
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.config = config
        self.shared_store = shared_store

    @staticmethod
    def _resource_path(kind: ResultType, resource_id: int) -> str:
        return master_path(resource_id) if kind == ResultType.MASTER else release_path(resource_id)

    # Release details

    async def get_release_details(
        self,
        release_id: int | None,
        master_id: int | None = None,
        result_type: str | None = None,
    ) -> ReleaseDetails:
        """Normalized details for a release or master.

        A master is merged with its main release, the release winning
        field by field wherever it has a value.
        """
        release_id, master_id = _positive_id(release_id), _positive_id(master_id)
        kind = coerce_result_type(result_type)
        if not self.client.has_credentials or not (release_id or master_id):
            return empty_release_details()

        cache_key = f"{CACHE_VERSION}|id:{release_id or ''}|master:{master_id or ''}|type:{kind}"
        try:
            return await self.state.release_cache.get_or_fetch(
                cache_key,
                lambda: self._fetch_release_details(release_id, master_id, kind),
            )
        except LOOKUP_ERRORS:
            self.error_logger.exception("Release details lookup failed for %s", cache_key)
            return empty_release_details()

    async def _fetch_release_details(self, release_id: int | None, master_id: int | None, result_type: str) -> ReleaseDetails:
        for kind, resource_id in candidate_sources(release_id, master_id, result_type):
            path = self._resource_path(kind, resource_id)
            try:
                payload = await self.client.fetch_resource(path)
                if payload is None:
                    continue
                details = normalize_release_details(payload)
                if kind == ResultType.MASTER:
                    return await self._merge_with_main_release(payload, details)
                return details
            except LOOKUP_ERRORS:
                self.error_logger.exception("Failed to resolve release details from %s", path)

        self.console_logger.debug("No source returned details for id=%s master=%s", release_id, master_id)
        return empty_release_details()

    async def _merge_with_main_release(self, master_payload: dict[str, Any], master_details: ReleaseDetails) -> ReleaseDetails:
        main_release_id = _positive_id(master_payload.get("main_release"))
        if main_release_id is None:
            return master_details

        main_payload = await self.client.fetch_resource(release_path(main_release_id))
        if main_payload is None:
            return master_details
        return merge_release_details(normalize_release_details(main_payload), master_details)

    # Artist names

    async def get_artist_names(self, release_id: int | None, master_id: int | None = None) -> list[str]:
        """Cleaned artist names, from the master first and then the release."""
        release_id, master_id = _positive_id(release_id), _positive_id(master_id)
        if not self.client.has_credentials or not (release_id or master_id):
            return []

        cache_key = f"id:{release_id or ''}|master:{master_id or ''}"
        try:
            return await self.state.artists_cache.get_or_fetch(cache_key, lambda: self._fetch_artist_names(release_id, master_id))
        except LOOKUP_ERRORS:
            self.error_logger.exception("Artist lookup failed for %s", cache_key)
            return []

    async def _fetch_artist_names(self, release_id: int | None, master_id: int | None) -> list[str]:
        sources = [(ResultType.MASTER, master_id), (ResultType.RELEASE, release_id)]
        for kind, resource_id in sources:
            if not resource_id:
                continue
            path = self._resource_path(kind, resource_id)
            try:
                artists = extract_artist_names(await self.client.fetch_resource(path))
            except LOOKUP_ERRORS:
                self.error_logger.exception("Failed to read artists from %s", path)
                continue
            if artists:
                return artists
        return []

    # Barcode

    async def lookup_barcode(self, barcode: str | None) -> list[dict[str, Any]]:
        """Master and release hits for a barcode, de-duplicated by identity."""
        digits = _NON_DIGIT_RE.sub("", barcode or "")
        if not self.client.has_credentials or not digits:
            return []

        try:
            return await self.state.barcode_cache.get_or_fetch(digits, lambda: self._fetch_barcode(digits))
        except LOOKUP_ERRORS:
            self.error_logger.exception("Barcode lookup failed for %s", digits)
            return []

    async def _fetch_barcode(self, digits: str) -> list[dict[str, Any]]:
        if stored := await self._read_stored_barcode(digits):
            return stored

        hits: list[dict[str, Any]] = []
        for kind in SEARCH_TYPES:
            params = {
                "barcode": digits,
                "type": kind.value,
                "per_page": str(self.config.barcode.per_page),
                "sort": "have",
                "sort_order": "desc",
            }
            payload = await self.client.fetch_resource(SEARCH_PATH, params)
            if payload is not None and isinstance(payload.get("results"), list):
                hits.extend(payload["results"])

        results = dedupe_results(hits, allow_composite=False)
        self.console_logger.debug("Barcode %s: %d raw hits, %d unique", digits, len(hits), len(results))
        if results:
            await self._store_barcode(digits, results)
        return results

    def _active_store(self) -> SharedDetailsStoreProtocol | None:
        return self.shared_store if self.config.barcode.consult_shared_store else None

    async def _read_stored_barcode(self, digits: str) -> list[dict[str, Any]] | None:
        if (store := self._active_store()) is None:
            return None
        try:
            record = await store.get(f"{BARCODE_REF_PREFIX}{digits}")
        except (OSError, ValueError, TypeError):
            self.error_logger.exception("Shared store read failed for barcode %s", digits)
            return None
        if record and isinstance(record.get("results"), list):
            self.console_logger.debug("Barcode %s served from shared store", digits)
            return record["results"]
        return None

    async def _store_barcode(self, digits: str, results: list[dict[str, Any]]) -> None:
        if (store := self._active_store()) is None:
            return
        try:
            await store.put(f"{BARCODE_REF_PREFIX}{digits}", {"barcode": digits, "results": results})
        except (OSError, ValueError, TypeError):
            self.error_logger.exception("Shared store write failed for barcode %s", digits)

    # Search

    async def search(self, raw_query: str | None, page: int | None = 1, per_page: int | None = None) -> SearchPage:
        """Ranked, de-duplicated, paginated search results.

        A leading ``#`` makes the query a catalog number search.
        """
        search_cfg = self.config.search
        page = max(1, page or 1)
        per_page = max(1, per_page or search_cfg.max_results)
        query = parse_search_query(raw_query)
        if not self.client.has_credentials or not query.text:
            return build_search_page([], page, per_page)

        try:
            ranked = await self.state.search_cache.get_or_fetch(query.cache_key, lambda: self._fetch_search(query))
        except LOOKUP_ERRORS:
            self.error_logger.exception("Search failed for %r", query.text)
            ranked = []
        return build_search_page(ranked, page, per_page)

    async def _fetch_search(self, query: SearchQuery) -> list[dict[str, Any]]:
        search_cfg = self.config.search
        hits: list[dict[str, Any]] = []
        for kind in SEARCH_TYPES:
            params = {
                "catno" if query.catalog_only else "q": query.text,
                "type": kind.value,
                "per_page": str(search_cfg.upstream_per_page),
                "sort": "have",
                "sort_order": "desc",
            }
            payload = await self.client.fetch_resource(SEARCH_PATH, params)
            if payload is not None and isinstance(payload.get("results"), list):
                hits.extend(payload["results"])

        ranked = rank_results(
            hits,
            query,
            search_cfg.weights,
            wildcard_artists=search_cfg.wildcard_artists,
            limit=search_cfg.max_results,
        )
        self.console_logger.info("Search %r: %d hits, %d ranked results", query.text, len(hits), len(ranked))
        return ranked
