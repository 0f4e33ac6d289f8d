"""Search result deduplication and ranking.

Raw Discogs search hits are deduplicated (master before release before a
title/artist composite, first occurrence wins) and then scored: community
popularity plus additive bonuses for catalog number, title and artist
matches against the normalized query. Sorting is stable, so equal scores
keep upstream order.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from crategate.core.models.gateway_models import ScoringWeights

CATALOG_PREFIX = "#"
SCORE_FIELD = "_score"
MIN_REVERSE_MATCH_LENGTH = 3
DEFAULT_WILDCARD_ARTISTS = ("various", "va")

_CONJUNCTION_RE = re.compile(r"\b(en|and)\b")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9&]+")
_CATALOG_NOISE_RE = re.compile(r"[^a-z0-9]+")
_WHITESPACE_RE = re.compile(r"\s+")
_TITLE_SEPARATOR = " - "


@dataclass(frozen=True, slots=True)
class SearchQuery:
    """Parsed user query.

    Attributes:
        text: Query sent upstream, trimmed and without the catalog prefix
        normalized: Comparison form of ``text`` for titles and artists
        catalog_only: True when the query was prefixed with ``#``
        catalog: Comparison form of ``text`` for catalog numbers

    """

    text: str
    normalized: str
    catalog_only: bool
    catalog: str = ""

    @property
    def cache_key(self) -> str:
        """Key covering every input of the ranking."""
        mode = "catalog" if self.catalog_only else "text"
        return f"search|{mode}|{self.normalized}|{self.catalog or self.text.lower()}"


def _fold_conjunctions(value: str) -> str:
    lowered = _WHITESPACE_RE.sub(" ", value.lower()).strip()
    return _CONJUNCTION_RE.sub("&", lowered)


def normalize_text(value: str) -> str:
    """Comparison form: lowercase, conjunctions as ``&``, only ``[a-z0-9&]`` kept."""
    return _NON_ALNUM_RE.sub("", _fold_conjunctions(value))


def catalog_form(value: str) -> str:
    """Catalog number comparison form: lowercase letters and digits only.

    ``ABC-123``, ``abc 123`` and ``ABC123`` all compare equal.
    """
    return _CATALOG_NOISE_RE.sub("", value.lower())


def parse_search_query(raw: str | None) -> SearchQuery:
    """Split the catalog-only sentinel off a raw query."""
    text = (raw or "").strip()
    catalog_only = text.startswith(CATALOG_PREFIX)
    if catalog_only:
        text = text[len(CATALOG_PREFIX) :].strip()
    return SearchQuery(text=text, normalized=normalize_text(text), catalog_only=catalog_only, catalog=catalog_form(text))


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def split_title_artist(item: dict[str, Any]) -> tuple[str, str]:
    """Return ``(title, artist)`` for a hit.

    Discogs search hits carry ``"Artist - Title"`` in ``title`` and no
    ``artist`` field; those are split on the first separator.
    """
    title = _text(item.get("title"))
    artist = _text(item.get("artist"))
    if not artist and _TITLE_SEPARATOR in title:
        artist, title = (part.strip() for part in title.split(_TITLE_SEPARATOR, 1))
    return title, artist


def dedupe_key(item: dict[str, Any], *, allow_composite: bool = True) -> str | None:
    """Identity of a hit: ``master:<id>``, else ``release:<id>``, else ``title|artist``."""
    if master_id := _positive_int(item.get("master_id")):
        return f"master:{master_id}"
    if release_id := _positive_int(item.get("id")):
        return f"release:{release_id}"
    if not allow_composite:
        return None
    title, artist = split_title_artist(item)
    return f"{normalize_text(title)}|{normalize_text(artist)}"


def dedupe_results(items: Iterable[dict[str, Any]], *, allow_composite: bool = True) -> list[dict[str, Any]]:
    """Keep the first occurrence per key, in arrival order.

    With ``allow_composite=False`` hits lacking both a master and a
    release id are dropped.
    """
    seen: dict[str, dict[str, Any]] = {}
    for item in items:
        if not isinstance(item, dict):
            continue
        key = dedupe_key(item, allow_composite=allow_composite)
        if key is not None and key not in seen:
            seen[key] = item
    return list(seen.values())


def popularity(item: dict[str, Any]) -> int:
    """``have + want``, read from the hit or its ``community`` block."""
    community = item.get("community") if isinstance(item.get("community"), dict) else {}
    total = 0
    for field in ("have", "want"):
        value = item.get(field, community.get(field))
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            total += int(value)
    return total


def _word_spans(value: str) -> tuple[str, frozenset[int]]:
    """Normalized form of ``value`` and the offsets where its words start or end."""
    words = [word for word in _NON_ALNUM_RE.split(_fold_conjunctions(value)) if word]
    offsets = {0}
    position = 0
    for word in words:
        position += len(word)
        offsets.add(position)
    return "".join(words), frozenset(offsets)


def _contains_words(haystack: str, boundaries: frozenset[int], needle: str) -> bool:
    start = haystack.find(needle)
    while start != -1:
        if start in boundaries and start + len(needle) in boundaries:
            return True
        start = haystack.find(needle, start + 1)
    return False


def _is_partial_match(candidate: str, query: str) -> bool:
    """Whole-word containment in either direction.

    ``Red`` is not a partial match for ``tired``; ``Abbey`` is one for
    ``Abbey Road``. Candidates shorter than three characters only match
    when they contain the query.
    """
    candidate_norm, candidate_bounds = _word_spans(candidate)
    query_norm, query_bounds = _word_spans(query)
    if not candidate_norm or not query_norm:
        return False
    if _contains_words(candidate_norm, candidate_bounds, query_norm):
        return True
    return len(candidate_norm) >= MIN_REVERSE_MATCH_LENGTH and _contains_words(query_norm, query_bounds, candidate_norm)


def score_result(
    item: dict[str, Any],
    query: SearchQuery,
    weights: ScoringWeights,
    wildcard_artists: Iterable[str] = DEFAULT_WILDCARD_ARTISTS,
) -> int:
    """Popularity plus match bonuses for one hit."""
    score = popularity(item)
    if query.catalog and catalog_form(_text(item.get("catno"))) == query.catalog:
        score += weights.catalog_exact

    if query.catalog_only or not query.normalized:
        return score

    title, artist = split_title_artist(item)
    title_norm = normalize_text(title)
    artist_norm = normalize_text(artist)
    wildcards = {normalize_text(token) for token in wildcard_artists}

    if title_norm == query.normalized:
        score += weights.title_exact
    elif _is_partial_match(title, query.text):
        score += weights.title_partial

    if artist_norm == query.normalized:
        score += weights.artist_exact
    elif artist_norm in wildcards or _is_partial_match(artist, query.text):
        score += weights.artist_partial
    return score


def rank_results(
    items: Iterable[dict[str, Any]],
    query: SearchQuery,
    weights: ScoringWeights | None = None,
    *,
    wildcard_artists: Iterable[str] = DEFAULT_WILDCARD_ARTISTS,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Deduplicate, score and sort hits, best first.

    Args:
        items: Raw hits in upstream (popularity) order
        query: Parsed query
        weights: Bonus weights; defaults to ``ScoringWeights()``
        wildcard_artists: Artist names that always earn the partial artist bonus
        limit: Maximum number of results to return

    Returns:
        Copies of the surviving hits, each with a ``_score`` field

    """
    weights = weights or ScoringWeights()
    wildcards = tuple(wildcard_artists)
    scored = [{**item, SCORE_FIELD: score_result(item, query, weights, wildcards)} for item in dedupe_results(items)]
    scored.sort(key=lambda result: result[SCORE_FIELD], reverse=True)
    return scored if limit is None else scored[: max(0, limit)]
