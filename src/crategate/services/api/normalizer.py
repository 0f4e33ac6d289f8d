"""Discogs payload normalization.

Pure functions mapping raw release or master payloads into the canonical
``ReleaseDetails`` shape. Upstream values are untrusted: anything with an
unexpected type is treated as missing, strings are trimmed, and numbers
default to zero.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable
from typing import Any

from crategate.core.models.release_models import (
    Ratings,
    ReleaseArtist,
    ReleaseDetails,
    ReleaseImage,
    ReleaseLabel,
    Track,
    TrackArtist,
)

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_ISO_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_YEAR_RE = re.compile(r"^(\d{4})$")
_LEGACY_DATE_RE = re.compile(r"^(\d{1,2})([-/.])(\d{1,2})\2(\d{4})$")
_WHITESPACE_RE = re.compile(r"\s+")
_DISAMBIGUATION_RE = re.compile(r"\(\d+\)$")

MIN_MONTH, MAX_MONTH = 1, 12
MIN_DAY, MAX_DAY = 1, 31


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        number = float(value)
    except OverflowError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _dicts(value: Any) -> Iterable[dict[str, Any]]:
    return (item for item in _as_list(value) if isinstance(item, dict))


def _clean_strings(value: Any) -> list[str]:
    return [text for text in (_clean_str(item) for item in _as_list(value)) if text]


def _compose_date(year: str, month: int, day: int | None) -> str:
    if not MIN_MONTH <= month <= MAX_MONTH:
        return year
    if day is None or not MIN_DAY <= day <= MAX_DAY:
        return f"{year}-{month:02d}"
    return f"{year}-{month:02d}-{day:02d}"


def format_release_date(raw: Any) -> str:
    """Format a Discogs release date, degrading to the most specific valid prefix.

    Accepted inputs are ``YYYY-MM-DD``, ``YYYY-MM``, ``YYYY`` and the legacy
    ``DD-MM-YYYY`` form (``-``, ``/`` or ``.`` separated). Discogs uses
    ``00`` for unknown parts, so ``"1994-00-00"`` becomes ``"1994"``.
    Anything else, including a year-less ``DD-MM``, is returned trimmed.
    """
    text = _clean_str(raw)
    if not text:
        return ""

    if match := _ISO_DATE_RE.match(text):
        year, month, day = match.groups()
        return _compose_date(year, int(month), int(day))
    if match := _ISO_MONTH_RE.match(text):
        year, month = match.groups()
        return _compose_date(year, int(month), None)
    if _YEAR_RE.match(text):
        return text
    if match := _LEGACY_DATE_RE.match(text):
        day, _, month, year = match.groups()
        return _compose_date(year, int(month), int(day))
    return text


def normalize_artists(artists: Any) -> list[ReleaseArtist]:
    """Artists with a non-empty name."""
    return [
        ReleaseArtist(name=name, role=_clean_str(artist.get("role")), id=_as_int(artist.get("id")))
        for artist in _dicts(artists)
        if (name := _clean_str(artist.get("name")))
    ]


def _normalize_track(track: dict[str, Any]) -> Track:
    return Track(
        position=_clean_str(track.get("position")),
        title=_clean_str(track.get("title")),
        duration=_clean_str(track.get("duration")),
        artists=[TrackArtist(name=name) for artist in _dicts(track.get("artists")) if (name := _clean_str(artist.get("name")))],
    )


def extract_tracklist(payload: dict[str, Any]) -> list[Track]:
    """Flatten the tracklist, emitting sub-tracks right after their parent.

    Entries without a title (headings, index placeholders) are dropped,
    but their sub-tracks are still kept.
    """
    results: list[Track] = []
    for track in _dicts(payload.get("tracklist")):
        normalized = _normalize_track(track)
        if normalized.title:
            results.append(normalized)
        for sub_track in _dicts(track.get("sub_tracks")):
            sub_normalized = _normalize_track(sub_track)
            if sub_normalized.title:
                results.append(sub_normalized)
    return results


def _parse_qty(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def extract_formats(formats: Any) -> tuple[list[str], str, int]:
    """Aggregate format descriptors.

    Returns:
        Tuple of (distinct format names, comma-joined descriptions and
        free-text notes, summed quantity)

    """
    entries = list(_dicts(formats))
    names = list(dict.fromkeys(name for entry in entries if (name := _clean_str(entry.get("name")))))
    descriptions = [text for entry in entries for text in _clean_strings(entry.get("descriptions"))]
    notes = [text for entry in entries if (text := _clean_str(entry.get("text")))]
    qty = sum(_parse_qty(entry.get("qty")) for entry in entries)
    return names, ", ".join([*descriptions, *notes]), int(qty) if math.isfinite(qty) else 0


def extract_labels(labels: Any) -> list[ReleaseLabel]:
    """Labels carrying a name or a catalog number."""
    results: list[ReleaseLabel] = []
    for entry in _dicts(labels):
        name, catno = _clean_str(entry.get("name")), _clean_str(entry.get("catno"))
        if name or catno:
            results.append(ReleaseLabel(name=name, catno=catno, id=_as_int(entry.get("id"))))
    return results


def extract_images(images: Any) -> list[ReleaseImage]:
    """Images that have a URI."""
    return [
        ReleaseImage(
            type=_clean_str(entry.get("type")),
            uri=uri,
            width=_as_int(entry.get("width")),
            height=_as_int(entry.get("height")),
        )
        for entry in _dicts(images)
        if (uri := _clean_str(entry.get("uri")))
    ]


def extract_ratings(payload: dict[str, Any]) -> Ratings:
    """Community rating average and count."""
    community = payload.get("community")
    rating = community.get("rating") if isinstance(community, dict) else None
    if not isinstance(rating, dict):
        return Ratings()
    return Ratings(average=_as_number(rating.get("average")), count=_as_int(rating.get("count")))


def extract_series(payload: dict[str, Any]) -> str:
    """Comma-joined series names."""
    return ", ".join(name for entry in _dicts(payload.get("series")) if (name := _clean_str(entry.get("name"))))


def empty_release_details() -> ReleaseDetails:
    """The canonical empty-but-well-typed details."""
    return ReleaseDetails()


def normalize_release_details(payload: Any) -> ReleaseDetails:
    """Map a raw release or master payload to ``ReleaseDetails``.

    Args:
        payload: Decoded JSON object from the releases or masters endpoint

    Returns:
        Normalized details; a non-dict payload yields the empty shape

    """
    if not isinstance(payload, dict):
        return empty_release_details()

    format_names, format_text, qty = extract_formats(payload.get("formats"))
    return ReleaseDetails(
        title=_clean_str(payload.get("title")),
        released=format_release_date(payload.get("released")),
        country=_clean_str(payload.get("country")),
        notes=_clean_str(payload.get("notes")),
        artists=normalize_artists(payload.get("artists")),
        extraartists=normalize_artists(payload.get("extraartists")),
        genre=_clean_strings(payload.get("genres")),
        style=_clean_strings(payload.get("styles")),
        tracklist=extract_tracklist(payload),
        format=format_names,
        text=format_text,
        qty=qty,
        labels=extract_labels(payload.get("labels")),
        ratings=extract_ratings(payload),
        images=extract_images(payload.get("images")),
        series=extract_series(payload),
    )


def _is_blank(value: Any) -> bool:
    return not value


def _qty_is_empty(value: int) -> bool:
    return value <= 0


def _ratings_are_empty(value: Ratings) -> bool:
    return value.count <= 0 and value.average <= 0


# Every ReleaseDetails field with the predicate deciding whether the
# primary source's value is missing and the fallback should be used.
MERGE_RULES: tuple[tuple[str, Callable[[Any], bool]], ...] = (
    ("title", _is_blank),
    ("released", _is_blank),
    ("country", _is_blank),
    ("notes", _is_blank),
    ("artists", _is_blank),
    ("extraartists", _is_blank),
    ("genre", _is_blank),
    ("style", _is_blank),
    ("tracklist", _is_blank),
    ("format", _is_blank),
    ("text", _is_blank),
    ("qty", _qty_is_empty),
    ("labels", _is_blank),
    ("ratings", _ratings_are_empty),
    ("images", _is_blank),
    ("series", _is_blank),
)


def merge_release_details(primary: ReleaseDetails, fallback: ReleaseDetails) -> ReleaseDetails:
    """Merge two sources field by field; a non-empty primary value wins."""
    merged = {
        field_name: getattr(fallback if is_empty(getattr(primary, field_name)) else primary, field_name)
        for field_name, is_empty in MERGE_RULES
    }
    return ReleaseDetails(**merged)


def normalize_artist_name(name: str) -> str:
    """Collapse whitespace and strip a Discogs disambiguation suffix like ``" (2)"``."""
    collapsed = _WHITESPACE_RE.sub(" ", name).strip()
    return _DISAMBIGUATION_RE.sub("", collapsed).strip()


def extract_artist_names(payload: Any) -> list[str]:
    """Distinct cleaned artist names of a payload, in order."""
    if not isinstance(payload, dict):
        return []
    names = (normalize_artist_name(_clean_str(artist.get("name"))) for artist in _dicts(payload.get("artists")))
    return list(dict.fromkeys(name for name in names if name))
