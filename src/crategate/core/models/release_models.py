"""Canonical release detail and search result models.

Every list field defaults to an empty list and every scalar to an empty
string or zero, so callers can render a ``ReleaseDetails`` without
checking which upstream fields were present.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ReleaseArtist(BaseModel):
    """Credited artist (main artist or extra credit)."""

    name: str = ""
    role: str = ""
    id: int = 0


class TrackArtist(BaseModel):
    """Per-track artist credit."""

    name: str = ""


class Track(BaseModel):
    """Flattened tracklist entry."""

    position: str = ""
    title: str = ""
    duration: str = ""
    artists: list[TrackArtist] = Field(default_factory=list)


class ReleaseLabel(BaseModel):
    """Label with catalog number."""

    name: str = ""
    catno: str = ""
    id: int = 0


class ReleaseImage(BaseModel):
    """Image reference."""

    type: str = ""
    uri: str = ""
    width: int = 0
    height: int = 0


class Ratings(BaseModel):
    """Community rating summary."""

    average: float = 0.0
    count: int = 0


class ReleaseDetails(BaseModel):
    """Canonical normalized release details."""

    title: str = ""
    released: str = ""
    country: str = ""
    notes: str = ""
    artists: list[ReleaseArtist] = Field(default_factory=list)
    extraartists: list[ReleaseArtist] = Field(default_factory=list)
    genre: list[str] = Field(default_factory=list)
    style: list[str] = Field(default_factory=list)
    tracklist: list[Track] = Field(default_factory=list)
    format: list[str] = Field(default_factory=list)
    text: str = ""
    qty: int = 0
    labels: list[ReleaseLabel] = Field(default_factory=list)
    ratings: Ratings = Field(default_factory=Ratings)
    images: list[ReleaseImage] = Field(default_factory=list)
    series: str = ""


class SearchPage(BaseModel):
    """One page of ranked, deduplicated search results."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 0
    pages: int = 0
