"""Service Protocol Definitions.

Protocols describe the collaborators the gateway talks to, so handlers
can be tested against in-memory fakes and alternative stores can be
plugged in without touching the gateway.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


# noinspection PyMissingOrEmptyDocstring
@runtime_checkable
class SharedDetailsStoreProtocol(Protocol):
    """Durable store for normalized album details shared across sessions."""

    async def get(self, details_ref: str) -> dict[str, Any] | None:
        """Return the stored record for ``details_ref`` or None."""
        ...

    async def put(self, details_ref: str, record: dict[str, Any]) -> None:
        """Create or merge the record stored under ``details_ref``."""
        ...


# noinspection PyMissingOrEmptyDocstring
@runtime_checkable
class UpstreamClientProtocol(Protocol):
    """Client able to fetch one upstream catalog resource."""

    @property
    def has_credentials(self) -> bool:
        """Whether an API token is configured."""
        ...

    async def fetch_resource(self, path_or_url: str, params: dict[str, str] | None = None) -> dict[str, Any] | None:
        """Fetch a resource, returning the JSON object or None on any failure."""
        ...
