"""Shared album details.

A durable record per master or release (keyed by a ``details_ref`` such
as ``m_123`` or ``r_456``) holding normalized details, so once any
session has resolved an album later sessions reuse the stored result
without calling the gateway. Sits above the gateway's in-memory caches.
"""

from __future__ import annotations

import asyncio
import copy
import json
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from crategate.core.logger import ensure_directory
from crategate.core.models.gateway_models import ResultType
from crategate.core.models.release_models import ReleaseDetails

if TYPE_CHECKING:
    import logging

    from crategate.core.models.protocols import SharedDetailsStoreProtocol
    from crategate.services.api.discogs import DiscogsGateway


def get_album_details_ref(release_id: int | None, master_id: int | None = None, result_type: str | None = None) -> str:
    """Reference of the shared record for an album.

    Masters share one record across all their pressings: ``m_<master_id>``
    whenever a master id is known, ``m_<id>`` when the id itself is a
    master, otherwise ``r_<id>``.
    """
    resource_id = release_id or master_id or 0
    if master_id:
        return f"m_{master_id}"
    if result_type == ResultType.MASTER and resource_id:
        return f"m_{resource_id}"
    return f"r_{resource_id}"


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


class JsonSharedDetailsStore:
    """Shared details store persisted to a single JSON file.

    Records live in memory and are written back after every ``put``
    through a temporary file replaced atomically. File I/O runs in a
    worker thread.
    """

    def __init__(self, store_file: str | Path, logger: logging.Logger) -> None:
        self.store_file = Path(store_file)
        self.logger = logger
        self._records: dict[str, dict[str, Any]] = {}
        self._write_lock = asyncio.Lock()
        self._loaded = False

    def __len__(self) -> int:
        return len(self._records)

    async def initialize(self) -> None:
        """Load records from disk if the file exists."""
        if self._loaded:
            return
        self._loaded = True
        if not self.store_file.exists():
            self.logger.debug("Shared details file %s not found; starting empty", self.store_file)
            return

        def blocking_load() -> dict[str, dict[str, Any]]:
            """Read records within a worker thread."""
            try:
                with self.store_file.open(encoding="utf-8") as file_handle:
                    data = json.load(file_handle)
            except (json.JSONDecodeError, OSError) as e:
                self.logger.warning("Failed to load shared details file %s: %s", self.store_file, e)
                return {}
            if not isinstance(data, dict):
                return {}
            return {str(key): value for key, value in data.items() if isinstance(value, dict)}

        self._records = await asyncio.to_thread(blocking_load)
        self.logger.info("Loaded %d shared album details from %s", len(self._records), self.store_file)

    async def get(self, details_ref: str) -> dict[str, Any] | None:
        """Return a copy of the stored record, or None."""
        if not self._loaded:
            await self.initialize()
        record = self._records.get(details_ref)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, details_ref: str, record: dict[str, Any]) -> None:
        """Merge ``record`` into the stored one and persist the store."""
        if not self._loaded:
            await self.initialize()
        async with self._write_lock:
            merged = {**self._records.get(details_ref, {}), **copy.deepcopy(record)}
            self._records[details_ref] = merged
            await self._save()

    async def _save(self) -> None:
        snapshot = copy.deepcopy(self._records)

        def blocking_save() -> None:
            """Write all records to disk within a worker thread."""
            ensure_directory(str(self.store_file.parent), self.logger)
            with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=str(self.store_file.parent), delete=False) as tmp_file:
                json.dump(snapshot, tmp_file, ensure_ascii=False, indent=2)
                temp_path = Path(tmp_file.name)
            temp_path.replace(self.store_file)

        await asyncio.to_thread(blocking_save)
        self.logger.debug("Shared details saved to %s (%d records)", self.store_file, len(snapshot))


class SharedAlbumDetailsService:
    """Read-through access to shared album details."""

    def __init__(
        self,
        gateway: DiscogsGateway,
        store: SharedDetailsStoreProtocol,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.console_logger = console_logger
        self.error_logger = error_logger

    async def get_shared_album_details(self, details_ref: str | None) -> ReleaseDetails | None:
        """Stored details for ``details_ref``, or None when absent or unreadable."""
        if not details_ref:
            return None
        try:
            record = await self.store.get(details_ref)
        except (OSError, ValueError, TypeError):
            self.error_logger.exception("Failed to read shared details %s", details_ref)
            return None

        details = record.get("details") if record else None
        if not isinstance(details, dict):
            return None
        try:
            return ReleaseDetails.model_validate(details)
        except ValidationError:
            self.error_logger.exception("Stored details %s are malformed", details_ref)
            return None

    async def ensure_shared_album_details(
        self,
        release_id: int | None,
        master_id: int | None = None,
        result_type: str | None = None,
        details_ref: str | None = None,
    ) -> tuple[str, ReleaseDetails]:
        """Return stored details, fetching and storing them on a miss.

        Returns:
            Tuple of (details_ref, details)

        """
        details_ref = details_ref or get_album_details_ref(release_id, master_id, result_type)
        if (stored := await self.get_shared_album_details(details_ref)) is not None:
            self.console_logger.debug("Shared details hit: %s", details_ref)
            return details_ref, stored

        details = await self.gateway.get_release_details(release_id, master_id, result_type)
        now = _utc_now()
        record = {
            "details": details.model_dump(),
            "id": release_id,
            "master_id": master_id,
            "result_type": result_type,
            "details_fetched_at": now,
            "updated_at": now,
        }
        try:
            await self.store.put(details_ref, record)
        except (OSError, ValueError, TypeError):
            self.error_logger.exception("Failed to write shared details %s", details_ref)
        return details_ref, details
