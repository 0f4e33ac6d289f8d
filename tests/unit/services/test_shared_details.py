"""Unit tests for the shared album details store and service."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import allure
import pytest

from crategate.core.models.release_models import ReleaseDetails
from crategate.services.shared_details import (
    JsonSharedDetailsStore,
    SharedAlbumDetailsService,
    get_album_details_ref,
)
from tests.mocks.protocol_mocks import InMemorySharedDetailsStore


class TestAlbumDetailsRef:
    """Tests for shared record references."""

    @pytest.mark.parametrize(
        ("release_id", "master_id", "result_type", "expected"),
        [
            (367084, 13814, None, "m_13814"),
            (367084, None, "release", "r_367084"),
            (13814, None, "master", "m_13814"),
            (None, 13814, None, "m_13814"),
            (367084, None, None, "r_367084"),
        ],
    )
    def test_ref(self, release_id: int | None, master_id: int | None, result_type: str | None, expected: str) -> None:
        """Masters share one record across pressings."""
        assert get_album_details_ref(release_id, master_id, result_type) == expected


@allure.epic("Crategate")
@allure.feature("Shared Details")
@allure.sub_suite("JSON Store")
class TestJsonSharedDetailsStore:
    """Tests for the JSON file store."""

    @pytest.mark.asyncio
    async def test_put_persists_and_reloads(self, tmp_path: Path, mock_console_logger: MagicMock) -> None:
        """Records survive a new store instance."""
        store_file = tmp_path / "nested" / "album_details.json"
        store = JsonSharedDetailsStore(store_file, mock_console_logger)
        await store.initialize()

        await store.put("m_1", {"details": {"title": "Nevermind"}})
        await store.put("m_1", {"updated_at": "now"})

        assert json.loads(store_file.read_text(encoding="utf-8"))["m_1"] == {"details": {"title": "Nevermind"}, "updated_at": "now"}

        reloaded = JsonSharedDetailsStore(store_file, mock_console_logger)
        await reloaded.initialize()
        assert len(reloaded) == 1
        assert await reloaded.get("m_1") == {"details": {"title": "Nevermind"}, "updated_at": "now"}

    @pytest.mark.asyncio
    async def test_get_returns_copy(self, tmp_path: Path, mock_console_logger: MagicMock) -> None:
        """Mutating a returned record does not change the store."""
        store = JsonSharedDetailsStore(tmp_path / "s.json", mock_console_logger)
        await store.put("r_1", {"details": {"title": "A"}})

        record = await store.get("r_1")
        assert record is not None
        record["details"]["title"] = "B"

        assert await store.get("r_1") == {"details": {"title": "A"}}

    @pytest.mark.asyncio
    async def test_missing_and_corrupt_files(self, tmp_path: Path, mock_console_logger: MagicMock) -> None:
        """Unreadable files start an empty store."""
        missing = JsonSharedDetailsStore(tmp_path / "missing.json", mock_console_logger)
        await missing.initialize()
        assert await missing.get("m_1") is None

        corrupt_file = tmp_path / "corrupt.json"
        corrupt_file.write_text("{not json", encoding="utf-8")
        corrupt = JsonSharedDetailsStore(corrupt_file, mock_console_logger)
        await corrupt.initialize()
        assert len(corrupt) == 0
        mock_console_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_object_file_ignored(self, tmp_path: Path, mock_console_logger: MagicMock) -> None:
        """A JSON list is not a store."""
        store_file = tmp_path / "list.json"
        store_file.write_text("[1, 2]", encoding="utf-8")
        store = JsonSharedDetailsStore(store_file, mock_console_logger)
        await store.initialize()
        assert len(store) == 0


@allure.epic("Crategate")
@allure.feature("Shared Details")
@allure.sub_suite("Service")
class TestSharedAlbumDetailsService:
    """Tests for read-through shared details."""

    @staticmethod
    def _service(store: InMemorySharedDetailsStore, details: ReleaseDetails, console: MagicMock, error: MagicMock) -> tuple[SharedAlbumDetailsService, AsyncMock]:
        gateway = MagicMock()
        gateway.get_release_details = AsyncMock(return_value=details)
        return SharedAlbumDetailsService(gateway, store, console, error), gateway.get_release_details

    @allure.story("Read-through")
    @allure.severity(allure.severity_level.CRITICAL)
    @allure.title("Miss fetches from the gateway and stores the record")
    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """The first call fetches and the second is served from the store."""
        store = InMemorySharedDetailsStore()
        service, fetch = self._service(store, ReleaseDetails(title="Nevermind"), mock_console_logger, mock_error_logger)

        ref, details = await service.ensure_shared_album_details(367084, 13814)
        again_ref, again = await service.ensure_shared_album_details(367084, 13814)

        assert ref == again_ref == "m_13814"
        assert details.title == again.title == "Nevermind"
        fetch.assert_awaited_once_with(367084, 13814, None)
        record = store.records["m_13814"]
        assert record["details"]["title"] == "Nevermind"
        assert record["id"] == 367084
        assert record["master_id"] == 13814
        assert record["details_fetched_at"] == record["updated_at"]

    @pytest.mark.asyncio
    async def test_explicit_ref(self, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """A supplied reference is used as is."""
        store = InMemorySharedDetailsStore()
        service, _ = self._service(store, ReleaseDetails(), mock_console_logger, mock_error_logger)

        ref, _details = await service.ensure_shared_album_details(1, details_ref="custom")

        assert ref == "custom"
        assert "custom" in store.records

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", [None, {"details": "nope"}, {"details": {"qty": "many"}}])
    async def test_unusable_records(
        self, record: dict[str, object] | None, mock_console_logger: MagicMock, mock_error_logger: MagicMock
    ) -> None:
        """Missing or malformed records read as None."""
        store = InMemorySharedDetailsStore()
        if record is not None:
            store.records["m_1"] = record  # type: ignore[assignment]
        service, _ = self._service(store, ReleaseDetails(), mock_console_logger, mock_error_logger)

        assert await service.get_shared_album_details("m_1") is None
        assert await service.get_shared_album_details(None) is None

    @pytest.mark.asyncio
    async def test_store_write_failure_still_returns(self, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """A failing store write is logged and the details returned."""
        store = InMemorySharedDetailsStore()
        store.put = AsyncMock(side_effect=OSError("disk full"))  # type: ignore[method-assign]
        service, _ = self._service(store, ReleaseDetails(title="X"), mock_console_logger, mock_error_logger)

        _ref, details = await service.ensure_shared_album_details(5)

        assert details.title == "X"
        mock_error_logger.exception.assert_called_once()
