"""Pytest configuration and shared fixtures for Crategate.

This module configures the test environment by ensuring the project root
and the ``src`` directory are on sys.path, allowing imports of both the
``crategate`` package and the ``tests.mocks`` helpers.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

# Ensure project root and src are on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
for _path in (PROJECT_ROOT, PROJECT_ROOT / "src"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

from crategate.core.core_config import build_app_config  # noqa: E402
from crategate.core.models.gateway_models import AppConfig  # noqa: E402
from tests.mocks.clock import FakeClock  # noqa: E402


@pytest.fixture
def mock_console_logger() -> MagicMock:
    """Mock console logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def mock_error_logger() -> MagicMock:
    """Mock error logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Controllable monotonic clock."""
    return FakeClock()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Default configuration with a token and a temporary shared store."""
    data: dict[str, Any] = {
        "discogs": {"token": "test-token"},
        "shared_details": {"store_file": str(tmp_path / "album_details.json")},
        "logging": {"logs_base_dir": str(tmp_path / "logs")},
    }
    return build_app_config(data)
