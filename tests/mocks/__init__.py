"""Mock infrastructure for Crategate tests."""

from __future__ import annotations

from tests.mocks.clock import FakeClock
from tests.mocks.http_mocks import make_response, make_session
from tests.mocks.protocol_mocks import FakeUpstreamClient, InMemorySharedDetailsStore

__all__ = [
    "FakeClock",
    "FakeUpstreamClient",
    "InMemorySharedDetailsStore",
    "make_response",
    "make_session",
]
