"""Unit tests for DependencyContainer."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from crategate.core.models.gateway_models import AppConfig
from crategate.services.api.discogs import DiscogsGateway
from crategate.services.dependency_container import DependencyContainer
from tests.mocks.http_mocks import make_session


class TestDependencyContainer:
    """Tests for service wiring and lifecycle."""

    @pytest.mark.parametrize("attribute", ["state", "upstream_client", "gateway", "shared_details_service"])
    def test_services_unavailable_before_initialize(
        self, attribute: str, app_config: AppConfig, mock_console_logger: MagicMock, mock_error_logger: MagicMock
    ) -> None:
        """Accessing services early raises."""
        container = DependencyContainer(app_config, mock_console_logger, mock_error_logger)
        with pytest.raises(RuntimeError, match="not initialized"):
            getattr(container, attribute)

    @pytest.mark.asyncio
    async def test_initialize_wires_services(self, app_config: AppConfig, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """All services share one state and one client."""
        session = make_session()
        container = DependencyContainer(app_config, mock_console_logger, mock_error_logger, http_session=session)

        await container.initialize()

        assert isinstance(container.gateway, DiscogsGateway)
        assert container.gateway.state is container.state
        assert container.gateway.client is container.upstream_client
        assert container.upstream_client.rate_limiter is container.state.rate_limiter
        assert container.upstream_client.session is session
        assert container.shared_details_service.gateway is container.gateway
        assert container.upstream_client.has_credentials
        await container.close()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, app_config: AppConfig, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """A second initialize keeps the existing services."""
        container = DependencyContainer(app_config, mock_console_logger, mock_error_logger, http_session=make_session())
        await container.initialize()
        gateway = container.gateway

        await container.initialize()

        assert container.gateway is gateway

    @pytest.mark.asyncio
    async def test_missing_token_warns(self, app_config: AppConfig, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """Starting without a token logs a warning."""
        config = app_config.model_copy(deep=True)
        config.discogs.token = ""
        container = DependencyContainer(config, mock_console_logger, mock_error_logger, http_session=make_session())

        await container.initialize()

        assert not container.upstream_client.has_credentials
        mock_console_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_leaves_injected_session_open(self, app_config: AppConfig, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """The container does not close a session it did not create."""
        session = make_session()
        container = DependencyContainer(app_config, mock_console_logger, mock_error_logger, http_session=session)
        await container.initialize()

        await container.close()

        session.close.assert_not_called()

    def test_shutdown_stops_listener(self, app_config: AppConfig, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> None:
        """The logging listener is stopped once."""
        listener = MagicMock()
        container = DependencyContainer(app_config, mock_console_logger, mock_error_logger, logging_listener=listener)

        container.shutdown()
        container.shutdown()

        listener.stop.assert_called_once()
