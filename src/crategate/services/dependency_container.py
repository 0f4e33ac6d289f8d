"""Service wiring for the gateway process.

Builds the gateway services from the application configuration, wires
them together and manages their asynchronous lifecycle: the HTTP session
and the shared details store are opened in ``initialize`` and released
in ``close``; the logging listener is stopped in ``shutdown``.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from crategate.services.api.discogs import DiscogsGateway
from crategate.services.api.upstream_client import DiscogsUpstreamClient
from crategate.services.gateway_state import GatewayState
from crategate.services.shared_details import JsonSharedDetailsStore, SharedAlbumDetailsService

if TYPE_CHECKING:
    import logging

    import aiohttp

    from crategate.core.logger import SafeQueueListener
    from crategate.core.models.gateway_models import AppConfig


class DependencyContainer:
    """Owns every gateway service and hands out the shared instances."""

    def __init__(
        self,
        config: AppConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        *,
        logging_listener: SafeQueueListener | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Store configuration and loggers; services are built in ``initialize``.

        Args:
            config: Validated application configuration
            console_logger: Progress and debug output
            error_logger: Upstream failures and tracebacks
            logging_listener: File log listener stopped by ``shutdown``
            http_session: Externally managed aiohttp session; when None the
                upstream client creates and owns its own

        """
        self._config = config
        self._console_logger = console_logger
        self._error_logger = error_logger
        self._listener = logging_listener
        self._http_session = http_session

        self._state: GatewayState | None = None
        self._upstream_client: DiscogsUpstreamClient | None = None
        self._shared_store: JsonSharedDetailsStore | None = None
        self._gateway: DiscogsGateway | None = None
        self._shared_details_service: SharedAlbumDetailsService | None = None

    @property
    def config(self) -> AppConfig:
        """Validated AppConfig."""
        return self._config

    @property
    def console_logger(self) -> logging.Logger:
        """Logger for progress output."""
        return self._console_logger

    @property
    def error_logger(self) -> logging.Logger:
        """Logger for failures."""
        return self._error_logger

    @property
    def state(self) -> GatewayState:
        """Limiter and caches shared by all requests."""
        if self._state is None:
            msg = "Gateway state not initialized"
            raise RuntimeError(msg)
        return self._state

    @property
    def upstream_client(self) -> DiscogsUpstreamClient:
        """HTTP client for api.discogs.com."""
        if self._upstream_client is None:
            msg = "Upstream client not initialized"
            raise RuntimeError(msg)
        return self._upstream_client

    @property
    def gateway(self) -> DiscogsGateway:
        """Lookup operations behind the HTTP routes."""
        if self._gateway is None:
            msg = "Gateway not initialized"
            raise RuntimeError(msg)
        return self._gateway

    @property
    def shared_details_service(self) -> SharedAlbumDetailsService:
        """Barcode-keyed album details reader."""
        if self._shared_details_service is None:
            msg = "Shared details service not initialized"
            raise RuntimeError(msg)
        return self._shared_details_service

    async def initialize(self) -> None:
        """Construct the services and open their resources."""
        self._console_logger.debug("Initializing gateway services...")
        config = self._config

        if self._state is None:
            self._state = GatewayState.from_config(config, self._console_logger)
        if self._upstream_client is None:
            self._upstream_client = DiscogsUpstreamClient(
                rate_limiter=self._state.rate_limiter,
                console_logger=self._console_logger,
                error_logger=self._error_logger,
                token=config.discogs.token,
                base_url=config.discogs.base_url,
                user_agent=config.discogs.user_agent,
                default_retry_after=config.retry.default_retry_after_seconds,
                timeout=config.discogs.request_timeout_seconds,
            )
            if self._http_session is not None:
                self._upstream_client.set_session(self._http_session)
        if self._shared_store is None:
            self._shared_store = JsonSharedDetailsStore(config.shared_details.store_file, self._console_logger)
        if self._gateway is None:
            self._gateway = DiscogsGateway(
                self._state,
                self._upstream_client,
                self._console_logger,
                self._error_logger,
                config,
                shared_store=self._shared_store,
            )
        if self._shared_details_service is None:
            self._shared_details_service = SharedAlbumDetailsService(
                self._gateway,
                self._shared_store,
                self._console_logger,
                self._error_logger,
            )

        await self._upstream_client.initialize()
        await self._shared_store.initialize()
        if not self._upstream_client.has_credentials:
            self._console_logger.warning("Discogs token missing: lookups will return empty results")
        self._console_logger.info("Gateway services initialized")

    async def close(self) -> None:
        """Release asynchronous resources."""
        if self._upstream_client is not None:
            try:
                await self._upstream_client.close()
            except (OSError, RuntimeError, asyncio.CancelledError) as e:
                self._console_logger.warning("Failed to close upstream client: %s", e)
        self._console_logger.debug("Gateway services closed")

    def shutdown(self) -> None:
        """Stop the logging listener."""
        if self._listener is not None:
            self._console_logger.debug("Flushing file log")
            self._listener.stop()
            self._listener = None
