"""Inbound HTTP endpoints.

Every lookup endpoint answers 200 with the canonical (possibly empty)
shape; missing or unparsable parameters are treated as absent.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from aiohttp import web

from crategate.services.dependency_container import DependencyContainer

CONTAINER_KEY = web.AppKey("container", DependencyContainer)
SWEEP_TASK_NAME = "crategate-cache-sweep"


def _int_param(request: web.Request, name: str) -> int | None:
    raw = request.query.get(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _container(request: web.Request) -> DependencyContainer:
    return request.app[CONTAINER_KEY]


async def handle_release(request: web.Request) -> web.Response:
    """``GET /api/discogs-release?id=&master_id=&result_type=``."""
    details = await _container(request).gateway.get_release_details(
        _int_param(request, "id"),
        _int_param(request, "master_id"),
        request.query.get("result_type"),
    )
    return web.json_response(details.model_dump())


async def handle_artists(request: web.Request) -> web.Response:
    """``GET /api/discogs-artists?id=&master_id=``."""
    artists = await _container(request).gateway.get_artist_names(_int_param(request, "id"), _int_param(request, "master_id"))
    return web.json_response({"artists": artists})


async def handle_barcode(request: web.Request) -> web.Response:
    """``GET /api/discogs-barcode?barcode=``."""
    results = await _container(request).gateway.lookup_barcode(request.query.get("barcode"))
    return web.json_response({"results": results, "total": len(results)})


async def handle_search(request: web.Request) -> web.Response:
    """``GET /api/search?q=&page=&per_page=``."""
    page = await _container(request).gateway.search(
        request.query.get("q"),
        _int_param(request, "page"),
        _int_param(request, "per_page"),
    )
    return web.json_response(page.model_dump())


async def handle_album_details(request: web.Request) -> web.Response:
    """``GET /api/album-details?id=&master_id=&result_type=&details_ref=``."""
    details_ref, details = await _container(request).shared_details_service.ensure_shared_album_details(
        _int_param(request, "id"),
        _int_param(request, "master_id"),
        request.query.get("result_type"),
        request.query.get("details_ref") or None,
    )
    return web.json_response({"details_ref": details_ref, "details": details.model_dump()})


async def handle_health(request: web.Request) -> web.Response:
    """``GET /health``: limiter, cache and upstream statistics."""
    container = _container(request)
    payload: dict[str, Any] = {"status": "ok", **container.state.get_stats(), "upstream": container.upstream_client.get_stats()}
    return web.json_response(payload)


async def sweep_expired_entries(
    container: DependencyContainer,
    interval: float,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> None:
    """Drop expired cache entries every ``interval`` seconds until cancelled."""
    while True:
        await sleep(interval)
        if removed := container.state.cleanup_expired():
            container.console_logger.debug("Cache sweep removed %d expired entries", removed)


async def _container_lifecycle(app: web.Application) -> AsyncIterator[None]:
    container = app[CONTAINER_KEY]
    await container.initialize()
    sweeper = asyncio.create_task(
        sweep_expired_entries(container, container.config.cache.sweep_interval_seconds),
        name=SWEEP_TASK_NAME,
    )
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await container.close()


def create_app(container: DependencyContainer) -> web.Application:
    """Build the aiohttp application around an uninitialized container."""
    app = web.Application()
    app[CONTAINER_KEY] = container
    app.router.add_get("/api/discogs-release", handle_release)
    app.router.add_get("/api/discogs-artists", handle_artists)
    app.router.add_get("/api/discogs-barcode", handle_barcode)
    app.router.add_get("/api/search", handle_search)
    app.router.add_get("/api/album-details", handle_album_details)
    app.router.add_get("/health", handle_health)
    app.cleanup_ctx.append(_container_lifecycle)
    return app
