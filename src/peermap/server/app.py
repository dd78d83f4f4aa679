# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Starlette ASGI application serving the peer map snapshot.

Routes:
- ``GET /``: the active snapshot as JSON (``{}`` until the first refresh)
- ``GET /health``: refresh health
- ``GET /metrics``: Prometheus text metrics

The lifespan runs the initial refresh before the server accepts requests;
if it fails, startup fails and the process exits non-zero.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..core.config import PeerMapSettings, get_settings
from ..snapshot.cache import SnapshotCache
from ..snapshot.scheduler import RefreshScheduler
from .bootstrap import open_aggregator
from .metrics import METRICS_PATH, MetricsMiddleware, metrics_endpoint

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


async def snapshot_endpoint(request: Request) -> JSONResponse:
    """Serve the active snapshot."""
    logger.debug("Handling snapshot request")
    snapshot = request.app.state.cache.get()
    body = snapshot.to_dict() if snapshot is not None else {}
    return JSONResponse(body, headers=CORS_HEADERS)


async def health_endpoint(request: Request) -> JSONResponse:
    """Health check endpoint.

    ``starting`` before the first snapshot, ``degraded`` after
    ``stale_after_cycles`` consecutive failed refreshes.
    """
    settings: PeerMapSettings = request.app.state.settings
    cache: SnapshotCache = request.app.state.cache
    scheduler: RefreshScheduler | None = request.app.state.scheduler
    snapshot = cache.get()
    stats = scheduler.stats if scheduler is not None else None
    consecutive_failures = stats.consecutive_failures if stats is not None else 0

    if snapshot is None:
        status = "starting"
    elif settings.stale_after_cycles and consecutive_failures >= settings.stale_after_cycles:
        status = "degraded"
    else:
        status = "healthy"

    health_data: dict[str, Any] = {
        "status": status,
        "version": settings.server_version,
        "generation": cache.generation,
        "points": len(snapshot) if snapshot is not None else 0,
        "snapshot_age_seconds": round(snapshot.age_seconds(), 3) if snapshot is not None else None,
        "consecutive_failures": consecutive_failures,
        "last_error": stats.last_error if stats is not None else None,
    }
    status_code = 200 if status == "healthy" else 503
    return JSONResponse(health_data, status_code=status_code)


@asynccontextmanager
async def lifespan(app: Starlette):
    """Run the refresh scheduler for the lifetime of the app."""
    settings: PeerMapSettings = app.state.settings
    logger.info(f"Starting peermap on {settings.host}:{settings.port}")

    async with AsyncExitStack() as stack:
        scheduler = app.state.scheduler
        if scheduler is None:
            aggregator = await stack.enter_async_context(open_aggregator(settings))
            scheduler = RefreshScheduler(aggregator, app.state.cache, settings.refresh_interval_seconds)
            app.state.scheduler = scheduler

        await scheduler.start()
        stack.push_async_callback(scheduler.stop)
        yield

    logger.info("peermap shutting down")


def create_app(
    settings: PeerMapSettings | None = None,
    *,
    cache: SnapshotCache | None = None,
    scheduler: RefreshScheduler | None = None,
) -> Starlette:
    """Create the Starlette ASGI application.

    Args:
        settings: Settings to use (defaults to the global settings)
        cache: Snapshot cache to serve from (a new one if omitted)
        scheduler: Prebuilt scheduler; when omitted the lifespan wires one
            from ``settings``
    """
    settings = settings or get_settings()
    if cache is None:
        cache = scheduler.cache if scheduler is not None else SnapshotCache()

    routes = [
        Route("/", snapshot_endpoint, methods=["GET"]),
        Route("/health", health_endpoint, methods=["GET"]),
        Route(METRICS_PATH, metrics_endpoint, methods=["GET"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["Content-Type"],
        ),
        Middleware(MetricsMiddleware),
    ]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = cache
    app.state.scheduler = scheduler
    return app


def run(settings: PeerMapSettings | None = None) -> None:
    """Run the server using uvicorn."""
    import uvicorn

    settings = settings or get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        lifespan="on",
    )
