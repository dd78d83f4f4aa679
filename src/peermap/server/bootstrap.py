# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Wiring of settings into sources and the aggregator."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp

from ..core.config import PeerMapSettings
from ..snapshot.aggregator import Aggregator
from ..sources.directory import RendezvousDirectory
from ..sources.geo import GeoIPResolver
from ..sources.ledger import DealLedger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_aggregator(settings: PeerMapSettings) -> AsyncIterator[Aggregator]:
    """Open the geo database and an HTTP session, yield a wired aggregator.

    Both resources are closed on exit.

    Raises:
        ConfigException: the geo database cannot be opened
    """
    geo = GeoIPResolver.open(settings.geoip_db_path)
    try:
        headers = {"User-Agent": f"peermap/{settings.server_version}"}
        async with aiohttp.ClientSession(headers=headers) as session:
            directory = RendezvousDirectory(
                settings.directory_url,
                session,
                timeout=settings.directory_timeout_seconds,
            )
            ledger = DealLedger(
                settings.ledger_url,
                session,
                deal_limit=settings.deal_limit,
                timeout=settings.ledger_timeout_seconds,
            )
            yield Aggregator(
                directory,
                ledger,
                geo,
                directory_timeout=settings.directory_timeout_seconds,
                ledger_timeout=settings.ledger_timeout_seconds,
                geo_timeout=settings.geo_timeout_seconds,
                max_concurrency=settings.max_concurrency,
                geohash_precision=settings.geohash_precision,
            )
    finally:
        geo.close()
        logger.debug("Closed geoip database")
