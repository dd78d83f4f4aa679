# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""One refresh cycle: list peers, enrich each one, bucket by geohash.

Failure policy:
- Directory failure or timeout aborts the cycle (``AggregationError``).
- Ledger failure or timeout for one peer drops that peer only.
- Geo lookup failure for one peer drops that peer only; every published
  point needs coordinates.
- If the directory listed peers but none could be enriched, the cycle
  aborts so the previous snapshot keeps serving.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import replace
from typing import TYPE_CHECKING

from ..core.exceptions import AggregationError, GeoLookupError, LedgerError, SourceError
from . import geohash
from .models import PeerAddress, PeerPoint, Snapshot

if TYPE_CHECKING:
    from ..sources.base import GeoResolver, Ledger, PeerDirectory

logger = logging.getLogger(__name__)


def unique_peers(peers: Iterable[PeerAddress]) -> list[PeerAddress]:
    """Drop repeated peer IDs, keeping the first advertised address."""
    seen: set[str] = set()
    result = []
    for peer in peers:
        if peer.peer_id in seen:
            continue
        seen.add(peer.peer_id)
        result.append(peer)
    return result


def merge_points(points: Iterable[PeerPoint], precision: int = geohash.MAX_PRECISION) -> dict[str, PeerPoint]:
    """Fold points into geohash buckets.

    Every point is moved to the centre of its cell before merging, so the
    result is the same whatever order the points arrive in.
    """
    buckets: dict[str, PeerPoint] = {}
    for point in points:
        key = geohash.encode(point.lat, point.lon, precision)
        lat, lon = geohash.decode(key)
        cell = replace(point, lat=lat, lon=lon)
        existing = buckets.get(key)
        buckets[key] = cell if existing is None else existing.merge(cell)
    return buckets


class Aggregator:
    """Builds a ``Snapshot`` from the directory, the ledger and the geo resolver.

    Sources and limits are injected; nothing is read from global state.
    """

    def __init__(
        self,
        directory: PeerDirectory,
        ledger: Ledger,
        geo: GeoResolver,
        *,
        directory_timeout: float = 60.0,
        ledger_timeout: float = 60.0,
        geo_timeout: float = 5.0,
        max_concurrency: int = 16,
        geohash_precision: int = geohash.MAX_PRECISION,
    ):
        self.directory = directory
        self.ledger = ledger
        self.geo = geo
        self.directory_timeout = directory_timeout
        self.ledger_timeout = ledger_timeout
        self.geo_timeout = geo_timeout
        self.max_concurrency = max_concurrency
        self.geohash_precision = geohash_precision

    async def run(self) -> Snapshot:
        """Run one refresh cycle.

        Returns:
            A new immutable snapshot.

        Raises:
            AggregationError: the peer list could not be obtained, or no
                listed peer could be enriched.
        """
        started = time.monotonic()
        peers = unique_peers(await self._list_peers())
        logger.info(f"Directory listed {len(peers)} peers")

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None
        results = await asyncio.gather(
            *(self._enrich(peer, semaphore) for peer in peers),
            return_exceptions=True,
        )

        resolved: list[PeerPoint] = []
        skipped = 0
        for peer, result in zip(peers, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(f"Unexpected error enriching peer {peer.peer_id}", exc_info=result)
                skipped += 1
            elif result is None:
                skipped += 1
            else:
                resolved.append(result)

        if peers and not resolved:
            raise AggregationError(f"no peers resolvable ({len(peers)} listed, all skipped)")

        snapshot = Snapshot(
            points=merge_points(resolved, self.geohash_precision),
            peers_total=len(peers),
            peers_skipped=skipped,
        )
        logger.info(
            f"Refresh built {len(snapshot)} points from {len(resolved)}/{len(peers)} peers "
            f"in {time.monotonic() - started:.2f}s"
        )
        return snapshot

    async def _list_peers(self) -> list[PeerAddress]:
        try:
            return await asyncio.wait_for(self.directory.list_peers(), timeout=self.directory_timeout)
        except TimeoutError as e:
            raise AggregationError(
                f"directory query timed out after {self.directory_timeout}s", cause=e
            ) from e
        except SourceError as e:
            raise AggregationError(f"directory query failed: {e}", cause=e) from e

    async def _enrich(self, peer: PeerAddress, semaphore: asyncio.Semaphore | None) -> PeerPoint | None:
        if semaphore is None:
            return await self._enrich_peer(peer)
        async with semaphore:
            return await self._enrich_peer(peer)

    async def _enrich_peer(self, peer: PeerAddress) -> PeerPoint | None:
        """Look up one peer; None means the peer is skipped this cycle."""
        # Unmappable peers are dropped before their ledger query.
        try:
            location = await asyncio.wait_for(self.geo.resolve(peer.address), timeout=self.geo_timeout)
        except TimeoutError:
            logger.warning(f"Geo lookup for {peer.address} ({peer.peer_id}) timed out")
            return None
        except GeoLookupError as e:
            logger.warning(f"Cannot find IP `{peer.address}` with geoip: {e}")
            return None

        try:
            agreements = await asyncio.wait_for(
                self.ledger.agreements(peer.peer_id), timeout=self.ledger_timeout
            )
        except TimeoutError:
            logger.warning(f"Ledger query for peer {peer.peer_id} timed out after {self.ledger_timeout}s")
            return None
        except LedgerError as e:
            logger.warning(f"Failed to query ledger for peer {peer.peer_id}: {e}")
            return None

        logger.debug(f"Got {len(agreements)} deals for peer {peer.peer_id}")
        return PeerPoint.from_agreements(agreements, location)
