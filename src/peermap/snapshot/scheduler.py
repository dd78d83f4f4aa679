# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Periodic refresh driver.

Runs the aggregator once at startup (failure is fatal), then on a fixed
period. At most one refresh is in flight; a refresh requested while another
runs is skipped rather than queued.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from ..core.exceptions import AggregationError, StartupError
from ..core.logging import cycle_context
from .aggregator import Aggregator
from .cache import SnapshotCache

logger = logging.getLogger(__name__)


@dataclass
class RefreshStats:
    """Counters describing refresh history, read by /health and /metrics."""

    cycles: int = 0
    failures: int = 0
    skipped: int = 0
    consecutive_failures: int = 0
    last_success_at: datetime | None = None
    last_error: str | None = None
    last_duration_seconds: float = 0.0


class RefreshScheduler:
    """Feeds aggregator results into the snapshot cache."""

    def __init__(self, aggregator: Aggregator, cache: SnapshotCache, interval_seconds: float = 30.0):
        self.aggregator = aggregator
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.stats = RefreshStats()
        self._lock = asyncio.Lock()
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the initial refresh, then start the periodic loop.

        Raises:
            StartupError: the initial refresh did not produce a snapshot.
        """
        if self._running:
            return
        if self._lock.locked():
            raise StartupError("initial refresh skipped: refresh already in flight")

        try:
            ok = await self.refresh()
        except Exception as e:
            raise StartupError(f"initial refresh failed: {e}") from e
        if not ok:
            raise StartupError(f"initial refresh failed: {self.stats.last_error}")

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Refresh scheduler started, interval={self.interval_seconds}s")

    async def stop(self) -> None:
        """Stop issuing refreshes and cancel the one in flight, if any."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Refresh scheduler stopped")

    async def refresh(self) -> bool:
        """Run one refresh cycle and install its snapshot.

        Returns:
            True if a new snapshot was installed, False if the cycle failed
            or was skipped because another one is running.
        """
        if self._lock.locked():
            self.stats.skipped += 1
            logger.warning("Refresh already in flight, skipping")
            return False

        async with self._lock:
            with cycle_context():
                started = time.monotonic()
                try:
                    snapshot = await self.aggregator.run()
                except AggregationError as e:
                    self._record_failure(str(e), started)
                    logger.error(f"Failed to update peers list: {e}")
                    return False
                except Exception as e:
                    self._record_failure(f"{type(e).__name__}: {e}", started)
                    raise

                self.cache.update(snapshot)
                self._record_success(started)
                return True

    async def _loop(self) -> None:
        """Refresh every ``interval_seconds``, measured start to start."""
        next_run = time.monotonic() + self.interval_seconds
        while self._running:
            await asyncio.sleep(max(0.0, next_run - time.monotonic()))

            # Drop ticks missed while a slow cycle was running
            now = time.monotonic()
            while next_run <= now:
                next_run += self.interval_seconds

            try:
                await self.refresh()
            except Exception:  # noqa: BLE001 - refresh loop must not crash
                logger.exception("Unexpected error in refresh loop")

    def _record_success(self, started: float) -> None:
        self.stats.cycles += 1
        self.stats.consecutive_failures = 0
        self.stats.last_success_at = datetime.now(UTC)
        self.stats.last_error = None
        self.stats.last_duration_seconds = time.monotonic() - started

    def _record_failure(self, error: str, started: float) -> None:
        self.stats.cycles += 1
        self.stats.failures += 1
        self.stats.consecutive_failures += 1
        self.stats.last_error = error
        self.stats.last_duration_seconds = time.monotonic() - started
