# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Holder for the active snapshot.

The cache keeps a single reference to an immutable ``Snapshot``. ``update``
replaces that reference in one assignment, so a reader sees either the
previous complete snapshot or the new one. Readers take no lock; the lock
only serializes writers.
"""

from __future__ import annotations

import logging
import threading

from .models import Snapshot

logger = logging.getLogger(__name__)


class SnapshotCache:
    """Single-writer, many-reader holder of the latest snapshot."""

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._active: Snapshot | None = None
        self._generation = 0

    def update(self, snapshot: Snapshot) -> None:
        """Install ``snapshot`` as the active snapshot."""
        if not isinstance(snapshot, Snapshot):
            raise TypeError(f"expected Snapshot, got {type(snapshot).__name__}")

        with self._write_lock:
            self._active = snapshot
            self._generation += 1
            generation = self._generation

        logger.debug(f"Snapshot generation {generation} installed ({len(snapshot)} points)")

    def get(self) -> Snapshot | None:
        """Return the active snapshot, or None before the first update."""
        return self._active

    @property
    def generation(self) -> int:
        """Number of snapshots installed so far."""
        return self._generation
