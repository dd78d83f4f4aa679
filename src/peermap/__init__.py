# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""peermap - geographic snapshot of network peers and their deal activity.

Every refresh cycle lists peers from the rendezvous directory, looks up each
peer's accepted deals in the ledger and its public address in a GeoIP
database, and folds the results into geohash buckets. The most recent
complete snapshot is served as JSON for map rendering.

Architecture:
  Sources (directory, ledger, geo)
    → Aggregator (one refresh cycle, bounded per-peer fan-out)
    → SnapshotCache (single atomically swapped reference)
    → HTTP endpoint (Starlette, CORS-open JSON)

CLI entry point: ``peermap``
"""

__version__ = "0.3.0"
