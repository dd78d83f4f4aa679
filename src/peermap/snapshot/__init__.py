"""Snapshot aggregation, caching and periodic refresh."""

from .aggregator import Aggregator, merge_points, unique_peers
from .cache import SnapshotCache
from .models import Agreement, GeoLocation, PeerAddress, PeerPoint, Snapshot
from .scheduler import RefreshScheduler, RefreshStats

__all__ = [
    "Agreement",
    "Aggregator",
    "GeoLocation",
    "PeerAddress",
    "PeerPoint",
    "RefreshScheduler",
    "RefreshStats",
    "Snapshot",
    "SnapshotCache",
    "merge_points",
    "unique_peers",
]
