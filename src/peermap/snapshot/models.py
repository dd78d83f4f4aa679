# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Data models for peer snapshots.

All models are frozen: a snapshot, once built, is shared by concurrent
readers and is never mutated. A refresh always builds new objects.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from fractions import Fraction
from types import MappingProxyType
from typing import Any

# Deal prices are quoted in the smallest denomination per second.
WEI_PER_ETHER = 10**18
SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class PeerAddress:
    """A peer advertised by the directory, with one public network address."""

    peer_id: str
    address: str


@dataclass(frozen=True)
class GeoLocation:
    """Resolved location of a network address."""

    lat: float
    lon: float
    name: str = ""


@dataclass(frozen=True)
class Agreement:
    """One accepted deal in which the peer is the supplier."""

    cpu_cores: int = 0
    gpu_count: int = 0
    ram_size: int = 0
    price: int = 0  # wei per second


@dataclass(frozen=True)
class PeerPoint:
    """Economic activity at one map point.

    Produced per peer from its agreements, then combined per geohash bucket.
    ``price_total`` stays an exact integer through every merge; ``income`` is
    derived from it only when read.
    """

    lat: float
    lon: float
    count: int = 0
    cpu_count: int = 0
    gpu_count: int = 0
    ram_size: int = 0
    price_total: int = 0
    name: str = ""

    @classmethod
    def from_agreements(cls, agreements: Iterable[Agreement], location: GeoLocation) -> PeerPoint:
        """Sum a peer's agreements into a point at ``location``."""
        count = cpu = gpu = ram = price = 0
        for agreement in agreements:
            count += 1
            cpu += agreement.cpu_cores
            gpu += agreement.gpu_count
            ram += agreement.ram_size
            price += agreement.price
        return cls(
            lat=location.lat,
            lon=location.lon,
            count=count,
            cpu_count=cpu,
            gpu_count=gpu,
            ram_size=ram,
            price_total=price,
            name=location.name,
        )

    def merge(self, other: PeerPoint) -> PeerPoint:
        """Combine two points of the same bucket.

        Counters are summed; coordinates are kept from ``self``. Names pick
        the lexically smallest non-empty one so the result does not depend
        on merge order.
        """
        names = [n for n in (self.name, other.name) if n]
        return replace(
            self,
            count=self.count + other.count,
            cpu_count=self.cpu_count + other.cpu_count,
            gpu_count=self.gpu_count + other.gpu_count,
            ram_size=self.ram_size + other.ram_size,
            price_total=self.price_total + other.price_total,
            name=min(names) if names else "",
        )

    @property
    def income(self) -> float:
        """Income in whole currency units per hour."""
        return float(Fraction(self.price_total * SECONDS_PER_HOUR, WEI_PER_ETHER))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the published JSON shape."""
        return {
            "lat": self.lat,
            "lon": self.lon,
            "count": self.count,
            "income": self.income,
            "cpu_count": self.cpu_count,
            "gpu_count": self.gpu_count,
            "ram_size": self.ram_size,
        }


@dataclass(frozen=True)
class Snapshot:
    """One complete refresh result: bucket key -> PeerPoint.

    ``points`` is wrapped in a read-only mapping proxy on construction, so
    neither the snapshot nor its contents can be changed after handoff.
    """

    points: Mapping[str, PeerPoint] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    peers_total: int = 0
    peers_skipped: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", MappingProxyType(dict(self.points)))

    def __len__(self) -> int:
        return len(self.points)

    @property
    def peers_resolved(self) -> int:
        return self.peers_total - self.peers_skipped

    def age_seconds(self, now: datetime | None = None) -> float:
        """Seconds elapsed since the snapshot was built."""
        now = now or datetime.now(UTC)
        return max(0.0, (now - self.created_at).total_seconds())

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Serialize to the published JSON body."""
        return {key: point.to_dict() for key, point in self.points.items()}
