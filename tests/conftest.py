"""Global test fixtures for the peermap test suite."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterable
from types import SimpleNamespace

import pytest

from peermap.core.exceptions import DirectoryError, GeoLookupError
from peermap.snapshot.aggregator import Aggregator
from peermap.snapshot.models import Agreement, GeoLocation, PeerAddress

# ============================================================================
# Scenario constants
# ============================================================================

IP1 = "203.0.113.10"
IP2 = "203.0.113.20"
IP3 = "198.51.100.7"

MOSCOW = GeoLocation(lat=55.7558, lon=37.6173, name="Moscow")
BERLIN = GeoLocation(lat=52.52, lon=13.405, name="Berlin")


# ============================================================================
# Fake sources
# ============================================================================


class FakeDirectory:
    """In-memory peer directory."""

    def __init__(
        self,
        peers: Iterable[PeerAddress] = (),
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.peers = list(peers)
        self.error = error
        self.delay = delay
        self.calls = 0

    async def list_peers(self) -> list[PeerAddress]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.peers)


class FakeLedger:
    """In-memory ledger with per-peer errors and delays."""

    def __init__(
        self,
        deals: dict[str, list[Agreement]] | None = None,
        errors: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
        latency: float = 0.0,
    ):
        self.deals = deals or {}
        self.errors = errors or {}
        self.delays = delays or {}
        self.latency = latency
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def agreements(self, peer_id: str) -> list[Agreement]:
        self.calls.append(peer_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(peer_id, self.latency)
            if delay:
                await asyncio.sleep(delay)
            if peer_id in self.errors:
                raise self.errors[peer_id]
            return list(self.deals.get(peer_id, []))
        finally:
            self.in_flight -= 1


class FakeGeo:
    """Address -> location table; unknown addresses fail like a geoip miss."""

    def __init__(self, locations: dict[str, GeoLocation] | None = None):
        self.locations = locations or {}
        self.calls: list[str] = []

    async def resolve(self, address: str) -> GeoLocation:
        self.calls.append(address)
        try:
            return self.locations[address]
        except KeyError:
            raise GeoLookupError("address not found", key=address) from None


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fakes() -> SimpleNamespace:
    """Fake source classes, for tests that build their own scenario."""
    return SimpleNamespace(Directory=FakeDirectory, Ledger=FakeLedger, Geo=FakeGeo)


@pytest.fixture
def peers() -> list[PeerAddress]:
    """Two peers, P1@ip1 and P2@ip2."""
    return [PeerAddress("0xp1", IP1), PeerAddress("0xp2", IP2)]


@pytest.fixture
def directory(peers) -> FakeDirectory:
    return FakeDirectory(peers)


@pytest.fixture
def ledger() -> FakeLedger:
    """P1 holds one deal (2 cpu, 0 gpu, free); P2 holds none."""
    return FakeLedger(deals={"0xp1": [Agreement(cpu_cores=2, gpu_count=0, ram_size=0, price=0)]})


@pytest.fixture
def geo() -> FakeGeo:
    """Both scenario addresses resolve to the same city."""
    return FakeGeo({IP1: MOSCOW, IP2: MOSCOW, IP3: BERLIN})


@pytest.fixture
def make_aggregator(directory, ledger, geo):
    """Factory for aggregators over the fake sources."""

    def _factory(**kwargs) -> Aggregator:
        params = {
            "directory": directory,
            "ledger": ledger,
            "geo": geo,
            "directory_timeout": 1.0,
            "ledger_timeout": 1.0,
            "geo_timeout": 1.0,
        }
        params.update(kwargs)
        return Aggregator(
            params.pop("directory"),
            params.pop("ledger"),
            params.pop("geo"),
            **params,
        )

    return _factory


@pytest.fixture
def unreachable_directory() -> FakeDirectory:
    return FakeDirectory(error=DirectoryError("connection refused"))


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all PEERMAP_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("PEERMAP_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset settings and metrics singletons between tests."""
    import peermap.core.config as config_module
    import peermap.server.metrics as metrics_module

    config_module._settings = None
    metrics_module._metrics_collector = None
    yield
    config_module._settings = None
    metrics_module._metrics_collector = None
