"""Tests for the HTTP application."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from starlette.testclient import TestClient

from peermap.core.config import PeerMapSettings
from peermap.core.exceptions import AggregationError, StartupError
from peermap.server.app import create_app
from peermap.snapshot import geohash
from peermap.snapshot.cache import SnapshotCache
from peermap.snapshot.models import PeerPoint, Snapshot
from peermap.snapshot.scheduler import RefreshScheduler

KEY = geohash.encode(55.7558, 37.6173)


def _snapshot() -> Snapshot:
    lat, lon = geohash.decode(KEY)
    return Snapshot(
        points={KEY: PeerPoint(lat=lat, lon=lon, count=1, cpu_count=2, name="Moscow")},
        peers_total=2,
    )


class StaticAggregator:
    def __init__(self, result):
        self.result = result
        self.runs = 0

    async def run(self) -> Snapshot:
        self.runs += 1
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


@pytest.fixture
def settings(clean_env, monkeypatch, tmp_path) -> PeerMapSettings:
    monkeypatch.chdir(tmp_path)
    return PeerMapSettings(refresh_interval_seconds=3600, stale_after_cycles=2)


class TestSnapshotEndpoint:
    def test_empty_before_first_refresh(self, settings):
        client = TestClient(create_app(settings))
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_serves_active_snapshot(self, settings):
        cache = SnapshotCache()
        cache.update(_snapshot())
        client = TestClient(create_app(settings, cache=cache))

        response = client.get("/")

        lat, lon = geohash.decode(KEY)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.json() == {
            KEY: {"lat": lat, "lon": lon, "count": 1, "income": 0.0, "cpu_count": 2, "gpu_count": 0, "ram_size": 0}
        }

    def test_follows_cache_updates(self, settings):
        cache = SnapshotCache()
        client = TestClient(create_app(settings, cache=cache))
        assert client.get("/").json() == {}

        cache.update(_snapshot())
        assert list(client.get("/").json()) == [KEY]

    def test_cors_preflight(self, settings):
        client = TestClient(create_app(settings))
        response = client.options(
            "/",
            headers={"Origin": "https://map.example.com", "Access-Control-Request-Method": "GET"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_snapshot_open_to_any_origin_when_origins_restricted(self, settings):
        restricted = settings.model_copy(update={"allowed_origins": ["https://ops.example.com"]})
        client = TestClient(create_app(restricted))
        headers = {"Origin": "https://map.example.com"}

        assert client.get("/", headers=headers).headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-origin" not in client.get("/health", headers=headers).headers

    def test_post_not_allowed(self, settings):
        client = TestClient(create_app(settings))
        assert client.post("/").status_code == 405


class TestHealthEndpoint:
    def test_starting(self, settings):
        client = TestClient(create_app(settings))
        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "starting"
        assert response.json()["snapshot_age_seconds"] is None

    def test_healthy(self, settings):
        cache = SnapshotCache()
        cache.update(_snapshot())
        client = TestClient(create_app(settings, cache=cache))

        response = client.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["generation"] == 1
        assert data["points"] == 1
        assert data["version"] == settings.server_version

    def test_degraded_after_consecutive_failures(self, settings):
        cache = SnapshotCache()
        cache.update(_snapshot())
        scheduler = RefreshScheduler(StaticAggregator(_snapshot()), cache)
        scheduler.stats.consecutive_failures = 2
        scheduler.stats.last_error = "directory query failed: refused"
        client = TestClient(create_app(settings, scheduler=scheduler))

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
        assert response.json()["last_error"] == "directory query failed: refused"


class TestLifespan:
    def test_initial_refresh_before_serving(self, settings):
        aggregator = StaticAggregator(_snapshot())
        scheduler = RefreshScheduler(aggregator, SnapshotCache(), interval_seconds=3600)

        with TestClient(create_app(settings, scheduler=scheduler)) as client:
            assert scheduler.running
            assert list(client.get("/").json()) == [KEY]
            assert client.get("/health").json()["status"] == "healthy"

        assert aggregator.runs == 1
        assert not scheduler.running

    def test_startup_fails_without_snapshot(self, settings):
        scheduler = RefreshScheduler(
            StaticAggregator(AggregationError("directory query failed: refused")),
            SnapshotCache(),
        )
        with pytest.raises(StartupError, match="refused"):
            with TestClient(create_app(settings, scheduler=scheduler)):
                pass

    def test_missing_geo_database_fails_startup(self, settings):
        from peermap.core.exceptions import ConfigException

        app = create_app(settings.model_copy(update={"geoip_db_path": "/nonexistent/geo.mmdb"}))
        with pytest.raises(ConfigException):
            with TestClient(app):
                pass


def test_run_uses_settings(settings):
    with patch("uvicorn.run") as mock_run:
        from peermap.server.app import run

        run(settings.model_copy(update={"port": 9999, "log_level": "DEBUG"}))

    _, kwargs = mock_run.call_args
    assert kwargs["port"] == 9999
    assert kwargs["log_level"] == "debug"
    assert kwargs["lifespan"] == "on"
