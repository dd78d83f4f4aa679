"""Tests for source wiring."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from peermap.core.config import PeerMapSettings
from peermap.core.exceptions import ConfigException
from peermap.server.bootstrap import open_aggregator
from peermap.sources.directory import RendezvousDirectory
from peermap.sources.ledger import DealLedger


@pytest.fixture
def settings(clean_env, monkeypatch, tmp_path) -> PeerMapSettings:
    monkeypatch.chdir(tmp_path)
    return PeerMapSettings(
        directory_url="http://directory.test",
        ledger_url="http://ledger.test/",
        deal_limit=25,
        ledger_timeout_seconds=7,
        max_concurrency=4,
        geohash_precision=6,
    )


async def test_wires_settings_into_aggregator(settings):
    geo = MagicMock()
    with patch("peermap.server.bootstrap.GeoIPResolver.open", return_value=geo) as mock_open:
        async with open_aggregator(settings) as aggregator:
            assert isinstance(aggregator.directory, RendezvousDirectory)
            assert aggregator.directory.base_url == "http://directory.test"
            assert isinstance(aggregator.ledger, DealLedger)
            assert aggregator.ledger.base_url == "http://ledger.test"
            assert aggregator.ledger.deal_limit == 25
            assert aggregator.ledger_timeout == 7
            assert aggregator.max_concurrency == 4
            assert aggregator.geohash_precision == 6
            assert aggregator.geo is geo
            assert aggregator.directory.session is aggregator.ledger.session

    mock_open.assert_called_once_with("geo.mmdb")
    geo.close.assert_called_once()


async def test_missing_database(settings, tmp_path):
    settings = settings.model_copy(update={"geoip_db_path": str(tmp_path / "missing.mmdb")})
    with pytest.raises(ConfigException):
        async with open_aggregator(settings):
            pass
