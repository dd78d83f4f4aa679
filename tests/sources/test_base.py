"""Source implementations satisfy the aggregator's interfaces."""

from __future__ import annotations

from unittest.mock import MagicMock

from peermap.sources import (
    DealLedger,
    GeoIPResolver,
    GeoResolver,
    Ledger,
    PeerDirectory,
    RendezvousDirectory,
)


def test_http_clients_satisfy_protocols():
    session = MagicMock()
    assert isinstance(RendezvousDirectory("http://directory.test", session), PeerDirectory)
    assert isinstance(DealLedger("http://ledger.test", session), Ledger)
    assert isinstance(GeoIPResolver(MagicMock()), GeoResolver)


def test_fakes_satisfy_protocols(fakes):
    assert isinstance(fakes.Directory(), PeerDirectory)
    assert isinstance(fakes.Ledger(), Ledger)
    assert isinstance(fakes.Geo(), GeoResolver)


def test_unrelated_object_rejected():
    assert not isinstance(object(), PeerDirectory)
