"""Remote data sources queried during a refresh cycle."""

from .base import GeoResolver, Ledger, PeerDirectory
from .directory import RendezvousDirectory, parse_info, parse_peer_id
from .geo import GeoIPResolver
from .ledger import DealLedger, parse_deal

__all__ = [
    "DealLedger",
    "GeoIPResolver",
    "GeoResolver",
    "Ledger",
    "PeerDirectory",
    "RendezvousDirectory",
    "parse_deal",
    "parse_info",
    "parse_peer_id",
]
