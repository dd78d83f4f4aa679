"""Interfaces the aggregator expects from its data sources.

Implementations raise the matching ``SourceError`` subclass on failure.
Deadlines are enforced by the caller.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..snapshot.models import Agreement, GeoLocation, PeerAddress


@runtime_checkable
class PeerDirectory(Protocol):
    """Lists the peers currently known to the rendezvous directory."""

    async def list_peers(self) -> list[PeerAddress]: ...


@runtime_checkable
class Ledger(Protocol):
    """Returns a peer's accepted agreements."""

    async def agreements(self, peer_id: str) -> list[Agreement]: ...


@runtime_checkable
class GeoResolver(Protocol):
    """Maps a network address to a location."""

    async def resolve(self, address: str) -> GeoLocation: ...
