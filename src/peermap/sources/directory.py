# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Rendezvous directory client.

The directory's ``info`` call returns its full routing state: one entry per
peer, keyed by ``<scheme>//<peer id>``, each listing the servers that peer
advertises. Every server contributes one (peer, public address) pair.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ..core.exceptions import DirectoryError
from ..snapshot.models import PeerAddress

logger = logging.getLogger(__name__)


def parse_peer_id(key: str) -> str | None:
    """Extract the peer ID from a directory state key.

    ``"eth//0xABC"`` -> ``"0xabc"``. Keys without a scheme are taken whole.
    """
    _, sep, tail = key.partition("//")
    peer_id = (tail if sep else key).strip().lower()
    return peer_id or None


def parse_info(payload: Any) -> list[PeerAddress]:
    """Flatten a directory ``info`` response into peer addresses.

    Raises:
        DirectoryError: the payload has no ``state`` mapping
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("state"), dict):
        raise DirectoryError("malformed directory response: missing state")

    peers = []
    for key, state in payload["state"].items():
        peer_id = parse_peer_id(key)
        if peer_id is None:
            logger.debug(f"Ignoring directory entry with empty peer id: {key!r}")
            continue

        if state is None:
            continue
        if not isinstance(state, dict):
            raise DirectoryError(f"malformed directory response: state of {key!r} is not an object", key=key)

        for server in state.get("servers") or []:
            try:
                address = server["publicAddr"]["addr"]["addr"]
            except (KeyError, TypeError):
                logger.debug(f"Ignoring server without public address for peer {peer_id}")
                continue
            if address:
                peers.append(PeerAddress(peer_id=peer_id, address=str(address)))

    return peers


class RendezvousDirectory:
    """HTTP client for the rendezvous directory."""

    def __init__(self, base_url: str, session: aiohttp.ClientSession, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout

    async def list_peers(self) -> list[PeerAddress]:
        """Return every advertised (peer, address) pair.

        Raises:
            DirectoryError: the directory is unreachable or answered badly
        """
        url = f"{self.base_url}/info"
        try:
            async with self.session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status != 200:
                    raise DirectoryError(f"directory returned HTTP {response.status}", key=url)
                payload = await response.json()
        except aiohttp.ClientError as e:
            raise DirectoryError(f"network error querying directory: {e}", key=url) from e
        except ValueError as e:
            raise DirectoryError(f"directory returned invalid JSON: {e}", key=url) from e

        peers = parse_info(payload)
        logger.debug(f"Directory state holds {len(peers)} advertised addresses")
        return peers
