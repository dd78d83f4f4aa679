# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Deal ledger (DWH) client.

Queries accepted deals where the peer is the supplier. Resource amounts
come from the deal's benchmark vector; the price is an integer amount of
wei per second and is kept as ``int`` end to end.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ..core.exceptions import LedgerError
from ..snapshot.models import Agreement

logger = logging.getLogger(__name__)

DEAL_ACCEPTED = "DEAL_ACCEPTED"

# Positions in the deal benchmark vector
BENCHMARK_CPU_CORES = 2
BENCHMARK_RAM_SIZE = 3
BENCHMARK_GPU_COUNT = 7


def _benchmark(values: list[Any], index: int) -> int:
    if index >= len(values):
        return 0
    return int(values[index])


def parse_deal(item: dict[str, Any]) -> Agreement:
    """Convert one ledger deal record to an ``Agreement``.

    Raises:
        LedgerError: the record is not a deal or carries non-numeric values
    """
    deal = item.get("deal", item) if isinstance(item, dict) else None
    if not isinstance(deal, dict):
        raise LedgerError(f"malformed deal record: {item!r}")

    benchmarks = deal.get("benchmarks")
    values = (benchmarks.get("values") if isinstance(benchmarks, dict) else None) or []
    try:
        agreement = Agreement(
            cpu_cores=_benchmark(values, BENCHMARK_CPU_CORES),
            gpu_count=_benchmark(values, BENCHMARK_GPU_COUNT),
            ram_size=_benchmark(values, BENCHMARK_RAM_SIZE),
            price=int(deal.get("price") or 0),
        )
    except (TypeError, ValueError) as e:
        raise LedgerError(f"malformed deal values: {e}") from e

    if min(agreement.cpu_cores, agreement.gpu_count, agreement.ram_size, agreement.price) < 0:
        raise LedgerError(f"negative values in deal {deal.get('id', '?')}")
    return agreement


class DealLedger:
    """HTTP client for the deal ledger."""

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession,
        *,
        deal_limit: int = 100,
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.deal_limit = deal_limit
        self.timeout = timeout

    async def agreements(self, peer_id: str) -> list[Agreement]:
        """Return the peer's accepted deals as agreements.

        Raises:
            LedgerError: the ledger is unreachable, does not know the peer,
                or returned a malformed response
        """
        url = f"{self.base_url}/deals"
        body = {"status": DEAL_ACCEPTED, "supplierID": peer_id, "limit": self.deal_limit}
        try:
            async with self.session.post(
                url, json=body, timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status == 404:
                    raise LedgerError("peer not found in ledger", key=peer_id)
                if response.status != 200:
                    raise LedgerError(f"ledger returned HTTP {response.status}", key=peer_id)
                payload = await response.json()
        except aiohttp.ClientError as e:
            raise LedgerError(f"network error querying ledger: {e}", key=peer_id) from e
        except ValueError as e:
            raise LedgerError(f"ledger returned invalid JSON: {e}", key=peer_id) from e

        if not isinstance(payload, dict):
            raise LedgerError("malformed ledger response", key=peer_id)
        return [parse_deal(item) for item in payload.get("deals") or []]
