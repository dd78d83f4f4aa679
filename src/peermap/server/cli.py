# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Command-line interface for peermap.

Commands:
    peermap serve      Run the HTTP server with periodic refresh
    peermap snapshot   Run one refresh cycle and print the result
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from pydantic import ValidationError

from ..core.config import PeerMapSettings
from ..core.exceptions import AggregationError, ConfigException
from ..core.logging import configure_from_settings
from ..snapshot.models import Snapshot
from .bootstrap import open_aggregator


def build_settings(args: argparse.Namespace) -> PeerMapSettings:
    """Environment settings overridden by any flags given on the command line."""
    overrides: dict[str, Any] = {}
    for flag, setting in (
        ("db", "geoip_db_path"),
        ("directory", "directory_url"),
        ("ledger", "ledger_url"),
        ("log_level", "log_level"),
        ("host", "host"),
        ("port", "port"),
        ("interval", "refresh_interval_seconds"),
    ):
        value = getattr(args, flag, None)
        if value is not None:
            overrides[setting] = value
    return PeerMapSettings(**overrides)


async def collect_snapshot(settings: PeerMapSettings) -> Snapshot:
    """Run a single refresh cycle with sources wired from ``settings``."""
    async with open_aggregator(settings) as aggregator:
        return await aggregator.run()


def format_points(snapshot: Snapshot) -> list[str]:
    """One console line per bucket, largest deal count first."""
    lines = []
    for key, point in sorted(snapshot.points.items(), key=lambda item: (-item[1].count, item[0])):
        lines.append(
            f"geohash={key}    name={point.name}    count={point.count}    "
            f"cpu={point.cpu_count}    gpu={point.gpu_count}    income={point.income:.6f}"
        )
    return lines


def cmd_serve(settings: PeerMapSettings) -> int:
    """Run the HTTP server until interrupted."""
    from .app import run

    run(settings)
    return 0


def cmd_snapshot(settings: PeerMapSettings, as_json: bool) -> int:
    """Print one freshly collected snapshot."""
    try:
        snapshot = asyncio.run(collect_snapshot(settings))
    except (AggregationError, ConfigException) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps(snapshot.to_dict(), indent=2, sort_keys=True))
    else:
        for line in format_points(snapshot):
            print(line)
        print(f"{len(snapshot)} points from {snapshot.peers_resolved}/{snapshot.peers_total} peers")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Geographic snapshot of network peers and their deals",
        prog="peermap",
    )
    parser.add_argument("--db", help="Path to the geoip database (PEERMAP_GEOIP_DB_PATH)")
    parser.add_argument("--directory", help="Rendezvous directory base URL")
    parser.add_argument("--ledger", help="Deal ledger base URL")
    parser.add_argument("--log-level", dest="log_level", help="Log level (DEBUG, INFO, ...)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to")
    serve_parser.add_argument("--interval", type=float, help="Seconds between refreshes")

    snapshot_parser = subparsers.add_parser("snapshot", help="Collect and print one snapshot")
    snapshot_parser.add_argument("--json", action="store_true", help="Print the JSON body instead")

    args = parser.parse_args(argv)

    try:
        settings = build_settings(args)
    except ValidationError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_from_settings(settings)

    if args.command == "serve":
        return cmd_serve(settings)
    elif args.command == "snapshot":
        return cmd_snapshot(settings, args.json)

    return 1


if __name__ == "__main__":
    sys.exit(main())
