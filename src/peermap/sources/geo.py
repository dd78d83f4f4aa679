# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""GeoIP resolver backed by a MaxMind City database."""

from __future__ import annotations

import asyncio
import ipaddress
import logging

import geoip2.database
import geoip2.errors

from ..core.exceptions import ConfigException, GeoLookupError
from ..snapshot.models import GeoLocation

logger = logging.getLogger(__name__)


class GeoIPResolver:
    """Resolves IP addresses with ``geoip2``.

    Lookups are memory-mapped file reads, so they run in the default
    executor to keep the event loop responsive.
    """

    def __init__(self, reader: geoip2.database.Reader):
        self.reader = reader

    @classmethod
    def open(cls, path: str) -> GeoIPResolver:
        """Open the database at ``path``.

        Raises:
            ConfigException: the file is missing or not a MaxMind database
        """
        try:
            reader = geoip2.database.Reader(path)
        except (OSError, RuntimeError, ValueError) as e:
            raise ConfigException(f"cannot open geoip db {path}: {e}", setting="geoip_db_path") from e
        logger.info(f"Opened geoip database {path}")
        return cls(reader)

    async def resolve(self, address: str) -> GeoLocation:
        """Resolve ``address`` to coordinates and a display name.

        Raises:
            GeoLookupError: invalid address, not in the database, or no
                coordinates recorded for it
        """
        try:
            ip = ipaddress.ip_address(address.strip())
        except ValueError as e:
            raise GeoLookupError(f"invalid IP address: {address!r}", key=address) from e

        return await asyncio.to_thread(self.lookup, str(ip))

    def lookup(self, address: str) -> GeoLocation:
        """Blocking lookup of an already validated address."""
        try:
            record = self.reader.city(address)
        except geoip2.errors.AddressNotFoundError as e:
            raise GeoLookupError(f"address not found: {e}", key=address) from e

        lat = record.location.latitude
        lon = record.location.longitude
        if lat is None or lon is None:
            raise GeoLookupError("no coordinates recorded", key=address)

        name = record.city.names.get("en") or record.country.names.get("en") or ""
        return GeoLocation(lat=lat, lon=lon, name=name)

    def close(self) -> None:
        self.reader.close()
