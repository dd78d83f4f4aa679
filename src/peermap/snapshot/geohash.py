# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Geohash quantization used to bucket peers that share a map point.

Thin validating layer over ``pygeohash``. Twelve characters resolve to a few
centimetres, so peers geolocated to the same city coordinates land in the
same cell.
"""

from __future__ import annotations

import pygeohash

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"

MAX_PRECISION = 12


def encode(lat: float, lon: float, precision: int = MAX_PRECISION) -> str:
    """Encode a coordinate pair as a geohash of ``precision`` characters.

    Raises:
        ValueError: coordinates out of range or precision outside 1..12
    """
    if not 1 <= precision <= MAX_PRECISION:
        raise ValueError(f"precision must be between 1 and {MAX_PRECISION}, got {precision}")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"longitude out of range: {lon}")
    return pygeohash.encode(lat, lon, precision=precision)


def _validated(geohash: str) -> str:
    if not geohash:
        raise ValueError("empty geohash")
    value = geohash.lower()
    for char in value:
        if char not in BASE32:
            raise ValueError(f"invalid geohash character {char!r} in {geohash!r}")
    return value


def bounds(geohash: str) -> tuple[float, float, float, float]:
    """Return ``(lat_min, lat_max, lon_min, lon_max)`` of a geohash cell."""
    lat, lon, lat_err, lon_err = pygeohash.decode_exactly(_validated(geohash))
    return lat - lat_err, lat + lat_err, lon - lon_err, lon + lon_err


def decode(geohash: str) -> tuple[float, float]:
    """Return the centre ``(lat, lon)`` of a geohash cell."""
    lat, lon, _, _ = pygeohash.decode_exactly(_validated(geohash))
    return lat, lon
