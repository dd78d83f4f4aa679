# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Configuration for peermap using pydantic-settings.

All environment-based configuration flows through this module. Settings are
read once by the app factory or the CLI and handed to the aggregator and
scheduler as plain values; the core never reads the environment itself.

Usage:
    from peermap.core.config import get_settings
    settings = get_settings()
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def get_package_version() -> str:
    """Get the package version from installed metadata."""
    try:
        return version("peermap")
    except PackageNotFoundError:
        return "0.0.0-dev"


class PeerMapSettings(BaseSettings):
    """Settings for the peer map service.

    Settings can be configured via environment variables with PEERMAP_ prefix
    or a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="PEERMAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # SOURCES
    # ==========================================================================

    directory_url: str = Field(
        default="https://rendezvous.livenet.sonm.com:14099",
        description="Base URL of the rendezvous directory API",
    )
    ledger_url: str = Field(
        default="https://dwh.livenet.sonm.com:15021",
        description="Base URL of the deal ledger (DWH) API",
    )
    geoip_db_path: str = Field(default="geo.mmdb", description="Path to the MaxMind City database")
    deal_limit: int = Field(default=100, description="Max deals fetched per peer per cycle")

    # ==========================================================================
    # REFRESH
    # ==========================================================================

    refresh_interval_seconds: float = Field(default=30.0, description="Seconds between refresh starts")
    directory_timeout_seconds: float = Field(default=60.0, description="Deadline for listing peers")
    ledger_timeout_seconds: float = Field(default=60.0, description="Deadline for one peer's deal query")
    geo_timeout_seconds: float = Field(default=5.0, description="Deadline for one address lookup")
    max_concurrency: int = Field(
        default=16,
        description="Max peers enriched concurrently (0 = unbounded)",
    )
    geohash_precision: int = Field(default=12, description="Geohash length used for buckets")
    stale_after_cycles: int = Field(
        default=3,
        description="Consecutive failed refreshes before /health reports degraded",
    )

    # ==========================================================================
    # HTTP
    # ==========================================================================

    host: str = Field(default="0.0.0.0", description="Host to bind to")  # nosec B104
    port: int = Field(default=8090, description="Port to bind to")
    allowed_origins: list[str] = Field(
        default=["*"],
        description="CORS origins for preflight, /health and /metrics; GET / always sends '*'",
    )
    server_version: str = Field(default_factory=get_package_version, description="Server version")

    # ==========================================================================
    # LOGGING
    # ==========================================================================

    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field(default="", description="Log format: 'json', 'text', or '' (auto-detect)")
    log_file: str | None = Field(default=None, description="Log file path (optional)")

    @field_validator("geohash_precision")
    @classmethod
    def _check_precision(cls, value: int) -> int:
        if not 1 <= value <= 12:
            raise ValueError("geohash_precision must be between 1 and 12")
        return value

    @field_validator(
        "refresh_interval_seconds",
        "directory_timeout_seconds",
        "ledger_timeout_seconds",
        "geo_timeout_seconds",
    )
    @classmethod
    def _check_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("intervals and timeouts must be positive")
        return value

    @field_validator("max_concurrency", "deal_limit", "stale_after_cycles")
    @classmethod
    def _check_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value


# Global settings instance - lazy loaded
_settings: PeerMapSettings | None = None


def get_settings() -> PeerMapSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = PeerMapSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
