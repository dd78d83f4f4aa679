"""peermap core - configuration, logging and the exception hierarchy."""

from .config import PeerMapSettings, clear_settings_cache, get_settings
from .exceptions import (
    AggregationError,
    ConfigException,
    DirectoryError,
    GeoLookupError,
    LedgerError,
    PeerMapException,
    SourceError,
    StartupError,
)
from .logging import configure_from_settings, configure_logging, cycle_context

__all__ = [
    "AggregationError",
    "ConfigException",
    "DirectoryError",
    "GeoLookupError",
    "LedgerError",
    "PeerMapException",
    "PeerMapSettings",
    "SourceError",
    "StartupError",
    "clear_settings_cache",
    "configure_from_settings",
    "configure_logging",
    "cycle_context",
    "get_settings",
]
