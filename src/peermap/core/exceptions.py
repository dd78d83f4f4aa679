# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Exception hierarchy for peermap.

Per-peer failures (``SourceError`` subclasses) are recoverable and only drop
the affected peer. ``AggregationError`` aborts one refresh cycle.
``StartupError`` and ``ConfigException`` are fatal for the process.
"""

from __future__ import annotations

from typing import Any


class PeerMapException(Exception):  # noqa: N818
    """Base exception for all peermap errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigException(PeerMapException):
    """Exception for configuration errors.

    Raised when:
    - A required setting is missing or invalid
    - The GeoIP database cannot be opened
    """

    def __init__(self, message: str, setting: str | None = None):
        details = {}
        if setting:
            details["setting"] = setting
        super().__init__(message, details)
        self.setting = setting


class SourceError(PeerMapException):
    """A call to one of the remote data sources failed."""

    source = "source"

    def __init__(self, message: str, key: Any = None):
        details = {"source": self.source}
        if key is not None:
            details["key"] = str(key)
        super().__init__(message, details)
        self.key = key


class DirectoryError(SourceError):
    """Peer directory unreachable, timed out or returned garbage."""

    source = "directory"


class LedgerError(SourceError):
    """Deal ledger query failed for a peer."""

    source = "ledger"


class GeoLookupError(SourceError):
    """Address could not be resolved to a location."""

    source = "geo"


class AggregationError(PeerMapException):
    """A refresh cycle aborted without producing a snapshot."""

    def __init__(self, message: str, cause: BaseException | None = None):
        details = {}
        if cause is not None:
            details["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, details)
        self.cause = cause


class StartupError(PeerMapException):
    """The initial refresh failed, so there is nothing to serve."""
