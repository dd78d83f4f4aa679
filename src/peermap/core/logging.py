# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Structured logging configuration for peermap.

Provides:
- JSON formatter for production (machine-parseable)
- Standard formatter for development (human-readable)
- Cycle IDs so every record of one refresh cycle can be correlated
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Context variable for the refresh cycle ID (task-local)
_cycle_id: ContextVar[str | None] = ContextVar("cycle_id", default=None)


def get_cycle_id() -> str | None:
    """Get the current refresh cycle ID, if any."""
    return _cycle_id.get()


def generate_cycle_id() -> str:
    """Generate a new short cycle ID."""
    return uuid.uuid4().hex[:12]


@contextmanager
def cycle_context(cycle_id: str | None = None) -> Generator[str, None, None]:
    """Scope log records to one refresh cycle.

    Tasks created inside the block inherit the ID, so per-peer lookups are
    tagged too.

    Example:
        with cycle_context() as cid:
            logger.info("Refreshing")  # carries cid
    """
    cid = cycle_id or generate_cycle_id()
    token = _cycle_id.set(cid)
    try:
        yield cid
    finally:
        _cycle_id.reset(token)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production environments."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cycle_id = get_cycle_id()
        if cycle_id:
            log_data["cycle_id"] = cycle_id

        # Add source location for warnings and errors
        if record.levelno >= logging.WARNING:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Standard log formatter for development.

    Human-readable format with colors for terminal output.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    CYCLE_COLOR = "\033[90m"  # Gray

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        # Make a copy to avoid mutating the original record
        record = logging.makeLogRecord(record.__dict__)

        cycle_id = get_cycle_id()
        if cycle_id:
            if self.use_colors:
                prefix = f"{self.CYCLE_COLOR}[{cycle_id[:8]}]{self.RESET} "
            else:
                prefix = f"[{cycle_id[:8]}] "
            record.msg = prefix + str(record.msg)

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def configure_logging(
    level: str | int = "INFO",
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (auto-detect from TTY if None)
        log_file: Optional file to also write JSON records to
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_format is None:
        # Auto-detect: use JSON if not in a terminal
        json_format = not sys.stderr.isatty()

    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        # Always use JSON for file output
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Set levels for noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def configure_from_settings(settings: Any) -> None:
    """Configure logging from a ``PeerMapSettings`` instance."""
    fmt = settings.log_format.lower()
    json_format: bool | None
    if fmt == "json":
        json_format = True
    elif fmt == "text":
        json_format = False
    else:
        json_format = None

    configure_logging(settings.log_level, json_format=json_format, log_file=settings.log_file)
