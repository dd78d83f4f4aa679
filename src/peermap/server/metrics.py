# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Prometheus metrics for the peermap server.

Provides /metrics endpoint with Prometheus text format.
Implements simple text format without prometheus_client dependency.

Metrics exported:
- peermap_http_requests_total: Request count by endpoint/status
- peermap_http_request_duration_seconds: Request latency histogram
- peermap_refresh_*: Refresh cycle counters and last duration
- peermap_snapshot_*: Size and generation of the served snapshot
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from ..snapshot.cache import SnapshotCache
from ..snapshot.scheduler import RefreshStats

logger = logging.getLogger(__name__)

# Histogram bucket boundaries (in seconds)
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

METRICS_PATH = "/metrics"


@dataclass
class HistogramData:
    """Histogram metric data."""

    buckets: dict[float, int] = field(default_factory=lambda: defaultdict(int))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float) -> None:
        """Record an observation."""
        self.sum += value
        self.count += 1
        for bucket in LATENCY_BUCKETS:
            if value <= bucket:
                self.buckets[bucket] += 1
                break


class MetricsCollector:
    """Thread-safe request metrics collector."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # {(method, path, status): count}
        self._request_counts: dict[tuple[str, str, int], int] = defaultdict(int)
        # {(method, path): HistogramData}
        self._latency_histograms: dict[tuple[str, str], HistogramData] = defaultdict(HistogramData)

    def record_request(self, method: str, path: str, status_code: int, duration_seconds: float) -> None:
        """Record a completed request."""
        with self._lock:
            self._request_counts[(method, path, status_code)] += 1
            self._latency_histograms[(method, path)].observe(duration_seconds)

    def request_count(self, method: str, path: str, status_code: int) -> int:
        with self._lock:
            return self._request_counts.get((method, path, status_code), 0)

    def format_prometheus(
        self,
        cache: SnapshotCache | None = None,
        stats: RefreshStats | None = None,
    ) -> str:
        """Format all metrics in Prometheus text format."""
        lines: list[str] = []

        with self._lock:
            lines.append("# HELP peermap_http_requests_total Total HTTP requests")
            lines.append("# TYPE peermap_http_requests_total counter")
            for (method, path, status), count in sorted(self._request_counts.items()):
                labels = f'method="{method}",path="{path}",status="{status}"'
                lines.append(f"peermap_http_requests_total{{{labels}}} {count}")

            lines.append("")
            lines.append("# HELP peermap_http_request_duration_seconds HTTP request latency")
            lines.append("# TYPE peermap_http_request_duration_seconds histogram")
            for (method, path), histogram in sorted(self._latency_histograms.items()):
                base_labels = f'method="{method}",path="{path}"'
                cumulative = 0
                for bucket in LATENCY_BUCKETS:
                    cumulative += histogram.buckets.get(bucket, 0)
                    lines.append(
                        f'peermap_http_request_duration_seconds_bucket{{{base_labels},le="{bucket}"}} {cumulative}'
                    )
                lines.append(
                    f'peermap_http_request_duration_seconds_bucket{{{base_labels},le="+Inf"}} {histogram.count}'
                )
                lines.append(f"peermap_http_request_duration_seconds_sum{{{base_labels}}} {histogram.sum:.6f}")
                lines.append(f"peermap_http_request_duration_seconds_count{{{base_labels}}} {histogram.count}")

        if stats is not None:
            lines.extend(_refresh_metrics(stats))
        if cache is not None:
            lines.extend(_snapshot_metrics(cache))

        lines.append("")
        return "\n".join(lines)


def _refresh_metrics(stats: RefreshStats) -> list[str]:
    return [
        "",
        "# HELP peermap_refresh_cycles_total Refresh cycles run",
        "# TYPE peermap_refresh_cycles_total counter",
        f"peermap_refresh_cycles_total {stats.cycles}",
        "",
        "# HELP peermap_refresh_failures_total Refresh cycles that produced no snapshot",
        "# TYPE peermap_refresh_failures_total counter",
        f"peermap_refresh_failures_total {stats.failures}",
        "",
        "# HELP peermap_refresh_skipped_total Refreshes skipped because one was in flight",
        "# TYPE peermap_refresh_skipped_total counter",
        f"peermap_refresh_skipped_total {stats.skipped}",
        "",
        "# HELP peermap_refresh_duration_seconds Duration of the last refresh cycle",
        "# TYPE peermap_refresh_duration_seconds gauge",
        f"peermap_refresh_duration_seconds {stats.last_duration_seconds:.6f}",
    ]


def _snapshot_metrics(cache: SnapshotCache) -> list[str]:
    snapshot = cache.get()
    points = len(snapshot) if snapshot is not None else 0
    peers = snapshot.peers_resolved if snapshot is not None else 0
    return [
        "",
        "# HELP peermap_snapshot_generation Snapshots installed since start",
        "# TYPE peermap_snapshot_generation counter",
        f"peermap_snapshot_generation {cache.generation}",
        "",
        "# HELP peermap_snapshot_points Buckets in the served snapshot",
        "# TYPE peermap_snapshot_points gauge",
        f"peermap_snapshot_points {points}",
        "",
        "# HELP peermap_snapshot_peers Peers contributing to the served snapshot",
        "# TYPE peermap_snapshot_peers gauge",
        f"peermap_snapshot_peers {peers}",
    ]


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics_collector() -> None:
    """Drop the global collector. Useful for testing."""
    global _metrics_collector
    _metrics_collector = None


class MetricsMiddleware(BaseHTTPMiddleware):
    """Starlette middleware recording request count and latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == METRICS_PATH:
            return await call_next(request)

        collector = get_metrics_collector()
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            collector.record_request(request.method, request.url.path, 500, time.perf_counter() - start_time)
            raise

        collector.record_request(
            request.method, request.url.path, response.status_code, time.perf_counter() - start_time
        )
        return response


async def metrics_endpoint(request: Request) -> PlainTextResponse:
    """Prometheus metrics endpoint."""
    state = request.app.state
    scheduler = getattr(state, "scheduler", None)
    metrics_text = get_metrics_collector().format_prometheus(
        cache=getattr(state, "cache", None),
        stats=scheduler.stats if scheduler is not None else None,
    )
    return PlainTextResponse(
        content=metrics_text,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
