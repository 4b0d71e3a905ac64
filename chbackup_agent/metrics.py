# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Metrics Recorder - Per-route request latency and outcome.

Series are labelled by method, path template and status. Every
(method, path, 200|500) combination is created at startup so dashboards
see stable series from the first scrape.
"""

import time
from contextlib import contextmanager
from typing import Iterable, Iterator, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

NAMESPACE = "clickhouse_backup_agent"

# Sub-second requests through multi-hour uploads
DURATION_BUCKETS = (1, 10, 30, 60, 120, 240, 300, 600, 1200, 2400, 3600, 7200, 14400)

PREREGISTERED_STATUSES = ("200", "500")

LABELS = ("method", "path", "status")


class RequestTimer:
    """Outcome holder for one timed request."""

    def __init__(self) -> None:
        self.status = "500"


class RequestMetrics:
    """
    Request histogram and counter on an explicit CollectorRegistry.

    prometheus_client metrics are safe for concurrent increments.
    """

    def __init__(self, registry: CollectorRegistry | None = None, namespace: str = NAMESPACE):
        self.registry = registry or CollectorRegistry()
        self.namespace = namespace
        self.duration = Histogram(
            "request_duration_seconds",
            "Backup agent request duration in seconds",
            LABELS,
            namespace=namespace,
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )
        self.requests = Counter(
            "requests",
            "Backup agent requests",
            LABELS,
            namespace=namespace,
            registry=self.registry,
        )

    def preregister(self, routes: Iterable[Tuple[str, str]]) -> None:
        """
        Create the 200 and 500 series for every (method, path) pair.

        Other statuses (400, 404, 409) get their series lazily, on the
        first request that produces them.
        """
        for method, path in routes:
            for status in PREREGISTERED_STATUSES:
                self.duration.labels(method, path, status)
                self.requests.labels(method, path, status)

    def observe(self, method: str, path: str, status: int | str, seconds: float) -> None:
        self.duration.labels(method, path, str(status)).observe(seconds)
        self.requests.labels(method, path, str(status)).inc()

    @contextmanager
    def time_request(self, method: str, path: str) -> Iterator[RequestTimer]:
        """
        Time the enclosed block and record exactly one observation.

        The block sets ``timer.status``; it stays "500" if the block raises.
        """
        timer = RequestTimer()
        start = time.perf_counter()
        try:
            yield timer
        finally:
            self.observe(method, path, timer.status, time.perf_counter() - start)

    def sample_count(self, method: str, path: str, status: int | str) -> float | None:
        """Observation count of one series, or None if it was never created."""
        return self.registry.get_sample_value(
            f"{self.namespace}_request_duration_seconds_count",
            {"method": method, "path": path, "status": str(status)},
        )

    def render(self) -> Tuple[bytes, str]:
        """Exposition-format payload and its content type."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
