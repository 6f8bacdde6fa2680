"""Prometheus metrics for the repo.md client.

Each client instance owns its own CollectorRegistry so that several
instances in one process (multi-tenant servers, tests) never share counters.

Usage:
    metrics = ClientMetrics.create(enabled=True)
    metrics.cache_hits_total.labels(cache="posts").inc()
    print(metrics.generate_latest().decode())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        """Return self for chaining."""
        return self

    def inc(self, amount: float = 1) -> None:
        """No-op."""
        pass

    def observe(self, value: float) -> None:
        """No-op."""
        pass


@dataclass
class ClientMetrics:
    """Registry of client metrics."""

    # Cache metrics
    cache_hits_total: Any = field(default_factory=NoOpMetric)
    cache_misses_total: Any = field(default_factory=NoOpMetric)
    cache_stale_total: Any = field(default_factory=NoOpMetric)
    inflight_reuse_total: Any = field(default_factory=NoOpMetric)

    # HTTP metrics
    http_requests_total: Any = field(default_factory=NoOpMetric)
    http_request_duration_seconds: Any = field(default_factory=NoOpMetric)

    # Search metrics
    index_rebuilds_total: Any = field(default_factory=NoOpMetric)
    searches_total: Any = field(default_factory=NoOpMetric)

    registry: CollectorRegistry | None = field(default=None, repr=False)

    @classmethod
    def create(cls, enabled: bool = True) -> "ClientMetrics":
        """Create metrics bound to a fresh registry, or no-op metrics."""
        if not enabled:
            logger.debug("Client metrics are disabled")
            return cls()

        registry = CollectorRegistry()
        return cls(
            cache_hits_total=Counter(
                "repomd_cache_hits_total",
                "Cache hits",
                ["cache"],
                registry=registry,
            ),
            cache_misses_total=Counter(
                "repomd_cache_misses_total",
                "Cache misses",
                ["cache"],
                registry=registry,
            ),
            cache_stale_total=Counter(
                "repomd_cache_stale_total",
                "Entries dropped because their revision was superseded",
                ["cache"],
                registry=registry,
            ),
            inflight_reuse_total=Counter(
                "repomd_inflight_reuse_total",
                "Requests served by joining an in-flight fetch",
                registry=registry,
            ),
            http_requests_total=Counter(
                "repomd_http_requests_total",
                "HTTP requests sent",
                ["method", "status"],
                registry=registry,
            ),
            http_request_duration_seconds=Histogram(
                "repomd_http_request_duration_seconds",
                "HTTP request latency in seconds",
                ["method"],
                buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
                registry=registry,
            ),
            index_rebuilds_total=Counter(
                "repomd_index_rebuilds_total",
                "Lexical index rebuilds",
                ["reason"],
                registry=registry,
            ),
            searches_total=Counter(
                "repomd_searches_total",
                "Searches performed",
                ["mode"],
                registry=registry,
            ),
            registry=registry,
        )

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self.registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self.registry)
