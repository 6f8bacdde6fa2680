"""Observability module for the repo.md client.

Provides structured logging and per-instance Prometheus metrics:
- JSON and console log formatters with project/revision context
- Cache, HTTP and search counters bound to a client-owned registry
"""

from repomd.observability.logging import (
    LogContext,
    configure_logging,
    get_logger,
    project_id_var,
    revision_var,
)
from repomd.observability.metrics import ClientMetrics, NoOpMetric

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "LogContext",
    "project_id_var",
    "revision_var",
    # Metrics
    "ClientMetrics",
    "NoOpMetric",
]
