"""Observability module for conformix.

Structured logging (structlog) and in-process, Prometheus-compatible metrics
shared by the prober, the execution engine and the result aggregator.

Example:
    >>> from conformix.observability import get_logger, get_metrics
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("conformix.run.started", identity="localhost")
    >>>
    >>> get_metrics().increment_counter("conformix_verdicts_total", {"verdict": "succeeded"})
"""

from conformix.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from conformix.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "reset_metrics",
    "unbind_context",
    "MetricsCollector",
]
