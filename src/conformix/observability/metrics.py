"""conformix run metrics.

Counters and latency histograms recorded while a run executes: the engine
records interactions, test cases record verdicts, the watchdog and the
capability cache record their own events. ``conformix run --output`` writes
the collector next to the report as a Prometheus text exposition file, so a
CI job can scrape or archive it alongside the JSON report.

Example:
    >>> from conformix.observability.metrics import MetricsCollector
    >>> collector = MetricsCollector()
    >>> collector.increment_counter("conformix_verdicts_total", {"verdict": "failed"})
    >>> collector.observe_histogram("conformix_interaction_duration_seconds", 0.125)
    >>> "conformix_verdicts_total" in collector.export_prometheus()
    True
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]

# Handshakes against local targets are fast; retries against stuck targets are not.
DEFAULT_LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


def _render_labels(key: LabelKey, bound: str | None = None) -> str:
    pairs = list(key)
    if bound is not None:
        pairs.append(("le", bound))
    if not pairs:
        return ""
    escaped = (
        (name, value.replace("\\", "\\\\").replace('"', '\\"')) for name, value in pairs
    )
    return "{" + ",".join(f'{name}="{value}"' for name, value in escaped) + "}"


@dataclass
class Counter:
    """Monotonically increasing count, kept per label set.

    Attributes:
        name: Metric name
        help_text: Human-readable description
    """

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        key = _label_key(labels)
        with self._lock:
            self.values[key] = self.values.get(key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.values.get(_label_key(labels), 0.0)

    def render(self) -> Iterator[str]:
        yield f"# HELP {self.name} {self.help_text}"
        yield f"# TYPE {self.name} counter"
        with self._lock:
            samples = sorted(self.values.items())
        if not samples:
            yield f"{self.name} 0"
        for key, value in samples:
            yield f"{self.name}{_render_labels(key)} {value}"

    def clear(self) -> None:
        with self._lock:
            self.values.clear()


@dataclass
class _Series:
    """Cumulative bucket counts of one label set."""

    cumulative: list[float]
    total: float = 0.0
    count: float = 0.0


@dataclass
class Histogram:
    """Distribution of observed values with cumulative buckets.

    Attributes:
        name: Metric name
        help_text: Human-readable description
        buckets: Upper bounds, ascending
    """

    name: str
    help_text: str
    buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    series: dict[LabelKey, _Series] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self.series.setdefault(key, _Series([0.0] * len(self.buckets)))
            for position, bound in enumerate(self.buckets):
                if value <= bound:
                    series.cumulative[position] += 1.0
            series.total += value
            series.count += 1.0

    def get_count(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            series = self.series.get(_label_key(labels))
            return series.count if series is not None else 0.0

    def render(self) -> Iterator[str]:
        yield f"# HELP {self.name} {self.help_text}"
        yield f"# TYPE {self.name} histogram"
        with self._lock:
            samples = [
                (key, list(series.cumulative), series.total, series.count)
                for key, series in sorted(self.series.items())
            ]
        if not samples:
            samples = [((), [0] * len(self.buckets), 0, 0)]
        for key, cumulative, total, count in samples:
            for bound, observed in zip(self.buckets, cumulative):
                yield f"{self.name}_bucket{_render_labels(key, str(bound))} {observed}"
            yield f"{self.name}_bucket{_render_labels(key, '+Inf')} {count}"
            yield f"{self.name}_sum{_render_labels(key)} {total}"
            yield f"{self.name}_count{_render_labels(key)} {count}"

    def clear(self) -> None:
        with self._lock:
            self.series.clear()


class MetricsCollector:
    """Registry of the run's counters and histograms.

    Recording a metric that is not registered is a no-op. Thread-safe:
    tier-1 workers record interaction metrics concurrently.
    """

    COUNTERS: ClassVar[dict[str, str]] = {
        "conformix_interactions_total": "Executed protocol interactions",
        "conformix_interactions_planned_total": "Planned protocol interactions",
        "conformix_verdicts_total": "Finalized test case verdicts",
        "conformix_engine_failures_total": "Test cases failed by internal errors",
        "conformix_watchdog_fired_total": "Idle watchdog recovery actions",
        "conformix_probe_interactions_total": "Capability probing interactions",
        "conformix_cache_hits_total": "Capability cache hits",
    }

    HISTOGRAMS: ClassVar[dict[str, str]] = {
        "conformix_interaction_duration_seconds": "Protocol interaction duration in seconds",
        "conformix_test_case_duration_seconds": "Test case combination duration in seconds",
    }

    def __init__(self) -> None:
        self._counters = {name: Counter(name, text) for name, text in self.COUNTERS.items()}
        self._histograms = {
            name: Histogram(name, text) for name, text in self.HISTOGRAMS.items()
        }
        self._started = time.monotonic()

    def increment_counter(
        self, name: str, labels: dict[str, str] | None = None, value: float = 1.0
    ) -> None:
        counter = self._counters.get(name)
        if counter is not None:
            counter.increment(labels, value)

    def observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        histogram = self._histograms.get(name)
        if histogram is not None:
            histogram.observe(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        counter = self._counters.get(name)
        return counter.get(labels) if counter is not None else 0.0

    def get_histogram_count(self, name: str, labels: dict[str, str] | None = None) -> float:
        histogram = self._histograms.get(name)
        return histogram.get_count(labels) if histogram is not None else 0.0

    def export_prometheus(self) -> str:
        """Render every metric in the Prometheus text exposition format."""
        lines: list[str] = []
        for counter in self._counters.values():
            lines.extend(counter.render())
        for histogram in self._histograms.values():
            lines.extend(histogram.render())
        lines.append("# HELP conformix_run_uptime_seconds Time since the collector was created")
        lines.append("# TYPE conformix_run_uptime_seconds gauge")
        lines.append(f"conformix_run_uptime_seconds {time.monotonic() - self._started:.3f}")
        return "\n".join(lines) + "\n"

    def write_prometheus(self, path: Path) -> None:
        """Write export_prometheus() to ``path``, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.export_prometheus(), encoding="utf-8")

    def reset(self) -> None:
        """Zero every metric and restart the uptime clock."""
        for counter in self._counters.values():
            counter.clear()
        for histogram in self._histograms.values():
            histogram.clear()
        self._started = time.monotonic()


_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Get the process-wide collector, creating it on first use."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def reset_metrics() -> None:
    """Zero the process-wide collector."""
    with _collector_lock:
        collector = _metrics_collector
    if collector is not None:
        collector.reset()
