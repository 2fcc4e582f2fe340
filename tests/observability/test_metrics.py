"""Tests for conformix observability metrics module."""

import threading
from pathlib import Path

from conformix.observability.metrics import (
    Counter,
    Histogram,
    MetricsCollector,
    get_metrics,
    reset_metrics,
)


class TestCounter:
    """Tests for Counter metric."""

    def test_counter_increment_default(self) -> None:
        """Test counter increments by 1 by default."""
        counter = Counter(name="test_counter", help_text="Test counter")
        counter.increment()
        assert counter.get() == 1.0

    def test_counter_increment_with_labels(self) -> None:
        """Test counter values are kept per label set."""
        counter = Counter(name="test_counter", help_text="Test counter")
        counter.increment(labels={"verdict": "succeeded"})
        counter.increment(labels={"verdict": "failed"})
        counter.increment(labels={"verdict": "succeeded"})

        assert counter.get(labels={"verdict": "succeeded"}) == 2.0
        assert counter.get(labels={"verdict": "failed"}) == 1.0
        assert counter.get(labels={"verdict": "disabled"}) == 0.0

    def test_counter_label_order_does_not_matter(self) -> None:
        """Test labels are normalized before lookup."""
        counter = Counter(name="test_counter", help_text="Test counter")
        counter.increment(labels={"outcome": "executed_as_planned", "epoch": "modern"})
        assert counter.get(labels={"epoch": "modern", "outcome": "executed_as_planned"}) == 1.0


class TestHistogram:
    """Tests for Histogram metric."""

    def test_observe_counts_values(self) -> None:
        """Test every observation is counted."""
        histogram = Histogram(name="test_histogram", help_text="Test histogram")
        histogram.observe(0.02)
        histogram.observe(3.0)
        assert histogram.get_count() == 2.0

    def test_unknown_labels_count_zero(self) -> None:
        histogram = Histogram(name="test_histogram", help_text="Test histogram")
        assert histogram.get_count(labels={"missing": "yes"}) == 0.0


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_default_metrics_registered(self) -> None:
        """Test the run counters and histograms exist from the start."""
        output = MetricsCollector().export_prometheus()
        assert "# TYPE conformix_interactions_total counter" in output
        assert "# TYPE conformix_verdicts_total counter" in output
        assert "# TYPE conformix_interaction_duration_seconds histogram" in output
        assert "conformix_run_uptime_seconds" in output

    def test_unknown_metric_is_ignored(self) -> None:
        """Test recording an unregistered metric is a no-op."""
        collector = MetricsCollector()
        collector.increment_counter("not_a_metric")
        collector.observe_histogram("not_a_histogram", 1.0)
        assert collector.get_counter("not_a_metric") == 0.0
        assert collector.get_histogram_count("not_a_histogram") == 0.0

    def test_export_includes_labels(self) -> None:
        """Test labelled values are exported with escaped label values."""
        collector = MetricsCollector()
        collector.increment_counter("conformix_verdicts_total", {"verdict": 'say "hi"'})
        output = collector.export_prometheus()
        assert 'conformix_verdicts_total{verdict="say \\"hi\\""} 1.0' in output

    def test_histogram_export_is_cumulative(self) -> None:
        """Test bucket counts accumulate across bounds."""
        collector = MetricsCollector()
        collector.observe_histogram("conformix_test_case_duration_seconds", 0.02)
        collector.observe_histogram("conformix_test_case_duration_seconds", 0.3)
        output = collector.export_prometheus()
        assert 'conformix_test_case_duration_seconds_bucket{le="0.05"} 1.0' in output
        assert 'conformix_test_case_duration_seconds_bucket{le="0.5"} 2.0' in output
        assert "conformix_test_case_duration_seconds_count 2.0" in output

    def test_concurrent_increments(self) -> None:
        """Test counters stay exact under concurrent tier-1 workers."""
        collector = MetricsCollector()

        def work() -> None:
            for _ in range(500):
                collector.increment_counter("conformix_interactions_total")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert collector.get_counter("conformix_interactions_total") == 4000.0

    def test_write_prometheus(self, tmp_path: Path) -> None:
        collector = MetricsCollector()
        collector.increment_counter("conformix_cache_hits_total")
        path = tmp_path / "nested" / "run.prom"

        collector.write_prometheus(path)

        assert "conformix_cache_hits_total 1.0" in path.read_text(encoding="utf-8")

    def test_labelled_histogram_export(self) -> None:
        collector = MetricsCollector()
        collector.observe_histogram(
            "conformix_interaction_duration_seconds", 0.2, {"epoch": "modern"}
        )
        output = collector.export_prometheus()
        assert 'conformix_interaction_duration_seconds_bucket{epoch="modern",le="0.25"} 1.0' in (
            output
        )
        assert 'conformix_interaction_duration_seconds_bucket{epoch="modern",le="0.1"} 0.0' in (
            output
        )

    def test_reset_clears_values(self) -> None:
        collector = MetricsCollector()
        collector.increment_counter("conformix_cache_hits_total")
        collector.reset()
        assert collector.get_counter("conformix_cache_hits_total") == 0.0


class TestGlobalCollector:
    """Tests for the process-wide collector."""

    def test_get_metrics_returns_singleton(self) -> None:
        assert get_metrics() is get_metrics()

    def test_reset_metrics_clears_global_values(self) -> None:
        """Test reset_metrics zeroes the global collector."""
        get_metrics().increment_counter("conformix_watchdog_fired_total")
        reset_metrics()
        assert get_metrics().get_counter("conformix_watchdog_fired_total") == 0.0
