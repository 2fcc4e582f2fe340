"""Result Aggregator: owns every TestCaseResult of a run and builds the report."""

from __future__ import annotations

import threading
from collections.abc import Mapping

from conformix.models.enums import EndpointDirection, Epoch, OutcomeKind, Verdict
from conformix.observability import get_metrics
from conformix.results.report import RunReport, RunSummary, TestCaseReport, VolumeEntry
from conformix.results.result import TestCaseResult

VolumeKey = tuple[Epoch, EndpointDirection]


class ResultAggregator:
    """Thread-safe registry of result containers keyed by test id.

    Example:
        >>> aggregator = ResultAggregator("localhost:4433", EndpointDirection.SERVER)
        >>> result = aggregator.register("server.handshake", Epoch.MODERN, EndpointDirection.SERVER)
        >>> aggregator.report().summary.total
        1
    """

    def __init__(self, identity: str, direction: EndpointDirection) -> None:
        self.identity = identity
        self.direction = direction
        self._lock = threading.Lock()
        self._results: dict[str, TestCaseResult] = {}
        self._planned: dict[VolumeKey, int] = {}

    def register(
        self, test_id: str, epoch: Epoch | None, direction: EndpointDirection
    ) -> TestCaseResult:
        """Create the container of ``test_id``.

        Raises:
            ValueError: If the test id is already registered
        """
        with self._lock:
            if test_id in self._results:
                raise ValueError(f"Test {test_id} is already registered")
            result = TestCaseResult(test_id, epoch, direction)
            self._results[test_id] = result
            return result

    def ensure(
        self, test_id: str, epoch: Epoch | None, direction: EndpointDirection
    ) -> TestCaseResult:
        """Return the container of ``test_id``, creating it when missing."""
        with self._lock:
            result = self._results.get(test_id)
            if result is None:
                result = TestCaseResult(test_id, epoch, direction)
                self._results[test_id] = result
            return result

    def get(self, test_id: str) -> TestCaseResult | None:
        with self._lock:
            return self._results.get(test_id)

    def results(self) -> list[TestCaseResult]:
        with self._lock:
            return list(self._results.values())

    def note_planned(self, epoch: Epoch, direction: EndpointDirection, count: int = 1) -> None:
        """Add ``count`` planned interactions to the (epoch, direction) volume."""
        with self._lock:
            self._planned[(epoch, direction)] = self._planned.get((epoch, direction), 0) + count
        get_metrics().increment_counter(
            "conformix_interactions_planned_total",
            {"epoch": epoch.value, "direction": direction.value},
            float(count),
        )

    def planned(self) -> dict[VolumeKey, int]:
        with self._lock:
            return dict(self._planned)

    @staticmethod
    def summarize(
        cases: list[TestCaseReport], planned: Mapping[VolumeKey, int] | None = None
    ) -> RunSummary:
        """Count verdicts and planned vs executed interactions.

        An interaction counts as executed unless it ended in a transport error.
        """
        counts = {verdict: 0 for verdict in Verdict}
        volume: dict[VolumeKey, list[int]] = {
            key: [count, 0] for key, count in (planned or {}).items()
        }
        engine_failures = 0
        for case in cases:
            counts[case.verdict] += 1
            engine_failures += int(case.engine_failure)
            for outcome in case.outcomes:
                if outcome.kind is OutcomeKind.TRANSPORT_ERROR:
                    continue
                volume.setdefault((outcome.epoch, outcome.direction), [0, 0])[1] += 1
        return RunSummary(
            total=len(cases),
            succeeded=counts[Verdict.SUCCEEDED],
            failed=counts[Verdict.FAILED],
            disabled=counts[Verdict.DISABLED],
            unfinished=counts[Verdict.UNSTARTED] + counts[Verdict.RUNNING],
            engine_failures=engine_failures,
            volume=[
                VolumeEntry(epoch=epoch, direction=direction, planned=count, executed=executed)
                for (epoch, direction), (count, executed) in sorted(
                    volume.items(), key=lambda item: (item[0][0].value, item[0][1].value)
                )
            ],
        )

    def report(self) -> RunReport:
        """Snapshot every container into a RunReport."""
        cases = [result.snapshot() for result in self.results()]
        return RunReport(
            identity=self.identity,
            direction=self.direction,
            summary=self.summarize(cases, self.planned()),
            test_cases=cases,
        )
