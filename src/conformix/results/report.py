"""Report models produced by the Result Aggregator."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field

from conformix.models.base import ConformixBaseModel
from conformix.models.enums import EndpointDirection, Epoch, Verdict
from conformix.models.outcome import RunOutcome


class TestCaseReport(ConformixBaseModel):
    """Frozen view of one finalized (or still running) test case.

    Attributes:
        test_id: Declared test identifier
        epoch: Epoch the test is gated to, None when epoch-agnostic
        direction: Role of the implementation under test
        verdict: Current verdict
        expected: Number of combinations planned for the test
        completed: Number of combinations that finished
        outcomes: Interaction outcomes captured for the test
        reason: Disabled reason
        cause: Failure cause
        failed_combination: Combination whose assertion logic failed first
        engine_failure: The failure was an internal error, not an assertion
    """

    __test__ = False

    test_id: str
    epoch: Epoch | None = None
    direction: EndpointDirection
    verdict: Verdict
    expected: int = 0
    completed: int = 0
    outcomes: list[RunOutcome] = Field(default_factory=list)
    reason: str | None = None
    cause: str | None = None
    failed_combination: str | None = None
    engine_failure: bool = False


class VolumeEntry(ConformixBaseModel):
    """Planned vs executed interactions for one (epoch, direction)."""

    epoch: Epoch
    direction: EndpointDirection
    planned: int = 0
    executed: int = 0


class RunSummary(ConformixBaseModel):
    """Run-level counts."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    disabled: int = 0
    unfinished: int = 0
    engine_failures: int = 0
    volume: list[VolumeEntry] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.failed == 0 and self.unfinished == 0


class RunReport(ConformixBaseModel):
    """Finalized report of a conformance run."""

    identity: str
    direction: EndpointDirection
    summary: RunSummary
    test_cases: list[TestCaseReport] = Field(default_factory=list)

    def by_verdict(self, verdict: Verdict) -> list[TestCaseReport]:
        return [case for case in self.test_cases if case.verdict is verdict]

    def write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    @classmethod
    def read(cls, path: Path) -> RunReport:
        return cls.model_validate_json(path.read_text(encoding="utf-8"))
