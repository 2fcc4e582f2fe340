"""Per-test result container.

A TestCaseResult collects the outcomes of one declared test and moves
through UNSTARTED -> RUNNING -> SUCCEEDED | FAILED, or directly to DISABLED.
Sibling combinations may report from different workers, so every state
change and the "all expected combinations completed" check run under the
container's lock. Once terminal, the verdict, cause and reason never change.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence

from conformix.errors import EngineFailure
from conformix.models.enums import EndpointDirection, Epoch, Verdict
from conformix.models.outcome import RunOutcome
from conformix.observability import get_logger, get_metrics
from conformix.results.machine import check_transition
from conformix.results.report import TestCaseReport

logger = get_logger(__name__)

DEFAULT_DISABLED_REASON = "No reason"


class TestCaseResult:
    """Thread-safe result container of one declared test.

    Example:
        >>> result = TestCaseResult("server.handshake", Epoch.MODERN, EndpointDirection.SERVER)
        >>> result.start(expected=1)
        >>> result.record(outcome)
        <Verdict.SUCCEEDED: 'succeeded'>
    """

    __test__ = False

    def __init__(
        self, test_id: str, epoch: Epoch | None, direction: EndpointDirection
    ) -> None:
        self.test_id = test_id
        self.epoch = epoch
        self.direction = direction
        self._lock = threading.Lock()
        self._verdict = Verdict.UNSTARTED
        self._expected = 0
        self._completed = 0
        self._outcomes: list[RunOutcome] = []
        self._reason: str | None = None
        self._cause: str | None = None
        self._failed_combination: str | None = None
        self._engine_failure = False

    @property
    def verdict(self) -> Verdict:
        with self._lock:
            return self._verdict

    @property
    def is_terminal(self) -> bool:
        return self.verdict.is_terminal()

    @property
    def reason(self) -> str | None:
        with self._lock:
            return self._reason

    @property
    def cause(self) -> str | None:
        with self._lock:
            return self._cause

    @property
    def engine_failure(self) -> bool:
        with self._lock:
            return self._engine_failure

    @property
    def expected(self) -> int:
        with self._lock:
            return self._expected

    @property
    def outcomes(self) -> list[RunOutcome]:
        with self._lock:
            return list(self._outcomes)

    def _transition_locked(self, verdict: Verdict) -> None:
        check_transition(self._verdict, verdict, self.test_id)
        self._verdict = verdict

    def _terminated(self, verdict: Verdict) -> None:
        metrics = get_metrics()
        metrics.increment_counter("conformix_verdicts_total", {"verdict": verdict.value})
        if self._engine_failure:
            metrics.increment_counter("conformix_engine_failures_total")
        log = logger.warning if verdict is Verdict.FAILED else logger.info
        log(
            "conformix.test_case.finalized",
            test_id=self.test_id,
            verdict=verdict.value,
            reason=self._reason,
            cause=self._cause,
            engine_failure=self._engine_failure,
        )

    def start(self, expected: int) -> None:
        """Enter RUNNING, expecting ``expected`` combinations.

        Raises:
            InvalidTransitionError: If the test already started or finished
            ValueError: If expected is less than 1
        """
        if expected < 1:
            raise ValueError(f"expected must be >= 1, got {expected}")
        with self._lock:
            self._transition_locked(Verdict.RUNNING)
            self._expected = expected

    def disable(self, reason: str | None = None) -> Verdict:
        """Finalize as DISABLED before any interaction ran.

        A terminal container is left unchanged.

        Raises:
            InvalidTransitionError: If the test is already running
        """
        with self._lock:
            if self._verdict.is_terminal():
                return self._verdict
            self._transition_locked(Verdict.DISABLED)
            self._reason = reason or DEFAULT_DISABLED_REASON
        self._terminated(Verdict.DISABLED)
        return Verdict.DISABLED

    def _fail_locked(self, error: BaseException, combination: str | None) -> None:
        self._transition_locked(Verdict.FAILED)
        self._failed_combination = combination
        if isinstance(error, AssertionError):
            self._cause = str(error) or type(error).__name__
        else:
            self._engine_failure = True
            failure = (
                error if isinstance(error, EngineFailure) else EngineFailure(self.test_id, error)
            )
            self._cause = failure.message

    def record(
        self,
        outcome: RunOutcome | Sequence[RunOutcome] | None,
        error: BaseException | None = None,
        combination: str | None = None,
    ) -> Verdict:
        """Record one completed combination.

        ``outcome`` is the outcome of the combination, or every outcome when
        its body executed several interactions.

        ``error`` is the exception raised by the test's assertion logic for
        the combination, if any; the first one fails the test. Outcomes of
        siblings completing after the failure are kept for the report.

        Raises:
            InvalidTransitionError: If the test was never started
        """
        if outcome is None:
            outcomes: list[RunOutcome] = []
        elif isinstance(outcome, RunOutcome):
            outcomes = [outcome]
        else:
            outcomes = list(outcome)
        newly_terminal: Verdict | None = None
        with self._lock:
            if self._verdict is Verdict.DISABLED or self._verdict is Verdict.SUCCEEDED:
                return self._verdict
            if self._verdict is Verdict.FAILED:
                self._outcomes.extend(outcomes)
                self._completed += 1
                return self._verdict
            if self._verdict is Verdict.UNSTARTED:
                check_transition(self._verdict, Verdict.SUCCEEDED, self.test_id)

            self._outcomes.extend(outcomes)
            self._completed += 1
            if error is not None:
                self._fail_locked(error, combination)
                newly_terminal = Verdict.FAILED
            elif self._completed >= self._expected:
                self._transition_locked(Verdict.SUCCEEDED)
                newly_terminal = Verdict.SUCCEEDED
            verdict = self._verdict

        if newly_terminal is not None:
            self._terminated(newly_terminal)
        return verdict

    def fail(self, error: BaseException, combination: str | None = None) -> Verdict:
        """Fail the test outside of a combination (e.g. model construction failed).

        A terminal container is left unchanged.
        """
        with self._lock:
            if self._verdict.is_terminal():
                return self._verdict
            self._fail_locked(error, combination)
        self._terminated(Verdict.FAILED)
        return Verdict.FAILED

    def finalize(self) -> Verdict:
        """Finalize if every expected combination completed; idempotent.

        Returns the current verdict, which stays RUNNING while combinations
        are outstanding.
        """
        with self._lock:
            if self._verdict.is_terminal():
                return self._verdict
            if self._verdict is not Verdict.RUNNING or self._completed < self._expected:
                return self._verdict
            self._transition_locked(Verdict.SUCCEEDED)
        self._terminated(Verdict.SUCCEEDED)
        return Verdict.SUCCEEDED

    def snapshot(self) -> TestCaseReport:
        with self._lock:
            return TestCaseReport(
                test_id=self.test_id,
                epoch=self.epoch,
                direction=self.direction,
                verdict=self._verdict,
                expected=self._expected,
                completed=self._completed,
                outcomes=list(self._outcomes),
                reason=self._reason,
                cause=self._cause,
                failed_combination=self._failed_combination,
                engine_failure=self._engine_failure,
            )
