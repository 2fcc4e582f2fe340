"""Concurrent Execution Engine.

Runs independent protocol interactions on the tier-1 pool and declared test
cases on the tier-2 pool. Every interaction yields exactly one RunOutcome;
exceptions raised by the Protocol Driver are caught at the interaction
boundary and recorded as TRANSPORT_ERROR outcomes, so a failing interaction
never crashes a worker or affects its siblings.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from concurrent.futures import Future
from typing import Callable, TypeVar

from conformix.execution.pools import (
    WorkerPool,
    case_worker_count,
    interaction_worker_count,
)
from conformix.execution.watchdog import IdleWatchdog
from conformix.models.enums import MessageKind, OutcomeKind
from conformix.models.outcome import RunOutcome
from conformix.protocol.driver import DriverResult, Interaction, ProtocolDriver
from conformix.observability import get_logger, get_metrics

logger = get_logger(__name__)

T = TypeVar("T")


def classify(interaction: Interaction, result: DriverResult) -> tuple[OutcomeKind, str | None]:
    """Decide whether a driver result counts as executed as planned.

    Messages received after the planned flow are tolerated when their kind
    is listed in ``interaction.optional_trailing``.
    """
    if not result.completed:
        return OutcomeKind.DEVIATED, "planned actions were not all executed"
    unexpected = [
        message.kind
        for message in result.trailing
        if MessageKind(message.kind) not in interaction.optional_trailing
    ]
    if unexpected:
        return OutcomeKind.DEVIATED, f"unexpected trailing messages: {', '.join(unexpected)}"
    return OutcomeKind.EXECUTED_AS_PLANNED, None


class ExecutionEngine:
    """Two-tier executor for interactions and test cases.

    Args:
        driver: Protocol Driver executing interactions
        interaction_workers: Tier-1 size, capped at available parallelism
        test_case_workers: Tier-2 size, defaults to ceil(1.5 * tier-1 size)
        watchdog: Optional idle watchdog notified on every completion
        connect_timeout_seconds: Connect timeout stamped on every interaction
            config that does not set one
        read_timeout_seconds: Read timeout, stamped the same way

    Example:
        >>> with ExecutionEngine(driver, interaction_workers=4) as engine:
        ...     outcomes = engine.execute_batch(interactions)
    """

    def __init__(
        self,
        driver: ProtocolDriver,
        interaction_workers: int | None = None,
        test_case_workers: int | None = None,
        watchdog: IdleWatchdog | None = None,
        connect_timeout_seconds: float | None = None,
        read_timeout_seconds: float | None = None,
    ) -> None:
        self.driver = driver
        self.connect_timeout_seconds = connect_timeout_seconds
        self.read_timeout_seconds = read_timeout_seconds
        self.interaction_workers = interaction_worker_count(interaction_workers)
        self.test_case_workers = test_case_workers or case_worker_count(self.interaction_workers)
        self.watchdog = watchdog
        self._interactions = WorkerPool("interaction", self.interaction_workers)
        self._test_cases = WorkerPool("test-case", self.test_case_workers)
        if self.watchdog is not None:
            self.watchdog.start()

    @property
    def active_interactions(self) -> int:
        return self._interactions.active

    def _run_interaction(self, interaction: Interaction) -> RunOutcome:
        config = interaction.config
        if config.connect_timeout_seconds is None:
            config.connect_timeout_seconds = self.connect_timeout_seconds
        if config.read_timeout_seconds is None:
            config.read_timeout_seconds = self.read_timeout_seconds
        started = time.monotonic()
        try:
            result = self.driver.execute(config, interaction)
        except Exception as exc:  # noqa: BLE001 - recorded as a transport error outcome
            duration = time.monotonic() - started
            logger.warning(
                "conformix.interaction.transport_error",
                label=interaction.label,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            outcome = RunOutcome(
                kind=OutcomeKind.TRANSPORT_ERROR,
                description=interaction.label,
                epoch=config.epoch,
                direction=config.direction,
                cause=f"{type(exc).__name__}: {exc}",
                duration_seconds=duration,
            )
        else:
            duration = time.monotonic() - started
            kind, cause = classify(interaction, result)
            outcome = RunOutcome(
                kind=kind,
                description=interaction.label,
                epoch=config.epoch,
                direction=config.direction,
                messages=[*result.messages, *result.trailing],
                cause=cause,
                duration_seconds=duration,
                negotiated_version=result.negotiated_version,
            )
        finally:
            if self.watchdog is not None:
                self.watchdog.notify()

        metrics = get_metrics()
        metrics.increment_counter(
            "conformix_interactions_total",
            {"outcome": outcome.kind.value, "epoch": outcome.epoch.value},
        )
        metrics.observe_histogram("conformix_interaction_duration_seconds", duration)
        logger.debug(
            "conformix.interaction.completed",
            label=interaction.label,
            outcome=outcome.kind.value,
            duration_seconds=round(duration, 4),
        )
        return outcome

    def submit_interaction(self, interaction: Interaction) -> Future[RunOutcome]:
        """Queue one interaction on tier 1."""
        return self._interactions.submit(self._run_interaction, interaction)

    def execute(self, interaction: Interaction) -> RunOutcome:
        """Run one interaction on tier 1 and wait for its outcome."""
        return self.submit_interaction(interaction).result()

    def execute_batch(self, interactions: Sequence[Interaction]) -> list[RunOutcome]:
        """Run ``interactions`` concurrently; outcomes are returned in input order."""
        futures = [self.submit_interaction(interaction) for interaction in interactions]
        logger.info("conformix.batch.submitted", interactions=len(futures))
        return [future.result() for future in futures]

    def submit_test_case(
        self, fn: Callable[..., T], /, *args: object, **kwargs: object
    ) -> Future[T]:
        """Queue a test case body on tier 2."""
        return self._test_cases.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        if self.watchdog is not None:
            self.watchdog.stop()
        self._test_cases.shutdown(wait=wait)
        self._interactions.shutdown(wait=wait)

    def __enter__(self) -> ExecutionEngine:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.shutdown(wait=True)
