"""Conformance runner.

Turns declared tests into test cases: evaluates preconditions, builds the
parameter model of every applicable test and runs each combination on the
tier-2 pool. Combination bodies submit their interactions to tier 1 through
a TestCaseHandle and the outcome of every combination is recorded in the
test's TestCaseResult.
"""

from __future__ import annotations

import time
from concurrent.futures import Future
from dataclasses import dataclass, field

from conformix.config import RunConfig
from conformix.derivation.container import DerivationContainer
from conformix.derivation.model import Combination, ModelBuilder
from conformix.derivation.types import DerivationType, ParameterKey
from conformix.errors import PreconditionRejection
from conformix.execution.engine import ExecutionEngine
from conformix.execution.watchdog import IdleWatchdog
from conformix.models.enums import EndpointDirection, Epoch
from conformix.models.features import FeatureReport
from conformix.observability import bind_context, get_logger, get_metrics, unbind_context
from conformix.probing.cache import FeatureCache
from conformix.probing.prober import CapabilityProber, validate_report
from conformix.probing.sync import ClientSynchronizer
from conformix.protocol.driver import CapabilityScanner, ConnectionListener, ProtocolDriver
from conformix.protocol.strategies import config_for_epoch
from conformix.results.aggregator import ResultAggregator
from conformix.results.report import RunReport
from conformix.results.result import TestCaseResult
from conformix.runner.declarations import TestDeclaration, TestRegistry
from conformix.runner.handle import TestCaseHandle

logger = get_logger(__name__)


@dataclass
class RunContext:
    """Everything shared by the test cases of one run.

    Passed explicitly to the runner; there is no process-wide instance.
    """

    features: FeatureReport
    config: RunConfig
    aggregator: ResultAggregator
    engine: ExecutionEngine
    driver: ProtocolDriver
    model_builder: ModelBuilder = field(default_factory=ModelBuilder)


@dataclass
class _PlannedCase:
    declaration: TestDeclaration
    result: TestCaseResult
    combinations: list[Combination]


class ConformanceRunner:
    """Run declared tests against the target described by ``context.features``.

    Example:
        >>> runner = ConformanceRunner(context)
        >>> report = runner.run(registry)
        >>> report.summary.passed
        True
    """

    def __init__(self, context: RunContext) -> None:
        self.context = context

    def _epoch_for(self, declaration: TestDeclaration, combination: Combination) -> Epoch:
        """Epoch gate of the test, else the epoch of the selected cipher suite."""
        if declaration.epoch is not None:
            return declaration.epoch
        suite = combination.get(ParameterKey.of(DerivationType.CIPHER_SUITE))
        if suite is not None:
            return suite.selected_value.epoch
        features = self.context.features
        return Epoch.MODERN if features.supports_epoch(Epoch.MODERN) else Epoch.LEGACY

    def check_precondition(self, declaration: TestDeclaration) -> tuple[bool, str | None]:
        """Return whether ``declaration`` applies and, if not, why."""
        features = self.context.features
        epoch = declaration.epoch
        if epoch is not None and features.versions and not features.supports_epoch(epoch):
            return False, f"Target does not support the {epoch.value} epoch"
        if declaration.precondition is None:
            return True, None
        try:
            applies = declaration.precondition(features)
        except PreconditionRejection as rejection:
            return False, rejection.reason
        return bool(applies), None if applies else declaration.disabled_reason

    def _plan(self, declaration: TestDeclaration) -> _PlannedCase | None:
        context = self.context
        result = context.aggregator.ensure(
            declaration.identifier, declaration.epoch, declaration.direction
        )
        try:
            applies, reason = self.check_precondition(declaration)
        except Exception as exc:  # noqa: BLE001 - recorded as an engine failure
            logger.exception("conformix.precondition.failed", test_id=declaration.identifier)
            result.fail(exc)
            return None
        if not applies:
            result.disable(reason)
            return None

        try:
            scope = declaration.scope
            if scope.strength is None:
                scope = scope.model_copy(update={"strength": context.config.strength})
            combinations = context.model_builder.build(scope, context.features).combinations()
        except Exception as exc:  # noqa: BLE001 - recorded as an engine failure
            logger.exception("conformix.model.failed", test_id=declaration.identifier)
            result.fail(exc)
            return None
        if not combinations:
            result.disable("No combination satisfies the model constraints")
            return None

        result.start(len(combinations))
        for combination in combinations:
            context.aggregator.note_planned(
                self._epoch_for(declaration, combination), declaration.direction
            )
        return _PlannedCase(declaration, result, combinations)

    def run_combination(
        self, declaration: TestDeclaration, result: TestCaseResult, combination: Combination
    ) -> None:
        """Configure, run and record one combination of ``declaration``."""
        context = self.context
        description = combination.describe()
        bind_context(test_id=declaration.identifier)
        started = time.monotonic()
        handle: TestCaseHandle | None = None
        error: BaseException | None = None
        try:
            epoch = self._epoch_for(declaration, combination)
            config = config_for_epoch(
                context.driver, epoch, declaration.direction, context.features
            )
            container = DerivationContainer(combination, declaration.scope, context.features)
            side_channel = container.apply_to(config)
            handle = TestCaseHandle(
                declaration.identifier,
                context.engine,
                context.driver,
                config,
                container,
                side_channel,
            )
            declaration.body(handle)
        except Exception as exc:  # noqa: BLE001 - recorded in the test result
            error = exc
            if not isinstance(exc, AssertionError):
                logger.exception(
                    "conformix.combination.engine_failure",
                    combination=description,
                )
        finally:
            unbind_context("test_id")
            get_metrics().observe_histogram(
                "conformix_test_case_duration_seconds", time.monotonic() - started
            )
        result.record(handle.outcomes if handle else None, error, description)

    def run(self, registry: TestRegistry, tags: list[str] | None = None) -> RunReport:
        """Run every declaration of ``registry`` for the target's direction."""
        context = self.context
        direction = context.features.direction
        selected = tags if tags is not None else context.config.tags
        declarations = registry.filter(direction=direction, tags=selected)
        logger.info(
            "conformix.run.started",
            identity=context.features.identity,
            direction=direction.value,
            tests=len(declarations),
        )

        planned = [case for case in map(self._plan, declarations) if case is not None]
        futures: list[tuple[TestCaseResult, Future[None]]] = [
            (
                case.result,
                context.engine.submit_test_case(
                    self.run_combination, case.declaration, case.result, combination
                ),
            )
            for case in planned
            for combination in case.combinations
        ]
        for result, future in futures:
            exc = future.exception()
            if exc is not None:
                result.fail(exc)
        for case in planned:
            case.result.finalize()

        report = context.aggregator.report()
        summary = report.summary
        logger.info(
            "conformix.run.completed",
            identity=report.identity,
            total=summary.total,
            succeeded=summary.succeeded,
            failed=summary.failed,
            disabled=summary.disabled,
            engine_failures=summary.engine_failures,
        )
        return report


def run_conformance(
    config: RunConfig,
    driver: ProtocolDriver,
    registry: TestRegistry,
    *,
    scanner: CapabilityScanner | None = None,
    listener: ConnectionListener | None = None,
    features: FeatureReport | None = None,
) -> RunReport:
    """Probe the target (or use ``features``), then run ``registry`` against it.

    Raises:
        ProbingExhaustionError: If client probing negotiated nothing
        UnsupportedTargetError: If the target cannot be tested
    """
    watchdog = IdleWatchdog(config.idle_window_seconds, config.recovery_command)
    with ExecutionEngine(
        driver,
        interaction_workers=config.interaction_workers,
        test_case_workers=config.resolved_test_case_workers,
        watchdog=watchdog,
        connect_timeout_seconds=config.connect_timeout_seconds,
        read_timeout_seconds=config.read_timeout_seconds,
    ) as engine:
        if features is None:
            synchronizer = None
            if config.direction is EndpointDirection.CLIENT and listener is not None:
                synchronizer = ClientSynchronizer(
                    listener, config.trigger_command, config.trigger_interval_seconds
                )
            server_address = None
            if config.direction is EndpointDirection.SERVER and config.server_port is not None:
                server_address = (config.server_host, config.server_port)
            prober = CapabilityProber(
                engine,
                driver,
                FeatureCache(config.cache_dir),
                scanner=scanner,
                synchronizer=synchronizer,
                ignore_cache=config.ignore_cache,
                server_address=server_address,
                server_wait_attempts=config.server_wait_attempts,
            )
            features = prober.probe(config.target_identity, config.direction)
        validate_report(features, config.supported_versions)

        context = RunContext(
            features=features,
            config=config,
            aggregator=ResultAggregator(features.identity, features.direction),
            engine=engine,
            driver=driver,
            model_builder=ModelBuilder(default_strength=config.strength, seed=config.seed),
        )
        return ConformanceRunner(context).run(registry)
