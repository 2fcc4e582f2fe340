"""Tests for the conformance runner."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest

from conformix.config import RunConfig
from conformix.derivation.types import DerivationScope, DerivationType
from conformix.errors import PreconditionRejection, ProbingExhaustionError, TransportError
from conformix.models.enums import EndpointDirection, Epoch, ModelShape, Verdict
from conformix.models.features import FeatureReport
from conformix.protocol.catalog import CipherSuite, ProtocolVersion, SignatureAlgorithm
from conformix.results.aggregator import ResultAggregator
from conformix.results.report import RunReport
from conformix.runner import (
    ConformanceRunner,
    RunContext,
    TestCaseHandle,
    TestRegistry,
    assert_executed_as_planned,
    run_conformance,
)
from conformix.testing import MockDriver, assert_all_terminal, assert_verdict, deviated_result
from conformix.testing.fixtures import make_feature_report, test_engine

SUITES = DerivationScope(
    shape=ModelShape.EMPTY,
    epoch=Epoch.MODERN,
    extensions=frozenset({DerivationType.CIPHER_SUITE}),
)


def handshake(handle: TestCaseHandle) -> None:
    assert_executed_as_planned(handle.execute())


@contextmanager
def runner_for(driver: MockDriver, features: FeatureReport) -> Iterator[ConformanceRunner]:
    with test_engine(driver, interaction_workers=2, test_case_workers=3) as engine:
        context = RunContext(
            features=features,
            config=RunConfig(),
            aggregator=ResultAggregator(features.identity, features.direction),
            engine=engine,
            driver=driver,
        )
        yield ConformanceRunner(context)


def _run(
    driver: MockDriver, registry: TestRegistry, features: FeatureReport | None = None
) -> RunReport:
    with runner_for(driver, features or make_feature_report()) as runner:
        return runner.run(registry)


class TestConformanceRunner:
    """Tests for ConformanceRunner."""

    def test_every_combination_runs(self, mock_driver: MockDriver) -> None:
        registry = TestRegistry()
        registry.declare("server.modern.handshake", scope=SUITES)(handshake)

        report = _run(mock_driver, registry)

        case = assert_verdict(report, "server.modern.handshake", Verdict.SUCCEEDED)
        assert case.expected == 2
        assert case.completed == 2
        assert len(case.outcomes) == 2
        assert mock_driver.execution_count == 2
        suites = {config.selected_cipher_suite for config, _ in mock_driver.executions}
        assert suites == {
            CipherSuite.TLS_AES_128_GCM_SHA256,
            CipherSuite.TLS_CHACHA20_POLY1305_SHA256,
        }
        assert report.summary.passed

    def test_false_precondition_disables_without_interactions(
        self, mock_driver: MockDriver
    ) -> None:
        """A test whose precondition fails never reaches the driver."""
        registry = TestRegistry()
        registry.declare(
            "server.modern.needs_fragmentation",
            scope=SUITES,
            precondition=lambda features: features.record_fragmentation,
            disabled_reason="Target does not tolerate fragmented records",
        )(handshake)

        report = _run(mock_driver, registry, make_feature_report(record_fragmentation=False))

        case = assert_verdict(report, "server.modern.needs_fragmentation", Verdict.DISABLED)
        assert case.reason == "Target does not tolerate fragmented records"
        assert mock_driver.execution_count == 0

    def test_precondition_rejection_gives_reason(self, mock_driver: MockDriver) -> None:
        def reject(features: FeatureReport) -> bool:
            raise PreconditionRejection("server.x", "no renegotiation support")

        registry = TestRegistry()
        registry.declare("server.x", scope=SUITES, precondition=reject)(handshake)

        report = _run(mock_driver, registry)

        case = assert_verdict(report, "server.x", Verdict.DISABLED)
        assert case.reason == "no renegotiation support"

    def test_raising_precondition_fails_only_its_test(self, mock_driver: MockDriver) -> None:
        def lookup(features: FeatureReport) -> bool:
            raise KeyError("missing capability")

        registry = TestRegistry()
        registry.declare("server.modern.broken", scope=SUITES, precondition=lookup)(handshake)
        registry.declare("server.modern.handshake", scope=SUITES)(handshake)

        report = _run(mock_driver, registry)

        broken = assert_verdict(report, "server.modern.broken", Verdict.FAILED)
        assert broken.engine_failure
        assert broken.cause is not None
        assert "KeyError" in broken.cause
        assert_verdict(report, "server.modern.handshake", Verdict.SUCCEEDED)
        assert mock_driver.execution_count == 2
        assert_all_terminal(report)

    def test_unsupported_epoch_disables(self, mock_driver: MockDriver) -> None:
        features = make_feature_report(
            versions=[ProtocolVersion.TLS12],
            cipher_suites={Epoch.LEGACY: [CipherSuite.TLS_RSA_WITH_AES_128_CBC_SHA]},
        )
        registry = TestRegistry()
        registry.declare("server.modern.handshake", scope=SUITES)(handshake)

        report = _run(mock_driver, registry, features)

        case = assert_verdict(report, "server.modern.handshake", Verdict.DISABLED)
        assert case.reason == "Target does not support the modern epoch"
        assert mock_driver.execution_count == 0

    def test_model_without_combinations_disables(self, mock_driver: MockDriver) -> None:
        features = make_feature_report(
            cipher_suites={
                Epoch.LEGACY: [CipherSuite.TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256],
            },
            signature_algorithms=[
                SignatureAlgorithm.RSA_PSS_RSAE_SHA256,
                SignatureAlgorithm.RSA_PKCS1_SHA256,
            ],
        )
        scope = DerivationScope(
            shape=ModelShape.EMPTY,
            epoch=Epoch.LEGACY,
            extensions=frozenset(
                {DerivationType.CIPHER_SUITE, DerivationType.SIGNATURE_ALGORITHM}
            ),
        )
        registry = TestRegistry()
        registry.declare("server.legacy.signatures", scope=scope)(handshake)

        report = _run(mock_driver, registry, features)

        case = assert_verdict(report, "server.legacy.signatures", Verdict.DISABLED)
        assert case.reason == "No combination satisfies the model constraints"

    def test_assertion_failure_fails_test(self, mock_driver: MockDriver) -> None:
        mock_driver.set_result_for_suite(
            CipherSuite.TLS_CHACHA20_POLY1305_SHA256, deviated_result()
        )
        registry = TestRegistry()
        registry.declare("server.modern.handshake", scope=SUITES)(handshake)

        report = _run(mock_driver, registry)

        case = assert_verdict(report, "server.modern.handshake", Verdict.FAILED)
        assert case.cause is not None
        assert "did not execute as planned" in case.cause
        assert case.failed_combination is not None
        assert "TLS_CHACHA20_POLY1305_SHA256" in case.failed_combination
        assert not case.engine_failure
        assert not report.summary.passed

    def test_every_interaction_of_a_body_is_recorded(self, mock_driver: MockDriver) -> None:
        def twice(handle: TestCaseHandle) -> None:
            handle.execute()
            assert_executed_as_planned(handle.execute())

        registry = TestRegistry()
        registry.declare("server.modern.twice", scope=SUITES)(twice)

        report = _run(mock_driver, registry)

        case = assert_verdict(report, "server.modern.twice", Verdict.SUCCEEDED)
        assert case.completed == 2
        assert len(case.outcomes) == 4
        modern = [entry for entry in report.summary.volume if entry.epoch is Epoch.MODERN]
        assert modern[0].executed == 4

    def test_unexpected_exception_is_engine_failure(self, mock_driver: MockDriver) -> None:
        def broken(handle: TestCaseHandle) -> None:
            raise RuntimeError("boom")

        registry = TestRegistry()
        registry.declare("server.modern.broken", scope=SUITES)(broken)

        report = _run(mock_driver, registry)

        case = assert_verdict(report, "server.modern.broken", Verdict.FAILED)
        assert case.engine_failure
        assert case.cause == "Internal error in server.modern.broken: RuntimeError: boom"
        assert report.summary.engine_failures == 1

    def test_transport_error_is_recorded_not_raised(self, mock_driver: MockDriver) -> None:
        mock_driver.set_failure(TransportError("connection reset"), persistent=True)
        registry = TestRegistry()
        registry.declare("server.modern.handshake", scope=SUITES)(handshake)

        report = _run(mock_driver, registry)

        case = assert_verdict(report, "server.modern.handshake", Verdict.FAILED)
        assert not case.engine_failure
        modern = [entry for entry in report.summary.volume if entry.epoch is Epoch.MODERN]
        assert modern[0].planned == 2
        assert modern[0].executed == 0

    def test_only_tests_for_target_direction_run(self, mock_driver: MockDriver) -> None:
        registry = TestRegistry()
        registry.declare("server.modern.handshake", scope=SUITES)(handshake)
        registry.declare(
            "client.modern.handshake",
            scope=SUITES.model_copy(update={"direction": EndpointDirection.CLIENT}),
        )(handshake)

        report = _run(mock_driver, registry)

        assert [case.test_id for case in report.test_cases] == ["server.modern.handshake"]

    def test_tag_selection(self, mock_driver: MockDriver) -> None:
        registry = TestRegistry()
        registry.declare("server.a", scope=SUITES, tags=["smoke"])(handshake)
        registry.declare("server.b", scope=SUITES, tags=["slow"])(handshake)

        with runner_for(mock_driver, make_feature_report()) as runner:
            report = runner.run(registry, tags=["smoke"])

        assert [case.test_id for case in report.test_cases] == ["server.a"]

    def test_epoch_agnostic_test_follows_suite_epoch(self, mock_driver: MockDriver) -> None:
        """Each combination is configured for the epoch of its cipher suite."""
        registry = TestRegistry()
        registry.declare(
            "server.any.handshake",
            scope=SUITES.model_copy(update={"epoch": None}),
        )(handshake)

        report = _run(mock_driver, registry)

        assert_verdict(report, "server.any.handshake", Verdict.SUCCEEDED)
        for config, _ in mock_driver.executions:
            assert config.selected_cipher_suite is not None
            assert config.epoch is config.selected_cipher_suite.epoch
        planned = {entry.epoch: entry.planned for entry in report.summary.volume}
        assert planned == {Epoch.LEGACY: 2, Epoch.MODERN: 2}

    def test_every_test_reaches_a_terminal_verdict(self, mock_driver: MockDriver) -> None:
        mock_driver.set_delay(0.01)
        registry = TestRegistry()
        for index in range(5):
            registry.declare(f"server.modern.handshake_{index}", scope=SUITES)(handshake)

        report = _run(mock_driver, registry)

        assert_all_terminal(report)
        assert report.summary.succeeded == 5
        assert mock_driver.max_concurrent <= 2


class TestRunConformance:
    """Tests for run_conformance."""

    def test_runs_against_given_features(self, mock_driver: MockDriver, tmp_path: Path) -> None:
        registry = TestRegistry()
        registry.declare("server.modern.handshake", scope=SUITES)(handshake)
        config = RunConfig(cache_dir=tmp_path, interaction_workers=1, idle_window_seconds=60)

        report = run_conformance(config, mock_driver, registry, features=make_feature_report())

        assert report.identity == "localhost:4433"
        assert_verdict(report, "server.modern.handshake", Verdict.SUCCEEDED)
        assert {
            (executed.connect_timeout_seconds, executed.read_timeout_seconds)
            for executed, _ in mock_driver.executions
        } == {(config.connect_timeout_seconds, config.read_timeout_seconds)}

    def test_client_probing_exhaustion_is_fatal(
        self, mock_driver: MockDriver, tmp_path: Path
    ) -> None:
        mock_driver.set_failure(TransportError("refused"), persistent=True)
        config = RunConfig(
            direction=EndpointDirection.CLIENT,
            identity="4433",
            cache_dir=tmp_path,
            interaction_workers=1,
            idle_window_seconds=60,
        )
        with pytest.raises(ProbingExhaustionError):
            run_conformance(config, mock_driver, TestRegistry())
        assert not (tmp_path / "4433.json").exists()
