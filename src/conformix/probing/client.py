"""Capability extraction for clients under test.

The client connects to us, so capabilities are discovered by running a
series of short interactions through the Execution Engine:

1. one handshake per implemented cipher suite
2. one retry interaction per supported modern group without a key share
3. one handshake per available certificate of each required key type
4. one handshake with a reduced record size

Versions, named groups, signature algorithms and extensions come from the
initial request captured during step 1.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence

from conformix.errors import ProbingExhaustionError
from conformix.execution.engine import ExecutionEngine
from conformix.models.enums import EndpointDirection, Epoch, MessageKind
from conformix.models.features import FeatureReport
from conformix.models.messages import ClientHelloMessage
from conformix.models.outcome import RunOutcome
from conformix.observability import get_logger, get_metrics
from conformix.protocol.catalog import (
    AVAILABLE_CERTIFICATES,
    FRAGMENTATION_PROBE_RECORD_LENGTH,
    CertificateKeyPair,
    CertificateKeyType,
    CipherSuite,
    NamedGroup,
    ProtocolVersion,
)
from conformix.protocol.config import DraftConfig
from conformix.protocol.driver import Interaction, InteractionKind, ProtocolDriver
from conformix.protocol.strategies import config_for_epoch

logger = get_logger(__name__)

# A modern client may send application data right after the handshake.
MODERN_OPTIONAL_TRAILING = frozenset({MessageKind.APPLICATION_DATA})


class ClientFeatureExtractor:
    """Run the client probing interactions and assemble a FeatureReport.

    Args:
        engine: Execution Engine the probing interactions run on
        driver: Protocol Driver building configs and interactions
        certificates: Certificates offered during the key size probe
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        driver: ProtocolDriver,
        certificates: Sequence[CertificateKeyPair] = AVAILABLE_CERTIFICATES,
    ) -> None:
        self.engine = engine
        self.driver = driver
        self.certificates = tuple(certificates)

    def _suite_config(self, suite: CipherSuite) -> DraftConfig:
        config = config_for_epoch(self.driver, suite.epoch, EndpointDirection.CLIENT)
        config.cipher_suites = [suite]
        config.selected_cipher_suite = suite
        return config

    def _interaction(self, kind: InteractionKind, config: DraftConfig, label: str) -> Interaction:
        interaction = self.driver.build_interaction(kind, config)
        trailing = MODERN_OPTIONAL_TRAILING if config.epoch is Epoch.MODERN else frozenset()
        return dataclasses.replace(
            interaction,
            label=label,
            optional_trailing=interaction.optional_trailing | trailing,
        )

    def _run(self, interactions: list[Interaction]) -> list[RunOutcome]:
        get_metrics().increment_counter(
            "conformix_probe_interactions_total",
            {"direction": EndpointDirection.CLIENT.value},
            float(len(interactions)),
        )
        return self.engine.execute_batch(interactions)

    def probe_cipher_suites(
        self, suites: Sequence[CipherSuite] | None = None
    ) -> tuple[dict[Epoch, list[CipherSuite]], ClientHelloMessage | None]:
        """Step 1: find the suites the client completes a handshake with.

        Raises:
            ProbingExhaustionError: If every interaction failed
        """
        candidates = list(suites) if suites is not None else CipherSuite.implemented()
        interactions = [
            self._interaction(
                InteractionKind.HANDSHAKE, self._suite_config(suite), f"probe suite {suite.value}"
            )
            for suite in candidates
        ]
        outcomes = self._run(interactions)

        supported: dict[Epoch, list[CipherSuite]] = {}
        initial_request: ClientHelloMessage | None = None
        for suite, outcome in zip(candidates, outcomes):
            if not outcome.executed_as_planned:
                logger.debug(
                    "conformix.probe.suite_rejected",
                    suite=suite.value,
                    outcome=outcome.kind.value,
                    cause=outcome.cause,
                )
                continue
            if outcome.negotiated_version is None:
                logger.debug("conformix.probe.suite_without_version", suite=suite.value)
                continue
            supported.setdefault(outcome.negotiated_version.epoch, []).append(suite)
            if initial_request is None:
                message = outcome.first(MessageKind.CLIENT_HELLO)
                if isinstance(message, ClientHelloMessage):
                    initial_request = message

        if not supported:
            raise ProbingExhaustionError(
                attempted=len(candidates),
                details={"suites": [suite.value for suite in candidates]},
            )
        return supported, initial_request

    def probe_hello_retry_groups(
        self,
        initial_request: ClientHelloMessage,
        modern_suites: Sequence[CipherSuite],
    ) -> list[NamedGroup]:
        """Step 2: modern groups the client completes a handshake with."""
        offered_shares = [group for group in initial_request.key_share_groups if group.is_modern]
        if not modern_suites:
            return offered_shares
        retry_groups = [
            group
            for group in initial_request.named_groups
            if group.is_modern and group not in initial_request.key_share_groups
        ]
        interactions = []
        for group in retry_groups:
            config = self._suite_config(modern_suites[0])
            config.named_groups = [group]
            config.selected_group = group
            config.key_share_groups = []
            interactions.append(
                self._interaction(InteractionKind.HELLO_RETRY, config, f"probe retry {group.value}")
            )
        outcomes = self._run(interactions) if interactions else []
        accepted = [
            group
            for group, outcome in zip(retry_groups, outcomes)
            if outcome.received(MessageKind.FINISHED)
        ]
        return list(dict.fromkeys([*offered_shares, *accepted]))

    def probe_certificates(
        self, supported: dict[Epoch, list[CipherSuite]]
    ) -> dict[CertificateKeyType, int]:
        """Step 3: smallest usable key size per certificate key type."""
        suite_by_key_type: dict[CertificateKeyType, CipherSuite] = {}
        for suites in supported.values():
            for suite in suites:
                key_type = suite.certificate_key_type
                if key_type is not None:
                    suite_by_key_type.setdefault(key_type, suite)

        planned: list[tuple[CertificateKeyPair, Interaction]] = []
        for key_type, suite in suite_by_key_type.items():
            candidates = sorted(
                (cert for cert in self.certificates if cert.key_type is key_type),
                key=lambda cert: cert.key_size,
            )
            for certificate in candidates:
                config = self._suite_config(suite)
                config.certificate = certificate
                planned.append(
                    (
                        certificate,
                        self._interaction(
                            InteractionKind.HANDSHAKE, config, f"probe certificate {certificate}"
                        ),
                    )
                )
        outcomes = self._run([interaction for _, interaction in planned]) if planned else []

        minimum: dict[CertificateKeyType, int] = {}
        for (certificate, _), outcome in zip(planned, outcomes):
            if not outcome.executed_as_planned:
                continue
            current = minimum.get(certificate.key_type)
            if current is None or certificate.key_size < current:
                minimum[certificate.key_type] = certificate.key_size
        return minimum

    def probe_record_fragmentation(self, supported: dict[Epoch, list[CipherSuite]]) -> bool:
        """Step 4: whether the client accepts records of reduced size."""
        candidates = [*supported.get(Epoch.MODERN, []), *supported.get(Epoch.LEGACY, [])]
        if not candidates:
            return False
        suite = candidates[0]
        config = self._suite_config(suite)
        config.max_record_length = FRAGMENTATION_PROBE_RECORD_LENGTH
        (outcome,) = self._run(
            [self._interaction(InteractionKind.HANDSHAKE, config, "probe record fragmentation")]
        )
        return outcome.executed_as_planned

    def extract(self, identity: str) -> FeatureReport:
        """Run all probing steps and return the client's FeatureReport.

        Raises:
            ProbingExhaustionError: If no cipher suite could be negotiated
        """
        logger.info("conformix.probe.client_started", identity=identity)
        supported, initial_request = self.probe_cipher_suites()
        request = initial_request or ClientHelloMessage()

        modern_groups = self.probe_hello_retry_groups(request, supported.get(Epoch.MODERN, []))
        min_sizes = self.probe_certificates(supported)
        fragmentation = self.probe_record_fragmentation(supported)

        versions = list(request.versions)
        if not versions:
            versions = [
                ProtocolVersion.TLS13 if epoch is Epoch.MODERN else ProtocolVersion.TLS12
                for epoch in (Epoch.LEGACY, Epoch.MODERN)
                if epoch in supported
            ]
        report = FeatureReport(
            identity=identity,
            direction=EndpointDirection.CLIENT,
            versions=versions,
            cipher_suites=supported,
            named_groups=list(request.named_groups),
            modern_groups=modern_groups,
            extensions=list(request.extensions),
            signature_algorithms=list(request.signature_algorithms),
            compression_methods=list(request.compression_methods),
            min_certificate_key_size=min_sizes,
            record_fragmentation=fragmentation,
            initial_request=initial_request,
        )
        logger.info(
            "conformix.probe.client_completed",
            identity=identity,
            suites=len(report.all_suites),
            modern_groups=len(modern_groups),
            record_fragmentation=fragmentation,
        )
        return report
