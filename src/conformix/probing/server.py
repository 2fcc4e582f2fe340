"""Capability extraction for servers under test.

Servers are probed by the external Capability Scanner. This module
configures the scanner and adapts its loosely typed report into a
FeatureReport: names the catalog does not know are dropped and suites are
partitioned by epoch.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import TypeVar

from conformix.models.enums import EndpointDirection, Epoch
from conformix.models.features import FeatureReport
from conformix.observability import get_logger, get_metrics
from conformix.protocol.catalog import (
    CertificateKeyType,
    CipherSuite,
    CompressionMethod,
    ExtensionType,
    NamedGroup,
    ProtocolVersion,
    SignatureAlgorithm,
)
from conformix.protocol.driver import (
    SERVER_PROBE_SET,
    CapabilityScanner,
    ProbeType,
    ProtocolDriver,
    RawScanReport,
)
from conformix.protocol.strategies import config_for_epoch

logger = get_logger(__name__)

E = TypeVar("E", bound=Enum)


def parse_known(enum_type: type[E], names: Iterable[str]) -> list[E]:
    """Map ``names`` to ``enum_type`` members, dropping unknown ones."""
    known: dict[E, None] = {}
    for name in names:
        try:
            known[enum_type(name)] = None
        except ValueError:
            logger.debug("conformix.probe.unknown_name", kind=enum_type.__name__, name=name)
    return list(known)


def adapt_scan_report(identity: str, raw: RawScanReport) -> FeatureReport:
    """Convert a scanner report into a server FeatureReport."""
    suites: dict[Epoch, list[CipherSuite]] = {}
    for suite in parse_known(CipherSuite, raw.cipher_suites):
        suites.setdefault(suite.epoch, []).append(suite)

    min_sizes: dict[CertificateKeyType, int] = {}
    for name, size in raw.certificate_key_sizes.items():
        key_types = parse_known(CertificateKeyType, [name])
        if key_types and size > 0:
            min_sizes[key_types[0]] = size

    modern_groups = parse_known(NamedGroup, raw.modern_groups)
    return FeatureReport(
        identity=identity,
        direction=EndpointDirection.SERVER,
        versions=parse_known(ProtocolVersion, raw.versions),
        cipher_suites=suites,
        named_groups=parse_known(NamedGroup, raw.named_groups),
        modern_groups=[group for group in modern_groups if group.is_modern],
        extensions=parse_known(ExtensionType, raw.extensions),
        signature_algorithms=parse_known(SignatureAlgorithm, raw.signature_algorithms),
        compression_methods=parse_known(CompressionMethod, raw.compression_methods),
        min_certificate_key_size=min_sizes,
        record_fragmentation=bool(raw.record_fragmentation),
    )


class ServerFeatureExtractor:
    """Probe a server through the Capability Scanner.

    Args:
        scanner: External Capability Scanner
        driver: Protocol Driver providing the scanner's base configuration
        probe_set: Probes the scanner is restricted to
    """

    def __init__(
        self,
        scanner: CapabilityScanner,
        driver: ProtocolDriver,
        probe_set: frozenset[ProbeType] = SERVER_PROBE_SET,
    ) -> None:
        self.scanner = scanner
        self.driver = driver
        self.probe_set = probe_set

    def extract(self, identity: str) -> FeatureReport:
        logger.info(
            "conformix.probe.server_started",
            identity=identity,
            probes=sorted(probe.value for probe in self.probe_set),
        )
        base_config = config_for_epoch(self.driver, Epoch.LEGACY, EndpointDirection.SERVER)
        self.scanner.configure(self.probe_set, base_config)
        raw = self.scanner.scan()
        get_metrics().increment_counter(
            "conformix_probe_interactions_total",
            {"direction": EndpointDirection.SERVER.value},
        )
        report = adapt_scan_report(identity, raw)
        logger.info(
            "conformix.probe.server_completed",
            identity=identity,
            suites=len(report.all_suites),
            versions=[version.value for version in report.versions],
        )
        return report
