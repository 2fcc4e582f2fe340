"""Pytest fixtures and context managers for conformix tests.

Fixtures (use with pytest):
    mock_driver: Scripted Protocol Driver recording every execution.
    server_features: FeatureReport of a typical server supporting both epochs.
    client_features: FeatureReport of a typical client supporting both epochs.

Context managers:
    test_engine(): ExecutionEngine around a driver, shut down on exit.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import pytest

from conformix.execution.engine import ExecutionEngine
from conformix.execution.watchdog import IdleWatchdog
from conformix.models.enums import EndpointDirection, Epoch
from conformix.models.features import FeatureReport
from conformix.protocol.catalog import (
    CertificateKeyType,
    CipherSuite,
    ExtensionType,
    NamedGroup,
    ProtocolVersion,
    SignatureAlgorithm,
)
from conformix.protocol.driver import ProtocolDriver
from conformix.testing.mocks import MockDriver

DEFAULT_SERVER_IDENTITY = "localhost:4433"
DEFAULT_CLIENT_IDENTITY = "4433"


def make_feature_report(
    direction: EndpointDirection = EndpointDirection.SERVER,
    identity: str | None = None,
    **overrides: Any,
) -> FeatureReport:
    """Build a FeatureReport for a target supporting both epochs.

    Args:
        direction: Role of the implementation under test
        identity: Cache key, defaults by direction
        overrides: Field values replacing the defaults

    Example:
        >>> report = make_feature_report(cipher_suites={Epoch.MODERN: []})
    """
    values: dict[str, Any] = {
        "identity": identity
        or (
            DEFAULT_CLIENT_IDENTITY
            if direction is EndpointDirection.CLIENT
            else DEFAULT_SERVER_IDENTITY
        ),
        "direction": direction,
        "versions": [ProtocolVersion.TLS12, ProtocolVersion.TLS13],
        "cipher_suites": {
            Epoch.MODERN: [
                CipherSuite.TLS_AES_128_GCM_SHA256,
                CipherSuite.TLS_CHACHA20_POLY1305_SHA256,
            ],
            Epoch.LEGACY: [
                CipherSuite.TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256,
                CipherSuite.TLS_RSA_WITH_AES_128_CBC_SHA,
            ],
        },
        "named_groups": [NamedGroup.SECP256R1, NamedGroup.X25519],
        "modern_groups": [NamedGroup.X25519, NamedGroup.SECP256R1],
        "extensions": [
            ExtensionType.ENCRYPT_THEN_MAC,
            ExtensionType.EXTENDED_MASTER_SECRET,
            ExtensionType.RENEGOTIATION_INFO,
            ExtensionType.PADDING,
            ExtensionType.MAX_FRAGMENT_LENGTH,
        ],
        "signature_algorithms": [
            SignatureAlgorithm.RSA_PSS_RSAE_SHA256,
            SignatureAlgorithm.RSA_PKCS1_SHA256,
            SignatureAlgorithm.ECDSA_SECP256R1_SHA256,
        ],
        "min_certificate_key_size": {CertificateKeyType.RSA: 2048},
        "record_fragmentation": True,
    }
    values.update(overrides)
    return FeatureReport(**values)


@pytest.fixture
def mock_driver() -> MockDriver:
    """Create a fresh MockDriver for the test."""
    return MockDriver()


@pytest.fixture
def server_features() -> FeatureReport:
    return make_feature_report(EndpointDirection.SERVER)


@pytest.fixture
def client_features() -> FeatureReport:
    return make_feature_report(EndpointDirection.CLIENT)


@contextmanager
def test_engine(
    driver: ProtocolDriver,
    interaction_workers: int | None = 2,
    test_case_workers: int | None = None,
    watchdog: IdleWatchdog | None = None,
) -> Iterator[ExecutionEngine]:
    """Context manager that provides an ExecutionEngine for the scope.

    Example:
        >>> with test_engine(MockDriver()) as engine:
        ...     outcome = engine.execute(interaction)
    """
    engine = ExecutionEngine(
        driver,
        interaction_workers=interaction_workers,
        test_case_workers=test_case_workers,
        watchdog=watchdog,
    )
    try:
        yield engine
    finally:
        engine.shutdown(wait=True)


test_engine.__test__ = False  # type: ignore[attr-defined]

__all__ = [
    "DEFAULT_CLIENT_IDENTITY",
    "DEFAULT_SERVER_IDENTITY",
    "client_features",
    "make_feature_report",
    "mock_driver",
    "server_features",
    "test_engine",
]
