"""Per-epoch configuration construction.

Each epoch has one strategy that turns the driver's base configuration into a
draft usable for that epoch, optionally narrowed to what a FeatureReport says
the target supports. Callers look the strategy up by epoch instead of
branching on it.
"""

from __future__ import annotations

from typing import Callable

from conformix.models.enums import EndpointDirection, Epoch
from conformix.models.features import FeatureReport
from conformix.protocol.catalog import (
    CipherSuite,
    NamedGroup,
    ProtocolVersion,
    SignatureAlgorithm,
)
from conformix.protocol.config import DraftConfig
from conformix.protocol.driver import ProtocolDriver

ConfigStrategy = Callable[[ProtocolDriver, EndpointDirection, FeatureReport | None], DraftConfig]

DEFAULT_MODERN_KEY_SHARE = NamedGroup.X25519


def _narrow(offered: list, supported: list) -> list:
    narrowed = [item for item in offered if item in supported]
    return narrowed or offered


def build_legacy_config(
    driver: ProtocolDriver,
    direction: EndpointDirection,
    features: FeatureReport | None = None,
) -> DraftConfig:
    config = driver.build_config(Epoch.LEGACY, direction)
    config.highest_version = ProtocolVersion.TLS12
    config.supported_versions = [ProtocolVersion.TLS12]
    config.include_change_cipher_spec = True
    if not config.cipher_suites:
        config.cipher_suites = [s for s in CipherSuite.implemented() if s.epoch is Epoch.LEGACY]
    if not config.named_groups:
        config.named_groups = [group for group in NamedGroup if group.is_elliptic]
    if not config.signature_algorithms:
        config.signature_algorithms = list(SignatureAlgorithm)
    config.key_share_groups = []

    if features is not None:
        config.cipher_suites = _narrow(config.cipher_suites, features.suites_for(Epoch.LEGACY))
        config.named_groups = _narrow(config.named_groups, features.named_groups)
        config.signature_algorithms = _narrow(
            config.signature_algorithms, features.signature_algorithms
        )
    return config


def build_modern_config(
    driver: ProtocolDriver,
    direction: EndpointDirection,
    features: FeatureReport | None = None,
) -> DraftConfig:
    config = driver.build_config(Epoch.MODERN, direction)
    config.highest_version = ProtocolVersion.TLS13
    config.supported_versions = [ProtocolVersion.TLS13]
    if not config.cipher_suites:
        config.cipher_suites = [s for s in CipherSuite.implemented() if s.epoch is Epoch.MODERN]
    if not config.named_groups:
        config.named_groups = [group for group in NamedGroup if group.is_modern]
    if not config.signature_algorithms:
        config.signature_algorithms = [alg for alg in SignatureAlgorithm if alg.is_modern]
    if not config.key_share_groups:
        config.key_share_groups = [DEFAULT_MODERN_KEY_SHARE]

    if features is not None:
        config.cipher_suites = _narrow(config.cipher_suites, features.suites_for(Epoch.MODERN))
        config.named_groups = _narrow(config.named_groups, features.modern_groups)
        config.key_share_groups = _narrow(config.key_share_groups, features.modern_groups)
        config.signature_algorithms = _narrow(
            config.signature_algorithms, features.signature_algorithms
        )
    return config


CONFIG_STRATEGIES: dict[Epoch, ConfigStrategy] = {
    Epoch.LEGACY: build_legacy_config,
    Epoch.MODERN: build_modern_config,
}


def config_for_epoch(
    driver: ProtocolDriver,
    epoch: Epoch,
    direction: EndpointDirection,
    features: FeatureReport | None = None,
) -> DraftConfig:
    """Build a draft configuration through the strategy registered for ``epoch``."""
    return CONFIG_STRATEGIES[epoch](driver, direction, features)
