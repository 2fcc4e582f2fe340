"""Built-in conformance tests.

Each test is declared once per direction; the runner only runs the ones
matching the probed target.
"""

from __future__ import annotations

from conformix.derivation.types import DerivationScope, DerivationType
from conformix.models.enums import EndpointDirection, Epoch, MessageKind, ModelShape
from conformix.models.features import FeatureReport
from conformix.protocol.catalog import AlertDescription
from conformix.protocol.driver import InteractionKind
from conformix.runner.assertions import (
    assert_alert_received,
    assert_executed_as_planned,
    assert_message_received,
)
from conformix.runner.declarations import TestRegistry
from conformix.runner.handle import TestCaseHandle

HAPPY_FLOW = "happyflow"
RECORD_LAYER = "record_layer"


def happy_flow(handle: TestCaseHandle) -> None:
    """A full handshake completes for every combination."""
    trailing: frozenset[MessageKind] = frozenset()
    if handle.epoch is Epoch.MODERN:
        trailing = frozenset({MessageKind.APPLICATION_DATA})
    assert_executed_as_planned(handle.execute(handle.interaction(optional_trailing=trailing)))


def invalid_record_mac(handle: TestCaseHandle) -> None:
    """A record with a flipped authentication tag bit is answered with bad_record_mac."""
    outcome = handle.execute()
    assert_alert_received(outcome, AlertDescription.BAD_RECORD_MAC)


def hello_retry(handle: TestCaseHandle) -> None:
    """A client re-offers a key share for the group forced by a retry request."""
    outcome = handle.execute(handle.interaction(InteractionKind.HELLO_RETRY))
    assert_message_received(outcome, MessageKind.FINISHED)


def _tolerates_fragmentation(features: FeatureReport) -> bool:
    return features.record_fragmentation


def _has_retry_groups(features: FeatureReport) -> bool:
    return bool(features.modern_groups)


def _declare_for(registry: TestRegistry, direction: EndpointDirection) -> None:
    prefix = direction.value
    registry.declare(
        f"{prefix}.modern.happy_flow",
        scope=DerivationScope(
            shape=ModelShape.CERTIFICATE, epoch=Epoch.MODERN, direction=direction
        ),
        tags=[HAPPY_FLOW],
    )(happy_flow)
    registry.declare(
        f"{prefix}.legacy.happy_flow",
        scope=DerivationScope(
            shape=ModelShape.CERTIFICATE, epoch=Epoch.LEGACY, direction=direction
        ),
        tags=[HAPPY_FLOW],
    )(happy_flow)
    registry.declare(
        f"{prefix}.legacy.extension_toggles",
        scope=DerivationScope(
            shape=ModelShape.LENGTHFIELD,
            epoch=Epoch.LEGACY,
            extensions=frozenset({DerivationType.MAX_FRAGMENT_LENGTH}),
            direction=direction,
        ),
        description="Optional extensions can be combined freely in a handshake",
        tags=[HAPPY_FLOW],
    )(happy_flow)
    registry.declare(
        f"{prefix}.modern.additional_padding",
        scope=DerivationScope(
            epoch=Epoch.MODERN,
            extensions=frozenset({DerivationType.ADDITIONAL_PADDING_LENGTH}),
            direction=direction,
        ),
        description="Padded encrypted records are accepted",
        tags=[RECORD_LAYER],
    )(happy_flow)
    registry.declare(
        f"{prefix}.record_fragmentation",
        scope=DerivationScope(
            shape=ModelShape.GENERIC,
            limitations=frozenset({DerivationType.TCP_FRAGMENTATION}),
            direction=direction,
        ),
        precondition=_tolerates_fragmentation,
        disabled_reason="Target does not tolerate fragmented records",
        description="Handshake messages split over short records are reassembled",
        tags=[RECORD_LAYER],
    )(happy_flow)
    registry.declare(
        f"{prefix}.legacy.invalid_record_mac",
        scope=DerivationScope(
            shape=ModelShape.EMPTY,
            epoch=Epoch.LEGACY,
            extensions=frozenset({DerivationType.CIPHER_SUITE, DerivationType.MAC_BITMASK}),
            direction=direction,
        ),
        tags=[RECORD_LAYER],
    )(invalid_record_mac)


def default_registry() -> TestRegistry:
    """Return a fresh registry holding every built-in test."""
    registry = TestRegistry()
    for direction in EndpointDirection:
        _declare_for(registry, direction)
    registry.declare(
        "client.modern.hello_retry",
        scope=DerivationScope(
            shape=ModelShape.EMPTY,
            epoch=Epoch.MODERN,
            extensions=frozenset({DerivationType.CIPHER_SUITE, DerivationType.NAMED_GROUP}),
            direction=EndpointDirection.CLIENT,
        ),
        precondition=_has_retry_groups,
        disabled_reason="Target completes no modern handshake after a retry request",
        tags=[HAPPY_FLOW],
    )(hello_retry)
    return registry
