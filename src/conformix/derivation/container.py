"""Derivation Container: materializes one combination into a DraftConfig.

Application runs in two passes over every auto-apply parameter, in
registration order:

- pass 1: ``apply(config)``
- pass 2: ``post_process(config, side_channel)``, where the SideChannel is a
  frozen snapshot taken after pass 1

Parameters of manual types (and the bit index children of manual bitmasks)
are skipped in both passes; the test body applies them itself.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any

from conformix.derivation.model import Combination
from conformix.derivation.parameter import DerivationParameter, SideChannel
from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey
from conformix.errors import MissingDerivationError
from conformix.models.features import FeatureReport
from conformix.protocol.config import DraftConfig


def build_bitmask(byte_index: int, bit_index: int) -> bytes:
    """Return ``byte_index + 1`` bytes whose only set bit is ``bit_index`` of the last byte.

    Example:
        >>> build_bitmask(2, 3)
        b'\\x00\\x00\\x08'
        >>> build_bitmask(0, 0)
        b'\\x01'
    """
    if byte_index < 0:
        raise ValueError(f"byte_index must be >= 0, got {byte_index}")
    if not 0 <= bit_index <= 7:
        raise ValueError(f"bit_index must be within 0..7, got {bit_index}")
    mask = bytearray(byte_index + 1)
    mask[byte_index] = 1 << bit_index
    return bytes(mask)


class DerivationContainer:
    """One materialized combination for one declared test."""

    def __init__(
        self, combination: Combination, scope: DerivationScope, features: FeatureReport
    ) -> None:
        self.combination = combination
        self.scope = scope
        self.features = features

    def get(
        self, derivation_type: DerivationType, parent: DerivationType | None = None
    ) -> DerivationParameter[Any]:
        """Return the selected parameter of ``derivation_type``.

        Raises:
            MissingDerivationError: If the model did not include the type
        """
        parameter = self.combination.get(ParameterKey(derivation_type, parent))
        if parameter is None:
            raise MissingDerivationError(
                derivation_type.value, details={"combination": self.describe()}
            )
        return parameter

    def value(self, derivation_type: DerivationType, parent: DerivationType | None = None) -> Any:
        return self.get(derivation_type, parent).selected_value

    def has(self, derivation_type: DerivationType) -> bool:
        return ParameterKey.of(derivation_type) in self.combination

    def build_bitmask(self, bitmask_type: DerivationType) -> bytes:
        """Reconstruct the byte mask selected for ``bitmask_type`` and its bit index child."""
        byte_index = self.value(bitmask_type)
        bit_index = self.value(DerivationType.BIT_POSITION, bitmask_type)
        return build_bitmask(byte_index, bit_index)

    def auto_apply_parameters(self) -> list[DerivationParameter[Any]]:
        return [p for p in self.combination if not self.scope.is_manual(p.key)]

    def _side_channel(self, config: DraftConfig) -> SideChannel:
        bitmasks: dict[DerivationType, bytes] = {}
        for parameter in self.auto_apply_parameters():
            key = parameter.key
            if key.parent is None and key.type.is_bitmask:
                if ParameterKey.bit_position_of(key.type) in self.combination:
                    bitmasks[key.type] = self.build_bitmask(key.type)
        return SideChannel(
            selected_cipher_suite=config.selected_cipher_suite,
            selected_group=config.selected_group,
            certificate=config.certificate,
            bitmasks=MappingProxyType(bitmasks),
        )

    def apply_to(self, config: DraftConfig) -> SideChannel:
        """Run both passes on ``config`` and return the side channel pass 2 saw."""
        parameters = self.auto_apply_parameters()
        for parameter in parameters:
            parameter.apply(config, self.features)
        side_channel = self._side_channel(config)
        for parameter in parameters:
            parameter.post_process(config, side_channel, self.features)
        return side_channel

    def describe(self) -> str:
        return self.combination.describe()
