"""Scope resolution: which dimensions a declared test exercises.

A type is included iff it is in the base set of the scope's shape or in the
scope's extensions, and it is not in the scope's limitations.
"""

from __future__ import annotations

from conformix.derivation.registry import DefaultModelRegistry, ModelRegistry
from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey

_DECLARATION_ORDER = {member: index for index, member in enumerate(DerivationType)}


class ScopeResolver:
    """Resolves a DerivationScope to an ordered list of dimensions.

    Example:
        >>> from conformix.models.enums import ModelShape
        >>> scope = DerivationScope(
        ...     shape=ModelShape.EMPTY,
        ...     extensions=frozenset({DerivationType.CIPHER_SUITE, DerivationType.ALERT}),
        ...     limitations=frozenset({DerivationType.ALERT}),
        ... )
        >>> ScopeResolver().resolve_types(scope)
        [<DerivationType.CIPHER_SUITE: 'CIPHER_SUITE'>]
    """

    def __init__(self, registry: ModelRegistry | None = None) -> None:
        self.registry = registry or DefaultModelRegistry()

    def resolve_types(self, scope: DerivationScope) -> list[DerivationType]:
        """Return included types: base set first, then extensions in declaration order."""
        base = self.registry.base_types(scope.shape, scope.direction, scope.epoch)
        extensions = sorted(scope.extensions, key=_DECLARATION_ORDER.__getitem__)
        ordered = dict.fromkeys([*base, *extensions])
        # Bit index children are never selected directly; they follow their bitmask.
        return [
            derivation_type
            for derivation_type in ordered
            if derivation_type not in scope.limitations
            and derivation_type is not DerivationType.BIT_POSITION
        ]

    def resolve_keys(self, scope: DerivationScope) -> list[ParameterKey]:
        """Return included keys, each bitmask type followed by its bit index child."""
        keys: list[ParameterKey] = []
        for derivation_type in self.resolve_types(scope):
            keys.append(ParameterKey.of(derivation_type))
            if derivation_type.is_bitmask:
                keys.append(ParameterKey.bit_position_of(derivation_type))
        return keys
