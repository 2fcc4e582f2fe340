"""Model registry: base dimension sets per model shape.

The scope resolver asks a ModelRegistry for the base set of a shape instead
of hardcoding it, so a test suite can swap in its own registry.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from conformix.derivation.types import DerivationType
from conformix.models.enums import EndpointDirection, Epoch, ModelShape

_LEGACY_EXTENSION_TOGGLES = (
    DerivationType.INCLUDE_ENCRYPT_THEN_MAC_EXTENSION,
    DerivationType.INCLUDE_EXTENDED_MASTER_SECRET_EXTENSION,
    DerivationType.INCLUDE_RENEGOTIATION_EXTENSION,
    DerivationType.INCLUDE_PADDING_EXTENSION,
)


@runtime_checkable
class ModelRegistry(Protocol):
    def base_types(
        self, shape: ModelShape, direction: EndpointDirection, epoch: Epoch | None
    ) -> list[DerivationType]:
        """Return the base dimensions of ``shape``, in registration order."""
        ...


class DefaultModelRegistry:
    """Base sets used by the built-in test declarations.

    Example:
        >>> DefaultModelRegistry().base_types(
        ...     ModelShape.EMPTY, EndpointDirection.SERVER, Epoch.LEGACY
        ... )
        []
    """

    def base_types(
        self, shape: ModelShape, direction: EndpointDirection, epoch: Epoch | None
    ) -> list[DerivationType]:
        if epoch is None:
            merged = [
                *self.base_types(shape, direction, Epoch.MODERN),
                *self.base_types(shape, direction, Epoch.LEGACY),
            ]
            return list(dict.fromkeys(merged))

        if shape is ModelShape.EMPTY:
            return []
        if shape is ModelShape.GENERIC:
            return self._generic(epoch)
        if shape is ModelShape.CERTIFICATE:
            types = self._generic(epoch)
            if direction is EndpointDirection.CLIENT:
                types.append(DerivationType.CERTIFICATE)
            types.append(DerivationType.SIGNATURE_ALGORITHM)
            return types
        if shape is ModelShape.LENGTHFIELD:
            types = [DerivationType.CIPHER_SUITE, DerivationType.NAMED_GROUP]
            if epoch is Epoch.MODERN:
                types.append(DerivationType.INCLUDE_CHANGE_CIPHER_SPEC)
            else:
                types.extend(_LEGACY_EXTENSION_TOGGLES)
            return types
        raise ValueError(f"Unknown model shape: {shape}")

    def _generic(self, epoch: Epoch) -> list[DerivationType]:
        types = [
            DerivationType.CIPHER_SUITE,
            DerivationType.NAMED_GROUP,
            DerivationType.RECORD_LENGTH,
            DerivationType.TCP_FRAGMENTATION,
        ]
        if epoch is Epoch.MODERN:
            types.append(DerivationType.INCLUDE_CHANGE_CIPHER_SPEC)
        return types
