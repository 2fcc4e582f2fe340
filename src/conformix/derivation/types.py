"""Derivation types, parameter keys and test scopes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import Field

from conformix.models.base import ConformixBaseModel
from conformix.models.enums import EndpointDirection, Epoch, ModelShape


class DerivationType(str, Enum):
    """Tag for one configuration dimension."""

    CIPHER_SUITE = "CIPHER_SUITE"
    NAMED_GROUP = "NAMED_GROUP"
    RECORD_LENGTH = "RECORD_LENGTH"
    TCP_FRAGMENTATION = "TCP_FRAGMENTATION"
    INCLUDE_CHANGE_CIPHER_SPEC = "INCLUDE_CHANGE_CIPHER_SPEC"
    INCLUDE_ENCRYPT_THEN_MAC_EXTENSION = "INCLUDE_ENCRYPT_THEN_MAC_EXTENSION"
    INCLUDE_EXTENDED_MASTER_SECRET_EXTENSION = "INCLUDE_EXTENDED_MASTER_SECRET_EXTENSION"
    INCLUDE_RENEGOTIATION_EXTENSION = "INCLUDE_RENEGOTIATION_EXTENSION"
    INCLUDE_PADDING_EXTENSION = "INCLUDE_PADDING_EXTENSION"
    MAX_FRAGMENT_LENGTH = "MAX_FRAGMENT_LENGTH"
    ADDITIONAL_PADDING_LENGTH = "ADDITIONAL_PADDING_LENGTH"
    MAC_BITMASK = "MAC_BITMASK"
    BIT_POSITION = "BIT_POSITION"
    SIGNATURE_ALGORITHM = "SIGNATURE_ALGORITHM"
    CERTIFICATE = "CERTIFICATE"
    ALERT = "ALERT"

    @property
    def is_bitmask(self) -> bool:
        """Whether the type selects a byte index that needs a bit index child."""
        return "BITMASK" in self.value


@dataclass(frozen=True)
class ParameterKey:
    """Identifies one dimension of a model.

    A bit index child is keyed by ``BIT_POSITION`` plus the bitmask type it
    belongs to, so two bitmask dimensions can coexist in one model.

    Example:
        >>> str(ParameterKey(DerivationType.BIT_POSITION, DerivationType.MAC_BITMASK))
        'BIT_POSITION<MAC_BITMASK>'
    """

    type: DerivationType
    parent: DerivationType | None = None

    def __str__(self) -> str:
        if self.parent is None:
            return self.type.value
        return f"{self.type.value}<{self.parent.value}>"

    @classmethod
    def of(cls, derivation_type: DerivationType) -> ParameterKey:
        return cls(derivation_type)

    @classmethod
    def bit_position_of(cls, bitmask_type: DerivationType) -> ParameterKey:
        if not bitmask_type.is_bitmask:
            raise ValueError(f"{bitmask_type.value} is not a bitmask type")
        return cls(DerivationType.BIT_POSITION, bitmask_type)


class DerivationScope(ConformixBaseModel):
    """Which dimensions a declared test exercises.

    Attributes:
        shape: Base set of dimensions, looked up in the model registry
        extensions: Types added on top of the base set
        limitations: Types removed; a limitation wins over an extension
        strength: Covering strength, None to use the run default
        manual_types: Types the test body applies itself
        direction: Role of the implementation under test
        epoch: Epoch gate of the test, None when the test is epoch-agnostic
    """

    shape: ModelShape = ModelShape.GENERIC
    extensions: frozenset[DerivationType] = Field(default_factory=frozenset)
    limitations: frozenset[DerivationType] = Field(default_factory=frozenset)
    strength: int | None = Field(default=None, ge=1)
    manual_types: frozenset[DerivationType] = Field(default_factory=frozenset)
    direction: EndpointDirection = EndpointDirection.SERVER
    epoch: Epoch | None = None

    def effective_strength(self, default: int) -> int:
        return self.strength if self.strength is not None else default

    def is_manual(self, key: ParameterKey) -> bool:
        """Manual types and the bit index children of manual bitmasks are manual."""
        if key.type in self.manual_types:
            return True
        return key.parent is not None and key.parent in self.manual_types

    def is_epoch(self, epoch: Epoch) -> bool:
        """Whether the test may run in ``epoch``."""
        return self.epoch is None or self.epoch is epoch
