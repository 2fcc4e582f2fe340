"""Derivation parameter base class, constraints and the pass-2 side channel.

A DerivationParameter binds a value to one configuration dimension. Unselected
instances enumerate the legal domain for a FeatureReport and scope; selected
instances (created with ``with_value``) edit a DraftConfig.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Generic, TypeVar

from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey
from conformix.errors import ParameterAlreadySelectedError
from conformix.models.features import FeatureReport
from conformix.protocol.catalog import CertificateKeyPair, CipherSuite, NamedGroup
from conformix.protocol.config import DraftConfig

V = TypeVar("V")

_UNSET: Any = object()


def format_value(value: Any) -> str:
    """Render a parameter value the way reports and logs show it."""
    if value is None:
        return "none"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


@dataclass(frozen=True)
class SideChannel:
    """Pass-1 results visible to every parameter during pass 2.

    Attributes:
        selected_cipher_suite: Suite selected once pass 1 finished
        selected_group: Group selected once pass 1 finished
        certificate: Certificate selected once pass 1 finished
        bitmasks: Reconstructed byte masks per bitmask type
    """

    selected_cipher_suite: CipherSuite | None = None
    selected_group: NamedGroup | None = None
    certificate: CertificateKeyPair | None = None
    bitmasks: Mapping[DerivationType, bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class ConditionalConstraint:
    """Excludes value combinations across several dimensions.

    ``allows`` receives the values selected for ``keys`` and returns False
    for combinations that must never be generated.

    Attributes:
        name: Label used in logs
        keys: Every dimension the predicate reads
        allows: Predicate over the selected values
    """

    name: str
    keys: frozenset[ParameterKey]
    allows: Callable[[Mapping[ParameterKey, Any]], bool]

    def is_applicable(self, available: set[ParameterKey] | frozenset[ParameterKey]) -> bool:
        return self.keys <= available

    def is_satisfied(self, values: Mapping[ParameterKey, Any]) -> bool:
        """Evaluate the predicate; constraints with unassigned keys are satisfied."""
        if not self.keys <= values.keys():
            return True
        return bool(self.allows(values))


class DerivationParameter(ABC, Generic[V]):
    """Typed value bound to one DerivationType.

    Subclasses set ``derivation_type`` and implement ``legal_values``; most
    also implement ``apply``. A parameter is immutable once selected.

    Example:
        >>> from conformix.derivation.parameters import CipherSuiteParameter
        >>> param = CipherSuiteParameter().with_value(CipherSuite.TLS_AES_128_GCM_SHA256)
        >>> param.describe()
        'CIPHER_SUITE=TLS_AES_128_GCM_SHA256'
    """

    derivation_type: ClassVar[DerivationType]

    __slots__ = ("_parent", "_value")

    def __init__(self, parent: DerivationType | None = None) -> None:
        self._parent = parent
        self._value: Any = _UNSET

    @property
    def key(self) -> ParameterKey:
        return ParameterKey(self.derivation_type, self._parent)

    @property
    def parent(self) -> DerivationType | None:
        return self._parent

    @property
    def is_selected(self) -> bool:
        return self._value is not _UNSET

    @property
    def selected_value(self) -> V:
        if self._value is _UNSET:
            raise ValueError(f"No value selected for {self.key}")
        return self._value  # type: ignore[no-any-return]

    def with_value(self, value: V) -> DerivationParameter[V]:
        """Return a new instance holding ``value``.

        Raises:
            ParameterAlreadySelectedError: If this instance already holds a value
        """
        if self.is_selected:
            raise ParameterAlreadySelectedError(str(self.key), self._value, value)
        selected = type(self)(self._parent)
        selected._value = value
        return selected

    @abstractmethod
    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[V]:
        """Enumerate values this dimension may take for ``features`` and ``scope``."""

    def can_be_modeled(self, features: FeatureReport, scope: DerivationScope) -> bool:
        return len(self.legal_values(features, scope)) > 0

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        """Pass 1: write the selected value into ``config``."""

    def post_process(
        self, config: DraftConfig, side_channel: SideChannel, features: FeatureReport
    ) -> None:
        """Pass 2: adjust ``config`` once every pass-1 edit has landed."""

    def conditional_constraints(self, scope: DerivationScope) -> list[ConditionalConstraint]:
        return []

    def describe(self) -> str:
        value = format_value(self._value) if self.is_selected else "?"
        return f"{self.key}={value}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DerivationParameter):
            return NotImplemented
        return self.key == other.key and self._value == other._value

    def __hash__(self) -> int:
        return hash((self.key, format_value(self._value) if self.is_selected else None))

