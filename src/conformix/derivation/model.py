"""Combinatorial model construction.

ModelBuilder turns a DerivationScope and a FeatureReport into a
ParameterModel:

1. resolve the included keys (ScopeResolver),
2. drop keys whose parameter cannot be modeled, promote single-valued
   domains to static assignments,
3. keep only constraints whose referenced keys all survived,
4. iterate the value list directly when a single dimension is left
   ("simple model"), otherwise request a covering array at the scope's
   strength.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from conformix.derivation.covering import CoveringArrayGenerator
from conformix.derivation.parameter import ConditionalConstraint, DerivationParameter
from conformix.derivation.parameters import create_parameter
from conformix.derivation.registry import ModelRegistry
from conformix.derivation.scope import ScopeResolver
from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey
from conformix.models.features import FeatureReport
from conformix.observability import get_logger

logger = get_logger(__name__)

DEFAULT_STRENGTH = 4


class Combination:
    """Exactly one selected parameter per included key, in registration order.

    Raises:
        ValueError: On duplicate keys or unselected parameters
    """

    __slots__ = ("_parameters",)

    def __init__(self, parameters: Iterable[DerivationParameter[Any]]) -> None:
        ordered: dict[ParameterKey, DerivationParameter[Any]] = {}
        for parameter in parameters:
            if not parameter.is_selected:
                raise ValueError(f"Parameter {parameter.key} has no selected value")
            if parameter.key in ordered:
                raise ValueError(f"Duplicate parameter {parameter.key} in combination")
            ordered[parameter.key] = parameter
        self._parameters = ordered

    def get(self, key: ParameterKey) -> DerivationParameter[Any] | None:
        return self._parameters.get(key)

    def keys(self) -> list[ParameterKey]:
        return list(self._parameters)

    def values(self) -> dict[ParameterKey, Any]:
        return {key: parameter.selected_value for key, parameter in self._parameters.items()}

    def types(self) -> set[DerivationType]:
        return {key.type for key in self._parameters}

    def describe(self) -> str:
        """Stable description used in outcomes, reports and logs."""
        if not self._parameters:
            return "<no derivations>"
        return ", ".join(parameter.describe() for parameter in self._parameters.values())

    def __iter__(self) -> Iterator[DerivationParameter[Any]]:
        return iter(self._parameters.values())

    def __len__(self) -> int:
        return len(self._parameters)

    def __contains__(self, key: object) -> bool:
        return key in self._parameters

    def __repr__(self) -> str:
        return f"Combination({self.describe()})"


@dataclass
class ParameterModel:
    """A resolved model ready to produce combinations.

    Attributes:
        scope: Scope the model was built for
        keys: Every surviving key in registration order
        dimensions: Domains of the keys varied by the search
        statics: Single-valued keys, applied to every combination
        constraints: Retained constraints
        strength: Covering strength after clamping
    """

    scope: DerivationScope
    keys: list[ParameterKey]
    dimensions: dict[ParameterKey, list[Any]]
    statics: dict[ParameterKey, DerivationParameter[Any]]
    constraints: list[ConditionalConstraint]
    strength: int
    seed: int = 0
    _combinations: list[Combination] | None = field(default=None, repr=False)

    @property
    def is_simple(self) -> bool:
        return len(self.dimensions) == 1

    @property
    def static_values(self) -> dict[ParameterKey, Any]:
        return {key: parameter.selected_value for key, parameter in self.statics.items()}

    def _rows(self) -> list[dict[ParameterKey, Any]]:
        fixed = self.static_values
        if not self.dimensions:
            if all(constraint.is_satisfied(fixed) for constraint in self.constraints):
                return [{}]
            return []
        if self.is_simple:
            (key, domain), = self.dimensions.items()
            rows = []
            for value in domain:
                values = {**fixed, key: value}
                if all(constraint.is_satisfied(values) for constraint in self.constraints):
                    rows.append({key: value})
            return rows
        generator = CoveringArrayGenerator(
            self.dimensions,
            strength=self.strength,
            constraints=self.constraints,
            fixed=fixed,
            seed=self.seed,
        )
        return generator.generate()

    def _materialize(self, row: dict[ParameterKey, Any]) -> Combination:
        parameters = []
        for key in self.keys:
            if key in self.statics:
                parameters.append(self.statics[key])
            else:
                parameters.append(create_parameter(key).with_value(row[key]))
        return Combination(parameters)

    def combinations(self) -> list[Combination]:
        """Return the combinations of the model; computed once and cached."""
        if self._combinations is None:
            self._combinations = [self._materialize(row) for row in self._rows()]
        return list(self._combinations)

    @property
    def planned_count(self) -> int:
        return len(self.combinations())


class ModelBuilder:
    """Builds ParameterModels for declared tests.

    Example:
        >>> builder = ModelBuilder()
        >>> model = builder.build(scope, features)
        >>> [c.describe() for c in model.combinations()]
        ['CIPHER_SUITE=TLS_AES_128_GCM_SHA256', 'CIPHER_SUITE=TLS_RSA_WITH_AES_128_CBC_SHA']
    """

    def __init__(
        self,
        registry: ModelRegistry | None = None,
        default_strength: int = DEFAULT_STRENGTH,
        seed: int = 0,
    ) -> None:
        self.resolver = ScopeResolver(registry)
        self.default_strength = default_strength
        self.seed = seed

    def build(self, scope: DerivationScope, features: FeatureReport) -> ParameterModel:
        keys: list[ParameterKey] = []
        parameters: dict[ParameterKey, DerivationParameter[Any]] = {}
        dimensions: dict[ParameterKey, list[Any]] = {}
        statics: dict[ParameterKey, DerivationParameter[Any]] = {}

        for key in self.resolver.resolve_keys(scope):
            if key.parent is not None and ParameterKey.of(key.parent) not in parameters:
                continue
            parameter = create_parameter(key)
            if not parameter.can_be_modeled(features, scope):
                logger.debug("conformix.model.dropped", key=str(key), reason="cannot_be_modeled")
                continue
            values = parameter.legal_values(features, scope)
            if not values:
                continue
            keys.append(key)
            parameters[key] = parameter
            if len(values) == 1:
                statics[key] = parameter.with_value(values[0])
            else:
                dimensions[key] = values

        available = set(keys)
        constraints: list[ConditionalConstraint] = []
        for parameter in parameters.values():
            for constraint in parameter.conditional_constraints(scope):
                if constraint.is_applicable(available):
                    constraints.append(constraint)
                else:
                    logger.debug("conformix.model.constraint_dropped", constraint=constraint.name)

        strength = min(scope.effective_strength(self.default_strength), max(len(dimensions), 1))
        model = ParameterModel(
            scope=scope,
            keys=keys,
            dimensions=dimensions,
            statics=statics,
            constraints=constraints,
            strength=strength,
            seed=self.seed,
        )
        logger.debug(
            "conformix.model.built",
            dimensions=[str(key) for key in dimensions],
            statics=[str(key) for key in statics],
            constraints=len(constraints),
            strength=strength,
            simple=model.is_simple,
        )
        return model
