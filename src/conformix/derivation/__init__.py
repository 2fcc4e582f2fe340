"""Derivation and combinatorial modeling engine.

Example:
    >>> from conformix.derivation import DerivationScope, ModelBuilder
    >>> model = ModelBuilder().build(DerivationScope(), features)
    >>> for combination in model.combinations():
    ...     container = DerivationContainer(combination, model.scope, features)
    ...     container.apply_to(config)
"""

from conformix.derivation.container import DerivationContainer, build_bitmask
from conformix.derivation.covering import CoverageStats, CoveringArrayGenerator
from conformix.derivation.model import Combination, ModelBuilder, ParameterModel
from conformix.derivation.parameter import (
    ConditionalConstraint,
    DerivationParameter,
    SideChannel,
)
from conformix.derivation.parameters import PARAMETER_TYPES, create_parameter
from conformix.derivation.registry import DefaultModelRegistry, ModelRegistry
from conformix.derivation.scope import ScopeResolver
from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey

__all__ = [
    "PARAMETER_TYPES",
    "Combination",
    "ConditionalConstraint",
    "CoverageStats",
    "CoveringArrayGenerator",
    "DefaultModelRegistry",
    "DerivationContainer",
    "DerivationParameter",
    "DerivationScope",
    "DerivationType",
    "ModelBuilder",
    "ModelRegistry",
    "ParameterKey",
    "ParameterModel",
    "ScopeResolver",
    "SideChannel",
    "build_bitmask",
    "create_parameter",
]
