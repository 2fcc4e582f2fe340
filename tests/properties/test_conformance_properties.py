"""Property-based tests for model derivation and verdict bookkeeping.

Invariants: limitations always win over extensions; bitmasks have exactly one
set bit; covering rows cover every feasible t-tuple; terminal verdicts never change.
"""

from __future__ import annotations

import itertools
from typing import Any

from hypothesis import given, settings
from hypothesis import strategies as st

from conformix.derivation.container import build_bitmask
from conformix.derivation.covering import CoveringArrayGenerator
from conformix.derivation.parameter import ConditionalConstraint
from conformix.derivation.scope import ScopeResolver
from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey
from conformix.errors import InvalidTransitionError
from conformix.models.enums import EndpointDirection, Epoch, ModelShape, Verdict
from conformix.results.result import TestCaseResult

KEYS = [
    ParameterKey.of(DerivationType.RECORD_LENGTH),
    ParameterKey.of(DerivationType.TCP_FRAGMENTATION),
    ParameterKey.of(DerivationType.ALERT),
    ParameterKey.of(DerivationType.MAX_FRAGMENT_LENGTH),
]

SUITE = ParameterKey.of(DerivationType.CIPHER_SUITE)
SIGNATURE = ParameterKey.of(DerivationType.SIGNATURE_ALGORITHM)
CERTIFICATE = ParameterKey.of(DerivationType.CERTIFICATE)

KEY_TYPE_CONSTRAINTS = [
    ConditionalConstraint(
        name="signature_matches_suite",
        keys=frozenset({SIGNATURE, SUITE}),
        allows=lambda values: values[SUITE] in ("any", values[SIGNATURE]),
    ),
    ConditionalConstraint(
        name="certificate_matches_suite",
        keys=frozenset({CERTIFICATE, SUITE}),
        allows=lambda values: (
            values[CERTIFICATE] != "dss"
            if values[SUITE] == "any"
            else values[CERTIFICATE] == values[SUITE]
        ),
    ),
]

_TYPES = st.frozensets(st.sampled_from(list(DerivationType)))


class TestScopeProperties:
    """Invariant: a limited type is never part of the model."""

    @given(
        shape=st.sampled_from(list(ModelShape)),
        direction=st.sampled_from(list(EndpointDirection)),
        epoch=st.sampled_from([None, *Epoch]),
        extensions=_TYPES,
        limitations=_TYPES,
    )
    def test_limitation_wins(
        self,
        shape: ModelShape,
        direction: EndpointDirection,
        epoch: Epoch | None,
        extensions: frozenset[DerivationType],
        limitations: frozenset[DerivationType],
    ) -> None:
        scope = DerivationScope(
            shape=shape,
            direction=direction,
            epoch=epoch,
            extensions=extensions,
            limitations=limitations,
        )
        types = ScopeResolver().resolve_types(scope)
        assert not set(types) & limitations
        assert len(types) == len(set(types))
        assert set(extensions - limitations - {DerivationType.BIT_POSITION}) <= set(types)


class TestBitmaskProperties:
    @given(byte_index=st.integers(0, 64), bit_index=st.integers(0, 7))
    def test_single_bit_at_requested_position(self, byte_index: int, bit_index: int) -> None:
        mask = build_bitmask(byte_index, bit_index)
        assert len(mask) == byte_index + 1
        assert mask[byte_index] == 1 << bit_index
        assert sum(bin(byte).count("1") for byte in mask) == 1


class TestCoveringProperties:
    """Property: rows cover every t-way tuple some valid row can hold."""

    @settings(max_examples=50, deadline=None)
    @given(
        sizes=st.lists(st.integers(1, 3), min_size=1, max_size=4),
        strength=st.integers(1, 3),
        seed=st.integers(0, 10),
    )
    def test_every_tuple_covered(self, sizes: list[int], strength: int, seed: int) -> None:
        domains: dict[ParameterKey, list[Any]] = {
            key: list(range(size)) for key, size in zip(KEYS, sizes)
        }
        generator = CoveringArrayGenerator(domains, strength=strength, seed=seed)
        rows = generator.generate()

        t = min(strength, len(domains))
        for columns in itertools.combinations(domains, t):
            seen = {tuple(row[key] for key in columns) for row in rows}
            assert seen == set(itertools.product(*(domains[key] for key in columns)))
        assert generator.coverage(rows).ratio == 1.0

    @settings(max_examples=30, deadline=None)
    @given(
        suites=st.lists(
            st.sampled_from(["rsa", "ecdsa", "any"]), min_size=1, max_size=3, unique=True
        ),
        extra=st.integers(0, 2),
        strength=st.integers(1, 4),
        seed=st.integers(0, 10),
    )
    def test_every_feasible_tuple_covered_under_key_type_constraints(
        self, suites: list[str], extra: int, strength: int, seed: int
    ) -> None:
        """Property: constrained rows cover exactly the tuples some valid row holds."""
        domains: dict[ParameterKey, list[Any]] = {
            SUITE: suites,
            SIGNATURE: ["rsa", "ecdsa"],
            CERTIFICATE: ["rsa", "ecdsa", "dss"],
        }
        for key in KEYS[:extra]:
            domains[key] = [0, 1]
        generator = CoveringArrayGenerator(
            domains, strength=strength, constraints=KEY_TYPE_CONSTRAINTS, seed=seed
        )
        rows = generator.generate()

        t = generator.strength
        full_rows = [dict(zip(domains, values)) for values in itertools.product(*domains.values())]
        valid_rows = [
            row
            for row in full_rows
            if all(constraint.is_satisfied(row) for constraint in KEY_TYPE_CONSTRAINTS)
        ]
        for columns in itertools.combinations(domains, t):
            seen = {tuple(row[key] for key in columns) for row in rows}
            assert seen == {tuple(row[key] for key in columns) for row in valid_rows}


_OPERATIONS = st.lists(
    st.sampled_from(["start", "record", "record_error", "fail", "disable", "finalize"]),
    max_size=12,
)


class TestVerdictProperties:
    """Invariant: once terminal, a test case verdict never changes."""

    @given(operations=_OPERATIONS, expected=st.integers(1, 3))
    def test_terminal_verdict_is_final(self, operations: list[str], expected: int) -> None:
        result = TestCaseResult("prop", None, EndpointDirection.SERVER)
        terminal: Verdict | None = None
        for operation in operations:
            try:
                if operation == "start":
                    result.start(expected)
                elif operation == "record":
                    result.record(None)
                elif operation == "record_error":
                    result.record(None, AssertionError("broken"))
                elif operation == "fail":
                    result.fail(RuntimeError("internal"))
                elif operation == "disable":
                    result.disable("not applicable")
                else:
                    result.finalize()
            except InvalidTransitionError:
                pass
            if terminal is not None:
                assert result.verdict is terminal
            elif result.verdict.is_terminal():
                terminal = result.verdict
