"""Constrained t-way covering array generation.

A greedy, one-row-at-a-time generator: every row starts from a still
uncovered t-tuple and each remaining dimension takes the value covering the
most uncovered tuples without violating a constraint. Rows never violate a
constraint. When the greedy pass cannot complete a tuple, a backtracking
search over the constrained dimensions decides whether any valid row holds
it; only tuples without one are reported as infeasible and skipped. The
generator is deterministic for a given seed.
"""

from __future__ import annotations

import itertools
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from conformix.derivation.parameter import ConditionalConstraint
from conformix.derivation.types import ParameterKey
from conformix.observability import get_logger

logger = get_logger(__name__)

# (dimension indices, value indices)
_Tuple = tuple[tuple[int, ...], tuple[int, ...]]

ROW_ATTEMPTS = 3


@dataclass(frozen=True)
class CoverageStats:
    """How much of the required t-tuple space a set of rows covers."""

    strength: int
    required: int
    covered: int
    infeasible: int
    rows: int

    @property
    def ratio(self) -> float:
        if self.required == 0:
            return 1.0
        return self.covered / self.required


class CoveringArrayGenerator:
    """Generates rows covering every valid t-way value tuple.

    Args:
        domains: Values per dimension, in model order
        strength: Interaction strength t, clamped to the number of dimensions
        constraints: Constraints every row must satisfy
        fixed: Static assignments visible to constraints but never varied
        seed: Seed for the dimension visiting order

    Example:
        >>> from conformix.derivation.types import DerivationType
        >>> a = ParameterKey.of(DerivationType.RECORD_LENGTH)
        >>> b = ParameterKey.of(DerivationType.TCP_FRAGMENTATION)
        >>> rows = CoveringArrayGenerator({a: [1, 50], b: [False, True]}, strength=2).generate()
        >>> len(rows)
        4
    """

    def __init__(
        self,
        domains: Mapping[ParameterKey, Sequence[Any]],
        strength: int,
        constraints: Sequence[ConditionalConstraint] = (),
        fixed: Mapping[ParameterKey, Any] | None = None,
        seed: int = 0,
    ) -> None:
        if strength < 1:
            raise ValueError(f"strength must be >= 1, got {strength}")
        for key, values in domains.items():
            if not values:
                raise ValueError(f"Dimension {key} has an empty domain")

        self.keys = list(domains)
        self.domains = [list(domains[key]) for key in self.keys]
        self.strength = min(strength, len(self.keys)) if self.keys else 0
        self.constraints = list(constraints)
        self.fixed = dict(fixed or {})
        self.seed = seed
        self._infeasible = 0

    def _values(self, row: Mapping[int, int]) -> dict[ParameterKey, Any]:
        values = dict(self.fixed)
        for index, value_index in row.items():
            values[self.keys[index]] = self.domains[index][value_index]
        return values

    def is_valid(self, row: Mapping[int, int]) -> bool:
        """Check a (partial) row against every constraint whose keys are assigned."""
        values = self._values(row)
        return all(constraint.is_satisfied(values) for constraint in self.constraints)

    def required_tuples(self) -> set[_Tuple]:
        """Enumerate every t-tuple that does not itself violate a constraint."""
        required: set[_Tuple] = set()
        if self.strength == 0:
            return required
        for columns in itertools.combinations(range(len(self.keys)), self.strength):
            ranges = [range(len(self.domains[index])) for index in columns]
            for value_indices in itertools.product(*ranges):
                if self.is_valid(dict(zip(columns, value_indices))):
                    required.add((columns, value_indices))
        return required

    def _tuples_of(self, row: Mapping[int, int]) -> set[_Tuple]:
        return {
            (columns, tuple(row[index] for index in columns))
            for columns in itertools.combinations(sorted(row), self.strength)
        }

    def _gain(self, row: Mapping[int, int], index: int, uncovered: set[_Tuple]) -> int:
        others = sorted(i for i in row if i != index)
        gain = 0
        for subset in itertools.combinations(others, self.strength - 1):
            columns = tuple(sorted((*subset, index)))
            if (columns, tuple(row[i] for i in columns)) in uncovered:
                gain += 1
        return gain

    def _complete(
        self, seed_tuple: _Tuple, uncovered: set[_Tuple], rng: random.Random
    ) -> dict[int, int] | None:
        row = dict(zip(*seed_tuple))
        remaining = [index for index in range(len(self.keys)) if index not in row]
        rng.shuffle(remaining)
        for index in remaining:
            best: int | None = None
            best_gain = -1
            for value_index in range(len(self.domains[index])):
                row[index] = value_index
                if self.is_valid(row):
                    gain = self._gain(row, index, uncovered)
                    if gain > best_gain:
                        best, best_gain = value_index, gain
                del row[index]
            if best is None:
                return None
            row[index] = best
        return row

    def _components(self, indices: Sequence[int]) -> list[list[int]]:
        """Group ``indices`` into sets of dimensions linked through constraints."""
        position = {key: index for index, key in enumerate(self.keys)}
        parent = {index: index for index in indices}

        def find(index: int) -> int:
            while parent[index] != index:
                parent[index] = parent[parent[index]]
                index = parent[index]
            return index

        for constraint in self.constraints:
            linked = [position[key] for key in constraint.keys if position.get(key) in parent]
            for other in linked[1:]:
                parent[find(other)] = find(linked[0])
        groups: dict[int, list[int]] = {}
        for index in indices:
            groups.setdefault(find(index), []).append(index)
        return list(groups.values())

    def _search(self, seed_tuple: _Tuple, uncovered: set[_Tuple]) -> dict[int, int] | None:
        """Exhaustively look for a valid row holding ``seed_tuple``.

        Dimensions no constraint reads cannot invalidate a row and are filled
        greedily. The others are searched one linked group at a time, since
        assignments in one group never affect the constraints of another.
        """
        row = dict(zip(*seed_tuple))
        constrained_keys: set[ParameterKey] = set()
        for constraint in self.constraints:
            constrained_keys |= constraint.keys
        open_indices = [index for index in range(len(self.keys)) if index not in row]
        branching = [index for index in open_indices if self.keys[index] in constrained_keys]

        def assign(group: list[int], position: int) -> bool:
            if position == len(group):
                return True
            index = group[position]
            candidates = []
            for value_index in range(len(self.domains[index])):
                row[index] = value_index
                if self.is_valid(row):
                    candidates.append((-self._gain(row, index, uncovered), value_index))
                del row[index]
            for _, value_index in sorted(candidates):
                row[index] = value_index
                if assign(group, position + 1):
                    return True
                del row[index]
            return False

        for group in self._components(branching):
            group.sort(key=lambda index: len(self.domains[index]))
            if not assign(group, 0):
                return None
        for index in open_indices:
            if index in row:
                continue
            gains = []
            for value_index in range(len(self.domains[index])):
                row[index] = value_index
                gains.append((self._gain(row, index, uncovered), -value_index))
            row[index] = -max(gains)[1]
        return row

    def generate(self) -> list[dict[ParameterKey, Any]]:
        """Return rows as ``{key: value}`` dicts, covering all feasible tuples."""
        if not self.keys:
            return [{}]

        rng = random.Random(self.seed)
        uncovered = self.required_tuples()
        rows: list[dict[int, int]] = []
        self._infeasible = 0

        while uncovered:
            seed_tuple = min(uncovered)
            row = None
            for _ in range(ROW_ATTEMPTS):
                row = self._complete(seed_tuple, uncovered, rng)
                if row is not None:
                    break
            if row is None:
                row = self._search(seed_tuple, uncovered)
            if row is None:
                uncovered.discard(seed_tuple)
                self._infeasible += 1
                logger.debug(
                    "conformix.covering.infeasible_tuple",
                    columns=[str(self.keys[i]) for i in seed_tuple[0]],
                )
                continue
            uncovered -= self._tuples_of(row)
            rows.append(row)

        logger.debug(
            "conformix.covering.generated",
            dimensions=len(self.keys),
            strength=self.strength,
            rows=len(rows),
            infeasible=self._infeasible,
        )
        return [{self.keys[i]: self.domains[i][v] for i, v in sorted(row.items())} for row in rows]

    def coverage(self, rows: Sequence[Mapping[ParameterKey, Any]]) -> CoverageStats:
        """Measure how many required tuples ``rows`` cover."""
        required = self.required_tuples()
        covered: set[_Tuple] = set()
        for values in rows:
            row = {
                index: self.domains[index].index(values[key])
                for index, key in enumerate(self.keys)
                if key in values
            }
            covered |= self._tuples_of(row) & required
        return CoverageStats(
            strength=self.strength,
            required=len(required),
            covered=len(covered),
            infeasible=self._infeasible,
            rows=len(rows),
        )
