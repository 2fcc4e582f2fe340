"""Declared conformance tests and the table that holds them."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from conformix.derivation.types import DerivationScope
from conformix.models.enums import EndpointDirection, Epoch
from conformix.models.features import FeatureReport

if TYPE_CHECKING:
    from conformix.runner.handle import TestCaseHandle

TestBody = Callable[["TestCaseHandle"], None]
Precondition = Callable[[FeatureReport], bool]


@dataclass(frozen=True)
class TestDeclaration:
    """One declared conformance test.

    Attributes:
        identifier: Unique test id
        body: Callable run once per combination with a TestCaseHandle
        scope: Dimensions the test exercises; also carries its epoch gate
            and direction
        precondition: Decides from the FeatureReport whether the test
            applies; may raise PreconditionRejection to give a reason
        disabled_reason: Reason recorded when the precondition returns False
        description: One-line summary shown in reports
        tags: Free-form labels used to select tests
    """

    __test__ = False

    identifier: str
    body: TestBody
    scope: DerivationScope = field(default_factory=DerivationScope)
    precondition: Precondition | None = None
    disabled_reason: str | None = None
    description: str = ""
    tags: frozenset[str] = frozenset()

    @property
    def epoch(self) -> Epoch | None:
        return self.scope.epoch

    @property
    def direction(self) -> EndpointDirection:
        return self.scope.direction


class TestRegistry:
    """Explicit table of declared tests, in declaration order.

    Example:
        >>> registry = TestRegistry()
        >>> @registry.declare("server.happy_flow", scope=DerivationScope(epoch=Epoch.MODERN))
        ... def happy_flow(handle: TestCaseHandle) -> None:
        ...     assert_executed_as_planned(handle.execute())
    """

    __test__ = False

    def __init__(self, declarations: Iterable[TestDeclaration] = ()) -> None:
        self._declarations: dict[str, TestDeclaration] = {}
        for declaration in declarations:
            self.register(declaration)

    def register(self, declaration: TestDeclaration) -> TestDeclaration:
        """Add ``declaration``.

        Raises:
            ValueError: If the identifier is already declared
        """
        if declaration.identifier in self._declarations:
            raise ValueError(f"Test {declaration.identifier} is already declared")
        self._declarations[declaration.identifier] = declaration
        return declaration

    def declare(
        self,
        identifier: str,
        *,
        scope: DerivationScope | None = None,
        precondition: Precondition | None = None,
        disabled_reason: str | None = None,
        description: str = "",
        tags: Iterable[str] = (),
    ) -> Callable[[TestBody], TestBody]:
        """Decorator registering the decorated function as a test body."""

        def decorator(body: TestBody) -> TestBody:
            self.register(
                TestDeclaration(
                    identifier=identifier,
                    body=body,
                    scope=scope or DerivationScope(),
                    precondition=precondition,
                    disabled_reason=disabled_reason,
                    description=description or (body.__doc__ or "").strip().split("\n")[0],
                    tags=frozenset(tags),
                )
            )
            return body

        return decorator

    def get(self, identifier: str) -> TestDeclaration | None:
        return self._declarations.get(identifier)

    def filter(
        self,
        direction: EndpointDirection | None = None,
        tags: Iterable[str] = (),
    ) -> list[TestDeclaration]:
        """Declarations for ``direction`` carrying any of ``tags`` (all when empty)."""
        wanted = set(tags)
        return [
            declaration
            for declaration in self._declarations.values()
            if (direction is None or declaration.direction is direction)
            and (not wanted or wanted & declaration.tags)
        ]

    def __iter__(self) -> Iterator[TestDeclaration]:
        return iter(list(self._declarations.values()))

    def __len__(self) -> int:
        return len(self._declarations)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._declarations
