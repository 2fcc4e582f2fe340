"""conformix error taxonomy.

This module defines the error hierarchy used across probing, modeling,
execution and result aggregation. Every error carries a code following the
``conformix:<area>/<name>`` pattern and optional context details.
"""

from __future__ import annotations

from typing import Any


class ConformixError(Exception):
    """Base exception for all conformix errors.

    Attributes:
        code: Error code following the conformix:<area>/<name> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidTransitionError(ConformixError):
    """Raised when a test case result is moved along a transition the state machine forbids.

    Attributes:
        from_state: The current verdict
        to_state: The attempted target verdict
    """

    def __init__(
        self, from_state: str, to_state: str, details: dict[str, Any] | None = None
    ) -> None:
        message = f"Invalid transition from '{from_state}' to '{to_state}'"
        super().__init__(
            code="conformix:results/invalid_transition",
            message=message,
            details={"from_state": from_state, "to_state": to_state, **(details or {})},
        )
        self.from_state = from_state
        self.to_state = to_state


class PreconditionRejection(ConformixError):
    """Raised when a declared test's precondition rejects the probed target.

    The owning test case is finalized as DISABLED with ``reason``.
    """

    def __init__(self, test_id: str, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="conformix:runner/precondition_rejected",
            message=f"Test {test_id} disabled: {reason}",
            details={"test_id": test_id, **(details or {})},
        )
        self.test_id = test_id
        self.reason = reason


class ConformanceAssertionError(ConformixError, AssertionError):
    """Raised by assertion logic when the implementation under test violates a rule.

    This is the expected failure shape and the primary product signal.
    It subclasses AssertionError so plain ``assert`` statements in test bodies
    are classified the same way.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="conformix:assertion/failed",
            message=message,
            details=details or {},
        )


class EngineFailure(ConformixError):
    """Wraps an unexpected internal exception raised while running a test case.

    The test case is still FAILED, but flagged for operator attention.
    """

    def __init__(self, test_id: str, cause: BaseException) -> None:
        super().__init__(
            code="conformix:engine/internal_error",
            message=f"Internal error in {test_id}: {type(cause).__name__}: {cause}",
            details={"test_id": test_id, "exception_type": type(cause).__name__},
        )
        self.test_id = test_id
        self.cause = cause


class ProbingExhaustionError(ConformixError):
    """Raised when every exploratory interaction of client probing failed.

    This is fatal: the run cannot model anything without a capability snapshot.
    """

    def __init__(self, attempted: int, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="conformix:probing/exhausted",
            message=f"Client probing could not be completed: all {attempted} interactions failed",
            details={"attempted": attempted, **(details or {})},
        )
        self.attempted = attempted


class UnsupportedTargetError(ConformixError):
    """Raised when the probed target offers nothing the test suite can exercise."""

    def __init__(self, identity: str, reason: str) -> None:
        super().__init__(
            code="conformix:probing/unsupported_target",
            message=f"Target {identity} cannot be tested: {reason}",
            details={"identity": identity, "reason": reason},
        )
        self.identity = identity
        self.reason = reason


class TransportError(ConformixError):
    """Raised by a protocol driver when a single interaction loses its connection.

    Caught at the interaction boundary and recorded as a TRANSPORT_ERROR outcome.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="conformix:transport/connection_failed",
            message=message,
            details=details or {},
        )


class ParameterAlreadySelectedError(ConformixError):
    """Raised when selecting a value on a derivation parameter that already has one."""

    def __init__(self, parameter_type: str, current: Any, attempted: Any) -> None:
        super().__init__(
            code="conformix:derivation/already_selected",
            message=(
                f"Parameter {parameter_type} already holds {current!r}; "
                f"cannot select {attempted!r}"
            ),
            details={"parameter_type": parameter_type},
        )
        self.parameter_type = parameter_type


class MissingDerivationError(ConformixError):
    """Raised when a container is asked for a dimension the model did not include."""

    def __init__(self, parameter_type: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="conformix:derivation/missing",
            message=f"Parameter of type {parameter_type} was not added by model",
            details={"parameter_type": parameter_type, **(details or {})},
        )
        self.parameter_type = parameter_type
