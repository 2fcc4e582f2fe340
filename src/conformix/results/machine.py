"""Test case verdict state machine.

Example:
    >>> can_transition(Verdict.UNSTARTED, Verdict.RUNNING)
    True
    >>> can_transition(Verdict.FAILED, Verdict.SUCCEEDED)
    False
"""

from conformix.errors import InvalidTransitionError
from conformix.models.enums import Verdict

__all__ = ["Verdict", "can_transition", "check_transition", "VALID_TRANSITIONS"]

VALID_TRANSITIONS: dict[Verdict, set[Verdict]] = {
    # A rejected precondition disables the test before it starts.
    Verdict.UNSTARTED: {Verdict.RUNNING, Verdict.DISABLED, Verdict.FAILED},
    Verdict.RUNNING: {Verdict.SUCCEEDED, Verdict.FAILED},
    Verdict.SUCCEEDED: set(),  # Terminal state
    Verdict.FAILED: set(),  # Terminal state
    Verdict.DISABLED: set(),  # Terminal state
}


def can_transition(from_verdict: Verdict, to_verdict: Verdict) -> bool:
    """Check if a transition from one verdict to another is valid."""
    return to_verdict in VALID_TRANSITIONS.get(from_verdict, set())


def check_transition(from_verdict: Verdict, to_verdict: Verdict, test_id: str) -> None:
    """Validate a transition.

    Raises:
        InvalidTransitionError: If the transition is not valid
    """
    if not can_transition(from_verdict, to_verdict):
        raise InvalidTransitionError(
            from_state=from_verdict.value,
            to_state=to_verdict.value,
            details={"test_id": test_id},
        )
