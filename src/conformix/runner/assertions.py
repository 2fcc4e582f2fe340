"""Assertion helpers for test bodies.

Failures raise ConformanceAssertionError, which the runner records as a
regular test failure rather than an engine failure.
"""

from __future__ import annotations

from conformix.errors import ConformanceAssertionError
from conformix.models.enums import MessageKind
from conformix.models.messages import AlertMessage
from conformix.models.outcome import RunOutcome
from conformix.protocol.catalog import AlertDescription


def assert_executed_as_planned(outcome: RunOutcome) -> None:
    """The interaction ran exactly as planned."""
    if not outcome.executed_as_planned:
        raise ConformanceAssertionError(
            f"Interaction did not execute as planned ({outcome.kind.value}): "
            f"{outcome.cause or 'no cause recorded'}",
            details={"interaction": outcome.description, "trace": outcome.trace()},
        )


def assert_message_received(outcome: RunOutcome, kind: MessageKind) -> None:
    if not outcome.received(kind):
        raise ConformanceAssertionError(
            f"Expected a {kind.value} message, received: {outcome.trace() or 'nothing'}",
            details={"interaction": outcome.description, "expected": kind.value},
        )


def assert_alert_received(
    outcome: RunOutcome,
    description: AlertDescription | None = None,
    *,
    fatal: bool = True,
) -> AlertMessage:
    """A (fatal) alert was received, optionally with ``description``."""
    message = outcome.first(MessageKind.ALERT)
    if not isinstance(message, AlertMessage):
        raise ConformanceAssertionError(
            f"Expected an alert, received: {outcome.trace() or 'nothing'}",
            details={"interaction": outcome.description},
        )
    if fatal and not message.fatal:
        raise ConformanceAssertionError(
            f"Expected a fatal alert, received warning {message.description.value}",
            details={"interaction": outcome.description},
        )
    if description is not None and message.description is not description:
        raise ConformanceAssertionError(
            f"Expected alert {description.value}, received {message.description.value}",
            details={"interaction": outcome.description},
        )
    return message
