"""Enumerations shared across conformix.

This module defines the enum types used by probing, derivation, execution
and result aggregation to avoid magic strings.
"""

from enum import Enum

from conformix.protocol.catalog import Epoch

__all__ = [
    "EndpointDirection",
    "Epoch",
    "MessageKind",
    "ModelShape",
    "OutcomeKind",
    "Verdict",
]


class EndpointDirection(str, Enum):
    """Role played by the implementation under test.

    CLIENT means the implementation connects to us and we act as server;
    SERVER means we connect to the implementation.
    """

    CLIENT = "client"
    SERVER = "server"


class Verdict(str, Enum):
    """Test case lifecycle states.

    Terminal states are: SUCCEEDED, FAILED, DISABLED.

    Example:
        >>> Verdict.DISABLED.is_terminal()
        True
        >>> Verdict.RUNNING.is_terminal()
        False
    """

    UNSTARTED = "unstarted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DISABLED = "disabled"

    @classmethod
    def terminal_states(cls) -> frozenset["Verdict"]:
        """Return all terminal verdicts."""
        return frozenset({cls.SUCCEEDED, cls.FAILED, cls.DISABLED})

    def is_terminal(self) -> bool:
        """Check if this verdict is final."""
        return self in self.terminal_states()


class OutcomeKind(str, Enum):
    """Result of driving one protocol interaction."""

    EXECUTED_AS_PLANNED = "executed_as_planned"
    DEVIATED = "deviated"
    TRANSPORT_ERROR = "transport_error"


class ModelShape(str, Enum):
    """Base set of derivation dimensions a test starts from."""

    EMPTY = "empty"
    GENERIC = "generic"
    CERTIFICATE = "certificate"
    LENGTHFIELD = "lengthfield"


class MessageKind(str, Enum):
    """Discriminator values of captured protocol messages."""

    CLIENT_HELLO = "client_hello"
    SERVER_HELLO = "server_hello"
    HELLO_RETRY_REQUEST = "hello_retry_request"
    CERTIFICATE = "certificate"
    FINISHED = "finished"
    CHANGE_CIPHER_SPEC = "change_cipher_spec"
    ALERT = "alert"
    APPLICATION_DATA = "application_data"
