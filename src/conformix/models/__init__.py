"""conformix data models.

Frozen pydantic models shared across probing, execution and reporting.
"""

from conformix.models.base import ConformixBaseModel
from conformix.models.enums import (
    EndpointDirection,
    Epoch,
    MessageKind,
    ModelShape,
    OutcomeKind,
    Verdict,
)
from conformix.models.features import FeatureReport
from conformix.models.messages import (
    AlertMessage,
    ApplicationDataMessage,
    CapturedMessage,
    CertificateMessage,
    ChangeCipherSpecMessage,
    ClientHelloMessage,
    FinishedMessage,
    HelloRetryRequestMessage,
    ServerHelloMessage,
    describe_message,
    message_kind,
)
from conformix.models.outcome import RunOutcome

__all__ = [
    "AlertMessage",
    "ApplicationDataMessage",
    "CapturedMessage",
    "CertificateMessage",
    "ChangeCipherSpecMessage",
    "ClientHelloMessage",
    "ConformixBaseModel",
    "EndpointDirection",
    "Epoch",
    "FeatureReport",
    "FinishedMessage",
    "HelloRetryRequestMessage",
    "MessageKind",
    "ModelShape",
    "OutcomeKind",
    "RunOutcome",
    "ServerHelloMessage",
    "Verdict",
    "describe_message",
    "message_kind",
]
