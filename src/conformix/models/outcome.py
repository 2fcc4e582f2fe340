"""RunOutcome: the result of one executed protocol interaction."""

from __future__ import annotations

from pydantic import Field

from conformix.models.base import ConformixBaseModel
from conformix.models.enums import EndpointDirection, Epoch, MessageKind, OutcomeKind
from conformix.models.messages import CapturedMessage, describe_message
from conformix.protocol.catalog import ProtocolVersion


class RunOutcome(ConformixBaseModel):
    """Outcome of driving one interaction for one combination.

    Attributes:
        kind: Whether the interaction ran as planned, deviated, or failed
            at the transport level
        description: Interaction label, usually the combination description
        epoch: Epoch the interaction was configured for
        direction: Role of the implementation under test
        messages: Messages captured from the implementation under test
        cause: Human-readable failure cause for deviations and transport errors
        duration_seconds: Wall-clock time spent in the driver
        negotiated_version: Version the handshake settled on, if the driver
            reported one
    """

    kind: OutcomeKind
    description: str = ""
    epoch: Epoch
    direction: EndpointDirection
    messages: list[CapturedMessage] = Field(default_factory=list)
    cause: str | None = None
    duration_seconds: float = Field(default=0.0, ge=0.0)
    negotiated_version: ProtocolVersion | None = None

    @property
    def executed_as_planned(self) -> bool:
        return self.kind is OutcomeKind.EXECUTED_AS_PLANNED

    def received(self, kind: MessageKind) -> bool:
        """Check whether a message of ``kind`` was captured."""
        return any(message.kind == kind.value for message in self.messages)

    def first(self, kind: MessageKind) -> CapturedMessage | None:
        for message in self.messages:
            if message.kind == kind.value:
                return message
        return None

    def trace(self) -> str:
        return " -> ".join(describe_message(message) for message in self.messages)
