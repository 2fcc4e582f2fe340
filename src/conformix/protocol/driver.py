"""Contracts for the external Protocol Driver, Capability Scanner and listener.

conformix never builds or parses protocol messages itself. It depends only on
the Protocol classes below; any object with matching methods can be plugged
in (see conformix.testing for scripted implementations).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import ConfigDict, Field

from conformix.models.base import ConformixBaseModel
from conformix.models.enums import EndpointDirection, Epoch, MessageKind
from conformix.models.messages import CapturedMessage
from conformix.protocol.catalog import ProtocolVersion
from conformix.protocol.config import DraftConfig


class InteractionKind(str, Enum):
    """Message flows the Protocol Driver knows how to drive."""

    # Full handshake followed by close.
    HANDSHAKE = "handshake"
    # Receive the initial request, answer with a retry directive forcing
    # the configured group, then continue the handshake.
    HELLO_RETRY = "hello_retry"
    # First flight only.
    HELLO_ONLY = "hello_only"


@dataclass(frozen=True, eq=False)
class Interaction:
    """One planned protocol interaction.

    Attributes:
        kind: Message flow to drive
        config: Draft configuration the flow is built from
        label: Description used in outcomes and logs
        optional_trailing: Message kinds the implementation may send after
            the planned flow completed without the interaction counting as
            deviated
    """

    kind: InteractionKind
    config: DraftConfig
    label: str = ""
    optional_trailing: frozenset[MessageKind] = frozenset()

    @property
    def epoch(self) -> Epoch:
        return self.config.epoch


class DriverResult(ConformixBaseModel):
    """What the Protocol Driver observed while driving an interaction.

    Attributes:
        completed: Every planned action was executed
        messages: Messages received while executing the planned actions
        trailing: Messages received after the last planned action
        negotiated_version: Version the handshake settled on, if any
    """

    completed: bool
    messages: list[CapturedMessage] = Field(default_factory=list)
    trailing: list[CapturedMessage] = Field(default_factory=list)
    negotiated_version: ProtocolVersion | None = None


@runtime_checkable
class ProtocolDriver(Protocol):
    """Builds and drives protocol interactions."""

    def build_config(self, epoch: Epoch, direction: EndpointDirection) -> DraftConfig:
        """Return a base draft configuration for ``epoch`` and ``direction``."""
        ...

    def build_interaction(self, kind: InteractionKind, config: DraftConfig) -> Interaction:
        """Plan an interaction of ``kind`` for ``config``."""
        ...

    def execute(self, config: DraftConfig, interaction: Interaction) -> DriverResult:
        """Drive ``interaction`` to completion.

        Raises:
            TransportError: If the connection could not be established or was lost
        """
        ...


class ProbeType(str, Enum):
    """Probes the Capability Scanner runs against servers."""

    COMMON_BUGS = "common_bugs"
    CIPHER_SUITE = "cipher_suite"
    CERTIFICATE = "certificate"
    COMPRESSIONS = "compressions"
    NAMED_GROUPS = "named_groups"
    PROTOCOL_VERSION = "protocol_version"
    EC_POINT_FORMAT = "ec_point_format"
    RESUMPTION = "resumption"
    EXTENSIONS = "extensions"
    RECORD_FRAGMENTATION = "record_fragmentation"
    HELLO_RETRY = "hello_retry"


SERVER_PROBE_SET: frozenset[ProbeType] = frozenset(ProbeType)


class RawScanReport(ConformixBaseModel):
    """Loosely typed report produced by the Capability Scanner.

    Names are kept as plain strings; the server adapter drops those the
    catalog does not know.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    versions: list[str] = Field(default_factory=list)
    cipher_suites: list[str] = Field(default_factory=list)
    named_groups: list[str] = Field(default_factory=list)
    modern_groups: list[str] = Field(default_factory=list)
    extensions: list[str] = Field(default_factory=list)
    signature_algorithms: list[str] = Field(default_factory=list)
    compression_methods: list[str] = Field(default_factory=list)
    certificate_key_sizes: dict[str, int] = Field(default_factory=dict)
    record_fragmentation: bool | None = None


@runtime_checkable
class CapabilityScanner(Protocol):
    """General-purpose scanner used to probe servers."""

    def configure(self, probe_set: frozenset[ProbeType], base_config: DraftConfig) -> None: ...

    def scan(self) -> RawScanReport: ...


@runtime_checkable
class ConnectionListener(Protocol):
    """Accepts the inbound connection of a client under test."""

    def accept(self, timeout: float | None = None) -> bool:
        """Block until a client connects; return False when ``timeout`` elapsed."""
        ...

    def close(self) -> None: ...

