"""Captured protocol messages.

Messages received from the implementation under test are returned by the
Protocol Driver as a closed set of variants discriminated on ``kind``. Code
that needs to look inside a message matches on the variant type; there is no
open-ended subclassing.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Discriminator, Field, TypeAdapter

from conformix.models.base import ConformixBaseModel
from conformix.models.enums import MessageKind
from conformix.protocol.catalog import (
    AlertDescription,
    CertificateKeyType,
    CipherSuite,
    CompressionMethod,
    ExtensionType,
    NamedGroup,
    ProtocolVersion,
    SignatureAlgorithm,
)


class ClientHelloMessage(ConformixBaseModel):
    """Initial request sent by a client.

    Attributes:
        kind: Discriminator field, always "client_hello"
        versions: Versions offered, from the supported_versions extension or
            the legacy version field
        cipher_suites: Offered suites, in client preference order
        named_groups: Groups listed in supported_groups
        key_share_groups: Groups the client already sent a key share for
        signature_algorithms: Offered signature algorithms
        extensions: Extensions present in the message
        compression_methods: Offered compression methods
    """

    kind: Literal["client_hello"] = Field(default="client_hello", description="Discriminator")
    versions: list[ProtocolVersion] = Field(default_factory=list)
    cipher_suites: list[CipherSuite] = Field(default_factory=list)
    named_groups: list[NamedGroup] = Field(default_factory=list)
    key_share_groups: list[NamedGroup] = Field(default_factory=list)
    signature_algorithms: list[SignatureAlgorithm] = Field(default_factory=list)
    extensions: list[ExtensionType] = Field(default_factory=list)
    compression_methods: list[CompressionMethod] = Field(
        default_factory=lambda: [CompressionMethod.NULL]
    )


class ServerHelloMessage(ConformixBaseModel):
    kind: Literal["server_hello"] = Field(default="server_hello", description="Discriminator")
    version: ProtocolVersion
    cipher_suite: CipherSuite
    selected_group: NamedGroup | None = None


class HelloRetryRequestMessage(ConformixBaseModel):
    kind: Literal["hello_retry_request"] = Field(
        default="hello_retry_request", description="Discriminator"
    )
    selected_group: NamedGroup


class CertificateMessage(ConformixBaseModel):
    kind: Literal["certificate"] = Field(default="certificate", description="Discriminator")
    key_type: CertificateKeyType | None = None
    key_size: int | None = Field(default=None, ge=0)


class FinishedMessage(ConformixBaseModel):
    kind: Literal["finished"] = Field(default="finished", description="Discriminator")


class ChangeCipherSpecMessage(ConformixBaseModel):
    kind: Literal["change_cipher_spec"] = Field(
        default="change_cipher_spec", description="Discriminator"
    )


class AlertMessage(ConformixBaseModel):
    kind: Literal["alert"] = Field(default="alert", description="Discriminator")
    fatal: bool = True
    description: AlertDescription


class ApplicationDataMessage(ConformixBaseModel):
    kind: Literal["application_data"] = Field(
        default="application_data", description="Discriminator"
    )
    length: int = Field(default=0, ge=0)


CapturedMessage = Annotated[
    Union[
        ClientHelloMessage,
        ServerHelloMessage,
        HelloRetryRequestMessage,
        CertificateMessage,
        FinishedMessage,
        ChangeCipherSpecMessage,
        AlertMessage,
        ApplicationDataMessage,
    ],
    Discriminator("kind"),
]
"""Any message captured from the implementation under test."""

captured_message_adapter: TypeAdapter[CapturedMessage] = TypeAdapter(CapturedMessage)


def message_kind(message: CapturedMessage) -> MessageKind:
    """Return the discriminator of ``message`` as a MessageKind."""
    return MessageKind(message.kind)


def describe_message(message: CapturedMessage) -> str:
    """Render a one-line human-readable summary of a captured message."""
    match message:
        case ClientHelloMessage(versions=versions, cipher_suites=suites):
            offered = ",".join(v.value for v in versions) or "-"
            return f"ClientHello(versions={offered}, suites={len(suites)})"
        case ServerHelloMessage(version=version, cipher_suite=suite):
            return f"ServerHello({version.value}, {suite.value})"
        case HelloRetryRequestMessage(selected_group=group):
            return f"HelloRetryRequest({group.value})"
        case CertificateMessage(key_type=key_type, key_size=key_size):
            if key_type is None:
                return "Certificate(empty)"
            return f"Certificate({key_type.value}/{key_size})"
        case FinishedMessage():
            return "Finished"
        case ChangeCipherSpecMessage():
            return "ChangeCipherSpec"
        case AlertMessage(fatal=fatal, description=description):
            level = "fatal" if fatal else "warning"
            return f"Alert({level}, {description.value})"
        case ApplicationDataMessage(length=length):
            return f"ApplicationData({length} bytes)"
    raise TypeError(f"Unknown captured message: {message!r}")
