"""Draft configuration edited by derivation parameters.

A DraftConfig is created per combination by an epoch strategy, edited by the
Derivation Container and finally handed to the Protocol Driver. It is owned by
exactly one tier-2 worker at a time and is never shared.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from conformix.models.enums import EndpointDirection, Epoch
from conformix.protocol.catalog import (
    MAX_RECORD_LENGTH,
    AlertDescription,
    CertificateKeyPair,
    CipherSuite,
    ExtensionType,
    MaxFragmentLength,
    NamedGroup,
    ProtocolVersion,
    SignatureAlgorithm,
)


@dataclass
class DraftConfig:
    """Mutable configuration for a single protocol interaction.

    ``cipher_suites``, ``named_groups`` and ``signature_algorithms`` describe
    what our side of the connection offers or accepts; the ``selected_*``
    fields pin what it negotiates.
    The timeouts bound the driver's connect and read calls; None leaves
    them to the driver.
    """

    epoch: Epoch
    direction: EndpointDirection
    highest_version: ProtocolVersion = ProtocolVersion.TLS12
    supported_versions: list[ProtocolVersion] = field(default_factory=list)
    cipher_suites: list[CipherSuite] = field(default_factory=list)
    selected_cipher_suite: CipherSuite | None = None
    named_groups: list[NamedGroup] = field(default_factory=list)
    selected_group: NamedGroup | None = None
    key_share_groups: list[NamedGroup] = field(default_factory=list)
    signature_algorithms: list[SignatureAlgorithm] = field(default_factory=list)
    selected_signature_algorithm: SignatureAlgorithm | None = None
    certificate: CertificateKeyPair | None = None
    max_record_length: int = MAX_RECORD_LENGTH
    tcp_fragmentation: bool = False
    include_change_cipher_spec: bool = True
    encrypt_then_mac: bool = False
    extended_master_secret: bool = False
    renegotiation_info: bool = False
    padding_extension: bool = False
    max_fragment_length: MaxFragmentLength | None = None
    additional_padding: int = 0
    mac_modification: bytes | None = None
    alert_description: AlertDescription | None = None
    connect_timeout_seconds: float | None = None
    read_timeout_seconds: float | None = None

    def copy(self) -> DraftConfig:
        return copy.deepcopy(self)

    def enabled_extensions(self) -> list[ExtensionType]:
        """Return the optional extensions this configuration sends."""
        toggles = [
            (self.encrypt_then_mac, ExtensionType.ENCRYPT_THEN_MAC),
            (self.extended_master_secret, ExtensionType.EXTENDED_MASTER_SECRET),
            (self.renegotiation_info, ExtensionType.RENEGOTIATION_INFO),
            (self.padding_extension, ExtensionType.PADDING),
            (self.max_fragment_length is not None, ExtensionType.MAX_FRAGMENT_LENGTH),
        ]
        return [extension for enabled, extension in toggles if enabled]
