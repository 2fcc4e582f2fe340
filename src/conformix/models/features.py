"""Feature Report: the capability snapshot of a probed target.

A FeatureReport is built once per run by the Capability Prober (or loaded
from the on-disk cache) and is never mutated afterwards, so it is shared by
every worker without synchronization.
"""

from __future__ import annotations

from pydantic import Field

from conformix.models.base import ConformixBaseModel
from conformix.models.enums import EndpointDirection, Epoch
from conformix.models.messages import ClientHelloMessage
from conformix.protocol.catalog import (
    CertificateKeyType,
    CipherSuite,
    CompressionMethod,
    ExtensionType,
    NamedGroup,
    ProtocolVersion,
    SignatureAlgorithm,
)


class FeatureReport(ConformixBaseModel):
    """Capabilities discovered for one target.

    Attributes:
        identity: Target identity the report is cached under (client port
            or server host)
        direction: Role of the implementation under test
        versions: Supported protocol versions
        cipher_suites: Supported suites keyed by epoch
        named_groups: Supported groups usable in the legacy epoch
        modern_groups: Groups the target completes a modern handshake with
        extensions: Supported extensions
        signature_algorithms: Supported signature algorithms
        compression_methods: Supported compression methods
        min_certificate_key_size: Smallest usable key size per certificate
            key type; absent types were not usable
        record_fragmentation: Whether the target tolerates fragmented records
        initial_request: ClientHello captured during client probing

    Example:
        >>> report = FeatureReport(
        ...     identity="4433",
        ...     direction=EndpointDirection.CLIENT,
        ...     cipher_suites={Epoch.MODERN: [CipherSuite.TLS_AES_128_GCM_SHA256]},
        ... )
        >>> report.suites_for(Epoch.MODERN)
        [<CipherSuite.TLS_AES_128_GCM_SHA256: 'TLS_AES_128_GCM_SHA256'>]
    """

    identity: str = Field(..., min_length=1, description="Cache key of the target")
    direction: EndpointDirection
    versions: list[ProtocolVersion] = Field(default_factory=list)
    cipher_suites: dict[Epoch, list[CipherSuite]] = Field(default_factory=dict)
    named_groups: list[NamedGroup] = Field(default_factory=list)
    modern_groups: list[NamedGroup] = Field(default_factory=list)
    extensions: list[ExtensionType] = Field(default_factory=list)
    signature_algorithms: list[SignatureAlgorithm] = Field(default_factory=list)
    compression_methods: list[CompressionMethod] = Field(default_factory=list)
    min_certificate_key_size: dict[CertificateKeyType, int] = Field(default_factory=dict)
    record_fragmentation: bool = False
    initial_request: ClientHelloMessage | None = None

    def suites_for(self, epoch: Epoch | None = None) -> list[CipherSuite]:
        """Return supported suites of ``epoch``, or of every epoch when None."""
        if epoch is not None:
            return list(self.cipher_suites.get(epoch, []))
        return [
            suite
            for current in (Epoch.MODERN, Epoch.LEGACY)
            for suite in self.cipher_suites.get(current, [])
        ]

    def groups_for(self, epoch: Epoch | None = None) -> list[NamedGroup]:
        if epoch is Epoch.MODERN:
            return list(self.modern_groups)
        if epoch is Epoch.LEGACY:
            return list(self.named_groups)
        return list(dict.fromkeys([*self.modern_groups, *self.named_groups]))

    def supports_epoch(self, epoch: Epoch) -> bool:
        return any(version.epoch is epoch for version in self.versions)

    def supports_extension(self, extension: ExtensionType) -> bool:
        return extension in self.extensions

    @property
    def all_suites(self) -> list[CipherSuite]:
        return self.suites_for(None)

    @property
    def certificate_key_types(self) -> list[CertificateKeyType]:
        """Return certificate key types required by the supported suites."""
        found: dict[CertificateKeyType, None] = {}
        for suite in self.all_suites:
            if suite.certificate_key_type is not None:
                found[suite.certificate_key_type] = None
        return list(found)
