"""Concrete derivation parameters.

Each class enumerates the legal values of one dimension and writes a selected
value into a DraftConfig. ``PARAMETER_TYPES`` maps every DerivationType to
its implementation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from conformix.derivation.parameter import (
    ConditionalConstraint,
    DerivationParameter,
    SideChannel,
)
from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey
from conformix.models.enums import EndpointDirection, Epoch
from conformix.models.features import FeatureReport
from conformix.protocol.catalog import (
    AVAILABLE_CERTIFICATES,
    MAX_RECORD_LENGTH,
    AlertDescription,
    CertificateKeyPair,
    CertificateKeyType,
    CipherSuite,
    ExtensionType,
    KeyExchange,
    MaxFragmentLength,
    NamedGroup,
    SignatureAlgorithm,
)
from conformix.protocol.config import DraftConfig

FRAGMENTED_RECORD_LENGTHS = (1, 50, 111)
ADDITIONAL_PADDING_LENGTHS = (5, 100, 1000)
BITS_PER_BYTE = 8

_SUITE_KEY = ParameterKey(DerivationType.CIPHER_SUITE)


class CipherSuiteParameter(DerivationParameter[CipherSuite]):
    derivation_type = DerivationType.CIPHER_SUITE

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[CipherSuite]:
        return [suite for suite in features.suites_for(scope.epoch) if suite.is_implemented]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        suite = self.selected_value
        config.cipher_suites = [suite]
        config.selected_cipher_suite = suite


class NamedGroupParameter(DerivationParameter[NamedGroup]):
    derivation_type = DerivationType.NAMED_GROUP

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[NamedGroup]:
        if scope.epoch is Epoch.LEGACY:
            uses_ecdhe = any(
                suite.key_exchange is KeyExchange.ECDHE
                for suite in features.suites_for(Epoch.LEGACY)
            )
            if not uses_ecdhe:
                return []
            return [group for group in features.named_groups if group.is_elliptic]
        return features.groups_for(scope.epoch)

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        group = self.selected_value
        config.named_groups = [group]
        config.selected_group = group
        if config.epoch is Epoch.MODERN:
            config.key_share_groups = [group]


class RecordLengthParameter(DerivationParameter[int]):
    derivation_type = DerivationType.RECORD_LENGTH

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[int]:
        if features.record_fragmentation:
            return [*FRAGMENTED_RECORD_LENGTHS, MAX_RECORD_LENGTH]
        return [MAX_RECORD_LENGTH]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        config.max_record_length = self.selected_value


class TcpFragmentationParameter(DerivationParameter[bool]):
    derivation_type = DerivationType.TCP_FRAGMENTATION

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[bool]:
        return [False, True]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        config.tcp_fragmentation = self.selected_value


class IncludeChangeCipherSpecParameter(DerivationParameter[bool]):
    derivation_type = DerivationType.INCLUDE_CHANGE_CIPHER_SPEC

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[bool]:
        if scope.epoch is not Epoch.MODERN:
            return []
        return [True, False]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        config.include_change_cipher_spec = self.selected_value


class ExtensionToggleParameter(DerivationParameter[bool]):
    """Switches one legacy-epoch extension on or off.

    Against clients the extension can only be answered when the client
    offered it, so the toggle requires the feature to be supported.
    """

    extension: ClassVar[ExtensionType]
    config_field: ClassVar[str]

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[bool]:
        if scope.epoch is Epoch.MODERN:
            return []
        if scope.direction is EndpointDirection.CLIENT and not features.supports_extension(
            self.extension
        ):
            return []
        return [False, True]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        setattr(config, self.config_field, self.selected_value)


class EncryptThenMacParameter(ExtensionToggleParameter):
    derivation_type = DerivationType.INCLUDE_ENCRYPT_THEN_MAC_EXTENSION
    extension = ExtensionType.ENCRYPT_THEN_MAC
    config_field = "encrypt_then_mac"


class ExtendedMasterSecretParameter(ExtensionToggleParameter):
    derivation_type = DerivationType.INCLUDE_EXTENDED_MASTER_SECRET_EXTENSION
    extension = ExtensionType.EXTENDED_MASTER_SECRET
    config_field = "extended_master_secret"


class RenegotiationInfoParameter(ExtensionToggleParameter):
    derivation_type = DerivationType.INCLUDE_RENEGOTIATION_EXTENSION
    extension = ExtensionType.RENEGOTIATION_INFO
    config_field = "renegotiation_info"


class PaddingExtensionParameter(ExtensionToggleParameter):
    derivation_type = DerivationType.INCLUDE_PADDING_EXTENSION
    extension = ExtensionType.PADDING
    config_field = "padding_extension"


class MaxFragmentLengthParameter(DerivationParameter[MaxFragmentLength | None]):
    """Selects a max_fragment_length value, or None to omit the extension."""

    derivation_type = DerivationType.MAX_FRAGMENT_LENGTH

    def legal_values(
        self, features: FeatureReport, scope: DerivationScope
    ) -> list[MaxFragmentLength | None]:
        if scope.direction is EndpointDirection.CLIENT and not features.supports_extension(
            ExtensionType.MAX_FRAGMENT_LENGTH
        ):
            return [None]
        return [None, *MaxFragmentLength]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        config.max_fragment_length = self.selected_value


class AdditionalPaddingLengthParameter(DerivationParameter[int]):
    derivation_type = DerivationType.ADDITIONAL_PADDING_LENGTH

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[int]:
        if scope.epoch is not Epoch.MODERN:
            return []
        return list(ADDITIONAL_PADDING_LENGTHS)

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        config.additional_padding = self.selected_value


class MacBitmaskParameter(DerivationParameter[int]):
    """Selects the byte of the record authentication tag to flip.

    The bit to flip inside that byte is the BIT_POSITION child. The mask is
    only known once both are selected, so it is written in pass 2.
    """

    derivation_type = DerivationType.MAC_BITMASK

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[int]:
        lengths = [suite.mac_length for suite in features.suites_for(scope.epoch)]
        if not lengths:
            return []
        return list(range(max(lengths)))

    def conditional_constraints(self, scope: DerivationScope) -> list[ConditionalConstraint]:
        own_key = self.key

        def within_tag(values: Mapping[ParameterKey, Any]) -> bool:
            suite: CipherSuite = values[_SUITE_KEY]
            return bool(values[own_key] < suite.mac_length)

        return [
            ConditionalConstraint(
                name="mac_byte_within_tag",
                keys=frozenset({own_key, _SUITE_KEY}),
                allows=within_tag,
            )
        ]

    def post_process(
        self, config: DraftConfig, side_channel: SideChannel, features: FeatureReport
    ) -> None:
        config.mac_modification = side_channel.bitmasks.get(self.derivation_type)


class BitPositionParameter(DerivationParameter[int]):
    """Bit index child of a bitmask dimension."""

    derivation_type = DerivationType.BIT_POSITION

    def __init__(self, parent: DerivationType | None = None) -> None:
        if parent is None:
            raise ValueError("BIT_POSITION needs the bitmask type it belongs to")
        super().__init__(parent)

    def legal_values(self, features: FeatureReport, scope: DerivationScope) -> list[int]:
        return list(range(BITS_PER_BYTE))


def _required_key_type(
    suite: CipherSuite | None, certificate: CertificateKeyPair | None
) -> CertificateKeyType | None:
    if suite is not None and suite.certificate_key_type is not None:
        return suite.certificate_key_type
    if certificate is not None:
        return certificate.key_type
    return None


class SignatureAlgorithmParameter(DerivationParameter[SignatureAlgorithm]):
    """Selects the signature algorithm used for handshake signatures.

    The cipher suite or certificate chosen by other parameters may rule the
    selection out; pass 2 then falls back to a compatible supported algorithm.
    """

    derivation_type = DerivationType.SIGNATURE_ALGORITHM

    def legal_values(
        self, features: FeatureReport, scope: DerivationScope
    ) -> list[SignatureAlgorithm]:
        algorithms = list(features.signature_algorithms)
        if scope.epoch is Epoch.MODERN:
            return [alg for alg in algorithms if alg.is_modern]
        key_types = features.certificate_key_types
        if scope.epoch is Epoch.LEGACY and key_types:
            return [alg for alg in algorithms if alg.key_type in key_types]
        return algorithms

    def conditional_constraints(self, scope: DerivationScope) -> list[ConditionalConstraint]:
        own_key = self.key

        def matches_suite(values: Mapping[ParameterKey, Any]) -> bool:
            suite: CipherSuite = values[_SUITE_KEY]
            required = suite.certificate_key_type
            return required is None or values[own_key].key_type is required

        return [
            ConditionalConstraint(
                name="signature_matches_suite",
                keys=frozenset({own_key, _SUITE_KEY}),
                allows=matches_suite,
            )
        ]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        algorithm = self.selected_value
        config.signature_algorithms = [algorithm]
        config.selected_signature_algorithm = algorithm

    def post_process(
        self, config: DraftConfig, side_channel: SideChannel, features: FeatureReport
    ) -> None:
        required = _required_key_type(side_channel.selected_cipher_suite, side_channel.certificate)
        if required is None or self.selected_value.key_type is required:
            return
        for candidate in features.signature_algorithms:
            if candidate.key_type is required:
                config.signature_algorithms = [candidate]
                config.selected_signature_algorithm = candidate
                return


class CertificateParameter(DerivationParameter[CertificateKeyPair]):
    """Selects the certificate presented to clients under test."""

    derivation_type = DerivationType.CERTIFICATE

    def legal_values(
        self, features: FeatureReport, scope: DerivationScope
    ) -> list[CertificateKeyPair]:
        if scope.direction is not EndpointDirection.CLIENT:
            return []
        if scope.epoch is Epoch.MODERN:
            key_types = [CertificateKeyType.RSA, CertificateKeyType.ECDSA]
        else:
            key_types = features.certificate_key_types
        return [
            cert
            for cert in AVAILABLE_CERTIFICATES
            if cert.key_type in key_types
            and cert.key_type in features.min_certificate_key_size
            and cert.key_size >= features.min_certificate_key_size[cert.key_type]
        ]

    def conditional_constraints(self, scope: DerivationScope) -> list[ConditionalConstraint]:
        own_key = self.key

        def matches_suite(values: Mapping[ParameterKey, Any]) -> bool:
            suite: CipherSuite = values[_SUITE_KEY]
            cert: CertificateKeyPair = values[own_key]
            if suite.certificate_key_type is None:
                return cert.key_type is not CertificateKeyType.DSS
            return cert.key_type is suite.certificate_key_type

        return [
            ConditionalConstraint(
                name="certificate_matches_suite",
                keys=frozenset({own_key, _SUITE_KEY}),
                allows=matches_suite,
            )
        ]

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        config.certificate = self.selected_value


class AlertDescriptionParameter(DerivationParameter[AlertDescription]):
    derivation_type = DerivationType.ALERT

    def legal_values(
        self, features: FeatureReport, scope: DerivationScope
    ) -> list[AlertDescription]:
        return list(AlertDescription)

    def apply(self, config: DraftConfig, features: FeatureReport) -> None:
        config.alert_description = self.selected_value


PARAMETER_TYPES: dict[DerivationType, type[DerivationParameter[Any]]] = {
    DerivationType.CIPHER_SUITE: CipherSuiteParameter,
    DerivationType.NAMED_GROUP: NamedGroupParameter,
    DerivationType.RECORD_LENGTH: RecordLengthParameter,
    DerivationType.TCP_FRAGMENTATION: TcpFragmentationParameter,
    DerivationType.INCLUDE_CHANGE_CIPHER_SPEC: IncludeChangeCipherSpecParameter,
    DerivationType.INCLUDE_ENCRYPT_THEN_MAC_EXTENSION: EncryptThenMacParameter,
    DerivationType.INCLUDE_EXTENDED_MASTER_SECRET_EXTENSION: ExtendedMasterSecretParameter,
    DerivationType.INCLUDE_RENEGOTIATION_EXTENSION: RenegotiationInfoParameter,
    DerivationType.INCLUDE_PADDING_EXTENSION: PaddingExtensionParameter,
    DerivationType.MAX_FRAGMENT_LENGTH: MaxFragmentLengthParameter,
    DerivationType.ADDITIONAL_PADDING_LENGTH: AdditionalPaddingLengthParameter,
    DerivationType.MAC_BITMASK: MacBitmaskParameter,
    DerivationType.BIT_POSITION: BitPositionParameter,
    DerivationType.SIGNATURE_ALGORITHM: SignatureAlgorithmParameter,
    DerivationType.CERTIFICATE: CertificateParameter,
    DerivationType.ALERT: AlertDescriptionParameter,
}


def create_parameter(key: ParameterKey) -> DerivationParameter[Any]:
    """Instantiate the unselected parameter registered for ``key``."""
    return PARAMETER_TYPES[key.type](key.parent)
