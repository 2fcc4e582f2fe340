"""Tests for concrete derivation parameters."""

import pytest

from conformix.derivation.parameter import SideChannel
from conformix.derivation.parameters import (
    PARAMETER_TYPES,
    AdditionalPaddingLengthParameter,
    BitPositionParameter,
    CertificateParameter,
    CipherSuiteParameter,
    EncryptThenMacParameter,
    IncludeChangeCipherSpecParameter,
    MacBitmaskParameter,
    MaxFragmentLengthParameter,
    NamedGroupParameter,
    RecordLengthParameter,
    SignatureAlgorithmParameter,
    create_parameter,
)
from conformix.derivation.types import DerivationScope, DerivationType, ParameterKey
from conformix.errors import ParameterAlreadySelectedError
from conformix.models.enums import EndpointDirection, Epoch
from conformix.protocol.catalog import (
    AVAILABLE_CERTIFICATES,
    MAX_RECORD_LENGTH,
    CertificateKeyPair,
    CertificateKeyType,
    CipherSuite,
    MaxFragmentLength,
    NamedGroup,
    SignatureAlgorithm,
)
from conformix.protocol.config import DraftConfig
from conformix.testing.fixtures import make_feature_report

MODERN_SERVER = DerivationScope(epoch=Epoch.MODERN, direction=EndpointDirection.SERVER)
LEGACY_SERVER = DerivationScope(epoch=Epoch.LEGACY, direction=EndpointDirection.SERVER)
MODERN_CLIENT = DerivationScope(epoch=Epoch.MODERN, direction=EndpointDirection.CLIENT)
LEGACY_CLIENT = DerivationScope(epoch=Epoch.LEGACY, direction=EndpointDirection.CLIENT)


def _certificate_names(values: list[CertificateKeyPair]) -> list[str]:
    return [cert.name for cert in values]


class TestParameterSelection:
    """Tests for the selection lifecycle shared by every parameter."""

    def test_with_value_returns_new_instance(self) -> None:
        unselected = CipherSuiteParameter()
        selected = unselected.with_value(CipherSuite.TLS_AES_128_GCM_SHA256)
        assert not unselected.is_selected
        assert selected.selected_value is CipherSuite.TLS_AES_128_GCM_SHA256

    def test_second_selection_is_rejected(self) -> None:
        """Test a selected parameter is immutable."""
        selected = RecordLengthParameter().with_value(50)
        with pytest.raises(ParameterAlreadySelectedError) as exc_info:
            selected.with_value(111)
        assert exc_info.value.parameter_type == "RECORD_LENGTH"
        assert selected.selected_value == 50

    def test_selected_value_of_unselected_parameter_raises(self) -> None:
        with pytest.raises(ValueError, match="No value selected"):
            _ = RecordLengthParameter().selected_value

    def test_describe(self) -> None:
        assert (
            CipherSuiteParameter().with_value(CipherSuite.TLS_AES_128_GCM_SHA256).describe()
            == "CIPHER_SUITE=TLS_AES_128_GCM_SHA256"
        )
        assert (
            MaxFragmentLengthParameter().with_value(None).describe() == "MAX_FRAGMENT_LENGTH=none"
        )
        bit = BitPositionParameter(DerivationType.MAC_BITMASK).with_value(3)
        assert bit.describe() == "BIT_POSITION<MAC_BITMASK>=3"

    def test_equality_uses_key_and_value(self) -> None:
        first = RecordLengthParameter().with_value(50)
        assert first == RecordLengthParameter().with_value(50)
        assert first != RecordLengthParameter().with_value(111)
        assert len({first, RecordLengthParameter().with_value(50)}) == 1

    def test_every_type_has_a_parameter(self) -> None:
        assert set(PARAMETER_TYPES) == set(DerivationType)

    def test_create_parameter_keeps_parent(self) -> None:
        key = ParameterKey.bit_position_of(DerivationType.MAC_BITMASK)
        parameter = create_parameter(key)
        assert parameter.key == key

    def test_bit_position_requires_parent(self) -> None:
        with pytest.raises(ValueError, match="bitmask type"):
            BitPositionParameter()


class TestLegalValues:
    """Tests for the domains enumerated from a FeatureReport."""

    def test_cipher_suites_of_scope_epoch(self) -> None:
        features = make_feature_report()
        assert CipherSuiteParameter().legal_values(features, MODERN_SERVER) == [
            CipherSuite.TLS_AES_128_GCM_SHA256,
            CipherSuite.TLS_CHACHA20_POLY1305_SHA256,
        ]

    def test_unimplemented_suites_are_excluded(self) -> None:
        features = make_feature_report(
            cipher_suites={
                Epoch.MODERN: [
                    CipherSuite.TLS_AES_128_CCM_8_SHA256,
                    CipherSuite.TLS_AES_256_GCM_SHA384,
                ]
            }
        )
        assert CipherSuiteParameter().legal_values(features, MODERN_SERVER) == [
            CipherSuite.TLS_AES_256_GCM_SHA384
        ]

    def test_epoch_agnostic_cipher_suites_span_both_epochs(self) -> None:
        features = make_feature_report()
        values = CipherSuiteParameter().legal_values(features, DerivationScope())
        assert len(values) == 4

    def test_legacy_groups_require_ecdhe_suite(self) -> None:
        """Test legacy groups are only modeled when an ECDHE suite is supported."""
        with_ecdhe = make_feature_report()
        assert NamedGroupParameter().legal_values(with_ecdhe, LEGACY_SERVER) == [
            NamedGroup.SECP256R1,
            NamedGroup.X25519,
        ]
        rsa_only = make_feature_report(
            cipher_suites={Epoch.LEGACY: [CipherSuite.TLS_RSA_WITH_AES_128_CBC_SHA]}
        )
        assert NamedGroupParameter().legal_values(rsa_only, LEGACY_SERVER) == []

    def test_modern_groups(self) -> None:
        features = make_feature_report()
        assert NamedGroupParameter().legal_values(features, MODERN_SERVER) == [
            NamedGroup.X25519,
            NamedGroup.SECP256R1,
        ]

    def test_record_lengths_depend_on_fragmentation_support(self) -> None:
        fragmenting = make_feature_report(record_fragmentation=True)
        assert RecordLengthParameter().legal_values(fragmenting, LEGACY_SERVER) == [
            1,
            50,
            111,
            MAX_RECORD_LENGTH,
        ]
        strict = make_feature_report(record_fragmentation=False)
        assert RecordLengthParameter().legal_values(strict, LEGACY_SERVER) == [MAX_RECORD_LENGTH]

    def test_change_cipher_spec_only_in_modern_epoch(self) -> None:
        features = make_feature_report()
        parameter = IncludeChangeCipherSpecParameter()
        assert parameter.legal_values(features, MODERN_SERVER) == [True, False]
        assert not parameter.can_be_modeled(features, LEGACY_SERVER)

    def test_extension_toggle_against_client_requires_support(self) -> None:
        """Test a toggle is only modeled when the client offered the extension."""
        parameter = EncryptThenMacParameter()
        supported = make_feature_report(EndpointDirection.CLIENT)
        assert parameter.legal_values(supported, LEGACY_CLIENT) == [False, True]
        unsupported = make_feature_report(EndpointDirection.CLIENT, extensions=[])
        assert parameter.legal_values(unsupported, LEGACY_CLIENT) == []
        assert parameter.legal_values(supported, MODERN_CLIENT) == []

    def test_extension_toggle_against_server_always_modeled(self) -> None:
        features = make_feature_report(extensions=[])
        assert EncryptThenMacParameter().legal_values(features, LEGACY_SERVER) == [False, True]

    def test_max_fragment_length_values(self) -> None:
        features = make_feature_report()
        assert MaxFragmentLengthParameter().legal_values(features, LEGACY_SERVER) == [
            None,
            *MaxFragmentLength,
        ]
        unsupported = make_feature_report(EndpointDirection.CLIENT, extensions=[])
        assert MaxFragmentLengthParameter().legal_values(unsupported, LEGACY_CLIENT) == [None]

    def test_additional_padding_only_in_modern_epoch(self) -> None:
        features = make_feature_report()
        parameter = AdditionalPaddingLengthParameter()
        assert parameter.legal_values(features, MODERN_SERVER) == [5, 100, 1000]
        assert parameter.legal_values(features, LEGACY_SERVER) == []

    def test_mac_bitmask_spans_longest_tag(self) -> None:
        """Test byte indices cover the longest tag among supported suites."""
        features = make_feature_report()
        values = MacBitmaskParameter().legal_values(features, LEGACY_SERVER)
        assert values == list(range(20))

    def test_bit_position_values(self) -> None:
        features = make_feature_report()
        parameter = BitPositionParameter(DerivationType.MAC_BITMASK)
        assert parameter.legal_values(features, LEGACY_SERVER) == list(range(8))

    def test_modern_signature_algorithms_exclude_pkcs1(self) -> None:
        features = make_feature_report()
        assert SignatureAlgorithmParameter().legal_values(features, MODERN_SERVER) == [
            SignatureAlgorithm.RSA_PSS_RSAE_SHA256,
            SignatureAlgorithm.ECDSA_SECP256R1_SHA256,
        ]

    def test_legacy_signature_algorithms_match_certificate_key_types(self) -> None:
        features = make_feature_report()
        assert SignatureAlgorithmParameter().legal_values(features, LEGACY_SERVER) == [
            SignatureAlgorithm.RSA_PSS_RSAE_SHA256,
            SignatureAlgorithm.RSA_PKCS1_SHA256,
        ]


class TestCertificateParameter:
    """Tests for certificate selection against clients."""

    def test_not_modeled_against_servers(self) -> None:
        features = make_feature_report()
        assert CertificateParameter().legal_values(features, LEGACY_SERVER) == []

    def test_respects_minimum_key_size(self) -> None:
        features = make_feature_report(EndpointDirection.CLIENT)
        values = CertificateParameter().legal_values(features, LEGACY_CLIENT)
        assert _certificate_names(values) == ["rsa2048", "rsa4096"]

    def test_key_types_without_minimum_are_unusable(self) -> None:
        """Test a key type missing from the size map was never accepted by the client."""
        features = make_feature_report(EndpointDirection.CLIENT)
        values = CertificateParameter().legal_values(features, MODERN_CLIENT)
        assert all(cert.key_type is CertificateKeyType.RSA for cert in values)

    def test_modern_epoch_offers_rsa_and_ecdsa(self) -> None:
        features = make_feature_report(
            EndpointDirection.CLIENT,
            min_certificate_key_size={CertificateKeyType.RSA: 4096, CertificateKeyType.ECDSA: 256},
        )
        values = CertificateParameter().legal_values(features, MODERN_CLIENT)
        assert _certificate_names(values) == ["rsa4096", "ecdsa256", "ecdsa384"]

    def test_certificates_come_from_catalog(self) -> None:
        features = make_feature_report(
            EndpointDirection.CLIENT,
            min_certificate_key_size={CertificateKeyType.RSA: 1},
        )
        values = CertificateParameter().legal_values(features, LEGACY_CLIENT)
        assert set(values) <= set(AVAILABLE_CERTIFICATES)


class TestApply:
    """Tests for pass-1 and pass-2 configuration edits."""

    def test_cipher_suite_apply_pins_suite(self) -> None:
        config = DraftConfig(epoch=Epoch.MODERN, direction=EndpointDirection.SERVER)
        features = make_feature_report()
        CipherSuiteParameter().with_value(CipherSuite.TLS_AES_128_GCM_SHA256).apply(
            config, features
        )
        assert config.cipher_suites == [CipherSuite.TLS_AES_128_GCM_SHA256]
        assert config.selected_cipher_suite is CipherSuite.TLS_AES_128_GCM_SHA256

    def test_modern_group_apply_sets_key_share(self) -> None:
        config = DraftConfig(epoch=Epoch.MODERN, direction=EndpointDirection.SERVER)
        NamedGroupParameter().with_value(NamedGroup.SECP256R1).apply(
            config, make_feature_report()
        )
        assert config.key_share_groups == [NamedGroup.SECP256R1]
        assert config.selected_group is NamedGroup.SECP256R1

    def test_legacy_group_apply_leaves_key_share(self) -> None:
        config = DraftConfig(epoch=Epoch.LEGACY, direction=EndpointDirection.SERVER)
        NamedGroupParameter().with_value(NamedGroup.SECP256R1).apply(
            config, make_feature_report()
        )
        assert config.key_share_groups == []

    def test_mac_bitmask_writes_mask_from_side_channel(self) -> None:
        config = DraftConfig(epoch=Epoch.LEGACY, direction=EndpointDirection.SERVER)
        side_channel = SideChannel(bitmasks={DerivationType.MAC_BITMASK: b"\x00\x04"})
        MacBitmaskParameter().with_value(1).post_process(
            config, side_channel, make_feature_report()
        )
        assert config.mac_modification == b"\x00\x04"

    def test_signature_falls_back_to_suite_key_type(self) -> None:
        """Test pass 2 replaces an algorithm the selected suite cannot use."""
        config = DraftConfig(epoch=Epoch.LEGACY, direction=EndpointDirection.SERVER)
        features = make_feature_report(
            signature_algorithms=[
                SignatureAlgorithm.ECDSA_SECP256R1_SHA256,
                SignatureAlgorithm.RSA_PKCS1_SHA256,
            ]
        )
        parameter = SignatureAlgorithmParameter().with_value(
            SignatureAlgorithm.ECDSA_SECP256R1_SHA256
        )
        parameter.apply(config, features)
        side_channel = SideChannel(
            selected_cipher_suite=CipherSuite.TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256
        )
        parameter.post_process(config, side_channel, features)
        assert config.selected_signature_algorithm is SignatureAlgorithm.RSA_PKCS1_SHA256
        assert config.signature_algorithms == [SignatureAlgorithm.RSA_PKCS1_SHA256]

    def test_signature_kept_when_compatible(self) -> None:
        config = DraftConfig(epoch=Epoch.MODERN, direction=EndpointDirection.SERVER)
        features = make_feature_report()
        parameter = SignatureAlgorithmParameter().with_value(
            SignatureAlgorithm.ECDSA_SECP256R1_SHA256
        )
        parameter.apply(config, features)
        parameter.post_process(
            config,
            SideChannel(selected_cipher_suite=CipherSuite.TLS_AES_128_GCM_SHA256),
            features,
        )
        assert config.selected_signature_algorithm is SignatureAlgorithm.ECDSA_SECP256R1_SHA256
