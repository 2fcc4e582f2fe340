"""Tests for the protocol catalog and draft configuration."""

from conformix.models.enums import EndpointDirection, Epoch
from conformix.protocol.catalog import (
    CertificateKeyType,
    CipherSuite,
    ExtensionType,
    KeyExchange,
    MaxFragmentLength,
    NamedGroup,
    ProtocolVersion,
    SignatureAlgorithm,
    certificates_for,
)
from conformix.protocol.config import DraftConfig


class TestCipherSuite:
    """Tests for cipher suite properties."""

    def test_every_suite_has_properties(self) -> None:
        for suite in CipherSuite:
            assert suite.properties.mac_length > 0

    def test_modern_suites_negotiate_key_exchange(self) -> None:
        suite = CipherSuite.TLS_CHACHA20_POLY1305_SHA256
        assert suite.epoch is Epoch.MODERN
        assert suite.key_exchange is KeyExchange.NEGOTIATED
        assert suite.certificate_key_type is None

    def test_legacy_suite_properties(self) -> None:
        suite = CipherSuite.TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA256
        assert suite.epoch is Epoch.LEGACY
        assert suite.key_exchange.is_ephemeral
        assert suite.certificate_key_type is CertificateKeyType.ECDSA
        assert suite.mac_length == 32

    def test_implemented_excludes_ccm_8(self) -> None:
        implemented = CipherSuite.implemented()
        assert CipherSuite.TLS_AES_128_CCM_8_SHA256 not in implemented
        assert len(implemented) == len(CipherSuite) - 1


class TestCatalogProperties:
    def test_version_epochs(self) -> None:
        assert ProtocolVersion.TLS13.epoch is Epoch.MODERN
        assert {v.epoch for v in ProtocolVersion if v is not ProtocolVersion.TLS13} == {
            Epoch.LEGACY
        }

    def test_group_properties(self) -> None:
        assert not NamedGroup.BRAINPOOLP256R1.is_modern
        assert NamedGroup.FFDHE2048.is_modern
        assert not NamedGroup.FFDHE2048.is_elliptic
        assert NamedGroup.X25519.is_elliptic

    def test_signature_properties(self) -> None:
        assert SignatureAlgorithm.RSA_PSS_RSAE_SHA256.key_type is CertificateKeyType.RSA
        assert SignatureAlgorithm.RSA_PSS_RSAE_SHA256.is_modern
        assert not SignatureAlgorithm.RSA_PKCS1_SHA256.is_modern
        assert SignatureAlgorithm.DSA_SHA256.key_type is CertificateKeyType.DSS

    def test_certificates_sorted_by_key_size(self) -> None:
        sizes = [cert.key_size for cert in certificates_for(CertificateKeyType.RSA)]
        assert sizes == [1024, 2048, 4096]
        assert str(certificates_for(CertificateKeyType.ECDSA)[0]) == "ecdsa256"


class TestDraftConfig:
    """Tests for DraftConfig."""

    def test_copy_is_deep(self) -> None:
        config = DraftConfig(epoch=Epoch.LEGACY, direction=EndpointDirection.SERVER)
        config.cipher_suites = [CipherSuite.TLS_RSA_WITH_AES_128_CBC_SHA]
        clone = config.copy()
        clone.cipher_suites.append(CipherSuite.TLS_RSA_WITH_AES_256_CBC_SHA256)
        assert config.cipher_suites == [CipherSuite.TLS_RSA_WITH_AES_128_CBC_SHA]

    def test_enabled_extensions(self) -> None:
        config = DraftConfig(epoch=Epoch.LEGACY, direction=EndpointDirection.SERVER)
        assert config.enabled_extensions() == []
        config.encrypt_then_mac = True
        config.max_fragment_length = MaxFragmentLength.TWO_9
        assert config.enabled_extensions() == [
            ExtensionType.ENCRYPT_THEN_MAC,
            ExtensionType.MAX_FRAGMENT_LENGTH,
        ]
