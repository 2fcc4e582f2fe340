"""Protocol catalog: versions, cipher suites, groups and algorithms.

The catalog lists every protocol constant the derivation engine can select,
together with the properties parameters need to reason about them (epoch,
key exchange, certificate key type, authentication tag length). The Protocol
Driver owns their encoding; conformix only names them.

Example:
    >>> CipherSuite.TLS_AES_128_GCM_SHA256.epoch
    <Epoch.MODERN: 'modern'>
    >>> CipherSuite.TLS_RSA_WITH_AES_128_CBC_SHA.certificate_key_type
    <CertificateKeyType.RSA: 'rsa'>
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

MAX_RECORD_LENGTH = 16384
FRAGMENTATION_PROBE_RECORD_LENGTH = 50


class Epoch(str, Enum):
    """Protocol version generation used to branch configuration construction.

    Example:
        >>> Epoch.MODERN.value
        'modern'
    """

    LEGACY = "legacy"
    MODERN = "modern"


class ProtocolVersion(str, Enum):
    """Protocol versions known to the catalog, oldest first."""

    TLS10 = "TLS10"
    TLS11 = "TLS11"
    TLS12 = "TLS12"
    TLS13 = "TLS13"

    @property
    def epoch(self) -> Epoch:
        return Epoch.MODERN if self is ProtocolVersion.TLS13 else Epoch.LEGACY


class KeyExchange(str, Enum):
    RSA = "rsa"
    DHE = "dhe"
    ECDHE = "ecdhe"
    # Modern suites leave key exchange to the key_share extension.
    NEGOTIATED = "negotiated"

    @property
    def is_ephemeral(self) -> bool:
        return self is not KeyExchange.RSA


class CertificateKeyType(str, Enum):
    RSA = "rsa"
    ECDSA = "ecdsa"
    DSS = "dss"


@dataclass(frozen=True)
class SuiteProperties:
    """Static properties of one cipher suite.

    Attributes:
        epoch: Protocol generation the suite belongs to
        key_exchange: Key exchange algorithm
        certificate_key_type: Key type the server certificate must carry,
            None when any certificate may authenticate the handshake
        mac_length: Length in bytes of the record authentication tag
        implemented: Whether the Protocol Driver can negotiate the suite
    """

    epoch: Epoch
    key_exchange: KeyExchange
    certificate_key_type: CertificateKeyType | None
    mac_length: int
    implemented: bool = True


class CipherSuite(str, Enum):
    """Cipher suites the catalog knows about."""

    TLS_RSA_WITH_AES_128_CBC_SHA = "TLS_RSA_WITH_AES_128_CBC_SHA"
    TLS_RSA_WITH_AES_256_CBC_SHA256 = "TLS_RSA_WITH_AES_256_CBC_SHA256"
    TLS_RSA_WITH_AES_128_GCM_SHA256 = "TLS_RSA_WITH_AES_128_GCM_SHA256"
    TLS_DHE_RSA_WITH_AES_128_CBC_SHA = "TLS_DHE_RSA_WITH_AES_128_CBC_SHA"
    TLS_DHE_DSS_WITH_AES_128_CBC_SHA = "TLS_DHE_DSS_WITH_AES_128_CBC_SHA"
    TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA = "TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA"
    TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256 = "TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256"
    TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA384 = "TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA384"
    TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA256 = "TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA256"
    TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256 = "TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256"
    TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256 = (
        "TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256"
    )
    TLS_AES_128_GCM_SHA256 = "TLS_AES_128_GCM_SHA256"
    TLS_AES_256_GCM_SHA384 = "TLS_AES_256_GCM_SHA384"
    TLS_CHACHA20_POLY1305_SHA256 = "TLS_CHACHA20_POLY1305_SHA256"
    TLS_AES_128_CCM_SHA256 = "TLS_AES_128_CCM_SHA256"
    TLS_AES_128_CCM_8_SHA256 = "TLS_AES_128_CCM_8_SHA256"

    @property
    def properties(self) -> SuiteProperties:
        return SUITE_PROPERTIES[self]

    @property
    def epoch(self) -> Epoch:
        return SUITE_PROPERTIES[self].epoch

    @property
    def key_exchange(self) -> KeyExchange:
        return SUITE_PROPERTIES[self].key_exchange

    @property
    def certificate_key_type(self) -> CertificateKeyType | None:
        return SUITE_PROPERTIES[self].certificate_key_type

    @property
    def mac_length(self) -> int:
        return SUITE_PROPERTIES[self].mac_length

    @property
    def is_implemented(self) -> bool:
        return SUITE_PROPERTIES[self].implemented

    @classmethod
    def implemented(cls) -> list[CipherSuite]:
        """Return every suite the Protocol Driver can negotiate, in catalog order."""
        return [suite for suite in cls if suite.is_implemented]


_L = Epoch.LEGACY
_M = Epoch.MODERN

SUITE_PROPERTIES: dict[CipherSuite, SuiteProperties] = {
    CipherSuite.TLS_RSA_WITH_AES_128_CBC_SHA: SuiteProperties(
        _L, KeyExchange.RSA, CertificateKeyType.RSA, 20
    ),
    CipherSuite.TLS_RSA_WITH_AES_256_CBC_SHA256: SuiteProperties(
        _L, KeyExchange.RSA, CertificateKeyType.RSA, 32
    ),
    CipherSuite.TLS_RSA_WITH_AES_128_GCM_SHA256: SuiteProperties(
        _L, KeyExchange.RSA, CertificateKeyType.RSA, 16
    ),
    CipherSuite.TLS_DHE_RSA_WITH_AES_128_CBC_SHA: SuiteProperties(
        _L, KeyExchange.DHE, CertificateKeyType.RSA, 20
    ),
    CipherSuite.TLS_DHE_DSS_WITH_AES_128_CBC_SHA: SuiteProperties(
        _L, KeyExchange.DHE, CertificateKeyType.DSS, 20
    ),
    CipherSuite.TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA: SuiteProperties(
        _L, KeyExchange.ECDHE, CertificateKeyType.RSA, 20
    ),
    CipherSuite.TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256: SuiteProperties(
        _L, KeyExchange.ECDHE, CertificateKeyType.RSA, 16
    ),
    CipherSuite.TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA384: SuiteProperties(
        _L, KeyExchange.ECDHE, CertificateKeyType.RSA, 48
    ),
    CipherSuite.TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA256: SuiteProperties(
        _L, KeyExchange.ECDHE, CertificateKeyType.ECDSA, 32
    ),
    CipherSuite.TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256: SuiteProperties(
        _L, KeyExchange.ECDHE, CertificateKeyType.ECDSA, 16
    ),
    CipherSuite.TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256: SuiteProperties(
        _L, KeyExchange.ECDHE, CertificateKeyType.ECDSA, 16
    ),
    CipherSuite.TLS_AES_128_GCM_SHA256: SuiteProperties(_M, KeyExchange.NEGOTIATED, None, 16),
    CipherSuite.TLS_AES_256_GCM_SHA384: SuiteProperties(_M, KeyExchange.NEGOTIATED, None, 16),
    CipherSuite.TLS_CHACHA20_POLY1305_SHA256: SuiteProperties(
        _M, KeyExchange.NEGOTIATED, None, 16
    ),
    CipherSuite.TLS_AES_128_CCM_SHA256: SuiteProperties(_M, KeyExchange.NEGOTIATED, None, 16),
    CipherSuite.TLS_AES_128_CCM_8_SHA256: SuiteProperties(
        _M, KeyExchange.NEGOTIATED, None, 8, implemented=False
    ),
}


class NamedGroup(str, Enum):
    """Named groups for ephemeral key exchange."""

    SECP256R1 = "secp256r1"
    SECP384R1 = "secp384r1"
    SECP521R1 = "secp521r1"
    X25519 = "x25519"
    X448 = "x448"
    BRAINPOOLP256R1 = "brainpoolP256r1"
    FFDHE2048 = "ffdhe2048"
    FFDHE3072 = "ffdhe3072"

    @property
    def is_modern(self) -> bool:
        """Whether the group may be negotiated in the modern epoch."""
        return self is not NamedGroup.BRAINPOOLP256R1

    @property
    def is_elliptic(self) -> bool:
        return not self.value.startswith("ffdhe")


class SignatureAlgorithm(str, Enum):
    """Signature and hash algorithm pairs."""

    RSA_PKCS1_SHA256 = "rsa_pkcs1_sha256"
    RSA_PKCS1_SHA384 = "rsa_pkcs1_sha384"
    RSA_PSS_RSAE_SHA256 = "rsa_pss_rsae_sha256"
    ECDSA_SECP256R1_SHA256 = "ecdsa_secp256r1_sha256"
    ECDSA_SECP384R1_SHA384 = "ecdsa_secp384r1_sha384"
    DSA_SHA256 = "dsa_sha256"

    @property
    def key_type(self) -> CertificateKeyType:
        if self.value.startswith("rsa"):
            return CertificateKeyType.RSA
        if self.value.startswith("ecdsa"):
            return CertificateKeyType.ECDSA
        return CertificateKeyType.DSS

    @property
    def is_modern(self) -> bool:
        """Whether the algorithm may sign modern-epoch handshakes."""
        return not self.value.startswith(("rsa_pkcs1", "dsa"))


class ExtensionType(str, Enum):
    SERVER_NAME = "server_name"
    MAX_FRAGMENT_LENGTH = "max_fragment_length"
    SUPPORTED_GROUPS = "supported_groups"
    EC_POINT_FORMATS = "ec_point_formats"
    SIGNATURE_ALGORITHMS = "signature_algorithms"
    PADDING = "padding"
    ENCRYPT_THEN_MAC = "encrypt_then_mac"
    EXTENDED_MASTER_SECRET = "extended_master_secret"
    SESSION_TICKET = "session_ticket"
    SUPPORTED_VERSIONS = "supported_versions"
    KEY_SHARE = "key_share"
    RENEGOTIATION_INFO = "renegotiation_info"


class MaxFragmentLength(str, Enum):
    """Values of the max_fragment_length extension."""

    TWO_9 = "2^9"
    TWO_10 = "2^10"
    TWO_11 = "2^11"
    TWO_12 = "2^12"

    @property
    def size(self) -> int:
        return 2 ** int(self.value.split("^")[1])


class CompressionMethod(str, Enum):
    NULL = "null"
    DEFLATE = "deflate"


class AlertDescription(str, Enum):
    CLOSE_NOTIFY = "close_notify"
    UNEXPECTED_MESSAGE = "unexpected_message"
    BAD_RECORD_MAC = "bad_record_mac"
    RECORD_OVERFLOW = "record_overflow"
    HANDSHAKE_FAILURE = "handshake_failure"
    BAD_CERTIFICATE = "bad_certificate"
    ILLEGAL_PARAMETER = "illegal_parameter"
    DECODE_ERROR = "decode_error"
    DECRYPT_ERROR = "decrypt_error"
    PROTOCOL_VERSION = "protocol_version"
    INTERNAL_ERROR = "internal_error"
    MISSING_EXTENSION = "missing_extension"
    UNSUPPORTED_EXTENSION = "unsupported_extension"


@dataclass(frozen=True)
class CertificateKeyPair:
    """A certificate and private key the driver can present.

    Attributes:
        name: Identifier the driver uses to locate the key material
        key_type: Public key algorithm
        key_size: Public key size in bits
    """

    name: str
    key_type: CertificateKeyType
    key_size: int

    def __str__(self) -> str:
        return self.name


AVAILABLE_CERTIFICATES: tuple[CertificateKeyPair, ...] = (
    CertificateKeyPair("rsa1024", CertificateKeyType.RSA, 1024),
    CertificateKeyPair("rsa2048", CertificateKeyType.RSA, 2048),
    CertificateKeyPair("rsa4096", CertificateKeyType.RSA, 4096),
    CertificateKeyPair("ecdsa256", CertificateKeyType.ECDSA, 256),
    CertificateKeyPair("ecdsa384", CertificateKeyType.ECDSA, 384),
    CertificateKeyPair("dss1024", CertificateKeyType.DSS, 1024),
    CertificateKeyPair("dss2048", CertificateKeyType.DSS, 2048),
)


def certificates_for(key_type: CertificateKeyType) -> list[CertificateKeyPair]:
    """Return available certificates of ``key_type``, smallest key first."""
    return sorted(
        (cert for cert in AVAILABLE_CERTIFICATES if cert.key_type is key_type),
        key=lambda cert: cert.key_size,
    )
