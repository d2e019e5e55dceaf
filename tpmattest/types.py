"""Value types shared by the TPM and attestation layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional

CLIENT_PARAMS_VERSION = 1

PcrList = List[int]
Buffer = bytes


def _check_unsigned(name: str, value: int, bits: int) -> None:
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{name} must fit in an unsigned {bits}-bit integer, got {value}")


class TpmVersion(Enum):
    """Family of the TPM present on the machine."""

    V1_2 = "1.2"
    V2_0 = "2.0"


class RsaScheme(IntEnum):
    """RSA padding schemes, using their TPM2 algorithm identifiers."""

    NULL = 0x0010
    RSAES = 0x0015
    OAEP = 0x0017


class RsaHashAlg(IntEnum):
    """Hash algorithms for RSA operations, using their TPM2 algorithm identifiers."""

    SHA1 = 0x0004
    SHA256 = 0x000B
    SHA384 = 0x000C
    SHA512 = 0x000D


class HashAlg(Enum):
    """Hash algorithm of a PCR bank."""

    SHA1 = "Sha1"
    SHA256 = "Sha256"
    SHA384 = "Sha384"
    SHA512 = "Sha512"
    SM3_256 = "Sm3_256"


@dataclass
class RsaPublicKey:
    """An RSA public key split into its exponent and modulus."""

    bit_length: int
    exponent: bytes = b""
    modulus: bytes = b""

    def __post_init__(self) -> None:
        _check_unsigned("bit_length", self.bit_length, 16)


@dataclass
class PcrValue:
    """The digest held by one PCR."""

    index: int
    digest: bytes = b""

    def __post_init__(self) -> None:
        _check_unsigned("index", self.index, 8)


@dataclass
class PcrSet:
    """A set of PCR values read from one bank."""

    hash_alg: HashAlg = HashAlg.SHA256
    pcrs: List[PcrValue] = field(default_factory=list)


@dataclass
class PcrQuote:
    """A quote over PCRs together with its signature."""

    quote: bytes = b""
    signature: bytes = b""


@dataclass
class EphemeralKey:
    """A key created in the TPM with its certification data."""

    encryption_key: bytes = b""
    certify_info: bytes = b""
    certify_info_signature: bytes = b""


class ErrorCode(IntEnum):
    """Result codes reported by the attestation client library."""

    SUCCESS = 0
    ERROR_CURL_INITIALIZATION = -1
    ERROR_RESPONSE_PARSING = -2
    ERROR_MSI_TOKEN_NOT_FOUND = -3
    ERROR_HTTP_REQUEST_EXCEEDED_RETRIES = -4
    ERROR_HTTP_REQUEST_FAILED = -5
    ERROR_ATTESTATION_FAILED = -6
    ERROR_SENDING_CURL_REQUEST_FAILED = -7
    ERROR_INVALID_INPUT_PARAMETER = -8
    ERROR_ATTESTATION_PARAMETERS_VALIDATION_FAILED = -9
    ERROR_FAILED_MEMORY_ALLOCATION = -10
    ERROR_FAILED_TO_GET_OS_INFO = -11
    ERROR_TPM_INTERNAL_FAILURE = -12
    ERROR_TPM_OPERATION_FAILURE = -13
    ERROR_JWT_DECRYPTION_FAILED = -14
    ERROR_JWT_DECRYPTION_TPM_ERROR = -15
    ERROR_INVALID_JSON_RESPONSE = -16
    ERROR_EMPTY_VCEK_CERT = -17
    ERROR_EMPTY_RESPONSE = -18
    ERROR_EMPTY_REQUEST_BODY = -19
    ERROR_HCL_REPORT_PARSING_FAILURE = -20
    ERROR_HCL_REPORT_EMPTY = -21
    ERROR_EXTRACTING_JWK_INFO = -22
    ERROR_CONVERTING_JWK_TO_RSA_PUB = -23
    ERROR_EVP_PKEY_ENCRYPT_INIT_FAILED = -24
    ERROR_EVP_PKEY_ENCRYPT_FAILED = -25
    ERROR_DATA_DECRYPTION_TPM_ERROR = -26
    ERROR_PARSING_DNS_INFO = -27
    ERROR_PARSING_ATTESTATION_RESPONSE = -28
    ERROR_AK_CERT_PROVISIONING_FAILED = -29
    ERROR_EMPTY_TD_QUOTE = -30
    ERROR_AK_CERT_PARSING = -31
    ERROR_AK_CERT_RENEW = -32


@dataclass
class AttestationResult:
    """Outcome of a library operation: a code, an optional TPM code and a description."""

    code: ErrorCode = ErrorCode.SUCCESS
    tpm_error_code: int = 0
    description: str = ""

    def __post_init__(self) -> None:
        self.code = ErrorCode(self.code)
        _check_unsigned("tpm_error_code", self.tpm_error_code, 32)

    def is_success(self) -> bool:
        """Return True when the result carries the success code."""
        return self.code is ErrorCode.SUCCESS


@dataclass
class ClientParameters:
    """What a caller hands to the client library for an attestation request."""

    version: int = CLIENT_PARAMS_VERSION
    attestation_endpoint_url: Optional[str] = None
    client_payload: Optional[str] = None

    def __post_init__(self) -> None:
        _check_unsigned("version", self.version, 32)


class OsType(Enum):
    """Operating system family."""

    LINUX = "Linux"
    WINDOWS = "Windows"
    INVALID = "Invalid"


class EncryptionType(Enum):
    """Kind of encryption applied to data; only NONE is supported."""

    NONE = "None"


@dataclass
class OsInfo:
    """Operating system details reported with attestation evidence."""

    os_type: OsType = OsType.INVALID
    distro_name: str = ""
    build: str = ""
    distro_version_major: int = 0
    distro_version_minor: int = 0

    def __post_init__(self) -> None:
        _check_unsigned("distro_version_major", self.distro_version_major, 32)
        _check_unsigned("distro_version_minor", self.distro_version_minor, 32)