"""Exceptions raised by the TPM and attestation layers."""

from __future__ import annotations

from typing import Optional, Sequence, Union

from .types import AttestationResult, ErrorCode

_SERVER_ERROR_LIMIT = 1024
_SHORT_ERROR_LIMIT = 128


def truncate(data: Union[str, bytes, bytearray, Sequence[int]], num_chars: int) -> str:
    """Return at most ``num_chars`` characters of ``data`` as text; bytes map one to one."""
    head = data[:num_chars]
    if isinstance(head, str):
        return head
    return bytes(head).decode("latin-1")


class AttestationError(Exception):
    """Base class for errors of this package, each tied to a result code."""

    code: ErrorCode = ErrorCode.ERROR_TPM_INTERNAL_FAILURE

    def __init__(self, message: str, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = ErrorCode(code)

    @property
    def tpm_error_code(self) -> int:
        return 0

    def to_result(self) -> AttestationResult:
        """Describe this error as an AttestationResult."""
        return AttestationResult(
            code=self.code,
            tpm_error_code=self.tpm_error_code,
            description=str(self),
        )


class Tss2Error(AttestationError):
    """A failure reported by the TPM software stack, with its return code."""

    code = ErrorCode.ERROR_TPM_OPERATION_FAILURE

    def __init__(self, description: str, rc: int) -> None:
        self.description = description
        self.rc = rc & 0xFFFFFFFF
        super().__init__(f"tpm2-tss exception : message={description}, code={self.rc}")

    @property
    def tpm_error_code(self) -> int:
        return self.rc


class OpenSslError(AttestationError):
    """A failure reported by the crypto library, with its return code."""

    def __init__(self, description: Optional[str], rc: int) -> None:
        self.description = description or ""
        self.rc = rc
        super().__init__(f'OpenSSL exception: message="{self.description}", code={rc}')


class ApcaWebError(AttestationError):
    """An error response from a certificate endpoint, with trimmed server context."""

    code = ErrorCode.ERROR_HTTP_REQUEST_FAILED

    def __init__(
        self,
        http_status: int,
        apca_addresses: str,
        invoke_https_result: int,
        http_response: Union[bytes, bytearray, Sequence[int]],
        short_error: str,
        apca_url_relative: str,
    ) -> None:
        self.http_status = http_status
        self.invoke_https_result = invoke_https_result
        # The response comes from a third party, so only a bounded part is kept.
        self.server_error = truncate(http_response, _SERVER_ERROR_LIMIT)
        self.server_error_short = truncate(short_error, _SHORT_ERROR_LIMIT)
        self.apca_endpoint = apca_url_relative.split("?", 1)[0]
        super().__init__(
            f"Invoking APCA with retry address '{apca_addresses}', "
            f"partial URL '{apca_url_relative}' failed with error {invoke_https_result}. "
            f"HTTP {http_status}. Error response is: {self.server_error}"
        )


class TpmFileNotFoundError(AttestationError, FileNotFoundError):
    """A file the TPM layer needs, such as the event log, does not exist."""

    def __init__(self) -> None:
        super().__init__("File not found")


class FeatureNotImplementedError(AttestationError, NotImplementedError):
    """The requested operation is not available."""

    def __init__(self) -> None:
        super().__init__("Function not yet implemented")