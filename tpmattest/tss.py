"""TPM access through an interchangeable software-stack wrapper."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Union

from .types import (
    EphemeralKey,
    HashAlg,
    PcrQuote,
    PcrSet,
    RsaHashAlg,
    RsaScheme,
    TpmVersion,
)

BytesLike = Union[bytes, bytearray, memoryview, Iterable[int]]


class TssWrapper(ABC):
    """Interface to a TPM software stack offering what remote attestation needs."""

    @abstractmethod
    def get_ek_nv_cert(self) -> bytes:
        """Return the EK certificate in X.509 form."""

    @abstractmethod
    def get_ek_pub_without_persisting(self) -> bytes:
        """Return the packed EK public area, creating the EK if needed without persisting it."""

    @abstractmethod
    def get_ek_pub(self) -> bytes:
        """Return the packed EK public area, creating and persisting the EK if needed."""

    @abstractmethod
    def get_aik_cert(self) -> bytes:
        """Return the AIK certificate in X.509 form."""

    @abstractmethod
    def get_aik_pub(self) -> bytes:
        """Return the packed AIK public area."""

    @abstractmethod
    def get_pcr_quote(self, pcrs: List[int], hash_alg: HashAlg) -> PcrQuote:
        """Return a quote over the given PCRs of a bank, signed by the AIK."""

    @abstractmethod
    def get_pcr_values(self, pcrs: List[int], hash_alg: HashAlg) -> PcrSet:
        """Return the values of the given PCRs of a bank."""

    @abstractmethod
    def get_tcg_log(self) -> bytes:
        """Return the TCG boot measurement log."""

    @abstractmethod
    def get_version(self) -> TpmVersion:
        """Return the version of the TPM on this machine."""

    @abstractmethod
    def unseal(
        self,
        importable_public: bytes,
        importable_private: bytes,
        encrypted_seed: bytes,
        pcr_set: PcrSet,
        hash_alg: HashAlg,
        use_pcr_auth: bool = True,
    ) -> bytes:
        """Unseal an imported object with the EK stored in NV memory."""

    @abstractmethod
    def unseal_with_ek_from_spec(
        self,
        importable_public: bytes,
        importable_private: bytes,
        encrypted_seed: bytes,
        pcr_set: PcrSet,
        hash_alg: HashAlg,
        use_pcr_auth: bool = True,
    ) -> bytes:
        """Unseal an imported object with an EK generated from the standard template."""

    @abstractmethod
    def remove_persistent_ek(self) -> None:
        """Remove the persisted EK from the TPM."""

    @abstractmethod
    def unpack_aik_pub_to_rsa(self, aik_pub_marshaled: bytes) -> bytes:
        """Turn a packed AIK public area into an RSA public key."""

    @abstractmethod
    def unpack_pcr_quote_to_rsa(self, pcr_quote_marshaled: PcrQuote) -> PcrQuote:
        """Turn a packed quote and signature into the raw quote and its RSA signature."""

    @abstractmethod
    def get_ephemeral_key(self, pcr_set: PcrSet) -> EphemeralKey:
        """Create an ephemeral key bound to the PCRs, certified by the AIK."""

    @abstractmethod
    def decrypt_with_ephemeral_key(
        self,
        pcr_set: PcrSet,
        encrypted_blob: bytes,
        rsa_wrap_alg_id: RsaScheme,
        rsa_hash_alg_id: RsaHashAlg,
    ) -> bytes:
        """Decrypt a blob with an ephemeral key created from its template."""

    @abstractmethod
    def write_aik_cert(self, aik_cert: bytes) -> None:
        """Store a renewed AIK certificate in the TPM."""

    @abstractmethod
    def get_hcl_report(self) -> bytes:
        """Return the HCL report of a confidential VM."""

    @abstractmethod
    def get_ek_pub_with_certification(self) -> EphemeralKey:
        """Return the EK public key with certification data signed by the AIK."""


def _as_bytes(value: BytesLike) -> bytes:
    return bytes(value)


def _pcr_list(pcrs: Iterable[int]) -> List[int]:
    indices = [int(index) for index in pcrs]
    for index in indices:
        if not 0 <= index <= 0xFF:
            raise ValueError(f"PCR index {index} does not fit in an unsigned byte")
    return indices


class Tpm:
    """Unified TPM interface for remote attestation, backed by a TssWrapper."""

    def __init__(self, wrapper: TssWrapper) -> None:
        if not isinstance(wrapper, TssWrapper):
            raise TypeError("wrapper must be a TssWrapper")
        self._wrapper = wrapper

    @property
    def wrapper(self) -> TssWrapper:
        return self._wrapper

    def get_aik_cert(self) -> bytes:
        """Return the AIK certificate in DER form."""
        return _as_bytes(self._wrapper.get_aik_cert())

    def get_aik_pub(self) -> bytes:
        """Return the packed AIK public area."""
        return _as_bytes(self._wrapper.get_aik_pub())

    def get_pcr_quote(self, pcrs: Iterable[int], hash_alg: HashAlg) -> PcrQuote:
        """Return a quote over the given PCRs signed by the AIK."""
        return self._wrapper.get_pcr_quote(_pcr_list(pcrs), HashAlg(hash_alg))

    def get_pcr_values(self, pcrs: Iterable[int], hash_alg: HashAlg) -> PcrSet:
        """Return the values of the given PCRs."""
        return self._wrapper.get_pcr_values(_pcr_list(pcrs), HashAlg(hash_alg))

    def get_tcg_log(self) -> bytes:
        """Return the TCG boot measurement log."""
        return _as_bytes(self._wrapper.get_tcg_log())

    def get_ek_pub_without_persisting(self) -> bytes:
        """Return the packed EK public area without persisting a new EK."""
        return _as_bytes(self._wrapper.get_ek_pub_without_persisting())

    def get_ek_pub(self) -> bytes:
        """Return the packed EK public area, persisting the EK if it was created."""
        return _as_bytes(self._wrapper.get_ek_pub())

    def get_ek_nv_cert(self) -> bytes:
        """Return the EK certificate."""
        return _as_bytes(self._wrapper.get_ek_nv_cert())

    def get_version(self) -> TpmVersion:
        """Return the TPM version."""
        return TpmVersion(self._wrapper.get_version())

    def unseal(
        self,
        importable_public: BytesLike,
        importable_private: BytesLike,
        encrypted_seed: BytesLike,
        pcr_set: PcrSet,
        hash_alg: HashAlg,
        use_pcr_auth: bool = True,
    ) -> bytes:
        """Unseal an imported object with the persisted EK."""
        return _as_bytes(
            self._wrapper.unseal(
                _as_bytes(importable_public),
                _as_bytes(importable_private),
                _as_bytes(encrypted_seed),
                pcr_set,
                HashAlg(hash_alg),
                bool(use_pcr_auth),
            )
        )

    def unseal_with_ek_from_spec(
        self,
        importable_public: BytesLike,
        importable_private: BytesLike,
        encrypted_seed: BytesLike,
        pcr_set: PcrSet,
        hash_alg: HashAlg,
        use_pcr_auth: bool = True,
    ) -> bytes:
        """Unseal an imported object with an EK generated from the standard template."""
        return _as_bytes(
            self._wrapper.unseal_with_ek_from_spec(
                _as_bytes(importable_public),
                _as_bytes(importable_private),
                _as_bytes(encrypted_seed),
                pcr_set,
                HashAlg(hash_alg),
                bool(use_pcr_auth),
            )
        )

    def remove_persistent_ek(self) -> None:
        """Remove the persisted EK."""
        self._wrapper.remove_persistent_ek()

    def unpack_aik_pub_to_rsa(self, aik_pub_marshaled: BytesLike) -> bytes:
        """Turn a packed AIK public area into an RSA public key."""
        return _as_bytes(self._wrapper.unpack_aik_pub_to_rsa(_as_bytes(aik_pub_marshaled)))

    def unpack_pcr_quote_to_rsa(self, pcr_quote_marshaled: PcrQuote) -> PcrQuote:
        """Turn a packed quote into the raw quote and its RSA signature."""
        return self._wrapper.unpack_pcr_quote_to_rsa(pcr_quote_marshaled)

    def get_ephemeral_key(self, pcr_set: PcrSet) -> EphemeralKey:
        """Create an ephemeral key bound to the PCRs."""
        return self._wrapper.get_ephemeral_key(pcr_set)

    def decrypt_with_ephemeral_key(
        self,
        pcr_set: PcrSet,
        encrypted_blob: BytesLike,
        rsa_wrap_alg_id: RsaScheme = RsaScheme.RSAES,
        rsa_hash_alg_id: RsaHashAlg = RsaHashAlg.SHA1,
    ) -> bytes:
        """Decrypt a blob with an ephemeral key; RSAES and SHA1 by default."""
        return _as_bytes(
            self._wrapper.decrypt_with_ephemeral_key(
                pcr_set,
                _as_bytes(encrypted_blob),
                RsaScheme(rsa_wrap_alg_id),
                RsaHashAlg(rsa_hash_alg_id),
            )
        )

    def write_aik_cert(self, aik_cert: BytesLike) -> None:
        """Store a renewed AIK certificate."""
        self._wrapper.write_aik_cert(_as_bytes(aik_cert))

    def get_hcl_report(self) -> bytes:
        """Return the HCL report."""
        return _as_bytes(self._wrapper.get_hcl_report())

    def get_ek_pub_with_certification(self) -> EphemeralKey:
        """Return the EK public key with its certification data."""
        return self._wrapper.get_ek_pub_with_certification()