"""Checking, renewing and replacing the AK certificate stored in the TPM."""

from __future__ import annotations

import base64
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from .constants import JSON_AK_CERT_PEM, JSON_AK_CERT_QUERY_ID
from .errors import AttestationError, Tss2Error
from .telemetry import EventLevel, TelemetryReporting, get_telemetry_reporting
from .tss import Tpm
from .types import ErrorCode

_log = logging.getLogger("tpmattest.cert_operations")

CERTIFICATE_HEADER = "-----BEGIN CERTIFICATE-----\n"
CERTIFICATE_FOOTER = "\n-----END CERTIFICATE-----"
AK_RENEW_SYNC_API_VERSION = "2023-07-01"
AK_RENEW_ASYNC_API_VERSION = "2021-12-01"
AK_CERT_RENEWAL_THRESHOLD_DAYS = -90
QUERY_RENEWED_CERT_AFTER_SECONDS = 60
TRUSTED_VM_CERT_ISSUER_NAME_PREFIX = "/CN=MICROSOFT AZURE TRUSTED VM RSA"

_SECONDS_PER_DAY = 86400
_RENEW_TASK = "AkRenew"
_PROVISIONING_TASK = "AkCertProvisioning"


class ImdsService(ABC):
    """The instance metadata service calls needed to renew the AK certificate."""

    @abstractmethod
    def get_vm_id(self) -> str:
        """Return the id of this VM, or an empty string if it is unknown."""

    @abstractmethod
    def renew_ak_cert(self, ak_cert: str, vm_id: str, request_id: str, api_version: str) -> str:
        """Ask for a renewed AK certificate; return the raw response, empty on failure."""

    @abstractmethod
    def query_ak_cert(self, query_response: str, vm_id: str, request_id: str) -> str:
        """Fetch a certificate renewed asynchronously; return it in PEM form, empty on failure."""


class _Report(Exception):
    """Carries an error that an operation reports as is, past its catch-all handler."""

    def __init__(self, error: AttestationError) -> None:
        super().__init__(str(error))
        self.error = error


def der_to_pem(der: bytes) -> str:
    """Wrap a DER certificate in PEM armour, with the base64 body on one line."""
    body = base64.b64encode(bytes(der)).decode("ascii")
    return f"{CERTIFICATE_HEADER}{body}{CERTIFICATE_FOOTER}"


def remove_cert_header_and_footer(pem_cert: str) -> str:
    """Return the base64 body of a PEM certificate with armour and line breaks removed."""
    if not pem_cert:
        return ""
    cert = pem_cert.replace("\r", "")
    cert = cert.replace(CERTIFICATE_HEADER, "").replace(CERTIFICATE_FOOTER, "")
    return cert.replace("\n", "")


def _load_pem(pem_cert: str) -> x509.Certificate:
    der = base64.b64decode(remove_cert_header_and_footer(pem_cert), validate=True)
    return x509.load_der_x509_certificate(der)


def _name_oneline(name: x509.Name) -> str:
    return "".join(f"/{attr.rfc4514_attribute_name}={attr.value}" for attr in name)


def _not_after(certificate: x509.Certificate) -> datetime:
    value = getattr(certificate, "not_valid_after_utc", None)
    if value is None:
        value = certificate.not_valid_after.replace(tzinfo=timezone.utc)
    return value


def _whole_days(start: datetime, end: datetime) -> int:
    """Whole days from start to end, truncated toward zero."""
    seconds = int((end - start).total_seconds())
    days = abs(seconds) // _SECONDS_PER_DAY
    return days if seconds >= 0 else -days


def _request_id() -> str:
    return str(uuid.uuid4())


class TpmCertOperations:
    """Decides when the AK certificate needs renewal and renews it in the TPM."""

    def __init__(
        self,
        tpm: Tpm,
        imds: ImdsService,
        telemetry: Optional[TelemetryReporting] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._tpm = tpm
        self._imds = imds
        self._telemetry = telemetry
        self._sleep = sleep

    def _event(self, task_type: str, message: str, level: EventLevel) -> None:
        reporting = self._telemetry if self._telemetry is not None else get_telemetry_reporting()
        if reporting is not None:
            reporting.update_event(task_type, message, level)

    def is_ak_cert_renewal_required(self) -> bool:
        """Return True if the AK certificate has expired or expires within 90 days."""
        try:
            return self._renewal_required()
        except _Report as report:
            raise report.error from None
        except Exception as exc:
            _log.error("Unexpected error occured in is_ak_cert_renewal_required: %s", exc)
            self._event(
                _RENEW_TASK, "Unexpected Error in renewing AkCert", EventLevel.AK_RENEW_UNEXPECTED_ERROR
            )
            raise AttestationError(str(exc), ErrorCode.ERROR_AK_CERT_RENEW) from exc

    def _renewal_required(self) -> bool:
        try:
            pem_cert = self.read_ak_cert_from_tpm()
        except AttestationError as err:
            raise _Report(err) from err

        try:
            certificate = _load_pem(pem_cert)
        except ValueError as exc:
            _log.error("Unable to parse AK cert in memory")
            self._event(
                _RENEW_TASK,
                "Unable to parse Ak Cert in memory",
                EventLevel.AK_RENEW_CERT_PARSING_FAILURE,
            )
            raise _Report(
                AttestationError("Failed to parse Ak cert in memory", ErrorCode.ERROR_AK_CERT_PARSING)
            ) from exc

        try:
            self.check_ak_cert_provisioned(certificate)
        except AttestationError as err:
            raise _Report(err) from err

        diff_days = _whole_days(_not_after(certificate), datetime.now(timezone.utc))
        _log.info("Number of days left in AK cert expiry - %d", -diff_days)
        self._event(_RENEW_TASK, str(-diff_days), EventLevel.AK_RENEW_CERT_DAYS_TILL_EXPIRY)
        return diff_days >= AK_CERT_RENEWAL_THRESHOLD_DAYS

    def renew_and_replace_ak_cert(self) -> None:
        """Renew the AK certificate through IMDS and write the new one to the TPM."""
        try:
            self._renew()
        except _Report as report:
            raise report.error from None
        except Exception as exc:
            _log.error("Unexpected error occured in renew_and_replace_ak_cert: %s", exc)
            self._event(
                _RENEW_TASK,
                "Unexpected Error in RenewAndReplaceAkCert",
                EventLevel.AK_RENEW_UNEXPECTED_ERROR,
            )
            raise AttestationError(
                "Unexpected error in RenewAndReplaceAkCert", ErrorCode.ERROR_AK_CERT_RENEW
            ) from exc

    def _renew(self) -> None:
        vm_id = self._imds.get_vm_id()
        if not vm_id:
            _log.error("Failed to get vm id")
            self._event(_RENEW_TASK, "Failed to get vm id", EventLevel.AK_RENEW_EMPTY_VM_ID)
            raise _Report(
                AttestationError("Failed to get VM id from IMDS", ErrorCode.ERROR_AK_CERT_RENEW)
            )

        try:
            ak_cert = self.read_ak_cert_from_tpm()
        except AttestationError as err:
            _log.error("Failed to read AK Cert from TPM")
            raise _Report(err) from err

        response = self._imds.renew_ak_cert(ak_cert, vm_id, _request_id(), AK_RENEW_SYNC_API_VERSION)
        self._event(_RENEW_TASK, response or "", EventLevel.AK_RENEW_RESPONSE)

        if response:
            self._event(
                _RENEW_TASK,
                "Successfully retrived AkCert response from Thim",
                EventLevel.AK_RENEW_GET_RESPONSE_SUCCESS,
            )
            renewed_cert = self.parse_and_get_ak_cert(response)
            if not renewed_cert:
                _log.error("Failed to get AkCertPem from response.")
                self._event(
                    _RENEW_TASK,
                    "Failed to get AkCertPem from response",
                    EventLevel.AK_RENEW_RESPONSE_PARSING_FAILURE,
                )
                raise _Report(
                    AttestationError(
                        "Failed to get AkCert Pem from response", ErrorCode.ERROR_AK_CERT_RENEW
                    )
                )
        else:
            _log.error("Failed to renew Ak cert using sync api")
            self._event(
                _RENEW_TASK,
                "Failed to renew Ak Cert using sync api",
                EventLevel.AK_RENEW_EMPTY_CERT_RESPONSE,
            )
            _log.info("Retrying Ak renew using async api")
            response = self._imds.renew_ak_cert(
                ak_cert, vm_id, _request_id(), AK_RENEW_ASYNC_API_VERSION
            )
            self._sleep(QUERY_RENEWED_CERT_AFTER_SECONDS)
            renewed_cert = self._imds.query_ak_cert(response, vm_id, _request_id())
            if not renewed_cert:
                _log.info("Failed to query Ak cert using async api")
                self._event(
                    _RENEW_TASK,
                    "Failed to query Ak Cert using async api",
                    EventLevel.AK_RENEW_EMPTY_RENEWED_CERT,
                )
                raise _Report(
                    AttestationError(
                        "Failed to query Ak cert using async api", ErrorCode.ERROR_AK_CERT_RENEW
                    )
                )

        self._event(_RENEW_TASK, renewed_cert, EventLevel.AK_RENEWED_CERT)
        cert_der = base64.b64decode(remove_cert_header_and_footer(renewed_cert), validate=True)
        self._tpm.write_aik_cert(cert_der)
        _log.info("Successfully renewed AK cert")
        self._event(_RENEW_TASK, "Successfully renewed Ak Cert", EventLevel.AK_RENEW_SUCCESS)

    def read_ak_cert_from_tpm(self) -> str:
        """Read the AK certificate from the TPM and return it in PEM form."""
        try:
            pem_cert = der_to_pem(self._tpm.get_aik_cert())
        except Tss2Error as err:
            _log.error("Exception while reading the certificate from TPM: %s", err)
            self._report_ak_cert_failure(err)
            raise
        except Exception as exc:
            _log.error("Unknown Exception while reading the certificate from TPM: %s", exc)
            error = AttestationError(str(exc), ErrorCode.ERROR_TPM_INTERNAL_FAILURE)
            self._report_ak_cert_failure(error)
            raise error from exc
        self._event(
            _RENEW_TASK, "Successfully fetched the Ak Cert from TPM", EventLevel.TPM_CERT_OPS
        )
        _log.info("Successfully fetched the AK cert from TPM")
        return pem_cert

    def _report_ak_cert_failure(self, error: AttestationError) -> None:
        self._event(
            _RENEW_TASK,
            f"Failed to read Ak cert from TPM with error: {error}",
            EventLevel.TPM_CERT_OPS,
        )

    def read_aik_pub_from_tpm(self) -> str:
        """Read the packed AK public area from the TPM and return it base64 encoded."""
        try:
            ak_pub = base64.b64encode(bytes(self._tpm.get_aik_pub())).decode("ascii")
        except Tss2Error as err:
            _log.error("Exception while reading the Ak Pub from TPM: %s", err)
            self._report_aik_pub_failure(err)
            raise
        except Exception as exc:
            _log.error("UnknownException while reading the Ak Pub from TPM: %s", exc)
            error = AttestationError(str(exc), ErrorCode.ERROR_TPM_INTERNAL_FAILURE)
            self._report_aik_pub_failure(error)
            raise error from exc
        _log.info("Successfully fetched Aikpub from Tpm")
        return ak_pub

    def _report_aik_pub_failure(self, error: AttestationError) -> None:
        self._event(
            "TpmCertOperations", f"Failed to read Ak Pub from Tpm{error}", EventLevel.TPM_CERT_OPS
        )

    def parse_and_get_ak_cert(self, json_response: str) -> str:
        """Return the PEM certificate from a renewal response, or "" if there is none."""
        try:
            document = json.loads(json_response)
        except (TypeError, ValueError):
            return ""
        if not isinstance(document, dict):
            return ""
        ak_cert = document.get(JSON_AK_CERT_PEM, "")
        query_id = document.get(JSON_AK_CERT_QUERY_ID, "")
        ak_cert = ak_cert if isinstance(ak_cert, str) else ""
        query_id = query_id if isinstance(query_id, str) else ""

        _log.info("AK Cert Query guid: %s", query_id)
        _log.info("Renewed Ak Cert: %s", ak_cert)
        if query_id:
            self._event(_RENEW_TASK, query_id, EventLevel.AK_CERT_QUERY_GUID)
        return ak_cert

    def check_ak_cert_provisioned(self, certificate: x509.Certificate) -> None:
        """Raise if the AK certificate is still the default one the platform issued."""
        issuer = _name_oneline(certificate.issuer)
        _log.info("Ak Cert issuer name %s", issuer)
        self._event(_PROVISIONING_TASK, issuer, EventLevel.AK_CERT_GET_ISSUER)

        subject = _name_oneline(certificate.subject)
        _log.info("Ak Cert subject name %s", subject)
        self._event(_PROVISIONING_TASK, subject, EventLevel.AK_CERT_GET_SUBJECT)

        try:
            thumbprint = certificate.fingerprint(hashes.SHA256())
        except ValueError:
            _log.error("Digest failed while calculating thumbprint")
            self._event(
                _PROVISIONING_TASK,
                "Failed while calculating thumbprint",
                EventLevel.AK_CERT_PARSING_FAILURE,
            )
            thumbprint = bytes(32)
        self._event(
            _PROVISIONING_TASK,
            base64.b64encode(thumbprint).decode("ascii"),
            EventLevel.AK_CERT_GET_THUMBPRINT,
        )

        pub_error: Optional[AttestationError] = None
        try:
            ak_pub = self.read_aik_pub_from_tpm()
        except AttestationError as err:
            pub_error = err
            ak_pub = ""
            self._event(
                _PROVISIONING_TASK, f"Failed while reading AkPub{err}", EventLevel.AK_GET_PUB
            )
        self._event(_PROVISIONING_TASK, ak_pub, EventLevel.AK_GET_PUB)

        if TRUSTED_VM_CERT_ISSUER_NAME_PREFIX in issuer:
            raise AttestationError(
                "AkCert provisioning failed", ErrorCode.ERROR_AK_CERT_PROVISIONING_FAILED
            )
        if pub_error is not None:
            raise pub_error