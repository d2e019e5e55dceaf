import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from tpmattest.cert_operations import (
    AK_RENEW_ASYNC_API_VERSION,
    AK_RENEW_SYNC_API_VERSION,
    CERTIFICATE_FOOTER,
    CERTIFICATE_HEADER,
    QUERY_RENEWED_CERT_AFTER_SECONDS,
    ImdsService,
    TpmCertOperations,
    der_to_pem,
    remove_cert_header_and_footer,
)
from tpmattest.errors import AttestationError, Tss2Error
from tpmattest.telemetry import EventLevel, TelemetryReporting, set_telemetry_reporting
from tpmattest.types import ErrorCode


@pytest.fixture(scope="module")
def key():
    return ec.generate_private_key(ec.SECP256R1())


def make_cert(key, issuer_cn="Test Issuer", not_after=None):
    now = datetime.now(timezone.utc)
    if not_after is None:
        not_after = now + timedelta(days=365, hours=1)
    not_before = min(now, not_after) - timedelta(days=1)
    builder = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test AK")]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_cn)]))
        .public_key(key.public_key())
        .serial_number(1)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )
    return builder.sign(key, hashes.SHA256()).public_bytes(Encoding.DER)


class FakeTpm:
    def __init__(self, aik_cert=b"", aik_pub=b"ak-public", cert_error=None, pub_error=None,
                 write_error=None):
        self.aik_cert = aik_cert
        self.aik_pub = aik_pub
        self.cert_error = cert_error
        self.pub_error = pub_error
        self.write_error = write_error
        self.written = []

    def get_aik_cert(self):
        if self.cert_error is not None:
            raise self.cert_error
        return self.aik_cert

    def get_aik_pub(self):
        if self.pub_error is not None:
            raise self.pub_error
        return self.aik_pub

    def write_aik_cert(self, aik_cert):
        if self.write_error is not None:
            raise self.write_error
        self.written.append(aik_cert)


class FakeImds(ImdsService):
    def __init__(self, vm_id="vm-test-id", renew_responses=(), query_response=""):
        self.vm_id = vm_id
        self.renew_responses = list(renew_responses)
        self.query_response = query_response
        self.renew_calls = []
        self.query_calls = []

    def get_vm_id(self):
        if isinstance(self.vm_id, Exception):
            raise self.vm_id
        return self.vm_id

    def renew_ak_cert(self, ak_cert, vm_id, request_id, api_version):
        self.renew_calls.append((ak_cert, vm_id, request_id, api_version))
        return self.renew_responses.pop(0)

    def query_ak_cert(self, query_response, vm_id, request_id):
        self.query_calls.append((query_response, vm_id, request_id))
        return self.query_response


def make_ops(tpm, imds=None):
    reporting = TelemetryReporting(sink=lambda event: None)
    sleeps = []
    ops = TpmCertOperations(tpm, imds if imds is not None else FakeImds(), reporting, sleeps.append)
    return ops, reporting, sleeps


def levels(reporting):
    return [event.event_level for event in reporting.events]


def messages(reporting, level):
    return [event.message for event in reporting.events if event.event_level is level]


def test_der_to_pem_format():
    assert der_to_pem(b"\x00\x01\x02") == (
        "-----BEGIN CERTIFICATE-----\nAAEC\n-----END CERTIFICATE-----"
    )


def test_der_to_pem_round_trip(key):
    der = make_cert(key)
    pem = der_to_pem(der)
    assert pem.startswith(CERTIFICATE_HEADER)
    assert pem.endswith(CERTIFICATE_FOOTER)
    assert base64.b64decode(remove_cert_header_and_footer(pem)) == der


def test_remove_header_and_footer_strips_line_breaks():
    pem = "-----BEGIN CERTIFICATE-----\r\nAB\r\nCD\r\n-----END CERTIFICATE-----"
    assert remove_cert_header_and_footer(pem) == "ABCD"
    assert remove_cert_header_and_footer("") == ""


def test_read_ak_cert_from_tpm(key):
    der = make_cert(key)
    ops, reporting, _ = make_ops(FakeTpm(aik_cert=der))
    pem = ops.read_ak_cert_from_tpm()
    assert pem == der_to_pem(der)
    assert messages(reporting, EventLevel.TPM_CERT_OPS) == [
        "Successfully fetched the Ak Cert from TPM"
    ]


def test_read_ak_cert_tss_failure_keeps_return_code():
    ops, reporting, _ = make_ops(FakeTpm(cert_error=Tss2Error("nv read", 0x18B)))
    with pytest.raises(Tss2Error) as info:
        ops.read_ak_cert_from_tpm()
    assert info.value.rc == 0x18B
    assert info.value.to_result().code is ErrorCode.ERROR_TPM_OPERATION_FAILURE
    [message] = messages(reporting, EventLevel.TPM_CERT_OPS)
    assert message.startswith("Failed to read Ak cert from TPM with error: ")


def test_read_ak_cert_unknown_failure():
    ops, _, _ = make_ops(FakeTpm(cert_error=RuntimeError("device busy")))
    with pytest.raises(AttestationError) as info:
        ops.read_ak_cert_from_tpm()
    assert info.value.code is ErrorCode.ERROR_TPM_INTERNAL_FAILURE
    assert "device busy" in str(info.value)


def test_read_aik_pub_from_tpm():
    ops, _, _ = make_ops(FakeTpm(aik_pub=b"\x01\x02\x03\x04"))
    assert base64.b64decode(ops.read_aik_pub_from_tpm()) == b"\x01\x02\x03\x04"


def test_renewal_not_required_for_long_lived_cert(key):
    ops, reporting, _ = make_ops(FakeTpm(aik_cert=make_cert(key)))
    assert ops.is_ak_cert_renewal_required() is False
    [days] = messages(reporting, EventLevel.AK_RENEW_CERT_DAYS_TILL_EXPIRY)
    assert int(days) == 365


def test_renewal_required_when_expiring_soon(key):
    soon = datetime.now(timezone.utc) + timedelta(days=30)
    ops, _, _ = make_ops(FakeTpm(aik_cert=make_cert(key, not_after=soon)))
    assert ops.is_ak_cert_renewal_required() is True


def test_renewal_required_when_expired(key):
    past = datetime.now(timezone.utc) - timedelta(days=10)
    ops, reporting, _ = make_ops(FakeTpm(aik_cert=make_cert(key, not_after=past)))
    assert ops.is_ak_cert_renewal_required() is True
    [days] = messages(reporting, EventLevel.AK_RENEW_CERT_DAYS_TILL_EXPIRY)
    assert int(days) < 0


def test_unparsable_cert_is_reported():
    ops, reporting, _ = make_ops(FakeTpm(aik_cert=b"not a certificate"))
    with pytest.raises(AttestationError) as info:
        ops.is_ak_cert_renewal_required()
    assert info.value.code is ErrorCode.ERROR_AK_CERT_PARSING
    assert EventLevel.AK_RENEW_CERT_PARSING_FAILURE in levels(reporting)


def test_trusted_vm_issuer_means_not_provisioned(key):
    der = make_cert(key, issuer_cn="MICROSOFT AZURE TRUSTED VM RSA 2024")
    ops, _, _ = make_ops(FakeTpm(aik_cert=der))
    with pytest.raises(AttestationError) as info:
        ops.is_ak_cert_renewal_required()
    assert info.value.code is ErrorCode.ERROR_AK_CERT_PROVISIONING_FAILED


def test_check_provisioned_reports_certificate_details(key):
    der = make_cert(key)
    certificate = x509.load_der_x509_certificate(der)
    ops, reporting, _ = make_ops(FakeTpm(aik_pub=b"ak-public"))
    ops.check_ak_cert_provisioned(certificate)
    assert messages(reporting, EventLevel.AK_CERT_GET_ISSUER) == ["/CN=Test Issuer"]
    assert messages(reporting, EventLevel.AK_CERT_GET_THUMBPRINT) == [
        base64.b64encode(certificate.fingerprint(hashes.SHA256())).decode("ascii")
    ]
    assert messages(reporting, EventLevel.AK_GET_PUB) == [
        base64.b64encode(b"ak-public").decode("ascii")
    ]


def test_aik_pub_failure_fails_renewal_check(key):
    tpm = FakeTpm(aik_cert=make_cert(key), pub_error=Tss2Error("read public", 0x18B))
    ops, reporting, _ = make_ops(tpm)
    with pytest.raises(Tss2Error) as info:
        ops.is_ak_cert_renewal_required()
    assert info.value.rc == 0x18B
    assert levels(reporting).count(EventLevel.AK_GET_PUB) == 2


def test_parse_and_get_ak_cert():
    ops, reporting, _ = make_ops(FakeTpm())
    response = json.dumps({"AkCertPem": "PEM-DATA", "CertQueryId": "query-id"})
    assert ops.parse_and_get_ak_cert(response) == "PEM-DATA"
    assert messages(reporting, EventLevel.AK_CERT_QUERY_GUID) == ["query-id"]
    assert ops.parse_and_get_ak_cert("{not json") == ""
    assert ops.parse_and_get_ak_cert(json.dumps({"Other": 1})) == ""


def test_renew_with_sync_api(key):
    old_der, new_der = make_cert(key), make_cert(key, issuer_cn="Renewed Issuer")
    imds = FakeImds(renew_responses=[json.dumps({"AkCertPem": der_to_pem(new_der)})])
    tpm = FakeTpm(aik_cert=old_der)
    ops, reporting, sleeps = make_ops(tpm, imds)
    ops.renew_and_replace_ak_cert()
    assert tpm.written == [new_der]
    [(sent_cert, vm_id, _, api_version)] = imds.renew_calls
    assert sent_cert == der_to_pem(old_der)
    assert vm_id == "vm-test-id"
    assert api_version == AK_RENEW_SYNC_API_VERSION
    assert sleeps == []
    assert levels(reporting)[-1] is EventLevel.AK_RENEW_SUCCESS


def test_renew_sync_response_without_cert(key):
    imds = FakeImds(renew_responses=[json.dumps({"CertQueryId": "query-id"})])
    tpm = FakeTpm(aik_cert=make_cert(key))
    ops, reporting, _ = make_ops(tpm, imds)
    with pytest.raises(AttestationError) as info:
        ops.renew_and_replace_ak_cert()
    assert info.value.code is ErrorCode.ERROR_AK_CERT_RENEW
    assert EventLevel.AK_RENEW_RESPONSE_PARSING_FAILURE in levels(reporting)
    assert tpm.written == []


def test_renew_falls_back_to_async_api(key):
    new_der = make_cert(key, issuer_cn="Renewed Issuer")
    imds = FakeImds(renew_responses=["", "pending-query"], query_response=der_to_pem(new_der))
    tpm = FakeTpm(aik_cert=make_cert(key))
    ops, reporting, sleeps = make_ops(tpm, imds)
    ops.renew_and_replace_ak_cert()
    assert [call[3] for call in imds.renew_calls] == [
        AK_RENEW_SYNC_API_VERSION,
        AK_RENEW_ASYNC_API_VERSION,
    ]
    assert sleeps == [QUERY_RENEWED_CERT_AFTER_SECONDS]
    assert imds.query_calls[0][0] == "pending-query"
    request_ids = {call[2] for call in imds.renew_calls} | {imds.query_calls[0][2]}
    assert len(request_ids) == 3
    assert tpm.written == [new_der]
    assert EventLevel.AK_RENEW_EMPTY_CERT_RESPONSE in levels(reporting)


def test_renew_async_query_empty(key):
    imds = FakeImds(renew_responses=["", "pending-query"], query_response="")
    tpm = FakeTpm(aik_cert=make_cert(key))
    ops, reporting, _ = make_ops(tpm, imds)
    with pytest.raises(AttestationError) as info:
        ops.renew_and_replace_ak_cert()
    assert info.value.code is ErrorCode.ERROR_AK_CERT_RENEW
    assert str(info.value) == "Failed to query Ak cert using async api"
    assert EventLevel.AK_RENEW_EMPTY_RENEWED_CERT in levels(reporting)


def test_renew_without_vm_id(key):
    imds = FakeImds(vm_id="")
    tpm = FakeTpm(aik_cert=make_cert(key))
    ops, reporting, _ = make_ops(tpm, imds)
    with pytest.raises(AttestationError) as info:
        ops.renew_and_replace_ak_cert()
    assert info.value.code is ErrorCode.ERROR_AK_CERT_RENEW
    assert levels(reporting) == [EventLevel.AK_RENEW_EMPTY_VM_ID]
    assert imds.renew_calls == []


def test_renew_passes_tpm_read_failure_through():
    tpm = FakeTpm(cert_error=Tss2Error("nv read", 7))
    ops, _, _ = make_ops(tpm, FakeImds())
    with pytest.raises(Tss2Error) as info:
        ops.renew_and_replace_ak_cert()
    assert info.value.rc == 7


def test_renew_unexpected_imds_error():
    ops, reporting, _ = make_ops(FakeTpm(), FakeImds(vm_id=RuntimeError("network down")))
    with pytest.raises(AttestationError) as info:
        ops.renew_and_replace_ak_cert()
    assert info.value.code is ErrorCode.ERROR_AK_CERT_RENEW
    assert levels(reporting) == [EventLevel.AK_RENEW_UNEXPECTED_ERROR]


def test_renew_write_failure_is_unexpected(key):
    imds = FakeImds(renew_responses=[json.dumps({"AkCertPem": der_to_pem(make_cert(key))})])
    tpm = FakeTpm(aik_cert=make_cert(key), write_error=Tss2Error("nv write", 1))
    ops, reporting, _ = make_ops(tpm, imds)
    with pytest.raises(AttestationError) as info:
        ops.renew_and_replace_ak_cert()
    assert info.value.code is ErrorCode.ERROR_AK_CERT_RENEW
    assert levels(reporting)[-1] is EventLevel.AK_RENEW_UNEXPECTED_ERROR


def test_global_telemetry_is_used_when_none_given(key):
    reporting = TelemetryReporting(sink=lambda event: None)
    set_telemetry_reporting(reporting)
    try:
        ops = TpmCertOperations(FakeTpm(aik_cert=make_cert(key)), FakeImds(), None, lambda s: None)
        ops.read_ak_cert_from_tpm()
        assert levels(reporting) == [EventLevel.TPM_CERT_OPS]
    finally:
        set_telemetry_reporting(None)