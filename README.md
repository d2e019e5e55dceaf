# tpmattest

Building blocks for TPM-based remote attestation clients. The package defines
the data types, errors, logging and telemetry hooks, an interface to a TPM
software stack, and the logic that checks and renews the attestation key (AK)
certificate stored in the TPM.

## Modules

- `tpmattest.types`: attestation data types: `PcrValue`, `PcrSet`, `PcrQuote`,
  `EphemeralKey`, `RsaPublicKey`, `ClientParameters`, `OsInfo`, and the enums
  `HashAlg`, `RsaScheme`, `RsaHashAlg`, `TpmVersion`, `OsType`, `EncryptionType`.
  `AttestationResult` holds an `ErrorCode`, a TPM error code and a description;
  `is_success()` tells whether the code is `ErrorCode.SUCCESS`. Integer fields
  are checked against the width they have on the wire and raise `ValueError`
  when they do not fit.
- `tpmattest.errors`: `AttestationError` is the base exception. Each error
  carries an `ErrorCode`, and `to_result()` turns it into an `AttestationResult`.
  Subclasses are `Tss2Error` (a TPM stack failure with its return code `rc`),
  `OpenSslError`, `ApcaWebError` (keeps at most 1024 characters of the server
  response), `TpmFileNotFoundError` and `FeatureNotImplementedError`.
  `truncate(data, num_chars)` cuts text or bytes down to a length.
- `tpmattest.constants`: JSON keys and values used in attestation requests and
  responses, such as `JSON_AK_CERT_PEM` and `JSON_AK_CERT_QUERY_ID`.
- `tpmattest.logger`: `AttestationLogger.log(tag, level, function, line, message)`
  writes a tagged line to a standard `logging` logger and returns the text.
  For the TPM layer, `set_tpm2_logger(func)` installs a log function (None
  restores the default) and `tpm2_log(level, event_name, message)` calls it with
  the caller's file, function and line.
- `tpmattest.telemetry`: `TelemetryReporting` records events with
  `update_event(task_type, message, event_level)` and hands them to a sink with
  `write_events()`, which returns False if the sink raises. Without a sink the
  events go to the `tpmattest.telemetry` logger. `set_telemetry_reporting()` and
  `get_telemetry_reporting()` manage a process-wide reporter.
- `tpmattest.tss`: `TssWrapper` is the abstract interface to a TPM software
  stack (EK and AIK certificates and public areas, PCR quotes and values, TCG
  log, unsealing, ephemeral keys, AIK certificate writing, HCL report). `Tpm`
  wraps a `TssWrapper`, normalises arguments (bytes, PCR indices from 0 to 255,
  enum values) and delegates to it. `decrypt_with_ephemeral_key` defaults to
  `RsaScheme.RSAES` with `RsaHashAlg.SHA1`.
- `tpmattest.cert_operations`: `ImdsService` is the abstract interface to the
  instance metadata service. `TpmCertOperations` reads the AK certificate from
  the TPM, decides whether it needs renewal, and renews and replaces it.
  `der_to_pem(der)` and `remove_cert_header_and_footer(pem_cert)` convert
  between DER and single-line PEM.

## Usage

Write a `TssWrapper` subclass for your TPM stack and an `ImdsService` subclass
for your metadata endpoint, then connect the pieces:

```python
from tpmattest.cert_operations import TpmCertOperations
from tpmattest.errors import AttestationError
from tpmattest.telemetry import TelemetryReporting
from tpmattest.tss import Tpm

tpm = Tpm(my_wrapper)
telemetry = TelemetryReporting()
ops = TpmCertOperations(tpm, my_imds, telemetry=telemetry)

try:
    if ops.is_ak_cert_renewal_required():
        ops.renew_and_replace_ak_cert()
except AttestationError as err:
    result = err.to_result()
    print(result.code.name, result.description)

telemetry.write_events()
```

`is_ak_cert_renewal_required()` returns True when the certificate has expired
or expires within 90 days. Before that it checks that the certificate is no
longer the default one issued by the platform (issuer containing
`/CN=MICROSOFT AZURE TRUSTED VM RSA`); if it still is, it raises an error with
`ErrorCode.ERROR_AK_CERT_PROVISIONING_FAILED`.

`renew_and_replace_ak_cert()` first asks for a renewed certificate through the
synchronous API version. If the response is empty, it calls the asynchronous
API, waits 60 seconds with the `sleep` callable given to the constructor
(`time.sleep` by default), and queries for the renewed certificate. The new
certificate is written to the TPM with `Tpm.write_aik_cert`. Failures raise
`AttestationError`, mostly with `ErrorCode.ERROR_AK_CERT_RENEW`; TPM failures
come through as `Tss2Error`.

When no `telemetry` is passed, `TpmCertOperations` reports to the reporter set
with `set_telemetry_reporting()`, if there is one.

## What the package does not do

The package talks to no TPM and no network by itself. It has no concrete
`TssWrapper` that drives real TPM hardware and no `ImdsService` that makes HTTP
calls; both have to be supplied by the caller. It also has no command-line tool.

## Tests

```
pip install -e ".[test]"
pytest
```