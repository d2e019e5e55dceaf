"""JSON keys and values used in attestation requests and responses."""

# Attestation client library
JSON_OS_TYPE_KEY = "OSType"
JSON_OS_DISTRO_KEY = "OSDistro"
JSON_OS_VERSION_MAJOR_KEY = "OSVersionMajor"
JSON_OS_VERSION_MINOR_KEY = "OSVersionMinor"
JSON_OS_BUILD_KEY = "OSBuild"
JSON_TCG_LOGS_KEY = "TcgLogs"
JSON_CLIENT_PAYLOAD_KEY = "ClientPayload"
JSON_TPM_INFO_KEY = "TpmInfo"
JSON_AIK_CERT_KEY = "AikCert"
JSON_AIK_PUB_KEY = "AikPub"
JSON_ENC_PUB_KEY = "EncKeyPub"
JSON_ENC_KEY_CERTIFY_INFO = "EncKeyCertifyInfo"
JSON_PCR_QUOTE_KEY = "PcrQuote"
JSON_PCR_SIGNATURE_KEY = "PcrSignature"
JSON_ENC_KEY_CERTIFY_INFO_SIGNATURE = "EncKeyCertifyInfoSignature"
JSON_PCRS_KEY = "PCRs"
JSON_PCR_INDEX_KEY = "Index"
JSON_PCR_DIGEST_KEY = "Digest"
JSON_PROTOCOL_VERSION_KEY = "AttestationProtocolVersion"
JSON_ATTESTATION_INFO_KEY = "AttestationInfo"
JSON_PCR_SET_KEY = "PcrSet"
JSON_RESPONSE_EXCRYPTION_PARAMETERS_KEY = "EncryptionParams"
JSON_RESPONSE_HASH_KEY = "Hash"
JSON_RESPONSE_PCR_SET_KEY = "PcrSet"
JSON_RESPONSE_PCRS_KEY = "Pcrs"
JSON_RESPONSE_BLOCK_MODE_KEY = "BlockMode"
JSON_RESPONSE_BLOCK_PADDING_KEY = "BlockPadding"
JSON_RESPONSE_CIPHER_KEY = "Cipher"
JSON_RESPONSE_BLOCK_KEY_SIZE_KEY = "KeySizeInBits"
JSON_RESPONSE_IV_KEY = "Iv"
JSON_RESPONSE_AUTHENTICATION_DATA_KEY = "AuthenticationData"
JSON_RESPONSE_JWT_KEY = "Jwt"
JSON_RESPONSE_ENC_INNER_KEY_KEY = "EncryptedInnerKey"

JSON_RESPONSE_HASH_SHA1_VALUE = "Sha1"
JSON_RESPONSE_HASH_SHA256_VALUE = "Sha256"
JSON_RESPONSE_HASH_SHA384_VALUE = "Sha384"
JSON_RESPONSE_HASH_SHA512_VALUE = "Sha512"
JSON_RESPONSE_HASH_SM3_256_VALUE = "Sm3_256"
JSON_RESPONSE_BLOCK_MODE_CHAINING_GCM_VALUE = "ChainingModeGCM"
JSON_RESPONSE_BLOCK_PADDING_PKCS7_VALUE = "PKCS7"
JSON_RESPONSE_CIPHER_AES_VALUE = "AES"

JSON_HTTP_ERROR_LOWER_KEY = "error"
JSON_HTTP_ERROR_CODE_LOWER_KEY = "code"
JSON_HTTP_ERROR_MESSAGE_LOWER_KEY = "message"
JSON_HTTP_ERROR_KEY = "Error"
JSON_HTTP_ERROR_CODE_KEY = "Code"
JSON_HTTP_ERROR_MESSAGE_KEY = "Message"

JSON_ISOLATION_INFO_KEY = "IsolationInfo"
JSON_ISOLATION_TYPE_KEY = "Type"
JSON_ISOLATION_TYPE_TVM = "TrustedLaunch"
JSON_ISOLATION_TYPE_SEVSNP = "SevSnp"
JSON_ISOLATION_EVIDENCE_KEY = "Evidence"
JSON_ISOLATION_PROOF_KEY = "Proof"
JSON_ISOLATION_RUNTIME_DATA_KEY = "RunTimeData"
JSON_ISOLATION_EVIDENCE_SNPREPORT = "SnpReport"
JSON_ISOLATION_EVIDENCE_VCEKCERT = "VcekCertChain"
JSON_AK_CERT_PEM = "AkCertPem"
JSON_AK_CERT_QUERY_ID = "CertQueryId"

# Attestation client
JSON_ARM_ID_KEY = "ArmID"
JSON_VM_HEALTH_STATUS_KEY = "HealthStatus"
JSON_VM_HEALTH_HEALTHY_VALUE = "Healthy"
JSON_VM_HEALTH_UNHEALTHY_VALUE = "Unhealthy"
JSON_VM_HEALTH_PLATFORM_ERROR_VALUE = "PlatformError"
JSON_REPORT_ATTESTATION_TOKEN_KEY = "AttestationToken"
JSON_REPORT_ATTESTATION_STATUS_MESSAGE_KEY = "AttestationStatusMessage"
JSON_REPORT_PLATFORM_ERROR_MESSAGE_KEY = "PlatformErrorMessage"
JSON_REPORT_AAS_ATTESTATION_URI = "AttestationUri"