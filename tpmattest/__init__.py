"""TPM attestation types, errors, logging and telemetry hooks, a TPM interface and AK certificate renewal."""

__version__ = "0.1.0"

__all__ = ["types", "errors", "constants", "logger", "telemetry", "tss", "cert_operations"]