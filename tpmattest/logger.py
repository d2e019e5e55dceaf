"""Logging for the attestation library and the TPM layer."""

from __future__ import annotations

import inspect
import logging
from enum import IntEnum
from typing import Callable, Optional


class LogLevel(IntEnum):
    """Severity of an attestation library log line."""

    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Tpm2LogLevel(IntEnum):
    """Severity of a TPM layer log line."""

    INFO = 0
    WARN = 1
    ERROR = 2


_PY_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}

_TPM2_PY_LEVELS = {
    Tpm2LogLevel.INFO: logging.INFO,
    Tpm2LogLevel.WARN: logging.WARNING,
    Tpm2LogLevel.ERROR: logging.ERROR,
}


class AttestationLogger:
    """Writes tagged log lines for the attestation library to a standard logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger if logger is not None else logging.getLogger("tpmattest")

    def log(self, tag: str, level: LogLevel, function: str, line: int, message: str) -> str:
        """Emit one log line and return the text that was written."""
        level = LogLevel(level)
        text = f"[{tag}][{level.label}] {function}:{line} {message}"
        self._logger.log(_PY_LEVELS[level], text)
        return text


Tpm2LogFunction = Callable[[str, str, int, Tpm2LogLevel, str, str], None]


def _default_tpm2_logger(
    file: str, function: str, line: int, level: Tpm2LogLevel, event_name: str, message: str
) -> None:
    logging.getLogger("tpmattest.tpm2").log(
        _TPM2_PY_LEVELS[level], "%s:%d %s [%s] %s", file, line, function, event_name, message
    )


_tpm2_logger: Tpm2LogFunction = _default_tpm2_logger


def set_tpm2_logger(func: Optional[Tpm2LogFunction]) -> None:
    """Install the function that receives TPM layer log lines; None restores the default."""
    global _tpm2_logger
    _tpm2_logger = func if func is not None else _default_tpm2_logger


def tpm2_log(level: Tpm2LogLevel, event_name: str, message: str) -> None:
    """Send a TPM layer log line, tagged with the caller's file, function and line."""
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    try:
        if caller is not None:
            file = caller.f_code.co_filename
            function = caller.f_code.co_name
            line = caller.f_lineno
        else:
            file, function, line = "<unknown>", "<unknown>", 0
    finally:
        del frame, caller
    _tpm2_logger(file, function, line, Tpm2LogLevel(level), event_name, message)