"""Telemetry events reported while attesting and renewing certificates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional, Tuple

_log = logging.getLogger("tpmattest.telemetry")


class EventLevel(Enum):
    """Kind of telemetry event."""

    SUCCESS = auto()
    INIT_ERROR = auto()
    INTERNAL_ERROR = auto()
    PLATFORM_ERROR = auto()
    ATTESTATION_FAILURE = auto()
    DECRYPTION_FAILURE = auto()
    REPORT_HEALTH_FAILURE = auto()

    AK_RENEW_CERT_PARSING_FAILURE = auto()
    AK_RENEW_CERT_EXPIRY_CALCULATION_FAILURE = auto()
    AK_RENEW_CERT_DAYS_TILL_EXPIRY = auto()
    AK_RENEW_UNEXPECTED_ERROR = auto()
    AK_RENEW_EMPTY_VM_ID = auto()
    AK_RENEW_EMPTY_CERT_RESPONSE = auto()
    AK_RENEW_EMPTY_RENEWED_CERT = auto()
    AK_RENEW_GET_RESPONSE_SUCCESS = auto()
    AK_RENEW_SUCCESS = auto()
    AK_RENEW_RESPONSE = auto()
    AK_RENEW_RESPONSE_PARSING_FAILURE = auto()
    AK_RENEW_RESPONSE_PARSING_SUCCESS = auto()
    AK_CERT_PROVISION_FAILURE = auto()
    AK_CERT_GET_ISSUER = auto()
    AK_GET_PUB = auto()
    AK_CERT_GET_SUBJECT = auto()
    AK_CERT_PARSING_FAILURE = auto()
    AK_CERT_GET_THUMBPRINT = auto()
    AK_RENEWED_CERT = auto()
    AK_CERT_QUERY_GUID = auto()
    TPM_CERT_OPS = auto()

    IMDS_GET_VM_ID = auto()
    IMDS_RENEW_AK = auto()
    IMDS_QUERY_AK = auto()
    IMDS_QUERY_VCEK_CERT = auto()
    IMDS_RENEW_AK_URL = auto()
    IMDS_AKRENEW_REQUEST_BODY = auto()

    VM_SECURITY_TYPE = auto()
    SNP_REPORT_STATUS = auto()
    CURL_CONNECTION_FAILURE = auto()


@dataclass(frozen=True)
class TelemetryEvent:
    """One recorded telemetry event."""

    task_type: str
    message: str
    event_level: EventLevel


EventSink = Callable[[TelemetryEvent], None]


def _log_event(event: TelemetryEvent) -> None:
    _log.info("%s [%s] %s", event.task_type, event.event_level.name, event.message)


class TelemetryReporting:
    """Collects telemetry events and hands them to a sink when written."""

    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self._sink = sink if sink is not None else _log_event
        self._events: List[TelemetryEvent] = []

    @property
    def events(self) -> Tuple[TelemetryEvent, ...]:
        """Events recorded and not yet written."""
        return tuple(self._events)

    def update_event(self, task_type: str, message: str, event_level: EventLevel) -> None:
        """Record an event to be written later."""
        self._events.append(TelemetryEvent(task_type, message, EventLevel(event_level)))

    def write_events(self) -> bool:
        """Send the pending events to the sink; return False if the sink fails."""
        pending = list(self._events)
        try:
            for event in pending:
                self._sink(event)
        except Exception:
            _log.exception("Failed to write telemetry events")
            return False
        del self._events[: len(pending)]
        return True


_reporting: Optional[TelemetryReporting] = None


def set_telemetry_reporting(reporting: Optional[TelemetryReporting]) -> None:
    """Install the reporter used by the library; None turns reporting off."""
    global _reporting
    _reporting = reporting


def get_telemetry_reporting() -> Optional[TelemetryReporting]:
    """Return the installed reporter, or None when reporting is off."""
    return _reporting