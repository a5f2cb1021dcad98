"""
Custom exceptions for PrintQueueServer.

Exception Hierarchy:
    PrintQueueError (base)
    ├── InvalidJobError         - Malformed submission (rejected at enqueue)
    ├── InvalidPageColorsError  - Bad page-color assignment (absorbed, falls back to B&W)
    └── PrintAttemptError       - One print attempt failed (retried by the queue)
        ├── FetchError              - File could not be downloaded
        ├── DocumentError           - PDF could not be read or split
        └── DispatchError           - Printer dispatch failed
            └── PrinterUnavailableError - Printer offline, disconnected, powered off

Every PrintAttemptError carries an ErrorKind. The queue picks its retry
delay from the kind, so the classification is made where the failure
happens instead of by re-reading the message afterwards.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(Enum):
    """Retry classification of a failed print attempt."""

    TRANSIENT = "transient"
    """Download failures, spooler hiccups, unreadable sub-documents."""

    TIMEOUT = "timeout"
    """A download or dispatch command did not finish in time."""

    PRINTER_UNAVAILABLE = "printer_unavailable"
    """Printer offline, disconnected or powered off. Retried with the long delay."""


# Keywords of the printer-unavailable tier, checked against lower-cased text
_UNAVAILABLE_KEYWORDS = (
    "not connected",
    "unable to connect",
    "printer not found",
    "offline",
    "printer is not available",
    "printer is stopped",
    "powered off",
)


def classify_error_message(message: str) -> ErrorKind:
    """
    Classify an untyped failure by its message.

    Only used for exceptions that do not carry an ErrorKind of their own
    (anything raised outside the PrintAttemptError hierarchy).
    """
    text = (message or "").lower()
    if any(keyword in text for keyword in _UNAVAILABLE_KEYWORDS):
        return ErrorKind.PRINTER_UNAVAILABLE
    if "power" in text and "off" in text:
        return ErrorKind.PRINTER_UNAVAILABLE
    if "timeout" in text or "timed out" in text:
        return ErrorKind.TIMEOUT
    return ErrorKind.TRANSIENT


def error_kind_of(error: BaseException) -> ErrorKind:
    """Return the ErrorKind of any exception, typed or not."""
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind
    return classify_error_message(str(error))


class PrintQueueError(Exception):
    """
    Base exception for all PrintQueueServer errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# SUBMISSION ERRORS - Rejected synchronously, never enter the queue
# =============================================================================

class InvalidJobError(PrintQueueError):
    """
    A submitted print job is missing required fields or has invalid values.

    Raised by PrintJob.validate() and by the HTTP boundary while normalizing
    payloads. The submitter gets a 400; nothing is queued.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else None
        super().__init__(message, details)
        self.field = field


class InvalidPageColorsError(PrintQueueError, ValueError):
    """
    The per-page color assignment of a mixed-color job is malformed.

    Not a job failure: the executor logs a warning and prints the whole
    document in black and white.
    """


# =============================================================================
# ATTEMPT ERRORS - The job stays at the head of the queue and is retried
# =============================================================================

class PrintAttemptError(PrintQueueError):
    """Base class for failures of a single print attempt."""

    default_kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.kind = kind or self.default_kind


class FetchError(PrintAttemptError):
    """
    The job's file could not be downloaded.

    Typical causes:
    - Upstream storage returned a non-200 status
    - Network error or DNS failure
    - Download exceeded DOWNLOAD_TIMEOUT_SECONDS (kind=TIMEOUT)
    """

    def __init__(
        self,
        source: str,
        reason: str,
        kind: Optional[ErrorKind] = None,
        status_code: Optional[int] = None
    ):
        message = f"Failed to download file: {reason}"
        details: Dict[str, Any] = {"source": source}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, kind, details)
        self.source = source
        self.status_code = status_code


class DocumentError(PrintAttemptError):
    """A downloaded PDF could not be opened, counted or split into page ranges."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to process document: {reason}", details={"path": path})
        self.path = path


class DispatchError(PrintAttemptError):
    """
    Sending a document to the printer failed.

    Raised by PrinterDispatcher implementations. The kind says whether the
    printer is unreachable (long retry delay), the command timed out, or
    something else went wrong.
    """

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        printer_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = dict(details or {})
        if printer_name:
            error_details["printer"] = printer_name
        super().__init__(message, kind, error_details)
        self.printer_name = printer_name


class PrinterUnavailableError(DispatchError):
    """
    The printer is offline, disconnected or powered off.

    The queue waits PRINTER_OFFLINE_DELAY_SECONDS × attempts (capped) before
    the next try instead of the short delay.
    """

    default_kind = ErrorKind.PRINTER_UNAVAILABLE

    def __init__(self, message: str, printer_name: Optional[str] = None):
        details = {
            "resolution": "Check the USB/network connection and make sure the printer is powered on"
        }
        super().__init__(message, ErrorKind.PRINTER_UNAVAILABLE, printer_name, details)
