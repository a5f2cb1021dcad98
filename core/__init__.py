"""
Core module for PrintQueueServer.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy and ErrorKind classification
- printer_dispatcher: PrinterDispatcher interface and the CUPS implementation
- file_fetcher: Download of job files

Only the exceptions are re-exported here; the dispatcher and fetcher import
the data models, which themselves depend on core.exceptions.
"""

from .exceptions import (
    ErrorKind,
    PrintQueueError,
    InvalidJobError,
    InvalidPageColorsError,
    PrintAttemptError,
    FetchError,
    DocumentError,
    DispatchError,
    PrinterUnavailableError,
    classify_error_message,
    error_kind_of,
)

__all__ = [
    "ErrorKind",
    "PrintQueueError",
    "InvalidJobError",
    "InvalidPageColorsError",
    "PrintAttemptError",
    "FetchError",
    "DocumentError",
    "DispatchError",
    "PrinterUnavailableError",
    "classify_error_message",
    "error_kind_of",
]
