"""
Data models for PrintQueueServer.

This module contains the dataclasses that flow through the queue:
- PrintJob: One file to print, with its printing options
- QueuedJob: A PrintJob plus queue bookkeeping (id, attempts, timestamps)
- PrintResult: Outcome of one print attempt

PrintingOptions and PageColorAssignment are frozen; PrintJob is mutable
only in its delivery number.
"""

from .print_job import (
    PrintJob,
    PrintingOptions,
    PageColorAssignment,
    CustomerInfo,
    PageSize,
    ColorMode,
    Sided,
)
from .queued_job import QueuedJob, generate_job_id
from .print_result import PrintResult

__all__ = [
    # Job models
    "PrintJob",
    "PrintingOptions",
    "PageColorAssignment",
    "CustomerInfo",
    "PageSize",
    "ColorMode",
    "Sided",
    # Queue models
    "QueuedJob",
    "generate_job_id",
    "PrintResult",
]
