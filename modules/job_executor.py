"""
Per-job print workflow.

One call to JobExecutor.execute() is one print attempt for the job at the
head of the queue:

    1. Make sure the job has a delivery number
    2. Letter separator (file 1 of a letter only) and "File no: N" page
    3. Download the document
    4. Print it: whole document, or mixed-color runs in reverse order
    5. Order summary page, when the job carries order metadata

Every step that puts paper in the tray is remembered per delivery number, so
a retry after a partial failure does not print the same separator, summary
or page run twice. The queue calls forget() once the job has fully printed.

execute() never raises: failures come back as a PrintResult with a
classified message and the ErrorKind the queue uses to pick its retry delay.
"""

from __future__ import annotations

import logging
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Set, Tuple

from core.exceptions import (
    ErrorKind,
    FetchError,
    InvalidPageColorsError,
    error_kind_of,
)
from core.file_fetcher import FileFetcher
from core.printer_dispatcher import PrinterDispatcher
from models.print_job import ColorMode, PageColorAssignment, PrintJob, Sided
from models.print_result import PrintResult
from models.queued_job import QueuedJob
from logging_config import get_job_logger, get_logger

from .delivery_number import DeliveryNumberIssuer, parse_file_number, parse_letter
from .page_sequencer import build_page_groups, emission_order
from .pdf_tools import count_pages, extract_page_range
from .separator_pages import (
    render_file_number_page,
    render_letter_separator,
    render_order_summary,
)


# Module logger
logger = get_logger(__name__)


# =============================================================================
# FAILURE CLASSIFICATION
# =============================================================================

def describe_failure(error: BaseException) -> Tuple[str, str, ErrorKind]:
    """
    Turn an attempt failure into what operators see.

    Returns:
        (message, details, kind): a short fixed message such as
        "Printer is offline", the underlying error text plus a hint, and
        the retry classification.
    """
    kind = error_kind_of(error)
    raw = str(error)

    if isinstance(error, FetchError):
        return "Failed to download file", raw, kind

    text = raw.lower()
    if any(keyword in text for keyword in ("not connected", "unable to connect", "printer not found")):
        return (
            "Printer not connected",
            f"{raw}. Please check USB connection and ensure printer is powered on",
            kind,
        )
    if any(keyword in text for keyword in ("offline", "printer is not available", "printer is stopped")):
        return (
            "Printer is offline",
            f"{raw}. Printer may be powered off or disconnected",
            kind,
        )
    if "power" in text and "off" in text:
        return "Printer appears to be powered off", f"{raw}. Please turn on the printer", kind
    if kind is ErrorKind.TIMEOUT:
        return (
            "Print job timed out",
            f"{raw}. Printer may be busy or not responding, will retry automatically",
            kind,
        )
    if kind is ErrorKind.PRINTER_UNAVAILABLE:
        return "Printer not connected", raw, kind
    return "Failed to print job", raw, kind


# =============================================================================
# EXECUTOR
# =============================================================================

class JobExecutor:
    """
    Runs print attempts.

    Owns the record of what already printed for each delivery number. Only
    the queue worker calls into it, but the record is guarded by a lock so
    status reads and tests from other threads stay safe.
    """

    def __init__(
        self,
        issuer: DeliveryNumberIssuer,
        dispatcher: PrinterDispatcher,
        fetcher: FileFetcher,
        temp_dir: Optional[Path] = None,
        group_settle_seconds: float = 1.0,
        separator_settle_seconds: float = 2.0,
        skip_printed_groups: bool = True,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            issuer: Delivery number source for jobs that have none yet
            dispatcher: Printer backend
            fetcher: Document downloader
            temp_dir: Parent of the per-attempt scratch directories (system default if None)
            group_settle_seconds: Pause between mixed-color runs
            separator_settle_seconds: Pause after the separator pages
            skip_printed_groups: Do not reprint runs/documents a failed attempt already printed
            sleep: Blocking sleep (injectable for tests)
        """
        self.issuer = issuer
        self.dispatcher = dispatcher
        self.fetcher = fetcher
        self.temp_dir = Path(temp_dir) if temp_dir else None
        self.group_settle_seconds = group_settle_seconds
        self.separator_settle_seconds = separator_settle_seconds
        self.skip_printed_groups = skip_printed_groups
        self._sleep = sleep

        self._printed: Set[str] = set()
        self._printed_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Idempotency record
    # -------------------------------------------------------------------------

    def _already_printed(self, key: str) -> bool:
        with self._printed_lock:
            return key in self._printed

    def _mark_printed(self, key: str) -> None:
        with self._printed_lock:
            self._printed.add(key)

    def printed_keys(self, delivery_number: str) -> Set[str]:
        """Steps already printed for a delivery number."""
        prefix = f"{delivery_number}:"
        with self._printed_lock:
            return {key[len(prefix):] for key in self._printed if key.startswith(prefix)}

    def forget(self, delivery_number: Optional[str]) -> None:
        """Drop everything remembered for a job that has completed."""
        if not delivery_number:
            return
        prefix = f"{delivery_number}:"
        with self._printed_lock:
            self._printed = {key for key in self._printed if not key.startswith(prefix)}

    # -------------------------------------------------------------------------
    # Attempt
    # -------------------------------------------------------------------------

    def ensure_delivery_number(self, queued_job: QueuedJob) -> str:
        """Return the job's delivery number, issuing one if it has none."""
        job = queued_job.job
        if not job.delivery_number:
            job.assign_delivery_number(self.issuer.issue_next(queued_job.printer_index))
        return job.delivery_number

    def execute(self, queued_job: QueuedJob) -> PrintResult:
        """
        Run one print attempt.

        Returns:
            PrintResult (never raises for attempt failures)
        """
        job = queued_job.job
        job_logger = get_job_logger(queued_job.id)
        delivery_number = self.ensure_delivery_number(queued_job)

        job_logger.info(
            f"Starting print job: {job.display_name} (Delivery: {delivery_number}, "
            f"attempt {queued_job.attempts})"
        )

        if self.temp_dir is not None:
            self.temp_dir.mkdir(parents=True, exist_ok=True)

        try:
            with tempfile.TemporaryDirectory(
                prefix=f"{delivery_number}_",
                dir=str(self.temp_dir) if self.temp_dir else None,
                ignore_cleanup_errors=True,
            ) as scratch_name:
                scratch = Path(scratch_name)

                # =============================================================
                # STEP 1: Separator pages
                # =============================================================
                self._print_separators(job, delivery_number, scratch, job_logger)

                # =============================================================
                # STEP 2: Download
                # =============================================================
                job_logger.info(f"Downloading file from {job.file_source}...")
                document = self.fetcher.fetch(
                    job.file_source, scratch, f"{delivery_number}{job.file_extension}"
                )

                # =============================================================
                # STEP 3: Content
                # =============================================================
                if job.printing_options.color_mode is ColorMode.MIXED:
                    self.print_mixed_document(document, job, delivery_number, scratch, job_logger)
                else:
                    self._print_whole(
                        document, job, delivery_number, job.printing_options.color_mode, job_logger
                    )

                # =============================================================
                # STEP 4: Order summary
                # =============================================================
                if job.has_order_metadata:
                    self._print_order_summary(job, delivery_number, scratch, job_logger)

        except Exception as e:
            message, details, kind = describe_failure(e)
            job_logger.error(f"Print attempt failed: {message} ({e})")
            return PrintResult.failed(message, details, kind, delivery_number)

        job_logger.info(f"Print job completed: {delivery_number}")
        return PrintResult.completed(delivery_number)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _dispatch_page(self, page: Path, job: PrintJob) -> None:
        """Print a generated single page: one copy, monochrome, single sided."""
        self.dispatcher.dispatch(
            page,
            ColorMode.BW,
            copies=1,
            page_size=job.printing_options.page_size,
            sided=Sided.SINGLE,
        )

    def _print_separators(
        self,
        job: PrintJob,
        delivery_number: str,
        scratch: Path,
        job_logger: logging.Logger
    ) -> None:
        file_number = parse_file_number(delivery_number)
        if file_number is None:
            file_number = self.issuer.current_file_number() or 1
        letter = parse_letter(delivery_number) or self.issuer.current_letter()

        printed_any = False

        letter_key = f"{delivery_number}:letter"
        if file_number == 1:
            if self._already_printed(letter_key):
                job_logger.info(f"Skipping letter separator {letter} (already printed)")
            else:
                job_logger.info(f"Printing letter separator: {letter}")
                page = render_letter_separator(letter, scratch / f"letter_{letter}.pdf")
                self._dispatch_page(page, job)
                self._mark_printed(letter_key)
                printed_any = True

        file_key = f"{delivery_number}:file"
        if self._already_printed(file_key):
            job_logger.info(f"Skipping file number separator for {delivery_number} (already printed)")
        else:
            job_logger.info(f"Printing file number separator: File no: {file_number}")
            page = render_file_number_page(file_number, scratch / f"file_{file_number}.pdf")
            self._dispatch_page(page, job)
            self._mark_printed(file_key)
            printed_any = True

        if printed_any and self.separator_settle_seconds > 0:
            self._sleep(self.separator_settle_seconds)

    def _print_whole(
        self,
        document: Path,
        job: PrintJob,
        delivery_number: str,
        color_mode: ColorMode,
        job_logger: logging.Logger
    ) -> None:
        key = f"{delivery_number}:content"
        if self.skip_printed_groups and self._already_printed(key):
            job_logger.info("Skipping document (already printed by an earlier attempt)")
            return

        options = job.printing_options
        job_logger.info(f"Printing {document.name} ({color_mode.value}, {options.copies} copies)")
        self.dispatcher.dispatch(
            document,
            color_mode,
            copies=options.copies,
            page_size=options.page_size,
            sided=options.sided,
        )
        self._mark_printed(key)

    def print_mixed_document(
        self,
        document: Path,
        job: PrintJob,
        delivery_number: str,
        scratch: Path,
        job_logger: Optional[logging.Logger] = None
    ) -> None:
        """
        Print a mixed-color document as same-mode page runs, last run first.

        Falls back to one black and white dispatch when the document is not
        a PDF or the page-color assignment is missing or malformed.

        Raises:
            DocumentError: The PDF could not be counted or split
            DispatchError: A run failed; the remaining runs are not printed
        """
        job_logger = job_logger or logger
        options = job.printing_options

        if not job.is_pdf:
            job_logger.warning(
                f"Mixed color requested for non-PDF {job.display_name}, printing in black and white"
            )
            self._print_whole(document, job, delivery_number, ColorMode.BW, job_logger)
            return

        try:
            assignment = PageColorAssignment.parse(options.page_colors)
        except InvalidPageColorsError as e:
            job_logger.warning(f"Invalid page color assignment, printing in black and white: {e}")
            assignment = None

        if assignment is None:
            job_logger.warning("No page color assignment for mixed job, printing in black and white")
            self._print_whole(document, job, delivery_number, ColorMode.BW, job_logger)
            return

        total_pages = count_pages(document)
        groups = build_page_groups(total_pages, assignment.color_pages, assignment.bw_pages)
        job_logger.info(
            f"Mixed document: {total_pages} pages in {len(groups)} groups, printing last group first"
        )

        dispatched = False
        for group in emission_order(groups):
            key = f"{delivery_number}:group:{group.key}"
            if self.skip_printed_groups and self._already_printed(key):
                job_logger.info(f"Skipping {group.describe()} (already printed)")
                continue

            if dispatched and self.group_settle_seconds > 0:
                self._sleep(self.group_settle_seconds)

            sub_document = extract_page_range(
                document,
                group.start_index,
                group.end_index,
                scratch / f"group_{group.first_page}-{group.last_page}.pdf",
            )
            job_logger.info(f"Printing {group.describe()}")
            try:
                self.dispatcher.dispatch(
                    sub_document,
                    ColorMode.BW if group.is_monochrome else ColorMode.COLOR,
                    copies=options.copies,
                    page_size=options.page_size,
                    sided=options.sided,
                )
            finally:
                sub_document.unlink(missing_ok=True)

            self._mark_printed(key)
            dispatched = True

        job_logger.info(f"All {total_pages} pages printed in sequence")

    def _print_order_summary(
        self,
        job: PrintJob,
        delivery_number: str,
        scratch: Path,
        job_logger: logging.Logger
    ) -> None:
        key = f"{delivery_number}:summary"
        if self._already_printed(key):
            job_logger.info("Skipping order summary (already printed)")
            return

        job_logger.info("Printing order summary page")
        page = render_order_summary(job, scratch / "order_summary.pdf")
        self._dispatch_page(page, job)
        self._mark_printed(key)
