"""
Shared fixtures and fakes for the PrintQueueServer tests.

The fakes stand in for the printer and the clock; PDFs are generated with
PyMuPDF so page counting and splitting run against real files.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF
import pytest
from pypdf import PdfReader

from core.file_fetcher import FileFetcher
from core.printer_dispatcher import PrinterDispatcher, PrinterStatus
from models.print_job import ColorMode, PageSize, Sided


class FakeDispatcher(PrinterDispatcher):
    """
    Records every dispatch instead of printing.

    ``failures`` is consumed one entry per dispatch call: an exception is
    raised, None lets the call succeed. Once empty, every call succeeds.
    """

    def __init__(self, failures: Optional[list] = None, available: bool = True):
        self.failures = list(failures or [])
        self.available = available
        self.calls: List[dict] = []

    def dispatch(
        self,
        document: Path,
        color_mode: ColorMode,
        copies: int = 1,
        page_size: PageSize = PageSize.A4,
        sided: Sided = Sided.SINGLE,
    ) -> None:
        if self.failures:
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure

        pages = len(PdfReader(str(document)).pages) if document.suffix == ".pdf" else None
        self.calls.append({
            "name": document.name,
            "color_mode": color_mode,
            "copies": copies,
            "page_size": page_size,
            "sided": sided,
            "pages": pages,
        })

    def check_status(self) -> PrinterStatus:
        if self.available:
            return PrinterStatus(available=True, message="Printer is available")
        return PrinterStatus(available=False, message="Printer is offline: fake")

    @property
    def names(self) -> List[str]:
        return [call["name"] for call in self.calls]


class FakeClock:
    """Mutable local clock for delivery number tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_pdf(path: Path, pages: int) -> Path:
    """Write a PDF whose page N reads "Page N"."""
    doc = fitz.open()
    for number in range(1, pages + 1):
        page = doc.new_page()
        page.insert_text((72, 72), f"Page {number}")
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def fake_dispatcher():
    return FakeDispatcher()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 15, 9, 30))


@pytest.fixture
def local_fetcher():
    """Real fetcher; tests point jobs at local files."""
    return FileFetcher(timeout_seconds=5)


@pytest.fixture
def ten_page_pdf(tmp_path):
    return make_pdf(tmp_path / "ten.pdf", 10)


@pytest.fixture
def three_page_pdf(tmp_path):
    return make_pdf(tmp_path / "three.pdf", 3)
