"""PDF page counting and page-range extraction."""

from __future__ import annotations

from pathlib import Path

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from core.exceptions import DocumentError


def count_pages(pdf_path: str | Path) -> int:
    """
    Number of pages in a PDF.

    Raises:
        DocumentError: The file is missing or is not a readable PDF
    """
    path = Path(pdf_path)
    try:
        return len(PdfReader(str(path)).pages)
    except (OSError, PdfReadError, ValueError) as e:
        raise DocumentError(str(path), f"could not read PDF: {e}") from e


def extract_page_range(
    pdf_path: str | Path,
    start_index: int,
    end_index: int,
    output_path: str | Path
) -> Path:
    """
    Copy pages ``start_index..end_index`` (0-based inclusive) into a new PDF.

    Returns:
        Path of the written sub-document

    Raises:
        DocumentError: The source cannot be read or the range is out of bounds
    """
    source = Path(pdf_path)
    output = Path(output_path)

    try:
        reader = PdfReader(str(source))
        total = len(reader.pages)
        if start_index < 0 or end_index >= total or start_index > end_index:
            raise DocumentError(
                str(source),
                f"page range {start_index + 1}-{end_index + 1} outside 1-{total}"
            )

        writer = PdfWriter()
        for index in range(start_index, end_index + 1):
            writer.add_page(reader.pages[index])
        with open(output, "wb") as handle:
            writer.write(handle)
    except (OSError, PdfReadError, ValueError) as e:
        raise DocumentError(str(source), f"could not extract pages: {e}") from e

    return output
