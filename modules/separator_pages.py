"""
Separator and order summary pages.

Single-page PDFs printed around a job's content so the operator can split
the output tray by delivery number:

- Letter separator: one huge letter, printed before file 1 of every letter
- File number page: "File no: N", printed before every file
- Order summary: order and customer details, printed after the content

Rendered with PyMuPDF using the built-in Helvetica faces, so no font files
are needed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Tuple

import fitz  # PyMuPDF

from models.print_job import PrintJob


PAGE_RECT = fitz.paper_rect("a4")
LEFT_MARGIN = 50

FONT_REGULAR = "helv"
FONT_BOLD = "hebo"

_COLOR_LABELS = {"bw": "Black & White", "color": "Color", "mixed": "Mixed"}
_SIDED_LABELS = {"single": "Single-sided", "double": "Double-sided"}
_ORDER_TYPE_LABELS = {"file": "File Upload", "template": "Template"}


def _centered_text(page: "fitz.Page", text: str, fontsize: float, fontname: str = FONT_BOLD) -> None:
    width = fitz.get_text_length(text, fontname=fontname, fontsize=fontsize)
    x = (PAGE_RECT.width - width) / 2
    # Baseline placed so the glyphs sit roughly in the vertical middle
    y = (PAGE_RECT.height + fontsize * 0.7) / 2
    page.insert_text((x, y), text, fontsize=fontsize, fontname=fontname)


def _save_single_page(output_path: Path, draw) -> Path:
    output = Path(output_path)
    doc = fitz.open()
    try:
        page = doc.new_page(width=PAGE_RECT.width, height=PAGE_RECT.height)
        draw(page)
        doc.save(str(output))
    finally:
        doc.close()
    return output


def render_letter_separator(letter: str, output_path: str | Path) -> Path:
    """Write a page with ``letter`` in very large type."""
    return _save_single_page(Path(output_path), lambda page: _centered_text(page, letter, 360))


def render_file_number_page(file_number: int, output_path: str | Path) -> Path:
    """Write a page reading ``File no: N``."""
    text = f"File no: {file_number}"
    return _save_single_page(Path(output_path), lambda page: _centered_text(page, text, 48))


def build_summary_lines(job: PrintJob) -> Tuple[List[Tuple[str, bool]], List[str]]:
    """
    Text of the order summary page.

    Values from ``order_summary`` take precedence; anything missing falls
    back to the job's own printing options.

    Returns:
        (order lines as (text, bold) pairs, customer lines)
    """
    summary: Dict[str, Any] = job.order_summary or {}
    options = job.printing_options

    order_type = str(summary.get("orderType", "file"))
    color = str(summary.get("color", options.color_mode.value))
    sided = str(summary.get("sided", options.sided.value))
    pages = summary.get("pages", options.page_count)

    lines: List[Tuple[str, bool]] = []
    if job.delivery_number:
        lines.append((f"Delivery Number: {job.delivery_number}", True))
    if job.order_id:
        lines.append((f"Order ID: {job.order_id}", True))
    lines.extend([
        (f"Order Type: {_ORDER_TYPE_LABELS.get(order_type, order_type)}", True),
        (f"File: {job.display_name}", True),
        (f"Page Size: {summary.get('pageSize', options.page_size.value)}", True),
        (f"Color: {_COLOR_LABELS.get(color, color)}", True),
        (f"Sided: {_SIDED_LABELS.get(sided, sided)}", True),
        (f"Copies: {summary.get('copies', options.copies)}", True),
    ])
    if pages is not None:
        lines.append((f"Pages: {pages}", True))

    service_options = summary.get("serviceOptions") or []
    if isinstance(service_options, list) and service_options:
        lines.append(("Service Options:", False))
        for entry in service_options:
            if not isinstance(entry, dict):
                continue
            chosen = entry.get("options") or []
            text = ", ".join(str(option) for option in chosen) if chosen else "None"
            lines.append((f"  {entry.get('fileName', '')}: {text}", False))

    if summary.get("totalAmount") is not None:
        lines.append((f"Total Amount: Rs. {summary['totalAmount']}", True))
    if summary.get("expectedDelivery"):
        lines.append((f"Expected Delivery: {summary['expectedDelivery']}", True))

    customer_lines: List[str] = []
    if job.customer_info is not None:
        customer_lines = [
            f"Name: {job.customer_info.name}",
            f"Phone: {job.customer_info.phone}",
            f"Email: {job.customer_info.email}",
        ]

    return lines, customer_lines


def render_order_summary(job: PrintJob, output_path: str | Path) -> Path:
    """Write the order summary page for ``job``."""
    order_lines, customer_lines = build_summary_lines(job)
    right = PAGE_RECT.width - LEFT_MARGIN

    def draw(page: "fitz.Page") -> None:
        y = 80.0
        page.insert_text((LEFT_MARGIN, y), "Order Summary", fontsize=24, fontname=FONT_BOLD)
        y += 20
        page.draw_line((LEFT_MARGIN, y), (right, y), width=1)
        y += 30

        for text, bold in order_lines:
            # One page only; anything that does not fit is dropped
            if y > PAGE_RECT.height - 100:
                break
            page.insert_text(
                (LEFT_MARGIN, y), text, fontsize=12,
                fontname=FONT_BOLD if bold else FONT_REGULAR,
            )
            y += 20

        if not customer_lines:
            return

        y += 30
        page.insert_text((LEFT_MARGIN, y), "Customer Information", fontsize=18, fontname=FONT_BOLD)
        y += 12
        page.draw_line((LEFT_MARGIN, y), (right, y), width=1)
        y += 30
        for text in customer_lines:
            if y > PAGE_RECT.height - 50:
                break
            page.insert_text((LEFT_MARGIN, y), text, fontsize=12, fontname=FONT_REGULAR)
            y += 20

    return _save_single_page(Path(output_path), draw)
