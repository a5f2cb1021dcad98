"""Printing workflow modules for PrintQueueServer."""

__all__ = [
    "delivery_number",
    "job_executor",
    "page_sequencer",
    "pdf_tools",
    "separator_pages",
]
