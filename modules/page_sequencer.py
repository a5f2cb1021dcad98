"""
Mixed-color page sequencing.

A mixed-color document is split into contiguous runs of monochrome and
color pages so each run can be sent to the printer with its own color mode.
The printer's output tray stacks face up (last sheet on top), so the runs
are emitted last-to-first: once every run has printed, the stack reads
page 1..N from the top.
"""

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class PageGroup:
    """A contiguous run of pages that share one color mode."""

    start_index: int
    """First page, 0-based inclusive."""

    end_index: int
    """Last page, 0-based inclusive."""

    is_monochrome: bool

    @property
    def page_count(self) -> int:
        return self.end_index - self.start_index + 1

    @property
    def first_page(self) -> int:
        """First page, 1-based."""
        return self.start_index + 1

    @property
    def last_page(self) -> int:
        """Last page, 1-based."""
        return self.end_index + 1

    @property
    def key(self) -> str:
        """Stable identifier used to remember which groups already printed."""
        mode = "bw" if self.is_monochrome else "color"
        return f"{self.first_page}-{self.last_page}:{mode}"

    def describe(self) -> str:
        mode = "B&W" if self.is_monochrome else "Color"
        return f"{mode} pages {self.first_page}-{self.last_page}"


def _to_indices(pages: Iterable[int], total_pages: int) -> set:
    """1-based page numbers to 0-based indices, dropping anything out of range."""
    return {page - 1 for page in pages if 0 <= page - 1 < total_pages}


def classify_pages(total_pages: int, color_pages: Iterable[int], bw_pages: Iterable[int]) -> List[bool]:
    """
    Decide the mode of every page.

    Returns:
        One entry per page, True when the page prints monochrome.
        A page is color only when it is listed as color and not as B&W;
        pages listed in both sets, or in neither, print monochrome.
    """
    color = _to_indices(color_pages, total_pages)
    bw = _to_indices(bw_pages, total_pages)
    return [not (index in color and index not in bw) for index in range(total_pages)]


def build_page_groups(
    total_pages: int,
    color_pages: Iterable[int],
    bw_pages: Iterable[int]
) -> List[PageGroup]:
    """
    Partition a document into maximal same-mode runs, in natural order.

    Example:
        >>> build_page_groups(10, {2, 3, 7}, {1, 4, 5, 6, 8, 9, 10})
        [PageGroup(0, 0, True), PageGroup(1, 2, False), PageGroup(3, 5, True),
         PageGroup(6, 6, False), PageGroup(7, 9, True)]
    """
    if total_pages <= 0:
        return []

    modes = classify_pages(total_pages, color_pages, bw_pages)
    groups: List[PageGroup] = []
    start = 0
    for index in range(1, total_pages + 1):
        if index == total_pages or modes[index] != modes[start]:
            groups.append(PageGroup(start, index - 1, modes[start]))
            start = index
    return groups


def emission_order(groups: List[PageGroup]) -> List[PageGroup]:
    """Order in which groups are dispatched: last group first."""
    return list(reversed(groups))
