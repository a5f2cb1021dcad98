"""
Unit tests for mixed-color page grouping.
"""

import pytest

from modules.page_sequencer import (
    PageGroup,
    build_page_groups,
    classify_pages,
    emission_order,
)


def _spans(groups):
    return [(group.start_index, group.end_index, group.is_monochrome) for group in groups]


class TestBuildPageGroups:
    """Test partitioning into same-mode runs."""

    def test_ten_pages_three_color(self):
        groups = build_page_groups(10, {2, 3, 7}, {1, 4, 5, 6, 8, 9, 10})

        assert _spans(groups) == [
            (0, 0, True),
            (1, 2, False),
            (3, 5, True),
            (6, 6, False),
            (7, 9, True),
        ]

    def test_unlisted_pages_are_monochrome(self):
        groups = build_page_groups(10, {2, 3, 7}, set())
        assert _spans(groups) == _spans(build_page_groups(10, {2, 3, 7}, {1, 4, 5, 6, 8, 9, 10}))

    def test_empty_assignment_is_one_monochrome_group(self):
        assert _spans(build_page_groups(5, set(), set())) == [(0, 4, True)]

    def test_all_color(self):
        assert _spans(build_page_groups(4, {1, 2, 3, 4}, set())) == [(0, 3, False)]

    def test_conflicting_pages_are_monochrome(self):
        groups = build_page_groups(3, {1, 2, 3}, {2})
        assert _spans(groups) == [(0, 0, False), (1, 1, True), (2, 2, False)]

    def test_out_of_range_pages_ignored(self):
        groups = build_page_groups(3, {0, 3, 4, 99, -1}, set())
        assert _spans(groups) == [(0, 1, True), (2, 2, False)]

    def test_zero_pages(self):
        assert build_page_groups(0, {1}, set()) == []

    @pytest.mark.parametrize("color_pages", [set(), {1}, {5}, {2, 4}, {1, 2, 3, 4, 5}, {3, 4}])
    def test_groups_cover_every_page_once(self, color_pages):
        groups = build_page_groups(5, color_pages, set())

        covered = [index for group in groups for index in range(group.start_index, group.end_index + 1)]
        assert covered == list(range(5))
        # Maximal: neighbours always differ in mode
        for left, right in zip(groups, groups[1:]):
            assert left.is_monochrome != right.is_monochrome


class TestClassifyPages:
    def test_modes_per_page(self):
        assert classify_pages(4, [2], [4]) == [True, False, True, True]


class TestEmissionOrder:
    """Test the last-group-first ordering."""

    def test_reverses_groups(self):
        groups = build_page_groups(10, {2, 3, 7}, set())

        assert _spans(emission_order(groups)) == [
            (7, 9, True),
            (6, 6, False),
            (3, 5, True),
            (1, 2, False),
            (0, 0, True),
        ]

    def test_does_not_mutate_input(self):
        groups = build_page_groups(10, {2, 3, 7}, set())
        before = list(groups)
        emission_order(groups)
        assert groups == before


class TestPageGroup:
    def test_one_based_helpers(self):
        group = PageGroup(start_index=3, end_index=5, is_monochrome=True)

        assert group.page_count == 3
        assert group.first_page == 4
        assert group.last_page == 6
        assert group.key == "4-6:bw"
        assert group.describe() == "B&W pages 4-6"
