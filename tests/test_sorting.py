"""Unit tests for sort-toggle transitions."""

from __future__ import annotations

import pytest

from collection_view.domain.models import SortDirection, SortMode
from collection_view.domain.sorting import (
    next_in_cycle,
    sort_direction,
    toggle_sort_from_query,
    toggle_sort_with_cycle,
)

ASC = SortDirection.ASC
DESC = SortDirection.DESC


class TestDefaultCycle:
    def test_three_toggles_from_untouched(self):
        sort = ()
        sort = toggle_sort_with_cycle(sort, "name")
        assert sort == (("name", ASC),)
        sort = toggle_sort_with_cycle(sort, "name")
        assert sort == (("name", DESC),)
        sort = toggle_sort_with_cycle(sort, "name")
        assert sort == ()

    def test_new_field_is_prepended(self):
        sort = toggle_sort_with_cycle((("name", DESC),), "age")
        assert sort == (("age", ASC), ("name", DESC))

    def test_existing_field_keeps_its_position(self):
        sort = toggle_sort_with_cycle((("age", ASC), ("name", ASC)), "name")
        assert sort == (("age", ASC), ("name", DESC))

    def test_field_appears_once(self):
        sort = (("name", ASC),)
        for _ in range(5):
            sort = toggle_sort_with_cycle(sort, "name")
            assert [k for k, _ in sort].count("name") <= 1


class TestCustomCycles:
    def test_cycle_without_none_wraps(self):
        cycle = (ASC, DESC)
        sort = toggle_sort_with_cycle((), "n", cycle)
        assert sort == (("n", ASC),)
        sort = toggle_sort_with_cycle(sort, "n", cycle)
        assert sort == (("n", DESC),)
        sort = toggle_sort_with_cycle(sort, "n", cycle)
        assert sort == (("n", ASC),)

    def test_desc_first_cycle(self):
        cycle = (None, DESC, ASC)
        sort = toggle_sort_with_cycle((), "n", cycle)
        assert sort == (("n", DESC),)
        sort = toggle_sort_with_cycle(sort, "n", cycle)
        assert sort == (("n", ASC),)
        assert toggle_sort_with_cycle(sort, "n", cycle) == ()

    def test_multi_direction_cycle_with_null_handling(self):
        cycle = (None, ASC, SortDirection.DESC_NULLS_LAST, DESC)
        seen = []
        sort = ()
        for _ in range(4):
            sort = toggle_sort_with_cycle(sort, "n", cycle)
            seen.append(sort_direction(sort, "n"))
        assert seen == [ASC, SortDirection.DESC_NULLS_LAST, DESC, None]

    @pytest.mark.parametrize("cycle", [(), (None,), None])
    def test_degenerate_cycle_uses_default(self, cycle):
        assert next_in_cycle(None, cycle) == ASC
        assert next_in_cycle(ASC, cycle) == DESC
        assert next_in_cycle(DESC, cycle) is None

    def test_direction_outside_cycle_restarts(self):
        assert next_in_cycle(SortDirection.ASC_NULLS_FIRST, (None, DESC, ASC)) == DESC


class TestExclusiveMode:
    def test_replaces_other_keys(self):
        sort = toggle_sort_with_cycle((("a", ASC), ("b", DESC)), "c", mode=SortMode.EXCLUSIVE)
        assert sort == (("c", ASC),)

    def test_removal_clears_everything(self):
        sort = toggle_sort_with_cycle((("a", DESC), ("b", ASC)), "a", mode=SortMode.EXCLUSIVE)
        assert sort == ()


class TestToggleFromQueryDefault:
    """First click on a sort that came from the query's own ORDER BY."""

    def test_desc_default_flips_to_asc_then_cycles(self):
        sort = (("created_at", DESC),)
        sort = toggle_sort_from_query(sort, "created_at")
        assert sort == (("created_at", ASC),)
        # Afterwards the regular cycle applies.
        sort = toggle_sort_with_cycle(sort, "created_at")
        assert sort == (("created_at", DESC),)
        sort = toggle_sort_with_cycle(sort, "created_at")
        assert sort == ()

    def test_asc_default_flips_to_desc(self):
        assert toggle_sort_from_query((("name", ASC),), "name") == (("name", DESC),)

    def test_other_field_uses_cycle(self):
        sort = toggle_sort_from_query((("created_at", DESC),), "title")
        assert sort == (("title", ASC), ("created_at", DESC))

    def test_opposite_keeps_null_placement_meaningful(self):
        assert SortDirection.ASC_NULLS_FIRST.opposite() == SortDirection.DESC_NULLS_LAST
        assert SortDirection.DESC.opposite() == SortDirection.ASC
