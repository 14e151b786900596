"""Tests for list-view state carried in URL query strings."""

import logging
from datetime import date

import pytest

from retail_core.reports.criteria import FilterCriteria
from retail_core.view_state import ListViewState


class TestFromQuery:
    def test_full_query(self) -> None:
        state = ListViewState.from_query(
            "?page=3&limit=25&query=coffee&category=c1&branch=b1&user=u1"
            "&dateFrom=2025-01-01&dateTo=2025-01-31"
        )
        assert state == ListViewState(
            page=3,
            limit=25,
            query="coffee",
            category="c1",
            branch="b1",
            user="u1",
            date_from=date(2025, 1, 1),
            date_to=date(2025, 1, 31),
        )

    def test_defaults(self) -> None:
        assert ListViewState.from_query("") == ListViewState()
        assert ListViewState.from_query(None) == ListViewState()

    @pytest.mark.parametrize("raw", ["0", "-2", "abc", "", "1.5"])
    def test_bad_page_and_limit_fall_back(self, raw: str) -> None:
        state = ListViewState.from_query(f"page={raw}&limit={raw}")
        assert state.page == 1
        assert state.limit == 10

    def test_all_and_empty_mean_no_filter(self) -> None:
        state = ListViewState.from_query("branch=all&category=&user=ALL&query=%20")
        assert state.branch is None
        assert state.category is None
        assert state.user is None
        assert state.query is None

    def test_invalid_date_dropped_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            state = ListViewState.from_query("dateFrom=not-a-date&dateTo=2025-01-31T12:00:00Z")

        assert state.date_from is None
        assert state.date_to == date(2025, 1, 31)
        assert "dateFrom" in caplog.text

    def test_mapping_with_repeated_values(self) -> None:
        state = ListViewState.from_query({"page": ["1", "4"], "branch": "b2", "other": "x"})
        assert state.page == 4
        assert state.branch == "b2"


class TestToQuery:
    def test_defaults_are_omitted(self) -> None:
        assert ListViewState().to_query() == ""

    def test_stable_order(self) -> None:
        state = ListViewState(
            date_to=date(2025, 1, 31), branch="b1", page=2, query="red tea", limit=50
        )
        assert state.to_query() == "page=2&limit=50&query=red+tea&branch=b1&dateTo=2025-01-31"

    @pytest.mark.parametrize(
        "state",
        [
            ListViewState(),
            ListViewState(page=5, limit=20),
            ListViewState(query="café & crème", category="c 1"),
            ListViewState(branch="b1", user="u1", date_from=date(2024, 2, 29)),
            ListViewState(date_from=date(2025, 2, 1), date_to=date(2025, 1, 1)),
        ],
    )
    def test_round_trip(self, state: ListViewState) -> None:
        assert ListViewState.from_query(state.to_query()) == state


class TestWithChanges:
    def test_filter_change_resets_page(self) -> None:
        state = ListViewState(page=4, branch="b1")
        changed = state.with_changes(branch="b2")
        assert changed.page == 1
        assert changed.branch == "b2"

    def test_limit_change_resets_page(self) -> None:
        assert ListViewState(page=4).with_changes(limit=50).page == 1

    def test_page_change_keeps_filters(self) -> None:
        changed = ListViewState(page=1, branch="b1").with_changes(page=2)
        assert changed == ListViewState(page=2, branch="b1")

    def test_same_value_keeps_page(self) -> None:
        assert ListViewState(page=4, branch="b1").with_changes(branch="b1").page == 4

    def test_explicit_page_wins(self) -> None:
        assert ListViewState(page=4).with_changes(branch="b1", page=3).page == 3

    def test_original_is_unchanged(self) -> None:
        state = ListViewState(page=4)
        state.with_changes(branch="b1")
        assert state.page == 4

    def test_unknown_attribute(self) -> None:
        with pytest.raises(TypeError):
            ListViewState().with_changes(color="red")


class TestPagination:
    def test_offset_and_row_range(self) -> None:
        state = ListViewState(page=3, limit=25)
        assert state.offset == 50
        assert state.row_range == (50, 74)

    @pytest.mark.parametrize(("total", "pages"), [(0, 1), (1, 1), (10, 1), (11, 2), (95, 10)])
    def test_total_pages(self, total: int, pages: int) -> None:
        assert ListViewState().total_pages(total) == pages

    @pytest.mark.parametrize("bad", [0, -3])
    def test_non_positive_page_and_limit_fall_back(self, bad: int) -> None:
        state = ListViewState(page=bad, limit=bad)
        assert (state.page, state.limit) == (1, 10)

    def test_zero_limit_change_keeps_a_usable_window(self) -> None:
        state = ListViewState(page=3, limit=25).with_changes(limit=0)

        assert state.limit == 10
        assert state.row_range == (0, 9)
        assert state.total_pages(10) == 1


def test_criteria() -> None:
    state = ListViewState(
        query="tea", branch="b1", user="u1", category="c1", date_from=date(2025, 1, 1)
    )
    assert state.criteria() == FilterCriteria(
        query="tea", branch="b1", user="u1", category="c1", date_from=date(2025, 1, 1)
    )
