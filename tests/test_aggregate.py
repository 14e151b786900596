"""Tests for the report aggregator: filter, summarize and grouping.

These tests verify the aggregator's contract:
- Filtering is a logical AND of the supplied criteria and is idempotent
- Dates compare on the UTC calendar day, bounds inclusive
- Per-branch totals always add up to the scalar total
- Time buckets are labelled, sorted and skip unparsable dates
"""

import logging
from datetime import date

import pandas as pd
import pytest

from retail_core.branches import UNKNOWN_BRANCH, BranchRegistry
from retail_core.exceptions import DataQualityError
from retail_core.reports.aggregate import (
    Summary,
    filter_records,
    group_by_branch,
    group_by_time_bucket,
    summarize,
)
from retail_core.reports.criteria import FilterCriteria


@pytest.fixture
def january_records() -> pd.DataFrame:
    """Three records, two of them in January 2024."""
    return pd.DataFrame(
        {
            "date": ["2024-01-01", "2024-01-02", "2024-02-01"],
            "amount": [100, 50, 70],
            "branch_id": ["A", "B", "A"],
        }
    )


class TestFilterRecords:
    """Tests for filter_records."""

    def test_date_range_then_summary_and_branches(self, january_records: pd.DataFrame) -> None:
        """Filtering January keeps two records worth 150 split over A and B."""
        criteria = FilterCriteria(date_from="2024-01-01", date_to="2024-01-31")
        subset = filter_records(january_records, criteria)

        assert summarize(subset) == Summary(total=150.0, count=2)

        grouped = group_by_branch(subset)
        assert list(grouped["branch"]) == ["A", "B"]
        assert list(grouped["total"]) == [100.0, 50.0]

    def test_inverted_range_is_empty(self, january_records: pd.DataFrame) -> None:
        criteria = FilterCriteria(date_from="2024-02-01", date_to="2024-01-01")
        subset = filter_records(january_records, criteria)

        assert subset.empty
        assert summarize(subset) == Summary(total=0.0, count=0)

    def test_no_criteria_keeps_everything(self, transactions: pd.DataFrame) -> None:
        assert len(filter_records(transactions)) == 6
        assert len(filter_records(transactions, FilterCriteria())) == 6

    def test_branch_filter(self, transactions: pd.DataFrame) -> None:
        subset = filter_records(transactions, FilterCriteria(branch="b1"))
        assert list(subset["id"]) == ["s1", "s3", "s6"]
        assert summarize(subset).total == 165.0

    def test_all_means_no_restriction(self, transactions: pd.DataFrame) -> None:
        subset = filter_records(transactions, FilterCriteria(branch="all", user="ALL"))
        assert len(subset) == 6

    def test_unparsable_date_fails_date_range(self, transactions: pd.DataFrame) -> None:
        criteria = FilterCriteria(date_from=date(2025, 1, 1), date_to=date(2025, 1, 31))
        subset = filter_records(transactions, criteria)
        assert list(subset["id"]) == ["s1", "s2", "s3"]

    def test_unparsable_date_passes_without_range(self, transactions: pd.DataFrame) -> None:
        subset = filter_records(transactions, FilterCriteria(branch="b2"))
        assert list(subset["id"]) == ["s2", "s5"]

    def test_dates_compare_on_utc_day(self, transactions: pd.DataFrame) -> None:
        """23:30 at UTC-2 on Feb 3rd is Feb 4th in UTC."""
        on_fourth = filter_records(
            transactions, FilterCriteria(date_from="2025-02-04", date_to="2025-02-04")
        )
        on_third = filter_records(
            transactions, FilterCriteria(date_from="2025-02-03", date_to="2025-02-03")
        )
        assert list(on_fourth["id"]) == ["s6"]
        assert on_third.empty

    def test_bounds_are_inclusive(self, transactions: pd.DataFrame) -> None:
        subset = filter_records(
            transactions, FilterCriteria(date_from="2025-01-06", date_to="2025-01-13")
        )
        assert list(subset["id"]) == ["s1", "s2", "s3"]

    def test_query_is_case_insensitive_substring(self, transactions: pd.DataFrame) -> None:
        subset = filter_records(transactions, FilterCriteria(query="ALICE"))
        assert list(subset["id"]) == ["s1", "s3"]

    def test_query_searches_every_text_field(self, transactions: pd.DataFrame) -> None:
        by_reference = filter_records(transactions, FilterCriteria(query="tx-00"))
        by_branch = filter_records(transactions, FilterCriteria(query="downtown"))
        assert len(by_reference) == 6
        assert list(by_branch["id"]) == ["s1", "s3", "s6"]

    def test_query_restricted_to_given_fields(self, transactions: pd.DataFrame) -> None:
        criteria = FilterCriteria(query="downtown", text_fields=("description",))
        assert filter_records(transactions, criteria).empty

    def test_product_filter(self, transactions: pd.DataFrame) -> None:
        subset = filter_records(transactions, FilterCriteria(product="p1"))
        assert list(subset["id"]) == ["s1", "s6"]

    def test_criteria_are_combined_with_and(self, transactions: pd.DataFrame) -> None:
        subset = filter_records(transactions, FilterCriteria(branch="b1", user="u1"))
        assert list(subset["id"]) == ["s1", "s3"]

    def test_integer_ids_with_gaps(self) -> None:
        """Integer ids with a missing value arrive as float64 and still match."""
        df = pd.DataFrame(
            {
                "id": [1, 2, 3],
                "date": ["2025-01-01"] * 3,
                "amount": [10.0, 20.0, 30.0],
                "branch_id": [1, None, 2],
            }
        )
        assert df["branch_id"].dtype == "float64"

        subset = filter_records(df, FilterCriteria(branch="1"))

        assert list(subset["id"]) == ["1"]
        grouped = group_by_branch(df, {"1": "Downtown", "2": "Airport"})
        assert list(grouped["branch"]) == ["Airport", UNKNOWN_BRANCH, "Downtown"]
        assert grouped["branch_id"].tolist() == ["2", None, "1"]

    def test_status_filter(self, transactions: pd.DataFrame) -> None:
        df = transactions.assign(
            status=["completed", "held", "completed", "cancelled", None, "completed"]
        )

        completed = filter_records(df, FilterCriteria(status="completed", branch="b1"))

        assert list(completed["id"]) == ["s1", "s3", "s6"]
        assert len(filter_records(df, FilterCriteria(status="all"))) == 6
        assert list(filter_records(df, FilterCriteria(status="held"))["id"]) == ["s2"]

    def test_filter_is_idempotent(self, transactions: pd.DataFrame) -> None:
        criteria = FilterCriteria(date_from="2025-01-01", branch="b1", query="a")
        once = filter_records(transactions, criteria)
        twice = filter_records(once, criteria)
        pd.testing.assert_frame_equal(once, twice)

    def test_input_is_not_modified(self, transactions: pd.DataFrame) -> None:
        before = transactions.copy()
        filter_records(transactions, FilterCriteria(branch="b1"))
        pd.testing.assert_frame_equal(transactions, before)

    def test_missing_required_columns_raise(self) -> None:
        with pytest.raises(DataQualityError, match="amount"):
            filter_records(pd.DataFrame({"date": ["2025-01-01"]}))

    def test_invalid_criteria_date_raises(self) -> None:
        with pytest.raises(ValueError, match="date_from"):
            FilterCriteria(date_from="31/01/2025")


class TestSummarize:
    """Tests for summarize."""

    def test_total_and_count(self, transactions: pd.DataFrame) -> None:
        assert summarize(transactions) == Summary(total=305.0, count=6)

    def test_empty(self) -> None:
        assert summarize(pd.DataFrame()) == Summary(total=0.0, count=0)
        assert summarize(pd.DataFrame(columns=["date", "amount"])) == Summary(0.0, 0)

    def test_bad_amounts_count_as_zero(self, caplog: pytest.LogCaptureFixture) -> None:
        df = pd.DataFrame(
            {"date": ["2025-01-01"] * 3, "amount": ["10.5", "abc", None]}
        )
        with caplog.at_level(logging.WARNING):
            result = summarize(df)

        assert result == Summary(total=10.5, count=3)
        assert "2 record(s)" in caplog.text


class TestGroupByBranch:
    """Tests for group_by_branch."""

    def test_totals_sorted_descending_with_unknown_bucket(
        self, transactions: pd.DataFrame, registry: BranchRegistry
    ) -> None:
        grouped = group_by_branch(transactions, registry)

        assert list(grouped.columns) == ["branch_id", "branch", "total"]
        assert list(grouped["branch"]) == ["Downtown", UNKNOWN_BRANCH, "Airport"]
        assert list(grouped["total"]) == [165.0, 80.0, 60.0]
        assert grouped["branch_id"].tolist() == ["b1", None, "b2"]

    def test_branch_totals_sum_to_grand_total(self, transactions: pd.DataFrame) -> None:
        for criteria in (None, FilterCriteria(date_from="2025-01-01"), FilterCriteria(user="u1")):
            subset = filter_records(transactions, criteria)
            grouped = group_by_branch(subset)
            assert grouped["total"].sum() == pytest.approx(summarize(subset).total)

    def test_ties_keep_first_seen_order(self) -> None:
        df = pd.DataFrame(
            {
                "date": ["2025-01-01"] * 4,
                "amount": [50.0, 50.0, 70.0, 0.0],
                "branch_id": ["a", "b", "c", "b"],
                "branch_name": ["A", "B", "C", "B"],
            }
        )
        grouped = group_by_branch(df)
        assert list(grouped["branch"]) == ["C", "A", "B"]

    def test_names_come_from_registry(self, registry: BranchRegistry) -> None:
        df = pd.DataFrame(
            {
                "date": ["2025-01-01"] * 4,
                "amount": [10.0, 20.0, 30.0, 5.0],
                "branch_id": ["b1", "zz", None, "b2"],
            }
        )
        grouped = group_by_branch(df, registry)

        assert list(grouped["branch"]) == [UNKNOWN_BRANCH, "Downtown", "Airport"]
        assert list(grouped["total"]) == [50.0, 10.0, 5.0]

    def test_plain_mapping_registry(self) -> None:
        df = pd.DataFrame({"date": ["2025-01-01"], "amount": [1.0], "branch_id": ["b1"]})
        grouped = group_by_branch(df, {"b1": "Downtown"})
        assert grouped["branch"].tolist() == ["Downtown"]

    def test_empty_subset(self) -> None:
        grouped = group_by_branch(pd.DataFrame(columns=["date", "amount"]))
        assert grouped.empty
        assert list(grouped.columns) == ["branch_id", "branch", "total"]


class TestGroupByTimeBucket:
    """Tests for group_by_time_bucket."""

    def test_day_buckets_skip_bad_dates(
        self, transactions: pd.DataFrame, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            series = group_by_time_bucket(transactions, "day")

        assert list(series["bucket"]) == ["2025-01-06", "2025-01-13", "2025-02-01", "2025-02-04"]
        assert list(series["total"]) == [150.0, 25.0, 80.0, 40.0]
        assert "unparsable dates" in caplog.text

    def test_bad_dates_still_count_in_summary(self, transactions: pd.DataFrame) -> None:
        series = group_by_time_bucket(transactions, "day")
        assert summarize(transactions).total - series["total"].sum() == pytest.approx(10.0)

    def test_week_buckets_use_iso_weeks(self, transactions: pd.DataFrame) -> None:
        series = group_by_time_bucket(transactions, "week")
        assert list(series["bucket"]) == ["2025-02", "2025-03", "2025-05", "2025-06"]
        assert list(series["total"]) == [150.0, 25.0, 80.0, 40.0]

    def test_month_buckets(self, transactions: pd.DataFrame) -> None:
        series = group_by_time_bucket(transactions, "month")
        assert list(series["bucket"]) == ["2025-01", "2025-02"]
        assert list(series["total"]) == [175.0, 120.0]

    def test_iso_week_across_year_boundary(self) -> None:
        df = pd.DataFrame(
            {"date": ["2024-12-30", "2024-12-28", "2025-01-02"], "amount": [1.0, 2.0, 4.0]}
        )
        series = group_by_time_bucket(df, "week")
        assert list(series["bucket"]) == ["2024-52", "2025-01"]
        assert list(series["total"]) == [2.0, 5.0]

    def test_buckets_sorted_ascending(self) -> None:
        df = pd.DataFrame(
            {"date": ["2025-03-01", "2024-11-15", "2025-01-20"], "amount": [1.0, 1.0, 1.0]}
        )
        series = group_by_time_bucket(df, "month")
        assert list(series["bucket"]) == sorted(series["bucket"])

    def test_invalid_bucket_raises(self, transactions: pd.DataFrame) -> None:
        with pytest.raises(ValueError, match="Invalid bucket"):
            group_by_time_bucket(transactions, "year")

    def test_only_bad_dates_gives_empty_series(self) -> None:
        df = pd.DataFrame({"date": ["nope", None], "amount": [1.0, 2.0]})
        series = group_by_time_bucket(df, "day")
        assert series.empty
        assert list(series.columns) == ["bucket", "total"]
