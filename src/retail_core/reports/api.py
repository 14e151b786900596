"""Public API for reports backed by the data store.

This module ties the pieces together: select rows from the store (pushing
the coarse filters down), normalize them, then run the aggregator with the
full criteria in memory. It:

- does NOT parse CLI arguments or print anything,
- reads the store only through ``StoreClient.select`` / ``select_page``,
- MAY log progress via the logging module.

Each call fetches a fresh snapshot; nothing is cached between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import pandas as pd

from retail_core.branches import BranchRegistry
from retail_core.exceptions import DataQualityError
from retail_core.records import (
    STOCK_SELECT,
    TRANSACTION_SOURCES,
    normalize_stock,
    normalize_transactions,
)
from retail_core.reports.aggregate import (
    Summary,
    filter_records,
    group_by_branch,
    group_by_time_bucket,
    summarize,
)
from retail_core.reports.criteria import FilterCriteria
from retail_core.reports.finance import FinancialSummary, branch_financials, financial_summary
from retail_core.reports.inventory import InventorySummary, inventory_summary, warehouse_breakdown
from retail_core.store.client import OR_KEY
from retail_core.utils import BUCKET_SIZES

if TYPE_CHECKING:
    from retail_core.store import StoreClient
    from retail_core.view_state import ListViewState

logger = logging.getLogger(__name__)

GRAINS = ("summary", "branch", *BUCKET_SIZES)

STOCK_TABLE = "stock"

# Criteria pushed down to the store, per kind: criteria attribute -> column
_PUSHDOWN_COLUMNS: dict[str, dict[str, str]] = {
    "sales": {"branch": "branch_id", "user": "cashier_id", "status": "status"},
    "external_sales": {"branch": "branch_id"},
    "purchases": {"branch": "branch_id", "user": "registered_by_user_id", "warehouse": "warehouse_id"},
    "expenses": {
        "branch": "branch_id",
        "user": "recorded_by_user_id",
        "category": "expense_category_id",
    },
}

# Id criteria each kind carries; the others do not apply to it
_APPLICABLE_IDS: dict[str, frozenset[str]] = {
    "sales": frozenset({"branch", "user", "product", "status"}),
    "external_sales": frozenset({"branch"}),
    "purchases": frozenset({"branch", "user", "warehouse", "product"}),
    "expenses": frozenset({"branch", "user", "category"}),
}
_ID_CRITERIA = ("branch", "category", "user", "warehouse", "product", "status")

# Base-table text columns searched by the store when a list page has a query.
# Purchases are searched in memory: their text fields come from joins.
_TEXT_COLUMNS: dict[str, tuple[str, ...]] = {
    "sales": ("transaction_reference", "customer_name"),
    "external_sales": ("transaction_reference", "customer_name"),
    "expenses": ("description", "vendor_notes"),
}


@dataclass
class ReportResult:
    """Result of a single-kind report.

    Attributes:
        kind: Transaction kind reported on.
        grain: "summary", "branch", "day", "week" or "month".
        records: Filtered records.
        summary: Total and count of ``records``.
        grouped: Per-branch or per-bucket totals; None for the summary grain.
    """

    kind: str
    grain: str
    records: pd.DataFrame
    summary: Summary
    grouped: pd.DataFrame | None = None


@dataclass
class DashboardResult:
    """Everything the overview dashboard shows.

    Attributes:
        financials: Income statement totals.
        revenue_series: Sales plus external sales per time bucket.
        branch_performance: Per-branch income statement.
        inventory: Inventory valuation.
        warehouses: Per-warehouse inventory breakdown.
        metadata: Criteria and bucket used.
    """

    financials: FinancialSummary
    revenue_series: pd.DataFrame
    branch_performance: pd.DataFrame
    inventory: InventorySummary
    warehouses: pd.DataFrame
    metadata: dict[str, Any] = field(default_factory=dict)


def _criteria(state: ListViewState | FilterCriteria | None) -> FilterCriteria | None:
    if state is None or isinstance(state, FilterCriteria):
        return state
    return state.criteria()


def build_store_filters(
    kind: str,
    criteria: FilterCriteria | None,
    text_search: bool = False,
) -> dict[str, Any]:
    """Translate criteria into store filters for a transaction kind.

    The date range is widened to whole days (``>= from`` and ``< to + 1 day``);
    the exact UTC-day comparison happens again in memory.

    Args:
        kind: Transaction kind.
        criteria: Criteria to push down.
        text_search: Also push the text query down as an ``ilike`` over the
            kind's own text columns. Off by default because the in-memory
            search also covers joined columns such as the branch name.

    Raises:
        DataQualityError: If kind is unknown.

    """
    if kind not in TRANSACTION_SOURCES:
        raise DataQualityError(
            f"Unknown transaction kind '{kind}'. Must be one of {sorted(TRANSACTION_SOURCES)}."
        )
    if criteria is None:
        return {}

    filters: dict[str, Any] = {}
    bounds = []
    if criteria.date_from is not None:
        bounds.append(("gte", criteria.date_from.isoformat()))
    if criteria.date_to is not None:
        bounds.append(("lt", (criteria.date_to + timedelta(days=1)).isoformat()))
    if bounds:
        filters[TRANSACTION_SOURCES[kind].date_column] = bounds

    for attr, column in _PUSHDOWN_COLUMNS[kind].items():
        value = getattr(criteria, attr)
        if value is not None:
            filters[column] = value

    if text_search and criteria.query is not None and kind in _TEXT_COLUMNS:
        pattern = f"*{criteria.query}*"
        filters[OR_KEY] = [(column, "ilike", pattern) for column in _TEXT_COLUMNS[kind]]
    return filters


def fetch_transactions(
    client: StoreClient,
    kind: str,
    state: ListViewState | FilterCriteria | None = None,
) -> pd.DataFrame:
    """Fetch and normalize the transactions of one kind.

    Only the filters the store can apply are pushed down; use
    ``filter_records`` (or ``get_report``) for the exact criteria.

    Args:
        client: Data store client.
        kind: "sales", "external_sales", "purchases" or "expenses".
        state: Optional view state or criteria.

    Returns:
        Transactions DataFrame, newest first.

    """
    criteria = _criteria(state)
    filters = build_store_filters(kind, criteria)
    source = TRANSACTION_SOURCES[kind]
    rows = client.select(
        source.table,
        source.columns,
        filters=filters,
        order=f"{source.date_column}.desc",
    )
    logger.info("Fetched %d %s record(s)", len(rows), kind)
    return normalize_transactions(rows, kind)


def fetch_transactions_page(
    client: StoreClient,
    kind: str,
    state: ListViewState,
) -> tuple[pd.DataFrame, int]:
    """Fetch one page of a transaction list.

    The text query is searched by the store over the kind's own text
    columns. Purchases have none, so with a query their list is filtered
    in memory and paged locally.

    Returns:
        Tuple of (records of the page, total number of matching rows).

    """
    criteria = state.criteria()
    if criteria.query is not None and kind not in _TEXT_COLUMNS:
        records = load_records(client, kind, criteria)
        start, end = state.row_range
        logger.info("Paged %s in memory: %d matching row(s)", kind, len(records))
        return records.iloc[start : end + 1], len(records)

    source = TRANSACTION_SOURCES[kind]
    rows, total = client.select_page(
        source.table,
        source.columns,
        filters=build_store_filters(kind, criteria, text_search=True),
        order=f"{source.date_column}.desc",
        range_=state.row_range,
    )
    if total is None:
        total = state.offset + len(rows)
    logger.info("Fetched page %d of %s (%d of %d row(s))", state.page, kind, len(rows), total)
    return normalize_transactions(rows, kind), total


def fetch_stock(client: StoreClient, warehouse: str | None = None) -> pd.DataFrame:
    """Fetch and normalize the stock snapshot, optionally for one warehouse."""
    filters = {"warehouse_id": warehouse} if warehouse else None
    rows = client.select(STOCK_TABLE, STOCK_SELECT, filters=filters)
    logger.info("Fetched %d stock row(s)", len(rows))
    return normalize_stock(rows)


def load_records(
    client: StoreClient,
    kind: str,
    state: ListViewState | FilterCriteria | None = None,
) -> pd.DataFrame:
    """Fetch transactions of one kind and apply the full criteria."""
    criteria = criteria_for_kind(kind, _criteria(state))
    return filter_records(fetch_transactions(client, kind, criteria), criteria)


def criteria_for_kind(kind: str, criteria: FilterCriteria | None) -> FilterCriteria | None:
    """Drop id criteria a transaction kind does not carry.

    A category filter restricts expenses but leaves sales untouched, so one
    view state can drive every panel of the dashboard.

    Examples:
        >>> criteria_for_kind("sales", FilterCriteria(category="c1")).category is None
        True

    """
    if criteria is None:
        return None
    applicable = _APPLICABLE_IDS.get(kind, frozenset(_ID_CRITERIA))
    dropped = {attr: None for attr in _ID_CRITERIA if attr not in applicable}
    return replace(criteria, **dropped)


def get_report(
    client: StoreClient,
    kind: str,
    state: ListViewState | FilterCriteria | None = None,
    grain: str = "summary",
    branches: BranchRegistry | None = None,
) -> ReportResult:
    """Build a report for one transaction kind.

    Args:
        client: Data store client.
        kind: "sales", "external_sales", "purchases" or "expenses".
        state: View state or criteria to filter by.
        grain: "summary" (totals only), "branch", "day", "week" or "month".
        branches: Registry used to name branches; rows carry joined names
            so this is optional.

    Returns:
        ReportResult.

    Raises:
        ValueError: If grain is invalid (checked before any request).
        StoreError: If the store request fails.

    Examples:
        >>> result = get_report(client, "sales", ListViewState.from_query("dateFrom=2025-01-01"),
        ...                     grain="week")
        >>> result.summary.total
        12345.0

    """
    if grain not in GRAINS:
        raise ValueError(f"Invalid grain '{grain}'. Must be one of {', '.join(GRAINS)}.")

    records = load_records(client, kind, state)
    summary = summarize(records)

    grouped = None
    if grain == "branch":
        grouped = group_by_branch(records, branches)
    elif grain in BUCKET_SIZES:
        grouped = group_by_time_bucket(records, grain)

    logger.info("%s report (%s): %d record(s), total %.2f", kind, grain, summary.count, summary.total)
    return ReportResult(kind=kind, grain=grain, records=records, summary=summary, grouped=grouped)


def get_dashboard(
    client: StoreClient,
    state: ListViewState | FilterCriteria | None = None,
    bucket: str = "day",
    branches: BranchRegistry | None = None,
) -> DashboardResult:
    """Build the overview dashboard.

    Args:
        client: Data store client.
        state: View state or criteria applied to every transaction kind.
        bucket: Time bucket of the revenue series.
        branches: Branch registry. Loaded from the store when None.

    Returns:
        DashboardResult.

    """
    if bucket not in BUCKET_SIZES:
        raise ValueError(f"Invalid bucket '{bucket}'. Must be one of {', '.join(BUCKET_SIZES)}.")

    criteria = _criteria(state)
    registry = branches if branches is not None else BranchRegistry.from_store(client)

    sales = load_records(client, "sales", criteria)
    external_sales = load_records(client, "external_sales", criteria)
    purchases = load_records(client, "purchases", criteria)
    expenses = load_records(client, "expenses", criteria)

    revenue = pd.concat([sales, external_sales], ignore_index=True)
    stock = fetch_stock(client)

    result = DashboardResult(
        financials=financial_summary(sales, external_sales, purchases, expenses),
        revenue_series=group_by_time_bucket(revenue, bucket),
        branch_performance=branch_financials(
            sales, external_sales, purchases, expenses, registry
        ),
        inventory=inventory_summary(stock),
        warehouses=warehouse_breakdown(stock),
        metadata={"criteria": criteria, "bucket": bucket, "branches": len(registry)},
    )
    logger.info(
        "Dashboard: income %.2f, net profit %.2f",
        result.financials.total_sales_income,
        result.financials.net_profit,
    )
    return result
