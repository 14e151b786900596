"""Reports over transaction and stock snapshots.

Pure aggregation lives in ``aggregate``, ``finance`` and ``inventory``;
``api`` fetches from the data store and runs them.

Example:
    >>> from retail_core.reports import FilterCriteria, filter_records, summarize
    >>> subset = filter_records(records, FilterCriteria(branch="b1"))
    >>> summarize(subset)
    Summary(total=150.0, count=2)

"""

from retail_core.reports.aggregate import (
    Summary,
    filter_records,
    group_by_branch,
    group_by_time_bucket,
    summarize,
)
from retail_core.reports.api import (
    DashboardResult,
    ReportResult,
    build_store_filters,
    criteria_for_kind,
    fetch_stock,
    fetch_transactions,
    fetch_transactions_page,
    get_dashboard,
    get_report,
)
from retail_core.reports.criteria import FilterCriteria
from retail_core.reports.finance import FinancialSummary, branch_financials, financial_summary
from retail_core.reports.inventory import (
    InventorySummary,
    filter_stock,
    group_stock_by_product,
    inventory_summary,
    stock_status,
    warehouse_breakdown,
    with_stock_status,
)

__all__ = [
    "DashboardResult",
    "FilterCriteria",
    "FinancialSummary",
    "InventorySummary",
    "ReportResult",
    "Summary",
    "branch_financials",
    "build_store_filters",
    "criteria_for_kind",
    "fetch_stock",
    "fetch_transactions",
    "fetch_transactions_page",
    "filter_records",
    "filter_stock",
    "financial_summary",
    "get_dashboard",
    "get_report",
    "group_by_branch",
    "group_by_time_bucket",
    "group_stock_by_product",
    "inventory_summary",
    "stock_status",
    "summarize",
    "warehouse_breakdown",
    "with_stock_status",
]
