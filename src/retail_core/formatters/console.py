"""Console output formatting utilities."""

from __future__ import annotations

import re

import pandas as pd

from retail_core.reports.aggregate import Summary
from retail_core.reports.api import DashboardResult, ReportResult
from retail_core.reports.finance import FinancialSummary
from retail_core.reports.inventory import InventorySummary
from retail_core.utils import format_money

KIND_TITLES = {
    "sales": "Sales",
    "external_sales": "External Sales",
    "purchases": "Purchases",
    "expenses": "Expenses",
}


def sanitize_for_console(text: str) -> str:
    """Sanitize text for console output by removing non-ASCII characters.

    Branch and product names may carry accents or emojis that a cp1252
    Windows console cannot encode.

    Args:
        text: Text that may contain non-ASCII characters

    Returns:
        Sanitized text safe for console output
    """
    return re.sub(r"[^\x00-\x7F]+", "", text)


def format_summary(summary: Summary, title: str = "Summary") -> str:
    """Format a total/count summary under a title."""
    return "\n".join(
        [
            title,
            "=" * 60,
            f"Records: {summary.count}",
            f"Total:   ${format_money(summary.total)}",
        ]
    )


def format_branch_totals(grouped: pd.DataFrame) -> str:
    """Format a ``group_by_branch`` result, one branch per line."""
    if grouped.empty:
        return "No records."
    width = max(len(str(name)) for name in grouped["branch"])
    lines = []
    for _, row in grouped.iterrows():
        lines.append(f"  {str(row['branch']).ljust(width)}  ${format_money(row['total'])}")
    return "\n".join(lines)


def format_series(series: pd.DataFrame) -> str:
    """Format a ``group_by_time_bucket`` result, one bucket per line."""
    if series.empty:
        return "No records."
    return "\n".join(
        f"  {row['bucket']}: ${format_money(row['total'])}" for _, row in series.iterrows()
    )


def format_report_for_console(result: ReportResult) -> str:
    """Build a human-readable representation of a report."""
    title = KIND_TITLES.get(result.kind, result.kind)
    lines = [format_summary(result.summary, f"{title} ({result.grain})")]
    if result.grouped is not None:
        lines.append("")
        if result.grain == "branch":
            lines.append(format_branch_totals(result.grouped))
        else:
            lines.append(format_series(result.grouped))
    return sanitize_for_console("\n".join(lines))


def format_financials(financials: FinancialSummary) -> str:
    rows = [
        ("Sales income", financials.total_sales_income),
        ("Cost of goods sold", financials.total_cogs),
        ("Expenses", financials.total_expenses_amount),
        ("Net profit", financials.net_profit),
        ("Purchases", financials.total_purchases_cost),
    ]
    lines = [f"  {label.ljust(20)} ${format_money(value)}" for label, value in rows]
    lines.append(f"  {'Sales count'.ljust(20)} {financials.total_sales_count}")
    return "\n".join(lines)


def format_inventory(inventory: InventorySummary, warehouses: pd.DataFrame) -> str:
    lines = [
        f"  Inventory value: ${format_money(inventory.total_inventory_value)}",
        f"  Products:        {inventory.total_unique_products}",
        f"  Units in stock:  {inventory.total_stock_quantity:,.0f}",
    ]
    for _, row in warehouses.iterrows():
        lines.append(
            f"    {row['warehouse']}: ${format_money(row['total_inventory_cost'])}"
            f" ({row['product_count']} products, {row['total_stock_quantity']:,.0f} units)"
        )
    return "\n".join(lines)


def format_dashboard_for_console(result: DashboardResult) -> str:
    """Build a human-readable representation of the dashboard."""
    lines = ["Dashboard", "=" * 60, "", "Financials:", format_financials(result.financials), ""]

    lines.append("Branch performance:")
    if result.branch_performance.empty:
        lines.append("  No branches.")
    for _, row in result.branch_performance.iterrows():
        lines.append(
            f"  {row['branch']}: income ${format_money(row['total_sales_income'])},"
            f" net ${format_money(row['net_profit'])}"
        )
    lines.append("")

    bucket = result.metadata.get("bucket", "day")
    lines.append(f"Revenue by {bucket}:")
    lines.append(format_series(result.revenue_series))
    lines.append("")

    lines.append("Inventory:")
    lines.append(format_inventory(result.inventory, result.warehouses))
    return sanitize_for_console("\n".join(lines))


def format_stock_for_console(stock: pd.DataFrame) -> str:
    """Format a stock frame carrying a ``status`` column, one row per line."""
    if stock.empty:
        return "No stock."
    labels = {"out": "Out of Stock", "low": "Low Stock", "ok": "In Stock"}
    lines = []
    for _, row in stock.iterrows():
        name = row["product_name"] or row["product_id"]
        lines.append(
            f"  {name} [{row['product_ref'] or '-'}] @ {row['warehouse_name'] or '-'}:"
            f" {row['quantity']:,.0f} ({labels.get(row.get('status'), row.get('status'))})"
        )
    return sanitize_for_console("\n".join(lines))
