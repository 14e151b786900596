"""Financial summaries: revenue, cost of goods sold, expenses and net profit.

Net profit follows the accounting view of the dashboard:

    net_profit = (sales + external sales) - COGS - expenses

Purchases are reported alongside but do not enter net profit; their cost
reaches the income statement through COGS when the goods are sold.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

import pandas as pd

from retail_core.branches import UNKNOWN_BRANCH, BranchRegistry
from retail_core.records import TRANSACTION_COLUMNS, ensure_transaction_columns

logger = logging.getLogger(__name__)

BRANCH_FINANCIAL_COLUMNS = [
    "branch_id",
    "branch",
    "total_sales_income",
    "total_cogs",
    "total_purchases_cost",
    "total_expenses_amount",
    "net_profit",
]

_UNKNOWN_KEY = "__unknown__"


@dataclass(frozen=True)
class FinancialSummary:
    """Totals over already-filtered transaction sets.

    Attributes:
        total_sales_income: Sales plus external sales amounts.
        total_cogs: Cost of goods sold for those sales.
        total_purchases_cost: Purchase totals (informational).
        total_expenses_amount: Expense totals.
        net_profit: Income minus COGS minus expenses.
        total_sales_count: Number of sales and external sales.
    """

    total_sales_income: float
    total_cogs: float
    total_purchases_cost: float
    total_expenses_amount: float
    net_profit: float
    total_sales_count: int

    def to_dict(self) -> dict[str, float | int]:
        return asdict(self)


def _prepare(records: pd.DataFrame | None) -> pd.DataFrame:
    if records is None:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS).astype({"amount": float, "cogs": float})
    df = ensure_transaction_columns(records)
    df["cogs"] = pd.to_numeric(df["cogs"], errors="coerce").fillna(0.0).astype(float)
    return df


def financial_summary(
    sales: pd.DataFrame | None,
    external_sales: pd.DataFrame | None = None,
    purchases: pd.DataFrame | None = None,
    expenses: pd.DataFrame | None = None,
) -> FinancialSummary:
    """Compute the income statement totals.

    Args:
        sales: Point-of-sale transactions (with ``cogs``).
        external_sales: External sales (with ``cogs``).
        purchases: Purchases.
        expenses: Expenses.

    Returns:
        FinancialSummary. Missing inputs count as empty.

    Examples:
        >>> s = financial_summary(sales_df, external_df, purchases_df, expenses_df)
        >>> s.net_profit == s.total_sales_income - s.total_cogs - s.total_expenses_amount
        True

    """
    sales_df = _prepare(sales)
    external_df = _prepare(external_sales)
    purchases_df = _prepare(purchases)
    expenses_df = _prepare(expenses)

    income = float(sales_df["amount"].sum() + external_df["amount"].sum())
    cogs = float(sales_df["cogs"].sum() + external_df["cogs"].sum())
    purchases_cost = float(purchases_df["amount"].sum())
    expenses_amount = float(expenses_df["amount"].sum())

    summary = FinancialSummary(
        total_sales_income=income,
        total_cogs=cogs,
        total_purchases_cost=purchases_cost,
        total_expenses_amount=expenses_amount,
        net_profit=income - cogs - expenses_amount,
        total_sales_count=len(sales_df) + len(external_df),
    )
    logger.debug("Financial summary: %s", summary)
    return summary


def _totals_by_branch(df: pd.DataFrame, column: str, known: set[str]) -> pd.Series:
    if df.empty:
        return pd.Series(dtype=float)
    ids = df["branch_id"].astype("string")
    key = ids.where(ids.isin(list(known)).fillna(False).astype(bool), _UNKNOWN_KEY).astype(str)
    return df[column].groupby(key, sort=False).sum()


def branch_financials(
    sales: pd.DataFrame | None,
    external_sales: pd.DataFrame | None,
    purchases: pd.DataFrame | None,
    expenses: pd.DataFrame | None,
    branches: BranchRegistry,
) -> pd.DataFrame:
    """Break the income statement down per branch.

    Every branch in the registry gets a row, with zeros when it had no
    activity. Records whose branch is missing or not in the registry are
    collected in a single ``"Unknown Branch"`` row, added only when needed,
    so the column sums always equal ``financial_summary``.

    Returns:
        DataFrame with ``BRANCH_FINANCIAL_COLUMNS`` sorted by net profit
        descending; ties keep registry order.

    """
    known = set(branches.as_dict())
    sales_df = _prepare(sales)
    external_df = _prepare(external_sales)

    income = _totals_by_branch(sales_df, "amount", known).add(
        _totals_by_branch(external_df, "amount", known), fill_value=0.0
    )
    cogs = _totals_by_branch(sales_df, "cogs", known).add(
        _totals_by_branch(external_df, "cogs", known), fill_value=0.0
    )
    purchases_cost = _totals_by_branch(_prepare(purchases), "amount", known)
    expenses_amount = _totals_by_branch(_prepare(expenses), "amount", known)

    entries = list(branches.list_branches())
    all_totals = (income, cogs, purchases_cost, expenses_amount)
    if any(_UNKNOWN_KEY in totals.index for totals in all_totals):
        logger.debug("Some records have no registered branch, adding %s row", UNKNOWN_BRANCH)
        entries.append((_UNKNOWN_KEY, UNKNOWN_BRANCH))

    rows = []
    for branch_id, name in entries:
        branch_income = float(income.get(branch_id, 0.0))
        branch_cogs = float(cogs.get(branch_id, 0.0))
        branch_expenses = float(expenses_amount.get(branch_id, 0.0))
        rows.append(
            {
                "branch_id": None if branch_id == _UNKNOWN_KEY else branch_id,
                "branch": name,
                "total_sales_income": branch_income,
                "total_cogs": branch_cogs,
                "total_purchases_cost": float(purchases_cost.get(branch_id, 0.0)),
                "total_expenses_amount": branch_expenses,
                "net_profit": branch_income - branch_cogs - branch_expenses,
            }
        )

    if not rows:
        return pd.DataFrame(columns=BRANCH_FINANCIAL_COLUMNS)

    df = pd.DataFrame(rows, columns=BRANCH_FINANCIAL_COLUMNS)
    return df.sort_values("net_profit", ascending=False, kind="stable").reset_index(drop=True)
