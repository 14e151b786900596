"""Inventory reports over stock snapshots (one row per product x warehouse)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from retail_core.records import ensure_stock_columns
from retail_core.reports.criteria import FilterCriteria

logger = logging.getLogger(__name__)

UNKNOWN_WAREHOUSE = "Unknown Warehouse"

OUT_OF_STOCK = "out"
LOW_STOCK = "low"
IN_STOCK = "ok"

WAREHOUSE_COLUMNS = [
    "warehouse_id",
    "warehouse",
    "total_inventory_cost",
    "product_count",
    "total_stock_quantity",
]
PRODUCT_STOCK_COLUMNS = ["product_id", "product_name", "product_ref", "warehouses", "total_stock"]

_UNKNOWN_KEY = "__unknown__"


@dataclass(frozen=True)
class InventorySummary:
    """Valuation of the stock on hand.

    Attributes:
        total_inventory_value: Sum of quantity x purchase price.
        total_unique_products: Number of distinct products in stock rows.
        total_stock_quantity: Sum of quantities.
    """

    total_inventory_value: float
    total_unique_products: int
    total_stock_quantity: float


def _product_rows(stock: pd.DataFrame) -> pd.DataFrame:
    df = ensure_stock_columns(stock)
    mask = df["has_product"].fillna(False).astype(bool) & df["product_id"].notna()
    dropped = int((~mask).sum())
    if dropped:
        logger.debug("Ignoring %d stock row(s) without a product", dropped)
    return df[mask]


def inventory_summary(stock: pd.DataFrame) -> InventorySummary:
    """Value the stock: quantity x purchase price over rows with a product."""
    df = _product_rows(stock)
    return InventorySummary(
        total_inventory_value=float((df["quantity"] * df["purchase_price"]).sum()),
        total_unique_products=int(df["product_id"].nunique()),
        total_stock_quantity=float(df["quantity"].sum()),
    )


def warehouse_breakdown(stock: pd.DataFrame) -> pd.DataFrame:
    """Inventory cost, product count and quantity per warehouse.

    Returns:
        DataFrame with ``WAREHOUSE_COLUMNS`` sorted by cost descending
        (stable).

    """
    df = _product_rows(stock)
    if df.empty:
        return pd.DataFrame(columns=WAREHOUSE_COLUMNS)

    ids = df["warehouse_id"].astype("string")
    frame = pd.DataFrame(
        {
            "warehouse_id": ids.fillna(_UNKNOWN_KEY).astype(str),
            "warehouse": df["warehouse_name"].astype("string").fillna(UNKNOWN_WAREHOUSE).astype(str),
            "cost": df["quantity"] * df["purchase_price"],
            "product_id": df["product_id"],
            "quantity": df["quantity"],
        }
    )
    grouped = (
        frame.groupby("warehouse_id", sort=False)
        .agg(
            warehouse=("warehouse", "first"),
            total_inventory_cost=("cost", "sum"),
            product_count=("product_id", "nunique"),
            total_stock_quantity=("quantity", "sum"),
        )
        .reset_index()
    )
    grouped = grouped.sort_values("total_inventory_cost", ascending=False, kind="stable")
    grouped["warehouse_id"] = grouped["warehouse_id"].astype(object)
    grouped.loc[grouped["warehouse_id"] == _UNKNOWN_KEY, "warehouse_id"] = None
    return grouped[WAREHOUSE_COLUMNS].reset_index(drop=True)


def group_stock_by_product(stock: pd.DataFrame) -> pd.DataFrame:
    """Collapse stock rows into one row per product.

    Returns:
        DataFrame with ``PRODUCT_STOCK_COLUMNS`` in first-seen product order.
        ``warehouses`` holds a list of ``{warehouse_id, warehouse_name,
        quantity}`` dicts.

    """
    df = _product_rows(stock)
    products: dict[Any, dict[str, Any]] = {}
    for row in df.itertuples(index=False):
        entry = products.get(row.product_id)
        if entry is None:
            entry = {
                "product_id": row.product_id,
                "product_name": row.product_name,
                "product_ref": row.product_ref,
                "warehouses": [],
                "total_stock": 0.0,
            }
            products[row.product_id] = entry
        entry["warehouses"].append(
            {
                "warehouse_id": row.warehouse_id,
                "warehouse_name": row.warehouse_name,
                "quantity": float(row.quantity),
            }
        )
        entry["total_stock"] += float(row.quantity)

    return pd.DataFrame(list(products.values()), columns=PRODUCT_STOCK_COLUMNS)


def stock_status(quantity: float, low_stock_threshold: float | None = 0) -> str:
    """Classify a stock quantity.

    Examples:
        >>> stock_status(0, 10)
        'out'
        >>> stock_status(4, 10)
        'low'
        >>> stock_status(11, 10)
        'ok'

    """
    threshold = low_stock_threshold or 0
    if quantity <= 0:
        return OUT_OF_STOCK
    if quantity <= threshold:
        return LOW_STOCK
    return IN_STOCK


def with_stock_status(stock: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of the stock frame with a ``status`` column."""
    df = ensure_stock_columns(stock)
    quantity = df["quantity"]
    threshold = pd.to_numeric(df["low_stock_threshold"], errors="coerce").fillna(0.0)
    df["status"] = np.select(
        [quantity <= 0, quantity <= threshold],
        [OUT_OF_STOCK, LOW_STOCK],
        default=IN_STOCK,
    )
    return df


def _text_match(series: pd.Series, needle: str) -> pd.Series:
    text = series.astype("string").str.casefold()
    return text.str.contains(needle, regex=False).fillna(False).astype(bool)


def filter_stock(stock: pd.DataFrame, criteria: FilterCriteria | None = None) -> pd.DataFrame:
    """Filter stock rows by warehouse, category, product and text.

    The text query matches the product name or reference, case-insensitive.
    Date and branch criteria do not apply to stock and are ignored.

    """
    df = ensure_stock_columns(stock)
    if criteria is None:
        return df

    mask = pd.Series(True, index=df.index)
    for value, column in (
        (criteria.warehouse, "warehouse_id"),
        (criteria.category, "category_id"),
        (criteria.product, "product_id"),
    ):
        if value is not None:
            mask &= (df[column].astype("string") == value).fillna(False).astype(bool)

    if criteria.query is not None:
        needle = criteria.query.casefold()
        mask &= _text_match(df["product_name"], needle) | _text_match(df["product_ref"], needle)

    return df[mask]
