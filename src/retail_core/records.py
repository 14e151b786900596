"""Normalization of data store rows into flat record DataFrames.

The store returns rows with embedded joins (``branches(id, name)``,
``sale_items(quantity, products(purchase_price))`` ...). Reports work on a
single flat shape instead:

- **Transactions** (sales, external sales, purchases, expenses): one row per
  transaction with the columns in ``TRANSACTION_COLUMNS``.
- **Stock**: one row per product x warehouse with the columns in
  ``STOCK_COLUMNS``.

Malformed values are tolerated here: amounts that are missing or not
numeric become 0 (and are logged), dates are kept verbatim and only parsed
by the aggregator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

import pandas as pd

from retail_core.exceptions import DataQualityError

logger = logging.getLogger(__name__)

TRANSACTION_COLUMNS = [
    "kind",
    "id",
    "date",
    "amount",
    "branch_id",
    "branch_name",
    "user_id",
    "category_id",
    "warehouse_id",
    "reference",
    "description",
    "cogs",
    "product_ids",
    "status",
]

REQUIRED_TRANSACTION_COLUMNS = ["date", "amount"]

# Id columns held as text so integer keys compare equal to their query values
ID_COLUMNS = ["id", "branch_id", "user_id", "category_id", "warehouse_id"]

STOCK_ID_COLUMNS = ["product_id", "category_id", "warehouse_id"]

STOCK_COLUMNS = [
    "product_id",
    "product_name",
    "product_ref",
    "category_id",
    "warehouse_id",
    "warehouse_name",
    "quantity",
    "purchase_price",
    "low_stock_threshold",
    "has_product",
]

Row = Mapping[str, Any]


@dataclass(frozen=True)
class TableSpec:
    """Where and how a transaction kind is stored.

    Attributes:
        table: Table name in the data store.
        date_column: Column holding the transaction date.
        columns: Select expression including the joins the reports need.
    """

    table: str
    date_column: str
    columns: str


TRANSACTION_SOURCES: dict[str, TableSpec] = {
    "sales": TableSpec(
        table="sales",
        date_column="sale_date",
        columns="""
            id, sale_date, total_amount, branch_id, cashier_id, status,
            transaction_reference, customer_name, payment_method,
            branches(id, name),
            sale_items(product_id, quantity, products(purchase_price))
        """,
    ),
    "external_sales": TableSpec(
        table="external_sales",
        date_column="sale_date",
        columns="""
            id, sale_date, total_amount, total_cost, branch_id, transaction_reference,
            customer_name, branches(id, name), external_sale_items(total_cost)
        """,
    ),
    "purchases": TableSpec(
        table="purchases",
        date_column="purchase_date",
        columns="""
            id, purchase_date, total_cost, branch_id, warehouse_id, registered_by_user_id,
            branches(id, name), warehouses(id, name),
            purchase_items(product_id, quantity, unit_purchase_price, total_cost)
        """,
    ),
    "expenses": TableSpec(
        table="expenses",
        date_column="date",
        columns="""
            id, date, amount, branch_id, expense_category_id, recorded_by_user_id,
            description, vendor_notes, branches(id, name), expense_categories(id, name)
        """,
    ),
}

STOCK_SELECT = """
    product_id, quantity, warehouse_id,
    products(id, name, unique_reference, category_id, purchase_price, low_stock_threshold),
    warehouses(id, name)
"""


def _nested(row: Row, key: str) -> Mapping[str, Any]:
    value = row.get(key)
    return value if isinstance(value, Mapping) else {}


def _items(row: Row, key: str) -> list[Mapping[str, Any]]:
    value = row.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _num(value: Any) -> float:
    """Numeric value of a field, 0.0 if missing or not a number."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if pd.isna(result) else result


def _ref_id(value: Any) -> Any:
    """Foreign keys sometimes come back expanded as ``{"id": ..., ...}``."""
    if isinstance(value, Mapping):
        return value.get("id")
    return value


def _id_text(value: Any) -> str | None:
    """Id as text; ``1``, ``1.0`` and ``"1"`` all become ``"1"``."""
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_ids(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """Convert id columns in place to text, missing ids to None.

    A column of integer ids with a gap comes out of pandas as float64
    (``1.0``); this undoes that so ids match branch registries and filters.
    """
    for col in columns:
        if col in df.columns:
            df[col] = df[col].map(_id_text).astype(object)
    return df


def _sale(row: Row) -> dict[str, Any]:
    items = _items(row, "sale_items")
    cogs = sum(
        _num(item.get("quantity")) * _num(_nested(item, "products").get("purchase_price"))
        for item in items
    )
    return {
        "id": row.get("id"),
        "date": row.get("sale_date"),
        "amount": row.get("total_amount"),
        "branch_id": row.get("branch_id"),
        "branch_name": _nested(row, "branches").get("name"),
        "user_id": _ref_id(row.get("cashier_id")),
        "reference": row.get("transaction_reference"),
        "description": row.get("customer_name"),
        "cogs": cogs,
        "product_ids": [item.get("product_id") for item in items if item.get("product_id")],
        "status": row.get("status"),
    }


def _external_sale(row: Row) -> dict[str, Any]:
    if row.get("total_cost") is not None:
        cogs = _num(row.get("total_cost"))
    else:
        cogs = sum(_num(item.get("total_cost")) for item in _items(row, "external_sale_items"))
    return {
        "id": row.get("id"),
        "date": row.get("sale_date"),
        "amount": row.get("total_amount"),
        "branch_id": row.get("branch_id"),
        "branch_name": _nested(row, "branches").get("name"),
        "reference": row.get("transaction_reference"),
        "description": row.get("customer_name"),
        "cogs": cogs,
    }


def _purchase(row: Row) -> dict[str, Any]:
    items = _items(row, "purchase_items")
    return {
        "id": row.get("id"),
        "date": row.get("purchase_date"),
        "amount": row.get("total_cost"),
        "branch_id": row.get("branch_id"),
        "branch_name": _nested(row, "branches").get("name"),
        "user_id": _ref_id(row.get("registered_by_user_id")),
        "warehouse_id": row.get("warehouse_id"),
        "reference": row.get("id"),
        "description": _nested(row, "warehouses").get("name"),
        "product_ids": [item.get("product_id") for item in items if item.get("product_id")],
    }


def _expense(row: Row) -> dict[str, Any]:
    return {
        "id": row.get("id"),
        "date": row.get("date"),
        "amount": row.get("amount"),
        "branch_id": row.get("branch_id"),
        "branch_name": _nested(row, "branches").get("name"),
        "user_id": _ref_id(row.get("recorded_by_user_id")),
        "category_id": row.get("expense_category_id"),
        "reference": row.get("vendor_notes"),
        "description": row.get("description"),
    }


_NORMALIZERS: dict[str, Callable[[Row], dict[str, Any]]] = {
    "sales": _sale,
    "external_sales": _external_sale,
    "purchases": _purchase,
    "expenses": _expense,
}


def coerce_amounts(df: pd.DataFrame, column: str = "amount") -> pd.DataFrame:
    """Force a money column to floats, replacing unusable values with 0.

    Returns:
        The same DataFrame with ``column`` converted in place.

    """
    numeric = pd.to_numeric(df[column], errors="coerce")
    bad = numeric.isna()
    if bad.any():
        logger.warning(
            "%d record(s) with missing or non-numeric %s treated as 0", int(bad.sum()), column
        )
    df[column] = numeric.fillna(0.0).astype(float)
    return df


def normalize_transactions(rows: Iterable[Row], kind: str) -> pd.DataFrame:
    """Flatten store rows of one transaction kind into the canonical shape.

    Args:
        rows: Rows as returned by ``StoreClient.select`` for the kind's table.
        kind: "sales", "external_sales", "purchases" or "expenses".

    Returns:
        DataFrame with ``TRANSACTION_COLUMNS``.

    Raises:
        DataQualityError: If kind is unknown.

    """
    if kind not in _NORMALIZERS:
        raise DataQualityError(
            f"Unknown transaction kind '{kind}'. Must be one of {sorted(_NORMALIZERS)}."
        )
    normalize = _NORMALIZERS[kind]
    records = []
    for row in rows:
        record = dict.fromkeys(TRANSACTION_COLUMNS)
        record.update(normalize(row))
        for col in ID_COLUMNS:
            record[col] = _id_text(record[col])
        record["kind"] = kind
        record["cogs"] = record["cogs"] or 0.0
        record["product_ids"] = record["product_ids"] or []
        records.append(record)

    df = pd.DataFrame(records, columns=TRANSACTION_COLUMNS)
    df["cogs"] = df["cogs"].astype(float)
    return coerce_amounts(df)


def ensure_transaction_columns(records: pd.DataFrame) -> pd.DataFrame:
    """Validate a transactions frame and fill in optional columns.

    Callers may pass frames that only carry ``date`` and ``amount``; every
    other canonical column is added as missing.

    Returns:
        A copy of ``records`` with every column in ``TRANSACTION_COLUMNS``.

    Raises:
        DataQualityError: If ``date`` or ``amount`` is missing.

    """
    missing = [col for col in REQUIRED_TRANSACTION_COLUMNS if col not in records.columns]
    if missing:
        raise DataQualityError(
            f"Missing required columns in records: {missing}. "
            f"Required: {REQUIRED_TRANSACTION_COLUMNS}"
        )
    df = records.copy()
    for col in TRANSACTION_COLUMNS:
        if col not in df.columns:
            df[col] = 0.0 if col == "cogs" else None
    normalize_ids(df, ID_COLUMNS)
    return coerce_amounts(df)


def normalize_stock(rows: Iterable[Row]) -> pd.DataFrame:
    """Flatten stock rows (product x warehouse) into ``STOCK_COLUMNS``."""
    records = []
    for row in rows:
        product = _nested(row, "products")
        warehouse = _nested(row, "warehouses")
        records.append(
            {
                "product_id": row.get("product_id") or product.get("id"),
                "product_name": product.get("name"),
                "product_ref": product.get("unique_reference"),
                "category_id": product.get("category_id"),
                "warehouse_id": row.get("warehouse_id") or warehouse.get("id"),
                "warehouse_name": warehouse.get("name"),
                "quantity": _num(row.get("quantity")),
                "purchase_price": _num(product.get("purchase_price")),
                "low_stock_threshold": _num(product.get("low_stock_threshold")),
                "has_product": bool(product),
            }
        )
    return normalize_ids(pd.DataFrame(records, columns=STOCK_COLUMNS), STOCK_ID_COLUMNS)


def ensure_stock_columns(stock: pd.DataFrame) -> pd.DataFrame:
    """Validate a stock frame and fill in optional columns.

    Raises:
        DataQualityError: If ``product_id`` or ``quantity`` is missing.

    """
    missing = [col for col in ("product_id", "quantity") if col not in stock.columns]
    if missing:
        raise DataQualityError(f"Missing required columns in stock: {missing}")
    df = stock.copy()
    for col in STOCK_COLUMNS:
        if col not in df.columns:
            if col == "has_product":
                df[col] = df["product_id"].notna()
            elif col in ("purchase_price", "low_stock_threshold"):
                df[col] = 0.0
            else:
                df[col] = None
    normalize_ids(df, STOCK_ID_COLUMNS)
    df["quantity"] = pd.to_numeric(df["quantity"], errors="coerce").fillna(0.0)
    df["purchase_price"] = pd.to_numeric(df["purchase_price"], errors="coerce").fillna(0.0)
    return df
