"""Shared fixtures and fakes.

No test talks to a real data store: HTTP-level tests use ``FakeSession``,
higher-level tests use ``FakeStoreClient`` which serves rows from memory.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import pandas as pd
import pytest

from retail_core.branches import BranchRegistry
from retail_core.config import StoreConfig


class FakeResponse:
    """Just enough of ``requests.Response`` for the store client."""

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        headers: dict[str, str] | None = None,
        text: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        if text is not None:
            self.text = text
        elif payload is not None:
            self.text = json.dumps(payload)
        else:
            self.text = ""
        self.content = self.text.encode()

    def json(self) -> Any:
        return json.loads(self.text)


class FakeSession:
    """Records every request and answers from a queue (or a handler)."""

    def __init__(
        self,
        responses: list[Any] | None = None,
        handler: Callable[..., FakeResponse] | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.handler = handler
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.handler is not None:
            return self.handler(method, url, **kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeStoreClient:
    """In-memory stand-in for ``StoreClient``.

    ``tables`` maps table name to rows; ``procedures`` maps procedure name to
    the response returned by ``call``. Filters are recorded, not applied.
    """

    def __init__(
        self,
        tables: dict[str, list[dict[str, Any]]] | None = None,
        procedures: dict[str, Any] | None = None,
    ) -> None:
        self.tables = tables or {}
        self.procedures = procedures or {}
        self.selects: list[dict[str, Any]] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Any = None,
        order: str | None = None,
        range_: tuple[int, int] | None = None,
    ) -> list[dict[str, Any]]:
        self.selects.append(
            {"table": table, "columns": columns, "filters": filters, "order": order, "range": range_}
        )
        rows = list(self.tables.get(table, []))
        if range_ is not None:
            rows = rows[range_[0] : range_[1] + 1]
        return rows

    def select_page(
        self,
        table: str,
        columns: str = "*",
        filters: Any = None,
        order: str | None = None,
        range_: tuple[int, int] | None = None,
    ) -> tuple[list[dict[str, Any]], int | None]:
        rows = self.select(table, columns, filters, order, range_)
        return rows, len(self.tables.get(table, []))

    def call(self, procedure: str, args: dict[str, Any] | None = None) -> Any:
        self.calls.append((procedure, dict(args or {})))
        return self.procedures.get(procedure)


@pytest.fixture
def store_config() -> StoreConfig:
    return StoreConfig.from_url("https://store.test/rest/v1", api_key="secret")


@pytest.fixture
def fake_session_factory() -> type[FakeSession]:
    return FakeSession


@pytest.fixture
def fake_response() -> type[FakeResponse]:
    return FakeResponse


@pytest.fixture
def fake_store_factory() -> type[FakeStoreClient]:
    return FakeStoreClient


@pytest.fixture
def registry() -> BranchRegistry:
    return BranchRegistry(
        [
            {"id": "b1", "name": "Downtown"},
            {"id": "b2", "name": "Airport"},
            {"id": "b3", "name": "Harbor"},
        ]
    )


@pytest.fixture
def transactions() -> pd.DataFrame:
    """Six sales across two branches, one without a branch and one with a bad date."""
    return pd.DataFrame(
        {
            "kind": ["sales"] * 6,
            "id": ["s1", "s2", "s3", "s4", "s5", "s6"],
            "date": [
                "2025-01-06T10:00:00Z",
                "2025-01-06T18:30:00Z",
                "2025-01-13T09:00:00+00:00",
                "2025-02-01",
                "not-a-date",
                "2025-02-03T23:30:00-02:00",
            ],
            "amount": [100.0, 50.0, 25.0, 80.0, 10.0, 40.0],
            "branch_id": ["b1", "b2", "b1", None, "b2", "b1"],
            "branch_name": ["Downtown", "Airport", "Downtown", None, "Airport", "Downtown"],
            "user_id": ["u1", "u2", "u1", "u1", "u2", "u3"],
            "reference": ["TX-001", "TX-002", "TX-003", "TX-004", "TX-005", "TX-006"],
            "description": ["Alice", "Bob", "alice cooper", None, "Carol", "Dave"],
            "cogs": [60.0, 20.0, 10.0, 30.0, 5.0, 15.0],
            "product_ids": [["p1", "p2"], ["p2"], ["p3"], [], None, ["p1"]],
        }
    )


def _branch(branch_id: str | None) -> dict[str, Any] | None:
    names = {"b1": "Downtown", "b2": "Airport"}
    return {"id": branch_id, "name": names[branch_id]} if branch_id else None


@pytest.fixture
def store_tables() -> dict[str, list[dict[str, Any]]]:
    return {
        "branches": [{"id": "b1", "name": "Downtown"}, {"id": "b2", "name": "Airport"}],
        "sales": [
            {
                "id": "s1",
                "sale_date": "2025-01-06T10:00:00Z",
                "total_amount": 100,
                "branch_id": "b1",
                "cashier_id": "u1",
                "transaction_reference": "TX-1",
                "customer_name": "Alice",
                "branches": _branch("b1"),
                "sale_items": [
                    {"product_id": "p1", "quantity": 2, "products": {"purchase_price": 20}}
                ],
            },
            {
                "id": "s2",
                "sale_date": "2025-01-07T12:00:00Z",
                "total_amount": 60,
                "branch_id": "b2",
                "cashier_id": "u2",
                "transaction_reference": "TX-2",
                "customer_name": "Bob",
                "branches": _branch("b2"),
                "sale_items": [
                    {"product_id": "p2", "quantity": 1, "products": {"purchase_price": 25}}
                ],
            },
            {
                "id": "s3",
                "sale_date": "2025-02-10T09:00:00Z",
                "total_amount": "30.5",
                "branch_id": "b1",
                "cashier_id": "u1",
                "transaction_reference": "TX-3",
                "customer_name": None,
                "branches": _branch("b1"),
                "sale_items": [],
            },
        ],
        "external_sales": [
            {
                "id": "e1",
                "sale_date": "2025-01-06T15:00:00Z",
                "total_amount": 50,
                "total_cost": 20,
                "branch_id": "b2",
                "transaction_reference": "EXT-1",
                "customer_name": "Wholesale Co",
                "branches": _branch("b2"),
            }
        ],
        "purchases": [
            {
                "id": "pu1",
                "purchase_date": "2025-01-05",
                "total_cost": 200,
                "branch_id": "b1",
                "warehouse_id": "w1",
                "registered_by_user_id": "u1",
                "branches": _branch("b1"),
                "warehouses": {"id": "w1", "name": "Main"},
                "purchase_items": [
                    {"product_id": "p1", "quantity": 10, "unit_purchase_price": 20, "total_cost": 200}
                ],
            }
        ],
        "expenses": [
            {
                "id": "x1",
                "date": "2025-01-08",
                "amount": 15,
                "branch_id": "b1",
                "expense_category_id": "c1",
                "recorded_by_user_id": "u1",
                "description": "Cleaning",
                "branches": _branch("b1"),
            },
            {
                "id": "x2",
                "date": "2025-01-09",
                "amount": 5,
                "branch_id": None,
                "expense_category_id": "c2",
                "recorded_by_user_id": "u2",
                "description": "Stamps",
                "branches": None,
            },
        ],
        "stock": [
            {
                "product_id": "p1",
                "quantity": 8,
                "warehouse_id": "w1",
                "products": {
                    "id": "p1",
                    "name": "Coffee",
                    "unique_reference": "C-1",
                    "category_id": "c1",
                    "purchase_price": 20,
                    "low_stock_threshold": 5,
                },
                "warehouses": {"id": "w1", "name": "Main"},
            },
            {
                "product_id": "p2",
                "quantity": 3,
                "warehouse_id": "w2",
                "products": {
                    "id": "p2",
                    "name": "Tea",
                    "unique_reference": "T-1",
                    "category_id": "c2",
                    "purchase_price": 25,
                    "low_stock_threshold": 5,
                },
                "warehouses": {"id": "w2", "name": "Backroom"},
            },
        ],
    }


@pytest.fixture
def client(fake_store_factory: Any, store_tables: dict[str, list[dict[str, Any]]]) -> Any:
    return fake_store_factory(store_tables)

