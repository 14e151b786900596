"""Retail Core - reporting and operations for a multi-branch retail dashboard.

This package provides the read side of a retail/inventory dashboard whose
records live in a hosted relational data store:

- **Store**: generic select/insert/update/delete/call client
- **Reports**: filter, summarize and group transactions; financial and
  inventory summaries
- **Operations**: validated purchase recording and stock-audit processing

Module Structure:
    retail_core.store: Data store HTTP client
    retail_core.records: Normalization of store rows into DataFrames
    retail_core.reports: Aggregator, finance, inventory and report API
    retail_core.operations: Stored-procedure backed business operations
    retail_core.view_state: URL query-string list state
    retail_core.fetch: Stale-response guard
    retail_core.branches: Branch registry for name resolution

Quick Start:
    >>> from retail_core import StoreConfig
    >>> from retail_core.store import StoreClient
    >>> from retail_core.reports import get_report
    >>> from retail_core.view_state import ListViewState
    >>>
    >>> client = StoreClient(StoreConfig.from_env())
    >>> state = ListViewState.from_query("dateFrom=2025-01-01&dateTo=2025-01-31&branch=all")
    >>>
    >>> # Sales per branch, highest first
    >>> result = get_report(client, "sales", state, grain="branch")
    >>> print(result.summary.total)
    >>> print(result.grouped)
"""

__version__ = "0.1.0"

from retail_core.config import StoreConfig
from retail_core.exceptions import (
    ConfigError,
    DataQualityError,
    ProcedureError,
    RetailAPIError,
    StoreError,
    ValidationError,
)

__all__ = [
    "ConfigError",
    "DataQualityError",
    "ProcedureError",
    "RetailAPIError",
    "StoreConfig",
    "StoreError",
    "ValidationError",
    "__version__",
]
