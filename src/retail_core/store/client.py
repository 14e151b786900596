"""HTTP client for the hosted data store.

The store exposes its tables and stored procedures through a PostgREST-style
REST interface. This module wraps it in five operations:

- ``select(table, columns, filters)`` -> list of rows
- ``insert(table, payload)`` -> created row
- ``update(table, payload, match)`` -> updated rows
- ``delete(table, match)``
- ``call(procedure, args)`` -> procedure response

Any transport or database failure surfaces as ``StoreError`` with the
server-provided message. Nothing is retried unless the configuration asks
for it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from retail_core.config import StoreConfig
from retail_core.exceptions import StoreError

logger = logging.getLogger(__name__)

FILTER_OPERATORS = frozenset({"eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is"})

Filters = Mapping[str, Any]

# Filter key holding alternatives joined with OR
OR_KEY = "or"


def make_session(config: StoreConfig) -> requests.Session:
    """Create a requests Session configured for the data store.

    Configures the session with:
    - ``apikey`` and bearer ``Authorization`` headers when a key is set
    - JSON ``Accept`` / ``Content-Type`` headers
    - Retry adapter for HTTP/HTTPS (``config.retries`` attempts, 0 by default)
    - Default timeout for all requests

    Args:
        config: StoreConfig with URL, key, timeout and retries.

    Returns:
        Configured requests.Session object.

    """
    s = requests.Session()
    s.headers.update({"Accept": "application/json", "Content-Type": "application/json"})
    if config.api_key:
        s.headers.update(
            {"apikey": config.api_key, "Authorization": f"Bearer {config.api_key}"}
        )
    retry = Retry(
        total=config.retries,
        connect=config.retries,
        read=config.retries,
        status=config.retries,
        backoff_factor=0.8,  # 0.8, 1.6, 3.2, ...
        status_forcelist=(429, 502, 503, 504),
        allowed_methods=frozenset({"GET", "HEAD", "OPTIONS"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    # Default timeouts via a wrapper
    orig_request = s.request

    def timed_request(method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", config.timeout)
        return orig_request(method, url, **kwargs)

    s.request = timed_request  # type: ignore[method-assign,assignment]
    return s


# Characters PostgREST reserves inside in.(...) and or=(...) lists
_LIST_RESERVED = frozenset(',.:()"\\')


def _encode_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_list_value(value: Any) -> str:
    """Encode a value inside a list, double-quoting it when needed."""
    text = _encode_value(value)
    if any(ch in _LIST_RESERVED or ch.isspace() for ch in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def _conditions(spec: Any) -> list[tuple[str, Any]]:
    if isinstance(spec, tuple):
        return [spec]
    if isinstance(spec, list) and spec and all(isinstance(c, tuple) for c in spec):
        return list(spec)
    if spec is None:
        return [("is", None)]
    return [("eq", spec)]


def build_filter_params(filters: Filters | None) -> list[tuple[str, str]]:
    """Translate a filter mapping into PostgREST query parameters.

    Each key is a column. A plain value means equality; an ``(operator, value)``
    tuple selects another operator, and a list of such tuples applies several
    conditions to the same column. ``None`` compares with ``is.null``.

    The special key ``"or"`` takes a list of ``(column, operator, value)``
    triples, any of which may match. Values inside ``in`` and ``or`` lists
    are double-quoted when they contain reserved characters.

    Raises:
        ValueError: If an operator is not supported.

    Examples:
        >>> build_filter_params({"branch_id": "b1"})
        [('branch_id', 'eq.b1')]
        >>> build_filter_params({"sale_date": [("gte", "2025-01-01"), ("lte", "2025-01-31")]})
        [('sale_date', 'gte.2025-01-01'), ('sale_date', 'lte.2025-01-31')]
        >>> build_filter_params({"id": ("in", ["a", "b,c"])})
        [('id', 'in.(a,"b,c")')]
        >>> build_filter_params({"or": [("customer_name", "ilike", "*ann*"), ("id", "eq", "s1")]})
        [('or', '(customer_name.ilike.*ann*,id.eq.s1)')]

    """
    params: list[tuple[str, str]] = []
    for column, spec in (filters or {}).items():
        if column == OR_KEY:
            params.append((OR_KEY, _encode_or(spec)))
            continue
        for op, value in _conditions(spec):
            _check_operator(op, column)
            if op == "in":
                encoded = "(" + ",".join(_encode_list_value(v) for v in value) + ")"
            else:
                encoded = _encode_value(value)
            params.append((column, f"{op}.{encoded}"))
    return params


def _check_operator(op: str, column: str) -> None:
    if op not in FILTER_OPERATORS:
        raise ValueError(f"Unsupported filter operator '{op}' for column '{column}'")


def _encode_or(conditions: Any) -> str:
    parts = []
    for column, op, value in conditions:
        _check_operator(op, column)
        if op == "in":
            encoded = "(" + ",".join(_encode_list_value(v) for v in value) + ")"
        else:
            encoded = _encode_list_value(value)
        parts.append(f"{column}.{op}.{encoded}")
    return "(" + ",".join(parts) + ")"


def _error_message(resp: requests.Response) -> tuple[str, Any]:
    """Extract the store's error message and body from a failed response."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or body.get("msg")
        if message:
            return str(message), body
    return f"HTTP {resp.status_code}: {resp.text[:400]}", body


def _parse_total(content_range: str | None) -> int | None:
    """Parse the total from a ``Content-Range: 0-9/123`` header."""
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class StoreClient:
    """Generic select/insert/update/delete/call access to the data store.

    Example:
        >>> from retail_core import StoreConfig
        >>> from retail_core.store import StoreClient
        >>>
        >>> client = StoreClient(StoreConfig.from_env())
        >>> rows = client.select("branches", "id, name")
        >>> client.call("process_stock_audit", {"p_audit_id": "..."})

    """

    def __init__(self, config: StoreConfig, session: requests.Session | None = None) -> None:
        """Initialize the client.

        Args:
            config: StoreConfig describing the store.
            session: Optional pre-built session (tests inject fakes here).
                Defaults to ``make_session(config)``.

        """
        self.config = config
        self.session = session if session is not None else make_session(config)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Filters | None = None,
        order: str | None = None,
        range_: tuple[int, int] | None = None,
    ) -> list[dict[str, Any]]:
        """Read rows from a table.

        Args:
            table: Table or view name.
            columns: PostgREST select expression, embedded joins allowed,
                e.g. ``"id, total_amount, branches(id, name)"``.
            filters: Column filters, see ``build_filter_params``.
            order: ``"column"`` or ``"column.desc"``.
            range_: Inclusive ``(start, end)`` row window.

        Returns:
            List of row dictionaries.

        """
        rows, _ = self._select(table, columns, filters, order, range_, count=False)
        return rows

    def select_page(
        self,
        table: str,
        columns: str = "*",
        filters: Filters | None = None,
        order: str | None = None,
        range_: tuple[int, int] | None = None,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Like ``select`` but also returns the exact total row count.

        Returns:
            Tuple of (rows, total). Total is None if the store did not report it.

        """
        return self._select(table, columns, filters, order, range_, count=True)

    def insert(self, table: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        resp = self._request(
            "POST",
            table,
            json=dict(payload),
            headers={"Prefer": "return=representation"},
        )
        rows = self._json(resp)
        if isinstance(rows, list):
            return rows[0] if rows else {}
        return rows or {}

    def update(
        self,
        table: str,
        payload: Mapping[str, Any],
        match: Filters,
    ) -> list[dict[str, Any]]:
        """Update the rows matching ``match`` and return them.

        Raises:
            ValueError: If ``match`` is empty.

        """
        if not match:
            raise ValueError("update() requires a non-empty match")
        resp = self._request(
            "PATCH",
            table,
            params=build_filter_params(match),
            json=dict(payload),
            headers={"Prefer": "return=representation"},
        )
        return self._json(resp) or []

    def delete(self, table: str, match: Filters) -> None:
        """Delete the rows matching ``match``.

        Raises:
            ValueError: If ``match`` is empty.

        """
        if not match:
            raise ValueError("delete() requires a non-empty match")
        self._request("DELETE", table, params=build_filter_params(match))

    def call(self, procedure: str, args: Mapping[str, Any] | None = None) -> Any:
        """Invoke a stored procedure and return its decoded response."""
        logger.info("Calling procedure %s", procedure)
        resp = self._request("POST", f"rpc/{procedure}", json=dict(args or {}))
        return self._json(resp)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _select(
        self,
        table: str,
        columns: str,
        filters: Filters | None,
        order: str | None,
        range_: tuple[int, int] | None,
        count: bool,
    ) -> tuple[list[dict[str, Any]], int | None]:
        params = [("select", "".join(columns.split()))]
        params.extend(build_filter_params(filters))
        if order:
            params.append(("order", order))

        headers: dict[str, str] = {}
        if range_ is not None:
            start, end = range_
            if start < 0 or end < start:
                raise ValueError(f"Invalid row range {range_}")
            headers["Range-Unit"] = "items"
            headers["Range"] = f"{start}-{end}"
        if count:
            headers["Prefer"] = "count=exact"

        resp = self._request("GET", table, params=params, headers=headers)
        rows = self._json(resp) or []
        total = _parse_total(resp.headers.get("Content-Range")) if count else None
        logger.debug("Selected %d row(s) from %s", len(rows), table)
        return rows, total

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.config.base_url}/{path}"
        headers = dict(kwargs.pop("headers", None) or {})
        if self.config.schema:
            profile = "Accept-Profile" if method == "GET" else "Content-Profile"
            headers[profile] = self.config.schema

        logger.debug("%s %s params=%s", method, url, kwargs.get("params"))
        try:
            resp = self.session.request(method, url, headers=headers, **kwargs)
        except requests.RequestException as e:
            raise StoreError(f"Data store request failed: {e}") from e

        if not (200 <= resp.status_code < 300):
            message, body = _error_message(resp)
            logger.error("%s %s failed (HTTP %s): %s", method, path, resp.status_code, message)
            raise StoreError(message, status_code=resp.status_code, details=body)
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"Data store returned invalid JSON: {e}", resp.status_code) from e
