"""List-view filter and pagination state carried in URL query strings.

The dashboard lists persist their state in the query string
(``?page=2&limit=25&branch=b1&dateFrom=2025-01-01``): it is read on page
load and rewritten on every change. ``ListViewState`` is that state as an
immutable value:

- parsing is tolerant: bad numbers fall back to defaults, ``"all"`` and
  empty values mean "no filter", invalid dates are dropped;
- serialization is minimal and stable: defaults are omitted and keys
  always come out in the same order, so
  ``ListViewState.from_query(state.to_query()) == state``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Mapping
from urllib.parse import parse_qsl, urlencode

from retail_core.reports.criteria import ALL, FilterCriteria
from retail_core.utils import coerce_date

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

# attribute -> query parameter, in serialization order
QUERY_PARAMS = {
    "page": "page",
    "limit": "limit",
    "query": "query",
    "category": "category",
    "branch": "branch",
    "user": "user",
    "date_from": "dateFrom",
    "date_to": "dateTo",
}

FILTER_FIELDS = ("query", "category", "branch", "user", "date_from", "date_to")


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == ALL:
        return None
    return text


def _date_param(name: str, value: Any) -> date | None:
    if value is None or str(value).strip() == "":
        return None
    parsed = coerce_date(value)
    if parsed is None:
        logger.warning("Ignoring invalid %s value %r", name, value)
    return parsed


@dataclass(frozen=True)
class ListViewState:
    """Filter and pagination state of a list view.

    Attributes:
        page: 1-based page number.
        limit: Rows per page.
        query: Free-text search.
        category: Category id filter.
        branch: Branch id filter.
        user: User id filter.
        date_from: Inclusive start day.
        date_to: Inclusive end day.
    """

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    query: str | None = None
    category: str | None = None
    branch: str | None = None
    user: str | None = None
    date_from: date | None = None
    date_to: date | None = None

    def __post_init__(self) -> None:
        # page and limit below 1 fall back to the defaults, as in from_query
        object.__setattr__(self, "page", _positive_int(self.page, DEFAULT_PAGE))
        object.__setattr__(self, "limit", _positive_int(self.limit, DEFAULT_LIMIT))

    @classmethod
    def from_query(cls, query: str | Mapping[str, Any] | None) -> ListViewState:
        """Parse a query string (``"page=2&branch=b1"``, leading ``?`` allowed)
        or a mapping of parameters.

        Unknown parameters are ignored. For repeated parameters the last
        value wins.

        Examples:
            >>> ListViewState.from_query("?page=0&limit=abc&branch=all")
            ListViewState(page=1, limit=10, query=None, category=None, branch=None, user=None, date_from=None, date_to=None)

        """
        if query is None:
            params: dict[str, Any] = {}
        elif isinstance(query, str):
            params = dict(parse_qsl(query.lstrip("?"), keep_blank_values=True))
        else:
            params = {
                key: value[-1] if isinstance(value, (list, tuple)) and value else value
                for key, value in query.items()
            }

        return cls(
            page=_positive_int(params.get("page"), DEFAULT_PAGE),
            limit=_positive_int(params.get("limit"), DEFAULT_LIMIT),
            query=_text(params.get("query")),
            category=_text(params.get("category")),
            branch=_text(params.get("branch")),
            user=_text(params.get("user")),
            date_from=_date_param("dateFrom", params.get("dateFrom")),
            date_to=_date_param("dateTo", params.get("dateTo")),
        )

    def to_params(self) -> list[tuple[str, str]]:
        """Non-default parameters in a fixed order."""
        params = []
        for attr, name in QUERY_PARAMS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if attr == "page" and value == DEFAULT_PAGE:
                continue
            if attr == "limit" and value == DEFAULT_LIMIT:
                continue
            params.append((name, value.isoformat() if isinstance(value, date) else str(value)))
        return params

    def to_query(self) -> str:
        """Serialize to a query string without the leading ``?``.

        Examples:
            >>> ListViewState(page=3, branch="b1").to_query()
            'page=3&branch=b1'

        """
        return urlencode(self.to_params())

    def with_changes(self, **changes: Any) -> ListViewState:
        """Return a new state with ``changes`` applied.

        Changing a filter or the page size goes back to the first page
        unless ``page`` is given explicitly. A page or limit below 1 falls
        back to its default.

        Raises:
            TypeError: If a change names an unknown attribute.

        """
        new = replace(self, **changes)
        if "page" in changes:
            return new
        if any(getattr(new, f) != getattr(self, f) for f in (*FILTER_FIELDS, "limit")):
            new = replace(new, page=DEFAULT_PAGE)
        return new

    @property
    def offset(self) -> int:
        """Index of the first row of the current page."""
        return (self.page - 1) * self.limit

    @property
    def row_range(self) -> tuple[int, int]:
        """Inclusive ``(start, end)`` row window of the current page."""
        return self.offset, self.offset + self.limit - 1

    def total_pages(self, total_items: int) -> int:
        """Number of pages needed for ``total_items`` rows (at least 1)."""
        if total_items <= 0:
            return 1
        return math.ceil(total_items / self.limit)

    def criteria(self) -> FilterCriteria:
        """Filter criteria equivalent to this state."""
        return FilterCriteria(
            date_from=self.date_from,
            date_to=self.date_to,
            branch=self.branch,
            category=self.category,
            user=self.user,
            query=self.query,
        )
