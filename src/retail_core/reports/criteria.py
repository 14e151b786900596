"""Filter criteria for the report aggregator."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Any

from retail_core.utils import coerce_date

# Select-box value meaning "no restriction"
ALL = "all"

DEFAULT_TEXT_FIELDS = ("reference", "description", "branch_name")

_ID_FIELDS = ("branch", "category", "user", "warehouse", "product", "status")


def _clean_id(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == ALL:
        return None
    return text


def _clean_date(name: str, value: Any) -> date | None:
    if value is None or value == "":
        return None
    parsed = coerce_date(value)
    if parsed is None:
        raise ValueError(f"Invalid {name}: {value!r}")
    return parsed


@dataclass(frozen=True)
class FilterCriteria:
    """Client-selected filters applied to a set of records.

    Every supplied criterion must hold for a record to pass; ``None`` (or the
    select-box value ``"all"``) matches everything.

    Attributes:
        date_from: Inclusive start day. Strings and datetimes are converted.
        date_to: Inclusive end day. A range with ``date_from > date_to``
            matches nothing.
        branch: Branch id.
        category: Category id (expense category for expenses, product
            category for stock).
        user: Cashier / registering / recording user id.
        warehouse: Warehouse id.
        product: Product id, matched against a record's line items.
        status: Sale status ("completed", "held", "cancelled"); only sales
            carry one.
        query: Case-insensitive substring searched in ``text_fields``.
        text_fields: Columns searched by ``query``.
    """

    date_from: date | None = None
    date_to: date | None = None
    branch: str | None = None
    category: str | None = None
    user: str | None = None
    warehouse: str | None = None
    product: str | None = None
    status: str | None = None
    query: str | None = None
    text_fields: tuple[str, ...] = DEFAULT_TEXT_FIELDS

    def __post_init__(self) -> None:
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "date_from", _clean_date("date_from", self.date_from))
        object.__setattr__(self, "date_to", _clean_date("date_to", self.date_to))
        for name in _ID_FIELDS:
            object.__setattr__(self, name, _clean_id(getattr(self, name)))
        query = (self.query or "").strip()
        object.__setattr__(self, "query", query or None)
        object.__setattr__(self, "text_fields", tuple(self.text_fields))

    @property
    def has_date_range(self) -> bool:
        return self.date_from is not None or self.date_to is not None

    @property
    def is_inverted(self) -> bool:
        """True when both bounds are set and the start is after the end."""
        return (
            self.date_from is not None
            and self.date_to is not None
            and self.date_from > self.date_to
        )

    def is_empty(self) -> bool:
        """True when no criterion restricts anything."""
        return all(
            getattr(self, f.name) is None for f in fields(self) if f.name != "text_fields"
        )
