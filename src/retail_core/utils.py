"""Shared utilities for Retail Core.

This module provides date parsing and time-bucket labelling helpers used by
the report aggregator, the view state and the command-line tool.

Examples:
    >>> from retail_core.utils import bucket_label, parse_date
    >>> bucket_label(parse_date("2025-01-05"), "week")
    '2025-01'

"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pandas as pd

BUCKET_SIZES = ("day", "week", "month")


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date string is not in YYYY-MM-DD format.

    Examples:
        >>> parse_date("2023-01-15")
        datetime.date(2023, 1, 15)

    """
    return datetime.strptime(s, "%Y-%m-%d").date()


def coerce_date(value: Any) -> date | None:
    """Convert a date-like value to a calendar date, or None if it is invalid.

    Accepts ``date``/``datetime`` objects, pandas Timestamps and ISO 8601
    strings with or without a time part. Timezone-aware values are
    converted to UTC before the calendar day is taken.

    Examples:
        >>> coerce_date("2025-01-20T23:30:00-02:00")
        datetime.date(2025, 1, 21)
        >>> coerce_date("not a date") is None
        True

    """
    if isinstance(value, datetime):
        ts = pd.Timestamp(value)
    elif isinstance(value, date):
        return value
    elif isinstance(value, str) and value.strip():
        ts = pd.to_datetime(value.strip(), errors="coerce", utc=True, format="ISO8601")
    else:
        return None
    if ts is pd.NaT or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return ts.date()


def to_utc_days(values: pd.Series) -> pd.Series:
    """Parse a Series of ISO 8601 date strings into UTC calendar days.

    Unparsable values become NaT instead of raising.

    Returns:
        Series of ``datetime64[ns]`` values normalized to midnight.

    """
    parsed = pd.to_datetime(values, errors="coerce", utc=True, format="ISO8601")
    return parsed.dt.tz_localize(None).dt.normalize()


def bucket_label(d: date, bucket: str) -> str:
    """Return the time-bucket label for a calendar date.

    Labels sort lexicographically in chronological order:

    - day: ``YYYY-MM-DD``
    - week: ``YYYY-ww`` using the ISO year and ISO week number
    - month: ``YYYY-MM``

    Raises:
        ValueError: If bucket is not "day", "week" or "month".

    Examples:
        >>> bucket_label(date(2024, 12, 30), "week")
        '2025-01'

    """
    if bucket == "day":
        return d.strftime("%Y-%m-%d")
    if bucket == "week":
        iso_year, iso_week, _ = d.isocalendar()
        return f"{iso_year:04d}-{iso_week:02d}"
    if bucket == "month":
        return d.strftime("%Y-%m")
    raise ValueError(f"Invalid bucket '{bucket}'. Must be one of {', '.join(BUCKET_SIZES)}.")


def format_money(value: float) -> str:
    """Format an amount with thousands separators and two decimals.

    Examples:
        >>> format_money(1234.5)
        '1,234.50'

    """
    return f"{value:,.2f}"
