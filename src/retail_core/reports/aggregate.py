"""Report aggregator: filter, summarize and group transaction records.

This module works on the flat transactions frame produced by
``retail_core.records`` (only ``date`` and ``amount`` are required). It
performs no I/O and never raises on bad rows:

- a record whose amount is missing or not numeric counts as 0;
- a record whose date cannot be parsed is excluded from time buckets (with
  a warning) but still counts in ``summarize``.

Grouping never loses or double-counts an amount: the per-branch totals of a
subset always add up to ``summarize(subset).total``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Union

import pandas as pd

from retail_core.branches import UNKNOWN_BRANCH, BranchRegistry
from retail_core.records import ensure_transaction_columns
from retail_core.reports.criteria import FilterCriteria
from retail_core.utils import BUCKET_SIZES, bucket_label, to_utc_days

logger = logging.getLogger(__name__)

BRANCH_TOTAL_COLUMNS = ["branch_id", "branch", "total"]

# Grouping key for records without a resolvable branch
_UNKNOWN_KEY = "__unknown__"

_ID_COLUMNS = {
    "branch": "branch_id",
    "category": "category_id",
    "user": "user_id",
    "warehouse": "warehouse_id",
    "status": "status",
}

BranchNames = Union[BranchRegistry, Mapping[str, str], None]


@dataclass(frozen=True)
class Summary:
    """Scalar summary of a record subset.

    Attributes:
        total: Sum of the records' amounts (0.0 for an empty subset).
        count: Number of records.
    """

    total: float
    count: int


def _equals(series: pd.Series, value: str) -> pd.Series:
    return (series.astype("string") == value).fillna(False).astype(bool)


def _contains(series: pd.Series, needle: str) -> pd.Series:
    text = series.astype("string").str.casefold()
    return text.str.contains(needle, regex=False).fillna(False).astype(bool)


def _has_product(product_ids: object, product: str) -> bool:
    if not isinstance(product_ids, (list, tuple, set)):
        return False
    return any(str(pid) == product for pid in product_ids)


def filter_records(
    records: pd.DataFrame,
    criteria: FilterCriteria | None = None,
) -> pd.DataFrame:
    """Return the records satisfying every supplied criterion.

    Dates compare on the UTC calendar day, both bounds inclusive. A record
    with an unparsable date fails any date bound but passes when no range
    is given. An inverted range (``date_from > date_to``) yields an empty
    result. Filtering is idempotent.

    Args:
        records: Transactions frame; needs at least ``date`` and ``amount``.
        criteria: Filters to apply. None matches everything.

    Returns:
        Filtered copy of the records, original index preserved.

    Raises:
        DataQualityError: If ``date`` or ``amount`` is missing.

    Examples:
        >>> subset = filter_records(df, FilterCriteria(date_from="2025-01-01",
        ...                                            date_to="2025-01-31"))

    """
    df = ensure_transaction_columns(records)
    if criteria is None or criteria.is_empty():
        return df

    if criteria.is_inverted:
        logger.debug(
            "Inverted date range %s > %s: no record can match",
            criteria.date_from,
            criteria.date_to,
        )
        return df.iloc[0:0]

    mask = pd.Series(True, index=df.index)

    if criteria.has_date_range:
        days = to_utc_days(df["date"])
        if criteria.date_from is not None:
            mask &= (days >= pd.Timestamp(criteria.date_from)).fillna(False)
        if criteria.date_to is not None:
            mask &= (days <= pd.Timestamp(criteria.date_to)).fillna(False)

    for attr, column in _ID_COLUMNS.items():
        value = getattr(criteria, attr)
        if value is not None:
            mask &= _equals(df[column], value)

    if criteria.product is not None:
        mask &= df["product_ids"].map(lambda ids: _has_product(ids, criteria.product)).astype(bool)

    if criteria.query is not None:
        needle = criteria.query.casefold()
        text_mask = pd.Series(False, index=df.index)
        for field in criteria.text_fields:
            if field in df.columns:
                text_mask |= _contains(df[field], needle)
        mask &= text_mask

    result = df[mask.astype(bool)]
    logger.debug("Filtered %d of %d record(s)", len(result), len(df))
    return result


def summarize(subset: pd.DataFrame) -> Summary:
    """Total amount and record count of a subset.

    Examples:
        >>> summarize(pd.DataFrame(columns=["date", "amount"]))
        Summary(total=0.0, count=0)

    """
    if subset.empty:
        return Summary(total=0.0, count=0)
    df = ensure_transaction_columns(subset)
    return Summary(total=float(df["amount"].sum()), count=len(df))


def _branch_lookup(branches: BranchNames) -> dict[str, str] | None:
    if branches is None:
        return None
    if isinstance(branches, BranchRegistry):
        return branches.as_dict()
    return {str(k): str(v) for k, v in branches.items()}


def group_by_branch(subset: pd.DataFrame, branches: BranchNames = None) -> pd.DataFrame:
    """Accumulate amounts per branch.

    The grouping key is the branch id; the display name comes from the
    record's joined ``branch_name`` and, failing that, from ``branches``.
    Records without a branch id, or whose id cannot be named when a
    registry is supplied, fall into a single ``"Unknown Branch"`` bucket.
    Without a registry, an unnamed id is displayed as itself.

    Args:
        subset: Transactions frame.
        branches: Optional BranchRegistry or ``{id: name}`` mapping.

    Returns:
        DataFrame with columns ``branch_id``, ``branch``, ``total`` ordered by
        total descending; ties keep first-seen order.

    """
    df = ensure_transaction_columns(subset)
    if df.empty:
        return pd.DataFrame(
            {"branch_id": pd.Series(dtype=object), "branch": pd.Series(dtype=object),
             "total": pd.Series(dtype=float)}
        )

    lookup = _branch_lookup(branches)
    ids = df["branch_id"].astype("string")
    names = df["branch_name"].astype("string")
    if lookup is not None:
        names = names.fillna(ids.map(lookup).astype("string"))
    else:
        names = names.fillna(ids)

    known = ids.notna() & names.notna()
    frame = pd.DataFrame(
        {
            "branch_id": ids.where(known, _UNKNOWN_KEY).astype(str),
            "branch": names.where(known, UNKNOWN_BRANCH).astype(str),
            "total": df["amount"].to_numpy(),
        }
    )

    unknown = int((~known).sum())
    if unknown:
        logger.debug("%d record(s) grouped under %s", unknown, UNKNOWN_BRANCH)

    grouped = (
        frame.groupby("branch_id", sort=False)
        .agg(branch=("branch", "first"), total=("total", "sum"))
        .reset_index()
    )
    grouped = grouped.sort_values("total", ascending=False, kind="stable").reset_index(drop=True)
    grouped["branch_id"] = grouped["branch_id"].astype(object)
    grouped.loc[grouped["branch_id"] == _UNKNOWN_KEY, "branch_id"] = None
    return grouped[BRANCH_TOTAL_COLUMNS]


def group_by_time_bucket(subset: pd.DataFrame, bucket: str = "day") -> pd.DataFrame:
    """Sum amounts per calendar day, ISO week or calendar month.

    Labels are ``YYYY-MM-DD``, ``YYYY-ww`` (ISO year and week) or
    ``YYYY-MM``; their lexicographic order is chronological. Records with an
    unparsable date are left out and logged.

    Args:
        subset: Transactions frame.
        bucket: "day", "week" or "month".

    Returns:
        DataFrame with columns ``bucket`` and ``total`` sorted by bucket.

    Raises:
        ValueError: If bucket is not "day", "week" or "month".

    """
    if bucket not in BUCKET_SIZES:
        raise ValueError(f"Invalid bucket '{bucket}'. Must be one of {', '.join(BUCKET_SIZES)}.")

    df = ensure_transaction_columns(subset)
    empty = pd.DataFrame(
        {"bucket": pd.Series(dtype=object), "total": pd.Series(dtype=float)}
    )
    if df.empty:
        return empty

    days = to_utc_days(df["date"])
    invalid = days.isna()
    if invalid.any():
        logger.warning(
            "Excluding %d record(s) with unparsable dates from %s buckets",
            int(invalid.sum()),
            bucket,
        )
    if invalid.all():
        return empty

    valid_days = days[~invalid]
    labels = valid_days.map(lambda ts: bucket_label(ts.date(), bucket))
    totals = df.loc[~invalid, "amount"].groupby(labels, sort=True).sum()

    result = pd.DataFrame({"bucket": totals.index.astype(str), "total": totals.to_numpy()})
    return result.sort_values("bucket", kind="stable").reset_index(drop=True)
