"""Command-line reports over the data store.

Examples:
    $ retail-report summary --kind sales --from 2025-01-01 --to 2025-01-31
    $ retail-report summary --kind sales --status completed
    $ retail-report branches --kind expenses --category rent
    $ retail-report series --kind sales --bucket week
    $ retail-report dashboard --from 2025-01-01 --bucket month
    $ retail-report stock --warehouse w1 --query coffee

Reads the store location from RETAIL_STORE_URL / RETAIL_STORE_KEY.
"""

from __future__ import annotations

import argparse
import logging
import sys

from retail_core.config import StoreConfig
from retail_core.exceptions import RetailAPIError
from retail_core.formatters.console import (
    format_dashboard_for_console,
    format_report_for_console,
    format_stock_for_console,
)
from retail_core.records import TRANSACTION_SOURCES
from retail_core.reports.api import fetch_stock, get_dashboard, get_report
from retail_core.reports.criteria import FilterCriteria
from retail_core.reports.inventory import filter_stock, with_stock_status
from retail_core.store import StoreClient
from retail_core.utils import BUCKET_SIZES, parse_date

logger = logging.getLogger(__name__)

COMMANDS = ("summary", "branches", "series", "dashboard", "stock")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="retail-report",
        description="Reports over sales, purchases, expenses and stock.",
    )
    p.add_argument("command", choices=COMMANDS, help="Report to print.")
    p.add_argument(
        "--kind",
        default="sales",
        choices=sorted(TRANSACTION_SOURCES),
        help="Transaction kind (default: sales).",
    )
    p.add_argument(
        "--from", dest="date_from", type=parse_date, help="Start date YYYY-MM-DD (inclusive)."
    )
    p.add_argument(
        "--to", dest="date_to", type=parse_date, help="End date YYYY-MM-DD (inclusive)."
    )
    p.add_argument("--branch", help="Branch id, or 'all'.")
    p.add_argument("--user", help="User id, or 'all'.")
    p.add_argument("--category", help="Category id, or 'all'.")
    p.add_argument("--warehouse", help="Warehouse id, or 'all'.")
    p.add_argument("--status", help="Sale status (completed, held, cancelled), or 'all'.")
    p.add_argument("--query", help="Case-insensitive text search.")
    p.add_argument(
        "--bucket",
        default="day",
        choices=BUCKET_SIZES,
        help="Time bucket for series and dashboard (default: day).",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return p


def _criteria(args: argparse.Namespace) -> FilterCriteria:
    return FilterCriteria(
        date_from=args.date_from,
        date_to=args.date_to,
        branch=args.branch,
        user=args.user,
        category=args.category,
        warehouse=args.warehouse,
        status=args.status,
        query=args.query,
    )


def run(args: argparse.Namespace, client: StoreClient) -> str:
    """Execute a parsed command and return the text to print."""
    criteria = _criteria(args)

    if args.command == "summary":
        return format_report_for_console(get_report(client, args.kind, criteria, "summary"))
    if args.command == "branches":
        return format_report_for_console(get_report(client, args.kind, criteria, "branch"))
    if args.command == "series":
        return format_report_for_console(get_report(client, args.kind, criteria, args.bucket))
    if args.command == "dashboard":
        return format_dashboard_for_console(get_dashboard(client, criteria, bucket=args.bucket))

    stock = filter_stock(fetch_stock(client, criteria.warehouse), criteria)
    return format_stock_for_console(with_stock_status(stock))


def main(argv: list[str] | None = None, client: StoreClient | None = None) -> int:
    """Execute the report command-line tool.

    Args:
        argv: Arguments (defaults to ``sys.argv[1:]``).
        client: Store client to use instead of one built from the environment.

    Returns:
        Process exit code: 0 on success, 1 on a handled error.

    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        if client is None:
            client = StoreClient(StoreConfig.from_env())
        output = run(args, client)
    except (RetailAPIError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
