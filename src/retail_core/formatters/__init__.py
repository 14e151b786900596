"""Output formatting utilities."""

from retail_core.formatters.console import (
    format_dashboard_for_console,
    format_report_for_console,
    format_stock_for_console,
    sanitize_for_console,
)

__all__ = [
    "format_dashboard_for_console",
    "format_report_for_console",
    "format_stock_for_console",
    "sanitize_for_console",
]
