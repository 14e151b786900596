"""Example: Weekly sales report using the report API

This example demonstrates how to get the sales of one week at different
grains (summary, per branch, per day) from the data store.

Prerequisites:
- Set RETAIL_STORE_URL environment variable (and RETAIL_STORE_KEY if needed)
"""

from retail_core import StoreConfig
from retail_core.branches import BranchRegistry
from retail_core.reports import get_report
from retail_core.store import StoreClient
from retail_core.view_state import ListViewState

# Define the week (Monday to Sunday)
week_start = "2025-01-06"  # Monday - MODIFY AS NEEDED
week_end = "2025-01-12"  # Sunday - MODIFY AS NEEDED

client = StoreClient(StoreConfig.from_env())
branches = BranchRegistry.from_store(client)

# The same query string the dashboard keeps in its URL
state = ListViewState.from_query(f"dateFrom={week_start}&dateTo={week_end}")
print(f"View state: ?{state.to_query()}")

# Totals only
print(f"\nGetting sales summary for {week_start} to {week_end}...")
summary = get_report(client, "sales", state, grain="summary")
print(f"Sales: {summary.summary.count} transactions, total {summary.summary.total:,.2f}")

# Per branch, highest total first
print("\nGetting sales per branch...")
by_branch = get_report(client, "sales", state, grain="branch", branches=branches)
print(by_branch.grouped)

# Per day
print("\nGetting sales per day...")
by_day = get_report(client, "sales", state, grain="day")
print(by_day.grouped)

# Narrow to one branch: changing a filter sends the list back to page 1
first_branch = branches.list_branches()[0][0] if len(branches) else None
if first_branch:
    narrowed = state.with_changes(branch=first_branch)
    print(f"\nView state for {branches.name_for(first_branch)}: ?{narrowed.to_query()}")
    single = get_report(client, "sales", narrowed)
    print(f"Sales: {single.summary.count} transactions, total {single.summary.total:,.2f}")
