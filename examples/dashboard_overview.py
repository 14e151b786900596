"""Example: Dashboard overview with stale-response protection

This example builds the overview dashboard for a month and shows how
``LatestRequestGate`` keeps only the newest result when the filters change
while a fetch is still running.

Prerequisites:
- Set RETAIL_STORE_URL environment variable (and RETAIL_STORE_KEY if needed)
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date

from retail_core import StoreConfig
from retail_core.fetch import LatestRequestGate
from retail_core.formatters import format_dashboard_for_console
from retail_core.reports import DashboardResult, get_dashboard
from retail_core.store import StoreClient
from retail_core.view_state import ListViewState

client = StoreClient(StoreConfig.from_env())
gate: LatestRequestGate[DashboardResult] = LatestRequestGate()

january = ListViewState.from_query("dateFrom=2025-01-01&dateTo=2025-01-31")
february = january.with_changes(date_from=date(2025, 2, 1), date_to=date(2025, 2, 28))


def load(state: ListViewState) -> bool:
    token = gate.issue()
    result = get_dashboard(client, state, bucket="week")
    return gate.accept(token, result)


# The user switches to February before January has loaded
with ThreadPoolExecutor(max_workers=2) as pool:
    jan_future = pool.submit(load, january)
    feb_future = pool.submit(load, february)
    print(f"January accepted:  {jan_future.result()}")
    print(f"February accepted: {feb_future.result()}")

if gate.result is not None:
    print()
    print(format_dashboard_for_console(gate.result))
