"""External data store access.

Example:
    >>> from retail_core import StoreConfig
    >>> from retail_core.store import StoreClient
    >>>
    >>> client = StoreClient(StoreConfig.from_env())
    >>> branches = client.select("branches", "id, name", order="name")
"""

from retail_core.store.client import StoreClient, build_filter_params, make_session

__all__ = ["StoreClient", "build_filter_params", "make_session"]
