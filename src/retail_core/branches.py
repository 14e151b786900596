"""Branch registry for resolving branch display names.

Branches are only grouping keys for the reports: this module maps branch
identifiers to the names shown in grouped summaries and financial tables.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

if TYPE_CHECKING:
    from retail_core.store import StoreClient

UNKNOWN_BRANCH = "Unknown Branch"


class BranchRegistry:
    """Registry of branches keyed by identifier.

    Example:
        >>> from retail_core.branches import BranchRegistry
        >>>
        >>> registry = BranchRegistry([{"id": "b1", "name": "Downtown"}])
        >>> registry.name_for("b1")
        'Downtown'
        >>> registry.name_for("nope")
        'Unknown Branch'

    """

    def __init__(self, rows: Iterable[Mapping[str, Any]] = ()) -> None:
        """Initialize the registry from ``{"id", "name"}`` rows.

        Rows without an id are skipped. Insertion order is preserved.

        """
        self._names: dict[str, str] = {}
        for row in rows:
            branch_id = row.get("id")
            if branch_id is None:
                continue
            self._names[str(branch_id)] = str(row.get("name") or UNKNOWN_BRANCH)

    @classmethod
    def from_store(cls, client: StoreClient) -> BranchRegistry:
        """Load every branch from the data store."""
        return cls(client.select("branches", "id, name", order="name"))

    def __contains__(self, branch_id: object) -> bool:
        return branch_id in self._names

    def __len__(self) -> int:
        return len(self._names)

    def list_branches(self) -> list[tuple[str, str]]:
        """List ``(id, name)`` pairs in registry order."""
        return list(self._names.items())

    def name_for(self, branch_id: str | None, default: str = UNKNOWN_BRANCH) -> str:
        """Return the display name for a branch id, or ``default`` if unknown."""
        if branch_id is None:
            return default
        return self._names.get(str(branch_id), default)

    def as_dict(self) -> dict[str, str]:
        """Return a copy of the id to name mapping."""
        return dict(self._names)
