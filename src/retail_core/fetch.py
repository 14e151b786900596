"""Guard against stale fetch results.

When several fetches for the same view overlap (the user changes a filter
while the previous request is still in flight) the responses can resolve
out of order. ``LatestRequestGate`` tags each fetch with a monotonically
increasing token and only lets the response of the latest issued token
through; anything older is discarded.

Example:
    >>> gate = LatestRequestGate()
    >>> first = gate.issue()
    >>> second = gate.issue()
    >>> gate.accept(second, "fresh")
    True
    >>> gate.accept(first, "stale")
    False
    >>> gate.result
    'fresh'

"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LatestRequestGate(Generic[T]):
    """Accept only the result of the most recently issued request."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest = 0
        self._accepted: int | None = None
        self._result: T | None = None

    @property
    def latest(self) -> int:
        """Most recently issued token (0 before the first ``issue``)."""
        with self._lock:
            return self._latest

    @property
    def result(self) -> T | None:
        """Last accepted result."""
        with self._lock:
            return self._result

    @property
    def accepted_token(self) -> int | None:
        with self._lock:
            return self._accepted

    def issue(self) -> int:
        """Start a new request and return its token."""
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        """True if no newer request was issued after ``token``."""
        with self._lock:
            return token == self._latest

    def accept(self, token: int, result: T) -> bool:
        """Store ``result`` if ``token`` is still the latest.

        Returns:
            True if the result was stored, False if it was discarded.

        """
        with self._lock:
            if token != self._latest:
                logger.debug("Discarding stale response %d (latest is %d)", token, self._latest)
                return False
            self._accepted = token
            self._result = result
            return True

    def run(self, fetcher: Callable[..., T], *args: Any, **kwargs: Any) -> tuple[bool, T]:
        """Issue a token, call ``fetcher`` and accept its result if still current.

        Exceptions from ``fetcher`` propagate; the stored result is left
        untouched.

        Returns:
            Tuple of (accepted, result).

        """
        token = self.issue()
        result = fetcher(*args, **kwargs)
        return self.accept(token, result), result
