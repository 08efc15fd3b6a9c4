"""TTL cache for aggregate lookups keyed by (operation, filter)."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)


class AggregationCache:
    """In-memory TTL cache for aggregates over entry collections.

    Instances are passed explicitly to the functions that use them; there is
    no module-level cache. ``clock`` defaults to ``time.monotonic`` and can be
    replaced in tests.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: dict[tuple[str, Hashable], tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, operation: str, key: Hashable) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        now = self._clock()
        with self._lock:
            item = self._store.get((operation, key))
            if item is None:
                return None
            stored_at, value = item
            if now - stored_at >= self.ttl_seconds:
                del self._store[(operation, key)]
                return None
            return value

    def set(self, operation: str, key: Hashable, value: Any) -> None:
        with self._lock:
            self._store[(operation, key)] = (self._clock(), value)

    def get_or_compute(
        self, operation: str, key: Hashable, compute: Callable[[], Any],
    ) -> Any:
        """Return the cached value or compute, store and return it."""
        value = self.get(operation, key)
        if value is not None:
            self.hits += 1
            return value
        self.misses += 1
        value = compute()
        self.set(operation, key, value)
        logger.debug("Cached %s for %r", operation, key)
        return value

    def invalidate(self, operation: str | None = None) -> int:
        """Drop entries of one operation (or all). Returns the count removed."""
        with self._lock:
            if operation is None:
                removed = len(self._store)
                self._store.clear()
                return removed
            stale = [k for k in self._store if k[0] == operation]
            for k in stale:
                del self._store[k]
            return len(stale)

    def __len__(self) -> int:
        return len(self._store)
