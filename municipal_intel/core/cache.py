"""
Bounded in-memory cache for intelligence reports.

One InsightCache is owned by each InsightAggregator; there is no module-level
cache. Entries are kept in insertion order and the oldest entry is evicted
once the number of entries exceeds `max_size`. A lock makes insert + evict
atomic so one aggregator can serve concurrent requests.
"""

import logging
import threading
from collections import OrderedDict
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class InsightCache(Generic[V]):
    """
    Insertion-ordered cache with oldest-first eviction.

    Args:
        max_size: Maximum number of entries held. Must be positive.

    Example:
        >>> cache = InsightCache(max_size=2)
        >>> cache.put("a", 1); cache.put("b", 2); cache.put("c", 3)
        >>> cache.get("a") is None
        True
    """

    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._entries: "OrderedDict[str, V]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, value: V) -> None:
        """Store `value`, evicting the oldest entries beyond `max_size`."""
        with self._lock:
            if key in self._entries:
                # Move to newest
                del self._entries[key]
            self._entries[key] = value
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cached report {evicted}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
