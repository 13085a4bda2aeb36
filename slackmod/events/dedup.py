"""Bounded set of already-processed event IDs."""

from __future__ import annotations

import logging
from itertools import islice

logger = logging.getLogger(__name__)


class ProcessedEventSet:
    """
    Insertion-ordered set of event IDs with a size bound.

    When an insert pushes the set past ``capacity``, the oldest tenth of
    ``capacity`` entries are dropped in insertion order (not LRU; lookups do
    not refresh an entry).
    """

    def __init__(self, capacity: int = 10_000):
        if capacity < 10:
            raise ValueError("capacity must be at least 10")
        self.capacity = capacity
        self.evict_count = capacity // 10
        # dict keys preserve insertion order
        self._ids: dict[str, None] = {}

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, event_id: str) -> None:
        self._ids[event_id] = None
        if len(self._ids) > self.capacity:
            oldest = list(islice(self._ids, self.evict_count))
            for old_id in oldest:
                del self._ids[old_id]
            logger.debug(f"Evicted {len(oldest)} processed event IDs")

    def clear(self) -> None:
        self._ids.clear()
