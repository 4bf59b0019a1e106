"""Bounded in-memory price history per feed.

Each feed gets its own partition: a fixed-capacity deque plus a lock.
Writers append at the tail and the deque drops the oldest point once
capacity is reached. Readers take a copy under the same lock, so a
signal computation never sees a half-applied append.

History is never persisted; the owner clears it when a session stops.
"""

from __future__ import annotations

import logging
import threading
from collections import deque

from pulse_core.models import PricePoint

logger = logging.getLogger(__name__)

# Samples kept per feed
DEFAULT_CAPACITY = 100


class _Partition:
    """History and lock for a single feed."""

    __slots__ = ("points", "lock")

    def __init__(self, capacity: int):
        self.points: deque[PricePoint] = deque(maxlen=capacity)
        self.lock = threading.Lock()


class PriceHistoryStore:
    """Per-feed FIFO price buffers with snapshot reads.

    Locks are plain threading locks: appends are O(1) and never await,
    so the store is safe to call from the event loop and from transport
    callback threads alike.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._partitions: dict[str, _Partition] = {}
        # Guards creation/removal of partitions, not the points themselves
        self._registry_lock = threading.Lock()

    def _get_partition(self, feed_id: str, create: bool = False) -> _Partition | None:
        partition = self._partitions.get(feed_id)
        if partition is not None or not create:
            return partition

        with self._registry_lock:
            partition = self._partitions.get(feed_id)
            if partition is None:
                partition = _Partition(self.capacity)
                self._partitions[feed_id] = partition
                logger.debug(f"Created price history for feed {feed_id}")
            return partition

    def append(self, feed_id: str, point: PricePoint) -> None:
        """Append a sample at the tail, evicting the oldest beyond capacity."""
        partition = self._get_partition(feed_id, create=True)
        with partition.lock:
            partition.points.append(point)

    def snapshot(self, feed_id: str) -> list[PricePoint]:
        """Return a copy of the current window, oldest first.

        Unknown feeds yield an empty list.
        """
        partition = self._get_partition(feed_id)
        if partition is None:
            return []
        with partition.lock:
            return list(partition.points)

    def latest(self, feed_id: str) -> PricePoint | None:
        """Return the most recent sample for a feed, if any."""
        partition = self._get_partition(feed_id)
        if partition is None:
            return None
        with partition.lock:
            return partition.points[-1] if partition.points else None

    def size(self, feed_id: str) -> int:
        partition = self._get_partition(feed_id)
        if partition is None:
            return 0
        with partition.lock:
            return len(partition.points)

    def feed_ids(self) -> list[str]:
        """Feeds that have received at least one sample."""
        with self._registry_lock:
            return list(self._partitions.keys())

    def clear(self, feed_id: str | None = None) -> None:
        """Drop history for one feed, or for every feed."""
        with self._registry_lock:
            if feed_id is None:
                self._partitions.clear()
            else:
                self._partitions.pop(feed_id, None)

    def __contains__(self, feed_id: str) -> bool:
        return feed_id in self._partitions
