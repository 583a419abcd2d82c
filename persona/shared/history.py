"""Bounded rolling histories.

Writers append in timestamp order; readers take a point-in-time snapshot
(a tuple) and never see the live deque. The lock keeps appends from sensor
callback threads from interleaving with a snapshot copy.
"""

import threading
from collections import deque
from collections.abc import Iterable
from typing import Generic, TypeVar

T = TypeVar("T")


class BoundedHistory(Generic[T]):
    """Fixed-capacity, oldest-evicted-first record history."""

    def __init__(self, capacity: int, items: Iterable[T] = ()):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: deque[T] = deque(items, maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, item: T) -> T | None:
        """Append an item. Returns the evicted item, if any."""
        with self._lock:
            evicted = self._items[0] if len(self._items) == self.capacity else None
            self._items.append(item)
        return evicted

    def replace(self, items: Iterable[T]) -> None:
        """Replace the whole history (keeps the newest ``capacity`` items)."""
        with self._lock:
            self._items = deque(items, maxlen=self.capacity)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def snapshot(self) -> tuple[T, ...]:
        with self._lock:
            return tuple(self._items)

    def last(self, n: int) -> tuple[T, ...]:
        """The newest ``n`` items, oldest first."""
        snap = self.snapshot()
        return snap[-n:] if n > 0 else ()

    def __len__(self) -> int:
        return len(self._items)
