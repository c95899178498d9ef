"""Bounded, thread-safe FIFO used for per-sensor history."""

from __future__ import annotations

from collections import deque
from threading import Lock
from typing import Deque, Generic, Iterator, List, TypeVar

from services.errors import InvalidArgumentError, OutOfRangeError

T = TypeVar("T")


class SlidingWindow(Generic[T]):
    """Keeps the most recent ``max_size`` elements, oldest first.

    Every operation runs under one per-instance lock. Iteration and
    ``snapshot()`` work on a point-in-time copy, so callers may keep adding
    while they iterate.
    """

    def __init__(self, max_size: int) -> None:
        if max_size <= 0:
            raise InvalidArgumentError("max_size must be positive")
        self._max_size = max_size
        self._items: Deque[T] = deque(maxlen=max_size)
        self._lock = Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def add(self, item: T) -> None:
        """Append ``item``, evicting the oldest element when full."""
        with self._lock:
            self._items.append(item)

    def size(self) -> int:
        with self._lock:
            return len(self._items)

    def get(self, index: int) -> T:
        """Return the element at ``index`` (0 is the oldest)."""
        with self._lock:
            size = len(self._items)
            if index < 0 or index >= size:
                raise OutOfRangeError(f"Index: {index}, Size: {size}")
            return self._items[index]

    def snapshot(self) -> List[T]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def contains(self, item: object) -> bool:
        with self._lock:
            return item in self._items

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, item: object) -> bool:
        return self.contains(item)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"SlidingWindow(max_size={self._max_size}, size={self.size()})"
