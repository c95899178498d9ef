"""Drop-oldest asyncio channel between a stream producer and its transport."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Generic, Iterable, TypeVar

from services.errors import InvalidArgumentError

T = TypeVar("T")


class OverflowBuffer(Generic[T]):
    """Bounded queue whose writer never waits.

    ``publish`` evicts the oldest items once ``capacity`` is reached, so a
    slow reader loses history instead of stalling the producer. Iterating
    the buffer yields items until it has been closed and drained.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise InvalidArgumentError("capacity must be positive")
        self.capacity = capacity
        self.dropped = 0
        self._items: Deque[T] = deque()
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, items: Iterable[T]) -> int:
        """Append ``items`` and return how many old items were evicted."""
        evicted = 0
        for item in items:
            if len(self._items) >= self.capacity:
                self._items.popleft()
                evicted += 1
            self._items.append(item)
        self.dropped += evicted
        self._ready.set()
        return evicted

    def close(self) -> None:
        self._closed = True
        self._ready.set()

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        while not self._items:
            if self._closed:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()
        return self._items.popleft()
