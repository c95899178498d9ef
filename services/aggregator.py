"""Constant-space running statistics."""

from __future__ import annotations

import math
from threading import Lock
from typing import Iterable

from models.records import AggregatorSnapshot


class RunningAggregator:
    """Tracks count, sum, min and max of a numeric stream.

    Accumulation is plain float addition. ``min()`` and ``max()`` report 0
    while the aggregator is empty, so check ``count()`` before trusting them.
    """

    def __init__(self, values: Iterable[float] = ()) -> None:
        self._lock = Lock()
        self._count = 0
        self._sum = 0.0
        self._min = math.inf
        self._max = -math.inf
        for value in values:
            self.add(value)

    def add(self, value: float) -> None:
        with self._lock:
            self._count += 1
            self._sum += value
            self._min = min(self._min, value)
            self._max = max(self._max, value)

    def merge(self, other: "RunningAggregator") -> None:
        """Fold ``other`` into this aggregator; an empty ``other`` is a no-op."""
        if other is self:
            other = RunningAggregator._copy_of(self)
        with other._lock:
            count, total, low, high = other._count, other._sum, other._min, other._max
        if count == 0:
            return
        with self._lock:
            self._count += count
            self._sum += total
            self._min = min(self._min, low)
            self._max = max(self._max, high)

    def count(self) -> int:
        with self._lock:
            return self._count

    def sum(self) -> float:
        with self._lock:
            return self._sum

    def min(self) -> float:
        with self._lock:
            return self._min if self._count else 0.0

    def max(self) -> float:
        with self._lock:
            return self._max if self._count else 0.0

    def average(self) -> float:
        with self._lock:
            return self._sum / self._count if self._count else 0.0

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._sum = 0.0
            self._min = math.inf
            self._max = -math.inf

    def snapshot(self) -> AggregatorSnapshot:
        with self._lock:
            if not self._count:
                return AggregatorSnapshot()
            return AggregatorSnapshot(
                count=self._count,
                sum=self._sum,
                min=self._min,
                max=self._max,
                average=self._sum / self._count,
            )

    @staticmethod
    def _copy_of(source: "RunningAggregator") -> "RunningAggregator":
        clone = RunningAggregator()
        with source._lock:
            clone._count = source._count
            clone._sum = source._sum
            clone._min = source._min
            clone._max = source._max
        return clone

    def __repr__(self) -> str:
        snap = self.snapshot()
        return (
            f"RunningAggregator(avg={snap.average:.2f}, min={snap.min:.2f}, "
            f"max={snap.max:.2f}, count={snap.count})"
        )
