"""Unit tests for the bounded sliding window."""

from __future__ import annotations

import threading

import pytest

from services.errors import InvalidArgumentError, OutOfRangeError
from services.window import SlidingWindow


@pytest.mark.parametrize("max_size", [0, -1])
def test_non_positive_capacity_is_rejected(max_size: int) -> None:
    with pytest.raises(InvalidArgumentError):
        SlidingWindow(max_size)


def test_size_never_exceeds_capacity_and_oldest_are_evicted() -> None:
    window: SlidingWindow[int] = SlidingWindow(3)

    for value in range(10):
        window.add(value)
        assert window.size() <= window.max_size

    assert window.snapshot() == [7, 8, 9]
    assert window.get(0) == 7
    assert window.get(2) == 9


def test_get_out_of_range_raises() -> None:
    window: SlidingWindow[str] = SlidingWindow(2)
    window.add("a")

    with pytest.raises(OutOfRangeError):
        window.get(-1)
    with pytest.raises(OutOfRangeError):
        window.get(window.size())


def test_snapshot_is_detached_from_later_mutations() -> None:
    window: SlidingWindow[int] = SlidingWindow(5)
    window.add(1)
    window.add(2)

    snapshot = window.snapshot()
    assert snapshot[-1] == 2

    window.add(3)
    window.clear()

    assert snapshot == [1, 2]
    assert window.size() == 0
    assert len(window) == 0


def test_contains_and_iteration() -> None:
    window: SlidingWindow[int] = SlidingWindow(2)
    window.add(1)
    window.add(2)

    iterator = iter(window)
    window.add(3)

    assert list(iterator) == [1, 2]
    assert 3 in window
    assert not window.contains(1)


def test_concurrent_adds_respect_capacity() -> None:
    window: SlidingWindow[int] = SlidingWindow(50)

    def writer(offset: int) -> None:
        for value in range(1000):
            window.add(offset + value)

    threads = [threading.Thread(target=writer, args=(index * 1000,)) for index in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert window.size() == 50
