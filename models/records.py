"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Sample:
    """A single synthetic measurement for one sensor at one instant."""

    sensor_id: int
    timestamp: int
    temperature: float
    humidity: float
    pressure: float
    value: float
    anomaly: bool


@dataclass(frozen=True, slots=True)
class AggregatorSnapshot:
    """Point-in-time copy of a running aggregator."""

    count: int = 0
    sum: float = 0.0
    min: float = 0.0
    max: float = 0.0
    average: float = 0.0


@dataclass(frozen=True, slots=True)
class BulkResult:
    """Samples from one bulk generation, ordered by ascending sensor id."""

    data: list[Sample]
    count: int
    timestamp: int
