"""Deterministic sample synthesis and per-sensor state."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional

from models.records import AggregatorSnapshot, BulkResult, Sample
from services.aggregator import RunningAggregator
from services.errors import InternalError, InvalidArgumentError
from services.window import SlidingWindow
from settings import get_settings

logger = logging.getLogger(__name__)

ANOMALY_THRESHOLD = 35.0
DEFAULT_HISTORY_SIZE = 100

# Integer-degree lookup tables, fixed at import.
_COS_TABLE = tuple(math.cos(math.radians(degree)) for degree in range(360))
_SIN_TABLE = tuple(math.sin(math.radians(degree)) for degree in range(360))
_TAN_TABLE = tuple(math.tan(math.radians(degree)) for degree in range(45))


def _state_key(sensor_id: int) -> str:
    return f"sensor_{sensor_id}"


class MillisecondClock:
    """Wall-clock milliseconds that never move backwards within the process."""

    def __init__(self, source: Callable[[], int] = time.time_ns) -> None:
        self._source = source
        self._last = 0
        self._lock = Lock()

    def __call__(self) -> int:
        now = self._source() // 1_000_000
        with self._lock:
            if now < self._last:
                now = self._last
            self._last = now
            return now


@dataclass
class SensorState:
    history: SlidingWindow[Sample]
    temperature: RunningAggregator = field(default_factory=RunningAggregator)


def synthesize(sensor_id: int, timestamp_ms: int) -> Sample:
    """Compute the sample for ``sensor_id`` at ``timestamp_ms`` without side effects."""
    seconds = timestamp_ms // 1000

    temperature = 20 + 5 * math.sin(seconds)
    humidity = 50 + 20 * math.cos(seconds / 2)
    pressure = 1013 + 10 * math.sin(seconds / 3)

    x = temperature * _COS_TABLE[sensor_id % 360]
    y = humidity * _SIN_TABLE[sensor_id % 360]
    z = pressure * _TAN_TABLE[sensor_id % 45]
    value = math.sqrt(x * x + y * y + z * z)

    anomaly = (
        abs(temperature - 20.0) > ANOMALY_THRESHOLD
        or abs(humidity - 50.0) > ANOMALY_THRESHOLD
        or abs(pressure - 1013.0) > ANOMALY_THRESHOLD
    )
    if not math.isfinite(value):
        raise InternalError(f"Non-finite value synthesized for sensor {sensor_id}")

    return Sample(
        sensor_id=sensor_id,
        timestamp=timestamp_ms,
        temperature=temperature,
        humidity=humidity,
        pressure=pressure,
        value=value,
        anomaly=anomaly,
    )


class SampleSynthesizer:
    """Owns the per-sensor history windows and temperature statistics.

    All access to sensor state goes through this class. Samples leave by
    value; callers never hold references into the state map.
    """

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if history_size <= 0:
            raise InvalidArgumentError("history_size must be positive")
        self.history_size = history_size
        self._clock = clock or MillisecondClock()
        self._states: Dict[str, SensorState] = {}
        self._states_lock = Lock()
        self._total_generated = 0
        self._counter_lock = Lock()

    def generate(self, sensor_id: int) -> Sample:
        sample = synthesize(sensor_id, self._clock())

        state = self._state_for(sensor_id)
        state.history.add(sample)
        state.temperature.add(sample.temperature)

        with self._counter_lock:
            self._total_generated += 1
            total = self._total_generated

        logger.debug(
            "Generated sample",
            extra={"sensor_id": sensor_id, "total_generated": total},
        )
        return sample

    def generate_bulk(self, sensor_ids: Iterable[int]) -> BulkResult:
        """Generate one sample per id in ascending id order."""
        data: List[Sample] = [self.generate(sensor_id) for sensor_id in sorted(sensor_ids)]
        return BulkResult(data=data, count=len(data), timestamp=self._clock())

    def history(self, sensor_id: int, limit: int = 0) -> List[Sample]:
        """Return retained samples oldest first; ``limit <= 0`` means all of them."""
        with self._states_lock:
            state = self._states.get(_state_key(sensor_id))
        if state is None:
            return []
        samples = sorted(
            (sample for sample in state.history.snapshot() if sample.sensor_id == sensor_id),
            key=lambda sample: sample.timestamp,
        )
        if limit > 0:
            return samples[:limit]
        return samples

    def clear(self) -> None:
        with self._states_lock:
            self._states.clear()
        logger.info("Cleared sensor history and statistics")

    def total_generated(self) -> int:
        with self._counter_lock:
            return self._total_generated

    def temperature_stats(self, sensor_id: int) -> AggregatorSnapshot:
        with self._states_lock:
            state = self._states.get(_state_key(sensor_id))
        if state is None:
            return AggregatorSnapshot()
        return state.temperature.snapshot()

    def all_statistics(self) -> Dict[str, AggregatorSnapshot]:
        with self._states_lock:
            states = dict(self._states)
        return {key: state.temperature.snapshot() for key, state in states.items()}

    def sensor_count(self) -> int:
        with self._states_lock:
            return len(self._states)

    def _state_for(self, sensor_id: int) -> SensorState:
        key = _state_key(sensor_id)
        with self._states_lock:
            state = self._states.get(key)
            if state is None:
                state = SensorState(history=SlidingWindow(self.history_size))
                self._states[key] = state
            return state


@lru_cache
def build_default_synthesizer(history_size: Optional[int] = None) -> SampleSynthesizer:
    """Process-wide synthesizer shared by every stream request."""
    settings = get_settings()
    return SampleSynthesizer(history_size=history_size or settings.history_size)
