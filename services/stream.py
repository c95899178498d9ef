"""Server-side streaming of synthesized samples."""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from functools import lru_cache
from typing import AsyncIterator, Iterator, List, Optional

from models.records import Sample
from services.buffer import OverflowBuffer
from services.errors import InvalidArgumentError
from services.synthesizer import SampleSynthesizer, build_default_synthesizer
from settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_SENSOR_COUNT = 5
DEFAULT_MULTI_LIMIT = 20


def _positive_or_default(value: Optional[int], default: int) -> int:
    return value if value is not None and value > 0 else default


class StreamEngine:
    """Turns stream requests into finite, cancellable sample sequences.

    Each ``stream`` call runs its own producer task that synthesizes one
    sample per tick, groups samples into batches and publishes each batch
    into a drop-oldest :class:`OverflowBuffer`. The caller iterates the
    buffer one sample at a time. Closing the iterator (or cancelling the
    task iterating it) cancels the producer before its next tick.
    """

    def __init__(
        self,
        synthesizer: SampleSynthesizer,
        tick_interval: float = 0.1,
        batch_size: int = 16,
        overflow_capacity: int = 512,
        workers: int = 4,
    ) -> None:
        if tick_interval <= 0:
            raise InvalidArgumentError("tick_interval must be positive")
        if batch_size <= 0:
            raise InvalidArgumentError("batch_size must be positive")
        if overflow_capacity <= 0:
            raise InvalidArgumentError("overflow_capacity must be positive")
        if workers <= 0:
            raise InvalidArgumentError("workers must be positive")
        self.synthesizer = synthesizer
        self.tick_interval = tick_interval
        self.batch_size = batch_size
        self.overflow_capacity = overflow_capacity
        self.workers = workers

    async def stream(self, sensor_id: int, limit: Optional[int] = None) -> AsyncIterator[Sample]:
        count = _positive_or_default(limit, DEFAULT_LIMIT)
        context = {"sensor_id": sensor_id, "limit": count}
        logger.info("Starting sensor stream", extra=context)

        buffer: OverflowBuffer[Sample] = OverflowBuffer(self.overflow_capacity)
        producer = asyncio.create_task(
            self._produce(sensor_id, count, buffer),
            name=f"sensor-stream-{sensor_id}",
        )
        try:
            async for sample in buffer:
                yield sample
        except (asyncio.CancelledError, GeneratorExit):
            logger.warning("Sensor stream cancelled", extra=context)
            raise
        finally:
            producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            buffer.clear()
        logger.info("Sensor stream completed", extra=context)

    async def stream_multi(
        self,
        sensor_count: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> AsyncIterator[Sample]:
        """Stream sensors ``1..sensor_count`` concurrently through a fixed worker pool.

        Samples of one sensor keep their order; interleaving across sensors
        is whatever the workers produce.
        """
        count = _positive_or_default(sensor_count, DEFAULT_SENSOR_COUNT)
        total = _positive_or_default(limit, DEFAULT_MULTI_LIMIT)
        per_sensor = max(1, total // count)
        context = {"sensor_count": count, "limit": per_sensor}
        logger.info("Starting multi-sensor stream", extra=context)

        # Shared by the workers; ids are handed out on demand.
        pending = iter(range(1, count + 1))
        merged: asyncio.Queue[Optional[Sample]] = asyncio.Queue(maxsize=self.overflow_capacity)
        workers = [
            asyncio.create_task(
                self._fan_out_worker(pending, merged, per_sensor),
                name=f"sensor-fan-out-{index}",
            )
            for index in range(min(self.workers, count))
        ]

        finished = 0
        try:
            while finished < len(workers):
                sample = await merged.get()
                if sample is None:
                    finished += 1
                    continue
                yield sample
        except (asyncio.CancelledError, GeneratorExit):
            logger.warning("Multi-sensor stream cancelled", extra=context)
            raise
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        logger.info("Multi-sensor stream completed", extra=context)

    async def _produce(self, sensor_id: int, limit: int, buffer: OverflowBuffer[Sample]) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        batch: List[Sample] = []
        try:
            for _ in range(limit):
                next_tick += self.tick_interval
                await asyncio.sleep(max(0.0, next_tick - loop.time()))
                batch.append(self.synthesizer.generate(sensor_id))
                if len(batch) >= self.batch_size:
                    self._flush(sensor_id, batch, buffer)
                    batch = []
            if batch:
                self._flush(sensor_id, batch, buffer)
        except Exception as exc:
            # The partial batch is discarded; the reader sees a clean end of stream.
            logger.error(
                "Error in sensor stream: %s",
                exc,
                exc_info=True,
                extra={"sensor_id": sensor_id},
            )
        finally:
            buffer.close()

    @staticmethod
    def _flush(sensor_id: int, batch: List[Sample], buffer: OverflowBuffer[Sample]) -> None:
        evicted = buffer.publish(batch)
        if evicted:
            logger.warning(
                "Overflow buffer full, dropped oldest samples",
                extra={"sensor_id": sensor_id, "dropped": evicted},
            )

    async def _fan_out_worker(
        self,
        pending: Iterator[int],
        merged: asyncio.Queue[Optional[Sample]],
        limit: int,
    ) -> None:
        try:
            for sensor_id in pending:
                async with aclosing(self.stream(sensor_id, limit)) as substream:
                    async for sample in substream:
                        await merged.put(sample)
        except Exception as exc:
            logger.error("Fan-out worker failed: %s", exc, exc_info=True)
        await merged.put(None)


@lru_cache
def build_default_stream_engine() -> StreamEngine:
    settings = get_settings()
    return StreamEngine(
        synthesizer=build_default_synthesizer(),
        tick_interval=settings.tick_ms / 1000,
        batch_size=settings.batch_size,
        overflow_capacity=settings.overflow_capacity,
        workers=settings.stream_workers,
    )
