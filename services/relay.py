"""Client-side relay of the sensor server's NDJSON streams."""

from __future__ import annotations

import asyncio
import logging
import socket
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx

from models.records import Sample
from services.codec import NDJSON_MEDIA_TYPE, decode_sample
from services.errors import InvalidArgumentError, UpstreamUnavailableError
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

SENSOR_STREAM_PATH = "/api/sensors/stream"
MULTI_SENSOR_STREAM_PATH = "/api/sensors/stream/multi"
KEEPALIVE_EXPIRY_SECONDS = 30.0

_RETRYABLE_ERRORS = (httpx.HTTPError, asyncio.TimeoutError, InvalidArgumentError)


def build_query(**params: Optional[int]) -> Dict[str, int]:
    """Drop unset parameters so the server applies its own defaults."""
    return {name: value for name, value in params.items() if value is not None}


class RelayEngine:
    """Fetches sample streams from the sensor server and re-emits them.

    A failed attempt (connect error, timeout, non-2xx status, malformed or
    interrupted body) is retried from scratch with exponential backoff, so
    samples already relayed may be delivered again. Once the retry budget is
    spent the sequence simply ends. Closing the sequence aborts the
    in-flight request and stops further retries.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        request_timeout: float = 30.0,
        max_retries: int = 3,
        backoff: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self._sleep = sleep

    async def get_sensor_stream(
        self, sensor_id: Optional[int] = None, limit: Optional[int] = None
    ) -> AsyncIterator[Sample]:
        context = {"sensor_id": sensor_id, "limit": limit}
        logger.info("Fetching sensor stream from server", extra=context)
        params = build_query(sensorId=sensor_id, limit=limit)
        async with aclosing(self._relay(SENSOR_STREAM_PATH, params, context)) as samples:
            async for sample in samples:
                yield sample

    async def get_multiple_sensor_stream(
        self, sensor_count: Optional[int] = None, limit: Optional[int] = None
    ) -> AsyncIterator[Sample]:
        context = {"sensor_count": sensor_count, "limit": limit}
        logger.info("Fetching multi-sensor stream from server", extra=context)
        params = build_query(sensorCount=sensor_count, limit=limit)
        async with aclosing(self._relay(MULTI_SENSOR_STREAM_PATH, params, context)) as samples:
            async for sample in samples:
                yield sample

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _relay(
        self, path: str, params: Dict[str, int], context: Dict[str, Any]
    ) -> AsyncIterator[Sample]:
        try:
            async with aclosing(self._fetch_with_retries(path, params, context)) as samples:
                async for sample in samples:
                    yield sample
        except UpstreamUnavailableError as exc:
            logger.error("Giving up on sensor stream: %s", exc, extra=context)
            return
        except (asyncio.CancelledError, GeneratorExit):
            logger.warning("Sensor stream cancelled by client", extra=context)
            raise
        logger.info("Sensor stream relay completed", extra=context)

    async def _fetch_with_retries(
        self, path: str, params: Dict[str, int], context: Dict[str, Any]
    ) -> AsyncIterator[Sample]:
        retries = 0
        while True:
            try:
                async with aclosing(self._fetch_once(path, params)) as samples:
                    async for sample in samples:
                        yield sample
                return
            except _RETRYABLE_ERRORS as exc:
                reason = str(exc) or type(exc).__name__
                logger.error("Error receiving sensor stream: %s", reason, extra=context)
                if retries >= self.max_retries:
                    raise UpstreamUnavailableError(
                        f"{path} failed after {retries} retries: {reason}"
                    ) from exc
                delay = self.backoff * (2**retries)
                retries += 1
                logger.warning(
                    "Retrying sensor stream request",
                    extra={**context, "attempt": retries, "delay_s": delay},
                )
                await self._sleep(delay)

    async def _fetch_once(self, path: str, params: Dict[str, int]) -> AsyncIterator[Sample]:
        async with self._client.stream(
            "GET", path, params=params, headers={"Accept": NDJSON_MEDIA_TYPE}
        ) as response:
            response.raise_for_status()
            lines = response.aiter_lines()
            while True:
                try:
                    line = await asyncio.wait_for(lines.__anext__(), self.request_timeout)
                except StopAsyncIteration:
                    return
                if not line.strip():
                    continue
                sample = decode_sample(line)
                logger.debug(
                    "Received sample",
                    extra={"sensor_id": sample.sensor_id},
                )
                yield sample


def build_http_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Pooled upstream client: one timeout for connect/read/write/pool, TCP keep-alive on."""
    limits = httpx.Limits(
        max_connections=settings.relay_max_connections,
        max_keepalive_connections=settings.relay_max_connections,
        keepalive_expiry=KEEPALIVE_EXPIRY_SECONDS,
    )
    if transport is None:
        transport = httpx.AsyncHTTPTransport(
            limits=limits,
            socket_options=[(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)],
        )
    return httpx.AsyncClient(
        base_url=settings.sensor_server_url,
        timeout=httpx.Timeout(settings.relay_timeout),
        transport=transport,
    )


def build_relay_engine(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RelayEngine:
    settings = settings or get_settings()
    logger.info("Creating relay client for %s", settings.sensor_server_url)
    return RelayEngine(
        client=build_http_client(settings, transport=transport),
        request_timeout=settings.relay_timeout,
        max_retries=settings.relay_max_retries,
        backoff=settings.relay_backoff,
    )
