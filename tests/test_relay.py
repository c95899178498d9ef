"""Tests for the relay engine against a mocked sensor server."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, List

import httpx

from models.records import Sample
from services.codec import encode_sample
from services.relay import RelayEngine, build_query
from services.synthesizer import synthesize

SAMPLES = [synthesize(42, 1_700_000_000_000 + offset * 100) for offset in range(3)]


def _ndjson(samples: List[Sample]) -> bytes:
    return "".join(encode_sample(sample) for sample in samples).encode("utf-8")


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _relay(
    handler: Callable[[httpx.Request], httpx.Response],
    sleep: _RecordingSleep,
    **options,
) -> RelayEngine:
    client = httpx.AsyncClient(
        base_url="http://sensor-server", transport=httpx.MockTransport(handler)
    )
    return RelayEngine(client=client, sleep=sleep, **options)


def _collect(relay: RelayEngine, stream: AsyncIterator[Sample]) -> List[Sample]:
    async def consume() -> List[Sample]:
        try:
            return [sample async for sample in stream]
        finally:
            await relay.aclose()

    return asyncio.run(consume())


def test_build_query_omits_unset_parameters() -> None:
    assert build_query(sensorId=None, limit=5) == {"limit": 5}
    assert build_query(sensorCount=None, limit=None) == {}


def test_relays_single_sensor_stream() -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200, content=_ndjson(SAMPLES), headers={"content-type": "application/x-ndjson"}
        )

    sleep = _RecordingSleep()
    relay = _relay(handler, sleep)

    samples = _collect(relay, relay.get_sensor_stream(42, 3))

    assert samples == SAMPLES
    assert len(requests) == 1
    assert requests[0].url.path == "/api/sensors/stream"
    assert dict(requests[0].url.params) == {"sensorId": "42", "limit": "3"}
    assert sleep.delays == []


def test_multi_stream_omits_unset_query_parameters() -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=b"")

    relay = _relay(handler, _RecordingSleep())

    assert _collect(relay, relay.get_multiple_sensor_stream(None, None)) == []
    assert requests[0].url.path == "/api/sensors/stream/multi"
    assert not requests[0].url.params


def test_refused_connection_retries_with_backoff_then_ends_empty() -> None:
    attempts: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("Connection refused", request=request)

    sleep = _RecordingSleep()
    relay = _relay(handler, sleep)

    samples = _collect(relay, relay.get_sensor_stream(1, 5))

    assert samples == []
    assert len(attempts) == 4
    assert sleep.delays == [1.0, 2.0, 4.0]


def test_server_error_is_retried() -> None:
    statuses = iter([503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status_code = next(statuses)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": "unavailable"})
        return httpx.Response(200, content=_ndjson(SAMPLES))

    sleep = _RecordingSleep()
    relay = _relay(handler, sleep)

    assert _collect(relay, relay.get_sensor_stream(42, 3)) == SAMPLES
    assert sleep.delays == [1.0]


def test_mid_stream_failure_restarts_from_scratch() -> None:
    bodies = iter([_ndjson(SAMPLES[:1]) + b"{not json}\n", _ndjson(SAMPLES[:1])])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=next(bodies))

    sleep = _RecordingSleep()
    relay = _relay(handler, sleep)

    samples = _collect(relay, relay.get_sensor_stream(42, 1))

    assert samples == [SAMPLES[0], SAMPLES[0]]
    assert sleep.delays == [1.0]


def test_idle_upstream_times_out() -> None:
    attempts: List[httpx.Request] = []

    async def slow_body() -> AsyncIterator[bytes]:
        yield _ndjson(SAMPLES[:1])
        await asyncio.sleep(5)
        yield _ndjson(SAMPLES[1:2])

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(200, content=slow_body())

    sleep = _RecordingSleep()
    relay = _relay(handler, sleep, request_timeout=0.05, max_retries=0)

    samples = _collect(relay, relay.get_sensor_stream(42, 2))

    assert samples == SAMPLES[:1]
    assert len(attempts) == 1
    assert sleep.delays == []


def test_closing_relay_stream_stops_without_retrying() -> None:
    attempts: List[httpx.Request] = []

    async def endless_body() -> AsyncIterator[bytes]:
        while True:
            yield _ndjson(SAMPLES[:1])
            await asyncio.sleep(0.01)

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(200, content=endless_body())

    sleep = _RecordingSleep()
    relay = _relay(handler, sleep)

    async def scenario() -> Sample:
        stream = relay.get_sensor_stream(42, None)
        try:
            first = await stream.__anext__()
            await stream.aclose()
            await asyncio.sleep(0.05)
            return first
        finally:
            await relay.aclose()

    assert asyncio.run(scenario()) == SAMPLES[0]
    assert len(attempts) == 1
    assert sleep.delays == []
