import json
from collections import Counter
from datetime import datetime
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.api import get_stream_engine, get_synthesizer
from app.main import create_server_app
from services.stream import StreamEngine, build_default_stream_engine
from services.synthesizer import SampleSynthesizer, build_default_synthesizer

SAMPLE_KEYS = {"sensor_id", "timestamp", "temperature", "humidity", "pressure", "value", "anomaly"}


@pytest.fixture
def synthesizer() -> SampleSynthesizer:
    return SampleSynthesizer()


@pytest.fixture
def api_client(synthesizer: SampleSynthesizer) -> Iterator[TestClient]:
    app = create_server_app()
    engine = StreamEngine(synthesizer=synthesizer)
    app.dependency_overrides[get_stream_engine] = lambda: engine
    app.dependency_overrides[get_synthesizer] = lambda: synthesizer
    with TestClient(app) as client:
        yield client


def _lines(body: str) -> List[dict]:
    return [json.loads(line) for line in body.splitlines() if line.strip()]


def test_lifespan_clears_cached_engine() -> None:
    app = create_server_app()

    with TestClient(app):
        engine_during = build_default_stream_engine()

    engine_after = build_default_stream_engine()
    try:
        assert engine_after is not engine_during
        assert engine_after.synthesizer is not engine_during.synthesizer
    finally:
        build_default_stream_engine.cache_clear()
        build_default_synthesizer.cache_clear()


def test_single_sensor_stream(api_client: TestClient) -> None:
    response = api_client.get("/api/sensors/stream", params={"sensorId": 42, "limit": 3})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/x-ndjson"
    rows = _lines(response.text)
    assert len(rows) == 3
    assert all(set(row) == SAMPLE_KEYS for row in rows)
    assert all(row["sensor_id"] == 42 and row["anomaly"] is False for row in rows)
    timestamps = [row["timestamp"] for row in rows]
    assert all(earlier < later for earlier, later in zip(timestamps, timestamps[1:]))


def test_single_sensor_stream_default_limit(api_client: TestClient) -> None:
    response = api_client.get("/api/sensors/stream", params={"sensorId": 1})

    assert response.status_code == 200
    assert len(_lines(response.text)) == 10


def test_stream_without_sensor_id_uses_multi_defaults(api_client: TestClient) -> None:
    response = api_client.get("/api/sensors/stream")

    rows = _lines(response.text)
    assert Counter(row["sensor_id"] for row in rows) == {1: 4, 2: 4, 3: 4, 4: 4, 5: 4}


def test_multi_sensor_stream(api_client: TestClient) -> None:
    response = api_client.get(
        "/api/sensors/stream/multi", params={"sensorCount": 4, "limit": 20}
    )

    assert response.status_code == 200
    rows = _lines(response.text)
    assert len(rows) == 20
    assert Counter(row["sensor_id"] for row in rows) == {1: 5, 2: 5, 3: 5, 4: 5}


def test_invalid_query_returns_bad_request_envelope(api_client: TestClient) -> None:
    response = api_client.get("/api/sensors/stream", params={"sensorId": "abc"})

    assert response.status_code == 400
    body = response.json()
    assert set(body) == {"timestamp", "status", "error", "message", "path"}
    assert body["status"] == 400
    assert body["error"] == "BadRequest"
    assert body["path"] == "/api/sensors/stream"
    assert "sensorId" in body["message"]
    datetime.fromisoformat(body["timestamp"])


def test_sensor_id_beyond_int64_is_rejected(api_client: TestClient) -> None:
    response = api_client.get("/api/sensors/stream", params={"sensorId": str(2**63)})

    assert response.status_code == 400
    assert response.json()["error"] == "BadRequest"


def test_bulk_history_stats_and_metrics(api_client: TestClient) -> None:
    response = api_client.post("/api/sensors/bulk", json={"sensor_ids": [3, 1, 2, 1]})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 4
    assert [row["sensor_id"] for row in body["data"]] == [1, 1, 2, 3]

    history = api_client.get("/api/sensors/1/history").json()
    assert [row["sensor_id"] for row in history] == [1, 1]
    assert len(api_client.get("/api/sensors/1/history", params={"limit": 1}).json()) == 1

    stats = api_client.get("/api/sensors/1/stats").json()
    assert stats["count"] == 2
    assert stats["min"] <= stats["average"] <= stats["max"]

    all_stats = api_client.get("/api/sensors/stats").json()
    assert set(all_stats) == {"sensor_1", "sensor_2", "sensor_3"}

    metrics = api_client.get("/api/sensors/metrics").json()
    assert metrics == {"total_generated": 4, "sensors": 3}


def test_clear_history(api_client: TestClient, synthesizer: SampleSynthesizer) -> None:
    synthesizer.generate(5)

    response = api_client.delete("/api/sensors/history")

    assert response.status_code == 204
    assert api_client.get("/api/sensors/5/history").json() == []
    assert api_client.get("/api/sensors/5/stats").json() == {
        "count": 0,
        "sum": 0.0,
        "min": 0.0,
        "max": 0.0,
        "average": 0.0,
    }


def test_empty_bulk_request_is_rejected(api_client: TestClient) -> None:
    response = api_client.post("/api/sensors/bulk", json={"sensor_ids": []})

    assert response.status_code == 400
    assert response.json()["error"] == "BadRequest"


class _BrokenSynthesizer(SampleSynthesizer):
    def all_statistics(self):
        raise RuntimeError()


def test_unexpected_error_returns_internal_server_error_envelope() -> None:
    app = create_server_app()
    app.dependency_overrides[get_synthesizer] = lambda: _BrokenSynthesizer()

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/api/sensors/stats")

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "InternalServerError"
    assert body["status"] == 500
    assert body["message"] == "An unexpected error occurred"
    assert body["path"] == "/api/sensors/stats"


def test_healthcheck(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
