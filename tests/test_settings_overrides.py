from __future__ import annotations

from typing import Iterable

from services.relay import build_relay_engine
from services.stream import build_default_stream_engine
from services.synthesizer import build_default_synthesizer
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch) -> None:
    monkeypatch.setenv("APP_SENSOR_SERVER_URL", "http://upstream:9000/")
    monkeypatch.setenv("SENSOR_HISTORY_SIZE", "10")
    monkeypatch.setenv("STREAM_TICK_MS", "20")
    monkeypatch.setenv("STREAM_BATCH_SIZE", "4")
    monkeypatch.setenv("STREAM_OVERFLOW_CAPACITY", "64")
    monkeypatch.setenv("STREAM_WORKER_COUNT", "2")
    monkeypatch.setenv("RELAY_MAX_RETRIES", "0")
    monkeypatch.setenv("RELAY_BACKOFF_SECONDS", "0.5")

    caches = (get_settings, build_default_synthesizer, build_default_stream_engine)
    _clear_caches(caches)

    try:
        settings = get_settings()
        engine = build_default_stream_engine()
        relay = build_relay_engine()

        assert settings.sensor_server_url == "http://upstream:9000"
        assert engine.synthesizer.history_size == 10
        assert engine.tick_interval == 0.02
        assert engine.batch_size == 4
        assert engine.overflow_capacity == 64
        assert engine.workers == 2
        assert relay.max_retries == 0
        assert relay.backoff == 0.5
        assert relay._client.base_url.host == "upstream"
        assert relay._client.base_url.port == 9000
    finally:
        _clear_caches(caches)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("STREAM_TICK_MS", "fast")
    monkeypatch.setenv("STREAM_WORKER_COUNT", "0")
    monkeypatch.setenv("RELAY_TIMEOUT_SECONDS", "-1")
    monkeypatch.setenv("RELAY_MAX_RETRIES", "-3")
    monkeypatch.setenv("APP_SENSOR_SERVER_URL", "   ")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    get_settings.cache_clear()
    try:
        settings = get_settings()

        assert settings.tick_ms == 100
        assert settings.stream_workers == 4
        assert settings.relay_timeout == 30.0
        assert settings.relay_max_retries == 3
        assert settings.sensor_server_url == "http://localhost:8080"
        assert settings.log_level == "DEBUG"
        assert settings.overflow_capacity == 512
        assert settings.batch_size == 16
    finally:
        get_settings.cache_clear()
