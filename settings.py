from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_SENSOR_SERVER_URL_ENV = "APP_SENSOR_SERVER_URL"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_HISTORY_SIZE_ENV = "SENSOR_HISTORY_SIZE"
_TICK_MS_ENV = "STREAM_TICK_MS"
_BATCH_SIZE_ENV = "STREAM_BATCH_SIZE"
_OVERFLOW_CAPACITY_ENV = "STREAM_OVERFLOW_CAPACITY"
_STREAM_WORKERS_ENV = "STREAM_WORKER_COUNT"
_RELAY_TIMEOUT_ENV = "RELAY_TIMEOUT_SECONDS"
_RELAY_MAX_RETRIES_ENV = "RELAY_MAX_RETRIES"
_RELAY_BACKOFF_ENV = "RELAY_BACKOFF_SECONDS"
_RELAY_MAX_CONNECTIONS_ENV = "RELAY_MAX_CONNECTIONS"


@dataclass(frozen=True)
class Settings:
    sensor_server_url: str
    log_level: str
    history_size: int
    tick_ms: int
    batch_size: int
    overflow_capacity: int
    stream_workers: int
    relay_timeout: float
    relay_max_retries: int
    relay_backoff: float
    relay_max_connections: int


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_int_env(name: str, default: int, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        sensor_server_url=_read_str_env(
            _SENSOR_SERVER_URL_ENV, "http://localhost:8080"
        ).rstrip("/"),
        log_level=_read_log_level("INFO"),
        history_size=_read_int_env(_HISTORY_SIZE_ENV, 100),
        tick_ms=_read_int_env(_TICK_MS_ENV, 100),
        batch_size=_read_int_env(_BATCH_SIZE_ENV, 16),
        overflow_capacity=_read_int_env(_OVERFLOW_CAPACITY_ENV, 512),
        stream_workers=_read_int_env(_STREAM_WORKERS_ENV, 4),
        relay_timeout=_read_float_env(_RELAY_TIMEOUT_ENV, 30.0),
        relay_max_retries=_read_int_env(_RELAY_MAX_RETRIES_ENV, 3, minimum=0),
        relay_backoff=_read_float_env(_RELAY_BACKOFF_ENV, 1.0),
        relay_max_connections=_read_int_env(_RELAY_MAX_CONNECTIONS_ENV, 100),
    )
