from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_SERVER_URL = "http://localhost:8080"
DEFAULT_RELAY_URL = "http://localhost:8081"
DEFAULT_TIMEOUT = 30.0

_SERVER_URL_ENV = "SENSOR_API_URL"
_RELAY_URL_ENV = "RELAY_API_URL"
_TIMEOUT_ENV = "CLI_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    server_url: str = DEFAULT_SERVER_URL
    relay_url: str = DEFAULT_RELAY_URL
    timeout: float = DEFAULT_TIMEOUT


def _read_float(value: Optional[str], default: float) -> float:
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


def load_config(
    server_url: Optional[str] = None,
    relay_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> CLIConfig:
    server = server_url or os.getenv(_SERVER_URL_ENV) or DEFAULT_SERVER_URL
    relay = relay_url or os.getenv(_RELAY_URL_ENV) or DEFAULT_RELAY_URL
    if timeout is None:
        timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_TIMEOUT)
    return CLIConfig(
        server_url=server.rstrip("/"),
        relay_url=relay.rstrip("/"),
        timeout=timeout,
    )
