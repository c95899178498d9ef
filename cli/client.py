from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

import httpx
import typer

from cli.config import CLIConfig
from models.records import Sample
from services.codec import NDJSON_MEDIA_TYPE, decode_sample
from services.relay import MULTI_SENSOR_STREAM_PATH, SENSOR_STREAM_PATH, build_query

RELAY_SENSORS_PATH = "/api/client/sensors"
RELAY_MULTI_SENSORS_PATH = "/api/client/sensors/multi"


class ApiClient:
    """Blocking HTTP client for the sensor server and relay tiers."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._server = httpx.Client(base_url=config.server_url, timeout=config.timeout)
        self._relay = httpx.Client(base_url=config.relay_url, timeout=config.timeout)

    def close(self) -> None:
        self._server.close()
        self._relay.close()

    def stream_sensor(
        self, sensor_id: Optional[int], limit: Optional[int], direct: bool = False
    ) -> Iterator[Sample]:
        params = build_query(sensorId=sensor_id, limit=limit)
        if direct:
            return self._stream(self._server, SENSOR_STREAM_PATH, params)
        return self._stream(self._relay, RELAY_SENSORS_PATH, params)

    def stream_multi(
        self, sensor_count: Optional[int], limit: Optional[int], direct: bool = False
    ) -> Iterator[Sample]:
        params = build_query(sensorCount=sensor_count, limit=limit)
        if direct:
            return self._stream(self._server, MULTI_SENSOR_STREAM_PATH, params)
        return self._stream(self._relay, RELAY_MULTI_SENSORS_PATH, params)

    def get_history(self, sensor_id: int, limit: int = 0) -> List[Dict[str, Any]]:
        return self._get_json(f"/api/sensors/{sensor_id}/history", {"limit": limit})

    def get_stats(self, sensor_id: Optional[int] = None) -> Dict[str, Any]:
        if sensor_id is None:
            return self._get_json("/api/sensors/stats")
        return self._get_json(f"/api/sensors/{sensor_id}/stats")

    def get_metrics(self) -> Dict[str, Any]:
        return self._get_json("/api/sensors/metrics")

    def clear_history(self) -> None:
        try:
            response = self._server.delete("/api/sensors/history")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)

    def _stream(self, client: httpx.Client, path: str, params: Dict[str, int]) -> Iterator[Sample]:
        try:
            with client.stream(
                "GET", path, params=params, headers={"Accept": NDJSON_MEDIA_TYPE}
            ) as response:
                if response.is_error:
                    response.read()
                response.raise_for_status()
                for line in response.iter_lines():
                    if line.strip():
                        yield decode_sample(line)
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)

    def _get_json(self, path: str, params: Optional[Dict[str, int]] = None) -> Any:
        try:
            response = self._server.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("message")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_transport_error(exc: httpx.TransportError) -> None:
        typer.secho(f"Could not reach {exc.request.url}: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
