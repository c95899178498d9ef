"""HTTP routes of the relay (client) tier."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from app.api import ndjson_response
from app.schemas import INT32_MAX, INT32_MIN, INT64_MAX, INT64_MIN
from services.relay import RelayEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/client", tags=["client"])


def get_relay_engine(request: Request) -> RelayEngine:
    return request.app.state.relay_engine


@router.get(
    "/sensors",
    response_class=StreamingResponse,
    summary="Relay the server stream for one sensor, or the default multi-sensor stream.",
)
async def get_sensors(
    sensor_id: Optional[int] = Query(None, alias="sensorId", ge=INT64_MIN, le=INT64_MAX),
    limit: Optional[int] = Query(None, ge=INT32_MIN, le=INT32_MAX),
    relay: RelayEngine = Depends(get_relay_engine),
) -> StreamingResponse:
    logger.info(
        "Client received request for sensors",
        extra={"sensor_id": sensor_id, "limit": limit},
    )
    if sensor_id is not None:
        return ndjson_response(relay.get_sensor_stream(sensor_id, limit))
    return ndjson_response(relay.get_multiple_sensor_stream(None, limit))


@router.get(
    "/sensors/multi",
    response_class=StreamingResponse,
    summary="Relay the server's multi-sensor stream.",
)
async def get_multiple_sensors(
    sensor_count: Optional[int] = Query(None, alias="sensorCount", ge=INT32_MIN, le=INT32_MAX),
    limit: Optional[int] = Query(None, ge=INT32_MIN, le=INT32_MAX),
    relay: RelayEngine = Depends(get_relay_engine),
) -> StreamingResponse:
    logger.info(
        "Client received request for multiple sensors",
        extra={"sensor_count": sensor_count, "limit": limit},
    )
    return ndjson_response(relay.get_multiple_sensor_stream(sensor_count, limit))
