"""HTTP routes of the sensor server tier."""

from __future__ import annotations

from contextlib import aclosing
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from fastapi.responses import StreamingResponse

from app.schemas import (
    INT32_MAX,
    INT32_MIN,
    INT64_MAX,
    INT64_MIN,
    BulkGenerationRequest,
    BulkGenerationResponse,
    GenerationMetrics,
    SamplePayload,
    StatisticsBySensor,
    TemperatureStats,
)
from models.records import Sample
from services.codec import NDJSON_MEDIA_TYPE, encode_sample
from services.stream import StreamEngine, build_default_stream_engine
from services.synthesizer import SampleSynthesizer, build_default_synthesizer

router = APIRouter(prefix="/api/sensors", tags=["sensors"])
health_router = APIRouter()


def get_stream_engine() -> StreamEngine:
    return build_default_stream_engine()


def get_synthesizer() -> SampleSynthesizer:
    return build_default_synthesizer()


async def encode_ndjson(samples: AsyncIterator[Sample]) -> AsyncIterator[str]:
    """Render a sample sequence as NDJSON, closing it when the client goes away."""
    async with aclosing(samples) as source:
        async for sample in source:
            yield encode_sample(sample)


def ndjson_response(samples: AsyncIterator[Sample]) -> StreamingResponse:
    return StreamingResponse(encode_ndjson(samples), media_type=NDJSON_MEDIA_TYPE)


@router.get(
    "/stream",
    response_class=StreamingResponse,
    summary="Stream samples for one sensor, or for the default sensor set when no id is given.",
)
async def stream_sensor_data(
    sensor_id: Optional[int] = Query(None, alias="sensorId", ge=INT64_MIN, le=INT64_MAX),
    limit: Optional[int] = Query(None, ge=INT32_MIN, le=INT32_MAX),
    engine: StreamEngine = Depends(get_stream_engine),
) -> StreamingResponse:
    if sensor_id is not None:
        return ndjson_response(engine.stream(sensor_id, limit))
    return ndjson_response(engine.stream_multi(None, limit))


@router.get(
    "/stream/multi",
    response_class=StreamingResponse,
    summary="Stream samples for sensors 1..sensorCount in parallel.",
)
async def stream_multiple_sensors(
    sensor_count: Optional[int] = Query(None, alias="sensorCount", ge=INT32_MIN, le=INT32_MAX),
    limit: Optional[int] = Query(None, ge=INT32_MIN, le=INT32_MAX),
    engine: StreamEngine = Depends(get_stream_engine),
) -> StreamingResponse:
    return ndjson_response(engine.stream_multi(sensor_count, limit))


@router.post(
    "/bulk",
    response_model=BulkGenerationResponse,
    summary="Generate one sample for each listed sensor, in ascending id order.",
)
def generate_bulk(
    payload: BulkGenerationRequest,
    synthesizer: SampleSynthesizer = Depends(get_synthesizer),
) -> BulkGenerationResponse:
    result = synthesizer.generate_bulk(payload.sensor_ids)
    return BulkGenerationResponse(
        data=[SamplePayload.from_sample(sample) for sample in result.data],
        count=result.count,
        timestamp=result.timestamp,
    )


@router.get(
    "/stats",
    response_model=StatisticsBySensor,
    summary="Temperature statistics for every known sensor.",
)
def get_all_statistics(
    synthesizer: SampleSynthesizer = Depends(get_synthesizer),
) -> StatisticsBySensor:
    return {
        key: TemperatureStats.from_snapshot(snapshot)
        for key, snapshot in synthesizer.all_statistics().items()
    }


@router.get(
    "/metrics",
    response_model=GenerationMetrics,
    summary="Process-wide generation counters.",
)
def get_metrics(
    synthesizer: SampleSynthesizer = Depends(get_synthesizer),
) -> GenerationMetrics:
    return GenerationMetrics(
        total_generated=synthesizer.total_generated(),
        sensors=synthesizer.sensor_count(),
    )


@router.delete(
    "/history",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Drop all retained history and statistics.",
)
def clear_history(
    synthesizer: SampleSynthesizer = Depends(get_synthesizer),
) -> Response:
    synthesizer.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{sensor_id}/history",
    response_model=List[SamplePayload],
    summary="Retained samples for one sensor, oldest first.",
)
def get_history(
    sensor_id: int = Path(..., ge=INT64_MIN, le=INT64_MAX),
    limit: int = Query(0, ge=INT32_MIN, le=INT32_MAX),
    synthesizer: SampleSynthesizer = Depends(get_synthesizer),
) -> List[SamplePayload]:
    return [SamplePayload.from_sample(sample) for sample in synthesizer.history(sensor_id, limit)]


@router.get(
    "/{sensor_id}/stats",
    response_model=TemperatureStats,
    summary="Temperature statistics for one sensor.",
)
def get_sensor_statistics(
    sensor_id: int = Path(..., ge=INT64_MIN, le=INT64_MAX),
    synthesizer: SampleSynthesizer = Depends(get_synthesizer),
) -> TemperatureStats:
    return TemperatureStats.from_snapshot(synthesizer.temperature_stats(sensor_id))


@health_router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
