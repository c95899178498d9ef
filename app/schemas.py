"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from models.records import AggregatorSnapshot, Sample

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class SamplePayload(BaseModel):
    """One NDJSON line of a sensor stream."""

    model_config = ConfigDict(frozen=True)

    sensor_id: int = Field(..., ge=INT64_MIN, le=INT64_MAX)
    timestamp: int = Field(..., description="Milliseconds since the Unix epoch.")
    temperature: float
    humidity: float
    pressure: float
    value: float
    anomaly: bool

    @classmethod
    def from_sample(cls, sample: Sample) -> "SamplePayload":
        return cls(
            sensor_id=sample.sensor_id,
            timestamp=sample.timestamp,
            temperature=sample.temperature,
            humidity=sample.humidity,
            pressure=sample.pressure,
            value=sample.value,
            anomaly=sample.anomaly,
        )

    def to_sample(self) -> Sample:
        return Sample(
            sensor_id=self.sensor_id,
            timestamp=self.timestamp,
            temperature=self.temperature,
            humidity=self.humidity,
            pressure=self.pressure,
            value=self.value,
            anomaly=self.anomaly,
        )


class TemperatureStats(BaseModel):
    """Running temperature statistics for one sensor."""

    count: int = Field(..., ge=0)
    sum: float
    min: float
    max: float
    average: float

    @classmethod
    def from_snapshot(cls, snapshot: AggregatorSnapshot) -> "TemperatureStats":
        return cls(
            count=snapshot.count,
            sum=snapshot.sum,
            min=snapshot.min,
            max=snapshot.max,
            average=snapshot.average,
        )


class BulkGenerationRequest(BaseModel):
    sensor_ids: List[int] = Field(..., min_length=1, max_length=1000)


class BulkGenerationResponse(BaseModel):
    """Samples produced by one bulk generation call, in ascending id order."""

    data: List[SamplePayload]
    count: int = Field(..., ge=0)
    timestamp: int


class GenerationMetrics(BaseModel):
    total_generated: int = Field(..., ge=0)
    sensors: int = Field(..., ge=0)


class ErrorResponse(BaseModel):
    """Envelope returned for failed non-stream requests."""

    timestamp: datetime
    status: int
    error: str
    message: str
    path: str


StatisticsBySensor = Dict[str, TemperatureStats]
