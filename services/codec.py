"""NDJSON encoding of samples."""

from __future__ import annotations

from pydantic import ValidationError

from app.schemas import SamplePayload
from models.records import Sample
from services.errors import InvalidArgumentError

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def encode_sample(sample: Sample) -> str:
    """Serialize a sample as one newline-terminated JSON object."""
    return SamplePayload.from_sample(sample).model_dump_json() + "\n"


def decode_sample(line: str | bytes) -> Sample:
    try:
        payload = SamplePayload.model_validate_json(line)
    except ValidationError as exc:
        raise InvalidArgumentError(f"Malformed sample line: {exc.error_count()} error(s)") from exc
    return payload.to_sample()
