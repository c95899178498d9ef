"""Error kinds raised by the telemetry core."""

from __future__ import annotations


class TelemetryError(Exception):
    """Base class for all telemetry failures."""


class InvalidArgumentError(TelemetryError, ValueError):
    """Caller supplied malformed input."""


class OutOfRangeError(TelemetryError, IndexError):
    """Indexed access beyond the bounds of a container."""


class UpstreamUnavailableError(TelemetryError):
    """The relay exhausted its retry budget against the sensor server."""


class InternalError(TelemetryError):
    """An internal invariant was violated."""
