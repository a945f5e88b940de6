"""Observation shape and temporal buffering."""

from audio_sensor.sensor.buffer import OutOfBoundsError, TemporalRingBuffer
from audio_sensor.sensor.shape import ObservationShape, resolve_shape

__all__ = [
    "ObservationShape",
    "OutOfBoundsError",
    "TemporalRingBuffer",
    "resolve_shape",
]
