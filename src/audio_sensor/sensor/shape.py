"""Observation shape derivation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from audio_sensor.audio.config import SampleType, SensorConfig
from audio_sensor.audio.features import FrequencyMapper


@dataclass(frozen=True)
class ObservationShape:
    """Observation shape (height, width, channels) of the audio sensor."""

    height: int
    width: int
    channels: int
    signal_channels: int
    samples_per_channel: int

    @property
    def positions(self) -> int:
        """Cells per channel, including padding."""
        return self.width * self.height

    def to_tuple(self) -> Tuple[int, int, int]:
        return (self.height, self.width, self.channels)

    def __str__(self) -> str:
        return f"Sensor shape: {self.height} x {self.width} x {self.channels}"


def squarish_dimensions(samples_per_channel: int) -> Tuple[int, int]:
    """Near-square (width, height) with width * height >= samples_per_channel."""
    if samples_per_channel < 1:
        raise ValueError("samples_per_channel must be >= 1")
    # ceil(sqrt(n)) without float rounding
    w = math.isqrt(samples_per_channel - 1) + 1
    h = w - (w * w - samples_per_channel) // w
    return w, h


def spectrum_band(config: SensorConfig) -> Tuple[int, int]:
    """Observed FFT band indices (min, max inclusive) for a config."""
    mapper = FrequencyMapper(config.fft_resolution, config.sample_rate)
    return mapper.band_indices(config.fft_min_frequency, config.fft_max_frequency)


def samples_per_channel(config: SensorConfig) -> int:
    if config.sample_type == SampleType.SPECTRUM:
        lo, hi = spectrum_band(config)
        return hi - lo + 1
    return config.step_samples


def resolve_shape(config: SensorConfig) -> ObservationShape:
    """Derive the observation shape from a config."""
    spc = samples_per_channel(config)
    width, height = squarish_dimensions(spc)
    return ObservationShape(
        height=height,
        width=width,
        channels=config.buffer_length * config.signal_channels,
        signal_channels=config.signal_channels,
        samples_per_channel=spc,
    )
