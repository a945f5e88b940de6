"""Audio capture, configuration and feature math."""

from audio_sensor.audio.config import SampleType, SensorConfig, SignalType
from audio_sensor.audio.collector import (
    ArrayCapture,
    AudioCollector,
    CaptureSource,
    CaptureUnavailableError,
)
from audio_sensor.audio.features import FrequencyMapper, rescale

__all__ = [
    "ArrayCapture",
    "AudioCollector",
    "CaptureSource",
    "CaptureUnavailableError",
    "FrequencyMapper",
    "SampleType",
    "SensorConfig",
    "SignalType",
    "rescale",
]
