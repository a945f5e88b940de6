"""Audio sensor - capture, feature scaling, peak normalization, temporal buffer, sampling pipeline."""

from audio_sensor.audio.config import SampleType, SensorConfig, SignalType
from audio_sensor.pipeline import SamplerProxy, SamplingPipeline

__all__ = [
    "SampleType",
    "SamplerProxy",
    "SamplingPipeline",
    "SensorConfig",
    "SignalType",
]
