"""Per-step audio sampling pipeline."""

from audio_sensor.pipeline.proxy import SamplerProxy
from audio_sensor.pipeline.sampling_loop import (
    AudioSampler,
    SamplingPipeline,
    SensorState,
    build_state,
    reconcile,
)

__all__ = [
    "AudioSampler",
    "SamplerProxy",
    "SamplingPipeline",
    "SensorState",
    "build_state",
    "reconcile",
]
