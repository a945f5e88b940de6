"""Proxy that exposes a shared sampling pipeline to additional consumers."""

from __future__ import annotations

import logging
from typing import List, Tuple

import numpy as np

from audio_sensor.pipeline.sampling_loop import SamplingPipeline, StepCallback

logger = logging.getLogger(__name__)


class SamplerProxy:
    """Relays sampling control, step notifications and observations of one pipeline.

    The proxy never samples or writes; all reads go through the pipeline.
    """

    def __init__(self, pipeline: SamplingPipeline):
        self._pipeline = pipeline
        self._observers: List[StepCallback] = []
        pipeline.subscribe(self._forward)

    @property
    def name(self) -> str:
        return self._pipeline.name + "_Proxy"

    @property
    def sampling_enabled(self) -> bool:
        return self._pipeline.sampling_enabled

    @sampling_enabled.setter
    def sampling_enabled(self, value: bool) -> None:
        self._pipeline.sampling_enabled = value

    @property
    def observation_shape(self) -> Tuple[int, int, int]:
        return self._pipeline.observation_shape

    def observation(self) -> np.ndarray:
        return self._pipeline.observation()

    def subscribe(self, callback: StepCallback) -> None:
        self._observers.append(callback)

    def unsubscribe(self, callback: StepCallback) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def close(self) -> None:
        """Stop relaying notifications."""
        self._pipeline.unsubscribe(self._forward)

    def _forward(self, step_index: int, window_complete: bool) -> None:
        for callback in list(self._observers):
            try:
                callback(step_index, window_complete)
            except Exception:
                logger.exception("Proxy observer %r failed", callback)
