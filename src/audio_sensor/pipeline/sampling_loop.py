"""Per-step sampling loop: capture -> rescale -> peaks -> normalize -> buffer -> notify.

One call to `SamplingPipeline.step()` per agent decision step. The capture
source is injected so you can use live audio, a recording or a fake.

Config changes go through `configure()`, which reconciles the derived
shape, normalization state and buffer with the new settings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Tuple

import numpy as np

from audio_sensor.audio.collector import CaptureSource, CaptureUnavailableError
from audio_sensor.audio.config import SampleType, SensorConfig, SignalType
from audio_sensor.audio.features import rescale, rms, signed_unit
from audio_sensor.normalizer import PeakNormalizer
from audio_sensor.sensor.buffer import TemporalRingBuffer
from audio_sensor.sensor.shape import ObservationShape, resolve_shape, spectrum_band

logger = logging.getLogger(__name__)

# (step_index, window_complete)
StepCallback = Callable[[int, bool], None]


class AudioSampler(Protocol):
    """Capabilities shared by the pipeline and its proxies."""

    sampling_enabled: bool

    def subscribe(self, callback: StepCallback) -> None:  # pragma: no cover - protocol
        ...

    def unsubscribe(self, callback: StepCallback) -> None:  # pragma: no cover - protocol
        ...


@dataclass(frozen=True)
class SensorState:
    """Derived state owned by one pipeline; rebuilt when sizes change."""

    shape: ObservationShape
    band: Tuple[int, int]
    normalizer: PeakNormalizer
    buffer: TemporalRingBuffer


def _band(config: SensorConfig, shape: ObservationShape) -> Tuple[int, int]:
    if config.sample_type == SampleType.SPECTRUM:
        return spectrum_band(config)
    return 0, shape.samples_per_channel - 1


def _new_normalizer(config: SensorConfig) -> PeakNormalizer:
    size = config.fft_resolution if config.sample_type == SampleType.SPECTRUM else 1
    return PeakNormalizer(size=size)


def _normalization_invalid(old: SensorConfig, new: SensorConfig) -> bool:
    if old.sample_type != new.sample_type:
        return True
    if new.sample_type == SampleType.SPECTRUM:
        return (
            old.fft_bit_width != new.fft_bit_width
            or old.signal_type != new.signal_type
            or old.fft_window != new.fft_window
            or old.fft_floor_log != new.fft_floor_log
        )
    return old.signal_type != new.signal_type or old.amp_floor_log != new.amp_floor_log


def build_state(config: SensorConfig) -> SensorState:
    """Allocate shape, normalization state and buffer for a config."""
    shape = resolve_shape(config)
    return SensorState(
        shape=shape,
        band=_band(config, shape),
        normalizer=_new_normalizer(config),
        buffer=TemporalRingBuffer(shape, config.buffer_length),
    )


def reconcile(old: SensorConfig, new: SensorConfig, state: SensorState) -> SensorState:
    """Bring derived state in line with a config change.

    Returns `state` itself when nothing size- or normalization-relevant
    changed. A new buffer starts at step 0 with zeroed contents. Changing
    only the frequency band keeps spectrum peaks, since those cover the
    full resolution.
    """
    shape = resolve_shape(new)
    band = _band(new, shape)
    reset_norm = _normalization_invalid(old, new)
    if shape == state.shape and band == state.band and not reset_norm:
        return state

    buffer = state.buffer
    if shape != state.shape:
        logger.debug("Reallocating buffer: %s -> %s", state.shape, shape)
        buffer = TemporalRingBuffer(shape, new.buffer_length)

    normalizer = state.normalizer
    if reset_norm:
        logger.info("Resetting normalization, sample type: %s", new.sample_type.value)
        normalizer = _new_normalizer(new)

    return SensorState(shape=shape, band=band, normalizer=normalizer, buffer=buffer)


class SamplingPipeline:
    """Turns captured audio into a (height, width, channels) observation.

    Interface:
      pipeline = SamplingPipeline(config=SensorConfig(), capture=ArrayCapture(...))
      pipeline.subscribe(on_step)      # on_step(step_index, window_complete)
      pipeline.step()                  # once per decision step
      obs = pipeline.observation()
      pipeline.reset()                 # episode boundary
    """

    def __init__(
        self,
        config: Optional[SensorConfig] = None,
        capture: Optional[CaptureSource] = None,
        sampling_enabled: bool = True,
    ):
        self.config = config or SensorConfig()
        self.capture = capture
        self.sampling_enabled = sampling_enabled
        # Set by calibration tooling; never during training.
        self.calibrating = False
        self.is_clipping = False

        self._state = build_state(self.config)
        self._observers: List[StepCallback] = []
        self._notifying = False
        self._left = np.zeros(0, dtype=np.float64)
        self._right = np.zeros(0, dtype=np.float64)

    # -- configuration -------------------------------------------------

    def configure(self, config: SensorConfig) -> None:
        """Apply a new config between steps."""
        if self._notifying:
            raise RuntimeError("configuration cannot change from a step notification")
        self._state = reconcile(self.config, config, self._state)
        self.config = config

    @property
    def name(self) -> str:
        return self.config.sensor_name

    @property
    def shape(self) -> ObservationShape:
        return self._state.shape

    @property
    def observation_shape(self) -> Tuple[int, int, int]:
        return self._state.shape.to_tuple()

    @property
    def samples_per_channel(self) -> int:
        return self._state.shape.samples_per_channel

    @property
    def band(self) -> Tuple[int, int]:
        """Observed sample indices, min and max inclusive."""
        return self._state.band

    @property
    def buffer(self) -> TemporalRingBuffer:
        return self._state.buffer

    @property
    def normalizer(self) -> PeakNormalizer:
        return self._state.normalizer

    @property
    def measure_peaks(self) -> bool:
        return self.config.normalize and self.calibrating

    # -- observers -----------------------------------------------------

    def subscribe(self, callback: StepCallback) -> None:
        self._observers.append(callback)

    def unsubscribe(self, callback: StepCallback) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self, step_index: int, window_complete: bool) -> None:
        self._notifying = True
        try:
            for callback in list(self._observers):
                try:
                    callback(step_index, window_complete)
                except Exception:
                    logger.exception("Sampling observer %r failed", callback)
        finally:
            self._notifying = False

    # -- sampling ------------------------------------------------------

    def step(self) -> bool:
        """Sample one step into the buffer.

        Returns:
            True if a step was sampled, False if sampling is disabled or
            the capture source had no data.
        """
        if not self.sampling_enabled:
            return False
        if self.capture is None:
            logger.warning("Skipping sampling step: no capture source")
            return False

        try:
            left, right = self._acquire()
        except CaptureUnavailableError as exc:
            logger.warning("Skipping sampling step %d: %s", self.buffer.step_index, exc)
            return False

        self._left, self._right = left, right
        buffer = self.buffer
        buffer.begin_step(buffer.step_index)
        self.is_clipping = False

        if self.config.sample_type == SampleType.SPECTRUM:
            if self.config.signal_type == SignalType.MONO:
                self._sample_spectrum_mono()
            else:
                self._sample_spectrum_stereo()
        else:
            if self.config.signal_type == SignalType.MONO:
                self._sample_amplitude_mono()
            else:
                self._sample_amplitude_stereo()

        step_index, window_complete = buffer.advance_step()
        self._notify(step_index, window_complete)
        return True

    def _acquire(self) -> Tuple[np.ndarray, np.ndarray]:
        if self.config.sample_type == SampleType.SPECTRUM:
            n = self.config.fft_resolution
            samples = self.capture.read_spectrum(n, self.config.fft_window)
        else:
            n = self.samples_per_channel
            samples = self.capture.read_amplitude(n)
        if samples is None or samples[0] is None or samples[1] is None:
            raise CaptureUnavailableError("capture returned no samples")
        left = np.asarray(samples[0], dtype=np.float64).reshape(-1)
        right = np.asarray(samples[1], dtype=np.float64).reshape(-1)
        if len(left) != n or len(right) != n:
            raise ValueError(f"capture returned {len(left)}/{len(right)} samples, expected {n}")
        return left, right

    def _sample_spectrum_mono(self) -> None:
        lo, hi = self.band
        scaled = rescale((self._left + self._right) * 0.5, self.config.fft_floor)
        if self.measure_peaks:
            self.is_clipping = self.normalizer.measure(scaled)
        observed = scaled[lo : hi + 1]
        if self.config.normalize:
            observed = self.normalizer.normalize(observed, lo, hi + 1)
        self.buffer.write_block(observed)

    def _sample_spectrum_stereo(self) -> None:
        lo, hi = self.band
        floor = self.config.fft_floor
        scaled_l = rescale(self._left, floor)
        scaled_r = rescale(self._right, floor)
        if self.measure_peaks:
            self.is_clipping = self.normalizer.measure(scaled_l, scaled_r)
        observed_l = scaled_l[lo : hi + 1]
        observed_r = scaled_r[lo : hi + 1]
        if self.config.normalize:
            observed_l = self.normalizer.normalize(observed_l, lo, hi + 1)
            observed_r = self.normalizer.normalize(observed_r, lo, hi + 1)
        self.buffer.write_block(observed_l, observed_r)

    def _sample_amplitude_mono(self) -> None:
        # Mean can be negative, scaled is always positive.
        mean = (self._left + self._right) * 0.5
        scaled = rescale(mean, self.config.amp_floor)
        if self.measure_peaks:
            self.is_clipping = self.normalizer.measure(scaled)
        if self.config.normalize:
            scaled = self.normalizer.normalize(scaled)
        self.buffer.write_block(signed_unit(scaled, mean))

    def _sample_amplitude_stereo(self) -> None:
        floor = self.config.amp_floor
        scaled_l = rescale(self._left, floor)
        scaled_r = rescale(self._right, floor)
        if self.measure_peaks:
            self.is_clipping = self.normalizer.measure(scaled_l, scaled_r)
        if self.config.normalize:
            scaled_l = self.normalizer.normalize(scaled_l)
            scaled_r = self.normalizer.normalize(scaled_r)
        self.buffer.write_block(signed_unit(scaled_l, self._left), signed_unit(scaled_r, self._right))

    # -- episode / calibration -----------------------------------------

    def reset(self) -> None:
        """Episode boundary: restart at step 0 (buffer contents are kept)."""
        self.buffer.reset_cursor()

    def reset_normalization(self) -> None:
        """Clear measured peaks and expansion factors."""
        logger.info("Resetting normalization, sample type: %s", self.config.sample_type.value)
        self.normalizer.reset()

    def restore_normalization(self, factors: np.ndarray) -> None:
        """Replace normalization state with stored expansion factors."""
        factors = np.asarray(factors, dtype=np.float64).reshape(-1)
        if len(factors) != self.normalizer.size:
            raise ValueError(f"expected {self.normalizer.size} expansion factors, got {len(factors)}")
        state = self._state
        self._state = SensorState(
            shape=state.shape,
            band=state.band,
            normalizer=PeakNormalizer.from_factors(factors),
            buffer=state.buffer,
        )

    # -- observation and inspection ------------------------------------

    def observation(self) -> np.ndarray:
        """Read-only snapshot of the (height, width, channels) observation, values in [0, 1]."""
        obs = np.array(self.buffer.to_tensor(), copy=True)
        obs.flags.writeable = False
        return obs

    def get_fft_band_expansion(self, index: int) -> float:
        return self.normalizer.factor(index)

    def get_amplitude_expansion(self) -> float:
        return self.normalizer.factor(0)

    def get_lr_mean_sample_value(self, index: int) -> float:
        """Mean of the latest left and right samples; can be negative for amplitudes."""
        return float((self._left[index] + self._right[index]) * 0.5)

    def get_rms_level(self) -> Tuple[float, float]:
        """RMS of the latest sample batch as (left, right).

        Mono signals report the RMS of the left/right mean on both sides.
        """
        if self.config.signal_type == SignalType.MONO:
            level = rms((self._left + self._right) * 0.5)
            return level, level
        return rms(self._left), rms(self._right)
