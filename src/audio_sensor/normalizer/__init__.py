"""Peak normalization for scaled audio samples."""

from audio_sensor.normalizer.peak_normalizer import CEILING, MIN_PEAK, PeakNormalizer

__all__ = ["CEILING", "MIN_PEAK", "PeakNormalizer"]
