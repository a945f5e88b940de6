"""Unit tests for observation shape derivation."""

from __future__ import annotations

import unittest

from audio_sensor.audio.config import SampleType, SensorConfig, SignalType
from audio_sensor.sensor.shape import resolve_shape, spectrum_band, squarish_dimensions


class TestSquarishDimensions(unittest.TestCase):
    """Tests for squarish_dimensions()."""

    def test_perfect_square(self) -> None:
        self.assertEqual(squarish_dimensions(100), (10, 10))

    def test_one_over_square(self) -> None:
        self.assertEqual(squarish_dimensions(101), (11, 10))

    def test_single_sample(self) -> None:
        self.assertEqual(squarish_dimensions(1), (1, 1))

    def test_always_covers_samples(self) -> None:
        for n in range(1, 5000):
            w, h = squarish_dimensions(n)
            self.assertGreaterEqual(w * h, n)
            self.assertLess(w * (h - 1), n)

    def test_invalid(self) -> None:
        with self.assertRaises(ValueError):
            squarish_dimensions(0)


class TestResolveShape(unittest.TestCase):
    """Tests for resolve_shape()."""

    def test_amplitude_stereo(self) -> None:
        config = SensorConfig(sample_type=SampleType.AMPLITUDE, buffer_length=4)
        shape = resolve_shape(config)
        self.assertEqual(shape.samples_per_channel, 1024)
        self.assertEqual(shape.to_tuple(), (32, 32, 8))
        self.assertEqual(str(shape), "Sensor shape: 32 x 32 x 8")

    def test_amplitude_mono_channels(self) -> None:
        config = SensorConfig(sample_type=SampleType.AMPLITUDE, signal_type=SignalType.MONO, buffer_length=3)
        self.assertEqual(resolve_shape(config).channels, 3)

    def test_spectrum_uses_observed_band(self) -> None:
        config = SensorConfig(fft_bit_width=10).with_frequency_band(100.0, 5000.0)
        lo, hi = spectrum_band(config)
        shape = resolve_shape(config)
        self.assertEqual(shape.samples_per_channel, hi - lo + 1)
        self.assertGreaterEqual(shape.width * shape.height, shape.samples_per_channel)
        self.assertLess(shape.samples_per_channel, config.fft_resolution)

    def test_full_band(self) -> None:
        config = SensorConfig(fft_bit_width=10, sample_rate=48_000)
        lo, hi = spectrum_band(config)
        self.assertEqual((lo, hi), (0, 852))
        self.assertEqual(resolve_shape(config).samples_per_channel, 853)

    def test_idempotent(self) -> None:
        config = SensorConfig(buffer_length=7).with_frequency_band(200.0, 8000.0)
        self.assertEqual(resolve_shape(config), resolve_shape(config))


if __name__ == "__main__":
    unittest.main(verbosity=2)
