"""Unit tests for saving and loading normalization calibration."""

from __future__ import annotations

import os
import tempfile
import unittest

import numpy as np

from audio_sensor.audio.config import SampleType, SensorConfig, SignalType
from audio_sensor.calibration import load_calibration, save_calibration
from audio_sensor.pipeline import SamplingPipeline


class _Constant:
    def __init__(self, value: float):
        self.value = value

    def read_amplitude(self, n: int):
        return np.full(n, self.value), np.full(n, self.value)

    def read_spectrum(self, n: int, window: str = "rectangular"):
        return np.full(n, self.value), np.full(n, self.value)


def _calibrated(config: SensorConfig, value: float = 0.1) -> SamplingPipeline:
    pipeline = SamplingPipeline(config=config, capture=_Constant(value))
    pipeline.calibrating = True
    pipeline.step()
    pipeline.calibrating = False
    return pipeline


class TestCalibration(unittest.TestCase):
    """Tests for save_calibration() / load_calibration()."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_restores_spectrum_factors(self) -> None:
        config = SensorConfig(fft_bit_width=6, normalize=True)
        source = _calibrated(config)
        path = save_calibration(os.path.join(self.tmp, "spectrum"), source)
        self.assertEqual(path.suffix, ".npz")

        target = SamplingPipeline(config=config)
        load_calibration(path, target)
        np.testing.assert_allclose(target.normalizer.factors, source.normalizer.factors)
        np.testing.assert_allclose(target.normalizer.peaks, source.normalizer.peaks)

    def test_restores_amplitude_factor(self) -> None:
        config = SensorConfig(sample_type=SampleType.AMPLITUDE, normalize=True)
        source = _calibrated(config, value=0.5)
        path = save_calibration(os.path.join(self.tmp, "amp.npz"), source)
        target = SamplingPipeline(config=config)
        load_calibration(path, target)
        self.assertAlmostEqual(target.get_amplitude_expansion(), source.get_amplitude_expansion())

    def test_mismatch_rejected(self) -> None:
        config = SensorConfig(fft_bit_width=6, normalize=True)
        path = save_calibration(os.path.join(self.tmp, "c.npz"), _calibrated(config))
        other = SensorConfig(fft_bit_width=7, signal_type=SignalType.MONO, fft_window="hann")
        target = SamplingPipeline(config=other)
        with self.assertRaises(ValueError) as ctx:
            load_calibration(path, target)
        message = str(ctx.exception)
        self.assertIn("signal type", message)
        self.assertIn("FFT bit width", message)
        self.assertIn("FFT window", message)
        self.assertEqual(target.get_fft_band_expansion(0), 1.0)

    def test_floor_mismatch_rejected(self) -> None:
        config = SensorConfig(sample_type=SampleType.AMPLITUDE)
        path = save_calibration(os.path.join(self.tmp, "c.npz"), _calibrated(config))
        target = SamplingPipeline(config=config.with_amp_floor_db(-96.0))
        with self.assertRaises(ValueError):
            load_calibration(path, target)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_calibration(os.path.join(self.tmp, "missing.npz"), SamplingPipeline())


if __name__ == "__main__":
    unittest.main(verbosity=2)
