"""Feature math: frequency <-> FFT band mapping, decibel rescaling, windowed spectrum."""

import math
from typing import Tuple, Union

import numpy as np

from audio_sensor.audio.config import LOG_20HZ, LOG_20KHZ, LOG_RANGE

ArrayOrFloat = Union[float, np.ndarray]


class FrequencyMapper:
    """Maps frequencies to FFT band indices for a given resolution and sample rate.

    Interface:
      mapper = FrequencyMapper(resolution=1024, sample_rate=48_000)
      index = mapper.frequency_to_index(440.0)
      freq = mapper.index_to_frequency(index)   # band center, approximate inverse
    """

    def __init__(self, resolution: int, sample_rate: float):
        if resolution < 1:
            raise ValueError("resolution must be >= 1")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.resolution = int(resolution)
        self.sample_rate = float(sample_rate)
        self.harmonic = 2.0 * self.resolution / self.sample_rate

    def frequency_to_index(self, frequency: float) -> int:
        """FFT band index containing the frequency, clamped to [0, resolution - 1]."""
        index = int(round(frequency * self.harmonic)) - 1
        return min(max(0, index), self.resolution - 1)

    def index_to_frequency(self, index: int) -> float:
        """Frequency for an FFT band index."""
        return (index + 1) / self.harmonic

    def band_indices(self, min_frequency: float, max_frequency: float) -> Tuple[int, int]:
        """Observed (min, max) band indices, both inclusive."""
        return self.frequency_to_index(min_frequency), self.frequency_to_index(max_frequency)


def normalize_frequency(frequency: float) -> float:
    """Map a frequency between 20 Hz and 20 kHz to [0, 1] on a log scale."""
    log = min(max(math.log10(max(frequency, 1e-12)), LOG_20HZ), LOG_20KHZ)
    return (log - LOG_20HZ) / LOG_RANGE


def denormalize_frequency(normalized: float) -> float:
    """Inverse of normalize_frequency."""
    return 10 ** (normalized * LOG_RANGE + LOG_20HZ)


def amplitude_to_db(amplitude: ArrayOrFloat) -> ArrayOrFloat:
    """Amplitude in [-1, 1] to decibels; zero maps to -inf."""
    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(np.abs(amplitude))
    return float(db) if np.ndim(db) == 0 else db


def db_to_amplitude(db: ArrayOrFloat) -> ArrayOrFloat:
    """Decibels to amplitude in [0, 1]."""
    amp = np.power(10.0, np.asarray(db, dtype=np.float64) / 20.0)
    return float(amp) if np.ndim(amp) == 0 else amp


def rescale(amplitude: ArrayOrFloat, floor_db: float = -60.0) -> ArrayOrFloat:
    """Scale sample values against a decibel floor.

    0 dB maps to 1, floor_db and below map to 0. Values above 0 dB exceed 1
    and are left unclamped.
    """
    db = np.maximum(amplitude_to_db(amplitude), floor_db)
    scaled = db / -floor_db + 1.0
    return float(scaled) if np.ndim(scaled) == 0 else scaled


def signed_unit(values: np.ndarray, signs: np.ndarray) -> np.ndarray:
    """Map scaled magnitudes to [0, 1] around 0.5 using the sign of the raw sample.

    Zero counts as positive.
    """
    return 0.5 + values * 0.5 * np.where(signs >= 0, 1.0, -1.0)


def spectrum_magnitudes(samples: np.ndarray, n_bands: int, window: str = "rectangular") -> np.ndarray:
    """Windowed FFT magnitudes of the latest 2 * n_bands samples.

    Returns n_bands values for FFT bins 1 .. n_bands (DC dropped), so index i
    sits at FrequencyMapper.index_to_frequency(i). A full-scale sine peaks
    near 1 in its band.
    """
    from scipy.signal import get_window

    n_fft = 2 * n_bands
    frame = np.zeros(n_fft, dtype=np.float64)
    tail = np.asarray(samples, dtype=np.float64)[-n_fft:]
    frame[n_fft - len(tail) :] = tail
    win_name = "boxcar" if window == "rectangular" else window
    win = get_window(win_name, n_fft, fftbins=True)
    spectrum = np.fft.rfft(frame * win)
    mags = np.abs(spectrum[1 : n_bands + 1]) * 2.0 / np.sum(win)
    return mags.astype(np.float32)


def rms(values: np.ndarray) -> float:
    """Root mean square of a batch of samples."""
    if len(values) == 0:
        return 0.0
    values = np.asarray(values, dtype=np.float64)
    return float(np.sqrt(np.mean(values * values)))
