"""Peak normalizer: upward expansion fitted to measured signal peaks.

Normalization expands scaled sample values over the full dynamic range,
based on the highest scaled values measured while calibrating:

    factor = CEILING / max(peak, MIN_PEAK)

Spectrum data is normalized per FFT band (one peak per band over the full
resolution), amplitude data with a single peak.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

CEILING = 0.99
MIN_PEAK = 0.01


class PeakNormalizer:
    """Tracks running peaks and expansion factors.

    - size == 1: a single peak over all values (amplitude).
    - size > 1: one peak per band; measured arrays must have `size` values.

    Interface:
      normalizer = PeakNormalizer(size=1024)
      clipping = normalizer.measure(scaled_left, scaled_right)  # calibrating only
      values = normalizer.normalize(scaled, start=lo, stop=hi + 1)
      normalizer.reset()
    """

    def __init__(self, size: int = 1):
        if size < 1:
            raise ValueError("size must be >= 1")
        self.size = size
        self._peaks = np.full(size, MIN_PEAK, dtype=np.float64)
        self._factors = np.ones(size, dtype=np.float64)

    @classmethod
    def from_factors(cls, factors: np.ndarray) -> "PeakNormalizer":
        """Restore a normalizer from stored expansion factors.

        Peaks are recovered as CEILING / factor; factors <= 1 restore MIN_PEAK.
        """
        factors = np.asarray(factors, dtype=np.float64).reshape(-1)
        normalizer = cls(size=len(factors))
        normalizer._factors[:] = factors
        restored = np.full(len(factors), MIN_PEAK, dtype=np.float64)
        expanded = factors > 1
        restored[expanded] = CEILING / factors[expanded]
        normalizer._peaks[:] = restored
        return normalizer

    def reset(self) -> None:
        """Clear measured peaks, factors back to 1."""
        self._peaks.fill(MIN_PEAK)
        self._factors.fill(1.0)

    def measure(self, *scaled: np.ndarray) -> bool:
        """Update peaks and factors with one step of scaled values.

        Args:
            *scaled: One array per signal channel. Per-band normalizers
                     expect `size` values per array.

        Returns:
            True if any value times the factor in effect before this update
            reaches 1 (clipping).
        """
        if not scaled:
            return False
        stacked = np.vstack([np.asarray(s, dtype=np.float64).reshape(1, -1) for s in scaled])
        if self.size == 1:
            clipping = bool(np.any(stacked * self._factors[0] >= 1.0))
            step_peak = np.max(stacked) if stacked.size else MIN_PEAK
            self._peaks[0] = max(self._peaks[0], step_peak)
        else:
            if stacked.shape[1] != self.size:
                raise ValueError(f"expected {self.size} values per channel, got {stacked.shape[1]}")
            clipping = bool(np.any(stacked * self._factors >= 1.0))
            np.maximum(self._peaks, stacked.max(axis=0), out=self._peaks)
        self._factors[:] = CEILING / np.maximum(self._peaks, MIN_PEAK)
        return clipping

    def normalize(self, scaled: np.ndarray, start: int = 0, stop: Optional[int] = None) -> np.ndarray:
        """Expand and clamp to [0, 1].

        For per-band normalizers, `scaled` holds bands [start, stop).
        """
        scaled = np.asarray(scaled, dtype=np.float64)
        if self.size == 1:
            factors = self._factors[0]
        else:
            factors = self._factors[start:stop]
        return np.clip(scaled * factors, 0.0, 1.0)

    def factor(self, index: int = 0) -> float:
        return float(self._factors[index])

    def peak(self, index: int = 0) -> float:
        return float(self._peaks[index])

    @property
    def factors(self) -> np.ndarray:
        """Copy of the expansion factors."""
        return self._factors.copy()

    @property
    def peaks(self) -> np.ndarray:
        """Copy of the measured peaks."""
        return self._peaks.copy()
