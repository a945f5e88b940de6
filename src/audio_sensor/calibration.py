"""Save and restore normalization calibration (expansion factors)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np

from audio_sensor.audio.config import SampleType
from audio_sensor.pipeline.sampling_loop import SamplingPipeline

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def save_calibration(path: PathLike, pipeline: SamplingPipeline) -> Path:
    """Write the pipeline's expansion factors and the settings they were measured with.

    Returns:
        Path of the written .npz file.
    """
    config = pipeline.config
    spectrum = config.sample_type == SampleType.SPECTRUM
    path = Path(path)
    if path.suffix != ".npz":
        path = path.with_suffix(".npz")
    np.savez(
        path,
        factors=pipeline.normalizer.factors,
        sample_type=config.sample_type.value,
        signal_type=config.signal_type.value,
        fft_bit_width=config.fft_bit_width,
        fft_window=config.fft_window,
        floor_log=config.fft_floor_log if spectrum else config.amp_floor_log,
    )
    logger.info("Saved %d expansion factors to %s", pipeline.normalizer.size, path)
    return path


def load_calibration(path: PathLike, pipeline: SamplingPipeline) -> None:
    """Restore expansion factors saved for a compatible config.

    Raises:
        FileNotFoundError: path does not exist.
        ValueError: calibration was measured with different settings.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Calibration not found: {path}")

    config = pipeline.config
    spectrum = config.sample_type == SampleType.SPECTRUM
    with np.load(path) as data:
        factors = np.array(data["factors"], dtype=np.float64)
        sample_type = str(data["sample_type"])
        signal_type = str(data["signal_type"])
        floor_log = float(data["floor_log"])
        fft_bit_width = int(data["fft_bit_width"])
        fft_window = str(data["fft_window"])

    expected_floor = config.fft_floor_log if spectrum else config.amp_floor_log
    mismatches = []
    if sample_type != config.sample_type.value:
        mismatches.append(f"sample type {sample_type}")
    if signal_type != config.signal_type.value:
        mismatches.append(f"signal type {signal_type}")
    if not np.isclose(floor_log, expected_floor):
        mismatches.append(f"floor log {floor_log:.4f}")
    if spectrum and fft_bit_width != config.fft_bit_width:
        mismatches.append(f"FFT bit width {fft_bit_width}")
    if spectrum and fft_window != config.fft_window:
        mismatches.append(f"FFT window {fft_window}")
    if mismatches:
        raise ValueError(f"Calibration {path} does not match config: " + ", ".join(mismatches))

    pipeline.restore_normalization(factors)
    logger.info("Restored %d expansion factors from %s", len(factors), path)
