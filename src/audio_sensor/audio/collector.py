"""Audio capture sources that supply stereo sample batches on demand.

The sampling pipeline only depends on the CaptureSource protocol. Two
sources are provided: live capture via sounddevice and offline playback
of a pre-recorded array or WAV file.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union

import numpy as np

try:
    import sounddevice as sd
except (ImportError, OSError):
    sd = None  # type: ignore

from audio_sensor.audio.config import SensorConfig
from audio_sensor.audio.features import spectrum_magnitudes

logger = logging.getLogger(__name__)

StereoSamples = Tuple[np.ndarray, np.ndarray]


class CaptureUnavailableError(RuntimeError):
    """Raised when a capture source cannot supply the requested samples."""


class CaptureSource(Protocol):
    """Interface of the capture collaborator used by the sampling pipeline."""

    def read_amplitude(self, n: int) -> StereoSamples:  # pragma: no cover - protocol
        """Latest n waveform samples per channel, values in [-1, 1]."""
        ...

    def read_spectrum(self, n: int, window: str = "rectangular") -> StereoSamples:  # pragma: no cover - protocol
        """n FFT band magnitudes per channel, values >= 0."""
        ...


class ChannelHistory:
    """The most recent `capacity` samples of one capture channel."""

    def __init__(self, capacity: int, dtype: type = np.float32):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._samples = np.zeros(capacity, dtype=dtype)
        self._head = 0  # next slot to write
        self._filled = 0

    def append(self, block: np.ndarray) -> None:
        """Add a block of samples; beyond capacity the oldest are dropped."""
        block = np.asarray(block, dtype=self._samples.dtype).reshape(-1)[-self.capacity :]
        slots = (self._head + np.arange(len(block))) % self.capacity
        self._samples[slots] = block
        self._head = (self._head + len(block)) % self.capacity
        self._filled = min(self._filled + len(block), self.capacity)

    def latest(self, n: int) -> np.ndarray:
        """The n newest samples, oldest first."""
        if n > self._filled:
            raise CaptureUnavailableError(f"only {self._filled} of {n} samples captured")
        return self._samples[(self._head - n + np.arange(n)) % self.capacity]

    def __len__(self) -> int:
        return self._filled

    def reset(self) -> None:
        self._head = 0
        self._filled = 0


class AudioCollector:
    """Captures stereo audio from an input device into per-channel sample histories.

    Interface:
      with AudioCollector(config, device=None) as capture:
          left, right = capture.read_amplitude(1024)
          left, right = capture.read_spectrum(1024, "hann")
    """

    # 2 * largest FFT resolution (2^13) samples of history
    HISTORY_SAMPLES = 2 * 8192

    def __init__(self, config: Optional[SensorConfig] = None, device: Optional[int] = None):
        self.config = config or SensorConfig()
        self.device = device
        self._left = ChannelHistory(self.HISTORY_SAMPLES)
        self._right = ChannelHistory(self.HISTORY_SAMPLES)
        self._lock = threading.Lock()
        self._stream = None

    def start(self) -> None:
        """Open the input stream."""
        if sd is None:
            raise ImportError("sounddevice is required for recording. pip install sounddevice")
        if self._stream is not None:
            return

        def callback(indata: np.ndarray, _frames: int, _time: object, status: object) -> None:
            if status:
                logger.debug("Input stream status: %s", status)
            block = np.asarray(indata, dtype=np.float32)
            left = block[:, 0]
            right = block[:, 1] if block.shape[1] > 1 else left
            with self._lock:
                self._left.append(left)
                self._right.append(right)

        self._stream = sd.InputStream(
            samplerate=self.config.sample_rate,
            channels=2,
            dtype="float32",
            device=self.device,
            callback=callback,
        )
        self._stream.start()
        logger.info("Capturing stereo audio at %d Hz", self.config.sample_rate)

    def stop(self) -> None:
        """Close the input stream and drop buffered audio."""
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        with self._lock:
            self._left.reset()
            self._right.reset()

    def __enter__(self) -> "AudioCollector":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    def _latest(self, n: int) -> StereoSamples:
        if self._stream is None:
            raise CaptureUnavailableError("input stream is not running")
        with self._lock:
            return self._left.latest(n), self._right.latest(n)

    def read_amplitude(self, n: int) -> StereoSamples:
        return self._latest(n)

    def read_spectrum(self, n: int, window: str = "rectangular") -> StereoSamples:
        left, right = self._latest(2 * n)
        return spectrum_magnitudes(left, n, window), spectrum_magnitudes(right, n, window)


class ArrayCapture:
    """Replays a pre-recorded stereo signal, advancing `hop` samples per read.

    Each read returns the samples ending at the current playback position,
    zero-padded at the start of the recording.
    """

    def __init__(self, left: np.ndarray, right: Optional[np.ndarray] = None, hop: int = 960):
        if hop < 1:
            raise ValueError("hop must be >= 1")
        self.left = np.asarray(left, dtype=np.float32).reshape(-1)
        self.right = self.left if right is None else np.asarray(right, dtype=np.float32).reshape(-1)
        if self.left.shape != self.right.shape:
            raise ValueError("left and right must have the same length")
        self.hop = int(hop)
        self.position = 0

    @classmethod
    def from_wav(cls, path: Union[str, Path], config: Optional[SensorConfig] = None) -> "ArrayCapture":
        """Load a WAV file; the hop is one sampling step at the file's rate."""
        import scipy.io.wavfile as wavfile

        sr, audio = wavfile.read(str(path))
        if audio.dtype == np.int16:
            audio = audio.astype(np.float32) / 32768.0
        elif audio.dtype == np.int32:
            audio = audio.astype(np.float32) / 2147483648.0
        audio = np.asarray(audio, dtype=np.float32)
        config = config or SensorConfig()
        if sr != config.sample_rate:
            logger.warning("WAV sample rate %d Hz differs from configured %d Hz", sr, config.sample_rate)
        hop = max(1, int(round(sr * config.step_sec)))
        if audio.ndim > 1:
            right = audio[:, 1] if audio.shape[1] > 1 else audio[:, 0]
            return cls(audio[:, 0], right, hop=hop)
        return cls(audio, hop=hop)

    @property
    def exhausted(self) -> bool:
        return self.position + self.hop > len(self.left)

    def rewind(self) -> None:
        self.position = 0

    def _advance(self, n: int) -> StereoSamples:
        if self.exhausted:
            raise CaptureUnavailableError("end of recording")
        self.position += self.hop
        end = self.position
        start = max(0, end - n)
        left = np.zeros(n, dtype=np.float32)
        right = np.zeros(n, dtype=np.float32)
        left[n - (end - start) :] = self.left[start:end]
        right[n - (end - start) :] = self.right[start:end]
        return left, right

    def read_amplitude(self, n: int) -> StereoSamples:
        return self._advance(n)

    def read_spectrum(self, n: int, window: str = "rectangular") -> StereoSamples:
        left, right = self._advance(2 * n)
        return spectrum_magnitudes(left, n, window), spectrum_magnitudes(right, n, window)
