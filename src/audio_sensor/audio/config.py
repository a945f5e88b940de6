"""Centralized audio sensor configuration.

Encoding standards:
- Capture: stereo, 48 kHz (min 8 kHz), one sampling step per 20 ms decision step (min 1 ms)
- Spectrum: 2^6 .. 2^13 FFT bands, observed band between 20 Hz and 20 kHz
- Scaling: decibel floor between -192 dB and -12 dB (default -60 dB)
- Buffer: 1 .. 100 sampling steps per observation
"""

import dataclasses
import math
from dataclasses import dataclass
from enum import Enum

LOG_20HZ = math.log10(20)
LOG_20KHZ = math.log10(20000)
LOG_RANGE = LOG_20KHZ - LOG_20HZ

MIN_BUFFER_LENGTH = 1
MAX_BUFFER_LENGTH = 100
MIN_FFT_BIT_WIDTH = 6  # 64 bands
MAX_FFT_BIT_WIDTH = 13  # 8192 bands
MIN_FLOOR_LOG = -6.0  # -192 dB
MAX_FLOOR_LOG = -2.0  # -12 dB
DEFAULT_FLOOR_LOG = -4.321928  # -60 dB
MIN_SAMPLE_RATE = 8_000
MIN_STEP_SEC = 0.001

FFT_WINDOWS = ("rectangular", "triangle", "hamming", "hann", "blackman", "blackmanharris")


class SignalType(str, Enum):
    """STEREO samples left and right channels separately, MONO samples their mean."""

    STEREO = "stereo"
    MONO = "mono"


class SampleType(str, Enum):
    """AMPLITUDE samples waveform values, SPECTRUM samples FFT band magnitudes."""

    AMPLITUDE = "amplitude"
    SPECTRUM = "spectrum"


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def floor_log_to_db(floor_log: float) -> float:
    """Decibel floor encoded by a log slider value: -3 * 2^(-x)."""
    return -3.0 * 2.0 ** (-floor_log)


def db_to_floor_log(floor_db: float) -> float:
    """Inverse of floor_log_to_db."""
    return -math.log2(min(floor_db, -1e-6) / -3.0)


def next_power_of_two(n: float) -> int:
    """Smallest power of two >= n (at least 1)."""
    if n <= 1:
        return 1
    return 1 << math.ceil(math.log2(n))


@dataclass(frozen=True)
class SensorConfig:
    """Audio sensor configuration.

    Out-of-range values are clamped on construction, so ``dataclasses.replace``
    (or the ``with_*`` helpers) always yields a valid config.
    """

    sensor_name: str = "AudioSensor"

    # Observation
    signal_type: SignalType = SignalType.STEREO
    sample_type: SampleType = SampleType.SPECTRUM
    buffer_length: int = 1
    normalize: bool = False

    # Spectrum
    fft_bit_width: int = 10
    fft_window: str = "rectangular"
    fft_min_freq_log: float = LOG_20HZ
    fft_max_freq_log: float = LOG_20KHZ
    fft_floor_log: float = DEFAULT_FLOOR_LOG

    # Amplitude
    amp_floor_log: float = DEFAULT_FLOOR_LOG

    # Capture
    sample_rate: int = 48_000
    step_sec: float = 0.02

    def __post_init__(self) -> None:
        set_ = object.__setattr__
        set_(self, "signal_type", SignalType(self.signal_type))
        set_(self, "sample_type", SampleType(self.sample_type))
        set_(self, "buffer_length", int(_clamp(int(self.buffer_length), MIN_BUFFER_LENGTH, MAX_BUFFER_LENGTH)))
        set_(self, "fft_bit_width", int(_clamp(int(self.fft_bit_width), MIN_FFT_BIT_WIDTH, MAX_FFT_BIT_WIDTH)))
        set_(self, "fft_min_freq_log", _clamp(float(self.fft_min_freq_log), LOG_20HZ, LOG_20KHZ))
        set_(self, "fft_max_freq_log", _clamp(float(self.fft_max_freq_log), LOG_20HZ, LOG_20KHZ))
        set_(self, "fft_floor_log", _clamp(float(self.fft_floor_log), MIN_FLOOR_LOG, MAX_FLOOR_LOG))
        set_(self, "amp_floor_log", _clamp(float(self.amp_floor_log), MIN_FLOOR_LOG, MAX_FLOOR_LOG))
        set_(self, "sample_rate", max(MIN_SAMPLE_RATE, int(self.sample_rate)))
        set_(self, "step_sec", max(MIN_STEP_SEC, float(self.step_sec)))
        if self.fft_window not in FFT_WINDOWS:
            set_(self, "fft_window", "rectangular")

    @property
    def signal_channels(self) -> int:
        """Buffer channels written per sampling step."""
        return 2 if self.signal_type == SignalType.STEREO else 1

    @property
    def fft_resolution(self) -> int:
        """Number of FFT bands sampled (not the number observed)."""
        return 2 ** self.fft_bit_width

    @property
    def fft_min_frequency(self) -> float:
        """Lowest observed frequency in Hz."""
        return 10 ** self.fft_min_freq_log

    @property
    def fft_max_frequency(self) -> float:
        """Highest observed frequency in Hz."""
        return 10 ** self.fft_max_freq_log

    @property
    def fft_floor(self) -> float:
        """Decibel floor for scaling FFT band values."""
        return floor_log_to_db(self.fft_floor_log)

    @property
    def amp_floor(self) -> float:
        """Decibel floor for scaling amplitudes."""
        return floor_log_to_db(self.amp_floor_log)

    @property
    def step_samples(self) -> int:
        """Amplitude samples per channel and step (power of two)."""
        return next_power_of_two(self.sample_rate * self.step_sec)

    def with_fft_resolution(self, resolution: int) -> "SensorConfig":
        return dataclasses.replace(self, fft_bit_width=int(math.log2(max(1, resolution))))

    def with_frequency_band(self, min_hz: float, max_hz: float) -> "SensorConfig":
        return dataclasses.replace(
            self,
            fft_min_freq_log=math.log10(max(min_hz, 1e-9)),
            fft_max_freq_log=math.log10(max(max_hz, 1e-9)),
        )

    def with_fft_floor_db(self, floor_db: float) -> "SensorConfig":
        return dataclasses.replace(self, fft_floor_log=db_to_floor_log(floor_db))

    def with_amp_floor_db(self, floor_db: float) -> "SensorConfig":
        return dataclasses.replace(self, amp_floor_log=db_to_floor_log(floor_db))
