"""Temporal ring buffer: one group of channels per sampling step."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from audio_sensor.sensor.shape import ObservationShape


class OutOfBoundsError(IndexError):
    """Raised when a step writes more samples than a channel can hold."""


class TemporalRingBuffer:
    """Cyclic multi-channel buffer representing a sliding window of sampling steps.

    Each step writes `signal_channels` channels, starting at channel
    `step_index * signal_channels`. Position p within a channel maps to
    row p // width, column p % width of the observation.

    Interface:
      buffer = TemporalRingBuffer(shape, buffer_length=4)
      buffer.begin_step(buffer.step_index)
      buffer.write_sample(value)            # mono
      buffer.write_sample(left, right)      # stereo
      step, window_complete = buffer.advance_step()
      buffer.reset_cursor()                 # episode boundary, keeps contents
    """

    def __init__(self, shape: ObservationShape, buffer_length: int, dtype: type = np.float32):
        if buffer_length < 1:
            raise ValueError("buffer_length must be >= 1")
        if shape.channels != buffer_length * shape.signal_channels:
            raise ValueError("shape channels do not match buffer_length")
        self.shape = shape
        self.buffer_length = buffer_length
        self.dtype = dtype
        self._data = np.zeros((shape.channels, shape.positions), dtype=dtype)
        self._channel = 0
        self._cursor = 0
        self._step_index = 0

    @property
    def step_index(self) -> int:
        """Sampling step the next write belongs to, < buffer_length."""
        return self._step_index

    @property
    def write_cursor(self) -> int:
        return self._cursor

    @property
    def capacity(self) -> int:
        """Writable positions per channel and step."""
        return self.shape.positions

    def begin_step(self, step_index: Optional[int] = None) -> None:
        """Target the channels of a sampling step and rewind the write cursor."""
        if step_index is None:
            step_index = self._step_index
        if not 0 <= step_index < self.buffer_length:
            raise OutOfBoundsError(f"step {step_index} outside buffer length {self.buffer_length}")
        self._step_index = step_index
        self._channel = step_index * self.shape.signal_channels
        self._cursor = 0

    def write_sample(self, value: float, right: Optional[float] = None) -> None:
        """Write one sample (mono) or a left/right pair (stereo) and advance the cursor."""
        if self._cursor >= self.capacity:
            raise OutOfBoundsError(f"write {self._cursor + 1} exceeds {self.capacity} positions")
        self._data[self._channel, self._cursor] = value
        if right is not None:
            self._data[self._channel + 1, self._cursor] = right
        self._cursor += 1

    def write_block(self, values: np.ndarray, right: Optional[np.ndarray] = None) -> None:
        """Write consecutive samples (and right channel samples) at the cursor."""
        values = np.asarray(values).reshape(-1)
        n = len(values)
        end = self._cursor + n
        if end > self.capacity:
            raise OutOfBoundsError(f"write {end} exceeds {self.capacity} positions")
        self._data[self._channel, self._cursor : end] = values
        if right is not None:
            right = np.asarray(right).reshape(-1)
            if len(right) != n:
                raise ValueError("left and right blocks must have the same length")
            self._data[self._channel + 1, self._cursor : end] = right
        self._cursor = end

    def advance_step(self) -> Tuple[int, bool]:
        """Finish the current step.

        Returns:
            (step_index, window_complete) of the finished step.
        """
        step = self._step_index
        self._step_index = (step + 1) % self.buffer_length
        return step, step == self.buffer_length - 1

    def reset_cursor(self) -> None:
        """Restart at step 0; stored samples are kept until overwritten."""
        self._step_index = 0
        self._channel = 0
        self._cursor = 0

    def read(self, channel: int, position: int) -> float:
        """Sample at a channel position; unwritten cells read 0."""
        if not 0 <= channel < self.shape.channels:
            raise IndexError(f"channel {channel} out of range")
        if not 0 <= position < self.capacity:
            raise IndexError(f"position {position} out of range")
        return float(self._data[channel, position])

    def channel(self, channel: int) -> np.ndarray:
        """Copy of one channel's positions."""
        return self._data[channel].copy()

    def to_tensor(self) -> np.ndarray:
        """Read-only (height, width, channels) view of the buffer."""
        s = self.shape
        tensor = self._data.reshape(s.channels, s.height, s.width).transpose(1, 2, 0)
        tensor.flags.writeable = False
        return tensor

    def clear(self) -> None:
        """Zero all stored samples."""
        self._data.fill(0)
