"""
Immutable multichannel PCM buffer.

Samples are held as a read-only float32 array shaped ``(frames, channels)``.
Every operation returns a new buffer; nothing mutates caller-held samples.
"""
from __future__ import annotations
from typing import Iterable, Sequence
import math
import numpy as np

from .errors import InvalidParameter, InvalidRange
from .types import AudioArray


def _frozen(samples: np.ndarray) -> AudioArray:
    """Copy samples into a read-only (frames, channels) float32 array."""
    data = np.array(samples, dtype=np.float32, copy=True)
    if data.ndim == 1:
        data = data[:, np.newaxis]
    if data.ndim != 2:
        raise InvalidParameter("samples", data.shape, "a (frames, channels) array")
    if data.shape[1] == 0:
        raise InvalidParameter("channels", 0, "at least one channel")
    data.setflags(write=False)
    return data


class SampleBuffer:
    """
    Value-type audio buffer with a sample rate.
    Two buffers are equal when rate, shape and every sample match.
    """
    __slots__ = ('_samples', '_sample_rate')

    def __init__(self, samples: np.ndarray, sample_rate: int):
        if not isinstance(sample_rate, (int, np.integer)) or sample_rate <= 0:
            raise InvalidParameter("sample_rate", sample_rate, "a positive integer")
        self._samples = _frozen(samples)
        self._sample_rate = int(sample_rate)

    # --- Constructors ---

    @classmethod
    def from_channels(cls, channels: Sequence[Iterable[float]], sample_rate: int) -> "SampleBuffer":
        """Builds a buffer from a sequence of equally long channel sequences."""
        arrays = [np.asarray(ch, dtype=np.float32) for ch in channels]
        if not arrays:
            raise InvalidParameter("channels", 0, "at least one channel")
        if len({len(a) for a in arrays}) != 1:
            raise InvalidParameter("channels", [len(a) for a in arrays], "equal channel lengths")
        return cls(np.column_stack(arrays), sample_rate)

    @classmethod
    def silence(cls, frames: int, channels: int, sample_rate: int) -> "SampleBuffer":
        return cls(np.zeros((max(0, frames), channels), dtype=np.float32), sample_rate)

    # --- Properties ---

    @property
    def samples(self) -> AudioArray:
        """Read-only view of the samples, shape (frames, channels)."""
        return self._samples

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def frames(self) -> int:
        return self._samples.shape[0]

    @property
    def num_channels(self) -> int:
        return self._samples.shape[1]

    @property
    def duration(self) -> float:
        return self.frames / self._sample_rate

    @property
    def peak(self) -> float:
        if self.frames == 0:
            return 0.0
        return float(np.max(np.abs(self._samples)))

    def channel(self, index: int) -> AudioArray:
        return self._samples[:, index]

    def __len__(self) -> int:
        return self.frames

    # --- Time / sample conversion ---

    def to_frame(self, seconds: float) -> int:
        """Seconds to a frame index (floored, clamped to [0, frames])."""
        return max(0, min(self.frames, int(math.floor(seconds * self._sample_rate))))

    def check_range(self, start: int, end: int) -> None:
        if not (0 <= start < end <= self.frames):
            raise InvalidRange(f"Sample range [{start}, {end}) outside buffer of {self.frames} frames")

    # --- Derived buffers ---

    def with_samples(self, samples: np.ndarray) -> "SampleBuffer":
        """New buffer at the same sample rate."""
        return SampleBuffer(samples, self._sample_rate)

    def slice(self, start: int, end: int) -> "SampleBuffer":
        """Frames [start, end) as a new buffer."""
        start = max(0, start)
        end = min(self.frames, end)
        return self.with_samples(self._samples[start:max(start, end)])

    def excise(self, start: int, end: int) -> "SampleBuffer":
        """Removes frames [start, end), shortening the buffer."""
        self.check_range(start, end)
        return self.with_samples(np.concatenate((self._samples[:start], self._samples[end:]), axis=0))

    def insert(self, other: "SampleBuffer", at: int) -> "SampleBuffer":
        """Splices ``other`` in before frame ``at``, growing the buffer."""
        if not 0 <= at <= self.frames:
            raise InvalidRange(f"Insert position {at} outside buffer of {self.frames} frames")
        channels = max(self.num_channels, other.num_channels)
        head = self.with_channels(channels)
        clip = other.with_channels(channels)
        return self.with_samples(
            np.concatenate((head._samples[:at], clip._samples, head._samples[at:]), axis=0)
        )

    def splice(self, start: int, end: int, region: np.ndarray) -> "SampleBuffer":
        """Replaces frames [start, end) with ``region`` (which may differ in length)."""
        self.check_range(start, end)
        region = np.asarray(region, dtype=np.float32)
        if region.ndim == 1:
            region = region[:, np.newaxis]
        return self.with_samples(
            np.concatenate((self._samples[:start], region, self._samples[end:]), axis=0)
        )

    def with_channels(self, channels: int) -> "SampleBuffer":
        """Pads with silent channels (or drops extras) to reach ``channels``."""
        if channels == self.num_channels:
            return self
        if channels < self.num_channels:
            return self.with_samples(self._samples[:, :channels])
        pad = np.zeros((self.frames, channels - self.num_channels), dtype=np.float32)
        return self.with_samples(np.hstack((self._samples, pad)))

    def concat(self, other: "SampleBuffer") -> "SampleBuffer":
        if other.sample_rate != self._sample_rate or other.num_channels != self.num_channels:
            raise InvalidParameter("buffer", other, "matching sample rate and channel count")
        return self.with_samples(np.concatenate((self._samples, other._samples), axis=0))

    def copy_writable(self) -> AudioArray:
        """A private, writable copy of the samples for DSP code."""
        return np.array(self._samples, dtype=np.float32, copy=True)

    # --- Value semantics ---

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SampleBuffer):
            return NotImplemented
        return (
            self._sample_rate == other._sample_rate
            and self._samples.shape == other._samples.shape
            and bool(np.array_equal(self._samples, other._samples))
        )

    __hash__ = None  # type: ignore[assignment]

    def allclose(self, other: "SampleBuffer", atol: float = 1e-6) -> bool:
        return (
            self._sample_rate == other._sample_rate
            and self._samples.shape == other._samples.shape
            and bool(np.allclose(self._samples, other._samples, atol=atol))
        )

    def __repr__(self) -> str:
        return (
            f"SampleBuffer(frames={self.frames}, channels={self.num_channels}, "
            f"sample_rate={self._sample_rate}, duration={self.duration:.2f}s)"
        )
