"""
Track model for PyTrackEditor.
Tracks are immutable records; the store replaces them instead of mutating.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional
import uuid

from .buffer import SampleBuffer
from .config import AUDIO_CONFIG
from .errors import InvalidParameter


def new_track_id() -> str:
    """Opaque unique track token."""
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class AudioTrack:
    """
    Represents a single audio track with its buffer, mix settings and state.

    ``version`` is issued by the store whenever the track gets a new buffer,
    so background jobs can tell whether their input is still current.
    """
    name: str = "Track"
    buffer: Optional[SampleBuffer] = None
    volume: float = AUDIO_CONFIG.default_volume
    pan: float = 0.0  # -1.0 (left) to 1.0 (right)
    muted: bool = False
    soloed: bool = False
    background_color: Optional[str] = None
    id: str = field(default_factory=new_track_id)
    version: int = 0

    def __post_init__(self) -> None:
        if self.volume < 0:
            raise InvalidParameter("volume", self.volume, ">= 0")
        if not -1.0 <= self.pan <= 1.0:
            raise InvalidParameter("pan", self.pan, "[-1, 1]")

    @property
    def sample_rate(self) -> int:
        return self.buffer.sample_rate if self.buffer is not None else AUDIO_CONFIG.default_samplerate

    @property
    def duration_samples(self) -> int:
        """Returns the total number of frames in the track."""
        return self.buffer.frames if self.buffer is not None else 0

    @property
    def duration(self) -> float:
        """Returns the duration of the track in seconds."""
        return self.buffer.duration if self.buffer is not None else 0.0

    @property
    def has_audio(self) -> bool:
        return self.buffer is not None and self.buffer.frames > 0

    def with_buffer(self, buffer: Optional[SampleBuffer], version: int) -> "AudioTrack":
        """Copy holding ``buffer`` under a fresh version token."""
        return replace(self, buffer=buffer, version=version)

    def evolve(self, **changes) -> "AudioTrack":
        """Copy with metadata changes (validated like the constructor)."""
        return replace(self, **changes)
