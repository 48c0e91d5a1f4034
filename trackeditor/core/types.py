"""
Type definitions for the PyTrackEditor core module.
Provides type aliases, small value types and protocols for the collaborators
the core talks to.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol
import numpy as np
from numpy.typing import NDArray

from .errors import InvalidRange

if TYPE_CHECKING:
    from .buffer import SampleBuffer
    from .errors import EditorError

# Audio data types
AudioArray = NDArray[np.float32]  # Shape: (frames, channels)
MonoArray = NDArray[np.float32]   # Shape: (frames,)

# Callback types
PositionCallback = Callable[[float], None]          # seconds
StoreListener = Callable[[Any], None]               # receives the store
Unsubscribe = Callable[[], None]
AudioRefFunc = Callable[[Any], str]                 # track -> audio reference
AudioResolver = Callable[[str], Optional["SampleBuffer"]]


@dataclass(frozen=True, slots=True)
class Selection:
    """A time range on one track, in seconds."""
    track_id: str
    start: float
    end: float

    def __post_init__(self) -> None:
        if self.start < 0 or self.end <= self.start:
            raise InvalidRange(
                f"Selection must satisfy 0 <= start < end, got [{self.start}, {self.end}]"
            )

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class RepeatRegion:
    """Global loop interval used by the transport, in seconds."""
    start: float
    end: float

    def __post_init__(self) -> None:
        if self.start < 0 or self.end <= self.start:
            raise InvalidRange(
                f"Repeat region must satisfy 0 <= start < end, got [{self.start}, {self.end}]"
            )


@dataclass(frozen=True, slots=True)
class EditTarget:
    """A resolved (track, sample range) pair; ``end`` is exclusive."""
    track_id: str
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


class EffectFunc(Protocol):
    """Protocol for range effects: pure buffer -> buffer transforms."""
    def __call__(self, buffer: "SampleBuffer", start: int, end: int, **params: Any) -> "SampleBuffer": ...


class PlaybackHandle(Protocol):
    """
    One per-track playback device as seen by the transport.
    ``play`` raises ``PlaybackFailed`` when the device refuses a stream.
    """

    def load(self, buffer: Optional["SampleBuffer"]) -> None: ...
    def play(self) -> None: ...
    def pause(self) -> None: ...
    def stop(self) -> None: ...
    def seek(self, fraction: float) -> None: ...
    def set_levels(self, volume: float, pan: float) -> None: ...
    def close(self) -> None: ...

    @property
    def current_time(self) -> float: ...

    @property
    def duration(self) -> float: ...

    @property
    def is_playing(self) -> bool: ...


class OperationResult:
    """Outcome of an engine command: success flag, payload or error."""
    __slots__ = ('success', 'value', 'error')

    def __init__(
        self,
        success: bool,
        value: Any = None,
        error: Optional["EditorError"] = None
    ):
        self.success = success
        self.value = value
        self.error = error

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(True, value=value)

    @classmethod
    def failed(cls, error: "EditorError") -> "OperationResult":
        return cls(False, error=error)

    @property
    def message(self) -> str:
        return str(self.error) if self.error is not None else ""

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        if self.success:
            return f"OperationResult(success=True, value={self.value!r})"
        return f"OperationResult(success=False, error={self.error!r})"
