"""
Centralized configuration for PyTrackEditor.
All magic numbers, default settings and parameter ranges in one place.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType


class PlaybackState(Enum):
    """Playback state enumeration."""
    STOPPED = auto()
    PLAYING = auto()
    PAUSED = auto()


class Scope(str, Enum):
    """Target set for an effect."""
    ALL = "all"
    TRACK = "track"
    SELECTION = "selection"


class ExportScope(str, Enum):
    """What gets rendered on export."""
    ALL = "all"
    CURRENT = "current"
    SELECTION = "selection"


@dataclass(frozen=True, slots=True)
class AudioConfig:
    """Audio engine configuration."""
    default_samplerate: int = 44100
    playback_blocksize: int = 2048
    playback_channels: int = 2
    default_volume: float = 1.0


@dataclass(frozen=True, slots=True)
class UndoConfig:
    """Undo/Redo configuration."""
    max_depth: int = 50


@dataclass(frozen=True, slots=True)
class TransportConfig:
    """Multi-track transport settings."""
    repeat_epsilon: float = 0.01  # seconds, absorbs polling granularity
    tick_interval: float = 0.02   # seconds between monitor ticks


@dataclass(frozen=True, slots=True)
class JobConfig:
    """Background DSP job settings."""
    max_workers: int = 2


@dataclass(frozen=True, slots=True)
class EffectsConfig:
    """Default effect parameters."""
    # Amplify
    amplify_gain: float = 1.5

    # Delay/Echo
    delay_time: float = 0.3
    delay_feedback: float = 0.4
    delay_wet_level: float = 0.5
    delay_max_tail: float = 2.0  # seconds

    # Reverb
    reverb_room_size: float = 1.0
    reverb_wet_level: float = 0.3
    reverb_comb_delays_ms: tuple[float, ...] = (29.7, 37.1, 41.1, 43.7)
    reverb_allpass_delays_ms: tuple[float, ...] = (5.0, 1.7)
    reverb_allpass_gain: float = 0.7

    # Noise reduction
    noise_reduction_amount: float = 0.5
    noise_fft_size: int = 2048
    noise_floor_percentile: float = 15.0
    noise_threshold_factor: float = 2.0

    # Speed / pitch
    speed_factor: float = 1.0
    pitch_factor: float = 1.0

    # Filters
    lowpass_cutoff: float = 1000.0
    highpass_cutoff: float = 100.0
    filter_order: int = 2

    # EQ
    eq_frequency: float = 1000.0
    eq_gain_db: float = 0.0
    eq_q: float = 1.0

    # Compression
    compressor_threshold_db: float = -24.0
    compressor_ratio: float = 4.0
    compressor_attack: float = 0.003
    compressor_release: float = 0.25
    compressor_knee_db: float = 6.0

    # Limiter
    limiter_threshold_db: float = -1.0
    limiter_release: float = 0.05


@dataclass(frozen=True, slots=True)
class ParamRange:
    """Accepted interval for one DSP parameter."""
    low: float
    high: float
    low_inclusive: bool = True
    high_inclusive: bool = True

    def contains(self, value: float) -> bool:
        above = value >= self.low if self.low_inclusive else value > self.low
        below = value <= self.high if self.high_inclusive else value < self.high
        return above and below

    def describe(self) -> str:
        left = "[" if self.low_inclusive else "("
        right = "]" if self.high_inclusive else ")"
        return f"{left}{self.low:g}, {self.high:g}{right}"


_INF = float("inf")

# Documented parameter ranges per effect. Frequencies are additionally
# bounded by the buffer's Nyquist rate at validation time.
EFFECT_PARAM_RANGES = MappingProxyType({
    "amplify": {"gain": ParamRange(0.0, 10.0, low_inclusive=False)},
    "reverb": {
        "room_size": ParamRange(0.0, 3.0, low_inclusive=False),
        "wet_level": ParamRange(0.0, 1.0),
    },
    "delay": {
        "delay_time": ParamRange(0.0, 2.0, low_inclusive=False),
        "feedback": ParamRange(0.0, 0.99),
        "wet_level": ParamRange(0.0, 1.0),
    },
    "noise_reduction": {"amount": ParamRange(0.0, 1.0)},
    "change_speed": {"factor": ParamRange(0.0, 4.0, low_inclusive=False)},
    "change_pitch": {"factor": ParamRange(0.0, 4.0, low_inclusive=False)},
    "compressor": {
        "threshold_db": ParamRange(-60.0, 0.0),
        "ratio": ParamRange(1.0, 20.0),
        "attack": ParamRange(0.0001, 1.0),
        "release": ParamRange(0.01, 5.0),
        "knee_db": ParamRange(0.0, 12.0),
    },
    "limiter": {
        "threshold_db": ParamRange(-60.0, 0.0),
        "release": ParamRange(0.001, 1.0),
    },
    "eq": {
        "frequency": ParamRange(0.0, _INF, low_inclusive=False, high_inclusive=False),
        "gain_db": ParamRange(-24.0, 24.0),
        "q": ParamRange(0.0, _INF, low_inclusive=False, high_inclusive=False),
    },
    "high_pass": {"cutoff": ParamRange(0.0, _INF, low_inclusive=False, high_inclusive=False)},
    "low_pass": {"cutoff": ParamRange(0.0, _INF, low_inclusive=False, high_inclusive=False)},
})

# Parameters interpreted as frequencies (must stay below Nyquist)
FREQUENCY_PARAMS = frozenset({"frequency", "cutoff"})


@dataclass(frozen=True, slots=True)
class ExportConfig:
    """Export formats, qualities and project document settings."""
    qualities: MappingProxyType = field(default_factory=lambda: MappingProxyType({
        "wav": ("16", "24", "32"),
        "mp3": ("128", "192", "256", "320"),
        "ogg": ("3", "5", "7", "10"),
    }))
    default_quality: MappingProxyType = field(default_factory=lambda: MappingProxyType({
        "wav": "16",
        "mp3": "192",
        "ogg": "5",
    }))
    project_version: str = "1.0.0"
    project_filename: str = "project.json"
    audio_dirname: str = "audio"
    default_project_name: str = "Untitled Project"


# Global config instances (immutable singletons)
AUDIO_CONFIG = AudioConfig()
UNDO_CONFIG = UndoConfig()
TRANSPORT_CONFIG = TransportConfig()
JOB_CONFIG = JobConfig()
EFFECTS_CONFIG = EffectsConfig()
EXPORT_CONFIG = ExportConfig()
