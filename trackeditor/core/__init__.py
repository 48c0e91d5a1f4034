"""
PyTrackEditor Core Module

This module contains the multi-track editing core:
- AudioEngine: Facade a UI drives; returns OperationResult values
- TrackStore: Project state with linear undo/redo and observers
- TransportController: Synchronized per-track playback
- effects: Range-aware DSP operations and the effect registry
- codec / audio_io: Project documents and audio encode/decode
"""
from .audio_engine import AudioEngine
from .buffer import SampleBuffer
from .store import TrackStore, ProjectState, ProjectView
from .track import AudioTrack
from .transport import TransportController
from .playback import SoundDevicePlayer
from .jobs import DspJobRunner
from .undo_manager import UndoManager
from .mixdown import mix_down_for_export
from .scope import resolve
from .config import (
    AUDIO_CONFIG,
    EFFECTS_CONFIG,
    EXPORT_CONFIG,
    JOB_CONFIG,
    TRANSPORT_CONFIG,
    UNDO_CONFIG,
    EFFECT_PARAM_RANGES,
    ExportScope,
    PlaybackState,
    Scope,
)
from .errors import (
    EditorError,
    InvalidParameter,
    InvalidRange,
    TrackBusy,
    TrackNotFound,
    CorruptProject,
    EmptyOperation,
    UnsupportedAudio,
    PlaybackFailed,
)
from .types import OperationResult, Selection, RepeatRegion, EditTarget
from . import effects
from . import audio_io
from . import codec

__all__ = [
    # Main classes
    'AudioEngine',
    'SampleBuffer',
    'TrackStore',
    'ProjectState',
    'ProjectView',
    'AudioTrack',
    'TransportController',
    'SoundDevicePlayer',
    'DspJobRunner',
    'UndoManager',
    'mix_down_for_export',
    'resolve',
    # Config
    'AUDIO_CONFIG',
    'EFFECTS_CONFIG',
    'EXPORT_CONFIG',
    'JOB_CONFIG',
    'TRANSPORT_CONFIG',
    'UNDO_CONFIG',
    'EFFECT_PARAM_RANGES',
    'ExportScope',
    'PlaybackState',
    'Scope',
    # Errors
    'EditorError',
    'InvalidParameter',
    'InvalidRange',
    'TrackBusy',
    'TrackNotFound',
    'CorruptProject',
    'EmptyOperation',
    'UnsupportedAudio',
    'PlaybackFailed',
    # Values
    'OperationResult',
    'Selection',
    'RepeatRegion',
    'EditTarget',
    # Submodules
    'effects',
    'audio_io',
    'codec',
]
