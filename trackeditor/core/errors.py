"""
Error taxonomy for PyTrackEditor.

Every failure the editing core reports derives from ``EditorError``. Library and
store functions raise; ``AudioEngine`` turns these into ``OperationResult``
values so the session never crashes on a rejected command.
"""
from __future__ import annotations
from typing import Any, Optional


class EditorError(Exception):
    """Base class for all editing failures."""
    code = "editor_error"


class InvalidParameter(EditorError):
    """A DSP or API argument lies outside its documented range."""
    code = "invalid_parameter"

    def __init__(self, name: str, value: Any, allowed: Optional[str] = None):
        self.name = name
        self.value = value
        self.allowed = allowed
        message = f"Invalid value for '{name}': {value!r}"
        if allowed:
            message += f" (expected {allowed})"
        super().__init__(message)


class InvalidRange(EditorError):
    """A selection, split offset or sample range is out of bounds."""
    code = "invalid_range"


class TrackBusy(EditorError):
    """A DSP job is already in flight for this track."""
    code = "track_busy"

    def __init__(self, track_id: str):
        self.track_id = track_id
        super().__init__(f"Track {track_id} is busy with another operation")


class TrackNotFound(EditorError):
    """No track with the given id exists in the store."""
    code = "track_not_found"

    def __init__(self, track_id: str):
        self.track_id = track_id
        super().__init__(f"Track {track_id} not found")


class CorruptProject(EditorError):
    """A project document could not be loaded."""
    code = "corrupt_project"


class EmptyOperation(EditorError):
    """The operation has no eligible target (no selection, nothing to export...)."""
    code = "empty_operation"


class UnsupportedAudio(EditorError):
    """Audio data or a file could not be decoded."""
    code = "unsupported_audio"


class PlaybackFailed(EditorError):
    """The output device refused to start a stream."""
    code = "playback_failed"
