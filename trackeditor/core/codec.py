"""
Project document codec for PyTrackEditor.

A project document carries track metadata and one audio reference per track;
samples themselves are stored next to it (``audio/<track id>.wav``) by
``save_project``. Loading is all-or-nothing: any problem raises
``CorruptProject`` before the store is touched.
"""
from __future__ import annotations
from dataclasses import dataclass
import json
import os
from typing import Any, Optional

from trackeditor.utils.logger import get_logger

from . import audio_io
from .buffer import SampleBuffer
from .config import EXPORT_CONFIG
from .errors import CorruptProject, EditorError
from .track import AudioTrack
from .types import AudioRefFunc, AudioResolver, RepeatRegion

logger = get_logger("codec")

SUPPORTED_VERSIONS = frozenset({EXPORT_CONFIG.project_version})


@dataclass(frozen=True, slots=True)
class LoadedProject:
    project_name: str
    tracks: tuple[AudioTrack, ...]
    current_track_id: Optional[str] = None
    repeat_region: Optional[RepeatRegion] = None

    def apply_to(self, store) -> None:
        """Commit into ``store`` as a single undoable step."""
        store.load_state(self.project_name, self.tracks, self.current_track_id, self.repeat_region)


def default_audio_ref(track: AudioTrack) -> Optional[str]:
    if track.buffer is None:
        return None
    return f"{EXPORT_CONFIG.audio_dirname}/{track.id}.wav"


# --- Serialize ---

def serialize(store, audio_ref: AudioRefFunc = default_audio_ref) -> dict[str, Any]:
    """
    Project document for the store's current state (history and clipboard
    are not included).
    """
    state = store.state
    region = state.repeat_region
    return {
        "version": EXPORT_CONFIG.project_version,
        "projectName": state.project_name,
        "tracks": [
            {
                "id": track.id,
                "name": track.name,
                "duration": track.duration,
                "volume": track.volume,
                "pan": track.pan,
                "muted": track.muted,
                "soloed": track.soloed,
                "backgroundColor": track.background_color,
                "audioRef": audio_ref(track),
            }
            for track in state.tracks
        ],
        "currentTrackId": store.current_track_id,
        "repeatRegion": {"start": region.start, "end": region.end} if region is not None else None,
    }


def dumps(store, audio_ref: AudioRefFunc = default_audio_ref) -> str:
    return json.dumps(serialize(store, audio_ref), indent=2)


# --- Deserialize ---

def _require(record: dict, key: str, kind: Any, where: str) -> Any:
    if key not in record:
        raise CorruptProject(f"{where}: missing field '{key}'")
    value = record[key]
    # bool is an int subclass; never accept it for numeric fields
    if kind in ((int, float), float) and isinstance(value, bool):
        raise CorruptProject(f"{where}: field '{key}' has invalid type {type(value).__name__}")
    if not isinstance(value, kind):
        raise CorruptProject(f"{where}: field '{key}' has invalid type {type(value).__name__}")
    return value


def _optional(record: dict, key: str, kind: Any, where: str) -> Any:
    if record.get(key) is None:
        return None
    return _require(record, key, kind, where)


def _default(record: dict, key: str, kind: Any, where: str, default: Any) -> Any:
    if record.get(key) is None:
        return default
    return _require(record, key, kind, where)


def _parse_track(record: Any, index: int, resolve_audio: AudioResolver) -> AudioTrack:
    where = f"track {index}"
    if not isinstance(record, dict):
        raise CorruptProject(f"{where}: expected an object")

    track_id = _require(record, "id", str, where)
    name = _require(record, "name", str, where)
    # Duration follows from the buffer; only its type is checked
    _optional(record, "duration", (int, float), where)
    volume = _default(record, "volume", (int, float), where, 1.0)
    pan = _default(record, "pan", (int, float), where, 0.0)
    muted = _default(record, "muted", bool, where, False)
    soloed = _default(record, "soloed", bool, where, False)
    color = _optional(record, "backgroundColor", str, where)
    if "audioRef" not in record:
        raise CorruptProject(f"{where}: missing field 'audioRef'")
    ref = _optional(record, "audioRef", str, where)

    buffer = None
    if ref is not None:
        try:
            buffer = resolve_audio(ref)
        except CorruptProject:
            raise
        except Exception as e:
            raise CorruptProject(f"{where}: cannot resolve audio '{ref}': {e}") from e
        if not isinstance(buffer, SampleBuffer):
            raise CorruptProject(f"{where}: audio reference '{ref}' did not resolve")

    try:
        return AudioTrack(
            id=track_id, name=name, buffer=buffer, volume=float(volume), pan=float(pan),
            muted=muted, soloed=soloed, background_color=color,
        )
    except EditorError as e:
        raise CorruptProject(f"{where}: {e}") from e


def deserialize(document: Any, resolve_audio: AudioResolver) -> LoadedProject:
    """
    Rebuild project state from a document.

    Args:
        document: Parsed project document
        resolve_audio: Maps an ``audioRef`` to its buffer

    Raises:
        CorruptProject: missing or invalid field, unknown version or
            unresolvable audio reference
    """
    if not isinstance(document, dict):
        raise CorruptProject("Project document must be an object")
    version = document.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise CorruptProject(f"Unsupported project version: {version!r}")

    name = _require(document, "projectName", str, "project")
    records = _require(document, "tracks", list, "project")
    tracks = tuple(_parse_track(r, i, resolve_audio) for i, r in enumerate(records))

    ids = [t.id for t in tracks]
    if len(set(ids)) != len(ids):
        raise CorruptProject("Duplicate track ids")

    current = _optional(document, "currentTrackId", str, "project")
    if current is not None and current not in ids:
        raise CorruptProject(f"currentTrackId {current!r} does not name a track")

    region = None
    raw_region = document.get("repeatRegion")
    if raw_region is not None:
        if not isinstance(raw_region, dict):
            raise CorruptProject("repeatRegion must be an object")
        start = _require(raw_region, "start", (int, float), "repeatRegion")
        end = _require(raw_region, "end", (int, float), "repeatRegion")
        try:
            region = RepeatRegion(float(start), float(end))
        except EditorError as e:
            raise CorruptProject(f"repeatRegion: {e}") from e

    logger.info(f"Decoded project '{name}' with {len(tracks)} track(s)")
    return LoadedProject(name, tracks, current, region)


def loads(text: str, resolve_audio: AudioResolver) -> LoadedProject:
    try:
        document = json.loads(text)
    except (TypeError, ValueError) as e:
        raise CorruptProject(f"Project file is not valid JSON: {e}") from e
    return deserialize(document, resolve_audio)


# --- Directory format ---

def save_project(store, directory: str) -> str:
    """
    Write ``project.json`` and one lossless WAV per track into ``directory``.

    Returns:
        Path of the written project document
    """
    audio_dir = os.path.join(directory, EXPORT_CONFIG.audio_dirname)
    os.makedirs(audio_dir, exist_ok=True)

    for track in store.tracks:
        ref = default_audio_ref(track)
        if ref is not None:
            audio_io.write_file(os.path.join(directory, ref), track.buffer, "wav", "32")

    path = os.path.join(directory, EXPORT_CONFIG.project_filename)
    with open(path, "w", encoding="utf-8") as f:
        f.write(dumps(store))
    logger.info(f"Saved project to {path}")
    return path


def _directory_resolver(directory: str) -> AudioResolver:
    root = os.path.abspath(directory)

    def resolve(ref: str) -> SampleBuffer:
        path = os.path.abspath(os.path.join(root, ref))
        if os.path.commonpath([root, path]) != root:
            raise CorruptProject(f"Audio reference '{ref}' points outside the project")
        if not os.path.isfile(path):
            raise CorruptProject(f"Audio file '{ref}' is missing")
        return audio_io.read_file(path)

    return resolve


def load_project(directory: str) -> LoadedProject:
    """Read a project written by ``save_project``."""
    path = os.path.join(directory, EXPORT_CONFIG.project_filename)
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise CorruptProject(f"Cannot read {path}: {e}") from e
    return loads(text, _directory_resolver(directory))
