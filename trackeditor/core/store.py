"""
Track store for PyTrackEditor.

The store owns the project: an immutable ``ProjectState`` snapshot (tracks,
name, repeat region) under linear undo/redo, plus view state that is not
history-tracked (current track, selection, paste cursor) and the clipboard.
Every committed operation builds a new snapshot and pushes it to history;
observers are notified per topic once the change is in place.
"""
from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Iterator, Mapping, Optional
import itertools

from trackeditor.utils.logger import get_logger

from .buffer import SampleBuffer
from .config import EXPORT_CONFIG, UNDO_CONFIG, Scope
from .effects_basic import resample_rate
from .errors import EmptyOperation, InvalidParameter, InvalidRange, TrackNotFound
from .mixdown import mix_down_for_export
from .scope import resolve
from .track import AudioTrack, new_track_id
from .types import RepeatRegion, Selection, StoreListener, Unsubscribe
from .undo_manager import UndoManager

logger = get_logger("store")

TOPIC_TRACKS = "tracks"
TOPIC_CURRENT_TRACK = "current_track"
TOPIC_SELECTION = "selection"
TOPIC_REPEAT_REGION = "repeat_region"
TOPIC_CLIPBOARD = "clipboard"
TOPIC_HISTORY = "history"

TOPICS = (
    TOPIC_TRACKS,
    TOPIC_CURRENT_TRACK,
    TOPIC_SELECTION,
    TOPIC_REPEAT_REGION,
    TOPIC_CLIPBOARD,
    TOPIC_HISTORY,
)


@dataclass(frozen=True, slots=True)
class ProjectState:
    """One undoable snapshot of the project."""
    project_name: str = EXPORT_CONFIG.default_project_name
    tracks: tuple[AudioTrack, ...] = ()
    repeat_region: Optional[RepeatRegion] = None

    def find_track(self, track_id: Optional[str]) -> Optional[AudioTrack]:
        for track in self.tracks:
            if track.id == track_id:
                return track
        return None

    def index_of(self, track_id: str) -> int:
        for i, track in enumerate(self.tracks):
            if track.id == track_id:
                return i
        raise TrackNotFound(track_id)

    def with_track(self, track: AudioTrack) -> "ProjectState":
        """Snapshot with the track of the same id replaced."""
        i = self.index_of(track.id)
        return replace(self, tracks=self.tracks[:i] + (track,) + self.tracks[i + 1:])

    @property
    def duration(self) -> float:
        return max((t.duration for t in self.tracks), default=0.0)


@dataclass(frozen=True, slots=True)
class ProjectView:
    """Consistent read-only view of project plus view state, for resolvers and jobs."""
    state: ProjectState
    current_track_id: Optional[str] = None
    selection: Optional[Selection] = None
    cursor: float = 0.0

    @property
    def tracks(self) -> tuple[AudioTrack, ...]:
        return self.state.tracks

    @property
    def current_track(self) -> Optional[AudioTrack]:
        return self.state.find_track(self.current_track_id)

    def find_track(self, track_id: Optional[str]) -> Optional[AudioTrack]:
        return self.state.find_track(track_id)


class TrackStore:
    """
    Authoritative multi-track project state with linear undo/redo.

    Must be driven from a single owner thread. Other threads may read
    ``state`` / ``view()``; both return immutable snapshots.
    """

    def __init__(self, project_name: str = EXPORT_CONFIG.default_project_name,
                 max_history: int = UNDO_CONFIG.max_depth):
        self._state = ProjectState(project_name=project_name)
        self._history = UndoManager(self._state, max_depth=max_history)
        self._current_track_id: Optional[str] = None
        self._selection: Optional[Selection] = None
        self._cursor = 0.0
        self._clipboard: Optional[SampleBuffer] = None
        self._versions = itertools.count(1)
        self._listeners: dict[str, list[StoreListener]] = {topic: [] for topic in TOPICS}

    # --- Read access ---

    @property
    def state(self) -> ProjectState:
        return self._state

    def view(self) -> ProjectView:
        return ProjectView(self._state, self._current_track_id, self._selection, self._cursor)

    @property
    def project_name(self) -> str:
        return self._state.project_name

    @property
    def tracks(self) -> tuple[AudioTrack, ...]:
        return self._state.tracks

    @property
    def current_track_id(self) -> Optional[str]:
        return self._current_track_id

    @property
    def current_track(self) -> Optional[AudioTrack]:
        return self._state.find_track(self._current_track_id)

    @property
    def selection(self) -> Optional[Selection]:
        return self._selection

    @property
    def cursor(self) -> float:
        return self._cursor

    @property
    def clipboard(self) -> Optional[SampleBuffer]:
        return self._clipboard

    @property
    def repeat_region(self) -> Optional[RepeatRegion]:
        return self._state.repeat_region

    @property
    def duration(self) -> float:
        """Length of the longest track in seconds."""
        return self._state.duration

    @property
    def history(self) -> UndoManager:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def undo_description(self) -> Optional[str]:
        return self._history.undo_description

    @property
    def redo_description(self) -> Optional[str]:
        return self._history.redo_description

    def find_track(self, track_id: Optional[str]) -> Optional[AudioTrack]:
        return self._state.find_track(track_id)

    def get_track(self, track_id: str) -> AudioTrack:
        """Track by id; raises TrackNotFound."""
        track = self._state.find_track(track_id)
        if track is None:
            raise TrackNotFound(track_id)
        return track

    def next_version(self) -> int:
        return next(self._versions)

    # --- Observers ---

    def subscribe(self, topic: str, callback: StoreListener) -> Unsubscribe:
        """
        Register ``callback(store)`` for changes to one state slice.

        Returns:
            A function that removes the subscription (idempotent)
        """
        if topic not in self._listeners:
            raise InvalidParameter("topic", topic, f"one of {list(TOPICS)}")
        listeners = self._listeners[topic]
        listeners.append(callback)

        def unsubscribe() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def _markers(self) -> tuple:
        return (
            self._state,
            self._current_track_id,
            self._selection,
            self._clipboard,
            self._history.entries[self._history.position],
        )

    def _changed_topics(self, before: tuple) -> list[str]:
        state, current, selection, clipboard, entry = before
        changed = []
        if self._state.tracks is not state.tracks:
            changed.append(TOPIC_TRACKS)
        if self._current_track_id != current:
            changed.append(TOPIC_CURRENT_TRACK)
        if self._selection != selection:
            changed.append(TOPIC_SELECTION)
        if self._state.repeat_region != state.repeat_region:
            changed.append(TOPIC_REPEAT_REGION)
        if self._clipboard is not clipboard:
            changed.append(TOPIC_CLIPBOARD)
        if self._history.entries[self._history.position] is not entry:
            changed.append(TOPIC_HISTORY)
        return changed

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        """Notify observers of every slice changed inside the block (on success only)."""
        before = self._markers()
        yield
        for topic in self._changed_topics(before):
            for callback in list(self._listeners[topic]):
                try:
                    callback(self)
                except Exception as e:
                    logger.error(f"Observer for '{topic}' failed: {e}", exc_info=True)

    # --- History ---

    def _commit(self, state: ProjectState, description: str) -> None:
        self._state = state
        self._history.commit(state, description)
        self._reconcile_view()
        logger.info(description)

    def _reconcile_view(self) -> None:
        """Drop view state that no longer points at a valid target."""
        tracks = self._state.tracks
        if self._current_track_id is not None and self._state.find_track(self._current_track_id) is None:
            self._current_track_id = tracks[-1].id if tracks else None
        if self._selection is not None:
            track = self._state.find_track(self._selection.track_id)
            if track is None or self._selection.start >= track.duration:
                self._selection = None

    def undo(self) -> bool:
        with self._mutation():
            state = self._history.undo()
            if state is None:
                return False
            self._state = state
            self._reconcile_view()
        return True

    def redo(self) -> bool:
        with self._mutation():
            state = self._history.redo()
            if state is None:
                return False
            self._state = state
            self._reconcile_view()
        return True

    def reset(self) -> None:
        """Clear everything; the empty project becomes the new history baseline."""
        with self._mutation():
            self._state = ProjectState(project_name=self._state.project_name)
            self._history.reset(self._state)
            self._current_track_id = None
            self._selection = None
            self._cursor = 0.0
            self._clipboard = None
        logger.info("Store reset")

    def load_state(
        self,
        project_name: str,
        tracks: tuple[AudioTrack, ...],
        current_track_id: Optional[str] = None,
        repeat_region: Optional[RepeatRegion] = None,
    ) -> None:
        """Replace the whole project in one undoable step (used by project load)."""
        loaded = tuple(t.with_buffer(t.buffer, self.next_version()) for t in tracks)
        state = ProjectState(project_name=project_name, tracks=loaded, repeat_region=repeat_region)
        if current_track_id is not None and state.find_track(current_track_id) is None:
            raise TrackNotFound(current_track_id)
        with self._mutation():
            self._current_track_id = current_track_id
            self._selection = None
            self._cursor = 0.0
            self._clipboard = None
            self._commit(state, f"Load project {project_name}")

    # --- Track management ---

    def add_track(
        self,
        buffer: Optional[SampleBuffer] = None,
        name: str = "Track",
        **settings,
    ) -> AudioTrack:
        """
        Appends a new track and makes it current.

        Args:
            buffer: Initial audio (None for an empty track)
            name: Display name
            **settings: volume, pan, muted, soloed, background_color

        Returns:
            The created track
        """
        track = AudioTrack(name=name, buffer=buffer, version=self.next_version(), **settings)
        with self._mutation():
            self._commit(replace(self._state, tracks=self._state.tracks + (track,)), f"Add track {name}")
            self._current_track_id = track.id
        return track

    def remove_track(self, track_id: str) -> AudioTrack:
        track = self.get_track(track_id)
        tracks = tuple(t for t in self._state.tracks if t.id != track_id)
        with self._mutation():
            self._commit(replace(self._state, tracks=tracks), f"Remove track {track.name}")
        return track

    def duplicate_track(self, track_id: str) -> AudioTrack:
        """Copies a track (buffer shared, new id) right after the original and selects it."""
        source = self.get_track(track_id)
        copy = replace(source, id=new_track_id(), name=f"{source.name} (Copy)",
                       version=self.next_version())
        i = self._state.index_of(track_id)
        tracks = self._state.tracks[:i + 1] + (copy,) + self._state.tracks[i + 1:]
        with self._mutation():
            self._commit(replace(self._state, tracks=tracks), f"Duplicate track {source.name}")
            self._current_track_id = copy.id
        return copy

    def _update_track(self, track_id: str, description: str, **changes) -> AudioTrack:
        track = self.get_track(track_id).evolve(**changes)
        with self._mutation():
            self._commit(self._state.with_track(track), description)
        return track

    def rename_track(self, track_id: str, name: str) -> AudioTrack:
        if not isinstance(name, str) or not name.strip():
            raise InvalidParameter("name", name, "a non-empty string")
        return self._update_track(track_id, f"Rename track to {name}", name=name)

    def set_volume(self, track_id: str, volume: float) -> AudioTrack:
        return self._update_track(track_id, f"Set volume {volume:.2f}", volume=float(volume))

    def set_pan(self, track_id: str, pan: float) -> AudioTrack:
        return self._update_track(track_id, f"Set pan {pan:+.2f}", pan=float(pan))

    def set_muted(self, track_id: str, muted: bool) -> AudioTrack:
        return self._update_track(track_id, "Mute track" if muted else "Unmute track", muted=bool(muted))

    def toggle_mute(self, track_id: str) -> AudioTrack:
        return self.set_muted(track_id, not self.get_track(track_id).muted)

    def set_soloed(self, track_id: str, soloed: bool) -> AudioTrack:
        return self._update_track(track_id, "Solo track" if soloed else "Unsolo track", soloed=bool(soloed))

    def toggle_solo(self, track_id: str) -> AudioTrack:
        """Exclusive solo: soloing a track unsolos every other track."""
        target = self.get_track(track_id)
        soloed = not target.soloed
        tracks = tuple(
            t.evolve(soloed=soloed) if t.id == track_id
            else (t.evolve(soloed=False) if soloed and t.soloed else t)
            for t in self._state.tracks
        )
        with self._mutation():
            self._commit(replace(self._state, tracks=tracks), "Solo track" if soloed else "Unsolo track")
        return self.get_track(track_id)

    def set_background_color(self, track_id: str, color: Optional[str]) -> AudioTrack:
        return self._update_track(track_id, "Set track color", background_color=color)

    def set_project_name(self, name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise InvalidParameter("project_name", name, "a non-empty string")
        with self._mutation():
            self._commit(replace(self._state, project_name=name), f"Rename project to {name}")

    # --- Buffer edits ---

    def replace_buffers(self, buffers: Mapping[str, Optional[SampleBuffer]], description: str) -> list[str]:
        """
        Commits new buffers for several tracks as one history entry.
        Empty buffers are stored as None.

        Returns:
            The ids of the updated tracks
        """
        if not buffers:
            raise EmptyOperation("No buffers to commit")
        state = self._state
        for track_id, buffer in buffers.items():
            track = self.get_track(track_id)
            if buffer is not None and buffer.frames == 0:
                buffer = None
            state = state.with_track(track.with_buffer(buffer, self.next_version()))
        with self._mutation():
            self._commit(state, description)
            self._selection = None
        return list(buffers)

    def split_track(self, track_id: str, offset: float) -> AudioTrack:
        """
        Splits a track at ``offset`` seconds into two adjacent tracks.

        Returns:
            The new second track, holding [offset, duration)
        """
        track = self.get_track(track_id)
        if not track.has_audio or not 0 < offset < track.duration:
            raise InvalidRange(f"Split offset {offset} outside (0, {track.duration:.3f})")
        buffer = track.buffer
        frame = buffer.to_frame(offset)
        if not 0 < frame < buffer.frames:
            raise InvalidRange(f"Split offset {offset} does not fall inside the track")

        first = track.with_buffer(buffer.slice(0, frame), self.next_version())
        second = replace(track, id=new_track_id(), name=f"{track.name} (2)",
                         buffer=buffer.slice(frame, buffer.frames), version=self.next_version())
        i = self._state.index_of(track_id)
        tracks = self._state.tracks[:i] + (first, second) + self._state.tracks[i + 1:]
        with self._mutation():
            self._commit(replace(self._state, tracks=tracks), f"Split {track.name} at {offset:.3f}s")
            self._selection = None
        return second

    def _selected_range(self) -> tuple[AudioTrack, int, int]:
        if self._selection is None:
            raise EmptyOperation("Nothing selected")
        targets = resolve(Scope.SELECTION, self.view())
        if not targets:
            raise EmptyOperation("Selected track has no audio")
        target = targets[0]
        return self.get_track(target.track_id), target.start, target.end

    def copy_selection(self) -> SampleBuffer:
        """Snapshots the selected range into the clipboard (not undoable)."""
        track, start, end = self._selected_range()
        with self._mutation():
            self._clipboard = track.buffer.slice(start, end)
        logger.info(f"Copied {end - start} frames from {track.name}")
        return self._clipboard

    def cut_selection(self) -> SampleBuffer:
        """Copy, then remove the selected range. Cutting everything clears the buffer."""
        track, start, end = self._selected_range()
        clip = track.buffer.slice(start, end)
        remaining = track.buffer.excise(start, end)
        with self._mutation():
            self._clipboard = clip
            self._commit(
                self._state.with_track(track.with_buffer(remaining or None, self.next_version())),
                f"Cut from {track.name}",
            )
            self._selection = None
        return clip

    def delete_selection(self) -> None:
        track, start, end = self._selected_range()
        remaining = track.buffer.excise(start, end)
        with self._mutation():
            self._commit(
                self._state.with_track(track.with_buffer(remaining or None, self.next_version())),
                f"Delete from {track.name}",
            )
            self._selection = None

    def paste(self) -> AudioTrack:
        """Inserts the clipboard into the current track at the cursor."""
        if self._clipboard is None:
            raise EmptyOperation("Clipboard is empty")
        track = self.current_track
        if track is None:
            raise EmptyOperation("No current track")

        clip = self._clipboard
        if track.buffer is None:
            merged = clip
        else:
            buffer = track.buffer
            if clip.sample_rate != buffer.sample_rate:
                clip = SampleBuffer(resample_rate(clip.samples, clip.sample_rate, buffer.sample_rate),
                                    buffer.sample_rate)
            at = buffer.to_frame(min(self._cursor, buffer.duration))
            merged = buffer.insert(clip, at)

        updated = track.with_buffer(merged, self.next_version())
        with self._mutation():
            self._commit(self._state.with_track(updated), f"Paste into {track.name}")
            self._selection = None
        return updated

    # --- Repeat region ---

    def set_repeat_region(self, start: float, end: float) -> RepeatRegion:
        region = RepeatRegion(start, end)
        with self._mutation():
            self._commit(replace(self._state, repeat_region=region), f"Set repeat region {start:.2f}-{end:.2f}s")
        return region

    def clear_repeat_region(self) -> None:
        if self._state.repeat_region is None:
            logger.debug("No repeat region to clear")
            return
        with self._mutation():
            self._commit(replace(self._state, repeat_region=None), "Clear repeat region")

    # --- View state (not undoable) ---

    def set_current_track(self, track_id: Optional[str]) -> None:
        if track_id is not None:
            self.get_track(track_id)
        with self._mutation():
            self._current_track_id = track_id

    def set_selection(self, track_id: str, start: float, end: float) -> Selection:
        """Selects [start, end) seconds on a track and makes it current."""
        self.get_track(track_id)
        selection = Selection(track_id, start, end)
        with self._mutation():
            self._selection = selection
            self._current_track_id = track_id
        return selection

    def clear_selection(self) -> None:
        with self._mutation():
            self._selection = None

    def set_cursor(self, seconds: float) -> None:
        if seconds < 0:
            raise InvalidParameter("cursor", seconds, ">= 0")
        self._cursor = float(seconds)

    # --- Export ---

    def mix_down(self, sample_rate: Optional[int] = None) -> Optional[SampleBuffer]:
        """Mix of all audible tracks from one consistent snapshot."""
        return mix_down_for_export(self._state.tracks, sample_rate)
