"""
Audio engine facade for PyTrackEditor.

The engine is what a UI drives: it turns user intents into
resolve -> DSP -> commit pipelines over one ``TrackStore`` and returns an
``OperationResult`` for every command, so a rejected command is logged and
reported instead of crashing the session.
"""
from __future__ import annotations
from functools import partial
import os
from typing import Any, Callable, Optional, Union
import numpy as np

from trackeditor.utils.logger import logger

from . import audio_io, codec
from . import effects
from .buffer import SampleBuffer
from .config import AUDIO_CONFIG, ExportScope, Scope
from .effects_basic import resample_rate
from .errors import EditorError, EmptyOperation, InvalidParameter, TrackBusy
from .jobs import DspJobRunner, JobOutcome
from .mixdown import mix_down_for_export
from .playback import SoundDevicePlayer
from .scope import resolve
from .store import TrackStore
from .transport import HandleFactory, TransportController
from .types import EditTarget, OperationResult


class AudioEngine:
    """
    Core engine for editing, playback and project management.
    Uses sounddevice for output, soundfile/librosa for file I/O.
    """

    def __init__(
        self,
        store: Optional[TrackStore] = None,
        handle_factory: Optional[HandleFactory] = None,
        max_workers: Optional[int] = None,
    ):
        self.store = store if store is not None else TrackStore()
        self.transport = TransportController(self.store, handle_factory or SoundDevicePlayer.for_track)
        self.jobs = DspJobRunner(self.store) if max_workers is None else DspJobRunner(self.store, max_workers)
        self._closed = False
        logger.info("AudioEngine initialized")

    # --- Command boundary ---

    def _run(self, action: str, func: Callable[..., Any], *args, **kwargs) -> OperationResult:
        try:
            return OperationResult.ok(func(*args, **kwargs))
        except EditorError as e:
            logger.warning(f"{action} rejected: {e}")
            return OperationResult.failed(e)

    @property
    def sample_rate(self) -> int:
        """Rate of the first track with audio (new imports are matched to it)."""
        for track in self.store.tracks:
            if track.buffer is not None:
                return track.buffer.sample_rate
        return AUDIO_CONFIG.default_samplerate

    # --- Track management ---

    def add_track(self, buffer: Optional[SampleBuffer] = None, name: str = "Track", **settings) -> OperationResult:
        return self._run("Add track", self.store.add_track, buffer, name, **settings)

    def remove_track(self, track_id: str) -> OperationResult:
        def remove():
            self.jobs.cancel(track_id)
            return self.store.remove_track(track_id)
        return self._run("Remove track", remove)

    def duplicate_track(self, track_id: str) -> OperationResult:
        return self._run("Duplicate track", self.store.duplicate_track, track_id)

    def import_audio(self, source: Union[str, bytes], name: Optional[str] = None) -> OperationResult:
        """
        Decode a file path or in-memory file and add it as a new track.
        Once the project has audio, imports are resampled to its rate.
        """
        def load():
            target_sr = self.sample_rate if any(t.buffer is not None for t in self.store.tracks) else None
            if isinstance(source, (bytes, bytearray)):
                buffer = audio_io.decode(bytes(source))
                if target_sr is not None and buffer.sample_rate != target_sr:
                    buffer = SampleBuffer(resample_rate(buffer.samples, buffer.sample_rate, target_sr), target_sr)
                track_name = name or "Imported audio"
            else:
                buffer = audio_io.load_file(source, sample_rate=target_sr)
                track_name = name or os.path.basename(source)
            return self.store.add_track(buffer, track_name)

        return self._run("Import audio", load)

    def new_project(self) -> None:
        """Resets the engine to a clean state."""
        self.transport.stop_all()
        for track in self.store.tracks:
            self.jobs.cancel(track.id)
        self.store.reset()
        logger.info("Project cleared")

    # --- Effects ---

    def _targets(self, name: str, scope: Union[Scope, str], params: dict) -> list[EditTarget]:
        effects.validate_params(name, params)
        targets = resolve(scope, self.store.view())
        if not targets:
            raise EmptyOperation(f"No audio to apply {name} to")
        for target in targets:
            effects.validate_params(name, params, self.store.get_track(target.track_id).sample_rate)
            if self.jobs.is_busy(target.track_id):
                raise TrackBusy(target.track_id)
        return targets

    def apply_effect(self, name: str, scope: Union[Scope, str] = Scope.SELECTION, **params) -> OperationResult:
        """
        Apply a DSP effect to every target of ``scope`` and commit the
        results as one undoable step.

        Returns:
            OperationResult whose value is the list of modified track ids
        """
        def apply():
            targets = self._targets(name, scope, params)
            results = {}
            for target in targets:
                buffer = self.store.get_track(target.track_id).buffer
                results[target.track_id] = effects.apply_effect(name, buffer, target.start, target.end, **params)
            return self.store.replace_buffers(results, f"Apply {name}")

        return self._run(f"Effect {name}", apply)

    def apply_effect_async(self, name: str, scope: Union[Scope, str] = Scope.SELECTION, **params) -> OperationResult:
        """
        Queue an effect on the worker pool. Results are committed by
        ``process_pending`` on the calling thread.

        Returns:
            OperationResult whose value is the queued ``DspJob``
        """
        def submit():
            targets = self._targets(name, scope, params)
            return self.jobs.submit(targets, partial(effects.apply_effect, name, **params), f"Apply {name}")

        return self._run(f"Effect {name}", submit)

    def process_pending(self) -> list[JobOutcome]:
        """Commit finished background jobs; call from the owner thread."""
        return self.jobs.drain()

    # --- Editing ---

    def copy(self) -> OperationResult:
        return self._run("Copy", self.store.copy_selection)

    def cut(self) -> OperationResult:
        return self._run("Cut", self._guarded_selection_edit, self.store.cut_selection)

    def delete(self) -> OperationResult:
        return self._run("Delete", self._guarded_selection_edit, self.store.delete_selection)

    def paste(self) -> OperationResult:
        """Inserts the clipboard at the playhead (the cursor once playback is paused)."""
        def paste():
            track = self.store.current_track
            if track is not None and self.jobs.is_busy(track.id):
                raise TrackBusy(track.id)
            if self.transport.is_playing:
                self.store.set_cursor(self.transport.current_time)
            return self.store.paste()
        return self._run("Paste", paste)

    def _guarded_selection_edit(self, edit: Callable[[], Any]) -> Any:
        selection = self.store.selection
        if selection is not None and self.jobs.is_busy(selection.track_id):
            raise TrackBusy(selection.track_id)
        return edit()

    def split(self, offset: float, track_id: Optional[str] = None) -> OperationResult:
        """Split ``track_id`` (default: current track) at ``offset`` seconds."""
        def split():
            tid = track_id or self.store.current_track_id
            if tid is None:
                raise EmptyOperation("No track to split")
            if self.jobs.is_busy(tid):
                raise TrackBusy(tid)
            return self.store.split_track(tid, offset)
        return self._run("Split", split)

    def undo(self) -> OperationResult:
        return self._run("Undo", self.store.undo)

    def redo(self) -> OperationResult:
        return self._run("Redo", self.store.redo)

    # --- Playback ---

    def play(self) -> OperationResult:
        return self._run("Play", self.transport.play_all)

    def pause(self) -> OperationResult:
        """Pauses every track and leaves the paste cursor at the playhead."""
        def pause():
            self.transport.pause_all()
            self.store.set_cursor(self.transport.current_time)
        return self._run("Pause", pause)

    def stop(self) -> OperationResult:
        def stop():
            self.transport.stop_all()
            self.store.set_cursor(0.0)
        return self._run("Stop", stop)

    def seek(self, seconds: float) -> OperationResult:
        """Moves the playhead (and paste cursor) to ``seconds``."""
        def seek():
            self.transport.seek_all(seconds)
            self.store.set_cursor(max(0.0, seconds))
        return self._run("Seek", seek)

    # --- Export ---

    def _selection_tracks(self):
        selection = self.store.selection
        if selection is None:
            raise EmptyOperation("Nothing selected to export")
        span = []
        for track in self.store.tracks:
            if not track.has_audio:
                continue
            buffer = track.buffer
            start = int(np.floor(selection.start * buffer.sample_rate))
            length = max(1, int(np.floor(selection.end * buffer.sample_rate)) - start)
            samples = np.zeros((length, buffer.num_channels), dtype=np.float32)
            available = buffer.slice(start, start + length).samples
            samples[:len(available)] = available
            span.append(track.with_buffer(buffer.with_samples(samples), track.version))
        return span

    def render(self, scope: Union[ExportScope, str] = ExportScope.ALL) -> tuple[SampleBuffer, str]:
        """
        Buffer and base filename for an export scope.

        Raises:
            EmptyOperation: nothing audible in scope
        """
        try:
            scope = ExportScope(scope)
        except ValueError:
            raise InvalidParameter("scope", scope, f"one of {[s.value for s in ExportScope]}") from None

        project = self.store.project_name
        if scope is ExportScope.CURRENT:
            track = self.store.current_track
            if track is None or not track.has_audio:
                raise EmptyOperation("Current track has no audio")
            return track.buffer, f"{project}_{track.name}"

        if scope is ExportScope.SELECTION:
            tracks, filename = self._selection_tracks(), f"{project}_selection"
        else:
            tracks, filename = self.store.tracks, project

        buffer = mix_down_for_export(tracks)
        if buffer is None:
            raise EmptyOperation("No audible tracks to export")
        return buffer, filename

    def export_audio(
        self,
        format: str = "wav",
        quality: Optional[Union[str, int]] = None,
        scope: Union[ExportScope, str] = ExportScope.ALL,
    ) -> OperationResult:
        """
        Render and encode audio for export.

        Returns:
            OperationResult whose value is ``(data, filename)``
        """
        def export():
            fmt, q = audio_io.validate_export_options(format, quality)
            buffer, base = self.render(scope)
            return audio_io.encode(buffer, fmt, q), f"{base}.{fmt}"

        return self._run("Export", export)

    # --- Projects ---

    def save_project(self, directory: str) -> OperationResult:
        return self._run("Save project", codec.save_project, self.store, directory)

    def load_project(self, directory: str) -> OperationResult:
        """Load a saved project; on failure the current project is untouched."""
        def load():
            loaded = codec.load_project(directory)
            self.transport.stop_all()
            for track in self.store.tracks:
                self.jobs.cancel(track.id)
            loaded.apply_to(self.store)
            return loaded
        return self._run("Load project", load)

    def close(self) -> None:
        """Tear down the session: stop playback, workers and device handles."""
        if self._closed:
            return
        self._closed = True
        self.transport.close()
        self.jobs.shutdown(wait=False)
        logger.info("AudioEngine closed")
