"""
Multi-track transport for PyTrackEditor.
Keeps one playback handle per track in lockstep and loops the repeat region.
"""
from __future__ import annotations
import threading
from typing import Callable, Optional

from trackeditor.utils.logger import get_logger

from .config import TRANSPORT_CONFIG, PlaybackState
from .errors import EditorError, EmptyOperation
from .mixdown import active_tracks
from .store import TOPIC_TRACKS, TrackStore
from .track import AudioTrack
from .types import PlaybackHandle, PositionCallback, Unsubscribe

logger = get_logger("transport")

HandleFactory = Callable[[AudioTrack], PlaybackHandle]


class TransportController:
    """
    Coordinates per-track playback handles.

    Handles are created through ``handle_factory`` and kept in sync with the
    store: new tracks get a handle, replaced buffers are reloaded and removed
    tracks are closed. The repeat-region monitor only reads store snapshots.
    """

    def __init__(
        self,
        store: TrackStore,
        handle_factory: HandleFactory,
        on_position_changed: Optional[PositionCallback] = None,
        on_state_changed: Optional[Callable[[PlaybackState], None]] = None,
        epsilon: float = TRANSPORT_CONFIG.repeat_epsilon,
        tick_interval: float = TRANSPORT_CONFIG.tick_interval,
    ) -> None:
        self._store = store
        self._factory = handle_factory
        self._handles: dict[str, PlaybackHandle] = {}
        self._loaded: dict[str, object] = {}
        self._state = PlaybackState.STOPPED
        self._position_listeners: list[PositionCallback] = []
        if on_position_changed is not None:
            self._position_listeners.append(on_position_changed)
        self._on_state_changed = on_state_changed
        self._epsilon = epsilon
        self._tick_interval = tick_interval
        self._last_position: Optional[float] = None
        self._lock = threading.RLock()
        self._monitor: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._unsubscribe: Optional[Unsubscribe] = store.subscribe(TOPIC_TRACKS, self._on_tracks_changed)
        self.sync()

    # --- State ---

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == PlaybackState.PLAYING

    @property
    def current_time(self) -> float:
        """Transport position in seconds (furthest handle position)."""
        with self._lock:
            return max((h.current_time for h in self._handles.values()), default=0.0)

    def handle_for(self, track_id: str) -> Optional[PlaybackHandle]:
        return self._handles.get(track_id)

    def add_position_listener(self, callback: PositionCallback) -> Unsubscribe:
        self._position_listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._position_listeners:
                self._position_listeners.remove(callback)

        return unsubscribe

    def _set_state(self, state: PlaybackState) -> None:
        if self._state != state:
            self._state = state
            logger.debug(f"Transport state: {state.name}")
            if self._on_state_changed:
                self._on_state_changed(state)

    def _notify_position(self, position: float) -> None:
        for callback in list(self._position_listeners):
            try:
                callback(position)
            except Exception as e:
                logger.error(f"Position listener failed: {e}", exc_info=True)

    # --- Store sync ---

    def _on_tracks_changed(self, store: TrackStore) -> None:
        self.sync()

    def sync(self) -> None:
        """Reconcile handles with the store's current track list."""
        tracks = self._store.tracks
        with self._lock:
            live = {t.id for t in tracks}
            for track_id in [tid for tid in self._handles if tid not in live]:
                self._handles.pop(track_id).close()
                self._loaded.pop(track_id, None)
                logger.debug(f"Closed handle for removed track {track_id}")

            position = self.current_time
            for track in tracks:
                handle = self._handles.get(track.id)
                if handle is None:
                    handle = self._factory(track)
                    self._handles[track.id] = handle
                    handle.load(track.buffer)
                    self._loaded[track.id] = track.buffer
                    self._align(handle, position)
                elif self._loaded[track.id] is not track.buffer:
                    handle.load(track.buffer)
                    self._loaded[track.id] = track.buffer
                    self._align(handle, position)
                handle.set_levels(track.volume, track.pan)

            if self.is_playing:
                try:
                    self._apply_audibility(tracks)
                except EditorError:
                    self._set_state(PlaybackState.PAUSED)
                    raise

    @staticmethod
    def _align(handle: PlaybackHandle, position: float) -> None:
        if handle.duration > 0:
            handle.seek(min(1.0, max(0.0, position / handle.duration)))

    def _apply_audibility(self, tracks: tuple[AudioTrack, ...]) -> None:
        audible = {t.id for t in active_tracks(tracks) if t.has_audio}
        # Handles that sat out (solo/mute) rejoin at the running position
        running = [h.current_time for h in self._handles.values() if h.is_playing]
        position = max(running) if running else self.current_time
        try:
            for track_id, handle in self._handles.items():
                if track_id in audible:
                    if not handle.is_playing:
                        self._align(handle, position)
                        handle.play()
                elif handle.is_playing:
                    handle.pause()
        except EditorError:
            for handle in self._handles.values():
                handle.pause()
            raise

    # --- Transport commands ---

    def play_all(self) -> None:
        """
        Start every audible track (solo rule, then mute); the rest are
        paused so they keep their position.

        Raises:
            EmptyOperation: the project has no tracks
            PlaybackFailed: a handle could not start; every handle is paused
        """
        tracks = self._store.tracks
        if not tracks:
            raise EmptyOperation("No tracks to play")
        with self._lock:
            self._apply_audibility(tracks)
            self._last_position = self.current_time
        self._set_state(PlaybackState.PLAYING)
        logger.info(f"Playback started at {self._last_position:.2f}s")

    def pause_all(self) -> None:
        with self._lock:
            for handle in self._handles.values():
                handle.pause()
        self._set_state(PlaybackState.PAUSED)
        logger.info(f"Playback paused at {self.current_time:.2f}s")

    def stop_all(self) -> None:
        """Stop playback and rewind every track to 0."""
        with self._lock:
            for handle in self._handles.values():
                handle.stop()
                handle.seek(0.0)
            self._last_position = 0.0
        self._set_state(PlaybackState.STOPPED)
        self._notify_position(0.0)
        logger.info("Playback stopped")

    def toggle_play_pause(self) -> None:
        if self.is_playing:
            self.pause_all()
        else:
            self.play_all()

    def seek_all(self, seconds: float) -> None:
        """Move every track to ``seconds`` (each clamped to its own length)."""
        seconds = max(0.0, seconds)
        with self._lock:
            for handle in self._handles.values():
                self._align(handle, seconds)
            self._last_position = seconds
        self._notify_position(seconds)

    # --- Repeat-region monitor ---

    def tick(self) -> float:
        """
        One monitor iteration: loop back to the region start when playback
        crosses its end, then report the position.

        Returns:
            The position after this tick, in seconds
        """
        position = self.current_time
        region = self._store.repeat_region
        previous = self._last_position
        eps = self._epsilon

        if (
            self.is_playing
            and region is not None
            and previous is not None
            and region.start - eps <= previous <= region.end + eps
            and previous < region.end - eps <= position
        ):
            logger.debug(f"Repeat region: {position:.3f}s -> {region.start:.3f}s")
            with self._lock:
                for handle in self._handles.values():
                    self._align(handle, region.start)
            position = region.start

        self._last_position = position
        self._notify_position(position)
        return position

    def start_monitor(self) -> None:
        """Run ``tick`` on a daemon thread every ``tick_interval`` seconds."""
        if self._monitor is not None and self._monitor.is_alive():
            return
        self._stop_event.clear()
        self._monitor = threading.Thread(target=self._run_monitor, name="transport-monitor", daemon=True)
        self._monitor.start()
        logger.debug("Transport monitor started")

    def stop_monitor(self) -> None:
        self._stop_event.set()
        if self._monitor is not None and self._monitor is not threading.current_thread():
            self._monitor.join(timeout=1.0)
        self._monitor = None

    def _run_monitor(self) -> None:
        while not self._stop_event.wait(self._tick_interval):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Transport tick failed: {e}", exc_info=True)

    def close(self) -> None:
        """Stop the monitor, detach from the store and close every handle."""
        self.stop_monitor()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            for handle in self._handles.values():
                handle.close()
            self._handles.clear()
            self._loaded.clear()
        self._state = PlaybackState.STOPPED
        logger.info("Transport closed")
