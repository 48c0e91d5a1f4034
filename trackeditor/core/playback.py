"""
Per-track playback handle for PyTrackEditor.
Streams one track's buffer to the output device via sounddevice.
"""
from __future__ import annotations
import logging
import threading
from typing import Callable, Optional
import numpy as np

from .buffer import SampleBuffer
from .config import AUDIO_CONFIG, PlaybackState
from .errors import PlaybackFailed
from .mixdown import pan_gains
from .track import AudioTrack

logger = logging.getLogger("PyTrackEditor.playback")


class SoundDevicePlayer:
    """
    Plays a single buffer through a sounddevice OutputStream.
    Satisfies the transport's ``PlaybackHandle`` protocol.

    sounddevice is imported when a stream is opened, so the handle can be
    created (and the rest of the editor used) on machines without PortAudio.
    """
    __slots__ = (
        '_buffer', '_stream', '_current_frame', '_state', '_gains',
        '_on_finished', '_disposed', '_lock'
    )

    def __init__(self, on_finished: Optional[Callable[[], None]] = None) -> None:
        """
        Initialize playback handle.

        Args:
            on_finished: Called when the buffer plays out to its end
        """
        self._buffer: Optional[SampleBuffer] = None
        self._stream = None
        self._current_frame: int = 0
        self._state = PlaybackState.STOPPED
        self._gains = np.ones(AUDIO_CONFIG.playback_channels, dtype=np.float32)
        self._on_finished = on_finished
        self._disposed: bool = False
        self._lock = threading.Lock()

    @classmethod
    def for_track(cls, track: AudioTrack) -> "SoundDevicePlayer":
        """Handle factory for ``TransportController``."""
        player = cls()
        player.set_levels(track.volume, track.pan)
        return player

    @property
    def current_time(self) -> float:
        """Current playback position in seconds."""
        if self._buffer is None:
            return 0.0
        return self._current_frame / self._buffer.sample_rate

    @property
    def duration(self) -> float:
        return self._buffer.duration if self._buffer is not None else 0.0

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == PlaybackState.PLAYING

    def load(self, buffer: Optional[SampleBuffer]) -> None:
        """Swap in a new buffer; playback stops and the position is clamped."""
        self._close_stream()
        self._buffer = buffer
        frames = buffer.frames if buffer is not None else 0
        self._current_frame = min(self._current_frame, frames)
        self._state = PlaybackState.STOPPED

    def set_levels(self, volume: float, pan: float) -> None:
        left, right = pan_gains(pan)
        gains = np.full(AUDIO_CONFIG.playback_channels, volume, dtype=np.float32)
        if len(gains) >= 2:
            gains[0] *= left
            gains[1] *= right
        with self._lock:
            self._gains = gains

    def seek(self, fraction: float) -> None:
        """
        Move playhead to a fraction of the buffer length.

        Args:
            fraction: Target position in [0, 1]
        """
        if self._buffer is None:
            return
        fraction = min(1.0, max(0.0, fraction))
        with self._lock:
            self._current_frame = int(fraction * self._buffer.frames)

    def play(self) -> None:
        """Start streaming from the current position."""
        if self._disposed or self.is_playing:
            return
        buffer = self._buffer
        if buffer is None or buffer.frames == 0 or self._current_frame >= buffer.frames:
            return

        import sounddevice as sd

        samples = buffer.samples
        out_channels = AUDIO_CONFIG.playback_channels
        # Missing source channels repeat the last one (mono -> both sides)
        channel_map = np.minimum(np.arange(out_channels), buffer.num_channels - 1)

        def playback_callback(outdata: np.ndarray, frames: int, time: object, status: "sd.CallbackFlags") -> None:
            """Real-time audio callback."""
            try:
                outdata.fill(0)
                with self._lock:
                    start = self._current_frame
                    end = min(start + frames, len(samples))
                    gains = self._gains
                    self._current_frame = end
                if end > start:
                    np.multiply(samples[start:end][:, channel_map], gains, out=outdata[:end - start])
                    np.clip(outdata, -1.0, 1.0, out=outdata)
                if end >= len(samples):
                    raise sd.CallbackStop()
            except sd.CallbackStop:
                raise
            except Exception as e:
                logger.error("Playback callback error: %s", e, exc_info=True)
                raise sd.CallbackStop()

        def on_finished() -> None:
            # finished_callback may fire during shutdown; never call user callbacks then
            if self._disposed or self._state != PlaybackState.PLAYING:
                return
            self._state = PlaybackState.STOPPED
            if self._on_finished:
                self._on_finished()

        try:
            self._stream = sd.OutputStream(
                samplerate=buffer.sample_rate,
                channels=out_channels,
                blocksize=AUDIO_CONFIG.playback_blocksize,
                dtype='float32',
                callback=playback_callback,
                finished_callback=on_finished
            )
            self._state = PlaybackState.PLAYING
            self._stream.start()
            logger.debug("Playback started at frame %d", self._current_frame)
        except Exception as e:
            logger.error("Failed to start playback: %s", e, exc_info=True)
            self._close_stream()
            self._state = PlaybackState.STOPPED
            raise PlaybackFailed(f"Could not open output stream: {e}") from e

    def _close_stream(self) -> None:
        if self._stream is not None:
            stream, self._stream = self._stream, None
            try:
                stream.stop()
                stream.close()
            except Exception as e:
                logger.warning("Error stopping stream: %s", e)

    def pause(self) -> None:
        """Pause playback (keep position)."""
        was_playing = self.is_playing
        self._state = PlaybackState.PAUSED
        self._close_stream()
        if was_playing:
            logger.debug("Playback paused at frame %d", self._current_frame)

    def stop(self) -> None:
        """Stop playback and reset position."""
        self._state = PlaybackState.STOPPED
        self._close_stream()
        self._current_frame = 0

    def close(self) -> None:
        """Release the stream; the handle is unusable afterwards."""
        self._disposed = True
        self._on_finished = None
        self._close_stream()
        self._state = PlaybackState.STOPPED
