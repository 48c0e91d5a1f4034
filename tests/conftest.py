"""
Pytest configuration and fixtures for PyTrackEditor tests.
"""
from typing import Callable, Optional

import pytest
import numpy as np

from trackeditor.core.audio_engine import AudioEngine
from trackeditor.core.buffer import SampleBuffer
from trackeditor.core.config import AUDIO_CONFIG
from trackeditor.core.store import TrackStore
from trackeditor.core.track import AudioTrack
from trackeditor.core.undo_manager import UndoManager

# Low rate keeps multi-second buffers small
TEST_SR = 8000


def make_sine(
    seconds: float = 1.0,
    channels: int = 2,
    sr: int = TEST_SR,
    freq: float = 440.0,
    amplitude: float = 0.5,
) -> SampleBuffer:
    frames = int(round(seconds * sr))
    t = np.arange(frames, dtype=np.float64) / sr
    columns = [amplitude * np.sin(2 * np.pi * freq * (c + 1) * t) for c in range(channels)]
    return SampleBuffer(np.column_stack(columns).astype(np.float32), sr)


class FakePlayer:
    """In-memory playback handle; tests move ``position`` to simulate time passing."""

    def __init__(self, track: Optional[AudioTrack] = None):
        self.buffer: Optional[SampleBuffer] = None
        self.position = 0.0
        self.playing = False
        self.closed = False
        self.levels = (1.0, 0.0)
        self.seeks: list[float] = []

    def load(self, buffer):
        self.buffer = buffer
        self.playing = False
        self.position = min(self.position, self.duration)

    def play(self):
        if self.buffer is not None:
            self.playing = True

    def pause(self):
        self.playing = False

    def stop(self):
        self.playing = False
        self.position = 0.0

    def seek(self, fraction):
        self.seeks.append(fraction)
        self.position = fraction * self.duration

    def set_levels(self, volume, pan):
        self.levels = (volume, pan)

    def close(self):
        self.closed = True
        self.playing = False

    @property
    def current_time(self):
        return self.position

    @property
    def duration(self):
        return self.buffer.duration if self.buffer is not None else 0.0

    @property
    def is_playing(self):
        return self.playing


@pytest.fixture
def sample_mono_audio() -> np.ndarray:
    """Generate 1 second of mono sine wave audio, shaped (frames, 1)."""
    sr = AUDIO_CONFIG.default_samplerate
    t = np.linspace(0, 1, sr, dtype=np.float32)
    return np.sin(2 * np.pi * 440 * t).astype(np.float32)[:, np.newaxis]


@pytest.fixture
def sample_stereo_audio() -> np.ndarray:
    """Generate 1 second of stereo sine wave audio."""
    sr = AUDIO_CONFIG.default_samplerate
    t = np.linspace(0, 1, sr, dtype=np.float32)
    left = np.sin(2 * np.pi * 440 * t).astype(np.float32)
    right = np.sin(2 * np.pi * 880 * t).astype(np.float32)
    return np.column_stack((left, right))


@pytest.fixture
def sine_buffer() -> SampleBuffer:
    """One second of stereo sine at TEST_SR."""
    return make_sine(1.0)


@pytest.fixture
def ten_second_buffer() -> SampleBuffer:
    return make_sine(10.0)


@pytest.fixture
def store() -> TrackStore:
    return TrackStore(project_name="Test Project")


@pytest.fixture
def store_with_track(store, ten_second_buffer) -> TrackStore:
    """Store holding one current 10 s stereo track."""
    store.add_track(ten_second_buffer, "Main")
    return store


@pytest.fixture
def undo_manager() -> UndoManager:
    return UndoManager("s0", max_depth=10)


@pytest.fixture
def players() -> dict:
    """Track id -> FakePlayer created by ``player_factory``."""
    return {}


@pytest.fixture
def player_factory(players) -> Callable[[AudioTrack], FakePlayer]:
    def factory(track: AudioTrack) -> FakePlayer:
        player = FakePlayer(track)
        players[track.id] = player
        return player
    return factory


@pytest.fixture
def engine(player_factory):
    engine = AudioEngine(handle_factory=player_factory)
    yield engine
    engine.close()
