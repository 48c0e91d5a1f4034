"""
Tests for AudioTrack.
"""
import dataclasses

import pytest
import numpy as np

from trackeditor.core.track import AudioTrack
from trackeditor.core.config import AUDIO_CONFIG
from trackeditor.core.errors import InvalidParameter

from conftest import TEST_SR


class TestAudioTrack:
    """Tests for AudioTrack functionality."""

    def test_default_initialization(self):
        track = AudioTrack()
        assert track.name == "Track"
        assert track.buffer is None
        assert track.volume == AUDIO_CONFIG.default_volume
        assert track.pan == 0.0
        assert not track.muted
        assert not track.soloed
        assert not track.has_audio

    def test_custom_initialization(self):
        track = AudioTrack(name="My Track", volume=0.8, muted=True)
        assert track.name == "My Track"
        assert track.volume == 0.8
        assert track.muted

    def test_ids_are_unique(self):
        assert AudioTrack().id != AudioTrack().id

    def test_duration(self, sine_buffer):
        track = AudioTrack(buffer=sine_buffer)
        assert track.duration_samples == TEST_SR
        assert np.isclose(track.duration, 1.0)
        assert track.sample_rate == TEST_SR

    def test_empty_track_reports_default_rate(self):
        track = AudioTrack()
        assert track.duration == 0.0
        assert track.sample_rate == AUDIO_CONFIG.default_samplerate

    @pytest.mark.parametrize("settings", [{"volume": -0.1}, {"pan": 1.5}, {"pan": -1.01}])
    def test_invalid_mix_settings(self, settings):
        with pytest.raises(InvalidParameter):
            AudioTrack(**settings)

    def test_is_immutable(self):
        track = AudioTrack()
        with pytest.raises(dataclasses.FrozenInstanceError):
            track.volume = 0.5

    def test_with_buffer_keeps_identity(self, sine_buffer):
        track = AudioTrack(name="Vox", volume=0.5)
        updated = track.with_buffer(sine_buffer, 7)
        assert updated.id == track.id
        assert updated.version == 7
        assert updated.volume == 0.5
        assert track.buffer is None

    def test_evolve_validates(self):
        track = AudioTrack()
        assert track.evolve(pan=-1.0).pan == -1.0
        with pytest.raises(InvalidParameter):
            track.evolve(volume=-1.0)
