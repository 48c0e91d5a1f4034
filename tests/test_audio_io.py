"""
Tests for audio encoding, decoding and export option validation.
"""
import pytest
import numpy as np

from trackeditor.core import audio_io
from trackeditor.core.errors import InvalidParameter, UnsupportedAudio

from conftest import make_sine


class TestExportOptions:

    @pytest.mark.parametrize("fmt,default", [("wav", "16"), ("mp3", "192"), ("ogg", "5")])
    def test_default_quality(self, fmt, default):
        assert audio_io.validate_export_options(fmt) == (fmt, default)

    def test_format_is_normalized(self):
        assert audio_io.validate_export_options(".WAV", 24) == ("wav", "24")

    @pytest.mark.parametrize("fmt,quality", [("wav", "8"), ("mp3", "64"), ("ogg", "11"), ("mp3", "16")])
    def test_quality_not_offered(self, fmt, quality):
        with pytest.raises(InvalidParameter):
            audio_io.validate_export_options(fmt, quality)

    def test_unknown_format(self):
        with pytest.raises(InvalidParameter):
            audio_io.validate_export_options("flac")


class TestWav:

    def test_float_wav_is_lossless(self, sine_buffer):
        decoded = audio_io.decode(audio_io.encode(sine_buffer, "wav", "32"))
        assert decoded == sine_buffer

    def test_pcm16_is_close(self, sine_buffer):
        decoded = audio_io.decode(audio_io.encode(sine_buffer, "wav", "16"))
        assert decoded.sample_rate == sine_buffer.sample_rate
        assert decoded.allclose(sine_buffer, atol=1.0 / 2 ** 14)

    def test_mono_stays_mono(self):
        mono = make_sine(0.5, channels=1)
        assert audio_io.decode(audio_io.encode(mono)).num_channels == 1

    def test_file_round_trip(self, tmp_path, sine_buffer):
        path = str(tmp_path / "clip.wav")
        audio_io.write_file(path, sine_buffer, quality="24")
        assert audio_io.read_file(path).allclose(sine_buffer, atol=1e-5)


class TestLossy:

    def test_ogg_encodes(self):
        buf = make_sine(0.5, sr=44100)
        data = audio_io.encode(buf, "ogg", 5)
        assert data[:4] == b"OggS"
        decoded = audio_io.decode(data)
        assert decoded.num_channels == 2
        assert decoded.sample_rate == 44100

    def test_mp3_encodes(self):
        buf = make_sine(0.5, sr=44100)
        data = audio_io.encode(buf, "mp3", "320")
        assert len(data) > 0


class TestDecodeErrors:

    def test_garbage_bytes(self):
        with pytest.raises(UnsupportedAudio):
            audio_io.decode(b"definitely not audio")

    def test_missing_file(self, tmp_path):
        with pytest.raises(UnsupportedAudio):
            audio_io.read_file(str(tmp_path / "missing.wav"))

    def test_load_file_resamples(self, tmp_path, sine_buffer):
        path = str(tmp_path / "clip.wav")
        audio_io.write_file(path, sine_buffer, "wav", "32")
        loaded = audio_io.load_file(path, sample_rate=16000)
        assert loaded.sample_rate == 16000
        assert loaded.num_channels == 2
        assert np.isclose(loaded.duration, sine_buffer.duration, atol=0.01)
