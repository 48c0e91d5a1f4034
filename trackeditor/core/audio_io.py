"""
Audio file I/O for PyTrackEditor.
Encoding/decoding goes through soundfile (libsndfile); path loading uses
librosa so any format it understands can be imported and resampled.
"""
from __future__ import annotations
import io
import os
from typing import Optional, Union
import numpy as np
import soundfile as sf

from trackeditor.utils.logger import get_logger

from .buffer import SampleBuffer
from .config import EXPORT_CONFIG
from .errors import InvalidParameter, UnsupportedAudio

logger = get_logger("audio_io")

# format -> accepted quality values (as strings)
EXPORT_QUALITIES = EXPORT_CONFIG.qualities

_WAV_SUBTYPES = {"16": "PCM_16", "24": "PCM_24", "32": "FLOAT"}

# libsndfile's MPEG Layer III encoder maps compression_level 0..1 onto 320..32 kbps
_MP3_MAX_KBPS = 320
_MP3_MIN_KBPS = 32


def validate_export_options(format: str, quality: Optional[Union[str, int]] = None) -> tuple[str, str]:
    """
    Normalizes and checks a (format, quality) pair against ``EXPORT_QUALITIES``.

    Returns:
        (format, quality) with quality defaulted per format

    Raises:
        InvalidParameter: unknown format or quality not offered for the format
    """
    fmt = str(format).lower().lstrip(".")
    if fmt not in EXPORT_QUALITIES:
        raise InvalidParameter("format", format, f"one of {list(EXPORT_QUALITIES)}")
    if quality is None:
        return fmt, EXPORT_CONFIG.default_quality[fmt]
    value = str(quality)
    if value not in EXPORT_QUALITIES[fmt]:
        raise InvalidParameter("quality", quality, f"one of {list(EXPORT_QUALITIES[fmt])} for {fmt}")
    return fmt, value


def _write_options(fmt: str, quality: str) -> dict:
    if fmt == "wav":
        return {"format": "WAV", "subtype": _WAV_SUBTYPES[quality]}
    if fmt == "mp3":
        level = (_MP3_MAX_KBPS - int(quality)) / (_MP3_MAX_KBPS - _MP3_MIN_KBPS)
        return {
            "format": "MP3",
            "subtype": "MPEG_LAYER_III",
            "compression_level": level,
            "bitrate_mode": "CONSTANT",
        }
    # Vorbis quality q in 0..10 is compression_level 1 - q/10
    return {"format": "OGG", "subtype": "VORBIS", "compression_level": 1.0 - int(quality) / 10.0}


def encode(buffer: SampleBuffer, format: str = "wav", quality: Optional[Union[str, int]] = None) -> bytes:
    """
    Encode a buffer to an in-memory audio file.

    Args:
        buffer: Audio to encode
        format: 'wav', 'mp3' or 'ogg'
        quality: Bit depth (wav), kbps (mp3) or Vorbis quality (ogg)

    Returns:
        Encoded file contents
    """
    fmt, quality = validate_export_options(format, quality)
    out = io.BytesIO()
    sf.write(out, buffer.samples, buffer.sample_rate, **_write_options(fmt, quality))
    data = out.getvalue()
    logger.info(f"Encoded {buffer.duration:.2f}s as {fmt} ({quality}): {len(data)} bytes")
    return data


def decode(data: bytes) -> SampleBuffer:
    """Decode in-memory audio file contents into a buffer."""
    try:
        samples, samplerate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    except (sf.LibsndfileError, RuntimeError, TypeError) as e:
        raise UnsupportedAudio(f"Could not decode audio data: {e}") from e
    return SampleBuffer(samples, samplerate)


def write_file(path: str, buffer: SampleBuffer, format: Optional[str] = None,
               quality: Optional[Union[str, int]] = None) -> None:
    """Encode ``buffer`` to ``path``; the format defaults to the file extension."""
    fmt = format or os.path.splitext(path)[1] or "wav"
    with open(path, "wb") as f:
        f.write(encode(buffer, fmt, quality))


def read_file(path: str) -> SampleBuffer:
    """Read a file with soundfile at its native rate."""
    try:
        samples, samplerate = sf.read(path, dtype="float32", always_2d=True)
    except (sf.LibsndfileError, RuntimeError) as e:
        raise UnsupportedAudio(f"Could not read {path}: {e}") from e
    return SampleBuffer(samples, samplerate)


def load_file(path: str, sample_rate: Optional[int] = None) -> SampleBuffer:
    """
    Load any audio file librosa can read.

    Args:
        path: File to load
        sample_rate: Resample to this rate (None keeps the file's rate)

    Returns:
        Buffer shaped (frames, channels)

    Raises:
        UnsupportedAudio: missing file or undecodable contents
    """
    import librosa

    logger.info(f"Loading file: {path}")
    try:
        data, samplerate = librosa.load(path, sr=sample_rate, mono=False)
    except Exception as e:
        logger.error(f"Failed to load {path}: {e}", exc_info=True)
        raise UnsupportedAudio(f"Could not load {path}: {e}") from e

    # Convert to (samples, channels)
    if data.ndim > 1:
        data = data.T
    return SampleBuffer(np.asarray(data, dtype=np.float32), int(samplerate))
