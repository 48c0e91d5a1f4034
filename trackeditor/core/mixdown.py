"""
Mixdown of several tracks into one buffer for export.
"""
from __future__ import annotations
import logging
import math
from typing import Iterable, Optional, Sequence
import numpy as np

from .buffer import SampleBuffer
from .effects_basic import resample_rate
from .track import AudioTrack

logger = logging.getLogger("PyTrackEditor.mixdown")


def active_tracks(tracks: Sequence[AudioTrack]) -> list[AudioTrack]:
    """
    Tracks that should be heard: soloed tracks if any track is soloed,
    otherwise every unmuted track. Muted tracks never contribute.
    """
    if any(t.soloed for t in tracks):
        return [t for t in tracks if t.soloed and not t.muted]
    return [t for t in tracks if not t.muted]


def pan_gains(pan: float) -> tuple[float, float]:
    """Equal-power (left, right) gains for a pan position in [-1, 1]."""
    p = max(-1.0, min(1.0, pan))
    angle = (p + 1.0) * math.pi / 4.0
    return math.cos(angle), math.sin(angle)


def mix_down_for_export(
    tracks: Iterable[AudioTrack],
    sample_rate: Optional[int] = None
) -> Optional[SampleBuffer]:
    """
    Sum the audible tracks into one buffer.

    Args:
        tracks: Track snapshot; read exactly once
        sample_rate: Output rate; defaults to the first contributor's rate

    Returns:
        Mixed, hard-clipped buffer, or None when no track contributes
    """
    snapshot = tuple(tracks)
    contributors = [t for t in active_tracks(snapshot) if t.has_audio]
    if not contributors:
        logger.debug("Mixdown skipped: no contributing tracks")
        return None

    sr = int(sample_rate or contributors[0].buffer.sample_rate)

    sources = []
    for track in contributors:
        data = track.buffer.samples
        if track.buffer.sample_rate != sr:
            data = resample_rate(data, track.buffer.sample_rate, sr)
        sources.append((track, data))

    channels = max(data.shape[1] for _, data in sources)
    length = max(len(data) for _, data in sources)
    mixed = np.zeros((length, channels), dtype=np.float64)

    for track, data in sources:
        gains = np.full(channels, track.volume, dtype=np.float64)
        if channels >= 2:
            left, right = pan_gains(track.pan)
            gains[0] *= left
            gains[1] *= right

        # Missing source channels repeat the last one (mono -> both sides)
        index = np.minimum(np.arange(channels), data.shape[1] - 1)
        mixed[:len(data)] += data[:, index] * gains

    np.clip(mixed, -1.0, 1.0, out=mixed)
    logger.info(f"Mixed {len(contributors)} track(s): {length} frames, {channels} channel(s) @ {sr} Hz")
    return SampleBuffer(mixed, sr)
