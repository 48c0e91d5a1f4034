"""
Dynamics processors for PyTrackEditor: compressor and limiter.
Both are feed-forward, channel-linked designs (gain is computed from the
loudest channel and applied to all, so the stereo image does not shift).
All functions are pure and operate on numpy arrays shaped (frames, channels).
"""
from __future__ import annotations
import math
import numpy as np

from .types import AudioArray
from .config import EFFECTS_CONFIG

_DB_FLOOR = -200.0


def _linked_peak(data: AudioArray) -> np.ndarray:
    """Per-frame peak magnitude across channels."""
    return np.max(np.abs(data.astype(np.float64)), axis=1)


def _to_db(level: np.ndarray) -> np.ndarray:
    with np.errstate(divide='ignore'):
        return np.maximum(20.0 * np.log10(level), _DB_FLOOR)


def compressor_gain_db(
    level_db: np.ndarray,
    threshold_db: float,
    ratio: float,
    knee_db: float
) -> np.ndarray:
    """
    Static gain curve (dB of gain reduction, <= 0) with quadratic soft knee.

    Below ``threshold - knee/2`` the gain is 0 dB; above
    ``threshold + knee/2`` the slope is 1/ratio; in between the curve is
    interpolated so the transition is continuous.
    """
    over = level_db - threshold_db
    slope = 1.0 / ratio - 1.0
    gain = np.zeros_like(level_db)

    if knee_db > 0:
        in_knee = np.abs(over) <= knee_db / 2.0
        gain[in_knee] = slope * (over[in_knee] + knee_db / 2.0) ** 2 / (2.0 * knee_db)
        above = over > knee_db / 2.0
    else:
        above = over > 0
    gain[above] = slope * over[above]
    return gain


def apply_compressor(
    data: AudioArray,
    sr: int,
    threshold_db: float = EFFECTS_CONFIG.compressor_threshold_db,
    ratio: float = EFFECTS_CONFIG.compressor_ratio,
    attack: float = EFFECTS_CONFIG.compressor_attack,
    release: float = EFFECTS_CONFIG.compressor_release,
    knee_db: float = EFFECTS_CONFIG.compressor_knee_db,
    makeup_db: float = 0.0
) -> AudioArray:
    """
    Apply dynamic range compression.

    Args:
        data: Audio samples
        sr: Sample rate
        threshold_db: Threshold level in dB
        ratio: Compression ratio (e.g., 4.0 = 4:1)
        attack: Attack time in seconds
        release: Release time in seconds
        knee_db: Soft-knee width in dB (0 = hard knee)
        makeup_db: Makeup gain in dB

    Returns:
        Compressed audio data
    """
    if len(data) == 0 or (ratio == 1.0 and makeup_db == 0.0):
        return data.astype(np.float32, copy=True)

    target = compressor_gain_db(_to_db(_linked_peak(data)), threshold_db, ratio, knee_db)

    attack_coeff = math.exp(-1.0 / (attack * sr))
    release_coeff = math.exp(-1.0 / (release * sr))

    # Gain smoother: falls with the attack constant, recovers with release
    smoothed = np.empty_like(target)
    state = 0.0
    for i in range(len(target)):
        g = target[i]
        coeff = attack_coeff if g < state else release_coeff
        state = g + (state - g) * coeff
        smoothed[i] = state

    gain = np.power(10.0, (smoothed + makeup_db) / 20.0)
    out = data.astype(np.float64) * gain[:, np.newaxis]
    return np.clip(out, -1.0, 1.0).astype(np.float32)


def apply_limiter(
    data: AudioArray,
    sr: int,
    threshold_db: float = EFFECTS_CONFIG.limiter_threshold_db,
    release: float = EFFECTS_CONFIG.limiter_release
) -> AudioArray:
    """
    Apply a brick-wall peak limiter.

    Gain drops instantly to whatever keeps the frame under the ceiling and
    recovers towards unity with the release time constant. The recovered gain
    never exceeds the frame's required gain, so the output peak never exceeds
    the threshold.

    Args:
        data: Audio samples
        sr: Sample rate
        threshold_db: Output ceiling in dBFS
        release: Gain recovery time in seconds

    Returns:
        Limited audio data
    """
    if len(data) == 0:
        return data.astype(np.float32, copy=True)

    ceiling = 10 ** (threshold_db / 20.0)
    peak = _linked_peak(data)
    required = np.ones_like(peak)
    loud = peak > ceiling
    required[loud] = ceiling / peak[loud]

    release_coeff = math.exp(-1.0 / (release * sr))

    gain = np.empty_like(required)
    state = 1.0
    for i in range(len(required)):
        r = required[i]
        if r < state:
            state = r
        else:
            state = r + (state - r) * release_coeff
        gain[i] = state

    out = data.astype(np.float64) * gain[:, np.newaxis]
    return np.clip(out, -ceiling, ceiling).astype(np.float32)
