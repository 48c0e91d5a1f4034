"""
Spectral effects for PyTrackEditor: noise reduction and pitch shifting.
All functions are pure and operate on numpy arrays shaped (frames, channels).
"""
from __future__ import annotations
import logging
import math
import numpy as np
from scipy.signal import stft, istft

from .types import AudioArray
from .config import EFFECTS_CONFIG

logger = logging.getLogger("PyTrackEditor.effects")

# Below this many frames a spectral frame carries no usable resolution
MIN_SPECTRAL_FRAMES = 64


def _frame_size(length: int, preferred: int) -> int:
    """Largest power of two <= min(length, preferred)."""
    size = 1 << int(math.floor(math.log2(max(1, min(length, preferred)))))
    return size


def apply_noise_reduction(
    data: AudioArray,
    sr: int,
    amount: float = EFFECTS_CONFIG.noise_reduction_amount
) -> AudioArray:
    """
    Spectral gate against an estimated noise floor.

    The floor of every frequency bin is a low percentile of its magnitude
    over time; energy near or below ``noise_threshold_factor`` times that
    floor is attenuated. ``amount`` scales the attenuation (0 = identity,
    1 = full gate).

    Args:
        data: Audio samples
        sr: Sample rate
        amount: Reduction strength (0.0 to 1.0)

    Returns:
        Denoised audio data
    """
    length = len(data)
    if amount == 0.0 or length < MIN_SPECTRAL_FRAMES:
        return data.astype(np.float32, copy=True)

    nperseg = _frame_size(length, EFFECTS_CONFIG.noise_fft_size)
    channels_first = data.T.astype(np.float64)

    _, _, spec = stft(channels_first, fs=sr, nperseg=nperseg)
    magnitude = np.abs(spec)

    floor = np.percentile(magnitude, EFFECTS_CONFIG.noise_floor_percentile, axis=-1, keepdims=True)
    threshold = EFFECTS_CONFIG.noise_threshold_factor * floor

    mask = np.clip((magnitude - threshold) / (magnitude + 1e-12), 0.0, 1.0)
    gain = 1.0 - amount * (1.0 - mask)

    _, restored = istft(spec * gain, fs=sr, nperseg=nperseg)
    restored = restored[:, :length]
    if restored.shape[1] < length:
        restored = np.pad(restored, ((0, 0), (0, length - restored.shape[1])))

    logger.debug("Noise reduction: amount=%.2f, frame=%d", amount, nperseg)
    return np.clip(restored.T, -1.0, 1.0).astype(np.float32)


def apply_pitch_shift(
    data: AudioArray,
    sr: int,
    factor: float = EFFECTS_CONFIG.pitch_factor
) -> AudioArray:
    """
    Pitch shift without changing duration (time-preserving).
    Shifts by 12*log2(factor) semitones with librosa's phase vocoder.

    Args:
        data: Audio samples
        sr: Sample rate
        factor: Frequency ratio (2.0 = one octave up)

    Returns:
        Pitch-shifted audio data, same length as the input
    """
    length = len(data)
    if factor == 1.0 or length < MIN_SPECTRAL_FRAMES:
        return data.astype(np.float32, copy=True)

    import librosa

    semitones = 12.0 * math.log2(factor)
    n_fft = _frame_size(length, 2048)

    shifted = librosa.effects.pitch_shift(
        np.ascontiguousarray(data.T, dtype=np.float32),
        sr=sr,
        n_steps=semitones,
        n_fft=n_fft,
        hop_length=n_fft // 4,
    )
    shifted = librosa.util.fix_length(shifted, size=length, axis=-1)

    logger.debug("Pitch shift: %.2f semitones", semitones)
    return np.clip(shifted.T, -1.0, 1.0).astype(np.float32)
