"""
Basic audio effects for PyTrackEditor.
All functions are pure (no side effects) and operate on numpy arrays shaped
(frames, channels). Range handling and validation live in ``effects``.
Optimized with numpy vectorization for performance.
"""
from __future__ import annotations
import math
import numpy as np
from scipy.signal import butter, lfilter, resample_poly
from scipy.interpolate import interp1d

from .types import AudioArray
from .config import EFFECTS_CONFIG


def apply_gain(data: AudioArray, factor: float = EFFECTS_CONFIG.amplify_gain) -> AudioArray:
    """
    Multiply audio data by a gain factor and hard-clip to [-1, 1].

    Args:
        data: Audio samples
        factor: Gain multiplier (1.0 = no change)

    Returns:
        Gained audio data, never wrapped
    """
    if factor == 1.0:
        return data.astype(np.float32, copy=True)
    return np.clip(data * factor, -1.0, 1.0).astype(np.float32)


def apply_normalize(data: AudioArray, target_peak: float = 1.0) -> AudioArray:
    """
    Normalize audio so its peak absolute sample reaches target_peak.

    Args:
        data: Audio samples
        target_peak: Target peak amplitude (0.0 to 1.0)

    Returns:
        Normalized audio data (unchanged copy for digital silence)
    """
    peak = float(np.max(np.abs(data))) if data.size else 0.0
    if peak == 0.0:
        return data.astype(np.float32, copy=True)
    out = (data.astype(np.float64) * (target_peak / peak)).astype(np.float32)
    # float32 rounding can overshoot the target by one ulp
    return np.clip(out, -target_peak, target_peak)


def apply_silence(data: AudioArray) -> AudioArray:
    """Zero every sample, keeping shape."""
    return np.zeros_like(data, dtype=np.float32)


def apply_reverse(data: AudioArray) -> AudioArray:
    """
    Reverse frame order. The same index sequence is used for every channel,
    so channels stay aligned.
    """
    return np.flip(data, axis=0).astype(np.float32, copy=True)


def _linear_ramp(length: int, rising: bool) -> np.ndarray:
    if rising:
        return np.linspace(0.0, 1.0, length, dtype=np.float32)
    return np.linspace(1.0, 0.0, length, dtype=np.float32)


def apply_fade_in(data: AudioArray) -> AudioArray:
    """
    Apply a linear fade-in across the whole input.
    The envelope is exactly 0 on the first frame and exactly 1 on the last.
    """
    if len(data) == 0:
        return data.astype(np.float32, copy=True)
    return (data * _linear_ramp(len(data), rising=True)[:, np.newaxis]).astype(np.float32)


def apply_fade_out(data: AudioArray) -> AudioArray:
    """
    Apply a linear fade-out across the whole input.
    The envelope is exactly 1 on the first frame and exactly 0 on the last.
    """
    if len(data) == 0:
        return data.astype(np.float32, copy=True)
    return (data * _linear_ramp(len(data), rising=False)[:, np.newaxis]).astype(np.float32)


def apply_resample(
    data: AudioArray,
    factor: float = EFFECTS_CONFIG.speed_factor,
    kind: str = 'linear'
) -> AudioArray:
    """
    Change speed and pitch together by resampling to len/factor frames.

    Args:
        data: Audio samples
        factor: Speed factor (>1 = faster/higher, <1 = slower/lower)
        kind: Interpolation type ('linear', 'cubic', 'quadratic')

    Returns:
        Resampled audio data
    """
    length = len(data)
    if factor == 1.0 or length == 0:
        return data.astype(np.float32, copy=True)

    new_length = max(1, int(math.floor(length / factor)))
    if length == 1:
        return np.repeat(data, new_length, axis=0).astype(np.float32)

    x = np.arange(length, dtype=np.float64)
    x_new = np.minimum(np.arange(new_length, dtype=np.float64) * factor, length - 1)

    f = interp1d(x, data, kind=kind, axis=0, assume_sorted=True)
    return f(x_new).astype(np.float32)


def resample_rate(data: AudioArray, source_rate: int, target_rate: int) -> AudioArray:
    """
    Convert audio between sample rates with a polyphase filter.
    Duration is preserved; used when mixing or pasting across rates.
    """
    if source_rate == target_rate or len(data) == 0:
        return data.astype(np.float32, copy=True)
    g = math.gcd(int(source_rate), int(target_rate))
    up, down = int(target_rate) // g, int(source_rate) // g
    return resample_poly(data, up, down, axis=0).astype(np.float32)


def apply_lowpass(
    data: AudioArray,
    sr: int,
    cutoff: float = EFFECTS_CONFIG.lowpass_cutoff,
    order: int = EFFECTS_CONFIG.filter_order
) -> AudioArray:
    """
    Apply Butterworth low-pass filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Cutoff frequency in Hz, below Nyquist
        order: Filter order

    Returns:
        Filtered audio data
    """
    b, a = butter(order, cutoff / (0.5 * sr), btype='low', analog=False)
    return lfilter(b, a, data, axis=0).astype(np.float32)


def apply_highpass(
    data: AudioArray,
    sr: int,
    cutoff: float = EFFECTS_CONFIG.highpass_cutoff,
    order: int = EFFECTS_CONFIG.filter_order
) -> AudioArray:
    """
    Apply Butterworth high-pass filter.

    Args:
        data: Audio samples
        sr: Sample rate
        cutoff: Cutoff frequency in Hz, below Nyquist
        order: Filter order

    Returns:
        Filtered audio data
    """
    b, a = butter(order, cutoff / (0.5 * sr), btype='high', analog=False)
    return lfilter(b, a, data, axis=0).astype(np.float32)


def apply_peaking_eq(
    data: AudioArray,
    sr: int,
    frequency: float = EFFECTS_CONFIG.eq_frequency,
    gain_db: float = EFFECTS_CONFIG.eq_gain_db,
    Q: float = EFFECTS_CONFIG.eq_q
) -> AudioArray:
    """
    Apply parametric peaking EQ band (RBJ cookbook biquad).

    Args:
        data: Audio samples
        sr: Sample rate
        frequency: Center frequency in Hz
        gain_db: Gain in dB (positive = boost, negative = cut)
        Q: Q factor (bandwidth control)

    Returns:
        Filtered audio data
    """
    A = 10 ** (gain_db / 40.0)
    omega = 2 * math.pi * frequency / sr
    sn = math.sin(omega)
    cs = math.cos(omega)
    alpha = sn / (2 * Q)

    b0 = 1 + alpha * A
    b1 = -2 * cs
    b2 = 1 - alpha * A
    a0 = 1 + alpha / A
    a1 = -2 * cs
    a2 = 1 - alpha / A

    b = np.array([b0, b1, b2]) / a0
    a = np.array([a0, a1, a2]) / a0

    return lfilter(b, a, data, axis=0).astype(np.float32)


def _feedback_comb(signal: np.ndarray, delay: int, gain: float) -> np.ndarray:
    """
    w[n] = x[n] + gain * w[n - delay], computed one delay-length block at a
    time so the recursion stays vectorized.
    """
    out = np.array(signal, dtype=np.float64, copy=True)
    n = len(out)
    for start in range(delay, n, delay):
        end = min(start + delay, n)
        out[start:end] += gain * out[start - delay:end - delay]
    return out


def _shift(signal: np.ndarray, delay: int) -> np.ndarray:
    """Delays a signal by ``delay`` frames, keeping its length."""
    out = np.zeros_like(signal)
    if delay < len(signal):
        out[delay:] = signal[:len(signal) - delay]
    return out


def _pad_tail(data: AudioArray, tail: int) -> np.ndarray:
    if tail <= 0:
        return data.astype(np.float64)
    pad = np.zeros((tail, data.shape[1]), dtype=np.float64)
    return np.vstack((data.astype(np.float64), pad))


def apply_delay(
    data: AudioArray,
    sr: int,
    delay_time: float = EFFECTS_CONFIG.delay_time,
    feedback: float = EFFECTS_CONFIG.delay_feedback,
    wet_level: float = EFFECTS_CONFIG.delay_wet_level,
    with_tail: bool = True
) -> AudioArray:
    """
    Apply feedback delay (echo).

    Each repetition is the previous one scaled by ``feedback``, so the
    echo train is bounded for feedback < 1.

    Args:
        data: Audio samples
        sr: Sample rate
        delay_time: Delay in seconds
        feedback: Per-echo attenuation (0.0 to 0.99)
        wet_level: Echo mix; output = dry*(1-wet) + echoes*wet
        with_tail: Append up to ``delay_max_tail`` seconds of ringing echoes

    Returns:
        Audio with delay effect (longer than input when with_tail is set)
    """
    length = len(data)
    if length == 0:
        return data.astype(np.float32, copy=True)

    delay_samples = max(1, int(sr * delay_time))
    tail = min(int(sr * EFFECTS_CONFIG.delay_max_tail), length) if with_tail else 0

    dry = _pad_tail(data, tail)
    line = _feedback_comb(dry, delay_samples, feedback)
    wet = _shift(line, delay_samples)

    if tail:
        # Let the remaining echoes die out to -60 dB by the end of the tail
        decay = np.power(0.001, np.arange(tail, dtype=np.float64) / tail)
        wet[length:] *= decay[:, np.newaxis]

    out = dry * (1.0 - wet_level) + wet * wet_level
    return np.clip(out, -1.0, 1.0).astype(np.float32)


def apply_reverb(
    data: AudioArray,
    sr: int,
    room_size: float = EFFECTS_CONFIG.reverb_room_size,
    wet_level: float = EFFECTS_CONFIG.reverb_wet_level,
    with_tail: bool = True
) -> AudioArray:
    """
    Apply Schroeder reverb: parallel feedback combs into series allpasses.

    Comb feedback is tuned so the reflections decay by 60 dB after
    ``room_size`` seconds, which is also the length of the appended tail.

    Args:
        data: Audio samples
        sr: Sample rate
        room_size: Decay time in seconds (0.0 to 3.0)
        wet_level: Reverb mix; output = dry*(1-wet) + reverb*wet
        with_tail: Append the decaying tail after the input

    Returns:
        Audio with reverb effect
    """
    length = len(data)
    if length == 0:
        return data.astype(np.float32, copy=True)

    tail = int(room_size * sr) if with_tail else 0
    dry = _pad_tail(data, tail)
    wet = np.zeros_like(dry)

    combs = EFFECTS_CONFIG.reverb_comb_delays_ms
    for delay_ms in combs:
        delay_samples = max(1, int(sr * delay_ms / 1000.0))
        g = 10 ** (-3.0 * delay_samples / (room_size * sr))
        # (1 - g) keeps each comb at unity DC gain
        wet += (1.0 - g) * _shift(_feedback_comb(dry, delay_samples, g), delay_samples)
    wet /= len(combs)

    g = EFFECTS_CONFIG.reverb_allpass_gain
    for delay_ms in EFFECTS_CONFIG.reverb_allpass_delays_ms:
        delay_samples = max(1, int(sr * delay_ms / 1000.0))
        line = _feedback_comb(wet, delay_samples, g)
        wet = -g * line + _shift(line, delay_samples)

    out = dry * (1.0 - wet_level) + wet * wet_level
    return np.clip(out, -1.0, 1.0).astype(np.float32)
