"""
Range-aware DSP operation library.

Every operation has the shape ``op(buffer, start, end, **params) -> buffer``:
only frames in ``[start, end)`` are processed, frames outside the range are
copied unchanged, and the input buffer is never modified. Parameters are
checked against ``EFFECT_PARAM_RANGES`` and rejected with ``InvalidParameter``;
nothing is silently clamped except amplify's output clipping.
"""
from __future__ import annotations
import logging
from typing import Any, Callable, Optional
import numpy as np

from .buffer import SampleBuffer
from .config import EFFECT_PARAM_RANGES, EFFECTS_CONFIG, FREQUENCY_PARAMS
from .errors import InvalidParameter
from . import effects_basic as basic
from . import effects_dynamics as dynamics
from . import effects_spectral as spectral

logger = logging.getLogger("PyTrackEditor.effects")

Kernel = Callable[..., np.ndarray]


# --- Validation ---

def validate_params(name: str, params: dict[str, Any], sample_rate: Optional[int] = None) -> None:
    """
    Checks ``params`` for effect ``name`` against the documented ranges.

    Raises:
        InvalidParameter: unknown effect or parameter, or value out of range
    """
    if name not in EFFECTS:
        raise InvalidParameter("effect", name, f"one of {sorted(EFFECTS)}")

    ranges = EFFECT_PARAM_RANGES.get(name, {})
    for key, value in params.items():
        if key not in ranges:
            raise InvalidParameter(key, value, f"a parameter of '{name}' ({sorted(ranges) or 'none'})")
        if isinstance(value, bool) or not isinstance(value, (int, float, np.number)) or not np.isfinite(value):
            raise InvalidParameter(key, value, "a finite number")
        allowed = ranges[key]
        if not allowed.contains(float(value)):
            raise InvalidParameter(key, value, allowed.describe())
        if key in FREQUENCY_PARAMS and sample_rate is not None and value >= sample_rate / 2:
            raise InvalidParameter(key, value, f"below Nyquist ({sample_rate / 2:g} Hz)")


def _process_range(
    buffer: SampleBuffer,
    start: int,
    end: int,
    kernel: Kernel,
    preserve_length: bool = True,
) -> SampleBuffer:
    """
    Runs ``kernel`` over ``buffer[start:end]`` and splices the result back.

    With ``preserve_length`` a longer kernel output (reverb or delay tail) is
    truncated to the range, unless the range reaches the end of the buffer, in
    which case the tail is kept and the buffer grows.
    """
    buffer.check_range(start, end)
    region = buffer.samples[start:end]
    processed = kernel(region)

    if preserve_length and end < buffer.frames and len(processed) != len(region):
        processed = processed[:len(region)]

    return buffer.splice(start, end, processed)


# --- Operations ---

def normalize(buffer: SampleBuffer, start: int, end: int) -> SampleBuffer:
    """Scale the range so its peak reaches 1.0 (no-op for silence)."""
    return _process_range(buffer, start, end, basic.apply_normalize)


def amplify(buffer: SampleBuffer, start: int, end: int, gain: float = EFFECTS_CONFIG.amplify_gain) -> SampleBuffer:
    validate_params("amplify", {"gain": gain})
    return _process_range(buffer, start, end, lambda d: basic.apply_gain(d, gain))


def silence(buffer: SampleBuffer, start: int, end: int) -> SampleBuffer:
    return _process_range(buffer, start, end, basic.apply_silence)


def reverse(buffer: SampleBuffer, start: int, end: int) -> SampleBuffer:
    return _process_range(buffer, start, end, basic.apply_reverse)


def fade_in(buffer: SampleBuffer, start: int, end: int) -> SampleBuffer:
    """Linear 0 -> 1 ramp over the whole range."""
    return _process_range(buffer, start, end, basic.apply_fade_in)


def fade_out(buffer: SampleBuffer, start: int, end: int) -> SampleBuffer:
    """Linear 1 -> 0 ramp over the whole range."""
    return _process_range(buffer, start, end, basic.apply_fade_out)


def reverb(
    buffer: SampleBuffer,
    start: int,
    end: int,
    room_size: float = EFFECTS_CONFIG.reverb_room_size,
    wet_level: float = EFFECTS_CONFIG.reverb_wet_level,
) -> SampleBuffer:
    validate_params("reverb", {"room_size": room_size, "wet_level": wet_level})
    sr = buffer.sample_rate
    return _process_range(
        buffer, start, end,
        lambda d: basic.apply_reverb(d, sr, room_size=room_size, wet_level=wet_level),
    )


def delay(
    buffer: SampleBuffer,
    start: int,
    end: int,
    delay_time: float = EFFECTS_CONFIG.delay_time,
    feedback: float = EFFECTS_CONFIG.delay_feedback,
    wet_level: float = EFFECTS_CONFIG.delay_wet_level,
) -> SampleBuffer:
    validate_params("delay", {"delay_time": delay_time, "feedback": feedback, "wet_level": wet_level})
    sr = buffer.sample_rate
    return _process_range(
        buffer, start, end,
        lambda d: basic.apply_delay(d, sr, delay_time=delay_time, feedback=feedback, wet_level=wet_level),
    )


def noise_reduction(
    buffer: SampleBuffer,
    start: int,
    end: int,
    amount: float = EFFECTS_CONFIG.noise_reduction_amount,
) -> SampleBuffer:
    validate_params("noise_reduction", {"amount": amount})
    sr = buffer.sample_rate
    return _process_range(buffer, start, end, lambda d: spectral.apply_noise_reduction(d, sr, amount))


def change_speed(
    buffer: SampleBuffer,
    start: int,
    end: int,
    factor: float = EFFECTS_CONFIG.speed_factor,
) -> SampleBuffer:
    """Resample the range to len/factor frames; the buffer length changes."""
    validate_params("change_speed", {"factor": factor})
    return _process_range(
        buffer, start, end, lambda d: basic.apply_resample(d, factor), preserve_length=False
    )


def change_pitch(
    buffer: SampleBuffer,
    start: int,
    end: int,
    factor: float = EFFECTS_CONFIG.pitch_factor,
) -> SampleBuffer:
    """Shift pitch by 12*log2(factor) semitones, keeping the duration."""
    validate_params("change_pitch", {"factor": factor})
    sr = buffer.sample_rate
    return _process_range(buffer, start, end, lambda d: spectral.apply_pitch_shift(d, sr, factor))


def compressor(
    buffer: SampleBuffer,
    start: int,
    end: int,
    threshold_db: float = EFFECTS_CONFIG.compressor_threshold_db,
    ratio: float = EFFECTS_CONFIG.compressor_ratio,
    attack: float = EFFECTS_CONFIG.compressor_attack,
    release: float = EFFECTS_CONFIG.compressor_release,
    knee_db: float = EFFECTS_CONFIG.compressor_knee_db,
) -> SampleBuffer:
    params = dict(threshold_db=threshold_db, ratio=ratio, attack=attack, release=release, knee_db=knee_db)
    validate_params("compressor", params)
    sr = buffer.sample_rate
    return _process_range(buffer, start, end, lambda d: dynamics.apply_compressor(d, sr, **params))


def limiter(
    buffer: SampleBuffer,
    start: int,
    end: int,
    threshold_db: float = EFFECTS_CONFIG.limiter_threshold_db,
    release: float = EFFECTS_CONFIG.limiter_release,
) -> SampleBuffer:
    validate_params("limiter", {"threshold_db": threshold_db, "release": release})
    sr = buffer.sample_rate
    return _process_range(
        buffer, start, end,
        lambda d: dynamics.apply_limiter(d, sr, threshold_db=threshold_db, release=release),
    )


def eq(
    buffer: SampleBuffer,
    start: int,
    end: int,
    frequency: float = EFFECTS_CONFIG.eq_frequency,
    gain_db: float = EFFECTS_CONFIG.eq_gain_db,
    q: float = EFFECTS_CONFIG.eq_q,
) -> SampleBuffer:
    """Parametric peaking band centered at ``frequency``."""
    sr = buffer.sample_rate
    validate_params("eq", {"frequency": frequency, "gain_db": gain_db, "q": q}, sr)
    return _process_range(
        buffer, start, end,
        lambda d: basic.apply_peaking_eq(d, sr, frequency=frequency, gain_db=gain_db, Q=q),
    )


def high_pass(
    buffer: SampleBuffer,
    start: int,
    end: int,
    cutoff: float = EFFECTS_CONFIG.highpass_cutoff,
) -> SampleBuffer:
    sr = buffer.sample_rate
    validate_params("high_pass", {"cutoff": cutoff}, sr)
    return _process_range(buffer, start, end, lambda d: basic.apply_highpass(d, sr, cutoff=cutoff))


def low_pass(
    buffer: SampleBuffer,
    start: int,
    end: int,
    cutoff: float = EFFECTS_CONFIG.lowpass_cutoff,
) -> SampleBuffer:
    sr = buffer.sample_rate
    validate_params("low_pass", {"cutoff": cutoff}, sr)
    return _process_range(buffer, start, end, lambda d: basic.apply_lowpass(d, sr, cutoff=cutoff))


# Name -> operation. Every entry accepts (buffer, start, end, **params).
EFFECTS: dict[str, Callable[..., SampleBuffer]] = {
    "normalize": normalize,
    "amplify": amplify,
    "silence": silence,
    "reverse": reverse,
    "fade_in": fade_in,
    "fade_out": fade_out,
    "reverb": reverb,
    "delay": delay,
    "noise_reduction": noise_reduction,
    "change_speed": change_speed,
    "change_pitch": change_pitch,
    "compressor": compressor,
    "limiter": limiter,
    "eq": eq,
    "high_pass": high_pass,
    "low_pass": low_pass,
}


def apply_effect(name: str, buffer: SampleBuffer, start: int, end: int, **params: Any) -> SampleBuffer:
    """
    Applies effect ``name`` to frames [start, end) of ``buffer``.

    Raises:
        InvalidParameter: unknown effect or bad parameter
        InvalidRange: range outside the buffer
    """
    validate_params(name, params, buffer.sample_rate)
    result = EFFECTS[name](buffer, start, end, **params)
    logger.debug("Applied %s to frames [%d, %d)", name, start, end)
    return result
