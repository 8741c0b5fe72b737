"""
Time-domain filters run after resynthesis.

- Single-pole RC high-pass / low-pass post filters (cutoff controls)
- Export finishing: peak normalisation and a gentle high-shelf "enhance"
"""

import math

import numpy as np
from scipy.signal import lfilter

from .errors import ParameterOutOfRangeError
from .params import ProcessingParams

# Cutoffs at or below this are treated as "no high-pass"
MIN_LOW_CUTOFF_HZ = 20.0
NORMALIZE_PEAK = 0.95
ENHANCE_SHELF_HZ = 3000.0
ENHANCE_SHELF_DB = 2.0


def _rc(cutoff: float, sample_rate: int):
    rc = 1.0 / (2.0 * math.pi * cutoff)
    dt = 1.0 / sample_rate
    return rc, dt


def high_pass(data: np.ndarray, cutoff: float, sample_rate: int) -> np.ndarray:
    """
    Single-pole high-pass: ``y[n] = a * (y[n-1] + x[n] - x[n-1])``.

    ``a = RC / (RC + dt)``, state starts at zero. Returns a new array.
    """
    rc, dt = _rc(cutoff, sample_rate)
    a = rc / (rc + dt)
    return lfilter([a, -a], [1.0, -a], np.asarray(data, dtype=np.float64))


def low_pass(data: np.ndarray, cutoff: float, sample_rate: int) -> np.ndarray:
    """
    Single-pole low-pass: ``y[n] = y[n-1] + a * (x[n] - y[n-1])``.

    ``a = dt / (RC + dt)``, state starts at zero. Returns a new array.
    """
    rc, dt = _rc(cutoff, sample_rate)
    a = dt / (rc + dt)
    return lfilter([a], [1.0, -(1.0 - a)], np.asarray(data, dtype=np.float64))


def apply_post_filters(data: np.ndarray, params: ProcessingParams, sample_rate: int) -> np.ndarray:
    """High-pass then low-pass over a whole channel, each only when enabled."""
    out = np.asarray(data, dtype=np.float64)
    if params.low_cutoff_hz > MIN_LOW_CUTOFF_HZ:
        out = high_pass(out, params.low_cutoff_hz, sample_rate)
    if params.high_cutoff_hz < sample_rate / 2:
        out = low_pass(out, params.high_cutoff_hz, sample_rate)
    return out


def normalize(data: np.ndarray, peak: float = NORMALIZE_PEAK) -> np.ndarray:
    """Scale so the largest absolute sample equals *peak*. Silence is left alone."""
    data = np.asarray(data, dtype=np.float64)
    max_val = np.max(np.abs(data)) if data.size else 0.0
    if max_val == 0:
        return data.copy()
    return data * (peak / max_val)


def high_shelf(data: np.ndarray, frequency: float, gain_db: float, sample_rate: int) -> np.ndarray:
    """Second-order high shelf: unity at DC, *gain_db* at Nyquist."""
    if frequency >= sample_rate / 2:
        return np.array(data, dtype=np.float64)
    k = math.tan(math.pi * frequency / sample_rate)
    v = 10 ** (gain_db / 20)
    norm = 1 + math.sqrt(2) * k + k * k
    b = [
        (v + math.sqrt(2 * v) * k + k * k) / norm,
        2 * (k * k - v) / norm,
        (v - math.sqrt(2 * v) * k + k * k) / norm,
    ]
    a = [
        1.0,
        2 * (k * k - 1) / norm,
        (1 - math.sqrt(2) * k + k * k) / norm,
    ]
    return lfilter(b, a, np.asarray(data, dtype=np.float64))


FINISHING_TYPES = ("none", "normalize", "enhance")


def apply_finishing(audio: np.ndarray, finishing: str, sample_rate: int) -> np.ndarray:
    """
    Export finishing over a ``(channels, samples)`` buffer.

    "none" copies, "normalize" peak-normalises each channel, "enhance"
    normalises then adds a +2 dB shelf above 3 kHz.
    """
    if finishing not in FINISHING_TYPES:
        raise ParameterOutOfRangeError(
            "finishing", finishing,
            f"Unknown finishing '{finishing}'. Choose from: {', '.join(FINISHING_TYPES)}"
        )

    audio = np.atleast_2d(np.asarray(audio, dtype=np.float64))
    channels = []
    for channel in audio:
        if finishing in ("normalize", "enhance"):
            channel = normalize(channel)
        if finishing == "enhance":
            channel = high_shelf(channel, ENHANCE_SHELF_HZ, ENHANCE_SHELF_DB, sample_rate)
        channels.append(np.array(channel, dtype=np.float64))
    return np.array(channels)
