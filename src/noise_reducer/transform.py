"""
Frame transform: windowing plus forward/inverse real FFT of one frame.

Only the non-negative frequency half of the spectrum is kept (``N // 2 + 1``
bins); the negative half of a real frame's spectrum is its conjugate mirror
and carries no extra information.
"""

from functools import lru_cache

import numpy as np
from scipy.signal import get_window


@lru_cache(maxsize=8)
def _hann(length: int) -> np.ndarray:
    window = get_window("hann", length, fftbins=False)
    window.setflags(write=False)
    return window


def hann_window(length: int) -> np.ndarray:
    """
    Symmetric Hann window, ``0.5 * (1 - cos(2*pi*i / (N - 1)))``.

    The returned array is cached and read-only.
    """
    if length < 1:
        raise ValueError(f"Window length must be positive, got {length}")
    return _hann(int(length))


def forward(frame: np.ndarray, frame_size: int) -> np.ndarray:
    """Complex spectrum (``frame_size // 2 + 1`` bins) of a real windowed frame."""
    frame = np.asarray(frame, dtype=np.float64)
    if frame.ndim != 1 or frame.shape[0] != frame_size:
        raise ValueError(
            f"Frame length mismatch: expected {frame_size}, got {frame.shape}"
        )
    return np.fft.rfft(frame)


def inverse(spectrum: np.ndarray, frame_size: int) -> np.ndarray:
    """Real time-domain frame of length *frame_size* from a half spectrum."""
    spectrum = np.asarray(spectrum)
    if spectrum.ndim != 1 or spectrum.shape[0] != frame_size // 2 + 1:
        raise ValueError(
            f"Spectrum length mismatch: expected {frame_size // 2 + 1}, "
            f"got {spectrum.shape}"
        )
    return np.fft.irfft(spectrum, n=frame_size)


def magnitude_spectrum(segment: np.ndarray, frame_size: int) -> np.ndarray:
    """
    Windowed magnitude spectrum of an arbitrary-length segment.

    The segment is truncated to *frame_size*, windowed with a Hann window of
    its own length, then zero-padded to *frame_size*. Returns the first
    ``frame_size // 2`` magnitudes (one per positive-frequency bin, Nyquist
    excluded).
    """
    segment = np.asarray(segment, dtype=np.float64)[:frame_size]
    frame = np.zeros(frame_size)
    if len(segment):
        frame[:len(segment)] = segment * hann_window(len(segment))
    return np.abs(forward(frame, frame_size))[:frame_size // 2]
