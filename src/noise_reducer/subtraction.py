"""
Spectral subtraction gain for a single STFT frame.

For every bin the gain is ``1 - alpha * noise / (|X| + eps)``, clamped to
[MIN_GAIN, 1.0], then averaged with the gains recomputed at neighbouring
noise bins. Only the magnitude is scaled; the phase is kept as is.
"""

import numpy as np

# Floor on the per-bin gain. Keeps isolated tones ("musical noise") and
# full dropouts out of the result regardless of reduction strength.
MIN_GAIN = 0.1
MAX_GAIN = 1.0
EPS = 1e-10


def _noise_at(profile: np.ndarray, bins: np.ndarray) -> np.ndarray:
    # Bins past the end of the profile (Nyquist) reuse its last value
    return profile[np.minimum(bins, len(profile) - 1)]


def compute_gain(
    magnitude: np.ndarray,
    profile: np.ndarray,
    alpha: float,
    smoothing_taps: int = 2,
) -> np.ndarray:
    """
    Per-bin gain for one frame.

    Args:
        magnitude: |X[k]| for every bin of the frame
        profile: Noise magnitude per positive-frequency bin
        alpha: Linear subtraction factor (sensitivity * 10^(dB/20))
        smoothing_taps: Neighbouring bins averaged into each gain,
            half per side, an odd count rounding up. Bins too close to either
            spectral edge to have neighbours on both sides are not smoothed.

    Returns:
        Gain array (same shape as *magnitude*) in [MIN_GAIN, MAX_GAIN].
    """
    n_bins = len(magnitude)
    bins = np.arange(n_bins)
    denom = magnitude + EPS

    gain = np.clip(1.0 - alpha * (_noise_at(profile, bins) / denom), MIN_GAIN, MAX_GAIN)

    radius = (smoothing_taps + 1) // 2
    if radius > 0 and n_bins > 2 * radius:
        inner = bins[radius:n_bins - radius]
        acc = np.zeros(len(inner))
        for offset in range(-radius, radius + 1):
            neighbour = _noise_at(profile, inner + offset)
            acc += np.clip(1.0 - alpha * (neighbour / denom[inner]), MIN_GAIN, MAX_GAIN)
        gain[inner] = acc / (2 * radius + 1)

    return gain


def apply_spectral_subtraction(
    spectrum: np.ndarray,
    profile: np.ndarray,
    alpha: float,
    smoothing_taps: int = 2,
) -> np.ndarray:
    """Return a new spectrum with each bin's magnitude scaled by its gain."""
    stft_mag = np.abs(spectrum)
    stft_phase = np.angle(spectrum)
    gain = compute_gain(stft_mag, profile, alpha, smoothing_taps)
    return stft_mag * gain * np.exp(1j * stft_phase)
