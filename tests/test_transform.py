import sys
from pathlib import Path

import numpy as np
import pytest

# Ensure local src/ is importable when running tests directly from the repo
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from noise_reducer.transform import forward, hann_window, inverse, magnitude_spectrum


def test_hann_window_is_symmetric():
    np.testing.assert_allclose(hann_window(5), [0.0, 0.5, 1.0, 0.5, 0.0], atol=1e-12)
    window = hann_window(4096)
    np.testing.assert_allclose(window, window[::-1], atol=1e-12)


def test_hann_window_is_read_only():
    window = hann_window(16)
    with pytest.raises(ValueError):
        window[0] = 1.0


def test_forward_inverse_round_trip():
    rng = np.random.default_rng(0)
    frame = rng.standard_normal(4096)

    spectrum = forward(frame, 4096)

    assert spectrum.shape == (2049,)
    np.testing.assert_allclose(inverse(spectrum, 4096), frame, atol=1e-10)


def test_length_mismatch_fails_fast():
    with pytest.raises(ValueError):
        forward(np.zeros(1000), 4096)
    with pytest.raises(ValueError):
        inverse(np.zeros(100, dtype=complex), 4096)


def test_magnitude_spectrum_peaks_at_tone_bin():
    n = np.arange(4096)
    tone = np.sin(2 * np.pi * 100 * n / 4096)

    mags = magnitude_spectrum(tone, 4096)

    assert mags.shape == (2048,)
    assert np.argmax(mags) == 100


def test_magnitude_spectrum_zero_pads_short_segment():
    rng = np.random.default_rng(1)
    mags = magnitude_spectrum(rng.standard_normal(1000), 8192)

    assert mags.shape == (4096,)
    assert np.all(np.isfinite(mags))
    assert np.all(mags >= 0)
