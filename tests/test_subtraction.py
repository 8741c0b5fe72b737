import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from noise_reducer.params import ProcessingParams
from noise_reducer.subtraction import MIN_GAIN, apply_spectral_subtraction, compute_gain


def _random_spectrum(n_bins=2049, seed=0):
    rng = np.random.default_rng(seed)
    return rng.standard_normal(n_bins) + 1j * rng.standard_normal(n_bins)


def test_zero_profile_gives_unity_gain():
    spectrum = _random_spectrum()
    gain = compute_gain(np.abs(spectrum), np.zeros(2048), alpha=5.0)

    np.testing.assert_array_equal(gain, np.ones(2049))
    np.testing.assert_allclose(
        apply_spectral_subtraction(spectrum, np.zeros(2048), 5.0), spectrum, atol=1e-12
    )


def test_gain_floor_holds_for_huge_reduction():
    spectrum = _random_spectrum(seed=2)
    profile = np.full(2048, 10.0)
    alpha = ProcessingParams(reduction_db=120.0).alpha

    out = apply_spectral_subtraction(spectrum, profile, alpha, smoothing_taps=4)

    assert np.all(np.abs(out) >= MIN_GAIN * np.abs(spectrum) - 1e-12)


def test_flat_profile_clamps_to_floor():
    """Magnitude 2v against noise v with alpha 2 subtracts everything, leaving 0.1."""
    v = 0.5
    rng = np.random.default_rng(3)
    phases = rng.uniform(-np.pi, np.pi, 2049)
    spectrum = 2 * v * np.exp(1j * phases)
    params = ProcessingParams(reduction_db=20 * np.log10(2.0), sensitivity=1.0)

    out = apply_spectral_subtraction(spectrum, np.full(2048, v), params.alpha, params.smoothing_taps)

    np.testing.assert_allclose(np.abs(out), 0.2 * v, rtol=1e-9)


def test_phase_is_preserved():
    spectrum = _random_spectrum(seed=4)
    profile = np.full(2048, 0.3)

    gain = compute_gain(np.abs(spectrum), profile, alpha=1.0)
    out = apply_spectral_subtraction(spectrum, profile, 1.0)

    np.testing.assert_allclose(out, spectrum * gain, atol=1e-12)


def test_silent_frame_stays_silent():
    spectrum = np.zeros(2049, dtype=complex)

    out = apply_spectral_subtraction(spectrum, np.ones(2048), alpha=4.0)

    assert np.all(np.isfinite(out))
    np.testing.assert_array_equal(np.abs(out), 0.0)


def test_smoothing_averages_neighbouring_gains():
    magnitude = np.ones(11)
    profile = np.zeros(10)
    profile[5] = 0.5

    raw = compute_gain(magnitude, profile, alpha=1.0, smoothing_taps=0)
    smoothed = compute_gain(magnitude, profile, alpha=1.0, smoothing_taps=2)

    assert raw[5] == pytest.approx(0.5)
    np.testing.assert_allclose(smoothed[4:7], 2.5 / 3)
    assert smoothed[0] == 1.0
    assert smoothed[10] == 1.0
    np.testing.assert_allclose(smoothed[[1, 2, 3, 7, 8, 9]], 1.0)


def test_odd_smoothing_taps_round_up():
    magnitude = np.ones(11)
    profile = np.zeros(10)
    profile[5] = 0.5

    one = compute_gain(magnitude, profile, alpha=1.0, smoothing_taps=1)
    two = compute_gain(magnitude, profile, alpha=1.0, smoothing_taps=2)

    np.testing.assert_array_equal(one, two)
    assert one[5] == pytest.approx(2.5 / 3)
