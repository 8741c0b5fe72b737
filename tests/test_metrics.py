import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from noise_reducer.metrics import (
    NoiseType,
    analyze_noise,
    classify_noise,
    dominant_frequency,
    improvement,
    rms,
    selection_info,
    spectrum_db,
)
from noise_reducer.errors import InvalidSelectionError
from noise_reducer.profile import NoiseProfile

# 40960 Hz over 4096-sample frames puts bins exactly 10 Hz apart
SR = 40960
FRAME = 4096


def _peaked_profile(freq_hz):
    mags = np.full(FRAME // 2, 0.001)
    mags[int(freq_hz / 10)] = 1.0
    return NoiseProfile(magnitudes=mags, frame_size=FRAME, sample_rate=SR)


@pytest.mark.parametrize("freq,expected", [
    (150.0, NoiseType.RUMBLE),
    (6000.0, NoiseType.HISS),
    (1000.0, NoiseType.HUM),
    (1202.0, NoiseType.HUM),
    (1234.0, NoiseType.BROADBAND),
])
def test_classify_noise(freq, expected):
    assert classify_noise(freq) is expected


def test_profile_peaks_classify():
    channel = np.zeros(100)

    hiss = analyze_noise(_peaked_profile(6000.0), channel)
    rumble = analyze_noise(_peaked_profile(150.0), channel)

    assert hiss.dominant_freq_hz == pytest.approx(6000.0)
    assert hiss.noise_type is NoiseType.HISS
    assert rumble.dominant_freq_hz == pytest.approx(150.0)
    assert rumble.noise_type is NoiseType.RUMBLE


def test_noise_floor_and_snr():
    profile = NoiseProfile(magnitudes=np.full(FRAME // 2, 0.01), frame_size=FRAME, sample_rate=SR)
    t = np.arange(SR) / SR
    channel = np.sin(2 * np.pi * 440 * t)

    analysis = analyze_noise(profile, channel)

    assert analysis.noise_floor_db == pytest.approx(-40.0, abs=1e-6)
    assert analysis.signal_level_db == pytest.approx(-3.0103, abs=1e-3)
    assert analysis.snr_db == pytest.approx(36.9897, abs=1e-3)


def test_dominant_frequency_mapping():
    profile = np.zeros(2048)
    profile[1024] = 1.0

    assert dominant_frequency(profile, 44100) == pytest.approx(11025.0)


def test_improvement_heuristics():
    x = 0.5 * np.ones(1000)

    same = improvement(x, x)
    assert same.noise_reduction_db == pytest.approx(0.0)
    assert same.quality_score_percent == pytest.approx(50.0)
    assert same.new_snr_db == 0.0

    halved = improvement(x, x / 2)
    assert halved.noise_reduction_db == pytest.approx(6.0206, abs=1e-3)
    assert halved.quality_score_percent == pytest.approx(80.103, abs=1e-2)

    silenced = improvement(x, np.zeros(1000))
    assert silenced.quality_score_percent == 100.0


def test_spectrum_helpers():
    np.testing.assert_allclose(spectrum_db(np.array([1.0, 0.1])), [0.0, -20.0], atol=1e-6)
    assert rms(np.array([])) == 0.0


def test_input_spectrum_for_display():
    from noise_reducer.metrics import bin_frequencies, input_spectrum

    t = np.arange(FRAME) / SR
    channel = np.sin(2 * np.pi * 1000 * t)

    mags = input_spectrum(channel, FRAME)
    freqs = bin_frequencies(FRAME, SR)

    assert mags.shape == freqs.shape == (FRAME // 2,)
    assert freqs[np.argmax(mags)] == pytest.approx(1000.0)


def test_selection_info_level_and_score():
    channel = np.full(SR, 0.001)

    info = selection_info(channel, SR, 0.0, 0.25)

    assert info.start == 0.0
    assert info.duration == pytest.approx(0.25)
    assert info.level_db == pytest.approx(-60.0, abs=1e-3)
    # 25% for a quarter second plus 20% for sitting 20 dB under -40 dB
    assert info.quality_score_percent == pytest.approx(45.0, abs=1e-3)


def test_selection_info_score_is_capped():
    info = selection_info(np.full(SR, 0.5), SR, 0.0, 1.0)

    assert info.quality_score_percent == 100.0


def test_selection_info_rejects_bad_region():
    with pytest.raises(InvalidSelectionError):
        selection_info(np.zeros(SR), SR, 0.5, 0.2)
