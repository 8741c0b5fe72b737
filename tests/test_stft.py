import sys
import threading
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from noise_reducer.errors import EmptyInputError, InvalidProfileError, ProcessingCancelled
from noise_reducer.params import ProcessingParams
from noise_reducer.stft import count_frames, frame_starts, process_channel

PARAMS = ProcessingParams(reduction_db=0.0)


def _noise(length, seed=0):
    return 0.1 * np.random.default_rng(seed).standard_normal(length)


def test_frame_layout_covers_whole_channel():
    starts = frame_starts(4096, 4096, 1024)

    assert list(starts) == [-3072, -2048, -1024, 0, 1024, 2048, 3072]
    assert count_frames(4096, 4096, 1024) == 7


def test_unity_gain_round_trip_reproduces_input():
    channel = _noise(10000)

    out = process_channel(channel, np.zeros(2048), PARAMS)

    assert out.shape == channel.shape
    np.testing.assert_allclose(out, channel, atol=1e-10)


def test_round_trip_shorter_than_one_frame():
    channel = _noise(500, seed=1)

    out = process_channel(channel, np.zeros(2048), PARAMS)

    np.testing.assert_allclose(out, channel, atol=1e-10)


def test_high_quality_uses_larger_frames():
    params = ProcessingParams(reduction_db=0.0, high_quality=True)
    channel = _noise(20000, seed=2)

    out = process_channel(channel, np.zeros(4096), params)

    np.testing.assert_allclose(out, channel, atol=1e-10)
    with pytest.raises(InvalidProfileError):
        process_channel(channel, np.zeros(2048), params)


def test_input_is_not_modified():
    channel = _noise(6000, seed=3)
    before = channel.copy()

    process_channel(channel, np.full(2048, 0.5), ProcessingParams(reduction_db=20.0))

    np.testing.assert_array_equal(channel, before)


def test_empty_channel_rejected():
    with pytest.raises(EmptyInputError):
        process_channel(np.array([]), np.zeros(2048), PARAMS)


def test_profile_length_mismatch_rejected():
    with pytest.raises(InvalidProfileError):
        process_channel(_noise(5000), np.zeros(1000), PARAMS)


def test_silent_channel_stays_silent():
    out = process_channel(np.zeros(9000), np.full(2048, 0.3), ProcessingParams(reduction_db=30.0))

    assert np.all(np.isfinite(out))
    np.testing.assert_array_equal(out, 0.0)


def test_progress_reported_after_every_frame():
    calls = []
    channel = _noise(8000, seed=4)

    process_channel(channel, np.zeros(2048), PARAMS, on_frame=lambda d, t: calls.append((d, t)))

    total = count_frames(8000, 4096, 1024)
    assert calls == [(i, total) for i in range(1, total + 1)]


def test_cancel_checked_at_frame_boundary():
    cancel = threading.Event()
    seen = []

    def on_frame(done, total):
        seen.append(done)
        if done == 2:
            cancel.set()

    with pytest.raises(ProcessingCancelled):
        process_channel(_noise(20000), np.zeros(2048), PARAMS,
                        on_frame=on_frame, cancel_event=cancel)
    assert seen == [1, 2]


def test_spectra_collected_per_frame():
    spectra = []

    process_channel(_noise(5000), np.zeros(2048), PARAMS, spectra=spectra)

    assert len(spectra) == count_frames(5000, 4096, 1024)
    assert all(s.shape == (2048,) for s in spectra)
