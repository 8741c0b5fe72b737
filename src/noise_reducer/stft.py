"""
STFT analysis / spectral subtraction / overlap-add resynthesis of one channel.

Frames are Hann-windowed on analysis and again on synthesis and overlap by
75%. The first frame starts ``frame_size - hop_size`` samples before the
channel so every input sample is covered by the same number of frames;
samples outside the channel are read as zeros and writes outside it are
dropped. The overlap-add sum is divided by the summed squared window, so a
unity gain reproduces the input exactly.
"""

import logging
import threading
from typing import Callable, List, Optional

import numpy as np

from . import transform
from .errors import EmptyInputError, InvalidProfileError, ProcessingCancelled
from .params import ProcessingParams
from .subtraction import apply_spectral_subtraction

logger = logging.getLogger(__name__)

FrameCallback = Callable[[int, int], None]


def frame_starts(length: int, frame_size: int, hop_size: int) -> range:
    """Start offsets (possibly negative) of every frame touching the channel."""
    return range(-(frame_size - hop_size), length, hop_size)


def count_frames(length: int, frame_size: int, hop_size: int) -> int:
    return len(frame_starts(length, frame_size, hop_size))


def process_channel(
    channel: np.ndarray,
    profile: np.ndarray,
    params: ProcessingParams,
    on_frame: Optional[FrameCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    spectra: Optional[List[np.ndarray]] = None,
) -> np.ndarray:
    """
    Denoise one channel with frame-wise spectral subtraction.

    Args:
        channel: 1-D samples; never modified
        profile: Noise magnitudes, length ``params.frame_size // 2``
        params: Validated processing parameters
        on_frame: Called as ``on_frame(done, total)`` after each frame
        cancel_event: Checked before each frame; when set, raises
            ProcessingCancelled
        spectra: If given, each frame's processed magnitude spectrum
            (``frame_size // 2`` bins) is appended to it

    Returns:
        New float64 array with the same length as *channel*.
    """
    channel = np.asarray(channel, dtype=np.float64)
    if channel.ndim != 1:
        raise ValueError(f"Expected a 1-D channel, got shape {channel.shape}")

    length = len(channel)
    if length == 0:
        raise EmptyInputError("Input channel is empty.")

    frame_size = params.frame_size
    hop_size = params.hop_size
    profile = np.asarray(profile, dtype=np.float64)
    if profile.shape != (frame_size // 2,):
        raise InvalidProfileError(
            f"Noise profile has {profile.size} bins, expected {frame_size // 2} "
            f"for frame size {frame_size}."
        )

    window = transform.hann_window(frame_size)
    window_sq = window ** 2
    alpha = params.alpha

    output = np.zeros(length)
    norm = np.zeros(length)

    starts = frame_starts(length, frame_size, hop_size)
    total = len(starts)
    logger.debug("Processing %d samples in %d frames (size=%d, hop=%d)",
                 length, total, frame_size, hop_size)

    frame = np.empty(frame_size)
    for index, start in enumerate(starts):
        if cancel_event is not None and cancel_event.is_set():
            raise ProcessingCancelled(f"Cancelled after {index} of {total} frames.")

        lo = max(start, 0)
        hi = min(start + frame_size, length)
        a, b = lo - start, hi - start

        frame.fill(0.0)
        frame[a:b] = channel[lo:hi]
        spectrum = transform.forward(frame * window, frame_size)
        spectrum = apply_spectral_subtraction(
            spectrum, profile, alpha, params.smoothing_taps
        )
        if spectra is not None:
            spectra.append(np.abs(spectrum[:frame_size // 2]))

        resynth = transform.inverse(spectrum, frame_size) * window
        output[lo:hi] += resynth[a:b]
        norm[lo:hi] += window_sq[a:b]

        if on_frame is not None:
            on_frame(index + 1, total)

    # Every sample is covered by at least one frame with a non-zero window
    # value, but guard against division by (near) zero anyway
    threshold = norm.max() * 1e-8
    covered = norm > threshold
    output[covered] /= norm[covered]
    output[~covered] = 0.0
    return output
