"""
Noise profile estimation.

A noise profile is the average magnitude spectrum of the noise, one value
per positive-frequency bin (``frame_size // 2`` values). It can be learned
automatically from the quietest part of the opening of a recording, from a
region the user marked as pure noise, or generated from a named preset.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import librosa
import numpy as np

from .errors import InvalidProfileError, InvalidSelectionError, ParameterOutOfRangeError
from .transform import magnitude_spectrum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoiseProfile:
    """Estimated noise magnitude spectrum. Read-only once built."""
    # Mean magnitude per positive-frequency bin
    magnitudes: np.ndarray
    # Frame size the profile was computed for
    frame_size: int
    # Sample rate of the analysed audio
    sample_rate: int
    # How the profile was obtained ("auto", "manual", "preset:<name>", "custom")
    source: str = "custom"
    # Analysed region in seconds, when there is one
    region: Optional[Tuple[float, float]] = None

    def __post_init__(self):
        values = np.array(self.magnitudes, dtype=np.float64)
        if values.ndim != 1 or values.size == 0:
            raise InvalidProfileError("Noise profile is empty.")
        if values.size != self.frame_size // 2:
            raise InvalidProfileError(
                f"Noise profile has {values.size} bins, expected "
                f"{self.frame_size // 2} for frame size {self.frame_size}."
            )
        if not np.all(np.isfinite(values)) or np.any(values < 0):
            raise InvalidProfileError("Noise profile must be finite and non-negative.")
        values.setflags(write=False)
        object.__setattr__(self, "magnitudes", values)

    def __len__(self) -> int:
        return self.magnitudes.size

    @property
    def n_bins(self) -> int:
        return self.magnitudes.size

    def frequencies(self) -> np.ndarray:
        """Centre frequency of every profile bin in Hz."""
        return bin_frequencies(self.frame_size, self.sample_rate)


def bin_frequencies(frame_size: int, sample_rate: int) -> np.ndarray:
    """Hz of the first ``frame_size // 2`` FFT bins: ``i / (N/2) * sr / 2``."""
    return librosa.fft_frequencies(sr=sample_rate, n_fft=frame_size)[:frame_size // 2]


class ProfileSource(ABC):
    """Where a noise profile comes from."""

    @abstractmethod
    def estimate(self, channel: np.ndarray, sample_rate: int, frame_size: int) -> NoiseProfile:
        """Build a NoiseProfile for *frame_size* from *channel*."""


@dataclass(frozen=True)
class AutoProfile(ProfileSource):
    """
    Learn the profile from the quietest segments at the start of the audio.

    The first ``min(max_seconds, duration * duration_fraction)`` seconds are
    cut into ``segment_seconds`` pieces, ranked by RMS, and the quietest
    ``quiet_fraction`` of them (at least one) are averaged in the frequency
    domain. Each selected segment contributes one full frame read from its
    start, so the profile matches the level of the STFT frames it is
    subtracted from; near the end of short audio the frame is clipped.
    """
    max_seconds: float = 2.0
    duration_fraction: float = 0.1
    segment_seconds: float = 0.1
    quiet_fraction: float = 0.2

    def estimate(self, channel: np.ndarray, sample_rate: int, frame_size: int) -> NoiseProfile:
        channel = np.asarray(channel, dtype=np.float64)
        duration = len(channel) / sample_rate
        analysis_duration = min(self.max_seconds, duration * self.duration_fraction)
        sample_count = int(analysis_duration * sample_rate)
        segment_size = int(sample_rate * self.segment_seconds)

        starts = []
        if segment_size > 0:
            starts = list(range(0, sample_count - segment_size + 1, segment_size))
        if not starts:
            raise InvalidProfileError(
                f"Not enough audio to estimate noise: need at least "
                f"{self.segment_seconds / self.duration_fraction:.2f}s, "
                f"got {duration:.2f}s."
            )

        rms = np.array([
            np.sqrt(np.mean(channel[s:s + segment_size] ** 2)) for s in starts
        ])
        order = np.argsort(rms, kind="stable")
        n_selected = max(1, int(len(starts) * self.quiet_fraction))
        selected = [starts[i] for i in order[:n_selected]]

        profile = np.zeros(frame_size // 2)
        for start in selected:
            profile += magnitude_spectrum(channel[start:start + frame_size], frame_size)
        profile /= len(selected)

        logger.debug("Auto noise profile from %d of %d segments (%.2fs analysed)",
                     len(selected), len(starts), analysis_duration)
        if not np.any(profile):
            logger.warning("Automatic noise profile is all zeros; input opening is silent.")

        return NoiseProfile(
            magnitudes=profile,
            frame_size=frame_size,
            sample_rate=sample_rate,
            source="auto",
            region=(0.0, sample_count / sample_rate),
        )


def selection_samples(start: Optional[float], end: Optional[float],
                      n_samples: int, sample_rate: int) -> Tuple[int, int]:
    """Validate a region in seconds and return its ``[start, end)`` sample range."""
    if start is None or end is None:
        raise InvalidSelectionError("No noise region selected.")

    duration = n_samples / sample_rate
    if not (math.isfinite(start) and math.isfinite(end)):
        raise InvalidSelectionError(f"Invalid noise region: {start}..{end}")
    if start < 0 or end > duration or end <= start:
        raise InvalidSelectionError(
            f"Noise region {start:.3f}s..{end:.3f}s is empty or outside "
            f"the audio (0..{duration:.3f}s)."
        )

    start_sample = int(start * sample_rate)
    end_sample = min(int(end * sample_rate), n_samples)
    if end_sample <= start_sample:
        raise InvalidSelectionError("Noise region contains no samples.")
    return start_sample, end_sample


@dataclass(frozen=True)
class ManualProfile(ProfileSource):
    """Learn the profile from one region known to contain only noise."""
    start: Optional[float] = None
    end: Optional[float] = None

    def estimate(self, channel: np.ndarray, sample_rate: int, frame_size: int) -> NoiseProfile:
        start_sample, end_sample = selection_samples(self.start, self.end, len(channel), sample_rate)

        segment = np.asarray(channel[start_sample:end_sample], dtype=np.float64)
        if len(segment) > frame_size:
            logger.debug("Noise region of %d samples truncated to %d",
                         len(segment), frame_size)

        return NoiseProfile(
            magnitudes=magnitude_spectrum(segment, frame_size),
            frame_size=frame_size,
            sample_rate=sample_rate,
            source="manual",
            region=(self.start, self.end),
        )


class NoisePreset(Enum):
    """Procedural noise profiles that need no analysis."""
    HISS = "hiss"
    HUM = "hum"
    BROADBAND = "broadband"
    WIND = "wind"
    FAN = "fan"


# Magnitudes of the emphasised and background bins
PRESET_PEAK = 0.1
PRESET_BASE = 0.01
PRESET_FAN_BASE = 0.02
PRESET_BROADBAND = 0.05


def preset_profile(preset: NoisePreset, sample_rate: int, frame_size: int) -> np.ndarray:
    """Closed-form noise magnitudes for *preset* as a function of bin frequency."""
    freqs = bin_frequencies(frame_size, sample_rate)

    if preset is NoisePreset.HISS:
        return np.where(freqs > 5000, PRESET_PEAK, PRESET_BASE)

    if preset is NoisePreset.HUM:
        # Mark the bins nearest each 50 Hz and 60 Hz harmonic
        tolerance = max(2.0, sample_rate / frame_size / 2)
        near_50 = np.minimum(freqs % 50, 50 - freqs % 50) < tolerance
        near_60 = np.minimum(freqs % 60, 60 - freqs % 60) < tolerance
        return np.where((near_50 | near_60) & (freqs > 0), PRESET_PEAK, PRESET_BASE)

    if preset is NoisePreset.BROADBAND:
        return np.full(len(freqs), PRESET_BROADBAND)

    if preset is NoisePreset.WIND:
        return np.where(freqs < 500, PRESET_PEAK, PRESET_BASE)

    if preset is NoisePreset.FAN:
        comb = (freqs > 100) & (freqs < 2000) & (freqs % 100 < 10)
        return np.where(comb, PRESET_PEAK, PRESET_FAN_BASE)

    raise ParameterOutOfRangeError("preset", preset)


@dataclass(frozen=True)
class PresetProfile(ProfileSource):
    """Generate the profile from a named preset; the audio is not inspected."""
    name: str = "broadband"

    def estimate(self, channel: np.ndarray, sample_rate: int, frame_size: int) -> NoiseProfile:
        try:
            preset = NoisePreset(self.name)
        except ValueError:
            raise ParameterOutOfRangeError(
                "preset", self.name,
                f"Unknown noise preset '{self.name}'. "
                f"Choose from: {', '.join(p.value for p in NoisePreset)}"
            ) from None

        return NoiseProfile(
            magnitudes=preset_profile(preset, sample_rate, frame_size),
            frame_size=frame_size,
            sample_rate=sample_rate,
            source=f"preset:{preset.value}",
        )
