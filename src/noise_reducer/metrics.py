"""
Noise analysis and before/after improvement estimates.

The improvement figures are level-delta heuristics for display, not
perceptual quality measurements.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from .profile import NoiseProfile, bin_frequencies, selection_samples
from .transform import magnitude_spectrum

EPS = 1e-10


class NoiseType(Enum):
    """Coarse noise category derived from the dominant profile frequency."""
    RUMBLE = "low-frequency rumble"
    HISS = "hiss"
    HUM = "electrical hum"
    BROADBAND = "broadband"


@dataclass
class NoiseAnalysis:
    """Summary of a noise profile against the full input channel."""
    noise_floor_db: float
    signal_level_db: float
    snr_db: float
    dominant_freq_hz: float
    noise_type: NoiseType


@dataclass
class SelectionInfo:
    """Readout for a region marked as noise, before it is learned."""
    start: float
    duration: float
    level_db: float
    # Longer and quieter regions make better noise profiles
    quality_score_percent: float


@dataclass
class ImprovementMetrics:
    """Display-only estimates of what processing achieved."""
    noise_reduction_db: float
    new_snr_db: float
    quality_score_percent: float


def rms(data: np.ndarray) -> float:
    data = np.asarray(data, dtype=np.float64)
    if data.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(data ** 2)))


def level_db(value: float) -> float:
    return float(20 * np.log10(value + EPS))


def dominant_frequency(profile: np.ndarray, sample_rate: int) -> float:
    """Frequency of the loudest profile bin: ``argmax / len * sr / 2``."""
    profile = np.asarray(profile)
    return float(np.argmax(profile) / len(profile) * (sample_rate / 2))


def classify_noise(dominant_freq_hz: float) -> NoiseType:
    """First matching rule wins: rumble, hiss, hum, else broadband."""
    if dominant_freq_hz < 200:
        return NoiseType.RUMBLE
    if dominant_freq_hz > 5000:
        return NoiseType.HISS
    if dominant_freq_hz % 50 < 5 or dominant_freq_hz % 60 < 5:
        return NoiseType.HUM
    return NoiseType.BROADBAND


def analyze_noise(profile: NoiseProfile, channel: np.ndarray) -> NoiseAnalysis:
    """Noise floor, SNR, dominant frequency and type for *profile*."""
    noise_floor = level_db(float(np.mean(profile.magnitudes)))
    signal_level = level_db(rms(channel))
    dominant = dominant_frequency(profile.magnitudes, profile.sample_rate)
    return NoiseAnalysis(
        noise_floor_db=noise_floor,
        signal_level_db=signal_level,
        snr_db=signal_level - noise_floor,
        dominant_freq_hz=dominant,
        noise_type=classify_noise(dominant),
    )


def improvement(original: np.ndarray, processed: np.ndarray) -> ImprovementMetrics:
    """
    Estimate the improvement from the RMS level change of one channel.

    The level drop is reported as the noise reduction, the original level
    plus that drop (floored at 0 dB) as the new SNR, and the score grows
    5% per dB from 50%, capped at 100%.
    """
    original_level = level_db(rms(original))
    processed_level = level_db(rms(processed))
    noise_reduction = abs(original_level - processed_level)
    return ImprovementMetrics(
        noise_reduction_db=noise_reduction,
        new_snr_db=max(0.0, original_level + noise_reduction),
        quality_score_percent=min(100.0, noise_reduction * 5 + 50),
    )


def selection_info(channel: np.ndarray, sample_rate: int, start: float, end: float) -> SelectionInfo:
    """
    Level and suitability of a candidate noise region of *channel*.

    The score gives 50% per half second of region, plus 1% per dB the
    region sits below -40 dB, capped at 100%.
    """
    start_sample, end_sample = selection_samples(start, end, len(channel), sample_rate)
    level = level_db(rms(np.asarray(channel)[start_sample:end_sample]))
    duration = end - start
    return SelectionInfo(
        start=start,
        duration=duration,
        level_db=level,
        quality_score_percent=min(100.0, duration / 0.5 * 50 + max(0.0, -level - 40)),
    )


def spectrum_db(magnitudes: np.ndarray) -> np.ndarray:
    """Magnitudes in dB for plotting."""
    return 20 * np.log10(np.asarray(magnitudes, dtype=np.float64) + EPS)


def input_spectrum(channel: np.ndarray, frame_size: int) -> np.ndarray:
    """Windowed magnitude spectrum of the first frame of *channel*."""
    return magnitude_spectrum(channel, frame_size)


__all__ = [
    "NoiseType",
    "NoiseAnalysis",
    "ImprovementMetrics",
    "SelectionInfo",
    "analyze_noise",
    "selection_info",
    "improvement",
    "classify_noise",
    "dominant_frequency",
    "spectrum_db",
    "input_spectrum",
    "bin_frequencies",
    "rms",
]
