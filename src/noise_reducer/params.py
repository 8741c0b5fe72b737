"""Processing parameters for the spectral subtraction denoiser."""

import json
import logging
import math
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Union

from .errors import ParameterOutOfRangeError

logger = logging.getLogger(__name__)

FRAME_SIZE = 4096
FRAME_SIZE_HIGH_QUALITY = 8192


@dataclass(frozen=True)
class ProcessingParams:
    """
    Configuration for one processing run.

    Args:
        reduction_db: Subtraction strength in dB (>= 0).
            6 dB doubles the subtracted noise, 20 dB subtracts 10x the estimate.
        sensitivity: Linear multiplier on the subtraction factor (>= 0).
        smoothing_taps: Number of neighbouring bins averaged with each bin's
            gain; half are taken from each side, an odd count rounding up.
            0 disables smoothing.
        attack_time: Envelope attack in seconds. Stored, not applied.
        release_time: Envelope release in seconds. Stored, not applied.
        speech_preservation: Ratio in [0, 1]. Stored, not applied.
        low_cutoff_hz: High-pass corner; the filter runs only above 20 Hz.
        high_cutoff_hz: Low-pass corner; the filter runs only below Nyquist.
        gate_threshold_db: Gate threshold. Stored, not applied.
        adaptive_mode: Stored switch, not applied.
        preserve_transients: Stored switch, not applied.
        high_quality: Use 8192-sample frames instead of 4096.
        music_mode: Stored switch, not applied.
    """
    reduction_db: float = 12.0
    sensitivity: float = 1.0
    smoothing_taps: int = 2
    attack_time: float = 0.01
    release_time: float = 0.1
    speech_preservation: float = 0.5
    low_cutoff_hz: float = 20.0
    high_cutoff_hz: float = 20000.0
    gate_threshold_db: float = -40.0
    adaptive_mode: bool = False
    preserve_transients: bool = False
    high_quality: bool = False
    music_mode: bool = False

    @property
    def frame_size(self) -> int:
        return FRAME_SIZE_HIGH_QUALITY if self.high_quality else FRAME_SIZE

    @property
    def hop_size(self) -> int:
        """75% overlap between consecutive frames."""
        return self.frame_size // 4

    @property
    def alpha(self) -> float:
        """Convert reduction dB to the linear subtraction factor."""
        return self.sensitivity * 10 ** (self.reduction_db / 20)

    def validate(self) -> "ProcessingParams":
        """Reject NaN, infinite and out-of-range values. Returns self."""
        for name in ("reduction_db", "sensitivity", "attack_time", "release_time",
                     "low_cutoff_hz", "gate_threshold_db"):
            _require_finite(name, getattr(self, name))

        for name in ("reduction_db", "sensitivity", "attack_time",
                     "release_time", "low_cutoff_hz"):
            if getattr(self, name) < 0:
                raise ParameterOutOfRangeError(name, getattr(self, name))

        # High cutoff may be infinite (no low-pass) but never zero or negative
        if math.isnan(self.high_cutoff_hz) or self.high_cutoff_hz <= 0:
            raise ParameterOutOfRangeError("high_cutoff_hz", self.high_cutoff_hz)

        _require_finite("speech_preservation", self.speech_preservation)
        if not 0.0 <= self.speech_preservation <= 1.0:
            raise ParameterOutOfRangeError("speech_preservation", self.speech_preservation)

        taps = self.smoothing_taps
        if isinstance(taps, bool) or not isinstance(taps, int) or taps < 0:
            raise ParameterOutOfRangeError("smoothing_taps", taps)

        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingParams":
        """Build validated params from a mapping; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                raise ParameterOutOfRangeError(key, data[key], f"Unknown parameter '{key}'")
        return cls(**data).validate()

    def updated(self, **changes) -> "ProcessingParams":
        """Return a validated copy with *changes* applied."""
        return self.from_dict({**self.to_dict(), **changes})


def _require_finite(name: str, value) -> None:
    try:
        ok = math.isfinite(value)
    except TypeError:
        ok = False
    if not ok:
        raise ParameterOutOfRangeError(name, value)


def load_params(path: Union[str, Path]) -> ProcessingParams:
    """Load parameters persisted as JSON."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    logger.debug("Loaded parameters from %s", path)
    return ProcessingParams.from_dict(data)


def save_params(params: ProcessingParams, path: Union[str, Path]) -> Path:
    """Persist parameters to disk as JSON."""
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(params.validate().to_dict(), f, indent=2)
    return path


DEFAULT_PARAMS = ProcessingParams()

__all__ = [
    "ProcessingParams",
    "DEFAULT_PARAMS",
    "FRAME_SIZE",
    "FRAME_SIZE_HIGH_QUALITY",
    "load_params",
    "save_params",
]
