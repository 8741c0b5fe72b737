"""
Noise Reducer - spectral subtraction noise reduction engine.

Turns a noisy recording plus a noise profile into a cleaned recording:
- noise profiles learned automatically, from a marked noise-only region,
  or generated from presets (hiss, hum, broadband, wind, fan)
- STFT spectral subtraction with a gain floor and per-bin gain smoothing
- single-pole high-pass / low-pass post filtering
- noise analysis (floor, SNR, dominant frequency, type) and
  before/after estimates
"""

__version__ = "0.1.0"

from .denoiser import NoiseReducer, ProcessingResult, reduce_noise
from .errors import (
    EmptyInputError,
    InvalidProfileError,
    InvalidSelectionError,
    NoiseReductionError,
    ParameterOutOfRangeError,
    ProcessingCancelled,
)
from .metrics import ImprovementMetrics, NoiseAnalysis, NoiseType, SelectionInfo
from .params import ProcessingParams, load_params, save_params
from .profile import AutoProfile, ManualProfile, NoisePreset, NoiseProfile, PresetProfile

__all__ = [
	"NoiseReducer",
	"ProcessingResult",
	"reduce_noise",
	"ProcessingParams",
	"load_params",
	"save_params",
	"NoiseProfile",
	"AutoProfile",
	"ManualProfile",
	"PresetProfile",
	"NoisePreset",
	"NoiseAnalysis",
	"NoiseType",
	"ImprovementMetrics",
	"SelectionInfo",
	"NoiseReductionError",
	"EmptyInputError",
	"InvalidSelectionError",
	"InvalidProfileError",
	"ParameterOutOfRangeError",
	"ProcessingCancelled",
	"__version__",
]
