"""
Exception hierarchy for the noise reduction engine.

All errors derive from NoiseReductionError, which is a ValueError so that
callers written against the older ``raise ValueError(...)`` behaviour keep
working.
"""

from typing import Optional


class NoiseReductionError(ValueError):
    """Base exception for all noise reduction errors."""

    def __init__(self, message: str, channel: Optional[int] = None):
        self.channel = channel
        super().__init__(message)

    def __str__(self) -> str:
        if self.channel is not None:
            return f"[channel={self.channel}] {super().__str__()}"
        return super().__str__()


class EmptyInputError(NoiseReductionError):
    """Raised when a zero-length channel is handed to the STFT loop."""


class InvalidSelectionError(NoiseReductionError):
    """Raised when a manual noise region is missing, empty or out of bounds."""


class InvalidProfileError(NoiseReductionError):
    """Raised when a noise profile is empty, the wrong length or degenerate."""


class ParameterOutOfRangeError(NoiseReductionError):
    """Raised when a processing parameter is NaN, infinite or out of range."""

    def __init__(self, name: str, value, message: Optional[str] = None):
        self.name = name
        self.value = value
        super().__init__(message or f"Parameter '{name}' out of range: {value!r}")


class ProcessingCancelled(NoiseReductionError):
    """Raised when processing is cancelled at a frame boundary."""
