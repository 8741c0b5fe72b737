"""
Noise reduction session and pipeline entry point.

Pipeline per channel:
1. STFT spectral subtraction against a shared, read-only noise profile
2. Optional single-pole high-pass / low-pass post filters

Channels are independent and each runs on its own worker thread. Workers
report per-frame progress through a bounded queue that is drained on the
calling thread; a failure on any channel aborts the run without returning
partial output.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import librosa
import numpy as np
import soundfile as sf

from .errors import (
    EmptyInputError,
    InvalidProfileError,
    NoiseReductionError,
    ParameterOutOfRangeError,
    ProcessingCancelled,
)
from .filters import apply_finishing, apply_post_filters
from .metrics import (
    ImprovementMetrics,
    NoiseAnalysis,
    SelectionInfo,
    analyze_noise,
    improvement,
    selection_info,
)
from .params import ProcessingParams
from .profile import AutoProfile, ManualProfile, NoiseProfile, ProfileSource
from .stft import count_frames, process_channel

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Progress messages beyond this many pending are dropped; each message
# carries an absolute frame count so nothing is lost by skipping one.
PROGRESS_QUEUE_SIZE = 64
_POLL_SECONDS = 0.05


@dataclass
class ProcessingResult:
    """Output of one processing run."""
    # Processed audio, same shape and dtype as the input
    audio: np.ndarray
    sample_rate: int
    metrics: ImprovementMetrics
    # Profile the run used
    profile: NoiseProfile
    # Processed magnitude spectra of channel 0, shape (frames, bins), if kept
    spectra: Optional[np.ndarray] = None
    elapsed_seconds: float = 0.0


def _as_channels(audio: np.ndarray) -> np.ndarray:
    audio = np.asarray(audio)
    if audio.ndim == 1:
        return audio.reshape(1, -1)
    if audio.ndim != 2:
        raise ValueError(f"Expected 1-D or (channels, samples) audio, got shape {audio.shape}")
    return audio


def _resolve_profile(profile, params: ProcessingParams, sample_rate: int) -> NoiseProfile:
    if profile is None:
        raise InvalidProfileError("No noise profile available.")
    if isinstance(profile, NoiseProfile):
        if profile.frame_size != params.frame_size:
            raise InvalidProfileError(
                f"Noise profile was built for frame size {profile.frame_size}, "
                f"but processing uses {params.frame_size}."
            )
        if profile.sample_rate != sample_rate:
            raise InvalidProfileError(
                f"Noise profile was built at {profile.sample_rate} Hz, "
                f"but the audio is {sample_rate} Hz."
            )
        return profile
    return NoiseProfile(
        magnitudes=profile,
        frame_size=params.frame_size,
        sample_rate=sample_rate,
    )


def reduce_noise(
    audio: np.ndarray,
    sample_rate: int,
    profile: Union[NoiseProfile, np.ndarray],
    params: Optional[ProcessingParams] = None,
    progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    keep_spectra: bool = False,
) -> ProcessingResult:
    """
    Denoise an in-memory buffer.

    Args:
        audio: 1-D mono samples or a (channels, samples) array in [-1, 1].
            Never modified.
        sample_rate: Sample rate in Hz
        profile: NoiseProfile, or raw magnitudes of length frame_size / 2
        params: Processing parameters (defaults if omitted)
        progress: Called on this thread with the overall fraction done
        cancel_event: Set it from any thread to stop at the next frame
        keep_spectra: Return channel 0's processed spectra for display

    Returns:
        ProcessingResult with audio of the same shape as *audio*.
    """
    params = (params or ProcessingParams()).validate()
    if not np.isfinite(sample_rate) or sample_rate <= 0:
        raise ParameterOutOfRangeError("sample_rate", sample_rate)
    sample_rate = int(sample_rate)

    original = np.asarray(audio)
    channels = _as_channels(original)
    n_channels, n_samples = channels.shape
    if n_channels == 0 or n_samples == 0:
        raise EmptyInputError("Input audio is empty.")

    noise_profile = _resolve_profile(profile, params, sample_rate)
    magnitudes = noise_profile.magnitudes

    frames_per_channel = count_frames(n_samples, params.frame_size, params.hop_size)
    total_frames = frames_per_channel * n_channels
    logger.info("Reducing noise: %d channel(s), %d samples @ %d Hz, frame size %d",
                n_channels, n_samples, sample_rate, params.frame_size)

    abort = threading.Event()
    progress_queue: "queue.Queue[Tuple[int, int]]" = queue.Queue(maxsize=PROGRESS_QUEUE_SIZE)
    results: Dict[int, np.ndarray] = {}
    errors: Dict[int, BaseException] = {}
    spectra: Optional[List[np.ndarray]] = [] if keep_spectra else None

    def worker(index: int):
        def on_frame(done: int, total: int):
            try:
                progress_queue.put_nowait((index, done))
            except queue.Full:
                pass

        try:
            out = process_channel(
                channels[index],
                magnitudes,
                params,
                on_frame=on_frame,
                cancel_event=abort,
                spectra=spectra if index == 0 else None,
            )
            results[index] = apply_post_filters(out, params, sample_rate)
        except Exception as e:
            if isinstance(e, NoiseReductionError) and e.channel is None:
                e.channel = index
            errors[index] = e
            abort.set()

    if cancel_event is not None and cancel_event.is_set():
        raise ProcessingCancelled("Processing cancelled before start.")

    start_time = time.perf_counter()
    threads = [
        threading.Thread(target=worker, args=(i,), name=f"noise-reducer-ch{i}", daemon=True)
        for i in range(n_channels)
    ]
    for t in threads:
        t.start()

    done_frames = [0] * n_channels

    def drain():
        updated = False
        while True:
            try:
                index, done = progress_queue.get_nowait()
            except queue.Empty:
                break
            if done > done_frames[index]:
                done_frames[index] = done
                updated = True
        if updated and progress is not None:
            progress(sum(done_frames) / total_frames)

    while True:
        alive = [t for t in threads if t.is_alive()]
        if not alive:
            break
        if cancel_event is not None and cancel_event.is_set():
            abort.set()
        alive[0].join(_POLL_SECONDS)
        drain()
    drain()

    if errors:
        # Report the root cause, not the channels stopped because of it
        for index in sorted(errors):
            if not isinstance(errors[index], ProcessingCancelled):
                raise errors[index]
        raise errors[min(errors)]

    out_dtype = original.dtype if np.issubdtype(original.dtype, np.floating) else np.float32
    processed = np.array([results[i] for i in range(n_channels)], dtype=out_dtype)
    if original.ndim == 1:
        processed = processed[0]

    elapsed = time.perf_counter() - start_time
    metrics = improvement(channels[0], results[0])
    logger.info("Noise reduction finished in %.2fs (%.1f dB level change)",
                elapsed, metrics.noise_reduction_db)
    if progress is not None:
        progress(1.0)

    return ProcessingResult(
        audio=processed,
        sample_rate=sample_rate,
        metrics=metrics,
        profile=noise_profile,
        spectra=np.array(spectra) if spectra is not None else None,
        elapsed_seconds=elapsed,
    )


class NoiseReducer:
    """
    Spectral subtraction denoiser session.

    Holds the loaded audio, the processing parameters, and the current noise
    profile. Typical use::

        reducer = NoiseReducer(ProcessingParams(reduction_db=6.0))
        reducer.load_audio("noisy.wav")
        reducer.analyze_noise(AutoProfile())
        result = reducer.process()
        reducer.save("clean.wav")
    """

    def __init__(self, params: Optional[ProcessingParams] = None):
        self.params = (params or ProcessingParams()).validate()

        # Internal state
        self._audio: Optional[np.ndarray] = None
        self._sr: Optional[int] = None
        self._processed: Optional[np.ndarray] = None
        self._file_path: Optional[Path] = None
        self._noise_profile: Optional[NoiseProfile] = None
        self._last_result: Optional[ProcessingResult] = None

    def load_audio(self, file_path: str) -> Tuple[np.ndarray, int]:
        """Load audio file using librosa, keeping all channels and the native rate."""
        self._file_path = Path(file_path)
        audio, sr = librosa.load(file_path, sr=None, mono=False)
        self.set_audio(audio, sr)
        logger.info("Loaded %s: %d channel(s), %.2fs @ %d Hz",
                    self._file_path.name, self._audio.shape[0], self.get_duration(), sr)
        return self._audio, self._sr

    def set_audio(self, audio: np.ndarray, sample_rate: int):
        """Use an in-memory buffer (1-D or (channels, samples)) instead of a file."""
        audio = _as_channels(np.asarray(audio))
        if audio.shape[1] == 0:
            raise EmptyInputError("Input audio is empty.")
        if not np.isfinite(sample_rate) or sample_rate <= 0:
            raise ParameterOutOfRangeError("sample_rate", sample_rate)
        self._audio = audio
        self._sr = int(sample_rate)
        self._processed = None
        self._last_result = None
        self._noise_profile = None

    def get_duration(self) -> float:
        """Get duration of loaded audio in seconds."""
        if self._audio is None or self._sr is None:
            return 0.0
        return self._audio.shape[1] / self._sr

    def _require_audio(self):
        if self._audio is None or self._sr is None:
            raise NoiseReductionError("No audio loaded. Call load_audio() first.")

    def analyze_noise(self, source: Optional[ProfileSource] = None) -> NoiseAnalysis:
        """
        Estimate the noise profile from channel 0 and summarise it.

        Args:
            source: AutoProfile, ManualProfile or PresetProfile
                (AutoProfile when omitted)

        Returns:
            NoiseAnalysis of the new profile against the full first channel
        """
        self._require_audio()
        source = source or AutoProfile()
        self._noise_profile = source.estimate(self._audio[0], self._sr, self.params.frame_size)
        analysis = analyze_noise(self._noise_profile, self._audio[0])
        logger.info("Noise profile (%s): floor %.1f dB, SNR %.1f dB, %s at %.0f Hz",
                    self._noise_profile.source, analysis.noise_floor_db, analysis.snr_db,
                    analysis.noise_type.value, analysis.dominant_freq_hz)
        return analysis

    def selection_info(self, start_time: float, end_time: float) -> SelectionInfo:
        """Level and quality score of a candidate noise region of channel 0."""
        self._require_audio()
        return selection_info(self._audio[0], self._sr, start_time, end_time)

    def learn_noise_profile(self, start_time: float, end_time: float) -> NoiseProfile:
        """Learn the noise profile from a region known to contain only noise."""
        self.analyze_noise(ManualProfile(start_time, end_time))
        return self._noise_profile

    def auto_learn_noise_profile(self) -> NoiseProfile:
        """Learn the noise profile from the quietest opening segments."""
        self.analyze_noise(AutoProfile())
        return self._noise_profile

    def set_noise_profile(self, magnitudes: np.ndarray) -> NoiseProfile:
        """Install a caller-built profile of ``frame_size / 2`` magnitudes."""
        self._require_audio()
        self._noise_profile = NoiseProfile(
            magnitudes=magnitudes,
            frame_size=self.params.frame_size,
            sample_rate=self._sr,
        )
        return self._noise_profile

    def get_noise_profile(self) -> Optional[NoiseProfile]:
        return self._noise_profile

    def clear_noise_profile(self):
        self._noise_profile = None

    def update_parameters(self, **changes) -> ProcessingParams:
        """
        Update processing parameters.

        A profile built for a different frame size is discarded; it has to be
        estimated again rather than truncated.
        """
        new_params = self.params.updated(**changes)
        if (self._noise_profile is not None
                and self._noise_profile.frame_size != new_params.frame_size):
            logger.warning("Frame size changed to %d; noise profile must be re-estimated.",
                           new_params.frame_size)
            self._noise_profile = None
        self.params = new_params
        return self.params

    def process(
        self,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        keep_spectra: bool = False,
    ) -> ProcessingResult:
        """Process the loaded audio with the current profile and parameters."""
        self._require_audio()
        if self._noise_profile is None:
            raise InvalidProfileError("No noise profile. Call analyze_noise() first.")

        result = reduce_noise(
            self._audio,
            self._sr,
            self._noise_profile,
            self.params,
            progress=progress,
            cancel_event=cancel_event,
            keep_spectra=keep_spectra,
        )
        self._processed = result.audio
        self._last_result = result
        return result

    def get_original(self) -> Optional[np.ndarray]:
        if self._audio is None:
            return None
        if self._audio.shape[0] == 1:
            return self._audio.squeeze(axis=0)
        return self._audio

    def get_processed(self) -> Optional[np.ndarray]:
        if self._processed is None:
            return None
        if self._processed.shape[0] == 1:
            return self._processed.squeeze(axis=0)
        return self._processed

    def get_sample_rate(self) -> Optional[int]:
        return self._sr

    def get_last_result(self) -> Optional[ProcessingResult]:
        return self._last_result

    def save(
        self,
        output_path: str,
        audio: Optional[np.ndarray] = None,
        format: Optional[str] = None,
        finishing: str = "none",
    ) -> str:
        """
        Save processed audio to file.

        Args:
            output_path: Path to save the output file
            audio: Optional audio data (uses processed audio if not provided)
            format: 'WAV', 'FLAC' or 'OGG' (default: from the file suffix)
            finishing: 'none', 'normalize' or 'enhance'
        """
        if audio is None:
            audio = self._processed

        if audio is None:
            raise NoiseReductionError("No processed audio to save.")

        output_path = Path(output_path)
        audio = apply_finishing(audio, finishing, self._sr)

        # Normalize to prevent clipping
        max_val = np.max(np.abs(audio))
        if max_val > 1.0:
            logger.warning("Output peaks at %.2f; normalising to prevent clipping.", max_val)
            audio = audio / max_val * 0.99

        format_upper = (format or output_path.suffix.lstrip(".") or "WAV").upper()
        if format_upper in ("FLAC", "WAV"):
            subtype = "PCM_24"
        elif format_upper == "OGG":
            subtype = "VORBIS"
        else:
            subtype = None

        # soundfile expects (samples, channels)
        sf.write(str(output_path), audio.T, self._sr, format=format_upper, subtype=subtype)
        logger.info("Saved %s", output_path)
        return str(output_path)
