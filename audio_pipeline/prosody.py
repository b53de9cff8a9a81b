"""
Pitch tracking for wellbeing voice analysis.

Prosody features computed here:
- Mean fundamental frequency (f0)
- Pitch variability (population std-dev of per-frame f0)

Engineering approach:
- Short-time autocorrelation over 30ms frames with 50% hop
- Peak search restricted to lags implied by the 85-300Hz voice band
- Batched FFT autocorrelation (scipy.fft) so a 2-minute recording is
  processed in one vectorized pass
- Frames that are silent, aperiodic, or estimate outside the band are
  discarded rather than clipped
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy import fft

from .vad import frame_signal

logger = logging.getLogger(__name__)

# Frames with less total energy than this are treated as silence
_SILENCE_ENERGY = 1e-10


@dataclass(frozen=True, eq=False)
class PitchTrack:
    """
    Per-frame pitch estimates.

    Attributes:
        frame_pitches: f0 in Hz per frame, NaN where the frame was discarded
        hop_seconds: Time between frame starts
    """
    frame_pitches: np.ndarray
    hop_seconds: float

    @property
    def valid_pitches(self) -> np.ndarray:
        return self.frame_pitches[np.isfinite(self.frame_pitches)]

    @property
    def voiced_ratio(self) -> float:
        if len(self.frame_pitches) == 0:
            return 0.0
        return len(self.valid_pitches) / len(self.frame_pitches)


def lag_bounds(
    sample_rate: int,
    frame_length: int,
    f0_min: float = 85.0,
    f0_max: float = 300.0
) -> Tuple[int, int]:
    """
    Autocorrelation lag search range [min_lag, max_lag).

    The upper bound is also limited to half the frame so that every
    candidate lag has at least half a frame of overlap.
    """
    min_lag = max(1, int(np.floor(sample_rate / f0_max)))
    max_lag = min(int(np.floor(sample_rate / f0_min)), frame_length // 2)
    return min_lag, max_lag


def autocorrelate_frames(frames: np.ndarray) -> np.ndarray:
    """
    Linear (non-circular) autocorrelation of each row.

    Returns:
        Array of shape (n_frames, frame_length); column k is the lag-k sum
    """
    frame_length = frames.shape[1]
    n_fft = fft.next_fast_len(2 * frame_length)

    spectrum = fft.rfft(frames, n=n_fft, axis=1)
    power = spectrum.real ** 2 + spectrum.imag ** 2
    return fft.irfft(power, n=n_fft, axis=1)[:, :frame_length]


def autocorrelation_peaks(
    frames: np.ndarray,
    min_lag: int,
    max_lag: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Locate the autocorrelation peak within [min_lag, max_lag) for each frame.

    Returns:
        Tuple of (best_lag, normalized_peak, zero_lag_energy), where
        normalized_peak = r(best_lag) / r(0) and is 0 for silent frames
    """
    n_frames = frames.shape[0]
    if max_lag <= min_lag or n_frames == 0:
        zeros = np.zeros(n_frames)
        return zeros.astype(int), zeros, zeros

    acf = autocorrelate_frames(frames)
    zero_lag = acf[:, 0]

    window = acf[:, min_lag:max_lag]
    best = np.argmax(window, axis=1)
    peak = window[np.arange(n_frames), best]

    normalized = np.zeros(n_frames)
    audible = zero_lag > _SILENCE_ENERGY
    normalized[audible] = peak[audible] / zero_lag[audible]

    return best + min_lag, np.clip(normalized, 0.0, 1.0), zero_lag


def track_pitch(
    audio_data: np.ndarray,
    sample_rate: int,
    frame_duration: float = 0.03,
    f0_min: float = 85.0,
    f0_max: float = 300.0,
    voicing_threshold: float = 0.3
) -> PitchTrack:
    """
    Estimate f0 for every 30ms frame (50% hop) by autocorrelation.

    Args:
        audio_data: Mono waveform
        sample_rate: Sample rate in Hz
        frame_duration: Frame length in seconds
        f0_min: Lowest accepted pitch (85Hz = low male voice)
        f0_max: Highest accepted pitch (300Hz = high speaking voice)
        voicing_threshold: Minimum normalized autocorrelation peak for a
            frame to be considered periodic

    Returns:
        PitchTrack (NaN for discarded frames)
    """
    frame_length = max(2, int(np.floor(sample_rate * frame_duration)))
    hop_length = max(1, frame_length // 2)

    frames = frame_signal(audio_data, frame_length, hop_length)
    min_lag, max_lag = lag_bounds(sample_rate, frame_length, f0_min, f0_max)

    best_lag, strength, _ = autocorrelation_peaks(frames, min_lag, max_lag)

    pitches = np.full(len(frames), np.nan)
    periodic = (best_lag > 0) & (strength >= voicing_threshold)
    pitches[periodic] = sample_rate / best_lag[periodic]

    in_band = (pitches >= f0_min) & (pitches <= f0_max)
    pitches[~in_band] = np.nan

    track = PitchTrack(frame_pitches=pitches, hop_seconds=hop_length / sample_rate)
    logger.debug(
        f"Pitch tracking: {len(track.valid_pitches)}/{len(frames)} valid frames "
        f"(lags {min_lag}-{max_lag})"
    )
    return track


def compute_pitch_statistics(
    track: PitchTrack,
    default_pitch: float = 150.0
) -> Tuple[float, float]:
    """
    Mean pitch and pitch variability from a pitch track.

    Returns:
        Tuple of (mean_pitch, pitch_variability). Mean falls back to
        `default_pitch` when no frame is valid; variability is 0 with
        fewer than two valid frames.
    """
    valid = track.valid_pitches

    mean_pitch = float(np.mean(valid)) if len(valid) > 0 else default_pitch
    pitch_variability = float(np.std(valid)) if len(valid) >= 2 else 0.0

    return mean_pitch, pitch_variability
