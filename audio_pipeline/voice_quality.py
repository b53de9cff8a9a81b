"""
Voice quality proxies and recording quality assessment.

These are lightweight stand-ins for clinical voice measures. They are
correlated with the real measures but are NOT clinical jitter/shimmer/HNR:
- Jitter proxy: scaled pitch variability
- Shimmer proxy: variability of window RMS amplitude
- Harmonic ratio proxy: energy-weighted periodicity of long windows

Recording quality feeds the audio confidence: short, quiet or clipped
recordings are down-weighted rather than rejected.
"""

import logging

import numpy as np

from .prosody import autocorrelation_peaks, lag_bounds
from .vad import frame_signal

logger = logging.getLogger(__name__)


def compute_rms(audio_data: np.ndarray) -> float:
    if len(audio_data) == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(audio_data, dtype=np.float64))))


def compute_voice_energy(audio_data: np.ndarray, gain: float = 10.0) -> float:
    """RMS amplitude scaled by `gain` and clamped to [0, 1]."""
    return float(np.clip(compute_rms(audio_data) * gain, 0.0, 1.0))


def compute_jitter(pitch_variability: float, reference_hz: float = 50.0) -> float:
    """Jitter proxy: pitch std-dev relative to a 50Hz reference, capped at 1."""
    return float(min(1.0, max(0.0, pitch_variability) / reference_hz))


def compute_shimmer(
    audio_data: np.ndarray,
    window_size: int = 1024,
    scale: float = 10.0
) -> float:
    """
    Shimmer proxy: std-dev of RMS over non-overlapping windows.

    Returns 0 when fewer than two full windows are available.
    """
    n_windows = len(audio_data) // window_size
    if n_windows < 2:
        return 0.0

    windows = np.asarray(audio_data[:n_windows * window_size], dtype=np.float64)
    windows = windows.reshape(n_windows, window_size)
    amplitudes = np.sqrt(np.mean(windows ** 2, axis=1))

    return float(min(1.0, np.std(amplitudes) * scale))


def compute_harmonic_ratio(
    audio_data: np.ndarray,
    sample_rate: int,
    window_size: int = 2048,
    f0_min: float = 85.0,
    f0_max: float = 300.0
) -> float:
    """
    Harmonic-ratio proxy in [0, 1].

    Each non-overlapping window contributes its normalized autocorrelation
    peak (within the voice lag band), weighted by its energy.
    """
    frames = frame_signal(audio_data, window_size, window_size)
    min_lag, max_lag = lag_bounds(sample_rate, window_size, f0_min, f0_max)

    _, strength, zero_lag = autocorrelation_peaks(frames, min_lag, max_lag)

    total_energy = float(np.sum(zero_lag))
    if total_energy <= 0:
        return 0.0

    return float(np.clip(np.sum(zero_lag * strength) / total_energy, 0.0, 1.0))


def compute_clipping_ratio(audio_data: np.ndarray, threshold: float = 0.95) -> float:
    if len(audio_data) == 0:
        return 0.0
    return float(np.mean(np.abs(audio_data) > threshold))


def assess_recording_quality(
    audio_data: np.ndarray,
    duration: float,
    full_credit_duration: float = 30.0,
    minimum_duration: float = 15.0,
    quiet_rms: float = 0.02,
    clipping_threshold: float = 0.95,
    max_clipping_ratio: float = 0.01
) -> float:
    """
    Data-sufficiency factor for an audio recording.

    Factors (multiplicative):
    - Duration: 1.0 at >= 30s, x0.7 below 30s, a further x0.5 below 15s
    - Energy: x0.6 when RMS is below the quiet threshold
    - Clipping: x0.8 when more than 1% of samples exceed |0.95|

    Returns:
        Quality in [0, 1]
    """
    quality = 1.0

    if duration < full_credit_duration:
        quality *= 0.7
    if duration < minimum_duration:
        quality *= 0.5

    rms = compute_rms(audio_data)
    if rms < quiet_rms:
        quality *= 0.6

    clipping = compute_clipping_ratio(audio_data, clipping_threshold)
    if clipping > max_clipping_ratio:
        quality *= 0.8

    logger.debug(
        f"Recording quality {quality:.2f} "
        f"(duration={duration:.1f}s, rms={rms:.4f}, clipping={clipping:.3%})"
    )

    return float(np.clip(quality, 0.0, 1.0))
