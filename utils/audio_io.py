"""
Audio I/O utilities for decoding captured recordings.

Engineering decisions:
- soundfile decodes the container (WAV/FLAC/OGG) straight from memory
- librosa handles resampling so every recording is analyzed at one rate
- Multi-channel audio is mixed down to mono (spatial audio carries no
  wellbeing information)
"""

import io
import logging
from typing import Optional, Tuple

import numpy as np
import librosa
import soundfile as sf

from core.enums import Modality
from core.errors import FeatureExtractionError

logger = logging.getLogger(__name__)


def to_mono(samples: np.ndarray) -> np.ndarray:
    """
    Mix decoded samples down to a 1-D float32 signal.

    Accepts (n_samples,) or (n_samples, n_channels) arrays. Integer PCM
    (int16, int32, uint8, ...) is rescaled to [-1, 1] first.
    """
    samples = np.asarray(samples)
    if np.issubdtype(samples.dtype, np.integer):
        info = np.iinfo(samples.dtype)
        midpoint = (int(info.max) + int(info.min) + 1) // 2
        half_range = (int(info.max) - int(info.min) + 1) / 2.0
        samples = (samples.astype(np.float64) - midpoint) / half_range
    samples = samples.astype(np.float32)
    if samples.ndim == 2:
        samples = samples.mean(axis=1)
    elif samples.ndim != 1:
        raise FeatureExtractionError(
            f"Unsupported audio array shape {samples.shape}",
            modality=Modality.AUDIO
        )
    return samples


def decode_audio(
    data: bytes,
    target_sample_rate: Optional[int] = 16000
) -> Tuple[np.ndarray, int]:
    """
    Decode an in-memory recording to mono float samples.

    Args:
        data: Encoded audio bytes
        target_sample_rate: Resample to this rate (None keeps the native rate)

    Returns:
        Tuple of (audio_data, sample_rate)

    Raises:
        FeatureExtractionError: If the bytes cannot be decoded
    """
    try:
        samples, sample_rate = sf.read(io.BytesIO(data), dtype='float32', always_2d=True)
    except (RuntimeError, TypeError, ValueError) as e:
        logger.error(f"Audio decoding failed: {e}")
        raise FeatureExtractionError(f"Could not decode audio: {e}", modality=Modality.AUDIO) from e

    audio_data = to_mono(samples)
    logger.debug(f"Decoded {len(audio_data)} samples at {sample_rate}Hz")

    return resample(audio_data, sample_rate, target_sample_rate)


def resample(
    audio_data: np.ndarray,
    sample_rate: int,
    target_sample_rate: Optional[int]
) -> Tuple[np.ndarray, int]:
    """Resample with librosa when the target rate differs."""
    if not target_sample_rate or target_sample_rate == sample_rate or len(audio_data) == 0:
        return audio_data, sample_rate

    logger.debug(f"Resampling {sample_rate}Hz -> {target_sample_rate}Hz")
    audio_data = librosa.resample(audio_data, orig_sr=sample_rate, target_sr=target_sample_rate)

    return audio_data, target_sample_rate


def read_audio_file(path) -> bytes:
    """Read an encoded recording from disk as bytes."""
    with open(path, 'rb') as f:
        return f.read()
