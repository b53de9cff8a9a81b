"""
Audio feature extraction: one recording -> AudioFeatureSet.

Pipeline:
1. Decode (bytes) or validate (samples) the recording
2. Pitch tracking (prosody)
3. Voice activity detection -> speaking rate and pauses
4. Voice quality proxies and recording quality

Rates are normalized by the decoded buffer duration, not the capture
duration reported by the client.
"""

import logging
from typing import Dict, Tuple

import numpy as np

from core.data_models import AudioFeatureSet, CapturedMedia
from core.enums import Modality
from core.errors import FeatureExtractionError, InsufficientDataError
from utils.audio_io import decode_audio, resample, to_mono
from .prosody import compute_pitch_statistics, track_pitch
from .vad import compute_pause_statistics, estimate_speaking_rate, run_voice_activity_detection
from .voice_quality import (
    assess_recording_quality,
    compute_harmonic_ratio,
    compute_jitter,
    compute_shimmer,
    compute_voice_energy,
)

logger = logging.getLogger(__name__)


class AudioFeatureExtractor:
    """
    Extracts the ten acoustic features used by vocal scoring.

    Stateless between calls; one instance may serve many assessments.
    """

    def __init__(self, config: Dict = None):
        config = config or {}
        audio_config = config.get('audio', {})

        self.target_sample_rate = audio_config.get('sample_rate', 16000)
        self.pitch_config = audio_config.get('pitch', {})
        self.vad_config = audio_config.get('vad', {})
        self.pause_config = audio_config.get('pauses', {})
        self.voice_config = audio_config.get('voice', {})
        self.quality_config = audio_config.get('quality', {})

        logger.info(f"Initialized AudioFeatureExtractor (sample_rate={self.target_sample_rate})")

    def extract(self, media: CapturedMedia) -> AudioFeatureSet:
        """
        Compute features for the recording in `media`.

        Raises:
            InsufficientDataError: No audio supplied, or decoded buffer empty
            FeatureExtractionError: Decoding or signal processing failed
        """
        if not media.has_audio:
            raise InsufficientDataError("No audio supplied", modality=Modality.AUDIO)

        audio_data, sample_rate = self._load_samples(media)

        if len(audio_data) == 0:
            raise InsufficientDataError("Decoded audio buffer is empty", modality=Modality.AUDIO)
        if not np.all(np.isfinite(audio_data)):
            raise FeatureExtractionError("Audio contains non-finite samples", modality=Modality.AUDIO)

        duration = len(audio_data) / sample_rate
        logger.info(f"Extracting audio features from {duration:.1f}s recording")

        try:
            features = self._compute_features(audio_data, sample_rate, duration)
        except (ValueError, FloatingPointError, MemoryError) as e:
            logger.error(f"Audio feature computation failed: {e}")
            raise FeatureExtractionError(
                f"Audio feature computation failed: {e}", modality=Modality.AUDIO
            ) from e

        logger.info(
            f"Audio features: pitch={features.mean_pitch:.1f}Hz, "
            f"rate={features.speaking_rate:.0f}wpm, "
            f"pauses={features.pause_frequency:.1f}/min, quality={features.quality:.2f}"
        )
        return features

    def _load_samples(self, media: CapturedMedia) -> Tuple[np.ndarray, int]:
        if isinstance(media.audio, (bytes, bytearray)):
            return decode_audio(bytes(media.audio), self.target_sample_rate)

        if not media.sample_rate or media.sample_rate <= 0:
            raise FeatureExtractionError(
                "Decoded samples supplied without a sample rate", modality=Modality.AUDIO
            )

        audio_data = to_mono(media.audio)
        return resample(audio_data, int(media.sample_rate), self.target_sample_rate)

    def _compute_features(
        self,
        audio_data: np.ndarray,
        sample_rate: int,
        duration: float
    ) -> AudioFeatureSet:
        f0_min = self.pitch_config.get('f0_min', 85.0)
        f0_max = self.pitch_config.get('f0_max', 300.0)

        # Pitch
        track = track_pitch(
            audio_data,
            sample_rate,
            frame_duration=self.pitch_config.get('frame_duration', 0.03),
            f0_min=f0_min,
            f0_max=f0_max,
            voicing_threshold=self.pitch_config.get('voicing_threshold', 0.3)
        )
        mean_pitch, pitch_variability = compute_pitch_statistics(
            track, default_pitch=self.pitch_config.get('default_pitch', 150.0)
        )

        # Speech activity
        activity = run_voice_activity_detection(
            audio_data,
            sample_rate,
            frame_duration_ms=self.vad_config.get('frame_duration_ms', 20),
            hop_duration_ms=self.vad_config.get('hop_duration_ms', 10),
            threshold_percentile=self.vad_config.get('threshold_percentile', 25)
        )
        speaking_rate = estimate_speaking_rate(
            activity,
            duration,
            words_per_second=self.vad_config.get('words_per_second', 2.5),
            min_wpm=self.vad_config.get('min_wpm', 80),
            max_wpm=self.vad_config.get('max_wpm', 200)
        )
        pause_frequency, pause_duration = compute_pause_statistics(
            activity,
            duration,
            min_pause_duration=self.pause_config.get('min_duration', 0.2),
            default_pause_duration=self.pause_config.get('default_duration', 0.5)
        )

        # Voice quality proxies
        voice_energy = compute_voice_energy(audio_data, gain=self.voice_config.get('energy_gain', 10.0))
        jitter = compute_jitter(
            pitch_variability, reference_hz=self.voice_config.get('jitter_reference_hz', 50.0)
        )
        shimmer = compute_shimmer(
            audio_data,
            window_size=self.voice_config.get('shimmer_window', 1024),
            scale=self.voice_config.get('shimmer_scale', 10.0)
        )
        harmonic_ratio = compute_harmonic_ratio(
            audio_data,
            sample_rate,
            window_size=self.voice_config.get('harmonic_window', 2048),
            f0_min=f0_min,
            f0_max=f0_max
        )

        quality = assess_recording_quality(
            audio_data,
            duration,
            full_credit_duration=self.quality_config.get('full_credit_duration', 30.0),
            minimum_duration=self.quality_config.get('minimum_duration', 15.0),
            quiet_rms=self.quality_config.get('quiet_rms', 0.02),
            clipping_threshold=self.quality_config.get('clipping_threshold', 0.95),
            max_clipping_ratio=self.quality_config.get('max_clipping_ratio', 0.01)
        )

        return AudioFeatureSet(
            mean_pitch=mean_pitch,
            pitch_variability=pitch_variability,
            speaking_rate=speaking_rate,
            pause_frequency=pause_frequency,
            pause_duration=pause_duration,
            voice_energy=voice_energy,
            jitter=jitter,
            shimmer=shimmer,
            harmonic_ratio=harmonic_ratio,
            quality=quality
        )
