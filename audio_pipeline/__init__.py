"""
Audio processing pipeline for wellbeing voice analysis.

This package implements the acoustic side of an assessment:
1. Decoding and resampling of the captured recording
2. Pitch tracking (autocorrelation)
3. Energy Voice Activity Detection (speaking rate, pauses)
4. Voice quality proxies (energy, jitter, shimmer, harmonic ratio)
5. Recording quality assessment
"""

from .extractor import AudioFeatureExtractor
from .prosody import PitchTrack, compute_pitch_statistics, track_pitch
from .vad import (
    SpeechSegment,
    VoiceActivity,
    compute_pause_statistics,
    detect_pauses,
    estimate_speaking_rate,
    run_voice_activity_detection,
)
from .voice_quality import (
    assess_recording_quality,
    compute_harmonic_ratio,
    compute_jitter,
    compute_shimmer,
    compute_voice_energy,
)

__all__ = [
    'AudioFeatureExtractor',
    'PitchTrack',
    'track_pitch',
    'compute_pitch_statistics',
    'SpeechSegment',
    'VoiceActivity',
    'run_voice_activity_detection',
    'estimate_speaking_rate',
    'detect_pauses',
    'compute_pause_statistics',
    'compute_voice_energy',
    'compute_jitter',
    'compute_shimmer',
    'compute_harmonic_ratio',
    'assess_recording_quality',
]
