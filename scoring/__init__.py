"""
Modality scoring module.

Normalizes extracted feature sets to 0-100 modality scores:
1. Audio score: ideal-value curves over the ten acoustic features
2. Visual score: ideal-value curves over the facial features

All scores are:
- Bounded (every sub-score clamped to 0-100)
- Explainable (sub-scores available per feature)
- Quality-weighted (mean sub-score x data quality factor)
"""

from .curves import DEFAULT_AUDIO_CURVES, DEFAULT_VISUAL_CURVES, ideal_value_score
from .facial_score import compute_visual_sub_scores, score_visual_features
from .vocal_score import compute_audio_sub_scores, score_audio_features

__all__ = [
    'ideal_value_score',
    'DEFAULT_AUDIO_CURVES',
    'DEFAULT_VISUAL_CURVES',
    'compute_audio_sub_scores',
    'score_audio_features',
    'compute_visual_sub_scores',
    'score_visual_features',
]
