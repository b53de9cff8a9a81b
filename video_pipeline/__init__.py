"""
Video processing pipeline for facial wellbeing markers.

Components:
1. FaceAnalyzer collaborators (MediaPipe local, Gemini remote)
2. Temporal aggregation of per-frame observations
3. VisualFeatureExtractor driving both
"""

from .extractor import VisualFeatureExtractor
from .face_analyzer import FaceAnalyzer, MediaPipeFaceAnalyzer
from .gemini_face import GeminiFaceAnalyzer
from .temporal_agg import TemporalAggregator

__all__ = [
    'VisualFeatureExtractor',
    'FaceAnalyzer',
    'MediaPipeFaceAnalyzer',
    'GeminiFaceAnalyzer',
    'TemporalAggregator',
]
