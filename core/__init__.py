"""
Core types for the wellbeing scoring engine.

Data models, enumerations and the error taxonomy shared by the audio,
video, text, scoring, fusion and enrichment packages.
"""

from .enums import (
    AssessmentMode,
    DegradationCode,
    DirectionOfChange,
    Modality,
    ModalityAvailability,
    RiskLevel,
)
from .errors import (
    AssessmentError,
    ExternalServiceError,
    FeatureExtractionError,
    InsufficientDataError,
)
from .data_models import (
    AudioFeatureSet,
    CapturedMedia,
    EnrichmentResult,
    FaceObservation,
    FusionDegradedWarning,
    ModalityContribution,
    ModalityScore,
    PersonalBaseline,
    ScoringBreakdown,
    TextAnalysisContext,
    TextAnalysisResult,
    TimestampedFrame,
    VisualFeatureSet,
)

__all__ = [
    'AssessmentMode',
    'DegradationCode',
    'DirectionOfChange',
    'Modality',
    'ModalityAvailability',
    'RiskLevel',
    'AssessmentError',
    'ExternalServiceError',
    'FeatureExtractionError',
    'InsufficientDataError',
    'AudioFeatureSet',
    'CapturedMedia',
    'EnrichmentResult',
    'FaceObservation',
    'FusionDegradedWarning',
    'ModalityContribution',
    'ModalityScore',
    'PersonalBaseline',
    'ScoringBreakdown',
    'TextAnalysisContext',
    'TextAnalysisResult',
    'TimestampedFrame',
    'VisualFeatureSet',
]
