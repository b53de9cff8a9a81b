"""
Core data models for the wellbeing scoring engine.

Every record here is an immutable value: extractors build them once and hand
them on, so concurrent stages never share mutable state.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from .enums import (
    AssessmentMode, DegradationCode, DirectionOfChange, Modality,
    ModalityAvailability, RiskLevel
)
from .numeric import round_score


# ============================================================================
# Captured media (ephemeral)
# ============================================================================

@dataclass(frozen=True, eq=False)
class TimestampedFrame:
    """A still frame and the time it was captured (seconds from start)."""
    timestamp: float
    image: Union[np.ndarray, bytes]  # RGB array or encoded JPEG/PNG bytes


@dataclass(frozen=True, eq=False)
class CapturedMedia:
    """
    Media handed over by the capture collaborator for one assessment.

    Attributes:
        audio: Encoded audio bytes (WAV/FLAC/OGG) or decoded mono samples
        sample_rate: Sample rate of decoded samples (ignored for bytes)
        frames: Ordered still frames
        duration: Total capture duration in seconds
        start_time: Capture start (epoch seconds)
        end_time: Capture end (epoch seconds)
    """
    audio: Optional[Union[bytes, np.ndarray]] = None
    sample_rate: Optional[int] = None
    frames: Tuple[TimestampedFrame, ...] = ()
    duration: float = 0.0
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def has_audio(self) -> bool:
        return self.audio is not None and len(self.audio) > 0

    @property
    def has_frames(self) -> bool:
        return len(self.frames) > 0


# ============================================================================
# Feature sets
# ============================================================================

@dataclass(frozen=True)
class AudioFeatureSet:
    """
    Acoustic features for one recording.

    Attributes:
        mean_pitch: Mean fundamental frequency (Hz)
        pitch_variability: Population std-dev of per-frame pitch (Hz)
        speaking_rate: Estimated words per minute (80-200)
        pause_frequency: Pauses per minute
        pause_duration: Mean pause length (seconds)
        voice_energy: Scaled RMS amplitude (0-1)
        jitter: Pitch-instability proxy (0-1)
        shimmer: Amplitude-instability proxy (0-1)
        harmonic_ratio: Periodic-energy proxy (0-1)
        quality: Data sufficiency factor (0-1)
    """
    mean_pitch: float
    pitch_variability: float
    speaking_rate: float
    pause_frequency: float
    pause_duration: float
    voice_energy: float
    jitter: float
    shimmer: float
    harmonic_ratio: float
    quality: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class VisualFeatureSet:
    """
    Facial/behavioral features aggregated over a sparse frame sequence.

    The first ten fields are the scored features; the remainder are
    supporting aggregates kept for audit.
    """
    smile_frequency: float
    smile_intensity: float
    eye_contact: float
    eyebrow_position: float
    facial_tension: float
    blink_rate: float  # blinks per minute
    head_movement: float  # 0-1, normalized frame-to-frame pose change
    affect: float  # -1 to 1
    face_presence_quality: float
    overall_quality: float
    eyebrow_raise: float = 0.0
    eyebrow_furrow: float = 0.0
    gaze_stability: float = 0.0
    emotional_arousal: float = 0.0
    emotional_stability: float = 0.0
    frames_analyzed: int = 0
    frames_total: int = 0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class FaceObservation:
    """
    One detected face as reported by a facial-analysis collaborator.

    Confidences and image-quality values are normalized to [0, 1];
    pose angles are degrees.
    """
    detection_confidence: float
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0
    bounding_box: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)  # left, top, width, height
    emotions: Dict[str, float] = field(default_factory=dict)
    smiling: bool = False
    smile_confidence: float = 0.0
    eyes_open: bool = True
    eyes_open_confidence: float = 0.0
    mouth_open: bool = False
    mouth_open_confidence: float = 0.0
    brightness: float = 0.5
    sharpness: float = 0.5

    def emotion(self, name: str) -> float:
        return float(self.emotions.get(name, 0.0))


# ============================================================================
# Text analysis
# ============================================================================

@dataclass(frozen=True)
class TextAnalysisContext:
    """Light prior context passed to the text-analysis collaborator."""
    checkin_id: str = "unknown"
    first_name: Optional[str] = None
    previous_themes: Tuple[str, ...] = ()
    previous_score: Optional[float] = None
    previous_direction: Optional[DirectionOfChange] = None


@dataclass(frozen=True)
class TextAnalysisResult:
    """Structured analysis of a check-in conversation."""
    themes: Tuple[str, ...]
    keywords: Tuple[str, ...]
    risk_level: RiskLevel
    direction_of_change: DirectionOfChange
    text_score: float
    uncertainty: float
    drivers_positive: Tuple[str, ...] = ()
    drivers_negative: Tuple[str, ...] = ()
    summary: str = ""
    notable_quotes: Tuple[str, ...] = ()
    mood_score: Optional[int] = None  # explicit 1-10 self-rating, when the user gave one
    version: str = "v1.0"
    degraded: bool = False

    @property
    def confidence(self) -> float:
        return 1.0 - self.uncertainty

    @classmethod
    def neutral(cls, summary: str) -> 'TextAnalysisResult':
        """Neutral, high-uncertainty result used whenever analysis is unavailable."""
        return cls(
            themes=(),
            keywords=(),
            risk_level=RiskLevel.NONE,
            direction_of_change=DirectionOfChange.UNCLEAR,
            text_score=50.0,
            uncertainty=0.9,
            summary=summary,
            degraded=True
        )

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['risk_level'] = self.risk_level.value
        data['direction_of_change'] = self.direction_of_change.value
        for key in ('themes', 'keywords', 'drivers_positive', 'drivers_negative', 'notable_quotes'):
            data[key] = list(data[key])
        return data


# ============================================================================
# Scoring
# ============================================================================

@dataclass(frozen=True)
class PersonalBaseline:
    """Read-only historical context: the user's own baseline features."""
    audio: Optional[AudioFeatureSet] = None
    visual: Optional[VisualFeatureSet] = None


@dataclass(frozen=True)
class ModalityScore:
    """A modality normalized to 0-100 with its quality factor."""
    modality: Modality
    score: float
    confidence: float


@dataclass(frozen=True)
class ModalityContribution:
    """One modality's share of a fused score."""
    modality: Modality
    score: Optional[float]
    weight: float
    confidence: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            'modality': self.modality.value,
            'score': round_score(self.score) if self.score is not None else None,
            'weight': round(self.weight, 4),
            'confidence': round(self.confidence, 4),
        }


@dataclass(frozen=True)
class FusionDegradedWarning:
    """
    Informational degradation record.

    Never raised; collected into a result's warnings for later audit.
    """
    code: DegradationCode
    message: str
    modality: Optional[Modality] = None
    retryable: bool = False

    def __str__(self) -> str:
        return self.message

    def as_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code.value,
            'message': self.message,
            'modality': self.modality.value if self.modality else None,
            'retryable': self.retryable,
        }


@dataclass(frozen=True)
class ScoringBreakdown:
    """
    Output of one fusion.

    Attributes:
        mode: Baseline (clinical anchor) or check-in (text anchor)
        anchor_score: Anchor score before fusion (0-100)
        contributions: Per-modality score, weight and confidence
        raw_score: Blended score before flooring and rounding
        final_score: Persisted integer score (0-100)
        confidence: Confidence in the final score (0-1)
        sanity_floor_applied: True if the check-in floor raised the score
        availability: Which secondaries survived (check-in only)
        warnings: Degradations encountered while fusing
    """
    mode: AssessmentMode
    anchor_score: float
    contributions: Tuple[ModalityContribution, ...]
    raw_score: float
    final_score: int
    confidence: float
    sanity_floor_applied: bool = False
    availability: Optional[ModalityAvailability] = None
    warnings: Tuple[FusionDegradedWarning, ...] = ()

    def contribution(self, modality: Modality) -> Optional[ModalityContribution]:
        for item in self.contributions:
            if item.modality == modality:
                return item
        return None

    def weight_of(self, modality: Modality) -> float:
        item = self.contribution(modality)
        return item.weight if item is not None else 0.0

    def score_of(self, modality: Modality) -> Optional[float]:
        item = self.contribution(modality)
        return item.score if item is not None else None

    @property
    def total_weight(self) -> float:
        return sum(item.weight for item in self.contributions)

    @property
    def multimodal_weight(self) -> float:
        return self.weight_of(Modality.AUDIO) + self.weight_of(Modality.VISUAL)

    @property
    def multimodal_score(self) -> Optional[float]:
        """Weighted mean of the surviving audio/visual scores."""
        weight = self.multimodal_weight
        if weight <= 0:
            return None
        total = 0.0
        for modality in (Modality.AUDIO, Modality.VISUAL):
            item = self.contribution(modality)
            if item is not None and item.weight > 0:
                total += item.score * item.weight
        return total / weight

    def as_dict(self) -> Dict[str, Any]:
        multimodal = self.multimodal_score
        return {
            'mode': self.mode.value,
            'anchor_score': round_score(self.anchor_score),
            'contributions': [item.as_dict() for item in self.contributions],
            'multimodal_score': round_score(multimodal) if multimodal is not None else None,
            'multimodal_weight': round(self.multimodal_weight, 4),
            'final_score': self.final_score,
            'confidence': round(self.confidence, 4),
            'sanity_floor_applied': self.sanity_floor_applied,
            'availability': self.availability.value if self.availability else None,
            'warnings': [w.as_dict() for w in self.warnings],
        }


@dataclass(frozen=True)
class EnrichmentResult:
    """Immutable result of one assessment, ready for the persistence collaborator."""
    assessment_id: str
    mode: AssessmentMode
    breakdown: ScoringBreakdown
    audio_features: Optional[AudioFeatureSet] = None
    visual_features: Optional[VisualFeatureSet] = None
    text_analysis: Optional[TextAnalysisResult] = None
    warnings: Tuple[FusionDegradedWarning, ...] = ()
    processing_ms: float = 0.0
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def anchor_score(self) -> int:
        return round_score(self.breakdown.anchor_score)

    @property
    def final_score(self) -> int:
        return self.breakdown.final_score

    @property
    def confidence(self) -> float:
        return self.breakdown.confidence

    def modality_score(self, modality: Modality) -> Optional[ModalityContribution]:
        return self.breakdown.contribution(modality)

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the persistence-ready record."""
        return {
            'assessment_id': self.assessment_id,
            'assessment_type': self.mode.value,
            'created_at': self.created_at,
            'anchor_score': self.anchor_score,
            'final_score': self.final_score,
            'confidence': round(self.confidence, 4),
            'scoring_breakdown': self.breakdown.as_dict(),
            'audio_features': self.audio_features.as_dict() if self.audio_features else None,
            'visual_features': self.visual_features.as_dict() if self.visual_features else None,
            'text_analysis': self.text_analysis.as_dict() if self.text_analysis else None,
            'mood_score': self.text_analysis.mood_score if self.text_analysis else None,
            'warnings': [w.as_dict() for w in self.warnings],
            'processing_ms': round(self.processing_ms, 1),
        }
