"""
Enumerations shared across the wellbeing scoring engine.
"""

from enum import Enum


class AssessmentMode(Enum):
    """Which anchor a fusion is built around."""
    BASELINE = "baseline"  # Clinical questionnaire anchor
    CHECKIN = "checkin"  # Conversation text anchor


class Modality(Enum):
    """Independent signal sources contributing to a fused score."""
    CLINICAL = "clinical"
    TEXT = "text"
    AUDIO = "audio"
    VISUAL = "visual"


class RiskLevel(Enum):
    """Risk language detected in a check-in transcript."""
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    HIGH = "high"


class DirectionOfChange(Enum):
    """How the user sounds compared with a usual day."""
    BETTER = "better"
    WORSE = "worse"
    SAME = "same"
    UNCLEAR = "unclear"


class ModalityAvailability(Enum):
    """Which secondary modalities survived extraction for a check-in."""
    ALL_PRESENT = "all_present"
    AUDIO_MISSING = "audio_missing"
    VISUAL_MISSING = "visual_missing"
    TEXT_ONLY = "text_only"

    @classmethod
    def from_flags(cls, has_audio: bool, has_visual: bool) -> 'ModalityAvailability':
        if has_audio and has_visual:
            return cls.ALL_PRESENT
        if has_visual:
            return cls.AUDIO_MISSING
        if has_audio:
            return cls.VISUAL_MISSING
        return cls.TEXT_ONLY


class DegradationCode(Enum):
    """Reasons recorded in a result's warnings list."""
    NO_AUDIO = "no_audio"
    AUDIO_FAILED = "audio_failed"
    AUDIO_INVALID = "audio_invalid"
    NO_VIDEO = "no_video"
    VISUAL_FAILED = "visual_failed"
    VISUAL_INVALID = "visual_invalid"
    TEXT_DEGRADED = "text_degraded"
    TEXT_FAILED = "text_failed"
    MULTIMODAL_UNAVAILABLE = "multimodal_unavailable"
    SANITY_FLOOR_APPLIED = "sanity_floor_applied"
    PERSISTENCE_FAILED = "persistence_failed"


# Emotion categories reported by facial-analysis collaborators
EMOTION_CATEGORIES = (
    'HAPPY', 'CALM', 'SAD', 'ANGRY', 'CONFUSED',
    'DISGUSTED', 'SURPRISED', 'FEAR',
)
POSITIVE_EMOTIONS = ('HAPPY', 'CALM')
NEGATIVE_EMOTIONS = ('SAD', 'ANGRY', 'DISGUSTED', 'FEAR')
HIGH_AROUSAL_EMOTIONS = ('ANGRY', 'FEAR', 'SURPRISED', 'HAPPY')
LOW_AROUSAL_EMOTIONS = ('CALM', 'SAD')
