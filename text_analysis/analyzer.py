"""
Text-analysis collaborator boundary and degradation policy.

A check-in is anchored on what the user said, so text analysis must always
produce a result. TextAnalyzer.analyze() therefore never raises for the
expected failure modes:
- Transcript too short to analyze
- Backend unavailable / failing after its bounded attempts
- Response that is not a usable JSON object

Each of these yields the neutral result (score 50, uncertainty 0.9), which
fusion then down-weights through the confidence product.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from core.data_models import TextAnalysisContext, TextAnalysisResult
from core.enums import DirectionOfChange, Modality, RiskLevel
from core.errors import ExternalServiceError
from core.numeric import is_finite

logger = logging.getLogger(__name__)

SHORT_TRANSCRIPT_SUMMARY = (
    "There was not enough information in this check in to understand how the user is feeling."
)
UNAVAILABLE_SUMMARY = "Text analysis was not available for this check in."
UNPARSABLE_SUMMARY = "Text analysis output was not usable for this check in."
DEFAULT_SUMMARY = "Check-in completed."


class TextAnalyzer(ABC):
    """
    Base class for text analyzers.

    Subclasses implement `_request`, returning the raw response dict; this
    class owns validation, sanitization and degradation.
    """

    def __init__(self, config: Dict = None):
        config = config or {}
        self.min_transcript_length = config.get('text', {}).get('min_transcript_length', 10)

    def analyze(
        self,
        transcript: str,
        context: Optional[TextAnalysisContext] = None
    ) -> TextAnalysisResult:
        """
        Analyze a check-in transcript.

        Args:
            transcript: Conversation transcript
            context: Light prior context (previous themes, score, direction)

        Returns:
            TextAnalysisResult (neutral and `degraded` when analysis was not possible)
        """
        context = context or TextAnalysisContext()

        if not transcript or len(transcript.strip()) < self.min_transcript_length:
            logger.warning(f"Transcript too short for check-in {context.checkin_id}, using neutral result")
            return TextAnalysisResult.neutral(SHORT_TRANSCRIPT_SUMMARY)

        try:
            raw = self._request(transcript.strip(), context)
        except ExternalServiceError as e:
            logger.error(f"Text analysis unavailable for check-in {context.checkin_id}: {e}")
            return TextAnalysisResult.neutral(UNAVAILABLE_SUMMARY)

        if not isinstance(raw, dict):
            logger.error(f"Text analysis returned {type(raw).__name__}, expected a JSON object")
            return TextAnalysisResult.neutral(UNPARSABLE_SUMMARY)

        result = sanitize_response(raw)
        logger.info(
            f"Text analysis: score={result.text_score:.0f}, uncertainty={result.uncertainty:.2f}, "
            f"risk={result.risk_level.value}, direction={result.direction_of_change.value}"
        )
        return result

    @abstractmethod
    def _request(self, transcript: str, context: TextAnalysisContext) -> Dict[str, Any]:
        """
        Obtain the raw analysis for a transcript.

        Raises:
            ExternalServiceError: When the backend cannot produce a response
        """
        pass


class OfflineTextAnalyzer(TextAnalyzer):
    """Analyzer used when no text backend is configured; always degrades."""

    def _request(self, transcript: str, context: TextAnalysisContext) -> Dict[str, Any]:
        raise ExternalServiceError("No text analysis backend configured", modality=Modality.TEXT)


def sanitize_response(raw: Dict[str, Any]) -> TextAnalysisResult:
    """
    Validate a raw analysis dict into a TextAnalysisResult.

    - Invalid uncertainty (non-numeric or outside [0, 1]) -> 0.5
    - Invalid text_score (non-numeric or outside [0, 100]) -> 50, with
      uncertainty raised to at least 0.6
    - Unknown risk / direction -> "none" / "unclear"
    - mood_score kept only when it is a whole number from 1 to 10, else None
    - Missing or malformed lists -> empty
    """
    uncertainty = _as_float(raw.get('uncertainty'))
    if uncertainty is None or not 0.0 <= uncertainty <= 1.0:
        logger.warning("Invalid uncertainty in text analysis, defaulting to 0.5")
        uncertainty = 0.5

    text_score = _as_float(raw.get('text_score'))
    if text_score is None or not 0.0 <= text_score <= 100.0:
        logger.warning("Invalid text_score in text analysis, defaulting to 50")
        text_score = 50.0
        uncertainty = max(uncertainty, 0.6)

    return TextAnalysisResult(
        themes=_string_list(raw.get('themes')),
        keywords=_string_list(raw.get('keywords')),
        risk_level=_enum_value(RiskLevel, raw.get('risk_level'), RiskLevel.NONE),
        direction_of_change=_enum_value(
            DirectionOfChange, raw.get('direction_of_change'), DirectionOfChange.UNCLEAR
        ),
        text_score=text_score,
        uncertainty=uncertainty,
        drivers_positive=_string_list(raw.get('drivers_positive')),
        drivers_negative=_string_list(raw.get('drivers_negative')),
        summary=str(raw.get('conversation_summary') or DEFAULT_SUMMARY),
        notable_quotes=_string_list(raw.get('notable_quotes')),
        mood_score=_mood_score(raw.get('mood_score')),
        version=str(raw.get('version') or "v1.0")
    )


def _as_float(value) -> Optional[float]:
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    return float(value) if is_finite(value) else None


def _mood_score(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    score = _as_float(value)
    if score is None or score != int(score) or not 1 <= score <= 10:
        return None
    return int(score)


def _string_list(value) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item) for item in value if item is not None)


def _enum_value(enum_cls, value, default):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return default
