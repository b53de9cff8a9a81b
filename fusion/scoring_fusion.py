"""
Anchor-based scoring fusion.

Fusion strategy:
- Anchored: one modality (clinical answers for a baseline, conversation
  text for a check-in) carries most of the weight
- Graceful: an invalid or missing secondary gets weight 0 and its share is
  redistributed; fusion never fails because a secondary failed
- Explainable: every contribution (score, weight, confidence) is kept in
  the ScoringBreakdown

Decision rules (check-in):
1. Weights from the decision table in weighting.py
2. Sanity floor: a clearly positive, risk-free anchor with trustworthy
   secondaries (mean confidence >= 0.6) cannot end below 60

Confidence:
- Product of contributing quality factors (text: 1 - uncertainty)
- x0.9 when the anchor is extreme (<20 or >95) or risk language is present
- Capped at 0.5 for a baseline with no usable secondary

All arithmetic stays in floating point until the final round-half-up, so
identical inputs always give identical scores.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from core.data_models import (
    FusionDegradedWarning, ModalityContribution, ModalityScore, ScoringBreakdown,
    TextAnalysisResult
)
from core.enums import (
    AssessmentMode, DegradationCode, Modality, ModalityAvailability, RiskLevel
)
from core.errors import InsufficientDataError
from core.numeric import clamp, is_finite, round_score
from .weighting import WeightingRule, baseline_weights, build_checkin_table

logger = logging.getLogger(__name__)


def apply_sanity_floor(
    score: int,
    text_score: float,
    risk_level: RiskLevel,
    secondary_confidences: Sequence[float],
    text_threshold: float = 75.0,
    min_secondary_confidence: float = 0.6,
    floor: int = 60
) -> Tuple[int, bool]:
    """
    Raise a rounded check-in score to `floor` when the anchor is clearly positive.

    Conditions: text score >= threshold, no risk language, and the mean
    confidence of the present secondaries is at least the minimum. With no
    secondary present the floor never applies. The floor only raises.

    Returns:
        Tuple of (score, floor_applied)
    """
    if not secondary_confidences:
        return score, False

    mean_confidence = sum(secondary_confidences) / len(secondary_confidences)
    eligible = (
        text_score >= text_threshold and
        risk_level == RiskLevel.NONE and
        mean_confidence >= min_secondary_confidence
    )

    if eligible and score < floor:
        return floor, True
    return score, False


class ScoringFusionEngine:
    """
    Fuse an anchor score with optional audio/visual modality scores.

    Usage:
        engine = ScoringFusionEngine(config)
        breakdown = engine.fuse_baseline(clinical_score, audio_score, visual_score)
        breakdown = engine.fuse_checkin(text_result, audio_score, visual_score)
    """

    def __init__(self, config: Dict = None):
        """
        Initialize fusion engine.

        Args:
            config: Configuration dict with a `fusion` section
        """
        config = config or {}
        fusion_config = config.get('fusion', {})
        floor_config = fusion_config.get('sanity_floor', {})
        confidence_config = fusion_config.get('confidence', {})

        self.clinical_weight = fusion_config.get('clinical_weight', 0.7)
        self.checkin_table = build_checkin_table(fusion_config.get('checkin_weights'))

        self.floor_enabled = floor_config.get('enabled', True)
        self.floor_text_threshold = floor_config.get('text_threshold', 75.0)
        self.floor_min_confidence = floor_config.get('min_secondary_confidence', 0.6)
        self.floor_value = floor_config.get('floor', 60)

        self.extreme_low = confidence_config.get('extreme_low', 20.0)
        self.extreme_high = confidence_config.get('extreme_high', 95.0)
        self.extreme_penalty = confidence_config.get('extreme_penalty', 0.9)
        self.fallback_cap = confidence_config.get('anchor_only_cap', 0.5)

        logger.info(
            f"Fusion engine initialized: clinical_weight={self.clinical_weight}, "
            f"sanity_floor={'on' if self.floor_enabled else 'off'} "
            f"(text>={self.floor_text_threshold}, floor={self.floor_value})"
        )

    # ------------------------------------------------------------------
    # Baseline
    # ------------------------------------------------------------------

    def fuse_baseline(
        self,
        clinical_score: float,
        audio: Optional[ModalityScore],
        visual: Optional[ModalityScore],
        face_presence: Optional[float] = None
    ) -> ScoringBreakdown:
        """
        Clinical-anchored fusion.

        `face_presence` (share of sampled frames with a usable face) is an
        extra confidence factor whenever the visual score contributes.

        Raises:
            InsufficientDataError: If the clinical score is not a finite number
        """
        if not is_finite(clinical_score):
            raise InsufficientDataError(
                f"Clinical score is not a finite number: {clinical_score!r}",
                modality=Modality.CLINICAL
            )
        clinical = clamp(float(clinical_score), 0.0, 100.0)

        warnings: List[FusionDegradedWarning] = []
        audio = self._validated(audio, Modality.AUDIO, warnings, require_confidence=False)
        visual = self._validated(visual, Modality.VISUAL, warnings, require_confidence=False)

        rule = baseline_weights(audio is not None, visual is not None, self.clinical_weight)
        raw = self._blend(clinical, audio, visual, rule)

        if rule.multimodal == 0:
            # Anchor-only: the clinical score passes through unchanged
            raw = clinical
            warnings.append(FusionDegradedWarning(
                code=DegradationCode.MULTIMODAL_UNAVAILABLE,
                message="No valid audio or visual score; final score equals the clinical score"
            ))

        factors = [m.confidence for m in (audio, visual) if m is not None]
        if visual is not None and is_finite(face_presence):
            factors.append(clamp(float(face_presence)))
        confidence = self._confidence(clinical, factors, risk_present=False)
        if rule.multimodal == 0:
            confidence = min(confidence, self.fallback_cap)

        final_score = round_score(raw)
        logger.info(
            f"Baseline fusion: clinical={clinical:.1f}, audio={_fmt(audio)}, visual={_fmt(visual)} "
            f"-> raw={raw:.2f}, final={final_score}, confidence={confidence:.2f}"
        )

        return ScoringBreakdown(
            mode=AssessmentMode.BASELINE,
            anchor_score=clinical,
            contributions=self._contributions(Modality.CLINICAL, clinical, 1.0, audio, visual, rule),
            raw_score=raw,
            final_score=final_score,
            confidence=confidence,
            warnings=tuple(warnings)
        )

    # ------------------------------------------------------------------
    # Check-in
    # ------------------------------------------------------------------

    def fuse_checkin(
        self,
        text: TextAnalysisResult,
        audio: Optional[ModalityScore],
        visual: Optional[ModalityScore]
    ) -> ScoringBreakdown:
        """Text-anchored fusion with the decision table and sanity floor."""
        warnings: List[FusionDegradedWarning] = []

        anchor = clamp(float(text.text_score), 0.0, 100.0) if is_finite(text.text_score) else 50.0
        text_confidence = clamp(1.0 - text.uncertainty) if is_finite(text.uncertainty) else 0.1

        if text.degraded:
            warnings.append(FusionDegradedWarning(
                code=DegradationCode.TEXT_DEGRADED,
                message=f"Text analysis degraded to neutral result: {text.summary}",
                modality=Modality.TEXT
            ))

        audio = self._validated(audio, Modality.AUDIO, warnings, require_confidence=True)
        visual = self._validated(visual, Modality.VISUAL, warnings, require_confidence=True)

        availability = ModalityAvailability.from_flags(audio is not None, visual is not None)
        rule = self.checkin_table[availability]
        raw = self._blend(anchor, audio, visual, rule)

        if availability == ModalityAvailability.TEXT_ONLY:
            warnings.append(FusionDegradedWarning(
                code=DegradationCode.MULTIMODAL_UNAVAILABLE,
                message="Using text-only score; no audio or visual data available"
            ))

        secondary_confidences = [m.confidence for m in (audio, visual) if m is not None]
        final_score = round_score(raw)
        floor_applied = False

        if self.floor_enabled:
            final_score, floor_applied = apply_sanity_floor(
                final_score,
                anchor,
                text.risk_level,
                secondary_confidences,
                text_threshold=self.floor_text_threshold,
                min_secondary_confidence=self.floor_min_confidence,
                floor=self.floor_value
            )
        if floor_applied:
            logger.info(f"Sanity floor applied: raw {raw:.2f} -> {final_score}")
            warnings.append(FusionDegradedWarning(
                code=DegradationCode.SANITY_FLOOR_APPLIED,
                message=f"Sanity floor applied; text analysis indicates a positive state (raw {raw:.1f})"
            ))

        confidence = self._confidence(
            anchor,
            [text_confidence] + secondary_confidences,
            risk_present=text.risk_level != RiskLevel.NONE
        )

        logger.info(
            f"Check-in fusion ({availability.value}): text={anchor:.1f}, audio={_fmt(audio)}, "
            f"visual={_fmt(visual)} -> raw={raw:.2f}, final={final_score}, confidence={confidence:.2f}"
        )

        return ScoringBreakdown(
            mode=AssessmentMode.CHECKIN,
            anchor_score=anchor,
            contributions=self._contributions(Modality.TEXT, anchor, text_confidence, audio, visual, rule),
            raw_score=raw,
            final_score=final_score,
            confidence=confidence,
            sanity_floor_applied=floor_applied,
            availability=availability,
            warnings=tuple(warnings)
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validated(
        self,
        score: Optional[ModalityScore],
        modality: Modality,
        warnings: List[FusionDegradedWarning],
        require_confidence: bool
    ) -> Optional[ModalityScore]:
        """Return a bounded copy of a usable score, or None (with a warning if it was invalid)."""
        if score is None:
            return None

        usable = is_finite(score.score) and is_finite(score.confidence)
        if usable and require_confidence:
            usable = score.confidence > 0

        if not usable:
            code = DegradationCode.AUDIO_INVALID if modality == Modality.AUDIO else DegradationCode.VISUAL_INVALID
            logger.warning(f"{modality.value} score unusable (score={score.score}, confidence={score.confidence})")
            warnings.append(FusionDegradedWarning(
                code=code,
                message=f"{modality.value.capitalize()} score invalid; weight redistributed",
                modality=modality
            ))
            return None

        return ModalityScore(
            modality=modality,
            score=clamp(float(score.score), 0.0, 100.0),
            confidence=clamp(float(score.confidence))
        )

    @staticmethod
    def _blend(
        anchor: float,
        audio: Optional[ModalityScore],
        visual: Optional[ModalityScore],
        rule: WeightingRule
    ) -> float:
        raw = anchor * rule.anchor
        if audio is not None:
            raw += audio.score * rule.audio
        if visual is not None:
            raw += visual.score * rule.visual
        return raw

    def _confidence(self, anchor: float, factors: Sequence[float], risk_present: bool) -> float:
        confidence = 1.0
        for factor in factors:
            confidence *= factor

        if anchor < self.extreme_low or anchor > self.extreme_high or risk_present:
            confidence *= self.extreme_penalty

        return clamp(confidence)

    @staticmethod
    def _contributions(
        anchor_modality: Modality,
        anchor: float,
        anchor_confidence: float,
        audio: Optional[ModalityScore],
        visual: Optional[ModalityScore],
        rule: WeightingRule
    ) -> Tuple[ModalityContribution, ...]:
        return (
            ModalityContribution(anchor_modality, anchor, rule.anchor, anchor_confidence),
            ModalityContribution(
                Modality.AUDIO,
                audio.score if audio is not None else None,
                rule.audio,
                audio.confidence if audio is not None else 0.0
            ),
            ModalityContribution(
                Modality.VISUAL,
                visual.score if visual is not None else None,
                rule.visual,
                visual.confidence if visual is not None else 0.0
            ),
        )


def _fmt(score: Optional[ModalityScore]) -> str:
    return f"{score.score:.1f}@{score.confidence:.2f}" if score is not None else "n/a"
