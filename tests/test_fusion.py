"""
Unit tests for anchor-based scoring fusion.
"""

import pytest
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core import (
    DegradationCode, DirectionOfChange, InsufficientDataError, Modality, ModalityAvailability, ModalityScore,
    RiskLevel, TextAnalysisResult
)
from fusion import (
    CHECKIN_WEIGHTS, ScoringFusionEngine, WeightingRule, apply_sanity_floor,
    baseline_weights, build_checkin_table
)


def audio(score, confidence=0.9):
    return ModalityScore(Modality.AUDIO, score, confidence)


def visual(score, confidence=0.8):
    return ModalityScore(Modality.VISUAL, score, confidence)


def text(score, uncertainty=0.2, risk=RiskLevel.NONE):
    return TextAnalysisResult(
        themes=(), keywords=(), risk_level=risk,
        direction_of_change=DirectionOfChange.SAME,
        text_score=score, uncertainty=uncertainty
    )


def codes(breakdown):
    return [w.code for w in breakdown.warnings]


@pytest.fixture
def engine():
    return ScoringFusionEngine()


class TestWeighting:
    """Test weight rules and decision tables."""

    def test_rule_must_sum_to_one(self):
        with pytest.raises(ValueError):
            WeightingRule(anchor=0.7, audio=0.2, visual=0.2)

    def test_rule_rejects_negative_weight(self):
        with pytest.raises(ValueError):
            WeightingRule(anchor=1.1, audio=-0.1, visual=0.0)

    def test_checkin_table_rows_sum_to_one(self):
        for rule in CHECKIN_WEIGHTS.values():
            assert rule.anchor + rule.multimodal == pytest.approx(1.0)

    def test_table_override(self):
        table = build_checkin_table({'all_present': {'text': 0.6, 'audio': 0.2, 'visual': 0.2}})

        assert table[ModalityAvailability.ALL_PRESENT].anchor == 0.6
        assert table[ModalityAvailability.TEXT_ONLY].anchor == 1.0

    def test_table_override_unknown_branch(self):
        with pytest.raises(ValueError):
            build_checkin_table({'video_only': {'text': 1.0}})

    def test_baseline_share_moves_to_survivor(self):
        both = baseline_weights(True, True)
        assert (both.anchor, both.audio, both.visual) == pytest.approx((0.7, 0.15, 0.15))
        assert baseline_weights(True, False).audio == pytest.approx(0.3)
        assert baseline_weights(False, True).visual == pytest.approx(0.3)
        assert baseline_weights(False, False) == WeightingRule(1.0, 0.0, 0.0)


class TestBaselineFusion:
    """Clinical-anchored fusion."""

    def test_all_modalities(self, engine):
        """Clinical 82, audio 75, visual 73 -> 79.6 -> 80."""
        breakdown = engine.fuse_baseline(82.0, audio(75.0, 0.9), visual(73.0, 0.8))

        assert breakdown.raw_score == pytest.approx(79.6)
        assert breakdown.final_score == 80
        assert breakdown.weight_of(Modality.CLINICAL) == pytest.approx(0.7)
        assert breakdown.multimodal_weight == pytest.approx(0.3)
        assert breakdown.confidence == pytest.approx(0.72)
        assert breakdown.warnings == ()

    def test_face_presence_lowers_confidence(self, engine):
        breakdown = engine.fuse_baseline(82.0, audio(75.0, 0.9), visual(73.0, 0.8), face_presence=0.5)

        assert breakdown.confidence == pytest.approx(0.36)
        assert breakdown.final_score == 80

    def test_face_presence_ignored_without_visual_score(self, engine):
        breakdown = engine.fuse_baseline(70.0, audio(60.0, 0.9), None, face_presence=0.1)
        assert breakdown.confidence == pytest.approx(0.9)

    def test_one_invalid_secondary(self, engine):
        breakdown = engine.fuse_baseline(70.0, audio(60.0), visual(float('nan')))

        assert breakdown.weight_of(Modality.AUDIO) == pytest.approx(0.3)
        assert breakdown.weight_of(Modality.VISUAL) == 0.0
        assert breakdown.raw_score == pytest.approx(0.7 * 70.0 + 0.3 * 60.0)
        assert DegradationCode.VISUAL_INVALID in codes(breakdown)

    def test_both_secondaries_unusable(self, engine):
        breakdown = engine.fuse_baseline(67.4, None, visual(float('inf')))

        assert breakdown.final_score == 67
        assert breakdown.multimodal_weight == 0.0
        assert breakdown.confidence <= 0.5
        assert codes(breakdown) == [DegradationCode.VISUAL_INVALID, DegradationCode.MULTIMODAL_UNAVAILABLE]

    def test_non_finite_clinical_score_raises(self, engine):
        with pytest.raises(InsufficientDataError):
            engine.fuse_baseline(float('nan'), audio(70.0), visual(70.0))

    def test_extreme_clinical_score_penalized(self, engine):
        breakdown = engine.fuse_baseline(10.0, audio(50.0, 1.0), visual(50.0, 1.0))
        assert breakdown.confidence == pytest.approx(0.9)

    def test_contributions_always_listed(self, engine):
        breakdown = engine.fuse_baseline(50.0, None, None)

        assert [c.modality for c in breakdown.contributions] == [
            Modality.CLINICAL, Modality.AUDIO, Modality.VISUAL
        ]
        assert breakdown.score_of(Modality.AUDIO) is None


class TestCheckinFusion:
    """Text-anchored fusion, decision table and sanity floor."""

    def test_all_present(self, engine):
        breakdown = engine.fuse_checkin(text(80.0), audio(62.0, 0.9), visual(70.0, 0.8))

        assert breakdown.availability == ModalityAvailability.ALL_PRESENT
        assert breakdown.raw_score == pytest.approx(0.7 * 80 + 0.15 * 62 + 0.15 * 70)
        assert breakdown.final_score == 76
        assert breakdown.confidence == pytest.approx(0.8 * 0.9 * 0.8)

    def test_audio_missing(self, engine):
        """Text 80, no audio, visual 70 -> 78."""
        breakdown = engine.fuse_checkin(text(80.0, uncertainty=0.2), None, visual(70.0, 0.7))

        assert breakdown.availability == ModalityAvailability.AUDIO_MISSING
        assert breakdown.weight_of(Modality.TEXT) == pytest.approx(0.8)
        assert breakdown.weight_of(Modality.VISUAL) == pytest.approx(0.2)
        assert breakdown.final_score == 78
        assert breakdown.sanity_floor_applied is False
        assert breakdown.confidence == pytest.approx(0.56)

    def test_visual_missing(self, engine):
        breakdown = engine.fuse_checkin(text(50.0), audio(100.0), None)

        assert breakdown.availability == ModalityAvailability.VISUAL_MISSING
        assert breakdown.final_score == 60

    def test_text_only_rounds_half_up(self, engine):
        breakdown = engine.fuse_checkin(text(66.5), None, None)

        assert breakdown.availability == ModalityAvailability.TEXT_ONLY
        assert breakdown.final_score == 67
        assert DegradationCode.MULTIMODAL_UNAVAILABLE in codes(breakdown)

    def test_zero_confidence_secondary_is_absent(self, engine):
        breakdown = engine.fuse_checkin(text(70.0), audio(90.0, 0.0), visual(70.0))

        assert breakdown.availability == ModalityAvailability.AUDIO_MISSING
        assert DegradationCode.AUDIO_INVALID in codes(breakdown)

    def test_degraded_text_is_reported(self, engine):
        breakdown = engine.fuse_checkin(TextAnalysisResult.neutral("unavailable"), None, None)

        assert breakdown.final_score == 50
        assert breakdown.confidence == pytest.approx(0.1)
        assert codes(breakdown)[0] == DegradationCode.TEXT_DEGRADED

    def test_sanity_floor_in_fusion(self):
        engine = ScoringFusionEngine({'fusion': {'checkin_weights': {
            'all_present': {'text': 0.3, 'audio': 0.35, 'visual': 0.35}
        }}})

        breakdown = engine.fuse_checkin(text(80.0), audio(20.0, 0.7), visual(20.0, 0.7))

        assert breakdown.raw_score == pytest.approx(38.0)
        assert breakdown.final_score == 60
        assert breakdown.sanity_floor_applied is True
        assert DegradationCode.SANITY_FLOOR_APPLIED in codes(breakdown)

    def test_sanity_floor_can_be_disabled(self):
        engine = ScoringFusionEngine({'fusion': {
            'checkin_weights': {'all_present': {'text': 0.3, 'audio': 0.35, 'visual': 0.35}},
            'sanity_floor': {'enabled': False},
        }})

        breakdown = engine.fuse_checkin(text(80.0), audio(20.0, 0.7), visual(20.0, 0.7))
        assert breakdown.final_score == 38

    def test_extreme_text_and_risk_penalized(self, engine):
        assert engine.fuse_checkin(text(97.0, 0.1), None, None).confidence == pytest.approx(0.81)
        assert engine.fuse_checkin(
            text(60.0, 0.2, risk=RiskLevel.MILD), None, None
        ).confidence == pytest.approx(0.72)

    def test_deterministic(self, engine):
        first = engine.fuse_checkin(text(73.0, 0.3), audio(61.3, 0.55), visual(88.8, 0.7))
        second = engine.fuse_checkin(text(73.0, 0.3), audio(61.3, 0.55), visual(88.8, 0.7))

        assert first == second


class TestSanityFloor:
    """The floor rule in isolation."""

    def test_positive_anchor_raises_low_score(self):
        """Text 80, no risk, secondaries 0.7/0.65, raw 45 -> 60."""
        assert apply_sanity_floor(45, 80.0, RiskLevel.NONE, [0.7, 0.65]) == (60, True)

    def test_never_lowers(self):
        assert apply_sanity_floor(85, 80.0, RiskLevel.NONE, [0.9]) == (85, False)

    def test_requires_positive_anchor(self):
        assert apply_sanity_floor(45, 74.0, RiskLevel.NONE, [0.9]) == (45, False)

    def test_requires_no_risk(self):
        assert apply_sanity_floor(45, 90.0, RiskLevel.MILD, [0.9]) == (45, False)

    def test_requires_trustworthy_secondaries(self):
        assert apply_sanity_floor(45, 90.0, RiskLevel.NONE, [0.7, 0.4]) == (45, False)

    def test_requires_a_secondary(self):
        assert apply_sanity_floor(45, 90.0, RiskLevel.NONE, []) == (45, False)
