"""
Unit tests for the enrichment orchestrator.
"""

import threading
from dataclasses import replace

import pytest
import numpy as np
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core import (
    AssessmentMode, AudioFeatureSet, CapturedMedia, DegradationCode, DirectionOfChange,
    FeatureExtractionError, InsufficientDataError, Modality, ModalityAvailability, RiskLevel,
    TextAnalysisResult, TimestampedFrame, VisualFeatureSet
)
from enrichment import EnrichmentOrchestrator
from text_analysis import OfflineTextAnalyzer
from utils.result_store import ResultStore, SQLiteResultStore

AUDIO_FEATURES = AudioFeatureSet(
    mean_pitch=165.0, pitch_variability=0.0, speaking_rate=150.0, pause_frequency=5.0,
    pause_duration=0.5, voice_energy=1.0, jitter=0.0, shimmer=0.0, harmonic_ratio=1.0,
    quality=0.8
)

VISUAL_FEATURES = VisualFeatureSet(
    smile_frequency=1.0, smile_intensity=1.0, eye_contact=1.0, eyebrow_position=0.4,
    facial_tension=0.0, blink_rate=17.0, head_movement=0.5, affect=1.0,
    face_presence_quality=1.0, overall_quality=0.9
)

TEXT_RESULT = TextAnalysisResult(
    themes=('sleep',), keywords=('rested',), risk_level=RiskLevel.NONE,
    direction_of_change=DirectionOfChange.BETTER, text_score=80.0, uncertainty=0.2,
    mood_score=8
)

TRANSCRIPT = "User: I slept well this week and feel much more rested than before."


class FakeExtractor:
    """Returns a fixed feature set, or raises."""

    def __init__(self, result=None, error=None, barrier=None):
        self.result = result
        self.error = error
        self.barrier = barrier
        self.calls = 0

    def extract(self, media):
        self.calls += 1
        if self.barrier is not None:
            self.barrier.wait()
        if self.error is not None:
            raise self.error
        return self.result


class FakeTextAnalyzer:
    def __init__(self, result=TEXT_RESULT, error=None):
        self.result = result
        self.error = error

    def analyze(self, transcript, context=None):
        if self.error is not None:
            raise self.error
        return self.result


class MemoryStore(ResultStore):
    def __init__(self):
        self.records = []

    def save(self, record):
        self.records.append(record)


class BrokenStore(ResultStore):
    def save(self, record):
        raise OSError("disk full")


def full_media():
    frame = TimestampedFrame(timestamp=0.0, image=np.zeros((4, 4, 3), dtype=np.uint8))
    return CapturedMedia(audio=b"RIFF....", frames=(frame,), duration=30.0)


def orchestrator(audio=None, visual=None, text=None, store=None):
    return EnrichmentOrchestrator(
        audio_extractor=audio or FakeExtractor(AUDIO_FEATURES),
        visual_extractor=visual or FakeExtractor(VISUAL_FEATURES),
        text_analyzer=text or FakeTextAnalyzer(),
        result_store=store
    )


def codes(result):
    return [w.code for w in result.warnings]


class TestBaselineEnrichment:
    """Clinical-anchored assessments."""

    def test_all_modalities(self):
        result = orchestrator().enrich_baseline(82.0, full_media(), assessment_id='a-1')

        # audio 80 (ideal x 0.8 quality), visual 90 (ideal x 0.9 quality)
        assert result.assessment_id == 'a-1'
        assert result.mode == AssessmentMode.BASELINE
        assert result.final_score == 83
        assert result.anchor_score == 82
        assert result.confidence == pytest.approx(0.72)
        assert result.warnings == ()

    def test_sparse_face_presence_lowers_confidence(self):
        sparse = replace(VISUAL_FEATURES, face_presence_quality=0.5)
        result = orchestrator(visual=FakeExtractor(sparse)).enrich_baseline(82.0, full_media())

        assert result.final_score == 83
        assert result.confidence == pytest.approx(0.36)

    @pytest.mark.parametrize("clinical_score", [float('nan'), -1.0, 100.5, None])
    def test_invalid_clinical_score_fails(self, clinical_score):
        with pytest.raises(InsufficientDataError):
            orchestrator().enrich_baseline(clinical_score, full_media())

    def test_no_media_passes_clinical_through(self):
        audio = FakeExtractor(AUDIO_FEATURES)
        result = orchestrator(audio=audio).enrich_baseline(67.0)

        assert result.final_score == 67
        assert result.confidence <= 0.5
        assert audio.calls == 0
        assert codes(result)[:2] == [DegradationCode.NO_AUDIO, DegradationCode.NO_VIDEO]
        assert DegradationCode.MULTIMODAL_UNAVAILABLE in codes(result)

    def test_failed_extractor_is_isolated(self):
        visual = FakeExtractor(error=FeatureExtractionError("decoder crashed", modality=Modality.VISUAL))
        result = orchestrator(visual=visual).enrich_baseline(70.0, full_media())

        assert result.breakdown.weight_of(Modality.AUDIO) == pytest.approx(0.3)
        assert result.visual_features is None
        warning = result.warnings[0]
        assert warning.code == DegradationCode.VISUAL_FAILED
        assert warning.retryable is True

    def test_unexpected_exception_is_isolated(self):
        audio = FakeExtractor(error=RuntimeError("segfault in codec"))
        result = orchestrator(audio=audio).enrich_baseline(70.0, full_media())

        assert DegradationCode.AUDIO_FAILED in codes(result)
        assert result.breakdown.weight_of(Modality.VISUAL) == pytest.approx(0.3)

    def test_unusable_features_warn(self):
        nan_audio = AudioFeatureSet(*([float('nan')] * 9), quality=0.8)
        result = orchestrator(audio=FakeExtractor(nan_audio)).enrich_baseline(70.0, full_media())

        assert DegradationCode.AUDIO_INVALID in codes(result)
        assert result.breakdown.weight_of(Modality.AUDIO) == 0.0


class TestCheckinEnrichment:
    """Text-anchored assessments."""

    def test_all_modalities(self):
        result = orchestrator().enrich_checkin(TRANSCRIPT, full_media())

        assert result.mode == AssessmentMode.CHECKIN
        assert result.breakdown.availability == ModalityAvailability.ALL_PRESENT
        assert result.final_score == 82
        assert result.text_analysis == TEXT_RESULT

    def test_visual_failure_uses_decision_table(self):
        visual = FakeExtractor(error=InsufficientDataError("No face detected", modality=Modality.VISUAL))
        result = orchestrator(visual=visual).enrich_checkin(TRANSCRIPT, full_media())

        assert result.breakdown.availability == ModalityAvailability.VISUAL_MISSING
        assert result.breakdown.weight_of(Modality.TEXT) == pytest.approx(0.8)
        assert codes(result)[0] == DegradationCode.NO_VIDEO

    def test_short_transcript_never_fails(self):
        result = orchestrator(text=OfflineTextAnalyzer()).enrich_checkin("fine", CapturedMedia())

        assert result.text_analysis.text_score == 50.0
        assert result.text_analysis.uncertainty == 0.9
        assert result.final_score == 50
        assert DegradationCode.TEXT_DEGRADED in codes(result)

    def test_raising_text_analyzer_substitutes_neutral(self):
        text = FakeTextAnalyzer(error=RuntimeError("unexpected"))
        result = orchestrator(text=text).enrich_checkin(TRANSCRIPT, full_media())

        assert result.text_analysis.degraded is True
        assert result.text_analysis.text_score == 50.0
        assert DegradationCode.TEXT_FAILED in codes(result)

    def test_extractors_run_concurrently(self):
        """Both extractors block on one barrier; a sequential run would break it."""
        barrier = threading.Barrier(2, timeout=5)
        audio = FakeExtractor(AUDIO_FEATURES, barrier=barrier)
        visual = FakeExtractor(VISUAL_FEATURES, barrier=barrier)

        result = orchestrator(audio=audio, visual=visual).enrich_checkin(TRANSCRIPT, full_media())

        assert result.breakdown.availability == ModalityAvailability.ALL_PRESENT
        assert result.warnings == ()


class TestPersistence:
    """Result handoff to the store."""

    def test_record_is_saved(self):
        store = MemoryStore()
        result = orchestrator(store=store).enrich_checkin(TRANSCRIPT, full_media(), assessment_id='c-7')

        assert len(store.records) == 1
        record = store.records[0]
        assert record['assessment_id'] == 'c-7'
        assert record['assessment_type'] == 'checkin'
        assert record['final_score'] == result.final_score
        assert record['text_analysis']['risk_level'] == 'none'
        assert record['mood_score'] == 8
        assert record['text_analysis']['mood_score'] == 8
        assert len(record['scoring_breakdown']['contributions']) == 3

    def test_store_failure_becomes_warning(self):
        result = orchestrator(store=BrokenStore()).enrich_baseline(70.0, full_media())

        assert result.final_score == 75
        assert result.warnings[-1].code == DegradationCode.PERSISTENCE_FAILED
        assert result.warnings[-1].retryable is True

    def test_sqlite_round_trip(self, tmp_path):
        store = SQLiteResultStore(tmp_path / "results" / "assessments.db")
        result = orchestrator(store=store).enrich_baseline(70.0, full_media(), assessment_id='b-1')

        stored = store.get('b-1')
        assert stored == result.to_record()
        assert store.list_results()[0]['final_score'] == result.final_score
        assert store.get('missing') is None
