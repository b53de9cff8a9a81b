"""
Unit tests for the video pipeline.
"""

import pytest
import numpy as np
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core import CapturedMedia, FaceObservation, TimestampedFrame
from core.errors import ExternalServiceError, FeatureExtractionError, InsufficientDataError
from video_pipeline import FaceAnalyzer, GeminiFaceAnalyzer, TemporalAggregator, VisualFeatureExtractor
from video_pipeline.face_analyzer import (
    LEFT_EYE,
    _decision_confidence,
    _wrap_half_turn,
    emotion_proxies,
    eye_aspect_ratio,
)
from video_pipeline.gemini_face import observation_from_response


class ScriptedFaceAnalyzer(FaceAnalyzer):
    """Returns (or raises) a scripted result per frame, in order."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0

    def analyze(self, frame):
        outcome = self.script[self.calls]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_media(n_frames, period=2.0):
    image = np.zeros((8, 8, 3), dtype=np.uint8)
    frames = tuple(TimestampedFrame(timestamp=i * period, image=image) for i in range(n_frames))
    return CapturedMedia(frames=frames, duration=n_frames * period)


def observation(**kwargs):
    defaults = dict(detection_confidence=0.9, brightness=0.6, sharpness=0.4)
    defaults.update(kwargs)
    return FaceObservation(**defaults)


@pytest.fixture
def scripted_observations():
    """Four frames at 2s spacing, the second without a face."""
    return [
        observation(
            smiling=True, smile_confidence=0.8, yaw=5.0, pitch=3.0,
            emotions={'HAPPY': 0.8, 'CALM': 0.2}
        ),
        None,
        observation(
            smiling=False, smile_confidence=0.1, yaw=20.0, eyes_open=False, mouth_open=True,
            emotions={'SAD': 0.5, 'CALM': 0.5}
        ),
        observation(
            smiling=True, smile_confidence=0.6,
            emotions={'HAPPY': 0.6, 'CALM': 0.4}
        ),
    ]


class TestTemporalAggregator:
    """Test aggregation of per-frame observations."""

    def test_aggregate_features(self, scripted_observations):
        features = TemporalAggregator().aggregate([0.0, 2.0, 4.0, 6.0], scripted_observations)

        assert features.frames_analyzed == 3
        assert features.frames_total == 4
        assert features.face_presence_quality == pytest.approx(0.75)
        assert features.smile_frequency == pytest.approx(2 / 3)
        assert features.smile_intensity == pytest.approx(1.4 / 3)
        assert features.eye_contact == pytest.approx(2 / 3)
        assert features.facial_tension == pytest.approx(2 / 3)
        assert features.eyebrow_position == pytest.approx(0.4)

    def test_dynamics(self, scripted_observations):
        features = TemporalAggregator().aggregate([0.0, 2.0, 4.0, 6.0], scripted_observations)

        # Pose change between consecutive face frames: 18 then 20 degrees
        assert features.head_movement == pytest.approx(19.0 / 30.0)
        # One blink over 4 frames x 2s
        assert features.blink_rate == pytest.approx(7.5)
        expected_gaze = 1.0 - (np.std([5.0, 20.0, 0.0]) + np.std([3.0, 0.0, 0.0])) / 2.0 / 30.0
        assert features.gaze_stability == pytest.approx(expected_gaze)

    def test_affect(self, scripted_observations):
        features = TemporalAggregator().aggregate([0.0, 2.0, 4.0, 6.0], scripted_observations)

        assert features.affect == pytest.approx(2 / 3)
        assert features.emotional_stability == pytest.approx(1.0 - np.std([1.0, 0.0, 1.0]))
        assert features.emotional_arousal == pytest.approx(1.4 / 3.001)

    def test_overall_quality(self, scripted_observations):
        features = TemporalAggregator().aggregate([0.0, 2.0, 4.0, 6.0], scripted_observations)

        assert features.overall_quality == pytest.approx(0.4 * 0.75 + 0.3 * 0.9 + 0.3 * 0.5)

    def test_no_faces_returns_none(self):
        assert TemporalAggregator().aggregate([0.0, 2.0], [None, None]) is None
        assert TemporalAggregator().aggregate([], []) is None

    def test_frame_period(self):
        aggregator = TemporalAggregator()

        assert aggregator.frame_period([0.0]) == 2.0
        assert aggregator.frame_period([0.0, 1.0, 2.0, 4.0]) == 1.0
        assert aggregator.frame_period([3.0, 3.0]) == 2.0

    def test_single_face_has_no_head_movement(self):
        features = TemporalAggregator().aggregate([0.0], [observation(yaw=40.0)])

        assert features.head_movement == 0.0
        assert features.eye_contact == 0.0

    def test_brow_masses_move_eyebrow_position(self):
        obs = [observation(emotions={'SURPRISED': 0.3}), observation(emotions={'ANGRY': 0.5, 'CONFUSED': 0.7})]
        features = TemporalAggregator().aggregate([0.0, 2.0], obs)

        assert features.eyebrow_raise == pytest.approx(0.15)
        assert features.eyebrow_furrow == pytest.approx(0.5)
        assert features.eyebrow_position == pytest.approx(0.05)


class TestVisualFeatureExtractor:
    """Test frame-level failure handling."""

    def test_no_frames_raises_insufficient_data(self):
        extractor = VisualFeatureExtractor(ScriptedFaceAnalyzer([]))

        with pytest.raises(InsufficientDataError):
            extractor.extract(CapturedMedia())

    def test_all_frames_failing_raises_extraction_error(self):
        analyzer = ScriptedFaceAnalyzer([RuntimeError("model crashed")] * 3)

        with pytest.raises(FeatureExtractionError):
            VisualFeatureExtractor(analyzer).extract(make_media(3))

    def test_no_face_raises_insufficient_data(self):
        analyzer = ScriptedFaceAnalyzer([None, None])

        with pytest.raises(InsufficientDataError):
            VisualFeatureExtractor(analyzer).extract(make_media(2))

    def test_single_failure_counts_as_no_face(self):
        analyzer = ScriptedFaceAnalyzer([
            observation(), ExternalServiceError("timeout"), observation(), observation()
        ])

        features = VisualFeatureExtractor(analyzer).extract(make_media(4))
        assert features.frames_analyzed == 3
        assert features.face_presence_quality == pytest.approx(0.75)

    def test_max_frames_limits_analysis(self):
        analyzer = ScriptedFaceAnalyzer([observation()] * 5)
        extractor = VisualFeatureExtractor(analyzer, {'visual': {'max_frames': 2}})

        features = extractor.extract(make_media(5))
        assert analyzer.calls == 2
        assert features.frames_total == 2


class TestGeometry:
    """Test landmark geometry helpers."""

    def test_eye_aspect_ratio(self):
        landmarks = np.zeros((478, 3))
        points = [(0, 0), (1, 0.3), (2, 0.3), (3, 0), (2, -0.3), (1, -0.3)]
        for index, (x, y) in zip(LEFT_EYE, points):
            landmarks[index, :2] = (x, y)

        assert eye_aspect_ratio(landmarks, LEFT_EYE) == pytest.approx(0.2)

    def test_degenerate_eye_is_closed(self):
        assert eye_aspect_ratio(np.zeros((478, 3)), LEFT_EYE) == 0.0

    def test_emotion_proxies_form_distribution(self):
        landmarks = np.random.default_rng(0).random((478, 3))
        masses = emotion_proxies(landmarks, smile=0.4)

        assert sum(masses.values()) == pytest.approx(1.0)
        assert all(0.0 <= value <= 1.0 for value in masses.values())

    def test_degenerate_face_is_calm(self):
        assert emotion_proxies(np.zeros((478, 3)), smile=0.0) == {'CALM': 1.0}

    def test_wrap_half_turn(self):
        assert _wrap_half_turn(170.0) == pytest.approx(-10.0)
        assert _wrap_half_turn(-175.0) == pytest.approx(5.0)
        assert _wrap_half_turn(12.0) == 12.0

    def test_decision_confidence(self):
        assert _decision_confidence(0.2, 0.2) == 0.5
        assert _decision_confidence(0.4, 0.2) == 1.0


class FakeGeminiClient:
    def __init__(self, response):
        self.response = response
        self.contents = None

    def generate_json(self, contents, modality):
        self.contents = contents
        return self.response


class TestGeminiFaceAnalyzer:
    """Test the remote facial analysis collaborator."""

    def test_observation_values_are_bounded(self):
        obs = observation_from_response({
            'detection_confidence': 1.7,
            'yaw': 400,
            'pitch': 'not a number',
            'emotions': {'happy': 0.9, 'BORED': 0.5, 'SAD': -1},
            'smiling': True,
            'smile_confidence': 0.7,
            'bounding_box': [0.1, 0.2, 0.5],
        }, brightness=0.5, sharpness=0.5)

        assert obs.detection_confidence == 1.0
        assert obs.yaw == 180.0
        assert obs.pitch == 0.0
        assert obs.emotions == {'HAPPY': 0.9, 'SAD': 0.0}
        assert obs.bounding_box == (0.0, 0.0, 0.0, 0.0)
        assert obs.smiling is True

    def test_missing_fields_use_defaults(self):
        obs = observation_from_response({}, brightness=0.2, sharpness=0.3)

        assert obs.detection_confidence == 0.5
        assert obs.eyes_open is True
        assert obs.brightness == 0.2

    def test_analyze_sends_image_and_parses(self):
        client = FakeGeminiClient({'face_detected': True, 'detection_confidence': 0.8, 'yaw': 10})
        frame = TimestampedFrame(timestamp=0.0, image=np.full((16, 16, 3), 128, dtype=np.uint8))

        obs = GeminiFaceAnalyzer(client=client).analyze(frame)

        assert obs.detection_confidence == 0.8
        assert obs.yaw == 10.0
        assert obs.sharpness == 0.0
        assert client.contents[1]['mime_type'] == 'image/jpeg'

    def test_no_face_returns_none(self):
        client = FakeGeminiClient({'face_detected': False})
        frame = TimestampedFrame(timestamp=0.0, image=np.zeros((16, 16, 3), dtype=np.uint8))

        assert GeminiFaceAnalyzer(client=client).analyze(frame) is None
