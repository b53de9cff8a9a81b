"""
Temporal aggregation of per-frame facial observations.

Clinical rationale:
- Individual stills are noisy; wellbeing signals are fractions and means
  over the whole capture (how often, how much, how steady)
- Frames without a face lower presence quality but never bias the means

Engineering approach:
- Frequencies: fraction of face frames meeting a condition
- Intensities: means of collaborator confidences / emotion masses
- Stability: spread (std) of pose and valence over face frames
- Dynamics: frame-to-frame pose change and eyes-closed run starts
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from core.data_models import FaceObservation, VisualFeatureSet
from core.enums import (
    HIGH_AROUSAL_EMOTIONS, LOW_AROUSAL_EMOTIONS, NEGATIVE_EMOTIONS, POSITIVE_EMOTIONS
)
from core.numeric import clamp

logger = logging.getLogger(__name__)


class TemporalAggregator:
    """
    Aggregate FaceObservations (one per sampled frame) into a VisualFeatureSet.

    Usage:
        aggregator = TemporalAggregator(config)
        features = aggregator.aggregate(timestamps, observations)
    """

    def __init__(self, config: Dict = None):
        config = config or {}
        agg_config = config.get('visual', {}).get('aggregation', {})

        self.eye_contact_angle = agg_config.get('eye_contact_angle', 15.0)
        self.smile_confidence_threshold = agg_config.get('smile_confidence_threshold', 0.5)
        self.neutral_eyebrow = agg_config.get('neutral_eyebrow', 0.4)
        self.gaze_std_scale = agg_config.get('gaze_std_scale', 30.0)
        self.head_movement_scale = agg_config.get('head_movement_scale', 30.0)
        self.default_frame_period = agg_config.get('default_frame_period', 2.0)

        logger.debug(
            f"Temporal aggregator initialized: eye_contact_angle={self.eye_contact_angle}, "
            f"default_frame_period={self.default_frame_period}s"
        )

    def aggregate(
        self,
        timestamps: Sequence[float],
        observations: Sequence[Optional[FaceObservation]]
    ) -> Optional[VisualFeatureSet]:
        """
        Aggregate observations aligned with `timestamps`.

        Returns:
            VisualFeatureSet, or None when no frame has a face
        """
        frames_total = len(observations)
        faces = [obs for obs in observations if obs is not None]

        if frames_total == 0 or not faces:
            logger.warning("No face observations to aggregate")
            return None

        presence = len(faces) / frames_total

        # Smile
        smiling = [obs.smiling and obs.smile_confidence > self.smile_confidence_threshold for obs in faces]
        smile_frequency = float(np.mean(smiling))
        smile_intensity = float(np.mean([obs.smile_confidence if obs.smiling else 0.0 for obs in faces]))

        # Gaze / head pose
        yaws = np.array([obs.yaw for obs in faces])
        pitches = np.array([obs.pitch for obs in faces])
        rolls = np.array([obs.roll for obs in faces])

        eye_contact = float(np.mean(
            (np.abs(yaws) < self.eye_contact_angle) & (np.abs(pitches) < self.eye_contact_angle)
        ))
        gaze_stability = max(0.0, 1.0 - (np.std(yaws) + np.std(pitches)) / 2.0 / self.gaze_std_scale)
        head_movement = self._head_movement(yaws, pitches, rolls)

        # Brows and mouth
        eyebrow_raise = float(np.mean([obs.emotion('SURPRISED') for obs in faces]))
        eyebrow_furrow = float(np.mean([
            min(1.0, obs.emotion('ANGRY') + obs.emotion('CONFUSED')) for obs in faces
        ]))
        eyebrow_position = clamp(self.neutral_eyebrow + eyebrow_raise - eyebrow_furrow)
        facial_tension = 1.0 - float(np.mean([obs.mouth_open for obs in faces]))

        # Blinks
        blink_rate = self._blink_rate(timestamps, observations)

        # Affect
        valences = np.array([_valence(obs) for obs in faces])
        affect = clamp(float(np.mean(valences)), -1.0, 1.0)
        emotional_stability = max(0.0, 1.0 - float(np.std(valences)))
        emotional_arousal = _arousal(faces)

        # Quality
        mean_confidence = float(np.mean([obs.detection_confidence for obs in faces]))
        mean_image_quality = float(np.mean([(obs.brightness + obs.sharpness) / 2.0 for obs in faces]))
        overall_quality = clamp(0.4 * presence + 0.3 * mean_confidence + 0.3 * mean_image_quality)

        logger.info(
            f"Aggregated {len(faces)}/{frames_total} face frames: "
            f"smile={smile_frequency:.2f}, eye_contact={eye_contact:.2f}, "
            f"affect={affect:.2f}, quality={overall_quality:.2f}"
        )

        return VisualFeatureSet(
            smile_frequency=smile_frequency,
            smile_intensity=smile_intensity,
            eye_contact=eye_contact,
            eyebrow_position=eyebrow_position,
            facial_tension=facial_tension,
            blink_rate=blink_rate,
            head_movement=head_movement,
            affect=affect,
            face_presence_quality=presence,
            overall_quality=overall_quality,
            eyebrow_raise=eyebrow_raise,
            eyebrow_furrow=eyebrow_furrow,
            gaze_stability=float(gaze_stability),
            emotional_arousal=emotional_arousal,
            emotional_stability=emotional_stability,
            frames_analyzed=len(faces),
            frames_total=frames_total
        )

    def frame_period(self, timestamps: Sequence[float]) -> float:
        """Median spacing between frames, or the default period."""
        if len(timestamps) < 2:
            return self.default_frame_period

        deltas = np.diff(np.asarray(timestamps, dtype=float))
        deltas = deltas[deltas > 0]
        if len(deltas) == 0:
            return self.default_frame_period

        return float(np.median(deltas))

    def _head_movement(self, yaws: np.ndarray, pitches: np.ndarray, rolls: np.ndarray) -> float:
        """Mean frame-to-frame pose change, normalized to [0, 1]."""
        if len(yaws) < 2:
            return 0.0

        change = np.abs(np.diff(yaws)) + np.abs(np.diff(pitches)) + np.abs(np.diff(rolls))
        return float(min(1.0, np.mean(change) / self.head_movement_scale))

    def _blink_rate(
        self,
        timestamps: Sequence[float],
        observations: Sequence[Optional[FaceObservation]]
    ) -> float:
        """
        Blinks per minute: starts of eyes-closed runs over face frames.

        Capture duration is frame count times frame period.
        """
        blinks = 0
        previous_open = True
        for obs in observations:
            if obs is None:
                continue
            if not obs.eyes_open and previous_open:
                blinks += 1
            previous_open = obs.eyes_open

        duration_minutes = len(observations) * self.frame_period(timestamps) / 60.0
        if duration_minutes <= 0:
            return 0.0

        return blinks / duration_minutes


def _valence(obs: FaceObservation) -> float:
    positive = sum(obs.emotion(name) for name in POSITIVE_EMOTIONS)
    negative = sum(obs.emotion(name) for name in NEGATIVE_EMOTIONS)
    return positive - negative


def _arousal(faces: List[FaceObservation]) -> float:
    high = sum(obs.emotion(name) for obs in faces for name in HIGH_AROUSAL_EMOTIONS)
    low = sum(obs.emotion(name) for obs in faces for name in LOW_AROUSAL_EMOTIONS)
    return float(high / (high + low + 0.001))
