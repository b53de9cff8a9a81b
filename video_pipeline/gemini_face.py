"""
Remote facial analysis with Gemini Vision.

Each sampled frame is JPEG-encoded and sent to the model, which reports the
face as a JSON observation (pose, emotions, smile, eyes, mouth). Image
brightness and sharpness are measured locally with OpenCV so that quality
never depends on the model's judgement.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np

from core.data_models import FaceObservation, TimestampedFrame
from core.enums import EMOTION_CATEGORIES, Modality
from core.numeric import clamp, is_finite
from utils.gemini_client import GeminiClient
from utils.video_io import decode_frame, frame_to_base64, measure_image_quality
from .face_analyzer import FaceAnalyzer

logger = logging.getLogger(__name__)


FACE_PROMPT = f"""
You are a facial behavior analyst. Analyze the primary face in this image.

Report:
1. Whether a face is visible and how confident you are
2. Head pose in degrees (yaw: left/right, pitch: up/down, roll: tilt)
3. Emotion probabilities for: {', '.join(EMOTION_CATEGORIES)} (0.0-1.0)
4. Smile, eyes open and mouth open, each with a confidence (0.0-1.0)
5. Face bounding box as fractions of the image (left, top, width, height)

Respond in this EXACT JSON format:
{{
  "face_detected": true/false,
  "detection_confidence": 0.0-1.0,
  "yaw": degrees,
  "pitch": degrees,
  "roll": degrees,
  "bounding_box": [left, top, width, height],
  "emotions": {{"HAPPY": 0.0-1.0, "CALM": 0.0-1.0, ...}},
  "smiling": true/false,
  "smile_confidence": 0.0-1.0,
  "eyes_open": true/false,
  "eyes_open_confidence": 0.0-1.0,
  "mouth_open": true/false,
  "mouth_open_confidence": 0.0-1.0
}}

CRITICAL: Return ONLY the JSON object, no additional text.
"""


class GeminiFaceAnalyzer(FaceAnalyzer):
    """
    Facial analysis collaborator backed by Gemini Vision.

    Usage:
        analyzer = GeminiFaceAnalyzer()  # reads GEMINI_API_KEY
        observation = analyzer.analyze(frame)
    """

    def __init__(self, client: Optional[GeminiClient] = None, max_image_size: int = 512):
        self.client = client or GeminiClient()
        self.max_image_size = max_image_size

        logger.info("Gemini face analyzer initialized")

    def analyze(self, frame: TimestampedFrame) -> Optional[FaceObservation]:
        image = decode_frame(frame.image)
        frame_b64 = frame_to_base64(image, max_size=self.max_image_size)

        data = self.client.generate_json(
            [FACE_PROMPT, {"mime_type": "image/jpeg", "data": frame_b64}],
            modality=Modality.VISUAL
        )

        if not data.get('face_detected', False):
            logger.debug(f"Gemini reported no face at t={frame.timestamp:.1f}s")
            return None

        brightness, sharpness = measure_image_quality(image)
        return observation_from_response(data, brightness, sharpness)


def observation_from_response(
    data: Dict[str, Any],
    brightness: float,
    sharpness: float
) -> FaceObservation:
    """Build a FaceObservation from a model response, bounding every value."""
    emotions = {}
    for name, value in (data.get('emotions') or {}).items():
        name = str(name).upper()
        if name in EMOTION_CATEGORIES and is_finite(value):
            emotions[name] = clamp(float(value))

    return FaceObservation(
        detection_confidence=_unit(data.get('detection_confidence'), 0.5),
        yaw=_angle(data.get('yaw')),
        pitch=_angle(data.get('pitch')),
        roll=_angle(data.get('roll')),
        bounding_box=_bounding_box(data.get('bounding_box')),
        emotions=emotions,
        smiling=bool(data.get('smiling', False)),
        smile_confidence=_unit(data.get('smile_confidence'), 0.0),
        eyes_open=bool(data.get('eyes_open', True)),
        eyes_open_confidence=_unit(data.get('eyes_open_confidence'), 0.0),
        mouth_open=bool(data.get('mouth_open', False)),
        mouth_open_confidence=_unit(data.get('mouth_open_confidence'), 0.0),
        brightness=brightness,
        sharpness=sharpness
    )


def _unit(value, default: float) -> float:
    return clamp(float(value)) if is_finite(value) else default


def _angle(value) -> float:
    return float(np.clip(float(value), -180.0, 180.0)) if is_finite(value) else 0.0


def _bounding_box(value):
    if isinstance(value, (list, tuple)) and len(value) == 4 and all(is_finite(v) for v in value):
        return tuple(clamp(float(v)) for v in value)
    return (0.0, 0.0, 0.0, 0.0)
