"""
Per-frame facial analysis collaborators.

FaceAnalyzer is the boundary the visual extractor talks to: one still frame
in, at most one FaceObservation out (None = no face). Implementations:
- MediaPipeFaceAnalyzer: local, landmark geometry (this module)
- GeminiFaceAnalyzer: remote vision model (gemini_face.py)

Markers extracted by the local analyzer:
1. Head pose (yaw, pitch, roll) via PnP - eye contact and head movement
2. Eye aspect ratio - eyes open/closed (blinks)
3. Mouth aspect ratio - mouth open (facial tension)
4. Mouth geometry - smile presence and intensity
5. Brow geometry - raise/furrow emotion proxies
6. Image brightness/sharpness - observation quality

Engineering decisions:
- MediaPipe Face Mesh in static-image mode: frames are seconds apart, so
  temporal tracking brings nothing
- Emotions are geometric proxies, NOT a trained expression classifier;
  they only need to move in the right direction for affect aggregation
"""

import logging
import threading
import warnings
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import numpy as np
import cv2

from core.data_models import FaceObservation, TimestampedFrame
from utils.video_io import decode_frame, measure_image_quality

logger = logging.getLogger(__name__)

# Suppress MediaPipe warnings
warnings.filterwarnings('ignore', category=UserWarning, module='google.protobuf')

try:
    import mediapipe as mp
    MEDIAPIPE_AVAILABLE = True
except ImportError:
    MEDIAPIPE_AVAILABLE = False
    logger.warning("MediaPipe not installed. Local face analysis unavailable.")


# Face Mesh landmark indices
POSE_LANDMARKS = [1, 152, 33, 263, 61, 291]  # Nose, chin, eye corners, mouth corners
LEFT_EYE = [33, 160, 158, 133, 153, 144]  # p1..p6 for eye aspect ratio
RIGHT_EYE = [362, 385, 387, 263, 373, 380]
MOUTH_LEFT, MOUTH_RIGHT = 61, 291
UPPER_LIP, LOWER_LIP = 13, 14
LEFT_BROW, RIGHT_BROW = 105, 334
LEFT_EYE_TOP, RIGHT_EYE_TOP = 159, 386
LEFT_INNER_BROW, RIGHT_INNER_BROW = 55, 285
OUTER_EYE_LEFT, OUTER_EYE_RIGHT = 33, 263

# Canonical 3D face model (arbitrary units), matched to POSE_LANDMARKS
MODEL_POINTS = np.array([
    (0.0, 0.0, 0.0),             # Nose tip
    (0.0, -330.0, -65.0),        # Chin
    (-225.0, 170.0, -135.0),     # Left eye corner
    (225.0, 170.0, -135.0),      # Right eye corner
    (-150.0, -150.0, -125.0),    # Left mouth corner
    (150.0, -150.0, -125.0)      # Right mouth corner
], dtype=np.float64)

# Geometry calibration, all ratios relative to inter-ocular distance
NEUTRAL_MOUTH_WIDTH = 0.85
SMILE_WIDTH_RANGE = 0.30
SMILE_LIFT_RANGE = 0.08
NEUTRAL_BROW_HEIGHT = 0.22
BROW_RAISE_RANGE = 0.12
NEUTRAL_INNER_BROW_GAP = 0.35
BROW_FURROW_RANGE = 0.10


class FaceAnalyzer(ABC):
    """Interface for per-frame facial analysis collaborators."""

    @abstractmethod
    def analyze(self, frame: TimestampedFrame) -> Optional[FaceObservation]:
        """
        Analyze one frame.

        Returns:
            FaceObservation for the primary face, or None if no face

        Raises:
            AssessmentError subclasses on collaborator failure
        """
        pass

    def close(self) -> None:
        """Release resources held by the analyzer."""
        pass


class MediaPipeFaceAnalyzer(FaceAnalyzer):
    """
    Local facial analysis using MediaPipe Face Mesh landmarks.

    Usage:
        analyzer = MediaPipeFaceAnalyzer()
        observation = analyzer.analyze(frame)
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        eye_open_threshold: float = 0.2,
        mouth_open_threshold: float = 0.15
    ):
        """
        Initialize face analyzer.

        Args:
            min_detection_confidence: Minimum confidence for face detection
            eye_open_threshold: Eye aspect ratio above which eyes count as open
            mouth_open_threshold: Mouth aspect ratio above which mouth counts as open
        """
        if not MEDIAPIPE_AVAILABLE:
            raise ImportError("MediaPipe not installed. Install with: pip install mediapipe")

        self.eye_open_threshold = eye_open_threshold
        self.mouth_open_threshold = mouth_open_threshold
        self.min_detection_confidence = min_detection_confidence

        self.face_mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=True,
            max_num_faces=1,
            refine_landmarks=True,
            min_detection_confidence=min_detection_confidence
        )
        # FaceMesh graphs are not safe to call from several threads at once
        self._lock = threading.Lock()

        logger.info("Face analyzer initialized (MediaPipe Face Mesh)")

    def analyze(self, frame: TimestampedFrame) -> Optional[FaceObservation]:
        image = decode_frame(frame.image)

        with self._lock:
            results = self.face_mesh.process(image)

        if not results.multi_face_landmarks:
            logger.debug(f"No face detected at t={frame.timestamp:.1f}s")
            return None

        h, w = image.shape[:2]
        landmarks = np.array(
            [[lm.x * w, lm.y * h, lm.z * w] for lm in results.multi_face_landmarks[0].landmark]
        )

        yaw, pitch, roll = self._estimate_head_pose(landmarks, w, h)

        ear = (eye_aspect_ratio(landmarks, LEFT_EYE) + eye_aspect_ratio(landmarks, RIGHT_EYE)) / 2.0
        mar = mouth_aspect_ratio(landmarks)
        smile = smile_strength(landmarks)
        emotions = emotion_proxies(landmarks, smile)

        bbox = self._bounding_box(landmarks, w, h)
        brightness, sharpness = measure_image_quality(self._crop(image, bbox))

        return FaceObservation(
            # Face Mesh reports no per-face score once landmarks are found
            detection_confidence=0.9,
            yaw=yaw,
            pitch=pitch,
            roll=roll,
            bounding_box=bbox,
            emotions=emotions,
            smiling=smile > 0.5,
            smile_confidence=smile,
            eyes_open=ear > self.eye_open_threshold,
            eyes_open_confidence=_decision_confidence(ear, self.eye_open_threshold),
            mouth_open=mar > self.mouth_open_threshold,
            mouth_open_confidence=_decision_confidence(mar, self.mouth_open_threshold),
            brightness=brightness,
            sharpness=sharpness
        )

    def _estimate_head_pose(
        self,
        landmarks: np.ndarray,
        img_w: int,
        img_h: int
    ) -> Tuple[float, float, float]:
        """
        Estimate head pose (yaw, pitch, roll) in degrees.

        Method: PnP (Perspective-n-Point) on 6 key landmarks against a
        canonical face model, decomposed with RQDecomp3x3.
        """
        image_points = np.array(
            [[landmarks[idx, 0], landmarks[idx, 1]] for idx in POSE_LANDMARKS],
            dtype=np.float64
        )

        focal_length = img_w
        camera_matrix = np.array([
            [focal_length, 0, img_w / 2],
            [0, focal_length, img_h / 2],
            [0, 0, 1]
        ], dtype=np.float64)
        dist_coeffs = np.zeros((4, 1))

        success, rotation_vec, _ = cv2.solvePnP(
            MODEL_POINTS,
            image_points,
            camera_matrix,
            dist_coeffs,
            flags=cv2.SOLVEPNP_ITERATIVE
        )
        if not success:
            logger.debug("Head pose estimation failed")
            return (0.0, 0.0, 0.0)

        rotation_mat, _ = cv2.Rodrigues(rotation_vec)
        angles = cv2.RQDecomp3x3(rotation_mat)[0]

        # Model is y-up while image is y-down, so pitch/roll sit near +-180
        pitch = _wrap_half_turn(angles[0])
        yaw = float(angles[1])
        roll = _wrap_half_turn(angles[2])

        return (yaw, pitch, roll)

    @staticmethod
    def _bounding_box(landmarks: np.ndarray, img_w: int, img_h: int) -> Tuple[float, float, float, float]:
        """Normalized (left, top, width, height) of the landmark extent."""
        x_min, y_min = np.clip(landmarks[:, :2].min(axis=0), 0, None)
        x_max, y_max = landmarks[:, :2].max(axis=0)
        x_max, y_max = min(x_max, img_w), min(y_max, img_h)
        return (
            float(x_min / img_w),
            float(y_min / img_h),
            float(max(0.0, x_max - x_min) / img_w),
            float(max(0.0, y_max - y_min) / img_h),
        )

    @staticmethod
    def _crop(image: np.ndarray, bbox: Tuple[float, float, float, float]) -> np.ndarray:
        h, w = image.shape[:2]
        left, top, width, height = bbox
        x0, y0 = int(left * w), int(top * h)
        x1, y1 = int((left + width) * w), int((top + height) * h)
        crop = image[y0:y1, x0:x1]
        return crop if crop.size > 0 else image

    def close(self):
        """Release resources."""
        if self.face_mesh is not None:
            self.face_mesh.close()
            self.face_mesh = None


def eye_aspect_ratio(landmarks: np.ndarray, indices) -> float:
    """
    Eye aspect ratio (EAR): vertical eyelid gaps over horizontal eye width.

    ~0.3 for an open eye, dropping towards 0 when closed.
    """
    p = landmarks[indices, :2]
    vertical = np.linalg.norm(p[1] - p[5]) + np.linalg.norm(p[2] - p[4])
    horizontal = np.linalg.norm(p[0] - p[3])
    if horizontal <= 0:
        return 0.0
    return float(vertical / (2.0 * horizontal))


def mouth_aspect_ratio(landmarks: np.ndarray) -> float:
    """Inner-lip gap over mouth width."""
    gap = np.linalg.norm(landmarks[UPPER_LIP, :2] - landmarks[LOWER_LIP, :2])
    width = np.linalg.norm(landmarks[MOUTH_LEFT, :2] - landmarks[MOUTH_RIGHT, :2])
    if width <= 0:
        return 0.0
    return float(gap / width)


def _interocular(landmarks: np.ndarray) -> float:
    return float(np.linalg.norm(landmarks[OUTER_EYE_LEFT, :2] - landmarks[OUTER_EYE_RIGHT, :2]))


def smile_strength(landmarks: np.ndarray) -> float:
    """
    Smile intensity in [0, 1] from mouth width and corner lift.

    Width: mouth corners spread relative to the eyes.
    Lift: corners above the lip midline (image y grows downwards).
    """
    scale = _interocular(landmarks)
    if scale <= 0:
        return 0.0

    width = np.linalg.norm(landmarks[MOUTH_LEFT, :2] - landmarks[MOUTH_RIGHT, :2]) / scale
    lip_center_y = (landmarks[UPPER_LIP, 1] + landmarks[LOWER_LIP, 1]) / 2.0
    corner_y = (landmarks[MOUTH_LEFT, 1] + landmarks[MOUTH_RIGHT, 1]) / 2.0
    lift = (lip_center_y - corner_y) / scale

    width_component = np.clip((width - NEUTRAL_MOUTH_WIDTH) / SMILE_WIDTH_RANGE, 0.0, 1.0)
    lift_component = np.clip(lift / SMILE_LIFT_RANGE, 0.0, 1.0)

    return float(0.6 * width_component + 0.4 * lift_component)


def emotion_proxies(landmarks: np.ndarray, smile: float) -> Dict[str, float]:
    """
    Geometric emotion proxies (category -> mass in [0, 1]).

    - HAPPY: smile strength
    - SURPRISED: brow raise above the eyes
    - ANGRY / CONFUSED: inner brows drawn together (split evenly)
    - SAD: mouth corners below the lip midline
    - CALM: whatever mass remains
    """
    scale = _interocular(landmarks)
    if scale <= 0:
        return {'CALM': 1.0}

    brow_height = (
        (landmarks[LEFT_EYE_TOP, 1] - landmarks[LEFT_BROW, 1]) +
        (landmarks[RIGHT_EYE_TOP, 1] - landmarks[RIGHT_BROW, 1])
    ) / (2.0 * scale)
    raise_mass = float(np.clip((brow_height - NEUTRAL_BROW_HEIGHT) / BROW_RAISE_RANGE, 0.0, 1.0))

    inner_gap = np.linalg.norm(
        landmarks[LEFT_INNER_BROW, :2] - landmarks[RIGHT_INNER_BROW, :2]
    ) / scale
    furrow_mass = float(np.clip((NEUTRAL_INNER_BROW_GAP - inner_gap) / BROW_FURROW_RANGE, 0.0, 1.0))

    lip_center_y = (landmarks[UPPER_LIP, 1] + landmarks[LOWER_LIP, 1]) / 2.0
    corner_y = (landmarks[MOUTH_LEFT, 1] + landmarks[MOUTH_RIGHT, 1]) / 2.0
    droop = (corner_y - lip_center_y) / scale
    sad_mass = float(np.clip(droop / SMILE_LIFT_RANGE, 0.0, 1.0))

    masses = {
        'HAPPY': smile,
        'SURPRISED': raise_mass,
        'ANGRY': furrow_mass / 2.0,
        'CONFUSED': furrow_mass / 2.0,
        'SAD': sad_mass,
    }
    total = sum(masses.values())
    if total > 1.0:
        masses = {name: value / total for name, value in masses.items()}
        total = 1.0
    masses['CALM'] = 1.0 - total

    return masses


def _decision_confidence(value: float, threshold: float) -> float:
    """Confidence of a threshold decision, growing with distance from it."""
    if threshold <= 0:
        return 1.0
    return float(np.clip(0.5 + abs(value - threshold) / threshold, 0.0, 1.0))


def _wrap_half_turn(angle: float) -> float:
    """Fold an angle into [-90, 90] by removing a half turn."""
    angle = float(angle)
    if angle > 90.0:
        return angle - 180.0
    if angle < -90.0:
        return angle + 180.0
    return angle
