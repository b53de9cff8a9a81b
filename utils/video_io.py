"""
Video and still-frame I/O utilities.

Engineering decisions:
- OpenCV for video decoding and in-memory image decoding
- Frames are sampled sparsely (one every ~2s): wellbeing features are slow
  signals and remote facial analysis is billed per frame
- Pillow for JPEG re-encoding before frames leave the process
"""

import base64
import io
import logging
from pathlib import Path
from typing import Generator, Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image

from core.data_models import TimestampedFrame
from core.enums import Modality
from core.errors import FeatureExtractionError

logger = logging.getLogger(__name__)


class VideoReader:
    """
    Sequential video reader with time-based frame sampling.

    Usage:
        with VideoReader('checkin.mp4', frame_period=2.0) as reader:
            for timestamp, frame in reader.iter_frames():
                process(frame)
    """

    def __init__(
        self,
        video_path: Path,
        frame_period: Optional[float] = None,
        color_mode: str = 'RGB'
    ):
        """
        Initialize video reader.

        Args:
            video_path: Path to video file
            frame_period: Seconds between sampled frames (None = every frame)
            color_mode: 'RGB' or 'BGR' (OpenCV default)
        """
        self.video_path = Path(video_path)
        self.color_mode = color_mode

        if not self.video_path.exists():
            raise FileNotFoundError(f"Video not found: {self.video_path}")

        self.cap = cv2.VideoCapture(str(self.video_path))

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video: {self.video_path}")

        self.fps = self.cap.get(cv2.CAP_PROP_FPS)
        self.frame_count = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.duration = self.frame_count / self.fps if self.fps > 0 else 0.0

        if frame_period is not None and self.fps > 0:
            self.frame_skip = max(1, int(round(frame_period * self.fps)))
        else:
            self.frame_skip = 1

        logger.info(
            f"Opened video: {self.duration:.1f}s, {self.fps:.2f} FPS, "
            f"{self.frame_count} frames (sampling every {self.frame_skip})"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def release(self):
        """Release video capture resources."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def iter_frames(self) -> Generator[Tuple[float, np.ndarray], None, None]:
        """
        Iterate over sampled frames.

        Yields:
            Tuple of (timestamp_seconds, frame)
        """
        frame_idx = 0
        while True:
            ret, frame = self.cap.read()
            if not ret:
                break

            if frame_idx % self.frame_skip == 0:
                if self.color_mode == 'RGB':
                    frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                timestamp = frame_idx / self.fps if self.fps > 0 else float(frame_idx)
                yield timestamp, frame

            frame_idx += 1


def sample_frames(
    video_path: Path,
    frame_period: float = 2.0,
    max_frames: Optional[int] = None
) -> Tuple[Tuple[TimestampedFrame, ...], float]:
    """
    Sample still frames from a recorded video.

    Returns:
        Tuple of (frames, video_duration_seconds)
    """
    frames = []
    with VideoReader(video_path, frame_period=frame_period) as reader:
        for timestamp, frame in reader.iter_frames():
            frames.append(TimestampedFrame(timestamp=timestamp, image=frame))
            if max_frames is not None and len(frames) >= max_frames:
                break
        duration = reader.duration

    logger.info(f"Sampled {len(frames)} frames from {video_path}")
    return tuple(frames), duration


def decode_frame(image: Union[np.ndarray, bytes]) -> np.ndarray:
    """
    Return an RGB uint8 array for a captured frame.

    Raises:
        FeatureExtractionError: If encoded bytes cannot be decoded
    """
    if isinstance(image, np.ndarray):
        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
        return image

    buffer = np.frombuffer(image, dtype=np.uint8)
    decoded = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size > 0 else None
    if decoded is None:
        raise FeatureExtractionError("Could not decode frame image", modality=Modality.VISUAL)

    return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)


def frame_to_base64(frame: np.ndarray, max_size: int = 512, quality: int = 85) -> str:
    """JPEG-encode an RGB frame (downscaled to `max_size`) as base64."""
    pil_image = Image.fromarray(frame)

    if max(pil_image.size) > max_size:
        pil_image.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    pil_image.convert('RGB').save(buffer, format='JPEG', quality=quality)

    return base64.b64encode(buffer.getvalue()).decode('utf-8')


def measure_image_quality(
    frame: np.ndarray,
    sharpness_scale: float = 500.0
) -> Tuple[float, float]:
    """
    Brightness and sharpness of an RGB frame, both in [0, 1].

    Brightness is mean grey level; sharpness is the variance of the
    Laplacian divided by `sharpness_scale` and capped at 1.
    """
    gray = cv2.cvtColor(frame, cv2.COLOR_RGB2GRAY)
    brightness = float(np.mean(gray)) / 255.0
    sharpness = float(cv2.Laplacian(gray, cv2.CV_64F).var()) / sharpness_scale

    return float(np.clip(brightness, 0.0, 1.0)), float(np.clip(sharpness, 0.0, 1.0))
