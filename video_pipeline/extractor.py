"""
Visual feature extraction: sampled frames -> VisualFeatureSet.

Each frame is handed to the injected FaceAnalyzer collaborator. A failing
call is logged and counted as a no-face frame; only when every call fails
does extraction itself fail.
"""

import logging
from typing import Dict, List, Optional

from core.data_models import CapturedMedia, FaceObservation, VisualFeatureSet
from core.enums import Modality
from core.errors import FeatureExtractionError, InsufficientDataError
from .face_analyzer import FaceAnalyzer
from .temporal_agg import TemporalAggregator

logger = logging.getLogger(__name__)


class VisualFeatureExtractor:
    """
    Drive a FaceAnalyzer over the captured frames and aggregate the results.

    Args:
        face_analyzer: Per-frame facial analysis collaborator
        config: Configuration dict (reads `visual.max_frames` and
            `visual.aggregation`)
    """

    def __init__(self, face_analyzer: FaceAnalyzer, config: Dict = None):
        config = config or {}
        self.face_analyzer = face_analyzer
        self.max_frames = config.get('visual', {}).get('max_frames')
        self.aggregator = TemporalAggregator(config)

        logger.info(f"Initialized VisualFeatureExtractor ({type(face_analyzer).__name__})")

    def extract(self, media: CapturedMedia) -> VisualFeatureSet:
        """
        Compute visual features for the frames in `media`.

        Raises:
            InsufficientDataError: No frames, or no frame contains a face
            FeatureExtractionError: Every collaborator call failed
        """
        if not media.has_frames:
            raise InsufficientDataError("No frames supplied", modality=Modality.VISUAL)

        frames = media.frames
        if self.max_frames is not None and len(frames) > self.max_frames:
            logger.info(f"Limiting analysis to first {self.max_frames} of {len(frames)} frames")
            frames = frames[:self.max_frames]

        logger.info(f"Analyzing {len(frames)} frames")

        observations: List[Optional[FaceObservation]] = []
        failures = 0

        for i, frame in enumerate(frames):
            try:
                observations.append(self.face_analyzer.analyze(frame))
            except Exception as e:
                failures += 1
                logger.warning(f"Face analysis failed for frame {i} (t={frame.timestamp:.1f}s): {e}")
                observations.append(None)

        if failures == len(frames):
            raise FeatureExtractionError(
                f"Facial analysis failed on all {failures} frames", modality=Modality.VISUAL
            )

        features = self.aggregator.aggregate([f.timestamp for f in frames], observations)
        if features is None:
            raise InsufficientDataError(
                f"No face detected in {len(frames)} frames", modality=Modality.VISUAL
            )

        if failures:
            logger.info(f"{failures}/{len(frames)} frames failed analysis and were treated as no-face")

        return features
