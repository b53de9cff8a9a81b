"""
Facial wellbeing score.

Maps the visual feature set to a single 0-100 visual modality score.

Clinical rationale:
- Smiling, eye contact and positive affect indicate engagement
- Relaxed brows (neutral position) and a relaxed mouth lower tension
- Typical blink rate (~17/min) and moderate head movement are expected;
  both extremes score lower
- Overall quality (presence, detection confidence, image quality) scales
  the score
"""

import logging
from typing import Dict, Optional

from core.data_models import ModalityScore, PersonalBaseline, VisualFeatureSet
from core.enums import Modality
from core.numeric import clamp
from .curves import DEFAULT_VISUAL_CURVES, combine_sub_scores, load_curves, recenter, score_features

logger = logging.getLogger(__name__)


def compute_visual_sub_scores(
    features: VisualFeatureSet,
    config: Dict = None,
    baseline: Optional[PersonalBaseline] = None
) -> Dict[str, float]:
    """Per-feature 0-100 sub-scores for a VisualFeatureSet."""
    config = config or {}
    curves = load_curves(config.get('scoring', {}).get('visual_curves'), DEFAULT_VISUAL_CURVES)

    if baseline is not None and baseline.visual is not None:
        curves = recenter(curves, {'blink_rate': baseline.visual.blink_rate})

    return score_features(features.as_dict(), curves)


def score_visual_features(
    features: Optional[VisualFeatureSet],
    config: Dict = None,
    baseline: Optional[PersonalBaseline] = None
) -> Optional[ModalityScore]:
    """
    Compute the visual modality score.

    Returns:
        ModalityScore (confidence = overall quality), or None when no
        finite feature is available
    """
    if features is None:
        return None

    sub_scores = compute_visual_sub_scores(features, config, baseline)
    score = combine_sub_scores(sub_scores, features.overall_quality)

    if score is None:
        logger.warning("Visual features unusable: no finite sub-score")
        return None

    logger.info(
        f"Visual score {score:.1f} from {len(sub_scores)} sub-scores "
        f"(quality={features.overall_quality:.2f})"
    )

    return ModalityScore(
        modality=Modality.VISUAL, score=score, confidence=clamp(features.overall_quality)
    )
