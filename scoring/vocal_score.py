"""
Vocal wellbeing score.

Maps the ten acoustic features to a single 0-100 audio modality score.

Score interpretation (per sub-score):
- 100: feature at its ideal value
- 50: feature half a tolerance away
- 0: feature a full tolerance (or more) away

Clinical rationale:
- Speech near a conversational pace with regular short pauses reflects
  engagement; slowed speech and long pauses accompany low mood
- Flat or unstable prosody (jitter/shimmer proxies) lowers the score
- Quality (duration, level, clipping) scales the score, so a short or
  noisy recording cannot claim a confident high score

With a personal baseline, pitch, speaking rate and pause frequency are
judged against the user's own baseline values rather than population ideals.
"""

import logging
from typing import Dict, Optional

from core.data_models import AudioFeatureSet, ModalityScore, PersonalBaseline
from core.enums import Modality
from core.numeric import clamp
from .curves import DEFAULT_AUDIO_CURVES, combine_sub_scores, load_curves, recenter, score_features

logger = logging.getLogger(__name__)

BASELINE_CENTERED_FEATURES = ('mean_pitch', 'speaking_rate', 'pause_frequency')


def compute_audio_sub_scores(
    features: AudioFeatureSet,
    config: Dict = None,
    baseline: Optional[PersonalBaseline] = None
) -> Dict[str, float]:
    """Per-feature 0-100 sub-scores for an AudioFeatureSet."""
    config = config or {}
    curves = load_curves(config.get('scoring', {}).get('audio_curves'), DEFAULT_AUDIO_CURVES)

    if baseline is not None and baseline.audio is not None:
        curves = recenter(curves, {
            name: getattr(baseline.audio, name) for name in BASELINE_CENTERED_FEATURES
        })

    return score_features(features.as_dict(), curves)


def score_audio_features(
    features: Optional[AudioFeatureSet],
    config: Dict = None,
    baseline: Optional[PersonalBaseline] = None
) -> Optional[ModalityScore]:
    """
    Compute the audio modality score.

    Args:
        features: Extracted acoustic features (None = no audio)
        config: Configuration dict (reads `scoring.audio_curves`)
        baseline: Optional personal baseline

    Returns:
        ModalityScore, or None when no finite feature is available
    """
    if features is None:
        return None

    sub_scores = compute_audio_sub_scores(features, config, baseline)
    score = combine_sub_scores(sub_scores, features.quality)

    if score is None:
        logger.warning("Audio features unusable: no finite sub-score")
        return None

    logger.info(
        f"Audio score {score:.1f} from {len(sub_scores)} sub-scores "
        f"(quality={features.quality:.2f}, baseline={'yes' if baseline and baseline.audio else 'no'})"
    )

    return ModalityScore(modality=Modality.AUDIO, score=score, confidence=clamp(features.quality))
