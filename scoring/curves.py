"""
Ideal-value scoring curves.

Every raw feature is mapped to 0-100 by its distance from an ideal value:

    score = 100 * (1 - |x - ideal| / tolerance), clamped to [0, 100]

A feature exactly at its ideal scores 100; one `tolerance` away (or more)
scores 0. Curves can be overridden per feature in configuration:

    scoring:
      audio_curves:
        mean_pitch: {ideal: 165, tolerance: 200}
"""

import logging
from typing import Dict, Mapping, Optional, Tuple

from core.numeric import clamp, finite_mean, is_finite

logger = logging.getLogger(__name__)

Curve = Tuple[float, float]  # (ideal, tolerance)


DEFAULT_AUDIO_CURVES: Dict[str, Curve] = {
    'mean_pitch': (165.0, 200.0),
    'pitch_variability': (0.0, 50.0),
    'speaking_rate': (150.0, 200.0),
    'pause_frequency': (5.0, 10.0),
    'pause_duration': (0.5, 1.0),
    'voice_energy': (1.0, 1.0),
    'jitter': (0.0, 1.0),
    'shimmer': (0.0, 1.0),
    'harmonic_ratio': (1.0, 1.0),
}

DEFAULT_VISUAL_CURVES: Dict[str, Curve] = {
    'smile_frequency': (1.0, 1.0),
    'smile_intensity': (1.0, 1.0),
    'eye_contact': (1.0, 1.0),
    'eyebrow_position': (0.4, 1.0),
    'facial_tension': (0.0, 1.0),
    'blink_rate': (17.0, 33.3),
    'head_movement': (0.5, 1.0),
    'affect': (1.0, 2.0),
}


def ideal_value_score(value: float, ideal: float, tolerance: float) -> float:
    """Score a value by its distance from `ideal`, in [0, 100]."""
    if tolerance <= 0:
        return 100.0 if value == ideal else 0.0
    return clamp(100.0 * (1.0 - abs(value - ideal) / tolerance), 0.0, 100.0)


def load_curves(overrides: Optional[Mapping], defaults: Dict[str, Curve]) -> Dict[str, Curve]:
    """Merge per-feature {ideal, tolerance} overrides into the default curves."""
    curves = dict(defaults)
    for name, spec in (overrides or {}).items():
        if name not in curves:
            logger.warning(f"Ignoring curve override for unknown feature '{name}'")
            continue
        ideal, tolerance = curves[name]
        curves[name] = (
            float(spec.get('ideal', ideal)),
            float(spec.get('tolerance', tolerance)),
        )
    return curves


def recenter(curves: Dict[str, Curve], centers: Mapping[str, Optional[float]]) -> Dict[str, Curve]:
    """Replace the ideal of each named curve with a personal value, when finite."""
    curves = dict(curves)
    for name, center in centers.items():
        if name in curves and is_finite(center):
            curves[name] = (float(center), curves[name][1])
    return curves


def score_features(values: Mapping[str, float], curves: Dict[str, Curve]) -> Dict[str, float]:
    """Sub-score every curve feature whose value is finite; others are skipped."""
    sub_scores = {}
    for name, (ideal, tolerance) in curves.items():
        value = values.get(name)
        if is_finite(value):
            sub_scores[name] = ideal_value_score(float(value), ideal, tolerance)
        else:
            logger.debug(f"Skipping non-finite feature '{name}'")
    return sub_scores


def combine_sub_scores(sub_scores: Mapping[str, float], quality: float) -> Optional[float]:
    """
    Modality score = mean sub-score x quality factor.

    Returns None when there is no sub-score or the quality is not finite.
    """
    mean = finite_mean(sub_scores.values())
    if mean is None or not is_finite(quality):
        return None
    return clamp(mean * clamp(quality), 0.0, 100.0)
