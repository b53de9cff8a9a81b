"""
Multimodal fusion module.

This package combines an anchor score with audio and visual modality scores:
- Baseline: clinical questionnaire anchor (70%) plus multimodal (30%)
- Check-in: text anchor weighted by an explicit availability decision table
- Failed modalities get weight 0; their share goes to the survivors
- Every fusion reports a confidence and its degradation warnings
"""

from .scoring_fusion import ScoringFusionEngine, apply_sanity_floor
from .weighting import CHECKIN_WEIGHTS, WeightingRule, baseline_weights, build_checkin_table

__all__ = [
    'ScoringFusionEngine',
    'apply_sanity_floor',
    'WeightingRule',
    'CHECKIN_WEIGHTS',
    'baseline_weights',
    'build_checkin_table',
]
