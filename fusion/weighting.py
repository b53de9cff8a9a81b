"""
Modality weighting rules.

Check-in weights come from an explicit decision table keyed by which
secondary modalities survived, so each branch can be tested on its own:

    ALL_PRESENT     text 0.70 / audio 0.15 / visual 0.15
    AUDIO_MISSING   text 0.80 / visual 0.20
    VISUAL_MISSING  text 0.80 / audio 0.20
    TEXT_ONLY       text 1.00

Baseline weights keep the clinical anchor at 0.70 and split the
multimodal 0.30 across the valid secondaries; an invalid modality's share
moves to the survivor.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from core.enums import ModalityAvailability

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightingRule:
    """Anchor / audio / visual weights for one fusion; must sum to 1."""
    anchor: float
    audio: float
    visual: float

    def __post_init__(self):
        if min(self.anchor, self.audio, self.visual) < 0:
            raise ValueError(f"Negative weight in {self}")
        if abs(self.anchor + self.audio + self.visual - 1.0) > 1e-6:
            raise ValueError(f"Weights must sum to 1.0: {self}")

    @property
    def multimodal(self) -> float:
        return self.audio + self.visual


CHECKIN_WEIGHTS: Dict[ModalityAvailability, WeightingRule] = {
    ModalityAvailability.ALL_PRESENT: WeightingRule(anchor=0.70, audio=0.15, visual=0.15),
    ModalityAvailability.AUDIO_MISSING: WeightingRule(anchor=0.80, audio=0.0, visual=0.20),
    ModalityAvailability.VISUAL_MISSING: WeightingRule(anchor=0.80, audio=0.20, visual=0.0),
    ModalityAvailability.TEXT_ONLY: WeightingRule(anchor=1.0, audio=0.0, visual=0.0),
}


def build_checkin_table(overrides: Optional[Mapping] = None) -> Dict[ModalityAvailability, WeightingRule]:
    """
    Check-in decision table with optional configuration overrides.

    Overrides are keyed by availability value, e.g.
    `{'all_present': {'text': 0.6, 'audio': 0.2, 'visual': 0.2}}`.
    """
    table = dict(CHECKIN_WEIGHTS)
    for key, spec in (overrides or {}).items():
        availability = ModalityAvailability(key)
        default = table[availability]
        table[availability] = WeightingRule(
            anchor=float(spec.get('text', default.anchor)),
            audio=float(spec.get('audio', default.audio)),
            visual=float(spec.get('visual', default.visual)),
        )
        logger.info(f"Check-in weights for {key} overridden: {table[availability]}")
    return table


def baseline_weights(has_audio: bool, has_visual: bool, clinical_weight: float = 0.7) -> WeightingRule:
    """Clinical-anchored weights for the valid secondaries."""
    multimodal = 1.0 - clinical_weight

    if has_audio and has_visual:
        return WeightingRule(anchor=clinical_weight, audio=multimodal / 2.0, visual=multimodal / 2.0)
    if has_audio:
        return WeightingRule(anchor=clinical_weight, audio=multimodal, visual=0.0)
    if has_visual:
        return WeightingRule(anchor=clinical_weight, audio=0.0, visual=multimodal)
    return WeightingRule(anchor=1.0, audio=0.0, visual=0.0)
