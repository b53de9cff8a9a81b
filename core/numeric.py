"""Small numeric helpers used wherever scores are bounded or persisted."""

import math
from typing import Iterable, Optional


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def round_score(value: float) -> int:
    """
    Round a score to the nearest integer, halves rounding up.

    Python's round() uses banker's rounding (round(78.5) == 78), which
    would make persisted scores depend on parity.
    """
    return int(math.floor(value + 0.5))


def is_finite(value: Optional[float]) -> bool:
    """True for real, finite numbers (rejects None, NaN and inf)."""
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def finite_mean(values: Iterable[Optional[float]]) -> Optional[float]:
    """Mean of the finite values, or None when there are none."""
    finite = [float(v) for v in values if is_finite(v)]
    if not finite:
        return None
    return sum(finite) / len(finite)
