"""Score helpers used by the trend report and its summary card."""

from __future__ import annotations

import math
from typing import Dict, Union

from analytics.errors import InvalidParameterError
from constants import NEUTRAL_CHANGE_PCT


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (scores are never negative)."""
    return int(math.floor(value + 0.5))


def calculate_period_change(current: float, previous: float) -> Dict[str, Union[str, float]]:
    """Direction and absolute percentage change from *previous* to *current*.

    Changes under 1 % are neutral; a zero baseline is neutral with 0 %.
    """
    for name, value in (("current", current), ("previous", previous)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise InvalidParameterError(f"Invalid {name} value: must be a finite number")

    if previous == 0:
        return {"direction": "neutral", "percentage": 0.0}

    change = (current - previous) / previous * 100
    percentage = abs(round(change, 2))
    if abs(change) < NEUTRAL_CHANGE_PCT:
        return {"direction": "neutral", "percentage": percentage}
    return {"direction": "up" if change > 0 else "down", "percentage": percentage}


def z_score_to_scale(value: float, mean: float, standard_deviation: float) -> int:
    """Map z ∈ [−3, 3] linearly onto 0-100 (clamped); 50 when σ ≤ 0."""
    if standard_deviation <= 0:
        return 50
    z = (value - mean) / standard_deviation
    return max(0, min(100, round_half_up((z + 3) / 6 * 100)))


def score_category(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "poor"
