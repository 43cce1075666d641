"""Helpers for building concise trend text for UI consumption."""

from __future__ import annotations

from typing import Any, Dict, Optional

DEFAULT_HORIZON_DAYS = 7


def _fmt(value: Optional[float], unit: str = "") -> str:
    if value is None:
        return "n/a"
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {unit}".strip()


def _horizon_label(days: int) -> str:
    if days == 1:
        return "Next day"
    return f"Next {days} days"


def build_concise_summary(report: Optional[Dict[str, Any]]) -> str:
    """Create a strict 3-bullet, human-friendly summary for UI cards.

    The last bullet is labelled from the number of forecast points (falling
    back to the report's horizon).
    """
    report = report or {}
    predictions = [p for p in report.get("forecast", []) if p.get("isPrediction")]
    next_label = _horizon_label(len(predictions) or report.get("horizon") or DEFAULT_HORIZON_DAYS)

    regression = report.get("regression")
    if not regression:
        return (
            "- What changed: Insufficient data in this run.\n"
            "- Why it matters: Without a fitted trend, forecasts would be guesses.\n"
            f"- {next_label}: Keep logging daily and reassess once at least two readings exist."
        )

    def clip(s: str, limit: int = 260) -> str:
        s = s.replace("\n", " ").strip()
        if len(s) <= limit:
            return s
        return s[: limit - 3].rstrip() + "..."

    def bullet(label: str, value: str) -> str:
        prefix = f"- {label}: "
        allowed = max(48, 280 - len(prefix))
        return prefix + clip(value, allowed)

    unit = report.get("unit") or ""
    per_day = regression.get("slopePerDay", 0.0)
    r2 = regression.get("rSquared", 0.0)
    direction = report.get("trend", {}).get("trend", "stable")

    if direction == "stable" or per_day == 0:
        what_changed = "No measurable trend across the recorded period."
    else:
        what_changed = f"Values are {direction} by about {_fmt(abs(per_day), unit)} per day."
    change = report.get("change")
    if change and change.get("direction") != "neutral":
        what_changed += f" Latest period is {change['direction']} {_fmt(change['percentage'])}% on the one before."

    p_value = regression.get("slopePValue")
    if r2 >= 0.8 and (p_value is None or p_value < 0.05):
        why_it_matters = f"The trend is consistent (R² {r2:.2f}), so the projection is reliable."
    elif r2 >= 0.4:
        why_it_matters = f"The trend is moderate (R² {r2:.2f}); day-to-day noise is significant."
    else:
        why_it_matters = f"Readings are noisy (R² {r2:.2f}); treat the projection as tentative."

    if predictions:
        last = predictions[-1]
        next_days = (
            f"Expect about {_fmt(last['value'], unit)} by {last['date'][:10]}"
            f" (range {_fmt(last.get('confidenceLower'), unit)} to {_fmt(last.get('confidenceUpper'), unit)})."
        )
    else:
        next_days = "Keep logging to enable a projection."

    return (
        f"{bullet('What changed', what_changed)}\n"
        f"{bullet('Why it matters', why_it_matters)}\n"
        f"{bullet(next_label, next_days)}"
    )
