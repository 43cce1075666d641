"""Workout context ranking: which situational tags predict a successful session."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional, Sequence

import numpy as np

from analytics.models import BehaviorEvent, ContextAnalysisResult, ExerciseLog
from analytics.scoring import round_half_up


def primary_context(event: BehaviorEvent) -> str:
    """Highest-priority tag on the event: time > location > mood > energy."""
    ctx = event.context
    if ctx.time_of_day:
        return f"time:{ctx.time_of_day}"
    if ctx.location:
        return f"location:{ctx.location}"
    if ctx.mood:
        return f"mood:{ctx.mood}"
    if ctx.energy_level is not None and ctx.energy_level != "":
        return f"energy:{ctx.energy_level}"
    return "general"


def _epoch_ms(value) -> int:
    return int(value.timestamp() * 1000)


def _success_flags(
    events: Sequence[BehaviorEvent],
    exercise_logs: Sequence[ExerciseLog],
    success_window_ms: int,
    min_rpe: float,
) -> np.ndarray:
    """Per-event success: a log with RPE ≥ *min_rpe* strictly within the
    window, or the event itself marked completed/successful."""
    logs = sorted(exercise_logs, key=lambda lg: lg.created_at)
    log_ts = np.array([_epoch_ms(lg.created_at) for lg in logs], dtype=np.int64)
    good = np.array([lg.rpe is not None and lg.rpe >= min_rpe for lg in logs], dtype=np.int64)
    good_prefix = np.concatenate(([0], np.cumsum(good)))

    flags = np.zeros(len(events), dtype=bool)
    for i, event in enumerate(events):
        if event.context.completed or event.context.success:
            flags[i] = True
            continue
        if log_ts.size == 0:
            continue
        t = _epoch_ms(event.created_at)
        lo = np.searchsorted(log_ts, t - success_window_ms, side="right")
        hi = np.searchsorted(log_ts, t + success_window_ms, side="left")
        flags[i] = good_prefix[hi] - good_prefix[lo] > 0
    return flags


def _conditions(events: Sequence[BehaviorEvent]) -> Dict[str, Optional[str]]:
    """Most common value (stringified) for every context key seen."""
    values: Dict[str, List[str]] = {}
    for event in events:
        for key, value in event.context.items():
            text = str(value).lower() if isinstance(value, bool) else str(value)
            values.setdefault(key, []).append(text)
    return {key: Counter(vals).most_common(1)[0][0] if vals else None for key, vals in values.items()}


def _optimization(context: str, success_rate: float, conditions: Dict[str, Optional[str]]) -> str:
    if success_rate >= 80:
        kept = ", ".join(f"{k}: {v}" for k, v in list(conditions.items())[:3])
        return f"Excellent context! Maintain these conditions: {kept}"
    if success_rate >= 60:
        first = next(iter(conditions), "timing")
        return f"Good context. Try optimizing {first} for better results."
    return f"Consider changing context conditions or avoiding {context} for workouts."


def compute_context_layer(
    *,
    workout_events: Sequence[BehaviorEvent],
    exercise_logs: Sequence[ExerciseLog],
    success_window_ms: int,
    min_rpe: float,
    base_power: float,
    logger,
) -> List[ContextAnalysisResult]:
    """Success rate and predictive power for every primary context tag.

    Predictive power = clamp(base + (context rate − overall rate), 0, 100),
    so 50 means "no better than the baseline".
    """
    if not workout_events:
        logger.info("   Context layer: no workout events")
        return []

    flags = _success_flags(workout_events, exercise_logs, success_window_ms, min_rpe)
    baseline = float(flags.mean() * 100)

    groups: Dict[str, List[int]] = {}
    for i, event in enumerate(workout_events):
        groups.setdefault(primary_context(event), []).append(i)

    results: List[ContextAnalysisResult] = []
    for context, idx in groups.items():
        members = [workout_events[i] for i in idx]
        rate = float(flags[idx].mean() * 100)
        power = max(0.0, min(100.0, base_power + (rate - baseline)))
        conditions = _conditions(members)
        results.append(
            ContextAnalysisResult(
                context=context,
                success_rate=round_half_up(rate),
                frequency=len(members),
                predictive_power=round_half_up(power),
                conditions=conditions,
                optimization=_optimization(context, rate, conditions),
            )
        )

    results.sort(key=lambda r: r.predictive_power, reverse=True)
    logger.info("   Context layer: %d contexts, baseline success %.1f%%", len(results), baseline)
    return results
