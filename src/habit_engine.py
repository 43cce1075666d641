"""
Habit Strength Engine
=====================
Turns a user's behavioral event stream into habit metrics for the
analytics dashboard.

Three entry points, all pure functions of their inputs:

  calculate_habit_strength: frequency, consistency and context sub-scores
      over a lookback window (7d / 30d / 90d / 1y), a weighted composite,
      the trend across sub-periods, a confidence score and the most common
      predictive factors taken from already-recognised patterns.

  recognize_patterns: groups events by behavior type and scores each group
      on daily rate, temporal regularity (hour / weekday histograms) and
      context richness.  Needs ≥5 events; returns [] otherwise.

  analyze_workout_contexts: ranks primary context tags (time of day,
      location, mood, energy) by how much better than baseline they predict a
      successful workout (analytics.context_layer).

Scores are reported as integers in [0, 100], rounded half-up.  The composite
habit strength is computed from the rounded sub-scores:

    strength = round(0.4·frequency + 0.4·consistency + 0.2·context)

Days are UTC calendar days.  The habit window is the last N calendar days
ending on the as-of date (N = 7, 30, 90, or the length of the previous
calendar year for "1y").
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from analytics.context_layer import compute_context_layer
from analytics.errors import InvalidParameterError
from analytics.models import (
    BehaviorEvent,
    BehaviorPattern,
    ContextAnalysisResult,
    EventContext,
    ExerciseLog,
    HabitStrengthCalculation,
    PatternRecognitionResult,
)
from analytics.scoring import round_half_up
from analytics.statistics import calculate_variance
from analytics.time_axis import parse_instant
from constants import (
    CONSISTENCY_CONFIDENCE_WEIGHT,
    DAY_NAMES,
    DEFAULT_MIN_CONFIDENCE,
    FREQUENCY_LABELS,
    FULL_CONFIDENCE_SAMPLE,
    HABIT_WEIGHTS,
    MAX_OUTCOMES,
    MAX_PREDICTIVE_FACTORS,
    MAX_TRIGGERS,
    MIN_PATTERN_EVENTS,
    MIN_TREND_EVENTS,
    PATTERN_WEIGHTS,
    PREDICTIVE_POWER_BASE,
    SAMPLE_CONFIDENCE_WEIGHT,
    SUCCESS_MIN_RPE,
    SUCCESS_WINDOW_MS,
    TIME_RANGE_DAYS,
    TREND_PERIODS,
    WORKOUT_ENTITY_TYPES,
)

log = logging.getLogger("habit_engine")

EventLike = Union[BehaviorEvent, Mapping[str, Any]]
PatternLike = Union[BehaviorPattern, Mapping[str, Any]]
LogLike = Union[ExerciseLog, Mapping[str, Any]]


# ═══════════════════════════════════════════════════════════════
#  INPUT COERCION
# ═══════════════════════════════════════════════════════════════

def _pick(raw: Mapping[str, Any], *keys: str, default=None):
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def load_events(raw_events: Iterable[EventLike]) -> List[BehaviorEvent]:
    """Build BehaviorEvents from model objects or JSON-style mappings.

    Mappings need ``createdAt`` (or ``created_at``); an unparsable timestamp
    raises InvalidDateError.
    """
    events: List[BehaviorEvent] = []
    for raw in raw_events:
        if isinstance(raw, BehaviorEvent):
            events.append(replace(raw, created_at=parse_instant(raw.created_at)))
            continue
        created = _pick(raw, "createdAt", "created_at")
        if created is None:
            raise InvalidParameterError("behavior event is missing 'createdAt'")
        events.append(
            BehaviorEvent(
                created_at=parse_instant(created),
                context=EventContext.from_mapping(raw.get("context")),
                event_name=_pick(raw, "eventName", "event_name"),
                entity_type=_pick(raw, "entityType", "entity_type"),
            )
        )
    return events


def load_patterns(raw_patterns: Iterable[PatternLike]) -> List[BehaviorPattern]:
    patterns: List[BehaviorPattern] = []
    for raw in raw_patterns:
        if isinstance(raw, BehaviorPattern):
            patterns.append(raw)
            continue
        triggers = raw.get("triggers") or []
        context = raw.get("context") or {}
        patterns.append(
            BehaviorPattern(
                behavior_type=str(_pick(raw, "behaviorType", "behavior_type", default="unknown")),
                strength=float(raw.get("strength") or 0),
                confidence=float(raw.get("confidence") or 0),
                triggers=[str(t) for t in triggers] if isinstance(triggers, list) else [],
                context={k: v for k, v in context.items() if isinstance(v, (str, int, float, bool))}
                if isinstance(context, Mapping) else {},
            )
        )
    return patterns


def load_exercise_logs(raw_logs: Iterable[LogLike]) -> List[ExerciseLog]:
    logs: List[ExerciseLog] = []
    for raw in raw_logs:
        if isinstance(raw, ExerciseLog):
            logs.append(replace(raw, created_at=parse_instant(raw.created_at)))
            continue
        created = _pick(raw, "createdAt", "created_at")
        if created is None:
            raise InvalidParameterError("exercise log is missing 'createdAt'")
        rpe = raw.get("rpe")
        logs.append(ExerciseLog(created_at=parse_instant(created), rpe=float(rpe) if rpe is not None else None))
    return logs


# ═══════════════════════════════════════════════════════════════
#  ENGINE
# ═══════════════════════════════════════════════════════════════

class HabitStrengthEngine:
    """Habit strength, pattern recognition and context ranking."""

    def __init__(self, min_confidence: float = DEFAULT_MIN_CONFIDENCE):
        self.min_confidence = min_confidence

    # ─── Habit strength ─────────────────────────────────────────────

    def calculate_habit_strength(
        self,
        events: Iterable[EventLike],
        patterns: Iterable[PatternLike] = (),
        time_range: str = "30d",
        behavior_type: Optional[str] = None,
        as_of: Optional[Union[str, datetime]] = None,
    ) -> HabitStrengthCalculation:
        """Composite habit strength for one behavior (or all) over *time_range*."""
        if time_range not in TIME_RANGE_DAYS:
            raise InvalidParameterError(f"Unknown time range: {time_range}")
        end = self._as_of(as_of)
        days = self._window_days(end, time_range)

        window_events = [
            e for e in load_events(events)
            if e.created_at <= end
            and days[0] <= pd.Timestamp(e.created_at.date())
            and (behavior_type is None or e.behavior_key == behavior_type)
        ]
        pattern_list = [
            p for p in load_patterns(patterns)
            if behavior_type is None or p.behavior_type == behavior_type
        ]

        daily = self._daily_counts(window_events, days)
        frequency = min(100.0, int((daily > 0).sum()) / len(days) * 100)
        consistency = self._consistency_score(daily)
        context = self._context_score(pattern_list)

        frequency_score = round_half_up(frequency)
        consistency_score = round_half_up(consistency)
        context_score = round_half_up(context)
        w_freq, w_cons, w_ctx = HABIT_WEIGHTS
        habit_strength = round_half_up(
            frequency_score * w_freq + consistency_score * w_cons + context_score * w_ctx
        )

        trend = self._trend(window_events, days[0], end, time_range)
        confidence = self._confidence(len(window_events), consistency_score)

        log.info(
            "Habit strength %s/%s: %d events over %d days -> strength=%d (F=%d C=%d X=%d) trend=%s",
            behavior_type or "all", time_range, len(window_events), len(days),
            habit_strength, frequency_score, consistency_score, context_score, trend,
        )
        return HabitStrengthCalculation(
            habit_strength=habit_strength,
            consistency_score=consistency_score,
            frequency_score=frequency_score,
            context_score=context_score,
            trend=trend,
            confidence=round_half_up(confidence),
            sample_size=len(window_events),
            predictive_factors=self._predictive_factors(pattern_list),
        )

    @staticmethod
    def _as_of(as_of: Optional[Union[str, datetime]]) -> datetime:
        if as_of is None:
            return datetime.now(timezone.utc)
        return parse_instant(as_of)

    @staticmethod
    def _window_days(end: datetime, time_range: str) -> pd.DatetimeIndex:
        """The calendar days of the lookback window, ending on *end*'s date."""
        end_day = pd.Timestamp(end.date())
        if time_range == "1y":
            n_days = (end_day - (end_day - pd.DateOffset(years=1))).days
        else:
            n_days = TIME_RANGE_DAYS[time_range]
        return pd.date_range(end=end_day, periods=n_days, freq="D")

    @staticmethod
    def _daily_counts(events: Sequence[BehaviorEvent], days: pd.DatetimeIndex) -> np.ndarray:
        """Events per day over *days*, zero-filled."""
        if not events:
            return np.zeros(len(days), dtype=np.int64)
        stamps = pd.DatetimeIndex([pd.Timestamp(e.created_at.date()) for e in events])
        counts = pd.Series(1, index=stamps).groupby(level=0).sum()
        return counts.reindex(days, fill_value=0).to_numpy(dtype=np.int64)

    @staticmethod
    def _consistency_score(daily_counts: np.ndarray) -> float:
        """Inverse dispersion of the daily series.

            score = max(0, 100 − σ / max(μ, 1) · 100)
        """
        if daily_counts.size == 0:
            return 0.0
        mean = float(daily_counts.mean())
        std = float(daily_counts.std())
        return max(0.0, 100.0 - std / max(mean, 1.0) * 100.0)

    @staticmethod
    def _context_score(patterns: Sequence[BehaviorPattern]) -> float:
        if not patterns:
            return 0.0
        avg_strength = sum(p.strength for p in patterns) / len(patterns)
        avg_confidence = sum(p.confidence for p in patterns) / len(patterns)
        return max(0.0, min(100.0, (avg_strength + avg_confidence) / 2))

    @staticmethod
    def _trend(events: Sequence[BehaviorEvent], start, end: datetime, time_range: str) -> str:
        """Majority direction of consecutive sub-period event counts."""
        if len(events) < MIN_TREND_EVENTS:
            return "stable"
        periods = TREND_PERIODS[time_range]
        lo = start.tz_localize("UTC").timestamp()
        hi = end.timestamp()
        if hi <= lo:
            return "stable"
        stamps = np.array([e.created_at.timestamp() for e in events])
        counts, _ = np.histogram(stamps, bins=periods, range=(lo, hi))
        deltas = np.diff(counts)
        increasing = int((deltas > 0).sum())
        decreasing = int((deltas < 0).sum())
        if increasing > decreasing:
            return "increasing"
        if decreasing > increasing:
            return "decreasing"
        return "stable"

    @staticmethod
    def _confidence(sample_size: int, consistency: float) -> float:
        sample_confidence = min(100.0, sample_size / FULL_CONFIDENCE_SAMPLE * 100)
        return sample_confidence * SAMPLE_CONFIDENCE_WEIGHT + consistency * CONSISTENCY_CONFIDENCE_WEIGHT

    @staticmethod
    def _predictive_factors(patterns: Sequence[BehaviorPattern]) -> List[str]:
        factors: List[str] = []
        for pattern in patterns:
            factors.extend(pattern.triggers)
            factors.extend(v for v in pattern.context.values() if isinstance(v, str) and v)
        return [factor for factor, _ in Counter(factors).most_common(MAX_PREDICTIVE_FACTORS)]

    # ─── Pattern recognition ────────────────────────────────────────

    def recognize_patterns(
        self,
        events: Iterable[EventLike],
        behavior_type: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ) -> List[PatternRecognitionResult]:
        """Score each behavior group; keep those with confidence ≥ *min_confidence*."""
        threshold = self.min_confidence if min_confidence is None else min_confidence
        event_list = [
            e for e in load_events(events)
            if behavior_type is None or e.behavior_key == behavior_type
        ]
        if len(event_list) < MIN_PATTERN_EVENTS:
            log.info("Pattern recognition skipped: %d events (need >= %d)", len(event_list), MIN_PATTERN_EVENTS)
            return []

        groups: Dict[str, List[BehaviorEvent]] = {}
        for event in sorted(event_list, key=lambda e: e.created_at):
            groups.setdefault(event.behavior_key, []).append(event)

        results: List[PatternRecognitionResult] = []
        for behavior, members in groups.items():
            avg_frequency, _label = self._frequency_pattern(members)
            temporal, peak_times = self._temporal_pattern(members)
            triggers, outcomes = self._context_pattern(members)

            w_freq, w_temp, w_ctx = PATTERN_WEIGHTS
            strength = (
                min(100.0, avg_frequency * 100) * w_freq
                + temporal * w_temp
                + min(100.0, (len(triggers) + len(outcomes)) * 20) * w_ctx
            )
            confidence = self._pattern_confidence(members, strength)
            log.debug("Pattern %s: n=%d freq=%.2f (%s) temporal=%.1f strength=%.1f conf=%.1f",
                      behavior, len(members), avg_frequency, _label, temporal, strength, confidence)
            if confidence < threshold:
                continue

            latest_ms = int(members[-1].created_at.timestamp() * 1000)
            results.append(
                PatternRecognitionResult(
                    pattern_id=f"pattern_{behavior}_{latest_ms}",
                    behavior_type=behavior,
                    strength=round_half_up(strength),
                    frequency=round(avg_frequency, 2),
                    consistency=round(temporal, 2),
                    triggers=triggers,
                    outcomes=outcomes,
                    confidence=round_half_up(confidence),
                    recommendation=self._recommendation(behavior, strength, triggers),
                    peak_times=peak_times,
                )
            )

        log.info("Pattern recognition: %d/%d groups above confidence %s", len(results), len(groups), threshold)
        return results

    @staticmethod
    def _span_days(members: Sequence[BehaviorEvent]) -> int:
        return (members[-1].created_at.date() - members[0].created_at.date()).days + 1

    def _frequency_pattern(self, members: Sequence[BehaviorEvent]) -> Tuple[float, str]:
        """Average events per calendar day across the group's span."""
        avg = len(members) / self._span_days(members)
        for threshold, label in FREQUENCY_LABELS:
            if avg >= threshold:
                return avg, label
        return avg, "irregular"

    @staticmethod
    def _temporal_pattern(members: Sequence[BehaviorEvent]) -> Tuple[float, List[str]]:
        """Regularity from hour-of-day and weekday histograms.

            consistency = max(0, 100 − (Var(hours) + Var(weekdays)) / 2)
        """
        hours = np.bincount([e.created_at.hour for e in members], minlength=24)
        weekdays = np.bincount([e.created_at.weekday() for e in members], minlength=7)
        consistency = max(0.0, 100.0 - (calculate_variance(hours) + calculate_variance(weekdays)) / 2)
        peak_times = [f"{int(hours.argmax())}:00", DAY_NAMES[int(weekdays.argmax())]]
        return consistency, peak_times

    @staticmethod
    def _context_pattern(members: Sequence[BehaviorEvent]) -> Tuple[List[str], List[str]]:
        triggers: List[str] = []
        outcomes: List[str] = []
        for event in members:
            ctx = event.context
            if ctx.mood:
                triggers.append(f"mood:{ctx.mood}")
            if ctx.energy_level is not None and ctx.energy_level != "":
                triggers.append(f"energy:{ctx.energy_level}")
            if ctx.location:
                triggers.append(f"location:{ctx.location}")
            if ctx.time_of_day:
                triggers.append(f"time:{ctx.time_of_day}")
            if ctx.outcome:
                outcomes.append(ctx.outcome)
            if ctx.success is not None:
                outcomes.append(f"success:{str(ctx.success).lower()}")
        unique_triggers = list(dict.fromkeys(triggers))[:MAX_TRIGGERS]
        unique_outcomes = list(dict.fromkeys(outcomes))[:MAX_OUTCOMES]
        return unique_triggers, unique_outcomes

    @staticmethod
    def _pattern_confidence(members: Sequence[BehaviorEvent], strength: float) -> float:
        span_ms = (members[-1].created_at - members[0].created_at).total_seconds() * 1000
        days = math.ceil(span_ms / 86_400_000)
        sample_confidence = min(100.0, len(members) / max(days, 1) * 100)
        return sample_confidence * 0.6 + strength * 0.4

    @staticmethod
    def _recommendation(behavior: str, strength: float, triggers: Sequence[str]) -> str:
        if strength >= 80:
            return f"Excellent {behavior} habit! Focus on maintaining consistency."
        if strength >= 60:
            focus = triggers[0] if triggers else "better timing"
            return f"Good {behavior} pattern. Try optimizing for {focus}."
        if strength >= 40:
            return f"Developing {behavior} habit. Increase frequency and consistency."
        return f"Focus on establishing a regular {behavior} routine. Start small and be consistent."

    # ─── Workout contexts ───────────────────────────────────────────

    def analyze_workout_contexts(
        self,
        events: Iterable[EventLike],
        exercise_logs: Iterable[LogLike] = (),
        entity_types: Optional[Iterable[str]] = WORKOUT_ENTITY_TYPES,
    ) -> List[ContextAnalysisResult]:
        """Rank primary contexts by predictive power for workout success.

        Only events whose entity type is in *entity_types* are considered;
        pass None to use every event.
        """
        allowed = set(entity_types) if entity_types is not None else None
        workout_events = [
            e for e in load_events(events)
            if allowed is None or (e.context.entity_type or e.entity_type) in allowed
        ]
        return compute_context_layer(
            workout_events=workout_events,
            exercise_logs=load_exercise_logs(exercise_logs),
            success_window_ms=SUCCESS_WINDOW_MS,
            min_rpe=SUCCESS_MIN_RPE,
            base_power=PREDICTIVE_POWER_BASE,
            logger=log,
        )
