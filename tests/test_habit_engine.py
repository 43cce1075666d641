"""
Tests for the habit strength engine.

Covers: window filtering, sub-scores and the composite, trend detection,
predictive factors, pattern recognition and workout context ranking.
"""
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from analytics.errors import InvalidDateError, InvalidParameterError
from analytics.models import BehaviorEvent, EventContext
from analytics.scoring import round_half_up
from habit_engine import HabitStrengthEngine, load_events
from constants import HABIT_WEIGHTS


@pytest.fixture
def engine():
    return HabitStrengthEngine()


def _event(ts, behavior="run", **context):
    ctx = {"behaviorType": behavior}
    ctx.update(context)
    return {"createdAt": ts, "entityType": "training_session", "context": ctx}


# ─── Input coercion ───────────────────────────────────────────


class TestLoadEvents:

    def test_mapping_and_model_inputs(self):
        events = load_events([
            _event("2024-03-01T07:00:00Z", mood="good"),
            BehaviorEvent(created_at=datetime(2024, 3, 2, 7), context=EventContext(behavior_type="run")),
        ])
        assert events[0].context.mood == "good"
        assert events[0].behavior_key == "run"
        assert events[1].created_at.tzinfo is not None

    def test_missing_timestamp_raises(self):
        with pytest.raises(InvalidParameterError):
            load_events([{"context": {}}])

    def test_bad_timestamp_raises(self):
        with pytest.raises(InvalidDateError):
            load_events([{"createdAt": "yesterday-ish"}])

    @pytest.mark.parametrize("context", [["mood", "good"], "mood=good", 3])
    def test_non_object_context_raises(self, context):
        with pytest.raises(InvalidParameterError):
            load_events([{"createdAt": "2024-03-01T07:00:00Z", "context": context}])

    def test_null_context_is_empty(self):
        (event,) = load_events([{"createdAt": "2024-03-01T07:00:00Z", "context": None}])
        assert event.context.to_dict() == {}

    def test_context_coercion(self):
        ctx = EventContext.from_mapping({"success": "true", "energyLevel": 7, "weather": "sunny", "nested": {"a": 1}})
        assert ctx.success is True
        assert ctx.energy_level == 7
        assert ctx.extra == {"weather": "sunny"}


# ─── Habit strength ───────────────────────────────────────────


class TestHabitStrength:

    def test_perfect_daily_habit(self, engine, daily_run_events, as_of):
        result = engine.calculate_habit_strength(daily_run_events, time_range="30d", as_of=as_of)
        assert result.sample_size == 30
        assert result.frequency_score == 100
        assert result.consistency_score == 100
        assert result.context_score == 0
        assert result.habit_strength == 80
        assert result.confidence == 100
        assert result.trend in {"increasing", "decreasing", "stable"}

    def test_composite_matches_weighted_sub_scores(self, engine, daily_run_events, as_of):
        sparse = daily_run_events[::3]
        result = engine.calculate_habit_strength(sparse, time_range="30d", as_of=as_of)
        w_f, w_c, w_x = HABIT_WEIGHTS
        expected = round_half_up(
            result.frequency_score * w_f + result.consistency_score * w_c + result.context_score * w_x
        )
        assert result.habit_strength == expected
        assert 0 <= result.habit_strength <= 100
        assert result.frequency_score == 33

    def test_no_events(self, engine, as_of):
        result = engine.calculate_habit_strength([], time_range="7d", as_of=as_of)
        # an all-zero daily series has no dispersion
        assert result.consistency_score == 100
        assert result.frequency_score == 0
        assert result.habit_strength == 40
        assert result.confidence == 30
        assert result.sample_size == 0
        assert result.trend == "stable"
        assert result.predictive_factors == []

    def test_events_outside_window_ignored(self, engine, as_of):
        events = [
            _event((as_of + timedelta(hours=1)).isoformat()),
            _event((as_of - timedelta(days=10)).isoformat()),
            _event((as_of - timedelta(days=2)).isoformat()),
        ]
        result = engine.calculate_habit_strength(events, time_range="7d", as_of=as_of)
        assert result.sample_size == 1

    def test_behavior_type_filter(self, engine, daily_run_events, as_of):
        result = engine.calculate_habit_strength(daily_run_events, behavior_type="swim", as_of=as_of)
        assert result.sample_size == 0
        assert result.habit_strength == 40
        assert result.frequency_score == 0

    def test_patterns_feed_context_and_factors(self, engine, daily_run_events, as_of):
        patterns = [
            {"behaviorType": "run", "strength": 80, "confidence": 60,
             "triggers": ["morning", "sunlight"], "context": {"location": "park"}},
            {"behaviorType": "run", "strength": 60, "confidence": 80, "triggers": ["morning"]},
            {"behaviorType": "swim", "strength": 10, "confidence": 10, "triggers": ["pool"]},
        ]
        result = engine.calculate_habit_strength(
            daily_run_events, patterns, time_range="30d", behavior_type="run", as_of=as_of
        )
        assert result.context_score == 70
        assert result.habit_strength == round_half_up(100 * 0.4 + 100 * 0.4 + 70 * 0.2)
        assert result.predictive_factors[0] == "morning"
        assert set(result.predictive_factors) == {"morning", "sunlight", "park"}

    @pytest.mark.parametrize("time_range", ["7d", "30d", "90d", "1y"])
    @pytest.mark.parametrize("seed", range(6))
    def test_composite_bounds_on_random_streams(self, engine, as_of, time_range, seed):
        rng = np.random.default_rng(seed)
        n_events = int(rng.integers(0, 120))
        offsets = rng.uniform(0, 400 * 24, size=n_events)
        events = [
            _event((as_of - timedelta(hours=float(h))).isoformat(), behavior=str(rng.choice(["run", "read"])))
            for h in offsets
        ]
        patterns = [
            {"behaviorType": "run", "strength": float(rng.uniform(-20, 150)),
             "confidence": float(rng.uniform(-20, 150)), "triggers": ["morning"]}
            for _ in range(int(rng.integers(0, 4)))
        ]
        result = engine.calculate_habit_strength(events, patterns, time_range=time_range, as_of=as_of)
        w_f, w_c, w_x = HABIT_WEIGHTS
        assert 0 <= result.habit_strength <= 100
        for score in (result.frequency_score, result.consistency_score, result.context_score, result.confidence):
            assert 0 <= score <= 100
        assert result.habit_strength == round_half_up(
            result.frequency_score * w_f + result.consistency_score * w_c + result.context_score * w_x
        )

    def test_unknown_time_range(self, engine):
        with pytest.raises(InvalidParameterError):
            engine.calculate_habit_strength([], time_range="2w")

    def test_year_window_spans_calendar_year(self, as_of):
        # 2023-04-01 .. 2024-03-31 includes 29 February
        assert len(HabitStrengthEngine._window_days(as_of, "1y")) == 366
        assert len(HabitStrengthEngine._window_days(as_of, "90d")) == 90

    def test_to_dict_shape(self, engine, daily_run_events, as_of):
        d = engine.calculate_habit_strength(daily_run_events, as_of=as_of).to_dict()
        assert set(d) == {
            "habitStrength", "consistencyScore", "frequencyScore", "contextScore",
            "trend", "confidence", "sampleSize", "predictiveFactors",
        }


class TestHabitTrend:

    def _week(self, as_of, early, late):
        base_early = datetime(2024, 3, 25, 8, tzinfo=timezone.utc)
        base_late = datetime(2024, 3, 30, 8, tzinfo=timezone.utc)
        return (
            [_event((base_early + timedelta(hours=i)).isoformat()) for i in range(early)]
            + [_event((base_late + timedelta(hours=i)).isoformat()) for i in range(late)]
        )

    def test_increasing(self, engine, as_of):
        result = engine.calculate_habit_strength(self._week(as_of, 1, 4), time_range="7d", as_of=as_of)
        assert result.trend == "increasing"

    def test_decreasing(self, engine, as_of):
        result = engine.calculate_habit_strength(self._week(as_of, 4, 1), time_range="7d", as_of=as_of)
        assert result.trend == "decreasing"

    def test_too_few_events_is_stable(self, engine, as_of):
        result = engine.calculate_habit_strength(self._week(as_of, 0, 3), time_range="7d", as_of=as_of)
        assert result.trend == "stable"


# ─── Pattern recognition ──────────────────────────────────────


class TestRecognizePatterns:

    def test_fewer_than_five_events(self, engine, daily_run_events):
        assert engine.recognize_patterns(daily_run_events[:4]) == []

    def test_daily_morning_runs(self, engine, daily_run_events):
        results = engine.recognize_patterns(daily_run_events)
        assert len(results) == 1
        pattern = results[0]
        latest = datetime(2024, 3, 31, 7, tzinfo=timezone.utc)
        assert pattern.pattern_id == f"pattern_run_{int(latest.timestamp() * 1000)}"
        assert pattern.behavior_type == "run"
        assert pattern.frequency == 1.0
        assert pattern.triggers == ["mood:good", "time:morning"]
        assert pattern.outcomes == []
        assert pattern.peak_times == ["7:00", "Saturday"]
        assert pattern.strength == 83
        assert pattern.confidence == 93
        assert pattern.recommendation.startswith("Excellent run habit")
        assert 0 <= pattern.consistency <= 100

    def test_pattern_id_is_deterministic(self, engine, daily_run_events):
        first = engine.recognize_patterns(daily_run_events)
        second = engine.recognize_patterns(list(reversed(daily_run_events)))
        assert first[0].pattern_id == second[0].pattern_id

    def test_confidence_threshold(self, engine, daily_run_events):
        assert engine.recognize_patterns(daily_run_events, min_confidence=100) == []

    def test_behavior_type_filter(self, engine, daily_run_events):
        assert engine.recognize_patterns(daily_run_events, behavior_type="swim") == []

    def test_groups_by_behavior(self, engine, daily_run_events):
        swims = [
            _event(e["createdAt"], behavior="swim", outcome="relaxed", success=True)
            for e in daily_run_events
        ]
        results = engine.recognize_patterns(daily_run_events + swims, min_confidence=0)
        by_type = {r.behavior_type: r for r in results}
        assert set(by_type) == {"run", "swim"}
        assert by_type["swim"].outcomes == ["relaxed", "success:true"]


# ─── Workout contexts ─────────────────────────────────────────


class TestWorkoutContexts:

    @pytest.fixture
    def events(self):
        return [
            _event("2024-03-01T07:00:00Z", timeOfDay="morning"),
            _event("2024-03-02T07:00:00Z", timeOfDay="morning"),
            _event("2024-03-03T19:00:00Z", timeOfDay="evening"),
            _event("2024-03-04T19:00:00Z", timeOfDay="evening"),
            _event("2024-03-05T12:00:00Z", location="gym", completed=True),
            {"createdAt": "2024-03-05T13:00:00Z", "entityType": "meal_logged", "context": {"timeOfDay": "noon"}},
        ]

    @pytest.fixture
    def logs(self):
        return [
            {"createdAt": "2024-03-01T08:00:00Z", "rpe": 7},
            {"createdAt": "2024-03-02T07:30:00Z", "rpe": 8},
            {"createdAt": "2024-03-03T19:30:00Z", "rpe": 3},
        ]

    def test_ranking(self, engine, events, logs):
        results = engine.analyze_workout_contexts(events, logs)
        assert [r.context for r in results] == ["time:morning", "location:gym", "time:evening"]
        morning, gym, evening = results
        assert morning.success_rate == 100
        assert morning.frequency == 2
        assert morning.predictive_power == 90
        assert gym.predictive_power == 90
        assert evening.success_rate == 0
        assert evening.predictive_power == 0

    def test_conditions_and_optimization(self, engine, events, logs):
        morning = engine.analyze_workout_contexts(events, logs)[0]
        assert morning.conditions["timeOfDay"] == "morning"
        assert morning.optimization.startswith("Excellent context!")
        evening = engine.analyze_workout_contexts(events, logs)[-1]
        assert "avoiding time:evening" in evening.optimization

    def test_window_is_exclusive(self, engine):
        results = engine.analyze_workout_contexts(
            [_event("2024-03-01T07:00:00Z", timeOfDay="morning")],
            [{"createdAt": "2024-03-01T09:00:00Z", "rpe": 9}],
        )
        assert results[0].success_rate == 0

    def test_no_workouts(self, engine):
        assert engine.analyze_workout_contexts([]) == []

    def test_sorted_by_predictive_power(self, engine, events, logs):
        powers = [r.predictive_power for r in engine.analyze_workout_contexts(events, logs)]
        assert powers == sorted(powers, reverse=True)
