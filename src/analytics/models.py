"""Value types passed into and returned from the analytics core.

Results serialise with ``to_dict()`` into camelCase, JSON-safe dictionaries,
which is the shape the web layer returns to its clients.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from analytics.errors import InvalidParameterError

Primitive = Union[str, int, float, bool]


def _json_number(value: float) -> Optional[float]:
    """Map non-finite floats to None (JSON has no Infinity/NaN)."""
    if value is None or not math.isfinite(value):
        return None
    return value


# ─── Observations ──────────────────────────────────────────


@dataclass(frozen=True)
class DataPoint:
    x: float
    y: float


@dataclass(frozen=True)
class TimeSeriesPoint:
    date: str
    value: float
    unit: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "TimeSeriesPoint":
        if "date" not in raw or "value" not in raw:
            raise InvalidParameterError("time-series point requires 'date' and 'value'")
        try:
            value = float(raw["value"])
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError(f"Invalid value: {raw['value']!r}") from exc
        if not math.isfinite(value):
            raise InvalidParameterError(f"Value must be finite, got {raw['value']!r}")
        return cls(date=raw["date"], value=value, unit=raw.get("unit"))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"date": self.date, "value": self.value}
        if self.unit is not None:
            out["unit"] = self.unit
        return out


# ─── Regression / forecast results ─────────────────────────


@dataclass(frozen=True)
class LinearRegressionResult:
    slope: float
    intercept: float
    r_squared: float
    residual_standard_deviation: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slope": self.slope,
            "intercept": self.intercept,
            "rSquared": self.r_squared,
            "residualStandardDeviation": self.residual_standard_deviation,
        }


@dataclass(frozen=True)
class ConfidenceInterval:
    upper: float
    lower: float

    def to_dict(self) -> Dict[str, Any]:
        return {"upper": self.upper, "lower": self.lower}


@dataclass(frozen=True)
class PredictionAccuracy:
    mape: float
    rmse: float
    mae: float
    accuracy: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mape": _json_number(self.mape),
            "rmse": self.rmse,
            "mae": self.mae,
            "accuracy": self.accuracy,
        }


@dataclass(frozen=True)
class PredictedPoint:
    date: str
    value: float
    is_prediction: bool = True
    unit: Optional[str] = None
    algorithm: Optional[str] = None
    confidence_upper: Optional[float] = None
    confidence_lower: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "date": self.date,
            "value": self.value,
            "isPrediction": self.is_prediction,
        }
        if self.unit is not None:
            out["unit"] = self.unit
        if self.algorithm is not None:
            out["algorithm"] = self.algorithm
        if self.confidence_upper is not None:
            out["confidenceUpper"] = self.confidence_upper
            out["confidenceLower"] = self.confidence_lower
        return out


# ─── Behavioral inputs ─────────────────────────────────────


_CONTEXT_ALIASES = {
    "mood": "mood",
    "location": "location",
    "timeOfDay": "time_of_day",
    "time_of_day": "time_of_day",
    "energyLevel": "energy_level",
    "energy_level": "energy_level",
    "success": "success",
    "outcome": "outcome",
    "completed": "completed",
    "behaviorType": "behavior_type",
    "behavior_type": "behavior_type",
    "entityType": "entity_type",
    "entity_type": "entity_type",
}


@dataclass(frozen=True)
class EventContext:
    """Situational tags attached to a behavioral event.

    Known keys get explicit attributes; any other primitive-valued key is kept
    in ``extra``. Nested or null values are dropped.
    """

    mood: Optional[str] = None
    location: Optional[str] = None
    time_of_day: Optional[str] = None
    energy_level: Optional[Primitive] = None
    success: Optional[bool] = None
    outcome: Optional[str] = None
    completed: Optional[bool] = None
    behavior_type: Optional[str] = None
    entity_type: Optional[str] = None
    extra: Dict[str, Primitive] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "EventContext":
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise InvalidParameterError(f"event context must be an object, got {type(raw).__name__}")
        known: Dict[str, Any] = {}
        extra: Dict[str, Primitive] = {}
        for key, value in raw.items():
            if value is None or not isinstance(value, (str, int, float, bool)):
                continue
            attr = _CONTEXT_ALIASES.get(key)
            if attr is None:
                extra[key] = value
            elif attr in ("success", "completed"):
                if isinstance(value, str):
                    value = value.strip().lower() in ("true", "1", "yes")
                known[attr] = bool(value)
            elif attr == "energy_level":
                known[attr] = value
            else:
                known[attr] = str(value)
        return cls(extra=extra, **known)

    def items(self) -> List[tuple]:
        """(camelCase key, value) pairs for every populated field."""
        pairs = [
            ("mood", self.mood),
            ("location", self.location),
            ("timeOfDay", self.time_of_day),
            ("energyLevel", self.energy_level),
            ("success", self.success),
            ("outcome", self.outcome),
            ("completed", self.completed),
            ("behaviorType", self.behavior_type),
            ("entityType", self.entity_type),
        ]
        out = [(k, v) for k, v in pairs if v is not None]
        out.extend(self.extra.items())
        return out

    def to_dict(self) -> Dict[str, Primitive]:
        return dict(self.items())


@dataclass(frozen=True)
class BehaviorEvent:
    created_at: datetime
    context: EventContext = field(default_factory=EventContext)
    event_name: Optional[str] = None
    entity_type: Optional[str] = None

    @property
    def behavior_key(self) -> str:
        return self.context.behavior_type or self.entity_type or "unknown"


@dataclass(frozen=True)
class ExerciseLog:
    created_at: datetime
    rpe: Optional[float] = None


@dataclass(frozen=True)
class BehaviorPattern:
    """A previously recognised pattern for a user/behavior."""

    behavior_type: str
    strength: float = 0.0
    confidence: float = 0.0
    triggers: List[str] = field(default_factory=list)
    context: Dict[str, Primitive] = field(default_factory=dict)


# ─── Behavioral results ────────────────────────────────────


@dataclass(frozen=True)
class HabitStrengthCalculation:
    habit_strength: int
    consistency_score: int
    frequency_score: int
    context_score: int
    trend: str
    confidence: int
    sample_size: int
    predictive_factors: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habitStrength": self.habit_strength,
            "consistencyScore": self.consistency_score,
            "frequencyScore": self.frequency_score,
            "contextScore": self.context_score,
            "trend": self.trend,
            "confidence": self.confidence,
            "sampleSize": self.sample_size,
            "predictiveFactors": list(self.predictive_factors),
        }


@dataclass(frozen=True)
class PatternRecognitionResult:
    pattern_id: str
    behavior_type: str
    strength: int
    frequency: float
    consistency: float
    triggers: List[str]
    outcomes: List[str]
    confidence: int
    recommendation: str
    peak_times: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patternId": self.pattern_id,
            "behaviorType": self.behavior_type,
            "strength": self.strength,
            "frequency": self.frequency,
            "consistency": self.consistency,
            "triggers": list(self.triggers),
            "outcomes": list(self.outcomes),
            "confidence": self.confidence,
            "recommendation": self.recommendation,
            "peakTimes": list(self.peak_times),
        }


@dataclass(frozen=True)
class ContextAnalysisResult:
    context: str
    success_rate: int
    frequency: int
    predictive_power: int
    conditions: Dict[str, Optional[str]]
    optimization: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "context": self.context,
            "successRate": self.success_rate,
            "frequency": self.frequency,
            "predictivePower": self.predictive_power,
            "conditions": dict(self.conditions),
            "optimization": self.optimization,
        }
