"""Future-value projection from fitted trends.

Predicted health metrics are floored at 0: the metrics handled here
(weight, steps, sleep hours, heart rate, ...) cannot be negative, so a
declining line is not extrapolated below zero.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from analytics.errors import InsufficientDataError, InvalidParameterError
from analytics.models import LinearRegressionResult, PredictedPoint, PredictionAccuracy
from analytics.statistics import (
    calculate_mean,
    calculate_prediction_accuracy,
    generate_confidence_interval,
    linear_regression,
)
from analytics.time_axis import (
    PointLike,
    as_time_series,
    date_to_numeric,
    numeric_to_date,
    transform_health_data_for_regression,
)
from constants import (
    FORECAST_ALGORITHMS,
    MOVING_AVERAGE_BAND_PER_STEP,
    MOVING_AVERAGE_FORECAST_WINDOW,
    MS_PER_DAY,
)

log = logging.getLogger("forecast")


def generate_future_predictions(
    regression_result: LinearRegressionResult,
    last_data_point: PointLike,
    future_days: int,
) -> List[PredictedPoint]:
    """One prediction per calendar day after *last_data_point*."""
    if future_days < 0:
        raise InvalidParameterError(f"Prediction horizon cannot be negative, got {future_days}")
    last = as_time_series([last_data_point])[0]
    last_ts = date_to_numeric(last.date)

    predictions: List[PredictedPoint] = []
    for i in range(1, future_days + 1):
        future_ts = last_ts + i * MS_PER_DAY
        predicted = regression_result.predict(future_ts)
        predictions.append(
            PredictedPoint(date=numeric_to_date(future_ts), value=max(0.0, predicted), is_prediction=True)
        )
    return predictions


def _round2(value: float) -> float:
    return round(value, 2)


def _linear_forecast(series, horizon: int, confidence_level: float, unit: Optional[str]) -> List[PredictedPoint]:
    data_points = transform_health_data_for_regression(series)
    fit = linear_regression(data_points)
    out: List[PredictedPoint] = []
    for point in generate_future_predictions(fit, series[-1], horizon):
        interval = generate_confidence_interval(
            point.value,
            confidence_level=confidence_level,
            residual_standard_deviation=fit.residual_standard_deviation,
            sample_size=len(data_points),
        )
        out.append(
            PredictedPoint(
                date=point.date,
                value=_round2(point.value),
                unit=unit,
                algorithm="linear-regression",
                confidence_upper=_round2(interval.upper),
                confidence_lower=_round2(max(0.0, interval.lower)),
            )
        )
    return out


def _moving_average_forecast(series, horizon: int, unit: Optional[str]) -> List[PredictedPoint]:
    window = min(MOVING_AVERAGE_FORECAST_WINDOW, len(series))
    recent = [p.value for p in series[-window:]]
    average = calculate_mean(recent)
    step = (recent[-1] - recent[0]) / (len(recent) - 1) if len(recent) > 1 else 0.0

    last_ts = date_to_numeric(series[-1].date)
    out: List[PredictedPoint] = []
    for i in range(1, horizon + 1):
        predicted = max(0.0, average + step * i)
        band = abs(predicted) * MOVING_AVERAGE_BAND_PER_STEP * i
        out.append(
            PredictedPoint(
                date=numeric_to_date(last_ts + i * MS_PER_DAY),
                value=_round2(predicted),
                unit=unit,
                algorithm="moving-average",
                confidence_upper=_round2(predicted + band),
                confidence_lower=_round2(max(0.0, predicted - band)),
            )
        )
    return out


def build_forecast(
    points: Iterable[PointLike],
    algorithm: str = "linear-regression",
    horizon: int = 7,
    confidence_level: float = 0.95,
) -> List[PredictedPoint]:
    """Historical points (``is_prediction=False``) followed by *horizon* predictions.

    Input is sorted by date first. With fewer than two observations only the
    history is returned.
    """
    if algorithm not in FORECAST_ALGORITHMS:
        raise InvalidParameterError(f"Unknown forecast algorithm: {algorithm}")
    if horizon < 0:
        raise InvalidParameterError(f"Prediction horizon cannot be negative, got {horizon}")

    series = sorted(as_time_series(points), key=lambda p: date_to_numeric(p.date))
    unit = next((p.unit for p in series if p.unit), None)
    history = [
        PredictedPoint(date=p.date, value=p.value, is_prediction=False, unit=p.unit)
        for p in series
    ]
    if len(series) < 2:
        log.info("Forecast skipped: %d observation(s), need >= 2", len(series))
        return history

    if algorithm == "linear-regression":
        predictions = _linear_forecast(series, horizon, confidence_level, unit)
    else:
        predictions = _moving_average_forecast(series, horizon, unit)
    log.debug("Forecast %s: %d history + %d predictions", algorithm, len(history), len(predictions))
    return history + predictions


def backtest_forecast(points: Iterable[PointLike], holdout: int) -> Dict[str, Any]:
    """Fit on all but the last *holdout* observations and score the tail.

    Predictions for the held-out points are evaluated on their own dates, so
    irregular spacing is handled.
    """
    series = sorted(as_time_series(points), key=lambda p: date_to_numeric(p.date))
    if holdout < 1:
        raise InvalidParameterError(f"Holdout must be at least 1, got {holdout}")
    if len(series) - holdout < 2:
        raise InsufficientDataError(
            f"Backtest needs at least 2 training points (have {len(series)} with holdout {holdout})"
        )

    train, test = series[:-holdout], series[-holdout:]
    fit = linear_regression(transform_health_data_for_regression(train))
    actual = [p.value for p in test]
    predicted = [max(0.0, fit.predict(date_to_numeric(p.date))) for p in test]
    accuracy: PredictionAccuracy = calculate_prediction_accuracy(actual, predicted)
    return {
        "trainSize": len(train),
        "holdout": len(test),
        "actual": actual,
        "predicted": [_round2(v) for v in predicted],
        "accuracy": accuracy.to_dict(),
    }
