"""
Statistical primitives for health-trend analytics
=================================================
Pure functions over in-memory sequences, used by the forecast builder,
the trend report pipeline and the habit engine.

  • Primitives:   mean, population variance, population covariance.
  • Regression:   OLS line fit via cov(x,y)/var(x) with r² and residual σ.
  • Smoothing:    simple moving average (cumulative-sum sliding window).
  • Accuracy:     MAPE, RMSE, MAE and a bounded 0-100 accuracy score.
  • Uncertainty:  t-distribution prediction interval around a point forecast.

Degrees of freedom: the residual standard deviation divides the residual
sum of squares by n − 2, and the prediction interval uses a t quantile with
n − 2 degrees of freedom, so the two compose.  With exactly two points the
fitted line passes through both and σ is 0.

Degenerate inputs are policies, not errors:
  • empty input to mean / variance / covariance → 0
  • covariance of sequences with different lengths → 0 (the accuracy
    functions raise LengthMismatchError instead)
  • all x identical → slope 0, intercept mean(y), r² 0
  • a zero actual value → MAPE = inf, accuracy = 0
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence

import numpy as np
from scipy import stats as sp_stats

from analytics.errors import (
    InsufficientDataError,
    InvalidParameterError,
    InvalidWindowError,
    LengthMismatchError,
)
from analytics.models import (
    ConfidenceInterval,
    DataPoint,
    LinearRegressionResult,
    PredictionAccuracy,
)

log = logging.getLogger("statistics")


def _as_array(values: Iterable[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=np.float64)


# ─── Primitives ────────────────────────────────────────────


def calculate_mean(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def calculate_variance(values: Sequence[float], mean: Optional[float] = None) -> float:
    """Population variance around *mean* (computed when omitted)."""
    arr = _as_array(values)
    if arr.size < 2:
        return 0.0
    mu = calculate_mean(arr) if mean is None else mean
    return float(np.mean((arr - mu) ** 2))


def calculate_covariance(
    x_values: Sequence[float],
    y_values: Sequence[float],
    x_mean: Optional[float] = None,
    y_mean: Optional[float] = None,
) -> float:
    """Population covariance; 0 when lengths differ or either side is empty."""
    xs = _as_array(x_values)
    ys = _as_array(y_values)
    if xs.size != ys.size or xs.size == 0:
        return 0.0
    mx = calculate_mean(xs) if x_mean is None else x_mean
    my = calculate_mean(ys) if y_mean is None else y_mean
    return float(np.mean((xs - mx) * (ys - my)))


# ─── Regression ────────────────────────────────────────────


def _residual_sd(residuals: np.ndarray) -> float:
    dof = residuals.size - 2
    if dof <= 0:
        return 0.0
    return float(math.sqrt(np.sum(residuals ** 2) / dof))


def linear_regression(data_points: Sequence[DataPoint]) -> LinearRegressionResult:
    """Ordinary least-squares fit y = slope·x + intercept.

        slope     = cov(x, y) / var(x)
        intercept = ȳ − slope·x̄
        r²        = 1 − SS_res / SS_tot      (clamped to [0, 1])
        σ_resid   = sqrt(SS_res / (n − 2))

    Raises InsufficientDataError for fewer than two points and
    InvalidParameterError for NaN or infinite coordinates.
    """
    if len(data_points) < 2:
        raise InsufficientDataError("Linear regression requires at least 2 data points")

    xs = _as_array(p.x for p in data_points)
    ys = _as_array(p.y for p in data_points)
    if not (np.isfinite(xs).all() and np.isfinite(ys).all()):
        raise InvalidParameterError("Linear regression requires finite x and y values")
    x_mean = calculate_mean(xs)
    y_mean = calculate_mean(ys)
    x_var = calculate_variance(xs, x_mean)

    if x_var == 0:
        log.debug("All x values identical (n=%d); returning flat fit", xs.size)
        return LinearRegressionResult(
            slope=0.0,
            intercept=y_mean,
            r_squared=0.0,
            residual_standard_deviation=_residual_sd(ys - y_mean),
        )

    slope = calculate_covariance(xs, ys, x_mean, y_mean) / x_var
    intercept = y_mean - slope * x_mean

    residuals = ys - (slope * xs + intercept)
    ss_tot = float(np.sum((ys - y_mean) ** 2))
    ss_res = float(np.sum(residuals ** 2))
    r_squared = 1.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot

    return LinearRegressionResult(
        slope=float(slope),
        intercept=float(intercept),
        r_squared=max(0.0, min(1.0, r_squared)),
        residual_standard_deviation=_residual_sd(residuals),
    )


def slope_p_value(data_points: Sequence[DataPoint], result: LinearRegressionResult) -> Optional[float]:
    """Two-sided p-value for H₀: slope = 0, using t = b / SE(b) on n − 2 dof.

    None when the test is undefined (n < 3 or constant x).
    """
    n = len(data_points)
    if n < 3:
        return None
    xs = _as_array(p.x for p in data_points)
    sxx = float(np.sum((xs - xs.mean()) ** 2))
    if sxx == 0:
        return None
    se = result.residual_standard_deviation / math.sqrt(sxx)
    if se == 0:
        return 0.0 if result.slope != 0 else 1.0
    t_stat = result.slope / se
    return float(2 * sp_stats.t.sf(abs(t_stat), n - 2))


# ─── Smoothing ─────────────────────────────────────────────


def moving_average(values: Sequence[float], window_size: int) -> List[float]:
    """Trailing simple moving average; output length is n − w + 1."""
    arr = _as_array(values)
    if window_size <= 0:
        raise InvalidWindowError("Window size must be positive")
    if window_size > arr.size:
        raise InvalidWindowError("Window size cannot be larger than the number of values")

    sums = np.cumsum(np.insert(arr, 0, 0.0))
    return [float(v) for v in (sums[window_size:] - sums[:-window_size]) / window_size]


# ─── Accuracy ──────────────────────────────────────────────


def _paired(actual_values: Sequence[float], predicted_values: Sequence[float]):
    actual = _as_array(actual_values)
    predicted = _as_array(predicted_values)
    if actual.size != predicted.size:
        raise LengthMismatchError("Actual and predicted values arrays must have the same length")
    return actual, predicted


def calculate_mape(actual_values: Sequence[float], predicted_values: Sequence[float]) -> float:
    """Mean absolute percentage error ×100; inf if any actual value is 0."""
    actual, predicted = _paired(actual_values, predicted_values)
    if actual.size == 0:
        return 0.0
    if np.any(actual == 0):
        return math.inf
    return float(np.mean(np.abs((actual - predicted) / actual)) * 100)


def calculate_rmse(actual_values: Sequence[float], predicted_values: Sequence[float]) -> float:
    actual, predicted = _paired(actual_values, predicted_values)
    if actual.size == 0:
        return 0.0
    return float(math.sqrt(np.mean((actual - predicted) ** 2)))


def calculate_mae(actual_values: Sequence[float], predicted_values: Sequence[float]) -> float:
    actual, predicted = _paired(actual_values, predicted_values)
    if actual.size == 0:
        return 0.0
    return float(np.mean(np.abs(actual - predicted)))


def calculate_prediction_accuracy(
    actual_values: Sequence[float], predicted_values: Sequence[float]
) -> PredictionAccuracy:
    """Bundle MAPE/RMSE/MAE with accuracy = 100 − clamp(MAPE, 0, 100).

    A non-finite MAPE (zero actual) yields accuracy 0; the MAPE itself is
    reported as inf.
    """
    mape = calculate_mape(actual_values, predicted_values)
    rmse = calculate_rmse(actual_values, predicted_values)
    mae = calculate_mae(actual_values, predicted_values)
    if math.isfinite(mape):
        accuracy = 100.0 - max(0.0, min(100.0, mape))
    else:
        log.debug("MAPE undefined (zero actual value); accuracy forced to 0")
        accuracy = 0.0
    return PredictionAccuracy(mape=mape, rmse=rmse, mae=mae, accuracy=accuracy)


# ─── Uncertainty ───────────────────────────────────────────


def t_critical_value(confidence_level: float, degrees_of_freedom: int) -> float:
    """Two-sided Student-t critical value for the given confidence level."""
    if not 0 < confidence_level < 1:
        raise InvalidParameterError(f"Confidence level must be in (0, 1), got {confidence_level}")
    alpha = 1 - confidence_level
    return float(sp_stats.t.ppf(1 - alpha / 2, max(int(degrees_of_freedom), 1)))


def generate_confidence_interval(
    predicted_value: float,
    confidence_level: float,
    residual_standard_deviation: float,
    sample_size: int,
) -> ConfidenceInterval:
    """Prediction interval for a single new observation.

        margin = t(1 − α/2, n − 2) · σ · sqrt(1 + 1/n)

    Wider for higher confidence, larger σ and smaller n.  Symmetric around
    *predicted_value*.
    """
    if sample_size < 1:
        raise InvalidParameterError(f"Sample size must be at least 1, got {sample_size}")
    if residual_standard_deviation < 0:
        raise InvalidParameterError("Residual standard deviation cannot be negative")
    t_crit = t_critical_value(confidence_level, sample_size - 2)
    margin = t_crit * residual_standard_deviation * math.sqrt(1 + 1 / sample_size)
    return ConfidenceInterval(upper=predicted_value + margin, lower=predicted_value - margin)
