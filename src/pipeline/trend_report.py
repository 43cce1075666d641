"""Health-metric trend report with explicit health signaling."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from statsmodels.tsa.stattools import adfuller

import config
from analytics.aggregation import aggregate_series, summarize_trend
from analytics.errors import AnalyticsError, InsufficientDataError, InvalidParameterError
from analytics.forecast import backtest_forecast, build_forecast
from analytics.scoring import calculate_period_change, score_category, z_score_to_scale
from analytics.statistics import linear_regression, slope_p_value
from analytics.time_axis import PointLike, as_time_series, date_to_numeric, transform_health_data_for_regression
from constants import AGGREGATION_FORMATS, FORECAST_ALGORITHMS, MS_PER_DAY
from pipeline.summary_builder import build_concise_summary

log = logging.getLogger("trend_report")

MIN_ADF_POINTS = 8


class TrendReportPipeline:
    """Aggregate → fit → forecast → backtest → summarize one metric series."""

    def __init__(
        self,
        aggregation: str = "daily",
        algorithm: str = "linear-regression",
        horizon: Optional[int] = None,
        confidence_level: Optional[float] = None,
        holdout: Optional[int] = None,
    ):
        self.aggregation = aggregation
        self.algorithm = algorithm
        self.horizon = config.FORECAST_HORIZON_DAYS if horizon is None else horizon
        self.confidence_level = config.CONFIDENCE_LEVEL if confidence_level is None else confidence_level
        self.holdout = config.BACKTEST_HOLDOUT if holdout is None else holdout

    def run(self, points: Iterable[PointLike]) -> Dict[str, Any]:
        """Build the report; never raises for analytics input problems.

        ``analysis_status`` is ``success``, ``degraded`` (some layer lacked
        data) or ``failed`` (input or parameters rejected), with reasons
        listed in ``degraded_reasons``.
        """
        report: Dict[str, Any] = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "analysis_status": "success",
            "degraded_reasons": [],
            "aggregation": self.aggregation,
            "horizon": self.horizon,
            "unit": None,
            "data": [],
            "trend": {},
            "change": None,
            "latestScore": None,
            "regression": None,
            "forecast": [],
            "backtest": None,
        }

        try:
            self._validate()
        except AnalyticsError as e:
            return self._fail(report, "invalid_parameters", e)

        try:
            series = sorted(as_time_series(points), key=lambda p: date_to_numeric(p.date))
            report["unit"] = next((p.unit for p in series if p.unit), None)
            report["data"] = aggregate_series(series, self.aggregation)
            report["trend"] = summarize_trend(report["data"])
        except AnalyticsError as e:
            return self._fail(report, "invalid_input", e)

        data = report["data"]
        if len(data) >= 2:
            report["change"] = calculate_period_change(data[-1]["value"], data[-2]["value"])
        values = np.array([p.value for p in series], dtype=np.float64)
        if values.size >= 2:
            report["latestScore"] = z_score_to_scale(values[-1], float(values.mean()), float(values.std()))

        try:
            report["regression"] = self._regression(series)
        except InsufficientDataError as e:
            log.info("   %s", e)
            self._degrade(report, "insufficient_points")

        try:
            report["forecast"] = [
                p.to_dict() for p in build_forecast(series, self.algorithm, self.horizon, self.confidence_level)
            ]
        except AnalyticsError as e:
            log.warning("Forecast stage failed: %s", e)
            self._degrade(report, "forecast_failed")
        else:
            if len(series) < 2:
                self._degrade(report, "forecast_history_only")

        try:
            backtest = backtest_forecast(series, self.holdout)
        except InsufficientDataError:
            self._degrade(report, "backtest_skipped")
        except AnalyticsError as e:
            log.warning("Backtest stage failed: %s", e)
            self._degrade(report, "backtest_failed")
        else:
            backtest["rating"] = score_category(backtest["accuracy"]["accuracy"])
            report["backtest"] = backtest

        report["summary"] = build_concise_summary(report)
        log.info(
            "Trend report: %d points, %d buckets, status=%s",
            len(series), len(report["data"]), report["analysis_status"],
        )
        if report["degraded_reasons"]:
            log.warning("Trend report degraded: %s", ", ".join(report["degraded_reasons"]))
        return report

    def _validate(self) -> None:
        if self.aggregation not in AGGREGATION_FORMATS:
            raise InvalidParameterError(f"Unknown aggregation: {self.aggregation}")
        if self.algorithm not in FORECAST_ALGORITHMS:
            raise InvalidParameterError(f"Unknown forecast algorithm: {self.algorithm}")
        if self.horizon < 0:
            raise InvalidParameterError(f"Prediction horizon cannot be negative, got {self.horizon}")
        if not 0 < self.confidence_level < 1:
            raise InvalidParameterError(f"Confidence level must be in (0, 1), got {self.confidence_level}")
        if self.holdout < 1:
            raise InvalidParameterError(f"Holdout must be at least 1, got {self.holdout}")

    @staticmethod
    def _fail(report: Dict[str, Any], reason: str, error: Exception) -> Dict[str, Any]:
        log.error("Trend report rejected (%s): %s", reason, error)
        report["analysis_status"] = "failed"
        report["degraded_reasons"] = [reason]
        report["error"] = str(error)
        report["summary"] = build_concise_summary(None)
        return report

    @staticmethod
    def _degrade(report: Dict[str, Any], reason: str) -> None:
        if report["analysis_status"] == "success":
            report["analysis_status"] = "degraded"
        report["degraded_reasons"].append(reason)

    @staticmethod
    def _regression(series) -> Dict[str, Any]:
        data_points = transform_health_data_for_regression(series)
        fit = linear_regression(data_points)
        values = [p.value for p in series]

        # ADF stationarity test, one lag
        is_stationary: Optional[bool] = None
        if len(values) >= MIN_ADF_POINTS and len(set(values)) > 1:
            try:
                _, adf_p, *_ = adfuller(values, maxlag=1)
                is_stationary = bool(adf_p < 0.05)
            except (ValueError, np.linalg.LinAlgError) as e:
                log.debug("ADF test skipped: %s", e)

        out = fit.to_dict()
        out["slopePerDay"] = fit.slope * MS_PER_DAY
        out["slopePValue"] = slope_p_value(data_points, fit)
        out["isStationary"] = is_stationary
        out["sampleSize"] = len(data_points)
        return out

    @staticmethod
    def overall_status(reports: List[Dict[str, Any]]) -> str:
        statuses = {r.get("analysis_status") for r in reports}
        if not reports or "failed" in statuses:
            return "failed"
        if "degraded" in statuses:
            return "degraded"
        return "success"

    @staticmethod
    def to_json(report: Dict[str, Any]) -> str:
        """Serialise with non-finite floats mapped to null."""
        def clean(value):
            if isinstance(value, float) and not math.isfinite(value):
                return None
            if isinstance(value, dict):
                return {k: clean(v) for k, v in value.items()}
            if isinstance(value, list):
                return [clean(v) for v in value]
            return value

        return json.dumps(clean(report), indent=2, ensure_ascii=False)
