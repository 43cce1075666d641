"""Calendar aggregation of health records (daily / weekly / monthly buckets)."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

import pandas as pd

from analytics.errors import InvalidParameterError
from analytics.models import DataPoint
from analytics.statistics import linear_regression
from analytics.time_axis import PointLike, as_time_series, parse_instant
from constants import AGGREGATION_FORMATS


def aggregate_series(points: Iterable[PointLike], aggregation: str = "daily") -> List[Dict[str, Any]]:
    """Average/min/max/count per calendar bucket, oldest first.

    Buckets are UTC calendar days, ISO weeks (``2026-W07``) or months.
    Buckets without observations are omitted.
    """
    if aggregation not in AGGREGATION_FORMATS:
        raise InvalidParameterError(f"Unknown aggregation: {aggregation}")
    series = as_time_series(points)
    if not series:
        return []

    df = pd.DataFrame({
        "date": pd.to_datetime([parse_instant(p.date) for p in series], utc=True),
        "value": [float(p.value) for p in series],
    })
    df["bucket"] = df["date"].dt.strftime(AGGREGATION_FORMATS[aggregation])
    grouped = df.groupby("bucket", sort=True)["value"].agg(["mean", "min", "max", "count"])

    return [
        {
            "date": bucket,
            "value": float(row["mean"]),
            "min": float(row["min"]),
            "max": float(row["max"]),
            "count": int(row["count"]),
        }
        for bucket, row in grouped.iterrows()
    ]


def summarize_trend(aggregated: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Direction of the per-bucket averages, using the bucket index as x."""
    total = sum(int(item.get("count", 0)) for item in aggregated)
    if len(aggregated) < 2:
        return {"trend": "stable", "trendValue": 0.0, "totalRecords": total}

    fit = linear_regression([DataPoint(x=float(i), y=float(item["value"])) for i, item in enumerate(aggregated)])
    if fit.slope > 0:
        direction = "increasing"
    elif fit.slope < 0:
        direction = "decreasing"
    else:
        direction = "stable"
    return {"trend": direction, "trendValue": abs(fit.slope), "totalRecords": total}
