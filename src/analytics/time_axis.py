"""Bidirectional mapping between calendar instants and a numeric regression axis.

The numeric axis is integer epoch milliseconds (UTC). Naive timestamps and
date-only strings are read as UTC so the mapping never depends on the host
timezone.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Mapping, Union

import pandas as pd

from analytics.errors import InvalidDateError
from analytics.models import DataPoint, TimeSeriesPoint

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

PointLike = Union[TimeSeriesPoint, Mapping]

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ]|$)")


def parse_instant(value: Union[str, datetime, pd.Timestamp]) -> datetime:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Strings must be ISO-8601 (date-only, or date and time with an optional
    offset); relative words and locale formats are rejected.

    Raises InvalidDateError for anything that does not denote a real instant;
    it never returns NaT.
    """
    if isinstance(value, bool) or not isinstance(value, (str, datetime)):
        raise InvalidDateError(f"Invalid date value: {value!r}")
    if isinstance(value, str) and not _ISO_DATE.match(value.strip()):
        raise InvalidDateError(f"Invalid date string: {value!r}")
    try:
        if isinstance(value, str):
            # ISO-8601 only: no "now"/"today", no month-first guessing
            ts = pd.to_datetime(value.strip(), utc=True, format="ISO8601")
        else:
            ts = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError) as exc:
        raise InvalidDateError(f"Invalid date string: {value}") from exc
    if pd.isna(ts):
        raise InvalidDateError(f"Invalid date string: {value}")
    return ts.to_pydatetime()


def date_to_numeric(date_string: str) -> int:
    """ISO-8601 string → epoch milliseconds."""
    if not isinstance(date_string, str):
        raise InvalidDateError(f"Invalid date string: {date_string!r}")
    instant = parse_instant(date_string)
    delta = instant - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def numeric_to_date(numeric_value: float) -> str:
    """Epoch milliseconds → canonical ``YYYY-MM-DDTHH:MM:SS.sssZ``."""
    instant = EPOCH + timedelta(milliseconds=int(round(numeric_value)))
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def as_time_series(points: Iterable[PointLike]) -> List[TimeSeriesPoint]:
    return [p if isinstance(p, TimeSeriesPoint) else TimeSeriesPoint.from_mapping(p) for p in points]


def transform_health_data_for_regression(points: Iterable[PointLike]) -> List[DataPoint]:
    """Map ``{date, value}`` observations to ``{x, y}`` preserving order.

    An invalid date anywhere in the input aborts the whole transform.
    """
    return [DataPoint(x=float(date_to_numeric(p.date)), y=float(p.value)) for p in as_time_series(points)]
