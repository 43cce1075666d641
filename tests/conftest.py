"""
Shared test configuration.

Adds src/ to sys.path so the flat modules (habit_engine, constants, config)
and the analytics / pipeline packages import without an editable install.
Also provides the small event and series fixtures reused across test files.
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

_src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


AS_OF = datetime(2024, 3, 31, 21, 0, tzinfo=timezone.utc)


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def weight_series():
    """Five daily body-weight readings drifting down."""
    return [
        {"date": "2024-01-01", "value": 80.0, "unit": "kg"},
        {"date": "2024-01-02", "value": 79.8, "unit": "kg"},
        {"date": "2024-01-03", "value": 79.5, "unit": "kg"},
        {"date": "2024-01-04", "value": 79.3, "unit": "kg"},
        {"date": "2024-01-05", "value": 79.0, "unit": "kg"},
    ]


@pytest.fixture
def daily_run_events():
    """One morning run per day for the 30 days ending on AS_OF."""
    start = AS_OF.replace(hour=7) - timedelta(days=29)
    return [
        {
            "createdAt": (start + timedelta(days=i)).isoformat(),
            "entityType": "training_session",
            "context": {"behaviorType": "run", "timeOfDay": "morning", "mood": "good"},
        }
        for i in range(30)
    ]
