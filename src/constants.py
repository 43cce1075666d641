"""
Shared constants used across multiple modules.
Single source of truth for score weights, thresholds and time ranges.
"""

MS_PER_DAY = 24 * 60 * 60 * 1000

# Lookback windows for habit analysis, in days ("1y" is a calendar year)
TIME_RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}

# Sub-periods compared when classifying a habit trend
TREND_PERIODS = {
    "7d": 2,
    "30d": 4,
    "90d": 8,
    "1y": 8,
}
MIN_TREND_EVENTS = 4

# Habit strength composite weights (frequency, consistency, context)
HABIT_WEIGHTS = (0.4, 0.4, 0.2)

# Confidence = 0.7 * sample-size confidence + 0.3 * consistency
SAMPLE_CONFIDENCE_WEIGHT = 0.7
CONSISTENCY_CONFIDENCE_WEIGHT = 0.3
FULL_CONFIDENCE_SAMPLE = 30

MAX_PREDICTIVE_FACTORS = 5

# Pattern recognition
MIN_PATTERN_EVENTS = 5
DEFAULT_MIN_CONFIDENCE = 70
PATTERN_WEIGHTS = (0.5, 0.3, 0.2)
FREQUENCY_LABELS = [
    (0.8, "daily"),
    (0.4, "frequent"),
    (0.1, "weekly"),
]
MAX_TRIGGERS = 5
MAX_OUTCOMES = 3
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Context analysis
WORKOUT_ENTITY_TYPES = {"training_session", "exercise_log", "workout_completed"}
SUCCESS_WINDOW_MS = 2 * 60 * 60 * 1000
SUCCESS_MIN_RPE = 6
PREDICTIVE_POWER_BASE = 50

# Forecasting
FORECAST_ALGORITHMS = ("linear-regression", "moving-average")
MOVING_AVERAGE_FORECAST_WINDOW = 5
MOVING_AVERAGE_BAND_PER_STEP = 0.05

# Aggregation labels (strftime)
AGGREGATION_FORMATS = {
    "daily": "%Y-%m-%d",
    "weekly": "%G-W%V",
    "monthly": "%Y-%m",
}

# Period-over-period change below this percentage is "neutral"
NEUTRAL_CHANGE_PCT = 1.0
