"""Configuration loaded from .env"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")
load_dotenv()

# Forecasting
CONFIDENCE_LEVEL = float(os.getenv("CONFIDENCE_LEVEL", "0.95"))
FORECAST_HORIZON_DAYS = int(os.getenv("FORECAST_HORIZON_DAYS", "7"))
BACKTEST_HOLDOUT = int(os.getenv("BACKTEST_HOLDOUT", "3"))

# Pattern recognition
PATTERN_MIN_CONFIDENCE = float(os.getenv("PATTERN_MIN_CONFIDENCE", "70"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
