"""
Command-line entry point for the analytics core.

    python -m analyze trend  --input weight.json [--aggregation weekly] [--horizon 7]
    python -m analyze habits --input events.json [--patterns patterns.json] [--range 30d]
    python -m analyze patterns --input events.json [--min-confidence 70]
    python -m analyze contexts --input events.json [--logs exercise_logs.json]

Inputs are JSON arrays; results are printed as JSON on stdout.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

import config
from analytics.errors import AnalyticsError
from constants import AGGREGATION_FORMATS, FORECAST_ALGORITHMS, TIME_RANGE_DAYS
from habit_engine import HabitStrengthEngine
from pipeline.trend_report import TrendReportPipeline

log = logging.getLogger("analyze")


def _read_json_array(path: Optional[str]) -> List[Any]:
    if not path:
        return []
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Health & behavior analytics")
    sub = parser.add_subparsers(dest="command", required=True)

    trend = sub.add_parser("trend", help="Trend report for a {date, value} series")
    trend.add_argument("--input", required=True, help="JSON array of {date, value, unit?}")
    trend.add_argument("--aggregation", choices=sorted(AGGREGATION_FORMATS), default="daily")
    trend.add_argument("--algorithm", choices=FORECAST_ALGORITHMS, default="linear-regression")
    trend.add_argument("--horizon", type=int, default=config.FORECAST_HORIZON_DAYS, help="Days to forecast")
    trend.add_argument("--confidence-level", type=float, default=config.CONFIDENCE_LEVEL)
    trend.add_argument("--holdout", type=int, default=config.BACKTEST_HOLDOUT, help="Points held out for backtest")

    habits = sub.add_parser("habits", help="Habit strength over a lookback window")
    habits.add_argument("--input", required=True, help="JSON array of behavior events")
    habits.add_argument("--patterns", help="JSON array of existing patterns")
    habits.add_argument("--range", dest="time_range", choices=sorted(TIME_RANGE_DAYS), default="30d")
    habits.add_argument("--behavior-type", help="Restrict to one behavior type")
    habits.add_argument("--as-of", help="Window end (ISO-8601); defaults to now")

    patterns = sub.add_parser("patterns", help="Recognise behavior patterns")
    patterns.add_argument("--input", required=True, help="JSON array of behavior events")
    patterns.add_argument("--behavior-type", help="Restrict to one behavior type")
    patterns.add_argument("--min-confidence", type=float, default=config.PATTERN_MIN_CONFIDENCE)

    contexts = sub.add_parser("contexts", help="Rank workout contexts by predictive power")
    contexts.add_argument("--input", required=True, help="JSON array of workout events")
    contexts.add_argument("--logs", help="JSON array of exercise logs {createdAt, rpe}")
    return parser


def run(args: argparse.Namespace) -> Any:
    if args.command == "trend":
        pipeline = TrendReportPipeline(
            aggregation=args.aggregation,
            algorithm=args.algorithm,
            horizon=args.horizon,
            confidence_level=args.confidence_level,
            holdout=args.holdout,
        )
        return pipeline.run(_read_json_array(args.input))

    engine = HabitStrengthEngine(min_confidence=config.PATTERN_MIN_CONFIDENCE)
    if args.command == "habits":
        result = engine.calculate_habit_strength(
            _read_json_array(args.input),
            _read_json_array(args.patterns),
            time_range=args.time_range,
            behavior_type=args.behavior_type,
            as_of=args.as_of,
        )
        return result.to_dict()
    if args.command == "patterns":
        results = engine.recognize_patterns(
            _read_json_array(args.input),
            behavior_type=args.behavior_type,
            min_confidence=args.min_confidence,
        )
        return [r.to_dict() for r in results]
    results = engine.analyze_workout_contexts(_read_json_array(args.input), _read_json_array(args.logs))
    return [r.to_dict() for r in results]


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)
    try:
        output = run(args)
    except (AnalyticsError, ValueError, OSError) as e:
        log.error("%s failed: %s", args.command, e)
        return 1
    print(TrendReportPipeline.to_json(output) if isinstance(output, dict) and "analysis_status" in output
          else json.dumps(output, indent=2, ensure_ascii=False))
    if isinstance(output, dict) and output.get("analysis_status") == "failed":
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
