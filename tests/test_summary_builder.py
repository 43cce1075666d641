"""
Tests for the summary builder module.

Covers: build_concise_summary fallbacks and the wording picked from the
regression fit, trend direction and forecast.
"""
from pipeline.summary_builder import build_concise_summary


def _report(per_day=-0.25, r2=0.95, p=0.001, trend="decreasing", forecast=None):
    return {
        "unit": "kg",
        "trend": {"trend": trend},
        "regression": {"slopePerDay": per_day, "rSquared": r2, "slopePValue": p},
        "forecast": forecast if forecast is not None else [
            {"date": "2024-01-06T00:00:00.000Z", "value": 78.77, "isPrediction": True,
             "confidenceLower": 78.5, "confidenceUpper": 79.04},
        ],
    }


class TestBuildConciseSummary:

    def test_none_input_returns_defaults(self):
        result = build_concise_summary(None)
        assert "What changed" in result
        assert "Why it matters" in result
        assert "Next 7 days" in result
        assert "Insufficient data" in result

    def test_report_without_regression(self):
        assert "Insufficient data" in build_concise_summary({"regression": None})

    def test_three_bullets(self):
        lines = build_concise_summary(_report()).strip().split("\n")
        assert len(lines) == 3
        assert lines[0].startswith("- What changed:")
        assert lines[1].startswith("- Why it matters:")
        assert lines[2].startswith("- Next day:")

    def test_direction_and_rate(self):
        result = build_concise_summary(_report())
        assert "decreasing by about 0.25 kg per day" in result

    def test_stable_trend(self):
        result = build_concise_summary(_report(per_day=0.0, trend="stable"))
        assert "No measurable trend" in result

    def test_strong_fit_is_reliable(self):
        assert "reliable" in build_concise_summary(_report(r2=0.9, p=0.01))

    def test_weak_fit_is_tentative(self):
        assert "tentative" in build_concise_summary(_report(r2=0.1, p=0.6))

    def test_forecast_range(self):
        result = build_concise_summary(_report())
        assert "78.77 kg by 2024-01-06" in result
        assert "78.5 kg to 79.04 kg" in result

    def test_history_only_forecast(self):
        result = build_concise_summary(_report(forecast=[{"date": "2024-01-01", "value": 1, "isPrediction": False}]))
        assert "Keep logging" in result

    def test_bullets_are_clipped(self):
        result = build_concise_summary(_report(trend="x" * 500, per_day=1.0))
        for line in result.split("\n"):
            assert len(line) <= 280

    def test_label_follows_forecast_length(self):
        forecast = [
            {"date": f"2024-01-0{d}T00:00:00.000Z", "value": 78.0, "isPrediction": True,
             "confidenceLower": 77.0, "confidenceUpper": 79.0}
            for d in range(6, 9)
        ]
        lines = build_concise_summary(_report(forecast=forecast)).split("\n")
        assert lines[2].startswith("- Next 3 days:")

    def test_label_falls_back_to_horizon(self):
        report = {"regression": None, "horizon": 14}
        assert "- Next 14 days:" in build_concise_summary(report)

    def test_neutral_period_change_not_mentioned(self):
        report = _report()
        report["change"] = {"direction": "neutral", "percentage": 0.4}
        assert "Latest period" not in build_concise_summary(report)
