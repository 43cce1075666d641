"""
Tests for the analyze command-line entry point.
"""
import json

from analyze import main


def _write(tmp_path, name, payload):
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


class TestCli:

    def test_trend(self, tmp_path, capsys, weight_series):
        path = _write(tmp_path, "weight.json", weight_series)
        assert main(["trend", "--input", path, "--horizon", "2"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["analysis_status"] == "success"
        assert sum(1 for p in report["forecast"] if p["isPrediction"]) == 2

    def test_trend_failed_input_exit_code(self, tmp_path, capsys):
        path = _write(tmp_path, "bad.json", [{"date": "nope", "value": 1}])
        assert main(["trend", "--input", path]) == 1
        assert json.loads(capsys.readouterr().out)["analysis_status"] == "failed"

    def test_habits(self, tmp_path, capsys, daily_run_events):
        path = _write(tmp_path, "events.json", daily_run_events)
        assert main(["habits", "--input", path, "--as-of", "2024-03-31T21:00:00Z"]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["habitStrength"] == 80
        assert result["sampleSize"] == 30

    def test_patterns(self, tmp_path, capsys, daily_run_events):
        path = _write(tmp_path, "events.json", daily_run_events)
        assert main(["patterns", "--input", path]) == 0
        results = json.loads(capsys.readouterr().out)
        assert results[0]["behaviorType"] == "run"

    def test_contexts(self, tmp_path, capsys, daily_run_events):
        path = _write(tmp_path, "events.json", daily_run_events)
        assert main(["contexts", "--input", path]) == 0
        results = json.loads(capsys.readouterr().out)
        assert results[0]["context"] == "time:morning"
        assert results[0]["frequency"] == 30

    def test_non_array_input(self, tmp_path):
        path = _write(tmp_path, "obj.json", {"date": "2024-01-01"})
        assert main(["habits", "--input", path]) == 1
