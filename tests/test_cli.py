from __future__ import annotations

import csv
import json

import pytest

from run_tracker.cli import main


@pytest.fixture
def run_csv(tmp_path, walk_fixes):
    p = tmp_path / "run.csv"
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(["geoTime", "latitude", "longitude", "horizontalAccuracy", "speed"])
        for fix in walk_fixes(60, start_ms=1_700_000_000_000):
            w.writerow([fix.timestamp_ms, f"{fix.latitude:.8f}", f"{fix.longitude:.8f}", fix.accuracy_m, 1.4])
        w.writerow([1_700_000_060_000, "", "", "-1", "-1"])
    return p


def _json_tail(out: str) -> dict:
    return json.loads(out[out.index("{") :])


def test_replay_json_and_trace(run_csv, tmp_path, capsys):
    trace = tmp_path / "out" / "trace.csv"
    assert main(["replay", "--csv", str(run_csv), "--trace", str(trace), "--json"]) == 0

    out = capsys.readouterr().out
    payload = _json_tail(out)
    assert payload["state"] == "ended"
    assert payload["elapsed_ms"] == 59_000
    assert payload["accepted_samples"] == 60
    assert payload["distance_m"] == pytest.approx(59 * 1.4, rel=0.08)
    assert payload["distance_text"].endswith(" km")

    with trace.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 60


def test_replay_in_miles_with_overrides(run_csv, capsys):
    args = ["replay", "--csv", str(run_csv), "--unit", "mi", "--max-accuracy-m", "3", "--json"]
    assert main(args) == 0
    payload = _json_tail(capsys.readouterr().out)
    assert payload["distance_text"] == "0.00 mi"
    assert payload["rejected_samples"] == {"low_accuracy": 60}


def test_invalid_policy_value_exits_with_usage_error(run_csv):
    with pytest.raises(SystemExit) as exc:
        main(["replay", "--csv", str(run_csv), "--history-size", "1"])
    assert exc.value.code == 2


def test_inspect_json(run_csv, capsys):
    assert main(["inspect", "--csv", str(run_csv), "--tz", "Asia/Shanghai", "--json"]) == 0
    out = capsys.readouterr().out
    assert "### 采样间隔（秒）" in out
    payload = _json_tail(out)
    assert payload["fixes"] == 60
    assert payload["rows_skipped"] == 1
    assert payload["intervals_s"]["median"] == 1.0
    assert payload["gaps"] == 0
    assert payload["above_accuracy_limit"] == 0


def test_inspect_bad_timezone(run_csv):
    with pytest.raises(SystemExit) as exc:
        main(["inspect", "--csv", str(run_csv), "--tz", "Mars/Olympus"])
    assert exc.value.code == 2
