from __future__ import annotations

from datetime import timezone

import pytest

from run_tracker.inspect import inspect_fixes, spread
from run_tracker.timeutils import dt_from_epoch_ms, format_hhmmss, tzinfo_from_name


def test_inspect_fixes(make_fix):
    fixes = [
        make_fix(0.0, 0.0, 3000, accuracy_m=5.0),
        make_fix(0.0, 1.0, 1000, accuracy_m=30.0),
        make_fix(0.0, 2.0, 1000, accuracy_m=4.0),
        make_fix(0.0, 3.0, 20_000, accuracy_m=6.0),
    ]
    res = inspect_fixes(fixes, max_accuracy_m=25.0)

    assert res.fixes == 4
    assert res.min_time_ms == 1000
    assert res.max_time_ms == 20_000
    assert res.duration_s == 19.0
    assert res.duplicates_time == 1
    assert res.gaps == 1
    assert res.above_accuracy_limit == 1
    assert res.accuracy_m.min == 4.0
    assert res.accuracy_m.median == 5.5
    assert res.accuracy_m.max == 30.0
    assert res.intervals_s.count == 3
    assert res.intervals_s.max == 17.0
    assert res.lon_range[0] < res.lon_range[1]


def test_inspect_empty():
    res = inspect_fixes([])
    assert res.fixes == 0
    assert res.intervals_s is None
    assert res.duration_s == 0.0


def test_single_fix_has_no_intervals(make_fix):
    res = inspect_fixes([make_fix(0.0, 0.0, 0)])
    assert res.intervals_s is None
    assert res.accuracy_m.count == 1


def test_spread():
    assert spread([]) is None
    s = spread([3.0, 1.0, 2.0])
    assert (s.min, s.median, s.max) == (1.0, 2.0, 3.0)
    assert spread([1.0, 2.0, 3.0, 10.0]).median == 2.5


def test_format_hhmmss():
    assert format_hhmmss(3661.9) == "01:01:01"
    assert format_hhmmss(-3) == "00:00:00"


def test_timezones():
    dt = dt_from_epoch_ms(0, "Asia/Shanghai")
    assert dt.hour == 8
    assert dt.astimezone(timezone.utc).hour == 0
    with pytest.raises(ValueError):
        tzinfo_from_name("Not/AZone")
