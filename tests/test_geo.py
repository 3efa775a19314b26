from __future__ import annotations

import pytest

from run_tracker.geo import haversine_m, offset_position


def test_haversine_one_degree_latitude():
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195.0, rel=1e-4)


def test_haversine_zero_and_symmetric():
    assert haversine_m(31.23, 121.47, 31.23, 121.47) == 0.0
    d1 = haversine_m(31.23, 121.47, 31.24, 121.48)
    d2 = haversine_m(31.24, 121.48, 31.23, 121.47)
    assert d1 == pytest.approx(d2)


@pytest.mark.parametrize("north, east", [(100.0, 0.0), (0.0, 100.0), (30.0, 40.0)])
def test_offset_position_matches_haversine(north, east):
    lat, lon = offset_position(31.2304, 121.4737, north, east)
    expected = (north**2 + east**2) ** 0.5
    assert haversine_m(31.2304, 121.4737, lat, lon) == pytest.approx(expected, abs=0.01)
