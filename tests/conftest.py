"""Shared fixtures: a settable clock and builders for fixes/positions placed in meters."""

from __future__ import annotations

from typing import Callable

import pytest

from run_tracker.geo import offset_position
from run_tracker.models import FilteredPosition, LocationFix

ORIGIN_LAT = 31.2304
ORIGIN_LON = 121.4737


class FakeClock:
    def __init__(self, now_ms: int = 0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> int:
        self.now_ms += ms
        return self.now_ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_fix() -> Callable[..., LocationFix]:
    def _make(north_m: float, east_m: float, t_ms: int, accuracy_m: float = 4.0) -> LocationFix:
        lat, lon = offset_position(ORIGIN_LAT, ORIGIN_LON, north_m, east_m)
        return LocationFix(latitude=lat, longitude=lon, accuracy_m=accuracy_m, timestamp_ms=t_ms)

    return _make


@pytest.fixture
def make_pos() -> Callable[..., FilteredPosition]:
    def _make(north_m: float, east_m: float, t_ms: int, accuracy_m: float = 4.0) -> FilteredPosition:
        lat, lon = offset_position(ORIGIN_LAT, ORIGIN_LON, north_m, east_m)
        return FilteredPosition(
            latitude=lat,
            longitude=lon,
            uncertainty_m=accuracy_m,
            timestamp_ms=t_ms,
            accuracy_m=accuracy_m,
        )

    return _make


@pytest.fixture
def walk_fixes(make_fix) -> Callable[..., list[LocationFix]]:
    """Straight walk east at 1 Hz."""

    def _walk(count: int, speed_mps: float = 1.4, start_ms: int = 0, accuracy_m: float = 4.0) -> list[LocationFix]:
        return [make_fix(0.0, i * speed_mps, start_ms + i * 1000, accuracy_m) for i in range(count)]

    return _walk
