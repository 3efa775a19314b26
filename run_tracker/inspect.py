"""Inspect a recording before replaying it: time span, sampling cadence, accuracy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from run_tracker.models import LocationFix

# Intervals longer than this count as signal gaps.
DEFAULT_GAP_S = 10.0


@dataclass(frozen=True, slots=True)
class Spread:
    """Order statistics of a sample (nearest-rank p95)."""

    count: int
    min: float
    median: float
    p95: float
    max: float


@dataclass(frozen=True, slots=True)
class InspectResult:
    fixes: int
    min_time_ms: int | None
    max_time_ms: int | None
    intervals_s: Spread | None
    gaps: int
    accuracy_m: Spread | None
    above_accuracy_limit: int
    duplicates_time: int
    lat_range: tuple[float, float] | None
    lon_range: tuple[float, float] | None

    @property
    def duration_s(self) -> float:
        if self.min_time_ms is None or self.max_time_ms is None:
            return 0.0
        return (self.max_time_ms - self.min_time_ms) / 1000.0


def spread(values: Sequence[float]) -> Spread | None:
    """Min/median/p95/max of ``values``; None when empty."""

    if not values:
        return None
    ordered = sorted(values)
    n = len(ordered)
    mid = n // 2
    median = ordered[mid] if n % 2 else 0.5 * (ordered[mid - 1] + ordered[mid])
    return Spread(count=n, min=ordered[0], median=median, p95=ordered[int(0.95 * (n - 1))], max=ordered[-1])


def inspect_fixes(
    fixes: Sequence[LocationFix],
    max_accuracy_m: float | None = None,
    gap_s: float = DEFAULT_GAP_S,
) -> InspectResult:
    """Summarise already-loaded fixes (any order).

    Args:
        fixes: Recorded fixes.
        max_accuracy_m: If given, count fixes reporting worse accuracy than this.
        gap_s: Sampling intervals longer than this are counted as gaps.
    """

    if not fixes:
        return InspectResult(
            fixes=0,
            min_time_ms=None,
            max_time_ms=None,
            intervals_s=None,
            gaps=0,
            accuracy_m=None,
            above_accuracy_limit=0,
            duplicates_time=0,
            lat_range=None,
            lon_range=None,
        )

    times = sorted(f.timestamp_ms for f in fixes)
    intervals = [(b - a) / 1000.0 for a, b in zip(times, times[1:])]
    lats = [f.latitude for f in fixes]
    lons = [f.longitude for f in fixes]

    above = 0
    if max_accuracy_m is not None:
        above = sum(1 for f in fixes if f.accuracy_m > max_accuracy_m)

    return InspectResult(
        fixes=len(fixes),
        min_time_ms=times[0],
        max_time_ms=times[-1],
        intervals_s=spread(intervals),
        gaps=sum(1 for d in intervals if d > gap_s),
        accuracy_m=spread([f.accuracy_m for f in fixes]),
        above_accuracy_limit=above,
        duplicates_time=sum(1 for d in intervals if d == 0),
        lat_range=(min(lats), max(lats)),
        lon_range=(min(lons), max(lons)),
    )
