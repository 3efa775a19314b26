"""Presentation strings derived from run statistics (pure functions)."""

from __future__ import annotations

from run_tracker.models import DistanceUnit
from run_tracker.timeutils import format_hhmmss

NO_PACE = "--:--"

# Below this distance a pace figure is noise.
MIN_PACE_DISTANCE_M = 10.0
MAX_PACE_SECONDS = 99 * 60 + 59


def format_distance(meters: float, unit: DistanceUnit = DistanceUnit.KM) -> str:
    return f"{max(0.0, meters) / unit.meters:.2f} {unit.value}"


def format_duration(elapsed_ms: int) -> str:
    return format_hhmmss(elapsed_ms // 1000)


def pace_seconds(elapsed_ms: int, meters: float, unit: DistanceUnit = DistanceUnit.KM) -> float | None:
    """Seconds per one unit of distance, None when the distance is too small."""

    if meters < MIN_PACE_DISTANCE_M or elapsed_ms <= 0:
        return None
    return (elapsed_ms / 1000.0) / (meters / unit.meters)


def format_pace(elapsed_ms: int, meters: float, unit: DistanceUnit = DistanceUnit.KM) -> str:
    """Pace as ``MM:SS /km`` (or ``/mi``)."""

    spu = pace_seconds(elapsed_ms, meters, unit)
    if spu is None:
        return NO_PACE
    total = int(round(spu))
    if total > MAX_PACE_SECONDS:
        return NO_PACE
    m, s = divmod(total, 60)
    return f"{m:02d}:{s:02d} /{unit.value}"
