"""Data models for location fixes, filtered positions and run snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Mapping


class RunState(str, Enum):
    """Run lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STATIONARY = "stationary"
    ENDED = "ended"


class SignalStatus(str, Enum):
    """Advisory health of the location source."""

    OK = "ok"
    PERMISSION_DENIED = "permission_denied"
    SIGNAL_LOST = "signal_lost"
    TIMEOUT = "timeout"


class RejectReason(str, Enum):
    """Why the motion classifier refused a sample."""

    LOW_ACCURACY = "low_accuracy"
    TOO_SOON = "too_soon"
    IMPLAUSIBLE_SPEED = "implausible_speed"
    BOUNCE = "bounce"
    JITTER = "jitter"


class DistanceUnit(str, Enum):
    """Units used for presentation strings."""

    KM = "km"
    MI = "mi"

    @property
    def meters(self) -> float:
        """Meters per one unit."""

        return METERS_PER_UNIT[self]


METERS_PER_UNIT: Final[dict[DistanceUnit, float]] = {
    DistanceUnit.KM: 1000.0,
    DistanceUnit.MI: 1609.344,
}


@dataclass(frozen=True, slots=True)
class LocationFix:
    """A single raw fix as delivered by the device.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        accuracy_m: Vendor-reported horizontal accuracy (1-sigma radius) in meters.
        timestamp_ms: Monotonic milliseconds.
        speed_mps: Device-reported speed in meters/second, if any.
    """

    latitude: float
    longitude: float
    accuracy_m: float
    timestamp_ms: int
    speed_mps: float | None = None


@dataclass(frozen=True, slots=True)
class FilteredPosition:
    """Smoothed position produced from one LocationFix.

    Note:
        ``uncertainty_m`` comes from the filter variance and is always smaller than
        the raw figure; ``accuracy_m`` keeps what the device reported.
    """

    latitude: float
    longitude: float
    uncertainty_m: float
    timestamp_ms: int
    accuracy_m: float


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """Read-only view of a run, safe to hand to UI or reward code."""

    state: RunState
    distance_m: float
    validated_distance_m: float
    debug_distance_m: float
    elapsed_ms: int
    current_speed_mps: float
    average_speed_mps: float
    is_moving: bool
    signal: SignalStatus
    accepted_samples: int
    rejected_samples: Mapping[RejectReason, int] = field(default_factory=dict)
    unit: DistanceUnit = DistanceUnit.KM
    distance_text: str = ""
    duration_text: str = ""
    pace_text: str = ""

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected_samples.values())


DEFAULT_TZ: Final[str] = "UTC"
