"""Recursive single-state position filter.

Each fix is blended into one retained estimate (point + variance), so memory is
constant and high-frequency jitter is damped without keeping a track history.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from run_tracker.config import TrackerConfig
from run_tracker.models import FilteredPosition, LocationFix


@dataclass(slots=True)
class _Estimate:
    latitude: float
    longitude: float
    variance: float
    timestamp_ms: int


class PositionFilter:
    """Kalman-style smoother over latitude/longitude.

    The variance is tracked in square meters and shared by both axes.
    """

    def __init__(self, config: TrackerConfig | None = None) -> None:
        self._cfg = config or TrackerConfig()
        self._estimate: _Estimate | None = None
        self._previous: _Estimate | None = None
        self._can_rollback = False

    @property
    def has_estimate(self) -> bool:
        return self._estimate is not None

    @property
    def variance(self) -> float | None:
        """Current variance in square meters, None before the first fix."""

        return None if self._estimate is None else self._estimate.variance

    def process(self, fix: LocationFix) -> FilteredPosition:
        """Blend one fix into the estimate.

        Args:
            fix: Raw location fix.

        Returns:
            The smoothed position after this fix.
        """

        accuracy = max(fix.accuracy_m, self._cfg.min_accuracy_m)
        measurement_var = accuracy * accuracy
        self._previous = self._estimate
        self._can_rollback = True

        est = self._estimate
        if est is None:
            est = _Estimate(fix.latitude, fix.longitude, measurement_var, fix.timestamp_ms)
        else:
            dt_ms = fix.timestamp_ms - est.timestamp_ms
            variance = est.variance
            if dt_ms > 0:
                q = self._cfg.process_noise_mps
                variance += (dt_ms / 1000.0) * q * q

            gain = variance / (variance + measurement_var)
            est = _Estimate(
                latitude=est.latitude + gain * (fix.latitude - est.latitude),
                longitude=est.longitude + gain * (fix.longitude - est.longitude),
                variance=(1.0 - gain) * variance,
                timestamp_ms=max(est.timestamp_ms, fix.timestamp_ms),
            )

        self._estimate = est
        return FilteredPosition(
            latitude=est.latitude,
            longitude=est.longitude,
            uncertainty_m=math.sqrt(est.variance),
            timestamp_ms=fix.timestamp_ms,
            accuracy_m=fix.accuracy_m,
        )

    def rollback(self) -> None:
        """Undo the last ``process`` call (one level only).

        Used when the fix that was just blended in turns out to be junk. A second
        call without a ``process`` in between does nothing.
        """

        if not self._can_rollback:
            return
        self._estimate = self._previous
        self._previous = None
        self._can_rollback = False

    def reset(self) -> None:
        self._estimate = None
        self._previous = None
        self._can_rollback = False
