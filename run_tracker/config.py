"""Tunable policy knobs for filtering, classification and the run session."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """Parameters controlling the tracking pipeline.

    Builds of the app disagreed on most of these (accuracy ceiling 20m vs 50m,
    stationary timeout 30s/45s/60s, noise floor 1.5m/2m/7m), so none is hard-coded.
    """

    # Position filter
    min_accuracy_m: float = 2.0
    # Assumed speed of unobserved movement between fixes; variance grows by dt * q^2.
    process_noise_mps: float = 3.0

    # Motion classifier gates
    max_accuracy_m: float = 25.0
    min_sample_interval_ms: int = 500
    max_speed_mps: float = 12.0
    bounce_min_step_m: float = 3.0
    bounce_return_ratio: float = 0.5
    jitter_radius_m: float = 6.0
    min_moving_speed_mps: float = 0.5
    moving_percentile: float = 0.75
    history_size: int = 10
    speed_window: int = 4
    # Net displacement over this long must beat min_moving_speed_mps before distance counts.
    drift_window_ms: int = 20_000

    # Run session
    noise_floor_m: float = 2.0
    # While stationary a bigger step is required before distance counts again.
    stationary_noise_floor_m: float = 5.0
    stationary_timeout_ms: int = 30_000
    tick_interval_s: float = 1.0

    def validate(self) -> TrackerConfig:
        """Check value ranges.

        Returns:
            self, so calls can be chained.

        Raises:
            ValueError: If a knob has an impossible value.
        """

        positive = (
            "min_accuracy_m",
            "process_noise_mps",
            "max_accuracy_m",
            "max_speed_mps",
            "jitter_radius_m",
            "min_moving_speed_mps",
            "tick_interval_s",
            "drift_window_ms",
        )
        for name in positive:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} 必须大于 0，当前值：{getattr(self, name)!r}")

        non_negative = (
            "min_sample_interval_ms",
            "bounce_min_step_m",
            "noise_floor_m",
            "stationary_noise_floor_m",
            "stationary_timeout_ms",
        )
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} 不能为负数，当前值：{getattr(self, name)!r}")

        if self.max_accuracy_m < self.min_accuracy_m:
            raise ValueError("max_accuracy_m 不能小于 min_accuracy_m")
        if not 0.0 < self.bounce_return_ratio <= 1.0:
            raise ValueError(f"bounce_return_ratio 必须在 (0, 1] 之间，当前值：{self.bounce_return_ratio!r}")
        if not 0.0 <= self.moving_percentile <= 1.0:
            raise ValueError(f"moving_percentile 必须在 [0, 1] 之间，当前值：{self.moving_percentile!r}")
        if self.history_size < 3:
            raise ValueError(f"history_size 至少为 3，当前值：{self.history_size!r}")
        if self.speed_window < 2:
            raise ValueError(f"speed_window 至少为 2，当前值：{self.speed_window!r}")
        return self

    def with_overrides(self, **changes: Any) -> TrackerConfig:
        """Return a validated copy with the given knobs replaced.

        ``None`` values are skipped so argparse namespaces can be passed through.

        Raises:
            ValueError: On unknown knob names or invalid values.
        """

        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"未知参数：{', '.join(unknown)}")
        picked = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **picked).validate()

    @classmethod
    def knob_names(cls) -> tuple[str, ...]:
        """Names of all knobs, in declaration order."""

        return tuple(f.name for f in fields(cls))
