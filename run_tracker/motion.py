"""Motion classification over a short window of filtered positions.

Three gates run before a sample may enter the window (accuracy, spacing/speed
plausibility, bounce/jitter pattern). The movement verdict is then a statistic
over the window instead of a single step, which is what keeps parked GPS drift
("spidering") out of the distance total.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from typing import Sequence

from run_tracker.config import TrackerConfig
from run_tracker.geo import haversine_m
from run_tracker.models import FilteredPosition, RejectReason

logger = logging.getLogger(__name__)


def _distance(a: FilteredPosition, b: FilteredPosition) -> float:
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def step_speeds(samples: Sequence[FilteredPosition]) -> list[float]:
    """Speeds (m/s) between consecutive samples; pairs without elapsed time are skipped."""

    speeds: list[float] = []
    for i in range(1, len(samples)):
        dt_s = (samples[i].timestamp_ms - samples[i - 1].timestamp_ms) / 1000.0
        if dt_s <= 0:
            continue
        speeds.append(_distance(samples[i - 1], samples[i]) / dt_s)
    return speeds


def nearest_rank(values: Sequence[float], q: float) -> float:
    """Nearest-rank percentile (rounding the rank down), ``q`` in [0, 1]."""

    ordered = sorted(values)
    return ordered[int(q * (len(ordered) - 1))]


class MotionClassifier:
    """Accepts or rejects filtered positions and decides whether the subject moves."""

    def __init__(self, config: TrackerConfig | None = None) -> None:
        self._cfg = config or TrackerConfig()
        self._history: deque[FilteredPosition] = deque(maxlen=self._cfg.history_size)
        self._rejected: Counter[RejectReason] = Counter()
        self._accepted = 0
        self._last_step_m: float | None = None
        self._last_reject: RejectReason | None = None
        self._last_evicted: FilteredPosition | None = None
        # Accepted samples reaching back just past drift_window_ms.
        self._trail: deque[FilteredPosition] = deque()

    @property
    def history(self) -> tuple[FilteredPosition, ...]:
        return tuple(self._history)

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def rejected(self) -> dict[RejectReason, int]:
        return dict(self._rejected)

    @property
    def last_step_m(self) -> float | None:
        """Step from the previous accepted sample to the last accepted one."""

        return self._last_step_m

    @property
    def last_reject(self) -> RejectReason | None:
        """Reason of the most recent ``add_sample`` refusal, None if it was accepted."""

        return self._last_reject

    @property
    def last_evicted(self) -> FilteredPosition | None:
        """Sample dropped as a bounce outlier by the last ``add_sample`` call, if any."""

        return self._last_evicted

    def add_sample(self, position: FilteredPosition) -> bool:
        """Run the quality gates and append the sample on success.

        Returns:
            True if the sample was accepted into the history.
        """

        self._last_evicted = None
        reason, step = self._check(position)
        self._last_reject = reason
        if reason is not None:
            self._rejected[reason] += 1
            logger.debug(
                "拒绝样本 t=%s reason=%s accuracy=%.1fm",
                position.timestamp_ms,
                reason.value,
                position.accuracy_m,
            )
            return False

        self._history.append(position)
        self._trail.append(position)
        horizon = position.timestamp_ms - self._cfg.drift_window_ms
        while len(self._trail) >= 2 and self._trail[1].timestamp_ms <= horizon:
            self._trail.popleft()
        self._accepted += 1
        self._last_step_m = step
        return True

    def _check(self, pos: FilteredPosition) -> tuple[RejectReason | None, float | None]:
        cfg = self._cfg
        if pos.accuracy_m > cfg.max_accuracy_m:
            return RejectReason.LOW_ACCURACY, None
        if not self._history:
            return None, None

        recent = self._history[-1]
        dt_ms = pos.timestamp_ms - recent.timestamp_ms
        if dt_ms <= 0 or dt_ms < cfg.min_sample_interval_ms:
            return RejectReason.TOO_SOON, None

        step = _distance(recent, pos)
        if step / (dt_ms / 1000.0) > cfg.max_speed_mps:
            return RejectReason.IMPLAUSIBLE_SPEED, None

        if len(self._history) >= 2:
            older = self._history[-2]
            if self._is_bounce(older, recent, pos, step):
                # The jump is the outlier: drop it so later fixes compare against the pre-jump point.
                self._last_evicted = self._history.pop()
                if self._trail and self._trail[-1] is self._last_evicted:
                    self._trail.pop()
                return RejectReason.BOUNCE, None
            if self._is_jitter(older, recent, pos):
                return RejectReason.JITTER, None
        return None, step

    def _is_bounce(
        self,
        older: FilteredPosition,
        recent: FilteredPosition,
        candidate: FilteredPosition,
        recent_to_candidate: float,
    ) -> bool:
        """A -> B -> A' with A' landing back near A."""

        cfg = self._cfg
        if recent_to_candidate <= cfg.bounce_min_step_m:
            return False
        if _distance(older, recent) <= cfg.bounce_min_step_m:
            return False
        return _distance(older, candidate) < cfg.bounce_return_ratio * recent_to_candidate

    def _is_jitter(self, older: FilteredPosition, recent: FilteredPosition, candidate: FilteredPosition) -> bool:
        """Three points huddled in a small triangle with no net progress."""

        cfg = self._cfg
        pairs = ((older, recent), (recent, candidate), (older, candidate))
        if any(_distance(a, b) > cfg.jitter_radius_m for a, b in pairs):
            return False
        span_s = (candidate.timestamp_ms - older.timestamp_ms) / 1000.0
        if span_s <= 0:
            return True
        return _distance(older, candidate) / span_s < cfg.min_moving_speed_mps

    def is_moving(self) -> bool:
        """Movement verdict over the current window.

        Either the high-percentile step speed or the net displacement rate must reach
        ``min_moving_speed_mps``; the second catches uneven stop-and-go motion.
        """

        if len(self._history) < 3:
            return False
        samples = list(self._history)
        threshold = self._cfg.min_moving_speed_mps

        speeds = step_speeds(samples)
        if speeds and nearest_rank(speeds, self._cfg.moving_percentile) >= threshold:
            return True

        span_s = (samples[-1].timestamp_ms - samples[0].timestamp_ms) / 1000.0
        if span_s <= 0:
            return False
        return _distance(samples[0], samples[-1]) / span_s >= threshold

    def displacement_confirmed(self) -> bool:
        """Whether net displacement rules out drift around a fixed point.

        Compares the newest sample with the newest one at least ``drift_window_ms``
        older (or the oldest available) and requires
        ``min_moving_speed_mps * max(elapsed, drift_window)`` meters between them.
        Filtered positions of a device parked inside a circle stay inside it, so a
        circle narrower than ``min_moving_speed_mps * drift_window`` never passes.
        """

        if len(self._trail) < 2:
            return False
        ref, last = self._trail[0], self._trail[-1]
        span_s = max(last.timestamp_ms - ref.timestamp_ms, self._cfg.drift_window_ms) / 1000.0
        return _distance(ref, last) >= self._cfg.min_moving_speed_mps * span_s

    def current_speed(self) -> float:
        """Mean step speed over the most recent samples (display only)."""

        samples = list(self._history)[-self._cfg.speed_window :]
        speeds = step_speeds(samples)
        if not speeds:
            return 0.0
        return sum(speeds) / len(speeds)

    def reset(self) -> None:
        self._history.clear()
        self._rejected.clear()
        self._accepted = 0
        self._last_step_m = None
        self._last_reject = None
        self._last_evicted = None
        self._trail.clear()
