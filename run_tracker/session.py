"""Run lifecycle state machine and distance/elapsed accumulation.

States: idle -> running <-> paused, running <-> stationary, {running, paused,
stationary} -> ended -> (discard) -> idle.

Samples, timer ticks and commands all go through one re-entrant lock, so there is
a single writer at any time. Commands called in the wrong state are no-ops and
return False.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from run_tracker.config import TrackerConfig
from run_tracker.formatting import format_distance, format_duration, format_pace
from run_tracker.geo import haversine_m
from run_tracker.models import (
    DistanceUnit,
    FilteredPosition,
    LocationFix,
    RejectReason,
    RunSnapshot,
    RunState,
    SignalStatus,
)
from run_tracker.motion import MotionClassifier
from run_tracker.position_filter import PositionFilter
from run_tracker.source import LocationError, LocationSource, Subscription
from run_tracker.ticker import ThreadTicker
from run_tracker.timeutils import monotonic_ms

logger = logging.getLogger(__name__)

ACTIVE_STATES = frozenset({RunState.RUNNING, RunState.STATIONARY})

# Rejections after which the filter estimate is restored (the fix was junk, not just redundant).
_ROLLBACK_REASONS = frozenset({RejectReason.LOW_ACCURACY, RejectReason.IMPLAUSIBLE_SPEED})


class RunSession:
    """Owns one filter, one classifier and the statistics of the current run.

    Args:
        config: Policy knobs.
        source: Location feed subscribed while the run is active. Optional; fixes can
            also be pushed through ``on_fix`` directly.
        clock: Returns monotonic milliseconds. Defaults to ``time.monotonic``.
        ticker: Drives ``tick`` once per interval while active. Without one the caller
            is responsible for calling ``tick``.
        unit: Default unit of the snapshot strings.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        source: LocationSource | None = None,
        clock: Callable[[], int] | None = None,
        ticker: ThreadTicker | None = None,
        unit: DistanceUnit = DistanceUnit.KM,
    ) -> None:
        self._cfg = (config or TrackerConfig()).validate()
        self._source = source
        self._clock = clock or monotonic_ms
        self._ticker = ticker
        self._unit = unit
        self._lock = threading.RLock()
        self._subscription: Subscription | None = None

        self._filter = PositionFilter(self._cfg)
        self._classifier = MotionClassifier(self._cfg)
        self._state = RunState.IDLE
        self._reset_stats()

    def _reset_stats(self) -> None:
        self._distance_m = 0.0
        self._debug_distance_m = 0.0
        self._elapsed_ms = 0
        self._start_ms: int | None = None
        self._paused_accumulated_ms = 0
        self._pause_started_ms: int | None = None
        self._last_motion_ms: int | None = None
        self._anchor: FilteredPosition | None = None
        # (anchor before the last move, meters credited by that move)
        self._anchor_undo: tuple[FilteredPosition | None, float] = (None, 0.0)
        # Meters paid for bounce outliers, withheld from later credits.
        self._owed_m = 0.0
        self._signal = SignalStatus.OK
        self._filter.reset()
        self._classifier.reset()

    @property
    def config(self) -> TrackerConfig:
        return self._cfg

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def distance_m(self) -> float:
        """Validated distance plus any manually injected distance."""

        with self._lock:
            return self._distance_m + self._debug_distance_m

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def signal(self) -> SignalStatus:
        return self._signal

    @property
    def classifier(self) -> MotionClassifier:
        return self._classifier

    @property
    def position_filter(self) -> PositionFilter:
        return self._filter

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """idle -> running. Resets every statistic and opens sample intake."""

        with self._lock:
            if self._state is not RunState.IDLE:
                return self._ignored("start")
            self._reset_stats()
            now = self._clock()
            self._start_ms = now
            self._last_motion_ms = now
            self._transition(RunState.RUNNING)
        self._open_intake()
        return True

    def pause(self) -> bool:
        """running/stationary -> paused. Stops sample intake and the timer."""

        with self._lock:
            if self._state not in ACTIVE_STATES:
                return self._ignored("pause")
            now = self._clock()
            self._update_elapsed(now)
            self._pause_started_ms = now
            self._transition(RunState.PAUSED)
            sub = self._take_subscription()
        self._close_intake(sub)
        return True

    def resume(self) -> bool:
        """paused -> running. The pause duration is excluded from elapsed time."""

        with self._lock:
            if self._state is not RunState.PAUSED:
                return self._ignored("resume")
            now = self._clock()
            self._close_pause(now)
            # A fresh stationary timer; the pause itself is not "no motion".
            self._last_motion_ms = now
            self._transition(RunState.RUNNING)
        self._open_intake()
        return True

    def end(self) -> bool:
        """running/paused/stationary -> ended. Freezes all statistics."""

        with self._lock:
            if self._state not in (RunState.RUNNING, RunState.PAUSED, RunState.STATIONARY):
                return self._ignored("end")
            now = self._clock()
            if self._state is RunState.PAUSED:
                self._close_pause(now)
            self._update_elapsed(now)
            self._transition(RunState.ENDED)
            sub = self._take_subscription()
        self._close_intake(sub)
        return True

    def discard(self) -> bool:
        """ended -> idle. Zeroes statistics and filter/classifier state."""

        with self._lock:
            if self._state is not RunState.ENDED:
                return self._ignored("discard")
            self._reset_stats()
            self._transition(RunState.IDLE)
        return True

    def add_debug_distance(self, meters: float) -> bool:
        """Testing affordance: add distance without any validation.

        The amount is kept in its own counter and never mixed into the validated
        total, though ``distance_m`` and snapshots report the sum.

        Raises:
            ValueError: If ``meters`` is negative.
        """

        if meters < 0:
            raise ValueError(f"meters 不能为负数，当前值：{meters!r}")
        with self._lock:
            if self._state not in ACTIVE_STATES:
                return self._ignored("add_debug_distance")
            self._debug_distance_m += meters
            logger.info("手动增加距离 %.1fm（调试用，未经校验）", meters)
        return True

    # ------------------------------------------------------------------
    # Event inputs
    # ------------------------------------------------------------------

    def on_fix(self, fix: LocationFix) -> bool:
        """Process one raw fix.

        Returns:
            True if the fix was accepted by the classifier.
        """

        with self._lock:
            if self._state not in ACTIVE_STATES:
                logger.debug("状态为 %s，忽略定位样本 t=%s", self._state.value, fix.timestamp_ms)
                return False
            self._signal = SignalStatus.OK

            position = self._filter.process(fix)
            if not self._classifier.add_sample(position):
                if self._classifier.last_reject in _ROLLBACK_REASONS:
                    self._filter.rollback()
                elif self._classifier.last_evicted is not None:
                    self._drop_outlier(self._classifier.last_evicted)
                return False

            self._credit(position)
            return True

    def on_error(self, error: LocationError) -> None:
        """Record a location-source failure. Advisory only, never a transition."""

        with self._lock:
            self._signal = error.kind
        logger.warning("定位信号异常（%s），等待恢复", error.kind.value)

    def tick(self, now_ms: int | None = None) -> None:
        """Timer event: refresh elapsed time and check the stationary timeout."""

        with self._lock:
            if self._state not in ACTIVE_STATES:
                return
            now = self._clock() if now_ms is None else now_ms
            self._update_elapsed(now)
            if self._state is RunState.RUNNING and self._last_motion_ms is not None:
                still_ms = now - self._last_motion_ms
                if still_ms >= self._cfg.stationary_timeout_ms:
                    logger.info("%.0fs 内未检测到移动，进入静止状态", still_ms / 1000.0)
                    self._transition(RunState.STATIONARY)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def snapshot(self, unit: DistanceUnit | None = None) -> RunSnapshot:
        """Read-only projection of the current statistics."""

        unit = unit or self._unit
        with self._lock:
            total = self._distance_m + self._debug_distance_m
            elapsed = self._elapsed_ms
            avg = total / (elapsed / 1000.0) if elapsed > 0 else 0.0
            return RunSnapshot(
                state=self._state,
                distance_m=total,
                validated_distance_m=self._distance_m,
                debug_distance_m=self._debug_distance_m,
                elapsed_ms=elapsed,
                current_speed_mps=self._classifier.current_speed(),
                average_speed_mps=avg,
                is_moving=self._classifier.is_moving(),
                signal=self._signal,
                accepted_samples=self._classifier.accepted,
                rejected_samples=self._classifier.rejected,
                unit=unit,
                distance_text=format_distance(total, unit),
                duration_text=format_duration(elapsed),
                pace_text=format_pace(elapsed, total, unit),
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _credit(self, position: FilteredPosition) -> None:
        """Add distance for an accepted sample.

        Distance is measured from an anchor (the last credited point), so slow
        steps below the noise floor still add up once they clear it together.
        Until the classifier confirms net displacement the anchor is held and
        nothing is paid out.
        """

        if self._anchor is None or not self._classifier.is_moving():
            # Re-anchor without credit: drift while standing is never paid out later.
            self._move_anchor(position, 0.0)
            return
        if not self._classifier.displacement_confirmed():
            return

        self._last_motion_ms = self._clock()
        floor = self._cfg.stationary_noise_floor_m if self._state is RunState.STATIONARY else self._cfg.noise_floor_m
        step = haversine_m(self._anchor.latitude, self._anchor.longitude, position.latitude, position.longitude)
        if step <= floor:
            return

        withheld = min(step, self._owed_m)
        self._owed_m -= withheld
        self._distance_m += step - withheld
        self._move_anchor(position, step - withheld)
        if self._state is RunState.STATIONARY:
            logger.info("检测到移动，恢复跑步状态")
            self._transition(RunState.RUNNING)

    def _move_anchor(self, position: FilteredPosition, credited_m: float) -> None:
        self._anchor_undo = (self._anchor, credited_m)
        self._anchor = position

    def _drop_outlier(self, outlier: FilteredPosition) -> None:
        """Take back what a sample later found to be a bounce outlier earned.

        The total never shrinks; the amount is withheld from the next credits instead.
        """

        if self._anchor is not outlier:
            return
        previous, credited_m = self._anchor_undo
        self._owed_m += credited_m
        self._anchor = previous
        self._anchor_undo = (None, 0.0)
        if credited_m:
            logger.info("离群点多计距离 %.1fm，将从后续距离中扣回", credited_m)

    def _update_elapsed(self, now: int) -> None:
        if self._start_ms is None:
            return
        self._elapsed_ms = max(0, now - self._start_ms - self._paused_accumulated_ms)

    def _close_pause(self, now: int) -> None:
        if self._pause_started_ms is not None:
            self._paused_accumulated_ms += max(0, now - self._pause_started_ms)
        self._pause_started_ms = None

    def _transition(self, new_state: RunState) -> None:
        logger.info("状态切换：%s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _ignored(self, command: str) -> bool:
        logger.debug("状态为 %s，忽略命令 %s", self._state.value, command)
        return False

    def _take_subscription(self) -> Subscription | None:
        sub = self._subscription
        self._subscription = None
        return sub

    def _open_intake(self) -> None:
        # Subscribe outside the session lock: the source holds its own lock while delivering.
        sub = self._source.subscribe(self.on_fix, self.on_error) if self._source is not None else None
        with self._lock:
            active = self._state in ACTIVE_STATES
            if active and sub is not None and self._subscription is None:
                self._subscription = sub
                sub = None
        if sub is not None:
            sub.cancel()
        if active and self._ticker is not None:
            self._ticker.start(self.tick)

    def _close_intake(self, sub: Subscription | None) -> None:
        if sub is not None:
            sub.cancel()
        if self._ticker is not None:
            self._ticker.stop()
