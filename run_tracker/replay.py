"""Replay recorded fixes through a run session with a simulated clock."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable

from run_tracker.config import TrackerConfig
from run_tracker.models import DistanceUnit, LocationFix, RunSnapshot
from run_tracker.session import RunSession
from run_tracker.source import PushLocationSource

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReplayClock:
    """Clock whose time is set by the replay loop."""

    now_ms: int = 0

    def __call__(self) -> int:
        return self.now_ms


@dataclass(frozen=True, slots=True)
class TraceRow:
    """What happened to one fix during replay."""

    timestamp_ms: int
    latitude: float
    longitude: float
    accuracy_m: float
    filtered_latitude: float | None
    filtered_longitude: float | None
    uncertainty_m: float | None
    accepted: bool
    reject_reason: str
    state: str
    is_moving: bool
    distance_m: float

    def as_row(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ReplayResult:
    snapshot: RunSnapshot
    trace: list[TraceRow] = field(default_factory=list)
    # (elapsed_ms, distance_m) after every tick, for charts
    timeline: list[tuple[int, float]] = field(default_factory=list)


def replay_fixes(
    fixes: Iterable[LocationFix],
    config: TrackerConfig | None = None,
    *,
    unit: DistanceUnit = DistanceUnit.KM,
    tick_interval_ms: int = 1000,
) -> ReplayResult:
    """Feed fixes (sorted by time) to a fresh session, ticking the simulated clock.

    The run starts at the first fix and ends at the last one.

    Args:
        fixes: Recorded fixes, any order.
        config: Policy knobs.
        unit: Unit for the snapshot strings.
        tick_interval_ms: Simulated timer period.

    Returns:
        ReplayResult with the final (ended) snapshot and per-fix trace.

    Raises:
        ValueError: If ``tick_interval_ms`` is not positive.
    """

    if tick_interval_ms <= 0:
        raise ValueError(f"tick_interval_ms 必须大于 0，当前值：{tick_interval_ms!r}")

    ordered = sorted(fixes, key=lambda f: f.timestamp_ms)
    clock = ReplayClock(ordered[0].timestamp_ms if ordered else 0)
    source = PushLocationSource()
    session = RunSession(config, source=source, clock=clock, unit=unit)
    session.start()

    trace: list[TraceRow] = []
    timeline: list[tuple[int, float]] = []
    next_tick = clock.now_ms + tick_interval_ms

    def _tick_until(limit_ms: int) -> None:
        nonlocal next_tick
        while next_tick <= limit_ms:
            clock.now_ms = next_tick
            session.tick()
            timeline.append((session.elapsed_ms, session.distance_m))
            next_tick += tick_interval_ms

    for fix in ordered:
        _tick_until(fix.timestamp_ms)
        clock.now_ms = fix.timestamp_ms

        before = session.classifier.accepted
        source.emit(fix)
        accepted = session.classifier.accepted > before
        last = session.classifier.history[-1] if accepted else None
        reason = session.classifier.last_reject
        trace.append(
            TraceRow(
                timestamp_ms=fix.timestamp_ms,
                latitude=fix.latitude,
                longitude=fix.longitude,
                accuracy_m=fix.accuracy_m,
                filtered_latitude=last.latitude if last else None,
                filtered_longitude=last.longitude if last else None,
                uncertainty_m=last.uncertainty_m if last else None,
                accepted=accepted,
                reject_reason="" if accepted or reason is None else reason.value,
                state=session.state.value,
                is_moving=session.classifier.is_moving(),
                distance_m=session.distance_m,
            )
        )

    session.end()
    snapshot = session.snapshot()
    logger.info(
        "回放完成：fixes=%s accepted=%s rejected=%s distance=%.1fm",
        len(ordered),
        snapshot.accepted_samples,
        snapshot.rejected_total,
        snapshot.distance_m,
    )
    return ReplayResult(snapshot=snapshot, trace=trace, timeline=timeline)
