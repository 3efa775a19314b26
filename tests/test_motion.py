from __future__ import annotations

import math
import random

import pytest

from run_tracker.config import TrackerConfig
from run_tracker.models import RejectReason
from run_tracker.motion import MotionClassifier, nearest_rank, step_speeds


def test_nearest_rank():
    assert nearest_rank([3.0, 1.0, 2.0, 4.0], 0.75) == 3.0
    assert nearest_rank([5.0], 0.75) == 5.0
    assert nearest_rank([1.0, 2.0], 0.75) == 1.0


def test_step_speeds_skips_zero_dt(make_pos):
    samples = [make_pos(0, 0, 0), make_pos(0, 2, 1000), make_pos(0, 3, 1000)]
    assert step_speeds(samples) == [pytest.approx(2.0, abs=1e-3)]


def test_rejects_low_accuracy(make_pos):
    mc = MotionClassifier(TrackerConfig(max_accuracy_m=25.0))
    assert not mc.add_sample(make_pos(0, 0, 0, accuracy_m=40.0))
    assert mc.last_reject is RejectReason.LOW_ACCURACY
    assert mc.rejected == {RejectReason.LOW_ACCURACY: 1}
    assert mc.history == ()


def test_rejects_samples_too_close_in_time(make_pos):
    mc = MotionClassifier()
    assert mc.add_sample(make_pos(0, 0, 0))
    assert not mc.add_sample(make_pos(0, 0.5, 200))
    assert mc.last_reject is RejectReason.TOO_SOON
    assert not mc.add_sample(make_pos(0, 0.5, -1000))
    assert mc.last_reject is RejectReason.TOO_SOON


def test_rejects_implausible_speed(make_pos):
    mc = MotionClassifier(TrackerConfig(max_speed_mps=12.0))
    assert mc.add_sample(make_pos(0, 0, 0))
    assert not mc.add_sample(make_pos(100, 0, 1000))
    assert mc.last_reject is RejectReason.IMPLAUSIBLE_SPEED
    assert len(mc.history) == 1


def test_bounce_rejects_return_and_evicts_outlier(make_pos):
    mc = MotionClassifier()
    a = make_pos(0, 0, 0)
    b = make_pos(30, 0, 10_000)
    a_back = make_pos(1, 0, 20_000)

    assert mc.add_sample(a)
    assert mc.add_sample(b)
    assert not mc.add_sample(a_back)
    assert mc.last_reject is RejectReason.BOUNCE
    # the jump is gone, later fixes are compared against A again
    assert mc.history == (a,)
    assert mc.last_evicted is b

    assert mc.add_sample(make_pos(1.5, 0, 30_000))
    assert mc.last_evicted is None
    assert mc.rejected[RejectReason.BOUNCE] == 1


def test_turning_back_at_walking_pace_is_accepted(make_pos):
    mc = MotionClassifier()
    path = [
        make_pos(0, 0, 0),
        make_pos(0, 1.4, 1000),
        make_pos(0, 2.8, 2000),
        make_pos(1.4, 2.8, 3000),
        make_pos(1.4, 1.4, 4000),
    ]
    results = [mc.add_sample(p) for p in path]
    assert results == [True] * 5


def test_jitter_triangle_rejected(make_pos):
    mc = MotionClassifier()
    assert mc.add_sample(make_pos(0, 0, 0))
    assert mc.add_sample(make_pos(1, 0, 10_000))
    assert not mc.add_sample(make_pos(0, 1, 20_000))
    assert mc.last_reject is RejectReason.JITTER


def test_walking_is_accepted_and_moving(make_pos):
    mc = MotionClassifier()
    assert not mc.is_moving()
    for i in range(12):
        assert mc.add_sample(make_pos(0, i * 1.4, i * 1000))
        if i >= 2:
            assert mc.is_moving()
    assert mc.current_speed() == pytest.approx(1.4, rel=0.01)
    assert mc.last_step_m == pytest.approx(1.4, rel=0.01)


def test_two_samples_are_not_enough_for_motion(make_pos):
    mc = MotionClassifier()
    mc.add_sample(make_pos(0, 0, 0))
    mc.add_sample(make_pos(0, 5, 1000))
    assert not mc.is_moving()


def test_stop_and_go_detected_by_net_displacement(make_pos):
    # isolate the movement verdict from the jitter gate
    mc = MotionClassifier(TrackerConfig(jitter_radius_m=0.01))
    east = [0.0, 0.1, 0.2, 6.0, 6.1, 6.2]
    for i, e in enumerate(east):
        assert mc.add_sample(make_pos(0, e, i * 2000))

    speeds = step_speeds(mc.history)
    assert nearest_rank(speeds, 0.75) < 0.5
    assert mc.is_moving()


def test_slow_creep_is_not_moving(make_pos):
    mc = MotionClassifier(TrackerConfig(jitter_radius_m=0.01))
    for i in range(6):
        mc.add_sample(make_pos(0, i * 0.5, i * 5000))
    assert not mc.is_moving()


def test_walking_confirms_displacement_after_ten_meters(make_pos):
    mc = MotionClassifier()
    for i in range(8):
        mc.add_sample(make_pos(0, i * 1.4, i * 1000))
    # 9.8m in 7s: not yet beyond what drift could produce in 20s
    assert not mc.displacement_confirmed()

    mc.add_sample(make_pos(0, 8 * 1.4, 8000))
    assert mc.displacement_confirmed()
    for i in range(9, 40):
        mc.add_sample(make_pos(0, i * 1.4, i * 1000))
        assert mc.displacement_confirmed()


@pytest.mark.parametrize("interval_ms", [3000, 5000, 6000])
@pytest.mark.parametrize("seed", range(5))
def test_drift_inside_8m_circle_is_never_confirmed(make_pos, seed, interval_ms):
    # accept every sample so only the displacement check is exercised
    mc = MotionClassifier(TrackerConfig(jitter_radius_m=0.01, bounce_min_step_m=100.0))
    rng = random.Random(seed)
    for i in range(40):
        angle = rng.uniform(0.0, 2.0 * math.pi)
        r = 4.0 * math.sqrt(rng.random())
        assert mc.add_sample(make_pos(r * math.sin(angle), r * math.cos(angle), i * interval_ms))
        assert not mc.displacement_confirmed()


def test_history_is_bounded(make_pos):
    mc = MotionClassifier(TrackerConfig(history_size=8))
    for i in range(15):
        mc.add_sample(make_pos(0, i * 1.4, i * 1000))
    assert len(mc.history) == 8
    assert mc.history[0].timestamp_ms == 7000
    assert mc.accepted == 15


def test_reset_clears_everything(make_pos):
    mc = MotionClassifier()
    for i in range(4):
        mc.add_sample(make_pos(0, i * 1.4, i * 1000))
    mc.add_sample(make_pos(0, 0, 4000, accuracy_m=99.0))
    mc.reset()
    assert mc.history == ()
    assert mc.rejected == {}
    assert mc.accepted == 0
    assert mc.last_step_m is None
    assert mc.current_speed() == 0.0
    assert mc.last_evicted is None
    assert not mc.displacement_confirmed()
