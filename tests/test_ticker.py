from __future__ import annotations

import threading

import pytest

from run_tracker.ticker import ThreadTicker


def test_invalid_interval():
    with pytest.raises(ValueError):
        ThreadTicker(0)


def test_ticks_until_stopped():
    ticker = ThreadTicker(0.01)
    hits = threading.Semaphore(0)
    ticker.start(hits.release)
    assert ticker.running
    for _ in range(3):
        assert hits.acquire(timeout=2.0)
    ticker.stop()
    assert not ticker.running


def test_failing_callback_keeps_ticking(caplog):
    ticker = ThreadTicker(0.01)
    hits = threading.Semaphore(0)

    def boom():
        hits.release()
        raise RuntimeError("boom")

    ticker.start(boom)
    assert hits.acquire(timeout=2.0)
    assert hits.acquire(timeout=2.0)
    ticker.stop()
    assert "tick 回调异常" in caplog.text


def test_stop_from_callback_does_not_deadlock():
    ticker = ThreadTicker(0.01)
    done = threading.Event()

    def once():
        ticker.stop()
        done.set()

    ticker.start(once)
    assert done.wait(timeout=2.0)
    assert not ticker.running
