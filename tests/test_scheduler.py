"""Tests for the frame-rate gated scheduler."""

import time

import pytest

from motionrig.pipeline.scheduler import AnimationScheduler


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def test_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        AnimationScheduler(Counter(), max_frame_rate=0)


def test_first_refresh_always_ticks():
    tick = Counter()
    scheduler = AnimationScheduler(tick, max_frame_rate=15)

    assert scheduler.on_frame(1000.0)
    assert tick.calls == 1


def test_refreshes_inside_interval_are_dropped():
    tick = Counter()
    scheduler = AnimationScheduler(tick, max_frame_rate=15)

    results = [scheduler.on_frame(t) for t in (0.0, 16.7, 33.3, 50.0, 66.7, 83.3)]

    assert results == [True, False, False, False, True, False]
    assert scheduler.ticks_run == 2
    assert scheduler.ticks_skipped == 4


def test_host_refresh_is_capped_to_budget():
    tick = Counter()
    scheduler = AnimationScheduler(tick, max_frame_rate=30)

    for i in range(600):
        scheduler.on_frame(i * 1000.0 / 120.0)

    # 5 seconds of 120 Hz refreshes
    assert 120 <= tick.calls <= 151
    assert scheduler.effective_rate <= 30.0 + 1e-6


def test_reentrant_refresh_is_skipped():
    nested = []

    def tick():
        nested.append(scheduler.on_frame(10_000.0))

    scheduler = AnimationScheduler(tick, max_frame_rate=60)

    assert scheduler.on_frame(0.0)
    assert nested == [False]
    assert scheduler.ticks_run == 1


def test_reset_clears_timing():
    scheduler = AnimationScheduler(Counter(), max_frame_rate=10)
    scheduler.on_frame(0.0)
    scheduler.reset()

    assert scheduler.ticks_run == 0
    assert scheduler.on_frame(1.0)


def test_background_driver():
    tick = Counter()
    scheduler = AnimationScheduler(tick, max_frame_rate=100, host_refresh_hz=200)

    scheduler.start()
    assert scheduler.is_running
    time.sleep(0.2)
    scheduler.stop()

    assert not scheduler.is_running
    assert tick.calls >= 1


def test_tick_failure_does_not_stop_driver(caplog):
    calls = []

    def tick():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler = AnimationScheduler(tick, max_frame_rate=100, host_refresh_hz=200)
    scheduler.start()
    time.sleep(0.2)
    scheduler.stop()

    assert len(calls) >= 2
    assert "Animation tick failed" in caplog.text
