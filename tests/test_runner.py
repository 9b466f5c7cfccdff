"""Test the async driving loop."""
import asyncio

import pytest
from engine.engine import PlaybackEngine
from runtime.runner import PlaybackRunner
from conftest import make_events


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_tick_advances_by_elapsed_clock_time():
    clock = FakeClock()
    eng = PlaybackEngine(make_events(0, 30))
    eng.set_speed(2.0)
    eng.play()
    runner = PlaybackRunner(eng, frame_ms=50, clock=clock)

    assert runner.tick() == 0.0  # first tick only anchors the clock
    clock.now += 1.5
    assert runner.tick() == 1.5
    assert eng.snapshot().current_time == 3.0


def test_tick_while_paused_leaves_time_alone():
    clock = FakeClock()
    eng = PlaybackEngine(make_events(0, 30))
    runner = PlaybackRunner(eng, clock=clock)
    runner.tick()
    clock.now += 5
    runner.tick()
    assert eng.snapshot().current_time == 0.0


@pytest.mark.asyncio
async def test_runner_drives_playback_until_stopped():
    eng = PlaybackEngine(make_events(0, 1000))
    runner = PlaybackRunner(eng, frame_ms=5)
    eng.play()
    await runner.start()
    assert runner.is_running
    await asyncio.sleep(0.1)
    await runner.stop()
    assert not runner.is_running

    t = eng.snapshot().current_time
    assert t > 0
    await asyncio.sleep(0.05)
    assert eng.snapshot().current_time == t


@pytest.mark.asyncio
async def test_runner_playback_pauses_at_end():
    eng = PlaybackEngine(make_events(0, 0.01))
    eng.set_speed(10.0)
    runner = PlaybackRunner(eng, frame_ms=5)
    eng.play()
    await runner.start()
    await asyncio.sleep(0.1)
    await runner.stop()
    snap = eng.snapshot()
    assert not snap.is_playing
    assert snap.active_event_index == 1
