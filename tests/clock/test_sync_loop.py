# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for the per-tick sync step and its drivers.
"""

import asyncio

import pytest

from voxsync.errors import InvalidArgumentError
from voxsync.sync_clock import SyncClock
from voxsync.sync_loop import MAX_TICK_INTERVAL_MS, SyncLoop, run_async
from voxsync.word_timing import WordTiming

WORDS = [
    WordTiming("Alpha", 0, 500, 0, 5),
    WordTiming("beta", 500, 1000, 6, 4),
    WordTiming("gamma", 1000, 1500, 11, 5),
]


def make_loop(tick_interval_ms: float = 50) -> SyncLoop:
    clock = SyncClock()
    clock.load_paragraphs(["One", "One two three four"], 10000)
    return SyncLoop(clock, tick_interval_ms=tick_interval_ms)


class TestTickInterval:
    """Validation of the tick interval."""

    @pytest.mark.parametrize("interval", [0, -10, MAX_TICK_INTERVAL_MS + 1])
    def test_rejected(self, interval: float) -> None:
        with pytest.raises(InvalidArgumentError):
            SyncLoop(SyncClock(), tick_interval_ms=interval)

    def test_maximum_accepted(self) -> None:
        loop = SyncLoop(SyncClock(), tick_interval_ms=MAX_TICK_INTERVAL_MS)

        assert loop.tick_interval_ms == MAX_TICK_INTERVAL_MS


class TestTick:
    """Tests for SyncLoop.tick()."""

    def test_idle_tick_does_nothing(self) -> None:
        loop = make_loop()
        events: list[int] = []
        loop.clock.on_paragraph_change(lambda index, ts: events.append(index))
        loop.clock.on_progress(lambda pct, remaining: events.append(-1))

        loop.tick(0, 5000)
        loop.tick(50, 5000)

        assert events == []
        assert loop.clock.current_time_ms == 0
        assert loop.tick_count == 2

    def test_tick_uses_host_time_for_events(self) -> None:
        loop = make_loop()
        events: list[tuple[int, float]] = []
        loop.clock.on_paragraph_change(lambda index, ts: events.append((index, ts)))
        loop.clock.start()

        loop.tick(1234, 2500)

        assert events == [(1, 1234)]

    def test_progress_every_tick(self) -> None:
        loop = make_loop()
        reports: list[float] = []
        loop.clock.on_progress(lambda pct, remaining: reports.append(pct))
        loop.clock.start()

        for now in (0, 50, 100):
            loop.tick(now)

        assert reports == pytest.approx([0.0, 0.5, 1.0])

    def test_records_tick_timing(self) -> None:
        loop = make_loop()
        loop.clock.start()

        loop.tick(0)
        loop.tick(50)

        assert loop.profiler.stats.call_count == 2
        assert loop.max_tick_ms >= loop.last_tick_ms >= 0


class TestSimulate:
    """Playback on a synthetic clock."""

    def test_paragraph_changes_once(self) -> None:
        loop = make_loop()
        events: list[tuple[int, float]] = []
        loop.clock.on_paragraph_change(lambda index, ts: events.append((index, ts)))
        loop.clock.start()

        ticks = loop.simulate(10000)

        assert ticks == 201
        assert events == [(1, 2000)]
        assert loop.clock.current_time_ms == 10000
        assert loop.clock.progress_percent == 100.0

    def test_words_in_order_without_repeats(self) -> None:
        loop = make_loop()
        loop.clock.set_word_timeline(WORDS)
        events: list[tuple[int | None, int]] = []
        loop.clock.on_word_change(lambda prev, new, ts: events.append((prev, new)))
        loop.clock.start()

        loop.simulate(1600)

        assert events == [(None, 0), (0, 1), (1, 2)]

    def test_gate_holds_words_until_ready(self) -> None:
        loop = make_loop()
        loop.clock.set_word_timeline(WORDS)
        events: list[int] = []
        loop.clock.on_word_change(lambda prev, new, ts: events.append(new))
        loop.clock.set_timeline_pending(0)
        loop.clock.start()

        loop.simulate(700)
        assert events == []

        loop.clock.set_timeline_ready(0)
        loop.tick(750)

        assert events == [1]

    def test_audio_positions(self) -> None:
        loop = make_loop()
        loop.clock.start()

        loop.simulate(500, position_source=lambda now: now * 2)

        assert loop.clock.current_time_ms == 1000
        assert loop.clock.drift_ms == pytest.approx(-50)

    def test_stops_when_clock_stops(self) -> None:
        loop = make_loop()

        assert loop.simulate(1000) == 0


class TestRunAsync:
    """Tests for the asyncio driver."""

    def test_runs_until_idle(self) -> None:
        loop = make_loop(tick_interval_ms=10)
        reports: list[float] = []

        def on_progress(pct: float, remaining: str) -> None:
            reports.append(pct)
            if len(reports) >= 5:
                loop.clock.stop()

        loop.clock.on_progress(on_progress)
        loop.clock.start()

        ticks = asyncio.run(run_async(loop, position_source=lambda: 3000.0))

        assert ticks == 5
        assert loop.clock.current_time_ms == 3000
        assert loop.clock.current_paragraph_index == 1

    def test_stop_event(self) -> None:
        loop = make_loop(tick_interval_ms=10)
        loop.clock.start()

        async def main() -> int:
            stop = asyncio.Event()
            task = asyncio.create_task(run_async(loop, stop_event=stop))
            await asyncio.sleep(0.05)
            stop.set()
            return await task

        ticks = asyncio.run(main())

        assert ticks >= 1
        assert loop.clock.is_running

    def test_idle_clock_returns_immediately(self) -> None:
        assert asyncio.run(run_async(make_loop())) == 0
