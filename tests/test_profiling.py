# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for sync tick timing.
"""

import json
import logging
import time
from pathlib import Path

import pytest

from voxsync.profiling import TickProfiler, TimingStats


class TestTimingStats:
    """Tests for TimingStats."""

    def test_record(self) -> None:
        stats = TimingStats(name="tick")
        for value in (1.0, 3.0, 2.0):
            stats.record(value)

        assert stats.call_count == 3
        assert stats.min_ms == 1.0
        assert stats.max_ms == 3.0
        assert stats.last_ms == 2.0
        assert stats.avg_ms == pytest.approx(2.0)

    def test_percentile(self) -> None:
        stats = TimingStats(name="tick")
        for value in range(100):
            stats.record(float(value))

        assert stats.percentile(0.95) == 95.0
        assert stats.percentile(1.0) == 99.0

    def test_empty(self) -> None:
        stats = TimingStats(name="tick")

        assert stats.avg_ms == 0.0
        assert stats.percentile(0.5) == 0.0
        assert stats.to_dict()["min_time_ms"] == 0.0


class TestTickProfiler:
    """Tests for TickProfiler."""

    def test_measure_records(self) -> None:
        profiler = TickProfiler()

        with profiler.measure():
            pass

        assert profiler.stats.call_count == 1
        assert profiler.stats.last_ms >= 0

    def test_slow_tick_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        profiler = TickProfiler(warn_ms=1.0, perf_logging=True)

        with caplog.at_level(logging.WARNING, logger="voxsync.profiling"):
            with profiler.measure():
                time.sleep(0.01)

        assert "exceeded" in caplog.text

    def test_no_warning_without_perf_logging(self, caplog: pytest.LogCaptureFixture) -> None:
        profiler = TickProfiler(warn_ms=1.0)

        with caplog.at_level(logging.WARNING, logger="voxsync.profiling"):
            with profiler.measure():
                time.sleep(0.01)

        assert caplog.text == ""

    def test_reset(self) -> None:
        profiler = TickProfiler()
        with profiler.measure():
            pass

        profiler.reset()

        assert profiler.stats.call_count == 0

    def test_save_report(self, tmp_path: Path) -> None:
        profiler = TickProfiler()
        with profiler.measure():
            pass

        output = tmp_path / "reports" / "ticks.json"
        profiler.save_report(output)

        report = json.loads(output.read_text(encoding="utf-8"))
        assert report["stats"][0]["name"] == "sync_tick"
        assert report["stats"][0]["call_count"] == 1
