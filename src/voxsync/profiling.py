# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tick timing for the sync loop.

Each tick should finish in microseconds; a slow tick shows up as a visibly
late highlight. TickProfiler records how long each tick took and can warn
when one runs over its target.
"""

import json
import logging
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Individual tick times kept for percentile analysis
RECENT_TICKS: int = 1000


@dataclass
class TimingStats:
    """Statistics for a timed code section (times in milliseconds)."""
    name: str
    call_count: int = 0
    total_ms: float = 0.0
    min_ms: float = float('inf')
    max_ms: float = 0.0
    last_ms: float = 0.0
    recent: deque[float] = field(default_factory=lambda: deque(maxlen=RECENT_TICKS))

    @property
    def avg_ms(self) -> float:
        """Average time per call."""
        return self.total_ms / self.call_count if self.call_count > 0 else 0.0

    def percentile(self, fraction: float) -> float:
        """Time below which the given fraction of recent calls finished."""
        if not self.recent:
            return 0.0
        ordered = sorted(self.recent)
        idx = int(len(ordered) * fraction)
        return ordered[min(idx, len(ordered) - 1)]

    def record(self, duration_ms: float) -> None:
        """Add one measurement."""
        self.call_count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        self.last_ms = duration_ms
        self.recent.append(duration_ms)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "call_count": self.call_count,
            "total_time_ms": self.total_ms,
            "avg_time_ms": self.avg_ms,
            "min_time_ms": self.min_ms if self.call_count else 0.0,
            "max_time_ms": self.max_ms,
            "p95_time_ms": self.percentile(0.95),
            "p99_time_ms": self.percentile(0.99),
        }


class TickProfiler:
    """
    Measures sync loop ticks.

    Usage:
        profiler = TickProfiler(warn_ms=5.0, perf_logging=True)
        with profiler.measure():
            loop_body()
        print(profiler.stats.last_ms, profiler.stats.max_ms)
    """

    def __init__(self, warn_ms: float = 5.0, perf_logging: bool = False) -> None:
        self.warn_ms: float = warn_ms
        self.perf_logging: bool = perf_logging
        self.stats: TimingStats = TimingStats(name="sync_tick")

    @contextmanager
    def measure(self) -> Iterator[None]:
        """Time the enclosed block as one tick."""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.stats.record(duration_ms)
            if self.perf_logging and duration_ms > self.warn_ms:
                logger.warning("Sync tick exceeded %.1fms target: %.2fms",
                               self.warn_ms, duration_ms)

    def reset(self) -> None:
        """Clear all collected statistics."""
        self.stats = TimingStats(name=self.stats.name)

    def save_report(self, output_path: Path | str) -> None:
        """Save the tick statistics to a JSON file."""
        report = {
            "timestamp": time.time(),
            "stats": [self.stats.to_dict()]
        }

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2)

        logger.info("Tick timing report saved to %s", output_path)
