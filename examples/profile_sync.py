#!/usr/bin/env python3
# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Example script showing how to profile the sync loop.

Plays a synthetic page on a simulated clock, with word timing for every
paragraph and a jittery audio position, then reports how long each tick took.
"""

import random
from pathlib import Path

from voxsync.aligner import WordAligner
from voxsync.profiling import TickProfiler
from voxsync.sync_clock import SyncClock
from voxsync.sync_loop import SyncLoop

PARAGRAPH = ("The quick brown fox jumps over the lazy dog. "
             "She sells sea shells by the sea shore.")


def character_payload(text, seconds_per_char=0.06):
    """Character alignment with a fixed speaking speed."""
    return {
        "characters": list(text),
        "character_start_times_seconds": [i * seconds_per_char for i in range(len(text))],
        "character_end_times_seconds": [(i + 1) * seconds_per_char for i in range(len(text))],
    }


def main():
    """Run a profiled playback session."""
    paragraphs = [PARAGRAPH] * 40
    payload = character_payload(PARAGRAPH)
    paragraph_ms = payload["character_end_times_seconds"][-1] * 1000

    print("=" * 80)
    print("SYNC LOOP PROFILING")
    print("=" * 80)
    print(f"Page: {len(paragraphs)} paragraphs, {paragraph_ms * len(paragraphs) / 1000:.0f}s")
    print()

    profiler = TickProfiler(warn_ms=1.0, perf_logging=True)
    clock = SyncClock()
    loop = SyncLoop(clock, tick_interval_ms=16, profiler=profiler)
    aligner = WordAligner()

    word_events = 0

    def on_word(prev, new, timestamp_ms):
        nonlocal word_events
        word_events += 1

    clock.on_word_change(on_word)
    clock.load_paragraphs(paragraphs, paragraph_ms * len(paragraphs))
    clock.start()

    rng = random.Random(1)
    for index, timing in enumerate(clock.paragraph_timeline):
        clock.set_timeline_pending(index)
        clock.seek_to_paragraph(index)
        result = aligner.align(payload, PARAGRAPH)
        clock.set_word_timeline(result.words, index)
        clock.set_timeline_ready(index)

        now = timing.start_ms
        while now < timing.end_ms:
            # Audio reports its position with up to 30ms of jitter
            loop.tick(now, now + rng.uniform(-30, 30))
            now += loop.tick_interval_ms

    stats = profiler.stats
    print(f"Ticks:       {stats.call_count}")
    print(f"Word events: {word_events}")
    print(f"Average:     {stats.avg_ms * 1000:.1f}us")
    print(f"p95:         {stats.percentile(0.95) * 1000:.1f}us")
    print(f"Max:         {stats.max_ms * 1000:.1f}us")
    print()

    output_dir = Path(__file__).parent.parent / "profiling_results"
    report_path = output_dir / "sync_profile.json"
    profiler.save_report(report_path)
    print(f"Detailed report saved to: {report_path}")


if __name__ == "__main__":
    main()
