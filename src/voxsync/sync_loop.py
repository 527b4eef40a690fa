# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tick scheduling for the sync clock.

SyncLoop.tick() is the whole per-frame step: advance the clock, update the
paragraph highlight, update the word highlight unless the transition gate
holds it, and report progress. Hosts call it from their own scheduler, or
use one of the drivers here:

- ThreadedSyncLoop: a worker thread ticking at a fixed interval. Calls from
  other threads are queued and applied on the worker, so the clock only
  ever has one writer.
- run_async(): an asyncio task ticking between awaits.
"""

import asyncio
import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .errors import InvalidArgumentError, require_positive
from .profiling import TickProfiler
from .sync_clock import PlaybackState, SyncClock, SyncState
from .word_timing import WordTiming

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_MS: float = 50.0
# Slower ticking makes highlight movement visibly jerky
MAX_TICK_INTERVAL_MS: float = 100.0

PositionSource = Callable[[], float | None]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class SyncLoop:
    """
    Drives a SyncClock one tick at a time.

    Usage:
        loop = SyncLoop(clock)
        clock.start()
        # every frame:
        loop.tick(now_ms, audio_position_ms)
    """

    def __init__(
        self,
        clock: SyncClock,
        tick_interval_ms: float = DEFAULT_TICK_INTERVAL_MS,
        profiler: TickProfiler | None = None
    ) -> None:
        """
        Initialize the loop.

        Args:
            clock: Clock to drive
            tick_interval_ms: Intended time between ticks (at most 100ms)
            profiler: Tick timing collector (a quiet one when omitted)

        Raises:
            InvalidArgumentError: if tick_interval_ms is not in (0, 100]
        """
        require_positive("tick_interval_ms", tick_interval_ms)
        if tick_interval_ms > MAX_TICK_INTERVAL_MS:
            raise InvalidArgumentError(
                f"tick_interval_ms must be at most {MAX_TICK_INTERVAL_MS:.0f}, "
                f"got {tick_interval_ms}")
        self.clock = clock
        self.tick_interval_ms = tick_interval_ms
        self.profiler = profiler or TickProfiler()
        self.tick_count = 0

    @property
    def last_tick_ms(self) -> float:
        """Duration of the most recent tick."""
        return self.profiler.stats.last_ms

    @property
    def max_tick_ms(self) -> float:
        """Longest tick so far."""
        return self.profiler.stats.max_ms

    def tick(self, now_ms: float, audio_position_ms: float | None = None) -> None:
        """
        Run one sync step.

        Args:
            now_ms: Host clock reading in milliseconds (monotonic)
            audio_position_ms: Position the audio reports on the paragraph
                timeline, if available this tick
        """
        with self.profiler.measure():
            self.clock.advance(now_ms, audio_position_ms)
            if self.clock.is_running:
                self.clock.sync_to_paragraph(now_ms)
                if self.clock.should_sync_words:
                    self.clock.sync_to_word(now_ms)
                elif self.clock.has_word_timing:
                    logger.debug("Skipping word sync - timeline not ready yet")
                self.clock.emit_progress()
        self.tick_count += 1

    def simulate(self, until_ms: float, start_ms: float = 0.0,
                 position_source: Callable[[float], float | None] | None = None) -> int:
        """
        Tick with a synthetic clock from start_ms to until_ms.

        Args:
            until_ms: Last host time to tick at
            start_ms: First host time to tick at
            position_source: Maps host time to a reported audio position

        Returns:
            Number of ticks run
        """
        ticks = 0
        now = start_ms
        while now <= until_ms and self.clock.is_running:
            position = position_source(now) if position_source else None
            self.tick(now, position)
            ticks += 1
            now += self.tick_interval_ms
        return ticks


@dataclass
class ControlCommand:
    """Control command for the worker thread."""
    command: str
    param: Any = None


class ThreadedSyncLoop:
    """
    Runs a SyncLoop on its own thread.

    Features:
    - Fixed-interval ticking on a daemon worker thread
    - All mutations queued and applied on the worker (single writer)
    - Cached state snapshot readable from any thread
    - Callbacks registered on the clock run on the worker thread

    Usage:
        runner = ThreadedSyncLoop(clock, position_source=player.position_ms)
        runner.load_paragraphs(paragraphs, 60000)
        runner.start()
        ...
        state = runner.get_cached_state()
        runner.shutdown()
    """

    def __init__(
        self,
        clock: SyncClock,
        tick_interval_ms: float = DEFAULT_TICK_INTERVAL_MS,
        position_source: PositionSource | None = None,
        max_queue_size: int = 100,
        time_source: Callable[[], float] | None = None,
        profiler: TickProfiler | None = None
    ) -> None:
        """
        Initialize and start the worker thread.

        Args:
            clock: Clock owned by the worker from now on
            tick_interval_ms: Time between ticks (at most 100ms)
            position_source: Polled each tick for the audio position in ms
            max_queue_size: Maximum queued commands before new ones are dropped
            time_source: Monotonic clock in ms (default: time.monotonic)
            profiler: Tick timing collector
        """
        self.worker_thread: threading.Thread | None = None
        self.shutdown_flag = threading.Event()
        self.started = threading.Event()

        self.loop = SyncLoop(clock, tick_interval_ms, profiler)
        self.position_source = position_source
        self._time_source = time_source or _monotonic_ms

        self.request_queue: queue.Queue[ControlCommand] = queue.Queue(maxsize=max_queue_size)

        self.state_lock = threading.Lock()
        self.latest_state: SyncState = clock.snapshot()
        self._reported_position: float | None = None

        self._start_worker()

        self.started.wait(timeout=5.0)
        if not self.started.is_set():
            raise RuntimeError("Sync worker thread failed to start")

    @property
    def clock(self) -> SyncClock:
        """The clock being driven (only touch it from callbacks)."""
        return self.loop.clock

    def _start_worker(self) -> None:
        """Start the worker thread."""
        self.worker_thread = threading.Thread(
            target=self._worker_loop,
            name="SyncLoopWorker",
            daemon=True
        )
        self.worker_thread.start()

    def _worker_loop(self) -> None:
        """Main loop for the worker thread."""
        interval_s = self.loop.tick_interval_ms / 1000
        logger.info("Sync worker started (%.0fms ticks)", self.loop.tick_interval_ms)
        self.started.set()

        try:
            while not self.shutdown_flag.is_set():
                tick_start = time.monotonic()
                try:
                    self._drain_commands()
                    self.loop.tick(self._time_source(), self._next_position())
                    with self.state_lock:
                        self.latest_state = self.loop.clock.snapshot()
                except Exception as e:
                    logger.error("Error in sync worker: %s", e, exc_info=True)

                remaining = interval_s - (time.monotonic() - tick_start)
                if remaining > 0:
                    self.shutdown_flag.wait(remaining)
        finally:
            logger.info("Sync worker stopped")

    def _next_position(self) -> float | None:
        if self._reported_position is not None:
            position, self._reported_position = self._reported_position, None
            return position
        if self.position_source is not None:
            return self.position_source()
        return None

    def _drain_commands(self) -> None:
        while True:
            try:
                cmd = self.request_queue.get_nowait()
            except queue.Empty:
                return
            self._handle_control_command(cmd)

    def _handle_control_command(self, cmd: ControlCommand) -> None:
        """Apply a queued command to the clock."""
        clock = self.loop.clock

        if cmd.command == 'seek_to':
            clock.seek_to(cmd.param)
        elif cmd.command == 'seek_to_paragraph':
            clock.seek_to_paragraph(cmd.param)
        elif cmd.command == 'start':
            clock.start()
        elif cmd.command == 'pause':
            clock.pause()
        elif cmd.command == 'resume':
            clock.resume()
        elif cmd.command == 'stop':
            clock.stop()
        elif cmd.command == 'reset':
            clock.reset()
            self._reported_position = None
        elif cmd.command == 'load_paragraphs':
            paragraphs, estimated_total_ms = cmd.param
            clock.load_paragraphs(paragraphs, estimated_total_ms)
        elif cmd.command == 'rebuild_timeline':
            clock.rebuild_timeline_with_duration(cmd.param)
        elif cmd.command == 'set_word_timeline':
            words, paragraph_index = cmd.param
            clock.set_word_timeline(words, paragraph_index)
        elif cmd.command == 'clear_word_timeline':
            clock.clear_word_timeline()
        elif cmd.command == 'paragraph_duration':
            clock.set_current_paragraph_duration(cmd.param)
        elif cmd.command == 'timeline_pending':
            clock.set_timeline_pending(cmd.param)
        elif cmd.command == 'timeline_ready':
            clock.set_timeline_ready(cmd.param)
        elif cmd.command == 'audio_position':
            self._reported_position = cmd.param
        elif cmd.command == 'barrier':
            cmd.param.set()
        else:
            logger.warning("Unknown sync command %r", cmd.command)

        with self.state_lock:
            self.latest_state = clock.snapshot()

    def _submit(self, command: str, param: Any = None) -> bool:
        try:
            self.request_queue.put_nowait(ControlCommand(command=command, param=param))
            return True
        except queue.Full:
            logger.warning("Failed to queue %s command (queue full)", command)
            return False

    def load_paragraphs(self, paragraphs: Sequence[str], estimated_total_ms: float) -> bool:
        """Install a new page's paragraphs with an estimated duration."""
        return self._submit('load_paragraphs', (list(paragraphs), estimated_total_ms))

    def rebuild_timeline_with_duration(self, actual_ms: float) -> bool:
        """Rescale the timeline to the measured audio duration."""
        return self._submit('rebuild_timeline', actual_ms)

    def seek_to(self, time_ms: float) -> bool:
        """Jump to a position on the paragraph timeline."""
        return self._submit('seek_to', time_ms)

    def seek_to_paragraph(self, index: int) -> bool:
        """Jump to the start of a paragraph."""
        return self._submit('seek_to_paragraph', index)

    def start(self) -> bool:
        """Start playback sync."""
        return self._submit('start')

    def pause(self) -> bool:
        """Pause playback sync."""
        return self._submit('pause')

    def resume(self) -> bool:
        """Resume playback sync."""
        return self._submit('resume')

    def stop(self) -> bool:
        """Stop playback sync."""
        return self._submit('stop')

    def reset(self) -> bool:
        """Clear all sync state."""
        return self._submit('reset')

    def set_word_timeline(self, words: Iterable[WordTiming | Mapping[str, Any]],
                          paragraph_index: int | None = None) -> bool:
        """Replace the word timeline (copied before queueing)."""
        return self._submit('set_word_timeline', (list(words), paragraph_index))

    def clear_word_timeline(self) -> bool:
        """Drop the word timeline."""
        return self._submit('clear_word_timeline')

    def set_current_paragraph_duration(self, duration_ms: float) -> bool:
        """Report the real duration of the current paragraph's audio."""
        return self._submit('paragraph_duration', duration_ms)

    def set_timeline_pending(self, paragraph_index: int) -> bool:
        """Hold word sync until the paragraph's timeline is acknowledged."""
        return self._submit('timeline_pending', paragraph_index)

    def set_timeline_ready(self, paragraph_index: int) -> bool:
        """Acknowledge a paragraph's timeline."""
        return self._submit('timeline_ready', paragraph_index)

    def report_audio_position(self, position_ms: float) -> bool:
        """Supply the audio position for the next tick."""
        return self._submit('audio_position', position_ms)

    def flush(self, timeout: float = 1.0) -> bool:
        """
        Wait until every command queued so far has been applied.

        Returns:
            True if the worker caught up within timeout
        """
        done = threading.Event()
        if not self._submit('barrier', done):
            return False
        return done.wait(timeout)

    def get_cached_state(self) -> SyncState:
        """Latest state snapshot, safe to read from any thread."""
        with self.state_lock:
            return self.latest_state

    def shutdown(self) -> None:
        """Stop the worker thread."""
        self.shutdown_flag.set()

        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=2.0)

    def __del__(self) -> None:
        """Cleanup on deletion."""
        self.shutdown()


async def run_async(
    loop: SyncLoop,
    position_source: PositionSource | None = None,
    stop_event: asyncio.Event | None = None,
    time_source: Callable[[], float] | None = None
) -> int:
    """
    Tick loop for asyncio hosts.

    Runs until stop_event is set or the clock goes idle. Start the clock
    before awaiting this.

    Returns:
        Number of ticks run
    """
    now = time_source or _monotonic_ms
    interval_s = loop.tick_interval_ms / 1000
    ticks = 0

    while not (stop_event and stop_event.is_set()):
        if loop.clock.state is PlaybackState.IDLE:
            break
        loop.tick(now(), position_source() if position_source else None)
        ticks += 1
        await asyncio.sleep(interval_s)

    return ticks
