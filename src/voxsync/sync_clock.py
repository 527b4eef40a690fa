# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Playback position tracking for read-along highlighting.

SyncClock holds the playback position for a page and derives from it which
paragraph and which word should be highlighted. Positions are page-level
milliseconds on the paragraph timeline; word timings are relative to the
start of the paragraph they belong to.

The clock is synchronous and owned by a single scheduling context. All
mutation happens through its methods, called from that context only.
"""

import bisect
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .debug_log import SyncEventLog
from .errors import require_non_negative, require_positive
from .timeline import (
    ParagraphTiming,
    Timeline,
    build_estimate,
    paragraph_at,
    rescale,
)
from .transition_gate import TransitionGate
from .word_timing import (
    DEFAULT_RESCALE_TOLERANCE_MS,
    WordTiming,
    normalize_word_timing,
    scale_word_timeline,
)

logger = logging.getLogger(__name__)

DEFAULT_DRIFT_THRESHOLD_MS: float = 200.0

ParagraphChangeCallback = Callable[[int, float], None]
WordChangeCallback = Callable[[int | None, int, float], None]
ProgressCallback = Callable[[float, str], None]


class PlaybackState(Enum):
    """Lifecycle of the clock."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True)
class SyncState:
    """Point-in-time copy of the clock's state."""
    current_paragraph_index: int
    current_time_ms: float
    total_duration_ms: float
    current_word_index: int | None
    is_timeline_accurate: bool
    is_running: bool
    drift_ms: float
    timeline_ready: bool
    pending_timeline_paragraph: int


def format_time_remaining(remaining_ms: float) -> str:
    """Format milliseconds as M:SS ("2:05"), never negative."""
    total_seconds = int(max(0.0, remaining_ms) // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def _wall_clock_ms() -> float:
    return time.time() * 1000


class SyncClock:
    """
    Tracks playback position and the highlighted paragraph and word.

    Usage:
        clock = SyncClock()
        clock.load_paragraphs(paragraphs, estimated_total_ms=60000)
        clock.on_paragraph_change(lambda index, ts: renderer.paragraph(index))
        clock.on_word_change(lambda prev, new, ts: renderer.word(new))
        clock.start()
        clock.seek_to(12500)
    """

    def __init__(
        self,
        drift_threshold_ms: float = DEFAULT_DRIFT_THRESHOLD_MS,
        word_rescale_tolerance_ms: float = DEFAULT_RESCALE_TOLERANCE_MS,
        event_log: SyncEventLog | None = None,
        time_source: Callable[[], float] | None = None
    ) -> None:
        """
        Initialize the clock.

        Args:
            drift_threshold_ms: Drift magnitude above which the clock counts as drifting
            word_rescale_tolerance_ms: Mismatch between word timings and real
                paragraph audio tolerated before word timings are rescaled
            event_log: Trace of emitted events (disabled log when omitted)
            time_source: Wall clock in ms for event timestamps outside ticks
        """
        self.drift_threshold_ms: float = require_non_negative(
            "drift_threshold_ms", drift_threshold_ms)
        self.word_rescale_tolerance_ms: float = require_non_negative(
            "word_rescale_tolerance_ms", word_rescale_tolerance_ms)
        self.event_log: SyncEventLog = event_log or SyncEventLog()
        self._time_source: Callable[[], float] = time_source or _wall_clock_ms

        self.gate: TransitionGate = TransitionGate()

        self._on_paragraph_change: ParagraphChangeCallback | None = None
        self._on_word_change: WordChangeCallback | None = None
        self._on_progress: ProgressCallback | None = None

        self._playback_rate: float = 1.0
        self.resync_count: int = 0
        self._clear_state()

    def _clear_state(self) -> None:
        """Return every piece of playback state to its initial value."""
        self.paragraph_timeline: Timeline = ()
        self.word_timeline: tuple[WordTiming, ...] = ()
        self._word_starts: tuple[float, ...] = ()
        self._word_paragraph: int = 0

        self.state: PlaybackState = PlaybackState.IDLE
        self._current_time_ms: float = 0.0
        self._total_duration_ms: float = 0.0
        self._current_paragraph_index: int = 0
        self._current_word_index: int | None = None
        self._is_timeline_accurate: bool = False
        self._drift_ms: float = 0.0
        self._last_tick_ms: float | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def current_paragraph_index(self) -> int:
        """Index of the highlighted paragraph."""
        return self._current_paragraph_index

    @property
    def current_time_ms(self) -> float:
        """Playback position on the paragraph timeline."""
        return self._current_time_ms

    @property
    def total_duration_ms(self) -> float:
        """Duration covered by the paragraph timeline."""
        return self._total_duration_ms

    @property
    def current_word_index(self) -> int | None:
        """Index of the highlighted word, None without word timing."""
        return self._current_word_index

    @property
    def is_timeline_accurate(self) -> bool:
        """True once the timeline has been rebuilt from a measured duration."""
        return self._is_timeline_accurate

    @property
    def is_running(self) -> bool:
        """Check if the clock is advancing."""
        return self.state is PlaybackState.RUNNING

    @property
    def has_word_timing(self) -> bool:
        """Check if a non-empty word timeline is loaded."""
        return len(self.word_timeline) > 0

    @property
    def timeline_ready(self) -> bool:
        """False while a paragraph's word timeline is pending."""
        return self.gate.timeline_ready

    @property
    def pending_timeline_paragraph(self) -> int:
        """Paragraph whose timeline is pending, -1 when none."""
        return self.gate.pending_paragraph

    @property
    def should_sync_words(self) -> bool:
        """Word sync runs only when word timing is loaded and not pending."""
        return self.gate.should_sync_words(self.has_word_timing)

    @property
    def drift_ms(self) -> float:
        """Predicted position minus reported audio position (positive: clock ahead)."""
        return self._drift_ms

    @property
    def is_drifting(self) -> bool:
        """Check if drift exceeds the threshold."""
        return abs(self._drift_ms) > self.drift_threshold_ms

    @property
    def progress_percent(self) -> float:
        """Playback progress, 0-100."""
        if self._total_duration_ms == 0:
            return 0.0
        return min(100.0, max(0.0, self._current_time_ms / self._total_duration_ms * 100))

    @property
    def playback_rate(self) -> float:
        """Audio speed multiplier used to advance the clock between samples."""
        return self._playback_rate

    @playback_rate.setter
    def playback_rate(self, rate: float) -> None:
        self._playback_rate = require_positive("playback_rate", rate)

    def get_time_remaining(self) -> str:
        """Time left as M:SS."""
        return format_time_remaining(self._total_duration_ms - self._current_time_ms)

    def snapshot(self) -> SyncState:
        """Copy the current state."""
        return SyncState(
            current_paragraph_index=self._current_paragraph_index,
            current_time_ms=self._current_time_ms,
            total_duration_ms=self._total_duration_ms,
            current_word_index=self._current_word_index,
            is_timeline_accurate=self._is_timeline_accurate,
            is_running=self.is_running,
            drift_ms=self._drift_ms,
            timeline_ready=self.gate.timeline_ready,
            pending_timeline_paragraph=self.gate.pending_paragraph
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def on_paragraph_change(self, callback: ParagraphChangeCallback | None) -> None:
        """Register callback(index, timestamp_ms) for paragraph transitions."""
        self._on_paragraph_change = callback

    def on_word_change(self, callback: WordChangeCallback | None) -> None:
        """Register callback(prev_index, new_index, timestamp_ms) for word transitions."""
        self._on_word_change = callback

    def on_progress(self, callback: ProgressCallback | None) -> None:
        """Register callback(progress_percent, time_remaining) called every tick."""
        self._on_progress = callback

    def emit_progress(self) -> None:
        """Report progress to the progress callback, if any."""
        if self._on_progress:
            self._on_progress(self.progress_percent, self.get_time_remaining())

    def _event_time(self, now_ms: float | None) -> float:
        return now_ms if now_ms is not None else self._time_source()

    # ------------------------------------------------------------------
    # Paragraph timeline
    # ------------------------------------------------------------------

    def load_paragraphs(self, paragraphs: Sequence[str], estimated_total_ms: float) -> None:
        """Reset the clock and install an estimated timeline for a new page."""
        timeline = build_estimate(paragraphs, estimated_total_ms)
        self.reset()
        self.paragraph_timeline = timeline
        self._total_duration_ms = estimated_total_ms if timeline else 0.0
        logger.info("Loaded %d paragraphs, estimated %.0fms",
                    len(timeline), self._total_duration_ms)

    def rebuild_timeline_with_duration(self, actual_ms: float) -> None:
        """
        Rescale the paragraph timeline to the measured audio duration.

        Does nothing when no timeline is loaded or its duration is zero.
        """
        require_non_negative("actual_ms", actual_ms)
        if not self.paragraph_timeline or self._total_duration_ms == 0:
            logger.debug("Skipping timeline rebuild: no estimated timeline")
            return

        self.paragraph_timeline = rescale(self.paragraph_timeline, actual_ms)
        self._total_duration_ms = actual_ms
        self._is_timeline_accurate = True
        self._current_time_ms = min(self._current_time_ms, actual_ms)
        logger.info("Timeline rebuilt with actual duration %.0fms", actual_ms)

    def paragraph_timing(self, index: int) -> ParagraphTiming | None:
        """Timing of paragraph index, None when out of range."""
        if 0 <= index < len(self.paragraph_timeline):
            return self.paragraph_timeline[index]
        return None

    # ------------------------------------------------------------------
    # Word timeline
    # ------------------------------------------------------------------

    def set_word_timeline(
        self,
        words: Iterable[WordTiming | Mapping[str, Any]],
        paragraph_index: int | None = None
    ) -> None:
        """
        Replace the active word timeline.

        Args:
            words: Word timings relative to the paragraph's audio start
            paragraph_index: Paragraph the words belong to (default: current)
        """
        timeline = tuple(normalize_word_timing(w) for w in words)
        self.word_timeline = timeline
        self._word_starts = tuple(w.start_ms for w in timeline)
        self._word_paragraph = (self._current_paragraph_index
                                if paragraph_index is None else paragraph_index)
        self._current_word_index = None
        logger.debug("Word timeline set: %d words for paragraph %d",
                     len(timeline), self._word_paragraph)

    def clear_word_timeline(self) -> None:
        """Drop word timing; highlighting falls back to paragraphs only."""
        self.word_timeline = ()
        self._word_starts = ()
        self._current_word_index = None

    def set_current_paragraph_duration(self, duration_ms: float) -> None:
        """Stretch word timings to the real duration of the paragraph's audio."""
        require_non_negative("duration_ms", duration_ms)
        scaled = scale_word_timeline(self.word_timeline, duration_ms,
                                     self.word_rescale_tolerance_ms)
        if scaled is not self.word_timeline:
            self.word_timeline = tuple(scaled)
            self._word_starts = tuple(w.start_ms for w in self.word_timeline)

    def _word_origin_ms(self) -> float:
        timing = self.paragraph_timing(self._word_paragraph)
        return timing.start_ms if timing else 0.0

    def _binary_search_word(self, time_ms: float) -> int:
        """
        Find the word playing at time_ms (relative to the paragraph start).

        A word owns [start_ms, end_ms); a boundary belongs to the word that
        starts there. Times before the first word give 0, times after the
        last give the last index, and gaps resolve to the preceding word.
        Returns -1 only when no word timeline is loaded.
        """
        if not self._word_starts:
            return -1
        index = bisect.bisect_right(self._word_starts, time_ms) - 1
        return max(index, 0)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync_to_paragraph(self, now_ms: float | None = None) -> None:
        """Update the paragraph index from the position, firing on change."""
        new_index = paragraph_at(self.paragraph_timeline, self._current_time_ms)
        if new_index < 0 or new_index == self._current_paragraph_index:
            return

        old_index = self._current_paragraph_index
        self._current_paragraph_index = new_index
        self.event_log.log_paragraph_change(old_index, new_index, self._current_time_ms)
        if self._on_paragraph_change:
            self._on_paragraph_change(new_index, self._event_time(now_ms))

    def sync_to_word(self, now_ms: float | None = None) -> None:
        """
        Update the word index from the position, firing on change.

        The word timeline only applies while its own paragraph is the
        highlighted one; elsewhere no word is highlighted.
        """
        if self._word_paragraph != self._current_paragraph_index:
            self._current_word_index = None
            return

        new_index = self._binary_search_word(self._current_time_ms - self._word_origin_ms())
        if new_index < 0 or new_index == self._current_word_index:
            return

        old_index = self._current_word_index
        self._current_word_index = new_index
        self.event_log.log_word_change(old_index, new_index, self._current_time_ms,
                                       self.word_timeline[new_index].word)
        if self._on_word_change:
            self._on_word_change(old_index, new_index, self._event_time(now_ms))

    def seek_to(self, time_ms: float) -> None:
        """
        Jump to time_ms, clamped to the timeline.

        Drift is cleared and the paragraph and word indices are recomputed
        immediately. The word index is only recomputed when the landing
        paragraph owns the loaded word timeline, and never while a timeline
        is pending.
        """
        self._current_time_ms = min(max(float(time_ms), 0.0), self._total_duration_ms)
        self._drift_ms = 0.0
        self._last_tick_ms = None
        self.sync_to_paragraph()
        if self.should_sync_words:
            self.sync_to_word()

    def seek_to_paragraph(self, index: int) -> None:
        """Jump to the start of paragraph index; out-of-range indices are ignored."""
        timing = self.paragraph_timing(index)
        if timing is None:
            logger.debug("Ignoring seek to paragraph %d (have %d)",
                         index, len(self.paragraph_timeline))
            return
        self.seek_to(timing.start_ms)

    def advance(self, now_ms: float, audio_position_ms: float | None = None) -> None:
        """
        Move the position forward for one tick.

        Between samples the position advances with wall-clock time at the
        playback rate. When the audio reports its position, the difference
        from the prediction is recorded as drift and the reported position
        is adopted.
        """
        if self.state is not PlaybackState.RUNNING:
            self._last_tick_ms = now_ms
            return

        elapsed_ms = 0.0 if self._last_tick_ms is None else max(0.0, now_ms - self._last_tick_ms)
        self._last_tick_ms = now_ms
        position = self._current_time_ms + elapsed_ms * self._playback_rate

        if audio_position_ms is not None:
            self._drift_ms = position - audio_position_ms
            if self.is_drifting:
                self.resync_count += 1
                logger.warning("Sync drift detected: %+.0fms - resyncing to audio",
                               self._drift_ms)
                self.event_log.log_drift(self._drift_ms, self.drift_threshold_ms,
                                         audio_position_ms)
            position = audio_position_ms

        if self._total_duration_ms > 0:
            position = min(position, self._total_duration_ms)
        self._current_time_ms = max(0.0, position)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start advancing from the current position."""
        self.state = PlaybackState.RUNNING
        self._last_tick_ms = None

    def pause(self) -> None:
        """Hold the position."""
        if self.state is PlaybackState.RUNNING:
            self.state = PlaybackState.PAUSED

    def resume(self) -> None:
        """Continue after pause()."""
        if self.state is PlaybackState.PAUSED:
            self.state = PlaybackState.RUNNING
            self._last_tick_ms = None

    def stop(self) -> None:
        """Stop advancing and drop any pending timeline handshake."""
        self.state = PlaybackState.IDLE
        self._last_tick_ms = None
        self.gate.reset()

    def set_timeline_pending(self, paragraph_index: int) -> None:
        """Hold word sync until paragraph_index's timeline is acknowledged."""
        self.gate.set_timeline_pending(paragraph_index)
        self.event_log.log_transition("pending", paragraph_index)

    def set_timeline_ready(self, paragraph_index: int) -> bool:
        """Acknowledge paragraph_index's timeline; stale acknowledgments are dropped."""
        accepted = self.gate.set_timeline_ready(paragraph_index)
        self.event_log.log_transition("ready" if accepted else "stale", paragraph_index)
        return accepted

    def reset(self) -> None:
        """Stop and clear all timelines and position state."""
        self.stop()
        self._clear_state()
        self.resync_count = 0
