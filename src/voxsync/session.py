# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Read-along session: wires the timeline builder, aligner, clock and loop
together for one page.

A host drives it like this:

    session = ReadAlongSession()
    session.load(paragraphs)            # estimated timeline
    session.audio_loaded(total_ms)      # timeline rescaled to real audio
    session.play()
    session.begin_paragraph(0)          # word sync held until timing arrives
    session.deliver_alignment(0, payload)
    session.tick(now_ms, audio_ms)      # every frame
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .aligner import AlignmentResult, WordAligner
from .alignment_input import CharacterAlignment, WordTranscription, parse_alignment_payload
from .config import (
    DEFAULT_CONFIG,
    Config,
    get_alignment_settings,
    get_estimate_settings,
    get_sync_settings,
)
from .debug_log import SyncEventLog
from .profiling import TickProfiler
from .sync_clock import SyncClock
from .sync_loop import SyncLoop
from .timeline import TimelineBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WordSyncStatus:
    """Whether word highlighting is active and how healthy the sync is."""
    enabled: bool
    source: str  # "character", "transcription" or "none"
    confidence: float
    drift_ms: float
    is_drifting: bool


class ReadAlongSession:
    """Per-page coordinator for read-along highlighting."""

    def __init__(self, config: Config | None = None,
                 event_log: SyncEventLog | None = None) -> None:
        config = config or DEFAULT_CONFIG
        sync = get_sync_settings(config)
        alignment = get_alignment_settings(config)
        estimate = get_estimate_settings(config)

        self.event_log = event_log or SyncEventLog(enabled=bool(config.get("debug_log")))
        self.builder = TimelineBuilder(estimate["words_per_minute"])
        self.clock = SyncClock(
            drift_threshold_ms=sync["drift_threshold_ms"],
            word_rescale_tolerance_ms=sync["word_rescale_tolerance_ms"],
            event_log=self.event_log
        )
        self.loop = SyncLoop(
            self.clock,
            tick_interval_ms=sync["tick_interval_ms"],
            profiler=TickProfiler(sync["perf_warn_ms"], sync["perf_logging"])
        )
        self.aligner = WordAligner(
            prefix_length=alignment["prefix_length"],
            fuzzy_threshold=alignment["fuzzy_threshold"],
            fuzzy_window=alignment["fuzzy_window"]
        )
        self.min_confidence: float = alignment["min_confidence"]

        self.paragraphs: list[str] = []
        self.last_alignment: AlignmentResult | None = None
        self._word_source: str = "none"

    def load(self, paragraphs: Sequence[str], estimated_total_ms: float | None = None) -> None:
        """Start a new page, estimating its duration when not given."""
        self.paragraphs = list(paragraphs)
        if estimated_total_ms is None:
            estimated_total_ms = self.builder.estimate_duration_ms(self.paragraphs)
        self.clock.load_paragraphs(self.paragraphs, estimated_total_ms)
        self.last_alignment = None
        self._word_source = "none"
        self.event_log.clear_logs()

    def audio_loaded(self, total_duration_ms: float) -> None:
        """Rescale the page timeline to the measured audio duration."""
        self.clock.rebuild_timeline_with_duration(total_duration_ms)

    def begin_paragraph(self, index: int) -> bool:
        """
        Move playback to paragraph index and hold word sync for its timing.

        Returns:
            False if index is out of range
        """
        if not 0 <= index < len(self.paragraphs):
            logger.debug("Cannot begin paragraph %d of %d", index, len(self.paragraphs))
            return False

        self.clock.set_timeline_pending(index)
        self.clock.clear_word_timeline()
        self._word_source = "none"
        self.clock.seek_to_paragraph(index)
        return True

    def deliver_alignment(self, index: int, payload: Any) -> AlignmentResult:
        """
        Align a provider payload for paragraph index and install it.

        The word timeline is only installed while index is the paragraph being
        played or awaited; a low-confidence alignment falls back to
        paragraph-only highlighting. Either way the paragraph's timeline is
        acknowledged.
        """
        source_text = self.paragraphs[index] if 0 <= index < len(self.paragraphs) else ""
        alignment = parse_alignment_payload(payload)
        result = self.aligner.align(alignment, source_text)
        self.last_alignment = result
        self.event_log.log_alignment(index, len(result.words), result.resolved_count,
                                     result.alignment_confidence)

        expected = (self.clock.pending_timeline_paragraph
                    if self.clock.gate.is_pending else self.clock.current_paragraph_index)
        if index != expected:
            logger.debug("Discarding alignment for paragraph %d (expected %d)", index, expected)
            return result

        if result.words and result.alignment_confidence >= self.min_confidence:
            self.clock.set_word_timeline(result.words, index)
            if isinstance(alignment, CharacterAlignment):
                self._word_source = "character"
            elif isinstance(alignment, WordTranscription):
                self._word_source = "transcription"
        else:
            if result.words:
                logger.info("Alignment confidence %.2f below %.2f, using paragraph-only sync",
                            result.alignment_confidence, self.min_confidence)
            self.clock.clear_word_timeline()
            self._word_source = "none"

        self.clock.set_timeline_ready(index)
        return result

    def paragraph_audio_loaded(self, index: int, duration_ms: float) -> None:
        """Stretch the current word timeline to paragraph index's real audio length."""
        if index == self.clock.current_paragraph_index:
            self.clock.set_current_paragraph_duration(duration_ms)

    def paragraph_to_timeline_ms(self, paragraph_audio_ms: float) -> float:
        """Convert a position within the current paragraph's audio to the page timeline."""
        timing = self.clock.paragraph_timing(self.clock.current_paragraph_index)
        return (timing.start_ms if timing else 0.0) + paragraph_audio_ms

    def play(self) -> None:
        """Start the clock."""
        self.clock.start()

    def pause(self) -> None:
        """Pause the clock."""
        self.clock.pause()

    def resume(self) -> None:
        """Resume the clock."""
        self.clock.resume()

    def stop(self) -> None:
        """Stop the clock and drop any pending handshake."""
        self.clock.stop()

    def seek(self, time_ms: float) -> None:
        """Jump to a page timeline position."""
        self.clock.seek_to(time_ms)

    def tick(self, now_ms: float, audio_position_ms: float | None = None) -> None:
        """Run one sync step with an optional page-level audio position."""
        self.loop.tick(now_ms, audio_position_ms)

    def word_sync_status(self) -> WordSyncStatus:
        """Summarize word sync for status displays."""
        return WordSyncStatus(
            enabled=self.clock.has_word_timing,
            source=self._word_source if self.clock.has_word_timing else "none",
            confidence=self.last_alignment.alignment_confidence if self.last_alignment else 0.0,
            drift_ms=self.clock.drift_ms,
            is_drifting=self.clock.is_drifting
        )
