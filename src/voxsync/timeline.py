# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Paragraph timeline construction.

A paragraph timeline is an ordered, gap-free list of time ranges covering the
whole audio for a page. It starts as an estimate derived from word counts and
is rescaled once the real audio duration is known:

    timeline = build_estimate(["One", "One two three four"], 10000)
    # [0, 2000) [2000, 10000)
    timeline = rescale(timeline, 20000)
    # [0, 4000) [4000, 20000)

Timelines are tuples of frozen ParagraphTiming values and are always replaced
as a whole, never patched in place.
"""

import bisect
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .errors import require_non_negative, require_positive

logger = logging.getLogger(__name__)

# Speaking rate used to guess the total duration before any audio exists
DEFAULT_WORDS_PER_MINUTE: int = 150

Timeline = tuple["ParagraphTiming", ...]


@dataclass(frozen=True)
class ParagraphTiming:
    """Time range occupied by one paragraph's audio."""
    index: int
    start_ms: float
    end_ms: float
    duration_ms: float


def count_words(text: str) -> int:
    """Count whitespace-separated words in text."""
    return len(text.split())


def estimate_duration_ms(
    paragraphs: Sequence[str],
    words_per_minute: float = DEFAULT_WORDS_PER_MINUTE
) -> float:
    """
    Guess how long the paragraphs take to read aloud.

    Args:
        paragraphs: Paragraph texts
        words_per_minute: Assumed speaking rate

    Returns:
        Estimated duration in milliseconds
    """
    require_positive("words_per_minute", words_per_minute)
    total_words: int = sum(count_words(p) for p in paragraphs)
    return total_words / words_per_minute * 60_000


def _from_durations(durations: Sequence[float], total_ms: float) -> Timeline:
    """Lay durations end to end, pinning the last end to total_ms."""
    timings: list[ParagraphTiming] = []
    current: float = 0.0
    last: int = len(durations) - 1

    for i, duration in enumerate(durations):
        end: float = total_ms if i == last else current + duration
        timings.append(ParagraphTiming(
            index=i,
            start_ms=current,
            end_ms=end,
            duration_ms=end - current
        ))
        current = end

    return tuple(timings)


def build_estimate(paragraphs: Sequence[str], estimated_total_ms: float) -> Timeline:
    """
    Split an estimated total duration across paragraphs by word count.

    A paragraph without words still counts as one word so that it gets a
    non-zero share and the split never divides by zero.

    Args:
        paragraphs: Paragraph texts in reading order
        estimated_total_ms: Guessed duration of all the audio

    Returns:
        Gap-free timeline spanning [0, estimated_total_ms]

    Raises:
        InvalidArgumentError: if estimated_total_ms is negative or not finite
    """
    require_non_negative("estimated_total_ms", estimated_total_ms)
    if not paragraphs:
        return ()

    word_counts: list[int] = [max(1, count_words(p)) for p in paragraphs]
    total_words: int = sum(word_counts)
    durations: list[float] = [
        estimated_total_ms * count / total_words for count in word_counts
    ]

    logger.debug("Estimated timeline: %d paragraphs, %d words, %.0fms",
                 len(paragraphs), total_words, estimated_total_ms)
    return _from_durations(durations, estimated_total_ms)


def timeline_duration_ms(timeline: Sequence[ParagraphTiming]) -> float:
    """Total duration covered by a timeline (0 when empty)."""
    return timeline[-1].end_ms if timeline else 0.0


def rescale(timeline: Sequence[ParagraphTiming], actual_total_ms: float) -> Timeline:
    """
    Stretch a timeline to a measured total duration.

    Durations are scaled and boundaries rebuilt by cumulative sum so rounding
    errors never pile up; the final end is forced to actual_total_ms. An empty
    timeline, or one with zero total duration, is returned unchanged.

    Raises:
        InvalidArgumentError: if actual_total_ms is negative or not finite
    """
    require_non_negative("actual_total_ms", actual_total_ms)
    original_total_ms: float = timeline_duration_ms(timeline)
    if not timeline or original_total_ms == 0:
        return tuple(timeline)

    scale: float = actual_total_ms / original_total_ms
    durations: list[float] = [t.duration_ms * scale for t in timeline]

    logger.debug("Rescaled timeline by %.3f (%.0fms -> %.0fms)",
                 scale, original_total_ms, actual_total_ms)
    return _from_durations(durations, actual_total_ms)


def paragraph_at(timeline: Sequence[ParagraphTiming], time_ms: float) -> int:
    """
    Find the paragraph playing at time_ms.

    Times before the first paragraph map to 0 and times at or past the last
    paragraph's start map to the last index. Returns -1 for an empty timeline.
    """
    if not timeline:
        return -1
    starts: list[float] = [t.start_ms for t in timeline]
    index: int = bisect.bisect_right(starts, time_ms) - 1
    return min(max(index, 0), len(timeline) - 1)


def validate_timeline(timeline: Sequence[ParagraphTiming]) -> bool:
    """Check that a timeline starts at zero and has no gaps or overlaps."""
    if not timeline:
        return True
    if timeline[0].start_ms != 0:
        return False
    for current, following in zip(timeline, timeline[1:]):
        if current.end_ms != following.start_ms:
            return False
    return all(t.end_ms >= t.start_ms for t in timeline)


class TimelineBuilder:
    """Builds and rescales paragraph timelines."""

    def __init__(self, words_per_minute: float = DEFAULT_WORDS_PER_MINUTE) -> None:
        self.words_per_minute: float = require_positive("words_per_minute", words_per_minute)

    def estimate_duration_ms(self, paragraphs: Sequence[str]) -> float:
        """Guess the total duration at this builder's speaking rate."""
        return estimate_duration_ms(paragraphs, self.words_per_minute)

    def build_estimate(self, paragraphs: Sequence[str],
                       estimated_total_ms: float | None = None) -> Timeline:
        """Build an estimated timeline, guessing the duration when not given."""
        if estimated_total_ms is None:
            estimated_total_ms = self.estimate_duration_ms(paragraphs)
        return build_estimate(paragraphs, estimated_total_ms)

    @staticmethod
    def rescale(timeline: Sequence[ParagraphTiming], actual_total_ms: float) -> Timeline:
        """Stretch a timeline to the measured duration."""
        return rescale(timeline, actual_total_ms)
