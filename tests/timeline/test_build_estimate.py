# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for estimated paragraph timelines.
"""

import math

import pytest

from voxsync.errors import InvalidArgumentError
from voxsync.timeline import (
    ParagraphTiming,
    TimelineBuilder,
    build_estimate,
    count_words,
    estimate_duration_ms,
    paragraph_at,
    validate_timeline,
)


class TestBuildEstimate:
    """Tests for splitting an estimated duration across paragraphs."""

    def test_proportional_split_by_word_count(self) -> None:
        """One word vs four words should split 1:4."""
        timeline = build_estimate(["One", "One two three four"], 10000)

        assert timeline == (
            ParagraphTiming(index=0, start_ms=0, end_ms=2000, duration_ms=2000),
            ParagraphTiming(index=1, start_ms=2000, end_ms=10000, duration_ms=8000),
        )

    def test_empty_paragraph_list(self) -> None:
        """No paragraphs gives an empty timeline."""
        assert build_estimate([], 10000) == ()

    def test_paragraph_without_words_gets_a_share(self) -> None:
        """A paragraph with no words counts as one word."""
        timeline = build_estimate(["", "a b c"], 4000)

        assert timeline[0].duration_ms == 1000
        assert timeline[1].start_ms == 1000
        assert timeline[1].end_ms == 4000

    def test_all_paragraphs_empty(self) -> None:
        """Only empty paragraphs split the time evenly."""
        timeline = build_estimate(["", "   ", ""], 3000)

        assert [t.duration_ms for t in timeline] == [1000, 1000, 1000]

    def test_timeline_is_gap_free(self) -> None:
        """Each paragraph starts where the previous one ends."""
        paragraphs = ["a b c", "d", "e f g h i j", "k l", "m n o p"]
        timeline = build_estimate(paragraphs, 7777.7)

        assert validate_timeline(timeline)
        assert timeline[0].start_ms == 0
        assert timeline[-1].end_ms == 7777.7
        assert [t.index for t in timeline] == [0, 1, 2, 3, 4]

    def test_zero_duration(self) -> None:
        """A zero estimate produces zero-length paragraphs."""
        timeline = build_estimate(["a", "b"], 0)

        assert all(t.duration_ms == 0 for t in timeline)
        assert validate_timeline(timeline)

    def test_negative_duration_rejected(self) -> None:
        """Negative durations are a caller error."""
        with pytest.raises(InvalidArgumentError):
            build_estimate(["a"], -1)

    def test_non_finite_duration_rejected(self) -> None:
        """NaN and infinity are rejected."""
        with pytest.raises(InvalidArgumentError):
            build_estimate(["a"], math.nan)
        with pytest.raises(InvalidArgumentError):
            build_estimate(["a"], math.inf)

    def test_invalid_argument_is_value_error(self) -> None:
        """InvalidArgumentError can be caught as ValueError."""
        with pytest.raises(ValueError):
            build_estimate(["a"], -5)


class TestEstimateDuration:
    """Tests for the speaking-rate estimate."""

    def test_count_words(self) -> None:
        assert count_words("  one two\tthree\nfour ") == 4
        assert count_words("") == 0

    def test_default_rate(self) -> None:
        """150 words at 150 words per minute take one minute."""
        assert estimate_duration_ms(["word " * 150]) == 60000

    def test_custom_rate(self) -> None:
        assert estimate_duration_ms(["one two", "three four"], words_per_minute=120) == \
            pytest.approx(2000)

    def test_rate_must_be_positive(self) -> None:
        with pytest.raises(InvalidArgumentError):
            estimate_duration_ms(["a"], words_per_minute=0)

    def test_builder_guesses_duration_when_missing(self) -> None:
        """TimelineBuilder fills in the estimate from the speaking rate."""
        builder = TimelineBuilder(words_per_minute=150)
        timeline = builder.build_estimate(["a b", "c"])

        assert timeline[-1].end_ms == pytest.approx(1200)
        assert timeline[0].duration_ms == pytest.approx(800)


class TestParagraphAt:
    """Tests for finding the paragraph at a time."""

    def test_lookup(self) -> None:
        timeline = build_estimate(["One", "One two three four"], 10000)

        assert paragraph_at(timeline, 0) == 0
        assert paragraph_at(timeline, 1999) == 0
        assert paragraph_at(timeline, 2000) == 1
        assert paragraph_at(timeline, 9999) == 1

    def test_clamps_out_of_range(self) -> None:
        timeline = build_estimate(["One", "One two three four"], 10000)

        assert paragraph_at(timeline, -50) == 0
        assert paragraph_at(timeline, 50000) == 1

    def test_empty_timeline(self) -> None:
        assert paragraph_at((), 100) == -1

    def test_validate_detects_gaps(self) -> None:
        broken = (
            ParagraphTiming(0, 0, 100, 100),
            ParagraphTiming(1, 150, 200, 50),
        )
        assert not validate_timeline(broken)
        assert validate_timeline(())
