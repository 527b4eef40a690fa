# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for word timing normalization and rescaling.
"""

from voxsync.word_timing import (
    WordTiming,
    normalize_word_timeline,
    normalize_word_timing,
    scale_word_timeline,
)


class TestNormalizeWordTiming:
    """Tests for accepting the different word timing shapes."""

    def test_millisecond_keys(self) -> None:
        timing = normalize_word_timing({
            "word": "Hello", "startTimeMs": 100, "endTimeMs": 400,
            "charOffset": 3, "charLength": 5,
        })

        assert timing == WordTiming("Hello", 100.0, 400.0, 3, 5)

    def test_short_millisecond_keys(self) -> None:
        timing = normalize_word_timing({"word": "a", "startMs": 10, "endMs": 20})

        assert (timing.start_ms, timing.end_ms) == (10.0, 20.0)

    def test_seconds_keys(self) -> None:
        timing = normalize_word_timing({"word": "hi", "start": 0.25, "end": 0.5})

        assert (timing.start_ms, timing.end_ms) == (250.0, 500.0)
        assert timing.char_offset == 0
        assert timing.char_length == 2

    def test_snake_case_offsets(self) -> None:
        timing = normalize_word_timing({"word": "x", "startTimeMs": 0, "endTimeMs": 1,
                                        "char_offset": 7, "char_length": 3})

        assert (timing.char_offset, timing.char_length) == (7, 3)

    def test_end_clamped_to_start(self) -> None:
        timing = normalize_word_timing({"word": "x", "startTimeMs": 500, "endTimeMs": 200})

        assert timing.end_ms == 500

    def test_missing_times(self) -> None:
        timing = normalize_word_timing({"word": "x"})

        assert (timing.start_ms, timing.end_ms) == (0.0, 0.0)

    def test_word_timing_passes_through(self) -> None:
        timing = WordTiming("a", 0, 1, 0, 1)

        assert normalize_word_timing(timing) is timing
        assert timing.char_end == 1

    def test_timeline_requires_list(self) -> None:
        assert normalize_word_timeline(None) == []
        assert normalize_word_timeline({"word": "a"}) == []
        assert len(normalize_word_timeline([{"word": "a"}, {"word": "b"}])) == 2


class TestScaleWordTimeline:
    """Tests for stretching word timings to the real paragraph duration."""

    words = [
        WordTiming("a", 0, 500, 0, 1),
        WordTiming("b", 500, 1000, 2, 1),
    ]

    def test_scaled_when_beyond_tolerance(self) -> None:
        scaled = scale_word_timeline(self.words, 2000, tolerance_ms=100)

        assert [(w.start_ms, w.end_ms) for w in scaled] == [(0, 1000), (1000, 2000)]
        assert scaled is not self.words
        # Offsets are untouched
        assert [w.char_offset for w in scaled] == [0, 2]

    def test_unchanged_within_tolerance(self) -> None:
        assert scale_word_timeline(self.words, 1050, tolerance_ms=100) is self.words

    def test_original_not_modified(self) -> None:
        scale_word_timeline(self.words, 3000)

        assert self.words[1].end_ms == 1000

    def test_empty(self) -> None:
        assert scale_word_timeline([], 5000) == []
