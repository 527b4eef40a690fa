# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Tests for rescaling timelines to the measured audio duration.
"""

import pytest

from voxsync.errors import InvalidArgumentError
from voxsync.timeline import (
    ParagraphTiming,
    TimelineBuilder,
    build_estimate,
    rescale,
    validate_timeline,
)


def test_rescale_doubles_timeline() -> None:
    """Estimated 10s stretched to a measured 20s."""
    timeline = build_estimate(["One", "One two three four"], 10000)

    rescaled = rescale(timeline, 20000)

    assert [(t.start_ms, t.end_ms) for t in rescaled] == [(0, 4000), (4000, 20000)]
    assert [t.duration_ms for t in rescaled] == [4000, 16000]


def test_rescale_is_gap_free_with_exact_tail() -> None:
    """Boundaries stay contiguous and the last end is exactly the target."""
    paragraphs = ["a b c", "d", "e f g h i j k", "l m", "n o p q", "r"]
    timeline = build_estimate(paragraphs, 9999.9)

    for target in (1.0, 333.3, 12345.678, 987654.321):
        rescaled = rescale(timeline, target)
        assert validate_timeline(rescaled)
        assert rescaled[-1].end_ms == target


def test_rescale_preserves_proportions() -> None:
    """Each paragraph keeps its share of the total within 1ms."""
    paragraphs = ["a b c", "d", "e f g h i j k", "l m"]
    timeline = build_estimate(paragraphs, 10000)
    target = 23456.0

    rescaled = rescale(timeline, target)

    for before, after in zip(timeline, rescaled):
        expected = before.duration_ms * target / 10000
        assert abs(after.duration_ms - expected) <= 1


def test_rescale_returns_new_timeline() -> None:
    """The input timeline is left untouched."""
    timeline = build_estimate(["a", "b"], 1000)

    rescale(timeline, 5000)

    assert timeline[-1].end_ms == 1000


def test_rescale_empty_is_noop() -> None:
    assert rescale((), 5000) == ()


def test_rescale_zero_duration_is_noop() -> None:
    """A timeline with no duration cannot be scaled and comes back unchanged."""
    timeline = (ParagraphTiming(0, 0, 0, 0),)

    assert rescale(timeline, 5000) == timeline


def test_rescale_negative_rejected() -> None:
    timeline = build_estimate(["a"], 1000)

    with pytest.raises(InvalidArgumentError):
        rescale(timeline, -1)


def test_builder_rescale() -> None:
    timeline = TimelineBuilder().build_estimate(["a", "b c d"], 4000)

    rescaled = TimelineBuilder.rescale(timeline, 8000)

    assert rescaled[0].end_ms == 2000
