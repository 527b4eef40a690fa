# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Per-word timing records and normalization of the shapes they arrive in.

Word timings reach the engine either from the aligner (already WordTiming
objects) or from cached/forwarded data as plain mappings, which may use any
of three naming conventions:

- startTimeMs / endTimeMs (milliseconds)
- startMs / endMs (milliseconds)
- start / end (seconds)
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)

# Paragraph audio longer or shorter than the word timeline by more than this
# gets its word timings rescaled
DEFAULT_RESCALE_TOLERANCE_MS: float = 100.0


@dataclass(frozen=True)
class WordTiming:
    """A word and the slice of audio and source text it occupies."""
    word: str
    start_ms: float
    end_ms: float
    char_offset: int  # Offset into the paragraph source text
    char_length: int
    resolved: bool = True  # False when char_offset was interpolated

    @property
    def char_end(self) -> int:
        """Offset just past the word in the source text."""
        return self.char_offset + self.char_length


def _first_present(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first value in raw that is present and not None."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _as_ms(raw: Mapping[str, Any], ms_keys: tuple[str, ...], seconds_key: str) -> float:
    value = _first_present(raw, *ms_keys)
    if value is not None:
        return float(value)
    seconds = raw.get(seconds_key)
    if seconds is not None:
        return float(seconds) * 1000
    return 0.0


def normalize_word_timing(raw: WordTiming | Mapping[str, Any]) -> WordTiming:
    """
    Convert a word timing in any supported shape to a WordTiming.

    Missing offsets default to 0 and missing lengths to the word's length.
    The end time is clamped so it never precedes the start time.
    """
    if isinstance(raw, WordTiming):
        return raw

    if "startMs" in raw or "start" in raw:
        logger.debug("Converting legacy word timing format for %r", raw.get("word"))

    word: str = str(raw.get("word") or "")
    start_ms: float = max(0.0, _as_ms(raw, ("startTimeMs", "startMs"), "start"))
    end_ms: float = max(start_ms, _as_ms(raw, ("endTimeMs", "endMs"), "end"))

    char_offset = _first_present(raw, "charOffset", "char_offset")
    char_length = _first_present(raw, "charLength", "char_length")

    return WordTiming(
        word=word,
        start_ms=start_ms,
        end_ms=end_ms,
        char_offset=max(0, int(char_offset)) if char_offset is not None else 0,
        char_length=max(0, int(char_length)) if char_length is not None else len(word),
        resolved=bool(raw.get("resolved", True))
    )


def normalize_word_timeline(raw: Any) -> list[WordTiming]:
    """Normalize a list of word timings; anything that is not a list yields []."""
    if not isinstance(raw, (list, tuple)):
        return []
    return [normalize_word_timing(w) for w in raw]


def scale_word_timeline(
    words: Sequence[WordTiming],
    actual_duration_ms: float,
    tolerance_ms: float = DEFAULT_RESCALE_TOLERANCE_MS
) -> Sequence[WordTiming]:
    """
    Stretch word timings to the paragraph's real audio duration.

    The timeline is only touched when the last word's end differs from the
    real duration by more than tolerance_ms. A new list is returned in that
    case; otherwise the input is returned as-is.
    """
    if not words:
        return words

    estimated_ms: float = words[-1].end_ms
    if estimated_ms <= 0 or abs(actual_duration_ms - estimated_ms) <= tolerance_ms:
        return words

    scale: float = actual_duration_ms / estimated_ms
    logger.info("Scaling word timings by %.2f (%.0fms -> %.0fms)",
                scale, estimated_ms, actual_duration_ms)
    return [
        replace(w, start_ms=round(w.start_ms * scale), end_ms=round(w.end_ms * scale))
        for w in words
    ]
