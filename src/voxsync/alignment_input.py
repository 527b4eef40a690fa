# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Provider timing payloads accepted by the word aligner.

Providers report timing in one of two shapes, modelled here as a closed set
of variants rather than one class per provider:

- CharacterAlignment: per-character start/end times (seconds), as returned
  alongside synthesized audio.
- WordTranscription: a list of transcribed words with start/end times
  (seconds), as returned by a speech-to-text pass over the audio.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CharacterAlignment:
    """Character-level timing, index-aligned across the three sequences."""
    characters: tuple[str, ...]
    start_times_s: tuple[float, ...]
    end_times_s: tuple[float, ...]

    def __len__(self) -> int:
        return min(len(self.characters), len(self.start_times_s), len(self.end_times_s))

    @property
    def text(self) -> str:
        """The characters joined back into text."""
        return "".join(self.characters[:len(self)])


@dataclass(frozen=True)
class TranscribedWord:
    """One word reported by a transcription pass."""
    word: str
    start_s: float
    end_s: float


@dataclass(frozen=True)
class WordTranscription:
    """Word-level transcription of a paragraph's audio."""
    words: tuple[TranscribedWord, ...]
    duration_s: float | None = None
    text: str = field(default="")


AlignmentInput = CharacterAlignment | WordTranscription


def _finite_float(value: Any) -> float:
    """Convert value to float, raising ValueError for NaN and infinities."""
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"non-finite time {value!r}")
    return result


def _float_tuple(values: Any) -> tuple[float, ...] | None:
    if not isinstance(values, (list, tuple)):
        return None
    try:
        return tuple(_finite_float(v) for v in values)
    except (TypeError, ValueError):
        return None


def _parse_characters(payload: Mapping[str, Any]) -> CharacterAlignment | None:
    characters = payload.get("characters")
    starts = _float_tuple(payload.get("character_start_times_seconds"))
    ends = _float_tuple(payload.get("character_end_times_seconds"))

    if not isinstance(characters, (list, tuple)) or starts is None:
        logger.warning("Character alignment is missing characters or start times")
        return None
    if ends is None:
        # Treat each character as ending where it starts
        ends = starts

    return CharacterAlignment(
        characters=tuple(str(c) for c in characters),
        start_times_s=starts,
        end_times_s=ends
    )


def _parse_words(payload: Mapping[str, Any]) -> WordTranscription | None:
    raw_words = payload.get("words")
    if not isinstance(raw_words, (list, tuple)):
        logger.warning("Word transcription has no word list")
        return None

    words: list[TranscribedWord] = []
    for entry in raw_words:
        if not isinstance(entry, Mapping):
            continue
        try:
            words.append(TranscribedWord(
                word=str(entry.get("word") or ""),
                start_s=_finite_float(entry.get("start") or 0.0),
                end_s=_finite_float(entry.get("end") or 0.0)
            ))
        except (TypeError, ValueError):
            logger.debug("Skipping malformed transcribed word %r", entry)

    duration = payload.get("duration")
    try:
        duration_s: float | None = _finite_float(duration) if duration is not None else None
    except (TypeError, ValueError):
        logger.debug("Ignoring malformed duration %r", duration)
        duration_s = None

    return WordTranscription(
        words=tuple(words),
        duration_s=duration_s,
        text=str(payload.get("text") or "")
    )


def parse_alignment_payload(payload: Any) -> AlignmentInput | None:
    """
    Detect the shape of a decoded provider payload and convert it.

    Character alignment may be given at the top level or nested under an
    "alignment" key. Returns None when the payload matches neither shape.
    """
    if isinstance(payload, (CharacterAlignment, WordTranscription)):
        return payload
    if not isinstance(payload, Mapping):
        if payload is not None:
            logger.warning("Ignoring timing payload of type %s", type(payload).__name__)
        return None

    nested = payload.get("alignment")
    if isinstance(nested, Mapping):
        payload = nested

    if "characters" in payload:
        return _parse_characters(payload)
    if "words" in payload:
        return _parse_words(payload)

    logger.warning("Unrecognized timing payload (keys: %s)", sorted(payload))
    return None
