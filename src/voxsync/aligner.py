# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Word alignment: turns provider timing payloads into word timings anchored to
the paragraph's source text.

Character-level alignment maps onto the source directly: runs of letters and
digits become words and their offsets are character indices.

Word-level transcriptions are harder because the transcript may not match
the page. Each transcribed word is located in the source by, in order:

1. exact search from the last matched position (search never moves back)
2. contraction matching ("do" + "not" against "don't" and vice versa)
3. a 3-character prefix match at the start of a source word
4. a fuzzy match against the next few source words

Words that still cannot be placed get an offset interpolated from the last
matched word and the elapsed audio time. Those words lower the alignment
confidence, which is the fraction of words placed by steps 1-4.
"""

import logging
import math
import unicodedata
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from rapidfuzz import fuzz

from .alignment_input import (
    AlignmentInput,
    CharacterAlignment,
    WordTranscription,
    parse_alignment_payload,
)
from .contractions import (
    CONTRACTIONS,
    ContractionMatcher,
    contractions_for_word,
    expansion_of,
    fold_apostrophes,
)
from .word_timing import WordTiming

logger = logging.getLogger(__name__)

# Punctuation that stays highlighted with the word it follows
TRAILING_PUNCTUATION: frozenset[str] = frozenset(".,!?;:'\")]}>”’…")

# Stripped from transcribed words before matching
TRANSCRIPT_PUNCTUATION: str = ".,!?;:'\"”’…"


@dataclass
class AlignmentResult:
    """Word timings for one paragraph plus how much of them could be trusted."""
    words: list[WordTiming] = field(default_factory=list)
    alignment_confidence: float = 0.0  # Fraction of words with a resolved offset
    transcribed_text: str = ""
    source_text: str = ""
    audio_duration_ms: float = 0.0

    @property
    def resolved_count(self) -> int:
        """Number of words whose offset was matched rather than estimated."""
        return sum(1 for w in self.words if w.resolved)

    @property
    def is_empty(self) -> bool:
        """Check if no words were aligned."""
        return not self.words


@dataclass
class _Match:
    """A located span in the source text."""
    offset: int
    length: int
    strategy: str


def is_word_char(char: str) -> bool:
    """Check if a character is a letter or digit in any script."""
    return unicodedata.category(char)[0] in ("L", "N")


def fold_case(text: str) -> str:
    """
    Lowercase text without changing its length.

    Characters whose lowercase form has a different length (such as "İ")
    are left as they are, so offsets into the result are offsets into text.
    """
    folded: list[str] = []
    for char in fold_apostrophes(text):
        lower = char.lower()
        folded.append(lower if len(lower) == 1 else char)
    return "".join(folded)


def seconds_to_ms(seconds: float) -> int:
    """Convert seconds to whole milliseconds, rounding halves up."""
    return int(math.floor(seconds * 1000 + 0.5))


def clean_transcribed_word(word: str) -> str:
    """Strip whitespace and trailing punctuation from a transcribed word."""
    return word.strip().rstrip(TRANSCRIPT_PUNCTUATION).strip()


def iter_source_words(text: str, start: int = 0) -> Iterator[tuple[int, int]]:
    """
    Yield (offset, end) for each word in text at or after start.

    A word is a run of letters and digits, with apostrophes allowed inside it.
    """
    i: int = start
    n: int = len(text)
    while i < n:
        if not is_word_char(text[i]):
            i += 1
            continue
        begin = i
        while i < n and (is_word_char(text[i]) or
                         (text[i] == "'" and i + 1 < n and is_word_char(text[i + 1]))):
            i += 1
        yield begin, i


def _at_word_start(text: str, index: int) -> bool:
    return index == 0 or not is_word_char(text[index - 1])


def _source_word_length(text: str, offset: int) -> int:
    """Length of the source word starting at offset."""
    for begin, end in iter_source_words(text, offset):
        if begin == offset:
            return end - begin
        break
    return 0


class WordAligner:
    """
    Converts provider timing payloads into word timings.

    Usage:
        aligner = WordAligner()
        result = aligner.align(payload, "Hello World")
        for word in result.words:
            print(word.word, word.start_ms, word.char_offset)
    """

    def __init__(
        self,
        prefix_length: int = 3,
        fuzzy_threshold: float = 80.0,
        fuzzy_window: int = 8
    ) -> None:
        """
        Initialize the aligner.

        Args:
            prefix_length: Characters compared by the prefix fallback
            fuzzy_threshold: Minimum rapidfuzz ratio (0-100) for a fuzzy match
            fuzzy_window: Number of upcoming source words considered by
                windowed searches
        """
        self.prefix_length = prefix_length
        self.fuzzy_threshold = fuzzy_threshold
        self.fuzzy_window = fuzzy_window

    def align(self, payload: AlignmentInput | Mapping[str, Any] | None,
              source_text: str) -> AlignmentResult:
        """
        Align a provider payload against the paragraph source text.

        Missing or malformed payloads produce an empty result with zero
        confidence rather than an error.
        """
        source_text = source_text or ""
        alignment = parse_alignment_payload(payload)

        if isinstance(alignment, CharacterAlignment):
            result = self.align_characters(alignment, source_text)
        elif isinstance(alignment, WordTranscription):
            result = self.align_transcription(alignment, source_text)
        else:
            result = AlignmentResult(source_text=source_text)

        logger.debug("Aligned %d words (%d resolved, confidence %.2f)",
                     len(result.words), result.resolved_count,
                     result.alignment_confidence)
        return result

    # ------------------------------------------------------------------
    # Character-level alignment
    # ------------------------------------------------------------------

    def align_characters(self, alignment: CharacterAlignment,
                         source_text: str) -> AlignmentResult:
        """Group per-character timings into words."""
        words: list[WordTiming] = []
        current: list[str] = []
        word_offset: int = 0
        word_start_s: float = 0.0
        word_end_s: float = 0.0
        offset: int = 0

        def flush() -> None:
            text = "".join(current)
            start_ms = seconds_to_ms(word_start_s)
            words.append(WordTiming(
                word=text,
                start_ms=start_ms,
                end_ms=max(start_ms, seconds_to_ms(word_end_s)),
                char_offset=word_offset,
                char_length=len(text)
            ))
            current.clear()

        for i in range(len(alignment)):
            char: str = alignment.characters[i]
            if char and all(is_word_char(c) for c in char):
                if not current:
                    word_offset = offset
                    word_start_s = alignment.start_times_s[i]
                current.append(char)
                word_end_s = alignment.end_times_s[i]
            elif current:
                flush()
            offset += len(char)

        if current:
            flush()

        duration_ms: float = 0.0
        if len(alignment):
            duration_ms = seconds_to_ms(alignment.end_times_s[len(alignment) - 1])

        return AlignmentResult(
            words=words,
            alignment_confidence=1.0 if words else 0.0,
            transcribed_text=alignment.text,
            source_text=source_text,
            audio_duration_ms=duration_ms
        )

    # ------------------------------------------------------------------
    # Word-level transcription
    # ------------------------------------------------------------------

    def align_transcription(self, transcription: WordTranscription,
                            source_text: str) -> AlignmentResult:
        """Locate each transcribed word in the source text."""
        candidates: list[tuple[str, int, int]] = []
        for entry in transcription.words:
            word = clean_transcribed_word(entry.word)
            if not word:
                continue
            start_ms = seconds_to_ms(entry.start_s)
            candidates.append((word, start_ms, max(start_ms, seconds_to_ms(entry.end_s))))

        # Word timelines are looked up by bisecting start times
        if any(b[1] < a[1] for a, b in zip(candidates, candidates[1:])):
            logger.debug("Transcribed words out of time order, sorting by start")
            candidates.sort(key=lambda c: c[1])

        if transcription.duration_s is not None:
            total_ms: float = seconds_to_ms(transcription.duration_s)
        else:
            total_ms = candidates[-1][2] if candidates else 0

        folded: str = fold_case(source_text)
        search_start: int = 0
        contraction = ContractionMatcher()
        last_resolved: WordTiming | None = None
        words: list[WordTiming] = []

        for index, (word, start_ms, end_ms) in enumerate(candidates):
            needle = fold_case(word)

            if contraction.is_active and contraction.continues(needle):
                timing = WordTiming(word, start_ms, end_ms,
                                    contraction.char_offset, contraction.char_length)
                words.append(timing)
                last_resolved = timing
                continue

            match = self._find(needle, folded, search_start, contraction)
            if match is None:
                offset = self._estimate_offset(index, len(candidates), start_ms,
                                               total_ms, last_resolved, len(source_text))
                words.append(WordTiming(word, start_ms, end_ms, offset, len(word),
                                        resolved=False))
                continue

            end = match.offset + match.length
            while end < len(source_text) and source_text[end] in TRAILING_PUNCTUATION:
                end += 1
            if contraction.is_active:
                contraction.char_length = end - match.offset

            timing = WordTiming(word, start_ms, end_ms, match.offset, end - match.offset)
            words.append(timing)
            last_resolved = timing
            search_start = end

        resolved = sum(1 for w in words if w.resolved)
        return AlignmentResult(
            words=words,
            alignment_confidence=resolved / len(words) if words else 0.0,
            transcribed_text=transcription.text,
            source_text=source_text,
            audio_duration_ms=total_ms
        )

    def _window_end(self, text: str, start: int) -> int:
        """Offset just past the fuzzy_window-th source word after start."""
        end: int = start
        for count, (_, word_end) in enumerate(iter_source_words(text, start), 1):
            end = word_end
            if count >= self.fuzzy_window:
                break
        return end

    def _find(self, needle: str, text: str, start: int,
              contraction: ContractionMatcher) -> _Match | None:
        """Locate needle in text at or after start, trying each strategy in turn."""
        contraction.clear()
        window_end = self._window_end(text, start)

        match = self._find_exact(needle, text, start, window_end)
        if match is not None:
            self._check_inside_contraction(needle, text, match, contraction)
            return match

        match = self._find_contraction(needle, text, start, contraction)
        if match is not None:
            return match

        match = self._find_prefix(needle, text, start, window_end)
        if match is not None:
            return match

        return self._find_fuzzy(needle, text, start)

    def _find_exact(self, needle: str, text: str, start: int,
                    window_end: int) -> _Match | None:
        first = text.find(needle, start)
        if first == -1:
            return None

        # Prefer an occurrence that starts a word if one is close by
        anchored = first
        while anchored != -1 and anchored < window_end and not _at_word_start(text, anchored):
            anchored = text.find(needle, anchored + 1)
        if anchored != -1 and anchored < window_end:
            return _Match(anchored, len(needle), "exact")
        return _Match(first, len(needle), "exact")

    def _check_inside_contraction(self, needle: str, text: str, match: _Match,
                                  contraction: ContractionMatcher) -> None:
        """Widen an exact match that is the first half of a source contraction."""
        length = _source_word_length(text, match.offset)
        token = text[match.offset:match.offset + length]
        if token != needle and needle in CONTRACTIONS.get(token, ()):
            match.length = length
            match.strategy = "contraction"
            contraction.start(token, needle, match.offset, length)

    def _find_contraction(self, needle: str, text: str, start: int,
                          contraction: ContractionMatcher) -> _Match | None:
        # Transcript expanded a contraction the source kept ("do" vs "don't")
        best: tuple[int, str] | None = None
        for candidate in contractions_for_word(needle):
            idx = text.find(candidate, start)
            if idx != -1 and (best is None or idx < best[0]):
                best = (idx, candidate)
        if best is not None:
            idx, candidate = best
            contraction.start(candidate, needle, idx, len(candidate))
            return _Match(idx, len(candidate), "contraction")

        # Transcript contracted what the source spelled out ("don't" vs "do not")
        expanded = expansion_of(needle)
        if expanded:
            idx = text.find(expanded, start)
            if idx != -1:
                return _Match(idx, len(expanded), "contraction")
        return None

    def _find_prefix(self, needle: str, text: str, start: int,
                     window_end: int) -> _Match | None:
        if len(needle) < self.prefix_length:
            return None
        prefix = needle[:self.prefix_length]
        idx = text.find(prefix, start)
        while idx != -1 and idx < window_end:
            if _at_word_start(text, idx):
                return _Match(idx, _source_word_length(text, idx) or len(prefix), "prefix")
            idx = text.find(prefix, idx + 1)
        return None

    def _find_fuzzy(self, needle: str, text: str, start: int) -> _Match | None:
        best: _Match | None = None
        best_score: float = 0.0
        for count, (begin, end) in enumerate(iter_source_words(text, start)):
            if count >= self.fuzzy_window:
                break
            score = fuzz.ratio(needle, text[begin:end])
            if score >= self.fuzzy_threshold and score > best_score:
                best = _Match(begin, end - begin, "fuzzy")
                best_score = score
        return best

    @staticmethod
    def _estimate_offset(index: int, word_count: int, start_ms: float, total_ms: float,
                         anchor: WordTiming | None, source_length: int) -> int:
        """
        Interpolate an offset for a word that could not be matched.

        From the last matched word, the offset advances through the remaining
        source text in proportion to the audio time elapsed since that word.
        Estimates never fall before the last matched word.
        """
        if source_length == 0:
            return 0
        last_index: int = source_length - 1

        if anchor is None:
            return min(last_index, (index * source_length) // max(word_count, 1))

        anchor_end: int = anchor.char_end
        remaining_ms: float = total_ms - anchor.end_ms
        ratio: float = 0.0
        if remaining_ms > 0:
            ratio = min(1.0, max(0.0, (start_ms - anchor.end_ms) / remaining_ms))
        offset = anchor_end + round(ratio * max(0, source_length - anchor_end))
        return max(0, min(last_index, offset))
