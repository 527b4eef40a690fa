# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Contraction handling for transcript-to-source alignment.

Speech-to-text output and the source text disagree about contractions: the
page may say "don't" while the transcript says "do not", or the other way
round. This module maps between the two forms and tracks a contraction that
is being matched across several transcribed words.

Example for source "don't":
  - transcript "do"  -> matches "don't", expects "not" next
  - transcript "not" -> continues the same match, contraction complete
"""

# Maps each contraction to the words it expands to
CONTRACTIONS: dict[str, tuple[str, ...]] = {
    "don't": ("do", "not"),
    "doesn't": ("does", "not"),
    "won't": ("will", "not"),
    "can't": ("cannot",),
    "i'm": ("i", "am"),
    "you're": ("you", "are"),
    "they're": ("they", "are"),
    "we're": ("we", "are"),
    "it's": ("it", "is"),
    "that's": ("that", "is"),
    "there's": ("there", "is"),
    "what's": ("what", "is"),
    "who's": ("who", "is"),
    "let's": ("let", "us"),
    "i'll": ("i", "will"),
    "you'll": ("you", "will"),
    "he'll": ("he", "will"),
    "she'll": ("she", "will"),
    "we'll": ("we", "will"),
    "they'll": ("they", "will"),
    "i've": ("i", "have"),
    "you've": ("you", "have"),
    "we've": ("we", "have"),
    "they've": ("they", "have"),
    "i'd": ("i", "would"),
    "you'd": ("you", "would"),
    "he'd": ("he", "would"),
    "she'd": ("she", "would"),
    "we'd": ("we", "would"),
    "they'd": ("they", "would"),
}

APOSTROPHES: str = "’‘ʼ"


def fold_apostrophes(text: str) -> str:
    """Replace typographic apostrophes with ASCII ones (length-preserving)."""
    for apostrophe in APOSTROPHES:
        text = text.replace(apostrophe, "'")
    return text


def contractions_for_word(word: str) -> list[str]:
    """
    Contractions whose expansion contains word.

    Example: contractions_for_word("not") -> ["don't", "doesn't", "won't"]
    """
    return [c for c, expansion in CONTRACTIONS.items() if word in expansion]


def expansion_of(word: str) -> str | None:
    """The spaced-out expansion of a contraction, or None if word is not one."""
    expansion = CONTRACTIONS.get(fold_apostrophes(word))
    return " ".join(expansion) if expansion else None


class ContractionMatcher:
    """
    Tracks a contraction matched from one of its expanded words.

    After the transcript word "do" has been matched to the source "don't",
    the following "not" belongs to the same source span and should not be
    searched for again.
    """

    def __init__(self) -> None:
        self.remaining: list[str] = []
        self.char_offset: int = -1
        self.char_length: int = 0

    def start(self, contraction: str, matched_word: str,
              char_offset: int, char_length: int) -> None:
        """Begin tracking a contraction matched at char_offset via matched_word."""
        expansion = list(CONTRACTIONS.get(contraction, ()))
        if matched_word in expansion:
            self.remaining = expansion[expansion.index(matched_word) + 1:]
        else:
            self.remaining = []
        self.char_offset = char_offset
        self.char_length = char_length

    def continues(self, word: str) -> bool:
        """Consume word if it is the next expected word of the contraction."""
        if self.remaining and self.remaining[0] == word:
            self.remaining.pop(0)
            return True
        self.clear()
        return False

    def clear(self) -> None:
        """Forget any contraction in progress."""
        self.remaining = []
        self.char_offset = -1
        self.char_length = 0

    @property
    def is_active(self) -> bool:
        """Check if more expanded words are expected."""
        return len(self.remaining) > 0
