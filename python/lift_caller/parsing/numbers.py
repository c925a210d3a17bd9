"""
Floor number extraction from speech transcripts.

Finds written-out floor words ("ground", "twenty five", "basement") and
digit tokens (-1..30) and returns the first two in the order they were
spoken: the first is the origin floor, the second the destination.
"""

import re
from typing import List, NamedTuple

from .mapping import MAX_FLOOR, MIN_FLOOR, WORD_TO_FLOOR


class FoundNumber(NamedTuple):
    """A floor number found in the lowercased transcript."""
    index: int
    value: int


def _word_pattern() -> "re.Pattern[str]":
    # Longest forms first so "twenty five" wins over "twenty" and "five"
    words = sorted(WORD_TO_FLOOR, key=len, reverse=True)
    alternatives = [r"[\s-]+".join(re.escape(part) for part in w.split()) for w in words]
    return re.compile(r"\b(" + "|".join(alternatives) + r")\b")


_WORD_RE = _word_pattern()

# Whole integer tokens without leading zeros; "-5", "100", "2.5" and "05" are
# not partially matched. A hyphen after a word ("level-5") is a separator.
_DIGIT_RE = re.compile(r"(?<![\w.])(-?(?:0|[1-9]\d*))(?!\w|\.\d)")

_SEPARATOR_RE = re.compile(r"[\s-]+")


def _find_words(text: str) -> List[FoundNumber]:
    found = []
    for match in _WORD_RE.finditer(text):
        word = _SEPARATOR_RE.sub(" ", match.group(1))
        found.append(FoundNumber(match.start(), WORD_TO_FLOOR[word]))
    return found


def _find_digits(text: str) -> List[FoundNumber]:
    found = []
    for match in _DIGIT_RE.finditer(text):
        value = int(match.group(1))
        if MIN_FLOOR <= value <= MAX_FLOOR:
            found.append(FoundNumber(match.start(), value))
    return found


def find_numbers(text: str) -> List[FoundNumber]:
    """
    Find every floor number mentioned in a transcript.

    Args:
        text: Transcript text (any case)

    Returns:
        Matches sorted by position in the text
    """
    lower = text.lower()
    found = _find_words(lower)
    seen = {f.index for f in found}
    for number in _find_digits(lower):
        if number.index not in seen:
            found.append(number)
            seen.add(number.index)
    found.sort(key=lambda f: f.index)
    return found


def extract_floors(text: str) -> List[int]:
    """
    Extract up to two floor numbers from a transcript.

    >>> extract_floors("FROM GROUND TO LEVEL 25")
    [0, 25]

    Returns:
        [origin, destination], or fewer values when the transcript
        mentions fewer than two floors.
    """
    return [f.value for f in find_numbers(text)[:2]]
