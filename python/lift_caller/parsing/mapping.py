"""
Floor vocabulary and floor-to-code table.

The lift API addresses floors by area code: floor -1 is 1000, floor 0 is
2000, and every floor above adds another 1000.
"""

from typing import Dict

MIN_FLOOR = -1
MAX_FLOOR = 30

_UNITS = [
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight",
    "nine", "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen", "nineteen",
]


def _build_vocabulary() -> Dict[str, int]:
    words: Dict[str, int] = {"p1": -1, "basement": -1, "ground": 0}
    for value, word in enumerate(_UNITS):
        words[word] = value
    words["twenty"] = 20
    for value in range(1, 10):
        # Compound forms use a single space; the extractor also accepts hyphens
        words[f"twenty {_UNITS[value]}"] = 20 + value
    words["thirty"] = 30
    return words


# Lowercase spoken forms -> floor number
WORD_TO_FLOOR: Dict[str, int] = _build_vocabulary()

# Floor number (as string) -> lift API area code
FLOOR_CODES: Dict[str, int] = {
    str(floor): (floor - MIN_FLOOR + 1) * 1000
    for floor in range(MIN_FLOOR, MAX_FLOOR + 1)
}

_SPOKEN: Dict[int, str] = {-1: "basement", 0: "ground"}


def floor_code(floor: int) -> int:
    """
    Map a floor number to its lift API area code.

    Raises:
        ValueError: If the floor is outside the served range.
    """
    try:
        return FLOOR_CODES[str(floor)]
    except KeyError:
        raise ValueError(
            f"Floor {floor} outside supported range {MIN_FLOOR}..{MAX_FLOOR}"
        ) from None


def floor_word(floor: int) -> str:
    """Spoken name of a floor, used in response sentences."""
    if floor in _SPOKEN:
        return _SPOKEN[floor]
    if 1 <= floor < len(_UNITS):
        return _UNITS[floor]
    if floor == 20:
        return "twenty"
    if 21 <= floor <= 29:
        return f"twenty {_UNITS[floor - 20]}"
    if floor == 30:
        return "thirty"
    return str(floor)
