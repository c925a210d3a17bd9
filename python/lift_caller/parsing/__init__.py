"""Transcript parsing: floor numbers and floor codes."""
from .numbers import FoundNumber, extract_floors, find_numbers
from .mapping import FLOOR_CODES, MAX_FLOOR, MIN_FLOOR, WORD_TO_FLOOR, floor_code, floor_word

__all__ = [
    "FoundNumber",
    "extract_floors",
    "find_numbers",
    "FLOOR_CODES",
    "MAX_FLOOR",
    "MIN_FLOOR",
    "WORD_TO_FLOOR",
    "floor_code",
    "floor_word",
]
