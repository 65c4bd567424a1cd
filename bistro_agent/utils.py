"""Shared text helpers used by the draft store and the tool adapters."""

import re
from typing import Optional

_NUMBER_WORDS = {
    "zero": 0, "none": 0, "one": 1, "two": 2, "three": 3, "four": 4,
    "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20,
}


def parse_count(value: str) -> Optional[int]:
    """Parse a spoken or written head count.

    Examples:
        >>> parse_count("4")
        4
        >>> parse_count("Four people")
        4
        >>> parse_count("a table for 12")
        12
        >>> parse_count("lots") is None
        True
    """
    text = value.strip().lower()
    digits = re.search(r"-?\d+", text)
    if digits:
        return int(digits.group())
    for word in re.findall(r"[a-z]+", text):
        if word in _NUMBER_WORDS:
            return _NUMBER_WORDS[word]
    return None


def redact_name(value: Optional[str]) -> str:
    """Mask a caller's name for logging, keeping only the first letter.

    Examples:
        >>> redact_name("Jane Doe")
        'J***'
        >>> redact_name(None)
        '***'
    """
    if not value:
        return "***"
    return value.strip()[:1] + "***"
