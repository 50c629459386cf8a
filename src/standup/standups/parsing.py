"""Parsing of the schedule dialog answers: weekday letters and HH:mm."""

from __future__ import annotations

import re

from src.standup.standups.schemas import WEEKDAY_LETTERS

_SEPARATORS = re.compile(r"[\s,]+")
_TIME_PATTERN = re.compile(r"^(\d{2}):([0-5]\d)$")


class BadWeekdayError(ValueError):
    """Raised when weekday input contains a letter outside MTWRFSD."""

    def __init__(self, char: str) -> None:
        self.char = char
        super().__init__(f"BAD INPUT ({char})")


def parse_weekdays(text: str) -> tuple[int, ...]:
    """Convert weekday letters (e.g. ``"mwf"``) to sorted unique ordinals 1-7.

    Whitespace and commas are ignored, duplicates are allowed. The first
    character outside the alphabet aborts the whole parse.

    Raises:
        BadWeekdayError: On an unknown letter, or when no letter is given.
    """
    letters = _SEPARATORS.sub("", text.upper())
    if not letters:
        raise BadWeekdayError(text.strip() or " ")

    days: set[int] = set()
    for letter in letters:
        index = WEEKDAY_LETTERS.find(letter)
        if index < 0:
            raise BadWeekdayError(letter)
        days.add(index + 1)
    return tuple(sorted(days))


def parse_time(text: str, max_hour: int = 23) -> tuple[int, int] | None:
    """Parse strict ``HH:mm``. Returns ``(hour, minute)`` or None on mismatch."""
    match = _TIME_PATTERN.match(text.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > min(max_hour, 23):
        return None
    return hour, minute
