"""Parsing of command arguments typed in chat."""

import re
from typing import List

from momentum.utils.constants import DAYS_OF_WEEK, Difficulty, EnergyCategory

DAY_ALIASES = {day[:3].lower(): day for day in DAYS_OF_WEEK}

DIFFICULTY_NAMES = {
    "easier": Difficulty.EASIER,
    "easy": Difficulty.EASIER,
    "typical": Difficulty.TYPICAL,
    "normal": Difficulty.TYPICAL,
    "harder": Difficulty.HARDER,
    "hard": Difficulty.HARDER,
}


def parse_day(text: str) -> str:
    """Match "mon", "Monday", "TUE"... to a day name.

    Raises:
        ValueError: if the text is not a day
    """
    key = text.strip().lower()[:3]
    if key not in DAY_ALIASES or not DAY_ALIASES[key].lower().startswith(text.strip().lower()):
        raise ValueError(f"Unknown day: {text}")
    return DAY_ALIASES[key]


def parse_days(text: str) -> List[str]:
    """Parse a day selection.

    Examples:
        "all" -> every day
        "weekdays" or "mon-fri" -> Monday..Friday
        "weekend" -> Saturday, Sunday
        "mon,wed,fri" -> Monday, Wednesday, Friday
    """
    text = text.strip().lower()

    if text in ("all", "daily", "everyday"):
        return list(DAYS_OF_WEEK)
    if text == "weekdays":
        return DAYS_OF_WEEK[:5]
    if text == "weekend":
        return DAYS_OF_WEEK[5:]

    days: List[str] = []
    for part in filter(None, text.split(",")):
        match = re.fullmatch(r"([a-z]+)-([a-z]+)", part)
        if match:
            first = DAYS_OF_WEEK.index(parse_day(match.group(1)))
            last = DAYS_OF_WEEK.index(parse_day(match.group(2)))
            if last < first:
                raise ValueError(f"Day range runs backwards: {part}")
            selected = DAYS_OF_WEEK[first : last + 1]
        else:
            selected = [parse_day(part)]

        days.extend(d for d in selected if d not in days)

    if not days:
        raise ValueError("No days given")
    return days


def parse_category(text: str) -> str:
    """Match a category name case-insensitively."""
    for category in EnergyCategory:
        if category.value.lower() == text.strip().lower():
            return category.value
    names = ", ".join(c.value for c in EnergyCategory)
    raise ValueError(f"Unknown category {text!r}. Use one of: {names}")


def parse_difficulty(text: str | None) -> float:
    """Difficulty multiplier from a word; defaults to typical."""
    if text is None:
        return Difficulty.TYPICAL.value
    try:
        return DIFFICULTY_NAMES[text.strip().lower()].value
    except KeyError:
        raise ValueError(f"Unknown difficulty {text!r}. Use easier, typical or harder")


def parse_offset(text: str) -> int:
    """Signed minute offset such as "-10", "+5" or "0"."""
    if not re.fullmatch(r"[+-]?\d+", text.strip()):
        raise ValueError(f"Invalid offset {text!r}, expected minutes like -10 or 15")
    return int(text)
