"""Normalizers for loosely formatted DOCCS values.

All functions are total: bad input degrades to an empty string (or the original
text for durations) instead of raising.
"""

import re
from datetime import date
from typing import Any, Union

_DURATION_PART = re.compile(r"(\d+)\s*(year|month|day)s?", re.IGNORECASE)

_FULL_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4}|\d{2})$")
_MONTH_YEAR = re.compile(r"^(\d{1,2})[/-](\d{4})$")

_DIVISORS = {"year": 1, "month": 12, "day": 365}


def to_title_case(value: Any) -> str:
    """Capitalize the first letter of each space-separated word, lowercase the rest."""
    if not isinstance(value, str):
        return ""
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split(" "))


def duration_to_years(value: Any) -> Union[float, str]:
    """Convert "x years, y months, z days" to decimal years rounded to 2 places.

    Returns "" for empty input and the stripped original text when no year,
    month or day component is found.
    """
    if not value:
        return ""
    text = str(value)

    parts = _DURATION_PART.findall(text)
    if not parts:
        return text.strip()

    years = 0.0
    for amount, unit in parts:
        years += int(amount) / _DIVISORS[unit.lower()]
    return round(years, 2)


def format_years(value: Union[float, str]) -> str:
    """Render a duration without a trailing ".0" (25.0 -> "25", 3.17 -> "3.17")."""
    if isinstance(value, float):
        text = repr(value)
        return text[:-2] if text.endswith(".0") else text
    return value


def normalize_date(value: Any) -> str:
    """Normalize MM/DD/YYYY, MM/YYYY or MM/DD/YY to YYYY-MM-DD.

    "/" and "-" are both accepted as separators. Two digit years are taken to
    be in the 2000s and a missing day defaults to the first of the month.
    Anything else, including impossible calendar dates, yields "".
    """
    if not isinstance(value, str):
        return ""
    text = value.strip()

    match = _FULL_DATE.match(text)
    if match:
        month, day, year = match.groups()
    else:
        match = _MONTH_YEAR.match(text)
        if not match:
            return ""
        month, year = match.groups()
        day = "1"

    if len(year) == 2:
        year = "20" + year

    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return ""


def is_empty(value: Any) -> bool:
    """True for values that must never overwrite a stored value."""
    if isinstance(value, dict):
        return not any(value.values())
    if isinstance(value, str):
        return not value.strip()
    return not value
