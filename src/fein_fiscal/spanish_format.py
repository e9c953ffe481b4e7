"""Spanish number and date formats.

Spanish documents write ``123.456,78`` for 123456.78: the dot groups
thousands and the comma marks decimals. Every parser here returns 0 rather
than raising or producing NaN on text it cannot read.
"""

from __future__ import annotations

import math
import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

T = TypeVar("T", int, float)

_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a calculator does (2.5 -> 3), not banker's rounding."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _to_float(normalized: str) -> float:
    try:
        parsed = float(normalized)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def parse_spanish_number(text: str) -> float:
    """Parse ``"123.456,78"`` into ``123456.78`` without rounding."""
    normalized = text.strip().replace(".", "").replace(",", ".", 1)
    return _to_float(normalized)


def parse_spanish_amount(text: str) -> int:
    """Parse a Spanish-formatted euro amount, rounded to whole euros."""
    return int(round_half_up(parse_spanish_number(text)))


def parse_spanish_percentage(text: str) -> float:
    """Parse ``"2,95"`` or ``"2,95 %"`` into ``2.95`` (percentage points)."""
    normalized = text.replace("%", "").strip().replace(",", ".", 1)
    return round_half_up(_to_float(normalized), 2)


def format_spanish_amount(value: float, decimals: int = 2) -> str:
    """Format a number the Spanish way: ``123456.78`` -> ``"123.456,78"``."""
    english = f"{value:,.{decimals}f}"
    return english.replace(",", "_").replace(".", ",").replace("_", ".")


def parse_spanish_date(text: str, year_min: int = 2020, year_max: int = 2030) -> date | None:
    """Parse a ``dd/mm/yyyy`` date inside a plausibility window.

    Returns None for malformed text, impossible calendar dates and years
    outside ``year_min..year_max``.
    """
    match = _DATE_RE.match(text)
    if match is None:
        return None
    day, month, year = (int(part) for part in match.groups())
    if not (1 <= day <= 31 and 1 <= month <= 12 and year_min <= year <= year_max):
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def first_in_range(
    text: str,
    patterns: Iterable[re.Pattern[str]],
    parse: Callable[[str], T],
    low: float,
    high: float,
) -> T | None:
    """Return the first parsed capture that falls inside ``low..high``.

    Patterns are tried in order and, within a pattern, matches in text
    order. Group 1 of each pattern holds the number.
    """
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = parse(match.group(1))
            if low <= value <= high:
                return value
    return None
