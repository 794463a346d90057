"""Utility functions for the rural credit engine.

Helpers for turning user input into ``Decimal`` values, for rounding currency
and rates to their display precision, and for stepping due dates by whole
months.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
import calendar
from typing import Any

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def to_money(value: Decimal) -> Decimal:
    """Round a currency amount to cents (half up)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_rate(value: Decimal) -> Decimal:
    """Round a percentage to four decimal places for display."""
    return value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def to_points(value: Decimal) -> Decimal:
    """Round a difference in percentage points to two places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def as_decimal(value: Any) -> Decimal:
    """Coerce ints, strings and Decimals into ``Decimal``.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    instead of its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid numeric value: {value!r}")
    if isinstance(value, (int, str)):
        return decimal_from_str(str(value))
    if isinstance(value, float):
        return decimal_from_str(repr(value))
    raise ValueError(f"Invalid numeric value: {value!r}")


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = value.replace(",", "").strip()
        result = Decimal(cleaned)
    except (InvalidOperation, AttributeError) as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def parse_year_month(ym: str) -> date:
    """Parse a YYYY-MM string into a ``date`` object (first day of month).

    Raises
    ------
    ValueError
        If the string is not a valid year-month.
    """
    try:
        parts = ym.split("-")
        if len(parts) < 2:
            raise ValueError
        year = int(parts[0])
        month = int(parts[1])
        return date(year, month, 1)
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid year-month string: {ym}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def format_brl(value: Decimal) -> str:
    """Format an amount the Brazilian way, e.g. ``R$ 20.000,00``."""
    text = f"{to_money(value):,.2f}"
    return "R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")
