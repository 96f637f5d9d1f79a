"""
Shared date and number helpers: value coercion, half-up rounding, calendar
arithmetic, and display labels.

All functions are pure and hold no state.
"""

import calendar
import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import pandas as pd

from .config import NOT_APPLICABLE

logger = logging.getLogger(__name__)


def to_number(val: Any) -> float:
    """Coerce a database value to float, returning 0.0 for anything unusable.

    Handles None, NaN, Decimal, and strings with thousands separators
    ("1,250.50").
    """
    if val is None:
        return 0.0
    if isinstance(val, str):
        val = val.strip().replace(",", "")
        if not val:
            return 0.0
    try:
        num = float(val)
    except (ValueError, TypeError):
        return 0.0
    if pd.isna(num) or num in (float("inf"), float("-inf")):
        return 0.0
    return num


def normalise_date(val: Any) -> date | None:
    """Convert a date-like value to datetime.date.

    Accepts date, datetime, pd.Timestamp, and strings whose first ten
    characters are an ISO date (database timestamps such as
    "2026-02-03 18:30:00" or "2026-02-03T18:30:00.000Z"). Returns None for
    unparseable values.
    """
    if val is None:
        return None
    if isinstance(val, pd.Timestamp):
        if pd.isna(val):
            return None
        return val.date()
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    try:
        return date.fromisoformat(str(val).strip()[:10])
    except ValueError:
        logger.warning("Could not parse date value: %s", val)
        return None


def round_half_up(value: float, places: int = 2) -> float:
    """Round half away from zero, the way SQL ROUND() does.

    Python's round() uses banker's rounding on the binary float, which
    gives round(2.675, 2) == 2.67; this returns 2.68.
    """
    try:
        quantum = Decimal(1).scaleb(-places)
        return float(Decimal(str(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return value


def days_in_month(year: int, month: int) -> int:
    """Return the number of calendar days in the month (leap-year aware)."""
    return calendar.monthrange(year, month)[1]


def month_token(d: date) -> str:
    """Return the YYYY-MM token for the month containing d."""
    return f"{d.year:04d}-{d.month:02d}"


def add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    """Shift a (year, month) pair by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def format_date(d: date | None) -> str:
    """Long display date, e.g. '3 Feb 2026'."""
    if d is None:
        return ""
    return f"{d.day} {d:%b %Y}"


def short_date_label(d: date) -> str:
    """Axis label without the year, e.g. '3 Feb'."""
    return f"{d.day} {d:%b}"


def month_label(d: date) -> str:
    """Month label, e.g. 'Feb 2026'."""
    return f"{d:%b %Y}"


def range_label(start: date | None, end: date | None) -> str:
    """Label for a multi-month window, e.g. 'Sep-Nov 2025'.

    Uses the starting year; collapses to a single month when both ends
    share a month name.
    """
    if start is None or end is None:
        return ""
    start_month = f"{start:%b}"
    end_month = f"{end:%b}"
    if start_month == end_month:
        return f"{start_month} {start.year}"
    return f"{start_month}-{end_month} {start.year}"


def format_amount(val: float | None, prefix: str = "") -> str:
    """Thousands-separated whole number for cards and tables."""
    if val is None:
        return NOT_APPLICABLE
    return f"{prefix}{val:,.0f}"
