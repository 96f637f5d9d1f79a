"""
Period resolver: translate a YYYY-MM month token into the date windows a
comparison report needs.

Windows
-------
- thisMonth            the selected month
- prevMonth            the month before it
- prevYear             the selected month one year earlier
- last3Months          the three full months before the selected month
- last3MonthsPrevYear  last3Months one year earlier
- prevMonthPrevYear    prevMonth one year earlier

All functions are pure; "today" is only used by resolve_reporting_month.
"""

import logging
import re
from datetime import date

from .config import COMPARISON_MONTHS
from .exceptions import InvalidMonthFormat
from .models import PeriodWindow
from .utils import add_months, days_in_month, month_token, normalise_date

logger = logging.getLogger(__name__)

_MONTH_TOKEN = re.compile(r"(\d{4})-(\d{2})", re.ASCII)


def parse_month(token: str) -> tuple[int, int]:
    """Return (year, month) for a YYYY-MM token.

    Raises InvalidMonthFormat for anything else, including month 00 or 13.
    """
    match = _MONTH_TOKEN.fullmatch(token) if isinstance(token, str) else None
    if match is None:
        raise InvalidMonthFormat(f"Invalid month {token!r}. Use YYYY-MM format.")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidMonthFormat(f"Invalid month {token!r}: month must be 01-12.")
    return year, month


def _month_window(year: int, month: int, label: str) -> PeriodWindow:
    return PeriodWindow(
        start=date(year, month, 1),
        end=date(year, month, days_in_month(year, month)),
        label=label,
    )


def resolve_month(token: str) -> PeriodWindow:
    """First to last calendar day of the month."""
    year, month = parse_month(token)
    return _month_window(year, month, "thisMonth")


def resolve_previous_month(token: str) -> PeriodWindow:
    """The calendar month immediately preceding the token."""
    year, month = parse_month(token)
    return _month_window(*add_months(year, month, -1), "prevMonth")


def _shift_year(d: date, years: int) -> date:
    """Move d by whole years, keeping month-end dates on the month end."""
    year = d.year + years
    last_day = days_in_month(year, d.month)
    if d.day == days_in_month(d.year, d.month):
        return date(year, d.month, last_day)
    return date(year, d.month, min(d.day, last_day))


def resolve_same_month_prior_year(period: "str | PeriodWindow") -> PeriodWindow:
    """Same month/day range one calendar year earlier.

    Accepts a month token or an existing window, so that applying it to
    resolve_last_n_months() gives the year-over-year comparison window.
    """
    if isinstance(period, PeriodWindow):
        label = f"{period.label}PrevYear" if period.label != "thisMonth" else "prevYear"
        return PeriodWindow(
            start=_shift_year(period.start, -1),
            end=_shift_year(period.end, -1),
            label=label,
        )
    year, month = parse_month(period)
    return _month_window(year - 1, month, "prevYear")


def resolve_last_n_months(token: str, n: int = COMPARISON_MONTHS) -> PeriodWindow:
    """The n full months before the token's month, as one contiguous range.

    resolve_last_n_months("2025-12", 3) -> 2025-09-01 .. 2025-11-30
    """
    if n < 1:
        raise ValueError(f"n must be at least 1, got {n}")
    year, month = parse_month(token)
    first_year, first_month = add_months(year, month, -n)
    last_year, last_month = add_months(year, month, -1)
    label = "last3Months" if n == 3 else f"last{n}Months"
    return PeriodWindow(
        start=date(first_year, first_month, 1),
        end=date(last_year, last_month, days_in_month(last_year, last_month)),
        label=label,
    )


def resolve_range(start, end) -> PeriodWindow:
    """Explicit from/to range (dates or ISO strings)."""
    start_date = normalise_date(start)
    end_date = normalise_date(end)
    if start_date is None or end_date is None:
        raise InvalidMonthFormat(f"Invalid date range {start!r} .. {end!r}")
    return PeriodWindow(start=start_date, end=end_date, label="custom")


def resolve_reporting_month(today: date | None = None) -> str:
    """Token of the last completed month, the default for centre reports."""
    today = today or date.today()
    return month_token(date(*add_months(today.year, today.month, -1), 1))


def resolve_comparison_windows(token: str) -> dict[str, PeriodWindow]:
    """Every window a month report can ask for, keyed by label."""
    this_month = resolve_month(token)
    prev_month = resolve_previous_month(token)
    last_3 = resolve_last_n_months(token, COMPARISON_MONTHS)

    windows = {
        "thisMonth": this_month,
        "prevMonth": prev_month,
        "prevYear": resolve_same_month_prior_year(token),
        "last3Months": last_3,
        "last3MonthsPrevYear": resolve_same_month_prior_year(last_3),
        "prevMonthPrevYear": resolve_same_month_prior_year(prev_month),
    }
    logger.debug(
        "Resolved windows for %s: %s",
        token,
        {k: (w.start.isoformat(), w.end.isoformat()) for k, w in windows.items()},
    )
    return windows
