"""
Data transforms: fold loader output into daily MetricRows, and reshape
MetricRows into chart-ready tables.

The build_* functions are the normalisation boundary. Loader DataFrames
arrive with canonical column names (see loaders.utils.normalise_columns);
everything after this module works on MetricRow lists only.
"""

import logging
from collections.abc import Iterable
from datetime import date, timedelta

import pandas as pd

from .config import (
    CATEGORY_ALL,
    CATEGORY_REGISTRY,
    DEFAULT_SPECIALITY,
    REVENUE_CATEGORIES,
    SEGMENT_COUNT,
    SEGMENT_DAYS,
    SPECIALITY_COLORS,
    TREND_CATEGORY_COLORS,
)
from .models import MetricRow, PeriodWindow
from .utils import month_label, normalise_date, range_label, round_half_up, short_date_label, to_number

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Daily fold
# ---------------------------------------------------------------------------

def fold_daily(
    records: Iterable[tuple[date, float, dict[str, float]]],
    categories: list[str] | None = None,
) -> list[MetricRow]:
    """Reduce (date, value, breakdown) records into one MetricRow per date.

    Records are folded left to right into a fresh accumulator per date.
    Every output row carries every category (missing ones as 0.0);
    categories seen in the data but not listed are appended in sorted
    order. Output is sorted by date.
    """
    totals: dict[date, float] = {}
    breakdowns: dict[date, dict[str, float]] = {}
    seen: set[str] = set()

    for day, value, breakdown in records:
        if day is None:
            continue
        if day not in totals:
            totals[day] = 0.0
            breakdowns[day] = {}
        totals[day] += to_number(value)
        acc = breakdowns[day]
        for key, amount in breakdown.items():
            acc[key] = acc.get(key, 0.0) + to_number(amount)
            seen.add(key)

    keys = list(categories or [])
    keys += sorted(seen - set(keys))

    return [
        MetricRow(
            date=day,
            value=totals[day],
            breakdown={k: breakdowns[day].get(k, 0.0) for k in keys},
        )
        for day in sorted(totals)
    ]


def _records(df: pd.DataFrame | None) -> list[dict]:
    if df is None or df.empty:
        return []
    return df.to_dict("records")


def build_daily_revenue(
    patient_df: pd.DataFrame | None,
    otc_df: pd.DataFrame | None,
) -> list[MetricRow]:
    """Daily revenue with the six-category breakdown.

    Parameters
    ----------
    patient_df : Clinic visits with columns
        date, cost, consultation, medicine, diagnostics, poc
    otc_df : OTC sales with columns
        date, paid_amount, medicine, diagnostics, poc

    Rules
    -----
    - Clinic visit: total = cost; categories as recorded.
    - OTC sale: total = paid amount; whatever paid amount is not explained
      by medicine, diagnostics, or poc is booked to 'otc' (never negative).
    - 'eye' is carried for the chart legend and is always 0.
    """
    records = []

    for r in _records(patient_df):
        records.append((
            normalise_date(r.get("date")),
            to_number(r.get("cost")),
            {
                "consultation": to_number(r.get("consultation")),
                "medicine": to_number(r.get("medicine")),
                "diagnostics": to_number(r.get("diagnostics")),
                "poc": to_number(r.get("poc")),
            },
        ))

    for r in _records(otc_df):
        paid = to_number(r.get("paid_amount"))
        medicine = to_number(r.get("medicine"))
        diagnostics = to_number(r.get("diagnostics"))
        poc = to_number(r.get("poc"))
        records.append((
            normalise_date(r.get("date")),
            paid,
            {
                "medicine": medicine,
                "otc": max(0.0, paid - medicine - diagnostics - poc),
                "diagnostics": diagnostics,
                "poc": poc,
            },
        ))

    rows = fold_daily(records, REVENUE_CATEGORIES)
    logger.info("Built daily revenue with %d rows from %d records", len(rows), len(records))
    return rows


def clean_speciality(val) -> str:
    """Blank or missing specialities are grouped under 'other'."""
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return DEFAULT_SPECIALITY
    s = str(val).strip()
    return s or DEFAULT_SPECIALITY


def build_daily_footfall(visits_df: pd.DataFrame | None) -> list[MetricRow]:
    """Daily footfall broken down by doctor speciality.

    Parameters
    ----------
    visits_df : Columns date, speciality, visits (one row per date and
        speciality, or one row per visit with visits=1).
    """
    records = [
        (
            normalise_date(r.get("date")),
            to_number(r.get("visits", 1)),
            {clean_speciality(r.get("speciality")): to_number(r.get("visits", 1))},
        )
        for r in _records(visits_df)
    ]
    rows = fold_daily(records)
    logger.info("Built daily footfall with %d rows from %d records", len(rows), len(records))
    return rows


def build_daily_visits(visits_df: pd.DataFrame | None) -> list[MetricRow]:
    """Daily visit totals without a breakdown.

    visits_df columns: date, visits
    """
    records = [
        (normalise_date(r.get("date")), to_number(r.get("visits")), {})
        for r in _records(visits_df)
    ]
    rows = fold_daily(records)
    logger.info("Built daily visit totals with %d rows", len(rows))
    return rows


def build_centre_totals(centre_df: pd.DataFrame | None, window: PeriodWindow) -> list[MetricRow]:
    """Per-centre visit totals for one window, dated at the window start.

    centre_df columns: division, centre, visits
    """
    rows = [
        MetricRow(
            date=window.start,
            value=to_number(r.get("visits")),
            entity=str(r.get("division") or "").strip(),
            sub_entity=str(r.get("centre") or "").strip(),
        )
        for r in _records(centre_df)
    ]
    logger.info("Built %d centre totals for %s", len(rows), window.label)
    return rows


# ---------------------------------------------------------------------------
# Chart shapes
# ---------------------------------------------------------------------------

def categories_in(rows: Iterable[MetricRow]) -> list[str]:
    """Breakdown keys present across rows, first-seen order."""
    keys: list[str] = []
    for row in rows:
        for key in row.breakdown:
            if key not in keys:
                keys.append(key)
    return keys


def category_label(key: str) -> str:
    return CATEGORY_REGISTRY.get(key, {}).get("label", key)


def category_color(key: str, index: int = 0) -> str:
    if key in CATEGORY_REGISTRY:
        return CATEGORY_REGISTRY[key]["color"]
    return SPECIALITY_COLORS[index % len(SPECIALITY_COLORS)]


def trend_category_style(category: str) -> str:
    """CSS for a trend-category cell in the centre table (Styler.map)."""
    color = TREND_CATEGORY_COLORS.get(category, TREND_CATEGORY_COLORS[CATEGORY_ALL])
    return f"background-color: {color}22; color: {color}"


def rows_to_frame(rows: list[MetricRow], categories: list[str] | None = None) -> pd.DataFrame:
    """Daily rows as a DataFrame: date, total, one column per category."""
    categories = categories if categories is not None else categories_in(rows)
    columns = ["date", "total"] + categories
    if not rows:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame([
        {"date": r.date, "total": r.value, **{c: r.category(c) for c in categories}}
        for r in rows
    ], columns=columns)
    df["date"] = pd.to_datetime(df["date"])
    return df


def _sum_by_category(rows: Iterable[MetricRow]) -> dict[str, float]:
    sums: dict[str, float] = {}
    for row in rows:
        for key, amount in row.breakdown.items():
            sums[key] = sums.get(key, 0.0) + amount
    return sums


def _share(value: float, total: float) -> float:
    return round_half_up(value / total * 100, 1) if total > 0 else 0.0


def category_totals(rows: list[MetricRow]) -> list[dict]:
    """Pie-chart data: one slice per category with a non-zero total.

    Returns
    -------
    List of {"key", "name", "value", "percentage", "color"}; percentage is
    the share of the category sum to 1dp. Empty when nothing was recorded.
    """
    sums = _sum_by_category(rows)
    total = sum(sums.values())
    if total == 0:
        return []

    return [
        {
            "key": key,
            "name": category_label(key),
            "value": value,
            "percentage": _share(value, total),
            "color": category_color(key, i),
        }
        for i, (key, value) in enumerate(sums.items())
        if value > 0
    ]


def compare_category_mix(
    current_rows: list[MetricRow],
    previous_rows: list[MetricRow],
    current_window: PeriodWindow,
    previous_window: PeriodWindow,
) -> pd.DataFrame:
    """Stacked-bar data for two periods, e.g. Sep-Nov 2025 vs Sep-Nov 2024.

    One row per period with columns period, total, <category>,
    <category>_pct.
    """
    categories = categories_in(current_rows)
    for key in categories_in(previous_rows):
        if key not in categories:
            categories.append(key)

    out = []
    for window, rows in ((current_window, current_rows), (previous_window, previous_rows)):
        sums = _sum_by_category(rows)
        total = sum(sums.get(c, 0.0) for c in categories)
        record = {"period": range_label(window.start, window.end), "total": total}
        for c in categories:
            record[c] = sums.get(c, 0.0)
            record[f"{c}_pct"] = _share(sums.get(c, 0.0), total)
        out.append(record)

    return pd.DataFrame(out)


def _shift_back_one_year(d: date) -> date:
    try:
        return d.replace(year=d.year - 1)
    except ValueError:  # 29 Feb
        return d.replace(year=d.year - 1, day=28)


def build_segment_comparison(
    current_rows: list[MetricRow],
    previous_rows: list[MetricRow],
    start: date,
    segments: int = SEGMENT_COUNT,
    days: int = SEGMENT_DAYS,
) -> pd.DataFrame:
    """Totals in consecutive fixed-length buckets, this year vs last year.

    Bucket i covers start + i*days .. start + i*days + days - 1. The
    last-year column sums previous_rows over the same calendar dates one
    year earlier.

    Returns
    -------
    DataFrame with columns period, this_year, last_year.
    """
    current_by_date: dict[date, float] = {}
    for row in current_rows:
        current_by_date[row.date] = current_by_date.get(row.date, 0.0) + row.value
    previous_by_date: dict[date, float] = {}
    for row in previous_rows:
        previous_by_date[row.date] = previous_by_date.get(row.date, 0.0) + row.value

    out = []
    for i in range(segments):
        seg_start = start + timedelta(days=i * days)
        seg_end = seg_start + timedelta(days=days - 1)
        prev_start = _shift_back_one_year(seg_start)
        prev_end = _shift_back_one_year(seg_end)

        out.append({
            "period": short_date_label(seg_start),
            "this_year": sum(v for d, v in current_by_date.items() if seg_start <= d <= seg_end),
            "last_year": sum(v for d, v in previous_by_date.items() if prev_start <= d <= prev_end),
        })

    return pd.DataFrame(out, columns=["period", "this_year", "last_year"])


def monthly_totals(rows: list[MetricRow]) -> pd.DataFrame:
    """Calendar-month totals: month (YYYY-MM), month_label, value."""
    if not rows:
        return pd.DataFrame(columns=["month", "month_label", "value"])

    totals: dict[date, float] = {}
    for row in rows:
        first = row.date.replace(day=1)
        totals[first] = totals.get(first, 0.0) + row.value

    return pd.DataFrame([
        {"month": f"{m:%Y-%m}", "month_label": month_label(m), "value": totals[m]}
        for m in sorted(totals)
    ])


def build_daily_comparison(
    current_rows: list[MetricRow],
    previous_rows: list[MetricRow],
) -> pd.DataFrame:
    """Day-by-day current vs previous-period totals for a line chart.

    Dates from both periods are kept; a period with no row on a date
    contributes 0.
    """
    current = pd.Series({r.date: r.value for r in current_rows}, dtype=float)
    previous = pd.Series({r.date: r.value for r in previous_rows}, dtype=float)
    df = pd.DataFrame({"current": current, "previous": previous}).fillna(0.0)
    df = df.sort_index().rename_axis("date").reset_index()
    return df
