"""
Target-vs-actual projection: least-squares trend over month-to-date
cumulative values, month-end projection, and required daily run-rate.

The regression is fitted on (day_of_month, cumulative_value) pairs. Days
with no data are absent from the fit rather than zero-filled, so a gap
does not drag the slope down.
"""

import logging
from collections.abc import Iterable
from datetime import date

import numpy as np

from .config import (
    EXCLUDED_WEEKDAY,
    ON_TRACK_TOLERANCE,
    RECOMMENDED_TARGET_FLOOR,
    RECOMMENDED_TARGET_UPLIFT,
)
from .exceptions import InsufficientData, InvalidMonthFormat, InvalidTarget
from .models import MetricRow, ProjectionPoint, ProjectionResult
from .periods import resolve_month
from .utils import round_half_up, to_number

logger = logging.getLogger(__name__)


def fit_linear_regression(points: list[tuple[float, float]]) -> tuple[float, float]:
    """Ordinary least squares fit of y on x.

    slope     = (nΣxy − ΣxΣy) / (nΣx² − (Σx)²)
    intercept = (Σy − slope·Σx) / n

    Raises InsufficientData with fewer than two points or when every x is
    the same (vertical line).
    """
    if len(points) < 2:
        raise InsufficientData(f"Need at least 2 points for a trend line, got {len(points)}")

    xs = np.array([p[0] for p in points], dtype=float)
    ys = np.array([p[1] for p in points], dtype=float)
    n = len(points)

    sum_x = xs.sum()
    sum_y = ys.sum()
    sum_xy = (xs * ys).sum()
    sum_x2 = (xs * xs).sum()

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        raise InsufficientData("All points share the same day; slope is undefined")

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return float(slope), float(intercept)


def validate_target(target) -> float:
    """Return target as a positive float or raise InvalidTarget."""
    if target is None or isinstance(target, bool):
        raise InvalidTarget("No target supplied")
    if isinstance(target, str):
        target = target.strip().replace(",", "")
    try:
        value = float(target)
    except (TypeError, ValueError):
        raise InvalidTarget(f"Target {target!r} is not a number") from None
    if not np.isfinite(value) or value <= 0:
        raise InvalidTarget(f"Target must be positive, got {value}")
    return value


def count_remaining_days(
    year: int,
    month: int,
    after_day: int,
    days_in_month: int,
    excluded_weekday: int | None = EXCLUDED_WEEKDAY,
) -> int:
    """Days after `after_day` up to month end, skipping the excluded weekday."""
    count = 0
    for day in range(after_day + 1, days_in_month + 1):
        if excluded_weekday is not None and date(year, month, day).weekday() == excluded_weekday:
            continue
        count += 1
    return count


def cumulative_points(daily: dict[date, float]) -> list[tuple[int, float]]:
    """Running sum in date order, keyed by actual day of month."""
    points = []
    running = 0.0
    for d in sorted(daily):
        running += daily[d]
        points.append((d.day, running))
    return points


def build_projection(
    month_rows: Iterable[MetricRow],
    target,
    reference_month: str,
    today: date | None = None,
    excluded_weekday: int | None = EXCLUDED_WEEKDAY,
) -> ProjectionResult | None:
    """Project month-end totals for the reference month against a target.

    Parameters
    ----------
    month_rows : Daily MetricRows; rows outside the month are ignored and
                 several rows on one day are summed.
    target : Month target. Missing, non-numeric, or non-positive targets
             yield no projection.
    reference_month : YYYY-MM token of the report month.
    today : Reference date (defaults to date.today()). Decides whether the
            month is still in progress.
    excluded_weekday : Weekday (Monday=0) not counted as a working day in
                       the required run-rate; None counts every day.

    Returns
    -------
    ProjectionResult, or None when there is no valid target, no data for
    the month, or the month token is malformed.
    """
    try:
        target_value = validate_target(target)
    except InvalidTarget as exc:
        logger.info("No projection: %s", exc)
        return None

    try:
        window = resolve_month(reference_month)
    except InvalidMonthFormat as exc:
        logger.warning("No projection: %s", exc)
        return None

    today = today or date.today()
    year, month = window.start.year, window.start.month
    days_in_month = window.end.day
    is_ongoing = window.contains(today)

    daily: dict[date, float] = {}
    for row in month_rows:
        if not window.contains(row.date):
            continue
        daily[row.date] = daily.get(row.date, 0.0) + to_number(row.value)

    if not daily:
        logger.info("No projection: no daily data for %s", reference_month)
        return None

    mtd_total = sum(daily.values())
    points = cumulative_points(daily)

    if is_ongoing:
        current_day = today.day
    else:
        current_day = max(daily).day
    days_remaining = max(0, days_in_month - current_day)

    try:
        slope, intercept = fit_linear_regression(points)
    except InsufficientData as exc:
        logger.info("No trend line for %s: %s", reference_month, exc)
        slope, intercept = None, None

    projected = mtd_total
    if slope is not None:
        projected = max(mtd_total, slope * days_in_month + intercept)

    is_on_track = (
        abs(projected - target_value) <= ON_TRACK_TOLERANCE * target_value
        or projected >= target_value
    )

    required_per_day = None
    if is_ongoing:
        working_days = count_remaining_days(year, month, today.day, days_in_month, excluded_weekday)
        if working_days > 0:
            required_per_day = (target_value - mtd_total) / working_days

    series = []
    running = 0.0
    for day in range(1, days_in_month + 1):
        running += daily.get(date(year, month, day), 0.0)
        actual = running if (not is_ongoing or day <= current_day) else None
        trend = max(0.0, slope * day + intercept) if slope is not None else None
        series.append(ProjectionPoint(
            day=day,
            actual_cumulative=actual,
            target_line=target_value / days_in_month * day,
            trend_line=trend,
        ))

    logger.info(
        "Projection %s: mtd=%.2f projected=%.2f target=%.2f on_track=%s",
        reference_month, mtd_total, projected, target_value, is_on_track,
    )

    return ProjectionResult(
        target=target_value,
        month_to_date_total=mtd_total,
        projected_month_end=projected,
        required_per_remaining_day=required_per_day,
        is_on_track=is_on_track,
        days_in_month=days_in_month,
        days_remaining=days_remaining,
        is_ongoing_month=is_ongoing,
        slope=slope,
        intercept=intercept,
        series=series,
    )


def recommend_target(
    prev_month_total: float,
    prev_year_month_total: float,
    floor: float = RECOMMENDED_TARGET_FLOOR,
    uplift: float = RECOMMENDED_TARGET_UPLIFT,
) -> int:
    """Suggested footfall target: max(floor, best comparable month * uplift)."""
    base = max(to_number(prev_month_total), to_number(prev_year_month_total))
    return int(round_half_up(max(floor, base * uplift), 0))
