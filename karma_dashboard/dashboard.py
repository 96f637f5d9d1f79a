"""
Dashboard-ready output functions.

These are the primary entry points for the Streamlit front end and the CLI.
Each function resolves the comparison windows for a month, fetches them
concurrently from a data source, and returns a plain dict of MetricRows,
DataFrames, and summary values suitable for cards, charts, and tables.

A data source is any callable fetch(window, filters) -> list[MetricRow].
The defaults read from the database; pass simulator.SimulatedSource
methods (or test stubs) to run without one.
"""

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import date

from .exceptions import InvalidMonthFormat
from .kpis import build_entity_summaries, get_network_summary
from .models import MetricFilters, MetricRow, PeriodWindow
from .periods import resolve_comparison_windows, resolve_reporting_month
from .projection import build_projection, recommend_target
from .transforms import (
    build_daily_comparison,
    build_segment_comparison,
    categories_in,
    category_totals,
    compare_category_mix,
    monthly_totals,
    rows_to_frame,
)
from .utils import add_months, month_token

logger = logging.getLogger(__name__)

Fetch = Callable[[PeriodWindow, MetricFilters], list[MetricRow]]


def _default_revenue_fetch(window: PeriodWindow, filters: MetricFilters) -> list[MetricRow]:
    from .loaders import fetch_daily_revenue
    return fetch_daily_revenue(window, filters)


def _default_footfall_fetch(window: PeriodWindow, filters: MetricFilters) -> list[MetricRow]:
    from .loaders import fetch_daily_footfall
    return fetch_daily_footfall(window, filters)


def _default_centre_fetch(window: PeriodWindow, filters: MetricFilters) -> list[MetricRow]:
    from .loaders import fetch_centre_footfall
    return fetch_centre_footfall(window, filters)


def _default_centre_daily_fetch(window: PeriodWindow, filters: MetricFilters) -> list[MetricRow]:
    from .loaders import fetch_centre_daily_footfall
    return fetch_centre_daily_footfall(window, filters)


def fetch_windows(
    fetch: Fetch,
    windows: dict[str, PeriodWindow],
    filters: MetricFilters,
) -> dict[str, list[MetricRow]]:
    """Fetch every window in parallel and wait for all of them.

    Windows are independent reads; the first failure is re-raised once all
    fetches have finished.
    """
    with ThreadPoolExecutor(max_workers=max(1, len(windows))) as pool:
        futures = {label: pool.submit(fetch, window, filters) for label, window in windows.items()}
        results = {label: future.result() for label, future in futures.items()}

    logger.info(
        "Fetched %s",
        ", ".join(f"{label}={len(rows)} rows" for label, rows in results.items()),
    )
    return results


def _total(rows: list[MetricRow]) -> float:
    return sum(r.value for r in rows)


def _resolve(month: str) -> dict[str, PeriodWindow] | None:
    try:
        return resolve_comparison_windows(month)
    except InvalidMonthFormat as exc:
        logger.warning("Report not built: %s", exc)
        return None


def get_revenue_report(
    month: str,
    target=None,
    filters: MetricFilters | None = None,
    today: date | None = None,
    fetch: Fetch | None = None,
) -> dict | None:
    """Revenue report for one month.

    Parameters
    ----------
    month : YYYY-MM token.
    target : Monthly revenue target; when missing or invalid, 'projection'
             is None.
    filters : Division / centre / source-type scoping.
    today : Reference date for the projection (defaults to today).
    fetch : Data source; defaults to the database loader.

    Returns
    -------
    None for a malformed month, else a dict:
    {
        "month", "window",
        "daily": [MetricRow], "daily_frame": DataFrame,
        "total": float, "categories": [...],
        "category_mix": [pie slices],
        "comparison": DataFrame (last 3 months vs same months last year),
        "comparison_windows": (PeriodWindow, PeriodWindow),
        "segment_comparison": DataFrame (10-day buckets),
        "monthly_comparison": {"current_year": DataFrame, "previous_year": DataFrame},
        "projection": ProjectionResult | None,
    }
    """
    windows = _resolve(month)
    if windows is None:
        return None

    filters = filters or MetricFilters()
    fetch = fetch or _default_revenue_fetch

    wanted = {k: windows[k] for k in ("thisMonth", "last3Months", "last3MonthsPrevYear")}
    rows = fetch_windows(fetch, wanted, filters)

    daily = rows["thisMonth"]
    current_3m = rows["last3Months"]
    previous_3m = rows["last3MonthsPrevYear"]
    categories = categories_in(daily)

    report = {
        "month": month,
        "window": windows["thisMonth"],
        "daily": daily,
        "daily_frame": rows_to_frame(daily, categories),
        "total": _total(daily),
        "categories": categories,
        "category_mix": category_totals(daily),
        "comparison": compare_category_mix(
            current_3m, previous_3m,
            windows["last3Months"], windows["last3MonthsPrevYear"],
        ),
        "comparison_windows": (windows["last3Months"], windows["last3MonthsPrevYear"]),
        "segment_comparison": build_segment_comparison(
            current_3m, previous_3m, windows["last3Months"].start,
        ),
        "monthly_comparison": {
            "current_year": monthly_totals(current_3m),
            "previous_year": monthly_totals(previous_3m),
        },
        "projection": build_projection(daily, target, month, today),
    }

    logger.info("Built revenue report for %s: total=%.2f", month, report["total"])
    return report


def get_footfall_report(
    month: str,
    target=None,
    filters: MetricFilters | None = None,
    today: date | None = None,
    fetch: Fetch | None = None,
) -> dict | None:
    """Footfall report for one month, broken down by doctor speciality.

    Also fetches the previous month and that month a year earlier to
    derive a recommended target, which is used when target is None.

    Returns
    -------
    None for a malformed month, else the same keys as get_revenue_report
    plus "recommended_target", "target_used", "prev_month_total", and
    "prev_month_prev_year_total".
    """
    windows = _resolve(month)
    if windows is None:
        return None

    filters = filters or MetricFilters()
    fetch = fetch or _default_footfall_fetch

    wanted = {
        k: windows[k]
        for k in ("thisMonth", "last3Months", "last3MonthsPrevYear", "prevMonth", "prevMonthPrevYear")
    }
    rows = fetch_windows(fetch, wanted, filters)

    daily = rows["thisMonth"]
    current_3m = rows["last3Months"]
    previous_3m = rows["last3MonthsPrevYear"]
    prev_month_total = _total(rows["prevMonth"])
    prev_month_prev_year_total = _total(rows["prevMonthPrevYear"])

    recommended = recommend_target(prev_month_total, prev_month_prev_year_total)
    target_used = target if target not in (None, "") else recommended

    categories = sorted(set(categories_in(daily)))

    report = {
        "month": month,
        "window": windows["thisMonth"],
        "daily": daily,
        "daily_frame": rows_to_frame(daily, categories),
        "total": _total(daily),
        "categories": categories,
        "category_mix": category_totals(daily),
        "comparison": compare_category_mix(
            current_3m, previous_3m,
            windows["last3Months"], windows["last3MonthsPrevYear"],
        ),
        "comparison_windows": (windows["last3Months"], windows["last3MonthsPrevYear"]),
        "segment_comparison": build_segment_comparison(
            current_3m, previous_3m, windows["last3Months"].start,
        ),
        "monthly_comparison": {
            "current_year": monthly_totals(current_3m),
            "previous_year": monthly_totals(previous_3m),
        },
        "prev_month_total": prev_month_total,
        "prev_month_prev_year_total": prev_month_prev_year_total,
        "recommended_target": recommended,
        "target_used": target_used,
        "projection": build_projection(daily, target_used, month, today),
    }

    logger.info(
        "Built footfall report for %s: total=%d recommended_target=%d",
        month, report["total"], recommended,
    )
    return report


def get_centre_footfall_summary(
    month: str | None = None,
    today: date | None = None,
    filters: MetricFilters | None = None,
    fetch: Fetch | None = None,
    daily_fetch: Fetch | None = None,
    entities: list[tuple[str, str]] | None = None,
) -> dict | None:
    """Per-centre footfall for a month against the previous month and year.

    Parameters
    ----------
    month : YYYY-MM token; defaults to the last completed month.
    fetch : Per-centre totals source (defaults to the database).
    daily_fetch : Daily totals source for the current-vs-previous line
                  chart. It must count visits the way fetch does, so a
                  month of daily values sums to the centre totals
                  (defaults to the database daily centre loader).
    entities : Full centre list; centres without visits still appear.
               Defaults to the active centres in the database when the
               database fetchers are in use.

    Returns
    -------
    None for a malformed month, else:
    {
        "month", "windows",
        "summary": network card dict (see kpis.get_network_summary),
        "centres": [EntitySummary],
        "daily_trend": DataFrame (date, current, previous),
    }
    """
    month = month or resolve_reporting_month(today)
    windows = _resolve(month)
    if windows is None:
        return None

    filters = filters or MetricFilters()
    if fetch is None:
        fetch = _default_centre_fetch
        if entities is None:
            from .loaders import load_active_centres
            entities = load_active_centres()
    daily_fetch = daily_fetch or _default_centre_daily_fetch

    wanted = {k: windows[k] for k in ("thisMonth", "prevMonth", "prevYear")}
    daily_wanted = {k: windows[k] for k in ("thisMonth", "prevMonth")}

    with ThreadPoolExecutor(max_workers=2) as pool:
        totals_future = pool.submit(fetch_windows, fetch, wanted, filters)
        daily_future = pool.submit(fetch_windows, daily_fetch, daily_wanted, filters)
        totals = totals_future.result()
        daily = daily_future.result()

    centres = build_entity_summaries(
        totals["thisMonth"], totals["prevMonth"], totals["prevYear"], entities,
    )

    result = {
        "month": month,
        "windows": wanted,
        "summary": get_network_summary(centres),
        "centres": centres,
        "daily_trend": build_daily_comparison(daily["thisMonth"], daily["prevMonth"]),
    }
    logger.info("Built centre footfall summary for %s: %d centres", month, len(centres))
    return result


def get_available_months(today: date | None = None, n: int = 24) -> list[str]:
    """Most recent n month tokens, newest first, for the month picker."""
    today = today or date.today()
    return [
        month_token(date(*add_months(today.year, today.month, -i), 1))
        for i in range(n)
    ]

