"""
Trend computation functions: pure, with no side effects.

Provides percentage-trend calculation, Stars/Concerning categorisation,
per-centre summaries, and the network-wide summary card.
"""

import logging
from collections.abc import Iterable

from .config import (
    CATEGORY_ALL,
    CATEGORY_BETTER_THAN_LAST_MONTH,
    CATEGORY_BETTER_THAN_LAST_YEAR,
    CATEGORY_CONCERNING,
    CATEGORY_STARS,
)
from .models import EntitySummary, MetricRow, format_trend
from .utils import round_half_up, to_number

logger = logging.getLogger(__name__)


def trend_pct(current: float, previous: float) -> float | None:
    """Return the % change of current against previous, rounded half up to 2dp.

    None if previous == 0.
    """
    if previous == 0:
        return None
    return round_half_up((current - previous) * 100 / previous, 2)


def classify_trend(
    current: float,
    prev_month: float,
    prev_year: float,
    trend_month: float | None,
    trend_year: float | None,
) -> str:
    """Return the trend category for one centre.

    Logic (first match wins)
    -----
    - current == 0:
        Concerning if either prior period had visits, else All
    - no trend available in either period:   All
    - only one trend available:              Stars if >= 0 else Concerning
    - both available:
        month < 0, year < 0    Concerning
        month < 0, year >= 0   Better than last year
        month >= 0, year < 0   Better than last month
        month >= 0, year >= 0  Stars
    """
    if current == 0:
        if prev_month > 0 or prev_year > 0:
            return CATEGORY_CONCERNING
        return CATEGORY_ALL

    if trend_month is None and trend_year is None:
        return CATEGORY_ALL

    if trend_month is None or trend_year is None:
        only = trend_year if trend_month is None else trend_month
        return CATEGORY_STARS if only >= 0 else CATEGORY_CONCERNING

    if trend_month < 0 and trend_year < 0:
        return CATEGORY_CONCERNING
    if trend_month < 0:
        return CATEGORY_BETTER_THAN_LAST_YEAR
    if trend_year < 0:
        return CATEGORY_BETTER_THAN_LAST_MONTH
    return CATEGORY_STARS


def summarise_entity(
    entity: str,
    sub_entity: str,
    current: float,
    prev_month: float,
    prev_year: float,
) -> EntitySummary:
    """Build one EntitySummary from three period totals."""
    trend_month = trend_pct(current, prev_month)
    trend_year = trend_pct(current, prev_year)
    return EntitySummary(
        entity=entity,
        sub_entity=sub_entity,
        current=current,
        prev_month=prev_month,
        prev_year=prev_year,
        trend_month_pct=trend_month,
        trend_year_pct=trend_year,
        category=classify_trend(current, prev_month, prev_year, trend_month, trend_year),
    )


def _totals_by_entity(rows: Iterable[MetricRow]) -> dict[tuple[str, str], float]:
    totals: dict[tuple[str, str], float] = {}
    for row in rows:
        key = (row.entity or "", row.sub_entity or "")
        totals[key] = totals.get(key, 0.0) + to_number(row.value)
    return totals


def build_entity_summaries(
    current_rows: Iterable[MetricRow],
    prev_month_rows: Iterable[MetricRow],
    prev_year_rows: Iterable[MetricRow],
    entities: Iterable[tuple[str, str]] | None = None,
) -> list[EntitySummary]:
    """Per-centre current/prev-month/prev-year totals with trends.

    Parameters
    ----------
    current_rows, prev_month_rows, prev_year_rows : MetricRows scoped to
        (entity, sub_entity); values are summed per key.
    entities : Optional full list of (division, centre) pairs. When given,
        only these centres are reported and a centre with no rows in any
        period still appears with zero totals.

    Returns
    -------
    EntitySummary list sorted by division, then centre, case-insensitively.
    """
    current = _totals_by_entity(current_rows)
    prev_month = _totals_by_entity(prev_month_rows)
    prev_year = _totals_by_entity(prev_year_rows)

    if entities is None:
        keys = set(current) | set(prev_month) | set(prev_year)
    else:
        keys = set(entities)

    summaries = [
        summarise_entity(
            entity,
            sub_entity,
            current.get((entity, sub_entity), 0.0),
            prev_month.get((entity, sub_entity), 0.0),
            prev_year.get((entity, sub_entity), 0.0),
        )
        for entity, sub_entity in keys
    ]
    summaries.sort(key=lambda s: (s.entity.casefold(), s.sub_entity.casefold(), s.entity, s.sub_entity))

    logger.info("Built %d entity summaries", len(summaries))
    return summaries


def mean_trend(values: Iterable[float | None]) -> float:
    """Unweighted mean of per-centre trends (None counts as 0), rounded to 2dp.

    This is not the % change of the summed totals; the network card has
    always shown the simple average across centres.
    """
    values = [v if v is not None else 0.0 for v in values]
    if not values:
        return 0.0
    return round_half_up(sum(values) / len(values), 2)


def get_network_summary(summaries: list[EntitySummary]) -> dict:
    """Return a dict suitable for the top-level footfall card.

    {
        "total": 12345,
        "trend_month": 4.21, "trend_year": -1.05,
        "trend_month_str": "▲ 4.21%", "trend_year_str": "▼ 1.05%",
        "centres": 42,
        "category_counts": {"Stars": 10, ...},
    }
    """
    trend_month = mean_trend(s.trend_month_pct for s in summaries)
    trend_year = mean_trend(s.trend_year_pct for s in summaries)

    category_counts: dict[str, int] = {}
    for s in summaries:
        category_counts[s.category] = category_counts.get(s.category, 0) + 1

    return {
        "total": sum(s.current for s in summaries),
        "trend_month": trend_month,
        "trend_year": trend_year,
        "trend_month_str": format_trend(trend_month),
        "trend_year_str": format_trend(trend_year),
        "centres": len(summaries),
        "category_counts": category_counts,
    }


def filter_by_category(summaries: list[EntitySummary], category: str) -> list[EntitySummary]:
    """Centres in one trend category; 'All' returns every centre."""
    if category == CATEGORY_ALL:
        return list(summaries)
    return [s for s in summaries if s.category == category]
