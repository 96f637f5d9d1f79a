"""
Record types shared by loaders, the analytics core, and the front end.

All records are frozen: they are built once per request and discarded after
the response is rendered.
"""

from dataclasses import asdict, dataclass, field
from datetime import date

import pandas as pd

from .config import NOT_APPLICABLE, TREND_DOWN, TREND_UP


@dataclass(frozen=True)
class PeriodWindow:
    """Inclusive date range with a semantic label."""

    start: date
    end: date
    label: str = "custom"

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} precedes start {self.start}")

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def overlaps(self, other: "PeriodWindow") -> bool:
        return self.start <= other.end and other.start <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def as_params(self) -> dict[str, str]:
        """SQL bind parameters covering whole days of the window."""
        return {
            "from_date": f"{self.start.isoformat()} 00:00:00",
            "to_date": f"{self.end.isoformat()} 23:59:59",
        }


@dataclass(frozen=True)
class MetricFilters:
    """Optional scoping passed through to the data source."""

    division: str | None = None
    centre_id: int | None = None
    source_type: str = "combined"  # patient | otc | combined


@dataclass(frozen=True)
class MetricRow:
    """One aggregated observation for one calendar day.

    entity / sub_entity carry division / centre when the row is scoped.
    """

    date: date
    value: float
    breakdown: dict[str, float] = field(default_factory=dict)
    entity: str | None = None
    sub_entity: str | None = None

    def category(self, key: str) -> float:
        return self.breakdown.get(key, 0.0)


def format_trend(pct: float | None) -> str:
    """'▲ 12.50%' / '▼ 3.00%' / 'N/A'."""
    if pct is None:
        return NOT_APPLICABLE
    arrow = TREND_UP if pct >= 0 else TREND_DOWN
    return f"{arrow} {abs(pct):.2f}%"


@dataclass(frozen=True)
class EntitySummary:
    """Current vs prior-period totals for one centre."""

    entity: str
    sub_entity: str
    current: float
    prev_month: float
    prev_year: float
    trend_month_pct: float | None
    trend_year_pct: float | None
    category: str

    @property
    def trend_month_str(self) -> str:
        return format_trend(self.trend_month_pct)

    @property
    def trend_year_str(self) -> str:
        return format_trend(self.trend_year_pct)

    def to_dict(self) -> dict:
        record = asdict(self)
        record["trend_month_str"] = self.trend_month_str
        record["trend_year_str"] = self.trend_year_str
        return record


@dataclass(frozen=True)
class ProjectionPoint:
    day: int
    actual_cumulative: float | None
    target_line: float
    trend_line: float | None


@dataclass(frozen=True)
class ProjectionResult:
    """Target-vs-actual view for one month."""

    target: float
    month_to_date_total: float
    projected_month_end: float
    required_per_remaining_day: float | None
    is_on_track: bool
    days_in_month: int
    days_remaining: int
    is_ongoing_month: bool
    slope: float | None
    intercept: float | None
    series: list[ProjectionPoint]

    def to_frame(self) -> pd.DataFrame:
        """Per-day series as a DataFrame for Plotly."""
        return pd.DataFrame([asdict(p) for p in self.series])
