from datetime import date

import pandas as pd
import pytest

from karma_dashboard.config import REVENUE_CATEGORIES
from karma_dashboard.models import MetricRow, PeriodWindow
from karma_dashboard.transforms import (
    build_centre_totals,
    build_daily_comparison,
    build_daily_footfall,
    build_daily_revenue,
    build_daily_visits,
    build_segment_comparison,
    category_totals,
    compare_category_mix,
    fold_daily,
    monthly_totals,
    rows_to_frame,
    trend_category_style,
)


def test_daily_revenue_combines_clinic_and_otc():
    patient_df = pd.DataFrame([{
        "date": "2025-01-02 10:00:00", "cost": 500,
        "consultation": 100, "medicine": 300, "diagnostics": 50, "poc": 50,
    }])
    otc_df = pd.DataFrame([{
        "date": "2025-01-02 15:30:00", "paid_amount": 200,
        "medicine": 120, "diagnostics": 0, "poc": 30,
    }])

    rows = build_daily_revenue(patient_df, otc_df)

    assert len(rows) == 1
    row = rows[0]
    assert row.date == date(2025, 1, 2)
    assert row.value == 700
    assert list(row.breakdown) == REVENUE_CATEGORIES
    assert row.breakdown == {
        "consultation": 100, "medicine": 420, "otc": 50,
        "diagnostics": 50, "poc": 80, "eye": 0,
    }


def test_otc_remainder_never_negative():
    otc_df = pd.DataFrame([{"date": "2025-01-02", "paid_amount": 100, "medicine": 90, "diagnostics": 30, "poc": 0}])
    row = build_daily_revenue(None, otc_df)[0]
    assert row.category("otc") == 0
    assert row.value == 100


def test_daily_revenue_handles_empty_sources():
    assert build_daily_revenue(None, None) == []
    assert build_daily_revenue(pd.DataFrame(), pd.DataFrame()) == []


def test_fold_daily_sorts_and_fills_categories():
    records = [
        (date(2025, 1, 3), 5, {"b": 5}),
        (date(2025, 1, 1), 2, {"a": 2}),
        (date(2025, 1, 1), 3, {"a": 1, "b": 2}),
        (None, 100, {"a": 100}),
    ]
    rows = fold_daily(records)

    assert [r.date for r in rows] == [date(2025, 1, 1), date(2025, 1, 3)]
    assert rows[0].value == 5
    assert rows[0].breakdown == {"a": 3, "b": 2}
    assert rows[1].breakdown == {"a": 0, "b": 5}


def test_daily_footfall_groups_blank_speciality_as_other():
    visits = pd.DataFrame([
        {"date": "2025-01-01", "speciality": "Paediatrics", "visits": 4},
        {"date": "2025-01-01", "speciality": "  ", "visits": 2},
        {"date": "2025-01-01", "speciality": None, "visits": 1},
        {"date": "2025-01-02", "speciality": "Paediatrics", "visits": 3},
    ])
    rows = build_daily_footfall(visits)

    assert rows[0].value == 7
    assert rows[0].breakdown == {"Paediatrics": 4, "other": 3}
    assert rows[1].breakdown == {"Paediatrics": 3, "other": 0}


def test_centre_totals_are_dated_at_window_start():
    window = PeriodWindow(date(2026, 1, 1), date(2026, 1, 31), "thisMonth")
    df = pd.DataFrame([{"division": " Kaski ", "centre": "Hemja", "visits": 12}])
    rows = build_centre_totals(df, window)
    assert rows == [MetricRow(date=date(2026, 1, 1), value=12.0, entity="Kaski", sub_entity="Hemja")]


def test_rows_to_frame():
    rows = [MetricRow(date=date(2025, 1, 1), value=3, breakdown={"a": 1, "b": 2})]
    frame = rows_to_frame(rows)
    assert list(frame.columns) == ["date", "total", "a", "b"]
    assert frame.loc[0, "b"] == 2

    empty = rows_to_frame([], ["a"])
    assert list(empty.columns) == ["date", "total", "a"]
    assert empty.empty


def test_category_totals_percentages():
    rows = [
        MetricRow(date=date(2025, 1, 1), value=3, breakdown={"medicine": 1, "otc": 2, "eye": 0}),
    ]
    slices = category_totals(rows)

    assert [s["key"] for s in slices] == ["medicine", "otc"]
    assert [s["percentage"] for s in slices] == [33.3, 66.7]
    assert slices[0]["name"] == "Medicine"
    assert slices[1]["color"].startswith("#")


def test_category_totals_empty_when_nothing_recorded():
    assert category_totals([]) == []
    assert category_totals([MetricRow(date=date(2025, 1, 1), value=0, breakdown={"a": 0})]) == []


def test_compare_category_mix(make_rows):
    current = make_rows(date(2025, 9, 1), [10], {"medicine": 7.5, "otc": 2.5})
    previous = make_rows(date(2024, 9, 1), [4], {"medicine": 4})
    df = compare_category_mix(
        current, previous,
        PeriodWindow(date(2025, 9, 1), date(2025, 11, 30)),
        PeriodWindow(date(2024, 9, 1), date(2024, 11, 30)),
    )

    assert df["period"].tolist() == ["Sep-Nov 2025", "Sep-Nov 2024"]
    assert df["total"].tolist() == [10, 4]
    assert df["medicine_pct"].tolist() == [75.0, 100.0]
    assert df["otc"].tolist() == [2.5, 0]
    assert df["otc_pct"].tolist() == [25.0, 0.0]


def test_segment_comparison_buckets():
    current = [
        MetricRow(date=date(2025, 9, 1), value=10),
        MetricRow(date=date(2025, 9, 10), value=1),
        MetricRow(date=date(2025, 9, 11), value=5),
    ]
    previous = [MetricRow(date=date(2024, 9, 5), value=7)]

    df = build_segment_comparison(current, previous, date(2025, 9, 1), segments=2, days=10)

    assert df.to_dict("records") == [
        {"period": "1 Sep", "this_year": 11, "last_year": 7},
        {"period": "11 Sep", "this_year": 5, "last_year": 0},
    ]


def test_segment_comparison_defaults_to_ten_buckets():
    df = build_segment_comparison([], [], date(2025, 9, 1))
    assert len(df) == 10
    assert df["period"].iloc[-1] == "30 Nov"


def test_monthly_totals(make_rows):
    rows = make_rows(date(2025, 9, 29), [1, 2, 3, 4])
    df = monthly_totals(rows)
    assert df.to_dict("records") == [
        {"month": "2025-09", "month_label": "Sep 2025", "value": 3.0},
        {"month": "2025-10", "month_label": "Oct 2025", "value": 7.0},
    ]
    assert list(monthly_totals([]).columns) == ["month", "month_label", "value"]


def test_daily_comparison_takes_date_union():
    current = [MetricRow(date=date(2026, 1, 1), value=5)]
    previous = [MetricRow(date=date(2025, 12, 1), value=3)]
    df = build_daily_comparison(current, previous)

    assert df["date"].tolist() == [date(2025, 12, 1), date(2026, 1, 1)]
    assert df["current"].tolist() == [0.0, 5.0]
    assert df["previous"].tolist() == [3.0, 0.0]


@pytest.mark.parametrize("empty", [[], None])
def test_footfall_without_visits(empty):
    frame = pd.DataFrame(empty) if empty is not None else None
    assert build_daily_footfall(frame) == []


def test_daily_visits_fold_repeated_dates():
    df = pd.DataFrame({"date": ["2026-01-05", "2026-01-04", "2026-01-05 00:00:00"], "visits": [2, 1, 3]})
    rows = build_daily_visits(df)
    assert rows == [
        MetricRow(date=date(2026, 1, 4), value=1.0),
        MetricRow(date=date(2026, 1, 5), value=5.0),
    ]
    assert build_daily_visits(None) == []


def test_trend_category_style_on_centre_table():
    assert trend_category_style("Stars") == "background-color: #2ecc7122; color: #2ecc71"
    assert trend_category_style("unknown") == "background-color: #95a5a622; color: #95a5a6"

    table = pd.DataFrame({"Centre": ["Hemja", "Waling"], "Category": ["Stars", "Concerning"]})
    html = table.style.map(trend_category_style, subset=["Category"]).to_html()
    assert "color: #2ecc71" in html
    assert "color: #e74c3c" in html
