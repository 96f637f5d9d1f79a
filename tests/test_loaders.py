from datetime import date

import pandas as pd

from karma_dashboard.dashboard import get_centre_footfall_summary
from karma_dashboard.export import OTC_COLUMNS, PATIENT_COLUMNS
from karma_dashboard.loaders import (
    fetch_centre_daily_footfall,
    fetch_centre_footfall,
    fetch_daily_footfall,
    fetch_daily_revenue,
    load_active_centres,
    load_centres,
    load_divisions,
    load_revenue_detail,
    read_query,
)
from karma_dashboard.loaders.footfall import _speciality_query
from karma_dashboard.loaders.revenue import _otc_query, _patient_query
from karma_dashboard.loaders.utils import filter_clause, normalise_columns, to_snake_case
from karma_dashboard.models import MetricFilters, MetricRow
from karma_dashboard.periods import resolve_month


def test_to_snake_case():
    assert to_snake_case("PaidAmount") == "paid_amount"
    assert to_snake_case("Created Date") == "created_date"
    assert to_snake_case("DATE") == "date"
    assert to_snake_case("speciality_e") == "speciality_e"


def test_normalise_columns_maps_aliases():
    df = pd.DataFrame(columns=["DATE", "Village", "PaidAmount", "Specialty", "cnt"])
    assert list(normalise_columns(df).columns) == ["date", "centre", "paid_amount", "speciality", "visits"]


def test_normalise_columns_first_duplicate_wins():
    df = pd.DataFrame([[1, 2]], columns=["Village", "center"])
    out = normalise_columns(df)
    assert list(out.columns) == ["centre"]
    assert out.iloc[0, 0] == 1


def test_filter_clause():
    assert filter_clause(None) == ("", {})
    assert filter_clause(MetricFilters(division="  ")) == ("", {})

    clause, params = filter_clause(MetricFilters(division=" Kaski ", centre_id=20))
    assert clause == " AND division.Name = :division AND chw.ID = :centre_id"
    assert params == {"division": "Kaski", "centre_id": 20}


def test_patient_query_excludes_division_five_unless_division_chosen():
    window = resolve_month("2026-01")

    sql, params = _patient_query("SELECT 1 FROM patient_history WHERE 1=1", window, MetricFilters())
    assert "division.Id != 5" in sql
    assert params["from_date"] == "2026-01-01 00:00:00"

    sql, params = _patient_query("SELECT 1 FROM patient_history WHERE 1=1", window, MetricFilters(division="Kaski"))
    assert "division.Id != 5" not in sql
    assert params["division"] == "Kaski"


def test_otc_query_keeps_every_division():
    sql, _ = _otc_query("SELECT 1 FROM otc_history WHERE 1=1", resolve_month("2026-01"), MetricFilters())
    assert "division.Id" not in sql
    assert sql.endswith("ORDER BY otc_history.CreatedDate ASC")


def test_speciality_query_binds_otc_threshold():
    sql, params = _speciality_query(
        "WHERE x {otc_filters} AND y {clinic_filters}",
        resolve_month("2026-01"),
        MetricFilters(centre_id=3),
    )
    assert sql == "WHERE x  AND c.ID = :centre_id AND y  AND c.ID = :centre_id"
    assert params["otc_min_amount"] == 60
    assert params["centre_id"] == 3


def test_read_query_normalises_columns(sqlite_engine):
    df = read_query("SELECT ID, Village FROM chw ORDER BY ID", engine=sqlite_engine)
    assert list(df.columns) == ["id", "centre"]

    raw = read_query("SELECT ID, Village FROM chw", engine=sqlite_engine, normalise=False)
    assert list(raw.columns) == ["ID", "Village"]


def test_load_divisions_and_centres(sqlite_engine):
    assert load_divisions(sqlite_engine)["name"].tolist() == ["Baglung", "Closed", "Kaski", "Pharmacy"]

    centres = load_centres("Kaski", engine=sqlite_engine)
    assert centres.to_dict("records") == [{"id": 20, "centre": "Hemja"}]
    assert len(load_centres(engine=sqlite_engine)) == 5


def test_load_active_centres(sqlite_engine):
    assert sorted(load_active_centres(sqlite_engine)) == [("Baglung", "Amalachaur"), ("Kaski", "Hemja")]


def test_fetch_centre_footfall(sqlite_engine):
    window = resolve_month("2026-01")
    rows = fetch_centre_footfall(window, engine=sqlite_engine)

    assert rows == [
        MetricRow(date=date(2026, 1, 1), value=3.0, entity="Baglung", sub_entity="Amalachaur"),
        MetricRow(date=date(2026, 1, 1), value=2.0, entity="Kaski", sub_entity="Hemja"),
    ]

    filtered = fetch_centre_footfall(window, MetricFilters(division="Kaski"), engine=sqlite_engine)
    assert [r.sub_entity for r in filtered] == ["Hemja"]


def test_fetch_daily_revenue(sqlite_engine):
    rows = fetch_daily_revenue(resolve_month("2026-01"), engine=sqlite_engine)
    by_date = {r.date: r for r in rows}

    # Pharmacy clinic visits are left out; its OTC sale is not
    assert [(r.date.day, r.value) for r in rows] == [(3, 500.0), (4, 800.0), (5, 800.0), (6, 80.0), (31, 60.0)]

    jan3 = by_date[date(2026, 1, 3)]
    assert jan3.category("consultation") == 150.0
    assert jan3.category("medicine") == 150.0
    assert jan3.category("diagnostics") == 100.0
    assert jan3.category("poc") == 100.0
    assert jan3.category("eye") == 0.0

    jan4 = by_date[date(2026, 1, 4)]
    assert jan4.category("medicine") == 300.0
    assert jan4.category("diagnostics") == 100.0
    assert jan4.category("poc") == 50.0
    assert jan4.category("otc") == 50.0

    # no prescriptions: the whole paid amount (falling back to cost) is OTC
    assert by_date[date(2026, 1, 6)].category("otc") == 80.0
    assert by_date[date(2026, 1, 31)].category("otc") == 60.0


def test_fetch_daily_revenue_by_source_and_division(sqlite_engine):
    window = resolve_month("2026-01")

    otc = fetch_daily_revenue(window, MetricFilters(source_type="otc"), engine=sqlite_engine)
    assert [(r.date.day, r.value) for r in otc] == [(4, 500.0), (6, 80.0), (31, 60.0)]
    assert sum(r.category("consultation") for r in otc) == 0

    pharmacy = fetch_daily_revenue(window, MetricFilters(division="Pharmacy"), engine=sqlite_engine)
    assert [(r.date.day, r.value) for r in pharmacy] == [(5, 250.0), (6, 80.0)]


def test_fetch_daily_footfall(sqlite_engine):
    rows = fetch_daily_footfall(resolve_month("2026-01"), engine=sqlite_engine)
    by_date = {r.date: r for r in rows}

    # status 'X' visit and the 60.00 OTC sale are not footfall
    assert [(r.date.day, r.value) for r in rows] == [(3, 1.0), (4, 2.0), (5, 4.0), (6, 1.0)]
    assert by_date[date(2026, 1, 3)].breakdown == {"Gynae": 0.0, "Paeds": 1.0, "other": 0.0}
    # the OTC sale takes the gynaecologist from that morning, not the earlier paediatrician
    assert by_date[date(2026, 1, 4)].breakdown == {"Gynae": 2.0, "Paeds": 0.0, "other": 0.0}
    # blank and missing doctor specialities fall under 'other'
    assert by_date[date(2026, 1, 5)].breakdown == {"Gynae": 0.0, "Paeds": 2.0, "other": 2.0}
    assert by_date[date(2026, 1, 6)].category("Paeds") == 1.0


def test_fetch_daily_footfall_filtered(sqlite_engine):
    rows = fetch_daily_footfall(resolve_month("2026-01"), MetricFilters(division="Kaski"), engine=sqlite_engine)
    assert rows == [MetricRow(date=date(2026, 1, 5), value=1.0, breakdown={"other": 1.0})]


def test_fetch_centre_daily_footfall_matches_centre_totals(sqlite_engine):
    window = resolve_month("2026-01")

    daily = fetch_centre_daily_footfall(window, engine=sqlite_engine)
    assert [(r.date.day, r.value) for r in daily] == [(3, 1.0), (4, 2.0), (5, 1.0), (31, 1.0)]
    assert sum(r.value for r in daily) == sum(r.value for r in fetch_centre_footfall(window, engine=sqlite_engine))


def test_centre_summary_daily_trend_sums_to_total(sqlite_engine):
    result = get_centre_footfall_summary(
        "2026-01",
        fetch=lambda w, f: fetch_centre_footfall(w, f, engine=sqlite_engine),
        daily_fetch=lambda w, f: fetch_centre_daily_footfall(w, f, engine=sqlite_engine),
        entities=load_active_centres(sqlite_engine),
    )
    assert result["summary"]["total"] == 5
    assert result["daily_trend"]["current"].sum() == result["summary"]["total"]


def test_load_revenue_detail(sqlite_engine):
    otc_df, patient_df = load_revenue_detail(resolve_month("2026-01"), engine=sqlite_engine)

    assert list(otc_df.columns) == OTC_COLUMNS
    assert list(patient_df.columns) == PATIENT_COLUMNS
    assert otc_df["OtcId"].tolist() == [1, 3, 2]
    assert sorted(patient_df["HistoryId"]) == [1, 2, 3, 4, 5, 6]

    sale = otc_df.iloc[0]
    assert sale["DATE"] == "2026-01-04"
    assert sale["Village"] == "Amalachaur"
    assert sale["MedicineKP"] == 300
    assert sale["TestKP"] == 100
    assert sale["Others"] == 50
    assert sale["Name"] == "Baglung"

    visit = patient_df.iloc[0]
    assert visit["Medicine"] == 150
    assert visit["Doctor"] == 150
    assert visit["Others"] == 200
    assert visit["reconcilemedicine"] == 140


def test_load_revenue_detail_single_source(sqlite_engine):
    otc_df, patient_df = load_revenue_detail(
        resolve_month("2026-01"), MetricFilters(source_type="patient"), engine=sqlite_engine,
    )
    assert otc_df.empty
    assert len(patient_df) == 6
