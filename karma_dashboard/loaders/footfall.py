"""
Footfall loaders: visit counts by day and doctor speciality, and per-centre
visit totals (in total and by day) for the centre comparison report.

A clinic visit is a patient_history row with status 'A'. An OTC sale counts
as a visit only above OTC_FOOTFALL_MIN_AMOUNT; it takes the speciality of
the doctor on the patient's most recent clinic visit at or before the sale.
"""

import logging

import pandas as pd
from sqlalchemy.engine import Engine

from ..config import OTC_FOOTFALL_MIN_AMOUNT
from ..models import MetricFilters, MetricRow, PeriodWindow
from ..transforms import build_centre_totals, build_daily_footfall, build_daily_visits
from .db import read_query
from .utils import filter_clause

logger = logging.getLogger(__name__)


_OTC_DOCTOR_JOIN = """
    LEFT JOIN patient_history ph ON ph.PatientId = oh.PatientId AND ph.CreatedDate = (
        SELECT MAX(ph2.CreatedDate) FROM patient_history ph2
        WHERE ph2.PatientId = oh.PatientId AND ph2.CreatedDate <= oh.CreatedDate
    )
    LEFT JOIN karma_doctor kd ON kd.DoctorId = ph.doctorId
"""

_SPECIALITY = "COALESCE(NULLIF(TRIM(kd.Speciality), ''), 'other')"

_DAILY_BY_SPECIALITY_SQL = f"""
    SELECT date, speciality, SUM(cnt) AS visits FROM (
        SELECT SUBSTR(oh.CreatedDate, 1, 10) AS date,
               {_SPECIALITY} AS speciality,
               COUNT(*) AS cnt
        FROM otc_history oh
        LEFT JOIN patient p ON p.PatientId = oh.PatientId
        LEFT JOIN chw c ON c.ID = p.Centre
        LEFT JOIN division d ON d.Id = c.DivisionId
        {_OTC_DOCTOR_JOIN}
        WHERE oh.CreatedDate BETWEEN :from_date AND :to_date
          AND COALESCE(oh.PaidAmount, oh.Cost, 0) > :otc_min_amount
          {{otc_filters}}
        GROUP BY SUBSTR(oh.CreatedDate, 1, 10), speciality

        UNION ALL

        SELECT SUBSTR(ph.CreatedDate, 1, 10) AS date,
               {_SPECIALITY} AS speciality,
               COUNT(*) AS cnt
        FROM patient_history ph
        LEFT JOIN patient p ON p.PatientId = ph.PatientId
        LEFT JOIN chw c ON c.ID = p.Centre
        LEFT JOIN division d ON d.Id = c.DivisionId
        LEFT JOIN karma_doctor kd ON kd.DoctorId = ph.doctorId
        WHERE ph.CreatedDate BETWEEN :from_date AND :to_date
          AND ph.Status = 'A'
          {{clinic_filters}}
        GROUP BY SUBSTR(ph.CreatedDate, 1, 10), speciality
    ) visits
    GROUP BY date, speciality
    ORDER BY date, speciality
"""

_CENTRE_VISITS_SQL = """
    SELECT Division AS division, Centre AS centre, SUM(Total) AS visits FROM (
        SELECT division.Name AS Division, chw.Village AS Centre, COUNT(*) AS Total
        FROM patient_history
        LEFT JOIN patient ON patient_history.PatientId = patient.PatientId
        JOIN chw ON chw.ID = patient.Centre
        JOIN division ON chw.DivisionId = division.Id
        WHERE patient_history.CreatedDate BETWEEN :from_date AND :to_date
          AND division.IsKarmaDivision = 1
          AND chw.isEmail = 1
          AND division.isActive = 1
          AND patient_history.Status = 'A'
          {filters}
        GROUP BY division.Name, chw.Village

        UNION ALL

        SELECT division.Name AS Division, chw.Village AS Centre, COUNT(*) AS Total
        FROM otc_history
        LEFT JOIN patient ON otc_history.PatientId = patient.PatientId
        JOIN chw ON chw.ID = patient.Centre
        JOIN division ON chw.DivisionId = division.Id
        WHERE otc_history.CreatedDate BETWEEN :from_date AND :to_date
          AND division.IsKarmaDivision = 1
          AND chw.isEmail = 1
          AND division.isActive = 1
          {filters}
        GROUP BY division.Name, chw.Village
    ) combined
    GROUP BY Division, Centre
    ORDER BY Division, Centre
"""

_CENTRE_DAILY_VISITS_SQL = """
    SELECT date, SUM(Total) AS visits FROM (
        SELECT SUBSTR(patient_history.CreatedDate, 1, 10) AS date, COUNT(*) AS Total
        FROM patient_history
        LEFT JOIN patient ON patient_history.PatientId = patient.PatientId
        JOIN chw ON chw.ID = patient.Centre
        JOIN division ON chw.DivisionId = division.Id
        WHERE patient_history.CreatedDate BETWEEN :from_date AND :to_date
          AND division.IsKarmaDivision = 1
          AND chw.isEmail = 1
          AND division.isActive = 1
          AND patient_history.Status = 'A'
          {filters}
        GROUP BY SUBSTR(patient_history.CreatedDate, 1, 10)

        UNION ALL

        SELECT SUBSTR(otc_history.CreatedDate, 1, 10) AS date, COUNT(*) AS Total
        FROM otc_history
        LEFT JOIN patient ON otc_history.PatientId = patient.PatientId
        JOIN chw ON chw.ID = patient.Centre
        JOIN division ON chw.DivisionId = division.Id
        WHERE otc_history.CreatedDate BETWEEN :from_date AND :to_date
          AND division.IsKarmaDivision = 1
          AND chw.isEmail = 1
          AND division.isActive = 1
          {filters}
        GROUP BY SUBSTR(otc_history.CreatedDate, 1, 10)
    ) combined
    GROUP BY date
    ORDER BY date
"""

_FOOTFALL_DETAIL_SQL = f"""
    SELECT * FROM (
        SELECT SUBSTR(oh.CreatedDate, 1, 10) AS date,
               d.Name AS division, c.Village AS centre, p.PatientId AS patient_id, p.Sex AS gender,
               COALESCE(NULLIF(TRIM(kd.Name), ''), 'Unknown') AS doctor_name,
               {_SPECIALITY} AS speciality,
               COALESCE(oh.PaidAmount, 0) AS revenue,
               'OTC' AS source
        FROM otc_history oh
        LEFT JOIN patient p ON p.PatientId = oh.PatientId
        LEFT JOIN chw c ON c.ID = p.Centre
        LEFT JOIN division d ON d.Id = c.DivisionId
        {_OTC_DOCTOR_JOIN}
        WHERE oh.CreatedDate BETWEEN :from_date AND :to_date
          AND COALESCE(oh.PaidAmount, oh.Cost, 0) > :otc_min_amount
          {{otc_filters}}

        UNION ALL

        SELECT SUBSTR(ph.CreatedDate, 1, 10) AS date,
               d.Name AS division, c.Village AS centre, p.PatientId AS patient_id, p.Sex AS gender,
               COALESCE(NULLIF(TRIM(kd.Name), ''), 'Unknown') AS doctor_name,
               {_SPECIALITY} AS speciality,
               COALESCE(ph.COST, 0) AS revenue,
               'Clinic' AS source
        FROM patient_history ph
        LEFT JOIN patient p ON p.PatientId = ph.PatientId
        LEFT JOIN chw c ON c.ID = p.Centre
        LEFT JOIN division d ON d.Id = c.DivisionId
        LEFT JOIN karma_doctor kd ON kd.DoctorId = ph.doctorId
        WHERE ph.CreatedDate BETWEEN :from_date AND :to_date
          AND ph.Status = 'A'
          {{clinic_filters}}
    ) visits
    ORDER BY date
"""


def _speciality_query(template: str, window: PeriodWindow, filters: MetricFilters) -> tuple[str, dict]:
    clause, params = filter_clause(filters, division_col="d.Name", centre_col="c.ID")
    sql = template.format(otc_filters=clause, clinic_filters=clause)
    return sql, {**window.as_params(), "otc_min_amount": OTC_FOOTFALL_MIN_AMOUNT, **params}


def fetch_daily_footfall(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> list[MetricRow]:
    """Daily footfall MetricRows with a per-speciality breakdown."""
    filters = filters or MetricFilters()
    sql, params = _speciality_query(_DAILY_BY_SPECIALITY_SQL, window, filters)
    df = read_query(sql, params, engine)
    logger.info("Loaded %d date/speciality footfall rows for %s", len(df), window.label)
    return build_daily_footfall(df)


def load_footfall_detail(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> pd.DataFrame:
    """One row per visit for the detail table."""
    filters = filters or MetricFilters()
    sql, params = _speciality_query(_FOOTFALL_DETAIL_SQL, window, filters)
    df = read_query(sql, params, engine)
    logger.info("Loaded %d footfall detail rows for %s", len(df), window.label)
    return df


def fetch_centre_footfall(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> list[MetricRow]:
    """Visit totals per (division, centre) for the window."""
    filters = filters or MetricFilters()
    clause, params = filter_clause(filters)
    sql = _CENTRE_VISITS_SQL.format(filters=clause)
    df = read_query(sql, {**window.as_params(), **params}, engine)
    return build_centre_totals(df, window)


def fetch_centre_daily_footfall(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> list[MetricRow]:
    """Daily visit totals counted the same way as fetch_centre_footfall.

    Every OTC sale and every status 'A' clinic visit at an active Karma
    centre, so the days of a month sum to the centre totals.
    """
    filters = filters or MetricFilters()
    clause, params = filter_clause(filters)
    sql = _CENTRE_DAILY_VISITS_SQL.format(filters=clause)
    df = read_query(sql, {**window.as_params(), **params}, engine)
    logger.info("Loaded %d daily centre visit rows for %s", len(df), window.label)
    return build_daily_visits(df)
