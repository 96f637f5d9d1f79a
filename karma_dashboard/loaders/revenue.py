"""
Revenue loaders for clinic visits (patient_history) and OTC sales
(otc_history).

Daily queries return one row per visit/sale with the category columns the
revenue transform expects; detail queries return the full audit columns
used by the spreadsheet export.
"""

import logging

import pandas as pd
from sqlalchemy.engine import Engine

from ..config import EXCLUDED_DIVISION_ID
from ..models import MetricFilters, MetricRow, PeriodWindow
from ..transforms import build_daily_revenue
from .db import read_query
from .utils import filter_clause

logger = logging.getLogger(__name__)

SOURCE_TYPES = ("patient", "otc", "combined")


_PATIENT_DAILY_SQL = """
    SELECT
        SUBSTR(patient_history.CreatedDate, 1, 10) AS date,
        COALESCE(patient_history.COST, 0) AS cost,
        COALESCE(DoctorKP, 0) AS consultation,
        COALESCE(MedicineKP + CorporateKP + MarginKP + MedicineFacilitationKP, 0) AS medicine,
        COALESCE(TestKP, 0) AS diagnostics,
        COALESCE(InjectionKP + DripKP + NebulizeKP + DressingKP + FacilityKP, 0) AS poc
    FROM patient_history
    LEFT JOIN prescription_pricing ON prescription_pricing.HistoryId = patient_history.HistoryId
    LEFT JOIN patient ON patient.PatientId = patient_history.PatientId
    LEFT JOIN chw ON chw.ID = patient.Centre
    JOIN division ON division.Id = chw.DivisionId
    WHERE patient_history.CreatedDate BETWEEN :from_date AND :to_date
"""

_OTC_DAILY_SQL = """
    SELECT
        SUBSTR(otc_history.CreatedDate, 1, 10) AS date,
        COALESCE(otc_history.PaidAmount, otc_history.Cost, 0) AS paid_amount,
        COALESCE(a.MedicineKP, 0) AS medicine,
        COALESCE(d.TestKP, 0) AS diagnostics,
        COALESCE(otc_history.Injection, 0) AS poc
    FROM otc_history
    LEFT JOIN (
        SELECT OtcId, SUM(Cost) AS MedicineKP FROM prescription GROUP BY OtcId
    ) a ON a.OtcId = otc_history.OtcId
    LEFT JOIN (
        SELECT OtcId, SUM(Cost) AS TestKP FROM diagnostic GROUP BY OtcId
    ) d ON d.OtcId = otc_history.OtcId
    JOIN patient ON patient.PatientId = otc_history.PatientId
    JOIN chw ON chw.ID = patient.Centre
    JOIN division ON division.Id = chw.DivisionId
    WHERE otc_history.CreatedDate BETWEEN :from_date AND :to_date
"""

_OTC_DETAIL_SQL = """
    SELECT
        patient.PatientId,
        otc_history.OtcId,
        SUBSTR(otc_history.CreatedDate, 1, 10) AS DATE,
        chw.Village,
        otc_history.Cost,
        a.MedicineKP,
        otc_history.PaidAmount,
        Injection AS Others,
        Discount,
        NonPayment,
        d.TestKP,
        division.Name
    FROM otc_history
    LEFT JOIN (
        SELECT OtcId, SUM(Cost) AS MedicineKP FROM prescription GROUP BY OtcId
    ) a ON a.OtcId = otc_history.OtcId
    JOIN patient ON patient.PatientId = otc_history.PatientId
    LEFT JOIN (
        SELECT OtcId, SUM(Cost) AS TestKP FROM diagnostic GROUP BY OtcId
    ) d ON d.OtcId = otc_history.OtcId
    JOIN chw ON chw.ID = patient.Centre
    JOIN division ON division.Id = chw.DivisionId
    WHERE otc_history.CreatedDate BETWEEN :from_date AND :to_date
"""

_PATIENT_DETAIL_SQL = """
    SELECT
        patient_history.PatientId,
        patient_history.HistoryId,
        SUBSTR(patient_history.CreatedDate, 1, 10) AS DATE,
        chw.Village,
        COST,
        (MedicineKP + CorporateKP + MarginKP + MedicineFacilitationKP) AS Medicine,
        ManualFees,
        Adjustment,
        DoctorKP AS Doctor,
        TestKP + InjectionKP + DripKP + NebulizeKP + DressingKP + FacilityKP AS Others,
        reconcilemedicine,
        division.Name
    FROM patient_history
    LEFT JOIN prescription_pricing ON prescription_pricing.HistoryId = patient_history.HistoryId
    LEFT JOIN (
        SELECT
            HistoryId,
            ROUND(SUM(
                CASE
                    WHEN ReconciledQuantity IS NULL THEN Cost
                    ELSE CAST(ReconciledQuantity * Cost AS DECIMAL) / Quantity
                END
            )) AS reconcilemedicine
        FROM prescription
        GROUP BY HistoryId
    ) b ON b.HistoryId = patient_history.HistoryId
    LEFT JOIN patient ON patient.PatientId = patient_history.PatientId
    LEFT JOIN chw ON chw.ID = patient.Centre
    JOIN division ON division.Id = chw.DivisionId
    WHERE patient_history.CreatedDate BETWEEN :from_date AND :to_date
"""


def _check_source_type(source_type: str) -> str:
    if source_type not in SOURCE_TYPES:
        raise ValueError(f"Unknown revenue source {source_type!r}; expected one of {SOURCE_TYPES}")
    return source_type


def _patient_query(base_sql: str, window: PeriodWindow, filters: MetricFilters) -> tuple[str, dict]:
    """Patient queries exclude the non-clinical division unless one is chosen."""
    clause, params = filter_clause(filters)
    if not (filters.division and filters.division.strip()):
        clause = f" AND division.Id != {int(EXCLUDED_DIVISION_ID)}" + clause
    sql = base_sql + clause + " ORDER BY patient_history.CreatedDate ASC"
    return sql, {**window.as_params(), **params}


def _otc_query(base_sql: str, window: PeriodWindow, filters: MetricFilters) -> tuple[str, dict]:
    clause, params = filter_clause(filters)
    sql = base_sql + clause + " ORDER BY otc_history.CreatedDate ASC"
    return sql, {**window.as_params(), **params}


def load_patient_revenue(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> pd.DataFrame:
    """Clinic visits in the window, one row per visit."""
    filters = filters or MetricFilters()
    sql, params = _patient_query(_PATIENT_DAILY_SQL, window, filters)
    df = read_query(sql, params, engine)
    logger.info("Loaded %d patient revenue rows for %s", len(df), window.label)
    return df


def load_otc_revenue(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> pd.DataFrame:
    """OTC sales in the window, one row per sale."""
    filters = filters or MetricFilters()
    sql, params = _otc_query(_OTC_DAILY_SQL, window, filters)
    df = read_query(sql, params, engine)
    logger.info("Loaded %d OTC revenue rows for %s", len(df), window.label)
    return df


def fetch_daily_revenue(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> list[MetricRow]:
    """Daily revenue MetricRows for the window.

    filters.source_type selects clinic visits ('patient'), OTC sales
    ('otc'), or both ('combined').
    """
    filters = filters or MetricFilters()
    source_type = _check_source_type(filters.source_type)

    patient_df = None
    otc_df = None
    if source_type in ("patient", "combined"):
        patient_df = load_patient_revenue(window, filters, engine)
    if source_type in ("otc", "combined"):
        otc_df = load_otc_revenue(window, filters, engine)

    return build_daily_revenue(patient_df, otc_df)


def load_revenue_detail(
    window: PeriodWindow,
    filters: MetricFilters | None = None,
    engine: Engine | None = None,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Full OTC and clinic detail rows for the spreadsheet export.

    Column names are kept as the finance team knows them (PatientId, DATE,
    Village, ...), so the raw query result is returned without
    normalisation.

    Returns
    -------
    (otc_df, patient_df); a frame is empty when its source is not selected.
    """
    filters = filters or MetricFilters()
    source_type = _check_source_type(filters.source_type)

    otc_df = pd.DataFrame()
    patient_df = pd.DataFrame()
    if source_type in ("otc", "combined"):
        sql, params = _otc_query(_OTC_DETAIL_SQL, window, filters)
        otc_df = read_query(sql, params, engine, normalise=False)
    if source_type in ("patient", "combined"):
        sql, params = _patient_query(_PATIENT_DETAIL_SQL, window, filters)
        patient_df = read_query(sql, params, engine, normalise=False)

    logger.info(
        "Loaded revenue detail for %s: %d OTC rows, %d patient rows",
        window.label, len(otc_df), len(patient_df),
    )
    return otc_df, patient_df
