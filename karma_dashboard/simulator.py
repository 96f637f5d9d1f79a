"""
Simulated data source for the Karma dashboard.

Generates plausible clinic visits and OTC sales for a small network of
centres so the dashboard and CLI run without a database. All values are
synthetic. A given date always produces the same records, so overlapping
windows fetched concurrently agree with each other.
"""

import logging
from datetime import date, timedelta

import numpy as np
import pandas as pd

from .config import EXCLUDED_WEEKDAY, OTC_FOOTFALL_MIN_AMOUNT
from .models import MetricFilters, MetricRow, PeriodWindow
from .transforms import build_centre_totals, build_daily_footfall, build_daily_revenue, build_daily_visits

logger = logging.getLogger(__name__)

_SEED = 42

# ---------------------------------------------------------------------------
# Network (division, centre, relative size)
# ---------------------------------------------------------------------------
_CENTRES = [
    ("Baglung", "Amalachaur", 1.4),
    ("Baglung", "Kusmisera", 1.0),
    ("Baglung", "Harichaur", 0.6),
    ("Kaski", "Lekhnath", 1.6),
    ("Kaski", "Hemja", 0.9),
    ("Kaski", "Sarangkot", 0.5),
    ("Syangja", "Waling", 1.2),
    ("Syangja", "Putalibazar", 0.8),
    ("Syangja", "Galyang", 0.3),
]

_SPECIALITIES = [
    ("General Physician", 0.55),
    ("Paediatrics", 0.15),
    ("Gynaecology", 0.12),
    ("Dermatology", 0.08),
    ("other", 0.10),
]

_SPECIALITY_NAMES = [s for s, _ in _SPECIALITIES]
_SPECIALITY_WEIGHTS = [w for _, w in _SPECIALITIES]

# Mean visits per centre per day before size and seasonal factors
_CLINIC_VISITS = 9.0
_OTC_SALES = 6.0

# Year-on-year growth applied to volumes
_ANNUAL_GROWTH = 0.08

_VISIT_COLUMNS = [
    "date", "division", "centre", "source", "speciality",
    "cost", "paid_amount", "consultation", "medicine", "diagnostics", "poc",
]


def _rng_for(day: date, salt: int = 0) -> np.random.Generator:
    return np.random.default_rng(_SEED + day.toordinal() * 31 + salt)


def _daily_factor(day: date) -> float:
    if day.weekday() == EXCLUDED_WEEKDAY:
        return 0.25
    seasonal = 1.0 + 0.15 * np.sin(2 * np.pi * (day.timetuple().tm_yday - 200) / 365)
    growth = (1.0 + _ANNUAL_GROWTH) ** ((day.year - 2024) + day.timetuple().tm_yday / 365)
    return float(seasonal * growth)


def _days(window: PeriodWindow):
    day = window.start
    while day <= window.end:
        yield day
        day += timedelta(days=1)


class SimulatedSource:
    """Stand-in for the database loaders.

    The fetch_* methods share the loader signatures
    fetch(window, filters) -> list[MetricRow], so they can be passed to
    the dashboard report functions directly.

    Parameters
    ----------
    today : Last day with data; later dates return nothing, like a live
            database part-way through a month.
    """

    def __init__(self, today: date | None = None):
        self.today = today or date.today()

    # ------------------------------------------------------------------
    # Organisation
    # ------------------------------------------------------------------
    def divisions(self) -> list[str]:
        return sorted({division for division, _, _ in _CENTRES})

    def centres(self, division: str | None = None) -> list[str]:
        return [c for d, c, _ in _CENTRES if not division or d == division]

    def active_centres(self) -> list[tuple[str, str]]:
        return [(d, c) for d, c, _ in _CENTRES]

    def _centres_for(self, filters: MetricFilters) -> list[tuple[str, str, float]]:
        centres = [row for row in _CENTRES if not filters.division or row[0] == filters.division]
        if filters.centre_id is not None:
            index = int(filters.centre_id) - 1
            centres = [_CENTRES[index]] if 0 <= index < len(_CENTRES) else []
        return centres

    # ------------------------------------------------------------------
    # Record generation
    # ------------------------------------------------------------------
    def _visits(self, window: PeriodWindow, filters: MetricFilters) -> pd.DataFrame:
        """One row per clinic visit or OTC sale, with revenue components."""
        centres = self._centres_for(filters)
        frames = []

        for day in _days(window):
            if day > self.today:
                break
            factor = _daily_factor(day)
            for i, (division, centre, size) in enumerate(_CENTRES):
                if (division, centre, size) not in centres:
                    continue
                rng = _rng_for(day, i)
                n_clinic = int(rng.poisson(_CLINIC_VISITS * size * factor))
                n_otc = int(rng.poisson(_OTC_SALES * size * factor))

                consultation = rng.choice([100.0, 150.0, 200.0], size=n_clinic)
                medicine = np.round(rng.gamma(2.0, 120.0, size=n_clinic), 2)
                diagnostics = rng.choice([0.0, 0.0, 0.0, 250.0, 400.0], size=n_clinic)
                poc = rng.choice([0.0, 0.0, 0.0, 0.0, 80.0, 150.0], size=n_clinic)
                frames.append(pd.DataFrame({
                    "source": "patient",
                    "speciality": rng.choice(_SPECIALITY_NAMES, size=n_clinic, p=_SPECIALITY_WEIGHTS),
                    "cost": consultation + medicine + diagnostics + poc,
                    "consultation": consultation,
                    "medicine": medicine,
                    "diagnostics": diagnostics,
                    "poc": poc,
                }).assign(date=day, division=division, centre=centre))

                medicine = np.round(rng.gamma(1.5, 60.0, size=n_otc), 2)
                diagnostics = rng.choice([0.0, 0.0, 0.0, 0.0, 200.0], size=n_otc)
                poc = rng.choice([0.0, 0.0, 0.0, 0.0, 0.0, 60.0], size=n_otc)
                extra = np.round(rng.uniform(0, 40, size=n_otc), 2)
                frames.append(pd.DataFrame({
                    "source": "otc",
                    "speciality": rng.choice(_SPECIALITY_NAMES, size=n_otc, p=_SPECIALITY_WEIGHTS),
                    "paid_amount": medicine + diagnostics + poc + extra,
                    "medicine": medicine,
                    "diagnostics": diagnostics,
                    "poc": poc,
                }).assign(date=day, division=division, centre=centre))

        frames = [f for f in frames if not f.empty]
        if not frames:
            return pd.DataFrame(columns=_VISIT_COLUMNS)
        return pd.concat(frames, ignore_index=True).reindex(columns=_VISIT_COLUMNS)

    # ------------------------------------------------------------------
    # Fetchers
    # ------------------------------------------------------------------
    def fetch_daily_revenue(self, window: PeriodWindow, filters: MetricFilters | None = None) -> list[MetricRow]:
        filters = filters or MetricFilters()
        df = self._visits(window, filters)
        if df.empty:
            return []
        patient_df = df[df["source"] == "patient"] if filters.source_type in ("patient", "combined") else None
        otc_df = df[df["source"] == "otc"] if filters.source_type in ("otc", "combined") else None
        return build_daily_revenue(patient_df, otc_df)

    def fetch_daily_footfall(self, window: PeriodWindow, filters: MetricFilters | None = None) -> list[MetricRow]:
        filters = filters or MetricFilters()
        df = self._visits(window, filters)
        if df.empty:
            return []
        paid = df["paid_amount"].fillna(0)
        counted = df[(df["source"] == "patient") | (paid > OTC_FOOTFALL_MIN_AMOUNT)]
        grouped = counted.groupby(["date", "speciality"]).size().reset_index(name="visits")
        return build_daily_footfall(grouped)

    def fetch_centre_footfall(self, window: PeriodWindow, filters: MetricFilters | None = None) -> list[MetricRow]:
        filters = filters or MetricFilters()
        df = self._visits(window, filters)
        if df.empty:
            return []
        grouped = df.groupby(["division", "centre"]).size().reset_index(name="visits")
        return build_centre_totals(grouped, window)

    def fetch_centre_daily_footfall(self, window: PeriodWindow, filters: MetricFilters | None = None) -> list[MetricRow]:
        """Daily visits counted like fetch_centre_footfall (every OTC sale)."""
        filters = filters or MetricFilters()
        df = self._visits(window, filters)
        if df.empty:
            return []
        grouped = df.groupby("date").size().reset_index(name="visits")
        return build_daily_visits(grouped)

    def load_revenue_detail(
        self, window: PeriodWindow, filters: MetricFilters | None = None,
    ) -> tuple[pd.DataFrame, pd.DataFrame]:
        """(otc_df, patient_df) with the finance export column names."""
        filters = filters or MetricFilters()
        df = self._visits(window, filters)
        if df.empty:
            return pd.DataFrame(), pd.DataFrame()

        otc = df[df["source"] == "otc"].reset_index(drop=True)
        patient = df[df["source"] == "patient"].reset_index(drop=True)

        otc_df = pd.DataFrame({
            "PatientId": 10_000 + otc.index,
            "OtcId": 50_000 + otc.index,
            "DATE": otc["date"].map(lambda d: d.isoformat()),
            "Village": otc["centre"],
            "Cost": otc["paid_amount"],
            "MedicineKP": otc["medicine"],
            "PaidAmount": otc["paid_amount"],
            "Others": otc["poc"],
            "Discount": 0.0,
            "NonPayment": 0.0,
            "TestKP": otc["diagnostics"],
            "Name": otc["division"],
        })
        patient_df = pd.DataFrame({
            "PatientId": 20_000 + patient.index,
            "HistoryId": 80_000 + patient.index,
            "DATE": patient["date"].map(lambda d: d.isoformat()),
            "Village": patient["centre"],
            "COST": patient["cost"],
            "Medicine": patient["medicine"],
            "ManualFees": 0.0,
            "Adjustment": 0.0,
            "Doctor": patient["consultation"],
            "Others": patient["diagnostics"] + patient["poc"],
            "reconcilemedicine": patient["medicine"].round(),
            "Name": patient["division"],
        })

        if filters.source_type == "otc":
            patient_df = pd.DataFrame()
        elif filters.source_type == "patient":
            otc_df = pd.DataFrame()

        logger.info(
            "Simulated revenue detail for %s: %d OTC rows, %d patient rows",
            window.label, len(otc_df), len(patient_df),
        )
        return otc_df, patient_df
