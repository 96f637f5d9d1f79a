"""
Spreadsheet export of revenue detail rows for the finance team.

The workbook has two sheets, otc_history and patient_history, each with a
fixed column order. Headers are always written, even when a sheet has no
rows.
"""

import io
import logging
from pathlib import Path

import pandas as pd

from .models import PeriodWindow

logger = logging.getLogger(__name__)

OTC_SHEET = "otc_history"
PATIENT_SHEET = "patient_history"

OTC_COLUMNS = [
    "PatientId", "OtcId", "DATE", "Village", "Cost", "MedicineKP",
    "PaidAmount", "Others", "Discount", "NonPayment", "TestKP", "Name",
]

PATIENT_COLUMNS = [
    "PatientId", "HistoryId", "DATE", "Village", "COST", "Medicine",
    "ManualFees", "Adjustment", "Doctor", "Others", "reconcilemedicine", "Name",
]


def _conform(df: pd.DataFrame | None, columns: list[str]) -> pd.DataFrame:
    """Reorder to the export columns; missing ones are left blank, extras dropped."""
    if df is None or df.empty:
        return pd.DataFrame(columns=columns)
    return df.reindex(columns=columns)


def write_revenue_workbook(
    otc_df: pd.DataFrame | None,
    patient_df: pd.DataFrame | None,
    target: str | Path | io.BytesIO | None = None,
) -> io.BytesIO | Path:
    """Write the revenue detail workbook.

    Parameters
    ----------
    otc_df : OTC detail rows (see loaders.load_revenue_detail).
    patient_df : Clinic visit detail rows.
    target : File path or binary buffer. When None an in-memory buffer is
             created, which suits st.download_button.

    Returns
    -------
    The buffer (rewound to the start) or the path written.
    """
    otc = _conform(otc_df, OTC_COLUMNS)
    patient = _conform(patient_df, PATIENT_COLUMNS)

    out = io.BytesIO() if target is None else target
    if isinstance(out, str):
        out = Path(out)

    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        otc.to_excel(writer, sheet_name=OTC_SHEET, index=False)
        patient.to_excel(writer, sheet_name=PATIENT_SHEET, index=False)

    logger.info("Wrote revenue workbook: %d OTC rows, %d patient rows", len(otc), len(patient))

    if isinstance(out, io.BytesIO):
        out.seek(0)
    return out


def revenue_workbook_filename(source_type: str, window: PeriodWindow) -> str:
    """revenue_<type>_<from>_<to>.xlsx, e.g. revenue_combined_2026-01-01_2026-01-31.xlsx."""
    return f"revenue_{source_type}_{window.start.isoformat()}_{window.end.isoformat()}.xlsx"
