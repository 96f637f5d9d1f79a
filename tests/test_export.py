import io
from datetime import date

import pandas as pd

from karma_dashboard.export import (
    OTC_COLUMNS,
    PATIENT_COLUMNS,
    revenue_workbook_filename,
    write_revenue_workbook,
)
from karma_dashboard.models import PeriodWindow


def test_workbook_has_both_sheets_with_headers_when_empty(tmp_path):
    path = tmp_path / "revenue.xlsx"
    write_revenue_workbook(None, pd.DataFrame(), path)

    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ["otc_history", "patient_history"]
    assert list(sheets["otc_history"].columns) == OTC_COLUMNS
    assert list(sheets["patient_history"].columns) == PATIENT_COLUMNS
    assert sheets["otc_history"].empty


def test_workbook_reorders_columns_and_drops_extras():
    otc = pd.DataFrame([{
        "Name": "Kaski", "PatientId": 1, "OtcId": 7, "DATE": "2026-01-03",
        "Village": "Hemja", "Cost": 150, "MedicineKP": 100, "PaidAmount": 140,
        "Others": 0, "Discount": 10, "NonPayment": 0, "TestKP": 0,
        "internal_note": "not exported",
    }])

    buffer = write_revenue_workbook(otc, None)

    assert isinstance(buffer, io.BytesIO)
    assert buffer.tell() == 0
    sheet = pd.read_excel(buffer, sheet_name="otc_history")
    assert list(sheet.columns) == OTC_COLUMNS
    assert sheet.loc[0, "PaidAmount"] == 140
    assert sheet.loc[0, "Name"] == "Kaski"


def test_workbook_filename():
    window = PeriodWindow(date(2026, 1, 1), date(2026, 1, 31))
    assert revenue_workbook_filename("combined", window) == "revenue_combined_2026-01-01_2026-01-31.xlsx"
