from datetime import date, timedelta

import pytest

from karma_dashboard.models import MetricRow


@pytest.fixture()
def make_rows():
    """Build consecutive daily MetricRows starting at `start`."""
    def _make(start: date, values, breakdown=None):
        return [
            MetricRow(
                date=start + timedelta(days=i),
                value=float(v),
                breakdown=dict(breakdown or {}),
            )
            for i, v in enumerate(values)
        ]
    return _make


@pytest.fixture()
def stub_fetch():
    """A fetch(window, filters) stand-in that serves rows by window label.

    The returned function records every window it was asked for in
    `.calls`.
    """
    def _build(rows_by_label: dict):
        calls = []

        def fetch(window, filters):
            calls.append(window)
            return list(rows_by_label.get(window.label, []))

        fetch.calls = calls
        return fetch
    return _build


@pytest.fixture()
def sqlite_engine(tmp_path):
    """File-backed SQLite engine seeded with a small Karma network.

    Divisions: Baglung and Kaski (active Karma), Closed (inactive) and
    Pharmacy (id 5, not a Karma division). Patient 1 is seen by a
    paediatrician, then a gynaecologist, then buys OTC medicine the same
    afternoon.
    """
    from sqlalchemy import create_engine, text

    # report functions read windows from worker threads
    engine = create_engine(
        f"sqlite:///{tmp_path / 'karma.db'}", connect_args={"check_same_thread": False},
    )
    statements = [
        "CREATE TABLE division (Id INTEGER PRIMARY KEY, Name TEXT, IsKarmaDivision INTEGER, isActive INTEGER)",
        "CREATE TABLE chw (ID INTEGER PRIMARY KEY, Village TEXT, DivisionId INTEGER, isEmail INTEGER)",
        "CREATE TABLE patient (PatientId INTEGER PRIMARY KEY, Centre INTEGER, Sex TEXT)",
        "CREATE TABLE karma_doctor (DoctorId INTEGER PRIMARY KEY, Name TEXT, Speciality TEXT)",
        "CREATE TABLE patient_history (HistoryId INTEGER PRIMARY KEY, PatientId INTEGER, "
        "CreatedDate TEXT, Status TEXT, doctorId INTEGER, COST REAL)",
        "CREATE TABLE prescription_pricing (HistoryId INTEGER PRIMARY KEY, DoctorKP REAL, MedicineKP REAL, "
        "CorporateKP REAL, MarginKP REAL, MedicineFacilitationKP REAL, TestKP REAL, InjectionKP REAL, "
        "DripKP REAL, NebulizeKP REAL, DressingKP REAL, FacilityKP REAL, ManualFees REAL, Adjustment REAL)",
        "CREATE TABLE otc_history (OtcId INTEGER PRIMARY KEY, PatientId INTEGER, CreatedDate TEXT, "
        "PaidAmount REAL, Cost REAL, Injection REAL, Discount REAL, NonPayment REAL)",
        "CREATE TABLE prescription (PrescriptionId INTEGER PRIMARY KEY, OtcId INTEGER, HistoryId INTEGER, "
        "Cost REAL, Quantity INTEGER, ReconciledQuantity INTEGER)",
        "CREATE TABLE diagnostic (DiagnosticId INTEGER PRIMARY KEY, OtcId INTEGER, Cost REAL)",

        "INSERT INTO division VALUES (1, 'Baglung', 1, 1), (2, 'Kaski', 1, 1), (3, 'Closed', 1, 0), "
        "(5, 'Pharmacy', 0, 1)",
        "INSERT INTO chw VALUES (10, 'Amalachaur', 1, 1), (11, 'Kusmisera', 1, 0), "
        "(20, 'Hemja', 2, 1), (30, 'Oldtown', 3, 1), (50, 'Store', 5, 1)",
        "INSERT INTO patient VALUES (1, 10, 'F'), (2, 20, 'M'), (3, 11, 'F'), (4, 30, 'M'), (5, 50, 'F')",
        "INSERT INTO karma_doctor VALUES (1, 'Dr Rai', 'Paeds'), (2, 'Dr Gurung', '  '), (3, 'Dr Thapa', 'Gynae')",
        "INSERT INTO patient_history VALUES "
        "(1, 1, '2026-01-03 09:00:00', 'A', 1, 500), (2, 1, '2026-01-04 09:00:00', 'A', 3, 300), "
        "(3, 1, '2026-01-05 09:00:00', 'X', 1, 200), (4, 2, '2026-01-05 10:00:00', 'A', 2, 400), "
        "(5, 3, '2026-01-05 10:00:00', 'A', NULL, 100), (6, 4, '2026-01-05 10:00:00', 'A', 1, 100), "
        "(7, 1, '2026-02-01 09:00:00', 'A', 1, 500), (8, 5, '2026-01-05 11:00:00', 'A', 1, 250)",
        "INSERT INTO prescription_pricing VALUES "
        "(1, 150, 100, 20, 20, 10, 100, 50, 0, 0, 0, 50, 0, 0), "
        "(4, 200, 100, 0, 0, 0, 0, 100, 0, 0, 0, 0, 0, 0), "
        "(8, 250, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)",
        "INSERT INTO otc_history VALUES "
        "(1, 1, '2026-01-04 12:00:00', 500, 500, 50, 0, 0), "
        "(2, 2, '2026-01-31 23:30:00', 60, 60, 0, 0, 0), "
        "(3, 5, '2026-01-06 08:00:00', NULL, 80, 0, 0, 0)",
        "INSERT INTO prescription VALUES "
        "(1, 1, NULL, 200, 2, NULL), (2, 1, NULL, 100, 1, NULL), "
        "(3, NULL, 1, 120, 4, 2), (4, NULL, 1, 80, 1, NULL)",
        "INSERT INTO diagnostic VALUES (1, 1, 100)",
    ]
    with engine.begin() as conn:
        for sql in statements:
            conn.execute(text(sql))
    yield engine
    engine.dispose()
