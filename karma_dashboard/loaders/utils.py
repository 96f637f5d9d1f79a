"""
Shared utilities for data ingestion: column renaming and filter clauses.
"""

import logging
import re

import pandas as pd

from ..models import MetricFilters

logger = logging.getLogger(__name__)

# Aliases seen across the patient_history / otc_history / karma_doctor
# schemas, mapped to the canonical column the transforms expect.
COLUMN_ALIASES: dict[str, str] = {
    "dt": "date",
    "date_str": "date",
    "specialty": "speciality",
    "speciality_e": "speciality",
    "cnt": "visits",
    "paidamount": "paid_amount",
    "village": "centre",
    "center": "centre",
}


def to_snake_case(name: str) -> str:
    """Convert a column name to snake_case.

    Handles spaces, CamelCase, and punctuation.
    """
    s = str(name).strip()
    s = re.sub(r"[^a-zA-Z0-9]+", "_", s)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    s = s.lower().strip("_")
    s = re.sub(r"_+", "_", s)
    return s


def normalise_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename columns to snake_case canonical names.

    When two source columns map to the same canonical name the first one
    wins and the rest are dropped.
    """
    renamed = {}
    for col in df.columns:
        snake = to_snake_case(col)
        renamed[col] = COLUMN_ALIASES.get(snake, COLUMN_ALIASES.get(snake.replace("_", ""), snake))

    out = df.rename(columns=renamed)
    if out.columns.duplicated().any():
        dupes = sorted(set(out.columns[out.columns.duplicated()]))
        logger.debug("Dropping duplicate columns after normalisation: %s", dupes)
        out = out.loc[:, ~out.columns.duplicated()]
    return out


def filter_clause(
    filters: MetricFilters | None,
    division_col: str = "division.Name",
    centre_col: str = "chw.ID",
) -> tuple[str, dict]:
    """SQL AND-clauses and bind parameters for the division/centre filters."""
    if filters is None:
        return "", {}

    clauses = []
    params: dict = {}
    if filters.division and filters.division.strip():
        clauses.append(f" AND {division_col} = :division")
        params["division"] = filters.division.strip()
    if filters.centre_id:
        clauses.append(f" AND {centre_col} = :centre_id")
        params["centre_id"] = int(filters.centre_id)
    return "".join(clauses), params
