"""
Loaders for the organisation structure: divisions and centres (chw rows).
"""

import logging

import pandas as pd
from sqlalchemy.engine import Engine

from .db import read_query

logger = logging.getLogger(__name__)


def load_divisions(engine: Engine | None = None) -> pd.DataFrame:
    """All divisions, ordered by name. Columns: name."""
    df = read_query("SELECT Name FROM division ORDER BY Name", engine=engine)
    logger.info("Loaded %d divisions", len(df))
    return df


def load_centres(division_name: str | None = None, engine: Engine | None = None) -> pd.DataFrame:
    """Centres, optionally within one division. Columns: id, centre."""
    sql = """
        SELECT chw.ID, chw.Village
        FROM chw
        JOIN division ON division.Id = chw.DivisionId
        WHERE 1=1
    """
    params = {}
    if division_name:
        sql += " AND division.Name = :division"
        params["division"] = division_name
    sql += " ORDER BY chw.Village"

    df = read_query(sql, params, engine)
    logger.info("Loaded %d centres (division=%s)", len(df), division_name or "all")
    return df


def load_active_centres(engine: Engine | None = None) -> list[tuple[str, str]]:
    """(division, centre) pairs reported in the centre footfall table.

    Only e-mail enabled centres in active Karma divisions are included.
    """
    df = read_query(
        """
        SELECT DISTINCT d.Name AS division, c.Village AS centre
        FROM chw AS c
        JOIN division AS d ON c.DivisionId = d.Id
        WHERE c.isEmail = 1
          AND d.isActive = 1
          AND d.IsKarmaDivision = 1
        """,
        engine=engine,
    )
    pairs = [(str(r.division).strip(), str(r.centre).strip()) for r in df.itertuples(index=False)]
    logger.info("Loaded %d active centres", len(pairs))
    return pairs
