"""
Database access: a pooled SQLAlchemy engine and a query helper that
returns pandas DataFrames with normalised column names.
"""

import logging
from functools import lru_cache

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import DB_POOL_RECYCLE, DB_POOL_SIZE, DB_URL
from ..exceptions import DataSourceNotConfigured
from .utils import normalise_columns

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def get_engine(url: str | None = None) -> Engine:
    """Return a pooled engine for url (defaults to KARMA_DB_URL)."""
    url = url or DB_URL
    if not url:
        raise DataSourceNotConfigured(
            "KARMA_DB_URL is not set. Add it to the environment or .env, "
            "or run the dashboard in demo mode."
        )

    kwargs = {"pool_pre_ping": True, "pool_recycle": DB_POOL_RECYCLE}
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = DB_POOL_SIZE
    engine = create_engine(url, **kwargs)
    logger.info("Created database engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def read_query(
    sql: str,
    params: dict | None = None,
    engine: Engine | None = None,
    normalise: bool = True,
) -> pd.DataFrame:
    """Run a read-only query and return its rows as a DataFrame.

    Column names are normalised to snake_case canonical names unless
    normalise is False. Failures are logged and re-raised unchanged.
    """
    engine = engine or get_engine()
    try:
        with engine.connect() as conn:
            df = pd.read_sql(text(sql), conn, params=params or {})
    except SQLAlchemyError:
        logger.exception("Query failed: %s", " ".join(sql.split())[:200])
        raise

    if normalise:
        df = normalise_columns(df)
    logger.debug("Query returned %d rows", len(df))
    return df
