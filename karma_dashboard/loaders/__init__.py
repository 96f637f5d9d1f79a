"""Database loaders for patient-visit and OTC records."""

from .centres import load_active_centres, load_centres, load_divisions
from .db import get_engine, read_query
from .footfall import (
    fetch_centre_daily_footfall,
    fetch_centre_footfall,
    fetch_daily_footfall,
    load_footfall_detail,
)
from .revenue import fetch_daily_revenue, load_revenue_detail

__all__ = [
    "get_engine",
    "read_query",
    "load_divisions",
    "load_centres",
    "load_active_centres",
    "fetch_daily_revenue",
    "load_revenue_detail",
    "fetch_daily_footfall",
    "load_footfall_detail",
    "fetch_centre_footfall",
    "fetch_centre_daily_footfall",
]
