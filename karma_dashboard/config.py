"""
Configuration: category registry, report constants, database settings.

CATEGORY_REGISTRY maps each revenue category key to its display label and
chart colour. Database settings are read from the environment, optionally
seeded from a .env file.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Environment (process env wins over .env)
# ---------------------------------------------------------------------------
PROJECT_DIR = Path(__file__).resolve().parent.parent
ENV_FILE = PROJECT_DIR / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)

DB_URL = os.getenv("KARMA_DB_URL", "")
DB_POOL_SIZE = int(os.getenv("KARMA_DB_POOL_SIZE", "5"))
DB_POOL_RECYCLE = int(os.getenv("KARMA_DB_POOL_RECYCLE", "3600"))

# ---------------------------------------------------------------------------
# Organisation
# ---------------------------------------------------------------------------
ORGANISATION_NAME = "Karma Primary Healthcare"

# Division excluded from patient revenue unless explicitly selected
EXCLUDED_DIVISION_ID = 5

# OTC sales below this amount are not counted as a footfall visit
OTC_FOOTFALL_MIN_AMOUNT = 60

# ---------------------------------------------------------------------------
# Revenue categories
# ---------------------------------------------------------------------------
# key: canonical MetricRow.breakdown key
# label: display label
# color: chart colour
CATEGORY_REGISTRY: dict[str, dict] = {
    "consultation": {"label": "Consultation", "color": "#f59e0b"},
    "medicine": {"label": "Medicine", "color": "#10b981"},
    "otc": {"label": "OTC", "color": "#dc2626"},
    "diagnostics": {"label": "Diagnostics", "color": "#ec4899"},
    "poc": {"label": "POC", "color": "#eab308"},
    "eye": {"label": "Eye", "color": "#8b5cf6"},
}

REVENUE_CATEGORIES = list(CATEGORY_REGISTRY)

# Palette cycled over speciality labels, which are data-driven
SPECIALITY_COLORS = [
    "#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6",
    "#ec4899", "#14b8a6", "#f97316", "#6366f1", "#84cc16",
]

DEFAULT_SPECIALITY = "other"

# ---------------------------------------------------------------------------
# Trend categories
# ---------------------------------------------------------------------------
CATEGORY_ALL = "All"
CATEGORY_STARS = "Stars"
CATEGORY_CONCERNING = "Concerning"
CATEGORY_BETTER_THAN_LAST_YEAR = "Better than last year"
CATEGORY_BETTER_THAN_LAST_MONTH = "Better than last month"

TREND_CATEGORIES = [
    CATEGORY_ALL,
    CATEGORY_STARS,
    CATEGORY_CONCERNING,
    CATEGORY_BETTER_THAN_LAST_YEAR,
    CATEGORY_BETTER_THAN_LAST_MONTH,
]

TREND_CATEGORY_COLORS = {
    CATEGORY_ALL: "#95a5a6",
    CATEGORY_STARS: "#2ecc71",
    CATEGORY_CONCERNING: "#e74c3c",
    CATEGORY_BETTER_THAN_LAST_YEAR: "#3498db",
    CATEGORY_BETTER_THAN_LAST_MONTH: "#f39c12",
}

TREND_UP = "▲"
TREND_DOWN = "▼"
NOT_APPLICABLE = "N/A"

# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------
# date.weekday() numbering: Monday=0 ... Sunday=6
EXCLUDED_WEEKDAY = 6

# Within 2% of target counts as on track
ON_TRACK_TOLERANCE = 0.02

# Recommended footfall target = max(floor, best comparable month * uplift)
RECOMMENDED_TARGET_FLOOR = 50
RECOMMENDED_TARGET_UPLIFT = 1.1

# ---------------------------------------------------------------------------
# Comparison windows
# ---------------------------------------------------------------------------
COMPARISON_MONTHS = 3
SEGMENT_COUNT = 10
SEGMENT_DAYS = 10
