"""
Karma Healthcare — End-to-end report pipeline.

Builds the revenue, footfall and centre footfall reports for one month and
prints smoke-test summaries.

Usage:
    python main.py                      # last completed month, database
    python main.py --demo               # simulated data
    python main.py --month 2026-01 --target 2500000
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from karma_dashboard.config import CATEGORY_STARS, CATEGORY_CONCERNING, ORGANISATION_NAME
from karma_dashboard.dashboard import (
    get_centre_footfall_summary,
    get_footfall_report,
    get_revenue_report,
)
from karma_dashboard.exceptions import DataSourceNotConfigured
from karma_dashboard.kpis import filter_by_category
from karma_dashboard.periods import resolve_reporting_month
from karma_dashboard.simulator import SimulatedSource
from karma_dashboard.utils import format_amount

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the Karma monthly reports.")
    parser.add_argument("--month", help="Report month as YYYY-MM (default: last completed month)")
    parser.add_argument("--target", type=float, help="Monthly revenue target")
    parser.add_argument("--demo", action="store_true", help="Use simulated data instead of the database")
    return parser.parse_args(argv)


def print_projection(projection) -> None:
    if projection is None:
        print("  Projection: none (no target or no data)")
        return
    print(f"  Target:              {format_amount(projection.target)}")
    print(f"  Month to date:       {format_amount(projection.month_to_date_total)}")
    print(f"  Projected month end: {format_amount(projection.projected_month_end)}")
    print(f"  On track:            {projection.is_on_track}")
    if projection.required_per_remaining_day is not None:
        print(f"  Required per day:    {format_amount(projection.required_per_remaining_day)}")


def main(argv=None) -> int:
    """Run the three reports and print smoke-test outputs."""
    args = parse_args(argv)
    month = args.month or resolve_reporting_month()

    source = SimulatedSource() if args.demo else None
    revenue_fetch = source.fetch_daily_revenue if source else None
    footfall_fetch = source.fetch_daily_footfall if source else None

    print("=" * 70)
    print(f"  {ORGANISATION_NAME.upper()} — Operations Dashboard")
    print(f"  Report Pipeline Smoke Test — {month}{' (demo data)' if source else ''}")
    print("=" * 70)
    print()

    try:
        # ------------------------------------------------------------------
        # 1. Revenue
        # ------------------------------------------------------------------
        print("[ 1 ] FINANCE REVENUE")
        print("-" * 40)

        revenue = get_revenue_report(month, args.target, fetch=revenue_fetch)
        if revenue is None:
            print(f"\nInvalid month {month!r}; expected YYYY-MM.")
            return 2

        print(f"\nTotal revenue: {format_amount(revenue['total'])} over {len(revenue['daily'])} days")
        if not revenue["daily_frame"].empty:
            print(revenue["daily_frame"].head(10).to_string(index=False))

        print("\nCategory mix:")
        for s in revenue["category_mix"]:
            print(f"  {s['name']:14s} {format_amount(s['value']):>14s}  {s['percentage']:5.1f}%")

        print("\nLast 3 months vs same months last year:")
        print(revenue["comparison"].to_string(index=False))

        print("\n10-day segments:")
        print(revenue["segment_comparison"].to_string(index=False))

        print()
        print_projection(revenue["projection"])

        # ------------------------------------------------------------------
        # 2. Footfall
        # ------------------------------------------------------------------
        print("\n")
        print("[ 2 ] CUSTOMER FOOTFALL")
        print("-" * 40)

        footfall = get_footfall_report(month, fetch=footfall_fetch)
        print(f"\nTotal footfall: {format_amount(footfall['total'])}")
        print(f"Previous month: {format_amount(footfall['prev_month_total'])}")
        print(f"Same month last year: {format_amount(footfall['prev_month_prev_year_total'])}")
        print(f"Recommended target: {footfall['recommended_target']}")

        print("\nBy speciality:")
        for s in footfall["category_mix"]:
            print(f"  {s['name']:20s} {format_amount(s['value']):>8s}  {s['percentage']:5.1f}%")

        print()
        print_projection(footfall["projection"])

        # ------------------------------------------------------------------
        # 3. Centre footfall
        # ------------------------------------------------------------------
        print("\n")
        print("[ 3 ] CENTRE FOOTFALL")
        print("-" * 40)

        if source:
            centres = get_centre_footfall_summary(
                month,
                fetch=source.fetch_centre_footfall,
                daily_fetch=source.fetch_centre_daily_footfall,
                entities=source.active_centres(),
            )
        else:
            centres = get_centre_footfall_summary(month)

        summary = centres["summary"]
        print(f"\nCentres: {summary['centres']}  Total visits: {format_amount(summary['total'])}")
        print(f"vs last month: {summary['trend_month_str']}   vs last year: {summary['trend_year_str']}")
        print(f"Categories: {summary['category_counts']}")

        for category in (CATEGORY_STARS, CATEGORY_CONCERNING):
            picked = filter_by_category(centres["centres"], category)
            print(f"\n{category} ({len(picked)}):")
            for c in picked:
                print(
                    f"  {c.entity:12s} | {c.sub_entity:16s} | {c.current:6.0f} "
                    f"| {c.trend_month_str:>10s} | {c.trend_year_str:>10s}"
                )
    except DataSourceNotConfigured as e:
        logger.error("%s", e)
        print("\nNo database configured. Set KARMA_DB_URL or run with --demo.")
        return 1

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
