"""
Karma Healthcare — Operations Dashboard

Run with:  streamlit run app.py

Reads from the database named by KARMA_DB_URL; without it the dashboard
runs on simulated data.
"""

import sys
from datetime import date
from pathlib import Path

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent))

from karma_dashboard.config import (
    DB_URL,
    ORGANISATION_NAME,
    TREND_CATEGORIES,
)
from karma_dashboard.dashboard import (
    get_available_months,
    get_centre_footfall_summary,
    get_footfall_report,
    get_revenue_report,
)
from karma_dashboard.export import revenue_workbook_filename, write_revenue_workbook
from karma_dashboard.kpis import filter_by_category
from karma_dashboard.models import MetricFilters
from karma_dashboard.periods import resolve_reporting_month
from karma_dashboard.simulator import SimulatedSource
from karma_dashboard.transforms import category_color, category_label, trend_category_style
from karma_dashboard.utils import format_amount, format_date, range_label

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Karma Operations Dashboard",
    page_icon="🏥",
    layout="wide",
    initial_sidebar_state="expanded",
)

STATUS_COLORS = {
    "on_track": "#2ecc71",
    "behind": "#e74c3c",
    "neutral": "#3498db",
    "grey": "#95a5a6",
}

DEMO_MODE = not DB_URL


# ---------------------------------------------------------------------------
# Data source (cached)
# ---------------------------------------------------------------------------
@st.cache_resource
def get_source():
    """Simulated source in demo mode, else None (database loaders)."""
    return SimulatedSource() if DEMO_MODE else None


def _fetch(name: str):
    source = get_source()
    return getattr(source, name) if source is not None else None


@st.cache_data(ttl=600)
def load_divisions() -> list[str]:
    source = get_source()
    if source is not None:
        return source.divisions()
    from karma_dashboard.loaders import load_divisions as _load
    return _load()["name"].tolist()


@st.cache_data(ttl=600)
def load_centres(division: str | None) -> pd.DataFrame:
    source = get_source()
    if source is not None:
        names = source.centres(division)
        all_names = source.centres()
        return pd.DataFrame({"id": [all_names.index(n) + 1 for n in names], "centre": names})
    from karma_dashboard.loaders import load_centres as _load
    return _load(division)


@st.cache_data(ttl=600)
def revenue_report(month, target, division, centre_id, source_type):
    filters = MetricFilters(division=division, centre_id=centre_id, source_type=source_type)
    return get_revenue_report(month, target, filters, fetch=_fetch("fetch_daily_revenue"))


@st.cache_data(ttl=600)
def footfall_report(month, target, division, centre_id):
    filters = MetricFilters(division=division, centre_id=centre_id)
    return get_footfall_report(month, target, filters, fetch=_fetch("fetch_daily_footfall"))


@st.cache_data(ttl=600)
def centre_summary(month):
    source = get_source()
    if source is None:
        return get_centre_footfall_summary(month)
    return get_centre_footfall_summary(
        month,
        fetch=source.fetch_centre_footfall,
        daily_fetch=source.fetch_centre_daily_footfall,
        entities=source.active_centres(),
    )


def revenue_detail(window, filters):
    source = get_source()
    if source is not None:
        return source.load_revenue_detail(window, filters)
    from karma_dashboard.loaders import load_revenue_detail
    return load_revenue_detail(window, filters)


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title("Karma Healthcare")
st.sidebar.markdown("Operations Dashboard")
st.sidebar.divider()

page = st.sidebar.radio(
    "Navigate",
    ["Home", "Finance Revenue", "Customer Footfall", "Centre Footfall"],
)

st.sidebar.divider()
if DEMO_MODE:
    st.sidebar.warning("Demo mode: KARMA_DB_URL is not set, showing simulated data.")
st.sidebar.caption(f"Data: {ORGANISATION_NAME}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def status_card(label: str, value: str, detail: str = "", status: str = "neutral"):
    color = STATUS_COLORS.get(status, STATUS_COLORS["grey"])
    st.markdown(
        f"""
        <div style="background: linear-gradient(135deg, {color}22, {color}11);
                    border-left: 4px solid {color};
                    border-radius: 8px; padding: 16px; margin-bottom: 8px;">
            <div style="font-size: 13px; color: #888; font-weight: 600; text-transform: uppercase;">{label}</div>
            <div style="font-size: 28px; font-weight: 700; color: #222; margin: 4px 0;">{value}</div>
            <div style="font-size: 13px; color: #666;">{detail}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def report_filters(key: str, with_source_type: bool = False):
    """Month, division, centre and (optionally) source-type pickers."""
    months = get_available_months()
    cols = st.columns(4 if with_source_type else 3)

    with cols[0]:
        month = st.selectbox("Month", months, key=f"{key}_month")
    with cols[1]:
        division = st.selectbox("Division", ["All"] + load_divisions(), key=f"{key}_division")
    division = None if division == "All" else division

    centres = load_centres(division)
    with cols[2]:
        centre = st.selectbox("Centre", ["All"] + centres["centre"].tolist(), key=f"{key}_centre")
    centre_id = None
    if centre != "All":
        centre_id = int(centres.loc[centres["centre"] == centre, "id"].iloc[0])

    source_type = "combined"
    if with_source_type:
        with cols[3]:
            source_type = st.selectbox("Source", ["combined", "patient", "otc"], key=f"{key}_source")

    return month, division, centre_id, source_type


def daily_stacked_bar(report: dict, title: str):
    df = report["daily_frame"]
    fig = go.Figure()
    for i, cat in enumerate(report["categories"]):
        if cat not in df.columns or df[cat].sum() == 0:
            continue
        fig.add_trace(go.Bar(
            x=df["date"], y=df[cat],
            name=category_label(cat),
            marker_color=category_color(cat, i),
        ))
    fig.update_layout(
        title=title,
        barmode="stack",
        height=400,
        plot_bgcolor="rgba(0,0,0,0)",
        legend=dict(orientation="h", y=-0.2),
    )
    st.plotly_chart(fig, use_container_width=True)


def category_pie(report: dict, title: str):
    slices = report["category_mix"]
    if not slices:
        st.info("No data recorded for this month.")
        return
    pie_df = pd.DataFrame(slices)
    fig = px.pie(
        pie_df, names="name", values="value",
        color="name",
        color_discrete_map=dict(zip(pie_df["name"], pie_df["color"])),
        title=title,
    )
    fig.update_traces(textinfo="percent+label")
    fig.update_layout(height=400, showlegend=False)
    st.plotly_chart(fig, use_container_width=True)


def comparison_bars(report: dict, title: str):
    df = report["comparison"]
    if df.empty:
        return
    fig = go.Figure()
    for i, cat in enumerate(report["categories"]):
        if cat not in df.columns:
            continue
        fig.add_trace(go.Bar(
            x=df["period"], y=df[cat],
            name=category_label(cat),
            marker_color=category_color(cat, i),
            text=df[f"{cat}_pct"].apply(lambda x: f"{x:.1f}%" if x else ""),
            textposition="inside",
        ))
    fig.update_layout(
        title=title,
        barmode="stack",
        height=400,
        plot_bgcolor="rgba(0,0,0,0)",
    )
    st.plotly_chart(fig, use_container_width=True)


def segment_line(report: dict, title: str):
    df = report["segment_comparison"]
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df["period"], y=df["this_year"],
        name="This Year", mode="lines+markers",
        line=dict(color="#3498db", width=2),
    ))
    fig.add_trace(go.Scatter(
        x=df["period"], y=df["last_year"],
        name="Last Year", mode="lines+markers",
        line=dict(color="#95a5a6", width=2, dash="dash"),
    ))
    fig.update_layout(title=title, height=350, plot_bgcolor="rgba(0,0,0,0)")
    st.plotly_chart(fig, use_container_width=True)


def projection_section(report: dict, unit: str = ""):
    projection = report["projection"]
    if projection is None:
        st.info("Enter a target to see the projection.")
        return

    status = "on_track" if projection.is_on_track else "behind"
    cols = st.columns(4)
    with cols[0]:
        status_card("Target", format_amount(projection.target, unit))
    with cols[1]:
        status_card("Month to Date", format_amount(projection.month_to_date_total, unit))
    with cols[2]:
        status_card(
            "Projected Month End",
            format_amount(projection.projected_month_end, unit),
            "On track" if projection.is_on_track else "Behind target",
            status,
        )
    with cols[3]:
        required = projection.required_per_remaining_day
        status_card(
            "Required per Working Day",
            format_amount(required, unit) if required is not None else "—",
            f"{projection.days_remaining} days remaining" if projection.is_ongoing_month else "Month closed",
        )

    df = projection.to_frame()
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df["day"], y=df["actual_cumulative"],
        name="Actual", fill="tozeroy",
        line=dict(color="#3498db"),
    ))
    fig.add_trace(go.Scatter(
        x=df["day"], y=df["target_line"],
        name="Target", line=dict(color="#e74c3c", dash="dash"),
    ))
    if df["trend_line"].notna().any():
        fig.add_trace(go.Scatter(
            x=df["day"], y=df["trend_line"],
            name="Trend", line=dict(color="#f39c12", dash="dot"),
        ))
    fig.update_layout(
        title="Target vs Actual (cumulative)",
        xaxis_title="Day of month",
        height=380,
        plot_bgcolor="rgba(0,0,0,0)",
    )
    st.plotly_chart(fig, use_container_width=True)


# ===========================================================================
# PAGE: Home
# ===========================================================================
if page == "Home":
    st.title(f"{ORGANISATION_NAME} — Operations Dashboard")
    reporting_month = resolve_reporting_month()
    st.caption(f"Last completed month: **{reporting_month}**")

    revenue = revenue_report(reporting_month, None, None, None, "combined")
    footfall = footfall_report(reporting_month, None, None, None)

    cols = st.columns(3)
    with cols[0]:
        status_card("Revenue", format_amount(revenue["total"] if revenue else None, "Rs "))
    with cols[1]:
        status_card("Footfall", format_amount(footfall["total"] if footfall else None))
    with cols[2]:
        status_card(
            "Recommended Footfall Target",
            format_amount(footfall["recommended_target"] if footfall else None),
            "max(previous month, same month last year) + 10%",
        )

    st.divider()
    st.markdown(
        "- **Finance Revenue**: daily revenue by category, 3-month comparison, target projection, export\n"
        "- **Customer Footfall**: daily visits by doctor speciality and target projection\n"
        "- **Centre Footfall**: per-centre visits against last month and last year"
    )


# ===========================================================================
# PAGE: Finance Revenue
# ===========================================================================
elif page == "Finance Revenue":
    st.title("Finance Revenue")

    month, division, centre_id, source_type = report_filters("revenue", with_source_type=True)
    target = st.number_input("Monthly revenue target (Rs)", min_value=0.0, step=10_000.0, value=0.0)

    report = revenue_report(month, target or None, division, centre_id, source_type)
    if report is None:
        st.error(f"Could not build a report for {month}.")
        st.stop()

    st.metric("Total Revenue", format_amount(report["total"], "Rs "))

    daily_stacked_bar(report, f"Daily Revenue — {range_label(report['window'].start, report['window'].end)}")

    col1, col2 = st.columns(2)
    with col1:
        category_pie(report, "Revenue by Category")
    with col2:
        current_w, previous_w = report["comparison_windows"]
        comparison_bars(
            report,
            f"{range_label(current_w.start, current_w.end)} vs {range_label(previous_w.start, previous_w.end)}",
        )

    segment_line(report, "10-day Revenue: This Year vs Last Year")

    st.subheader("Target Projection")
    projection_section(report, "Rs ")

    st.subheader("Export")
    filters = MetricFilters(division=division, centre_id=centre_id, source_type=source_type)
    if st.button("Prepare Excel export"):
        otc_df, patient_df = revenue_detail(report["window"], filters)
        st.download_button(
            "Download revenue workbook",
            data=write_revenue_workbook(otc_df, patient_df),
            file_name=revenue_workbook_filename(source_type, report["window"]),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )


# ===========================================================================
# PAGE: Customer Footfall
# ===========================================================================
elif page == "Customer Footfall":
    st.title("Customer Footfall")

    month, division, centre_id, _ = report_filters("footfall")
    target = st.number_input("Monthly footfall target (leave 0 for recommended)", min_value=0, step=50, value=0)

    report = footfall_report(month, target or None, division, centre_id)
    if report is None:
        st.error(f"Could not build a report for {month}.")
        st.stop()

    cols = st.columns(3)
    with cols[0]:
        st.metric("Total Footfall", format_amount(report["total"]))
    with cols[1]:
        st.metric("Previous Month", format_amount(report["prev_month_total"]))
    with cols[2]:
        st.metric("Recommended Target", format_amount(report["recommended_target"]))

    daily_stacked_bar(report, "Daily Footfall by Speciality")

    col1, col2 = st.columns(2)
    with col1:
        category_pie(report, "Footfall by Speciality")
    with col2:
        current_w, previous_w = report["comparison_windows"]
        comparison_bars(
            report,
            f"{range_label(current_w.start, current_w.end)} vs {range_label(previous_w.start, previous_w.end)}",
        )

    segment_line(report, "10-day Footfall: This Year vs Last Year")

    st.subheader("Target Projection")
    projection_section(report)

    if not DEMO_MODE:
        with st.expander("Visit detail"):
            from karma_dashboard.loaders import load_footfall_detail
            detail = load_footfall_detail(report["window"], MetricFilters(division=division, centre_id=centre_id))
            st.dataframe(detail, use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: Centre Footfall
# ===========================================================================
elif page == "Centre Footfall":
    st.title("Centre Footfall")

    months = get_available_months()
    default_month = resolve_reporting_month()
    month = st.selectbox(
        "Month", months,
        index=months.index(default_month) if default_month in months else 0,
    )

    result = centre_summary(month)
    if result is None:
        st.error(f"Could not build a report for {month}.")
        st.stop()

    summary = result["summary"]
    cols = st.columns(3)
    with cols[0]:
        status_card("Total Visits", format_amount(summary["total"]), f"{summary['centres']} centres")
    with cols[1]:
        status_card(
            "vs Last Month", summary["trend_month_str"],
            "Average across centres",
            "on_track" if summary["trend_month"] >= 0 else "behind",
        )
    with cols[2]:
        status_card(
            "vs Last Year", summary["trend_year_str"],
            "Average across centres",
            "on_track" if summary["trend_year"] >= 0 else "behind",
        )

    trend_df = result["daily_trend"]
    if not trend_df.empty:
        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=trend_df["date"], y=trend_df["current"],
            name="This period", line=dict(color="#3498db"),
        ))
        fig.add_trace(go.Scatter(
            x=trend_df["date"], y=trend_df["previous"],
            name="Previous period", line=dict(color="#95a5a6", dash="dash"),
        ))
        fig.update_layout(title="Daily Footfall", height=320, plot_bgcolor="rgba(0,0,0,0)")
        st.plotly_chart(fig, use_container_width=True)

    st.subheader("Centres")
    category = st.radio("Show", TREND_CATEGORIES, horizontal=True)
    centres = filter_by_category(result["centres"], category)

    if not centres:
        st.info("No centres in this category.")
    else:
        table = pd.DataFrame([c.to_dict() for c in centres])[[
            "entity", "sub_entity", "current", "prev_month", "trend_month_str",
            "prev_year", "trend_year_str", "category",
        ]].rename(columns={
            "entity": "Division",
            "sub_entity": "Centre",
            "current": "This Month",
            "prev_month": "Last Month",
            "trend_month_str": "vs Last Month",
            "prev_year": "Last Year",
            "trend_year_str": "vs Last Year",
            "category": "Category",
        })

        styled = table.style.map(trend_category_style, subset=["Category"])
        st.dataframe(styled, use_container_width=True, hide_index=True)

    st.caption(f"Generated {format_date(date.today())}")
