import html
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.charts import horizon_label, mpi_by_group_chart
from core.config import get_settings
from core.cooldown import RefreshCooldown, format_cooldown
from core.data import DashboardDataError, format_mpi, load_dashboard_data, prepare_context
from core.filters import COUNT_COLUMN, GROUP_COLUMN, MPI_COLUMNS, TableState, toggle_group, toggle_sort

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("mpi_dashboard")

alt.data_transformers.disable_max_rows()
settings = get_settings()

LIGHT_CSS = """
.card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
       box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
.card-title {font-weight: 600;font-size: 1.1rem;color: #1f2937;}
.card-sub {font-size: 0.85rem;color: #4b5563;margin-top: 2px;}
.cooldown {font-size: 0.8rem;color: #ea580c;margin-top: 6px;}
.tile {border-radius: 10px;padding: 14px 18px;background: #ffffff;box-shadow: 0 1px 3px rgba(0,0,0,0.08);}
.tile h3 {font-size: 1.0rem;font-weight: 500;color: #374151;margin: 0;}
.tile p {font-size: 1.9rem;font-weight: 700;margin: 4px 0 0 0;}
.listing-cell {font-size: 0.8rem;color: #4b5563;padding-left: 1.5rem;border-left: 3px solid #bfdbfe;}
.footer {text-align: center;font-size: 0.85rem;color: #6b7280;margin-top: 24px;}
"""

DARK_CSS = """
.stApp {background-color: #111827;color: #e5e7eb;}
.card {border-color: #374151;background: #1f2937;}
.card-title {color: #e5e7eb;}
.card-sub {color: #9ca3af;}
.cooldown {color: #fb923c;}
.tile {background: #1f2937;}
.tile h3 {color: #e5e7eb;}
.listing-cell {color: #9ca3af;border-left-color: #1e3a8a;}
.footer {color: #9ca3af;}
"""


# ---------- UI / layout helpers ----------
def inject_base_styles(dark_mode: bool):
    css = LIGHT_CSS + (DARK_CSS if dark_mode else "")
    st.markdown(f"<style>{css}</style>", unsafe_allow_html=True)


@contextmanager
def card(title: str, subtitle: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-title">{title}</div>
          <div class="card-sub">{subtitle or ""}</div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def tile(column, title: str, value: Any, color: str):
    column.markdown(
        f"<div class='tile'><h3>{title}</h3><p style='color:{color};'>{value}</p></div>",
        unsafe_allow_html=True,
    )


# ---------- Session state ----------
def init_state():
    ss = st.session_state
    ss.setdefault("table_state", TableState())
    ss.setdefault("cooldown", RefreshCooldown(settings.refresh_cooldown_seconds))
    ss.setdefault("dark_mode", False)
    ss.setdefault("data_ctx", None)
    ss.setdefault("load_error", None)


def load_data(manual: bool) -> None:
    ss = st.session_state
    try:
        ss["data_ctx"] = load_dashboard_data(settings.proxy_url)
        ss["load_error"] = None
        if manual:
            ss["cooldown"].start()
    except DashboardDataError as exc:
        logger.error("Loading listings failed: %s", exc)
        ss["load_error"] = str(exc)


def on_sort(key: str):
    state: TableState = st.session_state["table_state"]
    st.session_state["table_state"] = TableState(sort=toggle_sort(state.sort, key), expanded_groups=state.expanded_groups)


def on_toggle_group(group: str):
    st.session_state["table_state"] = toggle_group(st.session_state["table_state"], group)


def sort_indicator(state: TableState, key: str) -> str:
    if state.sort.key != key:
        return "↕"
    return "▲" if state.sort.direction == "asc" else "▼"


# ---------- Page ----------
st.set_page_config(page_title="PriceLabs MPI Analysis", layout="wide")
init_state()

top = st.columns([9, 1])
with top[1]:
    st.toggle("🌙", key="dark_mode", help="Toggle dark mode")
inject_base_styles(st.session_state["dark_mode"])
with top[0]:
    st.title("PriceLabs MPI Analysis by Group")

if st.session_state["data_ctx"] is None and st.session_state["load_error"] is None:
    with st.spinner("Loading PriceLabs data..."):
        load_data(manual=False)

if st.session_state["load_error"]:
    st.error(f"**Error**\n\n{st.session_state['load_error']}")
    if st.button("Try again", key="retry"):
        st.session_state["load_error"] = None
        st.session_state["data_ctx"] = None
        st.rerun()
    st.stop()

data_ctx: Dict[str, Any] = st.session_state["data_ctx"]
ctx = prepare_context(st.session_state["table_state"], data_ctx)
summary: pd.DataFrame = ctx["summary"]

if summary.empty:
    st.warning("**No Data**\n\nNo grouped data available")
    st.stop()

totals = ctx["totals"]
tile_cols = st.columns(3)
tile(tile_cols[0], "Total Groups", totals["total_groups"], "#2563eb")
tile(tile_cols[1], "Total Listings", totals["total_listings"], "#16a34a")
tile(tile_cols[2], "Avg Listings/Group", totals["avg_listings_per_group"], "#9333ea")
st.write("")


@st.fragment(run_every=1)
def refresh_controls():
    cooldown: RefreshCooldown = st.session_state["cooldown"]
    remaining = cooldown.remaining()
    if remaining > 0:
        st.markdown(
            f"<div class='cooldown'>Next refresh available in {format_cooldown(remaining)}</div>",
            unsafe_allow_html=True,
        )
    if st.button("⟳ Refresh", key="refresh", disabled=remaining > 0, use_container_width=True):
        with st.spinner("Refreshing..."):
            load_data(manual=True)
        st.rerun()


state: TableState = st.session_state["table_state"]
with card(
    "Average MPI by Group",
    "Market Price Index averages for 7, 30, 60, 90, and 120 day periods. Click column headers to sort.",
):
    head_cols = st.columns([3, 8, 2])
    with head_cols[2]:
        refresh_controls()

    widths = [3, 2] + [2] * len(MPI_COLUMNS)
    header = st.columns(widths)
    labels = {GROUP_COLUMN: "Group", COUNT_COLUMN: "Listings Count", **{c: horizon_label(c) for c in MPI_COLUMNS}}
    for col, key in zip(header, [GROUP_COLUMN, COUNT_COLUMN, *MPI_COLUMNS]):
        col.button(
            f"{labels[key]} {sort_indicator(state, key)}",
            key=f"sort_{key}",
            on_click=on_sort,
            args=(key,),
            use_container_width=True,
        )

    for row in summary.to_dict(orient="records"):
        group = str(row[GROUP_COLUMN])
        is_expanded = group in state.expanded_groups
        cells = st.columns(widths)
        with cells[0]:
            inner = st.columns([1, 5])
            inner[0].button(
                "−" if is_expanded else "+",
                key=f"toggle_{group}",
                on_click=on_toggle_group,
                args=(group,),
            )
            inner[1].markdown(f"**{html.escape(group)}**")
        cells[1].write(int(row[COUNT_COLUMN]))
        for cell, col in zip(cells[2:], MPI_COLUMNS):
            cell.write(format_mpi(row[col]))

        if is_expanded:
            for listing in ctx["expanded"].get(group, []):
                sub = st.columns(widths)
                sub[0].markdown(f"<div class='listing-cell'>{html.escape(str(listing['label']))}</div>", unsafe_allow_html=True)
                sub[1].markdown(f"<div class='listing-cell'>{listing[COUNT_COLUMN]}</div>", unsafe_allow_html=True)
                for cell, col in zip(sub[2:], MPI_COLUMNS):
                    cell.markdown(f"<div class='listing-cell'>{format_mpi(listing[col])}</div>", unsafe_allow_html=True)

with card("MPI by Group", "Average MPI per horizon (x100)."):
    st.altair_chart(mpi_by_group_chart(summary), use_container_width=True)

with st.expander("Export / details", expanded=False):
    st.download_button(
        "Export CSV",
        data=summary.to_csv(index=False).encode("utf-8"),
        file_name="mpi_by_group.csv",
        mime="text/csv",
    )
    meta = ctx.get("meta") or {}
    st.write(
        {
            "listings_received": ctx.get("raw_count", 0),
            "listings_with_group": ctx.get("valid_count", 0),
            "fetched_at": ctx.get("fetched_at"),
            "rate_limit_remaining": meta.get("rateLimitRemaining", "unknown"),
            "rate_limit_limit": meta.get("rateLimitLimit", "unknown"),
            "rate_limit_reset": meta.get("rateLimitReset", "unknown"),
        }
    )

st.markdown("<div class='footer'>Data fetched from PriceLabs API</div>", unsafe_allow_html=True)
