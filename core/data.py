from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from numbers import Number
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd
import requests

from core.config import get_settings
from core.filters import (
    COUNT_COLUMN,
    GROUP_COLUMN,
    MPI_COLUMNS,
    SortConfig,
    TableState,
    normalize_state,
)
from core.upstream import is_success


logger = logging.getLogger(__name__)

MPI_SCALE = 100
SUMMARY_COLUMNS = [GROUP_COLUMN, COUNT_COLUMN, *MPI_COLUMNS]
INVALID_PAYLOAD_MESSAGE = 'Invalid response format: missing or invalid "listings" array'


class DashboardDataError(Exception):
    """Raised with a user-facing message when listings cannot be loaded."""


# ---------------- Value helpers ----------------
def is_missing(value: object) -> bool:
    if value is None or value is pd.NA:
        return True
    if isinstance(value, Number) and not isinstance(value, bool):
        try:
            return math.isnan(value)  # type: ignore[arg-type]
        except TypeError:
            return False
    return False


def as_number(value: object) -> float:
    """Numeric (or numeric-string) value as float, NaN for anything else."""
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, Number):
        try:
            return float(value)  # type: ignore[arg-type]
        except TypeError:
            return math.nan
    if isinstance(value, str):
        s = value.strip()
        # float() also takes "1_000"; digit separators are not numeric listing values.
        if not s or "_" in s:
            return math.nan
        try:
            return float(s)
        except ValueError:
            return math.nan
    return math.nan


def group_key(value: object) -> str:
    """Render a `group` value the way it is displayed and matched (1.0 -> "1", True -> "true")."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def format_mpi(value: object) -> str:
    if is_missing(value):
        return "N/A"
    return f"{float(value):.1f}"  # type: ignore[arg-type]


def scaled(value: object) -> Optional[float]:
    number = as_number(value)
    if math.isnan(number):
        return None
    return number * MPI_SCALE


# ---------------- Pipeline ----------------
def flatten_record(obj: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested mappings into dotted keys; lists and scalars are leaves."""
    flat: Dict[str, Any] = {}
    for key, value in obj.items():
        new_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_record(value, new_key))
        else:
            flat[new_key] = value
    return flat


def normalize_listings(listings: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [flatten_record(listing) for listing in listings]


def filter_valid_listings(records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [dict(r) for r in records if not is_missing(r.get(GROUP_COLUMN))]


def group_and_average(records: List[Mapping[str, Any]]) -> pd.DataFrame:
    """One row per group (first-appearance order): listing count and mean MPI x100."""
    if not records:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    df = pd.DataFrame.from_records(
        [
            {GROUP_COLUMN: group_key(r[GROUP_COLUMN]), **{c: as_number(r.get(c)) for c in MPI_COLUMNS}}
            for r in records
        ],
        columns=[GROUP_COLUMN, *MPI_COLUMNS],
    )
    df[MPI_COLUMNS] = df[MPI_COLUMNS].astype(float)

    grouped = df.groupby(GROUP_COLUMN, sort=False)
    summary = grouped[MPI_COLUMNS].mean() * MPI_SCALE
    summary.insert(0, COUNT_COLUMN, grouped.size().astype(int))
    return summary.reset_index()[SUMMARY_COLUMNS]


def sort_groups(summary: pd.DataFrame, sort: SortConfig) -> pd.DataFrame:
    if summary.empty or not sort.key or sort.key not in summary.columns:
        return summary.reset_index(drop=True)

    descending = sort.direction == "desc"
    positions = list(range(len(summary)))
    if sort.key == GROUP_COLUMN:
        names = summary[GROUP_COLUMN].astype(str).tolist()
        order = sorted(positions, key=lambda i: names[i], reverse=descending)
    else:
        values = summary[sort.key].tolist()
        present = [i for i in positions if not is_missing(values[i])]
        missing = [i for i in positions if is_missing(values[i])]
        # Nulls stay at the bottom in both directions.
        order = sorted(present, key=lambda i: values[i], reverse=descending) + missing
    return summary.iloc[order].reset_index(drop=True)


def listings_for_group(records: Iterable[Mapping[str, Any]], group: str) -> List[Dict[str, Any]]:
    group = str(group)
    return [dict(r) for r in records if not is_missing(r.get(GROUP_COLUMN)) and group_key(r[GROUP_COLUMN]) == group]


def listing_row(record: Mapping[str, Any], index: int) -> Dict[str, Any]:
    label = record.get("id")
    # Falsy ids (0, False, "") fall back to the position label; containers always count as present.
    has_id = not is_missing(label) and (isinstance(label, (list, dict)) or bool(label))
    row: Dict[str, Any] = {
        "label": str(label) if has_id else f"Listing {index + 1}",
        COUNT_COLUMN: 1,
    }
    for col in MPI_COLUMNS:
        row[col] = scaled(record.get(col))
    return row


def summary_totals(summary: pd.DataFrame) -> Dict[str, int]:
    total_groups = int(len(summary))
    total_listings = int(summary[COUNT_COLUMN].sum()) if total_groups else 0
    avg = round_half_up(total_listings / total_groups) if total_groups else 0
    return {
        "total_groups": total_groups,
        "total_listings": total_listings,
        "avg_listings_per_group": int(avg or 0),
    }


def summary_records(summary: pd.DataFrame) -> List[Dict[str, Any]]:
    if summary.empty:
        return []
    out = summary.astype(object).where(summary.notna(), None)
    return out.to_dict(orient="records")


# ---------------- Public API (Streamlit view + FastAPI use) ----------------
def parse_listings_payload(payload: object) -> List[Mapping[str, Any]]:
    listings = payload.get("listings") if isinstance(payload, dict) else None
    if not isinstance(listings, list):
        raise DashboardDataError(INVALID_PAYLOAD_MESSAGE)
    return [item for item in listings if isinstance(item, Mapping)]


def build_dashboard_data(payload: object) -> Dict[str, Any]:
    listings = parse_listings_payload(payload)
    normalized = normalize_listings(listings)
    logger.info("Normalized listings (before filtering): %d", len(normalized))
    valid = filter_valid_listings(normalized)
    logger.info("Valid listings (group present): %d", len(valid))
    summary = group_and_average(valid)
    logger.info("Groups: %d", len(summary))

    return {
        "listings": normalized,
        "valid_listings": valid,
        "summary": summary,
        "raw_count": len(normalized),
        "valid_count": len(valid),
        "meta": dict(payload.get("_meta") or {}) if isinstance(payload, dict) else {},
        "fetched_at": datetime.now(timezone.utc).isoformat(),
    }


def load_dashboard_data(proxy_url: Optional[str] = None, *, session: Optional[requests.Session] = None) -> Dict[str, Any]:
    settings = get_settings()
    url = proxy_url or settings.proxy_url
    http = session or requests

    logger.info("Fetching listings from %s", url)
    try:
        response = http.get(url, timeout=settings.timeout)
    except requests.RequestException as exc:
        raise DashboardDataError(f"Could not reach listings proxy: {exc}") from exc

    if not is_success(response.status_code):
        raise DashboardDataError(f"HTTP {response.status_code}: {response.reason}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise DashboardDataError(INVALID_PAYLOAD_MESSAGE) from exc
    return build_dashboard_data(payload)


def prepare_context(state: dict | TableState, data_ctx: Dict[str, Any]) -> Dict[str, Any]:
    table_state = state if isinstance(state, TableState) else normalize_state(state)
    summary: pd.DataFrame = data_ctx.get("summary", pd.DataFrame(columns=SUMMARY_COLUMNS))
    valid: List[Dict[str, Any]] = data_ctx.get("valid_listings", []) or []

    sorted_summary = sort_groups(summary, table_state.sort)
    known_groups = set(sorted_summary[GROUP_COLUMN].astype(str)) if not sorted_summary.empty else set()

    expanded: Dict[str, List[Dict[str, Any]]] = {}
    for group in sorted_summary[GROUP_COLUMN].astype(str).tolist() if not sorted_summary.empty else []:
        if group in table_state.expanded_groups and group in known_groups:
            expanded[group] = [listing_row(r, i) for i, r in enumerate(listings_for_group(valid, group))]

    return {
        "state": table_state,
        "summary": sorted_summary,
        "valid_listings": valid,
        "expanded": expanded,
        "totals": summary_totals(summary),
        "meta": data_ctx.get("meta", {}),
        "raw_count": data_ctx.get("raw_count", 0),
        "valid_count": data_ctx.get("valid_count", len(valid)),
        "fetched_at": data_ctx.get("fetched_at"),
    }
