from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from core.charts import horizon_label, mpi_by_group_chart, to_vega_spec
from core.data import summary_records
from core.filters import COUNT_COLUMN, GROUP_COLUMN, MPI_COLUMNS, TableState


def column_headers() -> List[Dict[str, str]]:
    headers = [
        {"key": GROUP_COLUMN, "label": "Group"},
        {"key": COUNT_COLUMN, "label": "Listings Count"},
    ]
    headers.extend({"key": c, "label": horizon_label(c)} for c in MPI_COLUMNS)
    return headers


def _state_dict(state: TableState) -> Dict[str, Any]:
    return {"sort": asdict(state.sort), "expanded_groups": sorted(state.expanded_groups)}


def compute_group_table(state: TableState, ctx: Dict[str, Any]) -> Dict[str, Any]:
    summary: pd.DataFrame = ctx.get("summary", pd.DataFrame())
    payload: Dict[str, Any] = {
        "state": _state_dict(state),
        "columns": column_headers(),
        "kpis": ctx.get("totals", {}),
        "rows": summary_records(summary),
        "expanded": ctx.get("expanded", {}),
        "charts": {},
        "meta": {
            **(ctx.get("meta") or {}),
            "raw_count": ctx.get("raw_count", 0),
            "valid_count": ctx.get("valid_count", 0),
            "fetched_at": ctx.get("fetched_at"),
        },
    }
    if not summary.empty:
        payload["charts"]["mpi_by_group"] = to_vega_spec(mpi_by_group_chart(summary))
    return payload
