from __future__ import annotations

from typing import Any, Dict, List

import altair as alt
import pandas as pd

from core.filters import GROUP_COLUMN, MPI_COLUMNS

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def horizon_label(column: str) -> str:
    return column.replace("mpi_next_", "MPI Next ")


def mpi_long_frame(summary: pd.DataFrame, columns: List[str] = MPI_COLUMNS) -> pd.DataFrame:
    if summary.empty:
        return pd.DataFrame(columns=[GROUP_COLUMN, "horizon", "mpi"])
    long_df = summary.melt(id_vars=GROUP_COLUMN, value_vars=columns, var_name="horizon", value_name="mpi")
    long_df = long_df.dropna(subset=["mpi"])
    long_df["horizon"] = long_df["horizon"].map(horizon_label)
    return long_df


def mpi_by_group_chart(summary: pd.DataFrame) -> alt.Chart:
    long_df = mpi_long_frame(summary)
    horizon_order = [horizon_label(c) for c in MPI_COLUMNS]
    hover = alt.selection_point(fields=["horizon"], on="mouseover", empty="all")
    return (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X(f"{GROUP_COLUMN}:N", title="Group", sort=None),
            xOffset=alt.XOffset("horizon:N", sort=horizon_order),
            y=alt.Y("mpi:Q", title="Average MPI (x100)"),
            color=alt.Color("horizon:N", title="Horizon", sort=horizon_order),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.3)),
            tooltip=[
                alt.Tooltip(f"{GROUP_COLUMN}:N", title="Group"),
                alt.Tooltip("horizon:N", title="Horizon"),
                alt.Tooltip("mpi:Q", title="MPI", format=".1f"),
            ],
        )
        .add_params(hover)
    )
