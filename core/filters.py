from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import FrozenSet, List, Literal, Optional

MPI_COLUMNS: List[str] = ["mpi_next_7", "mpi_next_30", "mpi_next_60", "mpi_next_90", "mpi_next_120"]
GROUP_COLUMN = "group"
COUNT_COLUMN = "count"
SORTABLE_COLUMNS: List[str] = [GROUP_COLUMN, COUNT_COLUMN, *MPI_COLUMNS]

Direction = Literal["asc", "desc"]


@dataclass(frozen=True)
class SortConfig:
    key: Optional[str] = None
    direction: Direction = "asc"


@dataclass(frozen=True)
class TableState:
    sort: SortConfig = field(default_factory=SortConfig)
    expanded_groups: FrozenSet[str] = field(default_factory=frozenset)


def toggle_sort(current: SortConfig, key: str) -> SortConfig:
    """Clicking the active ascending column flips it; any other click sorts ascending."""
    if current.key == key and current.direction == "asc":
        return SortConfig(key=key, direction="desc")
    return SortConfig(key=key, direction="asc")


def toggle_group(state: TableState, group: str) -> TableState:
    group = str(group)
    expanded = set(state.expanded_groups)
    if group in expanded:
        expanded.discard(group)
    else:
        expanded.add(group)
    return replace(state, expanded_groups=frozenset(expanded))


def normalize_sort(raw: Optional[dict]) -> SortConfig:
    raw = raw or {}
    key = raw.get("key") or raw.get("sort_key")
    key = str(key).strip() if key is not None else None
    if key not in SORTABLE_COLUMNS:
        key = None

    direction = str(raw.get("direction") or "asc").strip().lower()
    if direction not in ("asc", "desc"):
        direction = "asc"
    return SortConfig(key=key, direction=direction)  # type: ignore[arg-type]


def normalize_state(raw: Optional[dict]) -> TableState:
    raw = raw or {}
    sort_raw = raw.get("sort")
    sort = normalize_sort(sort_raw if isinstance(sort_raw, dict) else raw)
    expanded = frozenset(str(g) for g in (raw.get("expanded_groups") or []) if g is not None)
    return TableState(sort=sort, expanded_groups=expanded)
