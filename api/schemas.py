from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RateLimitMetaModel(BaseModel):
    rateLimitRemaining: Union[str, int] = "unknown"
    rateLimitReset: str = "unknown"
    rateLimitLimit: Union[str, int] = "unknown"


class ListingsResponseModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    listings: List[Dict[str, Any]] = Field(default_factory=list)
    meta: RateLimitMetaModel = Field(default_factory=RateLimitMetaModel, alias="_meta")


class RateLimitErrorModel(BaseModel):
    error: str = "Rate limit exceeded"
    message: str
    rateLimitRemaining: Union[str, int] = 0
    rateLimitReset: Optional[str] = None
    errorDetails: str = ""


class UpstreamErrorModel(BaseModel):
    error: str
    details: str = ""


class InternalErrorModel(BaseModel):
    error: str = "Internal server error"
    message: str = ""


class SortConfigModel(BaseModel):
    key: Optional[str] = None
    direction: Literal["asc", "desc"] = "asc"


class TableStateModel(BaseModel):
    sort: SortConfigModel = Field(default_factory=SortConfigModel)
    expanded_groups: List[str] = Field(default_factory=list)


class GroupRowModel(BaseModel):
    group: str
    count: int
    mpi_next_7: Optional[float] = None
    mpi_next_30: Optional[float] = None
    mpi_next_60: Optional[float] = None
    mpi_next_90: Optional[float] = None
    mpi_next_120: Optional[float] = None


class ListingRowModel(BaseModel):
    label: str
    count: int = 1
    mpi_next_7: Optional[float] = None
    mpi_next_30: Optional[float] = None
    mpi_next_60: Optional[float] = None
    mpi_next_90: Optional[float] = None
    mpi_next_120: Optional[float] = None


class GroupTotalsModel(BaseModel):
    total_groups: int = 0
    total_listings: int = 0
    avg_listings_per_group: int = 0


class GroupTableResponse(BaseModel):
    state: TableStateModel
    columns: List[Dict[str, str]]
    kpis: GroupTotalsModel
    rows: List[GroupRowModel]
    expanded: Dict[str, List[ListingRowModel]] = Field(default_factory=dict)
    charts: Dict[str, Any] = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = "ok"
    api_key_configured: bool = False
