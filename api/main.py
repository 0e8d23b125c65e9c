from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import (
    GroupTableResponse,
    HealthResponse,
    InternalErrorModel,
    ListingsResponseModel,
    RateLimitErrorModel,
    UpstreamErrorModel,
)
from core.config import get_settings
from core.data import DashboardDataError, build_dashboard_data, prepare_context
from core.filters import TableState, normalize_sort
from core.metrics_groups import compute_group_table
from core.upstream import fetch_listings


app = FastAPI(title="PriceLabs MPI Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _encode(data: object) -> object:
    """Encode pandas/numpy objects into plain JSON types (NaN/inf -> None)."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return jsonable_encoder(
        data,
        custom_encoder={
            type(pd.NA): lambda _: None,
            np.integer: int,
            float: _safe_float,
            np.floating: _safe_float,
            np.bool_: bool,
            np.ndarray: lambda arr: arr.tolist(),
            pd.Timestamp: lambda ts: ts.isoformat(),
        },
    )


def _json(data: object, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=_encode(data))


@app.get("/health")
def health():
    settings = get_settings()
    return _json(HealthResponse(status="ok", api_key_configured=settings.api_key_configured).model_dump())


LISTINGS_RESPONSES = {
    200: {"model": ListingsResponseModel, "description": "Upstream listings plus rate-limit `_meta`"},
    401: {"model": UpstreamErrorModel, "description": "Upstream error, status passed through"},
    404: {"model": UpstreamErrorModel, "description": "Upstream error, status passed through"},
    429: {"model": RateLimitErrorModel, "description": "Upstream rate limit exceeded"},
    500: {"model": InternalErrorModel, "description": "Proxy failure"},
}


@app.get("/api/pricelabs/listings", responses=LISTINGS_RESPONSES)
def pricelabs_listings():
    result = fetch_listings()
    return _json(result.payload, status_code=result.status_code)


@app.get("/api/pricelabs/groups")
def pricelabs_groups(
    sort_key: Optional[str] = Query(default=None),
    direction: str = Query(default="asc"),
    expanded: List[str] = Query(default=[]),
):
    result = fetch_listings()
    if not result.ok:
        return _json(result.payload, status_code=result.status_code)
    try:
        data_ctx = build_dashboard_data(result.payload)
        state = TableState(
            sort=normalize_sort({"key": sort_key, "direction": direction}),
            expanded_groups=frozenset(expanded),
        )
        ctx = prepare_context(state, data_ctx)
        payload = GroupTableResponse.model_validate(_encode(compute_group_table(state, ctx)))
        return _json(payload.model_dump())
    except DashboardDataError as exc:
        logger.warning("pricelabs_groups got an unusable payload: %s", exc)
        return JSONResponse(status_code=502, content={"error": str(exc), "type": type(exc).__name__})
    except Exception as exc:
        logger.exception("pricelabs_groups failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})
