"""Server-side proxy to the PriceLabs listings API.

The API key never leaves the server: the view talks to our endpoint, which
adds the `X-API-Key` header, forwards the GET and hands back either the
upstream JSON (plus rate-limit `_meta`) or an error body with the upstream
status code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import requests

from core.config import Settings, get_settings


logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def is_success(status_code: int) -> bool:
    """Only 2xx counts; `requests.Response.ok` also accepts unfollowed 3xx."""
    return 200 <= status_code < 300


@dataclass(frozen=True)
class RateLimitInfo:
    remaining: Optional[str] = None
    reset: Optional[str] = None
    limit: Optional[str] = None


@dataclass
class ProxyResult:
    status_code: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return is_success(self.status_code)


def mask_key(api_key: Optional[str], visible: int = 8) -> str:
    if not api_key:
        return "<missing>"
    return f"{api_key[:visible]}..."


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimitInfo:
    # requests exposes a case-insensitive mapping.
    return RateLimitInfo(
        remaining=headers.get("x-ratelimit-remaining"),
        reset=headers.get("x-ratelimit-reset"),
        limit=headers.get("x-ratelimit-limit"),
    )


def _reset_datetime(reset: Optional[str]) -> Optional[datetime]:
    if reset is None or str(reset).strip() == "":
        return None
    try:
        return datetime.fromtimestamp(float(reset), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def format_reset_iso(reset: Optional[str]) -> str:
    """Epoch seconds -> `2024-05-01T12:00:00.000Z`, or "unknown"."""
    ts = _reset_datetime(reset)
    if ts is None:
        return UNKNOWN
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_reset_local(reset: Optional[str]) -> str:
    ts = _reset_datetime(reset)
    if ts is None:
        return UNKNOWN
    return ts.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def build_headers(settings: Settings) -> Dict[str, str]:
    return {
        "X-API-Key": settings.api_key,
        "Content-Type": "application/json",
    }


def _rate_limited(info: RateLimitInfo, error_text: str) -> ProxyResult:
    return ProxyResult(
        status_code=429,
        payload={
            "error": "Rate limit exceeded",
            "message": f"Too many requests. Rate limit resets at: {format_reset_local(info.reset)}",
            "rateLimitRemaining": info.remaining or 0,
            "rateLimitReset": info.reset,
            "errorDetails": error_text,
        },
    )


def fetch_listings(settings: Optional[Settings] = None, *, session: Optional[requests.Session] = None) -> ProxyResult:
    settings = settings or get_settings()
    http = session or requests

    logger.info("Listings proxy called at %s", datetime.now(timezone.utc).isoformat())
    logger.info("API key configured: %s (length %d)", settings.api_key_configured, len(settings.api_key))
    if not settings.api_key_configured:
        logger.warning("PRICELABS_API_KEY is not set; upstream will likely reject the request")

    try:
        headers = build_headers(settings)
        logger.debug(
            "Request headers: %s",
            {"X-API-Key": mask_key(settings.api_key), "Content-Type": headers["Content-Type"]},
        )
        response = http.get(settings.api_url, headers=headers, timeout=settings.timeout)
        logger.info("Upstream status: %s", response.status_code)

        info = parse_rate_limit(response.headers)
        logger.info("Rate limit info: remaining=%s reset=%s limit=%s", info.remaining, info.reset, info.limit)

        if not is_success(response.status_code):
            error_text = response.text
            logger.error("Upstream error body: %s", error_text)
            if response.status_code == 429:
                return _rate_limited(info, error_text)
            return ProxyResult(
                status_code=response.status_code,
                payload={
                    "error": f"PriceLabs API error: {response.status_code} {response.reason}",
                    "details": error_text,
                },
            )

        data = response.json()
        listings = data.get("listings") if isinstance(data, dict) else None
        logger.info("Listings received: %d", len(listings) if isinstance(listings, list) else 0)

        payload: Dict[str, Any] = dict(data) if isinstance(data, dict) else {"data": data}
        payload["_meta"] = {
            "rateLimitRemaining": info.remaining or UNKNOWN,
            "rateLimitReset": format_reset_iso(info.reset),
            "rateLimitLimit": info.limit or UNKNOWN,
        }
        return ProxyResult(status_code=200, payload=payload)
    except Exception as exc:
        logger.exception("Listings proxy failed")
        return ProxyResult(status_code=500, payload={"error": "Internal server error", "message": str(exc)})
