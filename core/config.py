from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv


PROJECT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_API_URL = "https://api.pricelabs.co/v1/listings"
DEFAULT_PROXY_URL = "http://127.0.0.1:8000/api/pricelabs/listings"
DEFAULT_COOLDOWN_SECONDS = 120
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_CORS_ORIGINS = "http://localhost:8501,http://127.0.0.1:8501"


def _get(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _get_int(key: str, default: int) -> int:
    try:
        return int(_get(key, str(default)))
    except ValueError:
        return default


def _get_list(key: str, default: str = "") -> List[str]:
    raw = _get(key, default)
    return [x.strip() for x in raw.split(",") if x.strip()]


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    timeout: int = DEFAULT_TIMEOUT_SECONDS
    proxy_url: str = DEFAULT_PROXY_URL
    refresh_cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    cors_origins: List[str] = field(default_factory=list)

    @property
    def api_key_configured(self) -> bool:
        return bool(self.api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings from the environment (and `.env` at the project root, if present)."""
    load_dotenv(PROJECT_DIR / ".env")
    return Settings(
        api_key=_get("PRICELABS_API_KEY"),
        api_url=_get("PRICELABS_API_URL", DEFAULT_API_URL) or DEFAULT_API_URL,
        timeout=max(1, _get_int("PRICELABS_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)),
        proxy_url=_get("PROXY_URL", DEFAULT_PROXY_URL) or DEFAULT_PROXY_URL,
        refresh_cooldown_seconds=max(0, _get_int("REFRESH_COOLDOWN_SECONDS", DEFAULT_COOLDOWN_SECONDS)),
        cors_origins=_get_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
    )
