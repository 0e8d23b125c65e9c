from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from requests.structures import CaseInsensitiveDict

from core.config import get_settings


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        text: str = "",
        headers: Optional[Dict[str, str]] = None,
        reason: str = "OK",
    ):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.headers = CaseInsensitiveDict(headers or {})
        self.reason = reason

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if isinstance(self._json, Exception):
            raise self._json
        return self._json


class FakeSession:
    """Stands in for `requests` / `requests.Session`: records calls, replays one response."""

    def __init__(self, response: Optional[FakeResponse] = None, error: Optional[Exception] = None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    for key in [
        "PRICELABS_API_KEY",
        "PRICELABS_API_URL",
        "PRICELABS_TIMEOUT",
        "PROXY_URL",
        "REFRESH_COOLDOWN_SECONDS",
        "CORS_ORIGINS",
    ]:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_listings() -> List[Dict[str, Any]]:
    return [
        {"id": "L1", "group": "Downtown", "mpi_next_7": 0.9, "mpi_next_30": 1.1, "mpi_next_60": None,
         "location": {"city": "Austin", "geo": {"lat": 30.2, "lng": -97.7}}},
        {"id": "L2", "group": "Downtown", "mpi_next_7": "1.1", "mpi_next_30": 0.9, "mpi_next_60": None},
        {"id": "L3", "group": "Lakeside", "mpi_next_7": 0.5, "mpi_next_30": "n/a", "mpi_next_60": 0.8},
        {"id": "L4", "group": None, "mpi_next_7": 2.0},
        {"id": "L5", "mpi_next_7": 3.0},
        {"group": "Airport", "mpi_next_7": 1.2, "mpi_next_30": 1.0},
    ]


@pytest.fixture
def make_session():
    def _make(status_code: int = 200, json_data: Any = None, text: str = "", headers=None, reason: str = "OK", error=None):
        return FakeSession(FakeResponse(status_code, json_data, text, headers, reason), error=error)

    return _make
