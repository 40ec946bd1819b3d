"""Pytest configuration and fixtures for test suite."""

import sys
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

import pytest

# Add src directory to path for imports
SRC_PATH = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_PATH))

from patronsync.directory import MatchCandidate, SearchOptions, SearchResult  # noqa: E402
from patronsync.engine import ClientConfig, IngestConfig, parse_config  # noqa: E402
from patronsync.errors import DirectoryError  # noqa: E402
from patronsync.models import StudentRecord  # noqa: E402

TODAY = date(2026, 3, 15)

CLIENT_DATA: dict[str, Any] = {
    "id": "01",
    "namespace": "pps",
    "name": "Test District",
    "schema": "district",
    "contact": "district@example.org",
    "email_reports": True,
    "email_domains": [r"@student\.example\.org$"],
    "adult_age": 13,
    "default_state": "OR",
    "private_address": {"address": "205 NE Russell St", "city": "Portland", "zipcode": "97212"},
    "new_defaults": {
        "user_profile": "ADULT",
        "youth_profile": "YOUTH",
        "home_library": "MAIN",
        "user_categories": {"1": "STUDENT", "2": "SCHOOL01", "3": "PPS", "7": "K12"},
    },
    "overlay_defaults": {
        "user_profile": "ADULT",
        "youth_profile": "YOUTH",
        "home_library": "MAIN",
        "user_categories": {"1": "STUDENT", "3": "PPS", "7": "K12"},
    },
}


def config_data(**overrides: Any) -> dict[str, Any]:
    """Complete configuration mapping for one test client."""
    data: dict[str, Any] = {
        "log_dir": "log",
        "admin_contact": "admin@example.org",
        "directory": {
            "base_url": "https://ils.example.org/ilsws",
            "client_id": "TEST_CLIENT",
            "app_id": "patronsync",
            "username": "ingest",
            "password": "secret",
            "user_privilege_override": "OVERRIDE",
            "retry_backoff": 0,
        },
        "database": {"url": "sqlite://"},
        "smtp": {"host": "localhost", "port": 25, "from": "noreply@example.org"},
        "clients": [dict(CLIENT_DATA)],
    }
    data.update(overrides)
    return data


class FakeDirectory:
    """In-memory patron directory recording every call."""

    def __init__(self) -> None:
        self.results: dict[tuple[str, str], SearchResult] = {}
        self.failing_indexes: set[str] = set()
        self.searches: list[tuple[str, str, SearchOptions]] = []
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self.write_failures = 0
        self.logins = 0
        self.closed = False
        self._next_key = 5000

    def add(
        self, index: str, value: str, *candidates: MatchCandidate, total: int | None = None
    ) -> None:
        total_results = len(candidates) if total is None else total
        self.results[(index, value)] = SearchResult(total_results, list(candidates))

    def authenticate(self) -> str:
        self.logins += 1
        return "token-1"

    def search(self, token: str, index: str, value: str, options: SearchOptions) -> SearchResult:
        self.searches.append((index, value, options))
        if index in self.failing_indexes:
            raise DirectoryError("Service unavailable", status_code=503)
        return self.results.get((index, value), SearchResult(total_results=0, results=[]))

    def create(self, token: str, payload: dict[str, Any]) -> str:
        self._maybe_fail()
        self.created.append(payload)
        self._next_key += 1
        return str(self._next_key)

    def update(self, token: str, key: str, payload: dict[str, Any]) -> str:
        self._maybe_fail()
        self.updated.append((key, payload))
        return key

    def _maybe_fail(self) -> None:
        if self.write_failures:
            self.write_failures -= 1
            raise DirectoryError("Internal error", status_code=500)

    def close(self) -> None:
        self.closed = True

    @property
    def searched_indexes(self) -> list[str]:
        return [index for index, _, _ in self.searches]


def candidate(key: str | None, barcode: str | None = None, **fields: Any) -> MatchCandidate:
    """Remote patron reference with name fields for reporting."""
    data: dict[str, Any] = {"firstName": "Ana", "lastName": "Lopez", **fields}
    if barcode is not None:
        data["barcode"] = barcode
    return MatchCandidate(key=key, fields=data)


@pytest.fixture
def make_student() -> Callable[..., StudentRecord]:
    """Factory for validated student records with overridable fields."""

    def _factory(**overrides: Any) -> StudentRecord:
        values: dict[str, Any] = {
            "student_id": "123456",
            "first_name": "Ana",
            "middle_name": None,
            "last_name": "Lopez",
            "address": "123 Main St # 4",
            "city": "Portland",
            "state": "OR",
            "zipcode": "97214",
            "dob": date(2010, 2, 14),
            "email": None,
        }
        values.update(overrides)
        return StudentRecord(**values)

    return _factory


@pytest.fixture
def client() -> ClientConfig:
    """Client configuration with the standard patron field layout."""
    return ClientConfig.from_dict(CLIENT_DATA)


@pytest.fixture
def ingest_config(tmp_path: Path) -> IngestConfig:
    """Installation configuration logging under tmp_path."""
    return parse_config(config_data(log_dir=str(tmp_path / "log")))


@pytest.fixture
def fake_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def today() -> date:
    return TODAY
