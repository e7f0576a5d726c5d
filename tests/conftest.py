"""Shared fixtures: fake POS API session and in-memory spreadsheet."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from pos_sync.client import PosApiClient
from pos_sync.config import SyncConfig
from pos_sync.exceptions import SinkWriteError
from pos_sync.sink import ReportWriter, Sheet, TabularStore

BASE_URL = "https://pos.test/v1.0"
BANGKOK = ZoneInfo("Asia/Bangkok")

# 15:00 in Bangkok: inside the 13:00-01:00 window
IN_WINDOW = datetime(2025, 6, 10, 15, 0, tzinfo=BANGKOK)
# 09:30 in Bangkok: outside the window
OUT_OF_WINDOW = datetime(2025, 6, 10, 9, 30, tzinfo=BANGKOK)


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, reason: str = "OK") -> None:
        self.status_code = status_code
        self.reason = reason
        self._body = body

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


def page(key: str, records: list[dict], cursor: str | None = None) -> FakeResponse:
    return FakeResponse(200, {key: records, "cursor": cursor})


def error(status: int, reason: str) -> FakeResponse:
    return FakeResponse(status, {"errors": [{"code": reason}]}, reason)


class FakeSession:
    """Stands in for requests.Session.

    Routes map a resource path to a response, a list of responses served in
    order (the last one repeats), a callable receiving the query params, or
    an exception to raise.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[tuple[str, dict]] = []
        self.headers: list[dict] = []

    def get(self, url: str, params: dict | None = None, headers: dict | None = None, **kwargs: Any) -> FakeResponse:
        path = url[len(BASE_URL) + 1:]
        query = dict(params or {})
        self.calls.append((path, query))
        self.headers.append(dict(headers or {}))

        route = self.routes.get(path)
        if route is None:
            raise AssertionError(f"Unexpected request to {path}")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, list):
            return route.pop(0) if len(route) > 1 else route[0]
        if callable(route):
            return route(query)
        return route

    def paths(self) -> list[str]:
        return [path for path, _ in self.calls]


class FakeSheet(Sheet):
    def __init__(self, title: str, store: FakeStore) -> None:
        self._title = title
        self._store = store
        self.rows: list[list[Any]] = []
        self.formats: list[tuple[int, int, int, int, str]] = []

    @property
    def title(self) -> str:
        return self._title

    def _check(self, op: str) -> None:
        self._store.ops.append((self._title, op))
        if (self._title, op) in self._store.fail_on:
            raise SinkWriteError(f"{op} failed on {self._title}")

    def clear(self) -> None:
        self._check("clear")
        self.rows = []
        self.formats = []

    def set_header(self, header: list[str]) -> None:
        self._check("set_header")
        if self.rows:
            self.rows[0] = list(header)
        else:
            self.rows.append(list(header))

    def append_rows(self, rows: list[list[Any]]) -> None:
        self._check("append_rows")
        self.rows.extend(list(r) for r in rows)

    def append_row(self, row: list[Any]) -> None:
        self._check("append_row")
        self.rows.append(list(row))

    def format_range(self, first_row: int, first_col: int, last_row: int, last_col: int, pattern: str) -> None:
        self._check("format_range")
        self.formats.append((first_row, first_col, last_row, last_col, pattern))

    @property
    def header(self) -> list[Any]:
        return self.rows[0] if self.rows else []

    @property
    def data(self) -> list[list[Any]]:
        return self.rows[1:]


class FakeStore(TabularStore):
    def __init__(self) -> None:
        self.sheets: dict[str, FakeSheet] = {}
        self.ops: list[tuple[str, str]] = []
        self.fail_on: set[tuple[str, str]] = set()

    @property
    def title(self) -> str:
        return "Test Spreadsheet"

    def get_sheet(self, title: str) -> FakeSheet | None:
        return self.sheets.get(title)

    def add_sheet(self, title: str, cols: int) -> FakeSheet:
        sheet = FakeSheet(title, self)
        self.sheets[title] = sheet
        return sheet


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(session: FakeSession) -> PosApiClient:
    return PosApiClient("test-token", base_url=BASE_URL, session=session)  # type: ignore[arg-type]


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def writer(store: FakeStore) -> ReportWriter:
    return ReportWriter(store)


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig(
        api_token="test-token",
        spreadsheet_id="sheet-id",
        service_account_info={},
        api_base_url=BASE_URL,
        max_attempts=3,
        retry_delay_seconds=300.0,
    )
