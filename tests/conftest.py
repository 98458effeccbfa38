"""
Shared test fixtures.

The Supabase double keeps rows in memory and applies the same filters
the services chain (eq, neq, lt/lte/gt/gte, in_, order, limit), so
service tests exercise real reads after writes.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SMTP_ENABLED", "false")

import copy
import pytest
from contextlib import ExitStack
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Any, Generator, Optional
from uuid import uuid4

from tests.factories import SettingsFactory, unique_violation

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


def _comparable(left: Any, right: Any) -> bool:
    return left is not None and right is not None


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._action = "select"
        self._payload: Any = None
        self._filters: list = []
        self._order: list = []
        self._limit: Optional[int] = None
        self._offset = 0

    # Actions

    def select(self, *args, **kwargs):
        self._action = "select"
        return self

    def insert(self, data):
        self._action = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._action = "update"
        self._payload = data
        return self

    def delete(self):
        self._action = "delete"
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def lt(self, column, value):
        self._filters.append(lambda row: _comparable(row.get(column), value) and row[column] < value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda row: _comparable(row.get(column), value) and row[column] <= value)
        return self

    def gt(self, column, value):
        self._filters.append(lambda row: _comparable(row.get(column), value) and row[column] > value)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: _comparable(row.get(column), value) and row[column] >= value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    # Modifiers

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        self._offset = start
        self._limit = end - start + 1
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    def execute(self) -> MockSupabaseResponse:
        self._client.raise_pending_failure(self._table, self._action)
        rows = self._client.rows(self._table)

        if self._action == "insert":
            return MockSupabaseResponse(data=self._client.insert_rows(self._table, self._payload))

        if self._action == "update":
            targets = [row for row in rows if self._matches(row)]
            return MockSupabaseResponse(data=self._client.update_rows(self._table, targets, self._payload))

        if self._action == "delete":
            removed = [row for row in rows if self._matches(row)]
            self._client.set_table_data(self._table, [row for row in rows if row not in removed])
            return MockSupabaseResponse(data=copy.deepcopy(removed))

        result = [row for row in rows if self._matches(row)]
        for column, desc in reversed(self._order):
            present = [row for row in result if row.get(column) is not None]
            missing = [row for row in result if row.get(column) is None]
            result = sorted(present, key=lambda row: row[column], reverse=desc) + missing
        count = len(result)
        result = result[self._offset:]
        if self._limit is not None:
            result = result[:self._limit]
        return MockSupabaseResponse(data=copy.deepcopy(result), count=count)


class MockSupabaseTable:
    """Mock Supabase table; every call starts a fresh query."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name).update(data)

    def delete(self):
        return MockSupabaseQuery(self._client, self._name).delete()


class MockSupabaseClient:
    """Mock Supabase client holding rows per table."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._unique: dict[str, list[str]] = {}
        self._failures: dict[tuple, list[Exception]] = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def set_unique(self, table_name: str, *columns: str):
        """Reject inserts/updates that duplicate these columns (Postgres 23505)."""
        self._unique[table_name] = list(columns)

    def fail_next(self, table_name: str, action: str, error: Exception, times: int = 1):
        """Raise error on the next `times` calls of action on the table."""
        self._failures.setdefault((table_name, action), []).extend([error] * times)

    def rows(self, table_name: str) -> list[dict]:
        """Stored rows (live list, for assertions)."""
        return self._tables.setdefault(table_name, [])

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        return MockSupabaseTable(self, name)

    # Internals used by MockSupabaseQuery

    def raise_pending_failure(self, table_name: str, action: str):
        pending = self._failures.get((table_name, action))
        if pending:
            raise pending.pop(0)

    def _check_unique(self, table_name: str, candidates: list[dict], others: list[dict]):
        for column in self._unique.get(table_name, []):
            seen = {row.get(column) for row in others if row.get(column) is not None}
            for row in candidates:
                value = row.get(column)
                if value is None:
                    continue
                if value in seen:
                    raise unique_violation(table_name, column)
                seen.add(value)

    def insert_rows(self, table_name: str, payload) -> list[dict]:
        items = [payload] if isinstance(payload, dict) else list(payload)
        now = datetime.now(timezone.utc).isoformat()
        new_rows = []
        for item in items:
            row = {"id": str(uuid4()), "created_at": now, **copy.deepcopy(item)}
            new_rows.append(row)

        stored = self.rows(table_name)
        self._check_unique(table_name, new_rows, stored)
        stored.extend(new_rows)
        return copy.deepcopy(new_rows)

    def update_rows(self, table_name: str, targets: list[dict], changes: dict) -> list[dict]:
        stored = self.rows(table_name)
        untouched = [row for row in stored if row not in targets]
        merged = [{**row, **copy.deepcopy(changes)} for row in targets]
        self._check_unique(table_name, merged, untouched)

        for row in targets:
            row.update(copy.deepcopy(changes))
        return copy.deepcopy(targets)


# ===================
# FIXTURES
# ===================

# Modules that bind get_supabase_client at import
PATCHED_MODULES = (
    "config.database",
    "services.settings_service",
    "services.catalog_service",
    "services.calendar_service",
    "services.slot_service",
    "services.order_service",
    "services.refund_service",
    "services.checkout_service",
)

# Lazily created singletons that capture a client
SINGLETONS = (
    ("services.settings_service", "_settings_service"),
    ("services.catalog_service", "_catalog_service"),
    ("services.pricing_service", "_pricing_service"),
    ("services.calendar_service", "_calendar_service"),
    ("services.slot_service", "_slot_service"),
    ("services.order_service", "_order_service"),
    ("services.refund_service", "_refund_service"),
    ("services.checkout_service", "_checkout_service"),
    ("services.email_service", "_email_service"),
    ("integrations.woo", "_woo_client"),
)


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Every test builds its services against its own mock client."""
    import importlib

    for module_name, attribute in SINGLETONS:
        monkeypatch.setattr(importlib.import_module(module_name), attribute, None)


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("orders", [
                {"id": "1", "order_number": "1000", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("orders", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with ExitStack() as stack:
        for module_name in PATCHED_MODULES:
            stack.enter_context(
                patch(f"{module_name}.get_supabase_client", return_value=mock_supabase)
            )
        yield mock_supabase


@pytest.fixture
def shop_settings_row() -> dict:
    """Settings row used by most service tests."""
    return SettingsFactory.create()


@pytest.fixture
def seeded_db(mock_db, mock_supabase, shop_settings_row) -> "MockSupabaseClient":
    """Mock store with the settings row seeded."""
    mock_supabase.set_table_data("settings", [shop_settings_row])
    return mock_supabase


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("orders", [...])
            response = test_client_with_mock_db.get("/api/orders")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
