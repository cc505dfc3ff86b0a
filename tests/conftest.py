"""
Shared test fixtures.

The Supabase double keeps rows per table and applies filters, ordering,
upserts and deletes, so services can be exercised end to end without a
database.
"""

import os
import sys
from pathlib import Path

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from unittest.mock import patch
from datetime import datetime
from itertools import count
from typing import Generator
from zoneinfo import ZoneInfo

from tests.factories import ProductFactory

PARIS = ZoneInfo("Europe/Paris")


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        else:
            self.count = len(self.data) if isinstance(self.data, list) else int(bool(self.data))


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str, op: str, payload=None, on_conflict: str = None):
        self._client = client
        self._table = table
        self._op = op
        self._payload = payload
        self._on_conflict = on_conflict
        self._filters = []
        self._order = None
        self._limit = None
        self._is_single = False

    # Filters compare as strings: ids, ISO dates and statuses all sort
    # and match correctly that way.
    def eq(self, column, value):
        self._filters.append(lambda row: str(row.get(column)) == str(value))
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: str(row.get(column)) != str(value))
        return self

    def in_(self, column, values):
        wanted = {str(v) for v in values}
        self._filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def lt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and str(row.get(column)) < str(value))
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and str(row.get(column)) >= str(value))
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._is_single = True
        return self

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self._filters)

    def execute(self) -> MockSupabaseResponse:
        self._client._check_failure(self._table, self._op)
        self._client.calls.append((self._table, self._op))
        rows = self._client._rows(self._table)

        if self._op == "select":
            data = [dict(r) for r in rows if self._matches(r)]
            if self._order:
                column, desc = self._order
                data.sort(key=lambda r: str(r.get(column) or ""), reverse=desc)
            if self._limit is not None:
                data = data[:self._limit]
        elif self._op == "insert":
            data = [self._client._insert(self._table, item) for item in self._items()]
        elif self._op == "upsert":
            data = [self._client._upsert(self._table, item, self._on_conflict) for item in self._items()]
        elif self._op == "update":
            data = []
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
                    data.append(dict(row))
        elif self._op == "delete":
            data = [dict(r) for r in rows if self._matches(r)]
            rows[:] = [r for r in rows if not self._matches(r)]
        else:
            data = []

        if self._client._is_hidden(self._table, self._op):
            data = []

        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None)
        return MockSupabaseResponse(data=data)

    def _items(self) -> list:
        if isinstance(self._payload, dict):
            return [self._payload]
        return list(self._payload or [])


class MockSupabaseTable:
    """Entry point for queries on one table."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name, "select")

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name, "insert", payload=data)

    def upsert(self, data, on_conflict: str = None, **kwargs):
        return MockSupabaseQuery(self._client, self._name, "upsert", payload=data, on_conflict=on_conflict)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name, "update", payload=data)

    def delete(self):
        return MockSupabaseQuery(self._client, self._name, "delete")


class MockSupabaseClient:
    """Mock Supabase client with in-memory tables."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._failures: dict[tuple[str, str], str] = {}
        self._hidden: set[tuple[str, str]] = set()
        self._ids = count(1)
        self.calls: list[tuple[str, str]] = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def get_table_data(self, table_name: str) -> list:
        """Current rows of a table."""
        return [dict(row) for row in self._rows(table_name)]

    def fail(self, table_name: str, message: str, op: str = "*"):
        """Make every `op` on table_name raise with message."""
        self._failures[(table_name, op)] = message

    def hide(self, table_name: str, op: str = "*"):
        """Run `op` on table_name but return no rows, as RLS read policies do."""
        self._hidden.add((table_name, op))

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        return MockSupabaseTable(self, name)

    def _rows(self, table_name: str) -> list:
        return self._tables.setdefault(table_name, [])

    def _is_hidden(self, table_name: str, op: str) -> bool:
        return (table_name, op) in self._hidden or (table_name, "*") in self._hidden

    def _check_failure(self, table_name: str, op: str):
        message = self._failures.get((table_name, op)) or self._failures.get((table_name, "*"))
        if message:
            raise Exception(message)

    def _insert(self, table_name: str, item: dict) -> dict:
        row = dict(item)
        row.setdefault("id", f"{table_name}-{next(self._ids)}")
        row.setdefault("created_at", datetime.utcnow().isoformat() + "Z")
        self._rows(table_name).append(row)
        return dict(row)

    def _upsert(self, table_name: str, item: dict, on_conflict: str = None) -> dict:
        keys = on_conflict.split(",") if on_conflict else ["id"]
        for row in self._rows(table_name):
            if all(k in item and str(row.get(k)) == str(item[k]) for k in keys):
                row.update(item)
                return dict(row)
        return self._insert(table_name, item)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "p1", "name": "Croissant", ...}
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
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.order_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.product_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def memory_store():
    """Fresh in-memory snapshot store."""
    from services.snapshot_store import MemorySnapshotStore
    return MemorySnapshotStore()


@pytest.fixture
def becus_products() -> list:
    """Becus catalog rows, one per department plus an inactive one."""
    return [
        ProductFactory.create(id="p-croissant", name="Croissant", dept="Pâtisserie", price=0.45),
        ProductFactory.create(id="p-baguette", name="Baguette", dept="Boulangerie", price=0.30),
        ProductFactory.create(id="p-sachet", name="Sachets kraft", dept="Vente", price=12.5),
        ProductFactory.create(id="p-levure", name="Levure", dept=None, price=3),
        ProductFactory.create(id="p-old", name="Ancien produit", dept="Vente", active=False),
    ]


@pytest.fixture
def lifecycle(mock_db, mock_supabase, memory_store, becus_products):
    """OrderLifecycle wired to the mock database and an in-memory store."""
    from services.lifecycle_service import OrderLifecycle
    from services.order_service import OrderService
    from services.product_service import ProductService

    mock_supabase.set_table_data("products", becus_products)
    return OrderLifecycle(
        order_service=OrderService(),
        product_service=ProductService(),
        snapshot_store=memory_store,
    )


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/suppliers")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
