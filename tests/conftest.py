"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("ENVIRONMENT", "development")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator

from tests.fakes import (
    FakeCSVSourceService,
    FakeImportSessionService,
    FakeInventoryService,
    FakeSkuErrorService,
)

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, table: "MockSupabaseTable", data: list = None, count: int = None):
        self._table = table
        self._data = data or []
        self._count = count

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        if isinstance(data, dict):
            data = [data]
        rows = []
        for item in data:
            row = dict(item)
            self._table._next_id += 1
            row.setdefault("id", f"test-uuid-{self._table._next_id}")
            row["created_at"] = datetime.utcnow().isoformat() + "Z"
            row["updated_at"] = datetime.utcnow().isoformat() + "Z"
            rows.append(row)
        self._table.inserted.extend(rows)
        self._data = rows
        return self

    def delete(self):
        return self

    def eq(self, column, value):
        self._data = [row for row in self._data if row.get(column) == value]
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        self._data = self._data[start:end + 1]
        return self

    def limit(self, count):
        self._data = self._data[:count]
        return self

    def execute(self) -> MockSupabaseResponse:
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable rows; records inserts and updates."""

    def __init__(self, data: list = None, count: int = None):
        self._data = data or []
        self._count = count
        self._next_id = 0
        self.inserted: list[dict] = []
        self.updates: list[dict] = []

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self, list(self._data), self._count)

    def insert(self, data):
        return MockSupabaseQuery(self, [], self._count).insert(data)

    def update(self, data):
        return _DeferredUpdate(self, data)

    def delete(self):
        return MockSupabaseQuery(self, list(self._data), self._count)


class _DeferredUpdate(MockSupabaseQuery):
    """Update whose filters apply before the merge; matched rows keep the change."""

    def __init__(self, table: MockSupabaseTable, data: dict):
        super().__init__(table, list(table._data))
        self._update = data

    def execute(self) -> MockSupabaseResponse:
        self._table.updates.append(self._update)
        for row in self._data:
            row.update(self._update)
        return MockSupabaseResponse(data=[dict(row) for row in self._data])


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = MockSupabaseTable(data, count)

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table (created empty on first use)."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("inventory_items", [
                {"id": "1", "sku": "A101-F", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any service constructed inside the fixture gets the mock client.
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.inventory_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.import_session_service.get_supabase_client", return_value=mock_supabase):
                with patch("services.sku_error_service.get_supabase_client", return_value=mock_supabase):
                    with patch("services.csv_source_service.get_supabase_client", return_value=mock_supabase):
                        yield mock_supabase


# ===================
# IN-MEMORY SERVICES
# ===================

@pytest.fixture
def inventory() -> FakeInventoryService:
    """Empty in-memory inventory."""
    return FakeInventoryService()


@pytest.fixture
def sessions() -> FakeImportSessionService:
    """In-memory import session store."""
    return FakeImportSessionService()


@pytest.fixture
def sku_errors() -> FakeSkuErrorService:
    """In-memory SKU error store."""
    return FakeSkuErrorService()


@pytest.fixture
def csv_sources() -> FakeCSVSourceService:
    """CSV sources with canned rows per URL."""
    return FakeCSVSourceService()


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/inventory")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
