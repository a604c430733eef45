"""
Shared pytest fixtures.

Environment defaults are set before any project module is imported, since
shared.config builds its settings singleton at import time.
"""

import copy
import os
from collections import defaultdict
from datetime import datetime
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("GENERATION_API_URL", "https://provider.test/v1/chat/completions")
os.environ.setdefault("GENERATION_API_TOKEN", "test-provider-token")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-with-at-least-32-chars")

import pytest

from shared.database import DatabaseClient
from modules.job_store import JobStore
from modules.video_store import VideoStore


def _normalize(value: Any) -> Any:
    """Compare ISO timestamps as datetimes, everything else as-is."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


class FakeQuery:
    """Chainable stand-in for a PostgREST request builder over a list of rows."""

    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows
        self._op = "select"
        self._payload: Any = None
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None
        self._range: Optional[tuple] = None
        self._count: Optional[str] = None

    def select(self, *columns, count=None):
        self._op = "select"
        self._count = count
        return self

    def insert(self, payload):
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload):
        self._op, self._payload = "update", payload
        return self

    def _filter(self, column: str, predicate: Callable[[Any], bool]):
        self._filters.append(lambda row: predicate(row.get(column)))
        return self

    def eq(self, column, value):
        return self._filter(column, lambda v: v is not None and _normalize(v) == _normalize(value))

    def in_(self, column, values):
        return self._filter(column, lambda v: v in list(values))

    def is_(self, column, value):
        if value == "null":
            return self._filter(column, lambda v: v is None)
        return self._filter(column, lambda v: v is not None)

    def lt(self, column, value):
        return self._filter(column, lambda v: v is not None and _normalize(v) < _normalize(value))

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, size):
        self._limit = size
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        return [row for row in self._rows if all(f(row) for f in self._filters)]

    def execute(self):
        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = [copy.deepcopy(row) for row in payload]
            self._rows.extend(inserted)
            return SimpleNamespace(data=copy.deepcopy(inserted), count=None)

        matched = self._matching()

        if self._op == "update":
            for row in matched:
                row.update(copy.deepcopy(self._payload))
            return SimpleNamespace(data=copy.deepcopy(matched), count=None)

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: _normalize(row.get(column)), reverse=desc)
        total = len(matched) if self._count == "exact" else None
        if self._range:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[:self._limit]
        return SimpleNamespace(data=copy.deepcopy(matched), count=total)


class FakeSupabaseClient:
    """In-memory tables keyed by name."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.tables[name])


@pytest.fixture
def fake_supabase():
    """Empty in-memory Supabase client."""
    return FakeSupabaseClient()


@pytest.fixture
def db(fake_supabase):
    """DatabaseClient backed by the in-memory client, no retry delay."""
    return DatabaseClient(client=fake_supabase, retry_base_delay=0)


@pytest.fixture
def job_store(db):
    return JobStore(db)


@pytest.fixture
def video_store(db):
    return VideoStore(db)
