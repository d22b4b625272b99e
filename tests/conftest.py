"""Shared fixtures: an in-memory Supabase stand-in, a scripted LLM and the API client."""

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from consultai import consultation, db, gemini

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)

TIMESTAMP_COLUMNS = {
    "reports": "generated_at",
    "messages": "timestamp",
}


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db_, table):
        self.db = db_
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.row_limit = None
        self.count_mode = None

    def select(self, columns="*", count=None):
        self.op = "select"
        self.count_mode = count
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def update(self, changes):
        self.op, self.payload = "update", changes
        return self

    def upsert(self, row, on_conflict="id"):
        self.op, self.payload = "upsert", (row, on_conflict)
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row):
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if self.table in self.db.failing:
            raise RuntimeError(f"{self.table} unavailable")
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.new_row(self.table, r) for r in payload]
            rows.extend(created)
            return FakeResponse([dict(r) for r in created])

        if self.op == "upsert":
            row, key = self.payload
            for existing in rows:
                if existing.get(key) == row.get(key):
                    existing.update(row)
                    return FakeResponse([dict(existing)])
            created = self.db.new_row(self.table, row)
            rows.append(created)
            return FakeResponse([dict(created)])

        matched = [r for r in rows if self._matches(r)]

        if self.op == "update":
            for r in matched:
                r.update(self.payload)
            return FakeResponse([dict(r) for r in matched])

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse([dict(r) for r in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or "", reverse=desc)
        if self.row_limit is not None:
            matched = matched[:self.row_limit]
        count = len(matched) if self.count_mode == "exact" else None
        return FakeResponse([dict(r) for r in matched], count=count)


class FakeSupabase:
    """Just enough of the supabase-py table API for the data-access modules."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failing: set[str] = set()
        self._tick = 0

    def new_row(self, table, row):
        self._tick += 1
        stamp = (BASE_TIME + timedelta(seconds=self._tick)).isoformat()
        created = {"id": str(uuid.uuid4()), "created_at": stamp, **row}
        if table in TIMESTAMP_COLUMNS:
            created.setdefault(TIMESTAMP_COLUMNS[table], stamp)
        return created

    def table(self, name):
        return FakeQuery(self, name)


class FakeLLM:
    """Replays scripted replies and records the prompts it was sent."""

    def __init__(self):
        self.responses: list[str] = []
        self.prompts: list[str] = []

    def invoke(self, messages):
        self.prompts.append(messages[-1][1])
        if not self.responses:
            raise RuntimeError("FakeLLM has no scripted response left")
        return SimpleNamespace(content=self.responses.pop(0))


@pytest.fixture
def fake_db(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(db, "_client", fake)
    return fake


@pytest.fixture
def fake_llm(monkeypatch):
    llm = FakeLLM()
    monkeypatch.setattr(gemini, "_build_llm", lambda: llm)
    return llm


@pytest.fixture(autouse=True)
def clear_flows():
    consultation._flows.clear()
    yield
    consultation._flows.clear()


@pytest.fixture
def client(fake_db):
    from consultai.main import app

    return TestClient(app)
