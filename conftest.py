"""Pytest configuration and fixtures."""

import asyncio
import os
from datetime import datetime, timezone

# Unit tests never touch a real database file or remote project
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("SYNC_ENABLED", "true")

import httpx
import pytest

import database
from app_state import SessionState
from reconciliation import ReconciliationEngine
from record_store import RecordStore
from remote_client import RemoteTableError

USER = "user-1"
DEBOUNCE = 0.1


def at(hour: int, minute: int = 0) -> datetime:
    """A fixed UTC timestamp on a fixed day."""
    return datetime(2026, 3, 14, hour, minute, tzinfo=timezone.utc)


class FakeRemoteTable:
    """In-memory stand-in for the remote tables, keyed by item_id."""

    def __init__(self):
        self.tables = {}
        self.selects = []
        self.upserts = []
        self.completed_upserts = []
        self.fail_select = False
        self.fail_upsert = set()
        self.raw_select = {}
        self.select_delay = 0.0
        self.upsert_delay = 0.0
        self.active_selects = 0
        self.max_active_selects = 0

    def seed(self, table, rows):
        for row in rows:
            self.tables.setdefault(table, {})[row["item_id"]] = dict(row)

    async def select_where(self, table, field, value):
        self.selects.append((table, field, value))
        self.active_selects += 1
        self.max_active_selects = max(self.max_active_selects, self.active_selects)
        try:
            if self.select_delay:
                await asyncio.sleep(self.select_delay)
            if self.fail_select:
                raise RemoteTableError(table, 503, "service unavailable")
            if table in self.raw_select:
                return self.raw_select[table]
            return [dict(r) for r in self.tables.get(table, {}).values() if r.get(field) == value]
        finally:
            self.active_selects -= 1

    async def upsert_many(self, table, rows, on_conflict="item_id"):
        self.upserts.append((table, rows))
        if table in self.fail_upsert:
            raise httpx.ConnectError("network unreachable")
        if self.upsert_delay:
            await asyncio.sleep(self.upsert_delay)
        self.seed(table, rows)
        self.completed_upserts.append(table)

    def upserted_tables(self):
        return [table for table, _ in self.upserts]


class RecordingObserver:
    def __init__(self):
        self.events = []

    def on_failure(self, event):
        self.events.append(event)

    def stages(self):
        return [(e.stage, e.kind) for e in self.events]


@pytest.fixture
def store():
    """Record store on a fresh in-memory database."""
    return RecordStore(database.create_session_factory(database.build_engine("sqlite://")))


@pytest.fixture
def remote():
    return FakeRemoteTable()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def state(store):
    return SessionState(store)


@pytest.fixture
def engine(state, store, remote, observer):
    return ReconciliationEngine(
        state, store, remote, observer=observer, debounce_seconds=DEBOUNCE, enabled=True
    )
