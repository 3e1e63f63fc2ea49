"""Test fixtures: in-memory record store and shared test data."""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from prompt_keeper.core.errors import NotFoundError
from prompt_keeper.db.client import RecordStore
from prompt_keeper.db.models import PROMPTS, TEAM_MEMBERS, TEAMS, USERS, UserRow, member_id


class MockRecordStore(RecordStore):
    """In-memory stand-in for the Supabase-backed store.

    Rows are copied in and out so callers never share state with the store,
    and a lock keeps it safe for the worker threads used by bulk operations.
    """

    def __init__(self):
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self.fail_on: dict[tuple[str, str], Exception] = {}

    @property
    def client(self):
        raise NotImplementedError("MockRecordStore has no Supabase client")

    def _check(self, op: str, table: str) -> None:
        error = self.fail_on.get((op, table))
        if error:
            raise error

    def get(self, table: str, id: str) -> dict[str, Any] | None:
        self._check("get", table)
        with self._lock:
            row = self._tables.get(table, {}).get(id)
            return copy.deepcopy(row) if row is not None else None

    def set(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        self._check("set", table)
        with self._lock:
            record = copy.deepcopy({**data, "id": id})
            self._tables.setdefault(table, {})[id] = record
            return copy.deepcopy(record)

    def insert(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        record = {"id": uuid4().hex, **data}
        return self.set(table, record["id"], record)

    def update(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        self._check("update", table)
        with self._lock:
            row = self._tables.get(table, {}).get(id)
            if row is None:
                raise NotFoundError(table, id)
            row.update(copy.deepcopy(data))
            return copy.deepcopy(row)

    def remove(self, table: str, id: str) -> None:
        self._check("remove", table)
        with self._lock:
            self._tables.get(table, {}).pop(id, None)

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self._check("select", table)
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._tables.get(table, {}).values()]
        if filters:
            for key, value in filters.items():
                rows = [r for r in rows if r.get(key) == value]
        if order_by:
            rows = sorted(rows, key=lambda r: r.get(order_by) or "", reverse=not ascending)
        if limit:
            rows = rows[:limit]
        return rows

    def rows(self, table: str) -> dict[str, dict[str, Any]]:
        """Raw view of a table, for assertions."""
        return copy.deepcopy(self._tables.get(table, {}))


USERS_SEED = [
    {"id": "admin", "email": "admin@example.com", "team_id": None, "role": "super_user"},
    {"id": "alice", "email": "alice@example.com", "team_id": "t1", "role": "user"},
    {"id": "bob", "email": "bob@example.com", "team_id": "t1", "role": "user"},
    {"id": "carol", "email": "carol@example.com", "team_id": "t2", "role": "user"},
    {"id": "dave", "email": "dave@example.com", "team_id": None, "role": "user"},
]

TEAMS_SEED = [
    {"id": "t1", "name": "Design", "created_by": "admin", "created_at": "2024-01-01T00:00:00+00:00"},
    {"id": "t2", "name": "Research", "created_by": "admin", "created_at": "2024-01-02T00:00:00+00:00"},
]


def add_prompt(db: MockRecordStore, prompt_id: str, **fields: Any) -> dict[str, Any]:
    """Store a prompt with sensible defaults."""
    now = datetime.now(timezone.utc).isoformat()
    data = {
        "title": f"Prompt {prompt_id}",
        "content": f"Content of {prompt_id}",
        "tags": [],
        "sharing": "private",
        "created_by": "alice",
        "team_id": None,
        "assigned_teams": [],
        "usage_count": 0,
        "last_used": None,
        "software": None,
        "created_at": now,
        "last_modified": now,
        "modified_by": "alice",
    }
    data.update(fields)
    return db.set(PROMPTS, prompt_id, data)


def as_user(user_id: str) -> dict[str, str]:
    return {"X-User-ID": user_id}


@pytest.fixture
def mock_db() -> MockRecordStore:
    """Fresh in-memory store with users, teams and memberships."""
    db = MockRecordStore()
    for user in USERS_SEED:
        db.set(USERS, user["id"], user)
    for team in TEAMS_SEED:
        db.set(TEAMS, team["id"], team)
    for user in USERS_SEED:
        if user["team_id"]:
            db.set(
                TEAM_MEMBERS,
                member_id(user["team_id"], user["id"]),
                {
                    "team_id": user["team_id"],
                    "user_id": user["id"],
                    "email": user["email"],
                    "role": "member",
                    "joined_at": "2024-01-03T00:00:00+00:00",
                },
            )
    return db


@pytest.fixture
def users() -> dict[str, UserRow]:
    return {u["id"]: UserRow(**u) for u in USERS_SEED}


@pytest.fixture
def teams(mock_db):
    from prompt_keeper.core.teams import TeamDirectory

    return TeamDirectory(mock_db)


@pytest.fixture
def analytics(mock_db):
    from prompt_keeper.core.analytics import UsageAnalyticsService

    return UsageAnalyticsService(mock_db)


@pytest.fixture
def deletions(mock_db, teams):
    from prompt_keeper.core.backups import DeletionManager

    return DeletionManager(mock_db, teams, concurrency=4)


@pytest.fixture
def app(mock_db, teams, analytics, deletions):
    """FastAPI test app with mocked dependencies."""
    from prompt_keeper.core.analytics import get_usage_analytics
    from prompt_keeper.core.backups import get_deletion_manager
    from prompt_keeper.core.bulk import BulkOperationExecutor, get_bulk_executor
    from prompt_keeper.core.feed import PromptFeed, get_prompt_feed
    from prompt_keeper.core.impact import ImpactAnalyzer, get_impact_analyzer
    from prompt_keeper.core.registry import PromptRegistry, get_registry
    from prompt_keeper.core.teams import get_team_directory
    from prompt_keeper.core.tracker import UsageTracker
    from prompt_keeper.core.transfer import PromptTransfer, get_transfer
    from prompt_keeper.db.client import get_record_store
    from prompt_keeper.main import app as _app

    registry = PromptRegistry(mock_db)
    impact = ImpactAnalyzer(mock_db, teams, analytics)
    bulk = BulkOperationExecutor(mock_db, teams, deletions, concurrency=4)
    transfer = PromptTransfer(mock_db, teams)
    feed = PromptFeed(registry, poll_interval=0.01)

    _app.dependency_overrides[get_record_store] = lambda: mock_db
    _app.dependency_overrides[get_registry] = lambda: registry
    _app.dependency_overrides[get_team_directory] = lambda: teams
    _app.dependency_overrides[get_usage_analytics] = lambda: analytics
    _app.dependency_overrides[get_impact_analyzer] = lambda: impact
    _app.dependency_overrides[get_deletion_manager] = lambda: deletions
    _app.dependency_overrides[get_bulk_executor] = lambda: bulk
    _app.dependency_overrides[get_transfer] = lambda: transfer
    _app.dependency_overrides[get_prompt_feed] = lambda: feed
    _app.state.usage_tracker = UsageTracker(analytics, batch_delay=60)

    yield _app

    _app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """HTTP test client."""
    return TestClient(app)
