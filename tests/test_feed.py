"""Tests for live prompt lists."""

from __future__ import annotations

import asyncio

import pytest

from prompt_keeper.core.feed import PromptFeed, filter_by_scope, merge_team_and_global
from prompt_keeper.core.registry import PromptRegistry
from prompt_keeper.db.models import PROMPTS
from tests.conftest import add_prompt

SNAPSHOT = [
    {"id": "mine", "created_by": "alice", "sharing": "private", "created_at": "2024-01-04"},
    {"id": "team", "created_by": "bob", "sharing": "team", "team_id": "t1", "created_at": "2024-01-03"},
    {"id": "other", "created_by": "carol", "sharing": "team", "team_id": "t2", "created_at": "2024-01-02"},
    {"id": "global", "created_by": "admin", "sharing": "global", "created_at": "2024-01-01"},
]


class TestFilterByScope:
    def test_scopes(self, users):
        alice = users["alice"]
        assert [p["id"] for p in filter_by_scope(SNAPSHOT, alice, "private")] == ["mine"]
        assert [p["id"] for p in filter_by_scope(SNAPSHOT, alice, "team")] == ["team"]
        assert [p["id"] for p in filter_by_scope(SNAPSHOT, alice, "global")] == ["global"]

    def test_other_team_is_hidden(self, users):
        assert filter_by_scope(SNAPSHOT, users["alice"], "team", "t2") == []
        assert [p["id"] for p in filter_by_scope(SNAPSHOT, users["admin"], "team", "t2")] == ["other"]

    def test_unknown_scope(self, users):
        with pytest.raises(ValueError):
            filter_by_scope(SNAPSHOT, users["alice"], "all")


def test_merge_dedupes_newest_first():
    team = [SNAPSHOT[1], SNAPSHOT[3]]
    merged = merge_team_and_global(team, [SNAPSHOT[3], SNAPSHOT[0]])
    assert [p["id"] for p in merged] == ["mine", "team", "global"]


class TestPromptFeed:
    def test_load_team_and_global(self, mock_db, users):
        add_prompt(mock_db, "team", created_by="bob", sharing="team", team_id="t1",
                   created_at="2024-01-02")
        add_prompt(mock_db, "global", created_by="admin", sharing="global", created_at="2024-01-03")
        feed = PromptFeed(PromptRegistry(mock_db))
        assert [p["id"] for p in feed.load(users["alice"], "team+global")] == ["global", "team"]

    @pytest.mark.asyncio
    async def test_subscribe_delivers_changes_until_unsubscribed(self, mock_db, users):
        feed = PromptFeed(PromptRegistry(mock_db), poll_interval=0.01)
        snapshots = []

        unsubscribe = feed.subscribe(users["alice"], "private", snapshots.append)
        await asyncio.sleep(0.05)
        add_prompt(mock_db, "p1")
        await asyncio.sleep(0.1)
        unsubscribe()
        seen = len(snapshots)
        add_prompt(mock_db, "p2")
        await asyncio.sleep(0.05)

        assert snapshots[0] == []
        assert [p["id"] for p in snapshots[-1]] == ["p1"]
        assert len(snapshots) == seen == 2

    @pytest.mark.asyncio
    async def test_poll_errors_do_not_stop_subscription(self, mock_db, users):
        feed = PromptFeed(PromptRegistry(mock_db), poll_interval=0.01)
        snapshots = []
        mock_db.fail_on[("select", PROMPTS)] = ConnectionError("store offline")

        unsubscribe = feed.subscribe(users["alice"], "global", snapshots.append)
        await asyncio.sleep(0.05)
        mock_db.fail_on.clear()
        await asyncio.sleep(0.05)
        unsubscribe()

        assert snapshots == [[]]
