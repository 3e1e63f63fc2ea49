"""Tests for batched usage tracking."""

from __future__ import annotations

import asyncio

import pytest

from prompt_keeper.core.tracker import UsageTracker
from prompt_keeper.db.models import PROMPTS, USAGE_LOG
from tests.conftest import add_prompt


@pytest.fixture
def tracker(analytics):
    return UsageTracker(analytics, batch_delay=60)


class TestTracking:
    @pytest.mark.asyncio
    async def test_batch_dedupes_per_prompt_action_user(self, tracker, mock_db):
        add_prompt(mock_db, "p1")
        for _ in range(3):
            await tracker.track("p1", "viewed", "alice")
        await tracker.track("p1", "copied", "alice")
        await tracker.track("p1", "viewed", "bob")

        assert tracker.stats()["queue_size"] == 5
        assert tracker.stats()["has_pending_batch"] is True

        written = await tracker.flush()
        assert written == 3
        assert len(mock_db.rows(USAGE_LOG)) == 3
        assert mock_db.get(PROMPTS, "p1")["usage_count"] == 3
        assert tracker.stats() == {
            "tracking_enabled": True,
            "queue_size": 0,
            "has_pending_batch": False,
        }

    @pytest.mark.asyncio
    async def test_immediate_writes_now(self, tracker, mock_db):
        add_prompt(mock_db, "p1")
        assert await tracker.track("p1", "used", "alice", "t1", immediate=True)
        assert tracker.stats()["queue_size"] == 0
        assert len(mock_db.rows(USAGE_LOG)) == 1

    @pytest.mark.asyncio
    async def test_ignored_events(self, tracker):
        assert await tracker.track("p1", "viewed", None) is False
        assert await tracker.track("", "viewed", "alice") is False
        tracker.enabled = False
        assert await tracker.track("p1", "viewed", "alice") is False
        assert tracker.stats()["queue_size"] == 0

    @pytest.mark.asyncio
    async def test_timer_fires_batch(self, analytics, mock_db):
        add_prompt(mock_db, "p1")
        tracker = UsageTracker(analytics, batch_delay=0.01)
        await tracker.track("p1", "viewed", "alice")
        for _ in range(50):
            await asyncio.sleep(0.02)
            if mock_db.rows(USAGE_LOG):
                break
        assert len(mock_db.rows(USAGE_LOG)) == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_missing_prompt_is_dropped(self, tracker, mock_db):
        await tracker.track("gone", "viewed", "alice")
        assert await tracker.flush() == 0
        assert tracker.stats()["queue_size"] == 0

    @pytest.mark.asyncio
    async def test_store_failure_requeues(self, tracker, mock_db):
        add_prompt(mock_db, "p1")
        await tracker.track("p1", "viewed", "alice")
        mock_db.fail_on[("set", USAGE_LOG)] = ConnectionError("store offline")

        assert await tracker.flush() == 0
        assert tracker.stats()["queue_size"] == 1

        mock_db.fail_on.clear()
        assert await tracker.flush() == 1
        assert tracker.stats()["queue_size"] == 0
