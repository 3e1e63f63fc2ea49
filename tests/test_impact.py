"""Tests for deletion impact analysis."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from prompt_keeper.core.impact import ImpactAnalyzer, impact_severity
from prompt_keeper.db.models import USAGE_LOG
from tests.conftest import add_prompt


@pytest.fixture
def analyzer(mock_db, teams, analytics) -> ImpactAnalyzer:
    return ImpactAnalyzer(mock_db, teams, analytics)


def _log(db, log_id, prompt_id, user_id, team_id=None, days_ago=30, action="used"):
    ts = (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat()
    db.set(
        USAGE_LOG,
        log_id,
        {"prompt_id": prompt_id, "user_id": user_id, "team_id": team_id,
         "timestamp": ts, "action": action},
    )


class TestSingle:
    def test_missing_prompt(self, analyzer):
        assert analyzer.analyze_deletion_impact("nope") is None

    def test_unused_unassigned_prompt(self, analyzer, mock_db):
        add_prompt(mock_db, "p1")
        impact = analyzer.analyze_deletion_impact("p1")
        assert impact.total_impact_score == 0
        assert impact.warnings == []
        assert impact.affected_teams == []
        assert impact.affected_users == []
        assert impact.can_delete is True

    def test_assigned_and_used_prompt(self, analyzer, mock_db, teams):
        add_prompt(mock_db, "P1", assigned_teams=["t1", "t2"])
        teams.assign("t1", "P1", assigned_by="admin")
        teams.assign("t2", "P1", assigned_by="admin")
        _log(mock_db, "l1", "P1", "alice", "t1")
        _log(mock_db, "l2", "P1", "alice", "t1")
        _log(mock_db, "l3", "P1", "bob", "t1")
        _log(mock_db, "l4", "P1", "carol", "t2")
        _log(mock_db, "l5", "P1", "carol", "t2")

        impact = analyzer.analyze_deletion_impact("P1")

        assert impact.usage_analytics.total_usage == 5
        assert [t.team_id for t in impact.affected_teams] == ["t1", "t2"]
        assert impact.affected_teams[0].team_name == "Design"
        assert impact.affected_teams[0].member_count == 2
        assert impact.affected_teams[0].assignment["assigned_by"] == "admin"
        assert {u.user_id: u.usage_count for u in impact.affected_users} == {
            "alice": 2, "bob": 1, "carol": 2
        }
        assert impact.total_impact_score == 2 * 20 + 3 * 10 + 5
        assert "This prompt is assigned to 2 team(s)" in impact.warnings
        assert "This prompt has been used by 3 user(s)" in impact.warnings
        assert not any("last 7 days" in w for w in impact.warnings)

    def test_recent_and_heavy_usage_warnings(self, mock_db, teams, analytics):
        analyzer = ImpactAnalyzer(mock_db, teams, analytics, high_usage_threshold=2)
        add_prompt(mock_db, "p1")
        _log(mock_db, "l1", "p1", "alice", days_ago=1)
        _log(mock_db, "l2", "p1", "alice", days_ago=40)

        warnings = analyzer.analyze_deletion_impact("p1").warnings
        assert "This prompt has high usage (2 uses)" in warnings
        assert "This prompt was used within the last 7 days" in warnings

    def test_unknown_team_still_counted(self, analyzer, mock_db):
        add_prompt(mock_db, "p1", assigned_teams=["ghost"])
        impact = analyzer.analyze_deletion_impact("p1")
        assert impact.affected_teams[0].team_name == "Unknown team"
        assert impact.total_impact_score == 20

    def test_read_failure_propagates(self, analyzer, mock_db):
        add_prompt(mock_db, "p1")
        mock_db.fail_on[("select", USAGE_LOG)] = ConnectionError("store offline")
        with pytest.raises(ConnectionError):
            analyzer.analyze_deletion_impact("p1")


class TestBulk:
    def test_aggregates_distinct_teams_and_users(self, analyzer, mock_db):
        add_prompt(mock_db, "p1", assigned_teams=["t1"])
        add_prompt(mock_db, "p2", assigned_teams=["t1", "t2"])
        _log(mock_db, "l1", "p1", "alice")
        _log(mock_db, "l2", "p2", "alice")

        bulk = analyzer.analyze_bulk_deletion_impact(["p1", "p2"])
        assert bulk.total_affected_teams == 2
        assert bulk.total_affected_users == 1
        assert bulk.total_impact_score == sum(i.total_impact_score for i in bulk.impacts)
        assert bulk.can_delete_all is True
        assert bulk.missing == []

    def test_missing_prompt_blocks_delete_all(self, analyzer, mock_db):
        add_prompt(mock_db, "p1")
        bulk = analyzer.analyze_bulk_deletion_impact(["p1", "p2"])
        assert [i.prompt_id for i in bulk.impacts] == ["p1"]
        assert bulk.missing == ["p2"]
        assert bulk.can_delete_all is False
        assert "Prompt 'p2' was not found" in bulk.warnings

    def test_high_impact_prompts(self, mock_db, teams, analytics):
        analyzer = ImpactAnalyzer(mock_db, teams, analytics, high_impact_threshold=20)
        add_prompt(mock_db, "p1", assigned_teams=["t1"])
        add_prompt(mock_db, "p2")
        bulk = analyzer.analyze_bulk_deletion_impact(["p1", "p2"])
        assert bulk.high_impact_prompts == ["p1"]


def test_severity():
    assert impact_severity(0) == "low"
    assert impact_severity(50) == "medium"
    assert impact_severity(100) == "high"
    assert impact_severity(30, high_threshold=30) == "high"
