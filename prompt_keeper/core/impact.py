"""Deletion impact analysis: what a delete would take away, and from whom."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

import structlog

from prompt_keeper.config import get_settings
from prompt_keeper.core.analytics import (
    UsageAnalytics,
    UsageAnalyticsService,
    get_usage_analytics,
    summarize,
)
from prompt_keeper.core.teams import TeamDirectory, get_team_directory
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import PROMPTS, USERS, assignment_id

logger = structlog.get_logger()

RECENT_USE_WINDOW = timedelta(days=7)
MEDIUM_IMPACT_THRESHOLD = 50


@dataclass
class AffectedTeam:
    team_id: str
    team_name: str
    member_count: int
    assignment: dict[str, Any] = field(default_factory=dict)


@dataclass
class AffectedUser:
    user_id: str
    user_email: str
    usage_count: int
    last_used: str | None


@dataclass
class DeletionImpact:
    prompt_id: str
    prompt: dict[str, Any]
    affected_teams: list[AffectedTeam]
    affected_users: list[AffectedUser]
    usage_analytics: UsageAnalytics
    total_impact_score: int
    can_delete: bool = True
    warnings: list[str] = field(default_factory=list)


@dataclass
class BulkDeletionImpact:
    impacts: list[DeletionImpact]
    total_impact_score: int
    total_affected_teams: int
    total_affected_users: int
    high_impact_prompts: list[str]
    can_delete_all: bool
    warnings: list[str]
    missing: list[str] = field(default_factory=list)


def impact_severity(score: int, high_threshold: int = 100) -> str:
    if score >= high_threshold:
        return "high"
    if score >= MEDIUM_IMPACT_THRESHOLD:
        return "medium"
    return "low"


class ImpactAnalyzer:
    """Computes the blast radius of deleting one or many prompts.

    Score = teams * team_weight + users * user_weight + total_usage * usage_weight.
    Any read failure propagates to the caller; it is never read as "safe".
    """

    def __init__(
        self,
        db: RecordStore,
        teams: TeamDirectory,
        analytics: UsageAnalyticsService,
        team_weight: int = 20,
        user_weight: int = 10,
        usage_weight: int = 1,
        high_impact_threshold: int = 100,
        high_usage_threshold: int = 50,
    ) -> None:
        self.db = db
        self.teams = teams
        self.analytics = analytics
        self.team_weight = team_weight
        self.user_weight = user_weight
        self.usage_weight = usage_weight
        self.high_impact_threshold = high_impact_threshold
        self.high_usage_threshold = high_usage_threshold

    def _affected_teams(self, prompt: dict[str, Any]) -> list[AffectedTeam]:
        edges = {e["team_id"]: e for e in self.teams.assignments_for_prompt(prompt["id"])}
        affected = []
        for team_id in dict.fromkeys(prompt.get("assigned_teams") or []):
            team = self.teams.get_team(team_id)
            edge = edges.get(team_id) or {"id": assignment_id(team_id, prompt["id"])}
            affected.append(
                AffectedTeam(
                    team_id=team_id,
                    team_name=team["name"] if team else "Unknown team",
                    member_count=self.teams.member_count(team_id) if team else 0,
                    assignment=edge,
                )
            )
        return affected

    def _affected_users(self, logs: list[dict[str, Any]]) -> list[AffectedUser]:
        per_user: dict[str, list[dict[str, Any]]] = {}
        for entry in logs:
            per_user.setdefault(entry["user_id"], []).append(entry)

        affected = []
        for user_id, entries in per_user.items():
            user = self.db.get(USERS, user_id)
            affected.append(
                AffectedUser(
                    user_id=user_id,
                    user_email=user["email"] if user else user_id,
                    usage_count=len(entries),
                    last_used=max(e["timestamp"] for e in entries),
                )
            )
        return sorted(affected, key=lambda u: u.usage_count, reverse=True)

    def _warnings(
        self, teams: list[AffectedTeam], users: list[AffectedUser], usage: UsageAnalytics
    ) -> list[str]:
        warnings = []
        if teams:
            warnings.append(f"This prompt is assigned to {len(teams)} team(s)")
        if users:
            warnings.append(f"This prompt has been used by {len(users)} user(s)")
        if usage.total_usage >= self.high_usage_threshold:
            warnings.append(f"This prompt has high usage ({usage.total_usage} uses)")
        if usage.last_used:
            last_used = datetime.fromisoformat(usage.last_used.replace("Z", "+00:00"))
            if last_used.tzinfo is None:
                last_used = last_used.replace(tzinfo=timezone.utc)
            if datetime.now(timezone.utc) - last_used <= RECENT_USE_WINDOW:
                warnings.append("This prompt was used within the last 7 days")
        return warnings

    def analyze_deletion_impact(self, prompt_id: str) -> DeletionImpact | None:
        """Impact of deleting one prompt, or None if the prompt does not exist."""
        prompt = self.db.get(PROMPTS, prompt_id)
        if not prompt:
            return None

        logs = self.analytics.logs(prompt_id)
        usage = summarize(logs)
        teams = self._affected_teams(prompt)
        users = self._affected_users(logs)
        score = (
            len(teams) * self.team_weight
            + len(users) * self.user_weight
            + usage.total_usage * self.usage_weight
        )
        impact = DeletionImpact(
            prompt_id=prompt_id,
            prompt=prompt,
            affected_teams=teams,
            affected_users=users,
            usage_analytics=usage,
            total_impact_score=score,
            can_delete=True,
            warnings=self._warnings(teams, users, usage),
        )
        logger.debug("impact.analyzed", prompt_id=prompt_id, score=score)
        return impact

    def analyze_bulk_deletion_impact(self, prompt_ids: list[str]) -> BulkDeletionImpact:
        impacts: list[DeletionImpact] = []
        missing: list[str] = []
        for prompt_id in prompt_ids:
            impact = self.analyze_deletion_impact(prompt_id)
            if impact is None:
                missing.append(prompt_id)
            else:
                impacts.append(impact)

        team_ids = {t.team_id for i in impacts for t in i.affected_teams}
        user_ids = {u.user_id for i in impacts for u in i.affected_users}
        warnings = [f"Prompt '{pid}' was not found" for pid in missing]
        warnings += [w for i in impacts for w in i.warnings]

        return BulkDeletionImpact(
            impacts=impacts,
            total_impact_score=sum(i.total_impact_score for i in impacts),
            total_affected_teams=len(team_ids),
            total_affected_users=len(user_ids),
            high_impact_prompts=[
                i.prompt_id for i in impacts if i.total_impact_score >= self.high_impact_threshold
            ],
            can_delete_all=not missing and all(i.can_delete for i in impacts),
            warnings=list(dict.fromkeys(warnings)),
            missing=missing,
        )


@lru_cache
def get_impact_analyzer() -> ImpactAnalyzer:
    """Get cached impact analyzer instance."""
    settings = get_settings()
    return ImpactAnalyzer(
        get_record_store(),
        get_team_directory(),
        get_usage_analytics(),
        team_weight=settings.impact_team_weight,
        user_weight=settings.impact_user_weight,
        usage_weight=settings.impact_usage_weight,
        high_impact_threshold=settings.high_impact_threshold,
        high_usage_threshold=settings.high_usage_threshold,
    )
