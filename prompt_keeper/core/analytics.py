"""Usage logging and analytics over the append-only usage log."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Any
from uuid import uuid4

import structlog

from prompt_keeper.core.errors import NotFoundError, ValidationError
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import PROMPTS, TEAMS, USAGE_ACTIONS, USAGE_LOG, USERS

logger = structlog.get_logger()

NO_TEAM = "no-team"


@dataclass
class UsageAnalytics:
    """Aggregate usage for one prompt."""

    total_usage: int = 0
    last_used: str | None = None
    usage_by_team: dict[str, int] = field(default_factory=dict)
    usage_by_user: dict[str, int] = field(default_factory=dict)
    usage_trend: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class UsageFilters:
    """Log filters; ``team_id="no-team"`` selects usage outside any team."""

    since: str | None = None
    until: str | None = None
    team_id: str | None = None
    user_id: str | None = None
    prompt_id: str | None = None
    actions: list[str] = field(default_factory=list)
    search: str = ""


@dataclass
class UsageOverview:
    """System-wide usage across all prompts."""

    total_usage: int = 0
    unique_users: int = 0
    unique_teams: int = 0
    unique_prompts: int = 0
    top_actions: list[dict[str, Any]] = field(default_factory=list)
    top_prompts: list[dict[str, Any]] = field(default_factory=list)
    top_users: list[dict[str, Any]] = field(default_factory=list)
    top_teams: list[dict[str, Any]] = field(default_factory=list)
    usage_trend: list[dict[str, Any]] = field(default_factory=list)


def summarize(logs: list[dict[str, Any]]) -> UsageAnalytics:
    """Bucket logs by team, user and calendar day."""
    result = UsageAnalytics(total_usage=len(logs))
    if not logs:
        return result

    result.last_used = max(entry["timestamp"] for entry in logs)
    daily: dict[str, int] = {}
    for entry in logs:
        team_key = entry.get("team_id") or NO_TEAM
        result.usage_by_team[team_key] = result.usage_by_team.get(team_key, 0) + 1
        user_key = entry["user_id"]
        result.usage_by_user[user_key] = result.usage_by_user.get(user_key, 0) + 1
        day = entry["timestamp"][:10]
        daily[day] = daily.get(day, 0) + 1

    result.usage_trend = [{"date": d, "count": c} for d, c in sorted(daily.items())]
    return result


def apply_filters(logs: list[dict[str, Any]], filters: UsageFilters) -> list[dict[str, Any]]:
    results = [entry for entry in logs if entry.get("action") in USAGE_ACTIONS]
    if filters.since:
        results = [entry for entry in results if entry["timestamp"] >= filters.since]
    if filters.until:
        results = [entry for entry in results if entry["timestamp"][: len(filters.until)] <= filters.until]
    if filters.team_id == NO_TEAM:
        results = [entry for entry in results if not entry.get("team_id")]
    elif filters.team_id:
        results = [entry for entry in results if entry.get("team_id") == filters.team_id]
    if filters.user_id:
        results = [entry for entry in results if entry.get("user_id") == filters.user_id]
    if filters.prompt_id:
        results = [entry for entry in results if entry.get("prompt_id") == filters.prompt_id]
    if filters.actions:
        results = [entry for entry in results if entry.get("action") in filters.actions]
    return results


def fill_trend(
    trend: list[dict[str, Any]], days: int = 30, today: date | None = None
) -> list[dict[str, Any]]:
    """Trend for the last ``days`` days, with zero counts for quiet days."""
    today = today or datetime.now(timezone.utc).date()
    counts = {point["date"]: point["count"] for point in trend}
    start = today - timedelta(days=days)
    span = (start + timedelta(days=i) for i in range(days + 1))
    return [{"date": d.isoformat(), "count": counts.get(d.isoformat(), 0)} for d in span]


def _count(values: Iterable[str]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def _ranked(
    counts: dict[str, int],
    labels: dict[str, str],
    id_key: str,
    label_key: str,
    limit: int | None = 10,
) -> list[dict[str, Any]]:
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [{id_key: k, label_key: labels.get(k, k), "count": c} for k, c in ranked]


class UsageAnalyticsService:
    """Writes usage events and computes per-prompt and system-wide analytics."""

    def __init__(self, db: RecordStore) -> None:
        self.db = db

    def log_usage(
        self,
        prompt_id: str,
        user_id: str,
        team_id: str | None,
        action: str,
    ) -> dict[str, Any]:
        """Append a usage event and bump the prompt's counters."""
        if action not in USAGE_ACTIONS:
            raise ValidationError(f"Unknown usage action '{action}'")
        prompt = self.db.get(PROMPTS, prompt_id)
        if not prompt:
            raise NotFoundError(PROMPTS, prompt_id)

        now = datetime.now(timezone.utc).isoformat()
        record = self.db.set(
            USAGE_LOG,
            uuid4().hex,
            {
                "prompt_id": prompt_id,
                "user_id": user_id,
                "team_id": team_id,
                "timestamp": now,
                "action": action,
            },
        )
        self.db.update(
            PROMPTS,
            prompt_id,
            {"usage_count": (prompt.get("usage_count") or 0) + 1, "last_used": now},
        )
        logger.debug("usage.logged", prompt_id=prompt_id, action=action)
        return record

    def logs(self, prompt_id: str) -> list[dict[str, Any]]:
        """Usage logs for a prompt, newest first."""
        return self.db.select(
            USAGE_LOG, filters={"prompt_id": prompt_id}, order_by="timestamp", ascending=False
        )

    def analytics(self, prompt_id: str, filters: UsageFilters | None = None) -> UsageAnalytics:
        logs = self.logs(prompt_id)
        if filters:
            logs = apply_filters(logs, filters)
        return summarize(logs)

    def top_users(self, prompt_id: str, limit: int = 10) -> list[dict[str, Any]]:
        usage = self.analytics(prompt_id).usage_by_user
        return _ranked(usage, self._labels()["users"], "user_id", "email", limit)

    def top_teams(self, prompt_id: str, limit: int = 10) -> list[dict[str, Any]]:
        usage = self.analytics(prompt_id).usage_by_team
        return _ranked(usage, self._labels()["teams"], "team_id", "name", limit)

    def trend(self, prompt_id: str, days: int = 30) -> list[dict[str, Any]]:
        return fill_trend(self.analytics(prompt_id).usage_trend, days=days)

    # --- System-wide ---

    def _labels(self) -> dict[str, dict[str, str]]:
        teams = {t["id"]: t["name"] for t in self.db.select(TEAMS)}
        teams[NO_TEAM] = "No Team"
        return {
            "users": {u["id"]: u["email"] for u in self.db.select(USERS)},
            "teams": teams,
            "prompts": {p["id"]: p.get("title") or p["id"] for p in self.db.select(PROMPTS)},
        }

    def _filtered_logs(
        self, filters: UsageFilters, labels: dict[str, dict[str, str]]
    ) -> list[dict[str, Any]]:
        logs = apply_filters(
            self.db.select(USAGE_LOG, order_by="timestamp", ascending=False), filters
        )
        needle = filters.search.strip().lower()
        if not needle:
            return logs
        return [
            entry for entry in logs
            if needle in entry["action"]
            or needle in labels["users"].get(entry["user_id"], "").lower()
            or needle in labels["teams"].get(entry.get("team_id") or NO_TEAM, "").lower()
            or needle in labels["prompts"].get(entry["prompt_id"], "").lower()
        ]

    def overview(self, filters: UsageFilters | None = None, limit: int = 10) -> UsageOverview:
        """Usage across every prompt, for the admin dashboard.

        ``search`` matches the action, user email, team name or prompt title.
        """
        labels = self._labels()
        return self._overview(self._filtered_logs(filters or UsageFilters(), labels), labels, limit)

    def _overview(
        self, logs: list[dict[str, Any]], labels: dict[str, dict[str, str]], limit: int
    ) -> UsageOverview:
        summary = summarize(logs)
        actions = _count(entry["action"] for entry in logs)
        prompts = _count(entry["prompt_id"] for entry in logs)
        return UsageOverview(
            total_usage=summary.total_usage,
            unique_users=len(summary.usage_by_user),
            unique_teams=len([t for t in summary.usage_by_team if t != NO_TEAM]),
            unique_prompts=len(prompts),
            top_actions=[
                {"action": a, "count": c}
                for a, c in sorted(actions.items(), key=lambda item: item[1], reverse=True)
            ],
            top_prompts=_ranked(prompts, labels["prompts"], "prompt_id", "title", limit),
            top_users=_ranked(summary.usage_by_user, labels["users"], "user_id", "email", limit),
            top_teams=_ranked(summary.usage_by_team, labels["teams"], "team_id", "name", limit),
            usage_trend=summary.usage_trend,
        )

    def export_overview(self, filters: UsageFilters | None = None) -> dict[str, Any]:
        """Overview plus the matching logs, labelled for download."""
        filters = filters or UsageFilters()
        labels = self._labels()
        logs = self._filtered_logs(filters, labels)
        return {
            "summary": asdict(self._overview(logs, labels, limit=10)),
            "logs": [
                {
                    **entry,
                    "user_email": labels["users"].get(entry["user_id"]),
                    "team_name": labels["teams"].get(entry.get("team_id") or NO_TEAM),
                    "prompt_title": labels["prompts"].get(entry["prompt_id"]),
                }
                for entry in logs
            ],
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "filters": asdict(filters),
        }


@lru_cache
def get_usage_analytics() -> UsageAnalyticsService:
    """Get cached usage analytics instance."""
    return UsageAnalyticsService(get_record_store())
