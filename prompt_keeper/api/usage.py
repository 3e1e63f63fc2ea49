"""Usage logging and analytics endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Query

from prompt_keeper.api.deps import (
    get_usage_tracker,
    require_super_admin,
    require_user,
    require_viewable_prompt,
)
from prompt_keeper.api.models import (
    UsageAnalyticsResponse,
    UsageLogCreate,
    UsageLogResponse,
    UsageOverviewResponse,
)
from prompt_keeper.core.analytics import UsageAnalyticsService, UsageFilters, get_usage_analytics
from prompt_keeper.core.tracker import UsageTracker
from prompt_keeper.db.models import UserRow

router = APIRouter()


@router.post("", status_code=202)
async def track_usage(
    data: UsageLogCreate,
    user: UserRow = Depends(require_user),
    tracker: UsageTracker = Depends(get_usage_tracker),
) -> dict[str, Any]:
    """Queue a usage event for the current user (written in batches)."""
    team_id = data.team_id if data.team_id is not None else user.team_id
    accepted = await tracker.track(
        data.prompt_id, data.action, user.id, team_id, immediate=data.immediate
    )
    return {"accepted": accepted, **tracker.stats()}


@router.post("/flush")
async def flush_usage(
    user: UserRow = Depends(require_user),
    tracker: UsageTracker = Depends(get_usage_tracker),
) -> dict[str, Any]:
    """Write queued usage events now."""
    written = await tracker.flush()
    return {"written": written, **tracker.stats()}


def overview_filters(
    since: str | None = None,
    until: str | None = None,
    team_id: str | None = None,
    user_id: str | None = None,
    prompt_id: str | None = None,
    action: list[str] = Query(default=[]),
    search: str = "",
) -> UsageFilters:
    return UsageFilters(
        since=since,
        until=until,
        team_id=team_id,
        user_id=user_id,
        prompt_id=prompt_id,
        actions=action,
        search=search,
    )


@router.get("/overview", response_model=UsageOverviewResponse)
async def usage_overview(
    limit: int = Query(default=10, ge=1, le=100),
    filters: UsageFilters = Depends(overview_filters),
    admin: UserRow = Depends(require_super_admin),
    analytics: UsageAnalyticsService = Depends(get_usage_analytics),
) -> UsageOverviewResponse:
    """Usage across all prompts (super users only)."""
    return UsageOverviewResponse(**asdict(analytics.overview(filters, limit)))


@router.get("/overview/export")
async def export_usage_overview(
    filters: UsageFilters = Depends(overview_filters),
    admin: UserRow = Depends(require_super_admin),
    analytics: UsageAnalyticsService = Depends(get_usage_analytics),
) -> dict[str, Any]:
    """Overview summary plus the labelled logs behind it, as one JSON document."""
    return analytics.export_overview(filters)


@router.get("/{prompt_id}/logs", response_model=list[UsageLogResponse])
async def usage_logs(
    prompt_id: str,
    prompt: dict[str, Any] = Depends(require_viewable_prompt),
    analytics: UsageAnalyticsService = Depends(get_usage_analytics),
) -> list[UsageLogResponse]:
    return [UsageLogResponse(**entry) for entry in analytics.logs(prompt_id)]


@router.get("/{prompt_id}/analytics", response_model=UsageAnalyticsResponse)
async def usage_analytics(
    prompt_id: str,
    since: str | None = None,
    until: str | None = None,
    team_id: str | None = None,
    user_id: str | None = None,
    action: list[str] = Query(default=[]),
    prompt: dict[str, Any] = Depends(require_viewable_prompt),
    analytics: UsageAnalyticsService = Depends(get_usage_analytics),
) -> UsageAnalyticsResponse:
    """Usage totals by team, user and day, optionally filtered."""
    filters = UsageFilters(
        since=since, until=until, team_id=team_id, user_id=user_id, actions=action
    )
    return UsageAnalyticsResponse(**asdict(analytics.analytics(prompt_id, filters)))


@router.get("/{prompt_id}/top-users")
async def top_users(
    prompt_id: str,
    limit: int = Query(default=10, le=100),
    prompt: dict[str, Any] = Depends(require_viewable_prompt),
    analytics: UsageAnalyticsService = Depends(get_usage_analytics),
) -> list[dict[str, Any]]:
    return analytics.top_users(prompt_id, limit)


@router.get("/{prompt_id}/top-teams")
async def top_teams(
    prompt_id: str,
    limit: int = Query(default=10, le=100),
    prompt: dict[str, Any] = Depends(require_viewable_prompt),
    analytics: UsageAnalyticsService = Depends(get_usage_analytics),
) -> list[dict[str, Any]]:
    return analytics.top_teams(prompt_id, limit)


@router.get("/{prompt_id}/trend")
async def usage_trend(
    prompt_id: str,
    days: int = Query(default=30, ge=1, le=365),
    prompt: dict[str, Any] = Depends(require_viewable_prompt),
    analytics: UsageAnalyticsService = Depends(get_usage_analytics),
) -> list[dict[str, Any]]:
    """Daily usage for the last ``days`` days, zero-filled."""
    return analytics.trend(prompt_id, days)
