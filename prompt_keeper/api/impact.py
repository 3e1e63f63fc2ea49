"""Deletion impact endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from prompt_keeper.api.deps import require_user
from prompt_keeper.api.models import (
    BulkDeletionImpactResponse,
    BulkImpactRequest,
    DeletionImpactResponse,
)
from prompt_keeper.core import permissions
from prompt_keeper.core.errors import NotFoundError, UnauthorizedError
from prompt_keeper.core.impact import (
    DeletionImpact,
    ImpactAnalyzer,
    get_impact_analyzer,
    impact_severity,
)
from prompt_keeper.db.models import PROMPTS, UserRow

router = APIRouter()


def _to_response(impact: DeletionImpact, high_threshold: int) -> DeletionImpactResponse:
    return DeletionImpactResponse(
        **asdict(impact),
        severity=impact_severity(impact.total_impact_score, high_threshold),
    )


def _check_visible(impact: DeletionImpact, user: UserRow) -> None:
    if not permissions.can_view_prompt(user, impact.prompt):
        raise UnauthorizedError("view prompt", impact.prompt_id)


@router.get("/{prompt_id}/impact", response_model=DeletionImpactResponse)
async def deletion_impact(
    prompt_id: str,
    user: UserRow = Depends(require_user),
    analyzer: ImpactAnalyzer = Depends(get_impact_analyzer),
) -> DeletionImpactResponse:
    """What deleting this prompt would affect."""
    impact = analyzer.analyze_deletion_impact(prompt_id)
    if impact is None:
        raise NotFoundError(PROMPTS, prompt_id)
    _check_visible(impact, user)
    return _to_response(impact, analyzer.high_impact_threshold)


@router.post("/impact", response_model=BulkDeletionImpactResponse)
async def bulk_deletion_impact(
    data: BulkImpactRequest,
    user: UserRow = Depends(require_user),
    analyzer: ImpactAnalyzer = Depends(get_impact_analyzer),
) -> BulkDeletionImpactResponse:
    """Aggregate impact of deleting several prompts."""
    bulk = analyzer.analyze_bulk_deletion_impact(data.prompt_ids)
    for impact in bulk.impacts:
        _check_visible(impact, user)
    return BulkDeletionImpactResponse(
        impacts=[_to_response(i, analyzer.high_impact_threshold) for i in bulk.impacts],
        total_impact_score=bulk.total_impact_score,
        total_affected_teams=bulk.total_affected_teams,
        total_affected_users=bulk.total_affected_users,
        high_impact_prompts=bulk.high_impact_prompts,
        can_delete_all=bulk.can_delete_all,
        warnings=bulk.warnings,
        missing=bulk.missing,
    )
