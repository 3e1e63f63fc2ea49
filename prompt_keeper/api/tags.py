"""Tag statistics and validation endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from prompt_keeper.api.deps import require_user
from prompt_keeper.api.models import TagUsageResponse, TagValidationResponse
from prompt_keeper.core.tags import popular_tags, search_tags, tag_stats, validate_tag
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import PROMPTS, UserRow

router = APIRouter()


@router.get("", response_model=list[TagUsageResponse])
async def list_tags(
    team_id: str | None = None,
    sharing: str | None = None,
    min_count: int | None = None,
    user: UserRow = Depends(require_user),
    db: RecordStore = Depends(get_record_store),
) -> list[TagUsageResponse]:
    """Tag usage counts, most used first."""
    stats = tag_stats(db.select(PROMPTS), team_id=team_id, sharing=sharing, min_count=min_count)
    return [TagUsageResponse(**asdict(s)) for s in stats]


@router.get("/popular")
async def list_popular_tags(
    limit: int = 10,
    user: UserRow = Depends(require_user),
    db: RecordStore = Depends(get_record_store),
) -> list[str]:
    return popular_tags(tag_stats(db.select(PROMPTS)), limit)


@router.get("/search")
async def find_tags(
    q: str = "",
    user: UserRow = Depends(require_user),
    db: RecordStore = Depends(get_record_store),
) -> list[str]:
    """Tags containing ``q``; prefix matches first."""
    return search_tags(tag_stats(db.select(PROMPTS)), q)


@router.get("/validate", response_model=TagValidationResponse)
async def check_tag(
    tag: str,
    existing: str = "",
    user: UserRow = Depends(require_user),
) -> TagValidationResponse:
    """Validate a tag against the format rules and a comma-separated list of existing tags."""
    error = validate_tag(tag, [t for t in existing.split(",") if t])
    return TagValidationResponse(tag=tag.strip().lower(), valid=error is None, error=error)
