"""Prompt CRUD, listing and cascade-delete endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from prompt_keeper.api.deps import require_user
from prompt_keeper.api.models import (
    PromptCreate,
    PromptPageResponse,
    PromptResponse,
    PromptUpdate,
)
from prompt_keeper.core import permissions
from prompt_keeper.core.backups import DeletionManager, get_deletion_manager
from prompt_keeper.core.errors import UnauthorizedError
from prompt_keeper.core.feed import PromptFeed, get_prompt_feed
from prompt_keeper.core.registry import PromptFilters, PromptRegistry, get_registry
from prompt_keeper.db.models import UserRow

router = APIRouter()


@router.post("", response_model=PromptResponse, status_code=201)
async def create_prompt(
    data: PromptCreate,
    user: UserRow = Depends(require_user),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Create a new prompt owned by the current user."""
    prompt = registry.create_prompt(user, **data.model_dump())
    return PromptResponse(**prompt)


@router.get("", response_model=PromptPageResponse)
async def list_prompts(
    scope: str = "private",
    team_id: str | None = None,
    search: str = "",
    tag: list[str] = Query(default=[]),
    sharing: list[str] = Query(default=[]),
    created_by: str | None = None,
    has_usage: bool | None = None,
    created_from: str | None = None,
    created_to: str | None = None,
    sort_by: str = "created_at",
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    user: UserRow = Depends(require_user),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptPageResponse:
    """List prompts in a sharing scope with table filters, sorting and paging."""
    filters = PromptFilters(
        search=search,
        tags=tag,
        sharing=sharing,
        created_by=created_by,
        has_usage=has_usage,
        created_from=created_from,
        created_to=created_to,
    )
    result = registry.browse(
        user,
        scope=scope,
        team_id=team_id,
        filters=filters,
        sort_by=sort_by,
        descending=order == "desc",
        page=page,
        page_size=page_size,
    )
    return PromptPageResponse(
        items=[PromptResponse(**p) for p in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/counts")
async def prompt_counts(
    user: UserRow = Depends(require_user),
    registry: PromptRegistry = Depends(get_registry),
) -> dict[str, int]:
    """Global prompt count plus team-shared prompt count per team."""
    return registry.prompt_counts()


@router.get("/feed", response_model=list[PromptResponse])
async def prompt_feed(
    scope: str = Query(default="team+global", pattern=r"^(private|team|global|team\+global)$"),
    team_id: str | None = None,
    user: UserRow = Depends(require_user),
    feed: PromptFeed = Depends(get_prompt_feed),
) -> list[PromptResponse]:
    """Current snapshot of a live prompt list, newest first."""
    return [PromptResponse(**p) for p in feed.load(user, scope, team_id)]


@router.get("/{prompt_id}", response_model=PromptResponse)
async def get_prompt(
    prompt_id: str,
    user: UserRow = Depends(require_user),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Get a prompt by ID."""
    prompt = registry.require_prompt(prompt_id)
    if not permissions.can_view_prompt(user, prompt):
        raise UnauthorizedError("view prompt", prompt_id)
    return PromptResponse(**prompt)


@router.put("/{prompt_id}", response_model=PromptResponse)
async def update_prompt(
    prompt_id: str,
    data: PromptUpdate,
    user: UserRow = Depends(require_user),
    registry: PromptRegistry = Depends(get_registry),
) -> PromptResponse:
    """Update a prompt's fields."""
    prompt = registry.update_prompt(prompt_id, user, **data.model_dump(exclude_none=True))
    return PromptResponse(**prompt)


@router.delete("/{prompt_id}", status_code=204)
async def delete_prompt(
    prompt_id: str,
    confirm: bool = False,
    user: UserRow = Depends(require_user),
    deletions: DeletionManager = Depends(get_deletion_manager),
) -> None:
    """Delete a prompt and its team assignments, keeping a restorable backup.

    Clients must show ``GET /prompts/{id}/impact`` first and pass ``confirm=true``.
    """
    if not confirm:
        raise HTTPException(
            status_code=400,
            detail="Deletion must be confirmed after reviewing the impact analysis",
        )
    deletions.delete_with_cascade(prompt_id, user)
    await deletions.announce("deleted", [prompt_id], user)
