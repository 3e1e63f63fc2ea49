"""Deletion backup listing and restore endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from prompt_keeper.api.deps import require_user
from prompt_keeper.api.models import (
    BulkOperationResponse,
    BulkRestoreRequest,
    DeletionBackupResponse,
    PromptResponse,
)
from prompt_keeper.core.backups import DeletionManager, get_deletion_manager
from prompt_keeper.core.errors import NotFoundError, UnauthorizedError
from prompt_keeper.db.models import BACKUPS, UserRow

router = APIRouter()


@router.get("", response_model=list[DeletionBackupResponse])
async def list_backups(
    limit: int = Query(default=50, ge=1, le=200),
    user: UserRow = Depends(require_user),
    deletions: DeletionManager = Depends(get_deletion_manager),
) -> list[DeletionBackupResponse]:
    """Most recent deletions the current user may see, newest first."""
    return [DeletionBackupResponse(**b) for b in deletions.list_deletion_backups(limit, user=user)]


@router.get("/{prompt_id}", response_model=DeletionBackupResponse)
async def get_backup(
    prompt_id: str,
    user: UserRow = Depends(require_user),
    deletions: DeletionManager = Depends(get_deletion_manager),
) -> DeletionBackupResponse:
    backup = deletions.get_deletion_backup(prompt_id)
    if not backup:
        raise NotFoundError(BACKUPS, prompt_id)
    if not deletions.can_access_backup(user, backup):
        raise UnauthorizedError("view deletion backup", prompt_id)
    return DeletionBackupResponse(**backup)


@router.post("/{prompt_id}/restore", response_model=PromptResponse)
async def restore_prompt(
    prompt_id: str,
    user: UserRow = Depends(require_user),
    deletions: DeletionManager = Depends(get_deletion_manager),
) -> PromptResponse:
    """Recreate a deleted prompt with its original team assignments."""
    prompt = deletions.restore_deleted_prompt(prompt_id, user)
    await deletions.announce("restored", [prompt_id], user)
    return PromptResponse(**prompt)


@router.post("/restore", response_model=BulkOperationResponse)
async def restore_prompts(
    data: BulkRestoreRequest,
    user: UserRow = Depends(require_user),
    deletions: DeletionManager = Depends(get_deletion_manager),
) -> BulkOperationResponse:
    """Restore several prompts; each one succeeds or fails on its own."""
    result = await deletions.bulk_restore(data.prompt_ids, user)
    return BulkOperationResponse(**asdict(result))
