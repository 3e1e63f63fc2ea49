"""Bulk operation endpoint."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from prompt_keeper.api.deps import require_user
from prompt_keeper.api.models import BulkOperationRequest, BulkOperationResponse
from prompt_keeper.core.bulk import BulkOperationExecutor, get_bulk_executor
from prompt_keeper.db.models import UserRow

router = APIRouter()


@router.post("/bulk", response_model=BulkOperationResponse)
async def run_bulk_operation(
    data: BulkOperationRequest,
    user: UserRow = Depends(require_user),
    executor: BulkOperationExecutor = Depends(get_bulk_executor),
) -> BulkOperationResponse:
    """Apply one operation to many prompts; per-prompt failures are returned, not raised."""
    if data.operation.type == "delete" and not data.confirm:
        raise HTTPException(
            status_code=400,
            detail="Bulk deletion must be confirmed after reviewing the impact analysis",
        )
    result = await executor.execute(data.operation.model_dump(), data.prompt_ids, user)
    return BulkOperationResponse(**asdict(result))
