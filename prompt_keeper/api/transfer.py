"""Export and import endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends

from prompt_keeper.api.deps import require_user
from prompt_keeper.api.models import (
    ExportRequest,
    ImportPreviewResponse,
    ImportRequest,
    ImportResultResponse,
    ImportValidationResponse,
)
from prompt_keeper.core.transfer import PromptTransfer, get_transfer, validate_import_data
from prompt_keeper.db.models import UserRow

router = APIRouter()


@router.post("/export")
async def export_prompts(
    data: ExportRequest,
    user: UserRow = Depends(require_user),
    transfer: PromptTransfer = Depends(get_transfer),
) -> dict[str, Any]:
    """Export the prompts the current user can see as a JSON document."""
    return transfer.export_prompts(
        user,
        scope=data.scope,
        team_id=data.team_id,
        prompt_ids=data.prompt_ids,
        include_team_assignments=data.include_team_assignments,
        include_usage_data=data.include_usage_data,
    )


@router.post("/import/validate", response_model=ImportValidationResponse)
async def validate_import(
    data: dict[str, Any],
    user: UserRow = Depends(require_user),
) -> ImportValidationResponse:
    errors = validate_import_data(data)
    return ImportValidationResponse(valid=not errors, errors=errors)


@router.post("/import/preview", response_model=ImportPreviewResponse)
async def preview_import(
    data: ImportRequest,
    user: UserRow = Depends(require_user),
    transfer: PromptTransfer = Depends(get_transfer),
) -> ImportPreviewResponse:
    """Classify the file's prompts without writing anything."""
    preview = transfer.preview_import(data.data, data.resolutions)
    return ImportPreviewResponse(**asdict(preview))


@router.post("/import", response_model=ImportResultResponse)
async def import_prompts(
    data: ImportRequest,
    user: UserRow = Depends(require_user),
    transfer: PromptTransfer = Depends(get_transfer),
) -> ImportResultResponse:
    result = transfer.import_prompts(
        data.data, user, resolutions=data.resolutions, target_team_id=data.target_team_id
    )
    return ImportResultResponse(**asdict(result))
