"""Pydantic request/response models for the API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from prompt_keeper.db.models import Sharing, UsageAction


# --- Prompts ---


class PromptCreate(BaseModel):
    """Create a new prompt."""

    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)
    sharing: Sharing = "private"
    team_id: str | None = None
    software: str | None = None


class PromptUpdate(BaseModel):
    """Update a prompt's fields."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = Field(default=None, min_length=1)
    tags: list[str] | None = None
    sharing: Sharing | None = None
    team_id: str | None = None
    software: str | None = None


class PromptResponse(BaseModel):
    """Prompt response."""

    id: str
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    sharing: str
    created_by: str | None = None
    team_id: str | None = None
    assigned_teams: list[str] = Field(default_factory=list)
    usage_count: int = 0
    last_used: str | None = None
    software: str | None = None
    created_at: str | None = None
    last_modified: str | None = None
    modified_by: str | None = None


class PromptPageResponse(BaseModel):
    items: list[PromptResponse]
    total: int
    page: int
    page_size: int


# --- Impact ---


class AffectedTeamResponse(BaseModel):
    team_id: str
    team_name: str
    member_count: int
    assignment: dict[str, Any] = Field(default_factory=dict)


class AffectedUserResponse(BaseModel):
    user_id: str
    user_email: str
    usage_count: int
    last_used: str | None = None


class UsageAnalyticsResponse(BaseModel):
    total_usage: int
    last_used: str | None = None
    usage_by_team: dict[str, int] = Field(default_factory=dict)
    usage_by_user: dict[str, int] = Field(default_factory=dict)
    usage_trend: list[dict[str, Any]] = Field(default_factory=list)


class DeletionImpactResponse(BaseModel):
    prompt_id: str
    prompt: PromptResponse
    affected_teams: list[AffectedTeamResponse]
    affected_users: list[AffectedUserResponse]
    usage_analytics: UsageAnalyticsResponse
    total_impact_score: int
    severity: str
    can_delete: bool
    warnings: list[str]


class BulkImpactRequest(BaseModel):
    prompt_ids: list[str] = Field(..., min_length=1)


class BulkDeletionImpactResponse(BaseModel):
    impacts: list[DeletionImpactResponse]
    total_impact_score: int
    total_affected_teams: int
    total_affected_users: int
    high_impact_prompts: list[str]
    can_delete_all: bool
    warnings: list[str]
    missing: list[str] = Field(default_factory=list)


# --- Bulk operations ---


class BulkOperation(BaseModel):
    type: Literal["delete", "add-tags", "remove-tags", "assign-team", "unassign-team"]
    data: list[str] | str | None = None


class BulkOperationRequest(BaseModel):
    operation: BulkOperation
    prompt_ids: list[str] = Field(..., min_length=1)
    confirm: bool = False


class BulkFailureResponse(BaseModel):
    prompt_id: str
    error: str


class BulkOperationResponse(BaseModel):
    successful: list[str]
    failed: list[BulkFailureResponse]
    operation: dict[str, Any] | None = None


# --- Backups ---


class DeletionBackupResponse(BaseModel):
    prompt_id: str
    prompt_data: dict[str, Any]
    team_assignments: list[dict[str, Any]] = Field(default_factory=list)
    deleted_at: str
    deleted_by: str | None = None
    restored_at: str | None = None
    restored_by: str | None = None


class BulkRestoreRequest(BaseModel):
    prompt_ids: list[str] = Field(..., min_length=1)


# --- Usage ---


class UsageLogCreate(BaseModel):
    """Log a prompt usage event for the current user."""

    prompt_id: str
    action: UsageAction
    team_id: str | None = None
    immediate: bool = False


class UsageLogResponse(BaseModel):
    id: str
    prompt_id: str
    user_id: str
    team_id: str | None = None
    timestamp: str
    action: str


class UsageOverviewResponse(BaseModel):
    total_usage: int
    unique_users: int
    unique_teams: int
    unique_prompts: int
    top_actions: list[dict[str, Any]]
    top_prompts: list[dict[str, Any]]
    top_users: list[dict[str, Any]]
    top_teams: list[dict[str, Any]]
    usage_trend: list[dict[str, Any]]


# --- Tags ---


class TagUsageResponse(BaseModel):
    tag: str
    count: int
    prompts: list[str]


class TagValidationResponse(BaseModel):
    tag: str
    valid: bool
    error: str | None = None


# --- Teams ---


class TeamResponse(BaseModel):
    id: str
    name: str
    created_by: str | None = None
    created_at: str | None = None
    member_count: int = 0


class TeamMemberCreate(BaseModel):
    user_id: str
    email: str
    role: Literal["admin", "member"] = "member"


class TeamMemberResponse(BaseModel):
    user_id: str
    email: str
    role: str
    joined_at: str | None = None


# --- Import / export ---


class ExportRequest(BaseModel):
    scope: Literal["global", "team", "selected"] = "global"
    team_id: str | None = None
    prompt_ids: list[str] | None = None
    include_team_assignments: bool = True
    include_usage_data: bool = False


class ImportRequest(BaseModel):
    data: dict[str, Any]
    resolutions: dict[str, Literal["skip", "overwrite", "create_new"]] = Field(
        default_factory=dict
    )
    target_team_id: str | None = None


class ImportValidationResponse(BaseModel):
    valid: bool
    errors: list[str]


class ImportConflictResponse(BaseModel):
    prompt_id: str
    imported_prompt: dict[str, Any]
    existing_prompt: dict[str, Any]
    reason: str


class InvalidPromptResponse(BaseModel):
    index: int
    prompt_id: str | None = None
    message: str


class ImportPreviewResponse(BaseModel):
    new_prompts: list[dict[str, Any]]
    conflicting_prompts: list[ImportConflictResponse]
    invalid_prompts: list[InvalidPromptResponse]
    estimated_changes: dict[str, int]


class ImportResultResponse(BaseModel):
    imported: int
    skipped: int
    created: list[str]
    updated: list[str]
    errors: list[dict[str, Any]]
