"""Prompt export and import with conflict resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from uuid import uuid4

import structlog
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as SchemaError

from prompt_keeper.core import permissions
from prompt_keeper.core.errors import KeeperError, NotFoundError, UnauthorizedError, ValidationError
from prompt_keeper.core.registry import apply_sharing_rules
from prompt_keeper.core.tags import normalize_tags, require_valid_tags, validate_tag
from prompt_keeper.core.teams import TeamDirectory, get_team_directory
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import PROMPTS, Sharing, UserRow

logger = structlog.get_logger()

EXPORT_FORMAT_VERSION = "1.0"
EXPORT_SCOPES = ("global", "team", "selected")
RESOLUTIONS = ("skip", "overwrite", "create_new")


class ImportedPrompt(BaseModel):
    """Shape a prompt must have to be importable."""

    id: str | None = None
    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)
    sharing: Sharing = "private"
    team_id: str | None = None
    assigned_teams: list[str] = Field(default_factory=list)
    software: str | None = None
    created_at: str | None = None
    last_modified: str | None = None

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: list[str]) -> list[str]:
        for tag in v:
            error = validate_tag(tag)
            if error:
                raise ValueError(f"Invalid tag '{tag}': {error}")
        return normalize_tags(v)


@dataclass
class ImportConflict:
    prompt_id: str
    imported_prompt: dict[str, Any]
    existing_prompt: dict[str, Any]
    reason: str


@dataclass
class InvalidPrompt:
    index: int
    prompt_id: str | None
    message: str


@dataclass
class ImportPreview:
    new_prompts: list[dict[str, Any]] = field(default_factory=list)
    conflicting_prompts: list[ImportConflict] = field(default_factory=list)
    invalid_prompts: list[InvalidPrompt] = field(default_factory=list)
    estimated_changes: dict[str, int] = field(default_factory=dict)


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


def validate_import_data(data: Any) -> list[str]:
    """File-level shape checks. An empty list means the file can be previewed."""
    if not isinstance(data, dict):
        return ["Import file must be a JSON object"]
    errors = []
    prompts = data.get("prompts")
    if not isinstance(prompts, list):
        errors.append("Import file must contain a 'prompts' list")
    elif not prompts:
        errors.append("Import file contains no prompts")
    elif not all(isinstance(p, dict) for p in prompts):
        errors.append("Every entry in 'prompts' must be an object")
    if "exported_at" in data and not isinstance(data["exported_at"], str):
        errors.append("'exported_at' must be a timestamp string")
    return errors


def _schema_message(error: SchemaError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


class PromptTransfer:
    """Builds export documents and applies import files."""

    def __init__(self, db: RecordStore, teams: TeamDirectory) -> None:
        self.db = db
        self.teams = teams

    # --- Export ---

    def export_prompts(
        self,
        user: UserRow,
        scope: str = "global",
        team_id: str | None = None,
        prompt_ids: list[str] | None = None,
        include_team_assignments: bool = True,
        include_usage_data: bool = False,
    ) -> dict[str, Any]:
        if scope not in EXPORT_SCOPES:
            raise ValidationError(f"Unknown export scope '{scope}'")

        if scope == "team":
            if not team_id:
                raise ValidationError("A team is required for a team-scoped export")
            prompts = [
                p for p in self.db.select(PROMPTS)
                if team_id in (p.get("assigned_teams") or []) or p.get("team_id") == team_id
            ]
        elif scope == "selected":
            if not prompt_ids:
                raise ValidationError("Select at least one prompt to export")
            prompts = [p for p in (self.db.get(PROMPTS, pid) for pid in prompt_ids) if p]
        else:
            prompts = self.db.select(PROMPTS, order_by="created_at", ascending=False)

        exported = []
        for prompt in prompts:
            if not permissions.can_view_prompt(user, prompt):
                continue
            item = dict(prompt)
            if not include_team_assignments:
                item.pop("assigned_teams", None)
            if not include_usage_data:
                item.pop("usage_count", None)
                item.pop("last_used", None)
            exported.append(item)

        logger.info("transfer.exported", scope=scope, count=len(exported), user_id=user.id)
        return {
            "version": EXPORT_FORMAT_VERSION,
            "prompts": exported,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "exported_by": user.id,
            "scope": scope,
            "team_id": team_id if scope == "team" else None,
            "include_team_assignments": include_team_assignments,
            "include_usage_data": include_usage_data,
            "total_prompts": len(exported),
        }

    # --- Import ---

    def preview_import(
        self, data: dict[str, Any], resolutions: dict[str, str] | None = None
    ) -> ImportPreview:
        """Classify incoming prompts as new, conflicting (ID exists) or invalid."""
        errors = validate_import_data(data)
        if errors:
            raise ValidationError(errors[0])

        preview = ImportPreview()
        for index, raw in enumerate(data["prompts"]):
            try:
                parsed = ImportedPrompt.model_validate(raw)
            except SchemaError as e:
                preview.invalid_prompts.append(
                    InvalidPrompt(index=index, prompt_id=raw.get("id"), message=_schema_message(e))
                )
                continue

            existing = self.db.get(PROMPTS, parsed.id) if parsed.id else None
            if existing:
                preview.conflicting_prompts.append(
                    ImportConflict(
                        prompt_id=parsed.id,
                        imported_prompt=parsed.model_dump(),
                        existing_prompt=existing,
                        reason=f"A prompt with ID '{parsed.id}' already exists",
                    )
                )
            else:
                preview.new_prompts.append(parsed.model_dump())

        resolutions = resolutions or {}
        chosen = [resolutions.get(c.prompt_id, "skip") for c in preview.conflicting_prompts]
        preview.estimated_changes = {
            "creates": len(preview.new_prompts) + chosen.count("create_new"),
            "updates": chosen.count("overwrite"),
            "skips": chosen.count("skip") + len(preview.invalid_prompts),
        }
        return preview

    def _prepare(
        self, prompt: dict[str, Any], user: UserRow, target_team_id: str | None
    ) -> dict[str, Any]:
        fields = {
            "title": prompt["title"],
            "content": prompt["content"],
            "tags": require_valid_tags(prompt.get("tags") or []),
            "sharing": prompt.get("sharing", "private"),
            "team_id": prompt.get("team_id"),
            "software": prompt.get("software"),
        }
        if target_team_id:
            fields["sharing"] = "team"
            fields["team_id"] = target_team_id
        elif fields["sharing"] == "team" and not fields["team_id"]:
            fields["team_id"] = user.team_id

        if fields["sharing"] == "team" and not permissions.can_create_team_prompts(
            user, fields["team_id"]
        ):
            raise UnauthorizedError("import team prompts", fields["team_id"])
        if fields["sharing"] == "global" and not permissions.can_create_community_prompts(user):
            raise UnauthorizedError("import global prompts")
        return apply_sharing_rules(fields)

    def _assign_teams(self, prompt_id: str, team_ids: list[str], user: UserRow) -> list[str]:
        known = [t for t in dict.fromkeys(team_ids) if self.teams.get_team(t)]
        for team_id in known:
            self.teams.assign(team_id, prompt_id, assigned_by=user.id)
        return known

    def _create(
        self,
        prompt: dict[str, Any],
        prompt_id: str,
        user: UserRow,
        target_team_id: str | None,
    ) -> None:
        now = datetime.now(timezone.utc).isoformat()
        fields = self._prepare(prompt, user, target_team_id)
        fields.update(
            {
                "created_by": user.id,
                "created_at": now,
                "last_modified": now,
                "modified_by": user.id,
                "usage_count": 0,
                "last_used": None,
                "assigned_teams": [],
            }
        )
        self.db.set(PROMPTS, prompt_id, fields)
        assigned = self._assign_teams(prompt_id, prompt.get("assigned_teams") or [], user)
        if assigned:
            self.db.update(PROMPTS, prompt_id, {"assigned_teams": assigned})

    def _overwrite(
        self, prompt: dict[str, Any], user: UserRow, target_team_id: str | None
    ) -> None:
        prompt_id = prompt["id"]
        existing = self.db.get(PROMPTS, prompt_id)
        if not existing:
            raise NotFoundError(PROMPTS, prompt_id)
        if not permissions.can_edit_prompt(user, existing):
            raise UnauthorizedError("overwrite prompt", prompt_id)

        fields = self._prepare(prompt, user, target_team_id)
        teams = list(existing.get("assigned_teams") or [])
        for team_id in self._assign_teams(prompt_id, prompt.get("assigned_teams") or [], user):
            if team_id not in teams:
                teams.append(team_id)
        fields.update(
            {
                "assigned_teams": teams,
                "last_modified": datetime.now(timezone.utc).isoformat(),
                "modified_by": user.id,
            }
        )
        self.db.update(PROMPTS, prompt_id, fields)

    def import_prompts(
        self,
        data: dict[str, Any],
        user: UserRow,
        resolutions: dict[str, str] | None = None,
        target_team_id: str | None = None,
    ) -> ImportResult:
        """Apply an import file. Conflicts default to ``skip``.

        Each prompt is handled on its own; a failure is recorded in
        ``errors`` and the rest of the file still imports.
        """
        resolutions = resolutions or {}
        for resolution in resolutions.values():
            if resolution not in RESOLUTIONS:
                raise ValidationError(f"Unknown conflict resolution '{resolution}'")

        preview = self.preview_import(data)
        result = ImportResult()

        for invalid in preview.invalid_prompts:
            result.skipped += 1
            result.errors.append({"prompt_id": invalid.prompt_id, "message": invalid.message})

        pending: list[tuple[str, dict[str, Any]]] = [
            ("create", p) for p in preview.new_prompts
        ]
        for conflict in preview.conflicting_prompts:
            resolution = resolutions.get(conflict.prompt_id, "skip")
            if resolution == "skip":
                result.skipped += 1
            else:
                pending.append((resolution, conflict.imported_prompt))

        for action, prompt in pending:
            try:
                if action == "overwrite":
                    self._overwrite(prompt, user, target_team_id)
                    result.updated.append(prompt["id"])
                else:
                    prompt_id = prompt["id"] if action == "create" and prompt.get("id") else uuid4().hex
                    self._create(prompt, prompt_id, user, target_team_id)
                    result.created.append(prompt_id)
                result.imported += 1
            except KeeperError as e:
                result.errors.append({"prompt_id": prompt.get("id"), "message": str(e)})

        logger.info(
            "transfer.imported",
            imported=result.imported,
            skipped=result.skipped,
            errors=len(result.errors),
            user_id=user.id,
        )
        return result


@lru_cache
def get_transfer() -> PromptTransfer:
    """Get cached import/export service."""
    return PromptTransfer(get_record_store(), get_team_directory())
