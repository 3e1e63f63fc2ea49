"""Bulk operations: one user action applied to many prompts."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import structlog

from prompt_keeper.config import get_settings
from prompt_keeper.core import permissions
from prompt_keeper.core.backups import DeletionManager, get_deletion_manager
from prompt_keeper.core.batching import BulkOperationResult, run_bounded
from prompt_keeper.core.errors import NotFoundError, UnauthorizedError, ValidationError
from prompt_keeper.core.tags import add_tags, remove_tags, require_valid_tags
from prompt_keeper.core.teams import TeamDirectory, get_team_directory
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import PROMPTS, TEAMS, UserRow

logger = structlog.get_logger()

OPERATION_TYPES = ("delete", "add-tags", "remove-tags", "assign-team", "unassign-team")


class BulkOperationExecutor:
    """Applies delete, tag and team operations across a list of prompts.

    Tag and team operations are idempotent. Delete is not: deleting an
    already-deleted prompt fails with NotFound.
    """

    def __init__(
        self,
        db: RecordStore,
        teams: TeamDirectory,
        deletions: DeletionManager,
        concurrency: int = 8,
    ) -> None:
        self.db = db
        self.teams = teams
        self.deletions = deletions
        self.concurrency = concurrency

    def _load_editable(self, prompt_id: str, user: UserRow) -> dict[str, Any]:
        prompt = self.db.get(PROMPTS, prompt_id)
        if not prompt:
            raise NotFoundError(PROMPTS, prompt_id)
        if not permissions.can_edit_prompt(user, prompt):
            raise UnauthorizedError("edit prompt", prompt_id)
        return prompt

    def _write(self, prompt_id: str, user: UserRow, changes: dict[str, Any]) -> None:
        changes["last_modified"] = datetime.now(timezone.utc).isoformat()
        changes["modified_by"] = user.id
        self.db.update(PROMPTS, prompt_id, changes)

    def _tag_worker(
        self, user: UserRow, tags: list[str], combine: Callable[[list[str], list[str]], list[str]]
    ) -> Callable[[str], None]:
        def work(prompt_id: str) -> None:
            prompt = self._load_editable(prompt_id, user)
            self._write(prompt_id, user, {"tags": combine(prompt.get("tags") or [], tags)})

        return work

    def _team_worker(self, user: UserRow, team_id: str, assign: bool) -> Callable[[str], None]:
        def work(prompt_id: str) -> None:
            prompt = self._load_editable(prompt_id, user)
            current = list(dict.fromkeys(prompt.get("assigned_teams") or []))
            if assign:
                teams = current if team_id in current else [*current, team_id]
                self.teams.assign(team_id, prompt_id, assigned_by=user.id)
            else:
                teams = [t for t in current if t != team_id]
                self.teams.unassign(team_id, prompt_id)
            self._write(prompt_id, user, {"assigned_teams": teams})

        return work

    async def execute(
        self, operation: dict[str, Any], prompt_ids: list[str], user: UserRow
    ) -> BulkOperationResult:
        """Run ``operation`` ({type, data?}) over ``prompt_ids``.

        Invalid operation payloads raise ValidationError before any write;
        per-prompt failures land in ``failed``.
        """
        op_type = operation.get("type")
        data = operation.get("data")
        if op_type not in OPERATION_TYPES:
            raise ValidationError(f"Unknown bulk operation '{op_type}'")

        if op_type == "delete":
            return await self.deletions.bulk_delete_with_cascade(prompt_ids, user)

        if op_type in ("add-tags", "remove-tags"):
            if not isinstance(data, list) or not data:
                raise ValidationError(f"'{op_type}' requires a non-empty list of tags")
            if op_type == "add-tags":
                worker = self._tag_worker(user, require_valid_tags(data), add_tags)
            else:
                worker = self._tag_worker(user, [str(t) for t in data], remove_tags)
        else:
            if not isinstance(data, str) or not data:
                raise ValidationError(f"'{op_type}' requires a team id")
            if op_type == "assign-team" and not self.teams.get_team(data):
                raise NotFoundError(TEAMS, data)
            worker = self._team_worker(user, data, assign=op_type == "assign-team")

        result = await run_bounded(prompt_ids, worker, self.concurrency)
        result.operation = {"type": op_type, "data": data}
        logger.info(
            "bulk.completed",
            type=op_type,
            successful=len(result.successful),
            failed=len(result.failed),
        )
        await self.deletions.announce("bulk", result.successful, user)
        return result


@lru_cache
def get_bulk_executor() -> BulkOperationExecutor:
    """Get cached bulk executor instance."""
    return BulkOperationExecutor(
        get_record_store(),
        get_team_directory(),
        get_deletion_manager(),
        concurrency=get_settings().bulk_concurrency,
    )
