"""Cascade deletion with backup, and restore from backup.

A prompt moves Live -> Backed-Up on delete and Backed-Up -> Live on restore.
The record store has no multi-row transactions, so both directions are
ordered multi-step sequences:

* delete: read prompt and assignment edges, write the backup, then remove the
  edges and finally the prompt. A failed backup write aborts before anything
  is removed. Removal steps are idempotent, so a failed delete can be retried.
* restore: recreate the prompt under its original ID, upsert each edge, then
  stamp the backup as restored. The backup itself is kept.
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import structlog

from prompt_keeper.config import get_settings
from prompt_keeper.core import permissions
from prompt_keeper.core.batching import BulkOperationResult, run_bounded
from prompt_keeper.core.errors import AlreadyRestoredError, NotFoundError, UnauthorizedError
from prompt_keeper.core.events import EventPublisher, get_event_publisher
from prompt_keeper.core.teams import TeamDirectory, get_team_directory
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import BACKUPS, PROMPTS, UserRow

logger = structlog.get_logger()


class DeletionManager:
    """Deletes prompts behind a backup snapshot and restores them on request."""

    def __init__(
        self,
        db: RecordStore,
        teams: TeamDirectory,
        events: EventPublisher | None = None,
        concurrency: int = 8,
        list_cap: int = 200,
    ) -> None:
        self.db = db
        self.teams = teams
        self.events = events
        self.concurrency = concurrency
        self.list_cap = list_cap

    def _snapshot_assignments(self, prompt: dict[str, Any]) -> tuple[list[dict], list[dict]]:
        """Edge records plus any ``assigned_teams`` entry whose edge is already gone."""
        edges = self.teams.assignments_for_prompt(prompt["id"])
        snapshot = [{"team_id": e["team_id"], "assignment": e} for e in edges]
        seen = {e["team_id"] for e in edges}
        for team_id in prompt.get("assigned_teams") or []:
            if team_id not in seen:
                snapshot.append({"team_id": team_id, "assignment": {}})
                seen.add(team_id)
        return edges, snapshot

    def delete_with_cascade(self, prompt_id: str, user: UserRow) -> dict[str, Any]:
        """Back up then remove a prompt and its team assignment edges."""
        prompt = self.db.get(PROMPTS, prompt_id)
        if not prompt:
            raise NotFoundError(PROMPTS, prompt_id)
        if not permissions.can_delete_prompt(user, prompt):
            raise UnauthorizedError("delete prompt", prompt_id)

        edges, team_assignments = self._snapshot_assignments(prompt)
        backup = self.db.set(
            BACKUPS,
            prompt_id,
            {
                "prompt_id": prompt_id,
                "prompt_data": prompt,
                "team_assignments": team_assignments,
                "deleted_at": datetime.now(timezone.utc).isoformat(),
                "deleted_by": user.id,
                "restored_at": None,
                "restored_by": None,
            },
        )

        for edge in edges:
            self.teams.unassign(edge["team_id"], prompt_id)
        self.db.remove(PROMPTS, prompt_id)

        logger.info(
            "prompt.deleted",
            prompt_id=prompt_id,
            teams=len(team_assignments),
            deleted_by=user.id,
        )
        return backup

    async def bulk_delete_with_cascade(
        self, prompt_ids: list[str], user: UserRow
    ) -> BulkOperationResult:
        """Delete each prompt independently; failures are reported, not raised."""
        result = await run_bounded(
            prompt_ids, lambda pid: self.delete_with_cascade(pid, user), self.concurrency
        )
        result.operation = {"type": "delete"}
        logger.info(
            "bulk.deleted", successful=len(result.successful), failed=len(result.failed)
        )
        await self.announce("deleted", result.successful, user)
        return result

    def can_access_backup(self, user: UserRow, backup: dict[str, Any]) -> bool:
        """Whoever could delete the snapshot, or whoever deleted it."""
        return (
            permissions.can_delete_prompt(user, backup.get("prompt_data") or {})
            or backup.get("deleted_by") == user.id
        )

    def list_deletion_backups(
        self, limit: int | None = 50, user: UserRow | None = None
    ) -> list[dict[str, Any]]:
        """Most recent deletions first, never more than ``list_cap``.

        With ``user``, only backups that user may access are listed.
        """
        limit = min(limit or self.list_cap, self.list_cap)
        if user is None:
            return self.db.select(BACKUPS, order_by="deleted_at", ascending=False, limit=limit)
        backups = self.db.select(BACKUPS, order_by="deleted_at", ascending=False)
        return [b for b in backups if self.can_access_backup(user, b)][:limit]

    def get_deletion_backup(self, prompt_id: str) -> dict[str, Any] | None:
        return self.db.get(BACKUPS, prompt_id)

    def restore_deleted_prompt(self, prompt_id: str, user: UserRow) -> dict[str, Any]:
        """Recreate a deleted prompt and its team assignments from the backup.

        Raises AlreadyRestoredError while the live prompt exists, so restoring
        twice never duplicates anything.
        """
        backup = self.get_deletion_backup(prompt_id)
        if not backup:
            raise NotFoundError(BACKUPS, prompt_id)
        if not self.can_access_backup(user, backup):
            raise UnauthorizedError("restore prompt", prompt_id)
        if self.db.get(PROMPTS, prompt_id):
            raise AlreadyRestoredError(prompt_id)

        snapshot = dict(backup["prompt_data"])
        now = datetime.now(timezone.utc).isoformat()
        snapshot.pop("id", None)
        snapshot["last_modified"] = now
        prompt = self.db.set(PROMPTS, prompt_id, snapshot)

        for item in backup.get("team_assignments") or []:
            edge = item.get("assignment") or {}
            self.teams.assign(
                item["team_id"],
                prompt_id,
                assigned_by=edge.get("assigned_by"),
                assigned_at=edge.get("assigned_at"),
            )

        self.db.update(BACKUPS, prompt_id, {"restored_at": now, "restored_by": user.id})
        logger.info("prompt.restored", prompt_id=prompt_id, restored_by=user.id)
        return prompt

    async def bulk_restore(self, prompt_ids: list[str], user: UserRow) -> BulkOperationResult:
        result = await run_bounded(
            prompt_ids, lambda pid: self.restore_deleted_prompt(pid, user), self.concurrency
        )
        result.operation = {"type": "restore"}
        await self.announce("restored", result.successful, user)
        return result

    async def announce(self, action: str, prompt_ids: list[str], user: UserRow) -> None:
        """Publish one lifecycle event per prompt, if a publisher is attached."""
        if not self.events:
            return
        for prompt_id in dict.fromkeys(prompt_ids):
            await self.events.publish_prompt_event(prompt_id, action, {}, actor=user.id)


@lru_cache
def get_deletion_manager() -> DeletionManager:
    """Get cached deletion manager instance."""
    settings = get_settings()
    return DeletionManager(
        get_record_store(),
        get_team_directory(),
        events=get_event_publisher(),
        concurrency=settings.bulk_concurrency,
        list_cap=settings.backup_list_cap,
    )
