"""Prompt Registry: CRUD, scoped listing and table queries for prompts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from uuid import uuid4

import structlog

from prompt_keeper.core import permissions
from prompt_keeper.core.errors import NotFoundError, UnauthorizedError, ValidationError
from prompt_keeper.core.tags import require_valid_tags
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import PROMPTS, TEAMS, UserRow

logger = structlog.get_logger()

SORTABLE_FIELDS = ("title", "created_at", "last_modified", "usage_count", "last_used", "sharing")


@dataclass
class PromptFilters:
    """Table filters; empty values mean "no filter"."""

    search: str = ""
    tags: list[str] = field(default_factory=list)
    sharing: list[str] = field(default_factory=list)
    created_by: str | None = None
    has_usage: bool | None = None
    created_from: str | None = None
    created_to: str | None = None


@dataclass
class PromptPage:
    items: list[dict[str, Any]]
    total: int
    page: int
    page_size: int


def apply_sharing_rules(data: dict[str, Any]) -> dict[str, Any]:
    """Team prompts need a team; private and global prompts carry none."""
    if data.get("sharing") == "team":
        if not data.get("team_id"):
            raise ValidationError("Team prompts require a team_id")
    elif "sharing" in data:
        data["team_id"] = None
    return data


def filter_prompts(prompts: list[dict[str, Any]], filters: PromptFilters) -> list[dict[str, Any]]:
    results = prompts
    if filters.search:
        needle = filters.search.lower()
        results = [
            p for p in results
            if needle in (p.get("title") or "").lower()
            or needle in (p.get("content") or "").lower()
            or any(needle in t.lower() for t in p.get("tags") or [])
        ]
    if filters.tags:
        wanted = set(filters.tags)
        results = [p for p in results if wanted.intersection(p.get("tags") or [])]
    if filters.sharing:
        results = [p for p in results if p.get("sharing") in filters.sharing]
    if filters.created_by:
        results = [p for p in results if p.get("created_by") == filters.created_by]
    if filters.has_usage is not None:
        results = [p for p in results if ((p.get("usage_count") or 0) > 0) == filters.has_usage]
    if filters.created_from:
        results = [p for p in results if (p.get("created_at") or "") >= filters.created_from]
    if filters.created_to:
        results = [p for p in results if (p.get("created_at") or "") <= filters.created_to]
    return results


def sort_prompts(
    prompts: list[dict[str, Any]], sort_by: str = "created_at", descending: bool = True
) -> list[dict[str, Any]]:
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort by '{sort_by}'")

    def key(p: dict[str, Any]) -> Any:
        value = p.get(sort_by)
        if sort_by == "usage_count":
            return value or 0
        if sort_by == "title":
            return (value or "").lower()
        return value or ""

    return sorted(prompts, key=key, reverse=descending)


def paginate(prompts: list[dict[str, Any]], page: int, page_size: int) -> PromptPage:
    total = len(prompts)
    last_page = max(1, -(-total // page_size))
    page = min(max(page, 1), last_page)
    start = (page - 1) * page_size
    return PromptPage(items=prompts[start:start + page_size], total=total, page=page, page_size=page_size)


class PromptRegistry:
    """Manages prompt lifecycle: create, read, update and listing."""

    def __init__(self, db: RecordStore) -> None:
        self.db = db

    def _check_sharing(self, user: UserRow, sharing: str, team_id: str | None) -> None:
        if sharing == "team" and not permissions.can_create_team_prompts(user, team_id):
            raise UnauthorizedError("create team prompts", team_id)
        if sharing == "global" and not permissions.can_create_community_prompts(user):
            raise UnauthorizedError("create global prompts")

    def create_prompt(
        self,
        user: UserRow,
        title: str,
        content: str,
        tags: list[str] | None = None,
        sharing: str = "private",
        team_id: str | None = None,
        software: str | None = None,
    ) -> dict[str, Any]:
        """Create a new prompt owned by ``user``."""
        if sharing == "team":
            team_id = team_id or user.team_id
        self._check_sharing(user, sharing, team_id)

        now = datetime.now(timezone.utc).isoformat()
        data = apply_sharing_rules(
            {
                "title": title,
                "content": content,
                "tags": require_valid_tags(tags or []),
                "sharing": sharing,
                "team_id": team_id,
                "software": software,
                "created_by": user.id,
                "assigned_teams": [],
                "usage_count": 0,
                "last_used": None,
                "created_at": now,
                "last_modified": now,
                "modified_by": user.id,
            }
        )
        prompt = self.db.set(PROMPTS, uuid4().hex, data)
        logger.info("prompt.created", prompt_id=prompt["id"], sharing=sharing)
        return prompt

    def get_prompt(self, prompt_id: str) -> dict[str, Any] | None:
        """Get a prompt by ID."""
        return self.db.get(PROMPTS, prompt_id)

    def require_prompt(self, prompt_id: str) -> dict[str, Any]:
        prompt = self.get_prompt(prompt_id)
        if not prompt:
            raise NotFoundError(PROMPTS, prompt_id)
        return prompt

    def update_prompt(self, prompt_id: str, user: UserRow, **kwargs: Any) -> dict[str, Any]:
        """Update a prompt's fields after checking edit rights.

        Changing ``sharing`` or ``team_id`` needs the same rights as creating
        a prompt with the resulting sharing, and the sharing/team rule is
        applied to the merged record.
        """
        prompt = self.require_prompt(prompt_id)
        if not permissions.can_edit_prompt(user, prompt):
            raise UnauthorizedError("edit prompt", prompt_id)

        if "tags" in kwargs:
            kwargs["tags"] = require_valid_tags(kwargs["tags"])
        if "sharing" in kwargs or "team_id" in kwargs:
            sharing = kwargs.get("sharing", prompt.get("sharing"))
            team_id = kwargs.get("team_id", prompt.get("team_id"))
            if sharing == "team":
                team_id = team_id or user.team_id
            merged = apply_sharing_rules({"sharing": sharing, "team_id": team_id})
            if (merged["sharing"], merged["team_id"]) != (prompt.get("sharing"), prompt.get("team_id")):
                self._check_sharing(user, merged["sharing"], merged["team_id"])
            kwargs.update(merged)
        kwargs["last_modified"] = datetime.now(timezone.utc).isoformat()
        kwargs["modified_by"] = user.id

        updated = self.db.update(PROMPTS, prompt_id, kwargs)
        logger.info("prompt.updated", prompt_id=prompt_id, fields=sorted(kwargs))
        return updated

    def list_prompts(
        self, user: UserRow, scope: str = "private", team_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Prompts visible in one sharing scope, newest first."""
        if scope == "private":
            filters: dict[str, Any] = {"created_by": user.id}
        elif scope == "team":
            team_id = team_id or user.team_id
            if not team_id:
                return []
            if not (permissions.is_super_user(user) or user.team_id == team_id):
                raise UnauthorizedError("view team prompts", team_id)
            filters = {"sharing": "team", "team_id": team_id}
        elif scope == "global":
            filters = {"sharing": "global"}
        else:
            raise ValidationError(f"Unknown scope '{scope}'")
        return self.db.select(PROMPTS, filters=filters, order_by="created_at", ascending=False)

    def browse(
        self,
        user: UserRow,
        scope: str = "private",
        team_id: str | None = None,
        filters: PromptFilters | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> PromptPage:
        """Filtered, sorted and paginated view used by the prompt table."""
        prompts = self.list_prompts(user, scope=scope, team_id=team_id)
        prompts = filter_prompts(prompts, filters or PromptFilters())
        return paginate(sort_prompts(prompts, sort_by, descending), page, page_size)

    def prompt_counts(self) -> dict[str, int]:
        """Number of global prompts plus team-shared prompts per team."""
        counts = {"global": len(self.db.query_equal(PROMPTS, "sharing", "global"))}
        team_prompts = self.db.query_equal(PROMPTS, "sharing", "team")
        for team in self.db.select(TEAMS):
            counts[team["id"]] = sum(1 for p in team_prompts if p.get("team_id") == team["id"])
        return counts


@lru_cache
def get_registry() -> PromptRegistry:
    """Get cached registry instance."""
    return PromptRegistry(get_record_store())
