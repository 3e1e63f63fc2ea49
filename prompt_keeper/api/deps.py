"""Shared request dependencies: current user and per-app services."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Header, HTTPException, Request

from prompt_keeper.core import permissions
from prompt_keeper.core.errors import UnauthorizedError
from prompt_keeper.core.registry import PromptRegistry, get_registry
from prompt_keeper.core.tracker import UsageTracker
from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import USERS, UserRow


def get_current_user(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
    db: RecordStore = Depends(get_record_store),
) -> UserRow | None:
    """The authenticated user forwarded by the identity provider, if any."""
    if not x_user_id:
        return None
    row = db.get(USERS, x_user_id)
    return UserRow(**row) if row else None


def require_user(user: UserRow | None = Depends(get_current_user)) -> UserRow:
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_viewable_prompt(
    prompt_id: str,
    user: UserRow = Depends(require_user),
    registry: PromptRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """The ``{prompt_id}`` path prompt, if the current user may see it."""
    prompt = registry.require_prompt(prompt_id)
    if not permissions.can_view_prompt(user, prompt):
        raise UnauthorizedError("view prompt", prompt_id)
    return prompt


def require_super_admin(user: UserRow = Depends(require_user)) -> UserRow:
    if not permissions.can_access_super_admin(user):
        raise UnauthorizedError("view system analytics")
    return user


def get_usage_tracker(request: Request) -> UsageTracker:
    return request.app.state.usage_tracker
