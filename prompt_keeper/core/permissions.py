"""Permission checks: pure functions of (user, resource).

None of these raise. A missing user never has permission. Team-shared
prompts can be edited and deleted by any member of the owning team, not
only by team admins.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from prompt_keeper.db.models import UserRow


def is_super_user(user: UserRow | None) -> bool:
    return user is not None and user.role == "super_user"


def is_team_admin(user: UserRow | None) -> bool:
    return is_super_user(user) or (user is not None and user.team_id is not None)


def can_manage_teams(user: UserRow | None) -> bool:
    return is_super_user(user)


def can_create_community_prompts(user: UserRow | None) -> bool:
    return is_super_user(user)


def can_manage_all_users(user: UserRow | None) -> bool:
    return is_super_user(user)


def can_access_super_admin(user: UserRow | None) -> bool:
    return is_super_user(user)


def can_manage_prompts(user: UserRow | None) -> bool:
    return is_super_user(user)


def can_create_team_prompts(user: UserRow | None, team_id: str | None = None) -> bool:
    """Members may create prompts for their own team; super users for any."""
    if is_super_user(user):
        return True
    if user is None or not user.team_id:
        return False
    return team_id is None or user.team_id == team_id


def can_manage_team_members(user: UserRow | None, team_id: str | None = None) -> bool:
    if is_super_user(user):
        return True
    if user is None or not user.team_id:
        return False
    return team_id is None or user.team_id == team_id


def _owns(user: UserRow, prompt: Mapping[str, Any]) -> bool:
    return prompt.get("created_by") is not None and prompt.get("created_by") == user.id


def _same_team(user: UserRow, prompt: Mapping[str, Any]) -> bool:
    return (
        prompt.get("sharing") == "team"
        and user.team_id is not None
        and prompt.get("team_id") == user.team_id
    )


def can_edit_prompt(user: UserRow | None, prompt: Mapping[str, Any]) -> bool:
    if user is None:
        return False
    return is_super_user(user) or _owns(user, prompt) or _same_team(user, prompt)


def can_delete_prompt(user: UserRow | None, prompt: Mapping[str, Any]) -> bool:
    if user is None:
        return False
    return is_super_user(user) or _owns(user, prompt) or _same_team(user, prompt)


def can_view_prompt(user: UserRow | None, prompt: Mapping[str, Any]) -> bool:
    if user is None:
        return False
    return (
        is_super_user(user)
        or _owns(user, prompt)
        or prompt.get("sharing") == "global"
        or _same_team(user, prompt)
    )
