"""Table names, record ID helpers and the authenticated user model."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

Sharing = Literal["private", "team", "global"]
UsageAction = Literal["viewed", "copied", "used", "optimized"]

USAGE_ACTIONS: tuple[str, ...] = ("viewed", "copied", "used", "optimized")

# Table names
PROMPTS = "prompts"
TEAMS = "teams"
TEAM_MEMBERS = "team_members"
USERS = "users"
USAGE_LOG = "prompt_usage_log"
ASSIGNMENTS = "team_prompt_assignments"
BACKUPS = "deletion_backups"


def assignment_id(team_id: str, prompt_id: str) -> str:
    """Deterministic ID of the edge linking a prompt to a team."""
    return f"{team_id}:{prompt_id}"


def member_id(team_id: str, user_id: str) -> str:
    """Deterministic ID of a team membership row."""
    return f"{team_id}:{user_id}"


class UserRow(BaseModel):
    """Row from the users table."""

    id: str
    email: str
    team_id: str | None = None
    role: Literal["user", "super_user"] = "user"

