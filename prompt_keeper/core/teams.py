"""Team directory: teams, members and prompt assignment edges."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import structlog

from prompt_keeper.db.client import RecordStore, get_record_store
from prompt_keeper.db.models import ASSIGNMENTS, TEAM_MEMBERS, TEAMS, USERS, assignment_id, member_id

logger = structlog.get_logger()


class TeamDirectory:
    """Reads teams and maintains the team/prompt assignment edges."""

    def __init__(self, db: RecordStore) -> None:
        self.db = db

    def list_teams(self) -> list[dict[str, Any]]:
        return self.db.select(TEAMS, order_by="name")

    def get_team(self, team_id: str) -> dict[str, Any] | None:
        return self.db.get(TEAMS, team_id)

    def members(self, team_id: str) -> list[dict[str, Any]]:
        return self.db.query_equal(TEAM_MEMBERS, "team_id", team_id)

    def member_count(self, team_id: str) -> int:
        return len(self.members(team_id))

    def add_member(
        self, team_id: str, user_id: str, email: str, role: str = "member"
    ) -> dict[str, Any]:
        """Add (or re-add) a user to a team and point the user at it."""
        row = self.db.set(
            TEAM_MEMBERS,
            member_id(team_id, user_id),
            {
                "team_id": team_id,
                "user_id": user_id,
                "email": email,
                "role": role,
                "joined_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        if self.db.get(USERS, user_id):
            self.db.update(USERS, user_id, {"team_id": team_id})
        logger.info("team.member_added", team_id=team_id, user_id=user_id, role=role)
        return row

    # --- Assignment edges ---

    def assignments_for_prompt(self, prompt_id: str) -> list[dict[str, Any]]:
        return self.db.query_equal(ASSIGNMENTS, "prompt_id", prompt_id)

    def assign(
        self,
        team_id: str,
        prompt_id: str,
        assigned_by: str | None = None,
        assigned_at: str | None = None,
    ) -> dict[str, Any]:
        """Upsert the edge; assigning twice leaves a single edge."""
        return self.db.set(
            ASSIGNMENTS,
            assignment_id(team_id, prompt_id),
            {
                "team_id": team_id,
                "prompt_id": prompt_id,
                "assigned_at": assigned_at or datetime.now(timezone.utc).isoformat(),
                "assigned_by": assigned_by,
            },
        )

    def unassign(self, team_id: str, prompt_id: str) -> None:
        self.db.remove(ASSIGNMENTS, assignment_id(team_id, prompt_id))


@lru_cache
def get_team_directory() -> TeamDirectory:
    """Get cached team directory instance."""
    return TeamDirectory(get_record_store())
