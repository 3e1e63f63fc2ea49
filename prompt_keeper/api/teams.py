"""Team endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from prompt_keeper.api.deps import require_user
from prompt_keeper.api.models import TeamMemberCreate, TeamMemberResponse, TeamResponse
from prompt_keeper.core import permissions
from prompt_keeper.core.errors import NotFoundError, UnauthorizedError
from prompt_keeper.core.teams import TeamDirectory, get_team_directory
from prompt_keeper.db.models import TEAMS, UserRow

router = APIRouter()


@router.get("", response_model=list[TeamResponse])
async def list_teams(
    user: UserRow = Depends(require_user),
    teams: TeamDirectory = Depends(get_team_directory),
) -> list[TeamResponse]:
    return [
        TeamResponse(**t, member_count=teams.member_count(t["id"])) for t in teams.list_teams()
    ]


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(
    team_id: str,
    user: UserRow = Depends(require_user),
    teams: TeamDirectory = Depends(get_team_directory),
) -> TeamResponse:
    team = teams.get_team(team_id)
    if not team:
        raise NotFoundError(TEAMS, team_id)
    return TeamResponse(**team, member_count=teams.member_count(team_id))


@router.get("/{team_id}/members", response_model=list[TeamMemberResponse])
async def list_members(
    team_id: str,
    user: UserRow = Depends(require_user),
    teams: TeamDirectory = Depends(get_team_directory),
) -> list[TeamMemberResponse]:
    if not teams.get_team(team_id):
        raise NotFoundError(TEAMS, team_id)
    return [TeamMemberResponse(**m) for m in teams.members(team_id)]


@router.post("/{team_id}/members", response_model=TeamMemberResponse, status_code=201)
async def add_member(
    team_id: str,
    data: TeamMemberCreate,
    user: UserRow = Depends(require_user),
    teams: TeamDirectory = Depends(get_team_directory),
) -> TeamMemberResponse:
    """Add a user to a team (team admins of that team and super users)."""
    if not permissions.can_manage_team_members(user, team_id):
        raise UnauthorizedError("manage members of team", team_id)
    if not teams.get_team(team_id):
        raise NotFoundError(TEAMS, team_id)
    return TeamMemberResponse(**teams.add_member(team_id, data.user_id, data.email, data.role))
