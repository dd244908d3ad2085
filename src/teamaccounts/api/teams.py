"""Team API — read access for team members only.

Learn: Both routes go through TeamService.check_permission_and_get_team.
A non-member gets the same 404 as for a team that doesn't exist.
"""

from fastapi import APIRouter, Depends, HTTPException

from teamaccounts.api.deps import get_team_service
from teamaccounts.auth.dependencies import get_current_user
from teamaccounts.db.models import User
from teamaccounts.schemas.team import TeamRead
from teamaccounts.schemas.user import UserPublic
from teamaccounts.services.team_service import BadDataError, TeamNotFoundError, TeamService

router = APIRouter(prefix="/teams")


@router.get("/{team_id}", response_model=TeamRead)
async def get_team(
    team_id: str,
    user: User = Depends(get_current_user),
    svc: TeamService = Depends(get_team_service),
):
    try:
        return await svc.check_permission_and_get_team(user.id, team_id)
    except BadDataError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TeamNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{team_id}/members", response_model=list[UserPublic])
async def get_team_members(
    team_id: str,
    user: User = Depends(get_current_user),
    svc: TeamService = Depends(get_team_service),
):
    try:
        return await svc.get_team_members(user.id, team_id)
    except BadDataError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TeamNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
