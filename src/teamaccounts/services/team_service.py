"""Team service — membership checks for team-scoped operations.

Learn: Teams are owned elsewhere; this service only answers "is this
user on this team?" before handing out team data. A team the user
doesn't belong to is reported exactly like a team that doesn't exist,
so the check can't be used to discover team ids.
"""

import uuid
from typing import Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamaccounts.db.models import Team, User

IdLike = Union[str, uuid.UUID, None]


class BadDataError(ValueError):
    """A required id was missing or malformed."""


class TeamNotFoundError(Exception):
    pass


def _as_uuid(value: IdLike) -> uuid.UUID:
    if not value:
        raise BadDataError("Bad data")
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise BadDataError("Bad data")


class TeamService:
    """Business logic for team membership."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_permission_and_get_team(
        self, user_id: IdLike, team_id: IdLike
    ) -> Team:
        if not user_id or not team_id:
            raise BadDataError("Bad data")
        uid, tid = _as_uuid(user_id), _as_uuid(team_id)

        result = await self.db.execute(
            select(Team)
            .where(Team.id == tid)
            .options(selectinload(Team.members))
            .execution_options(populate_existing=True)
        )
        team = result.scalars().first()

        if not team or uid not in team.member_ids:
            raise TeamNotFoundError("Team not found")
        return team

    async def get_team_members(self, user_id: IdLike, team_id: IdLike) -> list[User]:
        team = await self.check_permission_and_get_team(user_id, team_id)
        result = await self.db.execute(
            select(User).where(User.id.in_(team.member_ids)).order_by(User.created_at)
        )
        return list(result.scalars().all())
