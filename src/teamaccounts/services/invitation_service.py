"""Invitation service — email → team links waiting for a sign-in.

Learn: An invitation row is "open" until someone signs in with its
token. Open invitations also suppress the welcome email: an invited
user gets the invitation email instead, one email is enough.
"""

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teamaccounts.db.models import Invitation, Team, TeamMember, User

logger = structlog.get_logger()


class InvitationNotFoundError(Exception):
    pass


class InvitationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def has_open_invitation(self, email: str) -> bool:
        result = await self.db.execute(
            select(func.count()).select_from(Invitation).where(Invitation.email == email)
        )
        return result.scalar_one() > 0

    async def add_user_to_team(self, *, token: str, user: User) -> Team:
        """Consume an invitation: join its team, then delete it."""
        result = await self.db.execute(
            select(Invitation)
            .where(Invitation.token == token)
            .options(selectinload(Invitation.team).selectinload(Team.members))
            .execution_options(populate_existing=True)
        )
        invitation = result.scalars().first()
        if not invitation:
            raise InvitationNotFoundError("Invitation not found")

        team = invitation.team
        if user.id not in team.member_ids:
            self.db.add(TeamMember(team_id=team.id, user_id=user.id))

        if not user.default_team_slug:
            user.default_team_slug = team.slug

        await self.db.delete(invitation)
        await self.db.commit()

        logger.info("invitation.accepted", team_id=str(team.id), user_id=str(user.id))
        return team
