"""Passwordless login — token store, delivery, and acceptance.

Learn: The flow has three steps:
1. request_token(email) resolves a uid for the email (the user's id, or
   a reserved id for an email that has never signed up), stores a
   bcrypt hash of a fresh token with an expiry, and returns the token.
2. deliver() emails {root_url}/auth/logged_in?token=...&uid=...
3. accept_token(token, uid) checks the hash and expiry, clears the
   token so the link works once, and signs the email up if the uid has
   no user yet. The reserved uid becomes the new user's id.
"""

import uuid
from datetime import timedelta
from typing import Optional, Union
from urllib.parse import urlencode

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teamaccounts.auth.tokens import generate_token, hash_token, verify_token
from teamaccounts.config import settings
from teamaccounts.db.models import LoginToken, User, utcnow
from teamaccounts.integrations.ses import EmailSender
from teamaccounts.services.email_templates import get_email_template
from teamaccounts.services.user_service import UserService

logger = structlog.get_logger()


class LoginTokenService:
    def __init__(
        self,
        db: AsyncSession,
        mailer: Optional[EmailSender] = None,
        users: Optional[UserService] = None,
        ttl_minutes: Optional[int] = None,
        hash_rounds: int = 12,
    ):
        self.db = db
        self.mailer = mailer or EmailSender()
        self.users = users or UserService(db, mailer=self.mailer)
        self.ttl = timedelta(minutes=ttl_minutes or settings.login_token_ttl_minutes)
        self.hash_rounds = hash_rounds

    async def _get_by_email(self, email: str) -> Optional[LoginToken]:
        result = await self.db.execute(select(LoginToken).where(LoginToken.email == email))
        return result.scalars().first()

    async def store_or_update_by_email(self, email: str) -> uuid.UUID:
        """Reserve a uid for an email that has no user yet."""
        row = await self._get_by_email(email)
        if row:
            return row.uid

        row = LoginToken(uid=uuid.uuid4(), email=email)
        self.db.add(row)
        await self.db.commit()
        return row.uid

    async def _uid_for_email(self, email: str) -> uuid.UUID:
        result = await self.db.execute(select(User.id).where(User.email == email))
        user_id = result.scalar_one_or_none()
        if user_id is not None:
            return user_id
        return await self.store_or_update_by_email(email)

    async def request_token(self, email: str) -> tuple[str, uuid.UUID]:
        """Issue a new token for `email`. Replaces any outstanding one."""
        uid = await self._uid_for_email(email)
        token = generate_token()

        row = await self._get_by_email(email)
        if not row:
            row = LoginToken(uid=uid, email=email)
            self.db.add(row)
        row.uid = uid
        row.hashed_token = hash_token(token, rounds=self.hash_rounds)
        row.expires_at = utcnow() + self.ttl
        await self.db.commit()
        return token, uid

    def login_url(self, token: str, uid: uuid.UUID) -> str:
        query = urlencode({"token": token, "uid": str(uid)})
        return f"{settings.root_url}/auth/logged_in?{query}"

    async def deliver(self, token: str, uid: uuid.UUID, email: str) -> None:
        template = get_email_template("login", {"loginURL": self.login_url(token, uid)})
        try:
            await self.mailer.send(
                to=[email],
                subject=template.subject,
                body=template.message,
            )
        except Exception as e:
            logger.error("login_token.delivery_failed", email=email, error=str(e))
            raise

    async def send_token(self, email: str) -> uuid.UUID:
        token, uid = await self.request_token(email)
        await self.deliver(token, uid, email)
        return uid

    async def authenticate(self, token: str, uid: uuid.UUID) -> Optional[LoginToken]:
        """Return the token row if `token` is valid for `uid` right now."""
        result = await self.db.execute(
            select(LoginToken).where(
                LoginToken.uid == uid,
                LoginToken.hashed_token.is_not(None),
                LoginToken.expires_at > utcnow(),
            )
        )
        row = result.scalars().first()
        if row and verify_token(token, row.hashed_token):
            return row
        return None

    async def invalidate(self, uid: uuid.UUID) -> None:
        await self.db.execute(
            update(LoginToken)
            .where(LoginToken.uid == uid)
            .values(hashed_token=None, expires_at=None)
        )
        await self.db.commit()

    async def accept_token(
        self, token: str, uid: Union[str, uuid.UUID]
    ) -> Optional[uuid.UUID]:
        """Consume a login link. Returns the user id, or None if invalid."""
        try:
            uid = uid if isinstance(uid, uuid.UUID) else uuid.UUID(str(uid))
        except ValueError:
            return None

        row = await self.authenticate(token, uid)
        if not row:
            logger.info("login_token.rejected", uid=str(uid))
            return None

        email = row.email
        await self.invalidate(uid)

        if await self.db.get(User, uid) is None:
            await self.users.sign_up_by_email(uid=uid, email=email)
        return uid
