"""User service — sign-in/sign-up, profile, and preferences.

Learn: This is where accounts are reconciled. A person who first signs
in with Google and later with Microsoft (same email) must end up with
ONE user row carrying both provider ids. The lookup is a single query,
"email matches OR provider id matches"; whichever row it finds is the
account, and the new provider's id and tokens are merged onto it.

Side effects after sign-up (welcome email, mailing-list subscription)
are best-effort: a flaky email provider must never block account
creation, so their failures are logged and swallowed.

Concurrency: there are no locks. Two simultaneous first sign-ins for the
same email both miss the lookup and both INSERT; the unique index on
email rejects one of them and the IntegrityError propagates.
"""

import uuid
from typing import Optional, Union

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamaccounts.config import settings
from teamaccounts.db.models import OAUTH_PROVIDERS, User, utcnow
from teamaccounts.integrations.mailchimp_api import MailingList
from teamaccounts.integrations.ses import EmailSender
from teamaccounts.schemas.user import UserPublic
from teamaccounts.services.email_templates import get_email_template
from teamaccounts.services.invitation_service import InvitationService
from teamaccounts.utils.slugify import generate_slug, slugify

logger = structlog.get_logger()


class MissingFieldError(ValueError):
    """A required input was absent."""


class UnknownProviderError(ValueError):
    pass


class UserAlreadyExistsError(Exception):
    pass


class UserNotFoundError(Exception):
    pass


async def load_user(db: AsyncSession, user_id: Union[str, uuid.UUID]) -> User:
    """Fetch a user by id, raising UserNotFoundError for unknown or malformed ids."""
    try:
        uid = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
    except ValueError:
        raise UserNotFoundError("User not found")
    user = await db.get(User, uid)
    if not user:
        raise UserNotFoundError("User not found")
    return user


def public_fields() -> list[str]:
    return list(UserPublic.model_fields)


def oauth_fields() -> list[str]:
    """Public fields plus the provider ids of the providers that are enabled."""
    fields = public_fields()
    if settings.microsoft_enabled:
        fields.append("microsoft_id")
    if settings.google_enabled:
        fields.append("google_id")
    return fields


def project(user: User, fields: list[str]) -> dict:
    """Pick `fields` off a user row, JSON-ready."""
    data = {}
    for name in fields:
        value = getattr(user, name)
        data[name] = str(value) if isinstance(value, uuid.UUID) else value
    return data


class UserService:
    """Business logic for user accounts."""

    def __init__(
        self,
        db: AsyncSession,
        mailer: Optional[EmailSender] = None,
        mailing_list: Optional[MailingList] = None,
    ):
        self.db = db
        self.mailer = mailer or EmailSender()
        self.mailing_list = mailing_list or MailingList()
        self.invitations = InvitationService(db)

    # ─── Lookup ─────────────────────────────────────────

    async def get_user(self, user_id: Union[str, uuid.UUID]) -> User:
        return await load_user(self.db, user_id)

    async def get_public_user(self, user_id: Union[str, uuid.UUID]) -> UserPublic:
        return UserPublic.model_validate(await self.get_user(user_id))

    # ─── Sign in / sign up ──────────────────────────────

    async def sign_in_or_sign_up(
        self,
        provider: str,
        *,
        oauth_id: Optional[str],
        email: Optional[str],
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        oauth_token: Optional[dict] = None,
    ) -> User:
        """Find the account for an OAuth identity, or create it.

        `oauth_token` may carry "access_token" and/or "refresh_token".
        With no tokens, an existing account is returned untouched.
        """
        if not oauth_id:
            raise MissingFieldError("oauth_id is required")
        if provider not in OAUTH_PROVIDERS:
            raise UnknownProviderError(f"Unknown OAuth provider: {provider}")

        id_field = f"{provider}_id"
        tokens = {k: v for k, v in (oauth_token or {}).items() if v}

        conditions = [getattr(User, id_field) == oauth_id]
        if email:
            conditions.insert(0, User.email == email)
        result = await self.db.execute(select(User).where(or_(*conditions)))
        matches = list(result.scalars().all())

        if matches:
            # An email match outranks a provider-id match on a different row
            user = next((u for u in matches if email and u.email == email), matches[0])
            if not tokens:
                return user
            # The provider id can only be linked to one row
            id_held_elsewhere = any(
                u is not user and getattr(u, id_field) == oauth_id for u in matches
            )
            if id_held_elsewhere:
                logger.warning(
                    "user.provider_id_conflict",
                    provider=provider,
                    user_id=str(user.id),
                )
            return await self._merge_oauth_identity(
                user, provider, oauth_id, tokens, link_id=not id_held_elsewhere
            )

        if not email:
            raise MissingFieldError("email is required")

        user = User(
            created_at=utcnow(),
            email=email,
            display_name=display_name,
            avatar_url=avatar_url,
            slug=await generate_slug(self.db, User, display_name),
            default_team_slug="",
        )
        setattr(user, id_field, oauth_id)
        if tokens.get("access_token"):
            user.oauth_access_tokens = {provider: tokens["access_token"]}
        if tokens.get("refresh_token"):
            user.oauth_refresh_tokens = {provider: tokens["refresh_token"]}

        self.db.add(user)
        await self.db.commit()
        logger.info("user.signed_up", provider=provider, user_id=str(user.id))

        await self._after_sign_up(email, user_name=display_name)
        return user

    async def _merge_oauth_identity(
        self,
        user: User,
        provider: str,
        oauth_id: str,
        tokens: dict,
        *,
        link_id: bool = True,
    ) -> User:
        id_field = f"{provider}_id"
        if link_id and not getattr(user, id_field):
            setattr(user, id_field, oauth_id)

        # Assign new dicts: the encrypted columns only re-encrypt on assignment
        access_token = tokens.get("access_token")
        if access_token and (user.oauth_access_tokens or {}).get(provider) != access_token:
            user.oauth_access_tokens = {**(user.oauth_access_tokens or {}), provider: access_token}

        refresh_token = tokens.get("refresh_token")
        if refresh_token and (user.oauth_refresh_tokens or {}).get(provider) != refresh_token:
            user.oauth_refresh_tokens = {**(user.oauth_refresh_tokens or {}), provider: refresh_token}

        await self.db.commit()
        logger.info("user.signed_in", provider=provider, user_id=str(user.id))
        return user

    async def sign_up_by_email(
        self, *, uid: Union[str, uuid.UUID], email: str
    ) -> UserPublic:
        """Create an account for a passwordless sign-up, keyed by `uid`."""
        if not email:
            raise MissingFieldError("email is required")

        result = await self.db.execute(select(User.id).where(User.email == email))
        if result.first() is not None:
            raise UserAlreadyExistsError("User already exists")

        user = User(
            id=uid if isinstance(uid, uuid.UUID) else uuid.UUID(str(uid)),
            created_at=utcnow(),
            email=email,
            slug=await generate_slug(self.db, User, email),
            default_team_slug="",
        )
        self.db.add(user)
        await self.db.commit()
        logger.info("user.signed_up", provider="email", user_id=str(user.id))

        await self._after_sign_up(email, user_name=email)
        return UserPublic.model_validate(user)

    async def _after_sign_up(self, email: str, *, user_name: Optional[str]) -> None:
        """Welcome email (unless invited) and mailing-list subscription."""
        if not await self.invitations.has_open_invitation(email):
            template = get_email_template("welcome", {"userName": user_name or email})
            try:
                await self.mailer.send(
                    to=[email],
                    subject=template.subject,
                    body=template.message,
                )
            except Exception as e:
                logger.error("user.welcome_email_failed", email=email, error=str(e))

        try:
            await self.mailing_list.subscribe(email=email, list_name="signups")
        except Exception as e:
            logger.error("user.mailing_list_failed", email=email, error=str(e))

    # ─── Profile & preferences ──────────────────────────

    async def update_profile(
        self,
        user_id: Union[str, uuid.UUID],
        *,
        name: str,
        avatar_url: Optional[str],
    ) -> User:
        """Update name and avatar. A new name means a new slug."""
        user = await self.get_user(user_id)
        user.avatar_url = avatar_url

        if name != user.display_name:
            user.display_name = name
            if slugify(name) != user.slug:
                user.slug = await generate_slug(self.db, User, name)

        await self.db.commit()
        return user

    async def toggle_theme(
        self, user_id: Union[str, uuid.UUID], *, dark_theme: bool
    ) -> None:
        user = await self.get_user(user_id)
        user.dark_theme = bool(dark_theme)
        await self.db.commit()
