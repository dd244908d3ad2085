"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic auto-generates migrations by comparing these models to the actual DB.

Key concepts:
- UUID primary keys (email sign-up supplies its own id up front)
- Unique indexes are the only concurrency guard for sign-up races
- NULL provider ids don't collide, so google_id / microsoft_id are
  unique but optional
- Stripe objects are kept as JSON snapshots, not normalized tables
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from teamaccounts.db.types import EncryptedJSON


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


OAUTH_PROVIDERS = ("google", "microsoft")


class User(Base):
    """A person who can sign in. Identity plus billing snapshot.

    Learn: One row per human, no matter how many ways they sign in.
    Google and Microsoft accounts with the same email collapse onto the
    same row (see UserService.sign_in_or_sign_up).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # OAuth identities
    google_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    microsoft_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    # {"google": "...", "microsoft": "..."}, encrypted at rest
    oauth_access_tokens: Mapped[Optional[dict]] = mapped_column(EncryptedJSON)
    oauth_refresh_tokens: Mapped[Optional[dict]] = mapped_column(EncryptedJSON)

    # Profile
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024))
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_team_slug: Mapped[str] = mapped_column(
        String(255), nullable=False, default=""
    )
    dark_theme: Mapped[Optional[bool]] = mapped_column(Boolean)

    # Billing snapshot
    stripe_customer: Mapped[Optional[dict]] = mapped_column(JSON)
    stripe_card: Mapped[Optional[dict]] = mapped_column(JSON)
    has_card_information: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    stripe_list_of_invoices: Mapped[Optional[dict]] = mapped_column(JSON)

    @property
    def is_google_user(self) -> bool:
        return bool(self.google_id)

    @property
    def is_microsoft_user(self) -> bool:
        return bool(self.microsoft_id)

    def provider_id(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_id")


class Team(Base):
    """A team. Owned by the teams feature; we only check membership."""

    __tablename__ = "teams"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    members: Mapped[list["TeamMember"]] = relationship(
        back_populates="team", cascade="all, delete-orphan"
    )

    @property
    def member_ids(self) -> list[uuid.UUID]:
        return [m.user_id for m in self.members]


class TeamMember(Base):
    """Team membership — links users to teams."""

    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    team: Mapped["Team"] = relationship(back_populates="members")


class Invitation(Base):
    """Pending email → team link. Consumed on first sign-in."""

    __tablename__ = "invitations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    team_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    team: Mapped["Team"] = relationship()


class LoginToken(Base):
    """Passwordless login token store.

    Learn: One row per uid. The uid is the user's id for known emails, or
    a freshly minted id for emails that have never signed up (the user row
    is created with that id once the emailed link is clicked). Only the
    bcrypt hash of the token is stored.
    """

    __tablename__ = "login_tokens"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    uid: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_token: Mapped[Optional[str]] = mapped_column(String(255))
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
