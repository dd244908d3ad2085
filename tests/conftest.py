"""Test fixtures — a fresh database per test, fake external services.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite database (aiosqlite) with the
   schema created from the models, so tests never see each other's rows.
2. The app's get_db dependency is overridden to yield that test's session.
3. SES, Mailchimp, Stripe and the OAuth registry are replaced with
   AsyncMock / fake objects through their own dependencies, so no test
   talks to the network.
"""

import os

os.environ.setdefault("TEAMACCOUNTS_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TEAMACCOUNTS_ENVIRONMENT", "development")

import uuid
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from teamaccounts.api.deps import get_mailer, get_mailing_list, get_oauth, get_stripe
from teamaccounts.db.engine import get_db
from teamaccounts.db.models import Base, Invitation, Team, TeamMember, User, utcnow
from teamaccounts.integrations.mailchimp_api import MailingList
from teamaccounts.integrations.ses import EmailSender
from teamaccounts.integrations.stripe_api import StripeClient
from teamaccounts.main import app


class FakeOAuthClient:
    """Stands in for an Authlib Starlette client."""

    def __init__(self, name: str):
        self.name = name
        self.token: dict = {}
        self.me: dict = {}
        self.error: Exception | None = None

    async def authorize_redirect(self, request, redirect_uri):
        from starlette.responses import RedirectResponse

        return RedirectResponse(
            f"https://provider.example.com/{self.name}/authorize?redirect_uri={redirect_uri}",
            status_code=302,
        )

    async def authorize_access_token(self, request):
        if self.error:
            raise self.error
        return self.token

    async def get(self, url, token=None):
        from httpx import Request, Response

        return Response(200, json=self.me, request=Request("GET", url))


class FakeOAuth:
    def __init__(self, *names: str):
        self.clients = {name: FakeOAuthClient(name) for name in names}

    def create_client(self, name):
        return self.clients.get(name)


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a private in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture()
def mailer():
    return AsyncMock(spec=EmailSender)


@pytest.fixture()
def mailing_list():
    return AsyncMock(spec=MailingList)


@pytest.fixture()
def stripe():
    return AsyncMock(spec=StripeClient)


@pytest.fixture()
def oauth_registry():
    return FakeOAuth("google", "microsoft")


@pytest_asyncio.fixture()
async def client(db_session, mailer, mailing_list, stripe, oauth_registry):
    """HTTP client with the database and all external services overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_mailing_list] = lambda: mailing_list
    app.dependency_overrides[get_stripe] = lambda: stripe
    app.dependency_overrides[get_oauth] = lambda: oauth_registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def make_user(db_session):
    """Factory: insert a user row directly."""

    async def _make(email=None, **fields) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            created_at=utcnow(),
            email=email or f"user-{suffix}@example.com",
            slug=fields.pop("slug", f"user-{suffix}"),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture()
async def make_team(db_session):
    """Factory: insert a team with the given members."""

    async def _make(*members: User, slug=None) -> Team:
        suffix = uuid.uuid4().hex[:8]
        team = Team(name=f"Team {suffix}", slug=slug or f"team-{suffix}")
        db_session.add(team)
        await db_session.flush()
        for member in members:
            db_session.add(TeamMember(team_id=team.id, user_id=member.id))
        await db_session.commit()
        return team

    return _make


@pytest_asyncio.fixture()
async def make_invitation(db_session):
    async def _make(team: Team, email: str, token=None) -> Invitation:
        invitation = Invitation(
            team_id=team.id, email=email, token=token or uuid.uuid4().hex
        )
        db_session.add(invitation)
        await db_session.commit()
        return invitation

    return _make


@pytest.fixture()
def signed_in(client):
    """Override get_current_user so `client` acts as the given user."""
    from teamaccounts.auth.dependencies import get_current_user

    def _sign_in(user: User):
        app.dependency_overrides[get_current_user] = lambda: user
        return client

    return _sign_in
