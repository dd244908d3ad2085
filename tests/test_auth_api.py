"""Auth route tests — OAuth round trips, login links, logout.

Learn: Tests cover:
1. /auth/{provider} redirects to the provider and remembers ?next
2. /oauth2{provider} signs in, sets the session cookie, and picks the
   landing page (create-team, ?next, default team, accepted invitation)
3. Failed OAuth exchanges land on the app's login page
4. Passwordless: send-token → emailed link → logged_in → session
5. Logout clears the session
"""

import html
import re
from urllib.parse import parse_qs, urlparse

import pytest
from authlib.integrations.base_client import OAuthError
from sqlalchemy import select

from teamaccounts.config import settings
from teamaccounts.db.models import Invitation, LoginToken, User


def google_token(sub="g-1", email="jane@example.com", name="Jane Doe", picture=None):
    return {
        "access_token": f"at-{sub}",
        "refresh_token": f"rt-{sub}",
        "userinfo": {"sub": sub, "email": email, "name": name, "picture": picture},
    }


async def oauth_round_trip(client, oauth_registry, provider="google", query="", **token):
    """Start the flow, then hit the callback with the fake provider's token."""
    fake = oauth_registry.clients[provider]
    if provider == "google":
        fake.token = google_token(**token)

    start = await client.get(f"/auth/{provider}{query}")
    assert start.status_code == 302
    return await client.get(f"/oauth2{provider}?code=abc&state=xyz")


# ═══════════════════════════════════════════════════════════
# OAuth start
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_oauth_start_redirects_to_provider(client):
    r = await client.get("/auth/google")
    assert r.status_code == 302
    location = r.headers["location"]
    assert location.startswith("https://provider.example.com/google/authorize")
    assert f"{settings.root_url}/oauth2google" in location
    assert r.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_unknown_provider_404(client):
    assert (await client.get("/auth/github")).status_code == 404
    assert (await client.get("/oauth2github")).status_code == 404


@pytest.mark.asyncio
async def test_unregistered_provider_404(client, oauth_registry):
    del oauth_registry.clients["microsoft"]
    assert (await client.get("/auth/microsoft")).status_code == 404


# ═══════════════════════════════════════════════════════════
# OAuth callback
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_new_user_lands_on_create_team(client, oauth_registry, db_session):
    r = await oauth_round_trip(client, oauth_registry)

    assert r.status_code == 302
    assert r.headers["location"] == f"{settings.app_url}/create-team"

    user = (await db_session.execute(select(User))).scalar_one()
    assert user.google_id == "g-1"
    assert user.email == "jane@example.com"


@pytest.mark.asyncio
async def test_session_cookie_authenticates_api(client, oauth_registry):
    await oauth_round_trip(client, oauth_registry)

    r = await client.get("/api/v1/users/me")
    assert r.status_code == 200
    me = r.json()
    assert me["email"] == "jane@example.com"
    assert me["is_google_user"] is True
    assert "oauth_access_tokens" not in me


@pytest.mark.asyncio
async def test_next_url_honored(client, oauth_registry):
    r = await oauth_round_trip(client, oauth_registry, query="?next=/settings/billing")
    assert r.headers["location"] == f"{settings.app_url}/settings/billing"


@pytest.mark.asyncio
async def test_offsite_next_url_ignored(client, oauth_registry):
    r = await oauth_round_trip(client, oauth_registry, query="?next=https://evil.example.com")
    assert r.headers["location"] == f"{settings.app_url}/create-team"


@pytest.mark.asyncio
async def test_returning_user_lands_on_default_team(client, oauth_registry, make_user):
    await make_user("jane@example.com", google_id="g-1", default_team_slug="acme")

    r = await oauth_round_trip(client, oauth_registry)

    assert r.headers["location"] == f"{settings.app_url}/team/acme/discussions"


@pytest.mark.asyncio
async def test_invitation_accepted_on_sign_in(
    client, oauth_registry, db_session, mailer, make_user, make_team, make_invitation
):
    owner = await make_user()
    team = await make_team(owner, slug="acme")
    await make_invitation(team, "jane@example.com", token="invite-1")

    r = await oauth_round_trip(client, oauth_registry, query="?invitationToken=invite-1")

    assert r.headers["location"] == f"{settings.app_url}/team/acme/discussions"
    mailer.send.assert_not_awaited()

    remaining = (await db_session.execute(select(Invitation))).scalars().all()
    assert remaining == []

    members = await client.get(f"/api/v1/teams/{team.id}/members")
    assert members.status_code == 200
    assert {m["email"] for m in members.json()} == {owner.email, "jane@example.com"}


@pytest.mark.asyncio
async def test_bad_invitation_token_still_signs_in(client, oauth_registry):
    r = await oauth_round_trip(client, oauth_registry, query="?invitationToken=missing")
    assert r.headers["location"] == f"{settings.app_url}/create-team"
    assert (await client.get("/api/v1/users/me")).status_code == 200


@pytest.mark.asyncio
async def test_microsoft_and_google_share_account(client, oauth_registry, db_session):
    await oauth_round_trip(client, oauth_registry)

    ms = oauth_registry.clients["microsoft"]
    ms.token = {"access_token": "ms-at"}
    ms.me = {"id": "m-1", "userPrincipalName": "jane@example.com", "displayName": "Jane"}
    await client.get("/logout")
    await oauth_round_trip(client, oauth_registry, provider="microsoft")

    users = (await db_session.execute(select(User))).scalars().all()
    assert len(users) == 1
    assert users[0].google_id == "g-1"
    assert users[0].microsoft_id == "m-1"


@pytest.mark.asyncio
async def test_exchange_failure_redirects_to_login(client, oauth_registry, db_session):
    oauth_registry.clients["google"].error = OAuthError(error="access_denied")

    await client.get("/auth/google")
    r = await client.get("/oauth2google?error=access_denied")

    assert r.status_code == 302
    assert r.headers["location"] == f"{settings.app_url}/login"
    assert (await db_session.execute(select(User))).first() is None


@pytest.mark.asyncio
async def test_profile_without_id_redirects_to_login(client, oauth_registry):
    r = await oauth_round_trip(client, oauth_registry, sub=None)
    assert r.headers["location"] == f"{settings.app_url}/login"
    assert (await client.get("/api/v1/users/me")).status_code == 401


# ═══════════════════════════════════════════════════════════
# Passwordless
# ═══════════════════════════════════════════════════════════


def emailed_link(mailer) -> str:
    body = mailer.send.await_args.kwargs["body"]
    url = html.unescape(re.search(r'href="([^"]+)"', body).group(1))
    parsed = urlparse(url)
    assert parsed.path == "/auth/logged_in"
    return f"{parsed.path}?{parsed.query}"


@pytest.mark.asyncio
async def test_send_token_and_log_in(client, mailer):
    r = await client.post("/auth/send-token", json={"email": "pat@example.com"})
    assert r.status_code == 200
    assert r.json() == {"done": 1}

    link = emailed_link(mailer)
    r = await client.get(link)
    assert r.status_code == 302
    assert r.headers["location"] == settings.app_url

    me = await client.get("/api/v1/users/me")
    assert me.status_code == 200
    assert me.json()["email"] == "pat@example.com"
    assert me.json()["id"] == parse_qs(urlparse(link).query)["uid"][0]


@pytest.mark.asyncio
async def test_login_link_lands_on_app_regardless_of_referer(client, mailer):
    r = await client.post(
        "/auth/send-token",
        json={"email": "pat@example.com"},
        headers={"Referer": "https://app.example.com/team/acme/settings"},
    )
    assert r.status_code == 200

    r = await client.get(emailed_link(mailer))
    assert r.headers["location"] == settings.app_url
    assert not hasattr(LoginToken, "origin_url")


@pytest.mark.asyncio
async def test_login_link_works_once(client, mailer):
    await client.post("/auth/send-token", json={"email": "pat@example.com"})
    link = emailed_link(mailer)

    assert (await client.get(link)).status_code == 302
    assert (await client.get(link)).status_code == 401


@pytest.mark.asyncio
async def test_login_link_after_oauth_sign_up_conflicts(client, mailer, make_user):
    """The link reserved a fresh id, but the email signed up another way meanwhile."""
    await client.post("/auth/send-token", json={"email": "pat@example.com"})
    link = emailed_link(mailer)
    await make_user("pat@example.com", google_id="g-7")

    r = await client.get(link)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_send_token_rejects_bad_email(client):
    r = await client.post("/auth/send-token", json={"email": "not-an-email"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_logged_in_with_garbage(client):
    r = await client.get("/auth/logged_in", params={"token": "x", "uid": "y"})
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_logout_clears_session(client, oauth_registry):
    await oauth_round_trip(client, oauth_registry)
    assert (await client.get("/api/v1/users/me")).status_code == 200

    r = await client.get("/logout")
    assert r.status_code == 302
    assert r.headers["location"] == f"{settings.app_url}/login"

    assert (await client.get("/api/v1/users/me")).status_code == 401
