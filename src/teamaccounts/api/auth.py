"""Auth routes — OAuth providers, passwordless email links, logout.

Learn: These routes are mounted at the root (not under /api/v1) because
their URLs are registered with Google/Microsoft and embedded in emails:
- GET  /auth/{provider}        → start OAuth (remembers ?next and ?invitationToken)
- GET  /oauth2{provider}       → OAuth callback → sign in or sign up → redirect
- POST /auth/send-token        → email a one-time login link
- GET  /auth/logged_in         → accept the link → session → redirect
- GET  /logout                 → clear session → redirect to the app's login page

Every successful sign-in ends the same way: the user's id is stored in
the signed session cookie (see auth.dependencies.login_session).
"""

from typing import Optional

import httpx
import structlog
from authlib.integrations.base_client import OAuthError
from authlib.integrations.starlette_client import OAuth
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from teamaccounts.api.deps import (
    get_invitation_service,
    get_login_token_service,
    get_oauth,
    get_user_service,
)
from teamaccounts.auth.dependencies import login_session, logout_session
from teamaccounts.auth.oauth import fetch_profile
from teamaccounts.config import settings
from teamaccounts.db.models import OAUTH_PROVIDERS, User
from teamaccounts.schemas.user import SendTokenRequest
from teamaccounts.services.invitation_service import (
    InvitationNotFoundError,
    InvitationService,
)
from teamaccounts.services.login_token_service import LoginTokenService
from teamaccounts.services.user_service import (
    MissingFieldError,
    UserAlreadyExistsError,
    UserService,
)

logger = structlog.get_logger()

router = APIRouter()


def redirect_after_login(user: User, next_url: Optional[str]) -> str:
    """Where the app should land after a successful OAuth sign-in."""
    if next_url:
        path = next_url
    elif not user.default_team_slug:
        path = "/create-team"
    else:
        path = f"/team/{user.default_team_slug}/discussions"
    return f"{settings.app_url}{path}"


# ─── Passwordless ────────────────────────────────────────


@router.post("/auth/send-token")
async def send_token(
    body: SendTokenRequest,
    svc: LoginTokenService = Depends(get_login_token_service),
):
    """Email a one-time login link to `email`."""
    try:
        await svc.send_token(body.email)
    except (BotoCoreError, ClientError):
        raise HTTPException(status_code=502, detail="Could not send login email")
    return {"done": 1}


@router.get("/auth/logged_in")
async def logged_in(
    request: Request,
    token: str,
    uid: str,
    svc: LoginTokenService = Depends(get_login_token_service),
):
    """Accept a login link and attach the session."""
    try:
        user_id = await svc.accept_token(token, uid)
    except UserAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired login link")

    login_session(request, user_id)
    return RedirectResponse(settings.app_url, status_code=302)


@router.get("/logout")
async def logout(request: Request):
    logout_session(request)
    return RedirectResponse(f"{settings.app_url}/login", status_code=302)


# ─── OAuth ───────────────────────────────────────────────


def _client_or_404(registry: OAuth, provider: str):
    client = registry.create_client(provider) if provider in OAUTH_PROVIDERS else None
    if client is None:
        raise HTTPException(status_code=404, detail="Unknown sign-in provider")
    return client


@router.get("/auth/{provider}")
async def oauth_login(
    provider: str,
    request: Request,
    next_url: Optional[str] = Query(None, alias="next"),
    invitation_token: Optional[str] = Query(None, alias="invitationToken"),
    registry: OAuth = Depends(get_oauth),
):
    """Start the OAuth flow. Only same-site paths are accepted for ?next."""
    client = _client_or_404(registry, provider)

    request.session["next_url"] = (
        next_url if next_url and next_url.startswith("/") else None
    )
    request.session["invitation_token"] = invitation_token or None

    redirect_uri = f"{settings.root_url}/oauth2{provider}"
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/oauth2{provider}")
async def oauth_callback(
    provider: str,
    request: Request,
    registry: OAuth = Depends(get_oauth),
    users: UserService = Depends(get_user_service),
    invitations: InvitationService = Depends(get_invitation_service),
):
    """OAuth callback: resolve the account, attach the session, redirect."""
    client = _client_or_404(registry, provider)
    failure = RedirectResponse(f"{settings.app_url}/login", status_code=302)

    try:
        profile = await fetch_profile(provider, client, request)
    except (OAuthError, httpx.HTTPError) as e:
        logger.warning("oauth.exchange_failed", provider=provider, error=str(e))
        return failure

    try:
        user = await users.sign_in_or_sign_up(
            provider,
            oauth_id=profile.oauth_id,
            email=profile.email,
            display_name=profile.display_name,
            avatar_url=profile.avatar_url,
            oauth_token=profile.oauth_token,
        )
    except MissingFieldError as e:
        logger.warning("oauth.profile_incomplete", provider=provider, error=str(e))
        return failure

    login_session(request, user.id)

    invitation_token = request.session.pop("invitation_token", None)
    if invitation_token:
        try:
            await invitations.add_user_to_team(token=invitation_token, user=user)
        except InvitationNotFoundError as e:
            logger.warning(
                "oauth.invitation_failed", user_id=str(user.id), error=str(e)
            )

    next_url = request.session.pop("next_url", None)
    return RedirectResponse(redirect_after_login(user, next_url), status_code=302)
