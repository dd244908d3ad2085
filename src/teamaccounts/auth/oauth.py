"""OAuth provider registry and profile extraction.

Learn: Authlib's Starlette integration handles the authorization-code
dance (redirect, state check, code exchange). We register a provider
only when its client id AND secret are configured, so an app without
Microsoft credentials simply has no /auth/microsoft route target.

Each provider returns a different profile shape; profile_from_token()
normalizes it into the fields UserService.sign_in_or_sign_up takes.
"""

from dataclasses import dataclass, field
from typing import Optional

from authlib.integrations.starlette_client import OAuth

from teamaccounts.config import Settings, settings
from teamaccounts.db.models import OAUTH_PROVIDERS

GOOGLE_METADATA_URL = "https://accounts.google.com/.well-known/openid-configuration"
MICROSOFT_AUTHORITY = "https://login.microsoftonline.com/common/oauth2/v2.0"
MICROSOFT_GRAPH_ME = "https://graph.microsoft.com/v1.0/me"


@dataclass
class OAuthProfile:
    oauth_id: Optional[str]
    email: Optional[str]
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    oauth_token: dict = field(default_factory=dict)


def build_oauth(config: Settings = settings) -> OAuth:
    oauth = OAuth()
    if config.google_enabled:
        oauth.register(
            name="google",
            client_id=config.google_client_id,
            client_secret=config.google_client_secret,
            server_metadata_url=GOOGLE_METADATA_URL,
            client_kwargs={"scope": "openid email profile", "prompt": "select_account"},
        )
    if config.microsoft_enabled:
        oauth.register(
            name="microsoft",
            client_id=config.microsoft_client_id,
            client_secret=config.microsoft_client_secret,
            authorize_url=f"{MICROSOFT_AUTHORITY}/authorize",
            access_token_url=f"{MICROSOFT_AUTHORITY}/token",
            api_base_url="https://graph.microsoft.com/v1.0/",
            client_kwargs={"scope": "User.Read offline_access"},
        )
    return oauth


oauth = build_oauth()


def enabled_providers(registry: OAuth = oauth) -> list[str]:
    return [p for p in OAUTH_PROVIDERS if registry.create_client(p) is not None]


def _tokens(token: dict) -> dict:
    return {
        "access_token": token.get("access_token"),
        "refresh_token": token.get("refresh_token"),
    }


def google_profile(token: dict) -> OAuthProfile:
    """Profile from Google's OpenID userinfo (parsed from the id_token)."""
    info = token.get("userinfo") or {}
    avatar_url = info.get("picture")
    if avatar_url:
        avatar_url = avatar_url.replace("sz=50", "sz=128")
    return OAuthProfile(
        oauth_id=info.get("sub"),
        email=info.get("email"),
        display_name=info.get("name"),
        avatar_url=avatar_url,
        oauth_token=_tokens(token),
    )


def microsoft_profile(token: dict, me: dict) -> OAuthProfile:
    """Profile from Microsoft Graph /me.

    Personal and some work accounts have no `mail`; userPrincipalName
    is the sign-in address and is used instead.
    """
    return OAuthProfile(
        oauth_id=me.get("id"),
        email=me.get("mail") or me.get("userPrincipalName"),
        display_name=me.get("displayName"),
        avatar_url=None,
        oauth_token=_tokens(token),
    )


async def fetch_profile(provider: str, client, request) -> OAuthProfile:
    """Finish the OAuth exchange for `provider` and return its profile."""
    token = await client.authorize_access_token(request)
    if provider == "google":
        return google_profile(token)

    resp = await client.get(MICROSOFT_GRAPH_ME, token=token)
    resp.raise_for_status()
    return microsoft_profile(token, resp.json())
