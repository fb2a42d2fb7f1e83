from __future__ import annotations

import logging
from typing import Any, Dict, List

from authlib.integrations.starlette_client import OAuth

from .settings import Settings

logger = logging.getLogger(__name__)

GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"

PROVIDER_NAMES: Dict[str, str] = {
    "google": "Google",
    "github": "GitHub",
}

# Token fields copied onto the linked account record
_ACCOUNT_TOKEN_FIELDS = ("access_token", "refresh_token", "expires_at", "token_type", "scope", "id_token")


# PUBLIC_INTERFACE
def build_oauth(settings: Settings) -> OAuth:
    """
    Register the OAuth providers that have client credentials configured.
    """
    oauth = OAuth()
    if settings.google_client_id and settings.google_client_secret:
        oauth.register(
            name="google",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url=GOOGLE_DISCOVERY_URL,
            client_kwargs={"scope": "openid email profile"},
        )
    if settings.github_client_id and settings.github_client_secret:
        oauth.register(
            name="github",
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            access_token_url="https://github.com/login/oauth/access_token",
            authorize_url="https://github.com/login/oauth/authorize",
            api_base_url="https://api.github.com/",
            client_kwargs={"scope": "read:user user:email"},
        )
    return oauth


# PUBLIC_INTERFACE
def configured_providers(settings: Settings) -> List[str]:
    """Ids of the OAuth providers enabled by settings."""
    enabled = []
    if settings.google_client_id and settings.google_client_secret:
        enabled.append("google")
    if settings.github_client_id and settings.github_client_secret:
        enabled.append("github")
    return enabled


def google_profile(userinfo: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(userinfo["sub"]),
        "name": userinfo.get("name"),
        "email": userinfo.get("email"),
        "image": userinfo.get("picture"),
    }


def github_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(data["id"]),
        "name": data.get("name") or data.get("login"),
        "email": data.get("email"),
        "image": data.get("avatar_url"),
    }


# PUBLIC_INTERFACE
async def fetch_profile(client: Any, provider: str, token: Dict[str, Any]) -> Dict[str, Any]:
    """
    Load the provider profile for an access token and normalise it to
    `{id, name, email, image}`.
    """
    if provider == "google":
        userinfo = token.get("userinfo") or await client.userinfo(token=token)
        return google_profile(dict(userinfo))

    resp = await client.get("user", token=token)
    resp.raise_for_status()
    profile = github_profile(resp.json())
    if not profile["email"]:
        # Private emails are only listed on the emails endpoint
        emails_resp = await client.get("user/emails", token=token)
        if emails_resp.status_code == 200:
            primary = [e for e in emails_resp.json() if e.get("primary") and e.get("verified")]
            if primary:
                profile["email"] = primary[0]["email"]
    return profile


# PUBLIC_INTERFACE
def account_from_token(provider: str, profile: Dict[str, Any], token: Dict[str, Any]) -> Dict[str, Any]:
    """Build the linked-account record for a provider token response."""
    account: Dict[str, Any] = {
        "provider": provider,
        "type": "oauth",
        "providerAccountId": profile["id"],
    }
    for field in _ACCOUNT_TOKEN_FIELDS:
        if token.get(field) is not None:
            account[field] = token[field]
    return account
