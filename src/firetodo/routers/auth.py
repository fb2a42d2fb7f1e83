from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from ..auth import get_oauth, get_session_bridge, read_session_token
from ..bridge import SessionBridge
from ..errors import ERROR_MESSAGES, SignInRejected, error_message
from ..oauth import PROVIDER_NAMES, account_from_token, configured_providers, fetch_profile
from ..schemas import CredentialSignIn, ErrorOut, SessionOut
from ..sessions import cookie_name
from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
)

CREDENTIALS_PROVIDER = "credentials"


def _set_session_cookie(response: Response, raw: str, settings: Settings) -> None:
    response.set_cookie(
        key=cookie_name(settings),
        value=raw,
        max_age=settings.session_max_age,
        httponly=True,
        secure=settings.secure_cookie,
        samesite="lax",
        path="/",
    )


def _login_redirect(settings: Settings, code: str) -> RedirectResponse:
    query = urlencode({"error": code})
    return RedirectResponse(url=f"{settings.base_url}/login?{query}", status_code=status.HTTP_302_FOUND)


def _rejection(e: SignInRejected) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": e.code, "message": e.message},
    )


# PUBLIC_INTERFACE
@router.post(
    "/callback/credentials",
    response_model=SessionOut,
    summary="Credential Sign In",
    description=(
        "Exchange an identity-provider id token for an application session. "
        "The session cookie is set on success."
    ),
    responses={401: {"model": ErrorOut, "description": "Sign-in rejected"}},
)
def credential_sign_in(
    payload: CredentialSignIn,
    response: Response,
    bridge: SessionBridge = Depends(get_session_bridge),
    settings: Settings = Depends(get_settings),
) -> Any:
    try:
        user = bridge.authorize_credentials(
            payload.id_token,
            email=payload.email,
            image=payload.image,
            email_verified=payload.email_verified,
        )
        raw, session = bridge.issue_session(user)
    except SignInRejected as e:
        return _rejection(e)

    logger.info("User %s signed in with credentials", user["id"])
    _set_session_cookie(response, raw, settings)
    return session


# PUBLIC_INTERFACE
@router.get(
    "/session",
    summary="Current Session",
    description=(
        "Return the current session and re-issue its cookie with a fresh expiry. "
        "The embedded store credential is carried over. Returns {} when signed out."
    ),
)
def get_session(
    request: Request,
    response: Response,
    bridge: SessionBridge = Depends(get_session_bridge),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    refreshed = bridge.refresh_session(read_session_token(request, settings))
    if refreshed is None:
        return {}
    raw, session = refreshed
    _set_session_cookie(response, raw, settings)
    return session


# PUBLIC_INTERFACE
@router.post(
    "/signout",
    summary="Sign Out",
    description="Clear the session cookie. Clients must close their live subscriptions first.",
)
def sign_out(response: Response, settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    response.delete_cookie(key=cookie_name(settings), path="/")
    return {"url": f"{settings.base_url}/login"}


# PUBLIC_INTERFACE
@router.get("/providers", summary="Sign-in Providers")
def list_providers(settings: Settings = Depends(get_settings)) -> Dict[str, Dict[str, str]]:
    base = f"{settings.base_url}/api/auth"
    providers = {
        CREDENTIALS_PROVIDER: {
            "id": CREDENTIALS_PROVIDER,
            "name": "Credentials",
            "type": "credentials",
            "signinUrl": f"{base}/callback/{CREDENTIALS_PROVIDER}",
            "callbackUrl": f"{base}/callback/{CREDENTIALS_PROVIDER}",
        }
    }
    for provider in configured_providers(settings):
        providers[provider] = {
            "id": provider,
            "name": PROVIDER_NAMES[provider],
            "type": "oauth",
            "signinUrl": f"{base}/signin/{provider}",
            "callbackUrl": f"{base}/callback/{provider}",
        }
    return providers


# PUBLIC_INTERFACE
@router.get("/error", response_model=ErrorOut, summary="Sign-in Error Message")
def sign_in_error(error: Optional[str] = Query(None, description="Short sign-in error code")) -> ErrorOut:
    code = error if error in ERROR_MESSAGES else "default"
    return ErrorOut(error=code, message=error_message(code))


# PUBLIC_INTERFACE
@router.get("/signin/{provider}", summary="Start OAuth Sign In")
async def oauth_sign_in(
    provider: str,
    request: Request,
    oauth: OAuth = Depends(get_oauth),
    settings: Settings = Depends(get_settings),
) -> Response:
    client = oauth.create_client(provider)
    if client is None:
        return _login_redirect(settings, "OAuthSignin")
    redirect_uri = f"{settings.base_url}/api/auth/callback/{provider}"
    return await client.authorize_redirect(request, redirect_uri)


# PUBLIC_INTERFACE
@router.get("/callback/{provider}", summary="OAuth Callback")
async def oauth_callback(
    provider: str,
    request: Request,
    oauth: OAuth = Depends(get_oauth),
    bridge: SessionBridge = Depends(get_session_bridge),
    settings: Settings = Depends(get_settings),
) -> Response:
    client = oauth.create_client(provider)
    if client is None:
        return _login_redirect(settings, "OAuthSignin")

    try:
        token = await client.authorize_access_token(request)
        profile = await fetch_profile(client, provider, token)
    except (OAuthError, httpx.HTTPError, KeyError) as e:
        logger.warning("OAuth callback for %s failed: %s", provider, type(e).__name__)
        return _login_redirect(settings, "OAuthCallback")

    try:
        account = account_from_token(provider, profile, token)
        user = await run_in_threadpool(bridge.sign_in_with_account, profile, account)
        raw, _ = await run_in_threadpool(bridge.issue_session, user)
    except SignInRejected as e:
        return _login_redirect(settings, e.code)

    logger.info("User %s signed in with %s", user["id"], provider)
    response = RedirectResponse(url=f"{settings.base_url}/dashboard", status_code=status.HTTP_302_FOUND)
    _set_session_cookie(response, raw, settings)
    return response
