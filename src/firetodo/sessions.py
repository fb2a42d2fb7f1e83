"""
Stateless application sessions.

A session is a signed JWT carrying the user's identity and the custom
token the client uses to authenticate to the document store. Nothing is
stored server side; the token is re-signed with a fresh expiry on every
refresh.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from jose import JWTError, jwt

from .identity import IdentityProvider
from .settings import Settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_COOKIE = "session-token"
SECURE_SESSION_COOKIE = "__Secure-session-token"


# PUBLIC_INTERFACE
def cookie_name(settings: Settings) -> str:
    """Session cookie name; the secure-prefixed variant is used behind https."""
    return SECURE_SESSION_COOKIE if settings.secure_cookie else SESSION_COOKIE


# PUBLIC_INTERFACE
def refresh_token_payload(
    token: Dict[str, Any],
    identity: IdentityProvider,
    user: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Advance the session token by one refresh cycle.

    When `user` is given a sign-in just happened: a new custom token is
    minted for the user and embedded as `user.accessToken`. Otherwise the
    previous user claims, credential included, are carried over unchanged.
    """
    refreshed = dict(token)
    if user:
        uid = user.get("id") or token.get("sub")
        access_token = identity.create_custom_token(uid)
        refreshed["user"] = {**user, "id": uid, "accessToken": access_token}
        refreshed["sub"] = uid
        refreshed["name"] = user.get("name")
        refreshed["email"] = user.get("email")
        refreshed["picture"] = user.get("image")
    return refreshed


# PUBLIC_INTERFACE
def issue_session_token(
    token: Dict[str, Any], settings: Settings, now: Optional[datetime] = None
) -> Tuple[str, Dict[str, Any]]:
    """Sign the token claims with a fresh `iat`/`exp`. Returns the raw token and the signed claims."""
    issued = now or datetime.now(timezone.utc)
    claims = dict(token)
    claims["iat"] = int(issued.timestamp())
    claims["exp"] = int((issued + timedelta(seconds=settings.session_max_age)).timestamp())
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM), claims


# PUBLIC_INTERFACE
def encode_session_token(token: Dict[str, Any], settings: Settings, now: Optional[datetime] = None) -> str:
    raw, _ = issue_session_token(token, settings, now=now)
    return raw


# PUBLIC_INTERFACE
def decode_session_token(raw: Optional[str], settings: Settings) -> Optional[Dict[str, Any]]:
    """
    Return the verified claims of a session token, or None when the token is
    missing, tampered with or expired.
    """
    if not raw:
        return None
    try:
        claims = jwt.decode(raw, settings.jwt_secret, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug("Discarding invalid session token: %s", e)
        return None
    if not isinstance(claims.get("user"), dict) or not claims.get("sub"):
        return None
    return claims


# PUBLIC_INTERFACE
def session_payload(claims: Dict[str, Any]) -> Dict[str, Any]:
    """Public session view: the user (with store credential) and expiry time."""
    expires = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    return {"user": dict(claims["user"]), "expires": expires.isoformat()}
