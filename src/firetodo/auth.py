from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

from authlib.integrations.starlette_client import OAuth
from fastapi import Depends, Request, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from .adapter import Adapter, FirestoreAdapter
from .bridge import SessionBridge
from .errors import FORBIDDEN_ERROR, ApiError
from .identity import FirebaseIdentityProvider, IdentityProvider
from .oauth import build_oauth
from .sessions import cookie_name, decode_session_token
from .settings import Settings, get_settings
from .store import DocumentStore, get_document_store

_bearer = HTTPBearer(auto_error=False)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_identity_provider() -> IdentityProvider:
    """Return the process-wide Firebase identity provider."""
    from .firebase_app import get_firebase_app

    return FirebaseIdentityProvider(get_firebase_app(get_settings()))


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_oauth() -> OAuth:
    """Return the OAuth registry built from settings."""
    return build_oauth(get_settings())


# PUBLIC_INTERFACE
def get_adapter(store: DocumentStore = Depends(get_document_store)) -> Adapter:
    """Adapter over the configured document store."""
    return FirestoreAdapter(store)


# PUBLIC_INTERFACE
def get_session_bridge(
    adapter: Adapter = Depends(get_adapter),
    identity: IdentityProvider = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
) -> SessionBridge:
    return SessionBridge(adapter, identity, settings)


# PUBLIC_INTERFACE
def read_session_token(conn: HTTPConnection, settings: Settings) -> Optional[str]:
    """
    Find the raw session token on a request or websocket.

    Looks at the session cookie, then an `Authorization: Bearer` header.
    Websocket connections may also pass a `token` query parameter.
    """
    raw = conn.cookies.get(cookie_name(settings))
    if raw:
        return raw
    header = conn.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    if isinstance(conn, WebSocket):
        return conn.query_params.get("token") or None
    return None


# PUBLIC_INTERFACE
def get_optional_session(
    request: Request,
    settings: Settings = Depends(get_settings),
    _creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[Dict[str, Any]]:
    """
    Resolve the caller's application session.

    Returns the verified session claims, or None when there is no valid
    session. Never raises.
    """
    return decode_session_token(read_session_token(request, settings), settings)


# PUBLIC_INTERFACE
def require_session(session: Optional[Dict[str, Any]] = Depends(get_optional_session)) -> Dict[str, Any]:
    """
    Enforce a valid application session.

    Raises:
        ApiError(403) when the session is missing, invalid or expired.
    """
    if session is None:
        raise ApiError(status.HTTP_403_FORBIDDEN, FORBIDDEN_ERROR)
    return session


# PUBLIC_INTERFACE
def session_user_id(session: Dict[str, Any]) -> str:
    """The user id every todo query is scoped to."""
    return str(session["user"].get("id") or session["sub"])
