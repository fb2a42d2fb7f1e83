from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx
from jose import JWTError, jwt

from ..errors import StoreAuthenticationError
from ..store import DocumentStore
from .registry import ListenerRegistry
from .sync import ChangeCallback, TodoSync

logger = logging.getLogger(__name__)

SIGN_IN_WITH_CUSTOM_TOKEN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithCustomToken"


class SyncState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    SESSION_PENDING = "session-pending"
    STORE_AUTHENTICATED = "store-authenticated"


@dataclass(frozen=True)
class StoreSession:
    """Client credentials for the document store, obtained from a custom token."""

    uid: str
    id_token: str
    refresh_token: Optional[str] = None


# PUBLIC_INTERFACE
class CustomTokenExchange:
    """
    Exchanges a custom token for document-store credentials through the
    Firebase Auth REST API.
    """

    def __init__(self, api_key: str, client: Optional[httpx.Client] = None, timeout: float = 10.0) -> None:
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def exchange(self, custom_token: str) -> StoreSession:
        try:
            resp = self._client.post(
                SIGN_IN_WITH_CUSTOM_TOKEN_URL,
                params={"key": self._api_key},
                json={"token": custom_token, "returnSecureToken": True},
            )
            resp.raise_for_status()
            body = resp.json()
            id_token = body["idToken"]
            claims = jwt.get_unverified_claims(id_token)
        except (httpx.HTTPError, KeyError, ValueError, JWTError) as e:
            logger.warning("Custom token exchange failed: %s", type(e).__name__)
            raise StoreAuthenticationError("custom token exchange failed") from e
        return StoreSession(
            uid=str(claims.get("user_id") or claims.get("sub")),
            id_token=id_token,
            refresh_token=body.get("refreshToken"),
        )


# PUBLIC_INTERFACE
def firestore_store_factory(project_id: str) -> Callable[[StoreSession], DocumentStore]:
    """
    Build store factories that talk to Firestore as the signed-in user, so
    security rules apply to every read and write.
    """

    def _factory(store_session: StoreSession) -> DocumentStore:
        from google.cloud import firestore
        from google.oauth2.credentials import Credentials

        from ..db import FirestoreDocumentStore

        client = firestore.Client(project=project_id, credentials=Credentials(token=store_session.id_token))
        return FirestoreDocumentStore(client)

    return _factory


# PUBLIC_INTERFACE
class SessionController:
    """
    Binds an application session to a document-store session and the live
    subscriptions opened under it.

    unauthenticated -> session-pending (begin_session)
    session-pending -> store-authenticated (authenticate_store)
    any -> unauthenticated (sign_out: every listener closed first)

    A failed exchange leaves the controller in session-pending with
    `last_error` set; nothing retries it.
    """

    def __init__(
        self,
        exchange: CustomTokenExchange,
        store_factory: Callable[[StoreSession], DocumentStore],
        registry: Optional[ListenerRegistry] = None,
    ) -> None:
        self._exchange = exchange
        self._store_factory = store_factory
        self.registry = registry if registry is not None else ListenerRegistry()
        self.state = SyncState.UNAUTHENTICATED
        self.session: Optional[Dict[str, Any]] = None
        self.store: Optional[DocumentStore] = None
        self.store_session: Optional[StoreSession] = None
        self.last_error: Optional[Exception] = None

    @property
    def stuck(self) -> bool:
        return self.state is SyncState.SESSION_PENDING and self.last_error is not None

    @property
    def user_id(self) -> Optional[str]:
        if self.session is None:
            return None
        return self.session["user"].get("id")

    def begin_session(self, session: Dict[str, Any]) -> None:
        user = session.get("user") or {}
        if not user.get("id") or not user.get("accessToken"):
            raise ValueError("session has no user id or store credential")
        if self.state is not SyncState.UNAUTHENTICATED:
            self.sign_out()
        self.session = session
        self.last_error = None
        self.state = SyncState.SESSION_PENDING

    def authenticate_store(self) -> StoreSession:
        if self.state is not SyncState.SESSION_PENDING or self.session is None:
            raise RuntimeError(f"cannot authenticate store from state {self.state.value}")
        try:
            store_session = self._exchange.exchange(self.session["user"]["accessToken"])
            if store_session.uid != self.user_id:
                raise StoreAuthenticationError("store identity does not match session user")
            try:
                store = self._store_factory(store_session)
            except Exception as e:
                raise StoreAuthenticationError("document store client could not be created") from e
        except StoreAuthenticationError as e:
            self.last_error = e
            logger.error("Document store authentication failed; session left pending")
            raise
        self.store_session = store_session
        self.store = store
        self.last_error = None
        self.state = SyncState.STORE_AUTHENTICATED
        return store_session

    def sign_in(self, session: Dict[str, Any]) -> StoreSession:
        self.begin_session(session)
        return self.authenticate_store()

    def open_todos(self, on_change: Optional[ChangeCallback] = None) -> TodoSync:
        if self.state is not SyncState.STORE_AUTHENTICATED or self.store is None:
            raise RuntimeError("document store is not authenticated")
        sync = TodoSync(self.store, str(self.user_id), self.registry, on_change=on_change)
        sync.activate()
        return sync

    def sign_out(self) -> int:
        closed = self.registry.close_all()
        self.store = None
        self.store_session = None
        self.session = None
        self.last_error = None
        self.state = SyncState.UNAUTHENTICATED
        logger.info("Signed out; closed %d listener(s)", closed)
        return closed
