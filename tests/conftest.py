import os
from typing import Any, Dict, Optional, Set

import pytest
from fastapi.testclient import TestClient

# Default to the in-memory backend and a fixed signing secret for tests
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("NEXTAUTH_URL", "http://testserver")

from firetodo.adapter import FirestoreAdapter  # noqa: E402
from firetodo.auth import get_identity_provider  # noqa: E402
from firetodo.bridge import SessionBridge  # noqa: E402
from firetodo.errors import SignInRejected  # noqa: E402
from firetodo.identity import IdentityProvider  # noqa: E402
from firetodo.main import app  # noqa: E402
from firetodo.settings import get_settings  # noqa: E402
from firetodo.store import InMemoryDocumentStore, get_document_store  # noqa: E402

CUSTOM_TOKEN_PREFIX = "custom-token:"


class FakeIdentityProvider(IdentityProvider):
    """
    Identity provider double: id tokens are registered up front, custom
    tokens are `custom-token:<uid>`.
    """

    def __init__(self) -> None:
        self.tokens: Dict[str, Dict[str, Any]] = {}
        self.revoked: Set[str] = set()
        self.minted: list = []
        self.fail_minting = False

    def register(self, id_token: str, uid: str, email: Optional[str] = None) -> None:
        self.tokens[id_token] = {"uid": uid, "email": email}

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        if id_token in self.revoked or id_token not in self.tokens:
            raise SignInRejected("CredentialsSignin")
        return dict(self.tokens[id_token])

    def create_custom_token(self, uid: str) -> str:
        if self.fail_minting:
            raise SignInRejected("Callback")
        token = f"{CUSTOM_TOKEN_PREFIX}{uid}"
        self.minted.append(token)
        return token


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def adapter(store):
    return FirestoreAdapter(store)


@pytest.fixture
def bridge(adapter, identity, settings):
    return SessionBridge(adapter, identity, settings)


@pytest.fixture
def client(store, identity):
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_identity_provider] = lambda: identity
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(adapter):
    def _make(name="Ada", email="ada@example.com", role="user", **extra):
        return adapter.create_user({"name": name, "email": email, "role": role, **extra})

    return _make


@pytest.fixture
def session_token(bridge):
    """Return a signed session token for a user dict."""

    def _token(user):
        raw, _ = bridge.issue_session(dict(user))
        return raw

    return _token


@pytest.fixture
def auth_headers(session_token):
    def _headers(user):
        return {"Authorization": f"Bearer {session_token(user)}"}

    return _headers
