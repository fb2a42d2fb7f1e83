from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

DEV_JWT_SECRET = "firetodo-dev-secret"


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'firestore'
    - FIREBASE_PROJECT_ID: Firebase project hosting Auth and Firestore
    - FIREBASE_ADMIN_CLIENT_EMAIL: service account client email
    - FIREBASE_ADMIN_PRIVATE_KEY: service account private key ('\\n' escapes allowed)
    - FIREBASE_API_KEY: web API key used by clients to exchange custom tokens
    - JWT_SECRET: secret used to sign session tokens
    - SESSION_MAX_AGE: session lifetime in seconds (default: 30 days)
    - NEXTAUTH_URL: canonical base URL of the web app (default: http://localhost:3000)
    - GOOGLE_ID / GOOGLE_SECRET: Google OAuth client (optional)
    - GITHUB_ID / GITHUB_SECRET: GitHub OAuth client (optional)
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level (default: INFO)
    """

    persistence_backend: str
    firebase_project_id: Optional[str]
    firebase_client_email: Optional[str]
    firebase_private_key: Optional[str]
    firebase_api_key: Optional[str]
    jwt_secret: str
    session_max_age: int
    base_url: str
    google_client_id: Optional[str]
    google_client_secret: Optional[str]
    github_client_id: Optional[str]
    github_client_secret: Optional[str]
    cors_allow_origins: List[str]
    log_level: str

    @property
    def secure_cookie(self) -> bool:
        return self.base_url.startswith("https://")

    @property
    def using_dev_secret(self) -> bool:
        return self.jwt_secret == DEV_JWT_SECRET


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _get_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_private_key(value: Optional[str]) -> Optional[str]:
    # Keys pasted into .env files keep their newlines escaped
    if value is None:
        return None
    return value.replace("\\n", "\n")


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "firestore"}:
        backend = "memory"

    return Settings(
        persistence_backend=backend,
        firebase_project_id=_get_optional("FIREBASE_PROJECT_ID"),
        firebase_client_email=_get_optional("FIREBASE_ADMIN_CLIENT_EMAIL"),
        firebase_private_key=_parse_private_key(_get_optional("FIREBASE_ADMIN_PRIVATE_KEY")),
        firebase_api_key=_get_optional("FIREBASE_API_KEY"),
        jwt_secret=_get_env("JWT_SECRET", DEV_JWT_SECRET),
        session_max_age=_parse_int(_get_env("SESSION_MAX_AGE", "2592000"), 2592000),
        base_url=_get_env("NEXTAUTH_URL", "http://localhost:3000").rstrip("/"),
        google_client_id=_get_optional("GOOGLE_ID"),
        google_client_secret=_get_optional("GOOGLE_SECRET"),
        github_client_id=_get_optional("GITHUB_ID"),
        github_client_secret=_get_optional("GITHUB_SECRET"),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )

