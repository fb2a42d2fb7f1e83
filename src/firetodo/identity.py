from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth, exceptions as firebase_exceptions

from .errors import SignInRejected

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class IdentityProvider(ABC):
    """
    The external identity service: verifies client credentials and mints
    custom tokens that let a client authenticate to the document store.
    """

    @abstractmethod
    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        """
        Verify an opaque bearer credential, including a revocation check.

        Returns the decoded claims (with at least `uid`). Raises
        SignInRejected("CredentialsSignin") on any failure.
        """

    @abstractmethod
    def create_custom_token(self, uid: str) -> str:
        """
        Mint a short-lived custom token for uid.

        Raises SignInRejected("Callback") if the token cannot be minted.
        """


class FirebaseIdentityProvider(IdentityProvider):
    """IdentityProvider backed by Firebase Authentication."""

    def __init__(self, app: Optional[firebase_admin.App] = None) -> None:
        self._app = app

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        try:
            claims = auth.verify_id_token(id_token, app=self._app, check_revoked=True)
        except (auth.RevokedIdTokenError, auth.ExpiredIdTokenError, auth.InvalidIdTokenError) as e:
            logger.info("Rejected id token: %s", type(e).__name__)
            raise SignInRejected("CredentialsSignin") from e
        except (auth.UserDisabledError, auth.CertificateFetchError, firebase_exceptions.FirebaseError) as e:
            # Provider-side failures are treated exactly like bad credentials
            logger.warning("Id token verification failed at provider: %s", type(e).__name__)
            raise SignInRejected("CredentialsSignin") from e
        except ValueError as e:
            logger.info("Malformed id token")
            raise SignInRejected("CredentialsSignin") from e

        if not claims.get("uid"):
            raise SignInRejected("CredentialsSignin")
        return dict(claims)

    def create_custom_token(self, uid: str) -> str:
        try:
            token = auth.create_custom_token(uid, app=self._app)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.warning("Could not mint custom token: %s", type(e).__name__)
            raise SignInRejected("Callback") from e
        return token.decode("utf-8") if isinstance(token, bytes) else str(token)
