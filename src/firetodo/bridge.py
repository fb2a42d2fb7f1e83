from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from .adapter import Adapter
from .errors import SignInRejected
from .identity import IdentityProvider
from .sessions import decode_session_token, issue_session_token, refresh_token_payload, session_payload
from .settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Claims re-stamped on every encode
_TIMING_CLAIMS = ("iat", "exp")


# PUBLIC_INTERFACE
class SessionBridge:
    """
    Turns a successful external authentication into an application session
    plus a custom token for the document store, keeping user and account
    records in sync through the adapter.

    Every failure, whether a bad credential or a provider/store error, ends
    as SignInRejected; nothing is retried.
    """

    def __init__(self, adapter: Adapter, identity: IdentityProvider, settings: Settings) -> None:
        self.adapter = adapter
        self.identity = identity
        self.settings = settings

    def _guarded(self, code: str, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except SignInRejected:
            raise
        except Exception as e:
            logger.warning("Sign-in lookup failed (%s): %s", code, type(e).__name__)
            raise SignInRejected(code) from e

    def authorize_credentials(
        self,
        id_token: str,
        email: Optional[str] = None,
        image: Optional[str] = None,
        email_verified: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Credential sign-in: verify the identity-provider token and resolve
        the existing user record for its subject.

        Unknown subjects are rejected; this path never creates users.
        """
        claims = self.identity.verify_id_token(id_token)
        uid = claims["uid"]
        profile = self._guarded("CredentialsSignin", lambda: self.adapter.get_user(uid))
        if profile is None:
            logger.info("Credential sign-in for unknown subject %s rejected", uid)
            raise SignInRejected("CredentialsSignin")

        return {
            "id": uid,
            "name": profile.get("name"),
            "role": profile.get("role"),
            "email": email or claims.get("email") or profile.get("email"),
            "image": image if image is not None else profile.get("image"),
            "emailVerified": email_verified if email_verified is not None else profile.get("emailVerified"),
        }

    def sign_in_with_account(self, profile: Dict[str, Any], account: Dict[str, Any]) -> Dict[str, Any]:
        """
        OAuth sign-in for a provider profile and the account tokens that came
        with it.

        - Linked account: sign in as its user, merging changed profile fields.
        - Unlinked, but the email already belongs to a user: rejected with
          OAuthAccountNotLinked.
        - Otherwise a new user is created and the account linked to it.
        """
        provider = account["provider"]
        provider_account_id = str(account["providerAccountId"])

        user = self._guarded(
            "OAuthCallback",
            lambda: self.adapter.get_user_by_account(provider, provider_account_id),
        )
        if user is not None:
            changes = {
                key: profile[key]
                for key in ("name", "image")
                if profile.get(key) and profile.get(key) != user.get(key)
            }
            if changes:
                merged = self._guarded(
                    "OAuthCallback",
                    lambda: self.adapter.update_user({"id": user["id"], **changes}),
                )
                user = merged or user
            return dict(user)

        email = profile.get("email")
        if email:
            existing = self._guarded("OAuthCallback", lambda: self.adapter.get_user_by_email(email))
            if existing is not None:
                logger.info("%s account %s not linked to existing user", provider, provider_account_id)
                raise SignInRejected("OAuthAccountNotLinked")

        new_user = {
            "name": profile.get("name"),
            "email": email,
            "image": profile.get("image"),
            "emailVerified": None,
        }
        created = self._guarded("OAuthCreateAccount", lambda: self.adapter.create_user(new_user))
        self._guarded(
            "OAuthCreateAccount",
            lambda: self.adapter.link_account(
                {**account, "providerAccountId": provider_account_id, "userId": created["id"]}
            ),
        )
        return dict(created)

    def issue_session(self, user: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Mint a session for a freshly signed-in user.

        Returns the signed session token and the public session payload.
        """
        token = refresh_token_payload({}, self.identity, user=user)
        return self._sign(token)

    def refresh_session(self, raw: Optional[str]) -> Optional[Tuple[str, Dict[str, Any]]]:
        """
        Re-sign a valid session with a fresh expiry, keeping its credential.

        Returns None when the session token is missing or invalid.
        """
        claims = decode_session_token(raw, self.settings)
        if claims is None:
            return None
        token = {k: v for k, v in claims.items() if k not in _TIMING_CLAIMS}
        return self._sign(refresh_token_payload(token, self.identity))

    def _sign(self, token: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        raw, claims = issue_session_token(token, self.settings)
        return raw, session_payload(claims)
