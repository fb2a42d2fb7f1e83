from __future__ import annotations

from typing import Dict

# Human-readable sign-in failures, keyed by the short code carried in
# `?error=` redirects and rejection bodies. Provider internals never leak.
ERROR_MESSAGES: Dict[str, str] = {
    "Signin": "Try signing with a different account.",
    "OAuthSignin": "Try signing with a different account.",
    "OAuthCallback": "Try signing with a different account.",
    "OAuthCreateAccount": "Try signing with a different account.",
    "EmailCreateAccount": "Try signing with a different account.",
    "Callback": "Try signing with a different account.",
    "OAuthAccountNotLinked": "To confirm your identity, sign in with the same account you used originally.",
    "EmailSignin": "Check your email address.",
    "CredentialsSignin": "Sign in failed. Check the details you provided are correct.",
    "default": "Unable to sign in.",
}

FORBIDDEN_ERROR = "403 Forbidden error."
INVALID_REQUEST_ERROR = "400 Invalid Request."
NOT_FOUND_ERROR = "404 Not Found."


# PUBLIC_INTERFACE
def error_message(code: str) -> str:
    """Return the fixed user-facing message for a sign-in error code."""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES["default"])


# PUBLIC_INTERFACE
class SignInRejected(Exception):
    """
    Authentication was refused.

    Raised for invalid, expired or revoked credentials, unknown subjects and
    provider/store failures alike; callers only ever see the short code.
    """

    def __init__(self, code: str = "default") -> None:
        self.code = code if code in ERROR_MESSAGES else "default"
        super().__init__(self.code)

    @property
    def message(self) -> str:
        return error_message(self.code)


# PUBLIC_INTERFACE
class InvalidDocumentId(ValueError):
    """A document id was absent or not a valid store identifier."""


# PUBLIC_INTERFACE
class StoreAuthenticationError(Exception):
    """The custom token could not be exchanged for a document-store session."""


# PUBLIC_INTERFACE
class ApiError(Exception):
    """
    An HTTP failure rendered as `{"error": <error>}` by the app's exception
    handler.
    """

    def __init__(self, status_code: int, error: str) -> None:
        self.status_code = status_code
        self.error = error
        super().__init__(error)
