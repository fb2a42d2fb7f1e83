from unittest.mock import patch

import pytest
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from firetodo.errors import SignInRejected
from firetodo.identity import FirebaseIdentityProvider


@pytest.fixture
def provider():
    return FirebaseIdentityProvider(app=None)


class TestVerifyIdToken:
    def test_checks_revocation(self, provider):
        with patch("firetodo.identity.auth.verify_id_token") as verify:
            verify.return_value = {"uid": "u1", "email": "ada@example.com"}
            claims = provider.verify_id_token("tok")

        verify.assert_called_once_with("tok", app=None, check_revoked=True)
        assert claims["uid"] == "u1"

    @pytest.mark.parametrize(
        "error",
        [
            auth.RevokedIdTokenError("revoked"),
            auth.ExpiredIdTokenError("expired", cause=None),
            auth.InvalidIdTokenError("invalid"),
            auth.CertificateFetchError("no certs", cause=None),
            firebase_exceptions.UnavailableError("down"),
            ValueError("empty token"),
        ],
    )
    def test_every_failure_is_credentials_signin(self, provider, error):
        with patch("firetodo.identity.auth.verify_id_token", side_effect=error):
            with pytest.raises(SignInRejected) as exc:
                provider.verify_id_token("tok")
        assert exc.value.code == "CredentialsSignin"
        assert exc.value.__cause__ is error

    def test_claims_without_uid(self, provider):
        with patch("firetodo.identity.auth.verify_id_token", return_value={"email": "x@example.com"}):
            with pytest.raises(SignInRejected):
                provider.verify_id_token("tok")


class TestCreateCustomToken:
    def test_decodes_bytes(self, provider):
        with patch("firetodo.identity.auth.create_custom_token", return_value=b"signed.custom.token") as mint:
            assert provider.create_custom_token("u1") == "signed.custom.token"
        mint.assert_called_once_with("u1", app=None)

    def test_failure_is_callback_error(self, provider):
        with patch("firetodo.identity.auth.create_custom_token", side_effect=ValueError("no signer")):
            with pytest.raises(SignInRejected) as exc:
                provider.create_custom_token("u1")
        assert exc.value.code == "Callback"
