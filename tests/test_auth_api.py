from fastapi.responses import RedirectResponse

from firetodo.auth import get_oauth
from firetodo.main import app
from firetodo.models import ACCOUNTS, USERS
from firetodo.sessions import SESSION_COOKIE

SIGN_IN = "/api/auth/callback/credentials"


def sign_in(client, identity, user, id_token="good-token"):
    identity.register(id_token, user["id"], email=user.get("email"))
    return client.post(SIGN_IN, json={"idToken": id_token})


class FakeGoogleClient:
    def __init__(self, userinfo):
        self.userinfo_data = userinfo

    async def authorize_access_token(self, request):
        return {"access_token": "google-access", "token_type": "Bearer", "userinfo": self.userinfo_data}

    async def authorize_redirect(self, request, redirect_uri):
        return RedirectResponse(f"https://accounts.example.com/auth?redirect_uri={redirect_uri}")


class FakeOAuth:
    def __init__(self, clients):
        self.clients = clients

    def create_client(self, name):
        return self.clients.get(name)


class TestCredentialSignIn:
    def test_sign_in_issues_session_with_store_credential(self, client, identity, make_user):
        user = make_user(name="Ada", role="admin")
        res = sign_in(client, identity, user)
        assert res.status_code == 200
        session = res.json()
        assert session["user"]["id"] == user["id"]
        assert session["user"]["name"] == "Ada"
        assert session["user"]["role"] == "admin"
        assert session["user"]["accessToken"] == f"custom-token:{user['id']}"
        assert "expires" in session
        assert SESSION_COOKIE in res.cookies

        # Cookie now authorises the todo API
        assert client.get("/api/query/todo").status_code == 200

    def test_unknown_subject_is_rejected(self, client, identity):
        identity.register("orphan-token", "no-such-user")
        res = client.post(SIGN_IN, json={"idToken": "orphan-token"})
        assert res.status_code == 401
        assert res.json() == {
            "error": "CredentialsSignin",
            "message": "Sign in failed. Check the details you provided are correct.",
        }
        assert SESSION_COOKIE not in res.cookies
        assert identity.minted == []

    def test_revoked_credential_is_rejected(self, client, identity, make_user):
        user = make_user()
        identity.register("revoked-token", user["id"])
        identity.revoked.add("revoked-token")
        res = client.post(SIGN_IN, json={"idToken": "revoked-token"})
        assert res.status_code == 401
        assert res.json()["error"] == "CredentialsSignin"
        assert client.get("/api/query/todo").status_code == 403

    def test_missing_id_token_is_validation_error(self, client):
        res = client.post(SIGN_IN, json={})
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

    def test_minting_failure_rejects_sign_in(self, client, identity, make_user):
        identity.fail_minting = True
        res = sign_in(client, identity, make_user())
        assert res.status_code == 401
        assert res.json()["error"] == "Callback"


class TestSessionLifecycle:
    def test_session_refresh_keeps_credential(self, client, identity, make_user):
        user = make_user()
        signed_in = sign_in(client, identity, user).json()

        res = client.get("/api/auth/session")
        assert res.status_code == 200
        refreshed = res.json()
        assert refreshed["user"]["accessToken"] == signed_in["user"]["accessToken"]
        assert SESSION_COOKIE in res.cookies
        assert len(identity.minted) == 1

    def test_session_when_signed_out(self, client):
        res = client.get("/api/auth/session")
        assert res.status_code == 200
        assert res.json() == {}

    def test_sign_out_clears_cookie(self, client, identity, make_user):
        sign_in(client, identity, make_user())
        assert client.get("/api/query/todo").status_code == 200

        res = client.post("/api/auth/signout")
        assert res.status_code == 200
        assert res.json()["url"].endswith("/login")
        assert client.get("/api/query/todo").status_code == 403


class TestErrorsAndProviders:
    def test_error_messages(self, client):
        res = client.get("/api/auth/error", params={"error": "OAuthAccountNotLinked"})
        assert res.json() == {
            "error": "OAuthAccountNotLinked",
            "message": "To confirm your identity, sign in with the same account you used originally.",
        }
        res = client.get("/api/auth/error", params={"error": "SomethingInternal"})
        assert res.json() == {"error": "default", "message": "Unable to sign in."}

    def test_providers_without_oauth_config(self, client):
        providers = client.get("/api/auth/providers").json()
        assert list(providers) == ["credentials"]
        assert providers["credentials"]["type"] == "credentials"


class TestPages:
    def test_dashboard_redirects_without_session(self, client):
        res = client.get("/dashboard", follow_redirects=False)
        assert res.status_code == 307
        assert res.headers["location"].endswith("/login")

    def test_dashboard_hides_store_credential(self, client, identity, make_user):
        user = make_user()
        sign_in(client, identity, user)
        res = client.get("/dashboard")
        assert res.status_code == 200
        assert res.json()["user"]["id"] == user["id"]
        assert "accessToken" not in res.json()["user"]

    def test_login_shows_error_message(self, client):
        res = client.get("/login", params={"error": "CredentialsSignin"})
        assert res.json()["error"] == "Sign in failed. Check the details you provided are correct."
        assert "credentials" in res.json()["providers"]

    def test_login_redirects_signed_in_user(self, client, identity, make_user):
        sign_in(client, identity, make_user())
        res = client.get("/login", follow_redirects=False)
        assert res.status_code == 307
        assert res.headers["location"].endswith("/dashboard")


class TestOAuthCallback:
    GRACE = {"sub": "g-1", "name": "Grace", "email": "grace@example.com", "picture": "https://img/g.png"}

    def _use_oauth(self, userinfo):
        app.dependency_overrides[get_oauth] = lambda: FakeOAuth({"google": FakeGoogleClient(userinfo)})

    def test_first_sign_in_creates_user_and_account(self, client, store):
        self._use_oauth(self.GRACE)
        res = client.get("/api/auth/callback/google", follow_redirects=False)
        assert res.status_code == 302
        assert res.headers["location"].endswith("/dashboard")
        assert SESSION_COOKIE in res.cookies

        users = store.query(USERS)
        accounts = store.query(ACCOUNTS)
        assert [u["email"] for u in users] == ["grace@example.com"]
        assert len(accounts) == 1
        assert accounts[0]["provider"] == "google"
        assert accounts[0]["providerAccountId"] == "g-1"
        assert accounts[0]["userId"] == users[0]["id"]
        assert accounts[0]["access_token"] == "google-access"

    def test_repeat_sign_in_reuses_linked_user(self, client, store):
        self._use_oauth(self.GRACE)
        client.get("/api/auth/callback/google", follow_redirects=False)
        self._use_oauth({**self.GRACE, "name": "Grace H."})
        client.get("/api/auth/callback/google", follow_redirects=False)

        users = store.query(USERS)
        assert len(users) == 1
        assert users[0]["name"] == "Grace H."
        assert len(store.query(ACCOUNTS)) == 1

    def test_existing_email_is_not_linked(self, client, store, make_user):
        make_user(name="Grace", email="grace@example.com")
        self._use_oauth(self.GRACE)
        res = client.get("/api/auth/callback/google", follow_redirects=False)
        assert res.status_code == 302
        assert res.headers["location"].endswith("/login?error=OAuthAccountNotLinked")
        assert SESSION_COOKIE not in res.cookies
        assert store.query(ACCOUNTS) == []

    def test_unknown_provider_redirects_with_error(self, client):
        app.dependency_overrides[get_oauth] = lambda: FakeOAuth({})
        res = client.get("/api/auth/signin/myspace", follow_redirects=False)
        assert res.status_code == 302
        assert res.headers["location"].endswith("/login?error=OAuthSignin")

    def test_sign_in_redirects_to_provider(self, client):
        self._use_oauth(self.GRACE)
        res = client.get("/api/auth/signin/google", follow_redirects=False)
        assert res.status_code == 307
        assert res.headers["location"].startswith("https://accounts.example.com/auth")
        assert res.headers["location"].endswith("/api/auth/callback/google")
