"""
tests/test_api_routes.py -- Integration tests for the user API routes.

These tests exercise the full stack: FastAPI routing -> rate limiter ->
auth dependency injection -> UserStore operations -> response serialization.

Coverage:
  - Registration: success message, duplicate name, password confirmation, validation
  - Login: token + echoed identity, generic failure for wrong password and unknown user
  - Protected routes: handler reached with the token's identity; 401 without a
    token, with the legacy "JWT" scheme, with a tampered or foreign token --
    and the handler is never invoked in those cases
  - Rate limiting on login returns the 429 envelope
  - CORS preflight admits only GET and POST

Fixtures used (from conftest.py):
  - api_client: (client, user_store) -- TestClient over the real app with an
    isolated shared-memory store
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenService


def _register(client: TestClient, username: str, password: str, **extra):
    return client.post("/api/user/register", json={"userName": username, "password": password, **extra})


def _login(client: TestClient, username: str, password: str):
    return client.post("/api/user/login", json={"userName": username, "password": password})


@pytest.fixture(scope="module")
def alice_token(api_client: tuple[TestClient, UserStore]) -> str:
    client, _store = api_client
    assert _register(client, "alice", "s3cret").status_code == 200
    resp = _login(client, "alice", "s3cret")
    assert resp.status_code == 200
    return resp.json()["token"]


class TestRegister:
    def test_register_success(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, store = api_client
        resp = _register(client, "dave", "pa55word", password2="pa55word")
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"message": "User dave successfully registered."}
        assert store.get_by_username("dave").hashed_password != "pa55word"

    def test_register_duplicate(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, store = api_client
        assert _register(client, "erin", "first").status_code == 200
        resp = _register(client, "erin", "second")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "duplicate_username"
        # The original password still works; nothing was overwritten.
        assert _login(client, "erin", "first").status_code == 200

    def test_register_password_mismatch(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, store = api_client
        resp = _register(client, "frank", "one", password2="two")
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "password_mismatch"
        assert _login(client, "frank", "one").status_code == 422

    @pytest.mark.parametrize(
        "body",
        [
            {"userName": "gina"},
            {"password": "pw"},
            {"userName": "", "password": "pw"},
            {"userName": "   ", "password": "pw"},
            {"userName": "gina", "password": "p" * 73},
            {"userName": "gina", "password": "\u00e9" * 40},
        ],
    )
    def test_register_validation(self, api_client: tuple[TestClient, UserStore], body: dict) -> None:
        client, _store = api_client
        resp = client.post("/api/user/register", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestLogin:
    def test_login_returns_token_and_identity(
        self, api_client: tuple[TestClient, UserStore], alice_token: str
    ) -> None:
        client, store = api_client
        resp = _login(client, "alice", "s3cret")
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "login successful"
        assert data["token"]
        assert data["user"] == {"id": store.get_by_username("alice").id, "userName": "alice"}
        assert resp.headers["cache-control"] == "no-store"

    def test_wrong_password_and_unknown_user_look_the_same(
        self, api_client: tuple[TestClient, UserStore], alice_token: str
    ) -> None:
        client, _store = api_client
        wrong = _login(client, "alice", "wrong")
        unknown = _login(client, "nobody", "s3cret")
        assert wrong.status_code == unknown.status_code == 422
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "bad_credentials"
        assert "token" not in wrong.json()


class TestProtectedRoutes:
    def test_favourites_reach_handler_with_identity(
        self,
        api_client: tuple[TestClient, UserStore],
        alice_token: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        client, store = api_client
        seen: list[int] = []
        monkeypatch.setattr(store, "get_favourites", lambda user_id: seen.append(user_id) or ["436535"])

        resp = client.get("/api/user/favourites", headers={"Authorization": f"Bearer {alice_token}"})
        assert resp.status_code == 200
        assert resp.json() == ["436535"]
        assert seen == [store.get_by_username("alice").id]

    def test_me_echoes_token_identity(self, api_client: tuple[TestClient, UserStore], alice_token: str) -> None:
        client, _store = api_client
        resp = client.get("/api/user/me", headers={"Authorization": f"Bearer {alice_token}"})
        assert resp.status_code == 200
        assert resp.json()["userName"] == "alice"

    def test_history_authenticated(self, api_client: tuple[TestClient, UserStore], alice_token: str) -> None:
        client, _store = api_client
        resp = client.get("/api/user/history", headers={"Authorization": f"Bearer {alice_token}"})
        assert resp.status_code == 200
        assert resp.json() == []

    @pytest.mark.parametrize(
        "header",
        [
            None,
            "JWT {token}",
            "Bearer {token}tampered",
            "Bearer not-a-jwt",
        ],
    )
    def test_rejected_requests_never_reach_handler(
        self,
        api_client: tuple[TestClient, UserStore],
        alice_token: str,
        monkeypatch: pytest.MonkeyPatch,
        header: str | None,
    ) -> None:
        client, store = api_client
        seen: list[int] = []
        monkeypatch.setattr(store, "get_favourites", lambda user_id: seen.append(user_id) or [])

        headers = {"Authorization": header.format(token=alice_token)} if header else {}
        resp = client.get("/api/user/favourites", headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {"error": {"code": "unauthorized", "message": "Unauthorized."}}
        assert resp.headers["www-authenticate"] == "Bearer"
        assert seen == []

    def test_token_from_another_secret_rejected(self, api_client: tuple[TestClient, UserStore]) -> None:
        client, _store = api_client
        forged = TokenService("an-attacker-chosen-secret-of-32-or-more-chars").create_access_token(
            User(id=1, username="alice", hashed_password="")
        )
        resp = client.get("/api/user/me", headers={"Authorization": f"Bearer {forged}"})
        assert resp.status_code == 401


class TestRateLimit:
    def test_login_rate_limited(self, api_client: tuple[TestClient, UserStore], monkeypatch: pytest.MonkeyPatch) -> None:
        client, _store = api_client
        monkeypatch.setattr("api.limiter.get_settings", lambda: _LimitSettings("2/minute"))
        limiter.reset()
        try:
            assert _login(client, "nobody", "pw").status_code == 422
            assert _login(client, "nobody", "pw").status_code == 422
            resp = _login(client, "nobody", "pw")
            assert resp.status_code == 429
            assert resp.json()["error"]["code"] == "rate_limited"
            assert "retry-after" in resp.headers
        finally:
            limiter.reset()


class _LimitSettings:
    def __init__(self, login_rate_limit: str) -> None:
        self.login_rate_limit = login_rate_limit


class TestCors:
    @pytest.mark.parametrize(("method", "expected"), [("GET", 200), ("POST", 200), ("PUT", 400), ("DELETE", 400)])
    def test_preflight_allows_only_read_and_credential_methods(
        self, api_client: tuple[TestClient, UserStore], method: str, expected: int
    ) -> None:
        client, _store = api_client
        resp = client.options(
            "/api/user/favourites",
            headers={"Origin": "https://app.example.com", "Access-Control-Request-Method": method},
        )
        assert resp.status_code == expected
