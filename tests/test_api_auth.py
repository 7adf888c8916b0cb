"""
tests/test_api_auth.py -- Integration tests for the auth routes.

These tests exercise the full stack: FastAPI routing -> dependency injection
-> AuthService -> SqlCredentialStore / JwtTokenIssuer -> response model
serialization and the AuthError exception handler.

Coverage:
  - Register: 201 happy path, 400 short password, 409 duplicate, 400 empty body
  - Login: 200 token pair, 401 for unknown email and wrong password (same body),
    400 for empty fields / missing fields / empty body, 422 for malformed JSON
  - No token fields in any error payload; Cache-Control: no-store on login
  - GET /me: 200 with an access token, 401 without one or with a refresh token
  - GET /health
  - 503 request_aborted when the request context is already cancelled

Fixtures used (from conftest.py):
  - api_client: (client, store, issuer) -- module-scoped TestClient.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.context import RequestContext
from auth.dependencies import get_request_context

_TOKEN_FIELDS = {"access_token", "refresh_token", "token_type"}


def _register(client: TestClient, email: str, password: str = "longenough", name: str = "Test User"):
    return client.post("/api/v1/auth/register", json={"email": email, "password": password, "name": name})


def _login(client: TestClient, email: str, password: str = "longenough"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegisterRoute:
    def test_register_returns_201(self, api_client) -> None:
        client, store, _ = api_client
        resp = _register(client, "register-ok@x.com")
        assert resp.status_code == 201
        assert resp.json() == {"message": "User registered successfully"}
        created = store.get_user_by_email("register-ok@x.com")
        assert created is not None
        assert created.created_at == created.updated_at

    def test_short_password_is_400(self, api_client) -> None:
        client, store, _ = api_client
        resp = _register(client, "short@x.com", password="short")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_input"
        assert store.get_user_by_email("short@x.com") is None

    def test_duplicate_is_409(self, api_client) -> None:
        client, _, _ = api_client
        assert _register(client, "dup@x.com").status_code == 201
        resp = _register(client, "dup@x.com", name="Second")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "user_already_exists"

    def test_missing_name_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register", json={"email": "noname@x.com", "password": "longenough"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_input"

    def test_empty_body_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/register")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "empty_body"


class TestLoginRoute:
    def test_login_returns_token_pair(self, api_client) -> None:
        client, store, issuer = api_client
        _register(client, "login-ok@x.com")
        resp = _login(client, "login-ok@x.com")
        assert resp.status_code == 200
        data = resp.json()
        assert data["token_type"] == "Bearer"
        assert data["refresh_token"]
        assert data["expires_in"] == 3600
        payload = issuer.decode_token(data["access_token"])
        assert payload["sub"] == store.get_user_by_email("login-ok@x.com").id
        assert resp.headers["cache-control"] == "no-store"

    def test_unknown_email_and_wrong_password_look_the_same(self, api_client) -> None:
        client, _, _ = api_client
        _register(client, "enum@x.com")
        unknown = _login(client, "nobody@x.com")
        wrong = _login(client, "enum@x.com", password="wrong-password")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()
        assert unknown.json()["error"]["code"] == "invalid_credentials"
        assert wrong.headers["cache-control"] == "no-store"

    def test_error_payload_has_no_token_fields(self, api_client) -> None:
        client, _, _ = api_client
        resp = _login(client, "nobody@x.com")
        assert not _TOKEN_FIELDS & set(resp.json())
        assert not _TOKEN_FIELDS & set(resp.json()["error"])

    def test_empty_email_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = _login(client, "", password="secret123")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_input"

    def test_missing_password_field_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/login", json={"email": "a@x.com"})
        assert resp.status_code == 400

    def test_empty_body_is_400(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post("/api/v1/auth/login")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "empty_body"

    def test_malformed_json_is_client_error(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(
            "/api/v1/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestMeRoute:
    def test_me_with_access_token(self, api_client) -> None:
        client, _, _ = api_client
        _register(client, "me@x.com", name="Me")
        token = _login(client, "me@x.com").json()["access_token"]
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["email"] == "me@x.com"
        assert resp.json()["name"] == "Me"

    def test_me_without_token_is_401(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_refresh_token_is_not_accepted(self, api_client) -> None:
        client, _, _ = api_client
        _register(client, "me-refresh@x.com")
        refresh = _login(client, "me-refresh@x.com").json()["refresh_token"]
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {refresh}"})
        assert resp.status_code == 401


def test_health(api_client) -> None:
    client, _, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"] == {"app": "ok", "database": "ok"}


class TestAbortedRequest:
    def test_cancelled_context_is_503(self, api_client) -> None:
        client, store, _ = api_client
        ctx = RequestContext()
        ctx.cancel()
        client.app.dependency_overrides[get_request_context] = lambda: ctx
        try:
            resp = _register(client, "aborted@x.com")
        finally:
            client.app.dependency_overrides.pop(get_request_context, None)
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "request_aborted"
        assert store.get_user_by_email("aborted@x.com") is None

    def test_cancelled_login_returns_no_tokens(self, api_client) -> None:
        client, _, _ = api_client
        _register(client, "aborted-login@x.com")
        ctx = RequestContext()
        ctx.cancel()
        client.app.dependency_overrides[get_request_context] = lambda: ctx
        try:
            resp = _login(client, "aborted-login@x.com")
        finally:
            client.app.dependency_overrides.pop(get_request_context, None)
        assert resp.status_code == 503
        assert not _TOKEN_FIELDS & set(resp.json())
