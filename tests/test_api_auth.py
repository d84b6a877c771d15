"""
tests/test_api_auth.py -- Integration tests for the /api/v1/auth routes.

These tests exercise the full stack: FastAPI routing -> AuthService ->
UserStore/RefreshTokenStore -> error handlers -> response envelope.

Coverage:
  - register: 201 without hash in body, 409 duplicate, 422 weak password / bad email,
    422 for a password over 72 UTF-8 bytes
  - login: 200 token pair with no-store, 401 identical for unknown email and wrong password,
    email trimmed but password whitespace kept
  - refresh: rotation, single-use replay 401, access token 401, garbage 401
  - me: 200 with Bearer access token, 401 without / with refresh token
  - store outage: 503 store_unavailable with Retry-After

Fixtures used (from conftest.py):
  - api_client: TestClient wired to in-memory stores for this module
  - register_and_login: helper returning the login JSON body
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.errors import StoreUnavailableError

PASSWORD = "Passw0rd!x"


class TestRegisterRoute:
    def test_register_returns_201(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/register", json={"email": "reg@example.com", "password": PASSWORD})
        assert resp.status_code == 201
        data = resp.json()
        assert data["email"] == "reg@example.com"
        assert data["id"]
        assert "hashed_password" not in data
        assert "password" not in data

    def test_register_duplicate_returns_409(self, api_client: TestClient) -> None:
        body = {"email": "dup@example.com", "password": PASSWORD}
        assert api_client.post("/api/v1/auth/register", json=body).status_code == 201
        resp = api_client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_register_weak_password_returns_422(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/register", json={"email": "weak@example.com", "password": "password"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_bad_email_returns_422(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": PASSWORD})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_multibyte_password_over_72_bytes_returns_422(self, api_client: TestClient) -> None:
        body = {"email": "mb@example.com", "password": "Aa1" + "\u00e9" * 40}
        resp = api_client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_missing_field_returns_422(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/register", json={"email": "x@example.com"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestLoginRoute:
    def test_login_returns_token_pair(self, api_client: TestClient, register_and_login) -> None:
        data = register_and_login("login@example.com")
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0

    def test_login_sets_no_store(self, api_client: TestClient, register_and_login) -> None:
        register_and_login("nostore@example.com")
        resp = api_client.post("/api/v1/auth/login", json={"email": "nostore@example.com", "password": PASSWORD})
        assert resp.headers["cache-control"] == "no-store"

    def test_bad_credentials_are_uniform(self, api_client: TestClient, register_and_login) -> None:
        """Wrong password and unknown email must produce byte-identical error bodies."""
        register_and_login("uniform@example.com")
        wrong_pw = api_client.post(
            "/api/v1/auth/login", json={"email": "uniform@example.com", "password": "Wr0ngPassword"}
        )
        unknown = api_client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
        assert wrong_pw.status_code == unknown.status_code == 401
        assert wrong_pw.json() == unknown.json()
        assert wrong_pw.json()["error"]["code"] == "bad_credentials"

    def test_password_whitespace_is_not_stripped(self, api_client: TestClient, register_and_login) -> None:
        register_and_login(" padded@example.com ", "  Passw0rdX  ")

        def login(password: str) -> int:
            body = {"email": "padded@example.com", "password": password}
            return api_client.post("/api/v1/auth/login", json=body).status_code

        assert login("Passw0rdX") == 401
        assert login("  Passw0rdX  ") == 200


class TestRefreshRoute:
    def test_refresh_rotates_and_is_single_use(self, api_client: TestClient, register_and_login) -> None:
        tokens = register_and_login("rotate@example.com")

        first = api_client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert first.status_code == 200
        assert first.headers["cache-control"] == "no-store"
        rotated = first.json()
        assert rotated["refresh_token"] != tokens["refresh_token"]

        replay = api_client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert replay.status_code == 401
        assert replay.json()["error"]["code"] == "invalid_token"

        again = api_client.post("/api/v1/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
        assert again.status_code == 200

    def test_refresh_with_access_token_rejected(self, api_client: TestClient, register_and_login) -> None:
        tokens = register_and_login("kind@example.com")
        resp = api_client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_refresh_with_garbage_rejected(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/refresh", json={"refresh_token": "garbage"})
        assert resp.status_code == 401


class TestMeRoute:
    def test_me_with_access_token(self, api_client: TestClient, register_and_login) -> None:
        tokens = register_and_login("me@example.com")
        resp = api_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert resp.status_code == 200
        assert resp.json()["email"] == "me@example.com"

    def test_me_unauthenticated(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_me_rejects_refresh_token(self, api_client: TestClient, register_and_login) -> None:
        tokens = register_and_login("me-refresh@example.com")
        resp = api_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
        assert resp.status_code == 401


class TestStoreOutage:
    def test_store_unavailable_maps_to_503(self, api_client: TestClient, monkeypatch) -> None:
        """An infrastructure failure is a retryable 503, not an authentication verdict."""
        store = api_client.app.state.user_store

        def unavailable(email: str):
            raise StoreUnavailableError()

        monkeypatch.setattr(store, "get_by_email", unavailable)
        resp = api_client.post("/api/v1/auth/login", json={"email": "any@example.com", "password": PASSWORD})
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"
        assert resp.headers["retry-after"] == "1"
