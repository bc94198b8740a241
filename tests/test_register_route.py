"""
tests/test_register_route.py -- Integration tests for POST /api/v1/auth/register.

Each test gets a fresh registration limiter on a FakeClock (register_limiter
fixture), so window arithmetic is exact and no test sleeps.

Covers:
  - 200 success envelope and the account landing in the store
  - duplicate email -> 400 USER_EXISTS
  - validation rejections carry {error, code}
  - malformed JSON -> 400 INVALID_BODY
  - 31st request in a window -> 429 RATE_LIMIT_EXCEEDED with Retry-After
  - OPTIONS preflight -> 204 with permissive CORS headers for any Origin
  - self-registration switched off -> 403
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from core.config import get_settings

URL = "/api/v1/auth/register"
GOOD_PASSWORD = "Str0ng!Pass"


@pytest.fixture(autouse=True)
def _fresh_limiter(register_limiter):
    return register_limiter


def _register(client: TestClient, email: str, password: str = GOOD_PASSWORD, ip: str = "203.0.113.10"):
    return client.post(URL, json={"email": email, "password": password}, headers={"X-Forwarded-For": ip})


class TestRegisterSuccess:
    def test_creates_account(self, api_client) -> None:
        client, _, store = api_client
        resp = _register(client, "new.user@example.com")
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "User created successfully"
        assert data["user"]["email"] == "new.user@example.com"
        assert isinstance(data["user"]["id"], int)

        user = store.find_by_email("new.user@example.com")
        assert user is not None
        assert user.hashed_password != GOOD_PASSWORD
        assert user.role == "user"

    def test_duplicate_email_rejected(self, api_client) -> None:
        client, _, _ = api_client
        assert _register(client, "twice@example.com").status_code == 200
        resp = _register(client, "twice@example.com")
        assert resp.status_code == 400
        assert resp.json() == {"error": "An account with this email already exists", "code": "USER_EXISTS"}


class TestRegisterValidation:
    @pytest.mark.parametrize(
        "body,code",
        [
            ({"password": GOOD_PASSWORD}, "MISSING_FIELD"),
            ({"email": "someone@example.com"}, "MISSING_FIELD"),
            ({"email": "not-an-email", "password": GOOD_PASSWORD}, "INVALID_EMAIL"),
            ({"email": "someone@example.com", "password": "weakpass"}, "INVALID_PASSWORD"),
            ({"email": "someone@example.com", "password": 12345678}, "INVALID_BODY"),
            (["someone@example.com"], "INVALID_BODY"),
        ],
    )
    def test_rejections(self, api_client, body, code: str) -> None:
        client, _, store = api_client
        resp = client.post(URL, json=body)
        assert resp.status_code == 400
        assert resp.json()["code"] == code
        assert store.find_by_email("someone@example.com") is None

    def test_password_message_is_first_failing_rule(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(URL, json={"email": "someone@example.com", "password": "weakpass"})
        assert resp.json()["error"] == "Must contain at least one number"

    def test_malformed_json(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.post(URL, content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_BODY"


class TestRegisterRateLimit:
    def test_31st_request_rejected(self, api_client, register_limiter) -> None:
        client, _, _ = api_client
        for i in range(30):
            resp = _register(client, f"burst{i}@example.com", ip="198.51.100.7")
            assert resp.status_code == 200, resp.json()
        resp = _register(client, "burst30@example.com", ip="198.51.100.7")
        assert resp.status_code == 429
        assert resp.json() == {"error": "Too many requests, please try again later", "code": "RATE_LIMIT_EXCEEDED"}
        assert resp.headers["Retry-After"] == "60"

    def test_limit_counts_invalid_requests(self, api_client) -> None:
        client, _, _ = api_client
        for _ in range(30):
            assert client.post(URL, json={}, headers={"X-Forwarded-For": "198.51.100.8"}).status_code == 400
        resp = client.post(URL, json={}, headers={"X-Forwarded-For": "198.51.100.8"})
        assert resp.status_code == 429

    def test_window_slides_and_keys_independent(self, api_client, register_limiter) -> None:
        client, _, _ = api_client
        _, clock = register_limiter
        for _ in range(30):
            client.post(URL, json={}, headers={"X-Forwarded-For": "198.51.100.9"})
        assert client.post(URL, json={}, headers={"X-Forwarded-For": "198.51.100.9"}).status_code == 429
        # Another client is unaffected.
        assert client.post(URL, json={}, headers={"X-Forwarded-For": "198.51.100.10"}).status_code == 400
        clock.advance(60)
        assert client.post(URL, json={}, headers={"X-Forwarded-For": "198.51.100.9"}).status_code == 400

    def test_retry_after_reflects_elapsed_time(self, api_client, register_limiter) -> None:
        client, _, _ = api_client
        _, clock = register_limiter
        for _ in range(30):
            client.post(URL, json={}, headers={"X-Real-IP": "198.51.100.11"})
        clock.advance(45.5)
        resp = client.post(URL, json={}, headers={"X-Real-IP": "198.51.100.11"})
        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "15"


class TestRegisterSurface:
    @pytest.mark.parametrize("origin", ["https://other.example", "http://localhost:3000"])
    def test_browser_preflight_any_origin(self, api_client, origin: str) -> None:
        client, _, _ = api_client
        resp = client.options(URL, headers={"Origin": origin, "Access-Control-Request-Method": "POST"})
        assert resp.status_code == 204
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert resp.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
        assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"
        assert resp.headers["Access-Control-Max-Age"] == "86400"

    def test_bare_options(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.options(URL)
        assert resp.status_code == 204
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

    def test_other_paths_keep_origin_allowlist(self, api_client) -> None:
        client, _, _ = api_client
        resp = client.options(
            "/api/v1/auth/login",
            headers={"Origin": "https://other.example", "Access-Control-Request-Method": "POST"},
        )
        assert resp.status_code == 400
        assert "access-control-allow-origin" not in resp.headers

    def test_disabled(self, api_client, monkeypatch) -> None:
        client, _, _ = api_client
        monkeypatch.setattr(get_settings(), "self_registration_enabled", False)
        resp = _register(client, "blocked@example.com")
        assert resp.status_code == 403
        assert resp.json()["code"] == "REGISTRATION_DISABLED"
