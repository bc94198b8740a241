"""
tests/test_web_forms.py -- Sign-in and sign-up form posts on the HTML pages.

The forms post application/x-www-form-urlencoded to /login and /signup, which
share the credential check and registration pipeline with the JSON API.
Cookies set by a successful post are cleared after each test so later tests
start anonymous.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from auth.tokens import ACCESS_COOKIE
from conftest import MEMBER_EMAIL, MEMBER_PASSWORD
from core.config import get_settings


@pytest.fixture(autouse=True)
def _anonymous(web_client):
    client, _, _ = web_client
    client.cookies.clear()
    yield
    client.cookies.clear()


class TestLoginForm:
    def test_page_posts_to_itself(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        assert 'action="/login"' in client.get("/login").text
        assert 'action="/login?next=%2Fprotected"' in client.get("/login?next=/protected").text

    def test_success_sets_cookie_and_redirects_home(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post("/login", data={"email": MEMBER_EMAIL, "password": MEMBER_PASSWORD})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/"
        assert resp.cookies.get(ACCESS_COOKIE)
        assert resp.headers["cache-control"] == "no-store"

    def test_success_follows_relative_next(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post("/login?next=/protected", data={"email": MEMBER_EMAIL, "password": MEMBER_PASSWORD})
        assert resp.headers["location"] == "/protected"
        page = client.get("/protected", headers={"Authorization": f"Bearer {resp.cookies[ACCESS_COOKIE]}"})
        assert page.status_code == 200
        assert MEMBER_EMAIL in page.text

    def test_success_ignores_offsite_next(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post(
            "/login",
            params={"next": "//attacker.example"},
            data={"email": MEMBER_EMAIL, "password": MEMBER_PASSWORD},
        )
        assert resp.headers["location"] == "/"

    def test_bad_credentials_redirect_with_error(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post("/login?next=/protected", data={"email": MEMBER_EMAIL, "password": "wrong"})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login?error=invalid_credentials&next=%2Fprotected"
        assert ACCESS_COOKIE not in resp.cookies
        assert "Invalid email or password" in client.get(resp.headers["location"]).text

    def test_unknown_error_key_renders_nothing(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.get("/login", params={"error": "<script>"})
        assert resp.status_code == 200
        assert 'role="alert"' not in resp.text

    def test_missing_fields_fail_like_bad_credentials(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post("/login", data={"email": "", "password": ""})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/login?error=invalid_credentials"


class TestSignupForm:
    def test_page_posts_to_itself(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        assert 'action="/signup"' in client.get("/signup").text

    def test_success_signs_in_and_redirects(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post("/signup", data={"email": "form.user@example.com", "password": "Str0ng!Pass"})
        assert resp.status_code == 302
        assert resp.headers["location"] == "/protected"
        token = resp.cookies[ACCESS_COOKIE]
        page = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
        assert "form.user@example.com" in page.text

    def test_duplicate_email_rerenders_form(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post("/signup", data={"email": MEMBER_EMAIL, "password": "Str0ng!Pass"})
        assert resp.status_code == 400
        assert "An account with this email already exists" in resp.text
        assert ACCESS_COOKIE not in resp.cookies

    def test_weak_password_shows_first_failing_rule(self, web_client: tuple[TestClient, str, str]) -> None:
        client, _, _ = web_client
        resp = client.post("/signup", data={"email": "weak.form@example.com", "password": "weakpass"})
        assert resp.status_code == 400
        assert "Must contain at least one number" in resp.text

    def test_disabled(self, web_client: tuple[TestClient, str, str], monkeypatch) -> None:
        client, _, _ = web_client
        monkeypatch.setattr(get_settings(), "self_registration_enabled", False)
        resp = client.post("/signup", data={"email": "blocked.form@example.com", "password": "Str0ng!Pass"})
        assert resp.status_code == 403
        assert "Self-registration is disabled" in resp.text
