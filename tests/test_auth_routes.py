"""
tests/test_auth_routes.py -- Integration tests for /api/auth/*.

These tests exercise the full stack: FastAPI routing -> AuthFlow ->
CredentialStore/TokenIssuer -> envelope serialization -> refresh cookie.

Coverage:
  - register: 200 with user + token, refresh cookie attributes, duplicate email 409,
    validation failure 400
  - login: happy path, wrong password and unknown email share a message,
    employee without a password gets the "no login access" message
  - refresh: cookie -> new access token; missing/garbage cookie 401
  - logout: clears the cookie
  - login is rate-limited: 429 with Retry-After once the limit is spent
  - the register -> create employee -> employee login -> 403 walkthrough
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from jose import jwt

from api.limiter import LOGIN_RATE_LIMIT, limiter
from auth.tokens import REFRESH_COOKIE_NAME, REFRESH_COOKIE_PATH
from conftest import PASSWORD, ApiHarness, add_employee, login, register_org, unique_email


def _set_cookie_header(resp) -> str:
    return next(v for k, v in resp.headers.items() if k.lower() == "set-cookie")


class TestRegister:
    def test_register_returns_session(self, api_client: ApiHarness) -> None:
        client = api_client.client
        email = unique_email("founder")
        resp = client.post(
            "/api/auth/register",
            json={
                "companyName": "Acme",
                "location": "Berlin",
                "email": email.upper(),
                "password": PASSWORD,
                "companySize": "11-50",
                "adminName": "Ada",
            },
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["success"] is True
        user = body["data"]["user"]
        assert user["email"] == email
        assert user["name"] == "Ada"
        assert user["role"] == "Admin"
        assert user["organizationName"] == "Acme"
        assert body["data"]["token"]
        assert "password" not in user and "hashedPassword" not in user
        assert "refreshToken" not in body["data"]
        assert resp.headers["cache-control"] == "no-store"

    def test_refresh_cookie_attributes(self, api_client: ApiHarness) -> None:
        client = api_client.client
        resp = client.post(
            "/api/auth/register",
            json={"companyName": "Acme", "location": "Berlin", "email": unique_email(), "password": PASSWORD},
        )
        cookie = _set_cookie_header(resp)
        assert cookie.startswith(f"{REFRESH_COOKIE_NAME}=")
        assert "HttpOnly" in cookie
        assert f"Path={REFRESH_COOKIE_PATH}" in cookie
        assert "Max-Age=604800" in cookie
        assert "samesite=lax" in cookie.lower()

    def test_admin_name_defaults(self, api_client: ApiHarness) -> None:
        session = register_org(api_client.client)
        assert session.user["name"] == "Admin"

    def test_duplicate_email_conflicts(self, api_client: ApiHarness) -> None:
        client = api_client.client
        session = register_org(api_client.client)
        resp = client.post(
            "/api/auth/register",
            json={"companyName": "Other", "location": "Rome", "email": session.email, "password": PASSWORD},
        )
        assert resp.status_code == 409
        body = resp.json()
        assert body["success"] is False
        assert body["message"] == "Email already registered"
        assert body["statusCode"] == 409

    def test_multibyte_password_over_72_bytes_rejected(self, api_client: ApiHarness) -> None:
        # 40 characters but 80 bytes: bcrypt cannot hash it.
        resp = api_client.client.post(
            "/api/auth/register",
            json={"companyName": "Acme", "location": "Berlin", "email": unique_email(), "password": "é" * 40},
        )
        assert resp.status_code == 400
        assert "password" in resp.json()["errors"]

    def test_multibyte_password_at_72_bytes_accepted(self, api_client: ApiHarness) -> None:
        client = api_client.client
        email = unique_email("multibyte")
        password = "é" * 36
        resp = client.post(
            "/api/auth/register",
            json={"companyName": "Acme", "location": "Berlin", "email": email, "password": password},
        )
        assert resp.status_code == 200, resp.text
        assert login(client, email, password).user["email"] == email

    def test_missing_fields_rejected(self, api_client: ApiHarness) -> None:
        resp = api_client.client.post("/api/auth/register", json={"companyName": "Acme", "email": unique_email()})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert "location" in body["errors"]
        assert "password" in body["errors"]


class TestLogin:
    def test_login_happy_path(self, api_client: ApiHarness) -> None:
        session = register_org(api_client.client)
        again = login(api_client.client, session.email.upper())
        assert again.user["id"] == session.user["id"]
        assert again.user["organizationId"] == session.user["organizationId"]

    def test_wrong_password_and_unknown_email_look_alike(self, api_client: ApiHarness) -> None:
        client = api_client.client
        session = register_org(client)
        wrong = client.post("/api/auth/login", json={"email": session.email, "password": "not-it"})
        unknown = client.post("/api/auth/login", json={"email": unique_email("ghost"), "password": "not-it"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json()["message"] == unknown.json()["message"] == "Invalid email or password"

    def test_employee_without_password(self, api_client: ApiHarness) -> None:
        client = api_client.client
        admin = register_org(client)
        record = add_employee(client, admin, password=None)
        assert record["hasLogin"] is False
        resp = client.post("/api/auth/login", json={"email": record["email"], "password": "anything"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "This account does not have login access. Contact your admin."

    def test_login_requires_body(self, api_client: ApiHarness) -> None:
        resp = api_client.client.post("/api/auth/login", json={})
        assert resp.status_code == 400


class TestRefreshAndLogout:
    def test_refresh_issues_new_access_token(self, api_client: ApiHarness) -> None:
        client = api_client.client
        session = register_org(client)
        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["message"] == "Token refreshed"
        assert body["token"] == body["data"]["token"]
        claims = jwt.get_unverified_claims(body["token"])
        assert claims["sub"] == str(session.user["id"])
        assert claims["org"] == str(session.user["organizationId"])
        me = client.get("/api/employees", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        # The old access token is unaffected.
        assert client.get("/api/employees", headers=session.headers).status_code == 200

    def test_refresh_without_cookie(self, api_client: ApiHarness) -> None:
        client = api_client.client
        client.cookies.clear()
        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Missing refresh token"

    def test_refresh_with_garbage_cookie(self, api_client: ApiHarness) -> None:
        client = api_client.client
        client.cookies.clear()
        resp = client.post("/api/auth/refresh", cookies={REFRESH_COOKIE_NAME: "not-a-jwt"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid refresh token"
        client.cookies.clear()

    def test_access_token_is_not_a_refresh_token(self, api_client: ApiHarness) -> None:
        client = api_client.client
        session = register_org(client)
        client.cookies.clear()
        resp = client.post("/api/auth/refresh", cookies={REFRESH_COOKIE_NAME: session.token})
        assert resp.status_code == 401
        client.cookies.clear()

    def test_logout_clears_cookie(self, api_client: ApiHarness) -> None:
        client = api_client.client
        register_org(client)
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"loggedOut": True}
        cookie = _set_cookie_header(resp)
        assert cookie.startswith(f'{REFRESH_COOKIE_NAME}=""') or "Max-Age=0" in cookie


class TestSessionGate:
    def test_missing_header(self, api_client: ApiHarness) -> None:
        resp = api_client.client.get("/api/employees")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Missing or invalid authorization header"

    def test_wrong_scheme(self, api_client: ApiHarness) -> None:
        session = register_org(api_client.client)
        resp = api_client.client.get("/api/employees", headers={"Authorization": f"Token {session.token}"})
        assert resp.status_code == 401

    def test_invalid_token(self, api_client: ApiHarness) -> None:
        resp = api_client.client.get("/api/employees", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or expired token"


class TestRateLimit:
    @pytest.fixture
    def limits_on(self, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
        limiter.reset()
        monkeypatch.setattr(limiter, "enabled", True)
        yield
        limiter.reset()

    def test_login_throttled_after_limit(self, api_client: ApiHarness, limits_on: None) -> None:
        client = api_client.client
        session = register_org(client)
        allowed = int(LOGIN_RATE_LIMIT.split("/")[0])
        for _ in range(allowed):
            resp = client.post("/api/auth/login", json={"email": session.email, "password": "not-it"})
            assert resp.status_code == 401

        resp = client.post("/api/auth/login", json={"email": session.email, "password": PASSWORD})
        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "60"
        assert resp.json() == {
            "success": False,
            "message": "Too many requests. Please try again later.",
            "statusCode": 429,
        }

    def test_other_routes_not_throttled(self, api_client: ApiHarness, limits_on: None) -> None:
        client = api_client.client
        allowed = int(LOGIN_RATE_LIMIT.split("/")[0])
        for _ in range(allowed + 1):
            assert client.get("/api/health").status_code == 200



def test_register_create_employee_login_forbidden_walkthrough(api_client: ApiHarness) -> None:
    """Admin registers Acme, adds an Employee with a password, and that Employee
    can log in but cannot create other employees."""
    client = api_client.client
    resp = client.post(
        "/api/auth/register",
        json={"companyName": "Acme", "location": "Berlin", "email": "a@acme.com", "password": "secret123"},
    )
    assert resp.status_code == 200, resp.text
    org_id = resp.json()["data"]["user"]["organizationId"]

    admin = login(client, "a@acme.com", "secret123")
    assert jwt.get_unverified_claims(admin.token)["org"] == str(org_id)

    employee = add_employee(client, admin, access_role="Employee")
    assert employee.user["role"] == "Employee"
    assert employee.user["organizationName"] == "Acme"

    resp = client.post(
        "/api/employees",
        json={"name": "Sneaky", "email": unique_email("sneaky")},
        headers=employee.headers,
    )
    assert resp.status_code == 403
    assert resp.json()["message"] == "Insufficient permissions"
