"""
tests/conftest.py -- Shared test fixtures for Work Mesh integration tests.

This module provides:
  - make_stores(): isolated in-memory DBs for the credential + staffing stores
  - RecordingMailer: stands in for SMTP and keeps every message it was given
  - api_client: TestClient over the real app with test stores wired in
  - register_org(): registers a fresh organization and returns its session

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and RATE_LIMIT_ENABLED must be set before any core/auth/api import:
get_settings() is cached on first call, DEBUG lets it generate signing
secrets, and the limiter reads RATE_LIMIT_ENABLED when api.limiter loads.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from email.message import EmailMessage

# CRITICAL: Set before any core/auth/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app, init_state
from auth.store import CredentialStore
from core.config import get_settings
from notify.mailer import MailDeliveryError, Mailer
from staffing.store import StaffingStore

PASSWORD = "correct-horse-battery"


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex[:8]}?mode=memory&cache=shared&uri=true"


def make_stores(db_suffix: str) -> tuple[CredentialStore, StaffingStore]:
    """Create isolated named shared-memory SQLite stores.

    bcrypt rounds are dropped to the minimum (4) to keep the suite fast; the
    hashing code path is the same.
    """
    credentials = CredentialStore(memory_url(f"test_auth_{db_suffix}"), bcrypt_rounds=4)
    staffing = StaffingStore(memory_url(f"test_staffing_{db_suffix}"))
    return credentials, staffing


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


class RecordingMailer(Mailer):
    """Mailer that records messages instead of talking to SMTP.

    Set fail_with to make the next send() raise MailDeliveryError.
    """

    def __init__(self) -> None:
        super().__init__(get_settings())
        self.sent: list[EmailMessage] = []
        self.fail_with: str | None = None

    def send(self, message: EmailMessage) -> None:
        if self.fail_with:
            reason, self.fail_with = self.fail_with, None
            raise MailDeliveryError(reason)
        self.sent.append(message)


@dataclass
class ApiHarness:
    client: TestClient
    credentials: CredentialStore
    staffing: StaffingStore
    mailer: RecordingMailer


def _patch_lifespan(credentials: CredentialStore, staffing: StaffingStore, mailer: RecordingMailer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the on-disk databases.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app, get_settings(), credentials, staffing, mailer)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness with fresh stores for each test module."""
    credentials, staffing = make_stores(request.module.__name__.rsplit(".", 1)[-1])
    mailer = RecordingMailer()
    app.router.lifespan_context = _patch_lifespan(credentials, staffing, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, credentials=credentials, staffing=staffing, mailer=mailer)

    credentials.close()
    staffing.close()


@dataclass
class Session:
    token: str
    user: dict
    email: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


def register_org(client: TestClient, company: str = "Acme", email: str | None = None) -> Session:
    """Register a new organization through the API and return its Admin session."""
    email = email or unique_email("admin")
    resp = client.post(
        "/api/auth/register",
        json={"companyName": company, "location": "Berlin", "email": email, "password": PASSWORD},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    return Session(token=data["token"], user=data["user"], email=email)


def login(client: TestClient, email: str, password: str = PASSWORD) -> Session:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    return Session(token=data["token"], user=data["user"], email=email)


def add_employee(client: TestClient, admin: Session, access_role: str = "Employee", password: str | None = PASSWORD) -> Session | dict:
    """Create an employee as admin. Returns a logged-in Session when a password is set."""
    email = unique_email(access_role.lower())
    body = {"name": f"{access_role} Person", "email": email, "accessRole": access_role}
    if password:
        body["password"] = password
    resp = client.post("/api/employees", json=body, headers=admin.headers)
    assert resp.status_code == 201, resp.text
    if password:
        return login(client, email, password)
    return resp.json()["data"]
