"""
tests/test_health.py -- Integration tests for GET /api, GET /api/health and
the error envelope for unmatched routes and server errors.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.main import app
from conftest import PASSWORD, ApiHarness, register_org


def test_health_returns_ok(api_client: ApiHarness) -> None:
    resp = api_client.client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["status"] == "ok"
    assert body["data"]["uptimeSeconds"] >= 0
    assert "timestamp" in body["data"]


def test_health_no_auth_required(api_client: ApiHarness) -> None:
    resp = api_client.client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_index_lists_endpoints(api_client: ApiHarness) -> None:
    data = api_client.client.get("/api").json()["data"]
    assert data["name"] == "Work Mesh API"
    assert data["endpoints"]["projectRequests"] == "/api/project-requests"


def test_unknown_route_uses_error_envelope(api_client: ApiHarness) -> None:
    resp = api_client.client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Not found: GET /api/nope", "statusCode": 404}


def test_unexpected_error_is_generic_500(api_client: ApiHarness, monkeypatch) -> None:
    session = register_org(api_client.client)

    def broken(*args, **kwargs):
        raise RuntimeError("database file is locked at /var/lib/workmesh")

    monkeypatch.setattr(api_client.staffing, "list_projects", broken)
    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/api/projects", headers=session.headers)
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Internal server error", "statusCode": 500}
    assert "locked" not in resp.text


def test_employee_without_organization_is_500(api_client: ApiHarness, monkeypatch) -> None:
    session = register_org(api_client.client)
    monkeypatch.setattr(api_client.credentials, "get_organization", lambda org_id: None)
    resp = api_client.client.post("/api/auth/login", json={"email": session.email, "password": PASSWORD})
    assert resp.status_code == 500
    assert resp.json()["success"] is False
