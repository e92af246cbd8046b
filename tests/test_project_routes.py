"""
tests/test_project_routes.py -- Integration tests for /api/projects.

Coverage:
  - create: defaults, normalization of skills and team preferences, role gate
  - deadline validation
  - tenant scoping on list/get/update/delete
  - status transitions
"""

from __future__ import annotations

import pytest

from conftest import ApiHarness, Session, add_employee, register_org


def _create(client, session: Session, **body):
    payload = {"name": "Data Platform", "deadline": "2030-09-30"}
    payload.update(body)
    return client.post("/api/projects", json=payload, headers=session.headers)


class TestCreate:
    def test_defaults(self, api_client: ApiHarness) -> None:
        client = api_client.client
        admin = register_org(client)
        resp = _create(client, admin)
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        assert data["status"] == "Draft"
        assert data["priority"] == "Medium"
        assert data["duration"] == 1
        assert data["progress"] == 0
        assert data["source"] == "manual"
        assert data["createdBy"] == admin.user["id"]
        assert data["organizationId"] == admin.user["organizationId"]
        assert data["teamPreferences"] == {"teamSize": 5, "seniorityMix": {"junior": 40, "mid": 40, "senior": 20}}

    def test_skills_and_team_normalized(self, api_client: ApiHarness) -> None:
        client = api_client.client
        admin = register_org(client)
        resp = _create(
            client,
            admin,
            requiredSkills=[
                {"skillName": "Go", "minimumExperience": "3", "weight": 150},
                {"skillName": ""},
                {"skillId": "k8s", "skillName": "Kubernetes", "priority": "Nice-to-have"},
            ],
            teamPreferences={"teamSize": 0, "seniorityMix": {"junior": 20, "mid": 50, "senior": 30}},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        skills = data["requiredSkills"]
        assert [s["skillName"] for s in skills] == ["Go", "Kubernetes"]
        assert skills[0]["skillId"] == "skill-0"
        assert skills[0]["minimumExperience"] == 3
        assert skills[0]["weight"] == 100
        assert skills[0]["priority"] == "Must-have"
        assert skills[1]["skillId"] == "k8s"
        assert data["teamPreferences"]["teamSize"] == 1
        assert data["teamPreferences"]["seniorityMix"] == {"junior": 20, "mid": 50, "senior": 30}

    def test_iso_timestamp_deadline_accepted(self, api_client: ApiHarness) -> None:
        admin = register_org(api_client.client)
        resp = _create(api_client.client, admin, deadline="2030-09-30T00:00:00.000Z")
        assert resp.json()["data"]["deadline"] == "2030-09-30"

    def test_invalid_deadline(self, api_client: ApiHarness) -> None:
        admin = register_org(api_client.client)
        resp = _create(api_client.client, admin, deadline="soon")
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid deadline date"

    def test_name_required(self, api_client: ApiHarness) -> None:
        admin = register_org(api_client.client)
        resp = api_client.client.post("/api/projects", json={"deadline": "2030-01-01"}, headers=admin.headers)
        assert resp.status_code == 400

    def test_employee_cannot_create(self, api_client: ApiHarness) -> None:
        client = api_client.client
        admin = register_org(client)
        employee = add_employee(client, admin)
        assert _create(client, employee).status_code == 403


class TestTenantScoping:
    def test_list_and_get(self, api_client: ApiHarness) -> None:
        client = api_client.client
        acme = register_org(client, "Acme")
        globex = register_org(client, "Globex")
        project_id = _create(client, acme).json()["data"]["id"]

        assert [p["id"] for p in client.get("/api/projects", headers=acme.headers).json()["data"]] == [project_id]
        assert client.get("/api/projects", headers=globex.headers).json()["data"] == []
        assert client.get(f"/api/projects/{project_id}", headers=acme.headers).status_code == 200
        resp = client.get(f"/api/projects/{project_id}", headers=globex.headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Project not found"

    def test_update_and_delete_cross_tenant_are_404(self, api_client: ApiHarness) -> None:
        client = api_client.client
        acme = register_org(client, "Acme")
        globex = register_org(client, "Globex")
        project_id = _create(client, acme).json()["data"]["id"]
        assert client.put(f"/api/projects/{project_id}", json={"name": "X"}, headers=globex.headers).status_code == 404
        assert client.delete(f"/api/projects/{project_id}", headers=globex.headers).status_code == 404
        assert client.get(f"/api/projects/{project_id}", headers=acme.headers).json()["data"]["name"] == "Data Platform"


class TestUpdate:
    def test_any_member_updates(self, api_client: ApiHarness) -> None:
        client = api_client.client
        admin = register_org(client)
        employee = add_employee(client, admin)
        project_id = _create(client, admin).json()["data"]["id"]
        resp = client.put(
            f"/api/projects/{project_id}",
            json={"progress": 25, "description": "Kickoff done"},
            headers=employee.headers,
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["progress"] == 25
        assert data["description"] == "Kickoff done"
        assert data["organizationId"] == admin.user["organizationId"]

    @pytest.mark.parametrize(
        "path",
        [
            ["Active", "Completed"],
            ["Archived"],
            ["Active", "Archived"],
            ["Draft"],
        ],
    )
    def test_allowed_transitions(self, api_client: ApiHarness, path: list[str]) -> None:
        client = api_client.client
        admin = register_org(client)
        project_id = _create(client, admin).json()["data"]["id"]
        for status in path:
            resp = client.put(f"/api/projects/{project_id}", json={"status": status}, headers=admin.headers)
            assert resp.status_code == 200, resp.text
            assert resp.json()["data"]["status"] == status

    @pytest.mark.parametrize("path", [["Completed"], ["Archived", "Active"], ["Active", "Draft"]])
    def test_rejected_transitions(self, api_client: ApiHarness, path: list[str]) -> None:
        client = api_client.client
        admin = register_org(client)
        project_id = _create(client, admin).json()["data"]["id"]
        for status in path[:-1]:
            client.put(f"/api/projects/{project_id}", json={"status": status}, headers=admin.headers)
        resp = client.put(f"/api/projects/{project_id}", json={"status": path[-1]}, headers=admin.headers)
        assert resp.status_code == 400

    def test_unknown_status_rejected(self, api_client: ApiHarness) -> None:
        admin = register_org(api_client.client)
        project_id = _create(api_client.client, admin).json()["data"]["id"]
        resp = api_client.client.put(f"/api/projects/{project_id}", json={"status": "Paused"}, headers=admin.headers)
        assert resp.status_code == 400


class TestDelete:
    def test_manager_deletes(self, api_client: ApiHarness) -> None:
        client = api_client.client
        admin = register_org(client)
        manager = add_employee(client, admin, access_role="Manager")
        project_id = _create(client, admin).json()["data"]["id"]
        resp = client.delete(f"/api/projects/{project_id}", headers=manager.headers)
        assert resp.status_code == 200
        assert client.get(f"/api/projects/{project_id}", headers=admin.headers).status_code == 404

    def test_employee_cannot_delete(self, api_client: ApiHarness) -> None:
        client = api_client.client
        admin = register_org(client)
        employee = add_employee(client, admin)
        project_id = _create(client, admin).json()["data"]["id"]
        assert client.delete(f"/api/projects/{project_id}", headers=employee.headers).status_code == 403
