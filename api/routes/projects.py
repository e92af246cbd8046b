"""
api/routes/projects.py -- Tenant-scoped project CRUD.

Routes:
  GET    /api/projects        -- list projects in the caller's organization
  GET    /api/projects/{id}   -- one project
  POST   /api/projects        -- create (Admin, Manager)
  PUT    /api/projects/{id}   -- update (any member of the organization)
  DELETE /api/projects/{id}   -- delete (Admin, Manager)

Status moves Draft -> Active -> Completed, and any state may be Archived.
Cross-tenant ids are reported as 404, never 403.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import ProjectCreate, ProjectOut, ProjectUpdate, RequiredSkillIn, TeamPreferencesIn, envelope
from auth.dependencies import get_current_identity, require_role
from auth.models import Identity
from core.errors import BadRequestError, NotFoundError
from staffing import normalize
from staffing.models import Project, TeamPreferences, can_transition
from staffing.store import StaffingStore

# Auth policy: every route needs a valid access token (router dependency);
# create and delete are limited to Admin and Manager.
router = APIRouter(dependencies=[Depends(get_current_identity)])


def _skills(rows: list[RequiredSkillIn] | None):
    return normalize.required_skills(row.model_dump() for row in rows or [])


def _team(body: TeamPreferencesIn | None) -> TeamPreferences:
    if body is None:
        return normalize.team_preferences()
    mix = body.seniority_mix.model_dump() if body.seniority_mix else None
    return normalize.team_preferences(body.team_size, mix)


@router.get("/projects")
def list_projects(request: Request, identity: Identity = Depends(get_current_identity)) -> dict:
    store: StaffingStore = request.app.state.staffing_store
    projects = store.list_projects(identity.organization_id)
    return envelope([ProjectOut.from_domain(p).to_wire() for p in projects], "Projects fetched")


@router.get("/projects/{project_id}")
def get_project(request: Request, project_id: int, identity: Identity = Depends(get_current_identity)) -> dict:
    store: StaffingStore = request.app.state.staffing_store
    project = store.get_project(identity.organization_id, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return envelope(ProjectOut.from_domain(project).to_wire(), "Project fetched")


@router.post("/projects", status_code=201)
def create_project(
    request: Request,
    body: ProjectCreate,
    identity: Identity = Depends(require_role("Admin", "Manager")),
) -> dict:
    store: StaffingStore = request.app.state.staffing_store
    project = store.create_project(
        Project(
            organization_id=identity.organization_id,
            name=body.name,
            deadline=normalize.parse_deadline(body.deadline),
            description=body.description,
            status=body.status,
            priority=body.priority,
            duration=body.duration,
            progress=body.progress,
            required_skills=_skills(body.required_skills),
            team_preferences=_team(body.team_preferences),
            created_by=identity.employee_id,
            source=body.source,
        )
    )
    return envelope(ProjectOut.from_domain(project).to_wire(), "Project created")


@router.put("/projects/{project_id}")
def update_project(
    request: Request,
    project_id: int,
    body: ProjectUpdate,
    identity: Identity = Depends(get_current_identity),
) -> dict:
    store: StaffingStore = request.app.state.staffing_store
    current = store.get_project(identity.organization_id, project_id)
    if current is None:
        raise NotFoundError("Project not found")

    changes = body.model_dump(exclude_unset=True)
    for required in ("name", "deadline", "status", "priority", "duration", "progress"):
        if required in changes and changes[required] is None:
            raise BadRequestError(f"{required} cannot be empty")
    if "deadline" in changes:
        changes["deadline"] = normalize.parse_deadline(changes["deadline"])
    if "status" in changes and not can_transition(current.status, changes["status"]):
        raise BadRequestError(f"Cannot move a project from {current.status} to {changes['status']}")
    if "description" in changes:
        changes["description"] = changes["description"] or ""
    if "required_skills" in changes:
        changes["required_skills"] = _skills(body.required_skills)
    if "team_preferences" in changes:
        changes["team_preferences"] = _team(body.team_preferences)

    updated = store.update_project(identity.organization_id, project_id, **changes) if changes else current
    if updated is None:
        raise NotFoundError("Project not found")
    return envelope(ProjectOut.from_domain(updated).to_wire(), "Project updated")


@router.delete("/projects/{project_id}")
def delete_project(
    request: Request,
    project_id: int,
    identity: Identity = Depends(require_role("Admin", "Manager")),
) -> dict:
    store: StaffingStore = request.app.state.staffing_store
    if not store.delete_project(identity.organization_id, project_id):
        raise NotFoundError("Project not found")
    return envelope({"deleted": True}, "Project deleted")
