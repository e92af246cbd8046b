"""
api/routes/employees.py -- Tenant-scoped employee roster.

Routes:
  GET    /api/employees        -- list employees in the caller's organization
  GET    /api/employees/{id}   -- one employee
  POST   /api/employees        -- create (Admin, Manager)
  PUT    /api/employees/{id}   -- update (Admin/Manager: anyone; Employee: self only)
  DELETE /api/employees/{id}   -- delete (Admin; never yourself)

Tenant isolation: every store call passes identity.organization_id. An id
from another organization gets the same 404 as an id that does not exist.

Email is a login identity shared by all tenants: create and email changes
are rejected with 409 when any organization already uses the address.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import AvailabilityIn, EmployeeCreate, EmployeeOut, EmployeeUpdate, SkillIn, envelope
from auth.dependencies import get_current_identity, require_role
from auth.models import Availability, Employee, EmployeeSkill, Identity
from auth.store import CredentialStore
from core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError

# Auth policy: every route needs a valid access token (router dependency);
# create and delete add role gates on top.
router = APIRouter(dependencies=[Depends(get_current_identity)])

_EMAIL_TAKEN = "An employee with this email already exists"


def _skills(rows: list[SkillIn]) -> list[EmployeeSkill]:
    return [
        EmployeeSkill(
            skill_id=s.skill_id or f"skill-{i}",
            skill_name=s.skill_name,
            years_of_experience=s.years_of_experience,
            proficiency_level=s.proficiency_level,
        )
        for i, s in enumerate(rows)
    ]


def _availability(body: AvailabilityIn | None) -> Availability:
    if body is None:
        return Availability()
    return Availability(
        status=body.status,
        current_project=body.current_project,
        current_workload=body.current_workload,
        available_from=body.available_from.isoformat() if body.available_from else None,
    )


def _ensure_email_free(store: CredentialStore, email: str, employee_id: int | None = None) -> None:
    existing = store.find_by_email_global(email)
    if existing is not None and existing.id != employee_id:
        raise ConflictError(_EMAIL_TAKEN)


@router.get("/employees")
def list_employees(request: Request, identity: Identity = Depends(get_current_identity)) -> dict:
    store: CredentialStore = request.app.state.credential_store
    employees = store.list_employees(identity.organization_id)
    return envelope([EmployeeOut.from_domain(e).to_wire() for e in employees], "Employees fetched")


@router.get("/employees/{employee_id}")
def get_employee(request: Request, employee_id: int, identity: Identity = Depends(get_current_identity)) -> dict:
    store: CredentialStore = request.app.state.credential_store
    employee = store.get_employee_in_org(identity.organization_id, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return envelope(EmployeeOut.from_domain(employee).to_wire(), "Employee fetched")


@router.post("/employees", status_code=201)
def create_employee(
    request: Request,
    body: EmployeeCreate,
    identity: Identity = Depends(require_role("Admin", "Manager")),
) -> dict:
    """Add an employee to the caller's organization.

    Only employees created with a password can log in.
    """
    store: CredentialStore = request.app.state.credential_store
    _ensure_email_free(store, body.email)
    profile = Employee(
        organization_id=identity.organization_id,
        name=body.name,
        email=body.email,
        phone=body.phone or None,
        department=body.department or "General",
        role=body.role or "Employee",
        access_role=body.access_role,
        skills=_skills(body.skills),
        availability=_availability(body.availability),
        experience=body.experience,
        past_project_score=body.past_project_score,
        photo_url=body.photo_url or None,
    )
    employee = store.create_employee(identity.organization_id, profile, body.password or None)
    return envelope(EmployeeOut.from_domain(employee).to_wire(), "Employee created")


@router.put("/employees/{employee_id}")
def update_employee(
    request: Request,
    employee_id: int,
    body: EmployeeUpdate,
    identity: Identity = Depends(get_current_identity),
) -> dict:
    """Update an employee.

    Admins and Managers may edit anyone in their organization; Employees only
    themselves. access_role changes are ignored unless the caller is an Admin.
    """
    store: CredentialStore = request.app.state.credential_store
    target = store.get_employee_in_org(identity.organization_id, employee_id)
    if target is None:
        raise NotFoundError("Employee not found")
    if identity.access_role not in ("Admin", "Manager") and employee_id != identity.employee_id:
        raise ForbiddenError("You can only edit your own profile")

    changes = body.model_dump(exclude_unset=True)
    if identity.access_role != "Admin":
        changes.pop("access_role", None)
    if "password" in changes:
        password = changes.pop("password")
        if password:
            changes["raw_password"] = password
    if "skills" in changes:
        changes["skills"] = _skills(body.skills or [])
    if "availability" in changes:
        changes["availability"] = _availability(body.availability)
    if changes.get("email"):
        _ensure_email_free(store, changes["email"], employee_id)
    for required in ("name", "email", "department", "role", "access_role", "experience"):
        if required in changes and changes[required] is None:
            raise BadRequestError(f"{required} cannot be empty")

    updated = store.update_employee(identity.organization_id, employee_id, **changes) if changes else target
    if updated is None:
        raise NotFoundError("Employee not found")
    return envelope(EmployeeOut.from_domain(updated).to_wire(), "Employee updated")


@router.delete("/employees/{employee_id}")
def delete_employee(
    request: Request,
    employee_id: int,
    identity: Identity = Depends(require_role("Admin")),
) -> dict:
    """Delete an employee. Admin only; an Admin cannot delete their own record."""
    if employee_id == identity.employee_id:
        raise BadRequestError("You cannot delete yourself")
    store: CredentialStore = request.app.state.credential_store
    if not store.delete_employee(identity.organization_id, employee_id):
        raise NotFoundError("Employee not found")
    return envelope({"deleted": True}, "Employee deleted")
