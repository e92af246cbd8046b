"""
auth/store.py -- SQLAlchemy Core persistence layer for tenants and employees.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_organization / _row_to_employee are the mappers. Route and service
code never touches SQL directly.

Tenant isolation: every employee read or write that originates from an
authenticated request goes through a *_in_org method whose WHERE clause
includes organization_id. get_employee(id) and find_by_email_global(email)
are reserved for the auth flow (token refresh and login).

Uniqueness: UNIQUE(organization_id, email) is enforced by the database.
Application-level pre-checks are a fast path only; the IntegrityError from
the constraint is the authoritative Conflict signal, since two concurrent
requests can both pass a pre-check.

Password material: hashed_password is written and read here, but the hash
never leaves auth/ -- API projections are built field by field in api/models.py.

Layer rule: no imports from api/, staffing/, or notify/.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Availability, Employee, EmployeeSkill, Organization
from auth.tokens import hash_password, verify_password
from core.errors import ConflictError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_organizations = Table(
    "organizations",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("company_name", String(255), nullable=False),
    Column("location", String(255), nullable=False),
    Column("company_size", String(50)),
    Column("website", String(255)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_employees = Table(
    "employees",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", Integer, nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False, index=True),
    Column("phone", String(50)),
    Column("department", String(100), nullable=False, server_default="General"),
    Column("role", String(100), nullable=False, server_default="Employee"),  # job title
    Column("access_role", String(20), nullable=False, server_default="Employee"),
    Column("hashed_password", Text),  # NULL = no login access
    Column("skills", Text),  # JSON array
    Column("availability", Text),  # JSON object
    Column("experience", Float, nullable=False, server_default="0"),
    Column("past_project_score", Float),
    Column("photo_url", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("organization_id", "email", name="uq_employee_org_email"),
)

# Columns update_employee() accepts. organization_id and id are deliberately absent.
_MUTABLE_EMPLOYEE_FIELDS = frozenset(
    {
        "name",
        "email",
        "phone",
        "department",
        "role",
        "access_role",
        "hashed_password",
        "skills",
        "availability",
        "experience",
        "past_project_score",
        "photo_url",
    }
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; set per-connection since PRAGMAs are not pooled."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _dump_skills(skills: list[EmployeeSkill]) -> str:
    return json.dumps([asdict(s) for s in skills])


def _dump_availability(availability: Availability) -> str:
    return json.dumps(asdict(availability))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Organization and Employee entities.

    Usage:
        store = CredentialStore("sqlite:///:memory:")
        org = store.create_organization("Acme", "Berlin")
        admin = store.create_employee(org.id, Employee(...), "secret123")
        store.verify_password(admin, "secret123")  # True
        store.close()
    """

    def __init__(self, db_url: str, bcrypt_rounds: int = 10) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self._bcrypt_rounds = bcrypt_rounds
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def create_organization(
        self,
        name: str,
        location: str,
        size: Optional[str] = None,
        website: Optional[str] = None,
    ) -> Organization:
        """Insert a new tenant. Company names are not unique."""
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _organizations.insert().values(
                    company_name=name.strip(),
                    location=location.strip(),
                    company_size=size,
                    website=website,
                    created_at=now,
                    updated_at=now,
                )
            )
            org_id = result.inserted_primary_key[0]
        return self.get_organization(org_id)

    def get_organization(self, org_id: int) -> Optional[Organization]:
        with self.engine.connect() as conn:
            row = conn.execute(_organizations.select().where(_organizations.c.id == org_id)).fetchone()
        return _row_to_organization(row) if row is not None else None

    # ------------------------------------------------------------------
    # Employees -- writes
    # ------------------------------------------------------------------

    def create_employee(self, org_id: int, profile: Employee, raw_password: Optional[str] = None) -> Employee:
        """Insert an employee into org_id and return the stored record.

        profile.organization_id and profile.hashed_password are ignored: the
        tenant comes from org_id and the hash is derived from raw_password
        (None means the employee cannot log in).

        Raises ConflictError when (org_id, email) already exists.
        """
        hashed = hash_password(raw_password, self._bcrypt_rounds) if raw_password else None
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _employees.insert().values(
                        organization_id=org_id,
                        name=profile.name.strip(),
                        email=normalize_email(profile.email),
                        phone=profile.phone,
                        department=profile.department,
                        role=profile.role,
                        access_role=profile.access_role,
                        hashed_password=hashed,
                        skills=_dump_skills(profile.skills),
                        availability=_dump_availability(profile.availability),
                        experience=profile.experience,
                        past_project_score=profile.past_project_score,
                        photo_url=profile.photo_url,
                        created_at=now,
                        updated_at=now,
                    )
                )
                employee_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError("An employee with this email already exists") from exc
        return self.get_employee(employee_id)

    def update_employee(self, org_id: int, employee_id: int, **fields) -> Optional[Employee]:
        """Update mutable fields on an employee in org_id.

        Accepts the names in _MUTABLE_EMPLOYEE_FIELDS plus raw_password, which
        is hashed into hashed_password. skills/availability take dataclasses.

        Returns the updated record, or None when the employee is not in org_id.
        Raises ConflictError when a new email collides within the organization.
        """
        raw_password = fields.pop("raw_password", None)
        if raw_password:
            fields["hashed_password"] = hash_password(raw_password, self._bcrypt_rounds)
        unknown = set(fields) - _MUTABLE_EMPLOYEE_FIELDS
        if unknown:
            raise ValueError(f"Unknown employee fields: {sorted(unknown)!r}")
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        if "skills" in fields:
            fields["skills"] = _dump_skills(fields["skills"])
        if "availability" in fields:
            fields["availability"] = _dump_availability(fields["availability"])
        fields["updated_at"] = _now_iso()

        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _employees.update()
                    .where((_employees.c.id == employee_id) & (_employees.c.organization_id == org_id))
                    .values(**fields)
                )
        except IntegrityError as exc:
            raise ConflictError("An employee with this email already exists") from exc
        if result.rowcount == 0:
            return None
        return self.get_employee(employee_id)

    def delete_employee(self, org_id: int, employee_id: int) -> bool:
        """Delete an employee in org_id. Returns False if not found in that org."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _employees.delete().where((_employees.c.id == employee_id) & (_employees.c.organization_id == org_id))
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Employees -- reads
    # ------------------------------------------------------------------

    def get_employee(self, employee_id: int) -> Optional[Employee]:
        """Unscoped lookup by id. Only the auth flow should call this."""
        with self.engine.connect() as conn:
            row = conn.execute(_employees.select().where(_employees.c.id == employee_id)).fetchone()
        return _row_to_employee(row) if row is not None else None

    def get_employee_in_org(self, org_id: int, employee_id: int) -> Optional[Employee]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _employees.select().where((_employees.c.id == employee_id) & (_employees.c.organization_id == org_id))
            ).fetchone()
        return _row_to_employee(row) if row is not None else None

    def list_employees(self, org_id: int) -> list[Employee]:
        """Return every employee in org_id, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _employees.select()
                .where(_employees.c.organization_id == org_id)
                .order_by(_employees.c.created_at.desc(), _employees.c.id.desc())
            ).fetchall()
        return [_row_to_employee(r) for r in rows]

    def find_by_email_global(self, email: str) -> Optional[Employee]:
        """Look up an email across all organizations (oldest record first).

        Email doubles as the login identity, so registration and login search
        every tenant rather than one.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _employees.select()
                .where(_employees.c.email == normalize_email(email))
                .order_by(_employees.c.id)
                .limit(1)
            ).fetchone()
        return _row_to_employee(row) if row is not None else None

    def find_by_email_in_org(self, org_id: int, email: str) -> Optional[Employee]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _employees.select().where(
                    (_employees.c.organization_id == org_id) & (_employees.c.email == normalize_email(email))
                )
            ).fetchone()
        return _row_to_employee(row) if row is not None else None

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def verify_password(self, employee: Employee, raw_password: str) -> bool:
        """Constant-time bcrypt check. False when the employee has no password."""
        return verify_password(raw_password, employee.hashed_password)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_organization(row) -> Organization:
    return Organization(
        id=row.id,
        company_name=row.company_name,
        location=row.location,
        company_size=row.company_size,
        website=row.website,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_employee(row) -> Employee:
    skills = [EmployeeSkill(**s) for s in json.loads(row.skills or "[]")]
    availability = Availability(**json.loads(row.availability)) if row.availability else Availability()
    return Employee(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        department=row.department,
        role=row.role,
        access_role=row.access_role,
        hashed_password=row.hashed_password,
        skills=skills,
        availability=availability,
        experience=row.experience,
        past_project_score=row.past_project_score,
        photo_url=row.photo_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
