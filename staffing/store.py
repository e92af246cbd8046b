"""
staffing/store.py -- SQLAlchemy-backed persistence for projects and client requests.

Uses SQLAlchemy Core (not ORM) so the dataclasses in staffing/models.py stay
the authoritative domain representation. Nested documents (required skills,
team preferences) are stored as JSON text columns.

Pattern: Repository + Data Mapper. StaffingStore is the repository; the
_row_to_* functions are the mappers.

Tenant isolation: every project read and write takes organization_id and
puts it in the WHERE clause. A project in another tenant is indistinguishable
from a missing one.

Project requests:
  UNIQUE(token) is the real guarantee of token uniqueness. The generator's
  pre-check (token_exists) only avoids a failed insert in the common case.

  submit_request() creates the project and flips the request to "submitted"
  inside one transaction. The flip is a conditional UPDATE ... WHERE
  status = 'sent'; if it matches no row the request was already consumed and
  the whole transaction rolls back, so a repeated or concurrent submit can
  never leave a second project behind.

Usage:
    store = StaffingStore("sqlite:///:memory:")
    project = store.create_project(Project(organization_id=1, name="X", deadline="2030-01-01"))
    store.list_projects(1)
    store.close()
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.errors import AlreadySubmittedError, ConflictError
from staffing.models import (
    REQUEST_SENT,
    REQUEST_SUBMITTED,
    Project,
    ProjectRequest,
    RequiredSkill,
    SeniorityMix,
    TeamPreferences,
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", Integer, nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("status", String(20), nullable=False, server_default="Draft"),
    Column("priority", String(10), nullable=False, server_default="Medium"),
    Column("deadline", String(32), nullable=False),  # ISO 8601 date
    Column("duration", Integer, nullable=False, server_default="1"),
    Column("progress", Integer, nullable=False, server_default="0"),
    Column("required_skills", Text),  # JSON array
    Column("team_preferences", Text),  # JSON object
    Column("created_by", Integer),
    Column("source", String(20), nullable=False, server_default="manual"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_requests = Table(
    "project_requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", Integer, nullable=False, index=True),
    Column("token", String(64), nullable=False, unique=True),
    Column("client_email", String(320), nullable=False),
    Column("client_name", String(255), nullable=False, server_default=""),
    Column("status", String(20), nullable=False, server_default=REQUEST_SENT),
    Column("project_id", Integer),
    Column("created_by", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_MUTABLE_PROJECT_FIELDS = frozenset(
    {
        "name",
        "description",
        "status",
        "priority",
        "deadline",
        "duration",
        "progress",
        "required_skills",
        "team_preferences",
    }
)


class TokenCollisionError(ConflictError):
    """The storage UNIQUE(token) constraint rejected an insert."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; set per-connection since PRAGMAs are not pooled."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _project_values(project: Project) -> dict:
    return {
        "organization_id": project.organization_id,
        "name": project.name,
        "description": project.description,
        "status": project.status,
        "priority": project.priority,
        "deadline": project.deadline,
        "duration": project.duration,
        "progress": project.progress,
        "required_skills": json.dumps([asdict(s) for s in project.required_skills]),
        "team_preferences": json.dumps(asdict(project.team_preferences)),
        "created_by": project.created_by,
        "source": project.source,
    }


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class StaffingStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project) -> Project:
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(_projects.insert().values(**_project_values(project), created_at=now, updated_at=now))
            project_id = result.inserted_primary_key[0]
        return self.get_project(project.organization_id, project_id)

    def get_project(self, org_id: int, project_id: int) -> Optional[Project]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _projects.select().where((_projects.c.id == project_id) & (_projects.c.organization_id == org_id))
            ).fetchone()
        return _row_to_project(row) if row is not None else None

    def list_projects(self, org_id: int) -> list[Project]:
        """Return all projects in org_id, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _projects.select()
                .where(_projects.c.organization_id == org_id)
                .order_by(_projects.c.created_at.desc(), _projects.c.id.desc())
            ).fetchall()
        return [_row_to_project(r) for r in rows]

    def update_project(self, org_id: int, project_id: int, **fields) -> Optional[Project]:
        """Update mutable fields. Returns None when the project is not in org_id.

        required_skills takes a list of RequiredSkill; team_preferences a
        TeamPreferences. Unknown field names raise ValueError.
        """
        unknown = set(fields) - _MUTABLE_PROJECT_FIELDS
        if unknown:
            raise ValueError(f"Unknown project fields: {sorted(unknown)!r}")
        if "required_skills" in fields:
            fields["required_skills"] = json.dumps([asdict(s) for s in fields["required_skills"]])
        if "team_preferences" in fields:
            fields["team_preferences"] = json.dumps(asdict(fields["team_preferences"]))
        fields["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _projects.update()
                .where((_projects.c.id == project_id) & (_projects.c.organization_id == org_id))
                .values(**fields)
            )
        if result.rowcount == 0:
            return None
        return self.get_project(org_id, project_id)

    def delete_project(self, org_id: int, project_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _projects.delete().where((_projects.c.id == project_id) & (_projects.c.organization_id == org_id))
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Project requests
    # ------------------------------------------------------------------

    def token_exists(self, token: str) -> bool:
        with self.engine.connect() as conn:
            found = conn.execute(select(_requests.c.id).where(_requests.c.token == token)).first()
        return found is not None

    def create_request(self, request: ProjectRequest) -> ProjectRequest:
        """Insert a new request. Raises TokenCollisionError if the token is taken."""
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _requests.insert().values(
                        organization_id=request.organization_id,
                        token=request.token,
                        client_email=request.client_email,
                        client_name=request.client_name,
                        status=REQUEST_SENT,
                        created_by=request.created_by,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            raise TokenCollisionError("Project request token already in use") from exc
        return self.get_request_by_token(request.token)

    def get_request_by_token(self, token: str) -> Optional[ProjectRequest]:
        """Look up a request by token across all tenants -- the token is the credential."""
        with self.engine.connect() as conn:
            row = conn.execute(_requests.select().where(_requests.c.token == token)).fetchone()
        return _row_to_request(row) if row is not None else None

    def submit_request(self, token: str, project: Project) -> Project:
        """Atomically create project and mark the request with token as submitted.

        Raises AlreadySubmittedError (and writes nothing) when the request is
        no longer in the "sent" state.
        """
        now = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(
                _projects.insert().values(**_project_values(project), created_at=now, updated_at=now)
            )
            project_id = result.inserted_primary_key[0]
            claimed = conn.execute(
                _requests.update()
                .where((_requests.c.token == token) & (_requests.c.status == REQUEST_SENT))
                .values(status=REQUEST_SUBMITTED, project_id=project_id, updated_at=now)
            )
            if claimed.rowcount != 1:
                # Raising inside begin() rolls back the project insert above.
                raise AlreadySubmittedError()
        return self.get_project(project.organization_id, project_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_project(row) -> Project:
    skills = [RequiredSkill(**s) for s in json.loads(row.required_skills or "[]")]
    prefs_raw = json.loads(row.team_preferences) if row.team_preferences else {}
    mix = SeniorityMix(**prefs_raw.get("seniority_mix", {}))
    prefs = TeamPreferences(team_size=prefs_raw.get("team_size", 5), seniority_mix=mix)
    return Project(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        description=row.description,
        status=row.status,
        priority=row.priority,
        deadline=row.deadline,
        duration=row.duration,
        progress=row.progress,
        required_skills=skills,
        team_preferences=prefs,
        created_by=row.created_by,
        source=row.source,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_request(row) -> ProjectRequest:
    return ProjectRequest(
        id=row.id,
        organization_id=row.organization_id,
        token=row.token,
        client_email=row.client_email,
        client_name=row.client_name,
        status=row.status,
        project_id=row.project_id,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
