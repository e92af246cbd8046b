"""
API request and response models for the Work Mesh REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py and staffing/models.py, which
own the internal domain representation; route handlers map between the two.

Wire format: camelCase keys in both directions (alias_generator=to_camel).
Handlers read fields by their snake_case names; populate_by_name lets tests
and internal callers use either spelling.

Every response body is an envelope:
  {"success": true,  "data": ..., "message": "..."}
  {"success": false, "message": "...", "statusCode": 4xx, "errors": {...}}
"""

from datetime import date
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Employee
from staffing.models import Project, ProjectRequest

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# bcrypt rejects input past 72 bytes. The limit is in UTF-8 bytes, not
# characters, so it is enforced by _check_password_bytes below.
_PASSWORD_MAX_BYTES = 72

AccessRole = Literal["Admin", "Manager", "Employee"]
Proficiency = Literal["Beginner", "Intermediate", "Advanced", "Expert"]
AvailabilityStatus = Literal["Available", "Partially Available", "Unavailable"]
ProjectStatus = Literal["Draft", "Active", "Completed", "Archived"]
ProjectPriority = Literal["Low", "Medium", "High"]
LooseNumber = Optional[Union[int, float, str]]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value.encode("utf-8")) > _PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {_PASSWORD_MAX_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ErrorResponse(_WireModel):
    """Envelope returned on every 4xx/5xx response."""

    success: bool = False
    message: str
    status_code: int
    errors: Optional[dict[str, Any]] = None


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Wrap a successful payload in the standard response envelope."""
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(_WireModel):
    """Request body for POST /api/auth/register."""

    company_name: str = Field(min_length=1, max_length=255)
    location: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX_BYTES)
    company_size: Optional[str] = Field(default=None, max_length=50)
    website: Optional[str] = Field(default=None, max_length=255)
    admin_name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value):
        return _check_password_bytes(value)


class LoginRequest(_WireModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


class SkillIn(_WireModel):
    skill_id: Optional[str] = Field(default=None, max_length=100)
    skill_name: str = Field(min_length=1, max_length=100)
    years_of_experience: float = Field(default=0, ge=0)
    proficiency_level: Proficiency = "Beginner"


class AvailabilityIn(_WireModel):
    status: AvailabilityStatus = "Available"
    current_project: Optional[str] = Field(default=None, max_length=255)
    current_workload: int = Field(default=0, ge=0, le=100)
    available_from: Optional[date] = None


class EmployeeCreate(_WireModel):
    """Request body for POST /api/employees. A password grants login access."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=320, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(default=None, max_length=50)
    department: Optional[str] = Field(default=None, max_length=100)
    role: Optional[str] = Field(default=None, max_length=100)
    access_role: AccessRole = "Employee"
    password: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX_BYTES)
    skills: list[SkillIn] = Field(default_factory=list, max_length=100)
    availability: Optional[AvailabilityIn] = None
    experience: float = Field(default=0, ge=0)
    past_project_score: Optional[float] = Field(default=None, ge=0, le=100)
    photo_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value):
        return _check_password_bytes(value)


class EmployeeUpdate(_WireModel):
    """Request body for PUT /api/employees/{id}. Only fields sent are changed."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(default=None, max_length=50)
    department: Optional[str] = Field(default=None, max_length=100)
    role: Optional[str] = Field(default=None, max_length=100)
    access_role: Optional[AccessRole] = None
    password: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX_BYTES)
    skills: Optional[list[SkillIn]] = Field(default=None, max_length=100)
    availability: Optional[AvailabilityIn] = None
    experience: Optional[float] = Field(default=None, ge=0)
    past_project_score: Optional[float] = Field(default=None, ge=0, le=100)
    photo_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value):
        return _check_password_bytes(value)


class SkillOut(_WireModel):
    skill_id: str
    skill_name: str
    years_of_experience: float
    proficiency_level: str


class AvailabilityOut(_WireModel):
    status: str
    current_project: Optional[str]
    current_workload: int
    available_from: Optional[str]


class EmployeeOut(_WireModel):
    """Outward employee view. There is deliberately no password field."""

    id: int
    organization_id: int
    name: str
    email: str
    phone: Optional[str]
    department: str
    role: str
    access_role: str
    has_login: bool
    skills: list[SkillOut]
    availability: AvailabilityOut
    experience: float
    past_project_score: Optional[float]
    photo_url: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, employee: Employee) -> "EmployeeOut":
        a = employee.availability
        return cls(
            id=employee.id,
            organization_id=employee.organization_id,
            name=employee.name,
            email=employee.email,
            phone=employee.phone,
            department=employee.department,
            role=employee.role,
            access_role=employee.access_role,
            has_login=employee.can_login,
            skills=[
                SkillOut(
                    skill_id=s.skill_id,
                    skill_name=s.skill_name,
                    years_of_experience=s.years_of_experience,
                    proficiency_level=s.proficiency_level,
                )
                for s in employee.skills
            ],
            availability=AvailabilityOut(
                status=a.status,
                current_project=a.current_project,
                current_workload=a.current_workload,
                available_from=a.available_from,
            ),
            experience=employee.experience,
            past_project_score=employee.past_project_score,
            photo_url=employee.photo_url,
            created_at=employee.created_at,
            updated_at=employee.updated_at,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class RequiredSkillIn(_WireModel):
    """One required-skill row. Numbers may arrive as strings from the public form."""

    skill_id: Optional[str] = Field(default=None, max_length=100)
    skill_name: Optional[str] = Field(default=None, max_length=100)
    minimum_experience: LooseNumber = None
    priority: Optional[str] = None
    weight: LooseNumber = None


class SeniorityMixIn(_WireModel):
    junior: int = Field(default=40, ge=0, le=100)
    mid: int = Field(default=40, ge=0, le=100)
    senior: int = Field(default=20, ge=0, le=100)


class TeamPreferencesIn(_WireModel):
    team_size: LooseNumber = None
    seniority_mix: Optional[SeniorityMixIn] = None


class ProjectCreate(_WireModel):
    """Request body for POST /api/projects."""

    name: str = Field(min_length=1, max_length=255)
    deadline: str = Field(min_length=1, max_length=40)
    description: str = Field(default="", max_length=10_000)
    status: ProjectStatus = "Draft"
    priority: ProjectPriority = "Medium"
    duration: int = Field(default=1, ge=1)
    progress: int = Field(default=0, ge=0, le=100)
    required_skills: list[RequiredSkillIn] = Field(default_factory=list, max_length=100)
    team_preferences: Optional[TeamPreferencesIn] = None
    source: Literal["manual", "client_form"] = "manual"


class ProjectUpdate(_WireModel):
    """Request body for PUT /api/projects/{id}. Only fields sent are changed."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    deadline: Optional[str] = Field(default=None, max_length=40)
    description: Optional[str] = Field(default=None, max_length=10_000)
    status: Optional[ProjectStatus] = None
    priority: Optional[ProjectPriority] = None
    duration: Optional[int] = Field(default=None, ge=1)
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    required_skills: Optional[list[RequiredSkillIn]] = Field(default=None, max_length=100)
    team_preferences: Optional[TeamPreferencesIn] = None


class RequiredSkillOut(_WireModel):
    skill_id: str
    skill_name: str
    minimum_experience: float
    priority: str
    weight: int


class SeniorityMixOut(_WireModel):
    junior: int
    mid: int
    senior: int


class TeamPreferencesOut(_WireModel):
    team_size: int
    seniority_mix: SeniorityMixOut


class ProjectOut(_WireModel):
    id: int
    organization_id: int
    name: str
    description: str
    status: str
    priority: str
    deadline: str
    duration: int
    progress: int
    required_skills: list[RequiredSkillOut]
    team_preferences: TeamPreferencesOut
    created_by: Optional[int]
    source: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, project: Project) -> "ProjectOut":
        prefs = project.team_preferences
        return cls(
            id=project.id,
            organization_id=project.organization_id,
            name=project.name,
            description=project.description,
            status=project.status,
            priority=project.priority,
            deadline=project.deadline,
            duration=project.duration,
            progress=project.progress,
            required_skills=[
                RequiredSkillOut(
                    skill_id=s.skill_id,
                    skill_name=s.skill_name,
                    minimum_experience=s.minimum_experience,
                    priority=s.priority,
                    weight=s.weight,
                )
                for s in project.required_skills
            ],
            team_preferences=TeamPreferencesOut(
                team_size=prefs.team_size,
                seniority_mix=SeniorityMixOut(
                    junior=prefs.seniority_mix.junior,
                    mid=prefs.seniority_mix.mid,
                    senior=prefs.seniority_mix.senior,
                ),
            ),
            created_by=project.created_by,
            source=project.source,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Project requests (client intake)
# ---------------------------------------------------------------------------


class ProjectRequestSend(_WireModel):
    """Request body for POST /api/project-requests/send.

    client_email is validated in the route so a bad address gets the
    specific "Valid client email is required" message.
    """

    client_email: str = Field(default="", max_length=320)
    client_name: Optional[str] = Field(default=None, max_length=255)


class ClientProjectForm(_WireModel):
    """Request body for the public submit endpoint.

    Validated by the route only after the link is known to be open. Lenient
    on purpose: the secure link generator owns the required-field checks.
    """

    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=10_000)
    deadline: Optional[str] = Field(default=None, max_length=40)
    duration: LooseNumber = None
    priority: Optional[str] = None
    team_size: LooseNumber = None
    required_skills: Optional[list[RequiredSkillIn]] = Field(default=None, max_length=100)


class ProjectRequestOut(_WireModel):
    token: str
    client_email: str
    client_name: str
    status: str

    @classmethod
    def from_domain(cls, request: ProjectRequest) -> "ProjectRequestOut":
        return cls(
            token=request.token,
            client_email=request.client_email,
            client_name=request.client_name,
            status=request.status,
        )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
