"""
auth/models.py -- Domain dataclasses for tenants and the people who log in.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these own the domain shape.

Layer rule: no imports from api/, staffing/, or notify/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

ACCESS_ROLES = ("Admin", "Manager", "Employee")
PROFICIENCY_LEVELS = ("Beginner", "Intermediate", "Advanced", "Expert")
AVAILABILITY_STATUSES = ("Available", "Partially Available", "Unavailable")


@dataclass
class Organization:
    """A tenant. Every employee and project belongs to exactly one."""

    company_name: str
    location: str
    id: Optional[int] = None
    company_size: Optional[str] = None
    website: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class EmployeeSkill:
    skill_id: str
    skill_name: str
    years_of_experience: float = 0
    proficiency_level: str = "Beginner"  # one of PROFICIENCY_LEVELS


@dataclass
class Availability:
    status: str = "Available"  # one of AVAILABILITY_STATUSES
    current_project: Optional[str] = None
    current_workload: int = 0  # percent, 0-100
    available_from: Optional[str] = None  # ISO 8601 date


@dataclass
class Employee:
    """A person on an organization's roster.

    role is the free-text job title; access_role drives authorization and is
    one of ACCESS_ROLES. hashed_password is None for employees who cannot log
    in. organization_id never changes after creation.

    email is stored lowercase and trimmed. The (organization_id, email) pair
    is unique at the storage level.
    """

    organization_id: int
    name: str
    email: str
    id: Optional[int] = None
    phone: Optional[str] = None
    department: str = "General"
    role: str = "Employee"
    access_role: str = "Employee"
    hashed_password: Optional[str] = None
    skills: list[EmployeeSkill] = field(default_factory=list)
    availability: Availability = field(default_factory=Availability)
    experience: float = 0
    past_project_score: Optional[float] = None
    photo_url: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def can_login(self) -> bool:
        return bool(self.hashed_password)


@dataclass(frozen=True)
class Identity:
    """The caller of an authenticated request, as proven by an access token."""

    employee_id: int
    access_role: str
    organization_id: int
