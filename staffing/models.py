"""
staffing/models.py -- Domain dataclasses for projects and client project requests.

Pure data containers plus the project status transition rule. Request
lifecycle rules live in staffing/store.py and staffing/links.py.

Separation of concerns: auth/models.py owns tenants and people; this module
owns work. Neither imports the other -- they share only integer ids.
"""

from dataclasses import dataclass, field
from typing import Optional

PROJECT_STATUSES = ("Draft", "Active", "Completed", "Archived")
PROJECT_PRIORITIES = ("Low", "Medium", "High")
SKILL_PRIORITIES = ("Must-have", "Nice-to-have")
PROJECT_SOURCES = ("manual", "client_form")

# Allowed forward moves. Archived is reachable from every state and setting
# the current status again is always allowed.
_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "Draft": {"Active"},
    "Active": {"Completed"},
    "Completed": set(),
    "Archived": set(),
}

REQUEST_SENT = "sent"
REQUEST_SUBMITTED = "submitted"


def can_transition(current: str, target: str) -> bool:
    if target == current or target == "Archived":
        return True
    return target in _STATUS_TRANSITIONS.get(current, set())


@dataclass
class RequiredSkill:
    skill_id: str
    skill_name: str
    minimum_experience: float = 0
    priority: str = "Must-have"  # one of SKILL_PRIORITIES
    weight: int = 50  # 0-100


@dataclass
class SeniorityMix:
    junior: int = 40
    mid: int = 40
    senior: int = 20


@dataclass
class TeamPreferences:
    team_size: int = 5
    seniority_mix: SeniorityMix = field(default_factory=SeniorityMix)


@dataclass
class Project:
    """A unit of work owned by one organization.

    source is "client_form" for projects created through a submitted
    ProjectRequest and "manual" otherwise. deadline is an ISO 8601 date.

    id is None before the record is written to the database.
    """

    organization_id: int
    name: str
    deadline: str
    id: Optional[int] = None
    description: str = ""
    status: str = "Draft"  # one of PROJECT_STATUSES
    priority: str = "Medium"  # one of PROJECT_PRIORITIES
    duration: int = 1  # months
    progress: int = 0  # percent, 0-100
    required_skills: list[RequiredSkill] = field(default_factory=list)
    team_preferences: TeamPreferences = field(default_factory=TeamPreferences)
    created_by: Optional[int] = None
    source: str = "manual"  # one of PROJECT_SOURCES
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ProjectRequest:
    """An invitation for an external client to describe a project.

    token is the only credential the client holds. status moves from "sent"
    to "submitted" exactly once; project_id is set in the same transaction.
    """

    organization_id: int
    token: str
    client_email: str
    id: Optional[int] = None
    client_name: str = ""
    status: str = REQUEST_SENT
    project_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
